"""
Error taxonomy shared by every marketplace operation.
Each error carries the HTTP status code the API layer responds with.
"""


class MarketplaceError(Exception):
    """Base class for errors that are safe to show to the caller."""
    status_code = 500
    default_message = 'Internal Server Error'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    """Malformed or missing required input."""
    status_code = 400
    default_message = 'Invalid input'


class InvalidStatus(ValidationError):
    """A status value outside the entity's status enum."""
    default_message = 'Invalid status'


class InvalidState(MarketplaceError):
    """Operation is not legal in the entity's current status."""
    status_code = 400
    default_message = 'Operation not allowed in current state'


class Unauthenticated(MarketplaceError):
    status_code = 401
    default_message = 'Authentication required'


class Forbidden(MarketplaceError):
    """Authenticated principal lacks rights over the entity."""
    status_code = 403
    default_message = 'Access denied'


class NotFound(MarketplaceError):
    status_code = 404
    default_message = 'Not found'


class Conflict(MarketplaceError):
    """Uniqueness violation or a concurrent change that won the race."""
    status_code = 409
    default_message = 'Conflict'


class Unexpected(MarketplaceError):
    """Collaborator failure (storage unavailable, etc.). Details stay in the logs."""
    status_code = 500
