"""
Authentication utilities for extracting the acting principal from Cognito claims.
Authorization is a pure predicate over (identity, required roles).
"""
from typing import Iterable, NamedTuple, Optional

from .errors import Forbidden, Unauthenticated
from .models import Role


class Identity(NamedTuple):
    """Verified principal supplied by the authentication collaborator."""
    id: str
    role: str
    name: str = ''
    email: str = ''


def _get_claims(event: dict) -> dict:
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    return _get_claims(event).get('sub')


def get_user_groups(event: dict) -> list:
    """Extract user groups (admin, buyer, problem_solver) from Cognito claims."""
    groups = _get_claims(event).get('cognito:groups', '')
    if isinstance(groups, str):
        return groups.split(',') if groups else []
    return groups or []


def get_user_role(event: dict) -> Optional[str]:
    """
    Resolve the principal's role.
    Prefers the custom:role claim, falls back to the first known Cognito group.
    """
    role = _get_claims(event).get('custom:role')
    if role in Role.ALL:
        return role
    for group in get_user_groups(event):
        if group in Role.ALL:
            return group
    return None


def get_identity(event: dict) -> Identity:
    """
    Build the Identity for the request.

    Raises:
        Unauthenticated: when the event carries no subject or no known role
    """
    user_id = get_user_sub(event)
    role = get_user_role(event)
    if not user_id or not role:
        raise Unauthenticated()

    claims = _get_claims(event)
    return Identity(
        id=user_id,
        role=role,
        name=claims.get('name', ''),
        email=claims.get('email', ''),
    )


def has_role(identity: Identity, roles: Iterable[str]) -> bool:
    """True when the identity holds one of the given roles."""
    return identity is not None and identity.role in tuple(roles)


def require_role(identity: Identity, roles: Iterable[str]) -> None:
    """Raise Forbidden unless the identity holds one of the given roles."""
    roles = tuple(roles)
    if not has_role(identity, roles):
        raise Forbidden(f"This action requires one of these roles: {', '.join(roles)}")


def is_admin(identity: Identity) -> bool:
    return has_role(identity, (Role.ADMIN,))
