"""
Common utility functions for Lambda handlers.
"""
import base64
import binascii
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from .errors import MarketplaceError, ValidationError


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def error_response(error: MarketplaceError) -> Dict[str, Any]:
    """Format a MarketplaceError as an {error: ...} envelope."""
    return format_response(error.status_code, {'error': error.message})


def parse_body(event: dict) -> dict:
    """
    Parse JSON body from API Gateway event.

    Raises:
        ValidationError: when the body is not a JSON object
    """
    body = event.get('body') or '{}'
    if event.get('isBase64Encoded') and isinstance(body, str):
        try:
            body = base64.b64decode(body).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            raise ValidationError('Invalid JSON')
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            raise ValidationError('Invalid JSON')
    if not isinstance(body, dict):
        raise ValidationError('Invalid JSON')
    return body


def get_path_param(event: dict, param_name: str) -> Optional[str]:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def require_path_param(event: dict, param_name: str) -> str:
    value = get_path_param(event, param_name)
    if not value:
        raise ValidationError(f'Missing path parameter {param_name}')
    return value


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    params = event.get('queryStringParameters') or {}
    return params.get(param_name, default)


def now_iso() -> str:
    """Timezone-aware UTC timestamp used for createdAt/updatedAt fields."""
    return datetime.now(timezone.utc).isoformat()


def clean_text(value: Any) -> str:
    """Trim user supplied text; None becomes an empty string."""
    if value is None:
        return ''
    return str(value).strip()


def parse_deadline(value: Any) -> Optional[str]:
    """
    Validate an optional ISO 8601 deadline.

    Returns:
        Normalized ISO string or None when not provided

    Raises:
        ValidationError: when the value is not ISO 8601
    """
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError('Deadline must be an ISO 8601 date')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        raise ValidationError('Deadline must be an ISO 8601 date')
