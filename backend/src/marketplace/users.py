"""
User directory lookups.
Users are referenced by id from every entity and resolved here for display.
"""
from typing import Dict, Iterable, List, Optional

from .auth import Identity, require_role
from .config import config
from .dynamo import ConditionFailed, update_op
from .errors import NotFound, ValidationError
from .logging import logger
from .models import Role
from .utils import now_iso

PUBLIC_FIELDS = ('userId', 'email', 'name', 'role', 'profileInfo', 'createdAt')


def public_user(item: dict) -> dict:
    return {field: item.get(field) for field in PUBLIC_FIELDS}


def get_user(store, user_id: str) -> Optional[dict]:
    if not user_id:
        return None
    return store.get(config.USERS_TABLE, {'userId': user_id})


def get_users(store, user_ids: Iterable[str]) -> Dict[str, dict]:
    """Resolve a set of user ids; unknown ids are left out."""
    users = {}
    for user_id in set(u for u in user_ids if u):
        user = get_user(store, user_id)
        if user:
            users[user_id] = user
        else:
            logger.warning(f"Referenced user {user_id} not found")
    return users


def get_me(store, identity: Identity) -> dict:
    user = get_user(store, identity.id)
    if not user:
        raise NotFound('User not found')
    return public_user(user)


def list_users(store, identity: Identity) -> List[dict]:
    """All users, newest first. Admin only."""
    require_role(identity, (Role.ADMIN,))
    users = store.scan(config.USERS_TABLE)
    users.sort(key=lambda u: u.get('createdAt', ''), reverse=True)
    return [public_user(u) for u in users]


def update_role(store, identity: Identity, user_id: str, role: str) -> dict:
    """Change a user's role. Admin only."""
    require_role(identity, (Role.ADMIN,))
    if role not in Role.ALL:
        raise ValidationError(f"Invalid role, expected one of: {', '.join(Role.ALL)}")

    try:
        updated = store.write(update_op(
            config.USERS_TABLE,
            {'userId': user_id},
            values={'role': role, 'updatedAt': now_iso()}
        ))
    except ConditionFailed:
        raise NotFound('User not found')

    logger.info(f"User {user_id} role set to {role} by {identity.id}")
    return public_user(updated)
