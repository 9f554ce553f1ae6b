"""
Role checks for privileged search operations.
"""

import logging

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import AuthorizationError, NotFoundError
from app.core.models import User

logger = logging.getLogger(__name__)


def require_admin(db: Session, user_id: str) -> User:
    """
    Ensure the user exists and holds the admin role.

    Raises:
        NotFoundError: Unknown user id
        AuthorizationError: User is not an admin
    """
    user = db.get(User, user_id) if user_id else None
    if user is None:
        raise NotFoundError("User", user_id)

    admin_role = get_settings().admin_role
    if user.role != admin_role:
        logger.warning(f"User {user_id} (role={user.role}) denied admin operation")
        raise AuthorizationError("Admin role required", {"user_id": user_id})
    return user
