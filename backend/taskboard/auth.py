"""
Firebase authentication for FastAPI.

Verifies Firebase ID tokens, mirrors the caller into the local ``users``
table and exposes role checks. The role comes from the ``role`` custom
claim set on the Firebase account (``manager`` or ``user``).
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, exceptions as firebase_exceptions
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskboard.config import get_settings
from taskboard.database import get_session
from taskboard.exceptions import ForbiddenError, UnauthenticatedError
from taskboard.logging_config import get_logger
from taskboard.models import Task, User, UserRole

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _init_firebase() -> None:
    """Initialize the Firebase Admin SDK once, on first token verification."""
    try:
        firebase_admin.get_app()
        return  # Already initialized
    except ValueError:
        pass  # Need to initialize

    # __file__ = backend/taskboard/auth.py -> .parent.parent = backend/
    backend_dir = Path(__file__).parent.parent
    settings = get_settings()

    possible_paths = []
    if settings.firebase_credentials_path:
        possible_paths.append(Path(settings.firebase_credentials_path))
    possible_paths.extend([
        backend_dir / "serviceAccountKey.json",
        backend_dir / "firebase-service-account.json",
    ])
    possible_paths.extend(backend_dir.glob("*-firebase-adminsdk-*.json"))

    env_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    if env_path:
        possible_paths.append(Path(env_path))

    for key_path in possible_paths:
        if key_path.exists() and key_path.is_file():
            cred = credentials.Certificate(str(key_path))
            firebase_admin.initialize_app(cred)
            logger.info(f"Firebase Admin SDK initialized with: {key_path.name}")
            return

    logger.warning("No Firebase service account key found! Token verification may fail.")
    firebase_admin.initialize_app()


async def get_token_claims(
    bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    """
    Verify the bearer token and return its decoded claims.

    Raises:
        UnauthenticatedError: no token, or the token is expired or invalid.
    """
    if bearer is None or not bearer.credentials:
        raise UnauthenticatedError("Unauthenticated.")

    _init_firebase()
    try:
        return auth.verify_id_token(bearer.credentials)
    except auth.ExpiredIdTokenError:
        logger.warning("Expired Firebase token")
        raise UnauthenticatedError("Token has expired")
    except auth.InvalidIdTokenError:
        logger.warning("Invalid Firebase token")
        raise UnauthenticatedError("Invalid authentication token")
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.error(f"Authentication error: {e}")
        raise UnauthenticatedError("Authentication failed")


def _role_from_claims(claims: dict[str, Any]) -> str:
    role = claims.get("role")
    if role in (UserRole.MANAGER.value, UserRole.USER.value):
        return role
    return UserRole.USER.value


async def get_current_user(
    claims: dict[str, Any] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session),
) -> User:
    """
    Return the local user for the verified token, creating it on first sight.

    Email, name and role are refreshed from the claims on every request so a
    role change in Firebase takes effect on the next call.
    """
    uid = claims["uid"]
    result = await session.execute(select(User).where(User.firebase_uid == uid))
    user = result.scalars().first()

    email = claims.get("email")
    name = claims.get("name")
    role = _role_from_claims(claims)

    if user is None:
        user = User(firebase_uid=uid, email=email, name=name, role=role)
        session.add(user)
        logger.info(f"Provisioned user for uid={uid} ({email}) role={role}")
    elif (user.email, user.name, user.role) != (email, name, role):
        user.email, user.name, user.role = email, name, role
        user.updated_at = datetime.utcnow()
    else:
        return user

    await session.commit()
    await session.refresh(user)
    return user


def ensure_manager(user: User, action: str = "perform this action") -> None:
    if not user.is_manager:
        raise ForbiddenError(f"Only managers can {action}.")


def ensure_can_view(user: User, task: Task, what: str = "tasks") -> None:
    """Managers see every task; users only the tasks assigned to them."""
    if not user.is_manager and task.assigned_to != user.id:
        raise ForbiddenError(f"You can only view {what} assigned to you.")
