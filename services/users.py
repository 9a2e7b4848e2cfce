"""User accounts and sessions."""

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session as DbSession

from config.settings import settings
from services.shared import dao, utils
from services.shared.errors import ValidationError
from services.shared.models import Collection, Session, User

logger = logging.getLogger(__name__)

PASSWORD_ITERATIONS = 260000


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), PASSWORD_ITERATIONS)
    return f"pbkdf2_sha256${PASSWORD_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, expected = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


def validate_registration(email: str, username: str, password: str) -> dict:
    errors = {}
    if not email:
        errors["email"] = "The address email is required."
    elif "@" not in email or email.startswith("@") or email.endswith("@"):
        errors["email"] = "The address email is invalid."

    if not username:
        errors["username"] = "The username is required."
    elif len(username) > User.USERNAME_MAX_LENGTH:
        errors["username"] = f"The username must be less than {User.USERNAME_MAX_LENGTH} characters."

    if not password:
        errors["password"] = "The password is required."
    return errors


def create_user(db: DbSession, email: str, username: str, password: str,
                validated: bool = False) -> User:
    """Create a user with their special collections.

    Raises:
        ValidationError: if a field is invalid or the email is already used
    """
    email = (email or "").strip().lower()
    username = (username or "").strip()
    errors = validate_registration(email, username, password)
    if not errors and dao.find_user_by_email(db, email):
        errors["email"] = "An account already exists with this email address."
    if errors:
        raise ValidationError(errors)

    now = utils.utcnow()
    user = User(
        id=utils.timebased_id(),
        created_at=now,
        email=email,
        username=username,
        password_hash=hash_password(password),
        csrf=utils.random_hex(),
        validated_at=now if validated else None,
    )
    db.add(user)
    db.flush()

    for collection_type in ("bookmarks", "news", "read"):
        db.add(Collection.init_special(user.id, collection_type))
    db.flush()

    logger.info(f"User {user.id} registered")
    return user


def authenticate(db: DbSession, email: str, password: str) -> User:
    user = dao.find_user_by_email(db, email or "")
    if not user:
        raise ValidationError({"email": "We can’t find any account with this email address."})
    if not verify_password(password or "", user.password_hash):
        raise ValidationError({"password_hash": "The password is incorrect."})
    return user


def create_session(db: DbSession, user: User, name: str = "", ip: str = "") -> Session:
    now = utils.utcnow()
    session = Session(
        token=utils.random_hex(),
        created_at=now,
        expired_at=now + timedelta(days=settings.session_lifetime_days),
        name=name[:255],
        ip=ip[:64],
        user_id=user.id,
    )
    db.add(session)
    db.flush()
    return session


def find_user_by_session_token(db: DbSession, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    session = db.query(Session).filter(Session.token == token).first()
    if not session or session.is_expired():
        return None
    return session.user


def delete_session(db: DbSession, token: str) -> None:
    db.query(Session).filter(Session.token == token).delete(synchronize_session=False)
    db.flush()


def validate_user(db: DbSession, user: User) -> None:
    if not user.validated_at:
        user.validated_at = utils.utcnow()
        db.flush()


def support_user(db: DbSession) -> User:
    """Return the support user, creating it if needed.

    The support user owns the feed collections followed by the other users.
    """
    email = settings.support_email.strip().lower()
    user = dao.find_user_by_email(db, email)
    if user:
        return user
    return create_user(db, email, "flusio", secrets.token_urlsafe(32), validated=True)


def is_support_user(user: User) -> bool:
    return user.email == settings.support_email.strip().lower()
