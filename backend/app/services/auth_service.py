"""Authentication service - business logic for user authentication"""
import bcrypt
import logging
import secrets
from typing import Optional, Tuple
from sqlalchemy.orm import Session

from app.models.user import User
from app.core.metrics import login_attempts_counter
from app.db.redis import set_session, delete_session
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash"""
    if not password_hash or not password:
        return False
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def validate_registration(email: Optional[str], password: Optional[str]) -> Optional[str]:
    """Error message for invalid registration input, or None"""
    if not email or not password:
        return "Email and password are required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return None


def create_user(email: str, password: str, name: str = None, db: Session = None) -> User:
    """Create a new user. Raises ValueError when the email is taken."""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        email = email.strip().lower()
        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            raise ValueError("Email already registered")

        user = User(email=email, password_hash=hash_password(password), name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    finally:
        if should_close:
            db.close()


def authenticate_user(email: str, password: str, db: Session = None) -> Optional[User]:
    """Authenticate a user by email and password"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
        if not user or not verify_password(password, user.password_hash):
            login_attempts_counter.labels(status="failure").inc()
            security_logger.warning(f"Failed login attempt for {email}")
            return None
        login_attempts_counter.labels(status="success").inc()
        return user
    finally:
        if should_close:
            db.close()


def get_user_by_id(user_id: int, db: Session = None) -> Optional[User]:
    """Get user by ID"""
    should_close = False
    if db is None:
        db = SessionLocal()
        should_close = True

    try:
        return db.query(User).filter(User.id == user_id).first()
    finally:
        if should_close:
            db.close()


def start_session(user: User) -> str:
    """Create a Redis session for the user and return its id"""
    session_id = secrets.token_urlsafe(32)
    set_session(session_id, user.id)
    return session_id


def end_session(session_id: Optional[str]) -> None:
    if session_id:
        delete_session(session_id)


def register_user(email: str, password: str, name: str = None, db: Session = None) -> Tuple[User, str]:
    """Create the user and log them in. Returns (user, session_id)."""
    user = create_user(email, password, name=name, db=db)
    logger.info(f"✅ Registered user {user.id}")
    return user, start_session(user)


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "createdAt": user.created_at,
    }
