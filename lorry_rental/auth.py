from jose import JWTError, jwt
import bcrypt
from datetime import datetime, timedelta
import logging

from . import config

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # malformed hash in the users table
        return False


def get_password_hash(password: str) -> str:
    hashed_bytes = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt())
    return hashed_bytes.decode('utf-8')


def create_access_token(data: dict, expires_minutes: int = None):
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else config.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.utcnow() + timedelta(minutes=minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def create_user_token(user) -> str:
    """Token carrying the user's id, username and role."""
    return create_access_token(data={
        "sub": str(user.id),
        "username": user.username,
        "role": user.role,
    })


def verify_token(token: str):
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected token: {e}")
        return None
