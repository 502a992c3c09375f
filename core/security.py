# core/security.py
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from core.config import settings
from core.database import get_session
from core.utils import utcnow
from models.models import User


# ========================================
# 🔑 JWT config
# ========================================
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM or "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ========================================
# 🔐 Password Hashing (Argon2)
# ========================================
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# ========================================
# 🔑 Token Helpers
# ========================================
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_token_for_user(user: User) -> str:
    return create_access_token({"sub": user.email, "user_id": user.id})


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


def generate_invite_token() -> str:
    """URL-safe random token for workspace invite links."""
    return secrets.token_urlsafe(32)


# ========================================
# 👤 Current user
# ========================================
def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)) -> User:
    """
    Resolve the bearer token to an active user. Workspace roles are not
    carried in the token; every service call looks the membership up itself.
    """
    payload = decode_token(token)
    user_id = payload.get("user_id")
    email = payload.get("sub")

    if not (user_id or email):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = None
    if user_id:
        user = session.get(User, user_id)
    if not user and email:
        user = session.exec(select(User).where(User.email == email)).first()

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is inactive")
    return user
