import logging

from fastapi import APIRouter, HTTPException, Depends, status
from sqlmodel import Session, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.models import User
from schemas.user_schema import UserCreate, UserLogin, UserRead, TokenResponse
from core.database import get_session
from core.security import hash_password, verify_password, create_token_for_user, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


# ==========================================================
# ✅ Signup: creates a bare user; workspaces are created separately
# ==========================================================
@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, session: Session = Depends(get_session)):
    existing = session.exec(select(User).where(User.email == user_data.email)).first()
    if existing:
        raise HTTPException(
            status_code=400,
            detail="An account with this email already exists. Please log in instead.",
        )

    new_user = User(
        full_name=user_data.full_name,
        email=user_data.email,
        password_hash=hash_password(user_data.password),
    )
    try:
        session.add(new_user)
        session.commit()
        session.refresh(new_user)
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=400,
            detail="An account with this email already exists. Please log in instead.",
        )
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Database error during signup for %s", user_data.email)
        raise HTTPException(
            status_code=500,
            detail="Something went wrong while creating your account. Please try again later.",
        )

    logger.info("📝 New account %s", new_user.id)
    return TokenResponse(access_token=create_token_for_user(new_user), user=UserRead.model_validate(new_user))


# ==========================================================
# ✅ Login
# ==========================================================
@router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, session: Session = Depends(get_session)):
    db_user = session.exec(select(User).where(User.email == credentials.email)).first()
    if not db_user or not verify_password(credentials.password, db_user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password.")
    if not db_user.is_active:
        raise HTTPException(status_code=403, detail="Your account is inactive. Contact your admin.")

    return TokenResponse(access_token=create_token_for_user(db_user), user=UserRead.model_validate(db_user))


# ==========================================================
# ✅ Get Current Authenticated User
# ==========================================================
@router.get("/me", response_model=UserRead)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user
