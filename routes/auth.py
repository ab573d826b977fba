# routes/auth.py
import logging

from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.models import User
from schemas.user_schema import UserCreate, UserLogin, UserRead, Token
from core.database import get_session
from core.security import hash_password, verify_password, create_token_for_user, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _authenticate(session: Session, email: str, password: str) -> User:
    user = session.exec(select(User).where(func.lower(User.email) == email.lower())).first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password.")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return user


# ==========================================================
# ✅ Register
# ==========================================================
@router.post("/register", status_code=201)
def register(user_data: UserCreate, session: Session = Depends(get_session)):
    """Create a user account. Organizations are created separately."""
    try:
        new_user = User(
            full_name=user_data.full_name.strip(),
            email=user_data.email.lower(),
            phone=user_data.phone,
            password_hash=hash_password(user_data.password),
        )
        session.add(new_user)
        session.commit()
        session.refresh(new_user)

    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=400,
            detail="An account with this email or phone already exists. Please log in instead."
        )
    except SQLAlchemyError:
        session.rollback()
        logger.exception("❌ Database error during registration")
        raise HTTPException(
            status_code=500,
            detail="Something went wrong while creating your account. Please try again later."
        )

    logger.info("📝 User %s registered", new_user.id)
    return {
        "access_token": create_token_for_user(new_user),
        "token_type": "bearer",
        "user": UserRead.model_validate(new_user),
    }


# ==========================================================
# ✅ Login (JSON body)
# ==========================================================
@router.post("/login", response_model=Token)
def login(credentials: UserLogin, session: Session = Depends(get_session)):
    user = _authenticate(session, credentials.email, credentials.password)
    return Token(access_token=create_token_for_user(user))


# ==========================================================
# ✅ OAuth2 password flow (Swagger "Authorize" button)
# ==========================================================
@router.post("/token", response_model=Token)
def token(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    user = _authenticate(session, form_data.username, form_data.password)
    return Token(access_token=create_token_for_user(user))


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    """Return current user info (decoded from JWT)."""
    return current_user
