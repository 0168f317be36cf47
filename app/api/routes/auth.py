from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.session import get_db
from app.schemas.auth import RegisterResponse, TokenResponse, UserCreate, UserLogin
from app.services import accounts
from app.api.routes.users import serialize_user

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Create an account on the free plan.
    Emails are matched case-insensitively; a duplicate returns 409.
    """
    user = accounts.register_user(db, user_data.email, user_data.password, settings)
    return {"message": "Registered", "user_id": user.id}


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Exchange email and password for a session token valid for ACCESS_TOKEN_EXPIRE_DAYS.
    Unknown email and wrong password return the same 400 response.
    """
    user, token = accounts.login(db, credentials.email, credentials.password, settings)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": serialize_user(user, settings),
    }
