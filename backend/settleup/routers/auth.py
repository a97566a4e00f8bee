"""Account registration and login; both hand back a bearer token."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from settleup.auth import create_access_token, get_password_hash, verify_password
from settleup.database import get_db
from settleup.models import User
from settleup.schemas import Token, UserCreate, UserLogin, UserResponse

logger = logging.getLogger("settleup.routers.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_token(user: User) -> Token:
    return Token(access_token=create_access_token(user.id), user=UserResponse.model_validate(user))


@router.post("/register", response_model=Token)
def register(data: UserCreate, db: Session = Depends(get_db)):
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(email=email, hashed_password=get_password_hash(data.password), name=data.name)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return _issue_token(user)


@router.post("/login", response_model=Token)
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email.lower()).first()
    if user is None or not verify_password(data.password, user.hashed_password):
        logger.info("Failed login attempt")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _issue_token(user)
