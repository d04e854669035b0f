"""Auth routes: local account signup/login issuing bearer tokens."""

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.auth import hash_password, verify_password, create_access_token, get_current_user
from backend.database import get_db
from backend.errors import Unauthorized
from backend.models_db import User

router = APIRouter()


# --- Request/Response Models ---

class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(default="", max_length=255)


class SignInRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, email=user.email, name=user.name)


# --- Auth Endpoints ---

@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
async def signup(body: SignUpRequest, db: Session = Depends(get_db)):
    """Create a new customer account."""
    email = _normalize_email(body.email)
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(body.password),
        name=body.name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    return AuthResponse(user=_user_response(user), token=create_access_token(user.id))


@router.post("/auth/login", response_model=AuthResponse)
async def login(body: SignInRequest, db: Session = Depends(get_db)):
    """Login with email and password."""
    user = db.query(User).filter(User.email == _normalize_email(body.email)).first()
    if not user or not verify_password(body.password, user.password_hash):
        raise Unauthorized("Invalid email or password")

    return AuthResponse(user=_user_response(user), token=create_access_token(user.id))


@router.get("/auth/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return _user_response(current_user)
