import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional, Union

import jwt
from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.exc import NoResultFound
from sqlmodel import Session, select

from landscape_forms.config import (
    ACCESS_TOKEN_EXPIRE_HOURS,
    AUTH_COOKIE_NAME,
    JWT_ALGORITHM,
    JWT_ISSUER,
    JWT_SECRET,
)
from landscape_forms.database import get_session
from landscape_forms.models.user import User, UserPublic

logger = logging.getLogger(__name__)

# auto_error is off so the auth_token cookie can be tried first
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: uuid.UUID
    role: str


class LoginRequest(BaseModel):
    username: str
    password: str


class AuthUserResponse(BaseModel):
    token: str
    user: UserPublic


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password):
    return pwd_context.hash(password)


def create_access_token(user_id: uuid.UUID, role: str, expires_delta: Union[timedelta, None] = None):
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "user_id": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + expires_delta,
        "iss": JWT_ISSUER,
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    """Verifies signature, expiry and issuer; raises jwt.InvalidTokenError otherwise."""
    payload = jwt.decode(
        token,
        JWT_SECRET,
        algorithms=[JWT_ALGORITHM],
        issuer=JWT_ISSUER,
        options={"require": ["exp", "iat", "user_id"]},
    )
    try:
        return TokenData(user_id=payload["user_id"], role=payload.get("role", ""))
    except ValueError as e:
        raise jwt.InvalidTokenError("malformed token claims") from e


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Returns the user when the username exists and the password matches."""
    try:
        statement = select(User).where(User.username == username)
        user = db.exec(statement).one()
    except NoResultFound:
        logger.info("Login attempt for unknown username %s", username)
        return None
    if not verify_password(password, user.password_hash):
        logger.info("Login attempt with wrong password for %s", username)
        return None
    return user


def get_current_user(
    bearer_token: Annotated[Optional[str], Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_session)],
    cookie_token: Annotated[Optional[str], Cookie(alias=AUTH_COOKIE_NAME)] = None,
) -> User:
    """Resolves the caller from the auth_token cookie or an Authorization: Bearer header."""
    token = cookie_token or bearer_token
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        token_data = decode_access_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Reload so role and pending reflect the database, not the token
    user = db.get(User, token_data.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_approved(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if current_user.pending:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Account pending admin approval")
    return current_user


def require_admin(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Admin access required")
    return current_user


CurrentUser = Annotated[User, Depends(get_current_user)]
ApprovedUser = Annotated[User, Depends(require_approved)]
AdminUser = Annotated[User, Depends(require_admin)]
