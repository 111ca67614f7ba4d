import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session

from landscape_forms.config import ACCESS_TOKEN_EXPIRE_HOURS, AUTH_COOKIE_NAME, COOKIE_SECURE
from landscape_forms.database import get_session
from landscape_forms.models.user import User, UserCreate, UserPublic
from landscape_forms.services import users as users_service
from landscape_forms.services.auth import (
    AuthUserResponse,
    CurrentUser,
    LoginRequest,
    Token,
    authenticate_user,
    create_access_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


def set_auth_cookie(response: Response, token: str):
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=ACCESS_TOKEN_EXPIRE_HOURS * 60 * 60,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def _login(session: Session, username: str, password: str) -> User:
    user = authenticate_user(session, username, password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.pending:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Account pending admin approval")
    return user


@router.post("/register", response_model=AuthUserResponse, status_code=status.HTTP_201_CREATED)
def register_user(user_in: UserCreate, response: Response, session: SessionDep):
    try:
        db_user = users_service.create_user(session, user_in)
    except users_service.DuplicateUsernameError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail="Username already registered")

    token = create_access_token(db_user.id, db_user.role)
    set_auth_cookie(response, token)
    return AuthUserResponse(token=token, user=UserPublic.model_validate(db_user))


@router.post("/login", response_model=AuthUserResponse)
def login(login_request: LoginRequest, response: Response, session: SessionDep):
    user = _login(session, login_request.username, login_request.password)
    token = create_access_token(user.id, user.role)
    set_auth_cookie(response, token)
    logger.info("User %s logged in", user.username)
    return AuthUserResponse(token=token, user=UserPublic.model_validate(user))


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key=AUTH_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.post("/token")
def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: SessionDep,
) -> Token:
    user = _login(session, form_data.username, form_data.password)
    access_token = create_access_token(user.id, user.role)
    return Token(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=UserPublic)
def read_users_me(current_user: CurrentUser):
    return current_user
