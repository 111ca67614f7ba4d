import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import NoResultFound
from sqlmodel import Session

from landscape_forms.database import get_session
from landscape_forms.models.user import User, UserList, UserPublic, UserUpdate
from landscape_forms.services import users as users_service
from landscape_forms.services.auth import AdminUser, CurrentUser

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


def _check_self_or_admin(current_user: User, user_id: uuid.UUID):
    if current_user.id != user_id and not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Not allowed to access this user")


@router.get("", response_model=UserList)
def read_users(
    session: SessionDep,
    current_user: AdminUser,
    sort_by: str = "last_name",
    order: str = "DESC",
):
    users = users_service.list_users(session, sort_by, order)
    return UserList(users=[UserPublic.model_validate(user) for user in users], count=len(users))


@router.get("/{user_id}", response_model=UserPublic)
def read_user(session: SessionDep, user_id: uuid.UUID, current_user: CurrentUser):
    _check_self_or_admin(current_user, user_id)
    try:
        return users_service.get_user(session, user_id)
    except NoResultFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.put("/{user_id}", response_model=UserPublic)
def update_user(session: SessionDep, user_id: uuid.UUID, user: UserUpdate, current_user: CurrentUser):
    _check_self_or_admin(current_user, user_id)
    try:
        return users_service.update_user(session, user_id, user)
    except NoResultFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except users_service.DuplicateUsernameError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail="Username already registered")


@router.post("/{user_id}/approve", response_model=UserPublic)
def approve_user(session: SessionDep, user_id: uuid.UUID, current_user: AdminUser):
    try:
        return users_service.approve_user(session, user_id)
    except NoResultFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: uuid.UUID, session: SessionDep, current_user: AdminUser):
    try:
        users_service.delete_user(session, user_id)
    except NoResultFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
