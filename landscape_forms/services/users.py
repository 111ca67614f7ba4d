import logging
import uuid
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from landscape_forms.models.user import User, UserCreate, UserUpdate
from landscape_forms.services.auth import hash_password

logger = logging.getLogger(__name__)


class DuplicateUsernameError(ValueError):
    def __init__(self, username):
        self.username = username
        super().__init__(f"Username {username} is already registered")


def _username_taken(session: Session, username: str, exclude_id=None):
    statement = select(User.id).where(User.username == username)
    if exclude_id is not None:
        statement = statement.where(col(User.id) != exclude_id)
    return session.exec(statement).first() is not None


def _commit_user(session: Session, user: User):
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race with another registration for the same username
        session.rollback()
        raise DuplicateUsernameError(user.username)
    session.refresh(user)
    return user


def create_user(session: Session, user_in: UserCreate) -> User:
    """Registers an employee account; it stays pending until an admin approves it."""
    if _username_taken(session, user_in.username):
        raise DuplicateUsernameError(user_in.username)

    db_user = User(
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        date_of_birth=user_in.date_of_birth,
        username=user_in.username,
        password_hash=hash_password(user_in.password),
    )
    _commit_user(session, db_user)
    logger.info("Registered user %s (%s)", db_user.username, db_user.id)
    return db_user


def get_user(session: Session, user_id: uuid.UUID) -> User:
    return session.exec(select(User).where(User.id == user_id)).one()


def get_user_by_username(session: Session, username: str) -> User:
    return session.exec(select(User).where(User.username == username)).one()


def list_users(session: Session, sort_by: str = "last_name", order: str = "DESC") -> List[User]:
    allowed_sorts = {
        "first_name": col(User.first_name),
        "last_name": col(User.last_name),
        "created_at": col(User.created_at),
        "date_of_birth": col(User.date_of_birth),
    }
    sort_column = allowed_sorts.get(sort_by, allowed_sorts["last_name"])
    order_clause = sort_column.asc() if (order or "").upper() == "ASC" else sort_column.desc()
    return list(session.exec(select(User).order_by(order_clause, col(User.id))).all())


def update_user(session: Session, user_id: uuid.UUID, user_in: UserUpdate) -> User:
    db_user = get_user(session, user_id)
    user_data = user_in.model_dump(exclude_unset=True)

    password = user_data.pop("password", None)
    if password:
        db_user.password_hash = hash_password(password)

    username = user_data.get("username")
    if username and username != db_user.username and _username_taken(session, username, user_id):
        raise DuplicateUsernameError(username)

    for key, value in user_data.items():
        if value is not None:
            setattr(db_user, key, value)
    db_user.update_timestamp()
    return _commit_user(session, db_user)


def approve_user(session: Session, user_id: uuid.UUID) -> User:
    db_user = get_user(session, user_id)
    db_user.pending = False
    db_user.update_timestamp()
    session.add(db_user)
    session.commit()
    session.refresh(db_user)
    logger.info("Approved user %s", db_user.username)
    return db_user


def delete_user(session: Session, user_id: uuid.UUID) -> uuid.UUID:
    """Deletes a user together with every form they created."""
    db_user = get_user(session, user_id)
    session.delete(db_user)
    session.commit()
    logger.info("Deleted user %s", user_id)
    return user_id
