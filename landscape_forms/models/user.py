import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from .base import BaseModel

if TYPE_CHECKING:
    from .form import Form

ROLE_EMPLOYEE = "employee"
ROLE_ADMIN = "admin"
DEFAULT_DATE_OF_BIRTH = date(2000, 1, 1)


class User(BaseModel, table=True):
    __tablename__ = "users"

    pending: bool = Field(default=True)
    role: str = Field(default=ROLE_EMPLOYEE)  # 'employee' or 'admin'
    first_name: str
    last_name: str
    date_of_birth: date = Field(default=DEFAULT_DATE_OF_BIRTH)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str

    forms: List["Form"] = Relationship(
        back_populates="owner",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN


class UserCreate(SQLModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: date = DEFAULT_DATE_OF_BIRTH
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserUpdate(SQLModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    date_of_birth: Optional[date] = None
    username: Optional[str] = Field(default=None, min_length=1)
    # Empty or missing leaves the stored hash alone
    password: Optional[str] = None


class UserPublic(SQLModel):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    pending: bool
    role: str
    first_name: str
    last_name: str
    date_of_birth: date
    username: str


class UserList(SQLModel):
    users: List[UserPublic]
    count: int
