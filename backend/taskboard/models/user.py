from datetime import datetime
from enum import Enum

from sqlmodel import SQLModel, Field


class UserRole(str, Enum):
    MANAGER = "manager"
    USER = "user"


class User(SQLModel, table=True):
    """
    Local mirror of a Firebase account.

    Rows are created on the first authenticated request and the role is
    refreshed from the token's ``role`` custom claim on every request.
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    firebase_uid: str = Field(unique=True, index=True, max_length=128)
    email: str | None = Field(default=None, index=True, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    role: str = Field(default=UserRole.USER.value, max_length=20)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_manager(self) -> bool:
        return self.role == UserRole.MANAGER.value
