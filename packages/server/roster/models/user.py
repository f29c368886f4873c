"""User model (identity records, written by the login flow, read here)."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(unique=True, index=True, nullable=False, max_length=320)
    name: str = Field(default="", nullable=False, max_length=255)
    picture: Optional[str] = Field(default=None)
    google_id: Optional[str] = Field(default=None, unique=True)
