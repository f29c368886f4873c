"""Organization model."""

import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    name: str = Field(nullable=False, max_length=255)
    slug: str = Field(unique=True, nullable=False, index=True, max_length=64)
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
