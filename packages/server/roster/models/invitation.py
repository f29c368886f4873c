"""Organization invitation model."""

from datetime import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Invitation(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organization_invitations"
    __table_args__ = (
        # At most one pending invitation per (org, email).
        sa.Index(
            "uq_organization_invitations_pending_email",
            "organization_id",
            "email",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        ),
    )

    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    email: str = Field(nullable=False, index=True, max_length=320)
    role: str = Field(nullable=False, max_length=16)  # admin | member
    token: str = Field(nullable=False, unique=True, index=True, max_length=64)
    invited_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    status: str = Field(default="pending", nullable=False, max_length=16)
    expires_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
