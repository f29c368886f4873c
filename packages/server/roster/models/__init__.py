# SQLModel definitions, imported here so the metadata is complete for Alembic and create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .member import OrganizationMember  # noqa: F401
from .invitation import Invitation  # noqa: F401
