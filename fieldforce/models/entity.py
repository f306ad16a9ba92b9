"""Entity (tenant) model."""

from sqlalchemy import Column, String, Boolean, DateTime, func
from fieldforce.db.base import Base
from fieldforce.models.role import _uuid


class Entity(Base):
    """Organizational scoping unit that roles and users may belong to."""
    __tablename__ = "entities"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
