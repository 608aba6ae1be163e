"""
SQLAlchemy Base Configuration

Declarative base shared by every assessment table. The naming convention
keeps constraint names stable between ``create_all`` and Alembic migrations.
"""

from typing import Any, Dict
from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class ModelBase(Base):
    """Base class for all SQLAlchemy models."""

    __abstract__ = True

    def update(self, data: Dict[str, Any]) -> None:
        """Assign every key of ``data`` that names a mapped column."""
        columns = self.__table__.columns
        for key, value in data.items():
            if key in columns:
                setattr(self, key, value)
