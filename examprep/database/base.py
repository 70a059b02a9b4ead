"""
SQLAlchemy Base Configuration

Declarative base shared by all ORM models. Constraint names follow a fixed
convention so migrations produce the same names on SQLite and PostgreSQL.
"""

from typing import Any, List, Mapping

from sqlalchemy import MetaData, inspect
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

    def update(self, values: Mapping[str, Any]) -> List[str]:
        """
        Assign mapped columns from ``values``; other keys are ignored.

        Returns:
            Names of the columns whose value changed
        """
        changed = []
        for key, value in values.items():
            if key in self.__table__.columns and getattr(self, key) != value:
                setattr(self, key, value)
                changed.append(key)
        return changed

    def __repr__(self) -> str:
        identity = inspect(self).identity
        key = identity[0] if identity and len(identity) == 1 else identity
        return f"<{type(self).__name__} {key}>"
