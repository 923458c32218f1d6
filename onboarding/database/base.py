"""
SQLAlchemy Base Configuration

Declarative base shared by every onboarding ORM model. The naming convention
gives constraints stable names so migrations and integrity-error handling can
refer to them.
"""

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
    """Abstract base of the onboarding tables."""

    __abstract__ = True
