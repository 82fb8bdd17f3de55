"""SQLAlchemy mapping metadata for the phantom accounting tables."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers

from phantomledger.domain.model import LIKE, AuditRecord

log = logging.getLogger(__name__)

class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)

def value_enum[TEnum: StrEnum](enum_cls: type[TEnum]) -> Enum:
    """Non-native enum column persisting member values rather than names."""

    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
    )

mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Accounting tables ------------------------------------------------------------

phantom_reaction_table = Table(
    "phantom_reaction",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("category_id", Integer, nullable=False),
    Column("reaction_type", String, nullable=False, default=LIKE),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    UniqueConstraint("post_id", "user_id", "reaction_type"),
    Index("ix_phantom_reaction_user_id", "user_id"),
    Index("ix_phantom_reaction_category_id", "category_id"),
)

user_stat_table = Table(
    "user_stat",
    mapper_registry.metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=False),
    Column("likes_given", Integer, nullable=False, default=0, server_default="0"),
    Column("likes_received", Integer, nullable=False, default=0, server_default="0"),
    CheckConstraint("likes_given >= 0", name="likes_given_non_negative"),
    CheckConstraint("likes_received >= 0", name="likes_received_non_negative"),
)

AUDIT_KEY_COLUMNS = ("post_id", "user_id", "reaction_type")

@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        AuditRecord,
        phantom_reaction_table,
        properties={
            "target_id": phantom_reaction_table.c.post_id,
            "subject_id": phantom_reaction_table.c.user_id,
        },
        exclude_properties={"updated_at"},
    )

    configure_mappers()
    return mapper_registry
