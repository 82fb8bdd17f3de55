"""Reference schema of the host forum tables the accounting core reads and prunes.

These tables belong to the host application (topics, posts, likes, notifications,
activity history and plugin settings). They live in their own metadata so that the
project's migrations never manage them; :func:`create_host_tables` exists for local
runs and tests against an empty database.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

from phantomledger.adapters.sqlalchemy.mappings import UTCDateTime, value_enum
from phantomledger.domain.model import HistoryKind, NotificationKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

host_metadata = MetaData()

topic_table = Table(
    "topic",
    host_metadata,
    Column("id", Integer, primary_key=True),
    Column("category_id", Integer, nullable=True),
    Column("deleted_at", UTCDateTime, nullable=True),
)

post_table = Table(
    "post",
    host_metadata,
    Column("id", Integer, primary_key=True),
    Column("topic_id", Integer, ForeignKey("topic.id"), nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("post_number", Integer, nullable=False, default=1),
    Column("deleted_at", UTCDateTime, nullable=True),
)

post_action_table = Table(
    "post_action",
    host_metadata,
    Column("id", Integer, primary_key=True),
    Column("post_id", Integer, ForeignKey("post.id"), nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("action_type", String, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Column("deleted_at", UTCDateTime, nullable=True),
    Index("ix_post_action_post_id", "post_id"),
)

notification_table = Table(
    "notification",
    host_metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, nullable=False),
    Column("notification_type", value_enum(NotificationKind), nullable=False),
    Column("post_id", Integer, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Index("ix_notification_user_id", "user_id"),
)

user_action_table = Table(
    "user_action",
    host_metadata,
    Column("id", Integer, primary_key=True),
    Column("action_type", value_enum(HistoryKind), nullable=False),
    Column("user_id", Integer, nullable=False),
    Column("acting_user_id", Integer, nullable=False),
    Column("target_post_id", Integer, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    UniqueConstraint("action_type", "user_id", "acting_user_id", "target_post_id"),
)

plugin_setting_table = Table(
    "plugin_setting",
    host_metadata,
    Column("name", String, primary_key=True),
    Column("value", Text, nullable=True),
)

HISTORY_KEY_COLUMNS = ("action_type", "user_id", "acting_user_id", "target_post_id")


def create_host_tables(engine: Engine) -> None:
    """Create missing host tables (existing ones are left alone)."""

    log.info("Creating host reference tables")
    host_metadata.create_all(engine, checkfirst=True)
