"""
Knowledge-base abstraction with SQL and in-memory implementations.

Entries live in named partitions. For the SQL adapter each partition is a
table sharing one column layout, and the partition name doubles as the
routing key when adding entries.
"""

from __future__ import annotations

import logging
import re
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from survey_backend.errors import (
    EntryNotFoundError,
    InvalidPartitionError,
    KnowledgeBaseError,
)

logger = logging.getLogger(__name__)

DEFAULT_PARTITION = "knowledge_base"
DEFAULT_SEARCH_LIMIT = 10
PARTITION_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


class KnowledgeMetadata(BaseModel):
    source: str
    table: str
    created_at: datetime
    updated_at: datetime


class KnowledgeEntry(BaseModel):
    id: str
    content: str
    metadata: KnowledgeMetadata


class NewEntryMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Optional[str] = None
    table: str = Field(..., min_length=1)


class NewKnowledgeEntry(BaseModel):
    """Entry to insert; id and timestamps are always assigned by the backend."""

    model_config = ConfigDict(extra="forbid")

    content: str
    metadata: NewEntryMetadata


class KnowledgeEntryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: Optional[str] = None
    source: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class KnowledgeStatus(BaseModel):
    status: Literal["available", "unavailable"]
    message: Optional[str] = None
    entry_count: Optional[int] = None


class KnowledgeBase(Protocol):
    """Interface every knowledge-base adapter implements."""

    default_partition: str

    def get_entries(self, partition: str) -> list[KnowledgeEntry]:
        ...

    def search(
        self, query: str, partition: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[KnowledgeEntry]:
        ...

    def add_entry(self, entry: NewKnowledgeEntry) -> KnowledgeEntry:
        ...

    def update_entry(
        self,
        entry_id: str,
        fields: KnowledgeEntryUpdate,
        partition: Optional[str] = None,
    ) -> KnowledgeEntry:
        ...

    def delete_entry(self, entry_id: str, partition: Optional[str] = None) -> bool:
        ...

    def get_config(self) -> dict:
        ...

    def validate_config(self) -> bool:
        ...

    def get_status(self) -> KnowledgeStatus:
        ...


def validate_partition(name: str) -> str:
    if not name or not PARTITION_NAME_PATTERN.match(name):
        raise InvalidPartitionError(
            f"Invalid partition name: {name!r}", operation="validate", partition=name
        )
    return name


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError("limit must be a positive integer")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; they were written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class InMemoryKnowledgeBase:
    """Simple in-memory knowledge base for development and tests."""

    kind = "memory"

    def __init__(
        self,
        default_partition: str = DEFAULT_PARTITION,
        partitions: Iterable[str] = (),
    ):
        self.default_partition = validate_partition(default_partition)
        self.partitions: Dict[str, Dict[str, KnowledgeEntry]] = {}
        for name in (default_partition, *partitions):
            self.create_partition(name)

    def create_partition(self, name: str) -> None:
        self.partitions.setdefault(validate_partition(name), {})

    def reset(self) -> None:
        """Clear all stored entries (useful in tests)."""
        for rows in self.partitions.values():
            rows.clear()

    def _rows(self, partition: str, operation: str) -> Dict[str, KnowledgeEntry]:
        rows = self.partitions.get(validate_partition(partition))
        if rows is None:
            raise KnowledgeBaseError(
                f'relation "{partition}" does not exist',
                operation=operation,
                partition=partition,
            )
        return rows

    def get_entries(self, partition: str) -> list[KnowledgeEntry]:
        return list(self._rows(partition, "get_entries").values())

    def search(
        self, query: str, partition: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[KnowledgeEntry]:
        _check_limit(limit)
        needle = query.lower()
        matches = [
            entry
            for entry in self._rows(partition, "search").values()
            if needle in entry.content.lower()
        ]
        return matches[:limit]

    def add_entry(self, entry: NewKnowledgeEntry) -> KnowledgeEntry:
        partition = entry.metadata.table
        rows = self._rows(partition, "add_entry")
        now = _utcnow()
        record = KnowledgeEntry(
            id=uuid.uuid4().hex,
            content=entry.content,
            metadata=KnowledgeMetadata(
                source=entry.metadata.source or self.kind,
                table=partition,
                created_at=now,
                updated_at=now,
            ),
        )
        rows[record.id] = record
        return record

    def update_entry(
        self,
        entry_id: str,
        fields: KnowledgeEntryUpdate,
        partition: Optional[str] = None,
    ) -> KnowledgeEntry:
        partition = partition or self.default_partition
        rows = self._rows(partition, "update_entry")
        existing = rows.get(entry_id)
        if existing is None:
            raise EntryNotFoundError(
                f"Entry {entry_id} not found",
                operation="update_entry",
                partition=partition,
            )
        changes = fields.changes()
        metadata = existing.metadata.model_copy(
            update={
                "source": changes.get("source", existing.metadata.source),
                "updated_at": _utcnow(),
            }
        )
        updated = existing.model_copy(
            update={
                "content": changes.get("content", existing.content),
                "metadata": metadata,
            }
        )
        rows[entry_id] = updated
        return updated

    def delete_entry(self, entry_id: str, partition: Optional[str] = None) -> bool:
        rows = self._rows(partition or self.default_partition, "delete_entry")
        rows.pop(entry_id, None)
        return True

    def get_config(self) -> dict:
        return {"type": self.kind, "default_partition": self.default_partition}

    def validate_config(self) -> bool:
        try:
            self._rows(self.default_partition, "validate_config")
        except Exception:
            return False
        return True

    def get_status(self) -> KnowledgeStatus:
        try:
            rows = self._rows(self.default_partition, "get_status")
        except Exception as e:
            return KnowledgeStatus(status="unavailable", message=str(e))
        return KnowledgeStatus(status="available", entry_count=len(rows))


def partition_table(name: str) -> Table:
    """Describe the table backing a partition."""
    return Table(
        validate_partition(name),
        MetaData(),
        Column("id", String(32), primary_key=True),
        Column("content", Text, nullable=False),
        Column("source", String(255), nullable=True),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
    )


def _backend_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class SqlKnowledgeBase:
    """
    SQLAlchemy-backed implementation. Accepts any engine (Postgres in
    production, SQLite for tests); the engine is shared and never reconfigured.
    """

    kind = "sqlalchemy"

    def __init__(self, engine: Engine, default_partition: str = DEFAULT_PARTITION):
        self.engine = engine
        self.default_partition = validate_partition(default_partition)
        logger.info(
            "SqlKnowledgeBase initialized",
            extra={"dialect": engine.dialect.name, "partition": default_partition},
        )

    def create_partition(self, name: str) -> None:
        partition_table(name).create(self.engine, checkfirst=True)

    @contextmanager
    def _query(self, operation: str, partition: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            detail = _backend_message(e)
            logger.error(
                "Knowledge base %s failed",
                operation,
                extra={"partition": partition, "error": detail},
            )
            raise KnowledgeBaseError(
                detail, operation=operation, partition=partition
            ) from e

    def _to_entry(self, row, partition: str) -> KnowledgeEntry:
        return KnowledgeEntry(
            id=row.id,
            content=row.content,
            metadata=KnowledgeMetadata(
                source=row.source or self.kind,
                table=partition,
                created_at=_aware(row.created_at),
                updated_at=_aware(row.updated_at),
            ),
        )

    def get_entries(self, partition: str) -> list[KnowledgeEntry]:
        table = partition_table(partition)
        logger.info("Fetching knowledge entries", extra={"partition": partition})
        with self._query("get_entries", partition), self.engine.connect() as conn:
            rows = conn.execute(select(table).order_by(table.c.created_at)).all()
        if not rows:
            logger.warning("No knowledge entries found", extra={"partition": partition})
            return []
        logger.info(
            "Fetched knowledge entries",
            extra={"partition": partition, "row_count": len(rows)},
        )
        return [self._to_entry(row, partition) for row in rows]

    def search(
        self, query: str, partition: str, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> list[KnowledgeEntry]:
        _check_limit(limit)
        table = partition_table(partition)
        stmt = (
            select(table)
            .where(table.c.content.ilike(f"%{_escape_like(query)}%", escape="\\"))
            .order_by(table.c.created_at)
            .limit(limit)
        )
        logger.info(
            "Searching knowledge entries",
            extra={"partition": partition, "query": query, "limit": limit},
        )
        with self._query("search", partition), self.engine.connect() as conn:
            rows = conn.execute(stmt).all()
        logger.info(
            "Knowledge search finished",
            extra={"partition": partition, "row_count": len(rows)},
        )
        return [self._to_entry(row, partition) for row in rows]

    def add_entry(self, entry: NewKnowledgeEntry) -> KnowledgeEntry:
        partition = entry.metadata.table
        table = partition_table(partition)
        now = _utcnow()
        entry_id = uuid.uuid4().hex
        logger.info("Adding knowledge entry", extra={"partition": partition})
        with self._query("add_entry", partition), self.engine.begin() as conn:
            conn.execute(
                insert(table).values(
                    id=entry_id,
                    content=entry.content,
                    source=entry.metadata.source,
                    created_at=now,
                    updated_at=now,
                )
            )
            row = conn.execute(select(table).where(table.c.id == entry_id)).first()
        if row is None:
            raise KnowledgeBaseError(
                "No data returned after insert",
                operation="add_entry",
                partition=partition,
            )
        logger.info(
            "Added knowledge entry",
            extra={"partition": partition, "entry_id": entry_id},
        )
        return self._to_entry(row, partition)

    def update_entry(
        self,
        entry_id: str,
        fields: KnowledgeEntryUpdate,
        partition: Optional[str] = None,
    ) -> KnowledgeEntry:
        partition = partition or self.default_partition
        table = partition_table(partition)
        values = {**fields.changes(), "updated_at": _utcnow()}
        logger.info(
            "Updating knowledge entry",
            extra={"partition": partition, "entry_id": entry_id},
        )
        with self._query("update_entry", partition), self.engine.begin() as conn:
            result = conn.execute(
                update(table).where(table.c.id == entry_id).values(**values)
            )
            row = None
            if result.rowcount:
                row = conn.execute(select(table).where(table.c.id == entry_id)).first()
        if row is None:
            raise EntryNotFoundError(
                f"Entry {entry_id} not found",
                operation="update_entry",
                partition=partition,
            )
        logger.info(
            "Updated knowledge entry",
            extra={"partition": partition, "entry_id": entry_id},
        )
        return self._to_entry(row, partition)

    def delete_entry(self, entry_id: str, partition: Optional[str] = None) -> bool:
        partition = partition or self.default_partition
        table = partition_table(partition)
        logger.info(
            "Deleting knowledge entry",
            extra={"partition": partition, "entry_id": entry_id},
        )
        with self._query("delete_entry", partition), self.engine.begin() as conn:
            result = conn.execute(delete(table).where(table.c.id == entry_id))
            deleted = result.rowcount
        logger.info(
            "Deleted knowledge entry",
            extra={
                "partition": partition,
                "entry_id": entry_id,
                "row_count": deleted,
            },
        )
        return True

    def get_config(self) -> dict:
        return {
            "type": self.kind,
            "dialect": self.engine.dialect.name,
            "default_partition": self.default_partition,
        }

    def validate_config(self) -> bool:
        table = partition_table(self.default_partition)
        try:
            with self.engine.connect() as conn:
                conn.execute(select(table.c.id).limit(1)).all()
        except Exception as e:
            logger.warning("Knowledge base health check failed", extra={"error": str(e)})
            return False
        return True

    def get_status(self) -> KnowledgeStatus:
        table = partition_table(self.default_partition)
        try:
            with self.engine.connect() as conn:
                count = conn.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()
        except SQLAlchemyError as e:
            return KnowledgeStatus(status="unavailable", message=_backend_message(e))
        except Exception as e:
            return KnowledgeStatus(status="unavailable", message=str(e))
        return KnowledgeStatus(status="available", entry_count=count or 0)
