# field_versioning/store.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""The version store: one append-only table holding field snapshots
for any number of versioned tables.

Each row is a single field's value at a single version of a single
record; rows belonging to different tables are told apart by the
``model`` column, in the manner of a "generic foreign key"::

    store = VersionStore(Base.metadata, "version", registry=Base.registry)

    # id | version_id | model   | foreign_key | field | content | created
    #  1 |          1 | article |           7 | title | str:A   | ...
    #  2 |          1 | article |           7 | body  | str:x   | ...

"""

from __future__ import annotations

import datetime
from typing import Any
from typing import Dict
from typing import Iterable
from typing import Optional
from typing import Sequence
from typing import Union

from sqlalchemy import and_
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import delete
from sqlalchemy import func
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import MetaData
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import Table
from sqlalchemy import UniqueConstraint
from sqlalchemy.engine import Connection
from sqlalchemy.orm import registry as orm_registry
from sqlalchemy.orm import Session

from . import exc
from . import log
from .types import TaggedContent

BASE_COLUMNS = (
    "id",
    "version_id",
    "model",
    "foreign_key",
    "field",
    "content",
    "created",
)


_Executor = Union[Connection, Session]


def now_utc() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


class Snapshot:
    """Base class for mapped snapshot rows.

    A concrete subclass is generated and mapped for each
    :class:`.VersionStore`.  Snapshot rows are immutable once written.

    """

    def __init__(self, **kwargs):
        cls_ = type(self)
        for key, value in kwargs.items():
            if not hasattr(cls_, key):
                raise TypeError(
                    "%r is an invalid keyword argument for %s"
                    % (key, cls_.__name__)
                )
            setattr(self, key, value)

    def __repr__(self):
        return "%s(version_id=%r, model=%r, foreign_key=%r, field=%r)" % (
            self.__class__.__name__,
            self.version_id,
            self.model,
            self.foreign_key,
            self.field,
        )


def _class_name(table_name):
    return (
        "".join(part.capitalize() for part in table_name.split("_"))
        + "Snapshot"
    )


@log.class_logger
class VersionStore:
    """Owns the version table and the mapped snapshot class.

    :param metadata: the :class:`.MetaData` to create the table in.
    :param name: table name, ``"version"`` by default.
    :param registry: an :class:`_orm.registry` to map the snapshot class
     with; typically ``Base.registry`` of the declarative base shared with
     the versioned classes.  A new registry on ``metadata`` is used if
     omitted.
    :param foreign_key_type: type of the ``foreign_key`` column; it must be
     able to hold the primary key of every versioned table.
    :param filter_columns: additional :class:`.Column` objects, e.g. a
     locale or tenant discriminator, copied from the owning record into
     every snapshot.

    """

    def __init__(
        self,
        metadata: MetaData,
        name: str = "version",
        registry: Optional[orm_registry] = None,
        foreign_key_type: Any = Integer,
        filter_columns: Sequence[Column] = (),
    ):
        filter_columns = list(filter_columns)
        for col in filter_columns:
            if not isinstance(col, Column):
                raise exc.ConfigurationError(
                    "filter_columns expects Column objects, got %r" % (col,)
                )
            if col.name in BASE_COLUMNS:
                raise exc.ConfigurationError(
                    "Filter column %r collides with a column of the "
                    "version table" % col.name
                )

        self.name = name
        self.table = Table(
            name,
            metadata,
            Column("id", Integer, primary_key=True),
            Column("version_id", Integer, nullable=False),
            Column("model", String(255), nullable=False),
            Column("foreign_key", foreign_key_type, nullable=False),
            Column("field", String(255), nullable=False),
            Column("content", TaggedContent),
            Column("created", DateTime(timezone=True), nullable=False),
            *filter_columns,
        )
        self.table.append_constraint(
            UniqueConstraint(
                "model",
                "foreign_key",
                "field",
                "version_id",
                name="uq_%s_version" % name,
            )
        )
        Index(
            "ix_%s_model_foreign_key" % name,
            self.table.c.model,
            self.table.c.foreign_key,
            self.table.c.version_id,
        )
        self.filter_fields = [col.name for col in filter_columns]

        if registry is None:
            registry = orm_registry(metadata=metadata)
        self.registry = registry
        self.snapshot_class = type(_class_name(name), (Snapshot,), {})
        registry.map_imperatively(self.snapshot_class, self.table)

    def __repr__(self):
        return "VersionStore(%r)" % self.name

    def next_version_id(
        self, connection: _Executor, model: str, foreign_key: Any
    ) -> int:
        """Return the version number for the next save of a record.

        This is one more than the most recent ``version_id`` stored for
        ``(model, foreign_key)``, or ``1`` for a record with no history.
        The read is not locked; two transactions saving the same record
        concurrently may both be handed the same number, in which case the
        table's unique constraint rejects the second set of rows.

        """
        if foreign_key is None:
            return 1

        t = self.table
        found = connection.execute(
            select(t.c.version_id)
            .where(t.c.model == model, t.c.foreign_key == foreign_key)
            .order_by(t.c.version_id.desc())
            .limit(1)
        ).scalar()
        return 1 if found is None else found + 1

    def _filter_criteria(self, filters):
        return [
            self.table.c[key].is_not_distinct_from(value)
            for key, value in (filters or {}).items()
        ]

    def latest_values(
        self,
        connection: _Executor,
        model: str,
        foreign_key: Any,
        fields: Optional[Iterable[str]] = None,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Return the most recently captured content of each field of one
        record."""

        t = self.table
        criteria = [t.c.model == model, t.c.foreign_key == foreign_key]
        if fields is not None:
            criteria.append(t.c.field.in_(list(fields)))
        criteria.extend(self._filter_criteria(filters))

        latest = (
            select(t.c.field, func.max(t.c.version_id).label("version_id"))
            .where(*criteria)
            .group_by(t.c.field)
            .subquery()
        )
        stmt = (
            select(t.c.field, t.c.content)
            .join(
                latest,
                and_(
                    t.c.field == latest.c.field,
                    t.c.version_id == latest.c.version_id,
                ),
            )
            .where(*criteria)
            .order_by(t.c.id)
        )
        return {field: content for field, content in connection.execute(stmt)}

    def history(
        self,
        connection: _Executor,
        model: str,
        foreign_key: Any,
        fields: Optional[Iterable[str]] = None,
    ):
        """Return the flat snapshot rows of one record, oldest first."""

        t = self.table
        stmt = select(t).where(
            t.c.model == model, t.c.foreign_key == foreign_key
        )
        if fields is not None:
            stmt = stmt.where(t.c.field.in_(list(fields)))
        return connection.execute(
            stmt.order_by(t.c.version_id, t.c.id)
        ).all()

    def purge(
        self, connection: _Executor, model: str, foreign_key: Any
    ) -> int:
        """Delete every snapshot row of one record."""

        t = self.table
        result = connection.execute(
            delete(t).where(t.c.model == model, t.c.foreign_key == foreign_key)
        )
        if self._should_log_debug():
            self.logger.debug(
                "purged %d snapshot rows of %s %r",
                result.rowcount,
                model,
                foreign_key,
            )
        return result.rowcount
