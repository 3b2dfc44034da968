# field_versioning/behavior.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Field-level versioning of mapped classes.

:class:`.FieldVersioning` attaches to a mapped class and snapshots the
tracked columns of each instance into a :class:`.VersionStore` every time
the instance is flushed::

    store = VersionStore(Base.metadata, registry=Base.registry)

    @FieldVersioning(store, fields=["title", "body"]).attach
    class Article(Base):
        __tablename__ = "article"

        id = Column(Integer, primary_key=True)
        title = Column(String(50))
        body = Column(Text)
        version_id = Column(Integer)

    articles = versioning_for(Article).find_versions(session)
    articles[0]._versions[1]  # {"title": ..., "body": ...}

Snapshot rows are written by mapper-level flush events on the flush's own
connection, so they commit or roll back together with the owning row.

"""

from collections.abc import Mapping

from sqlalchemy import and_
from sqlalchemy import Column
from sqlalchemy import event
from sqlalchemy import exc as sa_exc
from sqlalchemy import insert
from sqlalchemy import inspect
from sqlalchemy import select
from sqlalchemy import util
from sqlalchemy.orm import foreign
from sqlalchemy.orm import Mapper
from sqlalchemy.orm import object_session
from sqlalchemy.orm import relationship
from sqlalchemy.orm import remote
from sqlalchemy.orm import selectinload

from . import exc
from . import log
from .reconstruct import group_snapshots
from .store import now_utc
from .store import VersionStore

PENDING_KEY = "field_versioning.pending"
"""Key in :attr:`.InstanceState.info` holding the version being saved
between the before and after flush events of one instance."""


def versioning_for(cls):
    """Return the :class:`.FieldVersioning` attached to ``cls``."""

    versioning = getattr(cls, "__field_versioning__", None)
    if versioning is None:
        raise exc.UnversionedClassError(
            "Class %s has no field versioning attached" % cls.__name__
        )
    return versioning


def _key_list(value):
    if value is None:
        return []
    return util.to_list(value)


def _string_list(name, value):
    if value is None:
        return None
    value = util.to_list(value)
    for elem in value:
        if not isinstance(elem, str):
            raise exc.ConfigurationError(
                "%s expects field names, got %r" % (name, elem)
            )
    return list(value)


class FieldVersioning(log.Identified):
    """Field versioning behavior for one mapped class.

    :param store: the :class:`.VersionStore` snapshots are written to.
    :param fields: names of the column attributes to track.  All column
     attributes are tracked if omitted; otherwise the mapped columns are
     intersected with this list.
    :param version_field: column attribute on the mapped class which
     receives the number of the version being saved, if the class has it
     among its tracked fields.  Pass ``None`` to disable.
    :param filter_fields: attributes copied from the record into columns
     of the same name on every snapshot, and used to scope reads of a
     single record's history.  The store must have been created with
     matching ``filter_columns``.
    :param model: value of the ``model`` column, defaults to the name of
     the mapped table.
    :param property_name: instance attribute receiving the reconstructed
     versions after :meth:`.find_versions`.
    :param collection_name: name of the view-only relationship to the
     snapshot rows that is added to the mapped class.
    :param interceptors: callables receiving each snapshot row, as a dict,
     before it is written; see :meth:`.add_interceptor`.
    :param lock_owner: if True, select the owning row ``FOR UPDATE``
     before assigning a version number to an UPDATE.
    :param echo: ``True`` or ``"debug"`` to log this instance's activity,
     as with :func:`_sa.create_engine.echo`.

    """

    def __init__(
        self,
        store,
        fields=None,
        version_field="version_id",
        filter_fields=(),
        model=None,
        property_name="_versions",
        collection_name="version_snapshots",
        interceptors=(),
        lock_owner=False,
        echo=None,
        logging_name=None,
    ):
        if not isinstance(store, VersionStore):
            raise exc.ConfigurationError(
                "store must be a VersionStore, got %r" % (store,)
            )
        if version_field is not None and not isinstance(version_field, str):
            raise exc.ConfigurationError(
                "version_field expects a field name, got %r" % (version_field,)
            )

        self.store = store
        self._fields = _string_list("fields", fields)
        self.version_field = version_field
        self.filter_fields = _string_list("filter_fields", filter_fields) or []
        self.property_name = property_name
        self.collection_name = collection_name
        self.lock_owner = lock_owner
        self._model = model

        for key in self.filter_fields:
            if key not in store.table.c:
                raise exc.ConfigurationError(
                    "Filter field %r has no column in version table %r"
                    % (key, store.table.name)
                )

        self.interceptors = []
        for fn in interceptors:
            self.add_interceptor(fn)

        self.class_ = None
        self.mapper = None
        self.model = model
        self.primary_key = None
        self.fields = None

        if logging_name:
            self.logging_name = logging_name
        log.instance_logger(self, echoflag=echo)

    echo = log.echo_property()

    def __repr__(self):
        if self.class_ is None:
            return "FieldVersioning(%r)" % self.store
        return "FieldVersioning(%r, %s)" % (self.store, self.class_.__name__)

    def add_interceptor(self, fn):
        """Register a callable run over each snapshot row before it is
        written.

        ``fn`` receives the row as a dict of version table columns.  If it
        returns a mapping, the mapping is merged into the row; it may also
        modify the dict in place.  Returns ``fn``, so it can be used as a
        decorator.

        """
        if not callable(fn):
            raise exc.ConfigurationError(
                "Interceptor %r is not callable" % (fn,)
            )
        self.interceptors.append(fn)
        return fn

    def attach(self, cls):
        """Version the mapped class ``cls``.

        Returns ``cls``, so it can be used as a class decorator.

        """
        mapper = inspect(cls, raiseerr=False)
        if not isinstance(mapper, Mapper):
            raise exc.ConfigurationError("Class %r is not mapped" % (cls,))
        if self.class_ is not None:
            raise exc.ConfigurationError(
                "%r is already attached to %s" % (self, self.class_.__name__)
            )
        if getattr(cls, "__field_versioning__", None) is not None:
            raise exc.ConfigurationError(
                "Class %s is already versioned" % cls.__name__
            )

        if len(mapper.primary_key) != 1:
            raise exc.CompositePrimaryKeyError(
                "Class %s has a composite primary key (%s); field "
                "versioning supports single column primary keys only"
                % (
                    cls.__name__,
                    ", ".join(col.name for col in mapper.primary_key),
                )
            )
        pk_col = mapper.primary_key[0]

        columns = [
            prop.key
            for prop in mapper.column_attrs
            if isinstance(prop.columns[0], Column)
            and any(prop.columns[0].table is t for t in mapper.tables)
        ]
        if self._fields is not None:
            fields = [key for key in columns if key in self._fields]
        else:
            fields = columns

        for key in self.filter_fields:
            if key not in columns:
                raise exc.ConfigurationError(
                    "Filter field %r is not a column of %s"
                    % (key, cls.__name__)
                )
        for key in (self.collection_name, self.property_name):
            if hasattr(cls, key):
                raise exc.ConfigurationError(
                    "Class %s already has an attribute %r"
                    % (cls.__name__, key)
                )

        self.class_ = cls
        self.mapper = mapper
        self.primary_key = mapper.get_property_by_column(pk_col).key
        self.model = self._model or mapper.local_table.name
        self.fields = fields

        t = self.store.table
        mapper.add_property(
            self.collection_name,
            relationship(
                self.store.snapshot_class,
                primaryjoin=and_(
                    pk_col == foreign(remote(t.c.foreign_key)),
                    t.c.model == self.model,
                ),
                order_by=[t.c.version_id, t.c.id],
                viewonly=True,
            ),
        )

        event.listen(cls, "before_insert", self._before_insert, propagate=True)
        event.listen(cls, "before_update", self._before_update, propagate=True)
        event.listen(cls, "after_insert", self._after_save, propagate=True)
        event.listen(cls, "after_update", self._after_save, propagate=True)
        event.listen(cls, "after_delete", self._after_delete, propagate=True)
        event.listen(cls, "expire", self._on_expire, propagate=True)

        cls.__field_versioning__ = self

        if self._should_log_info():
            self.logger.info(
                "versioning %s as %r, fields %s",
                cls.__name__,
                self.model,
                ", ".join(fields),
            )
        return cls

    def _assert_attached(self):
        if self.class_ is None:
            raise exc.UnversionedClassError(
                "%r is not attached to a mapped class" % self
            )

    def _foreign_key(self, state):
        value = state.dict.get(self.primary_key)
        if value is None and state.key is not None:
            value = state.key[1][0]
        return value

    def _snapshot_fields(self):
        return [
            key
            for key in self.fields
            if key != self.primary_key and key != self.version_field
        ]

    # ---- save ---------------------------------------------------------

    def _before_insert(self, mapper, connection, target):
        self._assign_version(mapper, connection, target)

    def _before_update(self, mapper, connection, target):
        # left behind by a flush that failed after this hook ran
        inspect(target).info.pop(PENDING_KEY, None)

        session = object_session(target)
        if not session.is_modified(target, include_collections=False):
            return
        self._assign_version(mapper, connection, target)

    def _on_expire(self, target, attrs):
        if attrs is None:
            inspect(target).info.pop(PENDING_KEY, None)

    def _replaces_deleted(self, mapper, state, foreign_key):
        """Return True if ``state`` is a new instance taking the primary
        key of an instance deleted in the same flush.

        The unit of work persists such a pair as a single UPDATE of the
        existing row, so no delete event is emitted for the old instance.

        """
        session = state.session
        if state.key is not None or session is None:
            return False
        existing = session.identity_map.get(
            mapper.identity_key_from_primary_key([foreign_key])
        )
        return (
            existing is not None
            and existing is not state.obj()
            and existing in session.deleted
        )

    def _assign_version(self, mapper, connection, target):
        state = inspect(target)
        foreign_key = self._foreign_key(state)

        if foreign_key is not None and self._replaces_deleted(
            mapper, state, foreign_key
        ):
            self.store.purge(connection, self.model, foreign_key)

        if self.lock_owner and foreign_key is not None:
            pk_col = self.mapper.primary_key[0]
            connection.execute(
                select(pk_col).where(pk_col == foreign_key).with_for_update()
            )

        version_id = self.store.next_version_id(
            connection, self.model, foreign_key
        )
        if (
            self.version_field is not None
            and self.version_field in self.fields
        ):
            setattr(target, self.version_field, version_id)

        state.info[PENDING_KEY] = {
            "version_id": version_id,
            "created": now_utc(),
        }
        if self._should_log_info():
            self.logger.info(
                "assigned version %d to %s %r",
                version_id,
                self.model,
                foreign_key,
            )

    def _extract(self, connection, state, keys, foreign_key):
        values = {}
        missing = []
        for key in keys:
            if key in state.dict:
                values[key] = state.dict[key]
            else:
                missing.append(key)

        # expired or deferred columns, and server generated values,
        # are read back from the row just written
        if missing:
            cols = [
                self.mapper.column_attrs[key].columns[0] for key in missing
            ]
            pk_col = self.mapper.primary_key[0]
            row = connection.execute(
                select(*cols)
                .select_from(self.mapper.persist_selectable)
                .where(pk_col == foreign_key)
            ).first()
            if row is None:
                row = [None] * len(missing)
            values.update(zip(missing, row))
        return values

    def _after_save(self, mapper, connection, target):
        state = inspect(target)
        pending = state.info.pop(PENDING_KEY, None)
        if pending is None:
            return

        version_id = pending["version_id"]
        foreign_key = self._foreign_key(state)
        fields = self._snapshot_fields()
        values = self._extract(
            connection,
            state,
            list(util.unique_list(fields + self.filter_fields)),
            foreign_key,
        )
        filters = {key: values[key] for key in self.filter_fields}

        rows = []
        for field in fields:
            row = {
                "version_id": version_id,
                "model": self.model,
                "foreign_key": foreign_key,
                "field": field,
                "content": values[field],
                "created": pending["created"],
            }
            row.update(filters)
            for fn in self.interceptors:
                result = fn(row)
                if isinstance(result, Mapping):
                    row.update(result)
            rows.append(row)

        if not rows:
            return

        try:
            connection.execute(insert(self.store.table), rows)
        except sa_exc.IntegrityError as err:
            raise exc.VersionConflictError(
                "Could not write version %d of %s %r: %s"
                % (version_id, self.model, foreign_key, err.orig),
                orig=err,
                model=self.model,
                foreign_key=foreign_key,
                version_id=version_id,
            ) from err

        if self._should_log_debug():
            self.logger.debug(
                "wrote %d snapshot rows for version %d of %s %r",
                len(rows),
                version_id,
                self.model,
                foreign_key,
            )

    def _after_delete(self, mapper, connection, target):
        foreign_key = self._foreign_key(inspect(target))
        self.store.purge(connection, self.model, foreign_key)

    # ---- read ---------------------------------------------------------

    def _extract_filter(self, entity):
        return {key: getattr(entity, key) for key in self.filter_fields}

    def snapshot_criteria(
        self, entity=None, primary_key=None, version_id=None
    ):
        """Return the criteria limiting which snapshot rows are loaded.

        ``entity`` takes priority over ``primary_key``; when given, the
        filter fields of ``entity`` are applied as well, compared with
        IS NOT DISTINCT FROM so that NULL values match.

        """
        self._assert_attached()
        snapshot = self.store.snapshot_class
        criteria = [snapshot.field.in_(self.fields)]

        if entity is not None:
            foreign_key = self._foreign_key(inspect(entity))
            criteria.append(snapshot.foreign_key.in_([foreign_key]))
            for key, value in self._extract_filter(entity).items():
                criteria.append(
                    getattr(snapshot, key).is_not_distinct_from(value)
                )
        elif _key_list(primary_key):
            criteria.append(
                snapshot.foreign_key.in_(_key_list(primary_key))
            )

        if _key_list(version_id):
            criteria.append(snapshot.version_id.in_(_key_list(version_id)))
        return criteria

    def versions_option(self, entity=None, primary_key=None, version_id=None):
        """Return a loader option eagerly loading snapshot rows.

        Add it to any ``select()`` of the versioned class, then pass the
        results to :meth:`.group_versions`.

        """
        collection = getattr(self.class_, self.collection_name)
        return selectinload(
            collection.and_(
                *self.snapshot_criteria(
                    entity=entity,
                    primary_key=primary_key,
                    version_id=version_id,
                )
            )
        )

    def find_versions(
        self,
        session,
        statement=None,
        entity=None,
        primary_key=None,
        version_id=None,
    ):
        """Load records together with their version history.

        Each returned instance carries a dict of ``version_id`` to
        :class:`.ReconstructedVersion` under :attr:`.property_name`.

        :param statement: a ``select()`` of the versioned class.  Defaults
         to selecting the records given by ``entity`` or ``primary_key``,
         or all records if neither is given.
        :param entity: load the history of this record only.
        :param primary_key: a primary key value, or list of them, whose
         history is loaded.  An empty list loads every record.
        :param version_id: a version number, or list of them, to restrict
         the history to.  An empty list applies no restriction.

        The statement is run with ``populate_existing``, so pending changes
        on instances already present in ``session`` are overwritten.

        """
        self._assert_attached()
        if statement is None:
            statement = select(self.class_)
            pk_attr = getattr(self.class_, self.primary_key)
            if entity is not None:
                statement = statement.where(
                    pk_attr == self._foreign_key(inspect(entity))
                )
            elif _key_list(primary_key):
                statement = statement.where(
                    pk_attr.in_(_key_list(primary_key))
                )

        statement = statement.options(
            self.versions_option(
                entity=entity, primary_key=primary_key, version_id=version_id
            )
        ).execution_options(populate_existing=True)

        results = session.scalars(statement).all()
        return self.group_versions(results)

    def group_versions(self, results):
        """Reassemble the loaded snapshot rows of each record into
        versions.

        The flat snapshot collection is expired afterwards; the records
        themselves are left unmodified.

        """
        for row in results:
            versions = group_snapshots(getattr(row, self.collection_name))
            row.__dict__[self.property_name] = versions

            state = inspect(row)
            if state.session is not None:
                state.session.expire(row, [self.collection_name])

            if self._should_log_debug():
                self.logger.debug(
                    "grouped %d versions of %s %r",
                    len(versions),
                    self.model,
                    self._foreign_key(state),
                )
        return results

    def latest_versions(self, session, entity):
        """Return the most recently captured value of each tracked field of
        ``entity``."""

        self._assert_attached()
        return self.store.latest_values(
            session,
            self.model,
            self._foreign_key(inspect(entity)),
            self._snapshot_fields(),
            filters=self._extract_filter(entity),
        )
