from unittest import TestCase

from sqlalchemy import Column
from sqlalchemy import create_engine
from sqlalchemy import insert
from sqlalchemy import inspect
from sqlalchemy import MetaData
from sqlalchemy import String
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import clear_mappers
from sqlalchemy.testing import assert_raises
from sqlalchemy.testing import assert_raises_message
from sqlalchemy.testing import eq_
from sqlalchemy.testing import is_true

from field_versioning import ConfigurationError
from field_versioning import VersionStore
from field_versioning.store import now_utc

engine = None


def setup_module():
    global engine
    engine = create_engine("sqlite://")


class VersionStoreTest(TestCase):
    def setUp(self):
        self.metadata = MetaData()

    def tearDown(self):
        clear_mappers()
        self.metadata.drop_all(engine)

    def _fixture(self, **kw):
        store = VersionStore(self.metadata, **kw)
        self.metadata.create_all(engine)
        return store

    def _rows(self, store, *rows, **extra):
        created = now_utc()
        with engine.begin() as conn:
            conn.execute(
                insert(store.table),
                [
                    dict(
                        version_id=version_id,
                        model=model,
                        foreign_key=foreign_key,
                        field=field,
                        content=content,
                        created=created,
                        **extra
                    )
                    for version_id, model, foreign_key, field, content in rows
                ],
            )

    def test_table(self):
        store = VersionStore(self.metadata)
        t = store.table

        eq_(t.name, "version")
        eq_(
            [c.name for c in t.c],
            [
                "id",
                "version_id",
                "model",
                "foreign_key",
                "field",
                "content",
                "created",
            ],
        )
        eq_([c.name for c in t.primary_key], ["id"])

        uq = [c for c in t.constraints if isinstance(c, UniqueConstraint)]
        eq_(len(uq), 1)
        eq_(
            [c.name for c in uq[0].columns],
            ["model", "foreign_key", "field", "version_id"],
        )
        eq_([idx.name for idx in t.indexes], ["ix_version_model_foreign_key"])

    def test_snapshot_class(self):
        store = VersionStore(self.metadata, "article_history")

        eq_(store.snapshot_class.__name__, "ArticleHistorySnapshot")
        is_true(inspect(store.snapshot_class).local_table is store.table)

        snapshot = store.snapshot_class(version_id=1, field="title")
        eq_(snapshot.field, "title")
        assert_raises(TypeError, store.snapshot_class, nonexistent=5)

    def test_filter_columns(self):
        store = VersionStore(
            self.metadata, filter_columns=[Column("locale", String(5))]
        )
        eq_(store.filter_fields, ["locale"])
        is_true("locale" in store.table.c)

    def test_filter_column_collision(self):
        assert_raises_message(
            ConfigurationError,
            "Filter column 'field' collides",
            VersionStore,
            self.metadata,
            filter_columns=[Column("field", String(5))],
        )

    def test_filter_column_type(self):
        assert_raises_message(
            ConfigurationError,
            "filter_columns expects Column objects",
            VersionStore,
            self.metadata,
            filter_columns=["locale"],
        )

    def test_next_version_id(self):
        store = self._fixture()

        with engine.connect() as conn:
            eq_(store.next_version_id(conn, "article", 1), 1)
            eq_(store.next_version_id(conn, "article", None), 1)

        self._rows(
            store,
            (1, "article", 1, "title", "A"),
            (2, "article", 1, "title", "B"),
            (7, "page", 1, "title", "C"),
        )

        with engine.connect() as conn:
            eq_(store.next_version_id(conn, "article", 1), 3)
            eq_(store.next_version_id(conn, "article", 2), 1)
            eq_(store.next_version_id(conn, "page", 1), 8)

    def test_history(self):
        store = self._fixture()
        self._rows(
            store,
            (2, "article", 1, "title", "B"),
            (1, "article", 1, "title", "A"),
            (1, "article", 1, "body", "x"),
            (1, "article", 2, "title", "other"),
        )

        with engine.connect() as conn:
            eq_(
                [
                    (row.version_id, row.field, row.content)
                    for row in store.history(conn, "article", 1)
                ],
                [(1, "title", "A"), (1, "body", "x"), (2, "title", "B")],
            )
            eq_(
                [
                    row.content
                    for row in store.history(
                        conn, "article", 1, fields=["body"]
                    )
                ],
                ["x"],
            )

    def test_latest_values(self):
        store = self._fixture(filter_columns=[Column("locale", String(5))])
        self._rows(
            store,
            (1, "article", 1, "title", "A"),
            (1, "article", 1, "body", "x"),
            (2, "article", 1, "title", "B"),
            locale="en",
        )
        self._rows(store, (3, "article", 1, "title", "C"), locale=None)

        with engine.connect() as conn:
            eq_(
                store.latest_values(conn, "article", 1),
                {"title": "C", "body": "x"},
            )
            eq_(
                store.latest_values(conn, "article", 1, fields=["title"]),
                {"title": "C"},
            )
            eq_(
                store.latest_values(
                    conn, "article", 1, filters={"locale": "en"}
                ),
                {"title": "B", "body": "x"},
            )
            eq_(
                store.latest_values(
                    conn, "article", 1, filters={"locale": None}
                ),
                {"title": "C"},
            )
            eq_(store.latest_values(conn, "article", 2), {})

    def test_typed_content(self):
        store = self._fixture()
        self._rows(
            store,
            (1, "article", 1, "count", 5),
            (1, "article", 1, "flag", False),
            (1, "article", 1, "tags", ["a", "b"]),
            (1, "article", 1, "body", None),
        )

        with engine.connect() as conn:
            eq_(
                store.latest_values(conn, "article", 1),
                {"count": 5, "flag": False, "tags": ["a", "b"], "body": None},
            )
            eq_(
                conn.exec_driver_sql(
                    "SELECT content FROM version ORDER BY id"
                ).scalars().all(),
                ["int:5", "bool:0", 'json:["a", "b"]', None],
            )

    def test_purge(self):
        store = self._fixture()
        self._rows(
            store,
            (1, "article", 1, "title", "A"),
            (2, "article", 1, "title", "B"),
            (1, "article", 2, "title", "C"),
            (1, "page", 1, "title", "D"),
        )

        with engine.begin() as conn:
            eq_(store.purge(conn, "article", 1), 2)

        with engine.connect() as conn:
            eq_(store.history(conn, "article", 1), [])
            eq_(len(store.history(conn, "article", 2)), 1)
            eq_(len(store.history(conn, "page", 1)), 1)
