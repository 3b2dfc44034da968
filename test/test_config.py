from unittest import TestCase

from sqlalchemy import Column
from sqlalchemy import Integer
from sqlalchemy import MetaData
from sqlalchemy import String
from sqlalchemy import Table
from sqlalchemy.orm import clear_mappers
from sqlalchemy.orm import registry
from sqlalchemy.testing import assert_raises_message
from sqlalchemy.testing import eq_
from sqlalchemy.testing import is_

from field_versioning import ConfigurationError
from field_versioning import versioning_from_config
from field_versioning import VersionStore


class VersioningFromConfigTest(TestCase):
    def setUp(self):
        self.store = VersionStore(
            MetaData(), filter_columns=[Column("locale", String(5))]
        )

    def tearDown(self):
        clear_mappers()

    def test_options(self):
        versioning = versioning_from_config(
            {
                "versioning.fields": "title, body,",
                "versioning.version_field": "revision",
                "versioning.filter_fields": "locale",
                "versioning.lock_owner": "true",
                "versioning.property_name": "history",
                "sqlalchemy.url": "sqlite://",
            },
            self.store,
        )

        eq_(versioning._fields, ["title", "body"])
        eq_(versioning.version_field, "revision")
        eq_(versioning.filter_fields, ["locale"])
        is_(versioning.lock_owner, True)
        eq_(versioning.property_name, "history")
        is_(versioning.store, self.store)

    def test_defaults(self):
        versioning = versioning_from_config({}, self.store)

        is_(versioning._fields, None)
        eq_(versioning.version_field, "version_id")
        eq_(versioning.filter_fields, [])
        is_(versioning.lock_owner, False)
        is_(versioning.echo, None)

    def test_empty_version_field(self):
        versioning = versioning_from_config(
            {"versioning.version_field": ""}, self.store
        )
        is_(versioning.version_field, None)

    def test_echo(self):
        versioning = versioning_from_config(
            {"versioning.echo": "debug", "versioning.logging_name": "cfg"},
            self.store,
        )
        eq_(versioning.echo, "debug")

        versioning = versioning_from_config(
            {"versioning.echo": "false"}, self.store
        )
        is_(versioning.echo, False)

    def test_prefix_and_kwargs(self):
        versioning = versioning_from_config(
            {"history.fields": "title", "history.lock_owner": "no"},
            self.store,
            prefix="history.",
            lock_owner=True,
        )
        eq_(versioning._fields, ["title"])
        is_(versioning.lock_owner, True)

    def test_unknown_option(self):
        assert_raises_message(
            ConfigurationError,
            "Unknown versioning option.* colour",
            versioning_from_config,
            {"versioning.colour": "red"},
            self.store,
        )

    def test_bad_boolean(self):
        assert_raises_message(
            ConfigurationError,
            "String is not true/false",
            versioning_from_config,
            {"versioning.lock_owner": "maybe"},
            self.store,
        )

    def test_attach(self):
        class Article:
            pass

        reg = registry(metadata=self.store.table.metadata)
        article = Table(
            "article",
            reg.metadata,
            Column("id", Integer, primary_key=True),
            Column("title", String(50)),
            Column("locale", String(5)),
        )
        reg.map_imperatively(Article, article)

        versioning = versioning_from_config(
            {
                "versioning.fields": "title",
                "versioning.filter_fields": "locale",
            },
            self.store,
        )
        versioning.attach(Article)
        eq_(versioning.fields, ["title"])
        eq_(versioning.model, "article")
