# field_versioning/exc.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Exceptions used with field_versioning.

The base exception class is :exc:`.VersioningError`, itself a
:exc:`sqlalchemy.exc.SQLAlchemyError`, so that application code which
already traps SQLAlchemy errors continues to do so.

"""

from sqlalchemy import exc as sa_exc


class VersioningError(sa_exc.SQLAlchemyError):
    """Generic error class."""


class ConfigurationError(VersioningError, sa_exc.ArgumentError):
    """Versioning was configured with invalid or inconsistent options.

    Raised when a :class:`.VersionStore` or :class:`.FieldVersioning` is
    constructed, or when :meth:`.FieldVersioning.attach` is called, never
    at save or read time.

    """


class CompositePrimaryKeyError(ConfigurationError):
    """The mapped class has a composite primary key.

    Snapshot rows refer to their owning record through a single
    ``foreign_key`` column, so only single-column primary keys are
    supported.

    """


class UnversionedClassError(VersioningError, sa_exc.InvalidRequestError):
    """A versioning operation was requested for a class that has no
    :class:`.FieldVersioning` attached."""


class ContentEncodingError(VersioningError):
    """A value could not be encoded into, or decoded from, the
    ``content`` column."""


class VersionConflictError(VersioningError):
    """Snapshot rows could not be written because they collide with rows
    already present in the version store.

    This is most commonly two concurrent saves of the same record that
    were assigned the same ``version_id``.  The transaction has to be
    rolled back; the save may then be retried, see
    :func:`.retry_on_conflict`.

    """

    def __init__(self, message, orig=None, model=None, foreign_key=None,
                 version_id=None):
        super().__init__(message)
        self.orig = orig
        self.model = model
        self.foreign_key = foreign_key
        self.version_id = version_id
