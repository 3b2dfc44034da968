# field_versioning/reconstruct.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Reassembly of point-in-time records from flat snapshot rows."""

from collections.abc import Mapping


class ReconstructedVersion(Mapping):
    """All field values captured by one save of a record.

    Behaves as a read-only mapping of field name to captured value; the
    values are also available as attributes::

        version = article._versions[2]
        version["title"] == version.title

    It is not a mapped instance and can't be added to a
    :class:`.Session`.

    """

    __slots__ = ("version_id", "created", "_values")

    def __init__(self, version_id, values, created=None):
        self.version_id = version_id
        self.created = created
        self._values = dict(values)

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __getattr__(self, key):
        if key.startswith("_"):
            raise AttributeError(key)
        try:
            return self._values[key]
        except KeyError:
            raise AttributeError(
                "%s has no field %r" % (type(self).__name__, key)
            ) from None

    def __repr__(self):
        return "ReconstructedVersion(%r, %r)" % (self.version_id, self._values)


def group_snapshots(snapshots):
    """Group snapshot rows into one :class:`.ReconstructedVersion` per
    ``version_id``.

    Rows may arrive in any order; within a version, fields keep the order
    in which their rows were given.  The returned dict is keyed by
    ``version_id`` in ascending order.

    """
    grouped = {}
    created = {}
    for snapshot in snapshots:
        values = grouped.setdefault(snapshot.version_id, {})
        values[snapshot.field] = snapshot.content
        created.setdefault(snapshot.version_id, snapshot.created)

    return {
        version_id: ReconstructedVersion(
            version_id, grouped[version_id], created[version_id]
        )
        for version_id in sorted(grouped)
    }
