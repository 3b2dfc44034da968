# field_versioning/types.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Encoding of captured values into the ``content`` column.

Snapshot rows of every field of every versioned table share one
``content`` column, so values are stored as text carrying an explicit
type tag, ``"<tag>:<payload>"``::

    >>> encode_content(5)
    'int:5'
    >>> decode_content("date:2020-01-15")
    datetime.date(2020, 1, 15)

``None`` is stored as SQL NULL.

"""

import base64
import datetime
import decimal
import json
import uuid

from sqlalchemy.types import Text
from sqlalchemy.types import TypeDecorator

from . import exc


def _encode_bytes(value):
    return base64.b64encode(bytes(value)).decode("ascii")


def _encode_json(value):
    return json.dumps(value, sort_keys=True)


# order matters; bool is an int, datetime is a date
_encoders = [
    (bool, "bool", lambda value: "1" if value else "0"),
    (int, "int", str),
    (float, "float", repr),
    (decimal.Decimal, "decimal", str),
    (str, "str", lambda value: value),
    ((bytes, bytearray, memoryview), "bytes", _encode_bytes),
    (datetime.datetime, "datetime", lambda value: value.isoformat()),
    (datetime.date, "date", lambda value: value.isoformat()),
    (datetime.time, "time", lambda value: value.isoformat()),
    (uuid.UUID, "uuid", str),
    ((dict, list, tuple), "json", _encode_json),
]

_decoders = {
    "bool": lambda payload: payload == "1",
    "int": int,
    "float": float,
    "decimal": decimal.Decimal,
    "str": lambda payload: payload,
    "bytes": lambda payload: base64.b64decode(payload.encode("ascii")),
    "datetime": datetime.datetime.fromisoformat,
    "date": datetime.date.fromisoformat,
    "time": datetime.time.fromisoformat,
    "uuid": uuid.UUID,
    "json": json.loads,
}


def encode_content(value):
    """Encode a captured value as tagged text.

    Raises :exc:`.ContentEncodingError` for a type with no encoding.

    """
    if value is None:
        return None
    for types_, tag, encoder in _encoders:
        if isinstance(value, types_):
            try:
                payload = encoder(value)
            except (TypeError, ValueError) as err:
                raise exc.ContentEncodingError(
                    "Could not encode %r as %r content: %s" % (value, tag, err)
                ) from err
            return "%s:%s" % (tag, payload)
    raise exc.ContentEncodingError(
        "No content encoding for values of type %s"
        % type(value).__name__
    )


def decode_content(text):
    """Decode tagged text produced by :func:`.encode_content`."""

    if text is None:
        return None
    tag, sep, payload = text.partition(":")
    if not sep:
        raise exc.ContentEncodingError(
            "Content %r carries no type tag" % (text,)
        )
    try:
        decoder = _decoders[tag]
    except KeyError as err:
        raise exc.ContentEncodingError(
            "Unknown content type tag %r" % (tag,)
        ) from err
    try:
        return decoder(payload)
    except (TypeError, ValueError) as err:
        raise exc.ContentEncodingError(
            "Could not decode %r content %r: %s" % (tag, payload, err)
        ) from err


class TaggedContent(TypeDecorator):
    """Stores arbitrary scalar values as type-tagged text.

    See :func:`.encode_content` for the supported types.

    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return encode_content(value)

    def process_result_value(self, value, dialect):
        return decode_content(value)
