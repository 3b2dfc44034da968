# field_versioning/config.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Construction of :class:`.FieldVersioning` from flat configuration
dictionaries, such as those read from an ``.ini`` file."""

from sqlalchemy import util

from . import exc
from . import log
from .behavior import FieldVersioning

_list_options = ("fields", "filter_fields")

_options = frozenset(
    [
        "fields",
        "version_field",
        "filter_fields",
        "model",
        "property_name",
        "collection_name",
        "interceptors",
        "lock_owner",
        "echo",
        "logging_name",
    ]
)


def _split(value):
    return [elem.strip() for elem in value.split(",") if elem.strip()]


def versioning_from_config(
    configuration, store, prefix="versioning.", **kwargs
):
    """Create a new :class:`.FieldVersioning` using a configuration
    dictionary.

    The dictionary is typically produced from a config file.

    The keys of interest to ``versioning_from_config()`` should be
    prefixed, e.g. ``versioning.fields``, ``versioning.version_field``.
    The ``prefix`` argument indicates the prefix to be searched for.  Each
    matching key (after the prefix is stripped) is treated as though it
    were the corresponding keyword argument to :class:`.FieldVersioning`.

    ``fields`` and ``filter_fields`` are comma separated lists;
    ``lock_owner`` and ``echo`` accept the usual boolean strings, ``echo``
    also ``debug``; an empty ``version_field`` disables it.

    :param configuration: A dictionary (typically produced from a config
     file, but this is not a requirement).  Items whose keys start with
     the value of 'prefix' will have that prefix stripped.
    :param store: the :class:`.VersionStore` to write to.
    :param prefix: Prefix to match and then strip from keys in
     'configuration'.
    :param kwargs: Each keyword argument to ``versioning_from_config()``
     itself overrides the corresponding item taken from the
     'configuration' dictionary.

    """
    options = {
        key[len(prefix):]: configuration[key]
        for key in configuration
        if key.startswith(prefix)
    }
    options.update(kwargs)

    unknown = set(options).difference(_options)
    if unknown:
        raise exc.ConfigurationError(
            "Unknown versioning option(s): %s" % ", ".join(sorted(unknown))
        )

    for key in _list_options:
        if isinstance(options.get(key), str):
            options[key] = _split(options[key])

    if isinstance(options.get("version_field"), str):
        options["version_field"] = options["version_field"].strip() or None

    try:
        if "lock_owner" in options:
            options["lock_owner"] = util.asbool(options["lock_owner"])
        if "echo" in options:
            options["echo"] = log.coerce_echo(options["echo"])
    except ValueError as err:
        raise exc.ConfigurationError(str(err)) from err

    return FieldVersioning(store, **options)
