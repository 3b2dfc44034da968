# field_versioning/log.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Logging control and utilities.

Control of logging for field_versioning can be performed from the regular
python logging module.  The regular dotted module namespace is used,
starting at 'field_versioning'.  For class-level logging, the class name is
appended.

The "echo" keyword parameter which is available on
:class:`.FieldVersioning` objects corresponds to a logger specific to that
instance only.

E.g.::

    versioning.echo = True

is equivalent to::

    import logging
    logger = logging.getLogger(
        'field_versioning.behavior.FieldVersioning.%s'
        % versioning.logging_name
    )
    logger.setLevel(logging.INFO)

"""

import logging
import sys

from sqlalchemy import util

rootlogger = logging.getLogger("field_versioning")
if rootlogger.level == logging.NOTSET:
    rootlogger.setLevel(logging.WARN)


def _add_default_handler(logger):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    logger.addHandler(handler)


def class_logger(cls):
    logger = logging.getLogger(cls.__module__ + "." + cls.__name__)
    cls._should_log_debug = lambda self: logger.isEnabledFor(logging.DEBUG)
    cls._should_log_info = lambda self: logger.isEnabledFor(logging.INFO)
    cls.logger = logger
    return cls


class Identified:
    logging_name = None

    def _should_log_debug(self):
        return self.logger.isEnabledFor(logging.DEBUG)

    def _should_log_info(self):
        return self.logger.isEnabledFor(logging.INFO)


class InstanceLogger:
    """A logger adapter (wrapper) for :class:`.Identified` subclasses.

    This allows multiple instances (e.g. one :class:`.FieldVersioning` per
    mapped class) to share a logger, but have its verbosity controlled on a
    per-instance basis.

    """

    _echo_map = {
        None: logging.NOTSET,
        False: logging.NOTSET,
        True: logging.INFO,
        "debug": logging.DEBUG,
    }

    def __init__(self, echo, name):
        self.echo = echo
        self.logger = logging.getLogger(name)

        # if echo flag is enabled and no handlers,
        # add a handler to the list
        if self._echo_map[echo] <= logging.INFO and not self.logger.handlers:
            _add_default_handler(self.logger)

    def debug(self, msg, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def log(self, level, msg, *args, **kwargs):
        if self.logger.manager.disable >= level:
            return

        selected_level = self._echo_map[self.echo]
        if selected_level == logging.NOTSET:
            selected_level = self.logger.getEffectiveLevel()

        if level >= selected_level:
            self.logger._log(level, msg, args, **kwargs)

    def isEnabledFor(self, level):
        if self.logger.manager.disable >= level:
            return False
        return level >= self.getEffectiveLevel()

    def getEffectiveLevel(self):
        level = self._echo_map[self.echo]
        if level == logging.NOTSET:
            level = self.logger.getEffectiveLevel()
        return level


def instance_logger(instance, echoflag=None):
    """create a logger for an instance that implements :class:`.Identified`."""

    if instance.logging_name:
        name = "%s.%s.%s" % (
            instance.__class__.__module__,
            instance.__class__.__name__,
            instance.logging_name,
        )
    else:
        name = "%s.%s" % (
            instance.__class__.__module__,
            instance.__class__.__name__,
        )

    instance._echo = echoflag

    if echoflag in (False, None):
        # if no echo setting or False, return a Logger directly,
        # avoiding overhead of filtering
        logger = logging.getLogger(name)
    else:
        logger = InstanceLogger(echoflag, name)

    instance.logger = logger


class echo_property:
    __doc__ = """\
    When ``True``, enable log output for this element.

    This has the effect of setting the Python logging level for the namespace
    of this element's class and object reference.  A value of boolean ``True``
    indicates that the loglevel ``logging.INFO`` will be set for the logger,
    whereas the string value ``debug`` will set the loglevel to
    ``logging.DEBUG``.
    """

    def __get__(self, instance, owner):
        if instance is None:
            return self
        else:
            return instance._echo

    def __set__(self, instance, value):
        instance_logger(instance, echoflag=value)


def coerce_echo(value):
    """Coerce a configuration string into an echo flag."""

    if isinstance(value, str) and value.strip().lower() == "debug":
        return "debug"
    return util.asbool(value)
