# field_versioning/transaction.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

"""Retrying saves that lost a version number race."""

import logging

from . import exc

log = logging.getLogger(__name__)


def retry_on_conflict(session, work, attempts=3):
    """Run ``work(session)`` and commit, retrying on
    :exc:`.VersionConflictError`.

    The session is rolled back before each retry, which expires all
    instances; ``work`` has to re-apply its changes from scratch, e.g.::

        def rename(session):
            article = session.get(Article, 5)
            article.title = "new title"

        retry_on_conflict(session, rename)

    Returns the return value of ``work``.  The last conflict is raised
    once ``attempts`` are used up.

    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            result = work(session)
            session.commit()
        except exc.VersionConflictError as err:
            session.rollback()
            if attempt == attempts:
                raise
            log.warning(
                "version %s of %s %r conflicted; retrying (%d of %d)",
                err.version_id,
                err.model,
                err.foreign_key,
                attempt + 1,
                attempts,
            )
        else:
            return result
