#!/usr/bin/env python
"""
pytest plugin script.

Puts the local ./lib/ on the path so that plain ``pytest`` runs against
the working copy, and enables assertion rewriting for the assertion
helpers used from ``sqlalchemy.testing``.

"""
import os
import sys

import pytest

# this requires that sqlalchemy.testing was not already
# imported in order to work
pytest.register_assert_rewrite("sqlalchemy.testing.assertions")


if not sys.flags.no_user_site:
    # this is needed so that plain "pytest" works without the package
    # being installed; we check no_user_site to honor the use of this flag.
    sys.path.insert(
        0,
        os.path.abspath(
            os.path.join(
                os.path.dirname(os.path.abspath(__file__)), "..", "lib"
            )
        ),
    )
