"""Nox configuration for sqlalchemy-field-versioning."""

from __future__ import annotations

import nox

PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]

nox.options.sessions = ["tests"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """run the test suite"""

    # PYTHONNOUSERSITE - this *MUST* be set so that the ./lib/ import
    # set up explicitly in test/conftest.py is *disabled*, so that
    # the installed package is what gets tested
    session.env["PYTHONNOUSERSITE"] = "1"

    session.install(".[test]")

    session.run("python", "-m", "pytest", "test", *session.posargs)


@nox.session(name="pep484")
def test_pep484(session: nox.Session) -> None:
    """Run mypy type checking."""

    session.install("-e", ".[mypy]")

    session.run(
        "mypy",
        "noxfile.py",
        "./lib/field_versioning",
    )


@nox.session(name="pep8")
def test_pep8(session: nox.Session) -> None:
    """Run linting and formatting checks."""

    session.install("-e", ".[lint]")

    for cmd in [
        "flake8 ./lib/ ./test/ noxfile.py setup.py",
        "black -l 79 --check ./lib/ ./test/ setup.py",
    ]:

        session.run(*cmd.split())
