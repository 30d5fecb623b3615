"""Nox sessions for testing the request governor across Python versions."""

import nox

nox.options.sessions = ["tests", "type_check"]
nox.options.default_venv_backend = "uv"

PYTHONS = ["3.10", "3.11", "3.12", "3.13"]


@nox.session(python=PYTHONS)
def tests(session):
    """Run the unit and in-process integration tests."""
    session.install(".[full,dev]")
    session.run("pytest", "tests/", "-q", "--no-cov", *session.posargs)


@nox.session(python=PYTHONS[-1])
def redis(session):
    """Run the scenarios that need a live Redis (REDIS_URL must be set)."""
    session.install(".[full,dev]")
    session.run("pytest", "tests/integration", "-q", "-m", "integration", *session.posargs)


@nox.session(python=PYTHONS)
def type_check(session):
    """Run mypy on the package."""
    session.install(".[full,dev]")
    session.run("mypy", "src/request_governor", *session.posargs)
