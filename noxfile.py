"""Nox sessions for the raffle bot: tests, lint and formatting."""

import nox

nox.options.sessions = ["tests", "lint"]
python_versions = ["3.11", "3.12"]

COVERAGE_TARGETS = ("--cov=raffle_bot", "--cov=bots")


@nox.session(python=python_versions)
def tests(session):
    """Run the test suite with coverage."""
    session.install("-e", ".[dev]")
    session.run(
        "pytest",
        *COVERAGE_TARGETS,
        "--cov-report=term-missing",
        "--cov-report=xml:coverage.xml",
        "--cov-fail-under=80",
        *session.posargs,
    )


@nox.session(python=python_versions[0])
def lint(session):
    """Run ruff for linting and formatting checks."""
    session.install("ruff>=0.4.0")
    session.run("ruff", "check", "raffle_bot", "bots", "scripts", "tests")
    session.run("ruff", "format", "--check", "raffle_bot", "bots", "scripts", "tests")


@nox.session(python=python_versions[0])
def format_code(session):
    """Format code with ruff."""
    session.install("ruff>=0.4.0")
    session.run("ruff", "format", "raffle_bot", "bots", "scripts", "tests")
    session.run("ruff", "check", "--fix", "raffle_bot", "bots", "scripts", "tests")


@nox.session(python=python_versions[0])
def migrate(session):
    """Dry-run the legacy data migration: nox -s migrate -- --source data.json"""
    if not session.posargs:
        session.error("Pass the migration arguments after --")

    session.install("-e", ".")
    session.run("python", "scripts/migrate_data_file.py", *session.posargs)
