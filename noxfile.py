import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]

# psycopg2 is compiled per interpreter; a cached wheel may target another one.
_C_EXT_PACKAGES = ["psycopg2"]

_SUITES = "tests/storefront"


def _install(session: nox.Session) -> None:
    """Install the storefront with its test group and the postgres extra."""
    session.run(
        "poetry",
        "install",
        "--with",
        "test",
        "--all-extras",
        external=True,
    )
    session.run(
        "pip",
        "install",
        "--force-reinstall",
        "--no-cache-dir",
        *_C_EXT_PACKAGES,
    )


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run every storefront suite."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Aggregates, value objects and ledger rules, without handlers or HTTP."""
    _install(session)
    session.run("pytest", f"{_SUITES}/domain/")


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_application(session: nox.Session) -> None:
    """Command handlers: checkout, settlement, wallet, referral, OTP and concurrency."""
    _install(session)
    session.run("pytest", f"{_SUITES}/application/")


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_api(session: nox.Session) -> None:
    """HTTP endpoints and BDD scenarios."""
    _install(session)
    session.run("pytest", f"{_SUITES}/integration/", f"{_SUITES}/bdd/")
