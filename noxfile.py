import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    """Install the project with the test and production extras into the nox virtualenv."""
    session.run(
        "poetry",
        "install",
        "--all-extras",
        external=True,
    )


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run full test suite across Python versions."""
    _install(session)
    session.run("pytest")


@nox.session(python=PYTHON_VERSIONS)
def tests_domain(session: nox.Session) -> None:
    """Run domain-layer tests only (no infrastructure required)."""
    _install(session)
    session.run("pytest", "tests/commerce/domain/")


@nox.session(python=PYTHON_VERSIONS)
def tests_bdd(session: nox.Session) -> None:
    """Run the behaviour scenarios."""
    _install(session)
    session.run("pytest", "tests/commerce/bdd/")
