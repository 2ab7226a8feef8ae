# type: ignore
from invoke import task


@task
def venv(ctx):
    """Create the virtual environment with the test and dev extras."""
    ctx.run("uv venv")
    ctx.run("uv pip install -e '.[test,dev]'")


@task
def clean(ctx):
    """
    Remove untracked files (build output, caches, coverage data).
    Shows what would be removed and asks before deleting anything.
    """

    ctx.run("git clean -nfdx")

    response = (
        input("Are you sure you want to remove all untracked files? (y/n) [n]: ")
        .strip()
        .lower()
    )
    if response == "y":
        ctx.run("git clean -fdx")


@task
def lint(ctx):
    """
    Static analysis of the package and the tests.
    """
    ctx.run("ruff check src tests", pty=True)
    ctx.run("ruff format --check src tests", pty=True)
    ctx.run("mypy src", pty=True)


@task
def test(ctx):
    """
    Run tests with coverage information.
    """
    ctx.run("pytest --cov=shelly_gen2 --cov-report=term-missing", pty=True)


@task
def mock(ctx, profile="switch", port=8080):
    """Serve a mock Shelly device for trying the CLI without hardware."""
    ctx.run(f"shelly-gen2 mock --profile {profile} --port {port}", pty=True)


@task
def build_package(ctx):
    """
    Build sdist and wheel into dist/.
    """

    ctx.run("rm -rf dist")
    ctx.run("uv build")
