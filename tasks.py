"""Invoke tasks for testing, linting, and formatting.

Run tasks with: invoke TASK_NAME

Test Examples:
    invoke test              # Run all tests
    invoke test.unit         # Run unit tests only
    invoke test.coverage     # Coverage reports for the container_registry package
    invoke test.smoke        # Exercise a live registry (needs network access)

Linting Examples:
    invoke lint.flake8       # Check code style with flake8
    invoke lint.black        # Format code with black
    invoke lint.black-check  # Check if code needs formatting
"""

from invoke import Collection, task

PACKAGE = "container_registry"
SOURCES = f"{PACKAGE} tests tasks.py"


@task(help={"verbose": "Show verbose output"})
def test(ctx, verbose=False):
    """Run all tests."""
    cmd = "uv run pytest"
    if verbose:
        cmd += " -v"
    ctx.run(cmd)


@task
def unit(ctx):
    """Run unit tests only."""
    ctx.run("uv run pytest tests/unit")


@task
def integration(ctx):
    """Run tests marked as integration (live registry)."""
    ctx.run("uv run pytest -m integration")


@task(help={"file": "Specific test file to run", "name": "Test name or pattern"})
def specific(ctx, file=None, name=None):
    """Run specific test file, class, or function.

    Examples:
        invoke test.specific --file tests/unit/test_parser.py
        invoke test.specific --file tests/unit/test_parser.py --name TestRegistryHost
    """
    if not file and not name:
        print("Error: Please specify --file and/or --name")
        return

    cmd = "uv run pytest"
    if file:
        cmd += f" {file}"
    if name:
        cmd += f"::{name}" if file else f" -k {name}"

    ctx.run(cmd)


@task(help={"image": "Image to resolve against the live registry"})
def smoke(ctx, image=""):
    """Run the registry smoke runner against a live registry."""
    ctx.run(f"uv run python -m tests.runners.util_registry {image}".strip())


@task
def coverage(ctx):
    """Generate all coverage reports (HTML, terminal, and XML)."""
    ctx.run(
        f"uv run pytest --cov={PACKAGE} --cov-report=html "
        "--cov-report=term-missing --cov-report=xml"
    )
    print("\n✓ Coverage reports generated:")
    print("  - htmlcov/index.html (HTML)")
    print("  - Terminal output above")
    print("  - coverage.xml (XML for CI)")


@task
def ci(ctx):
    """Run all tests as if in CI (with XML coverage)."""
    ctx.run(f"uv run pytest --cov={PACKAGE} --cov-report=xml")


@task(help={"pattern": "Test name or pattern to filter"})
def debug_logs(ctx, pattern=None):
    """Run tests with debug-level logging.

    Example:
        invoke test.debug-logs --pattern test_discovered_token_uri
    """
    cmd = "uv run pytest --log-cli-level=DEBUG"
    if pattern:
        cmd += f" -k {pattern}"
    ctx.run(cmd)


# Linting tasks
@task(help={"src": f"Path to check (default: {PACKAGE})"})
def flake8(ctx, src=PACKAGE):
    """Run flake8 style checker.

    Example:
        invoke lint.flake8
        invoke lint.flake8 --src container_registry/registry
    """
    ctx.run(f"uv run flake8 --max-line-length 100 {src}")


@task(help={"check": "Check only, don't modify files"})
def black(ctx, check=False):
    """Format code with black."""
    cmd = f"uv run black {SOURCES}"
    if check:
        cmd += " --check"
    ctx.run(cmd)


@task
def black_check(ctx):
    """Check if code needs black formatting."""
    ctx.run(f"uv run black {SOURCES} --check")


# Namespace for tests
test_ns = Collection("test")
test_ns.add_task(test, default=True)
test_ns.add_task(unit)
test_ns.add_task(integration)
test_ns.add_task(specific)
test_ns.add_task(smoke)
test_ns.add_task(coverage)
test_ns.add_task(ci)
test_ns.add_task(debug_logs)

# Namespace for linting
lint_ns = Collection("lint")
lint_ns.add_task(flake8)
lint_ns.add_task(black)
lint_ns.add_task(black_check)

# Register namespaces at module level for invoke to discover
ns = Collection(test_ns, lint_ns)
