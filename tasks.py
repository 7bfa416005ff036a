"""Invoke tasks for working on tagsync.

All commands run through `uv` so local checks use the same environment as CI.
"""

from __future__ import annotations

import shlex

from invoke import Collection, Context, task


def _uv(ctx: Context, *args: str) -> None:
    """Run ``uv <args>`` with echo and a PTY."""
    ctx.run(shlex.join(("uv", *args)), echo=True, pty=True)


@task(help={"dev": "Include the dev extra (default: true)."})
def sync(ctx: Context, dev: bool = True) -> None:
    """Install tagsync and its dependencies into the project environment."""
    _uv(ctx, "sync", *(("--extra", "dev") if dev else ()))


@task(
    help={
        "k": "Only run tests matching this pytest -k expression.",
        "path": "Test file or directory (default: tests).",
        "options": "Extra pytest arguments, passed through unchanged.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite."""
    args = ["run", "pytest", *shlex.split(options)]
    if k:
        args += ["-k", k]
    _uv(ctx, *args, path)


@task(help={"fix": "Let ruff rewrite fixable problems."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and lint rules with ruff."""
    _uv(ctx, "run", "ruff", "format", "--check", "src", "tests")
    _uv(ctx, "run", "ruff", "check", "src", "tests", *(("--fix",) if fix else ()))


@task
def mypy(ctx: Context) -> None:
    """Type-check the package sources."""
    _uv(ctx, "run", "mypy", "src")


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks, and tests in CI order."""
    lint(ctx)
    mypy(ctx)
    tests(ctx)


namespace = Collection(sync, tests, lint, mypy, ci)
