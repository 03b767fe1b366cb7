"""The CLI version string and the ``version`` command."""

from __future__ import annotations

import argparse
import platform
import sys
from collections.abc import Sequence

__all__ = [
    "VERSION_CORE",
    "VERSION_PRE_RELEASE",
    "GIT_COMMIT",
    "GIT_COMMIT_COUNT",
    "truncate",
    "version",
    "display_version",
    "main",
]

# core portion of the version per Semantic Versioning 2.0.0
VERSION_CORE = "0.19.0"

# base pre-release portion of the version per Semantic Versioning 2.0.0
VERSION_PRE_RELEASE = "alpha"

# number of commits since the last release, set at build time
GIT_COMMIT_COUNT = ""

# commit the package was built from, set at build time
GIT_COMMIT = ""

_SHORT_HASH_LENGTH = 14


def truncate(s: str, max_len: int) -> str:
    """Return s cut to at most max_len characters."""
    if len(s) < max_len:
        return s
    return s[:max_len]


def version(git_commit: str | None = None, git_commit_count: str | None = None) -> str:
    """Return the semantic version.

    The commit and commit count default to the values recorded at build time.
    """
    if git_commit is None:
        git_commit = GIT_COMMIT
    if git_commit_count is None:
        git_commit_count = GIT_COMMIT_COUNT
    result = VERSION_CORE
    if VERSION_PRE_RELEASE:
        result += "-" + VERSION_PRE_RELEASE
        if git_commit_count:
            result += "." + git_commit_count
        # build metadata is only added to pre-release versions
        if git_commit:
            result += "+" + truncate(git_commit, _SHORT_HASH_LENGTH)
    return result


def display_version() -> str:
    """Return the version as the version command prints it."""
    return (
        f"kind v{version()} python{platform.python_version()} "
        f"{sys.platform}/{platform.machine()}"
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Print the version; only the semantic version when quiet."""
    parser = argparse.ArgumentParser(
        prog="kind version", description="Prints the kind CLI version"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="only print the semantic version"
    )
    args = parser.parse_args(argv)
    print(version() if args.quiet else display_version())
    return 0