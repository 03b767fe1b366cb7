import pytest

from kindkit.version import display_version, main, truncate, version


@pytest.mark.parametrize(
    ("value", "max_length", "expected"),
    [
        ("A Really Long String", 1, "A"),
        ("A Short String", 10, "A Short St"),
        ("Under Max Length String", 1000, "Under Max Length String"),
    ],
)
def test_truncate(value, max_length, expected):
    result = truncate(value, max_length)
    assert len(result) <= max_length
    assert result == expected


@pytest.mark.parametrize(
    ("git_commit", "git_commit_count", "expected"),
    [
        ("mocked-hash", "mocked-count", "0.19.0-alpha.mocked-count+mocked-hash"),
        ("mocked-hash", "", "0.19.0-alpha+mocked-hash"),
        ("", "mocked-count", "0.19.0-alpha.mocked-count"),
        ("", "", "0.19.0-alpha"),
    ],
)
def test_version(git_commit, git_commit_count, expected):
    assert version(git_commit, git_commit_count) == expected


def test_version_truncates_long_commit_hash():
    result = version("0123456789abcdef0123", "")
    assert result == "0.19.0-alpha+0123456789abcd"


def test_display_version_starts_with_version():
    assert display_version().startswith("kind v" + version() + " python")


def test_main_quiet_prints_semver(capsys):
    assert main(["-q"]) == 0
    assert capsys.readouterr().out == version() + "\n"


def test_main_prints_display_version(capsys):
    assert main([]) == 0
    assert capsys.readouterr().out == display_version() + "\n"