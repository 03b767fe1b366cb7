import os
import stat

import pytest

from kindkit import fs


def test_temp_dir_creates_directory(tmp_path):
    name = fs.temp_dir(str(tmp_path), "images-tar")
    assert os.path.isdir(name)
    assert os.path.basename(name).startswith("images-tar")
    assert os.listdir(name) == []


def test_temp_dir_default_location():
    name = fs.temp_dir("", "")
    try:
        assert os.path.isdir(name)
        assert fs.is_abs(name)
    finally:
        os.rmdir(name)


@pytest.mark.parametrize(
    ("path", "expected"),
    [("/usr/local", True), ("relative/path", False), ("", False)],
)
def test_is_abs(path, expected):
    assert fs.is_abs(path) is expected


def test_copy_file_keeps_content_and_mode(tmp_path):
    src = tmp_path / "src.txt"
    src.write_bytes(b"hello world\n")
    os.chmod(src, 0o640)
    dst = tmp_path / "dst.txt"
    fs.copy_file(str(src), str(dst))
    assert dst.read_bytes() == b"hello world\n"
    assert stat.S_IMODE(os.stat(dst).st_mode) == stat.S_IMODE(os.stat(src).st_mode)


def test_copy_file_truncates_existing(tmp_path):
    src = tmp_path / "src.txt"
    src.write_bytes(b"short")
    dst = tmp_path / "dst.txt"
    dst.write_bytes(b"a much longer existing content")
    fs.copy_file(str(src), str(dst))
    assert dst.read_bytes() == b"short"


def test_copy_file_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.copy_file(str(tmp_path / "missing"), str(tmp_path / "out"))


def test_copy_file_does_not_create_parents(tmp_path):
    src = tmp_path / "src.txt"
    src.write_bytes(b"data")
    with pytest.raises(FileNotFoundError):
        fs.copy_file(str(src), str(tmp_path / "no" / "such" / "dst.txt"))


def test_copy_creates_parent_directories(tmp_path):
    src = tmp_path / "src.txt"
    src.write_bytes(b"data")
    dst = tmp_path / "a" / "b" / "dst.txt"
    fs.copy(str(src), str(dst))
    assert dst.read_bytes() == b"data"


def test_copy_directory_recursively(tmp_path):
    src = tmp_path / "src"
    (src / "nested" / "deeper").mkdir(parents=True)
    (src / "top.txt").write_bytes(b"top")
    (src / "nested" / "mid.txt").write_bytes(b"mid")
    (src / "nested" / "deeper" / "leaf.txt").write_bytes(b"leaf")
    dst = tmp_path / "out" / "dst"
    fs.copy(str(src), str(dst))

    def tree(root):
        return sorted(
            os.path.relpath(os.path.join(base, name), root)
            for base, dirs, files in os.walk(root)
            for name in dirs + files
        )

    assert tree(dst) == tree(src)
    assert (dst / "nested" / "deeper" / "leaf.txt").read_bytes() == b"leaf"


def test_copy_dereferences_symlinks(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    target = tmp_path / "target.txt"
    target.write_bytes(b"linked content")
    os.symlink(target, src / "link.txt")
    dst = tmp_path / "dst"
    fs.copy(str(src), str(dst))
    copied = dst / "link.txt"
    assert not os.path.islink(copied)
    assert copied.read_bytes() == b"linked content"


def test_copy_top_level_symlink(tmp_path):
    target = tmp_path / "target.txt"
    target.write_bytes(b"payload")
    link = tmp_path / "link"
    os.symlink(target, link)
    dst = tmp_path / "copied.txt"
    fs.copy(str(link), str(dst))
    assert not os.path.islink(dst)
    assert dst.read_bytes() == b"payload"


def test_copy_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.copy(str(tmp_path / "missing"), str(tmp_path / "dst"))


def test_copy_broken_symlink_raises(tmp_path):
    link = tmp_path / "broken"
    os.symlink(tmp_path / "nowhere", link)
    with pytest.raises(OSError):
        fs.copy(str(link), str(tmp_path / "dst"))