from __future__ import annotations

import os

import pytest

from arcls.Errors import EntryError
from arcls.Fields import BrokenTarget, FileType, ResolvedTarget, TargetError
from arcls.LocalFile import LocalDir, LocalFile

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs POSIX symlinks and ownership")


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "file.txt").write_bytes(b"12345")
    (tmp_path / "sub").mkdir()
    (tmp_path / "empty").mkdir()
    (tmp_path / "sub" / "inner.txt").write_text("inner")
    (tmp_path / ".hidden").write_text("")
    return tmp_path


def test_regular_file(tree) -> None:
    f = LocalFile(tree / "file.txt")
    assert f.is_file()
    assert f.type_char() is FileType.FILE
    assert f.size().bytes == 5
    assert f.length() == 5
    assert f.name == "file.txt"
    assert f.extension() == "txt"
    assert f.metadata() is f.stat_result
    assert f.to_dir() is None
    assert f.inode().number == f.stat_result.st_ino
    assert f.modified_time() is not None


def test_directory(tree) -> None:
    d = LocalFile(tree / "sub")
    assert d.is_directory()
    assert d.type_char() is FileType.DIRECTORY
    assert not d.size().is_known
    assert not d.is_empty_dir()
    assert LocalFile(tree / "empty").is_empty_dir()
    assert isinstance(d.to_dir(), LocalDir)
    assert [f.name for f in d.to_dir().files()] == ["inner.txt"]


def test_missing_file(tree) -> None:
    with pytest.raises(FileNotFoundError):
        LocalFile(tree / "nope")


def test_local_dir_hides_dotfiles(tree) -> None:
    names = sorted(f.name for f in LocalDir(tree).files())
    assert names == ["empty", "file.txt", "sub"]
    names = sorted(f.name for f in LocalDir(tree).files(show_hidden=True))
    assert names == [".hidden", "empty", "file.txt", "sub"]


def test_local_dir_parent(tree) -> None:
    parent = LocalDir(tree)
    for child in parent.files():
        assert not isinstance(child, EntryError)
        assert child.parent_directory() is parent


def test_local_dir_missing(tree) -> None:
    with pytest.raises(OSError):
        list(LocalDir(tree / "nope").files())


@posix_only
def test_resolved_symlink(tree) -> None:
    os.symlink("file.txt", tree / "link")
    link = LocalFile(tree / "link")
    assert link.is_link()
    assert link.type_char() is FileType.LINK
    assert not link.size().is_known
    target = link.link_target()
    assert isinstance(target, ResolvedTarget)
    assert target.path == tree / "file.txt"
    assert target.file.is_file()


@posix_only
def test_broken_symlink(tree) -> None:
    os.symlink("gone.txt", tree / "dangling")
    link = LocalFile(tree / "dangling")
    assert link.link_target() == BrokenTarget(tree / "gone.txt")
    # dereferencing a broken link keeps describing the link itself
    deref = LocalFile(tree / "dangling", deref_links=True)
    assert deref.is_link()
    assert not deref.deref_links()


@posix_only
def test_deref_links(tree) -> None:
    os.symlink("sub", tree / "sublink")
    link = LocalFile(tree / "sublink")
    assert link.points_to_directory()
    assert not link.is_directory()
    deref = LocalFile(tree / "sublink", deref_links=True)
    assert deref.is_directory()
    assert deref.deref_links()


def test_link_target_of_plain_file(tree) -> None:
    assert isinstance(LocalFile(tree / "file.txt").link_target(), TargetError)


@posix_only
def test_owner(tree) -> None:
    f = LocalFile(tree / "file.txt")
    assert f.user().id == os.getuid()
    assert f.group().id == os.getgid()
    assert f.permissions() is not None
