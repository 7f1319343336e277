from __future__ import annotations

import tarfile
from pathlib import PurePosixPath

import pytest

from arcls.ArchiveEngine import (Archive, ArchiveFormat, ArchiveInspection, ArchiveIterator, archive_extension)
from arcls.ArchiveEntry import ArchiveEntry
from arcls.Errors import EntryError, UnsupportedFormatError

from tests.conftest import make_header


def _names(items) -> list[str]:
    return [item.name if isinstance(item, ArchiveEntry) else f"!{item}" for item in items]


@pytest.mark.parametrize("location,expected", [
    ("backup.tar", "tar"),
    ("backup.TAR", "tar"),
    ("backup.tar.gz", "tar.gz"),
    ("backup.tar.XZ", "tar.xz"),
    ("backup.tgz", "tgz"),
    ("dir.d/backup", ""),
    (".tar", ""),
    ("release.1.2.zip", "zip"),
    ("x.tar.tar", "tar"),
    ("https://example.com/files/backup.tar.bz2?token=abc#frag", "tar.bz2"),
    ("https://example.com/", ""),
])
def test_archive_extension(location: str, expected: str) -> None:
    assert archive_extension(location) == expected


def test_format_dispatch() -> None:
    for extension in ("tar", "tar.gz", "tgz", "tar.bz2", "tbz", "tbz2", "tar.xz", "txz"):
        assert ArchiveFormat.from_extension(extension) is ArchiveFormat.TAR
    assert ArchiveFormat.from_extension("zip") is None
    assert ArchiveFormat.from_extension("TAR") is None
    assert ArchiveFormat.from_extension("") is None


def test_is_archive() -> None:
    assert Archive.is_archive("a/b/c.tar")
    assert Archive.is_archive("https://example.com/c.tgz")
    assert not Archive.is_archive("c.zip")
    assert not Archive.is_archive("tar")


def test_inspection_deduce() -> None:
    assert ArchiveInspection.deduce(True) is ArchiveInspection.ALWAYS
    assert ArchiveInspection.deduce(False) is ArchiveInspection.NEVER


# ------------------------- opening -------------------------


def test_from_path_reads_contents(sample_tar) -> None:
    archive = Archive.from_path(sample_tar)
    assert archive.format is ArchiveFormat.TAR
    assert archive.path == str(sample_tar)
    assert len(archive.contents) == 6
    assert list(archive.errors()) == []


def test_unsupported_extension_is_checked_before_opening(tmp_path) -> None:
    """An unknown extension fails without touching the filesystem."""
    with pytest.raises(UnsupportedFormatError):
        Archive.from_path(tmp_path / "does-not-exist.zip")


def test_missing_archive(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        Archive.from_path(tmp_path / "does-not-exist.tar")


def test_garbage_archive(tmp_path) -> None:
    path = tmp_path / "garbage.tar"
    path.write_bytes(b"\x01\x02\x03" * 400)
    with pytest.raises(tarfile.ReadError):
        Archive.from_path(path)


def test_reopen_is_deterministic(sample_tar) -> None:
    first = Archive.from_path(sample_tar)
    second = Archive.from_path(sample_tar)
    assert [str(e.path) for e in first.entries()] == [str(e.path) for e in second.entries()]


# ------------------------- directory views -------------------------


def test_files_at_root(sample_tar) -> None:
    archive = Archive.from_path(sample_tar)
    assert _names(archive.files("")) == ["a", "top.txt", "link"]
    assert _names(archive.files()) == ["a", "top.txt", "link"]
    assert _names(archive.files(".")) == ["a", "top.txt", "link"]


def test_files_in_subdirectories(sample_tar) -> None:
    archive = Archive.from_path(sample_tar)
    assert _names(archive.files("a")) == ["b.txt", "c"]
    assert _names(archive.files(PurePosixPath("a/c"))) == ["d.txt"]
    assert _names(archive.files("a/c/d.txt")) == []
    assert _names(archive.files("missing")) == []


def test_files_shares_entries(sample_tar) -> None:
    archive = Archive.from_path(sample_tar)
    (b, _c) = archive.files("a")
    assert any(b is item for item in archive.contents)


def test_directory_self_entry_is_excluded(write_tar) -> None:
    """A "./" record never lists itself as a child of the root."""
    path = write_tar([(".", "dir"), ("./x.txt", "file", b"x"), ("./sub", "dir")], name="dot.tar")
    archive = Archive.from_path(path)
    assert _names(archive.files("")) == ["x.txt", "sub"]


def test_iterators_are_independent(sample_tar) -> None:
    archive = Archive.from_path(sample_tar)
    first = archive.files("")
    assert next(first).name == "a"
    assert _names(archive.files("")) == ["a", "top.txt", "link"]
    assert _names(first) == ["top.txt", "link"]
    assert list(first) == []


def test_errors_surface_at_every_level(write_raw_tar) -> None:
    path = write_raw_tar([
        make_header(b"dir/", typeflag=b"5"),
        make_header(b"dir/good.txt"),
        make_header(b"dir/bad.txt", mtime=b"never\x00"),
        make_header(b"top.txt"),
    ])
    archive = Archive.from_path(path)
    assert len(list(archive.errors())) == 1
    assert _names(archive.files("")) == ["dir", "!dir/bad.txt: numeric field was not a number: never when getting mtime",
                                         "top.txt"]
    assert [type(item) for item in archive.files("dir")] == [ArchiveEntry, EntryError]
    assert [type(item) for item in archive.files("nowhere")] == [EntryError]


def test_iterator_over_plain_contents() -> None:
    contents = (
        ArchiveEntry(PurePosixPath("x"), is_directory=True),
        EntryError("broken"),
        ArchiveEntry(PurePosixPath("x/y")),
    )
    assert _names(ArchiveIterator(contents, PurePosixPath("x"))) == ["!broken", "y"]
    assert _names(ArchiveIterator(contents, PurePosixPath("."))) == ["x", "!broken"]


def test_archive_constructor_keywords() -> None:
    archive = Archive(archive_format=ArchiveFormat.TAR, path="x.tar", contents=())
    assert archive.format is ArchiveFormat.TAR
    assert list(archive.files("")) == []
