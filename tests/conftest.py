"""
pytest configuration and shared fixtures.

Archives are built inside tmp_path for every test. Well-formed archives come
from the stdlib tarfile writer; malformed records are assembled block by
block with `make_header`, which lets a test put arbitrary bytes in any field
while still producing a valid checksum.
"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path
from typing import Callable, Iterable

import pytest

BLOCK = 512


def _octal(value: int, width: int) -> bytes:
    return b"%0*o\x00" % (width - 1, value)


def make_header(
    name: bytes = b"file.txt",
    *,
    typeflag: bytes = b"0",
    size: int | bytes = 0,
    mode: int | bytes = 0o644,
    uid: int | bytes = 1000,
    gid: int | bytes = 1000,
    mtime: int | bytes = 1_700_000_000,
    linkname: bytes = b"",
    magic: bytes = b"ustar\x0000",
    uname: bytes = b"alice",
    gname: bytes = b"staff",
    prefix: bytes = b"",
    atime: int | bytes | None = None,
    ctime: int | bytes | None = None,
    checksum: bytes | None = None,
) -> bytes:
    """Build one 512-byte tar header; integer fields are written as octal."""
    block = bytearray(BLOCK)

    def put(offset: int, width: int, value: int | bytes) -> None:
        raw = _octal(value, width) if isinstance(value, int) else value
        block[offset:offset + min(len(raw), width)] = raw[:width]

    put(0, 100, name)
    put(100, 8, mode)
    put(108, 8, uid)
    put(116, 8, gid)
    put(124, 12, size)
    put(136, 12, mtime)
    put(156, 1, typeflag)
    put(157, 100, linkname)
    put(257, 8, magic)
    put(265, 32, uname)
    put(297, 32, gname)
    if prefix:
        put(345, 155, prefix)
    if atime is not None:
        put(345, 12, atime)
    if ctime is not None:
        put(357, 12, ctime)

    block[148:156] = b" " * 8
    if checksum is None:
        checksum = b"%06o\x00 " % sum(block)
    block[148:156] = checksum
    return bytes(block)


def data_blocks(data: bytes) -> bytes:
    """Member data padded to whole blocks."""
    padding = (-len(data)) % BLOCK
    return data + b"\x00" * padding


def pax_payload(**keywords: bytes) -> bytes:
    """Encode pax extended header records ("<len> key=value\\n")."""
    records = []
    for key, value in keywords.items():
        body = b" " + key.encode() + b"=" + value + b"\n"
        length = len(body) + 1
        while length != len(body) + len(str(length)):
            length = len(body) + len(str(length))
        records.append(str(length).encode() + body)
    return b"".join(records)


def pax_member(header_name: bytes = b"PaxHeader", typeflag: bytes = b"x", **keywords: bytes) -> bytes:
    payload = pax_payload(**keywords)
    return make_header(header_name, typeflag=typeflag, size=len(payload)) + data_blocks(payload)


END_OF_ARCHIVE = b"\x00" * (2 * BLOCK)


@pytest.fixture
def write_raw_tar(tmp_path: Path) -> Callable[..., Path]:
    """Write raw blocks (plus the end-of-archive marker) to a .tar file."""

    def _write(parts: Iterable[bytes], name: str = "raw.tar", terminate: bool = True) -> Path:
        path = tmp_path / name
        content = b"".join(parts) + (END_OF_ARCHIVE if terminate else b"")
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def write_tar(tmp_path: Path) -> Callable[..., Path]:
    """Write a tar archive from (name, kind, extra) member specs using tarfile.

    kind is "file" (extra: bytes content), "dir" or "symlink" (extra: target).
    """

    def _write(members: Iterable[tuple], name: str = "test.tar", mode: str = "w",
               format: int = tarfile.PAX_FORMAT, **tar_kwargs) -> Path:
        path = tmp_path / name
        with tarfile.open(path, mode, format=format, **tar_kwargs) as tar:
            for member_name, kind, *extra in members:
                info = tarfile.TarInfo(member_name)
                info.mtime = 1_700_000_000
                info.uid, info.gid = 1000, 100
                info.uname, info.gname = "alice", "staff"
                if kind == "dir":
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                    tar.addfile(info)
                elif kind == "symlink":
                    info.type = tarfile.SYMTYPE
                    info.linkname = extra[0]
                    info.mode = 0o777
                    tar.addfile(info)
                else:
                    content = extra[0] if extra else b""
                    info.size = len(content)
                    info.mode = 0o644
                    tar.addfile(info, io.BytesIO(content))
        return path

    return _write


@pytest.fixture
def sample_members() -> list[tuple]:
    """The a/, a/b.txt, a/c/, a/c/d.txt layout plus a top-level file and link."""
    return [
        ("a", "dir"),
        ("a/b.txt", "file", b"hello"),
        ("a/c", "dir"),
        ("a/c/d.txt", "file", b"nested content"),
        ("top.txt", "file", b"top"),
        ("link", "symlink", "a/b.txt"),
    ]


@pytest.fixture
def sample_tar(write_tar: Callable[..., Path], sample_members: list[tuple]) -> Path:
    return write_tar(sample_members)
