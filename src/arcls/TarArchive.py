"""Tar archive reader.

`TarReader` walks the 512-byte header blocks of a tar stream and turns each
member into an `ArchiveEntry`. Headers are decoded field by field by
`TarHeader` instead of `tarfile.TarFile`, because the stdlib reader gives up
on the whole stream at the first malformed header; here a record with an
unreadable mandatory field becomes an `EntryError` and reading carries on
with the next record.

ustar, GNU (long names/links, atime/ctime) and pax (local and global
extended headers) variants are understood. gzip, bzip2 and xz compressed
streams are detected from their magic bytes and decompressed on the fly.
"""

import bz2
import contextlib
import gzip
import io
import logging
import lzma
import os
import re
import struct
import tarfile
import zlib
from pathlib import PurePosixPath
from typing import BinaryIO, Dict, Iterator, List, Optional, Union

from .ArchiveEntry import ArchiveEntry
from .Errors import EntryError, TarHeaderError, UnsupportedFormatError
from .Fields import Owner, Permissions
from .FileIO import open_source
from .Protocols import ArchiveReaderProtocol

logger = logging.getLogger(__name__)

BLOCKSIZE = tarfile.BLOCKSIZE

TAR_COMPRESSION_TYPES = {
    b"\x1f\x8b": "gz",  # GZIP compressed
    b"\xfd7zXZ\x00": "xz",  # XZ compressed
    b"BZh": "bz2",  # BZIP2 compressed
    b"\x28\xb5\x2f\xfd": "zst",  # ZSTD compressed
}

# Byte ranges of the numeric header fields
NUMERIC_FIELDS = {
    "mode": (100, 108),
    "uid": (108, 116),
    "gid": (116, 124),
    "size": (124, 136),
    "mtime": (136, 148),
    "chksum": (148, 156),
    # GNU headers only
    "atime": (345, 357),
    "ctime": (357, 369),
}

EXTENSION_TYPES = (tarfile.XHDTYPE, tarfile.XGLTYPE, tarfile.SOLARIS_XHDTYPE,
                   tarfile.GNUTYPE_LONGNAME, tarfile.GNUTYPE_LONGLINK)

_OCTAL = re.compile(rb"[0-7]+")
_PAX_RECORD = re.compile(rb"(\d+) ([^=]+)=")

# Read failures of the underlying (possibly decompressing) stream
STREAM_ERRORS = (OSError, EOFError, lzma.LZMAError, zlib.error)

# Permissions and ownership are only modelled on POSIX hosts
_UNIX = os.name == "posix"


def _nts(raw: bytes) -> bytes:
    """Cut a NUL-terminated field at its first NUL."""
    return raw.split(b"\x00", 1)[0]


def _parse_number(raw: bytes, field: str) -> int:
    """Decode an octal or GNU base-256 numeric header field."""
    if raw and raw[0] in (0x80, 0xFF):
        n = int.from_bytes(raw[1:], "big")
        if raw[0] == 0xFF:
            n -= 256 ** (len(raw) - 1)
        return n
    text = _nts(raw).strip(b" ")
    if not text:
        raise TarHeaderError(f"numeric field {field} was empty")
    if not _OCTAL.fullmatch(text):
        raise TarHeaderError(f"numeric field was not a number: {text.decode('ascii', 'replace')} "
                             f"when getting {field}")
    return int(text, 8)


def _parse_pax(data: bytes) -> Dict[str, bytes]:
    """Split a pax extended header payload into keyword/value pairs."""
    headers: Dict[str, bytes] = {}
    pos = 0
    while pos < len(data) and data[pos] != 0:
        match = _PAX_RECORD.match(data, pos)
        if not match:
            raise TarHeaderError(f"invalid pax extended header record at byte {pos}")
        length = int(match.group(1))
        end = pos + length
        if length <= 0 or end > len(data) or data[end - 1:end] != b"\n":
            raise TarHeaderError(f"invalid pax extended header record length {length}")
        keyword = match.group(2).decode("utf-8", "replace")
        headers[keyword] = data[match.end():end - 1]
        pos = end
    return headers


def _padded(size: int) -> int:
    return (size + BLOCKSIZE - 1) // BLOCKSIZE * BLOCKSIZE


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _skip(stream: BinaryIO, size: int) -> bool:
    """Skip `size` bytes; False if the stream ended first."""
    if size <= 0:
        return True
    if stream.seekable():
        # seeking past EOF succeeds, so check that the last skipped byte exists
        stream.seek(size - 1, io.SEEK_CUR)
        return len(stream.read(1)) == 1
    while size > 0:
        chunk = stream.read(min(size, 128 * 1024))
        if not chunk:
            return False
        size -= len(chunk)
    return True


class TarHeader:
    """
    One 512-byte tar header plus the extension records that preceded it.

    Every accessor decodes its field on demand and raises `TarHeaderError`
    when the field cannot be read, leaving the mandatory/optional decision
    to the caller.

    Attributes:
        block (bytes): The raw header block.
        offset (int): Byte offset of the block in the (decompressed) stream.
        pax (dict): pax keywords in effect for this member (global ones first).
        long_name, long_link (bytes | None): GNU long name/link payloads.
    """

    def __init__(self, block: bytes, offset: int = 0, pax: Optional[Dict[str, bytes]] = None,
                 long_name: Optional[bytes] = None, long_link: Optional[bytes] = None) -> None:
        self.block = block
        self.offset = offset
        self.pax = pax or {}
        self.long_name = long_name
        self.long_link = long_link

    @property
    def typeflag(self) -> bytes:
        return self.block[156:157]

    def is_gnu(self) -> bool:
        return self.block[257:265] == tarfile.GNU_MAGIC

    def is_ustar(self) -> bool:
        return self.block[257:265] == tarfile.POSIX_MAGIC

    def _number(self, field: str) -> int:
        start, end = NUMERIC_FIELDS[field]
        return _parse_number(self.block[start:end], field)

    def _pax_number(self, keyword: str) -> Optional[int]:
        value = self.pax.get(keyword)
        if value is None:
            return None
        try:
            # pax times may carry a fractional part
            return int(float(value.decode("ascii"))) if keyword.endswith("time") else int(value.decode("ascii"))
        except (UnicodeDecodeError, ValueError, OverflowError):
            raise TarHeaderError(f"pax {keyword} was not a number: {value.decode('ascii', 'replace')}") from None

    def checksum_ok(self) -> bool:
        """Compare the stored checksum with the unsigned and signed block sums."""
        try:
            stored = self._number("chksum")
        except TarHeaderError:
            return False
        # the checksum field itself counts as eight spaces
        unsigned = 256 + sum(struct.unpack_from("148B8x356B", self.block))
        signed = 256 + sum(struct.unpack_from("148b8x356b", self.block))
        return stored in (unsigned, signed)

    def size(self) -> int:
        """Declared member size; a pax `size` supersedes the header field."""
        return self._unsigned("size")

    def record_size(self) -> int:
        """Number of data bytes that follow this header in the stream."""
        if self.typeflag in EXTENSION_TYPES:
            size = self._number("size")
            if size < 0:
                raise TarHeaderError(f"negative size {size}")
            return size
        return self.size()

    def _ustar_path(self) -> bytes:
        name = _nts(self.block[0:100])
        prefix = _nts(self.block[345:500]) if self.is_ustar() else b""
        return prefix + b"/" + name if prefix else name

    def path_text(self) -> str:
        """Member path as text, preferring the extended path over the ustar one.

        Raises:
            TarHeaderError: If no candidate is non-empty, valid UTF-8.
        """
        candidates = []
        if "path" in self.pax:
            candidates.append(self.pax["path"])
        if self.long_name is not None:
            candidates.append(_nts(self.long_name))
        candidates.append(self._ustar_path())
        for raw in candidates:
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                continue
            if text:
                return text
        raise TarHeaderError(f"archive entry at offset {self.offset} has no readable path")

    def path(self) -> PurePosixPath:
        return PurePosixPath(self.path_text())

    def is_symlink(self) -> bool:
        return self.typeflag == tarfile.SYMTYPE

    def is_directory(self, path_text: str) -> bool:
        if self.typeflag == tarfile.DIRTYPE:
            return True
        # old tars mark directories only by a trailing slash
        return self.typeflag in (tarfile.REGTYPE, tarfile.AREGTYPE) and path_text.endswith("/")

    def link_name(self) -> Optional[PurePosixPath]:
        candidates = []
        if "linkpath" in self.pax:
            candidates.append(self.pax["linkpath"])
        if self.long_link is not None:
            candidates.append(_nts(self.long_link))
        candidates.append(_nts(self.block[157:257]))
        for raw in candidates:
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                continue
            return PurePosixPath(text) if text else None
        raise TarHeaderError("link target is not valid UTF-8")

    def mode(self) -> int:
        return self._number("mode") & 0o7777

    def _unsigned(self, field: str) -> int:
        """A pax value or header field that must not be negative."""
        value = self._pax_number(field)
        if value is None:
            value = self._number(field)
        if value < 0:
            raise TarHeaderError(f"negative {field} {value}")
        return value

    def uid(self) -> int:
        return self._unsigned("uid")

    def gid(self) -> int:
        return self._unsigned("gid")

    def _name_field(self, keyword: str, start: int, end: int) -> Optional[str]:
        raw = self.pax.get(keyword, _nts(self.block[start:end]))
        try:
            return raw.decode("utf-8") or None
        except UnicodeDecodeError:
            return None

    def username(self) -> Optional[str]:
        return self._name_field("uname", 265, 297)

    def groupname(self) -> Optional[str]:
        return self._name_field("gname", 297, 329)

    def mtime(self) -> int:
        return self._unsigned("mtime")

    def _extended_time(self, field: str) -> int:
        value = self._pax_number(field)
        if value is not None:
            return value
        if not self.is_gnu():
            raise TarHeaderError(f"archive header does not support {field}")
        return self._number(field)

    def atime(self) -> int:
        return self._extended_time("atime")

    def ctime(self) -> int:
        return self._extended_time("ctime")


def _optional(getter) -> Optional[int]:
    try:
        return getter()
    except TarHeaderError:
        return None


@contextlib.contextmanager
def _decompressed(stream: BinaryIO) -> Iterator[BinaryIO]:
    """Yield `stream`, or a decompressing wrapper if it starts with a known magic."""
    start = stream.tell()
    magic_bytes = stream.read(8)  # 8 bytes cover every signature
    stream.seek(start)
    compression = None
    for signature, comp in TAR_COMPRESSION_TYPES.items():
        if magic_bytes.startswith(signature):
            compression = comp
            break
    if compression is None:
        yield stream
        return
    logger.debug("%s compression detected", compression)
    if compression == "gz":
        wrapper = gzip.GzipFile(fileobj=stream, mode="rb")
    elif compression == "bz2":
        wrapper = bz2.BZ2File(stream, mode="rb")
    elif compression == "xz":
        wrapper = lzma.LZMAFile(stream, mode="rb")
    else:
        raise UnsupportedFormatError(f"{compression} compressed tar archives are not supported")
    with wrapper:
        yield wrapper


class TarReader(ArchiveReaderProtocol):
    """Reader for (optionally compressed) tar containers."""

    def read_dir(self, source: Union[str, "os.PathLike[str]", BinaryIO]) -> List[Union[ArchiveEntry, EntryError]]:
        """Parse every record of a tar container.

        Args:
            source: Path or URL of the container, or a seekable binary stream
                positioned at the start of the archive. Streams passed in are
                not closed.

        Returns:
            list: One `ArchiveEntry` or `EntryError` per member, in archive order.

        Raises:
            OSError: If the container cannot be opened.
            tarfile.ReadError: If the stream does not start with a tar header.
            UnsupportedFormatError: For compressions without a decompressor.
        """
        if isinstance(source, (str, os.PathLike)):
            with open_source(os.fspath(source)) as stream:
                return self._read_stream(stream)
        return self._read_stream(source)

    def _read_stream(self, stream: BinaryIO) -> List[Union[ArchiveEntry, EntryError]]:
        with _decompressed(stream) as tar_stream:
            contents = list(self.records(tar_stream))
        errors = sum(1 for c in contents if isinstance(c, EntryError))
        logger.debug("Read %d tar records (%d errors)", len(contents), errors)
        return contents

    def records(self, stream: BinaryIO) -> Iterator[Union[ArchiveEntry, EntryError]]:
        """Yield one result per tar member until the end-of-archive marker.

        Failures that lose track of record boundaries (bad checksum, unreadable
        size, I/O errors) end the iteration after one `EntryError`; on the very
        first block they mean the stream is not a tar archive at all.
        """
        offset = 0
        first = True
        global_pax: Dict[str, bytes] = {}
        pax: Dict[str, bytes] = {}
        long_name: Optional[bytes] = None
        long_link: Optional[bytes] = None
        pending_error: Optional[TarHeaderError] = None
        pending_extension = False

        while True:
            try:
                block = _read_exact(stream, BLOCKSIZE)
            except STREAM_ERRORS as e:
                if first:
                    raise tarfile.ReadError(str(e)) from e
                yield EntryError.from_exception(e)
                return

            if not block or block.count(0) == BLOCKSIZE:
                if pending_extension:
                    yield EntryError(f"extension header at offset {offset} is not followed by an entry")
                return
            if len(block) < BLOCKSIZE:
                if first:
                    raise tarfile.ReadError("truncated header")
                yield EntryError(f"truncated header at offset {offset}")
                return

            header = TarHeader(block, offset, {**global_pax, **pax}, long_name, long_link)
            if not header.checksum_ok():
                if first:
                    raise tarfile.ReadError("bad checksum, not a tar archive")
                yield EntryError(f"archive header checksum mismatch at offset {offset}")
                return
            first = False

            try:
                data_size = header.record_size()
            except TarHeaderError as e:
                yield EntryError.from_exception(e)
                return
            offset += BLOCKSIZE

            if header.typeflag in EXTENSION_TYPES:
                try:
                    payload = _read_exact(stream, _padded(data_size))[:data_size]
                except STREAM_ERRORS as e:
                    yield EntryError.from_exception(e)
                    return
                offset += _padded(data_size)
                if len(payload) < data_size:
                    yield EntryError(f"truncated extension header at offset {offset}")
                    return
                pending_extension = True
                if header.typeflag == tarfile.GNUTYPE_LONGNAME:
                    long_name = payload
                elif header.typeflag == tarfile.GNUTYPE_LONGLINK:
                    long_link = payload
                else:
                    try:
                        parsed = _parse_pax(payload)
                    except TarHeaderError as e:
                        pending_error = e
                        continue
                    if header.typeflag == tarfile.XGLTYPE:
                        global_pax.update(parsed)
                        pending_extension = False
                    else:
                        pax.update(parsed)
                continue

            if pending_error is not None:
                yield EntryError.from_exception(pending_error)
            else:
                yield self._entry(header)
            pax, long_name, long_link = {}, None, None
            pending_error, pending_extension = None, False

            try:
                complete = _skip(stream, _padded(data_size))
            except STREAM_ERRORS as e:
                yield EntryError.from_exception(e)
                return
            if not complete:
                try:
                    name = header.path_text()
                except TarHeaderError:
                    name = "record"
                yield EntryError(f"truncated data for {name} at offset {offset}")
                return
            offset += _padded(data_size)

    @staticmethod
    def _entry(header: TarHeader) -> Union[ArchiveEntry, EntryError]:
        """Build an entry from one header; any mandatory field failure gives an EntryError."""
        try:
            path_text = header.path_text()
        except TarHeaderError as e:
            logger.debug("Skipping tar record: %s", e)
            return EntryError.from_exception(e)

        try:
            is_link = header.is_symlink()
            return ArchiveEntry(
                path=PurePosixPath(path_text),
                size=header.size(),
                is_directory=header.is_directory(path_text),
                is_link=is_link,
                link_target=header.link_name() if is_link else None,
                permissions=Permissions.from_mode(header.mode()) if _UNIX else None,
                user=Owner(header.uid(), header.username()) if _UNIX else None,
                group=Owner(header.gid(), header.groupname()) if _UNIX else None,
                mtime=header.mtime(),
                atime=_optional(header.atime),
                ctime=_optional(header.ctime),
            )
        except TarHeaderError as e:
            logger.debug("Unreadable tar record %s: %s", path_text, e)
            return EntryError.from_exception(TarHeaderError(f"{path_text}: {e}"))
