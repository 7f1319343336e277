"""Archive dispatch and directory views.

`Archive.from_path` picks a format reader from the container's extension,
parses the whole record table eagerly and keeps the results in archive
order. `Archive.files(root)` then lists one directory level of the virtual
tree at a time by scanning that flat list for entries whose parent is
`root`; no tree is ever built.
"""

import logging
import os
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Iterator, Optional, Tuple, Type, Union
from urllib.parse import urlsplit

from .ArchiveEntry import ArchiveEntry
from .Errors import EntryError, UnsupportedFormatError
from .FileIO import is_remote
from .Protocols import ArchiveReaderProtocol
from .TarArchive import TarReader

logger = logging.getLogger(__name__)

ArchiveResult = Union[ArchiveEntry, EntryError]


class ArchiveInspection(Enum):
    """Whether archives named on the command line are listed as directories."""
    ALWAYS = "always"
    NEVER = "never"

    @classmethod
    def deduce(cls, inspect_archives: bool) -> "ArchiveInspection":
        return cls.ALWAYS if inspect_archives else cls.NEVER


class ArchiveFormat(Enum):
    TAR = "tar"

    @classmethod
    def from_extension(cls, extension: str) -> Optional["ArchiveFormat"]:
        """Exact-match lookup of a lowercase extension; None if unsupported."""
        return EXTENSIONS.get(extension)


EXTENSIONS: Dict[str, ArchiveFormat] = {
    "tar": ArchiveFormat.TAR,
    "tar.gz": ArchiveFormat.TAR,
    "tgz": ArchiveFormat.TAR,
    "tar.bz2": ArchiveFormat.TAR,
    "tbz": ArchiveFormat.TAR,
    "tbz2": ArchiveFormat.TAR,
    "tar.xz": ArchiveFormat.TAR,
    "txz": ArchiveFormat.TAR,
}

READERS: Dict[ArchiveFormat, Type[ArchiveReaderProtocol]] = {
    ArchiveFormat.TAR: TarReader,
}


def archive_extension(location: Union[str, "os.PathLike[str]"]) -> str:
    """Lowercase extension of the last path segment, keeping `tar.<x>` whole.

    URLs are reduced to their path first, so query strings and fragments
    never count as part of the extension.
    """
    location = os.fspath(location)
    if is_remote(location):
        location = urlsplit(location).path
    name = PurePosixPath(location.replace("\\", "/")).name.lower()
    stem, dot, extension = name.rpartition(".")
    if not dot or not stem:
        return ""
    if stem.endswith(".tar") and extension != "tar":
        return f"tar.{extension}"
    return extension


class ArchiveIterator:
    """
    Lazy view of one directory level inside an archive.

    Yields every `EntryError` (a failed record has no usable path, so it can't
    be matched to any directory and is always surfaced) and every entry whose
    parent path equals `root`. Entries are shared with the archive, not copied.
    """

    def __init__(self, contents: Tuple[ArchiveResult, ...], root: PurePosixPath) -> None:
        self._inner = iter(contents)
        self.path = root

    def __iter__(self) -> "ArchiveIterator":
        return self

    def __next__(self) -> ArchiveResult:
        for item in self._inner:
            if isinstance(item, EntryError):
                return item
            if item.path != self.path and item.path.parent == self.path:
                return item
        raise StopIteration


class Archive:
    """
    An opened container file and its parsed record table.

    Attributes:
        format (ArchiveFormat): Format whose reader parsed the container.
        path (str): Filesystem path or URL of the container.
        contents (tuple): One `ArchiveEntry` or `EntryError` per record, in
            the order the reader emitted them.
    """

    def __init__(self, archive_format: ArchiveFormat, path: str, contents: Tuple[ArchiveResult, ...]) -> None:
        self.format = archive_format
        self.path = path
        self.contents = contents

    def __repr__(self) -> str:
        return f"Archive({self.path!r}, format={self.format.value}, records={len(self.contents)})"

    @staticmethod
    def is_archive(location: Union[str, "os.PathLike[str]"]) -> bool:
        """Whether a reader is registered for the extension of `location`."""
        return ArchiveFormat.from_extension(archive_extension(location)) is not None

    @classmethod
    def from_path(cls, location: Union[str, "os.PathLike[str]"]) -> "Archive":
        """Open a container and parse all of its records.

        Individual unreadable records do not make this fail; they show up as
        `EntryError` values in `contents`.

        Args:
            location: Filesystem path or HTTP(S) URL of the container.

        Returns:
            Archive: The parsed archive.

        Raises:
            UnsupportedFormatError: If no reader handles the extension.
            OSError / httpx.HTTPError: If the container cannot be read.
        """
        location = os.fspath(location)
        extension = archive_extension(location)
        archive_format = ArchiveFormat.from_extension(extension)
        if archive_format is None:
            raise UnsupportedFormatError()

        logger.debug("Reading %s as %s", location, archive_format.value)
        reader = READERS[archive_format]()
        contents = tuple(reader.read_dir(location))
        return cls(archive_format, location, contents)

    def files(self, root: Union[str, PurePosixPath] = "") -> ArchiveIterator:
        """Iterate over the direct children of `root` ("" is the archive root)."""
        return ArchiveIterator(self.contents, PurePosixPath(root))

    def entries(self) -> Iterator[ArchiveEntry]:
        """Every successfully parsed entry, in archive order."""
        return (item for item in self.contents if isinstance(item, ArchiveEntry))

    def errors(self) -> Iterator[EntryError]:
        return (item for item in self.contents if isinstance(item, EntryError))
