"""arcls package initializer.

This module provides the package-level public surface for the `arcls`
library, which lists the contents of tar archives through the same
file-like interface used for real files:

- __version__: Package version string.
- Archive: Opens a container and lists one directory level at a time.
- ArchiveEntry: One record of an archive, as a file-like object.
- EntryError: Display-only error stored in place of an unreadable record.
- FilelikeProtocol: Capability contract shared by archive entries and real files.
- LocalFile / LocalDir: Real filesystem implementation of the same contract.
- cli: The CLI entrypoint function (click command) exposed for programmatic use.

Example:
    from arcls import Archive
    archive = Archive.from_path("backup.tar.gz")
    for item in archive.files(""):
        print(item)

"""

# Public version string
__version__ = "0.1.0"

from .ArchiveEngine import Archive, ArchiveFormat, ArchiveInspection, ArchiveIterator
from .ArchiveEntry import ArchiveEntry
from .Errors import EntryError, TarHeaderError, UnsupportedFormatError
from .Fields import BrokenTarget, FileType, Owner, Permissions, ResolvedTarget, Size, TargetError
from .LocalFile import LocalDir, LocalFile
from .Protocols import ArchiveReaderProtocol, FilelikeProtocol
from .TarArchive import TarReader

from .CLI import main as cli  # click CLI command

__all__ = [
    "__version__",
    "Archive",
    "ArchiveEntry",
    "ArchiveFormat",
    "ArchiveInspection",
    "ArchiveIterator",
    "ArchiveReaderProtocol",
    "BrokenTarget",
    "EntryError",
    "FileType",
    "FilelikeProtocol",
    "LocalDir",
    "LocalFile",
    "Owner",
    "Permissions",
    "ResolvedTarget",
    "Size",
    "TarHeaderError",
    "TarReader",
    "TargetError",
    "UnsupportedFormatError",
    "cli",
]
