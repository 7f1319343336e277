"""Protocol definitions shared by listing backends.

This module declares the two contracts the rest of the package is written
against:

- `FilelikeProtocol`, the capability set every listable entry implements,
  whether it is a real file on disk or a record inside an archive. A renderer
  only ever talks to this protocol, so it can sort, filter and lay out
  entries without knowing which backend produced them.
- `ArchiveReaderProtocol`, the interface a container format parser must
  satisfy to be registered in `arcls.ArchiveEngine`.

Every accessor on `FilelikeProtocol` is total: a backend that cannot supply
a capability returns the "absent" value documented for that accessor
(`None`, `Size.none()`, `Inode(0)`, an empty list, ...) instead of raising.
"""

import os
from datetime import datetime
from pathlib import PurePath
from typing import TYPE_CHECKING, Any, BinaryIO, List, Optional, Protocol, Union

from .Errors import EntryError
from .Fields import (Attribute, Blocksize, FileTarget, FileType, Flags, Inode, Links, Owner, Permissions,
                     SecurityContext, Size)


if TYPE_CHECKING:
    from .ArchiveEntry import ArchiveEntry


class FilelikeProtocol(Protocol):
    """Capability contract for anything the listing engine can display."""

    @property
    def name(self) -> str:
        """Final path segment, as shown to the user."""
        ...

    @property
    def path(self) -> PurePath:
        """Path of the entry, relative to whatever was listed."""
        ...

    def extension(self) -> Optional[str]: ...

    def absolute_path(self) -> Optional[PurePath]:
        """Absolute path of the entry, or None when it cannot be determined."""
        ...

    def deref_links(self) -> bool:
        """Whether metadata accessors describe the link target instead of the link."""
        ...

    def metadata(self) -> Optional[os.stat_result]:
        """Raw host metadata, or None for backends without any."""
        ...

    def parent_directory(self) -> Optional[Any]: ...

    def to_dir(self) -> Optional[Any]:
        """Open this entry as a directory handle, or None if not possible."""
        ...

    def is_directory(self) -> bool: ...

    def points_to_directory(self) -> bool: ...

    def is_file(self) -> bool: ...

    def is_link(self) -> bool: ...

    def is_executable_file(self) -> bool: ...

    def is_pipe(self) -> bool: ...

    def is_char_device(self) -> bool: ...

    def is_block_device(self) -> bool: ...

    def is_socket(self) -> bool: ...

    def is_mount_point(self) -> bool: ...

    def link_target(self) -> FileTarget:
        """One level of link resolution: resolved, broken, or an error."""
        ...

    def link_target_recurse(self) -> FileTarget:
        """Follow the link chain to its final target."""
        ...

    def links(self) -> Links: ...

    def inode(self) -> Inode: ...

    def blocksize(self) -> Blocksize: ...

    def user(self) -> Optional[Owner]: ...

    def group(self) -> Optional[Owner]: ...

    def permissions(self) -> Optional[Permissions]: ...

    def size(self) -> Size:
        """Displayable size; `Size.none()` for directories and links."""
        ...

    def length(self) -> int:
        """Raw byte length, regardless of type."""
        ...

    def is_recursive_size(self) -> bool: ...

    def is_empty_dir(self) -> bool: ...

    def modified_time(self) -> Optional[datetime]: ...

    def changed_time(self) -> Optional[datetime]: ...

    def accessed_time(self) -> Optional[datetime]: ...

    def created_time(self) -> Optional[datetime]: ...

    def type_char(self) -> FileType: ...

    def extended_attributes(self) -> List[Attribute]: ...

    def security_context(self) -> SecurityContext: ...

    def flags(self) -> Flags: ...


class ArchiveReaderProtocol(Protocol):
    """Protocol describing a container format parser.

    Implementations turn a container into one result per raw record, keeping
    the order in which the records appear.
    """

    def read_dir(self, source: Union[str, BinaryIO]) -> List[Union["ArchiveEntry", EntryError]]:
        """Parse every record of a container.

        Args:
            source (str | BinaryIO): Path or URL of the container, or an
                already opened binary stream.

        Returns:
            list: One `ArchiveEntry` or `EntryError` per record, in emission order.

        Raises:
            OSError: If the container cannot be opened or is not in this format.
        """
        ...
