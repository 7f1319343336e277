"""Archive entries as file-like objects.

`ArchiveEntry` implements `FilelikeProtocol` for one record of a container
file. All metadata is fixed when the entry is built by a format reader; the
accessors only map it onto the generic contract, answering "absent" for the
host-only capabilities an archive cannot have (inodes, mount points, xattrs,
device nodes, ...).
"""

import os
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import List, Optional

from .Fields import (Attribute, Blocksize, BrokenTarget, FileTarget, FileType, Flags, Inode, Links, Owner,
                     Permissions, SecurityContext, Size, TargetError)

__all__ = ["ArchiveEntry", "Owner", "file_extension"]


def file_extension(name: str) -> Optional[str]:
    """Lowercase text after the last dot of `name`, ignoring a leading dot."""
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return None
    return ext.lower()


def _timestamp(seconds: Optional[int]) -> Optional[datetime]:
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class ArchiveEntry:
    """
    One item inside a container file.

    Exactly one of directory, symbolic link or regular file. Symbolic links
    are never followed: their target is always reported as broken, whether
    or not an entry with that path exists in the same archive.

    Attributes:
        is_dir (bool): True for directory records.
        is_symlink (bool): True for symbolic link records.
        target (PurePosixPath | None): Recorded link target, only for links.
        raw_size (int): Size as declared by the format; may be stale for
            directories and links.
        mode (Permissions | None): Permission bits where the platform models them.
        owner, owner_group (Owner | None): Recorded user and group.
        mtime, atime, ctime (int | None): Unix epoch seconds.
    """

    def __init__(
        self,
        path: PurePosixPath,
        size: int = 0,
        is_directory: bool = False,
        is_link: bool = False,
        link_target: Optional[PurePosixPath] = None,
        permissions: Optional[Permissions] = None,
        user: Optional[Owner] = None,
        group: Optional[Owner] = None,
        mtime: Optional[int] = None,
        atime: Optional[int] = None,
        ctime: Optional[int] = None,
    ) -> None:
        if is_directory and is_link:
            raise ValueError(f"{path}: an archive entry cannot be both a directory and a link")
        self._path = PurePosixPath(path)
        self._name = self._path.name or str(self._path)
        self.raw_size = size
        self.is_dir = is_directory
        self.is_symlink = is_link
        self.target = PurePosixPath(link_target) if (is_link and link_target is not None) else None
        self.mode = permissions
        self.owner = user
        self.owner_group = group
        self.mtime = mtime
        self.atime = atime
        self.ctime = ctime

    def __repr__(self) -> str:
        return f"ArchiveEntry({str(self._path)!r}, type={self.type_char().value!r})"

    # Identity

    @property
    def name(self) -> str:
        return self._name

    @property
    def path(self) -> PurePosixPath:
        return self._path

    def extension(self) -> Optional[str]:
        return file_extension(self._name)

    def absolute_path(self) -> Optional[PurePosixPath]:
        # Entries only know their path inside the archive; the container's
        # own location is not part of it.
        return self._path

    # Handles that only exist for real directories

    def deref_links(self) -> bool:
        return False

    def metadata(self) -> Optional[os.stat_result]:
        return None

    def parent_directory(self) -> None:
        return None

    def to_dir(self) -> None:
        return None

    # Classification

    def is_directory(self) -> bool:
        return self.is_dir

    def points_to_directory(self) -> bool:
        # links are always broken, so only real directories count
        return self.is_dir

    def is_file(self) -> bool:
        return not self.is_dir and not self.is_symlink

    def is_link(self) -> bool:
        return self.is_symlink

    def is_executable_file(self) -> bool:
        return False

    def is_pipe(self) -> bool:
        return False

    def is_char_device(self) -> bool:
        return False

    def is_block_device(self) -> bool:
        return False

    def is_socket(self) -> bool:
        return False

    def is_mount_point(self) -> bool:
        return False

    def type_char(self) -> FileType:
        if self.is_symlink:
            return FileType.LINK
        if self.is_dir:
            return FileType.DIRECTORY
        return FileType.FILE

    # Links

    def link_target(self) -> FileTarget:
        if self.target is not None:
            return BrokenTarget(self.target)
        return TargetError("no link target")

    def link_target_recurse(self) -> FileTarget:
        return self.link_target()

    def links(self) -> Links:
        return Links(count=0, multiple=False)

    def inode(self) -> Inode:
        return Inode(0)

    def blocksize(self) -> Blocksize:
        return Blocksize(None)

    # Ownership

    def user(self) -> Optional[Owner]:
        return self.owner

    def group(self) -> Optional[Owner]:
        return self.owner_group

    def permissions(self) -> Optional[Permissions]:
        return self.mode

    # Size

    def size(self) -> Size:
        if self.is_dir or self.is_symlink:
            return Size.none()
        return Size.known(self.raw_size)

    def length(self) -> int:
        return self.raw_size

    def is_recursive_size(self) -> bool:
        return False

    def is_empty_dir(self) -> bool:
        # Answering this would need a scan of the whole archive for a
        # "{path}/" prefix on every directory shown.
        return False

    # Times

    def modified_time(self) -> Optional[datetime]:
        return _timestamp(self.mtime)

    def changed_time(self) -> Optional[datetime]:
        return _timestamp(self.ctime)

    def accessed_time(self) -> Optional[datetime]:
        return _timestamp(self.atime)

    def created_time(self) -> Optional[datetime]:
        return None

    # Host-specific attributes

    def extended_attributes(self) -> List[Attribute]:
        return []

    def security_context(self) -> SecurityContext:
        return SecurityContext(None)

    def flags(self) -> Flags:
        return Flags(0)
