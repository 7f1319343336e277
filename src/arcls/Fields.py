"""Value types returned by the file-like interface.

Every accessor on `arcls.Protocols.FilelikeProtocol` returns one of these
types (or `None`). Backends that cannot supply a value return the "absent"
form of the type instead of raising, so renderers never need to guard
individual accessors.
"""

import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any, Optional, Union


class FileType(Enum):
    """One-character type marker shown in the first permissions column."""
    FILE = "."
    DIRECTORY = "d"
    LINK = "l"
    PIPE = "|"
    SOCKET = "s"
    BLOCK_DEVICE = "b"
    CHAR_DEVICE = "c"
    SPECIAL = "?"


@dataclass(frozen=True)
class Size:
    """Size of a file, or "not applicable" for directories and links.

    Attributes:
        bytes (int | None): Size in bytes, or None when no size applies.
    """
    bytes: Optional[int] = None

    @classmethod
    def known(cls, value: int) -> "Size":
        return cls(value)

    @classmethod
    def none(cls) -> "Size":
        return cls(None)

    @property
    def is_known(self) -> bool:
        return self.bytes is not None


@dataclass(frozen=True)
class Owner:
    """A user or group owner.

    Attributes:
        id (int): Numeric uid/gid.
        name (str | None): Symbolic name, when it is recorded or resolvable.
    """
    id: int
    name: Optional[str] = None

    def __str__(self) -> str:
        return self.name if self.name else str(self.id)


@dataclass(frozen=True)
class Permissions:
    """POSIX permission bits, split into flags."""
    user_read: bool
    user_write: bool
    user_execute: bool
    group_read: bool
    group_write: bool
    group_execute: bool
    other_read: bool
    other_write: bool
    other_execute: bool
    sticky: bool
    setgid: bool
    setuid: bool

    @classmethod
    def from_mode(cls, mode: int) -> "Permissions":
        return cls(
            user_read=bool(mode & stat.S_IRUSR),
            user_write=bool(mode & stat.S_IWUSR),
            user_execute=bool(mode & stat.S_IXUSR),
            group_read=bool(mode & stat.S_IRGRP),
            group_write=bool(mode & stat.S_IWGRP),
            group_execute=bool(mode & stat.S_IXGRP),
            other_read=bool(mode & stat.S_IROTH),
            other_write=bool(mode & stat.S_IWOTH),
            other_execute=bool(mode & stat.S_IXOTH),
            sticky=bool(mode & stat.S_ISVTX),
            setgid=bool(mode & stat.S_ISGID),
            setuid=bool(mode & stat.S_ISUID),
        )

    def to_mode(self) -> int:
        mode = 0
        for flag, bit in (
            (self.user_read, stat.S_IRUSR), (self.user_write, stat.S_IWUSR),
            (self.user_execute, stat.S_IXUSR), (self.group_read, stat.S_IRGRP),
            (self.group_write, stat.S_IWGRP), (self.group_execute, stat.S_IXGRP),
            (self.other_read, stat.S_IROTH), (self.other_write, stat.S_IWOTH),
            (self.other_execute, stat.S_IXOTH), (self.sticky, stat.S_ISVTX),
            (self.setgid, stat.S_ISGID), (self.setuid, stat.S_ISUID),
        ):
            if flag:
                mode |= bit
        return mode

    def __str__(self) -> str:
        # stat.filemode renders the type char first; we only want the bits
        return stat.filemode(self.to_mode())[1:]


@dataclass(frozen=True)
class Links:
    count: int
    multiple: bool


@dataclass(frozen=True)
class Inode:
    # 0 means there is no inode
    number: int


@dataclass(frozen=True)
class Blocksize:
    blocks: Optional[int] = None


@dataclass(frozen=True)
class Attribute:
    """An extended attribute name and the size of its value."""
    name: str
    size: int


@dataclass(frozen=True)
class SecurityContext:
    context: Optional[str] = None


@dataclass(frozen=True)
class Flags:
    value: int = 0


@dataclass(frozen=True)
class ResolvedTarget:
    """A link whose target exists; `file` is the target's file-like object."""
    path: PurePath
    file: Any


@dataclass(frozen=True)
class BrokenTarget:
    """A link whose target was recorded but could not be (or is never) resolved."""
    path: PurePath


@dataclass(frozen=True)
class TargetError:
    """Reading the link target failed, or the entry is not a link."""
    message: str


FileTarget = Union[ResolvedTarget, BrokenTarget, TargetError]
