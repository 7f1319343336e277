"""Real filesystem entries.

`LocalFile` implements `FilelikeProtocol` on top of `os.lstat`, and
`LocalDir` lists a real directory. Together with `ArchiveEntry` and
`Archive` they let the CLI render real directories and archive contents
through the same code.
"""

import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Union

from .ArchiveEntry import file_extension
from .Errors import EntryError
from .Fields import (Attribute, Blocksize, BrokenTarget, FileTarget, FileType, Flags, Inode, Links, Owner,
                     Permissions, ResolvedTarget, SecurityContext, Size, TargetError)

if os.name == "posix":
    import grp
    import pwd
else:
    grp = pwd = None

logger = logging.getLogger(__name__)

SELINUX_ATTRIBUTE = "security.selinux"


def _user_name(uid: int) -> Optional[str]:
    if pwd is None:
        return None
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return None


def _group_name(gid: int) -> Optional[str]:
    if grp is None:
        return None
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return None


class LocalDir:
    """A real directory whose children can be listed."""

    def __init__(self, path: Union[str, "os.PathLike[str]"]) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalDir({str(self.path)!r})"

    def files(self, show_hidden: bool = False, deref_links: bool = False) -> Iterator[Union["LocalFile", EntryError]]:
        """Yield a LocalFile per child, or an EntryError for children that can't be read.

        Raises:
            OSError: If the directory itself cannot be read.
        """
        with os.scandir(self.path) as it:
            names = [entry.name for entry in it]
        for name in names:
            if not show_hidden and name.startswith("."):
                continue
            try:
                yield LocalFile(self.path / name, parent=self, deref_links=deref_links)
            except OSError as e:
                yield EntryError.from_exception(e)


class LocalFile:
    """
    A file, directory or other node on a real filesystem.

    Attributes:
        stat_result (os.stat_result): lstat() of the path, or stat() when
            links are dereferenced.
    """

    def __init__(self, path: Union[str, "os.PathLike[str]"], parent: Optional[LocalDir] = None,
                 deref_links: bool = False) -> None:
        self._path = Path(path)
        self._parent = parent
        self._deref = deref_links
        self.stat_result = os.lstat(self._path)
        if deref_links and stat.S_ISLNK(self.stat_result.st_mode):
            try:
                self.stat_result = os.stat(self._path)
            except OSError:
                # broken link; keep describing the link itself
                self._deref = False

    def __repr__(self) -> str:
        return f"LocalFile({str(self._path)!r})"

    @property
    def name(self) -> str:
        return self._path.name or str(self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def _mode(self) -> int:
        return self.stat_result.st_mode

    def extension(self) -> Optional[str]:
        return file_extension(self.name)

    def absolute_path(self) -> Optional[Path]:
        return Path(os.path.abspath(self._path))

    def deref_links(self) -> bool:
        return self._deref

    def metadata(self) -> Optional[os.stat_result]:
        return self.stat_result

    def parent_directory(self) -> Optional[LocalDir]:
        return self._parent

    def to_dir(self) -> Optional[LocalDir]:
        if not self.points_to_directory():
            return None
        return LocalDir(self._path)

    def is_directory(self) -> bool:
        return stat.S_ISDIR(self._mode)

    def points_to_directory(self) -> bool:
        if self.is_directory():
            return True
        return self.is_link() and os.path.isdir(self._path)

    def is_file(self) -> bool:
        return stat.S_ISREG(self._mode)

    def is_executable_file(self) -> bool:
        return self.is_file() and bool(self._mode & stat.S_IXUSR)

    def is_link(self) -> bool:
        return stat.S_ISLNK(self._mode)

    def is_pipe(self) -> bool:
        return stat.S_ISFIFO(self._mode)

    def is_char_device(self) -> bool:
        return stat.S_ISCHR(self._mode)

    def is_block_device(self) -> bool:
        return stat.S_ISBLK(self._mode)

    def is_socket(self) -> bool:
        return stat.S_ISSOCK(self._mode)

    def is_mount_point(self) -> bool:
        return self.is_directory() and os.path.ismount(self._path)

    def type_char(self) -> FileType:
        if self.is_file():
            return FileType.FILE
        if self.is_directory():
            return FileType.DIRECTORY
        if self.is_link():
            return FileType.LINK
        if self.is_pipe():
            return FileType.PIPE
        if self.is_socket():
            return FileType.SOCKET
        if self.is_block_device():
            return FileType.BLOCK_DEVICE
        if self.is_char_device():
            return FileType.CHAR_DEVICE
        return FileType.SPECIAL

    def _resolve(self, target: Path) -> FileTarget:
        if not target.is_absolute():
            target = self._path.parent / target
        try:
            return ResolvedTarget(target, LocalFile(target))
        except FileNotFoundError:
            return BrokenTarget(target)
        except OSError as e:
            return TargetError(str(EntryError.from_exception(e)))

    def link_target(self) -> FileTarget:
        if not self.is_link():
            return TargetError("not a link")
        try:
            target = Path(os.readlink(self._path))
        except OSError as e:
            return TargetError(str(EntryError.from_exception(e)))
        return self._resolve(target)

    def link_target_recurse(self) -> FileTarget:
        if not self.is_link():
            return TargetError("not a link")
        return self._resolve(Path(os.path.realpath(self._path)))

    def links(self) -> Links:
        count = self.stat_result.st_nlink
        return Links(count=count, multiple=self.is_file() and count > 1)

    def inode(self) -> Inode:
        return Inode(self.stat_result.st_ino)

    def blocksize(self) -> Blocksize:
        if self.is_file() or self.is_link():
            return Blocksize(getattr(self.stat_result, "st_blocks", None))
        return Blocksize(None)

    def user(self) -> Optional[Owner]:
        if pwd is None:
            return None
        uid = self.stat_result.st_uid
        return Owner(uid, _user_name(uid))

    def group(self) -> Optional[Owner]:
        if grp is None:
            return None
        gid = self.stat_result.st_gid
        return Owner(gid, _group_name(gid))

    def permissions(self) -> Optional[Permissions]:
        if os.name != "posix":
            return None
        return Permissions.from_mode(self._mode)

    def size(self) -> Size:
        if self.is_directory() or self.is_link() or self.is_char_device() or self.is_block_device():
            return Size.none()
        return Size.known(self.stat_result.st_size)

    def length(self) -> int:
        return self.stat_result.st_size

    def is_recursive_size(self) -> bool:
        return False

    def is_empty_dir(self) -> bool:
        if not self.is_directory():
            return False
        try:
            with os.scandir(self._path) as it:
                return next(it, None) is None
        except OSError:
            return False

    def modified_time(self) -> Optional[datetime]:
        return datetime.fromtimestamp(self.stat_result.st_mtime, tz=timezone.utc)

    def changed_time(self) -> Optional[datetime]:
        return datetime.fromtimestamp(self.stat_result.st_ctime, tz=timezone.utc)

    def accessed_time(self) -> Optional[datetime]:
        return datetime.fromtimestamp(self.stat_result.st_atime, tz=timezone.utc)

    def created_time(self) -> Optional[datetime]:
        birthtime = getattr(self.stat_result, "st_birthtime", None)
        if birthtime is None:
            return None
        return datetime.fromtimestamp(birthtime, tz=timezone.utc)

    def extended_attributes(self) -> List[Attribute]:
        if not hasattr(os, "listxattr"):
            return []
        attributes = []
        try:
            for name in os.listxattr(self._path, follow_symlinks=False):
                value = os.getxattr(self._path, name, follow_symlinks=False)
                attributes.append(Attribute(name, len(value)))
        except OSError as e:
            logger.debug("Cannot read extended attributes of %s: %s", self._path, e)
            return []
        return attributes

    def security_context(self) -> SecurityContext:
        if not hasattr(os, "getxattr"):
            return SecurityContext(None)
        try:
            value = os.getxattr(self._path, SELINUX_ATTRIBUTE, follow_symlinks=False)
        except OSError:
            return SecurityContext(None)
        return SecurityContext(value.rstrip(b"\x00").decode("utf-8", "replace"))

    def flags(self) -> Flags:
        return Flags(getattr(self.stat_result, "st_flags", 0))
