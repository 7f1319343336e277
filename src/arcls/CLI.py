"""arcls CLI entrypoint.

This module provides the `main` click command, which lists real directories
and, with `--inspect-archives`, the contents of tar archives as if they were
directories.

Usage example (from shell):
    arcls -l --inspect-archives backup.tar.gz src/

Every entry is rendered through `FilelikeProtocol` only, so the grid and
detail views below never check whether an entry came from disk or from an
archive. Errors for single entries are printed next to the listing they
belong to and do not stop it.
"""

import logging
import os
import tarfile
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterator, List, Optional, Tuple, Union

import click
import httpx
from rich.columns import Columns
from rich.console import Console
from rich.filesize import decimal
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from .ArchiveEngine import Archive, ArchiveInspection
from .Errors import EntryError
from .Fields import BrokenTarget, FileType, ResolvedTarget
from .FileIO import is_remote
from .LocalFile import LocalDir, LocalFile
from .Protocols import FilelikeProtocol

logger = logging.getLogger(__name__)

# Consoles for the listing itself and for errors/log records
console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

EXIT_SUCCESS = 0
EXIT_RUNTIME_ERROR = 1
EXIT_ARGUMENT_ERROR = 2

TYPE_STYLES = {
    FileType.DIRECTORY: "bold blue",
    FileType.LINK: "cyan",
    FileType.PIPE: "yellow",
    FileType.SOCKET: "magenta",
    FileType.BLOCK_DEVICE: "bold yellow",
    FileType.CHAR_DEVICE: "bold yellow",
}


@dataclass
class ArchiveDir:
    """One directory level inside an opened archive."""
    archive: Archive
    root: PurePosixPath

    @property
    def label(self) -> str:
        if str(self.root) == ".":
            return self.archive.path
        return f"{self.archive.path}/{self.root}"

    def files(self, show_hidden: bool = False) -> Iterator[Union[FilelikeProtocol, EntryError]]:
        for item in self.archive.files(self.root):
            if isinstance(item, EntryError):
                # every level sees every error; report them once, at the top
                if str(self.root) == ".":
                    yield item
            elif show_hidden or not item.name.startswith("."):
                yield item


Listing = Union[LocalDir, ArchiveDir]


def _label(listing: Listing) -> str:
    return listing.label if isinstance(listing, ArchiveDir) else str(listing.path)


def _child_listing(listing: Listing, child: FilelikeProtocol) -> Optional[Listing]:
    # archive entries can't become directory handles; the archive lists them
    if isinstance(listing, ArchiveDir):
        return ArchiveDir(listing.archive, child.path)
    return child.to_dir()


def _configure_logging(debug: bool):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _name_cell(file: FilelikeProtocol) -> Text:
    text = Text(file.name, style=TYPE_STYLES.get(file.type_char(), ""))
    if file.is_link():
        target = file.link_target()
        if isinstance(target, ResolvedTarget):
            text.append(" -> ").append(str(target.path))
        elif isinstance(target, BrokenTarget):
            text.append(" -> ").append(str(target.path), style="red")
    return text


def _details_row(file: FilelikeProtocol) -> List[Union[str, Text]]:
    permissions = file.permissions()
    size = file.size()
    user, group = file.user(), file.group()
    modified = file.modified_time()
    return [
        file.type_char().value + (str(permissions) if permissions is not None else "-" * 9),
        decimal(size.bytes) if size.is_known else "-",
        str(user) if user is not None else "-",
        str(group) if group is not None else "-",
        modified.strftime("%d %b %Y %H:%M") if modified is not None else "-",
        _name_cell(file),
    ]


def render_files(files: List[FilelikeProtocol], long_view: bool):
    """Print `files` as a grid of names or, with `long_view`, a details table."""
    if not files:
        return
    if not long_view:
        console.print(Columns([_name_cell(f) for f in files], padding=(0, 2)))
        return
    table = Table(box=None, show_header=True, header_style="underline", pad_edge=False)
    for column, justify in (("Permissions", "left"), ("Size", "right"), ("User", "left"),
                            ("Group", "left"), ("Date Modified", "left"), ("Name", "left")):
        table.add_column(column, justify=justify, no_wrap=column != "Name", overflow="fold")
    for f in files:
        table.add_row(*_details_row(f))
    console.print(table)


def _sort_files(files: List[FilelikeProtocol]):
    files.sort(key=lambda f: (f.name.casefold(), f.name))


def _collect(listing: Listing, show_hidden: bool) -> Tuple[List[FilelikeProtocol], List[EntryError]]:
    children: List[FilelikeProtocol] = []
    errors: List[EntryError] = []
    for item in listing.files(show_hidden=show_hidden):
        if isinstance(item, EntryError):
            errors.append(item)
        else:
            children.append(item)
    return children, errors


def print_dirs(listings: List[Listing], first: bool, is_only_dir: bool, long_view: bool,
               show_hidden: bool, recurse: bool) -> int:
    """List each directory, optionally descending into subdirectories.

    Returns:
        int: EXIT_RUNTIME_ERROR if a directory could not be read, else EXIT_SUCCESS.
    """
    exit_status = EXIT_SUCCESS
    for listing in listings:
        # blank line between listings, and after the argument files
        if first:
            first = False
        else:
            console.print()

        if not is_only_dir:
            console.print(Text(f"{_label(listing)}:"))

        try:
            children, errors = _collect(listing, show_hidden)
        except OSError as e:
            err_console.print(Text(f"{_label(listing)}: {EntryError.from_exception(e)}"))
            exit_status = EXIT_RUNTIME_ERROR
            continue
        for error in errors:
            err_console.print(Text(f"[{_label(listing)}: {error}]"))
        _sort_files(children)
        render_files(children, long_view)

        if recurse:
            child_dirs = []
            for child in children:
                if not child.is_directory():
                    continue
                child_dir = _child_listing(listing, child)
                if child_dir is not None:
                    child_dirs.append(child_dir)
            status = print_dirs(child_dirs, False, False, long_view, show_hidden, recurse)
            exit_status = max(exit_status, status)
    return exit_status


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument("paths", nargs=-1, type=str)
@click.option("--long", "-l", "long_view", is_flag=True, help="Show a details table instead of a grid")
@click.option("--all", "-a", "show_hidden", is_flag=True, help="Show entries whose names start with a dot")
@click.option("--recurse", "-R", is_flag=True, help="List subdirectories too, inside archives as well")
@click.option("--inspect-archives", is_flag=True, envvar="ARCLS_INSPECT_ARCHIVES",
              help="List supported archives (tar, tar.gz, ...) like directories")
@click.option("--debug", is_flag=True, help="Log debug messages to stderr")
def main(paths: Tuple[str, ...], long_view: bool, show_hidden: bool, recurse: bool, inspect_archives: bool,
         debug: bool):
    """List directories and archive contents.

    Each PATH is a file, a directory, or (with --inspect-archives) a tar
    archive given as a local path or an http(s) URL. Defaults to the current
    directory.
    """
    _configure_logging(debug)
    inspection = ArchiveInspection.deduce(inspect_archives)
    logger.debug("Listing %s with archive inspection %s", paths, inspection.value)

    files: List[FilelikeProtocol] = []
    dirs: List[Listing] = []
    exit_status = EXIT_SUCCESS
    try:
        for path in paths or (".",):
            if inspection == ArchiveInspection.ALWAYS and Archive.is_archive(path) and (
                    is_remote(path) or not os.path.isdir(path)):
                try:
                    archive = Archive.from_path(path)
                except (OSError, tarfile.TarError, httpx.HTTPError) as e:
                    err_console.print(Text(f"{path}: {EntryError.from_exception(e)}"))
                    exit_status = EXIT_ARGUMENT_ERROR
                    continue
                dirs.append(ArchiveDir(archive, PurePosixPath("")))
                continue

            try:
                file = LocalFile(path)
            except OSError as e:
                err_console.print(Text(f"{path}: {EntryError.from_exception(e)}"))
                exit_status = EXIT_ARGUMENT_ERROR
                continue
            if file.points_to_directory():
                dirs.append(file.to_dir())
            else:
                files.append(file)

        # A directory's name is printed before its listing, unless it is the
        # only thing being listed.
        no_files = not files
        is_only_dir = len(dirs) == 1 and no_files

        _sort_files(files)
        render_files(files, long_view)
        status = print_dirs(dirs, no_files, is_only_dir, long_view, show_hidden, recurse)
        exit_status = max(exit_status, status)
    except Exception as e:
        err_console.print(f"[red]Error:[/red] {str(e)}")
        raise e

    click.get_current_context().exit(exit_status)
