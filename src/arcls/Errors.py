"""Error types for archive listing.

Two tiers of failure exist:

- Whole-archive failures (the container cannot be opened, or no reader is
  registered for it) are raised as ordinary exceptions from
  `Archive.from_path`; `UnsupportedFormatError` covers the "no reader" case.
- Per-record failures are stored as `EntryError` values inside the archive's
  contents so a single bad record never hides the rest of the listing.
"""

import errno


class UnsupportedFormatError(OSError):
    """Raised when no archive reader can handle the given container."""

    def __init__(self, message: str = "Unsupported archive format") -> None:
        super().__init__(errno.ENOTSUP, message)

    def __str__(self) -> str:
        return self.strerror


class TarHeaderError(ValueError):
    """A field of a tar header could not be read."""


class EntryError(Exception):
    """Display-only error for one archive record.

    The original exception type is discarded on purpose: I/O errors, decoding
    errors and header parse errors all end up as the same one-line message.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @classmethod
    def from_exception(cls, error: BaseException) -> "EntryError":
        """Build an EntryError from any exception, keeping only the first line.

        Args:
            error (BaseException): The underlying failure.

        Returns:
            EntryError: Error whose message is the first line of `str(error)`,
            followed by "..." if the original message had more lines.
        """
        lines = str(error).splitlines()
        message = lines[0] if lines else ""
        if len(lines) > 1:
            message += "..."
        return cls(message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"EntryError({self.message!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, EntryError) and other.message == self.message

    def __hash__(self) -> int:
        return hash(self.message)
