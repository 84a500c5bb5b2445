"""Small text-file helper for inspecting files a command produced."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class TextPath:
    """A filesystem path with UTF-8 text helpers.

    Attributes:
        path: The wrapped path.
    """

    path: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))

    def basename(self) -> str:
        return self.path.name

    def join(self, name: str) -> TextPath:
        """Return a new path for ``name`` below this one."""

        return TextPath(self.path / name)

    def exists(self) -> bool:
        """Return whether the path exists.

        Only "not found" is translated into ``False``; permission errors and
        other failures propagate.
        """

        try:
            self.path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return False
        return True

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        self.path.write_text(text, encoding="utf-8")

    def rm(self) -> None:
        self.path.unlink()

    def __str__(self) -> str:
        return str(self.path)
