#!/usr/bin/env python

"""
Local context gathered before a query: shell history, a directory listing,
or the contents of a file. Each provider returns a text block; ``build_prompt``
puts them in front of the user's prompt.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from .constants import (
    DEFAULT_DIRECTORY_DEPTH, HISTORY_FILE_CANDIDATES, MAX_CONTEXT_SIZE, MAX_HISTORY_ENTRIES,
)
from .errors import ContextError, ContextNotFoundError, ContextPermissionError, ContextTooLargeError
from .logger import logger

# zsh extended history: ": <timestamp>:<duration>;<command>"
ZSH_EXTENDED_ENTRY = re.compile(r"^: \d+:\d+;(.*)$")


@dataclass
class ContextConfig:
    max_size: int = MAX_CONTEXT_SIZE
    include_hidden: bool = False
    max_depth: Optional[int] = DEFAULT_DIRECTORY_DEPTH


@dataclass
class ContextData:
    kind: str
    content: str


def validate_size(size: int, max_size: int, label: str) -> None:
    if size > max_size:
        raise ContextTooLargeError(f"{label} context size {size} exceeds maximum {max_size}")


def should_include_path(path: Path, config: ContextConfig) -> bool:
    return config.include_hidden or not path.name.startswith(".")


class HistoryProvider:
    def __init__(self, config: Optional[ContextConfig] = None, history_path: Optional[Path] = None):
        self.config = config or ContextConfig()
        self.history_path = Path(history_path) if history_path else None

    def _resolve_path(self) -> Path:
        if self.history_path is not None:
            candidates = [self.history_path]
        else:
            candidates = []
            if os.environ.get("HISTFILE"):
                candidates.append(Path(os.environ["HISTFILE"]).expanduser())
            candidates.extend(Path.home() / name for name in HISTORY_FILE_CANDIDATES)

        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise ContextNotFoundError("Shell history file not found")

    @staticmethod
    def parse_entry(line: str) -> str:
        match = ZSH_EXTENDED_ENTRY.match(line)
        return (match.group(1) if match else line).strip()

    def get_context(self) -> ContextData:
        path = self._resolve_path()
        try:
            size = path.stat().st_size
            validate_size(size, self.config.max_size, "Shell history")
            content = path.read_text(encoding="utf-8", errors="replace")
        except PermissionError as e:
            raise ContextPermissionError(f"Permission denied: {path}") from e
        except OSError as e:
            raise ContextError(f"Failed to read shell history: {e}") from e

        entries = []
        for line in reversed(content.splitlines()):
            command = self.parse_entry(line)
            if not command:
                continue
            entries.append(command)
            if len(entries) >= MAX_HISTORY_ENTRIES:
                break

        logger.debug(f"Read {len(entries)} history entries from {path}")
        body = "\n".join(entries)
        return ContextData("history", f"Recent shell history:\n\n{body}\n")


class DirectoryProvider:
    def __init__(self, path: Path, config: Optional[ContextConfig] = None):
        self.path = Path(path)
        self.config = config or ContextConfig()

    def _walk(self, directory: Path, depth: int) -> Iterator[Path]:
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except PermissionError as e:
            raise ContextPermissionError(f"Permission denied: {directory}") from e
        except OSError as e:
            raise ContextError(f"Failed to list {directory}: {e}") from e

        max_depth = self.config.max_depth or 1
        for entry in entries:
            if not should_include_path(entry, self.config):
                continue
            yield entry
            if depth < max_depth and entry.is_dir() and not entry.is_symlink():
                yield from self._walk(entry, depth + 1)

    def get_context(self) -> ContextData:
        if not self.path.is_dir():
            raise ContextNotFoundError(f"Directory not found: {self.path}")

        lines = [f"Directory listing for {self.path}:", ""]
        total_size = 0
        for entry in self._walk(self.path, 1):
            relative = entry.relative_to(self.path).as_posix()
            if entry.is_dir():
                relative += "/"
            total_size += len(relative) + 1
            validate_size(total_size, self.config.max_size, "Directory listing")
            lines.append(relative)

        return ContextData("directory", "\n".join(lines) + "\n")


class FileProvider:
    def __init__(self, path: Path, config: Optional[ContextConfig] = None):
        self.path = Path(path)
        self.config = config or ContextConfig()

    def get_context(self) -> ContextData:
        if not self.path.exists():
            raise ContextNotFoundError(f"File not found: {self.path}")
        if not self.path.is_file():
            raise ContextError(f"Not a regular file: {self.path}")

        try:
            size = self.path.stat().st_size
            validate_size(size, self.config.max_size, "File content")
            content = self.path.read_text(encoding="utf-8")
        except PermissionError as e:
            raise ContextPermissionError(f"Permission denied: {self.path}") from e
        except UnicodeDecodeError as e:
            raise ContextError(f"{self.path} is not a UTF-8 text file") from e
        except OSError as e:
            raise ContextError(f"Failed to read {self.path}: {e}") from e

        return ContextData(
            "file",
            f"File: {self.path}\nSize: {size} bytes\n\nContent:\n{content}\n",
        )


def build_prompt(prompt: str, sections: List[str]) -> str:
    """Prefix the prompt with gathered context, if any"""
    context = "\n\n".join(section.strip() for section in sections if section and section.strip())
    if not context:
        return prompt
    return f"Context:\n{context}\nPrompt: {prompt}"
