"""Resolve named automation scripts to their source text."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..util.log import Log

log = Log.create({"service": "automation.loader"})

_SCRIPT_DIR = Path(__file__).parent / "scripts"
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
SCRIPT_SUFFIX = ".jxa"


class ScriptLoadError(Exception):
    """A named script could not be found or read."""

    def __init__(self, name: str, detail: str | None = None):
        self.name = name
        message = f"Failed to load automation script: {name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ScriptLoader:
    """Looks up ``<name>.jxa`` in the configured directories, then the bundled ones.

    Loaded text is memoized per name; ``clear()`` drops the memo.
    """

    def __init__(self, directories: Optional[Sequence[str | Path]] = None):
        self._directories: List[Path] = [Path(d).expanduser() for d in directories or []]
        self._directories.append(_SCRIPT_DIR)
        self._memo: Dict[str, str] = {}

    @property
    def directories(self) -> List[Path]:
        return list(self._directories)

    def path(self, name: str) -> Path:
        """Return the first existing file for ``name``."""
        if not _NAME_PATTERN.match(name):
            raise ScriptLoadError(name, "invalid script name")
        for directory in self._directories:
            candidate = directory / f"{name}{SCRIPT_SUFFIX}"
            if candidate.is_file():
                return candidate
        raise ScriptLoadError(name, "not in " + ", ".join(str(d) for d in self._directories))

    def load(self, name: str) -> str:
        cached = self._memo.get(name)
        if cached is not None:
            return cached

        path = self.path(name)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ScriptLoadError(name, str(e)) from e

        log.debug("loaded script", {"script": name, "path": str(path)})
        self._memo[name] = text
        return text

    def available(self) -> List[str]:
        """Names of all scripts reachable from the search path."""
        names: set[str] = set()
        for directory in self._directories:
            if directory.is_dir():
                names.update(p.stem for p in directory.glob(f"*{SCRIPT_SUFFIX}"))
        return sorted(names)

    def clear(self) -> None:
        self._memo.clear()
