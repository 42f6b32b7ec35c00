"""Per-user directories for omnirelay.

Paths follow the platform conventions provided by ``platformdirs``. Nothing
is created on import; callers create directories when they first write.
Setting ``OMNIRELAY_TEST_HOME`` moves every directory under that root.
"""

import os
from pathlib import Path
from typing import Optional

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "omnirelay"


class GlobalPath:
    """Global path management for omnirelay directories."""

    @classmethod
    def _test_root(cls) -> Optional[Path]:
        override = os.environ.get("OMNIRELAY_TEST_HOME")
        return Path(override) / f".{APP_NAME}" if override else None

    @classmethod
    def data(cls) -> str:
        """Application data directory."""
        root = cls._test_root()
        return str(root / "data") if root else user_data_dir(APP_NAME)

    @classmethod
    def log(cls) -> str:
        """Log file directory."""
        return str(Path(cls.data()) / "log")

    @classmethod
    def config(cls) -> str:
        """Configuration directory."""
        root = cls._test_root()
        return str(root / "config") if root else user_config_dir(APP_NAME)

    @classmethod
    def ensure(cls, path: str) -> Path:
        """Create ``path`` if needed and return it."""
        target = Path(path)
        target.mkdir(parents=True, exist_ok=True)
        return target
