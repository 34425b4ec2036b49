"""Confine tool-supplied paths to the sandbox root."""

import logging
import os
from pathlib import Path

from toolgate.domain.exceptions import SandboxViolationError

logger = logging.getLogger(__name__)


class SandboxPathResolver:
    """
    Resolve user-provided paths against a fixed sandbox root.

    Relative paths are joined onto the root. Absolute paths are taken as-is.
    Either way the result is fully resolved (``..`` collapsed, symlinks
    followed) and must stay inside the root, otherwise SandboxViolationError
    is raised before any filesystem call is made with it.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> Path:
        """Create the sandbox directory if it does not exist yet."""
        if not self._root.exists():
            logger.info(f"Creating sandbox directory: {self._root}")
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def resolve(self, path: str) -> Path:
        if os.path.isabs(path):
            resolved = Path(path).resolve()
        else:
            resolved = (self._root / path).resolve()

        if not resolved.is_relative_to(self._root):
            logger.warning(f"Sandbox violation: '{path}' resolves to {resolved}")
            raise SandboxViolationError(path, str(self._root))

        return resolved

    def relative(self, path: Path) -> str:
        """Path relative to the root, for display in tool results."""
        relative = path.relative_to(self._root)
        return relative.as_posix() or "."
