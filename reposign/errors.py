from __future__ import annotations

"""reposign.errors - exception taxonomy shared by the signing workflows.

Every error carries a human readable message that names the path involved and,
where there is one, the underlying OS error, so the CLI can report it without a
traceback.
"""

from pathlib import Path
from typing import List, Optional


class ReposignError(RuntimeError):
    """Base class for every error raised by reposign."""


# ---------------------------------------------------------------------------
# Key loading (always fatal)
# ---------------------------------------------------------------------------


class KeyLoadError(ReposignError):
    pass


class NoHomeError(KeyLoadError):
    pass


class KeyUnreadableError(KeyLoadError):
    pass


class KeyFormatError(KeyLoadError):
    pass


# ---------------------------------------------------------------------------
# Configuration (fails before any I/O)
# ---------------------------------------------------------------------------


class ConfigError(ReposignError):
    pass


class MissingSignerError(ConfigError):
    pass


class UnsupportedCompressionError(ConfigError):
    pass


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class RepoError(ReposignError):
    pass


class RepoUnreadableError(RepoError):
    pass


class RepoEmptyError(RepoError):
    pass


class RepoLockError(RepoError):
    pass


class RepoFlushError(RepoError):
    pass


# ---------------------------------------------------------------------------
# File signing
# ---------------------------------------------------------------------------


class SignError(ReposignError):
    pass


class SignIOError(SignError):
    pass


class SigningFailedError(SignError):
    pass


class PackageSignError(SignError):
    """Raised when a package batch aborts on *path*.

    ``outcomes`` holds the results recorded before the abort, the failing file
    included as the last entry.
    """

    def __init__(self, path: Path, message: str, outcomes: Optional[List] = None):
        super().__init__(message)
        self.path = Path(path)
        self.outcomes = list(outcomes or [])
