from __future__ import annotations

"""reposign.repository - on-disk repository index and its write lock.

A repository directory holds ``<arch>-repodata``, a (optionally compressed)
tar archive with two YAML members:

* ``index.yml``       package name -> package entry
* ``index-meta.yml``  signing metadata, present once the repository is signed

Rewrites go to a temporary file in the same directory which is renamed into
place, under an exclusive ``flock`` on ``<arch>-repodata.lock``.
"""

from dataclasses import dataclass, field
from pathlib import Path
import fcntl
import io
import logging
import os
import tarfile
import tempfile
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from . import config
from .errors import RepoLockError, RepoUnreadableError, UnsupportedCompressionError
from .meta import RepositorySigningMetadata

log = logging.getLogger(__name__)

INDEX_MEMBER = "index.yml"
META_MEMBER = "index-meta.yml"

COMPRESSION_MODES: Dict[str, str] = {
    "none": "w",
    "gzip": "w:gz",
    "bzip2": "w:bz2",
    "xz": "w:xz",
}

PathLike = Union[str, Path]


def _arch(arch: Optional[str]) -> str:
    return arch or config.get("arch")


def repodata_path(repodir: PathLike, arch: Optional[str] = None) -> Path:
    return Path(repodir) / f"{_arch(arch)}-repodata"


def lock_path(repodir: PathLike, arch: Optional[str] = None) -> Path:
    return Path(repodir) / f"{_arch(arch)}-repodata.lock"


def tar_mode(compression: Optional[str]) -> str:
    name = (compression or config.get("compression", "gzip")).lower()
    try:
        return COMPRESSION_MODES[name]
    except KeyError:
        raise UnsupportedCompressionError(
            f"unsupported compression '{compression}'. "
            f"Allowed: {sorted(COMPRESSION_MODES)}"
        ) from None


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def _read_member(tar: tarfile.TarFile, name: str) -> Any:
    try:
        member = tar.getmember(name)
    except KeyError:
        return None
    fh = tar.extractfile(member)
    if fh is None:
        return None
    return yaml.safe_load(fh.read())


@dataclass
class Repository:
    """An opened repository index."""

    repodir: Path
    arch: str
    index: Dict[str, Any] = field(default_factory=dict)
    meta: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return repodata_path(self.repodir, self.arch)

    @property
    def package_count(self) -> int:
        return len(self.index)

    @property
    def signing_metadata(self) -> Optional[Dict[str, Any]]:
        """The persisted signing record, or None for an unsigned repository."""
        return self.meta

    def flush(
        self,
        meta: Optional[RepositorySigningMetadata],
        compression: Optional[str] = None,
    ) -> bool:
        repodata_flush(self.repodir, self.arch, self.index, meta, compression)
        self.meta = meta.to_record() if meta is not None else None
        return True


def open_repository(repodir: PathLike, arch: Optional[str] = None) -> Repository:
    arch = _arch(arch)
    path = repodata_path(repodir, arch)
    try:
        with tarfile.open(path, "r:*") as tar:
            index = _read_member(tar, INDEX_MEMBER)
            meta = _read_member(tar, META_MEMBER)
    except OSError as exc:
        raise RepoUnreadableError(
            f"cannot read repository data {path}: {exc.strerror or exc}"
        ) from exc
    except (tarfile.TarError, yaml.YAMLError) as exc:
        raise RepoUnreadableError(f"cannot read repository data {path}: {exc}") from exc

    if index is None:
        index = {}
    if not isinstance(index, dict) or (meta is not None and not isinstance(meta, dict)):
        raise RepoUnreadableError(f"malformed repository data {path}")
    log.debug("opened %s (%d packages)", path, len(index))
    return Repository(repodir=Path(repodir), arch=arch, index=index, meta=meta)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def _add_member(tar: tarfile.TarFile, name: str, payload: Any) -> None:
    data = yaml.safe_dump(payload, sort_keys=True).encode("utf-8")
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = 0o644
    tar.addfile(info, io.BytesIO(data))


def repodata_flush(
    repodir: PathLike,
    arch: Optional[str],
    index: Mapping[str, Any],
    meta: Optional[RepositorySigningMetadata],
    compression: Optional[str] = None,
) -> Path:
    """Atomically (re)write ``<arch>-repodata`` with *index* and *meta*.

    Raises ``OSError`` on failure; the previous repodata is left untouched.
    """
    mode = tar_mode(compression)
    dest = repodata_path(repodir, arch)
    fd, tmp = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.")
    try:
        with os.fdopen(fd, "wb") as raw:
            with tarfile.open(fileobj=raw, mode=mode) as tar:
                _add_member(tar, INDEX_MEMBER, dict(index))
                if meta is not None:
                    _add_member(tar, META_MEMBER, meta.to_record())
            raw.flush()
            os.fsync(raw.fileno())
        os.chmod(tmp, 0o644)
        os.replace(tmp, dest)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise
    log.debug("wrote %s (%s)", dest, mode)
    return dest


# ---------------------------------------------------------------------------
# Write lock
# ---------------------------------------------------------------------------


class RepoLock:
    """Exclusive advisory lock guarding repodata rewrites.

    Acquisition blocks until the lock is free; there is no timeout.
    """

    def __init__(self, path: Path, fd: int):
        self.path = path
        self._fd: Optional[int] = fd

    @classmethod
    def acquire(cls, repodir: PathLike, arch: Optional[str] = None) -> "RepoLock":
        path = lock_path(repodir, arch)
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o660)
        except OSError as exc:
            raise RepoLockError(
                f"cannot lock repository {repodir}: {exc.strerror or exc}"
            ) from exc
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
        except OSError as exc:
            os.close(fd)
            raise RepoLockError(
                f"cannot lock repository {repodir}: {exc.strerror or exc}"
            ) from exc
        log.debug("acquired %s", path)
        return cls(path, fd)

    @property
    def held(self) -> bool:
        return self._fd is not None

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        log.debug("released %s", self.path)

    def __enter__(self) -> "RepoLock":
        return self

    def __exit__(self, *exc) -> None:
        self.release()
