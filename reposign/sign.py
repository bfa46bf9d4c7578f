from __future__ import annotations

"""Repository and package signing workflows.

``sign_repository`` stamps the signing metadata (public key, key size, signer)
on a repository index, rewriting it only when it is stale.  ``sign_packages``
writes a ``<file>.sig`` sidecar next to each package archive.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import logging
import os
import tempfile
from typing import Iterable, List, Optional, Union

from .errors import (
    MissingSignerError,
    PackageSignError,
    RepoEmptyError,
    RepoFlushError,
    SignError,
    SignIOError,
)
from .keys import SigningKey, crypto_init, load_key
from .reconcile import reconcile
from .repository import RepoLock, open_repository, tar_mode
from .signer import Signature, sign_file

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


@dataclass
class RepoSignResult:
    repodir: Path
    package_count: int
    flushed: bool
    reasons: List[str] = field(default_factory=list)


def sign_repository(
    repodir: PathLike,
    privkey: Optional[PathLike] = None,
    signedby: Optional[str] = None,
    compression: Optional[str] = None,
    *,
    arch: Optional[str] = None,
    passphrase: Optional[str] = None,
) -> RepoSignResult:
    """Initialise (or refresh) the signing metadata of the repository at *repodir*."""
    if not signedby:
        raise MissingSignerError(
            "signer identity unset, cannot initialize signed repository"
        )
    tar_mode(compression)

    repo = open_repository(repodir, arch)
    count = repo.package_count
    if count == 0:
        raise RepoEmptyError(f"invalid repository {repodir}: no packages in index")

    crypto_init()
    with load_key(privkey, passphrase) as key:
        rec = reconcile(key, signedby, repo.signing_metadata)

    if not rec.needs_flush:
        log.info("Repository already signed (%s)", _plural(count, "package"))
        return RepoSignResult(Path(repodir), count, flushed=False)

    log.debug("rewriting signing metadata: %s", ", ".join(rec.reasons))
    with RepoLock.acquire(repodir, repo.arch):
        try:
            repo.flush(rec.metadata, compression)
        except OSError as exc:
            raise RepoFlushError(
                f"failed to write repodata {repo.path}: {exc.strerror or exc}"
            ) from exc

    log.info("Initialized signed repository (%s)", _plural(count, "package"))
    return RepoSignResult(Path(repodir), count, flushed=True, reasons=rec.reasons)


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


class SignStatus(Enum):
    SKIPPED = "skipped"
    WRITTEN = "written"
    FAILED = "failed"


@dataclass
class PackageResult:
    path: Path
    sigfile: Path
    status: SignStatus
    signature: Optional[Signature] = None


def sigfile_path(binpkg: PathLike) -> Path:
    return Path(f"{binpkg}.sig")


def _write_sigfile(sigfile: Path, sig: Signature, force: bool) -> None:
    """Write *sig* to *sigfile* through a temporary file in the same directory.

    The sidecar only ever appears complete.  Without *force* it is linked into
    place and ``FileExistsError`` propagates if it already exists.
    """
    fd, tmp = tempfile.mkstemp(dir=str(sigfile.parent), prefix=f".{sigfile.name}.")
    try:
        try:
            written = os.write(fd, sig.data)
            os.fsync(fd)
        finally:
            os.close(fd)
        if written != sig.length:
            raise SignIOError(
                f"failed to write {sigfile}: short write ({written} of {sig.length} bytes)"
            )
        os.chmod(tmp, 0o644)
        if force:
            os.replace(tmp, sigfile)
        else:
            os.link(tmp, sigfile)
    finally:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass


class _BatchKey:
    """Loads the batch key on first use and releases it once."""

    def __init__(self, privkey: Optional[PathLike], passphrase: Optional[str]):
        self._privkey = privkey
        self._passphrase = passphrase
        self._key: Optional[SigningKey] = None

    def get(self) -> SigningKey:
        if self._key is None:
            self._key = load_key(self._privkey, self._passphrase)
        return self._key

    def __enter__(self) -> "_BatchKey":
        return self

    def __exit__(self, *exc) -> None:
        if self._key is not None:
            self._key.release()
            self._key = None


def _sign_one(binpkg: Path, batch_key: _BatchKey, force: bool) -> PackageResult:
    sigfile = sigfile_path(binpkg)
    if not force and os.access(sigfile, os.R_OK):
        log.debug("skipping %s, file signature found.", binpkg)
        return PackageResult(binpkg, sigfile, SignStatus.SKIPPED)

    sig = sign_file(batch_key.get(), binpkg)
    try:
        _write_sigfile(sigfile, sig, force)
    except FileExistsError:
        log.debug("skipping %s, file signature created concurrently.", binpkg)
        return PackageResult(binpkg, sigfile, SignStatus.SKIPPED)
    except OSError as exc:
        raise SignIOError(
            f"failed to create {sigfile}: {exc.strerror or exc}"
        ) from exc
    log.info("signed successfully %s", binpkg)
    return PackageResult(binpkg, sigfile, SignStatus.WRITTEN, signature=sig)


def sign_packages(
    paths: Iterable[PathLike],
    privkey: Optional[PathLike] = None,
    force: bool = False,
    *,
    passphrase: Optional[str] = None,
) -> List[PackageResult]:
    """Sign every package in *paths*, in order, stopping at the first failure.

    Key loading errors propagate unchanged; any other failure raises
    :class:`PackageSignError` with the outcomes recorded so far.
    """
    crypto_init()
    results: List[PackageResult] = []
    with _BatchKey(privkey, passphrase) as batch_key:
        for p in paths:
            binpkg = Path(p)
            try:
                results.append(_sign_one(binpkg, batch_key, force))
            except SignError as exc:
                results.append(
                    PackageResult(binpkg, sigfile_path(binpkg), SignStatus.FAILED)
                )
                raise PackageSignError(
                    binpkg, f"failed to sign {binpkg}: {exc}", results
                ) from exc
    return results
