from __future__ import annotations

"""Decide whether a repository's signing metadata must be rewritten.

The persisted record is compared field by field against the key about to be
used.  Each check is independent and any mismatch (an absent field included)
forces a flush.
"""

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from .keys import SigningKey
from .meta import RepositorySigningMetadata


@dataclass
class Reconciliation:
    needs_flush: bool
    reasons: List[str] = field(default_factory=list)
    metadata: Optional[RepositorySigningMetadata] = None


def reconcile(
    key: SigningKey, signedby: str, current: Optional[Mapping[str, Any]]
) -> Reconciliation:
    current = current or {}
    reasons: List[str] = []

    pubkey = key.public_key_pem()
    if current.get("public-key") != pubkey:
        reasons.append("public_key_mismatch")

    bit_size = key.bit_size
    if current.get("public-key-size") != bit_size:
        reasons.append("public_key_size_mismatch")

    if current.get("signature-by") != signedby:
        reasons.append("signedby_mismatch")

    if not reasons:
        return Reconciliation(needs_flush=False)

    meta = RepositorySigningMetadata(
        public_key=pubkey,
        public_key_size=bit_size,
        signature_by=signedby,
        signature_type="rsa",
    )
    return Reconciliation(needs_flush=True, reasons=reasons, metadata=meta)
