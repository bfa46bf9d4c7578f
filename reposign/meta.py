from __future__ import annotations

"""reposign.meta - Pydantic model of the repository signing metadata.

The record is persisted as ``index-meta.yml`` inside the repodata archive with
the dashed key names used on disk (``public-key``, ``public-key-size``,
``signature-by``, ``signature-type``).
"""

from typing import Any, Dict, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field


class RepositorySigningMetadata(BaseModel):
    """Public key, key size and signer identity stamped on a signed repository."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    public_key: bytes = Field(..., alias="public-key", min_length=1)
    public_key_size: int = Field(..., alias="public-key-size", ge=0, le=0xFFFF)
    signature_by: str = Field(..., alias="signature-by", min_length=1)
    signature_type: Literal["rsa"] = Field("rsa", alias="signature-type")

    def to_record(self) -> Dict[str, Any]:
        """Mapping with on-disk key names, ready for YAML."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "RepositorySigningMetadata":
        return cls.model_validate(dict(record))
