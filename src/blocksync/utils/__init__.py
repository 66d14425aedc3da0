"""Utility helpers for blocksync."""

from .hashing import hash_payload, md5_hash
from .ids import default_id_factory, is_provisional, mint_provisional_id

__all__ = [
    "default_id_factory",
    "hash_payload",
    "is_provisional",
    "md5_hash",
    "mint_provisional_id",
]
