"""MD5 helpers for block content signatures.

The identity tracker compares these digests to decide whether a block
still carries the content it had in the previous pass.  They are not used
for security purposes.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def md5_hash(data: str) -> str:
    """Return the hex MD5 digest of *data* encoded as UTF-8.

    >>> md5_hash("hello")
    '5d41402abc4b2a76b9719d911017c592'
    """
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def hash_payload(payload: Any) -> str:
    """Return the hex MD5 of a JSON-serializable value.

    Keys are sorted and ``ensure_ascii`` is off so equal structures hash
    equally regardless of insertion order or script.  Values JSON cannot
    represent natively are passed through :func:`str`.

    >>> hash_payload({"b": 2, "a": 1}) == hash_payload({"a": 1, "b": 2})
    True
    """
    return md5_hash(json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str))
