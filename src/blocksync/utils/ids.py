"""Provisional block id helpers."""

from __future__ import annotations

import uuid
from collections.abc import Callable


def default_id_factory() -> str:
    return str(uuid.uuid4())


def mint_provisional_id(prefix: str, factory: Callable[[], str] | None = None) -> str:
    """Return a fresh provisional id: *prefix* followed by a random token.

    Parameters
    ----------
    prefix:
        The configured provisional prefix (``"temp-"`` by default).
    factory:
        Callable producing the random part.  UUID4 when ``None``.
    """
    return f"{prefix}{(factory or default_id_factory)()}"


def is_provisional(block_id: str, prefix: str) -> bool:
    """Return ``True`` if *block_id* was minted locally and not yet confirmed."""
    return block_id.startswith(prefix)
