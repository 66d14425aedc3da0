"""Pending provisional -> confirmed id mappings."""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping

from blocksync.observability import get_logger, log_fields

_log = get_logger("blocksync.identity")


class ConfirmationLedger:
    """Confirmations supplied by the host and not yet applied.

    Entries are consumed when the identity tracker next claims the
    provisional id, or all at once through :meth:`take_matching`.  Recording
    the same mapping twice is harmless: the second entry overwrites the first.
    """

    __slots__ = ("_pending",)

    def __init__(self) -> None:
        self._pending: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, provisional_id: object) -> bool:
        return provisional_id in self._pending

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._pending))

    def __repr__(self) -> str:
        return f"ConfirmationLedger({self._pending!r})"

    def confirm(self, provisional_id: str, confirmed_id: str) -> None:
        """Record that *provisional_id* is now known as *confirmed_id*."""
        if provisional_id == confirmed_id:
            return
        self._pending[provisional_id] = confirmed_id

    def confirm_many(self, mapping: Mapping[str, str]) -> None:
        for provisional_id, confirmed_id in mapping.items():
            self.confirm(provisional_id, confirmed_id)

    def get(self, provisional_id: str) -> str | None:
        return self._pending.get(provisional_id)

    def consume(self, provisional_id: str) -> str | None:
        """Remove and return the confirmation for *provisional_id*, if any."""
        return self._pending.pop(provisional_id, None)

    def take_matching(self, block_ids: Collection[str]) -> dict[str, str]:
        """Remove and return every confirmation whose provisional id is in *block_ids*."""
        taken = {bid: self._pending.pop(bid) for bid in block_ids if bid in self._pending}
        return taken

    def discard_stale(self, live_ids: Collection[str]) -> list[str]:
        """Drop confirmations for ids that no longer exist in the document.

        A block deleted locally before its confirmation arrived leaves an
        entry nothing will ever claim.
        """
        stale = [bid for bid in self._pending if bid not in live_ids]
        for bid in stale:
            del self._pending[bid]
        if stale:
            _log.debug(
                "stale confirmations dropped",
                extra=log_fields(op="confirm", dropped=len(stale), ids=stale),
            )
        return stale

    def snapshot(self) -> dict[str, str]:
        return dict(self._pending)

    def clear(self) -> None:
        self._pending.clear()
