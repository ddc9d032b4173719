from __future__ import annotations

import threading


class SyncCancelled(Exception):
    """Raised inside a sync pass once its token has been cancelled."""


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a sync pass.

    The pass polls the token between phases and between items; work that has
    already started always runs to completion.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SyncCancelled()
