# =============================================================================
# Realtime Client -- Subscription Registry
# =============================================================================
#
# One disposer per live registration. A single dispose_all() per connect
# cycle tears down message listeners and the reconciliation task together.
# =============================================================================

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable

from ._logging import logger

if TYPE_CHECKING:
    from .transport import Transport
    from .types import Message

Disposer = Callable[[], Any]


class SubscriptionRegistry:
    """Ordered list of disposers with idempotent bulk teardown."""

    def __init__(self) -> None:
        self._disposers: list[Disposer] = []

    def __len__(self) -> int:
        return len(self._disposers)

    def track(self, disposer: Disposer) -> None:
        self._disposers.append(disposer)

    def bind(
        self,
        transport: Transport,
        handler: Callable[[Message], Any],
        message_types: Iterable[str] | None = None,
    ) -> None:
        """Register *handler* on *transport* and track the disposers.

        With a non-empty *message_types*, one listener is added per
        distinct tag. Otherwise a single wildcard listener receives
        every message.
        """
        selectors = list(dict.fromkeys(message_types or ()))
        if selectors:
            for msg_type in selectors:
                self.track(transport.on(msg_type, handler))
        else:
            self.track(transport.on_any(handler))

    def dispose_all(self) -> None:
        """Run every disposer in insertion order, then forget them all."""
        if not self._disposers:
            return

        # Swap first so a disposer that re-enters sees an empty registry
        disposers, self._disposers = self._disposers, []
        for disposer in disposers:
            try:
                disposer()
            except Exception as exc:
                logger.warning("Subscription teardown failed: %s", exc)
