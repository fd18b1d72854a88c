"""TypeRouter — dispatch decoded payloads to handlers by their ``tipo`` tag."""

from __future__ import annotations

import logging
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from .payloads import DISCRIMINATOR, PayloadRegistry

if TYPE_CHECKING:
    from collections.abc import Callable

    from .payloads import BasePayload

logger = logging.getLogger("pubsub.routing")


class TypeRouter:
    """Routes payload mappings to per-category handlers.

    Payloads whose tag has no route are ignored, so a subscriber built on a
    router processes its own categories and still acknowledges the rest.
    The router is a valid ``RetryPolicy.wrap`` process function.

    Usage::

        router = TypeRouter()

        @router.route("pedido")
        async def on_order(order: OrderPayload) -> None:
            ...

        handler = RetryPolicy(max_attempts=3).wrap(router)
    """

    def __init__(self, registry: PayloadRegistry | None = None) -> None:
        self._registry = registry or PayloadRegistry.default()
        self._routes: dict[str, Callable[[BasePayload], Any]] = {}

    def route(
        self,
        tipo: str,
        handler: Callable[[BasePayload], Any] | None = None,
    ) -> Any:
        """Register *handler* for *tipo*; without *handler* acts as a decorator."""
        if handler is None:

            def decorator(
                fn: Callable[[BasePayload], Any],
            ) -> Callable[[BasePayload], Any]:
                self._routes[tipo] = fn
                return fn

            return decorator
        self._routes[tipo] = handler
        return handler

    def has_route(self, tipo: str) -> bool:
        return tipo in self._routes

    async def __call__(self, payload: dict[str, Any]) -> None:
        tipo = payload.get(DISCRIMINATOR)
        handler = self._routes.get(tipo) if isinstance(tipo, str) else None
        if handler is None:
            logger.debug("No route for %s=%r; ignoring payload", DISCRIMINATOR, tipo)
            return
        typed = self._registry.parse(payload)
        result = handler(typed)
        if isawaitable(result):
            await result
