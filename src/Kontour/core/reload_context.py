from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from Kontour.config import DEFAULT_KUBECONFIG
from Kontour.core.event_bus import EventBus
from Kontour.core.events import ClientFailed, ClientReady, ContextSelectionChanged
from Kontour.core.exceptions import KubeconfigError
from Kontour.core.kubernetes_client import ClientFactory, KubernetesClient
from Kontour.logger import get_logger

log = logging.getLogger(__name__)


class ReloadContext:
    """
    Holds the current selector and the client built for it.

    Each ``select()`` is published as a ``ContextSelectionChanged`` carrying a
    new generation number. Resolution runs in a background task; when it
    finishes its result is applied only if its generation is still the latest.
    A stale client is closed right away. Superseded clients may still be in
    use by in-flight fetches, so they are kept until ``aclose()``.
    """

    def __init__(
        self,
        factory: ClientFactory,
        event_bus: Optional[EventBus] = None,
        selector: str = DEFAULT_KUBECONFIG,
    ) -> None:
        self._factory = factory
        self.event_bus = event_bus or EventBus(get_logger("EventBus"))
        self._selector = selector
        self._generation = 0
        self._client: Optional[KubernetesClient] = None
        self._retired: List[KubernetesClient] = []
        self._last_error: Optional[KubeconfigError] = None
        self._latest_task: Optional[asyncio.Task[None]] = None
        self._tasks: Set[asyncio.Task[None]] = set()

        self.event_bus.subscribe(ContextSelectionChanged, self._on_selection_changed)

    @property
    def selector(self) -> str:
        return self._selector

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def client(self) -> Optional[KubernetesClient]:
        return self._client

    @property
    def last_error(self) -> Optional[KubeconfigError]:
        return self._last_error

    async def select(self, selector: str) -> int:
        """Makes ``selector`` current and starts resolving it. Returns its generation."""
        self._generation += 1
        self._selector = selector
        log.debug("Selection changed to '%s' (generation %d)", selector, self._generation)
        await self.event_bus.publish(
            ContextSelectionChanged(selector=selector, generation=self._generation)
        )
        return self._generation

    async def reload(self) -> int:
        """Re-resolves the current selector."""
        return await self.select(self._selector)

    async def wait(self) -> None:
        """Waits until the most recent resolution has been applied or discarded."""
        while self._latest_task is not None:
            task = self._latest_task
            await task
            if task is self._latest_task:
                return

    async def _on_selection_changed(self, event: ContextSelectionChanged) -> None:
        task = asyncio.create_task(self._resolve(event.selector, event.generation))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._latest_task = task

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _resolve(self, selector: str, generation: int) -> None:
        try:
            new_client = await self._factory.resolve_and_connect(selector)
        except KubeconfigError as e:
            if not self._is_current(generation):
                log.debug("Ignoring failure for stale selection '%s': %s", selector, e)
                return
            self._last_error = e
            log.warning("Could not switch to '%s': %s", selector, e)
            await self.event_bus.publish(
                ClientFailed(selector=selector, generation=generation, error=e)
            )
            return

        if not self._is_current(generation):
            log.info(
                "Discarding client for stale selection '%s' (generation %d, current %d)",
                selector,
                generation,
                self._generation,
            )
            await new_client.close()
            return

        if self._client is not None:
            self._retired.append(self._client)
        self._client = new_client
        self._last_error = None
        log.info("Active context is now '%s'", selector)
        await self.event_bus.publish(
            ClientReady(selector=selector, generation=generation, client=new_client)
        )

    async def aclose(self) -> None:
        """Waits for pending resolutions, then closes every client ever made current."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        clients = self._retired + ([self._client] if self._client is not None else [])
        self._retired = []
        self._client = None
        for api_client in clients:
            await api_client.close()
