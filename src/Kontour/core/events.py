from __future__ import annotations
from typing import TYPE_CHECKING

from Kontour.core.event_bus import Event

if TYPE_CHECKING:
    from Kontour.core.kubernetes_client import KubernetesClient


class ContextSelectionChanged(Event):
    """A new selector was chosen; ``generation`` identifies this selection."""

    def __init__(self, selector: str, generation: int):
        self.selector = selector
        self.generation = generation


class ClientReady(Event):
    """Resolution for the current generation produced a client."""

    def __init__(self, selector: str, generation: int, client: KubernetesClient):
        self.selector = selector
        self.generation = generation
        self.client = client


class ClientFailed(Event):
    """Resolution for the current generation failed; the previous client stays."""

    def __init__(self, selector: str, generation: int, error: Exception):
        self.selector = selector
        self.generation = generation
        self.error = error
