"""Runtime bootstrap for the torwatch web API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.event_bus import EventBus
from ..core.magnet_resolver import MagnetResolver
from ..core.orchestrator import SearchOrchestrator, TitleLookup
from ..core.settings_manager import SettingsManager
from ..sources.prowlarr import ProwlarrClient
from ..utils.logging_setup import configure_logging


@dataclass
class TorwatchRuntime:
    """Shared service graph used by web endpoints."""

    settings: SettingsManager
    event_bus: EventBus
    client: ProwlarrClient
    resolver: MagnetResolver
    orchestrator: SearchOrchestrator


def build_runtime(
    settings: Optional[SettingsManager] = None,
    title_lookup: Optional[TitleLookup] = None,
) -> TorwatchRuntime:
    """Create and wire core services."""

    settings = settings or SettingsManager()
    configure_logging(settings.get("log_level", "INFO"))
    event_bus = EventBus()
    client = ProwlarrClient(settings)
    resolver = MagnetResolver(settings, event_bus=event_bus)
    orchestrator = SearchOrchestrator(
        settings,
        client,
        resolver=resolver,
        event_bus=event_bus,
        title_lookup=title_lookup,
    )
    return TorwatchRuntime(
        settings=settings,
        event_bus=event_bus,
        client=client,
        resolver=resolver,
        orchestrator=orchestrator,
    )
