"""Per-application-session wiring of selection stores and comparisons."""

from __future__ import annotations

import logging
from typing import Callable

from .config import Settings
from .models import NormalizedPerson, NormalizedTitle, SelectionKind
from .services.comparison import CastComparison, ComparisonOrchestrator, FilmographyComparison
from .services.metadata import MetadataProvider
from .services.saved_searches import SavedSearch, SavedSearchStore
from .services.selection import SelectionStore
from .services.storage import KeyValueStore

logger = logging.getLogger(__name__)


class ComparisonSession:
    """Owns the selections and the orchestrators that follow them.

    One instance lives for the duration of an application session and is
    handed to consumers explicitly; ``start`` loads persisted state and
    kicks off the first comparison cycles, ``stop`` detaches listeners.
    """

    def __init__(
        self,
        settings: Settings,
        storage: KeyValueStore,
        provider: MetadataProvider,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.titles: SelectionStore[NormalizedTitle] = SelectionStore.for_titles(
            storage, settings
        )
        self.people: SelectionStore[NormalizedPerson] = SelectionStore.for_people(
            storage, settings
        )
        self.cast_comparison = CastComparison(provider)
        self.filmography_comparison = FilmographyComparison(provider)
        self.saved_searches = SavedSearchStore(storage, settings)
        self._unsubscribers: list[Callable[[], None]] = []
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        self._unsubscribers = [
            self.titles.subscribe(self.cast_comparison.handle_selection),
            self.people.subscribe(self.filmography_comparison.handle_selection),
        ]
        await self.titles.load()
        await self.people.load()
        await self.saved_searches.load()
        self._started = True
        logger.info(
            "Comparison session started with %d title(s) and %d person(s) selected",
            len(self.titles),
            len(self.people),
        )

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.cast_comparison.wait_idle()
        await self.filmography_comparison.wait_idle()
        self._started = False

    def selection(self, kind: SelectionKind) -> SelectionStore:
        if kind == "titles":
            return self.titles
        if kind == "people":
            return self.people
        raise ValueError(f"Unknown selection kind: {kind}")

    def comparison(self, kind: SelectionKind) -> ComparisonOrchestrator:
        if kind == "titles":
            return self.cast_comparison
        if kind == "people":
            return self.filmography_comparison
        raise ValueError(f"Unknown selection kind: {kind}")

    async def restore(self, search: SavedSearch) -> None:
        """Replace the matching selection with a saved search's entries."""

        if search.type == "media":
            await self.titles.replace(search.media_items)
        else:
            await self.people.replace(search.people)
