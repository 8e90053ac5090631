"""Most-recently-used list of feed sources.

The list is ordered (most recent first), unique ignoring case and a trailing
slash, and capped.
One entry is marked active; it is the default source of the next session.
"""

import logging
from collections.abc import Callable, Iterable, Iterator

from feedpublish.config.models import FeedPublishSettings

logger = logging.getLogger(__name__)

SourcesListener = Callable[[tuple[str, ...]], None]


def normalize_source(source: str) -> str:
    """Canonical form of a source URL: stripped, case-folded, no trailing slash."""
    return source.strip().rstrip("/").casefold()


def same_source(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return left is right
    return normalize_source(left) == normalize_source(right)


class RecentSourceManager:
    """Ordered set of remembered feed sources with one active entry."""

    def __init__(
        self,
        sources: Iterable[str] = (),
        active_source: str | None = None,
        max_items: int = 5,
    ) -> None:
        if max_items < 1:
            raise ValueError(f"max_items must be at least 1, got {max_items}")
        self.max_items = max_items
        self._sources: list[str] = []
        self._listeners: list[SourcesListener] = []
        # Oldest first so the first item of `sources` ends up at the front
        for source in reversed(list(sources)):
            self._insert_front(source)
        self.active_source = active_source

    @classmethod
    def from_settings(cls, settings: FeedPublishSettings) -> "RecentSourceManager":
        config = settings.sources
        return cls(config.items, config.active, config.max_items)

    def save_to(self, settings: FeedPublishSettings) -> None:
        settings.sources.items = list(self._sources)
        settings.sources.active = self.active_source
        settings.sources.max_items = self.max_items

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(self._sources)

    def __iter__(self) -> Iterator[str]:
        return iter(self.sources)

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source: object) -> bool:
        if not isinstance(source, str):
            return False
        return any(same_source(source, existing) for existing in self._sources)

    def add(self, source: str) -> None:
        """Insert source at the front, or move it there if already known."""
        if not source or not source.strip():
            return
        if self._sources and self._sources[0] == source.strip():
            return
        self._insert_front(source)
        logger.debug("Promoted source %s", source)
        self._notify()

    def subscribe(self, listener: SourcesListener) -> Callable[[], None]:
        """Call listener with the new snapshot whenever the list changes.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _insert_front(self, source: str) -> None:
        source = source.strip()
        if not source:
            return
        self._sources = [s for s in self._sources if not same_source(s, source)]
        self._sources.insert(0, source)
        del self._sources[self.max_items :]

    def _notify(self) -> None:
        snapshot = self.sources
        for listener in list(self._listeners):
            listener(snapshot)
