"""Keyword → last snapshot store.

Learn: The cache outlives trackers. When the last subscriber for a
keyword leaves, the tracker goes away but its final snapshot stays
readable here until the next tracker for that keyword replaces it.
Each entry is the last first page only, never an accumulated history.
"""

from typing import Iterable

from newstracker.news.base import NewsItem


class SnapshotCache:
    def __init__(self) -> None:
        self._snapshots: dict[str, tuple[NewsItem, ...]] = {}

    def get(self, keyword: str) -> list[NewsItem]:
        return list(self._snapshots.get(keyword, ()))

    def put(self, keyword: str, items: Iterable[NewsItem]) -> None:
        self._snapshots[keyword] = tuple(items)

    def keywords(self) -> list[str]:
        return list(self._snapshots)

    def as_dict(self) -> dict[str, list[NewsItem]]:
        return {keyword: list(items) for keyword, items in self._snapshots.items()}

    def __contains__(self, keyword: str) -> bool:
        return keyword in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)
