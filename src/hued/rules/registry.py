"""
Name-keyed registry for events and scenes.

Contents are only ever replaced as a whole, so readers never observe a
half-loaded registry.
"""

from typing import Dict, Generic, Iterator, List, Mapping, Optional, TypeVar

T = TypeVar("T")


class Registry(Generic[T]):
    """A mapping of unique names to items, replaced atomically."""

    def __init__(self, kind: str, items: Optional[Mapping[str, T]] = None) -> None:
        self.kind = kind
        self._items: Dict[str, T] = dict(items or {})

    def replace(self, items: Mapping[str, T]) -> None:
        """Swap in a complete new set of items."""
        self._items = dict(items)

    def get(self, name: str) -> Optional[T]:
        return self._items.get(name)

    def names(self) -> List[str]:
        return list(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __repr__(self) -> str:
        return f"Registry({self.kind}, {len(self._items)} items)"
