"""Incrementally discovered column set for a table export."""

from __future__ import annotations

from typing import Iterable, Iterator, Mapping


class HeaderSet:
    """Ordered set of column names seen so far in a run.

    Names are kept in first-seen order and never removed. ``observe`` and
    ``append`` only add to the end; ``prepend`` puts a name first and keeps
    the relative order of everything else.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._names: list[str] = []
        self._index: dict[str, int] = {}
        for name in names:
            self.append(name)

    def observe(self, row: Mapping[str, object]) -> "HeaderSet":
        """Append any column of ``row`` not seen before."""
        for name in row:
            self.append(name)
        return self

    def append(self, name: str) -> "HeaderSet":
        if name not in self._index:
            self._index[name] = len(self._names)
            self._names.append(name)
        return self

    def prepend(self, name: str) -> "HeaderSet":
        if name not in self._index:
            self._names.insert(0, name)
            self._index = {n: i for i, n in enumerate(self._names)}
        return self

    def position(self, name: str) -> int:
        return self._index[name]

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def __repr__(self) -> str:
        return f"HeaderSet({self._names!r})"
