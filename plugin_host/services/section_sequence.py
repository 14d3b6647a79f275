"""Ordered membership of a course section."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class SectionSequence:
    """
    Ordered, duplicate-free list of course module ids.

    Stored as a comma-delimited string in course_sections.sequence; that
    encoding stays inside from_storage()/to_storage().
    """

    def __init__(self, ids: Iterable[int] = ()):
        self._ids: list[int] = []
        for course_module_id in ids:
            self.append(course_module_id)

    @classmethod
    def from_storage(cls, value: str | None) -> SectionSequence:
        if not value:
            return cls()
        return cls(int(part) for part in value.split(",") if part.strip())

    def to_storage(self) -> str:
        return ",".join(str(course_module_id) for course_module_id in self._ids)

    def append(self, course_module_id: int) -> None:
        if course_module_id not in self._ids:
            self._ids.append(course_module_id)

    def remove(self, course_module_id: int) -> bool:
        if course_module_id in self._ids:
            self._ids.remove(course_module_id)
            return True
        return False

    @property
    def ids(self) -> list[int]:
        return list(self._ids)

    def __contains__(self, course_module_id: object) -> bool:
        return course_module_id in self._ids

    def __iter__(self) -> Iterator[int]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SectionSequence):
            return self._ids == other._ids
        return NotImplemented

    def __repr__(self) -> str:
        return f"SectionSequence({self._ids!r})"
