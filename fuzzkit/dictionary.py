"""Dictionaries of byte words used by the mutator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Iterator, Optional

__all__ = ["Word", "DictionaryEntry", "Dictionary"]


@dataclass(frozen=True)
class Word:
    """An immutable byte string of at most :attr:`MAX_SIZE` bytes."""

    MAX_SIZE: ClassVar[int] = 64

    data: bytes

    def __post_init__(self) -> None:
        data = bytes(self.data)
        if len(data) > self.MAX_SIZE:
            raise ValueError(
                f"word of {len(data)} bytes exceeds the limit of {self.MAX_SIZE}"
            )
        object.__setattr__(self, "data", data)

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return self.data


@dataclass
class DictionaryEntry:
    """A word with an optional insertion position and usage statistics."""

    word: Word
    position_hint: Optional[int] = None
    use_count: int = field(default=0, compare=False)
    success_count: int = field(default=0, compare=False)

    def has_position_hint(self) -> bool:
        return self.position_hint is not None

    def inc_use_count(self) -> None:
        self.use_count += 1

    def inc_success_count(self) -> None:
        self.success_count += 1


class Dictionary:
    """A bounded list of entries; entries beyond :attr:`MAX_DICT_SIZE` are dropped."""

    MAX_DICT_SIZE = 1 << 14

    def __init__(self) -> None:
        self._entries: list[DictionaryEntry] = []

    def contains_word(self, word: Word) -> bool:
        return any(entry.word == word for entry in self._entries)

    def append(self, entry: DictionaryEntry) -> None:
        if len(self._entries) < self.MAX_DICT_SIZE:
            self._entries.append(entry)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DictionaryEntry]:
        return iter(self._entries)

    def __getitem__(self, idx: int) -> DictionaryEntry:
        if not 0 <= idx < len(self._entries):
            raise IndexError(f"dictionary index {idx} out of range")
        return self._entries[idx]