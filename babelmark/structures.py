"""Core data structures for the Babelmark translator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List


class TranslationMode(str, Enum):
    """How the engine balances the translation memory against the provider."""

    OFFLINE = "offline"
    ONLINE = "online"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: "str | TranslationMode") -> "TranslationMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(
            f"Unknown translation mode '{value}'. Use hybrid, offline or online."
        )


@dataclass(frozen=True)
class StringRecord:
    """A translatable string and its position in the extraction order."""

    index: int
    text: str


@dataclass
class ExtractionResult:
    """Ordered strings extracted from one document."""

    records: List[StringRecord] = field(default_factory=list)

    def append(self, text: str) -> StringRecord:
        record = StringRecord(index=len(self.records), text=text)
        self.records.append(record)
        return record

    @property
    def texts(self) -> List[str]:
        return [record.text for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[StringRecord]:
        return iter(self.records)


@dataclass(frozen=True)
class IgnoredRegion:
    """Content removed from a document between ignore markers."""

    start_index: int
    content: str


@dataclass(frozen=True)
class MemoryEntry:
    """A single translation memory row."""

    source: str
    language: str
    translation: str


@dataclass
class EngineStats:
    """Counters collected while translating one string list."""

    cache_hits: int = 0
    cache_misses: int = 0
    provider_calls: int = 0
    provider_strings: int = 0
    memorized: int = 0


TranslationSets = Dict[str, List[str]]
