"""Shared fixtures for the Babelmark test suite."""

from typing import Callable, List, Optional, Sequence

import pytest

from babelmark.memory import InMemoryTranslationStore
from babelmark.providers import TranslationProvider


class RecordingProvider(TranslationProvider):
    """Provider stub that records every batch it receives."""

    name = "recording"

    def __init__(self, transform: Optional[Callable[[str, str], str]] = None) -> None:
        self.calls: List[dict] = []
        self.transform = transform or (lambda text, language: f"{language}:{text}")

    def translate_batch(
        self,
        strings: Sequence[str],
        *,
        source_language: Optional[str],
        target_language: str,
    ) -> List[str]:
        self.calls.append(
            {
                "strings": list(strings),
                "source_language": source_language,
                "target_language": target_language,
            }
        )
        return [self.transform(text, target_language) for text in strings]

    @property
    def batches(self) -> List[List[str]]:
        return [call["strings"] for call in self.calls]


@pytest.fixture
def store():
    """Empty in-memory translation store."""
    return InMemoryTranslationStore()


@pytest.fixture
def provider():
    """Provider that prefixes translations with the target language."""
    return RecordingProvider()


@pytest.fixture
def upper_provider():
    """Provider that upper-cases every string."""
    return RecordingProvider(lambda text, language: text.upper())
