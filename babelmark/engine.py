"""Translation-memory backed batch translation."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import MissingCredentialError, TranslationProviderError
from .memory import TranslationStore
from .providers import TranslationProvider
from .structures import EngineStats, TranslationMode, TranslationSets


class BatchTranslationEngine:
    """Turns an ordered list of strings into one aligned list per language.

    Cache hits are filled in place while misses reserve their output index and
    are queued. The queue is flushed to the provider as a single request each
    time it holds ``batch_size`` strings, and once more after the scan for the
    remainder. Output index ``i`` always corresponds to input index ``i``.
    """

    DEFAULT_BATCH_SIZE = 10

    def __init__(
        self,
        *,
        store: TranslationStore,
        provider: Optional[TranslationProvider],
        source_language: str | None,
        mode: TranslationMode | str = TranslationMode.HYBRID,
        batch_size: int = DEFAULT_BATCH_SIZE,
        memorize: bool = True,
    ) -> None:
        self.mode = TranslationMode.parse(mode)
        if self.mode is not TranslationMode.OFFLINE and provider is None:
            raise MissingCredentialError(
                f"A translation provider is required in {self.mode.value} mode. "
                "Configure provider credentials or run in offline mode."
            )
        self.store = store
        self.provider = provider
        self.source_language = source_language
        self.batch_size = max(1, batch_size)
        self.memorize = memorize
        self.stats = EngineStats()

    def translate(
        self,
        strings: Sequence[str],
        target_languages: Iterable[str],
        mode: TranslationMode | str | None = None,
    ) -> TranslationSets:
        """Translate ``strings`` into every language of ``target_languages``."""

        active_mode = self.mode if mode is None else TranslationMode.parse(mode)
        if active_mode is not TranslationMode.OFFLINE and self.provider is None:
            raise MissingCredentialError(
                f"A translation provider is required in {active_mode.value} mode."
            )

        translations: TranslationSets = {}
        for language in target_languages:
            if active_mode is TranslationMode.OFFLINE:
                translations[language] = self._translate_offline(strings, language)
            else:
                translations[language] = self._translate_remote(
                    strings,
                    language,
                    use_cache=active_mode is TranslationMode.HYBRID,
                )
        return translations

    def _translate_offline(self, strings: Sequence[str], language: str) -> List[str]:
        output: List[str] = []
        for text in strings:
            cached = self.store.get(text, language)
            if cached is not None:
                self.stats.cache_hits += 1
                output.append(cached)
            else:
                self.stats.cache_misses += 1
                output.append(text)
        return output

    def _translate_remote(
        self,
        strings: Sequence[str],
        language: str,
        *,
        use_cache: bool,
    ) -> List[str]:
        output: List[str] = list(strings)
        pending: List[Tuple[int, str]] = []

        for index, text in enumerate(strings):
            if use_cache:
                cached = self.store.get(text, language)
                if cached is not None:
                    self.stats.cache_hits += 1
                    output[index] = cached
                    continue
                self.stats.cache_misses += 1

            pending.append((index, text))
            if len(pending) >= self.batch_size:
                self._flush(pending, language, output)
                pending = []

        if pending:
            self._flush(pending, language, output)
        return output

    def _flush(
        self,
        pending: Sequence[Tuple[int, str]],
        language: str,
        output: List[str],
    ) -> None:
        sources = [text for _, text in pending]
        results = self.provider.translate_batch(  # type: ignore[union-attr]
            sources,
            source_language=self.source_language,
            target_language=language,
        )
        self.stats.provider_calls += 1
        self.stats.provider_strings += len(sources)

        if len(results) != len(sources):
            raise TranslationProviderError(
                f"Provider returned {len(results)} translations for "
                f"{len(sources)} strings."
            )

        for (index, source), translation in zip(pending, results):
            if self.memorize:
                self.store.set(source, language, translation)
                self.stats.memorized += 1
            output[index] = translation
