"""High-level orchestration for project translation."""

from __future__ import annotations

import fnmatch
import pathlib
import shutil
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .configuration import LANGCODE_PLACEHOLDER, ProjectConfig
from .documents import SUPPORTED_SUFFIXES, DocumentAdapter, detect_adapter
from .engine import BatchTranslationEngine
from .errors import ConfigurationError, OverwriteRefusedError
from .markdown import MarkdownDocumentAdapter
from .memory import TranslationStore
from .postprocess import MarkdownPostProcessor, translate_link_anchors
from .providers import build_provider
from .regions import restore_ignored_regions
from .structures import EngineStats, TranslationMode


@dataclass(frozen=True)
class SourceFile:
    """A file found under a configured source directory."""

    path: pathlib.Path
    relative_path: pathlib.Path
    output_template: str

    def output_path(self, language: str) -> pathlib.Path:
        base = pathlib.Path(self.output_template.replace(LANGCODE_PLACEHOLDER, language))
        return base / self.relative_path

    @property
    def translatable(self) -> bool:
        return self.path.suffix.lower() in SUPPORTED_SUFFIXES


@dataclass
class TranslationSummary:
    """Report returned after processing a project."""

    mode: TranslationMode
    provider_name: str | None
    source_language: str
    output_languages: List[str]
    translated_files: int = 0
    copied_files: int = 0
    total_strings: int = 0
    written_paths: List[pathlib.Path] = field(default_factory=list)
    stats: EngineStats = field(default_factory=EngineStats)
    elapsed_seconds: float = 0.0


def _matches(relative: str, pattern: str) -> bool:
    if fnmatch.fnmatch(relative, pattern):
        return True
    # "**/" also matches files at the top of the source directory
    return pattern.startswith("**/") and fnmatch.fnmatch(relative, pattern[3:])


def _is_within(path: pathlib.Path, directory: pathlib.Path) -> bool:
    try:
        path.relative_to(directory)
    except ValueError:
        return False
    return True


def discover_source_files(project: ProjectConfig) -> List[SourceFile]:
    """List included files of every source directory, in a stable order."""

    output_roots = [
        pathlib.Path(mapping.output_for(language)).resolve()
        for mapping in project.directories
        for language in project.output_languages
    ]

    found: List[SourceFile] = []
    for mapping in project.directories:
        if not mapping.source.is_dir():
            raise ConfigurationError(f"Source directory not found: {mapping.source}")
        for path in sorted(mapping.source.rglob("*")):
            if not path.is_file():
                continue
            resolved = path.resolve()
            if any(_is_within(resolved, root) for root in output_roots):
                continue
            relative = path.relative_to(mapping.source)
            posix = relative.as_posix()
            if not any(_matches(posix, pattern) for pattern in project.include):
                continue
            if any(_matches(posix, pattern) for pattern in project.exclude):
                continue
            found.append(
                SourceFile(path=path, relative_path=relative, output_template=mapping.output)
            )
    return found


def build_engine(
    project: ProjectConfig,
    *,
    store: TranslationStore,
    settings: Any = None,
    mode: TranslationMode | str | None = None,
    memorize: bool | None = None,
    provider_debug: bool = False,
) -> BatchTranslationEngine:
    """Create the engine; a remote provider is only built outside offline mode."""

    active_mode = TranslationMode.parse(mode or project.mode)
    provider = None
    if active_mode is not TranslationMode.OFFLINE:
        provider = build_provider(
            getattr(settings, "BABELMARK_PROVIDER", None),
            settings=settings,
            debug=provider_debug,
        )
    return BatchTranslationEngine(
        store=store,
        provider=provider,
        source_language=project.source_language,
        mode=active_mode,
        batch_size=project.batch_size,
        memorize=project.memorize if memorize is None else memorize,
    )


class TranslationRunner:
    """Coordinates parsing, extraction, translation, replacement and writing."""

    def __init__(
        self,
        *,
        project: ProjectConfig,
        engine: BatchTranslationEngine,
        postprocessor: Optional[MarkdownPostProcessor] = None,
        verbose: bool = False,
    ) -> None:
        self.project = project
        self.engine = engine
        self.postprocessor = postprocessor or MarkdownPostProcessor()
        self.verbose = verbose

    def run(self) -> TranslationSummary:
        start_time = time.time()
        summary = TranslationSummary(
            mode=self.engine.mode,
            provider_name=getattr(self.engine.provider, "name", None),
            source_language=self.project.source_language,
            output_languages=list(self.project.output_languages),
        )

        sources = discover_source_files(self.project)
        if self.verbose:
            print(f"Found {len(sources)} files to process.")

        for source in sources:
            if source.translatable:
                written, string_count = self.translate_file(source)
                summary.translated_files += 1
                summary.total_strings += string_count
            else:
                written = self.copy_file(source)
                summary.copied_files += 1
            summary.written_paths.extend(written)

        summary.stats = self.engine.stats
        summary.elapsed_seconds = time.time() - start_time
        return summary

    def translate_file(self, source: SourceFile) -> tuple[List[pathlib.Path], int]:
        """Translate one document into every output language."""

        if self.verbose:
            print(f"File: {source.relative_path.as_posix()}")
            print("- extracting strings")
        output_paths = self._checked_output_paths(source)
        adapter = self._adapter_for(source.path)
        text = source.path.read_text(encoding="utf-8")
        rendered, string_count = self.translate_text(text, adapter)

        written: List[pathlib.Path] = []
        for language, output in rendered.items():
            output_path = output_paths[language]
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(output, encoding="utf-8")
            written.append(output_path)
            if self.verbose:
                print(f"- wrote {output_path}")
        return written, string_count

    def translate_text(
        self, text: str, adapter: DocumentAdapter
    ) -> tuple[Dict[str, str], int]:
        """Translate source text; return rendered output per language and the string count."""

        is_markdown = isinstance(adapter, MarkdownDocumentAdapter)
        document = adapter.parse(text)
        extraction = adapter.extract(document)
        if self.verbose:
            print(f"- translating {len(extraction)} strings")
        translations = self.engine.translate(
            extraction.texts, self.project.output_languages
        )

        rendered: Dict[str, str] = {}
        for language in self.project.output_languages:
            translated = adapter.replace(document, translations[language])
            output = adapter.render(translated)
            if is_markdown:
                output = self._finish_markdown(output, language)
                output = restore_ignored_regions(output, adapter.ignored_regions(document))
            rendered[language] = output
        return rendered, len(extraction)

    def copy_file(self, source: SourceFile) -> List[pathlib.Path]:
        written: List[pathlib.Path] = []
        for output_path in self._checked_output_paths(source).values():
            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source.path, output_path)
            written.append(output_path)
        if self.verbose:
            print(f"Copied {source.relative_path.as_posix()}")
        return written

    # --- Internal helpers -------------------------------------------------

    def _adapter_for(self, path: pathlib.Path) -> DocumentAdapter:
        return detect_adapter(
            path,
            markdown_options=self.project.markdown_nodes,
            frontmatter=self.project.frontmatter_fields,
            properties=self.project.json_or_yaml_properties,
        )

    def _finish_markdown(self, markdown: str, language: str) -> str:
        if self.project.translate_link_anchors:
            markdown = translate_link_anchors(
                markdown,
                lambda anchors: self.engine.translate(anchors, [language])[language],
            )
        return self.postprocessor.process(markdown)

    def _checked_output_paths(self, source: SourceFile) -> Dict[str, pathlib.Path]:
        """Resolve every language's output path, refusing before anything is written."""

        output_paths: Dict[str, pathlib.Path] = {}
        for language in self.project.output_languages:
            output_path = source.output_path(language)
            if output_path.resolve() == source.path.resolve():
                raise OverwriteRefusedError(
                    f"The {language} output path for {source.relative_path} matches "
                    "the source file. Refusing to overwrite it."
                )
            output_paths[language] = output_path
        return output_paths
