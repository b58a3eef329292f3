"""Document adapters: string extraction and replacement over parsed documents."""

from __future__ import annotations

import copy
import json
import pathlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Tuple

import yaml

from .errors import (
    DocumentParseError,
    ReplacementMismatchError,
    UnsupportedFileTypeError,
)
from .structures import ExtractionResult, IgnoredRegion

LeafVisitor = Callable[[str], str]

MARKDOWN_SUFFIXES = {".md", ".mdx", ".markdown"}
JSON_SUFFIXES = {".json"}
YAML_SUFFIXES = {".yaml", ".yml"}
SUPPORTED_SUFFIXES = MARKDOWN_SUFFIXES | JSON_SUFFIXES | YAML_SUFFIXES


@dataclass(frozen=True)
class PropertySelector:
    """Chooses which string leaves of a value tree are translatable.

    A leaf is selected when ``all_strings`` is set, or when its nearest
    property name or its dotted key path is listed in ``include``. Any key on
    the path (or the dotted path itself) listed in ``exclude`` deselects it.
    List items inherit the property name of their list.
    """

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    all_strings: bool = False

    def selects(self, path: Tuple[str, ...]) -> bool:
        dotted = ".".join(path)
        if dotted in self.exclude or any(key in self.exclude for key in path):
            return False
        if self.all_strings:
            return True
        if not path:
            return False
        return path[-1] in self.include or dotted in self.include


def walk_value(
    value: Any,
    selector: PropertySelector,
    visit: LeafVisitor,
    path: Tuple[str, ...] = (),
) -> Any:
    """Visit selected string leaves depth-first and return the rebuilt tree."""

    if isinstance(value, str):
        if value.strip() and selector.selects(path):
            return visit(value)
        return value
    if isinstance(value, dict):
        return {
            key: walk_value(item, selector, visit, path + (str(key),))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [walk_value(item, selector, visit, path) for item in value]
    return value


class DocumentAdapter(ABC):
    """Common base class for document adapters.

    Subclasses provide a single traversal, :meth:`walk`, which both
    :meth:`extract` and :meth:`replace` drive. The visitor receives the text
    of each translatable leaf in document order and returns its new text.
    """

    format_name = "document"

    @abstractmethod
    def parse(self, text: str) -> Any:
        """Parse source text into a document."""

    @abstractmethod
    def walk(self, document: Any, visit: LeafVisitor) -> Any:
        """Visit translatable leaves in order and return the updated document."""

    @abstractmethod
    def render(self, document: Any) -> str:
        """Serialise a document back into text."""

    def ignored_regions(self, document: Any) -> List[IgnoredRegion]:
        """Regions removed at parse time that must be restored after rendering."""

        return []

    def extract(self, document: Any) -> ExtractionResult:
        result = ExtractionResult()

        def _collect(text: str) -> str:
            result.append(text)
            return text

        self.walk(document, _collect)
        return result

    def replace(self, document: Any, translations: Sequence[str]) -> Any:
        """Return a copy of ``document`` with the i-th leaf set to ``translations[i]``."""

        position = 0

        def _consume(text: str) -> str:
            nonlocal position
            if position >= len(translations):
                raise ReplacementMismatchError(
                    f"Document has more translatable leaves than the "
                    f"{len(translations)} translations provided."
                )
            translated = translations[position]
            position += 1
            return translated

        replaced = self.walk(copy.deepcopy(document), _consume)
        if position != len(translations):
            raise ReplacementMismatchError(
                f"Replacement visited {position} leaves but "
                f"{len(translations)} translations were provided."
            )
        return replaced


class JsonDocumentAdapter(DocumentAdapter):
    """Extracts and replaces selected string values in JSON documents."""

    format_name = "json"

    def __init__(self, selector: PropertySelector | None = None, *, indent: int = 2) -> None:
        self.selector = selector or PropertySelector()
        self.indent = indent

    def parse(self, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise DocumentParseError(f"Invalid JSON: {exc}") from exc

    def walk(self, document: Any, visit: LeafVisitor) -> Any:
        return walk_value(document, self.selector, visit)

    def render(self, document: Any) -> str:
        return json.dumps(document, ensure_ascii=False, indent=self.indent) + "\n"


class YamlDocumentAdapter(DocumentAdapter):
    """Extracts and replaces selected string values in YAML documents."""

    format_name = "yaml"

    def __init__(self, selector: PropertySelector | None = None) -> None:
        self.selector = selector or PropertySelector()

    def parse(self, text: str) -> Any:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise DocumentParseError(f"Invalid YAML: {exc}") from exc

    def walk(self, document: Any, visit: LeafVisitor) -> Any:
        return walk_value(document, self.selector, visit)

    def render(self, document: Any) -> str:
        if document is None:
            return ""
        return yaml.safe_dump(
            document,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
        )


def detect_adapter(
    path: pathlib.Path,
    *,
    markdown_options: Any = None,
    frontmatter: PropertySelector | None = None,
    properties: PropertySelector | None = None,
) -> DocumentAdapter:
    """Select an appropriate adapter for the provided file."""

    suffix = path.suffix.lower()
    if suffix in MARKDOWN_SUFFIXES:
        from .markdown import MarkdownDocumentAdapter

        return MarkdownDocumentAdapter(nodes=markdown_options, frontmatter=frontmatter)
    if suffix in JSON_SUFFIXES:
        return JsonDocumentAdapter(properties)
    if suffix in YAML_SUFFIXES:
        return YamlDocumentAdapter(properties)
    raise UnsupportedFileTypeError(
        f"This file type isn't supported: {path.name}. "
        "Use .md, .mdx, .json, .yaml or .yml."
    )
