"""Prepper-backed runtime settings and the YAML project file."""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Literal, Mapping, Sequence, Tuple

import yaml
from dotenv import dotenv_values
from prepper import (
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .documents import PropertySelector
from .errors import ConfigurationError
from .markdown import MarkdownNodes
from .structures import TranslationMode

APP_NAME = "Babelmark"
DEFAULT_PROJECT_FILE = "babelmark.config.yaml"
DEFAULT_MEMORY_PATH = ".babelmark/db.sqlite"
LANGCODE_PLACEHOLDER = "$langcode$"


class BabelmarkConfig(SchemaModel):
    """Schema describing all supported runtime settings."""

    BABELMARK_PROVIDER: Literal[
        "deepl", "openai", "azure_openai", "legacy_openai", "echo"
    ] = Field(
        default="deepl",
        description="Remote translation provider selection.",
    )
    DEEPL_AUTH_KEY: str | None = Field(default=None, secret=True)
    DEEPL_SERVER_URL: str | None = Field(default=None)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    OPENAI_MODEL: str | None = Field(default=None)
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    BABELMARK_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_provider(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("BABELMARK_PROVIDER")
            if isinstance(raw_value, str):
                normalized = raw_value.strip().lower().replace("-", "_")
                synonyms = {
                    "azure_open_ai": "azure_openai",
                    "azureopenai": "azure_openai",
                    "azure": "azure_openai",
                    "openai_legacy": "legacy_openai",
                    "legacy": "legacy_openai",
                    "noop": "echo",
                    "mock": "echo",
                }
                normalized = synonyms.get(normalized, normalized)
                if normalized not in {
                    "deepl", "openai", "azure_openai", "legacy_openai", "echo"
                }:
                    normalized = "deepl"
                data["BABELMARK_PROVIDER"] = normalized
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=BabelmarkConfig,
        )

        model = BabelmarkConfig.validate(combined, provenance=provenance)
        return ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=BabelmarkConfig,
        )
    except IoError as exc:
        raise ConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise ConfigurationError(f"Configuration schema error: {exc}") from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise ConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> BabelmarkConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


# --- Project file -------------------------------------------------------------


@dataclass(frozen=True)
class DirectoryMapping:
    """A source directory and the output directory template it maps to."""

    source: pathlib.Path
    output: str

    def output_for(self, language: str) -> pathlib.Path:
        return pathlib.Path(self.output.replace(LANGCODE_PLACEHOLDER, language))


@dataclass
class ProjectConfig:
    """Settings describing what to translate and where to write it."""

    source_language: str
    output_languages: List[str]
    cwd: pathlib.Path = field(default_factory=pathlib.Path.cwd)
    directories: List[DirectoryMapping] = field(default_factory=list)
    include: Tuple[str, ...] = ("**/*",)
    exclude: Tuple[str, ...] = ()
    markdown_nodes: MarkdownNodes = field(default_factory=MarkdownNodes)
    frontmatter_fields: PropertySelector = field(default_factory=PropertySelector)
    json_or_yaml_properties: PropertySelector = field(default_factory=PropertySelector)
    batch_size: int = 10
    memorize: bool = True
    mode: TranslationMode = TranslationMode.HYBRID
    translate_link_anchors: bool = False
    memory_path: pathlib.Path | None = None

    @property
    def resolved_memory_path(self) -> pathlib.Path:
        if self.memory_path is None:
            return self.cwd / DEFAULT_MEMORY_PATH
        if self.memory_path.is_absolute():
            return self.memory_path
        return self.cwd / self.memory_path


def _string_list(value: Any, key: str, errors: List[str]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    errors.append(f"{key} must be a string or a list of strings.")
    return ()


def _selector(value: Any, key: str, errors: List[str]) -> PropertySelector:
    if value is None:
        return PropertySelector()
    if not isinstance(value, Mapping):
        errors.append(f"{key} must be a mapping with include/exclude lists.")
        return PropertySelector()
    return PropertySelector(
        include=_string_list(value.get("include"), f"{key}.include", errors),
        exclude=_string_list(value.get("exclude"), f"{key}.exclude", errors),
        all_strings=bool(value.get("all_strings", False)),
    )


def parse_project_config(data: Any, *, cwd: pathlib.Path) -> ProjectConfig:
    """Validate a project mapping and build a :class:`ProjectConfig`."""

    if not isinstance(data, Mapping):
        raise ConfigurationError("The project file must contain a mapping at the root.")

    errors: List[str] = []

    source_language = data.get("source_language")
    if not isinstance(source_language, str) or not source_language.strip():
        errors.append("source_language is required.")
        source_language = ""

    output_languages = list(_string_list(data.get("output_languages"), "output_languages", errors))
    if not output_languages:
        errors.append("output_languages must list at least one language.")

    directories: List[DirectoryMapping] = []
    for entry in data.get("directories") or []:
        if (
            not isinstance(entry, (list, tuple))
            or len(entry) != 2
            or not all(isinstance(part, str) for part in entry)
        ):
            errors.append("directories entries must be [source, output] pairs.")
            continue
        source, output = entry
        if LANGCODE_PLACEHOLDER not in output:
            errors.append(f"Output directory '{output}' must contain {LANGCODE_PLACEHOLDER}.")
            continue
        directories.append(
            DirectoryMapping(source=(cwd / source).resolve(), output=str(cwd / output))
        )
    if not directories:
        errors.append("directories must list at least one [source, output] pair.")

    files = data.get("files") or {}
    if not isinstance(files, Mapping):
        errors.append("files must be a mapping with include/exclude lists.")
        files = {}
    include = _string_list(files.get("include"), "files.include", errors) or ("**/*",)
    exclude = _string_list(files.get("exclude"), "files.exclude", errors)

    nodes_data = data.get("markdown_nodes") or {}
    if not isinstance(nodes_data, Mapping):
        errors.append("markdown_nodes must be a mapping.")
        nodes_data = {}
    markdown_nodes = MarkdownNodes(
        code=bool(nodes_data.get("code", False)),
        inline_code=bool(nodes_data.get("inline_code", False)),
        html=bool(nodes_data.get("html", False)),
    )

    batch_size = data.get("batch_size", 10)
    if not isinstance(batch_size, int) or isinstance(batch_size, bool) or batch_size < 1:
        errors.append("batch_size must be a positive integer.")
        batch_size = 10

    try:
        mode = TranslationMode.parse(data.get("mode", "hybrid"))
    except ValueError as exc:
        errors.append(str(exc))
        mode = TranslationMode.HYBRID

    memory_path = data.get("memory_path")
    if memory_path is not None and not isinstance(memory_path, str):
        errors.append("memory_path must be a string.")
        memory_path = None

    frontmatter_fields = _selector(data.get("frontmatter_fields"), "frontmatter_fields", errors)
    properties = _selector(
        data.get("json_or_yaml_properties"), "json_or_yaml_properties", errors
    )

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ConfigurationError(
            "Project configuration errors detected:\n" + bullet_list
        )

    return ProjectConfig(
        source_language=source_language.strip(),
        output_languages=output_languages,
        cwd=cwd,
        directories=directories,
        include=include,
        exclude=exclude,
        markdown_nodes=markdown_nodes,
        frontmatter_fields=frontmatter_fields,
        json_or_yaml_properties=properties,
        batch_size=batch_size,
        memorize=bool(data.get("memorize", True)),
        mode=mode,
        translate_link_anchors=bool(data.get("translate_link_anchors", False)),
        memory_path=pathlib.Path(memory_path) if memory_path else None,
    )


def load_project_config(path: str | pathlib.Path | None = None) -> ProjectConfig:
    """Read the YAML project file; relative paths resolve against its directory."""

    config_path = pathlib.Path(path or DEFAULT_PROJECT_FILE).expanduser()
    if not config_path.is_absolute():
        config_path = pathlib.Path.cwd() / config_path
    if not config_path.is_file():
        raise ConfigurationError(f"Project file not found: {config_path}")

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Project file could not be read: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Project file is not valid YAML: {exc}") from exc

    return parse_project_config(data, cwd=config_path.parent.resolve())
