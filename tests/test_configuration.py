"""Tests for project file parsing."""

import pytest

from babelmark.configuration import (
    DEFAULT_PROJECT_FILE,
    DirectoryMapping,
    load_project_config,
    parse_project_config,
)
from babelmark.errors import ConfigurationError
from babelmark.structures import TranslationMode

PROJECT = {
    "source_language": "en",
    "output_languages": ["fr", "de"],
    "directories": [["docs", "i18n/$langcode$/docs"]],
    "files": {"include": ["**/*.md"], "exclude": ["drafts/**"]},
    "markdown_nodes": {"inline_code": True},
    "frontmatter_fields": {"include": ["title", "description"]},
    "json_or_yaml_properties": {"all_strings": True, "exclude": ["id"]},
    "batch_size": 25,
    "mode": "offline",
}


class TestParseProjectConfig:
    def test_full_project(self, tmp_path):
        project = parse_project_config(PROJECT, cwd=tmp_path)

        assert project.source_language == "en"
        assert project.output_languages == ["fr", "de"]
        assert project.directories == [
            DirectoryMapping(
                source=(tmp_path / "docs").resolve(),
                output=str(tmp_path / "i18n/$langcode$/docs"),
            )
        ]
        assert project.include == ("**/*.md",)
        assert project.exclude == ("drafts/**",)
        assert project.markdown_nodes.inline_code
        assert not project.markdown_nodes.code
        assert project.frontmatter_fields.include == ("title", "description")
        assert project.json_or_yaml_properties.all_strings
        assert project.json_or_yaml_properties.exclude == ("id",)
        assert project.batch_size == 25
        assert project.mode is TranslationMode.OFFLINE
        assert project.memorize

    def test_defaults(self, tmp_path):
        project = parse_project_config(
            {
                "source_language": "en",
                "output_languages": "fr",
                "directories": [["docs", "out/$langcode$"]],
            },
            cwd=tmp_path,
        )

        assert project.output_languages == ["fr"]
        assert project.include == ("**/*",)
        assert project.exclude == ()
        assert project.batch_size == 10
        assert project.mode is TranslationMode.HYBRID
        assert not project.translate_link_anchors
        assert project.resolved_memory_path == tmp_path / ".babelmark" / "db.sqlite"

    def test_output_for_language(self, tmp_path):
        project = parse_project_config(PROJECT, cwd=tmp_path)

        assert project.directories[0].output_for("fr") == tmp_path / "i18n/fr/docs"

    def test_memory_path_relative_to_project(self, tmp_path):
        project = parse_project_config(dict(PROJECT, memory_path="cache/tm.sqlite"), cwd=tmp_path)

        assert project.resolved_memory_path == tmp_path / "cache" / "tm.sqlite"

    def test_collects_every_error(self, tmp_path):
        with pytest.raises(ConfigurationError) as excinfo:
            parse_project_config(
                {
                    "output_languages": [],
                    "directories": [["docs", "out"]],
                    "batch_size": 0,
                    "mode": "sometimes",
                },
                cwd=tmp_path,
            )

        message = str(excinfo.value)
        assert "source_language is required" in message
        assert "output_languages" in message
        assert "$langcode$" in message
        assert "batch_size" in message
        assert "sometimes" in message

    def test_rejects_non_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError):
            parse_project_config(["not", "a", "mapping"], cwd=tmp_path)


class TestLoadProjectConfig:
    def test_reads_yaml_file(self, tmp_path):
        path = tmp_path / DEFAULT_PROJECT_FILE
        path.write_text(
            "source_language: en\n"
            "output_languages: [es]\n"
            "directories:\n"
            "  - [docs, 'translated/$langcode$']\n",
            encoding="utf-8",
        )

        project = load_project_config(path)

        assert project.cwd == tmp_path.resolve()
        assert project.output_languages == ["es"]
        assert project.directories[0].source == (tmp_path / "docs").resolve()

    def test_default_file_name(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / DEFAULT_PROJECT_FILE).write_text(
            "source_language: en\noutput_languages: [es]\ndirectories: [[a, 'b/$langcode$']]\n",
            encoding="utf-8",
        )

        assert load_project_config().source_language == "en"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_project_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / DEFAULT_PROJECT_FILE
        path.write_text("source_language: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="not valid YAML"):
            load_project_config(path)
