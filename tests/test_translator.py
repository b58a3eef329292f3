"""End-to-end tests for project discovery and translation runs."""

import json
import pathlib

import pytest

from babelmark.configuration import parse_project_config
from babelmark.engine import BatchTranslationEngine
from babelmark.errors import OverwriteRefusedError, UnmatchedRegionError
from babelmark.regions import IGNORE_END, IGNORE_START
from babelmark.structures import TranslationMode
from babelmark.translator import (
    SourceFile,
    TranslationRunner,
    build_engine,
    discover_source_files,
)

IGNORED = f"{IGNORE_START}\nkeep *me*\n{IGNORE_END}"


def make_project(root, output="i18n/$langcode$", **overrides):
    data = {
        "source_language": "en",
        "output_languages": ["fr"],
        "directories": [["docs", output]],
        "json_or_yaml_properties": {"include": ["title"]},
    }
    data.update(overrides)
    return parse_project_config(data, cwd=root)


def make_runner(project, store, provider, mode=TranslationMode.HYBRID):
    engine = BatchTranslationEngine(
        store=store,
        provider=provider,
        source_language=project.source_language,
        mode=mode,
        batch_size=project.batch_size,
    )
    return TranslationRunner(project=project, engine=engine)


@pytest.fixture
def docs(tmp_path):
    root = tmp_path / "docs"
    (root / "guide").mkdir(parents=True)
    (root / "index.md").write_text("# Hello\n\nWorld\n", encoding="utf-8")
    (root / "data.json").write_text(
        json.dumps({"title": "Hello", "id": "home"}), encoding="utf-8"
    )
    (root / "logo.png").write_bytes(b"\x89PNG")
    (root / "guide" / "intro.md").write_text(
        f"Intro\n\n{IGNORED}\n\nOutro\n", encoding="utf-8"
    )
    return root


class TestDiscovery:
    def test_lists_files_in_order(self, tmp_path, docs):
        project = make_project(tmp_path)

        files = discover_source_files(project)

        assert [source.relative_path.as_posix() for source in files] == [
            "data.json",
            "guide/intro.md",
            "index.md",
            "logo.png",
        ]
        assert [source.translatable for source in files] == [True, True, True, False]

    def test_include_and_exclude(self, tmp_path, docs):
        project = make_project(
            tmp_path, files={"include": ["**/*.md"], "exclude": ["guide/*"]}
        )

        assert [source.relative_path.as_posix() for source in discover_source_files(project)] == [
            "index.md"
        ]

    def test_skips_output_inside_source(self, tmp_path, docs):
        stale = docs / "i18n" / "fr" / "old.md"
        stale.parent.mkdir(parents=True)
        stale.write_text("Old\n", encoding="utf-8")
        project = make_project(tmp_path, output="docs/i18n/$langcode$")

        paths = [source.path for source in discover_source_files(project)]

        assert stale not in paths
        assert len(paths) == 4

    def test_output_path_uses_language(self, tmp_path, docs):
        project = make_project(tmp_path)
        source = discover_source_files(project)[1]

        assert source.output_path("de") == tmp_path / "i18n" / "de" / "guide" / "intro.md"


class TestTranslationRun:
    def test_translates_and_copies(self, tmp_path, docs, store, upper_provider):
        project = make_project(tmp_path)

        summary = make_runner(project, store, upper_provider).run()

        out = tmp_path / "i18n" / "fr"
        assert (out / "index.md").read_text(encoding="utf-8") == "# HELLO\n\nWORLD\n"
        assert json.loads((out / "data.json").read_text(encoding="utf-8")) == {
            "title": "HELLO",
            "id": "home",
        }
        assert (out / "logo.png").read_bytes() == b"\x89PNG"
        assert summary.translated_files == 3
        assert summary.copied_files == 1
        assert summary.total_strings == 5
        assert len(summary.written_paths) == 4

    def test_ignored_region_is_kept_verbatim(self, tmp_path, docs, store, upper_provider):
        project = make_project(tmp_path)

        make_runner(project, store, upper_provider).run()

        output = (tmp_path / "i18n" / "fr" / "guide" / "intro.md").read_text(encoding="utf-8")
        assert IGNORED in output
        assert output.startswith("INTRO\n")
        assert output.endswith("OUTRO\n")
        assert all("keep" not in text for batch in upper_provider.batches for text in batch)

    def test_every_language_is_written(self, tmp_path, docs, store, provider):
        project = make_project(tmp_path, output_languages=["fr", "de"])

        make_runner(project, store, provider).run()

        assert (tmp_path / "i18n" / "fr" / "index.md").read_text(encoding="utf-8") == (
            "# fr:Hello\n\nfr:World\n"
        )
        assert (tmp_path / "i18n" / "de" / "index.md").read_text(encoding="utf-8") == (
            "# de:Hello\n\nde:World\n"
        )

    def test_second_run_uses_memory(self, tmp_path, docs, store, upper_provider):
        project = make_project(tmp_path)
        make_runner(project, store, upper_provider).run()
        calls = len(upper_provider.calls)

        summary = make_runner(project, store, upper_provider).run()

        assert len(upper_provider.calls) == calls
        assert summary.stats.cache_hits == 5
        assert summary.stats.provider_calls == 0

    def test_offline_writes_source_text_for_misses(self, tmp_path, docs, store):
        store.set("Hello", "fr", "Bonjour")
        project = make_project(tmp_path)

        make_runner(project, store, None, mode=TranslationMode.OFFLINE).run()

        assert (tmp_path / "i18n" / "fr" / "index.md").read_text(encoding="utf-8") == (
            "# Bonjour\n\nWorld\n"
        )

    def test_unmatched_marker_writes_nothing(self, tmp_path, store, upper_provider):
        root = tmp_path / "docs"
        root.mkdir()
        (root / "broken.md").write_text(f"Text\n\n{IGNORE_START}\nsecret\n", encoding="utf-8")
        project = make_project(tmp_path)

        with pytest.raises(UnmatchedRegionError):
            make_runner(project, store, upper_provider).run()

        assert not (tmp_path / "i18n").exists()
        assert upper_provider.calls == []

    def test_refuses_to_overwrite_source(self, tmp_path, store, upper_provider):
        root = tmp_path / "docs"
        root.mkdir()
        (root / "index.md").write_text("Hello\n", encoding="utf-8")
        project = make_project(tmp_path)
        runner = make_runner(project, store, upper_provider)
        source = SourceFile(
            path=root / "index.md",
            relative_path=pathlib.Path("index.md"),
            output_template=str(root),
        )

        with pytest.raises(OverwriteRefusedError):
            runner.translate_file(source)

    def test_line_breaks_inside_ignored_region_are_kept(self, tmp_path, store, upper_provider):
        root = tmp_path / "docs"
        root.mkdir()
        ignored = f"{IGNORE_START}\nline one<br/>line two <BR>\n{IGNORE_END}"
        (root / "index.md").write_text(
            f"Intro<br>next\n\n{ignored}\n\nOutro\n", encoding="utf-8"
        )
        project = make_project(tmp_path)

        make_runner(project, store, upper_provider).run()

        output = (tmp_path / "i18n" / "fr" / "index.md").read_text(encoding="utf-8")
        assert ignored in output
        assert output.startswith("INTRO<br>NEXT\n")

    def test_checks_every_output_path_before_writing(self, tmp_path, store, upper_provider):
        root = tmp_path / "i18n" / "de"
        root.mkdir(parents=True)
        (root / "index.md").write_text("Hello\n", encoding="utf-8")
        project = make_project(tmp_path, output_languages=["fr", "de"])
        runner = make_runner(project, store, upper_provider)
        source = SourceFile(
            path=root / "index.md",
            relative_path=pathlib.Path("index.md"),
            output_template=str(tmp_path / "i18n" / "$langcode$"),
        )

        with pytest.raises(OverwriteRefusedError, match="de output path"):
            runner.translate_file(source)

        assert not (tmp_path / "i18n" / "fr").exists()
        assert upper_provider.calls == []

    def test_link_anchors_are_translated(self, tmp_path, store, upper_provider):
        root = tmp_path / "docs"
        root.mkdir()
        (root / "index.md").write_text(
            "See [setup](./guide.md#getting-started).\n", encoding="utf-8"
        )
        project = make_project(tmp_path, translate_link_anchors=True)

        make_runner(project, store, upper_provider).run()

        output = (tmp_path / "i18n" / "fr" / "index.md").read_text(encoding="utf-8")
        assert output == "SEE [SETUP](./guide.md#GETTING-STARTED).\n"


class TestBuildEngine:
    def test_offline_needs_no_provider(self, tmp_path, store):
        project = make_project(tmp_path, mode="offline")

        engine = build_engine(project, store=store)

        assert engine.provider is None
        assert engine.mode is TranslationMode.OFFLINE

    def test_mode_and_memorize_overrides(self, tmp_path, store):
        project = make_project(tmp_path, batch_size=3)

        engine = build_engine(
            project,
            store=store,
            settings=type("Settings", (), {"BABELMARK_PROVIDER": "echo"})(),
            mode="online",
            memorize=False,
        )

        assert engine.mode is TranslationMode.ONLINE
        assert engine.provider.name == "echo"
        assert engine.batch_size == 3
        assert not engine.memorize
