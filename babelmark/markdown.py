"""Markdown adapter built on markdown-it-py tokens and the mdformat renderer."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import mdformat_tables
import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token
from mdformat.renderer import MDRenderer

from .documents import DocumentAdapter, LeafVisitor, PropertySelector, walk_value
from .errors import DocumentParseError
from .postprocess import prepare_markdown
from .regions import END_PATTERN, START_PATTERN, strip_ignored_regions
from .structures import IgnoredRegion

FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(?P<body>.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)

RUN_TYPES = {"text", "softbreak"}
CODE_BLOCK_TYPES = {"fence", "code_block"}


@dataclass(frozen=True)
class MarkdownNodes:
    """Switches for Markdown nodes that are skipped unless enabled."""

    code: bool = False
    inline_code: bool = False
    html: bool = False


@dataclass
class MarkdownDocument:
    """A parsed Markdown file: body tokens plus the parts kept aside."""

    tokens: List[Token]
    env: Dict[str, Any] = field(default_factory=dict)
    frontmatter: Any = None
    frontmatter_raw: Optional[str] = None
    regions: List[IgnoredRegion] = field(default_factory=list)


def build_markdown_parser() -> MarkdownIt:
    """Create a CommonMark parser with pipe tables whose renderer emits Markdown."""

    mdit = MarkdownIt("commonmark", renderer_cls=MDRenderer)
    mdit.options["mdformat"] = {}
    mdit.options["store_labels"] = True
    mdit.options["parser_extension"] = [mdformat_tables]
    mdformat_tables.update_mdit(mdit)
    mdit.options["codeformatters"] = {}
    return mdit


def _pad_visit(text: str, visit: LeafVisitor) -> Optional[str]:
    """Visit the stripped text and re-apply the original padding.

    Returns ``None`` when the leaf is not translatable or is left unchanged.
    """

    core = text.strip()
    if not core:
        return None
    translated = visit(core)
    if translated == core:
        return None
    lead = text[: len(text) - len(text.lstrip())]
    trail = text[len(text.rstrip()):]
    return lead + translated.strip() + trail


def _is_ignore_marker(content: str) -> bool:
    return bool(START_PATTERN.search(content) or END_PATTERN.search(content))


class MarkdownDocumentAdapter(DocumentAdapter):
    """Extracts and replaces text runs in Markdown (and MDX) documents.

    Consecutive ``text`` and ``softbreak`` tokens of one inline container form
    a single leaf, so a sentence wrapped over several source lines reaches the
    provider in one piece. Emphasis, links, code and hard breaks end a run.
    """

    format_name = "markdown"

    def __init__(
        self,
        *,
        nodes: MarkdownNodes | None = None,
        frontmatter: PropertySelector | None = None,
    ) -> None:
        self.nodes = nodes or MarkdownNodes()
        self.frontmatter = frontmatter or PropertySelector()
        self._mdit = build_markdown_parser()

    # --- Parsing and rendering --------------------------------------------

    def parse(self, text: str) -> MarkdownDocument:
        stripped, regions = strip_ignored_regions(text)
        stripped = prepare_markdown(stripped)

        frontmatter: Any = None
        frontmatter_raw: Optional[str] = None
        body = stripped
        match = FRONTMATTER_PATTERN.match(stripped)
        if match:
            frontmatter_raw = match.group("body")
            try:
                frontmatter = yaml.safe_load(frontmatter_raw)
            except yaml.YAMLError as exc:
                raise DocumentParseError(f"Invalid front matter: {exc}") from exc
            body = stripped[match.end():]

        env: Dict[str, Any] = {}
        tokens = self._mdit.parse(body, env)
        return MarkdownDocument(
            tokens=tokens,
            env=env,
            frontmatter=frontmatter,
            frontmatter_raw=frontmatter_raw,
            regions=regions,
        )

    def render(self, document: MarkdownDocument) -> str:
        body = self._mdit.renderer.render(
            document.tokens, self._mdit.options, dict(document.env)
        )
        if document.frontmatter_raw is not None:
            return f"---\n{document.frontmatter_raw}\n---\n\n{body}"
        if document.frontmatter is not None:
            dumped = yaml.safe_dump(
                document.frontmatter,
                allow_unicode=True,
                sort_keys=False,
                default_flow_style=False,
            )
            return f"---\n{dumped}---\n\n{body}"
        return body

    def ignored_regions(self, document: MarkdownDocument) -> List[IgnoredRegion]:
        return list(document.regions)

    # --- Traversal ----------------------------------------------------------

    def walk(self, document: MarkdownDocument, visit: LeafVisitor) -> MarkdownDocument:
        if isinstance(document.frontmatter, dict):
            updated = walk_value(document.frontmatter, self.frontmatter, visit)
            if updated != document.frontmatter:
                document.frontmatter = updated
                document.frontmatter_raw = None

        for token in document.tokens:
            if token.type == "inline":
                self._walk_inline(token, visit)
            elif token.type in CODE_BLOCK_TYPES and self.nodes.code:
                self._visit_content(token, visit)
            elif token.type == "html_block" and self.nodes.html:
                if not _is_ignore_marker(token.content):
                    self._visit_content(token, visit)
        return document

    def _visit_content(self, token: Token, visit: LeafVisitor) -> None:
        replaced = _pad_visit(token.content, visit)
        if replaced is not None:
            token.content = replaced

    def _walk_inline(self, token: Token, visit: LeafVisitor) -> None:
        children = token.children or []
        rebuilt: List[Token] = []
        changed = False
        index = 0

        while index < len(children):
            child = children[index]
            if child.type in RUN_TYPES:
                end = index
                while end < len(children) and children[end].type in RUN_TYPES:
                    end += 1
                run = children[index:end]
                replacement = self._visit_run(run, visit)
                if replacement is None:
                    rebuilt.extend(run)
                else:
                    rebuilt.extend(replacement)
                    changed = True
                index = end
                continue

            if child.type == "code_inline" and self.nodes.inline_code:
                self._visit_content(child, visit)
            elif child.type == "html_inline" and self.nodes.html:
                if not _is_ignore_marker(child.content):
                    self._visit_content(child, visit)
            rebuilt.append(child)
            index += 1

        if changed:
            token.children = rebuilt

    def _visit_run(self, run: Sequence[Token], visit: LeafVisitor) -> Optional[List[Token]]:
        text = "".join("\n" if part.type == "softbreak" else part.content for part in run)
        replaced = _pad_visit(text, visit)
        if replaced is None:
            return None

        level = run[0].level
        tokens: List[Token] = []
        for number, line in enumerate(replaced.split("\n")):
            if number:
                tokens.append(Token("softbreak", "br", 0, level=level))
            if line:
                tokens.append(Token("text", "", 0, level=level, content=line))
        return tokens
