"""Cosmetic Markdown rewriting applied once per translated output."""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Sequence, Tuple

from .regions import IGNORE_END

BR_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
BR_COMMENT_PATTERN = re.compile(r"<?!--\s*br\s*-->")
CODE_BLOCK_PATTERN = re.compile(r"^(```|~~~).*?^\1[ \t]*$", re.MULTILINE | re.DOTALL)
PLACEHOLDER = "<!--tmp-safety-replace-{index}-->"

LINK_ANCHOR_PATTERN = re.compile(r"(\[[^\]]+\])\((?!https?:)([^#)\s]*)#([^)\s]+)\)")

Rule = Tuple[re.Pattern, str]

DEFAULT_RULES: List[Rule] = [
    # translated arrows come back escaped
    (re.compile(r"-\\?&gt;"), "->"),
    (re.compile(r"\\&gt;"), ">"),
    (re.compile(r"\\&lt;"), "<"),
    # end marker losing its opening bracket
    (re.compile(r"^!--\s*babelmark-ignore-end\s*-->", re.MULTILINE), IGNORE_END),
    # self-closed tags the browser would not close
    (re.compile(r"(<iframe\b[^>]*?)\s*/>"), r"\1></iframe>"),
    (re.compile(r"(<i\s[^>]*?)\s*/>"), r"\1></i>"),
    (re.compile(r"</tr>\s*<tr>"), "</tr><tr>"),
    # blank line around standalone images
    (re.compile(r"([^\n])\n(^!\[[^\]]*\]\([^()]+\)$)", re.MULTILINE), r"\1\n\n\2"),
    (re.compile(r"(^!\[[^\]]*\]\([^()]+\)$)\n([^\n])", re.MULTILINE), r"\1\n\n\2"),
    # escaped task list boxes
    (re.compile(r"^(\s*-\s)\\\[( |x)\]", re.MULTILINE), r"\1[\2]"),
]


def prepare_markdown(markdown: str) -> str:
    """Turn ``<br>`` tags into comments so they survive parsing and translation."""

    return BR_PATTERN.sub("<!-- br -->", markdown)


class MarkdownPostProcessor:
    """Applies regex rules to rendered Markdown, leaving fenced code untouched."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None) -> None:
        self.rules: List[Rule] = list(DEFAULT_RULES if rules is None else rules)

    def process(self, markdown: str) -> str:
        blocks: List[str] = []

        def _protect(match: re.Match) -> str:
            blocks.append(match.group(0))
            return PLACEHOLDER.format(index=len(blocks) - 1)

        text = CODE_BLOCK_PATTERN.sub(_protect, markdown)
        for pattern, replacement in self.rules:
            text = pattern.sub(replacement, text)
        text = BR_COMMENT_PATTERN.sub("<br>", text)

        for index, block in enumerate(blocks):
            block = BR_COMMENT_PATTERN.sub("<br>", block)
            text = text.replace(PLACEHOLDER.format(index=index), block, 1)
        return text


def anchor_to_words(anchor: str) -> str:
    """Convert a slug such as ``getting-started---setup`` to ``getting started - setup``."""

    words = anchor.replace("---", " - ")
    return re.sub(r"(?<=\S)-(?=\S)", " ", words)


def words_to_anchor(words: str) -> str:
    return words.strip().replace(" ", "-")


def translate_link_anchors(
    markdown: str,
    translate: Callable[[List[str]], List[str]],
) -> str:
    """Translate the ``#anchor`` part of relative links.

    ``translate`` receives the anchors as words, in document order, and must
    return a list of the same length.
    """

    matches = list(LINK_ANCHOR_PATTERN.finditer(markdown))
    if not matches:
        return markdown

    sources = [anchor_to_words(match.group(3)) for match in matches]
    translated = translate(sources)

    pieces: List[str] = []
    cursor = 0
    for match, words in zip(matches, translated):
        label, target = match.group(1), match.group(2)
        pieces.append(markdown[cursor:match.start()])
        pieces.append(f"{label}({target}#{words_to_anchor(words)})")
        cursor = match.end()
    pieces.append(markdown[cursor:])
    return "".join(pieces)
