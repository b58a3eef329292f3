"""Ignore-region markers: removal before parsing, reinsertion before writing."""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from .errors import UnmatchedRegionError
from .structures import IgnoredRegion

IGNORE_START = "<!-- babelmark-ignore-start -->"
IGNORE_END = "<!-- babelmark-ignore-end -->"

START_PATTERN = re.compile(r"<!--\s*babelmark-ignore-start\s*-->")
END_PATTERN = re.compile(r"<!--\s*babelmark-ignore-end\s*-->")
REGION_PATTERN = re.compile(
    r"<!--\s*babelmark-ignore-start\s*-->(?P<content>[\s\S]*?)<!--\s*babelmark-ignore-end\s*-->"
)


def _line_number(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def strip_ignored_regions(text: str) -> Tuple[str, List[IgnoredRegion]]:
    """Remove content between ignore markers, keeping the markers adjacent.

    Raises :class:`UnmatchedRegionError` for a start marker without a following
    end marker, and for an end marker with no open region.
    """

    pieces: List[str] = []
    regions: List[IgnoredRegion] = []
    cursor = 0

    while True:
        start = START_PATTERN.search(text, cursor)
        limit = start.start() if start else len(text)
        stray_end = END_PATTERN.search(text, cursor, limit)
        if stray_end:
            raise UnmatchedRegionError(
                "Found an ignore end marker without a matching start marker "
                f"(line {_line_number(text, stray_end.start())})."
            )
        if start is None:
            break

        end = END_PATTERN.search(text, start.end())
        if end is None:
            raise UnmatchedRegionError(
                "Found an ignore start marker without a matching end marker "
                f"(line {_line_number(text, start.start())})."
            )

        pieces.append(text[cursor:start.end()])
        pieces.append(end.group(0))
        regions.append(
            IgnoredRegion(
                start_index=start.start(),
                content=text[start.end():end.start()],
            )
        )
        cursor = end.end()

    pieces.append(text[cursor:])
    return "".join(pieces), regions


def restore_ignored_regions(text: str, regions: Sequence[IgnoredRegion]) -> str:
    """Reinsert recorded content between marker pairs, in removal order.

    Surplus regions (more regions than marker pairs) are dropped.
    """

    if not regions:
        return text

    pieces: List[str] = []
    cursor = 0
    for region, match in zip(regions, REGION_PATTERN.finditer(text)):
        pieces.append(text[cursor:match.start()])
        pieces.append(IGNORE_START + region.content + IGNORE_END)
        cursor = match.end()
    pieces.append(text[cursor:])
    return "".join(pieces)
