"""Page-break planning over a laid-out worksheet.

Everything here is pure: the layout pass in ``pdf.py`` measures blocks,
these functions decide where pages start and end.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from quickworksheet.models.worksheet import VocabularyItem

BREAK_THRESHOLD = 0.7


@dataclass(frozen=True)
class Block:
    """Vertical span of one structural block, measured from the surface top."""
    start: float
    end: float
    kind: str = "exercise"
    index: int = 0

    @property
    def height(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class PageSlice:
    top: float
    bottom: float

    @property
    def height(self) -> float:
        return self.bottom - self.top


def paginate(
    surface_height: float,
    page_height: float,
    blocks: Sequence[Block],
    threshold: float = BREAK_THRESHOLD,
) -> list[PageSlice]:
    """Cut a tall surface into page windows.

    Greedy, one page at a time. The tentative break sits one page below the
    page top. An exercise block that starts past ``threshold`` of the page
    and would be cut by the tentative break pulls the break up to its start,
    so it begins on the next page instead. Blocks starting earlier, or taller
    than a page, are cut where the page ends.
    """
    if page_height <= 0:
        raise ValueError("page_height must be positive")
    if surface_height <= 0:
        return [PageSlice(0.0, 0.0)]

    exercise_blocks = sorted((b for b in blocks if b.kind == "exercise"), key=lambda b: b.start)
    pages: list[PageSlice] = []
    top = 0.0
    while top < surface_height:
        tentative = top + page_height
        bottom = tentative
        if tentative < surface_height:
            limit = top + threshold * page_height
            for block in exercise_blocks:
                if limit < block.start < tentative and block.end > tentative:
                    bottom = block.start
                    break
        bottom = min(bottom, surface_height)
        pages.append(PageSlice(top, bottom))
        top = bottom
    return pages


# ──────────────────────────────────────────────
# Vocabulary reference sheet (millimetres, top-down)
# ──────────────────────────────────────────────

VOCAB_MARGIN = 20
VOCAB_LINE_HEIGHT = 8
VOCAB_BOTTOM_LIMIT = 270
VOCAB_ITEM_GAP = 4
VOCAB_HEADING = "Vocabulary Reference Sheet"


@dataclass(frozen=True)
class VocabularyLine:
    kind: str  # heading | term | definition | example
    text: str
    x: float
    y: float


@dataclass
class VocabularyPage:
    lines: list[VocabularyLine] = field(default_factory=list)


# text, kind, x -> wrapped lines
Wrapper = Callable[[str, str, float], list[str]]


def _no_wrap(text: str, kind: str, x: float) -> list[str]:
    return [text]


def paginate_vocabulary(
    items: Sequence[VocabularyItem],
    wrap: Optional[Wrapper] = None,
) -> list[VocabularyPage]:
    """Place the vocabulary sheet on pages with a fixed line height.

    A page break is taken before an item, or before its example, once the
    cursor has passed the bottom limit. Overflow pages repeat the heading
    with "(continued)".
    """
    wrap = wrap or _no_wrap
    if not items:
        return []

    pages: list[VocabularyPage] = []

    def new_page(continued: bool) -> VocabularyPage:
        heading = f"{VOCAB_HEADING} (continued)" if continued else VOCAB_HEADING
        page = VocabularyPage([VocabularyLine("heading", heading, VOCAB_MARGIN, VOCAB_MARGIN + 10)])
        pages.append(page)
        return page

    page = new_page(continued=False)
    y = VOCAB_MARGIN + 25

    def place(kind: str, text: str, x: float) -> None:
        nonlocal y
        for line in wrap(text, kind, x):
            page.lines.append(VocabularyLine(kind, line, x, y))
            y += VOCAB_LINE_HEIGHT

    for number, item in enumerate(items, start=1):
        if y > VOCAB_BOTTOM_LIMIT:
            page = new_page(continued=True)
            y = VOCAB_MARGIN + 25
        place("term", f"{number}. {item.term}", VOCAB_MARGIN)
        place("definition", item.definition, VOCAB_MARGIN + 5)
        if item.example:
            if y > VOCAB_BOTTOM_LIMIT:
                page = new_page(continued=True)
                y = VOCAB_MARGIN + 25
            place("example", f'Example: "{item.example}"', VOCAB_MARGIN + 10)
        y += VOCAB_ITEM_GAP
    return pages
