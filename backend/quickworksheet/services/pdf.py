"""PDF rendering for student and teacher worksheets.

The worksheet body is laid out once into a tall surface at the A4 content
width, stored as a PDF form XObject, and every page shows a clipped window
of it. Page windows come from ``pagination.paginate`` so that exercises
starting near the bottom of a page move to the next one. The vocabulary
reference sheet follows as native text on its own pages.

The surface is kept as vectors rather than a 2x oversampled raster image:
page windows and break positions are the same either way, text stays
selectable and files stay small.
"""

import io
import logging
import re
from dataclasses import dataclass
from xml.sax.saxutils import escape as xml_escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas as pdf_canvas
from reportlab.platypus import Flowable, Paragraph, Spacer, Table, TableStyle

from quickworksheet.models.worksheet import (
    RenderedExercise,
    RenderedWorksheet,
    WorksheetView,
)
from quickworksheet.services.pagination import (
    Block,
    PageSlice,
    paginate,
    paginate_vocabulary,
)

logger = logging.getLogger("quickworksheet.pdf")

PAGE_WIDTH, PAGE_HEIGHT = A4
PAGE_MARGIN = 15 * mm
CONTENT_WIDTH = PAGE_WIDTH - 2 * PAGE_MARGIN
CONTENT_HEIGHT = PAGE_HEIGHT - 2 * PAGE_MARGIN

# Upper bound handed to wrap() during the layout pass
_LAYOUT_HEIGHT = 1_000_000

SURFACE_FORM = "worksheetSurface"


# ──────────────────────────────────────────────
# Colours
# ──────────────────────────────────────────────
_PRIMARY = colors.Color(0.31, 0.27, 0.90)       # indigo
_HEADER_BG = colors.Color(0.93, 0.93, 0.99)     # exercise header band
_INTRO_BG = colors.Color(1.00, 0.98, 0.92)      # amber wash
_TIP_BG = colors.Color(0.94, 0.96, 1.00)        # teacher tip box
_ANSWER = colors.Color(0.02, 0.59, 0.41)        # emerald
_MUTED = colors.Color(0.45, 0.45, 0.45)
_RULE = colors.Color(0.82, 0.82, 0.82)


# ──────────────────────────────────────────────
# Unicode → latin-1 safe replacements
# ──────────────────────────────────────────────
_UNICODE_REPLACEMENTS = {
    "—": "-",   # em dash
    "–": "-",   # en dash
    "‘": "'",   # left single quote
    "’": "'",   # right single quote
    "“": '"',   # left double quote
    "”": '"',   # right double quote
    "…": "...", # ellipsis
    "→": "->",  # right arrow
    "•": "*",   # bullet
    "✓": "v",   # check mark
}

_TAG_RE = re.compile(r"<[^>]+>")


def _sanitize_text(text: str) -> str:
    """Drop markup and replace characters Helvetica/latin-1 cannot encode."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    for char, replacement in _UNICODE_REPLACEMENTS.items():
        text = text.replace(char, replacement)
    return text.encode("latin-1", errors="replace").decode("latin-1")


def _para_text(text: str) -> str:
    """Sanitized and escaped for Paragraph mini-markup."""
    return xml_escape(_sanitize_text(text)).replace("\n", "<br/>")


def export_filename(title: str, view: WorksheetView) -> str:
    """worksheet-<title, non-alphanumerics as dashes, lowercased>-<view>.pdf"""
    slug = re.sub(r"[^a-z0-9]", "-", title, flags=re.IGNORECASE).lower()
    return f"worksheet-{slug}-{WorksheetView(view).value}.pdf"


@dataclass
class PlacedFlowable:
    flowable: Flowable
    top: float
    height: float


@dataclass
class Surface:
    """Result of the layout pass: positioned flowables plus block spans."""
    width: float
    height: float
    placed: list[PlacedFlowable]
    blocks: list[Block]


@dataclass
class RenderedPdf:
    data: bytes
    page_count: int
    surface_pages: list[PageSlice]


class PDFService:
    """Lays out a rendered worksheet view and writes it as a PDF."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()
        self._page_count = 0

    def _setup_custom_styles(self):
        self.styles.add(ParagraphStyle(
            name='WorksheetTitle',
            fontName='Helvetica-Bold',
            fontSize=20,
            leading=24,
            spaceAfter=4,
            alignment=TA_CENTER,
            textColor=_PRIMARY,
        ))
        self.styles.add(ParagraphStyle(
            name='WorksheetSubtitle',
            fontName='Helvetica',
            fontSize=10,
            textColor=_MUTED,
            alignment=TA_CENTER,
            spaceAfter=12,
        ))
        self.styles.add(ParagraphStyle(
            name='IntroText',
            fontName='Helvetica',
            fontSize=10,
            leading=14,
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            fontName='Helvetica-Bold',
            fontSize=11,
            leading=14,
            textColor=_PRIMARY,
            spaceAfter=4,
        ))
        self.styles.add(ParagraphStyle(
            name='ExerciseTitle',
            fontName='Helvetica-Bold',
            fontSize=12,
            leading=15,
            textColor=_PRIMARY,
        ))
        self.styles.add(ParagraphStyle(
            name='ExerciseTime',
            fontName='Helvetica',
            fontSize=9,
            leading=15,
            textColor=_MUTED,
            alignment=TA_RIGHT,
        ))
        self.styles.add(ParagraphStyle(
            name='Instructions',
            fontName='Helvetica-Bold',
            fontSize=10,
            leading=13,
            textColor=colors.Color(0.3, 0.3, 0.3),
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='BodyText10',
            fontName='Helvetica',
            fontSize=10,
            leading=14,
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='QuestionText',
            fontName='Helvetica',
            fontSize=10,
            leading=14,
            spaceAfter=4,
            leftIndent=14,
            firstLineIndent=-14,
        ))
        self.styles.add(ParagraphStyle(
            name='OptionText',
            fontName='Helvetica',
            fontSize=9.5,
            leading=12,
            leftIndent=24,
            spaceAfter=1,
        ))
        self.styles.add(ParagraphStyle(
            name='CellText',
            fontName='Helvetica',
            fontSize=9.5,
            leading=12,
        ))
        self.styles.add(ParagraphStyle(
            name='TipText',
            fontName='Helvetica',
            fontSize=9,
            leading=12,
        ))

    # ──────────────────────────────────────────
    # Main entry point
    # ──────────────────────────────────────────
    def generate_worksheet_pdf(self, worksheet: RenderedWorksheet) -> RenderedPdf:
        """Render one view of a worksheet to PDF bytes."""
        surface = self.layout(worksheet)
        slices = paginate(surface.height, CONTENT_HEIGHT, surface.blocks)

        buffer = io.BytesIO()
        canv = pdf_canvas.Canvas(buffer, pagesize=A4)
        canv.setTitle(_sanitize_text(worksheet.title))
        self._page_count = 0

        self._draw_surface_form(canv, surface)
        for page in slices:
            self._draw_surface_page(canv, surface, page)

        for vocab_page in paginate_vocabulary(worksheet.vocabulary, wrap=self._wrap_vocabulary):
            self._draw_vocabulary_page(canv, vocab_page)

        canv.save()
        logger.info(
            "PDF rendered: view=%s surface=%.0fpt pages=%d",
            worksheet.view.value, surface.height, self._page_count,
        )
        return RenderedPdf(buffer.getvalue(), self._page_count, slices)

    # ──────────────────────────────────────────
    # Layout pass
    # ──────────────────────────────────────────
    def layout(self, worksheet: RenderedWorksheet, width: float = CONTENT_WIDTH) -> Surface:
        """Measure every flowable at ``width`` and stack them top-down.

        Each exercise is a single flowable, so its span is the exercise
        block used for page-break decisions.
        """
        placed: list[PlacedFlowable] = []
        blocks: list[Block] = []
        y = 0.0
        for kind, index, flowable in self._build_story(worksheet):
            y += flowable.getSpaceBefore()
            _, height = flowable.wrap(width, _LAYOUT_HEIGHT)
            placed.append(PlacedFlowable(flowable, y, height))
            if kind == "exercise":
                blocks.append(Block(y, y + height, "exercise", index))
            y += height + flowable.getSpaceAfter()
        return Surface(width, y, placed, blocks)

    def _build_story(self, worksheet: RenderedWorksheet):
        """Yield (kind, index, flowable) in reading order."""
        yield "header", 0, Paragraph(_para_text(worksheet.title), self.styles['WorksheetTitle'])
        if worksheet.subtitle:
            yield "header", 0, Paragraph(_para_text(worksheet.subtitle), self.styles['WorksheetSubtitle'])

        yield "header", 0, self._header_fields(worksheet)
        yield "header", 0, Spacer(1, 8)

        intro = worksheet.introduction or worksheet.content
        if intro:
            yield "intro", 0, self._boxed(
                [Paragraph(_para_text(intro), self.styles['IntroText'])], _INTRO_BG,
            )
            yield "intro", 0, Spacer(1, 10)

        if worksheet.view is WorksheetView.TEACHER and worksheet.teacher_notes:
            yield "notes", 0, self._boxed([
                Paragraph("Teacher Notes", self.styles['SectionHeader']),
                Paragraph(_para_text(worksheet.teacher_notes), self.styles['TipText']),
            ], _TIP_BG)
            yield "notes", 0, Spacer(1, 10)

        for exercise in worksheet.exercises:
            yield "exercise", exercise.index, self._exercise_block(exercise)
            yield "spacer", exercise.index, Spacer(1, 12)

    def _header_fields(self, worksheet: RenderedWorksheet) -> Table:
        label = "Teacher copy" if worksheet.view is WorksheetView.TEACHER else "Score: ________"
        row = [[
            Paragraph("Name: ____________________________", self.styles['CellText']),
            Paragraph("Date: ______________", self.styles['CellText']),
            Paragraph(label, self.styles['CellText']),
        ]]
        table = Table(row, colWidths=[CONTENT_WIDTH * 0.5, CONTENT_WIDTH * 0.28, CONTENT_WIDTH * 0.22])
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
            ('LINEBELOW', (0, 0), (-1, -1), 0.5, _RULE),
        ]))
        return table

    def _boxed(self, elements: list, background) -> Table:
        box = Table([[elements]], colWidths=[CONTENT_WIDTH])
        box.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, -1), background),
            ('TOPPADDING', (0, 0), (-1, -1), 8),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
            ('LEFTPADDING', (0, 0), (-1, -1), 10),
            ('RIGHTPADDING', (0, 0), (-1, -1), 10),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        return box

    # ──────────────────────────────────────────
    # Exercises
    # ──────────────────────────────────────────
    def _exercise_block(self, exercise: RenderedExercise) -> Table:
        inner_width = CONTENT_WIDTH - 20
        header = Table(
            [[
                Paragraph(_para_text(exercise.title), self.styles['ExerciseTitle']),
                Paragraph(f"{exercise.duration} min", self.styles['ExerciseTime']),
            ]],
            colWidths=[inner_width * 0.82, inner_width * 0.18],
        )
        header.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, -1), _HEADER_BG),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))

        elements: list = [header, Spacer(1, 6)]
        if exercise.instructions:
            elements.append(Paragraph(_para_text(exercise.instructions), self.styles['Instructions']))
        elements.extend(self._exercise_body(exercise, inner_width))

        if exercise.teacher_tip:
            tip = Table([[[
                Paragraph("<b>Teacher Tip</b>", self.styles['TipText']),
                Paragraph(_para_text(exercise.teacher_tip), self.styles['TipText']),
            ]]], colWidths=[inner_width])
            tip.setStyle(TableStyle([
                ('BACKGROUND', (0, 0), (-1, -1), _TIP_BG),
                ('LINEBEFORE', (0, 0), (0, -1), 2, _PRIMARY),
                ('TOPPADDING', (0, 0), (-1, -1), 5),
                ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
            ]))
            elements.extend([Spacer(1, 6), tip])

        block = Table([[elements]], colWidths=[CONTENT_WIDTH])
        block.setStyle(TableStyle([
            ('BOX', (0, 0), (-1, -1), 0.6, _RULE),
            ('TOPPADDING', (0, 0), (-1, -1), 8),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 10),
            ('LEFTPADDING', (0, 0), (-1, -1), 10),
            ('RIGHTPADDING', (0, 0), (-1, -1), 10),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        return block

    def _answer(self, answer: str | None) -> str:
        if not answer:
            return ""
        hexval = _ANSWER.hexval()[2:]
        return f"  <font color='#{hexval}'><b>Answer: {_para_text(answer)}</b></font>"

    def _exercise_body(self, exercise: RenderedExercise, width: float) -> list:
        elements: list = []
        if exercise.content and exercise.type != "dialogue":
            elements.append(Paragraph(_para_text(exercise.content), self.styles['BodyText10']))

        if exercise.word_bank:
            words = "   |   ".join(_para_text(w) for w in exercise.word_bank)
            elements.append(self._boxed_words(words, width))

        if exercise.matching is not None:
            elements.append(self._matching_table(exercise, width))

        for question in exercise.questions or []:
            marker = "-&gt;" if exercise.type == "discussion" else f"{question.number}."
            elements.append(Paragraph(
                f"<b>{marker}</b> {_para_text(question.text)}{self._answer(question.answer)}",
                self.styles['QuestionText'],
            ))
            for option in question.options or []:
                text = f"{option.label}) {_para_text(option.text)}"
                if option.correct:
                    text = f"<font color='#{_ANSWER.hexval()[2:]}'><b>{text}  (correct)</b></font>"
                elements.append(Paragraph(text, self.styles['OptionText']))

        for sentence in exercise.sentences or []:
            elements.append(Paragraph(
                f"<b>{sentence.number}.</b> {_para_text(sentence.text)}{self._answer(sentence.answer)}",
                self.styles['QuestionText'],
            ))

        for line in exercise.dialogue or []:
            elements.append(Paragraph(
                f"<b>{_para_text(line.speaker)}:</b> {_para_text(line.text)}",
                self.styles['BodyText10'],
            ))
        if exercise.expressions:
            instruction = exercise.expression_instruction or "Practice using these expressions:"
            elements.append(Paragraph(f"<b>{_para_text(instruction)}</b>", self.styles['BodyText10']))
            elements.append(self._boxed_words(
                "   |   ".join(_para_text(e) for e in exercise.expressions), width,
            ))
        return elements

    def _boxed_words(self, words: str, width: float) -> Table:
        box = Table([[Paragraph(words, self.styles['CellText'])]], colWidths=[width])
        box.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, -1), _HEADER_BG),
            ('TOPPADDING', (0, 0), (-1, -1), 5),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ]))
        return box

    def _matching_table(self, exercise: RenderedExercise, width: float) -> Table:
        matching = exercise.matching
        rows = [[
            Paragraph("<b>Terms</b>", self.styles['CellText']),
            Paragraph("<b>Answers</b>", self.styles['CellText']),
            Paragraph("<b>Definitions</b>", self.styles['CellText']),
        ]]
        hexval = _ANSWER.hexval()[2:]
        for i in range(max(len(matching.terms), len(matching.definitions))):
            term = f"{i + 1}. {_para_text(matching.terms[i])}" if i < len(matching.terms) else ""
            if matching.answers is not None and (i + 1) in matching.answers:
                answer = f"<font color='#{hexval}'><b>{matching.answers[i + 1]}</b></font>"
            else:
                answer = "____"
            definition = ""
            if i < len(matching.definitions):
                d = matching.definitions[i]
                definition = f"<b>{d.label}.</b> {_para_text(d.text)}"
            rows.append([
                Paragraph(term, self.styles['CellText']),
                Paragraph(answer, self.styles['CellText']),
                Paragraph(definition, self.styles['CellText']),
            ])
        table = Table(rows, colWidths=[width * 0.28, width * 0.14, width * 0.58])
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('GRID', (0, 0), (-1, -1), 0.4, _RULE),
            ('BACKGROUND', (0, 0), (-1, 0), _HEADER_BG),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return table

    # ──────────────────────────────────────────
    # Drawing
    # ──────────────────────────────────────────
    def _draw_surface_form(self, canv, surface: Surface) -> None:
        """Draw the whole surface once into a reusable form XObject."""
        canv.beginForm(SURFACE_FORM, lowerx=0, lowery=0, upperx=surface.width, uppery=max(surface.height, 1))
        for item in surface.placed:
            item.flowable.drawOn(canv, 0, surface.height - item.top - item.height)
        canv.endForm()

    def _draw_surface_page(self, canv, surface: Surface, page: PageSlice) -> None:
        canv.saveState()
        top = PAGE_HEIGHT - PAGE_MARGIN
        clip = canv.beginPath()
        clip.rect(PAGE_MARGIN, top - page.height, CONTENT_WIDTH, page.height)
        canv.clipPath(clip, stroke=0, fill=0)
        # surface offset page.top lands on the top of the content area
        canv.translate(PAGE_MARGIN, top - surface.height + page.top)
        canv.doForm(SURFACE_FORM)
        canv.restoreState()
        self._draw_page_furniture(canv)
        canv.showPage()

    def _draw_page_furniture(self, canv) -> None:
        """Footer with page number on every page."""
        canv.saveState()
        self._page_count += 1
        y_footer = 7 * mm
        canv.setFont('Helvetica', 7)
        canv.setFillColor(_MUTED)
        canv.drawString(PAGE_MARGIN, y_footer, "Quick Worksheet Generator")
        canv.drawRightString(PAGE_WIDTH - PAGE_MARGIN, y_footer, f"Page {self._page_count}")
        canv.setStrokeColor(_RULE)
        canv.setLineWidth(0.5)
        canv.line(PAGE_MARGIN, y_footer + 10, PAGE_WIDTH - PAGE_MARGIN, y_footer + 10)
        canv.restoreState()

    _VOCAB_FONTS = {
        "heading": ("Helvetica-Bold", 16),
        "term": ("Helvetica-Bold", 11),
        "definition": ("Helvetica", 11),
        "example": ("Helvetica-Oblique", 11),
    }

    def _wrap_vocabulary(self, text: str, kind: str, x: float) -> list[str]:
        font, size = self._VOCAB_FONTS[kind]
        max_width = PAGE_WIDTH - (x + 20) * mm
        return simpleSplit(_sanitize_text(text), font, size, max_width) or [""]

    def _draw_vocabulary_page(self, canv, page) -> None:
        for line in page.lines:
            font, size = self._VOCAB_FONTS[line.kind]
            canv.setFont(font, size)
            canv.drawString(line.x * mm, PAGE_HEIGHT - line.y * mm, _sanitize_text(line.text))
        self._draw_page_furniture(canv)
        canv.showPage()


def get_pdf_service() -> PDFService:
    return PDFService()
