"""Student / teacher rendering of a worksheet and in-place text editing."""
from __future__ import annotations

import logging
import random
import string

from quickworksheet.models.worksheet import (
    Exercise,
    RenderedDefinition,
    RenderedExercise,
    RenderedMatching,
    RenderedOption,
    RenderedQuestion,
    RenderedWorksheet,
    WorksheetDocument,
    WorksheetEdit,
    WorksheetView,
)
from quickworksheet.services.errors import EditError

logger = logging.getLogger("quickworksheet.views")

DEFINITION_LABELS = string.ascii_uppercase
OPTION_LABELS = string.ascii_lowercase

EDITABLE_DOCUMENT_FIELDS = ("title", "content", "introduction", "teacher_notes")
EDITABLE_EXERCISE_FIELDS = ("title", "instructions", "content", "teacher_tip")


def _shuffled(values: list, seed: int) -> list:
    """Same seed, same order: both views of one exercise must agree."""
    result = list(values)
    random.Random(seed).shuffle(result)
    return result


def _render_questions(exercise: Exercise, teacher: bool) -> list[RenderedQuestion]:
    rendered = []
    for number, question in enumerate(exercise.questions or [], start=1):
        options = None
        if question.options:
            options = [
                RenderedOption(
                    label=OPTION_LABELS[i % len(OPTION_LABELS)],
                    text=option,
                    correct=(option == question.answer) if teacher else None,
                )
                for i, option in enumerate(question.options)
            ]
        rendered.append(RenderedQuestion(
            number=number,
            text=question.text,
            options=options,
            answer=question.answer if teacher else None,
        ))
    return rendered


def _render_matching(exercise: Exercise, index: int, teacher: bool) -> RenderedMatching:
    items = exercise.items or []
    order = _shuffled(list(range(len(items))), seed=index)
    definitions = [
        RenderedDefinition(label=DEFINITION_LABELS[pos % 26], text=items[i].definition)
        for pos, i in enumerate(order)
    ]
    answers = None
    if teacher:
        answers = {i + 1: DEFINITION_LABELS[order.index(i) % 26] for i in range(len(items))}
    return RenderedMatching(
        terms=[item.term for item in items],
        definitions=definitions,
        answers=answers,
    )


def _render_sentences(exercise: Exercise, teacher: bool) -> list[RenderedQuestion]:
    return [
        RenderedQuestion(number=n, text=s.text, answer=s.answer if teacher else None)
        for n, s in enumerate(exercise.sentences or [], start=1)
    ]


def render_exercise(exercise: Exercise, index: int, view: WorksheetView) -> RenderedExercise:
    teacher = view is WorksheetView.TEACHER
    return RenderedExercise(
        index=index,
        title=exercise.title,
        type=exercise.type,
        instructions=exercise.instructions,
        content=exercise.content,
        duration=exercise.duration,
        questions=_render_questions(exercise, teacher) if exercise.questions is not None else None,
        matching=_render_matching(exercise, index, teacher) if exercise.items is not None else None,
        sentences=_render_sentences(exercise, teacher) if exercise.sentences is not None else None,
        word_bank=_shuffled(exercise.word_bank, seed=index) if exercise.word_bank is not None else None,
        dialogue=exercise.dialogue,
        expressions=exercise.expressions,
        expression_instruction=exercise.expression_instruction,
        teacher_tip=(exercise.teacher_tip or None) if teacher else None,
    )


def render_view(document: WorksheetDocument, view: WorksheetView) -> RenderedWorksheet:
    """Project the document for one audience.

    The student view carries no teacher notes, teacher tips or answers.
    Matching definitions and word banks are shuffled with the exercise
    index as seed, so the answer letters line up across both views.
    """
    teacher = view is WorksheetView.TEACHER
    return RenderedWorksheet(
        id=document.id,
        view=view,
        title=document.title,
        subtitle=document.subtitle,
        introduction=document.introduction,
        content=document.content,
        teacher_notes=document.teacher_notes if teacher else None,
        exercises=[render_exercise(e, i, view) for i, e in enumerate(document.exercises)],
        vocabulary=document.vocabulary,
        generation_time=document.generation_time,
        source_count=document.source_count,
        ai_generated=document.ai_generated,
    )


def apply_edit(document: WorksheetDocument, edit: WorksheetEdit) -> WorksheetDocument:
    """Return an edited copy; the original document is left untouched."""
    total = len(document.exercises)
    for change in edit.exercises:
        if not 0 <= change.index < total:
            raise EditError(f"Exercise {change.index} does not exist (worksheet has {total})")

    updated = document.model_copy(deep=True)
    for name in EDITABLE_DOCUMENT_FIELDS:
        value = getattr(edit, name)
        if value is not None:
            setattr(updated, name, value)

    for change in edit.exercises:
        exercise = updated.exercises[change.index]
        for name in EDITABLE_EXERCISE_FIELDS:
            value = getattr(change, name)
            if value is not None:
                setattr(exercise, name, value)

    logger.info("Worksheet %s edited (%d exercise changes)", document.id, len(edit.exercises))
    return updated
