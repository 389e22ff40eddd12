"""Force an arbitrary generation payload into a WorksheetDocument.

The payload is validated against ``WorksheetPayload``; a validation error
(or any other failure while mapping) discards everything the endpoint
returned and the document is rebuilt from templates. There is no partial
merge.

Cardinalities after normalization:
  exercises:  exactly 4 / 6 / 8 for 30 / 45 / 60 minute lessons
  item lists: questions / items / sentences padded up to 10
  vocabulary: exactly 15
"""
from __future__ import annotations

import logging
import random
import re
import uuid
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from quickworksheet.models.worksheet import (
    EXERCISE_TYPES,
    ITEMS_PER_EXERCISE,
    VOCABULARY_SIZE,
    DialogueLine,
    Exercise,
    LessonRequest,
    MatchingItem,
    QuestionItem,
    SentenceItem,
    VocabularyItem,
    WorksheetDocument,
)
from quickworksheet.services import templates

logger = logging.getLogger("quickworksheet.normalizer")

SOURCE_COUNT_RANGE = (10, 40)

ITEM_FIELDS = ("questions", "items", "sentences")

# List field each exercise type is built around; dialogue has none.
PRIMARY_FIELD: dict[str, Optional[str]] = {
    "vocabulary": "items",
    "matching": "items",
    "reading": "questions",
    "writing": "questions",
    "speaking": "questions",
    "multiple-choice": "questions",
    "discussion": "questions",
    "grammar": "sentences",
    "listening": "sentences",
    "fill-in-blanks": "sentences",
    "error-correction": "sentences",
    "dialogue": None,
}

_TYPE_ALIASES = {
    "fill-in-the-blanks": "fill-in-blanks",
    "fill-in-the-blank": "fill-in-blanks",
    "fill-in-blank": "fill-in-blanks",
    "role-play": "dialogue",
    "roleplay": "dialogue",
}

_DIGITS_RE = re.compile(r"\d+")


# ──────────────────────────────────────────────
# Payload schema
# ──────────────────────────────────────────────

def _text_entry(value):
    """Entries may arrive as bare strings instead of objects."""
    if isinstance(value, str):
        return {"text": value}
    return value


def _as_text(value):
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return value


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class QuestionPayload(_Payload):
    text: str = Field(validation_alias=AliasChoices("text", "question"))
    answer: Optional[str] = Field(default=None, validation_alias=AliasChoices("answer", "correct_answer"))
    options: Optional[list[str]] = None

    @field_validator("answer", mode="before")
    @classmethod
    def _coerce_answer(cls, value):
        return _as_text(value)


class ItemPayload(_Payload):
    term: str
    definition: str = Field(validation_alias=AliasChoices("definition", "meaning"))


class SentencePayload(_Payload):
    text: str = Field(validation_alias=AliasChoices("text", "sentence"))
    answer: Optional[str] = None

    @field_validator("answer", mode="before")
    @classmethod
    def _coerce_answer(cls, value):
        return _as_text(value)


class DialoguePayload(_Payload):
    speaker: str
    text: str = Field(validation_alias=AliasChoices("text", "line"))


class ExercisePayload(_Payload):
    type: str
    title: str = ""
    instructions: str = ""
    content: str = ""
    duration: Optional[int] = Field(default=None, validation_alias=AliasChoices("duration", "time"))
    questions: Optional[list[QuestionPayload]] = None
    items: Optional[list[ItemPayload]] = None
    sentences: Optional[list[SentencePayload]] = None
    word_bank: Optional[list[str]] = None
    dialogue: Optional[list[DialoguePayload]] = None
    expressions: Optional[list[str]] = None
    expression_instruction: Optional[str] = None
    teacher_tip: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("teacher_tip", "teacher_answers", "teacherAnswers"),
    )

    @field_validator("title", "instructions", "content", mode="before")
    @classmethod
    def _null_text(cls, value):
        # null text fields are missing values, not shape errors
        return "" if value is None else value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value):
        if not isinstance(value, str):
            return value
        key = re.sub(r"[\s_]+", "-", value.strip().lower())
        key = _TYPE_ALIASES.get(key, key)
        if key not in EXERCISE_TYPES:
            raise ValueError(f"unknown exercise type: {value!r}")
        return key

    @field_validator("duration", mode="before")
    @classmethod
    def _minutes(cls, value):
        if isinstance(value, str):
            match = _DIGITS_RE.search(value)
            return int(match.group()) if match else None
        return value

    @field_validator("questions", "sentences", mode="before")
    @classmethod
    def _string_entries(cls, value):
        if isinstance(value, list):
            return [_text_entry(v) for v in value]
        return value


class VocabularyPayload(_Payload):
    term: str
    definition: str = Field(validation_alias=AliasChoices("definition", "meaning"))
    example: Optional[str] = None


class WorksheetPayload(_Payload):
    title: Optional[str] = None
    subtitle: Optional[str] = None
    introduction: Optional[str] = None
    content: Optional[str] = None
    teacher_notes: Optional[str] = None
    exercises: list[ExercisePayload] = []
    vocabulary: list[VocabularyPayload] = Field(
        default=[], validation_alias=AliasChoices("vocabulary", "vocabulary_sheet"),
    )

    @field_validator("exercises", mode="before")
    @classmethod
    def _drop_quizzes(cls, value):
        # Interactive quizzes cannot be printed; they are dropped, not rejected.
        if isinstance(value, list):
            return [
                e for e in value
                if not (isinstance(e, dict) and "quiz" in str(e.get("type", "")).lower())
            ]
        return value


# ──────────────────────────────────────────────
# Padding
# ──────────────────────────────────────────────

def _synthetic_entry(field_name: str, counter: int, lesson: LessonRequest, exercise_type: str):
    if field_name == "items":
        return templates.matching_item(counter, lesson)
    if field_name == "sentences":
        pool_type = "grammar" if exercise_type in ("grammar", "error-correction") else "listening"
        return templates.sentence_item(counter, lesson, pool_type)
    return templates.question_item(counter, lesson, exercise_type)


def pad_exercise(exercise: Exercise, lesson: LessonRequest) -> Exercise:
    """Pad item-bearing lists up to ITEMS_PER_EXERCISE; never shortens them."""
    primary = PRIMARY_FIELD.get(exercise.type)
    if primary and getattr(exercise, primary) is None:
        setattr(exercise, primary, [])

    for field_name in ITEM_FIELDS:
        entries = getattr(exercise, field_name)
        if entries is None or len(entries) >= ITEMS_PER_EXERCISE:
            continue
        padding = [
            _synthetic_entry(field_name, n, lesson, exercise.type)
            for n in range(len(entries), ITEMS_PER_EXERCISE)
        ]
        entries.extend(padding)
        if field_name == "sentences" and exercise.word_bank is not None:
            exercise.word_bank.extend(p.answer for p in padding if p.answer)
    return exercise


def pad_vocabulary(
    vocabulary: list[VocabularyItem],
    lesson: LessonRequest,
    offset: int,
) -> list[VocabularyItem]:
    """Truncate or pad to exactly VOCABULARY_SIZE entries."""
    result = list(vocabulary[:VOCABULARY_SIZE])
    seen = {v.term.lower() for v in result}
    pool_size = len(templates.VOCABULARY_POOL)
    counter = offset
    while len(result) < VOCABULARY_SIZE:
        candidate = templates.vocabulary_item(counter, lesson)
        # Skip pool terms the payload already used while unused ones remain
        if candidate.term.lower() not in seen or counter - offset >= pool_size:
            result.append(candidate)
            seen.add(candidate.term.lower())
        counter += 1
    return result


# ──────────────────────────────────────────────
# Document builders
# ──────────────────────────────────────────────

def _echo(lesson: LessonRequest) -> dict:
    return {
        "lesson_duration": lesson.duration,
        "lesson_topic": lesson.topic,
        "lesson_objective": lesson.objective,
        "preferences": lesson.preferences,
        "student_profile": lesson.student_profile,
        "additional_info": lesson.additional_info,
    }


def _default_title(lesson: LessonRequest) -> str:
    return f"{lesson.topic} - {lesson.objective}"


def _default_subtitle(lesson: LessonRequest) -> str:
    return f"{lesson.minutes}-minute lesson | {lesson.preferences}"


def build_fallback_document(lesson: LessonRequest, rng: random.Random) -> WorksheetDocument:
    """Build the whole worksheet from templates."""
    offset = rng.randrange(len(templates.VOCABULARY_POOL))
    count = lesson.exercise_count
    return WorksheetDocument(
        id=uuid.uuid4().hex,
        title=_default_title(lesson),
        subtitle=_default_subtitle(lesson),
        introduction=f"This worksheet focuses on {lesson.topic} with the objective of {lesson.objective}.",
        content=templates.overview_content(lesson),
        teacher_notes=templates.teacher_tips(lesson),
        exercises=[templates.template_exercise(i, lesson, count) for i in range(count)],
        vocabulary=templates.template_vocabulary(lesson, VOCABULARY_SIZE, offset),
        source_count=rng.randint(*SOURCE_COUNT_RANGE),
        ai_generated=False,
        **_echo(lesson),
    )


def _map_exercise(raw: ExercisePayload, position: int, lesson: LessonRequest, total: int) -> Exercise:
    exercise = Exercise(
        title=raw.title or f"Exercise {position + 1}",
        type=raw.type,
        instructions=raw.instructions,
        content=raw.content,
        duration=raw.duration or max(1, lesson.minutes // total),
        questions=[QuestionItem(**q.model_dump()) for q in raw.questions] if raw.questions is not None else None,
        items=[MatchingItem(**i.model_dump()) for i in raw.items] if raw.items is not None else None,
        sentences=[SentenceItem(**s.model_dump()) for s in raw.sentences] if raw.sentences is not None else None,
        word_bank=list(raw.word_bank) if raw.word_bank is not None else None,
        dialogue=[DialogueLine(**d.model_dump()) for d in raw.dialogue] if raw.dialogue is not None else None,
        expressions=list(raw.expressions) if raw.expressions is not None else None,
        expression_instruction=raw.expression_instruction,
        teacher_tip=raw.teacher_tip or "",
    )
    return pad_exercise(exercise, lesson)


def _map_payload(parsed: WorksheetPayload, lesson: LessonRequest, rng: random.Random) -> WorksheetDocument:
    count = lesson.exercise_count
    exercises = [
        _map_exercise(raw, i, lesson, count) for i, raw in enumerate(parsed.exercises[:count])
    ]
    if len(exercises) < count:
        logger.info("Payload had %d/%d exercises, filling from templates", len(exercises), count)
    for position in range(len(exercises), count):
        exercises.append(templates.template_exercise(position, lesson, count))

    offset = rng.randrange(len(templates.VOCABULARY_POOL))
    vocabulary = pad_vocabulary(
        [VocabularyItem(**v.model_dump()) for v in parsed.vocabulary], lesson, offset,
    )

    return WorksheetDocument(
        id=uuid.uuid4().hex,
        title=parsed.title or _default_title(lesson),
        subtitle=parsed.subtitle or _default_subtitle(lesson),
        introduction=parsed.introduction,
        content=parsed.content or parsed.introduction or templates.overview_content(lesson),
        teacher_notes=parsed.teacher_notes or templates.teacher_tips(lesson),
        exercises=exercises,
        vocabulary=vocabulary,
        source_count=rng.randint(*SOURCE_COUNT_RANGE),
        ai_generated=True,
        **_echo(lesson),
    )


def normalize_worksheet(
    payload: dict | None,
    lesson: LessonRequest,
    rng: random.Random | None = None,
) -> WorksheetDocument:
    """Map any payload (or none) plus the lesson to a valid document."""
    rng = rng or random.Random()
    if payload is None:
        return build_fallback_document(lesson, rng)
    try:
        parsed = WorksheetPayload.model_validate(payload)
        return _map_payload(parsed, lesson, rng)
    except Exception as e:
        logger.warning("Payload rejected, using template worksheet: %s", e)
        return build_fallback_document(lesson, rng)
