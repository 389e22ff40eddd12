from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, get_args
from enum import Enum


# ──────────────────────────────────────────────
# Fixed cardinalities
# ──────────────────────────────────────────────
EXERCISE_COUNT_BY_DURATION: dict[str, int] = {"30": 4, "45": 6, "60": 8}
ITEMS_PER_EXERCISE = 10
VOCABULARY_SIZE = 15

ExerciseType = Literal[
    "vocabulary",
    "matching",
    "reading",
    "writing",
    "speaking",
    "grammar",
    "listening",
    "fill-in-blanks",
    "multiple-choice",
    "dialogue",
    "discussion",
    "error-correction",
]

EXERCISE_TYPES: tuple[str, ...] = get_args(ExerciseType)


class GenerationStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class WorksheetView(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"

    @property
    def opposite(self) -> "WorksheetView":
        return WorksheetView.TEACHER if self is WorksheetView.STUDENT else WorksheetView.STUDENT


# ──────────────────────────────────────────────
# Lesson form
# ──────────────────────────────────────────────

class LessonRequest(BaseModel):
    """Lesson parameters submitted through the form. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    duration: Literal["30", "45", "60"] = "45"
    topic: str
    objective: str
    preferences: str
    student_profile: str | None = None
    additional_info: str | None = None

    @field_validator("duration", mode="before")
    @classmethod
    def _duration_as_text(cls, value):
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("topic", "objective", "preferences")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("field is required")
        return value

    @field_validator("student_profile", "additional_info")
    @classmethod
    def _optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @property
    def minutes(self) -> int:
        return int(self.duration)

    @property
    def exercise_count(self) -> int:
        return EXERCISE_COUNT_BY_DURATION[self.duration]

    @property
    def field(self) -> str:
        """Industry part of a 'Field: subject' topic."""
        head = self.topic.split(":", 1)[0].strip()
        return head or "professional"

    @property
    def subject(self) -> str:
        """Subject part of a 'Field: subject' topic, or the whole topic."""
        parts = self.topic.split(":", 1)
        if len(parts) == 2 and parts[1].strip():
            return parts[1].strip()
        return self.topic


class GenerationStep(BaseModel):
    label: str
    completed: bool = False


# ──────────────────────────────────────────────
# Worksheet document
# ──────────────────────────────────────────────

class QuestionItem(BaseModel):
    text: str
    answer: str | None = None
    options: list[str] | None = None


class MatchingItem(BaseModel):
    term: str
    definition: str


class SentenceItem(BaseModel):
    text: str
    answer: str | None = None


class DialogueLine(BaseModel):
    speaker: str
    text: str


class Exercise(BaseModel):
    title: str
    type: ExerciseType
    instructions: str
    content: str = ""
    duration: int
    questions: list[QuestionItem] | None = None
    items: list[MatchingItem] | None = None
    sentences: list[SentenceItem] | None = None
    word_bank: list[str] | None = None
    dialogue: list[DialogueLine] | None = None
    expressions: list[str] | None = None
    expression_instruction: str | None = None
    teacher_tip: str = ""


class VocabularyItem(BaseModel):
    term: str
    definition: str
    example: str | None = None


class WorksheetDocument(BaseModel):
    id: str
    title: str
    subtitle: str | None = None
    introduction: str | None = None
    content: str
    teacher_notes: str
    exercises: list[Exercise]
    vocabulary: list[VocabularyItem]
    generation_time: int = 0
    source_count: int = 0
    ai_generated: bool = False
    # Echo of the lesson form
    lesson_duration: str
    lesson_topic: str
    lesson_objective: str
    preferences: str
    student_profile: str | None = None
    additional_info: str | None = None


# ──────────────────────────────────────────────
# Editing & feedback
# ──────────────────────────────────────────────

class ExerciseEdit(BaseModel):
    index: int
    title: str | None = None
    instructions: str | None = None
    content: str | None = None
    teacher_tip: str | None = None


class WorksheetEdit(BaseModel):
    title: str | None = None
    content: str | None = None
    introduction: str | None = None
    teacher_notes: str | None = None
    exercises: list[ExerciseEdit] = []


class FeedbackRecord(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class Notification(BaseModel):
    level: Literal["success", "error", "info"]
    message: str


# ──────────────────────────────────────────────
# Rendered views
# ──────────────────────────────────────────────

class RenderedOption(BaseModel):
    label: str
    text: str
    correct: bool | None = None


class RenderedQuestion(BaseModel):
    number: int
    text: str
    options: list[RenderedOption] | None = None
    answer: str | None = None


class RenderedDefinition(BaseModel):
    label: str
    text: str


class RenderedMatching(BaseModel):
    terms: list[str]
    definitions: list[RenderedDefinition]
    # term number -> definition letter, teacher view only
    answers: dict[int, str] | None = None


class RenderedExercise(BaseModel):
    index: int
    title: str
    type: ExerciseType
    instructions: str
    content: str = ""
    duration: int
    questions: list[RenderedQuestion] | None = None
    matching: RenderedMatching | None = None
    sentences: list[RenderedQuestion] | None = None
    word_bank: list[str] | None = None
    dialogue: list[DialogueLine] | None = None
    expressions: list[str] | None = None
    expression_instruction: str | None = None
    teacher_tip: str | None = None


class RenderedWorksheet(BaseModel):
    id: str
    view: WorksheetView
    title: str
    subtitle: str | None = None
    introduction: str | None = None
    content: str
    teacher_notes: str | None = None
    exercises: list[RenderedExercise]
    vocabulary: list[VocabularyItem]
    generation_time: int
    source_count: int
    ai_generated: bool
