"""Prompt templates for worksheet generation."""
import re

from quickworksheet.models.worksheet import (
    ITEMS_PER_EXERCISE,
    VOCABULARY_SIZE,
    LessonRequest,
)

MAX_FIELD_LENGTH = 200

_STRIP_RE = re.compile(r"[<>{}\\]")
_UNSAFE_RE = re.compile(r"""[^\w\s.,;:?!()'"@-]""")

WORKSHEET_GENERATION_SYSTEM_PROMPT = """You are an expert educational content creator for English language
teaching with extensive experience creating worksheets for various industries and language levels.
Create professional, pedagogically sound teaching materials that follow current best practices in
language education. Focus on authentic, engaging content that addresses the specific topic, goals and
preferences provided. Always answer with a single JSON object inside a ```json code block and nothing else."""

# Exercise types requested for each lesson length, in order.
_BASE_EXERCISE_TYPES = [
    "Reading Passage with Comprehension Questions (type: reading)",
    "Vocabulary Matching (type: matching)",
    "Fill in the Blanks (type: fill-in-blanks)",
    "Multiple Choice Questions (type: multiple-choice)",
    "Speaking Practice with a Dialogue (type: dialogue)",
    "Discussion Questions (type: discussion)",
]
_EXTENDED_EXERCISE_TYPES = [
    "Error Correction (type: error-correction)",
    "Role-play Scenario with Key Expressions (type: dialogue)",
]

WORKSHEET_GENERATION_PROMPT = """You are an expert English language teacher creating a highly specific, professional worksheet for a {minutes}-minute lesson.

TOPIC: {topic}
GOAL: {objective}
TEACHING PREFERENCES: {preferences}{optional_lines}

Create a context-specific English language worksheet with EXACTLY {exercise_count} exercises.

## REQUIRED EXERCISE TYPES:
{exercise_list}

## FOR EACH EXERCISE:
1. Clear title (e.g., "Exercise 1: Reading Comprehension")
2. Specific, step-by-step instructions for students
3. EXACTLY {items_per_exercise} items in "questions", "items" or "sentences" (whichever the type uses)
4. Content directly relevant to {topic} with industry-specific terminology
5. A "teacher_tip" with answers, methodological advice and common student difficulties

## VOCABULARY:
Include EXACTLY {vocabulary_size} key terms related to {topic}, each with a definition and an example sentence.

## QUALITY REQUIREMENTS:
- Exercises progressively increase in difficulty
- Balance receptive and productive skills
- All content can realistically be completed in {minutes} minutes

Return the worksheet as JSON following EXACTLY this schema:
```json
{{
  "title": "Worksheet title",
  "subtitle": "Short subtitle",
  "introduction": "1-2 sentence lesson overview",
  "exercises": [
    {{
      "type": "reading",
      "title": "Exercise 1: Reading Comprehension",
      "duration": 8,
      "instructions": "Read the text and answer the questions.",
      "content": "Reading passage text (only for reading exercises)",
      "questions": [{{"text": "Question?", "answer": "Answer"}}],
      "teacher_tip": "Answers and tips for the teacher"
    }},
    {{
      "type": "matching",
      "title": "Exercise 2: Vocabulary Matching",
      "duration": 7,
      "instructions": "Match each term with its definition.",
      "items": [{{"term": "term", "definition": "definition"}}],
      "teacher_tip": "Tips for the teacher"
    }},
    {{
      "type": "fill-in-blanks",
      "title": "Exercise 3: Fill in the Blanks",
      "duration": 8,
      "instructions": "Complete the sentences with words from the box.",
      "word_bank": ["word1", "word2"],
      "sentences": [{{"text": "Sentence with _____ blank.", "answer": "word1"}}],
      "teacher_tip": "Tips for the teacher"
    }},
    {{
      "type": "multiple-choice",
      "title": "Exercise 4: Multiple Choice",
      "duration": 6,
      "instructions": "Choose the correct answer.",
      "questions": [{{"text": "Question?", "options": ["A", "B", "C", "D"], "answer": "A"}}],
      "teacher_tip": "Tips for the teacher"
    }},
    {{
      "type": "dialogue",
      "title": "Exercise 5: Speaking Practice",
      "duration": 7,
      "instructions": "Practice the dialogue with a partner.",
      "dialogue": [{{"speaker": "Manager", "text": "Line of dialogue"}}],
      "expression_instruction": "Practice using these expressions:",
      "expressions": ["Useful expression"],
      "teacher_tip": "Tips for the teacher"
    }}
  ],
  "vocabulary": [
    {{"term": "Term", "definition": "Definition", "example": "Example sentence"}}
  ]
}}
```"""


def sanitize_input(text: str | None) -> str:
    """Reduce free text to a safe character class before it enters a prompt.

    Mitigates prompt injection; it is not a full defence.
    """
    if not text:
        return ""
    sanitized = _STRIP_RE.sub("", text)
    sanitized = _UNSAFE_RE.sub(" ", sanitized).strip()
    return sanitized[:MAX_FIELD_LENGTH]


def exercise_types_for(exercise_count: int) -> list[str]:
    """Exercise types requested for a lesson with this many exercises."""
    if exercise_count <= 4:
        return _BASE_EXERCISE_TYPES[:4]
    if exercise_count >= 8:
        return _BASE_EXERCISE_TYPES + _EXTENDED_EXERCISE_TYPES
    return list(_BASE_EXERCISE_TYPES)


def build_prompt(lesson: LessonRequest) -> str:
    """Build the deterministic user prompt for one lesson."""
    optional_lines = ""
    if lesson.student_profile:
        optional_lines += f"\nSTUDENT PROFILE: {sanitize_input(lesson.student_profile)}"
    if lesson.additional_info:
        optional_lines += f"\nADDITIONAL INFORMATION: {sanitize_input(lesson.additional_info)}"

    exercise_list = "\n".join(f"- {t}" for t in exercise_types_for(lesson.exercise_count))

    return WORKSHEET_GENERATION_PROMPT.format(
        minutes=lesson.minutes,
        topic=sanitize_input(lesson.topic),
        objective=sanitize_input(lesson.objective),
        preferences=sanitize_input(lesson.preferences),
        optional_lines=optional_lines,
        exercise_count=lesson.exercise_count,
        exercise_list=exercise_list,
        items_per_exercise=ITEMS_PER_EXERCISE,
        vocabulary_size=VOCABULARY_SIZE,
    )
