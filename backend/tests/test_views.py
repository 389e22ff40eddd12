"""
Tests for the student / teacher projections and worksheet editing.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import random

import pytest

from quickworksheet.models.worksheet import (
    Exercise,
    ExerciseEdit,
    LessonRequest,
    MatchingItem,
    QuestionItem,
    WorksheetEdit,
    WorksheetView,
)
from quickworksheet.services.errors import EditError
from quickworksheet.services.normalizer import build_fallback_document
from quickworksheet.services.views import apply_edit, render_exercise, render_view


def _make_document():
    lesson = LessonRequest(
        duration="60",
        topic="Finance: budget analysis",
        objective="Presenting quarterly results",
        preferences="Speaking practice",
    )
    return build_fallback_document(lesson, random.Random(4))


def _matching_exercise(n: int = 10) -> Exercise:
    return Exercise(
        title="Match",
        type="matching",
        instructions="Match the terms.",
        duration=5,
        items=[MatchingItem(term=f"term{i}", definition=f"def{i}") for i in range(n)],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Student view
# ─────────────────────────────────────────────────────────────────────────────

class TestStudentView:
    def test_no_teacher_material(self):
        rendered = render_view(_make_document(), WorksheetView.STUDENT)
        assert rendered.teacher_notes is None
        for exercise in rendered.exercises:
            assert exercise.teacher_tip is None
            for question in (exercise.questions or []) + (exercise.sentences or []):
                assert question.answer is None
            if exercise.matching:
                assert exercise.matching.answers is None

    def test_options_carry_no_correct_flag(self):
        exercise = Exercise(
            title="Quiz",
            type="multiple-choice",
            instructions="Choose.",
            duration=5,
            questions=[QuestionItem(text="Pick one", options=["x", "y", "z"], answer="y")],
        )
        rendered = render_exercise(exercise, 0, WorksheetView.STUDENT)
        assert [o.label for o in rendered.questions[0].options] == ["a", "b", "c"]
        assert all(o.correct is None for o in rendered.questions[0].options)

    def test_shared_content_is_kept(self):
        document = _make_document()
        rendered = render_view(document, WorksheetView.STUDENT)
        assert rendered.title == document.title
        assert len(rendered.exercises) == len(document.exercises)
        assert rendered.vocabulary == document.vocabulary


# ─────────────────────────────────────────────────────────────────────────────
# Teacher view
# ─────────────────────────────────────────────────────────────────────────────

class TestTeacherView:
    def test_notes_and_tips_present(self):
        document = _make_document()
        rendered = render_view(document, WorksheetView.TEACHER)
        assert rendered.teacher_notes == document.teacher_notes
        assert all(e.teacher_tip for e in rendered.exercises)

    def test_correct_option_is_flagged(self):
        exercise = Exercise(
            title="Quiz",
            type="multiple-choice",
            instructions="Choose.",
            duration=5,
            questions=[QuestionItem(text="Pick one", options=["x", "y", "z"], answer="y")],
        )
        rendered = render_exercise(exercise, 0, WorksheetView.TEACHER)
        assert [o.correct for o in rendered.questions[0].options] == [False, True, False]

    def test_matching_answers_point_at_the_right_definition(self):
        rendered = render_exercise(_matching_exercise(), 3, WorksheetView.TEACHER)
        by_label = {d.label: d.text for d in rendered.matching.definitions}
        for number, letter in rendered.matching.answers.items():
            assert by_label[letter] == f"def{number - 1}"


# ─────────────────────────────────────────────────────────────────────────────
# Agreement between views
# ─────────────────────────────────────────────────────────────────────────────

class TestViewAgreement:
    def test_matching_order_is_shared(self):
        exercise = _matching_exercise()
        student = render_exercise(exercise, 2, WorksheetView.STUDENT)
        teacher = render_exercise(exercise, 2, WorksheetView.TEACHER)
        assert student.matching.definitions == teacher.matching.definitions
        assert [d.label for d in student.matching.definitions] == list("ABCDEFGHIJ")

    def test_shuffle_is_stable_across_calls(self):
        exercise = _matching_exercise()
        first = render_exercise(exercise, 5, WorksheetView.STUDENT)
        second = render_exercise(exercise, 5, WorksheetView.STUDENT)
        assert first.matching.definitions == second.matching.definitions

    def test_word_bank_order_is_shared(self):
        exercise = Exercise(
            title="Gaps",
            type="fill-in-blanks",
            instructions="Fill.",
            duration=5,
            word_bank=[f"w{i}" for i in range(8)],
        )
        student = render_exercise(exercise, 1, WorksheetView.STUDENT)
        teacher = render_exercise(exercise, 1, WorksheetView.TEACHER)
        assert student.word_bank == teacher.word_bank
        assert sorted(student.word_bank) == sorted(exercise.word_bank)


# ─────────────────────────────────────────────────────────────────────────────
# Editing
# ─────────────────────────────────────────────────────────────────────────────

class TestApplyEdit:
    def test_returns_edited_copy(self):
        document = _make_document()
        edited = apply_edit(document, WorksheetEdit(
            title="Quarter review",
            exercises=[ExerciseEdit(index=1, instructions="Work in pairs.")],
        ))
        assert edited.title == "Quarter review"
        assert edited.exercises[1].instructions == "Work in pairs."
        assert document.title != "Quarter review"
        assert document.exercises[1].instructions != "Work in pairs."

    def test_unset_fields_are_untouched(self):
        document = _make_document()
        edited = apply_edit(document, WorksheetEdit(content="New overview"))
        assert edited.teacher_notes == document.teacher_notes
        assert edited.exercises == document.exercises

    def test_bad_index_rejects_whole_edit(self):
        document = _make_document()
        with pytest.raises(EditError, match="Exercise 8 does not exist"):
            apply_edit(document, WorksheetEdit(
                title="Never applied",
                exercises=[ExerciseEdit(index=8, title="x")],
            ))
        assert document.title != "Never applied"
