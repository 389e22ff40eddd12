"""Lesson form support: tile suggestions for each form field."""

from fastapi import APIRouter
from pydantic import BaseModel

from quickworksheet.models.worksheet import EXERCISE_COUNT_BY_DURATION
from quickworksheet.services.telemetry import instrument

router = APIRouter(prefix="/api/form", tags=["form"])

TOPIC_SUGGESTIONS = [
    "IT: debugging code",
    "Business: sales negotiations",
    "Medicine: describing symptoms",
    "Tourism: hotel reservations",
    "Finance: budget analysis",
]

OBJECTIVE_SUGGESTIONS = [
    "Preparing a work presentation about AI",
    "Practicing vocabulary for a job interview",
    "Learning to describe business processes",
    "Building fluency in technology discussions",
    "Understanding grammar: conditional sentences",
]

PREFERENCE_SUGGESTIONS = [
    "Writing exercises",
    "Dialogues and role-play",
    "Interactive quizzes",
    "Group discussions",
    "Industry text analysis",
]

STUDENT_PROFILE_SUGGESTIONS = [
    "Goal: promotion in IT, prefers writing, interested in programming, knows Present Simple, struggles with future tenses",
    "Goal: passing the IELTS exam, prefers quizzes, interested in travel, knows general vocabulary, struggles with idioms",
    "Goal: business conversations, prefers dialogues, interested in finance, knows Past Simple, struggles with phrasal verbs",
    "Goal: presenting at work, prefers discussions, interested in marketing, knows industry vocabulary, struggles with conditionals",
    "Goal: conversational fluency, prefers role-play, interested in sports, knows Present Perfect, struggles with the passive voice",
]


class FormSuggestions(BaseModel):
    durations: list[str]
    exercise_counts: dict[str, int]
    topics: list[str]
    objectives: list[str]
    preferences: list[str]
    student_profiles: list[str]


@router.get("/suggestions", response_model=FormSuggestions)
@instrument(route="/api/form/suggestions", version="v1")
async def get_suggestions():
    """Tiles offered next to each free-text field of the lesson form."""
    return FormSuggestions(
        durations=list(EXERCISE_COUNT_BY_DURATION),
        exercise_counts=EXERCISE_COUNT_BY_DURATION,
        topics=TOPIC_SUGGESTIONS,
        objectives=OBJECTIVE_SUGGESTIONS,
        preferences=PREFERENCE_SUGGESTIONS,
        student_profiles=STUDENT_PROFILE_SUGGESTIONS,
    )
