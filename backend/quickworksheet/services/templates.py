"""Deterministic worksheet templates.

Used both for the full fallback document and for padding payloads that
come back short. Every pool is indexed by ``counter % len(pool)`` so a
given lesson always produces the same text; the only randomness is the
vocabulary rotation offset, which callers pass in.
"""
from __future__ import annotations

from quickworksheet.models.worksheet import (
    ITEMS_PER_EXERCISE,
    Exercise,
    LessonRequest,
    MatchingItem,
    QuestionItem,
    SentenceItem,
    VocabularyItem,
)

# Fallback exercises rotate through these types in order.
TYPE_CYCLE: tuple[str, ...] = (
    "vocabulary", "reading", "writing", "speaking", "grammar", "listening",
)

# ──────────────────────────────────────────────
# Pools
# ──────────────────────────────────────────────

VOCABULARY_POOL: list[tuple[str, str]] = [
    ("implementation", "The process of putting a decision or plan into effect"),
    ("protocol", "A set of rules governing data exchange between devices"),
    ("framework", "An essential supporting structure"),
    ("infrastructure", "The basic systems and services an organisation needs to operate"),
    ("optimization", "The action of making the best use of resources"),
    ("methodology", "A system of methods used in an activity"),
    ("integration", "The process of combining parts into a whole"),
    ("functionality", "The quality of being useful or practical"),
    ("specification", "A detailed description of design criteria"),
    ("configuration", "The arrangement of functional units according to their nature"),
    ("deployment", "The action of installing equipment or software"),
    ("interface", "A point where two systems meet and interact"),
    ("validation", "The process of checking validity or accuracy"),
    ("authentication", "The process of verifying identity"),
    ("scalability", "The capability to be changed in size or scale"),
    ("compliance", "The state of adhering to regulations or guidelines"),
    ("procedure", "An established way of doing something"),
    ("regulation", "A rule or directive made and maintained"),
    ("certification", "The action of providing an official document"),
    ("standard", "A level of quality or attainment"),
    ("guideline", "A general rule or principle"),
    ("requirement", "A necessary condition"),
    ("benchmark", "A standard by which something can be measured"),
    ("evaluation", "The process of assessing the nature, quality, or ability of something"),
]

# One example sentence per VOCABULARY_POOL term, same order.
_EXAMPLE_POOL = [
    "The {field} team is responsible for the implementation of the new system.",
    "The protocol must be followed to ensure data security.",
    "This framework provides a foundation for all our {field} processes.",
    "The company invested in infrastructure to support future growth.",
    "Their optimization strategies reduced costs by 30%.",
    "The methodology they use has proven successful in similar cases.",
    "System integration is critical for this project's success.",
    "This new functionality will improve user experience.",
    "The specification document details all requirements.",
    "The system configuration needs to be adjusted for optimal performance.",
    "Deployment of the new software will take place next week.",
    "The user interface was redesigned for better usability.",
    "Data validation is essential to maintain accuracy.",
    "Two-factor authentication provides additional security.",
    "The scalability of the system allows for future expansion.",
    "Every {field} project is reviewed for compliance with current regulations.",
    "Please follow the standard procedure when reporting an incident.",
    "A new regulation changed how {field} companies store customer data.",
    "She completed her certification in {subject} last spring.",
    "Our work on {subject} has to meet the industry standard.",
    "The guideline explains how to document every change.",
    "Fluent English is a requirement for this {field} position.",
    "We use last year's results as a benchmark for the new team.",
    "The evaluation of the pilot project was very positive.",
]

_READING_QUESTIONS = [
    "What aspects of {subject} are most important in {field} contexts?",
    "Why do professionals need to understand {subject} thoroughly?",
    "Which key concepts of {subject} does the text mention?",
    "How do standardized methodologies help with {subject}?",
    "What does the text say about evolving industry requirements?",
    "Why is practical application important for {subject}?",
    "Which skills does effective {subject} require?",
    "How can {subject} be applied to real-world scenarios?",
    "What challenges in {subject} does the author describe?",
    "What is the main message of the text about {subject}?",
]

_WRITING_PROMPTS = [
    "Explain the importance of {subject} in {field}",
    "Compare two different approaches to {subject}",
    "Describe a typical process involving {subject}",
    "Outline the challenges faced when implementing {subject}",
    "Analyze the benefits of improving {subject} processes",
    "Suggest solutions to common problems with {subject}",
    "Evaluate the effectiveness of current {subject} methods",
    "Summarize recent developments in {subject}",
    "Discuss how technology has changed {subject}",
    "Predict future trends in {subject}",
]

_SPEAKING_QUESTIONS = [
    "What experience do you have with {subject}?",
    "How is {subject} approached in your company?",
    "What challenges have you faced with {subject}?",
    "How do you think {subject} will evolve in the next 5 years?",
    "Can you describe a situation where {subject} was crucial to success?",
    "What skills are most important when dealing with {subject}?",
    "How does {subject} differ across various industries?",
    "What's the most common misconception about {subject}?",
    "How do cultural differences affect approaches to {subject}?",
    "What resources would you recommend for learning more about {subject}?",
]

_GRAMMAR_SENTENCES = [
    ("If the company (implement) ________ this new system, productivity will increase.", "implements"),
    ("They (work) ________ on this project for three months when the deadline was extended.", "had been working"),
    ("We (not complete) ________ the analysis by the time the meeting starts.", "will not have completed"),
    ("She (attend) ________ all the workshops last year to improve her skills.", "attended"),
    ("The team (discuss) ________ various approaches before they made a decision.", "had discussed"),
    ("You (need) ________ to submit your report before Friday.", "need"),
    ("By next month, they (finish) ________ the initial phase of the project.", "will have finished"),
    ("If I (be) ________ in your position, I would consider a different strategy.", "were"),
    ("The company (not announce) ________ the new policy until all employees are informed.", "will not announce"),
    ("We (prefer) ________ to resolve this issue before proceeding to the next stage.", "would prefer"),
]

_LISTENING_SENTENCES = [
    ("The project manager emphasized the importance of ________ when discussing {subject}.", "communication"),
    ("According to the expert, the main challenge of {subject} is ________.", "time management"),
    ("The new approach to {subject} focuses primarily on ________.", "customer feedback"),
    ("During the conference, they highlighted that successful {subject} depends on ________.", "team collaboration"),
    ("The latest research shows that {subject} can be improved by ________.", "quality control"),
    ("Industry leaders agree that the future of {subject} will include more ________.", "automation"),
    ("The most common mistake companies make with {subject} is ________.", "poor planning"),
    ("A strategic approach to {subject} should always consider ________.", "risk assessment"),
    ("The case study demonstrated how {subject} contributed to ________.", "higher efficiency"),
    ("Experts recommend that beginners in {subject} should first learn about ________.", "the basic terminology"),
]

_TITLES = {
    "vocabulary": "Key Terms in {subject}",
    "reading": "Professional Text Analysis",
    "writing": "Structured Response",
    "speaking": "Guided Discussion",
    "grammar": "Functional Language Practice",
    "listening": "Comprehension Task",
}

_INSTRUCTIONS = {
    "vocabulary": "Match these key terms related to {subject} with their definitions. Then use each term in a sentence of your own.",
    "reading": "Read the following text about {subject} and answer the questions below.",
    "writing": "Write a short paragraph (50-80 words) for each task about {subject} using terms from the vocabulary exercise.",
    "speaking": "Discuss these questions with a partner about {subject}. Take turns and try to use the vocabulary from this lesson.",
    "grammar": "Complete these sentences using the correct grammatical form. Pay attention to the context related to {subject}.",
    "listening": "Listen to your teacher read the sentences and fill in the missing words.",
}

_TEACHER_TIPS = {
    "vocabulary": "Have students work in pairs to discuss the vocabulary before matching. For stronger students, ask them to create sentences using the terms.",
    "reading": "Set a specific time limit for the reading. Have students skim first, then read for detail. Allow discussion of unfamiliar terms before answering questions.",
    "writing": "Multiple correct answers are possible. Look for appropriate use of key terms and concepts related to {subject}. Encourage peer feedback before collecting the texts.",
    "speaking": "Monitor the activity closely and provide support where needed. Prioritize communication over accuracy, but correct crucial errors in {subject} terminology.",
    "grammar": "Before doing the exercise, review the grammar structures highlighted. Watch for common errors with the conditional forms in sentences 1 and 8.",
    "listening": "Read each sentence twice - first for general understanding, then for specific information. Pre-teach any challenging vocabulary.",
}


def _fmt(template: str, lesson: LessonRequest) -> str:
    return template.format(subject=lesson.subject, field=lesson.field, topic=lesson.topic)


# ──────────────────────────────────────────────
# Single entries (also used for padding)
# ──────────────────────────────────────────────

def matching_item(counter: int, lesson: LessonRequest) -> MatchingItem:
    term, definition = VOCABULARY_POOL[counter % len(VOCABULARY_POOL)]
    return MatchingItem(term=term, definition=f"{definition} (related to {lesson.subject})")


def question_item(counter: int, lesson: LessonRequest, exercise_type: str = "speaking") -> QuestionItem:
    if exercise_type == "multiple-choice":
        term, definition = VOCABULARY_POOL[counter % len(VOCABULARY_POOL)]
        distractors = [
            VOCABULARY_POOL[(counter + step) % len(VOCABULARY_POOL)][0] for step in (3, 7, 11)
        ]
        options = distractors[:]
        options.insert(counter % 4, term)
        return QuestionItem(
            text=f"Which term related to {lesson.subject} means: \"{definition}\"?",
            options=options,
            answer=term,
        )
    if exercise_type == "writing":
        prompt = _fmt(_WRITING_PROMPTS[counter % len(_WRITING_PROMPTS)], lesson)
        return QuestionItem(text=f"{prompt} (50-80 words)")
    pool = _READING_QUESTIONS if exercise_type == "reading" else _SPEAKING_QUESTIONS
    return QuestionItem(text=_fmt(pool[counter % len(pool)], lesson))


def sentence_item(counter: int, lesson: LessonRequest, exercise_type: str = "listening") -> SentenceItem:
    pool = _GRAMMAR_SENTENCES if exercise_type == "grammar" else _LISTENING_SENTENCES
    text, answer = pool[counter % len(pool)]
    return SentenceItem(text=_fmt(text, lesson), answer=answer)


def vocabulary_item(counter: int, lesson: LessonRequest) -> VocabularyItem:
    index = counter % len(VOCABULARY_POOL)
    term, definition = VOCABULARY_POOL[index]
    example = _fmt(_EXAMPLE_POOL[index], lesson)
    return VocabularyItem(term=term, definition=definition, example=example)


# ──────────────────────────────────────────────
# Whole sections
# ──────────────────────────────────────────────

def _reading_text(lesson: LessonRequest) -> str:
    paragraph = (
        f"In the field of {lesson.field}, professionals must understand {lesson.subject} "
        f"thoroughly. This involves recognizing key concepts, applying standardized "
        f"methodologies, and adapting to evolving industry requirements. Effective "
        f"{lesson.subject} requires both technical knowledge and practical application "
        f"skills that are relevant to real-world scenarios."
    )
    return "\n\n".join([paragraph] * 3)


def _answers_tip(exercise: Exercise) -> str:
    lines = []
    for n, entry in enumerate(exercise.items or exercise.sentences or exercise.questions or [], 1):
        answer = getattr(entry, "answer", None) or getattr(entry, "definition", None)
        if answer:
            lines.append(f"{n}. {answer}")
    return "\n".join(lines)


def template_exercise(position: int, lesson: LessonRequest, total: int) -> Exercise:
    """Build the fallback exercise for one position in the worksheet."""
    exercise_type = TYPE_CYCLE[position % len(TYPE_CYCLE)]
    title = f"Exercise {position + 1}: {exercise_type.capitalize()} - {_fmt(_TITLES[exercise_type], lesson)}"
    exercise = Exercise(
        title=title,
        type=exercise_type,
        instructions=_fmt(_INSTRUCTIONS[exercise_type], lesson),
        duration=max(1, lesson.minutes // max(1, total)),
    )

    counters = range(ITEMS_PER_EXERCISE)
    if exercise_type == "vocabulary":
        exercise.items = [matching_item(i, lesson) for i in counters]
    elif exercise_type == "reading":
        exercise.content = _reading_text(lesson)
        exercise.questions = [question_item(i, lesson, "reading") for i in counters]
    elif exercise_type in ("writing", "speaking"):
        exercise.questions = [question_item(i, lesson, exercise_type) for i in counters]
    else:
        exercise.sentences = [sentence_item(i, lesson, exercise_type) for i in counters]

    tip = _fmt(_TEACHER_TIPS[exercise_type], lesson)
    answers = _answers_tip(exercise)
    if answers:
        tip = f"Answers:\n{answers}\n\n{tip}"
    exercise.teacher_tip = f"{tip}\n\nTime: {exercise.duration} minutes"
    return exercise


def template_vocabulary(lesson: LessonRequest, count: int, offset: int = 0) -> list[VocabularyItem]:
    return [vocabulary_item(offset + i, lesson) for i in range(count)]


def overview_content(lesson: LessonRequest) -> str:
    lines = [
        f"This worksheet focuses on {lesson.topic} with the objective of {lesson.objective}.",
        f"It contains exercises tailored for a {lesson.minutes}-minute lesson, "
        f"with emphasis on {lesson.preferences}.",
    ]
    if lesson.student_profile:
        lines.append(f"Designed for students who: {lesson.student_profile}")
    if lesson.additional_info:
        lines.append(f"Special considerations: {lesson.additional_info}")
    return "\n".join(lines)


def teacher_tips(lesson: LessonRequest) -> str:
    return "\n".join([
        f"1. Preparation: Review key vocabulary before the lesson. Consider preparing visual aids for complex concepts in {lesson.subject}.",
        f"2. Warmer: Begin with a quick discussion about students' experience with {lesson.field} to activate schema and gauge existing knowledge.",
        "3. Scaffolding: For the speaking exercises, consider providing sentence starters for lower-level students.",
        "4. Differentiation: Ask stronger students to expand answers with justifications; allow weaker students to use vocabulary notes during activities.",
        f"5. Feedback: Prioritize communication over accuracy for speaking tasks, but correct crucial errors in {lesson.subject} terminology.",
        f"6. Extension: If time permits, encourage students to role-play a scenario involving {lesson.subject}.",
        "7. Follow-up: Consider assigning a short writing task using the vocabulary from today's lesson as homework.",
        f"8. Cultural context: Concepts around {lesson.field} may differ between cultures, so encourage students to share their perspectives.",
    ])
