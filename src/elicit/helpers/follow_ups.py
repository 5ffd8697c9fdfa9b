"""
Elicit Follow-Up Helpers

Pure functions deciding which follow-up templates an answer triggers and
building clarification questions for ambiguous answers.
"""

from typing import Optional

from elicit.helpers.ambiguity import first_ambiguous_part
from elicit.helpers.selection import render_template
from elicit.models import Question, QuestionTemplate

# Answers shorter than this get every follow-up
SHORT_ANSWER_CHARS = 50

CLARIFY_TEMPLATE_ID = "clarify-ambiguous"
CLARIFY_FALLBACK = 'Could you be more specific about "{part}"? What exactly do you mean?'

TOPIC_WORDS = 3


def determine_follow_ups(
    template: QuestionTemplate,
    templates_by_id: dict[str, QuestionTemplate],
    answer_text: str,
    is_ambiguous: bool,
) -> list[QuestionTemplate]:
    """
    Select follow-up templates for an answer to `template`.

    Ambiguous answers only get clarification follow-ups, short answers get
    all of them, and anything else gets the first one.
    """
    follow_ups = [templates_by_id[fid] for fid in template.follow_ups if fid in templates_by_id]
    if not follow_ups:
        return []

    if is_ambiguous:
        return [t for t in follow_ups if t.category == "clarification"]

    if len(answer_text) < SHORT_ANSWER_CHARS:
        return follow_ups

    return follow_ups[:1]


def extract_topic_from_answer(answer_text: str) -> str:
    return " ".join(answer_text.split()[:TOPIC_WORDS])


def build_clarification_question(
    original: Question,
    answer_text: str,
    clarify_template: Optional[QuestionTemplate] = None,
) -> Question:
    """
    Ask the user to pin down the first hedged part of their answer.

    Uses the clarify-ambiguous template when the catalog has one.
    """
    part = first_ambiguous_part(answer_text)

    if clarify_template is not None:
        topic = original.metadata.get("topic", extract_topic_from_answer(answer_text))
        text = render_template(clarify_template.template, topic, {"ambiguous_term": part})
        template_id = clarify_template.id
    else:
        text = CLARIFY_FALLBACK.replace("{part}", part)
        template_id = None

    return Question(
        phase=original.phase,
        question=text,
        category="clarification",
        priority="critical",
        follow_up_to=original.id,
        template_id=template_id,
        metadata={"ambiguous_part": part, "original_question": original.id},
    )
