"""
Elicit Question Selection Helpers

Pure functions for scoring, ranking and rendering question templates.
The engine owns session state; everything here takes it as arguments.
"""

from typing import Any, Optional

from elicit.models import (
    DEFAULT_TARGET_CONFIDENCE,
    PRIORITY_ORDER,
    AdaptiveRules,
    Question,
    QuestionContext,
    QuestionTemplate,
)

# =============================================================================
# Scoring Configuration
# =============================================================================

PRIORITY_SCORES = {
    "critical": 1000,
    "high": 100,
    "medium": 10,
    "low": 1,
}

COVERAGE_GAP_BONUS = 500
LOW_CONFIDENCE_BONUS = 200
LOW_CONFIDENCE_THRESHOLD = 0.5
LOW_CONFIDENCE_TRIGGER = "low_confidence"

GENERIC_CLARIFICATION = (
    "We need more clarity on {topic}. Could you provide more specific "
    "details about your requirements and constraints?"
)


# =============================================================================
# Pure Helper Functions
# =============================================================================

def candidate_templates(
    templates: list[QuestionTemplate],
    phase: str,
    asked_template_ids: set[str],
) -> list[QuestionTemplate]:
    """Templates for this phase that have not been asked yet, in catalog order."""
    return [
        t for t in templates
        if phase in t.phase and t.id not in asked_template_ids
    ]


def score_template(
    template: QuestionTemplate,
    gaps: list[str],
    confidence: float,
    adaptive_rules: Optional[AdaptiveRules] = None,
    adaptive_enabled: bool = True,
) -> int:
    """
    Score a template for selection.

    priority weight + 500 if its category is a coverage gap
    + 200 if adaptive priority applies (confidence < 0.5 and the category
    is boosted on low confidence).
    """
    score = PRIORITY_SCORES.get(template.priority, 0)

    if template.category in gaps:
        score += COVERAGE_GAP_BONUS

    if adaptive_enabled and adaptive_rules and confidence < LOW_CONFIDENCE_THRESHOLD:
        boosted = adaptive_rules.increase_priority_on.get(LOW_CONFIDENCE_TRIGGER, [])
        if template.category in boosted:
            score += LOW_CONFIDENCE_BONUS

    return score


def prioritize_templates(
    templates: list[QuestionTemplate],
    gaps: list[str],
    confidence: float,
    adaptive_rules: Optional[AdaptiveRules] = None,
    adaptive_enabled: bool = True,
) -> list[QuestionTemplate]:
    """Sort templates by descending score. Stable: ties keep catalog order."""
    return sorted(
        templates,
        key=lambda t: score_template(t, gaps, confidence, adaptive_rules, adaptive_enabled),
        reverse=True,
    )


def render_template(text: str, topic: str, existing_knowledge: Optional[dict[str, Any]] = None) -> str:
    """Substitute {topic} and any {key} from existing knowledge; leave others as-is."""
    rendered = text.replace("{topic}", topic)
    for key, value in (existing_knowledge or {}).items():
        rendered = rendered.replace("{" + key + "}", str(value))
    return rendered


def create_question_from_template(
    template: QuestionTemplate,
    context: QuestionContext,
    follow_up_to: Optional[str] = None,
) -> Question:
    """Instantiate a fresh Question (new id) from a template."""
    return Question(
        phase=context.phase,
        question=render_template(template.template, context.topic, context.existing_knowledge),
        category=template.category,
        priority=template.priority,
        follow_up_to=follow_up_to,
        template_id=template.id,
        metadata={"template_id": template.id, "topic": context.topic},
    )


def build_generic_clarification(context: QuestionContext) -> Question:
    return Question(
        phase=context.phase,
        question=GENERIC_CLARIFICATION.replace("{topic}", context.topic),
        category="clarification",
        priority="high",
        metadata={"generic": True, "topic": context.topic},
    )


def select_next(
    templates: list[QuestionTemplate],
    context: QuestionContext,
    asked_template_ids: set[str],
    gaps: list[str],
    confidence: float,
    adaptive_rules: Optional[AdaptiveRules] = None,
    adaptive_enabled: bool = True,
) -> Optional[Question]:
    """
    Pick and render the next question.

    Args:
        templates: Full template catalog
        context: Phase, topic, knowledge and target confidence
        asked_template_ids: Template ids already used this session
        gaps: Coverage gap categories for the phase
        confidence: Current overall confidence
        adaptive_rules: Catalog adaptive rules
        adaptive_enabled: Whether the low-confidence boost applies

    Returns:
        A rendered Question; a generic clarification when no template is
        left and confidence is below target; None otherwise
    """
    candidates = candidate_templates(templates, context.phase, asked_template_ids)
    ranked = prioritize_templates(candidates, gaps, confidence, adaptive_rules, adaptive_enabled)

    if ranked:
        return create_question_from_template(ranked[0], context)

    target = context.target_confidence
    if target is None:
        target = DEFAULT_TARGET_CONFIDENCE
    if confidence < target:
        return build_generic_clarification(context)

    return None


def sample_questions(
    templates: list[QuestionTemplate],
    context: QuestionContext,
    count: int = 5,
) -> list[Question]:
    """
    Build up to `count` questions for a phase without touching session state.

    Walks priority tiers from critical to low and takes at most one template
    per category in a first pass, then fills remaining slots in catalog order.
    """
    if count <= 0:
        return []

    phase_templates = [t for t in templates if context.phase in t.phase]
    ordered = []
    for priority in PRIORITY_ORDER:
        ordered.extend(t for t in phase_templates if t.priority == priority)

    picked: list[QuestionTemplate] = []
    seen_categories: set[str] = set()

    for template in ordered:
        if len(picked) >= count:
            break
        if template.category in seen_categories:
            continue
        picked.append(template)
        seen_categories.add(template.category)

    for template in ordered:
        if len(picked) >= count:
            break
        if template not in picked:
            picked.append(template)

    return [create_question_from_template(t, context) for t in picked]
