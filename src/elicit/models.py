"""
Elicit Data Model

Pydantic models shared by the questioning engine, its helpers and the
MCP tool surface. Template catalogs may use snake_case or camelCase keys.
"""

import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


QuestionCategory = Literal[
    "requirements",
    "constraints",
    "architecture",
    "edge-cases",
    "performance",
    "security",
    "testing",
    "clarification",
    "validation",
]

QuestionPriority = Literal["critical", "high", "medium", "low"]

ALL_CATEGORIES: tuple[str, ...] = get_args(QuestionCategory)
PRIORITY_ORDER: tuple[str, ...] = ("critical", "high", "medium", "low")
DEFAULT_TARGET_CONFIDENCE = 0.85


class ElicitModel(BaseModel):
    """Base model accepting both snake_case and camelCase input keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Templates
# =============================================================================

class QuestionTemplate(ElicitModel):
    """Reusable question blueprint with `{placeholder}` parameters."""

    id: str
    template: str
    category: QuestionCategory
    phase: list[str]
    priority: QuestionPriority
    conditions: dict[str, Any] = Field(default_factory=dict)
    follow_ups: list[str] = Field(default_factory=list)


class PhaseRequirement(ElicitModel):
    """Gating rule for one workflow phase."""

    min_questions: int = Field(0, ge=0)
    min_coverage: dict[str, int] = Field(default_factory=dict)
    target_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class FollowUpCondition(ElicitModel):
    triggers: list[str] = Field(default_factory=list)
    action: str = ""


class FollowUpRules(ElicitModel):
    max_depth: int = Field(3, ge=0)
    conditions: dict[str, FollowUpCondition] = Field(default_factory=dict)


class SkipIfAnswered(ElicitModel):
    similar_questions: bool = False
    covered_in_follow_up: bool = False


class RepeatIfAmbiguous(ElicitModel):
    max_attempts: int = 1
    escalate_to: Optional[QuestionCategory] = None


class AdaptiveRules(ElicitModel):
    increase_priority_on: dict[str, list[QuestionCategory]] = Field(default_factory=dict)
    skip_if_answered: SkipIfAnswered = Field(default_factory=SkipIfAnswered)
    repeat_if_ambiguous: RepeatIfAmbiguous = Field(default_factory=RepeatIfAmbiguous)

    @field_validator("increase_priority_on", mode="before")
    @classmethod
    def _snake_case_triggers(cls, value):
        # lowConfidence -> low_confidence
        if isinstance(value, dict):
            return {
                re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower(): cats
                for key, cats in value.items()
            }
        return value


class TemplateData(ElicitModel):
    """Everything a template source provides; read-only for a session."""

    templates: list[QuestionTemplate]
    follow_up_rules: FollowUpRules = Field(default_factory=FollowUpRules)
    phase_transitions: dict[str, PhaseRequirement] = Field(default_factory=dict)
    adaptive_rules: AdaptiveRules = Field(default_factory=AdaptiveRules)


# =============================================================================
# Questions and Answers
# =============================================================================

class Question(ElicitModel):
    """A concrete question instantiated from a template."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    phase: str
    question: str
    category: QuestionCategory
    priority: QuestionPriority
    follow_up_to: Optional[str] = None
    template_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Answer(ElicitModel):
    """A free-text response to a question."""

    question_id: str
    answer: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = Field(default_factory=dict)


class QuestionContext(ElicitModel):
    phase: str
    topic: str
    previous_answers: list[Answer] = Field(default_factory=list)
    existing_knowledge: dict[str, Any] = Field(default_factory=dict)
    target_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


# =============================================================================
# Confidence
# =============================================================================

class ConfidenceFactors(ElicitModel):
    clarity: float = Field(0.0, ge=0.0, le=1.0)
    completeness: float = Field(0.0, ge=0.0, le=1.0)
    specificity: float = Field(0.0, ge=0.0, le=1.0)
    consistency: float = Field(0.0, ge=0.0, le=1.0)
    coverage: float = Field(0.0, ge=0.0, le=1.0)
    examples: float = Field(0.0, ge=0.0, le=1.0)


class FactorWeights(ElicitModel):
    clarity: float = 0.25
    completeness: float = 0.20
    specificity: float = 0.20
    consistency: float = 0.15
    coverage: float = 0.15
    examples: float = 0.05


class ConfidenceResult(ElicitModel):
    overall: float = Field(ge=0.0, le=1.0)
    factors: ConfidenceFactors
    missing: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)


# =============================================================================
# Session
# =============================================================================

class SessionStatus(str, Enum):
    COLLECTING = "collecting"
    AWAITING_ANSWER = "awaiting_answer"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class QuestioningStats(ElicitModel):
    total_questions: int
    questions_per_phase: dict[str, int]
    average_confidence_gain: float
    most_effective_categories: list[str]
    convergence_rate: float
    current_confidence: float
    status: SessionStatus


class QuestioningResult(ElicitModel):
    questions: list[Question]
    answers: list[Answer]
    overall_confidence: float
    should_continue: bool
    insights: list[str]
    next_questions: list[Question] = Field(default_factory=list)


class EngineConfig(ElicitModel):
    """Runtime settings for one QuestionEngine."""

    default_target_confidence: float = Field(DEFAULT_TARGET_CONFIDENCE, ge=0.0, le=1.0)
    max_questions_per_session: int = Field(100, ge=0)
    enable_adaptive_priority: bool = True
    persist_questions: bool = False
    raise_on_persistence_error: bool = False
    templates_path: Optional[str] = None
    max_follow_up_depth: Optional[int] = Field(None, ge=0)
    ambiguity_penalty: float = Field(0.2, ge=0.0, le=1.0)
    min_answers_for_consistency: int = Field(3, ge=1)
    weights: Optional[dict[str, float]] = None
    critical_categories: list[QuestionCategory] = Field(
        default_factory=lambda: ["requirements", "constraints", "edge-cases"]
    )
