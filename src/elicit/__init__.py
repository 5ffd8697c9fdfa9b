"""Elicit - adaptive requirements elicitation engine."""

from elicit.engine import QuestionEngine
from elicit.helpers.confidence import ConfidenceCalculator
from elicit.models import (
    Answer,
    EngineConfig,
    Question,
    QuestionContext,
    SessionStatus,
)
from elicit.templates import BUNDLED_TEMPLATES_PATH, FileTemplateSource

__version__ = "0.1.0"

__all__ = [
    "Answer",
    "BUNDLED_TEMPLATES_PATH",
    "ConfidenceCalculator",
    "EngineConfig",
    "FileTemplateSource",
    "Question",
    "QuestionContext",
    "QuestionEngine",
    "SessionStatus",
]
