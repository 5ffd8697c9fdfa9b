"""
Elicit Test Configuration - Shared Fixtures

Provides a small deterministic template catalog, engine factories and
stores. No database is needed: persistence tests use in-memory or fake
connections.
"""
import copy

import pytest

from elicit.engine import QuestionEngine
from elicit.models import Answer, EngineConfig, Question, QuestionContext
from elicit.persistence import InMemoryQuestionStore
from elicit.templates import StaticTemplateSource


SESSION_ID = "test-session"

# camelCase rule keys on purpose: catalogs may use either convention
SMALL_CATALOG = {
    "templates": [
        {
            "id": "req-goals",
            "template": "What must {topic} achieve?",
            "category": "requirements",
            "phase": ["brainstorm", "specify"],
            "priority": "critical",
            "followUps": ["req-detail", "clar-scope"],
        },
        {
            "id": "con-limits",
            "template": "What limits apply to {topic}?",
            "category": "constraints",
            "phase": ["brainstorm"],
            "priority": "high",
            "follow_ups": ["con-detail"],
        },
        {
            "id": "edge-failures",
            "template": "How should {topic} behave when things fail?",
            "category": "edge-cases",
            "phase": ["brainstorm"],
            "priority": "medium",
        },
        {
            "id": "arch-shape",
            "template": "Which components make up {topic}?",
            "category": "architecture",
            "phase": ["brainstorm"],
            "priority": "low",
        },
        {
            "id": "req-detail",
            "template": "Describe one requirement of {topic} in detail.",
            "category": "requirements",
            "phase": [],
            "priority": "medium",
            "follow_ups": ["req-deeper"],
        },
        {
            "id": "req-deeper",
            "template": "What else should {topic} do?",
            "category": "requirements",
            "phase": [],
            "priority": "low",
            "follow_ups": ["req-deepest"],
        },
        {
            "id": "req-deepest",
            "template": "Anything further for {topic}?",
            "category": "requirements",
            "phase": [],
            "priority": "low",
        },
        {
            "id": "con-detail",
            "template": "Which {topic} limit is hardest?",
            "category": "constraints",
            "phase": [],
            "priority": "medium",
        },
        {
            "id": "clar-scope",
            "template": "Which parts of {topic} are must-haves?",
            "category": "clarification",
            "phase": [],
            "priority": "high",
        },
        {
            "id": "clarify-ambiguous",
            "template": 'What do you mean by "{ambiguous_term}" for {topic}?',
            "category": "clarification",
            "phase": [],
            "priority": "critical",
        },
    ],
    "followUpRules": {"maxDepth": 2},
    "phaseTransitions": {
        "brainstorm": {
            "minQuestions": 2,
            "minCoverage": {"requirements": 1, "edge-cases": 1},
            "targetConfidence": 0.85,
        },
        "specify": {"minQuestions": 0, "minCoverage": {}, "targetConfidence": 0.85},
    },
    "adaptiveRules": {
        "increasePriorityOn": {"lowConfidence": ["architecture"]},
    },
}

# Answers from the reference convergence scenario
RICH_REQUIREMENT = "The system must handle 1000 concurrent users with response times under 200ms."
RICH_CONSTRAINT = "We will use PostgreSQL with Redis caching."
RICH_EDGE_CASES = "Edge cases: network failure, concurrent edits. For example, retry with backoff."


@pytest.fixture
def catalog():
    """Fresh copy of the small catalog (tests may mutate it)."""
    return copy.deepcopy(SMALL_CATALOG)


@pytest.fixture
def store():
    return InMemoryQuestionStore()


@pytest.fixture
def make_engine(catalog):
    """Factory for initialized engines over the small catalog."""
    async def _make(config=None, store=None, templates=None, session_id=SESSION_ID):
        engine = QuestionEngine(
            config=config or EngineConfig(),
            template_source=StaticTemplateSource(templates or catalog),
            store=store,
        )
        await engine.initialize(session_id)
        return engine
    return _make


@pytest.fixture
def context():
    return QuestionContext(phase="brainstorm", topic="checkout service")


@pytest.fixture
def scenario_questions():
    """Critical-category questions matching the reference answers."""
    return [
        Question(id="q1", phase="brainstorm", question="What are the functional requirements?",
                 category="requirements", priority="critical"),
        Question(id="q2", phase="brainstorm", question="What technical constraints apply?",
                 category="constraints", priority="high"),
        Question(id="q3", phase="brainstorm", question="Which edge cases matter?",
                 category="edge-cases", priority="high"),
    ]


@pytest.fixture
def scenario_answers():
    return [
        Answer(question_id="q1", answer=RICH_REQUIREMENT, confidence=0.9),
        Answer(question_id="q2", answer=RICH_CONSTRAINT, confidence=0.85),
        Answer(question_id="q3", answer=RICH_EDGE_CASES, confidence=0.9),
    ]
