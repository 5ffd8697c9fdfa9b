"""
Elicit Question Engine - adaptive questioning for one session

Drives the elicitation loop:
- generate_next_question: pick the highest-value unasked template for the phase
- process_answer: store an answer and recompute confidence over all answers
- get_follow_up_questions / generate_clarification_question: dig deeper
- should_continue_questioning: phase minimum first, then target confidence

One engine instance owns one session's state. Scoring is synchronous;
only template loading and store calls are awaited.
"""

import logging
from collections import Counter
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from elicit.errors import (
    EngineNotInitializedError,
    PersistenceError,
    UnknownPhaseError,
)
from elicit.helpers.ambiguity import detect_ambiguity
from elicit.helpers.confidence import ConfidenceCalculator
from elicit.helpers.coverage import find_coverage_gaps
from elicit.helpers.follow_ups import (
    CLARIFY_TEMPLATE_ID,
    build_clarification_question,
    determine_follow_ups,
    extract_topic_from_answer,
)
from elicit.helpers.selection import (
    create_question_from_template,
    sample_questions,
    select_next,
)
from elicit.models import (
    Answer,
    ConfidenceResult,
    EngineConfig,
    PhaseRequirement,
    Question,
    QuestionContext,
    QuestioningResult,
    QuestioningStats,
    QuestionTemplate,
    SessionStatus,
    TemplateData,
)
from elicit.persistence import QuestionStore, build_store
from elicit.templates import FileTemplateSource, TemplateSource

logger = logging.getLogger(__name__)

DEFAULT_PHASE = "brainstorm"
DEFAULT_TEMPLATES_RELPATH = Path("templates") / "questions.yaml"
SUGGESTED_NEXT_QUESTIONS = 3
TOP_CATEGORIES = 3
TERMINAL_STATUSES = (SessionStatus.CONVERGED, SessionStatus.EXHAUSTED)


class QuestionEngine:
    """Adaptive questioning engine for a single elicitation session."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        template_source: Optional[TemplateSource] = None,
        store: Optional[QuestionStore] = None,
    ):
        self.config = config or EngineConfig()
        self.template_source = template_source
        self.store = store
        self.calculator = ConfidenceCalculator(
            weights=self.config.weights,
            critical_categories=self.config.critical_categories,
            min_answers_for_consistency=self.config.min_answers_for_consistency,
            target_confidence=self.config.default_target_confidence,
        )

        self.session_id: Optional[str] = None
        self.template_data: Optional[TemplateData] = None
        self._templates: dict[str, QuestionTemplate] = {}
        self.persistence_failures = 0
        self._reset_state()

    def _reset_state(self) -> None:
        self.current_phase = DEFAULT_PHASE
        self.target_confidence = self.config.default_target_confidence
        self.topic: Optional[str] = None
        self.status = SessionStatus.COLLECTING
        self._asked_question_ids: set[str] = set()
        self._questions: dict[str, Question] = {}
        self._question_templates: dict[str, str] = {}
        self._answers: dict[str, Answer] = {}
        self._follow_up_depth: dict[str, int] = {}
        self._confidence_history: list[float] = []

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self, session_id: str, base_path: Optional[Union[str, Path]] = None) -> None:
        """
        Load templates, connect the store and reload prior session state.

        Args:
            session_id: Session this engine owns
            base_path: Project root; templates default to
                <base_path>/templates/questions.yaml

        Raises:
            TemplatesNotFoundError: Template file missing
            TemplateSourceError: Template file invalid
            PersistenceError: persist_questions is on but no store is available
        """
        self.session_id = session_id
        self._reset_state()

        if self.template_source is None:
            path = self.config.templates_path or Path(base_path or ".") / DEFAULT_TEMPLATES_RELPATH
            self.template_source = FileTemplateSource(path)

        await self.load_templates()

        if self.config.persist_questions:
            self.store = build_store(True, self.store)

        if self.store is not None:
            await self._reload_session()

        logger.info(
            f"Question engine ready for session {session_id}: "
            f"{len(self._templates)} templates, {len(self._questions)} prior questions"
        )

    async def load_templates(self, path: Optional[Union[str, Path]] = None) -> TemplateData:
        """Load (or reload) the template catalog, from `path` if given."""
        source = FileTemplateSource(path) if path is not None else self.template_source
        if source is None:
            raise EngineNotInitializedError("load_templates")

        self.template_data = await source.load()
        self._templates = {t.id: t for t in self.template_data.templates}
        return self.template_data

    async def close(self) -> None:
        """Close the store and drop all session state."""
        if self.store is not None:
            await self._persist("close", self.store.close)
        self._reset_state()
        self.template_data = None
        self._templates = {}
        logger.info(f"Question engine closed for session {self.session_id}")

    # =========================================================================
    # Question Flow
    # =========================================================================

    async def generate_next_question(self, context: QuestionContext) -> Optional[Question]:
        """
        Select, render and register the next question.

        Returns:
            The next Question, or None when the ceiling is reached, the
            session has converged, or templates ran out with the target met

        Raises:
            UnknownPhaseError: context.phase has no phase requirements
        """
        self._require_initialized("generate_next_question")

        if self._ceiling_reached():
            if self.status != SessionStatus.CONVERGED:
                self.status = SessionStatus.EXHAUSTED
            logger.info(f"Session {self.session_id} hit the {self.config.max_questions_per_session} question ceiling")
            return None

        requirement = self._phase_requirement(context.phase)
        self.current_phase = context.phase
        self.topic = context.topic
        self.target_confidence = self.target_confidence_for(context.phase, context.target_confidence)
        context = context.model_copy(update={"target_confidence": self.target_confidence})

        answers = context.previous_answers or self.answers
        confidence = self.calculate_confidence(answers)

        if not self.should_continue_questioning(confidence, self.target_confidence):
            self.status = SessionStatus.CONVERGED
            logger.info(f"Session {self.session_id} converged at {confidence:.2f}")
            return None

        gaps = find_coverage_gaps(requirement, self._asked_templates())
        question = select_next(
            self.template_data.templates,
            context,
            self._asked_template_ids(),
            gaps,
            confidence,
            self.template_data.adaptive_rules,
            self.config.enable_adaptive_priority,
        )

        if question is None:
            self.status = SessionStatus.COLLECTING
            return None

        await self._issue(question, depth=0)
        return question

    async def process_answer(self, answer: Answer) -> float:
        """
        Record an answer and return the recomputed overall confidence.

        Ambiguous answers are stored with their confidence reduced by the
        ambiguity penalty (floor 0). Answers for unknown question ids are
        accepted but carry no template link.
        """
        self._require_initialized("process_answer")

        known = answer.question_id in self._questions
        if answer.question_id not in self._asked_question_ids:
            logger.warning(f"Answer for unknown question {answer.question_id}; adopting it")
            self._asked_question_ids.add(answer.question_id)

        stored = answer
        if detect_ambiguity(answer.answer):
            stored = answer.model_copy(update={
                "confidence": max(0.0, answer.confidence - self.config.ambiguity_penalty),
                "metadata": {**answer.metadata, "ambiguous": True},
            })

        self._answers[answer.question_id] = stored
        confidence = self.calculate_confidence(self.answers)
        self._confidence_history.append(confidence)
        self._update_status(confidence)

        if self.store is not None and known:
            await self._persist(
                "save_answer",
                lambda: self.store.save_answer(stored.question_id, stored.answer, stored.confidence),
            )

        return confidence

    async def get_follow_up_questions(self, answer: Answer) -> list[Question]:
        """
        Expand an answer into follow-up questions from its source template.

        Stops at max follow-up depth and at the session ceiling; follow-up
        templates already asked are skipped.
        """
        self._require_initialized("get_follow_up_questions")

        template_id = self._question_templates.get(answer.question_id)
        template = self._templates.get(template_id) if template_id else None
        if template is None:
            return []

        depth = self._follow_up_depth.get(answer.question_id, 0)
        if depth >= self.max_follow_up_depth:
            return []

        chosen = determine_follow_ups(
            template, self._templates, answer.answer, detect_ambiguity(answer.answer)
        )

        parent = self._questions.get(answer.question_id)
        context = QuestionContext(
            phase=parent.phase if parent else self.current_phase,
            topic=self.topic or extract_topic_from_answer(answer.answer),
        )

        asked_template_ids = self._asked_template_ids()
        follow_ups = []
        for follow_up in chosen:
            if follow_up.id in asked_template_ids:
                continue
            if self._ceiling_reached():
                break
            question = create_question_from_template(follow_up, context, follow_up_to=answer.question_id)
            await self._issue(question, depth=depth + 1)
            asked_template_ids.add(follow_up.id)
            follow_ups.append(question)

        return follow_ups

    async def generate_clarification_question(
        self, question: Question, answer_text: str
    ) -> Optional[Question]:
        """Ask about the first hedged part of an answer; None past max depth or ceiling."""
        self._require_initialized("generate_clarification_question")

        depth = self._follow_up_depth.get(question.id, 0)
        if depth >= self.max_follow_up_depth or self._ceiling_reached():
            return None

        clarification = build_clarification_question(
            question, answer_text, self._templates.get(CLARIFY_TEMPLATE_ID)
        )
        await self._issue(clarification, depth=depth + 1)
        return clarification

    def generate_questions(self, topic: str, phase: str, count: int = 5) -> list[Question]:
        """
        Sample up to `count` diverse questions for a phase.

        Does not register anything in the session.
        """
        self._require_initialized("generate_questions")
        self._phase_requirement(phase)
        return sample_questions(
            self.template_data.templates,
            QuestionContext(phase=phase, topic=topic),
            count,
        )

    # =========================================================================
    # Confidence
    # =========================================================================

    def calculate_confidence(self, answers: list[Answer]) -> float:
        return self.calculate_confidence_result(answers).overall

    def calculate_confidence_result(self, answers: list[Answer]) -> ConfidenceResult:
        questions = [self._questions[a.question_id] for a in answers if a.question_id in self._questions]
        return self.calculator.calculate(answers, questions)

    def target_confidence_for(self, phase: str, explicit: Optional[float] = None) -> float:
        """Caller's target if given, else the phase's catalog target, else the configured default."""
        if explicit is not None:
            return explicit
        requirement = self._phase_requirements().get(phase)
        if requirement is not None and requirement.target_confidence is not None:
            return requirement.target_confidence
        return self.config.default_target_confidence

    def should_continue_questioning(self, confidence: float, target: Optional[float] = None) -> bool:
        """Keep asking until the phase minimum is met and confidence reaches target."""
        if target is None:
            target = self.target_confidence

        requirement = self._phase_requirements().get(self.current_phase)
        if requirement and len(self._asked_question_ids) < requirement.min_questions:
            return True

        return confidence < target

    def detect_ambiguity(self, text: str) -> bool:
        return detect_ambiguity(text)

    def extract_insights(self, answers: list[Answer]) -> list[str]:
        return self.calculate_confidence_result(answers).insights

    # =========================================================================
    # Results and Stats
    # =========================================================================

    def get_result(self) -> QuestioningResult:
        """Snapshot of the session: questions, answers, confidence, suggestions."""
        answers = self.answers
        result = self.calculate_confidence_result(answers)
        should_continue = self.should_continue_questioning(result.overall)

        next_questions = []
        if should_continue and self.topic and self.template_data is not None:
            asked = self._asked_template_ids()
            next_questions = [
                q for q in self.generate_questions(self.topic, self.current_phase, SUGGESTED_NEXT_QUESTIONS * 2)
                if q.template_id not in asked
            ][:SUGGESTED_NEXT_QUESTIONS]

        return QuestioningResult(
            questions=list(self._questions.values()),
            answers=answers,
            overall_confidence=result.overall,
            should_continue=should_continue,
            insights=result.insights,
            next_questions=next_questions,
        )

    def get_stats(self) -> QuestioningStats:
        per_phase = {phase: 0 for phase in self._phase_requirements()}
        categories: Counter = Counter()
        for question in self._questions.values():
            per_phase[question.phase] = per_phase.get(question.phase, 0) + 1
            categories[question.category] += 1

        history = self._confidence_history
        gain = 0.0
        if len(history) > 1:
            gain = (history[-1] - history[0]) / len(history)

        return QuestioningStats(
            total_questions=len(self._asked_question_ids),
            questions_per_phase=per_phase,
            average_confidence_gain=gain,
            most_effective_categories=[cat for cat, _ in categories.most_common(TOP_CATEGORIES)],
            convergence_rate=gain * len(self._answers),
            current_confidence=history[-1] if history else 0.0,
            status=self.status,
        )

    @property
    def answers(self) -> list[Answer]:
        return list(self._answers.values())

    @property
    def asked_question_ids(self) -> set[str]:
        return set(self._asked_question_ids)

    @property
    def confidence_history(self) -> list[float]:
        return list(self._confidence_history)

    @property
    def max_follow_up_depth(self) -> int:
        if self.config.max_follow_up_depth is not None:
            return self.config.max_follow_up_depth
        if self.template_data is not None:
            return self.template_data.follow_up_rules.max_depth
        return 3

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def get_depth(self, question_id: str) -> int:
        return self._follow_up_depth.get(question_id, 0)

    # =========================================================================
    # Persistence
    # =========================================================================

    async def store_question_answer(self, question: Question, answer: Answer) -> bool:
        """Write a question and its answer to the store. False if nothing was stored."""
        if self.store is None or self.session_id is None:
            return False
        saved = await self._persist("save_question", lambda: self.store.save_question(self.session_id, question))
        if saved is None:
            return False
        await self._persist(
            "save_answer",
            lambda: self.store.save_answer(question.id, answer.answer, answer.confidence),
        )
        return True

    async def get_session_questions(self, session_id: str) -> list[dict[str, Any]]:
        """
        Questions (with answers where given) recorded for a session.

        Reads the store when there is one, otherwise this engine's own state.
        """
        if self.store is not None:
            rows = await self.store.get_questions(session_id)
            return [self._pair_from_row(row) for row in rows]

        if session_id != self.session_id:
            return []
        return [
            {"question": q, "answer": self._answers.get(qid)}
            for qid, q in self._questions.items()
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_initialized(self, operation: str) -> None:
        if self.template_data is None:
            raise EngineNotInitializedError(operation)

    def _phase_requirements(self) -> dict[str, PhaseRequirement]:
        if self.template_data is None:
            return {}
        return self.template_data.phase_transitions

    def validate_phase(self, phase: str) -> PhaseRequirement:
        """Raise UnknownPhaseError unless the catalog defines this phase."""
        self._require_initialized("validate_phase")
        return self._phase_requirement(phase)

    def _phase_requirement(self, phase: str) -> PhaseRequirement:
        requirement = self._phase_requirements().get(phase)
        if requirement is None:
            raise UnknownPhaseError(phase)
        return requirement

    def _ceiling_reached(self) -> bool:
        return len(self._asked_question_ids) >= self.config.max_questions_per_session

    def _asked_template_ids(self) -> set[str]:
        return set(self._question_templates.values())

    def _asked_templates(self) -> list[QuestionTemplate]:
        return [
            self._templates[tid]
            for tid in self._question_templates.values()
            if tid in self._templates
        ]

    def _register(self, question: Question, depth: int) -> None:
        self._asked_question_ids.add(question.id)
        self._questions[question.id] = question
        if question.template_id:
            self._question_templates[question.id] = question.template_id
        self._follow_up_depth[question.id] = depth

    async def _issue(self, question: Question, depth: int) -> None:
        self._register(question, depth)
        if self.status not in TERMINAL_STATUSES:
            self.status = SessionStatus.AWAITING_ANSWER
        logger.info(
            f"Session {self.session_id} asked [{question.category}/{question.priority}] "
            f"{question.template_id or 'generic'} (depth {depth})"
        )
        if self.store is not None:
            await self._persist("save_question", lambda: self.store.save_question(self.session_id, question))

    def _update_status(self, confidence: float) -> None:
        if not self.should_continue_questioning(confidence):
            self.status = SessionStatus.CONVERGED
        elif self._ceiling_reached():
            self.status = SessionStatus.EXHAUSTED
        else:
            self.status = SessionStatus.COLLECTING

    async def _persist(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Any:
        """Run a store call; failures are logged and counted, never fatal to scoring."""
        try:
            return await call()
        except Exception as e:
            self.persistence_failures += 1
            logger.warning(f"Question store {operation} failed for session {self.session_id}: {e}")
            if self.config.raise_on_persistence_error:
                if isinstance(e, PersistenceError):
                    raise
                raise PersistenceError(operation, str(e)) from e
            return None

    async def _reload_session(self) -> None:
        rows = await self._persist("get_questions", lambda: self.store.get_questions(self.session_id))
        if not rows:
            return

        for row in rows:
            pair = self._pair_from_row(row)
            question, answer = pair["question"], pair["answer"]
            parent_depth = self._follow_up_depth.get(question.follow_up_to) if question.follow_up_to else None
            self._register(question, 0 if parent_depth is None else parent_depth + 1)
            self.current_phase = question.phase
            if answer is not None:
                self._answers[question.id] = answer

        self.target_confidence = self.target_confidence_for(self.current_phase)
        if self._answers:
            confidence = self.calculate_confidence(self.answers)
            self._confidence_history.append(confidence)
            self._update_status(confidence)

        logger.info(f"Reloaded {len(rows)} questions for session {self.session_id}")

    @staticmethod
    def _pair_from_row(row: dict[str, Any]) -> dict[str, Any]:
        question = Question(
            id=str(row["id"]),
            phase=row["phase"],
            question=row["question"],
            category=row["category"],
            priority=row["priority"],
            follow_up_to=row.get("follow_up_to"),
            template_id=row.get("template_id"),
        )
        answer = None
        if row.get("answer") is not None:
            confidence = row.get("confidence_impact") or 0.0
            answer = Answer(
                question_id=question.id,
                answer=row["answer"],
                confidence=max(0.0, min(1.0, float(confidence))),
                **({"timestamp": row["answered_at"]} if row.get("answered_at") else {}),
            )
        return {"question": question, "answer": answer}
