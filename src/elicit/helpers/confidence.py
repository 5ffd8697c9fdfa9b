"""
Elicit Confidence Calculator

Scores how completely a topic's requirements have been elicited from six
independent factors, each in [0, 1]:
- clarity: decisive vs hedging language, self-reported confidence
- completeness: answer length bands, multi-part coverage
- specificity: technical terms, numbers, code-like notation
- consistency: pairwise contradictions, shared terminology
- coverage: critical and overall category coverage
- examples: example phrases, code, enumerated scenarios

The overall score is a fixed convex combination of the factors. Pure and
deterministic: no randomness, no I/O.
"""

import re
from typing import Optional

from elicit.errors import InvalidWeightsError
from elicit.models import (
    ALL_CATEGORIES,
    Answer,
    ConfidenceFactors,
    ConfidenceResult,
    FactorWeights,
    Question,
)


# =============================================================================
# Lexicons
# =============================================================================

HEDGING_PHRASES = [
    "maybe", "possibly", "might", "could be", "not sure",
    "i think", "probably", "depends", "sometimes",
]

DECISIVE_PHRASES = [
    "must", "will", "always", "never", "exactly",
    "specifically", "definitely", "certainly",
]

TECHNICAL_INDICATORS = [
    # Programming concepts
    "api", "database", "function", "class", "interface",
    "component", "service", "repository", "controller",
    "schema", "endpoint", "queue", "cache",
    # Measurable requirements
    "milliseconds", "seconds", "bytes", "users", "requests",
    "performance", "latency", "throughput", "concurrent",
    "timeout", "retry",
    # Concrete framing
    "for example", "e.g.", "such as", "specifically",
    "in this case", "the following",
]

GENERIC_PHRASES = [
    "it depends", "various", "different", "some", "many",
    "a lot", "a few", "several", "multiple",
]

EXAMPLE_INDICATORS = [
    "for example", "for instance", "e.g.", "such as",
    "like", "consider", "suppose", "imagine",
    "let's say", "scenario", "use case", "sample",
]

# Antonym pairs used for contradiction detection
OPPOSITES = [
    ("yes", "no"),
    ("true", "false"),
    ("always", "never"),
    ("must", "must not"),
    ("will", "won't"),
    ("can", "cannot"),
    ("should", "should not"),
]

STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "been", "being", "have", "has", "had", "do", "does", "did", "will",
    "would", "could", "should", "may", "might", "must", "can", "shall",
    "that", "this", "these", "those", "it", "its", "we", "our", "your",
}

# =============================================================================
# Scoring constants
# =============================================================================

DEFAULT_CRITICAL_CATEGORIES = ["requirements", "constraints", "edge-cases"]
TOTAL_POSSIBLE_CATEGORIES = len(ALL_CATEGORIES)

PHRASE_STEP = 0.1
BARE_REPLY_PENALTY = 0.3
STRUCTURE_BONUS = 0.2
MULTI_PART_BONUS = 0.2
TECHNICAL_STEP = 0.05
TECHNICAL_CAP = 0.3
NUMERIC_BONUS = 0.1
CODE_NOTATION_BONUS = 0.2
GENERIC_STEP = 0.05
NEUTRAL_CONSISTENCY = 0.7
CONTRADICTION_PENALTY = 0.15
TERMINOLOGY_BONUS = 0.2
TERM_REUSE_RATIO = 0.3
MIN_SHARED_TERMS = 3
EXAMPLE_STEP = 0.25
CODE_EXAMPLE_BONUS = 0.5
SCENARIO_BONUS = 0.3
CRITICAL_COVERAGE_WEIGHT = 0.7
DIVERSITY_WEIGHT = 0.3

_LIST_MARKER = re.compile(r"\n\d+\.")
_ANSWER_SEGMENTS = re.compile(r"\n\n|\n-|\n\d+\.")
_NUMBERED_SCENARIOS = re.compile(r"\n\d+\..*\n\d+\.")
_BULLETED_SCENARIOS = re.compile(r"\n-.*\n-")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _mean(scores: list[float]) -> float:
    return sum(scores) / len(scores) if scores else 0.0


def _count_phrases(text: str, phrases: list[str]) -> int:
    return sum(1 for phrase in phrases if phrase in text)


def _contains_word(text: str, word: str) -> bool:
    return re.search(rf"(?<![a-z']){re.escape(word)}(?![a-z'])", text) is not None


def normalize_weights(weights: Optional[dict[str, float]] = None) -> FactorWeights:
    """
    Merge custom weights over the defaults and rescale them to sum to 1.

    Raises:
        InvalidWeightsError: Unknown factor, negative weight, or zero sum
    """
    merged = FactorWeights().model_dump()
    for name, value in (weights or {}).items():
        if name not in merged:
            raise InvalidWeightsError(f"unknown factor '{name}'")
        if value < 0:
            raise InvalidWeightsError(f"weight for '{name}' is negative ({value})")
        merged[name] = float(value)

    total = sum(merged.values())
    if total <= 0:
        raise InvalidWeightsError("weights must sum to a positive value")

    return FactorWeights(**{name: value / total for name, value in merged.items()})


def extract_key_terms(text: str) -> list[str]:
    """Lowercased alphanumeric words longer than 3 chars, minus stopwords."""
    terms = []
    for word in text.split():
        cleaned = _NON_ALNUM.sub("", word.lower())
        if len(cleaned) > 3 and cleaned not in STOPWORDS:
            terms.append(cleaned)
    return terms


def shared_terms(text1: str, text2: str) -> set[str]:
    return set(extract_key_terms(text1)) & set(extract_key_terms(text2))


def detect_contradiction(text1: str, text2: str) -> bool:
    """
    Flag two answers as contradictory.

    True when one text uses one side of an antonym pair, the other uses the
    opposite side, and they share more than three key terms. A topical
    overlap heuristic, not real NLP.
    """
    text1 = text1.lower()
    text2 = text2.lower()

    for word1, word2 in OPPOSITES:
        crossed = (
            (_contains_word(text1, word1) and _contains_word(text2, word2))
            or (_contains_word(text1, word2) and _contains_word(text2, word1))
        )
        if crossed and len(shared_terms(text1, text2)) > MIN_SHARED_TERMS:
            return True

    return False


def count_contradictions(texts: list[str]) -> int:
    """Number of unordered answer pairs that contradict each other."""
    contradictions = 0
    for i in range(len(texts)):
        for j in range(i + 1, len(texts)):
            if detect_contradiction(texts[i], texts[j]):
                contradictions += 1
    return contradictions


class ConfidenceCalculator:
    """Weighted multi-factor confidence scoring over an answer set."""

    def __init__(
        self,
        weights: Optional[dict[str, float]] = None,
        critical_categories: Optional[list[str]] = None,
        min_answers_for_consistency: int = 3,
        target_confidence: float = 0.85,
    ):
        self.weights = normalize_weights(weights)
        self.critical_categories = list(
            dict.fromkeys(critical_categories or DEFAULT_CRITICAL_CATEGORIES)
        )
        self.min_answers_for_consistency = min_answers_for_consistency
        self.target_confidence = target_confidence

    # =========================================================================
    # Public API
    # =========================================================================

    def calculate(self, answers: list[Answer], questions: list[Question]) -> ConfidenceResult:
        """
        Calculate overall confidence from answers and the questions they answer.

        Questions are matched to answers by id. Position is used only when
        the two lists are parallel (same length).

        Args:
            answers: Answers in the order they were received
            questions: Questions asked (parallel list or any order)

        Returns:
            ConfidenceResult with overall score, factors, missing critical
            categories and insight strings
        """
        if not answers:
            return ConfidenceResult(
                overall=0.0,
                factors=ConfidenceFactors(),
                missing=list(self.critical_categories),
                insights=["No answers provided yet"],
            )

        matched = self._match_questions(answers, questions)
        factors = self.calculate_factors(answers, matched, questions)
        overall = self.combine(factors)

        return ConfidenceResult(
            overall=overall,
            factors=factors,
            missing=self.find_missing_categories(questions),
            insights=self.generate_insights(factors, overall),
        )

    def calculate_factors(
        self,
        answers: list[Answer],
        matched: list[Optional[Question]],
        questions: list[Question],
    ) -> ConfidenceFactors:
        return ConfidenceFactors(
            clarity=self.calculate_clarity(answers),
            completeness=self.calculate_completeness(answers, matched),
            specificity=self.calculate_specificity(answers),
            consistency=self.calculate_consistency(answers),
            coverage=self.calculate_coverage(questions),
            examples=self.calculate_examples(answers),
        )

    def combine(self, factors: ConfidenceFactors) -> float:
        """Weighted sum of the factors, clamped to [0, 1]."""
        w = self.weights
        overall = (
            factors.clarity * w.clarity
            + factors.completeness * w.completeness
            + factors.specificity * w.specificity
            + factors.consistency * w.consistency
            + factors.coverage * w.coverage
            + factors.examples * w.examples
        )
        return _clamp(overall)

    def is_confidence_sufficient(self, confidence: float) -> bool:
        return confidence >= self.target_confidence

    def find_missing_categories(self, questions: list[Question]) -> list[str]:
        covered = {q.category for q in questions}
        return [cat for cat in self.critical_categories if cat not in covered]

    # =========================================================================
    # Factors
    # =========================================================================

    def calculate_clarity(self, answers: list[Answer]) -> float:
        scores = []
        for answer in answers:
            text = answer.answer.lower()
            score = 0.0

            score -= _count_phrases(text, HEDGING_PHRASES) * PHRASE_STEP
            score += _count_phrases(text, DECISIVE_PHRASES) * PHRASE_STEP

            # Bare yes/no without elaboration
            bare = text.strip().rstrip(".!")
            if len(text) < 10 and bare in ("yes", "no"):
                score -= BARE_REPLY_PENALTY

            if "\n-" in text or "\n*" in text or _LIST_MARKER.search(text):
                score += STRUCTURE_BONUS

            score += answer.confidence
            scores.append(_clamp(score))

        return _mean(scores)

    def calculate_completeness(
        self, answers: list[Answer], matched: list[Optional[Question]]
    ) -> float:
        scores = []
        for answer, question in zip(answers, matched):
            if question is None:
                scores.append(0.5)
                continue

            text = answer.answer
            word_count = len(text.split())
            if word_count < 5:
                score = 0.2
            elif word_count < 20:
                score = 0.5
            elif word_count < 100:
                score = 0.8
            elif word_count < 200:
                score = 1.0
            else:
                score = 0.9  # rambling

            question_marks = question.question.count("?")
            if question_marks >= 2:
                answer_parts = len(_ANSWER_SEGMENTS.split(text))
                if answer_parts >= question_marks:
                    score = min(1.0, score + MULTI_PART_BONUS)

            scores.append(score)

        return _mean(scores)

    def calculate_specificity(self, answers: list[Answer]) -> float:
        scores = []
        for answer in answers:
            text = answer.answer.lower()
            score = 0.5

            technical_count = _count_phrases(text, TECHNICAL_INDICATORS)
            score += min(TECHNICAL_CAP, technical_count * TECHNICAL_STEP)

            if any(ch.isdigit() for ch in text):
                score += NUMERIC_BONUS

            if "`" in text or "()" in text or "{}" in text:
                score += CODE_NOTATION_BONUS

            score -= _count_phrases(text, GENERIC_PHRASES) * GENERIC_STEP
            scores.append(_clamp(score))

        return _mean(scores)

    def calculate_consistency(self, answers: list[Answer]) -> float:
        if len(answers) < self.min_answers_for_consistency:
            return NEUTRAL_CONSISTENCY

        texts = [a.answer.lower() for a in answers]
        score = 1.0 - count_contradictions(texts) * CONTRADICTION_PENALTY

        # Terminology reused across answers
        document_frequency: dict[str, int] = {}
        for text in texts:
            for term in set(extract_key_terms(text)):
                document_frequency[term] = document_frequency.get(term, 0) + 1

        if document_frequency:
            threshold = max(2, len(answers) * TERM_REUSE_RATIO)
            reused = sum(1 for freq in document_frequency.values() if freq >= threshold)
            score += (reused / len(document_frequency)) * TERMINOLOGY_BONUS

        return _clamp(score)

    def calculate_coverage(self, questions: list[Question]) -> float:
        if not questions:
            return 0.0

        categories_covered = {q.category for q in questions}
        if self.critical_categories:
            critical_covered = sum(
                1 for cat in self.critical_categories if cat in categories_covered
            )
            critical_coverage = critical_covered / len(self.critical_categories)
        else:
            critical_coverage = 1.0

        diversity = len(categories_covered) / TOTAL_POSSIBLE_CATEGORIES
        return _clamp(critical_coverage * CRITICAL_COVERAGE_WEIGHT + diversity * DIVERSITY_WEIGHT)

    def calculate_examples(self, answers: list[Answer]) -> float:
        scores = []
        for answer in answers:
            text = answer.answer.lower()
            score = min(1.0, _count_phrases(text, EXAMPLE_INDICATORS) * EXAMPLE_STEP)

            if "`" in text:
                score = min(1.0, score + CODE_EXAMPLE_BONUS)

            if _NUMBERED_SCENARIOS.search(text) or _BULLETED_SCENARIOS.search(text):
                score = min(1.0, score + SCENARIO_BONUS)

            scores.append(score)

        return _mean(scores)

    # =========================================================================
    # Insights
    # =========================================================================

    def generate_insights(self, factors: ConfidenceFactors, overall: float) -> list[str]:
        insights = []

        if factors.clarity < 0.5:
            insights.append("Answers contain too much ambiguity - need more definitive responses")
        if factors.completeness < 0.5:
            insights.append("Answers are too brief - need more comprehensive responses")
        if factors.specificity < 0.5:
            insights.append("Answers lack concrete details - need specific examples and measurements")
        if factors.consistency < 0.5:
            insights.append("Detected potential contradictions - need to clarify inconsistencies")
        if factors.coverage < 0.5:
            insights.append(
                "Critical categories not covered - need to address "
                + ", ".join(self.critical_categories)
            )
        if factors.examples < 0.3:
            insights.append("Lack of concrete examples - need specific scenarios or use cases")

        if factors.clarity > 0.8:
            insights.append("Answers are clear and unambiguous")
        if factors.consistency > 0.8:
            insights.append("Responses are highly consistent")
        if factors.coverage > 0.8:
            insights.append("Good coverage across all critical categories")

        if overall >= self.target_confidence:
            insights.append(
                f"Confidence threshold reached ({overall * 100:.1f}% >= {self.target_confidence * 100:.1f}%)"
            )
        else:
            gap = self.target_confidence - overall
            insights.append(f"Need {gap * 100:.1f}% more confidence to reach threshold")

        return insights

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _match_questions(
        answers: list[Answer], questions: list[Question]
    ) -> list[Optional[Question]]:
        by_id = {q.id: q for q in questions}
        matched = []
        for index, answer in enumerate(answers):
            question = by_id.get(answer.question_id)
            if question is None and len(questions) == len(answers):
                question = questions[index]
            matched.append(question)
        return matched
