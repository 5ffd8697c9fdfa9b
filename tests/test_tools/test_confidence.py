"""
Layer 1: Confidence Calculator Tests

Tests for the six-factor confidence score:
- empty input floor and determinism
- weight normalization
- reference convergence scenario
- per-factor heuristics (completeness, consistency, clarity, examples)
"""
import pytest

from elicit.errors import InvalidWeightsError, ValidationError
from elicit.helpers.confidence import (
    ConfidenceCalculator,
    count_contradictions,
    detect_contradiction,
    extract_key_terms,
    normalize_weights,
)
from elicit.models import Answer, Question


def _question(qid, category="requirements", text="What is needed?"):
    return Question(id=qid, phase="brainstorm", question=text, category=category, priority="high")


def _answer(qid, text, confidence=0.8):
    return Answer(question_id=qid, answer=text, confidence=confidence)


class TestConfidenceBasics:
    """Floor, determinism and weights."""

    def test_empty_answers_yield_zero(self):
        """No answers means zero confidence and every critical category missing."""
        result = ConfidenceCalculator().calculate([], [])

        assert result.overall == 0
        assert result.factors.clarity == 0
        assert result.missing == ["requirements", "constraints", "edge-cases"]
        assert result.insights == ["No answers provided yet"]

    def test_calculation_is_deterministic(self, scenario_answers, scenario_questions):
        calc = ConfidenceCalculator()

        first = calc.calculate(scenario_answers, scenario_questions)
        second = calc.calculate(scenario_answers, scenario_questions)

        assert first.overall == second.overall
        assert first.factors == second.factors

    def test_weights_are_renormalized(self, scenario_answers, scenario_questions):
        """Weights summing to 2.0 score the same as the same ratios summing to 1.0."""
        doubled = {
            "clarity": 0.5, "completeness": 0.4, "specificity": 0.4,
            "consistency": 0.3, "coverage": 0.3, "examples": 0.1,
        }

        default = ConfidenceCalculator().calculate(scenario_answers, scenario_questions)
        scaled = ConfidenceCalculator(weights=doubled).calculate(scenario_answers, scenario_questions)

        assert scaled.overall == pytest.approx(default.overall)

    def test_partial_weights_merge_over_defaults(self):
        weights = normalize_weights({"examples": 0.25})
        total = sum(weights.model_dump().values())

        assert total == pytest.approx(1.0)
        assert weights.examples == pytest.approx(0.25 / 1.2)
        assert weights.clarity == pytest.approx(0.25 / 1.2)

    @pytest.mark.parametrize("weights", [
        {"clarity": -0.1},
        {"clarity": 0, "completeness": 0, "specificity": 0,
         "consistency": 0, "coverage": 0, "examples": 0},
        {"novelty": 0.5},
    ])
    def test_invalid_weights_raise(self, weights):
        with pytest.raises(InvalidWeightsError) as exc_info:
            ConfidenceCalculator(weights=weights)
        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_target_confidence(self):
        calc = ConfidenceCalculator(target_confidence=0.7)

        assert calc.target_confidence == 0.7
        assert calc.is_confidence_sufficient(0.7) is True
        assert calc.is_confidence_sufficient(0.69) is False


class TestReferenceScenario:
    """Three strong answers against the three critical categories."""

    def test_scenario_exceeds_threshold(self, scenario_answers, scenario_questions):
        result = ConfidenceCalculator().calculate(scenario_answers, scenario_questions)

        assert result.overall > 0.7
        assert result.missing == []

    def test_scenario_factor_values(self, scenario_answers, scenario_questions):
        factors = ConfidenceCalculator().calculate(scenario_answers, scenario_questions).factors

        assert factors.clarity == pytest.approx(0.95)
        assert factors.completeness == pytest.approx(0.5)
        assert factors.consistency == pytest.approx(1.0)
        assert factors.coverage == pytest.approx(0.8)

    def test_scenario_insights_report_gap(self, scenario_answers, scenario_questions):
        insights = ConfidenceCalculator().calculate(scenario_answers, scenario_questions).insights

        assert "Answers are clear and unambiguous" in insights
        assert insights[-1].startswith("Need ")
        assert insights[-1].endswith("more confidence to reach threshold")

    def test_threshold_reached_insight(self, scenario_answers, scenario_questions):
        calc = ConfidenceCalculator(target_confidence=0.5)
        insights = calc.calculate(scenario_answers, scenario_questions).insights

        assert insights[-1].startswith("Confidence threshold reached")


class TestFactors:
    """Individual factor heuristics."""

    def test_one_word_answer_is_incomplete(self):
        result = ConfidenceCalculator().calculate([_answer("q1", "Yes")], [_question("q1")])

        assert result.factors.completeness < 0.5

    def test_bare_yes_lowers_clarity(self):
        calc = ConfidenceCalculator()

        bare = calc.calculate_clarity([_answer("q1", "Yes", 0.8)])
        plain = calc.calculate_clarity([_answer("q1", "Yes, PostgreSQL", 0.8)])

        assert bare == pytest.approx(0.5)
        assert plain == pytest.approx(0.8)

    def test_hedging_lowers_clarity(self):
        calc = ConfidenceCalculator()

        hedged = calc.calculate_clarity([_answer("q1", "Maybe it probably works", 0.5)])

        assert hedged == pytest.approx(0.3)

    def test_multi_part_question_boosts_completeness(self):
        calc = ConfidenceCalculator()
        question = _question("q1", text="Who uses it? How often?")
        answer = _answer("q1", "Operators on call\n- several times per day during incidents")

        score = calc.calculate_completeness([answer], [question])

        assert score == pytest.approx(0.7)

    def test_unmatched_answer_scores_neutral_completeness(self):
        calc = ConfidenceCalculator()

        score = calc.calculate_completeness([_answer("zz", "Some answer text")], [None])

        assert score == 0.5

    def test_answers_match_questions_by_position(self):
        """Unknown ids fall back to the question at the same index."""
        calc = ConfidenceCalculator()
        question = _question("q1", text="Who uses it? How often?")
        answer = _answer("other", "Operators on call\n- several times per day during incidents")

        result = calc.calculate([answer], [question])

        assert result.factors.completeness == pytest.approx(0.7)

    def test_unmatched_answer_not_paired_by_position(self):
        """With fewer questions than answers, an unknown id stays unmatched (neutral 0.5)."""
        calc = ConfidenceCalculator()
        question = _question("q1", text="Who uses it? How often?")
        answers = [
            _answer("external", "Yes"),
            _answer("q1", "Operators on call\n- several times per day during incidents"),
        ]

        result = calc.calculate(answers, [question])

        assert result.factors.completeness == pytest.approx(0.6)

    def test_specificity_rewards_code_and_numbers(self):
        calc = ConfidenceCalculator()

        concrete = calc.calculate_specificity([_answer("q1", "Call `save()` within 50 milliseconds")])
        vague = calc.calculate_specificity([_answer("q1", "It depends on various different things")])

        assert concrete > 0.8
        assert vague < 0.5

    def test_examples_reward_enumerated_scenarios(self):
        calc = ConfidenceCalculator()
        text = "For example:\n1. user logs in\n2. session expires"

        assert calc.calculate_examples([_answer("q1", text)]) == pytest.approx(0.55)
        assert calc.calculate_examples([_answer("q1", "No idea")]) == 0.0

    def test_consistency_neutral_below_minimum(self):
        calc = ConfidenceCalculator()
        answers = [_answer("q1", "We always cache"), _answer("q2", "We never cache")]

        assert calc.calculate_consistency(answers) == 0.7

    def test_coverage_counts_critical_and_diversity(self):
        calc = ConfidenceCalculator()
        questions = [_question("q1", "requirements"), _question("q2", "security")]

        assert calc.calculate_coverage(questions) == pytest.approx(0.7 / 3 + 0.3 * 2 / 9)

    def test_custom_critical_categories(self):
        calc = ConfidenceCalculator(critical_categories=["security"])
        result = calc.calculate([_answer("q1", "TLS everywhere")], [_question("q1", "requirements")])

        assert result.missing == ["security"]


class TestContradictions:
    """Contradiction detection and its effect on consistency."""

    CONTRADICTORY = [
        "We should always cache user session data in the memory layer",
        "We should never cache user session data in the memory layer",
        "Deployment happens through the pipeline nightly",
    ]
    CONSISTENT = [
        "We should always cache user session data in the memory layer",
        "We should also cache user session data in the memory layer",
        "Deployment happens through the pipeline nightly",
    ]

    def test_contradiction_lowers_consistency(self):
        calc = ConfidenceCalculator()

        contradictory = calc.calculate_consistency([_answer(f"q{i}", t) for i, t in enumerate(self.CONTRADICTORY)])
        consistent = calc.calculate_consistency([_answer(f"q{i}", t) for i, t in enumerate(self.CONSISTENT)])

        assert contradictory < consistent
        assert consistent == 1.0

    def test_contradiction_needs_shared_terms(self):
        assert detect_contradiction("always cache sessions", "never log requests") is False
        assert detect_contradiction(self.CONTRADICTORY[0], self.CONTRADICTORY[1]) is True

    def test_antonyms_match_whole_words(self):
        """'no' inside 'nothing' or 'know' is not a negation."""
        first = "yes the cache layer stores session tokens for users"
        second = "we know nothing about how the cache layer stores session tokens for users"

        assert detect_contradiction(first, second) is False

    def test_count_contradictions(self):
        assert count_contradictions([t.lower() for t in self.CONTRADICTORY]) == 1
        assert count_contradictions([t.lower() for t in self.CONSISTENT]) == 0

    def test_key_terms_drop_stopwords_and_short_words(self):
        terms = extract_key_terms("The API must return JSON, quickly!")

        assert terms == ["return", "json", "quickly"]
