"""
Elicit Coverage Helpers

Pure functions comparing asked templates against a phase's minimum
per-category coverage.
"""

from collections import Counter

from elicit.models import PhaseRequirement, QuestionTemplate


def tally_categories(asked_templates: list[QuestionTemplate]) -> Counter:
    """Count asked templates per category."""
    return Counter(t.category for t in asked_templates)


def find_coverage_gaps(
    requirement: PhaseRequirement,
    asked_templates: list[QuestionTemplate],
) -> list[str]:
    """
    List categories still below their phase minimum.

    Args:
        requirement: Phase requirement with min_coverage (category -> count)
        asked_templates: Templates already asked in this session

    Returns:
        Gap categories in min_coverage order
    """
    tally = tally_categories(asked_templates)
    return [
        category
        for category, minimum in requirement.min_coverage.items()
        if tally.get(category, 0) < minimum
    ]
