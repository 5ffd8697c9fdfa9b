"""Elicit Helpers package."""

from elicit.helpers.ambiguity import detect_ambiguity, extract_ambiguous_parts
from elicit.helpers.confidence import ConfidenceCalculator
from elicit.helpers.coverage import find_coverage_gaps
from elicit.helpers.selection import select_next

__all__ = [
    "ConfidenceCalculator",
    "detect_ambiguity",
    "extract_ambiguous_parts",
    "find_coverage_gaps",
    "select_next",
]
