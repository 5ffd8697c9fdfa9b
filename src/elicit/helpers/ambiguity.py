"""
Elicit Ambiguity Helpers

Lexical detection of hedging language in free-text answers. Plain
substring matching, no weighting.
"""

# Hedge phrases that flag an answer as ambiguous
AMBIGUOUS_PATTERNS = [
    "maybe",
    "possibly",
    "might",
    "could be",
    "depends",
    "sometimes",
    "not sure",
    "i think",
    "probably",
    "it varies",
    "in some cases",
    "potentially",
]

# Characters kept on each side of a hedge when quoting it back
CONTEXT_WINDOW = 20

FALLBACK_AMBIGUOUS_PART = "your response"


def detect_ambiguity(answer: str) -> bool:
    """Return True if the answer contains any hedge phrase (case-insensitive)."""
    lower_answer = answer.lower()
    return any(pattern in lower_answer for pattern in AMBIGUOUS_PATTERNS)


def find_hedges(answer: str) -> list[str]:
    """Return the hedge phrases present in an answer, in pattern order."""
    lower_answer = answer.lower()
    return [pattern for pattern in AMBIGUOUS_PATTERNS if pattern in lower_answer]


def extract_ambiguous_parts(answer: str) -> list[str]:
    """
    Quote the text surrounding each hedge phrase.

    Args:
        answer: Raw answer text

    Returns:
        One snippet per matched hedge, or ["your response"] if none match
    """
    parts = []
    lower_answer = answer.lower()

    for pattern in AMBIGUOUS_PATTERNS:
        index = lower_answer.find(pattern)
        if index == -1:
            continue
        start = max(0, index - CONTEXT_WINDOW)
        end = min(len(answer), index + len(pattern) + CONTEXT_WINDOW)
        parts.append(answer[start:end].strip())

    return parts if parts else [FALLBACK_AMBIGUOUS_PART]


def first_ambiguous_part(answer: str) -> str:
    """Snippet around the earliest hedge in the text."""
    lower_answer = answer.lower()
    hits = [
        (lower_answer.find(pattern), pattern)
        for pattern in AMBIGUOUS_PATTERNS
        if pattern in lower_answer
    ]
    if not hits:
        return FALLBACK_AMBIGUOUS_PART

    index, pattern = min(hits)
    start = max(0, index - CONTEXT_WINDOW)
    end = min(len(answer), index + len(pattern) + CONTEXT_WINDOW)
    return answer[start:end].strip()
