"""Complexity classification for reasoning problems.

Buckets a problem statement into simple / medium / complex / expert from its
length, the number of technical terms it mentions, and how demanding the
question itself is. The level is computed once per session and stored in the
session metadata.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum

# LRU cache for complexity results
_complexity_cache: OrderedDict[str, ComplexityResult] = OrderedDict()
_COMPLEXITY_CACHE_MAX_SIZE = 100


class ComplexityLevel(str, Enum):
    """Complexity bands, from least to most demanding."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"
    EXPERT = "expert"


_TECHNICAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(algorithm|architecture|database|server|client|API|framework|library|protocol|"
        r"interface|implementation|optimization|performance|scalability|security|"
        r"authentication|authorization|encryption|deployment|infrastructure|microservice|"
        r"container|docker|kubernetes|cloud|aws|azure|gcp)\b",
        re.IGNORECASE,
    ),
    # Acronyms
    re.compile(r"\b[A-Z]{2,}\b"),
    # Source file names
    re.compile(r"\b\w+\.(js|ts|py|java|cpp|c|go|rust|php|rb|cs)\b"),
)

_EXPERT_KEYWORDS = ("architect", "strategy", "paradigm", "methodology", "ecosystem")
_COMPLEX_KEYWORDS = (
    "why",
    "how",
    "analyze",
    "compare",
    "evaluate",
    "design",
    "optimize",
    "troubleshoot",
)


@dataclass(frozen=True, slots=True)
class ComplexityResult:
    """Result of complexity classification for a problem."""

    level: ComplexityLevel
    length: int
    technical_terms: int
    question_complexity: ComplexityLevel
    cached: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "level": self.level.value,
            "length": self.length,
            "technical_terms": self.technical_terms,
            "question_complexity": self.question_complexity.value,
            "cached": self.cached,
        }


def count_technical_terms(text: str) -> int:
    """Count technical vocabulary, acronyms and file names in text.

    Matches of the three patterns are summed, so a token such as ``API``
    counts once as vocabulary and once as an acronym.
    """
    return sum(len(pattern.findall(text)) for pattern in _TECHNICAL_PATTERNS)


def analyze_question_complexity(text: str) -> ComplexityLevel:
    """Classify how demanding the question wording is.

    Keyword matching is a plain lower-case substring test; the first tier
    that matches wins.
    """
    lowered = text.lower()
    if any(keyword in lowered for keyword in _EXPERT_KEYWORDS):
        return ComplexityLevel.EXPERT
    if any(keyword in lowered for keyword in _COMPLEX_KEYWORDS):
        return ComplexityLevel.COMPLEX
    if "?" in lowered or "explain" in lowered:
        return ComplexityLevel.MEDIUM
    return ComplexityLevel.SIMPLE


def clear_complexity_cache() -> int:
    """Clear the complexity cache. Returns number of items cleared."""
    count = len(_complexity_cache)
    _complexity_cache.clear()
    return count


def classify_complexity(text: str, *, use_cache: bool = True) -> ComplexityResult:
    """Classify a problem statement into a complexity band.

    Bands are checked in order and the first match wins:

    - simple: under 100 characters, fewer than 2 technical terms and a
      simple question.
    - medium: under 300 characters, fewer than 5 technical terms and a
      question below the expert tier.
    - complex: under 800 characters and fewer than 10 technical terms.
    - expert: everything else.

    Args:
        text: Problem statement to classify.
        use_cache: Whether to use cached results (default True).

    Returns:
        ComplexityResult with the band and the signals that produced it.

    Example:
        >>> classify_complexity("What is 2+2").level
        <ComplexityLevel.SIMPLE: 'simple'>

    """
    if use_cache and text in _complexity_cache:
        _complexity_cache.move_to_end(text)
        cached = _complexity_cache[text]
        return ComplexityResult(
            level=cached.level,
            length=cached.length,
            technical_terms=cached.technical_terms,
            question_complexity=cached.question_complexity,
            cached=True,
        )

    length = len(text)
    terms = count_technical_terms(text)
    question = analyze_question_complexity(text)

    if length < 100 and terms < 2 and question == ComplexityLevel.SIMPLE:
        level = ComplexityLevel.SIMPLE
    elif length < 300 and terms < 5 and question != ComplexityLevel.EXPERT:
        level = ComplexityLevel.MEDIUM
    elif length < 800 and terms < 10:
        level = ComplexityLevel.COMPLEX
    else:
        level = ComplexityLevel.EXPERT

    result = ComplexityResult(
        level=level,
        length=length,
        technical_terms=terms,
        question_complexity=question,
    )

    if use_cache:
        _complexity_cache[text] = result
        while len(_complexity_cache) > _COMPLEXITY_CACHE_MAX_SIZE:
            _complexity_cache.popitem(last=False)

    return result
