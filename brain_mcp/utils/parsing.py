"""Helpers for reading labelled plain-text LLM responses.

Responses are requested in a loose ``LABEL: value`` layout with ``-`` or
``*`` bullet lists under some labels. Parsing is forgiving: unknown lines
are ignored and missing labels fall back to caller defaults.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

_CONFIDENCE_MARKER = re.compile(r"\[Confidence:\s*(\d*\.?\d+)\]", re.IGNORECASE)
_CONFIDENCE_MARKER_ANY = re.compile(r"\[Confidence:\s*[\d.]+\]", re.IGNORECASE)
_YOUR_THOUGHT_PREFIX = re.compile(r"^Your thought #\d+:\s*", re.IGNORECASE)
_THOUGHT_PREFIX = re.compile(r"^Thought #?\d+:?\s*", re.IGNORECASE)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def bullet_text(line: str) -> str | None:
    """Return the text of a ``-`` / ``*`` bullet line, or None."""
    stripped = line.strip()
    if stripped.startswith("- ") or stripped.startswith("* "):
        return stripped[2:].strip()
    return None


def parse_bullets(content: str, limit: int | None = None) -> list[str]:
    """Collect every non-empty bullet in ``content``, up to ``limit``."""
    items = [text for line in content.splitlines() if (text := bullet_text(line))]
    return items[:limit] if limit is not None else items


@dataclass
class LabeledResponse:
    """Sections of a labelled response.

    ``text`` holds the inline value of each label joined with any plain
    continuation lines; ``items`` holds the bullets found under it.
    """

    text: dict[str, str] = field(default_factory=dict)
    items: dict[str, list[str]] = field(default_factory=dict)

    def get(self, label: str, default: str = "") -> str:
        return self.text.get(label) or default

    def bullets(self, label: str) -> list[str]:
        return list(self.items.get(label, []))

    def all_bullets(self) -> list[str]:
        return [item for items in self.items.values() for item in items]

    def number(self, label: str, default: float) -> float:
        """Parse the label's value as a float clamped to [0, 1]."""
        match = re.search(r"\d*\.?\d+", self.text.get(label, ""))
        if not match:
            return default
        try:
            return clamp(float(match.group(0)))
        except ValueError:
            return default


def parse_labeled(content: str, labels: Iterable[str]) -> LabeledResponse:
    """Split a response into the given ``LABEL:`` sections.

    Example:
        >>> parsed = parse_labeled("RESULT: confirmed\\n- fact", ["RESULT"])
        >>> parsed.get("RESULT"), parsed.bullets("RESULT")
        ('confirmed', ['fact'])

    """
    known = tuple(labels)
    parsed = LabeledResponse()
    current: str | None = None

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        label = next((name for name in known if line.upper().startswith(f"{name}:")), None)
        if label is not None:
            current = label
            parsed.text[label] = line[len(label) + 1 :].strip()
            parsed.items.setdefault(label, [])
            continue

        if current is None:
            continue

        item = bullet_text(line)
        if item is not None:
            if item:
                parsed.items[current].append(item)
        else:
            existing = parsed.text.get(current, "")
            parsed.text[current] = f"{existing} {line}".strip()

    return parsed


def extract_confidence(content: str) -> float | None:
    """Read a ``[Confidence: 0.85]`` marker, clamped to [0, 1]."""
    match = _CONFIDENCE_MARKER.search(content)
    if not match:
        return None
    try:
        return clamp(float(match.group(1)))
    except ValueError:
        return None


def clean_thought_content(content: str) -> str:
    """Strip confidence markers and ``Thought #N:`` prefixes from a thought."""
    cleaned = _CONFIDENCE_MARKER_ANY.sub("", content).strip()
    cleaned = _YOUR_THOUGHT_PREFIX.sub("", cleaned)
    cleaned = _THOUGHT_PREFIX.sub("", cleaned)
    return cleaned.strip()


def clean_step_content(content: str, step_name: str) -> str:
    """Strip a ``Your <step> analysis:`` echo and a leading bullet."""
    cleaned = re.sub(
        rf"^\s*Your {re.escape(step_name)} analysis:?\s*", "", content, flags=re.IGNORECASE
    )
    cleaned = re.sub(r"^\s*[-•]\s*", "", cleaned)
    return cleaned.strip()


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."
