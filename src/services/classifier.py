"""Deterministic keyword classifier for complaint text.

Scores a complaint's title and description against fixed vocabularies to
produce a category, a suggested department, a priority, sentiment,
urgency and complexity scores, matched keywords, and tags.

The classifier is a pure function over an immutable
:class:`KeywordConfig`: identical input always yields an identical
:class:`Classification`, and no input string makes it raise.

Scoring rules:

* **Category** -- total substring occurrences of each category's
  keywords; the strictly highest score wins, ties go to the category
  declared first.
* **Confidence** -- ``min(best_score / 5, 1)`` rounded to 2 decimals.
* **Priority** -- urgent terms beat high terms beat low terms; anything
  else is medium.
* **Urgency** -- highest weight (1-10) among matched urgency terms.
* **Key info** -- the first "at/near/in/on ..." phrase as a location, the
  first phone number as a contact, and every urgent term present.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

import structlog
from pydantic import BaseModel, ConfigDict

from src.models.enums import Priority, Sentiment

logger = structlog.get_logger(__name__)

_PUNCT_RE: Final[re.Pattern[str]] = re.compile(r"[^\w\s]")
_SENTENCE_SPLIT_RE: Final[re.Pattern[str]] = re.compile(r"[.!?]+")
_LOCATION_RE: Final[re.Pattern[str]] = re.compile(r"\b(?:at|near|in|on)\s+([^.!?,\n]+)", re.IGNORECASE)
_PHONE_RE: Final[re.Pattern[str]] = re.compile(r"\b(\d{10}|\d{3}-\d{3}-\d{4})\b")

_TIER_TO_PRIORITY: Final[dict[str, Priority]] = {
    "urgent": Priority.CRITICAL,
    "high": Priority.HIGH,
    "medium": Priority.MEDIUM,
    "low": Priority.LOW,
}


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class KeywordConfig:
    """Immutable vocabularies driving :func:`classify`.

    Ordered sequences are tuples so declaration order (which breaks
    category ties) is part of the configuration.
    """

    categories: tuple[tuple[str, tuple[str, ...]], ...]
    departments: tuple[tuple[str, str], ...]
    urgent_terms: tuple[str, ...]
    high_terms: tuple[str, ...]
    low_terms: tuple[str, ...]
    positive_words: frozenset[str]
    negative_words: frozenset[str]
    urgency_weights: tuple[tuple[str, int], ...]
    technical_terms: tuple[str, ...]
    tag_rules: tuple[tuple[str, tuple[str, ...]], ...]

    def department_for(self, category: str | None) -> str | None:
        if category is None:
            return None
        for name, department in self.departments:
            if name == category:
                return department
        return None

    @property
    def category_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.categories)

    @property
    def vocabulary(self) -> tuple[str, ...]:
        """Every scoring term, in declaration order, without duplicates."""
        seen: dict[str, None] = {}
        for _, keywords in self.categories:
            for kw in keywords:
                seen.setdefault(kw, None)
        for term in (*self.urgent_terms, *self.high_terms, *self.low_terms):
            seen.setdefault(term, None)
        return tuple(seen)


DEFAULT_KEYWORDS: Final[KeywordConfig] = KeywordConfig(
    categories=(
        ("infrastructure", (
            "road", "street", "pothole", "traffic", "signal", "bridge", "construction",
            "building", "water", "drainage", "sewer", "electricity", "power", "streetlight",
        )),
        ("health", (
            "hospital", "clinic", "doctor", "medicine", "health", "medical", "ambulance",
            "sanitation", "garbage", "waste", "cleanliness", "hygiene",
        )),
        ("education", (
            "school", "college", "teacher", "student", "education", "classroom", "book",
            "uniform", "fee", "admission", "exam",
        )),
        ("transport", (
            "bus", "train", "auto", "taxi", "vehicle", "transport", "traffic", "parking",
            "license", "registration",
        )),
        ("police", (
            "crime", "theft", "police", "safety", "security", "violence", "harassment",
            "law", "order", "complaint",
        )),
        ("fire", ("fire", "emergency", "rescue", "smoke", "burning", "firefighter")),
        ("revenue", (
            "tax", "property", "registration", "revenue", "payment", "bill", "certificate",
            "document",
        )),
        ("environment", (
            "pollution", "environment", "tree", "park", "green", "air", "noise",
            "water pollution",
        )),
    ),
    departments=(
        ("infrastructure", "Public Works"),
        ("health", "Health Department"),
        ("education", "Education Department"),
        ("transport", "Transport Department"),
        ("police", "Police Department"),
        ("fire", "Fire Department"),
        ("revenue", "Revenue Department"),
        ("environment", "Environment Department"),
    ),
    urgent_terms=(
        "emergency", "urgent", "critical", "immediate", "fire", "accident", "danger",
        "life", "death", "serious", "severe",
    ),
    high_terms=(
        "important", "major", "significant", "blocking", "affecting", "multiple",
        "community", "public",
    ),
    low_terms=("minor", "small", "suggestion", "improvement", "enhancement", "cosmetic"),
    positive_words=frozenset({
        "good", "great", "excellent", "amazing", "wonderful", "perfect", "satisfied",
        "happy", "pleased", "thank", "appreciate",
    }),
    negative_words=frozenset({
        "bad", "terrible", "awful", "horrible", "disgusting", "angry", "frustrated",
        "disappointed", "upset", "complaint", "problem", "issue", "broken", "damaged",
    }),
    urgency_weights=(
        ("urgent", 10), ("emergency", 10), ("critical", 9), ("immediate", 9), ("asap", 8),
        ("now", 7), ("today", 6), ("soon", 5), ("quickly", 6), ("fast", 5),
        ("broken", 7), ("damaged", 6), ("not working", 6), ("failed", 7),
        ("dangerous", 8), ("unsafe", 8), ("hazard", 8), ("risk", 7),
    ),
    technical_terms=(
        "technical", "system", "process", "procedure", "documentation", "configuration",
        "implementation", "integration", "deployment", "maintenance", "infrastructure",
        "database", "server", "network", "protocol", "algorithm", "framework",
        "architecture", "optimization", "automation",
    ),
    tag_rules=(
        ("education", ("education", "school", "student")),
        ("healthcare", ("health", "medical", "hospital")),
        ("transportation", ("transport", "bus", "road")),
        ("law-enforcement", ("police", "crime", "security")),
        ("utilities", ("water", "electricity", "sanitation")),
        ("corruption", ("corruption", "bribe", "fraud")),
        ("delay", ("delay", "slow", "waiting")),
        ("quality-issue", ("quality", "poor", "bad")),
        ("infrastructure", ("infrastructure", "building", "construction")),
    ),
)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class KeyInfo(BaseModel):
    """Details pulled out of the description to help the responding officer."""

    model_config = ConfigDict(frozen=True)

    location: str | None = None
    contact: str | None = None
    urgency_indicators: list[str] = []


class Classification(BaseModel):
    """Output of :func:`classify`."""

    model_config = ConfigDict(frozen=True)

    category: str | None = None
    suggested_department: str | None = None
    priority: Priority = Priority.MEDIUM
    priority_tier: str = "medium"
    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency: int = 1
    complexity: int = 1
    keywords: list[str] = []
    tags: list[str] = []
    confidence: float = 0.0
    key_info: KeyInfo = KeyInfo()


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------


def _tokenize(text: str) -> list[str]:
    return _PUNCT_RE.sub("", text).split()


def _category_scores(text: str, config: KeywordConfig) -> list[tuple[str, int]]:
    return [(name, sum(text.count(kw) for kw in keywords)) for name, keywords in config.categories]


def _best_category(scores: list[tuple[str, int]]) -> tuple[str | None, int]:
    best: str | None = None
    best_score = 0
    for name, score in scores:
        if score > best_score:
            best, best_score = name, score
    return best, best_score


def _priority_tier(text: str, config: KeywordConfig) -> str:
    if any(term in text for term in config.urgent_terms):
        return "urgent"
    if any(term in text for term in config.high_terms):
        return "high"
    if any(term in text for term in config.low_terms):
        return "low"
    return "medium"


def _sentiment(tokens: list[str], config: KeywordConfig) -> Sentiment:
    positive = sum(1 for t in tokens if t in config.positive_words)
    negative = sum(1 for t in tokens if t in config.negative_words)
    if positive > negative:
        return Sentiment.POSITIVE
    if negative > positive:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def _urgency(text: str, tokens: list[str], config: KeywordConfig) -> int:
    token_set = set(tokens)
    score = 1
    for term, weight in config.urgency_weights:
        matched = term in text if " " in term else term in token_set
        if matched:
            score = max(score, weight)
    return min(score, 10)


def _complexity(text: str, config: KeywordConfig) -> int:
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    if not sentences:
        return 1

    avg_sentence_length = sum(len(s.split()) for s in sentences) / len(sentences)
    word_count = len(text.split())
    pattern = r"\b(?:" + "|".join(map(re.escape, config.technical_terms)) + r")\b"
    technical = len(re.findall(pattern, text))

    complexity = 1
    if avg_sentence_length > 20:
        complexity += 2
    elif avg_sentence_length > 15:
        complexity += 1

    if word_count > 200:
        complexity += 2
    elif word_count > 100:
        complexity += 1

    if technical > 5:
        complexity += 3
    elif technical > 2:
        complexity += 2
    elif technical > 0:
        complexity += 1

    return max(1, min(10, complexity))


def _matched_keywords(text: str, config: KeywordConfig) -> list[str]:
    hits: list[tuple[int, int, str]] = []
    for index, term in enumerate(config.vocabulary):
        position = text.find(term)
        if position >= 0:
            hits.append((position, index, term))
    hits.sort()
    return [term for _, _, term in hits]


def _tags(text: str, config: KeywordConfig) -> list[str]:
    return [tag for tag, triggers in config.tag_rules if any(t in text for t in triggers)]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify(
    title: str | None,
    description: str | None,
    config: KeywordConfig = DEFAULT_KEYWORDS,
) -> Classification:
    """Classify complaint text.  Pure and total over string input."""
    text = f"{title or ''} {description or ''}".lower()
    tokens = _tokenize(text)

    category, best_score = _best_category(_category_scores(text, config))
    tier = _priority_tier(text, config)

    return Classification(
        category=category,
        suggested_department=config.department_for(category),
        priority=_TIER_TO_PRIORITY[tier],
        priority_tier=tier,
        sentiment=_sentiment(tokens, config),
        urgency=_urgency(text, tokens, config),
        complexity=_complexity(text, config),
        keywords=_matched_keywords(text, config),
        tags=_tags(text, config),
        confidence=round(min(best_score / 5, 1), 2),
        key_info=extract_key_info(description or "", config),
    )


def extract_key_info(description: str, config: KeywordConfig = DEFAULT_KEYWORDS) -> KeyInfo:
    lowered = description.lower()
    location = _LOCATION_RE.search(description)
    contact = _PHONE_RE.search(description)
    return KeyInfo(
        location=location.group(1).strip() if location else None,
        contact=contact.group(1) if contact else None,
        urgency_indicators=[term for term in config.urgent_terms if term in lowered],
    )


def suggest_categories(text: str, config: KeywordConfig = DEFAULT_KEYWORDS, limit: int = 5) -> list[str]:
    """Categories whose keywords contain, or are contained in, *text*.

    Used for type-ahead hints while a complainant picks a category.
    """
    needle = (text or "").strip().lower()
    if not needle:
        return []
    suggestions: list[str] = []
    for name, keywords in config.categories:
        if any(needle in kw or kw in needle for kw in keywords):
            suggestions.append(name)
    return suggestions[:limit]


class TextClassifier:
    """Injectable wrapper binding :func:`classify` to one configuration."""

    __slots__ = ("_config",)

    def __init__(self, config: KeywordConfig = DEFAULT_KEYWORDS) -> None:
        self._config = config

    @property
    def config(self) -> KeywordConfig:
        return self._config

    def classify(self, title: str | None, description: str | None) -> Classification:
        result = classify(title, description, self._config)
        logger.debug(
            "classifier.classified",
            category=result.category,
            priority=result.priority,
            confidence=result.confidence,
        )
        return result

    def suggest_categories(self, text: str, limit: int = 5) -> list[str]:
        return suggest_categories(text, self._config, limit)
