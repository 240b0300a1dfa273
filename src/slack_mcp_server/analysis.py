"""Keyword heuristics for thread analysis.

Everything here is a pure function over lists of Slack message dicts, so the
thread, reaction and workspace services can share them and tests need no
Slack client. Matching is English-only and lower-cased.
"""

import re
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from .text_utils import extract_mentions, ts_to_float

Message = dict[str, Any]

# ---------- Keyword tables ----------

URGENT_KEYWORDS = (
    "urgent", "asap", "immediately", "emergency", "critical",
    "now", "today", "deadline", "blocker", "blocking",
    "priority", "rush", "fast", "quick", "hurry",
)
URGENT_KEYWORD_WEIGHT = 0.2
MESSAGE_COUNT_THRESHOLDS = (10, 20)
MESSAGE_COUNT_WEIGHT = 0.3

POSITIVE_WORDS = (
    "good", "great", "excellent", "awesome", "perfect", "love", "like", "happy", "yes", "agree",
    "amazing", "fantastic", "wonderful", "brilliant", "outstanding", "success", "achieved",
    "completed", "solved", "resolved",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "hate", "dislike", "angry", "no", "disagree", "problem", "issue",
    "error", "bug", "broken", "failed", "wrong", "difficult", "hard", "stuck", "blocked", "frustrated",
)
SENTIMENT_RATIO = 1.2

ACTION_INDICATORS = (
    "todo", "action item", "need to", "should", "will", "task", "follow up", "next step",
    "assign", "assigned", "do", "implement", "fix", "update", "create", "add", "remove",
    "delete", "check", "verify", "test", "review",
)
HIGH_PRIORITY_WORDS = (
    "urgent", "critical", "immediately", "asap", "priority", "blocker", "blocking", "emergency", "now", "today",
)
MEDIUM_PRIORITY_WORDS = ("important", "soon", "this week", "by friday", "deadline", "schedule", "planned")
COMPLETED_WORDS = (
    "done", "completed", "finished", "resolved", "closed", "fixed", "solved", "complete", "ready", "delivered",
)
IN_PROGRESS_WORDS = (
    "working on", "in progress", "started", "began", "ongoing", "processing", "handling", "implementing",
    "developing",
)

DECISION_KEYWORDS = (
    "decided", "decide", "decision", "approved", "approve", "approval", "agreed", "agreement",
    "confirmed", "concluded", "conclusion", "settled", "finalized", "we will go with", "going with",
)
DECISION_STRONG_MARKERS = ("decision:", "officially", "formally")

STOP_WORDS = frozenset(
    """
    a an the and or but in on at to for of with by is are was were be been being have has had do does did
    will would could should may might must can this that these those i you he she it we they me him her
    us them my your his its our their what which who when where why how all any both each few more most
    other some such no nor not only own same so than too very just also about into over after before
    from up down out off again then once here there if as because until while get got let lets yes
    ok okay thanks thank please dont im ive its youre were weve thats now yet still even much many well really
    """.split()
)

ACTION_MENTION_RE = re.compile(r"<@(\w+)>")
MARKUP_RE = re.compile(r"<[^>]+>")
WORD_RE = re.compile(r"[a-z][a-z0-9_'-]*")

PRIORITY_ORDER = ("low", "medium", "high")


def _combined_text(messages: Iterable[Message]) -> str:
    return " ".join(m.get("text") or "" for m in messages).lower().strip()


def _count_word(text: str, word: str) -> int:
    return len(re.findall(rf"\b{re.escape(word)}\b", text))


def _contains_any(text: str, phrases: Iterable[str]) -> list[str]:
    lowered = text.lower()
    return [p for p in phrases if p in lowered]


# ---------- Urgency ----------


def urgency_level(score: float) -> str:
    if score >= 0.8:
        return "critical"
    if score >= 0.6:
        return "high"
    if score >= 0.3:
        return "medium"
    return "low"


def calculate_urgency(messages: Sequence[Message]) -> dict[str, Any]:
    """Urgency score in [0, 1] from keyword hits and thread length."""
    text = _combined_text(messages)
    hits = {kw: n for kw in URGENT_KEYWORDS if (n := _count_word(text, kw))}
    keyword_score = sum(hits.values()) * URGENT_KEYWORD_WEIGHT

    medium, high = MESSAGE_COUNT_THRESHOLDS
    count_factor = 0.0
    if len(messages) > high:
        count_factor = MESSAGE_COUNT_WEIGHT * 2
    elif len(messages) > medium:
        count_factor = MESSAGE_COUNT_WEIGHT

    score = min(1.0, keyword_score + count_factor)
    return {
        "score": score,
        "level": urgency_level(score),
        "urgentKeywords": list(hits),
        "messageCountFactor": count_factor,
    }


# ---------- Sentiment ----------


def analyze_sentiment(messages: Sequence[Message]) -> dict[str, Any]:
    text = _combined_text(messages)
    if not text:
        return {"sentiment": "neutral", "positiveCount": 0, "negativeCount": 0, "totalWords": 0}

    positive = sum(_count_word(text, w) for w in POSITIVE_WORDS)
    negative = sum(_count_word(text, w) for w in NEGATIVE_WORDS)

    sentiment = "neutral"
    if positive > negative * SENTIMENT_RATIO:
        sentiment = "positive"
    elif negative > positive * SENTIMENT_RATIO:
        sentiment = "negative"
    return {
        "sentiment": sentiment,
        "positiveCount": positive,
        "negativeCount": negative,
        "totalWords": len(text.split()),
    }


# ---------- Action items ----------


def _priority_of(line: str) -> str:
    if _contains_any(line, HIGH_PRIORITY_WORDS):
        return "high"
    if _contains_any(line, MEDIUM_PRIORITY_WORDS):
        return "medium"
    return "low"


def _status_of(line: str) -> str:
    if _contains_any(line, COMPLETED_WORDS):
        return "completed"
    if _contains_any(line, IN_PROGRESS_WORDS):
        return "in_progress"
    return "open"


def _clean_action_text(line: str) -> str:
    line = re.sub(r"\s+", " ", line.strip())
    line = re.sub(r"^[-•*]\s*", "", line)
    line = re.sub(r"^\d+\.\s*", "", line)
    return line[:500]


def extract_action_items(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """One action item per message line that contains an action indicator."""
    items = []
    for message in messages:
        text = message.get("text") or ""
        for line in (part.strip() for part in text.split("\n")):
            if not line or not _contains_any(line, ACTION_INDICATORS):
                continue
            cleaned = _clean_action_text(line)
            if len(cleaned) <= 5:
                continue
            items.append(
                {
                    "text": cleaned,
                    "mentionedUsers": ACTION_MENTION_RE.findall(line),
                    "priority": _priority_of(line),
                    "status": _status_of(line),
                    "extractedFromMessageTs": message.get("ts", ""),
                    "user": message.get("user", ""),
                }
            )
    return items


def filter_action_items(
    items: Iterable[dict[str, Any]], priority_threshold: str = "low", include_completed: bool = False
) -> list[dict[str, Any]]:
    minimum = PRIORITY_ORDER.index(priority_threshold)
    return [
        item
        for item in items
        if PRIORITY_ORDER.index(item["priority"]) >= minimum
        and (include_completed or item["status"] != "completed")
    ]


def priority_breakdown(items: Iterable[dict[str, Any]]) -> dict[str, int]:
    counts = Counter(item["priority"] for item in items)
    return {level: counts.get(level, 0) for level in ("high", "medium", "low")}


# ---------- Topics and decisions ----------


def extract_topics(messages: Sequence[Message], max_topics: int = 20) -> list[str]:
    """Most frequent non-stopword terms across the thread."""
    counts: Counter[str] = Counter()
    for message in messages:
        text = MARKUP_RE.sub(" ", (message.get("text") or "").lower())
        for word in WORD_RE.findall(text):
            word = word.strip("'-_")
            if len(word) < 3 or word in STOP_WORDS:
                continue
            counts[word] += 1
    return [word for word, _ in counts.most_common(max_topics)]


def extract_decisions(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Messages that read like a decision, with a rough confidence."""
    decisions = []
    for message in messages:
        text = message.get("text") or ""
        keywords = _contains_any(text, DECISION_KEYWORDS)
        if not keywords:
            continue
        confidence = 0.4 + min(0.3, len(keywords) * 0.15)
        if _contains_any(text, DECISION_STRONG_MARKERS):
            confidence += 0.4
        if len(text) > 20:
            confidence += 0.1
        decisions.append(
            {
                "decision": text,
                "confidence": round(min(1.0, confidence), 2),
                "keywords": keywords,
                "participant": message.get("user", ""),
                "timestamp": message.get("ts", ""),
            }
        )
    return decisions


# ---------- Timeline ----------


def build_timeline(messages: Sequence[Message]) -> dict[str, Any]:
    """Per-message events plus duration and pace, in minutes."""
    stamps = [ts_to_float(m.get("ts")) for m in messages]
    start = stamps[0] if stamps else 0.0
    events = [
        {
            "timestamp": m.get("ts", ""),
            "userId": m.get("user") or "unknown",
            "eventType": "message",
            "content": m.get("text") or "",
            "minutesSinceStart": round((ts - start) / 60, 2),
        }
        for m, ts in zip(messages, stamps)
    ]
    duration = (stamps[-1] - stamps[0]) / 60 if len(stamps) > 1 else 0.0
    gaps = [(b - a) / 60 for a, b in zip(stamps, stamps[1:])]
    return {
        "events": events,
        "totalDurationMinutes": round(duration, 2),
        "averageResponseMinutes": round(sum(gaps) / len(gaps), 2) if gaps else 0.0,
        "messagesPerHour": round(len(events) / (duration / 60), 2) if duration > 0 else 0.0,
    }


def duration_minutes(messages: Sequence[Message]) -> float:
    if len(messages) < 2:
        return 0.0
    return (ts_to_float(messages[-1].get("ts")) - ts_to_float(messages[0].get("ts"))) / 60


# ---------- Importance ----------

IMPORTANCE_WEIGHTS = {
    "message_count": 0.3,
    "urgency_keywords": 0.4,
    "participant_count": 0.2,
    "mention_frequency": 0.1,
}
URGENCY_LEVEL_VALUES = {"critical": 1.0, "high": 0.75, "medium": 0.5, "low": 0.25}


def importance_factors(messages: Sequence[Message]) -> dict[str, float]:
    """Normalized [0, 1] value of every scorable criterion."""
    participants = {m.get("user") for m in messages if m.get("user")}
    mentions = sum(len(extract_mentions(m.get("text") or "")) for m in messages)
    return {
        "message_count": min(len(messages) / 20, 1.0),
        "urgency_keywords": URGENCY_LEVEL_VALUES[calculate_urgency(messages)["level"]],
        "participant_count": min(len(participants) / 10, 1.0),
        "mention_frequency": min(mentions / 5, 1.0),
    }


def calculate_importance(messages: Sequence[Message], criteria: Iterable[str] | None = None) -> float:
    """Weighted mean of the enabled criteria; criteria without a scorer are ignored.

    Returns 0.0 when no scorable criterion is enabled.
    """
    enabled = list(IMPORTANCE_WEIGHTS) if criteria is None else [c for c in criteria if c in IMPORTANCE_WEIGHTS]
    enabled = list(dict.fromkeys(enabled))
    total_weight = sum(IMPORTANCE_WEIGHTS[c] for c in enabled)
    if total_weight == 0:
        return 0.0
    factors = importance_factors(messages)
    return sum(IMPORTANCE_WEIGHTS[c] * factors[c] for c in enabled) / total_weight


# ---------- Similarity ----------

SIMILARITY_WEIGHTS = {
    "keyword_overlap": 0.4,
    "participant_overlap": 0.3,
    "temporal_proximity": 0.2,
    "topic_similarity": 0.1,
}
TEMPORAL_WINDOW_SECONDS = 7 * 24 * 3600


def keyword_set(messages: Iterable[Message]) -> set[str]:
    return {w for w in _combined_text(messages).split() if len(w) > 3}


def jaccard(a: set[Any], b: set[Any]) -> float:
    union = a | b
    return len(a & b) / len(union) if union else 0.0


def thread_similarity(
    reference: Sequence[Message],
    candidate: Sequence[Message],
    relationship_types: Iterable[str] | None = None,
) -> tuple[float, list[str]]:
    """Similarity score and the relationship types that contributed to it."""
    enabled = set(SIMILARITY_WEIGHTS if relationship_types is None else relationship_types)
    score = 0.0
    reasons = []

    if "keyword_overlap" in enabled:
        overlap = jaccard(keyword_set(reference), keyword_set(candidate))
        if overlap > 0:
            score += SIMILARITY_WEIGHTS["keyword_overlap"] * overlap
            reasons.append("keyword_overlap")
    if "participant_overlap" in enabled:
        ref_users = {m.get("user") for m in reference if m.get("user")}
        cand_users = {m.get("user") for m in candidate if m.get("user")}
        overlap = jaccard(ref_users, cand_users)
        if overlap > 0:
            score += SIMILARITY_WEIGHTS["participant_overlap"] * overlap
            reasons.append("participant_overlap")
    if "temporal_proximity" in enabled and reference and candidate:
        delta = abs(ts_to_float(reference[0].get("ts")) - ts_to_float(candidate[0].get("ts")))
        proximity = max(0.0, 1 - delta / TEMPORAL_WINDOW_SECONDS)
        if proximity > 0:
            score += SIMILARITY_WEIGHTS["temporal_proximity"] * proximity
            reasons.append("temporal_proximity")
    if "topic_similarity" in enabled:
        if calculate_urgency(reference)["level"] == calculate_urgency(candidate)["level"]:
            score += SIMILARITY_WEIGHTS["topic_similarity"]
            reasons.append("topic_similarity")

    return min(score, 1.0), reasons
