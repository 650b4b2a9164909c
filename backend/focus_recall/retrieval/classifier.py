"""Query intent classification and the content-type priorities derived from it."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Mapping

import orjson

from focus_recall.core.errors import ClassificationParseError
from focus_recall.models.entities import ContentType, Intent, MixingStrategy, QueryClassification
from focus_recall.providers.generation import GenerationProvider
from focus_recall.utils.text import normalize

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE

TASK_PRIORITY_PATTERNS = (
    re.compile(r"\b(task|tasks)\s+(priorit|urgent|important|deadline|due)", _FLAGS),
    re.compile(r"\b(what\s+should\s+i\s+work\s+on|next\s+task|current\s+tasks)", _FLAGS),
    re.compile(r"\b(focus|concentrate|working\s+on|task\s+list)", _FLAGS),
    re.compile(r"\b(pomodoro|session|active\s+task|in\s+progress)", _FLAGS),
    re.compile(r"\b(complete|finish|accomplish|productivity)", _FLAGS),
    re.compile(r"\b(efficiency|optimize\s+work|time\s+management)", _FLAGS),
    re.compile(r"\b(what|which|list|show|all)\s+(my\s+|the\s+)?tasks?\b", _FLAGS),
    re.compile(r"\btasks?\s+(are\s+)?(in|for|under|within)\s+(the\s+)?[\w-]+(\s+project)?", _FLAGS),
)

PROJECT_FOCUS_PATTERNS = (
    re.compile(r"\b(project|projects)\s+(overview|status|summary|progress)", _FLAGS),
    re.compile(r"\b(how\s+many\s+projects|number\s+of\s+projects|count\s+of\s+projects)", _FLAGS),
    re.compile(r"\b(all\s+projects|list\s+projects|show\s+projects)", _FLAGS),
    re.compile(r"\b(portfolio|initiative|workstream|deliverable)", _FLAGS),
    re.compile(r"\b(project\s+breakdown|project\s+analysis|across\s+projects)", _FLAGS),
    re.compile(r"\b(milestone|roadmap|project\s+plan)", _FLAGS),
    re.compile(r"\b(project\s+comparison|project\s+metrics)", _FLAGS),
    re.compile(r"\b(overall\s+progress|total\s+work|project\s+distribution)", _FLAGS),
)

SUMMARY_INSIGHTS_PATTERNS = (
    re.compile(r"\b(summary|overview|recap|insight|analysis)", _FLAGS),
    re.compile(r"\b(daily|weekly|monthly)\s+(summary|report|pattern|trend)", _FLAGS),
    re.compile(r"\b(productivity\s+(insight|analysis|pattern|trend))", _FLAGS),
    re.compile(r"\b(time\s+spent|total\s+time|overall\s+stats)", _FLAGS),
    re.compile(r"\b(performance|metrics|analytics|statistics)", _FLAGS),
    re.compile(r"\b(how\s+productive|productivity\s+review)", _FLAGS),
    re.compile(r"\b(last\s+(week|month)|this\s+(week|month)|past\s+(week|month))", _FLAGS),
)

PROJECT_QUERY_PATTERNS = (
    re.compile(r"\b(how\s+many\s+projects?|number\s+of\s+projects?|count\s+of\s+projects?)", _FLAGS),
    re.compile(r"\b(tell\s+me.*projects?|projects?\s+i\s+have|projects?\s+do\s+i\s+have)", _FLAGS),
    re.compile(r"\b(all\s+projects?|list\s+projects?|show\s+projects?)", _FLAGS),
    re.compile(r"\b(projects?\s+(available|existing|current))", _FLAGS),
    re.compile(r"\b(my\s+projects?|which\s+projects?)", _FLAGS),
    re.compile(r"\b(project|projects)\s+(overview|status|summary|progress)", _FLAGS),
    re.compile(r"\b(project\s+breakdown|project\s+analysis|across\s+projects)", _FLAGS),
)

_PROJECT_MENTION_RE = re.compile(r"\b(?:project|in)\s+(?:the\s+)?([A-Za-z0-9_-]+)", _FLAGS)
_MENTION_SKIP = frozenset({"the", "a", "an", "my", "progress", "project", "projects", "this", "that"})
_TASK_NOUN_RE = re.compile(r"\btasks?\b|\btodos?\b", _FLAGS)
_PROJECT_NOUN_RE = re.compile(r"\bprojects?\b", _FLAGS)
_LISTING_VERB_RE = re.compile(r"\b(what|which|list|show|give|tell|find|are|have|do)\b", _FLAGS)

HEURISTIC_CONFIDENCE = 0.35
NO_MATCH_CONFIDENCE = 0.1


@dataclass(slots=True, frozen=True)
class ContentTypePriority:
    primary: tuple[ContentType, ...]
    secondary: tuple[ContentType, ...]
    tertiary: tuple[ContentType, ...]

    def suggested(self) -> tuple[ContentType, ...]:
        return self.primary + self.secondary[:2] + self.tertiary[:1]


CONTENT_TYPE_PRIORITIES: Mapping[Intent, ContentTypePriority] = {
    Intent.TASK_PRIORITY: ContentTypePriority(
        primary=(ContentType.TASK_AGGREGATE, ContentType.TASK_SESSIONS),
        secondary=(ContentType.PROJECT_SUMMARY, ContentType.DAILY_SUMMARY),
        tertiary=(ContentType.WEEKLY_SUMMARY,),
    ),
    Intent.PROJECT_FOCUS: ContentTypePriority(
        primary=(ContentType.PROJECT_SUMMARY,),
        secondary=(ContentType.TASK_AGGREGATE, ContentType.WEEKLY_SUMMARY),
        tertiary=(ContentType.DAILY_SUMMARY, ContentType.MONTHLY_SUMMARY),
    ),
    Intent.SUMMARY_INSIGHTS: ContentTypePriority(
        primary=(ContentType.DAILY_SUMMARY, ContentType.WEEKLY_SUMMARY, ContentType.MONTHLY_SUMMARY),
        secondary=(ContentType.PROJECT_SUMMARY, ContentType.TASK_AGGREGATE),
        tertiary=(ContentType.TASK_SESSIONS,),
    ),
    Intent.GENERAL: ContentTypePriority(
        primary=(ContentType.TASK_AGGREGATE, ContentType.PROJECT_SUMMARY),
        secondary=(ContentType.DAILY_SUMMARY, ContentType.WEEKLY_SUMMARY),
        tertiary=(ContentType.TASK_SESSIONS,),
    ),
}

PROJECT_QUERY_BOOSTS: Mapping[str, float] = {
    ContentType.PROJECT_SUMMARY.value: 1.8,
    ContentType.TASK_AGGREGATE.value: 0.6,
    ContentType.TASK_SESSIONS.value: 0.5,
    ContentType.WEEKLY_SUMMARY.value: 1.2,
    ContentType.MONTHLY_SUMMARY.value: 1.3,
}

_INTENT_GROUPS = (
    (Intent.TASK_PRIORITY, TASK_PRIORITY_PATTERNS, "task_management"),
    (Intent.PROJECT_FOCUS, PROJECT_FOCUS_PATTERNS, "project_management"),
    (Intent.SUMMARY_INSIGHTS, SUMMARY_INSIGHTS_PATTERNS, "analytics"),
)


def is_project_query(query: str) -> bool:
    return any(pattern.search(query) for pattern in PROJECT_QUERY_PATTERNS)


def project_mentions(query: str) -> tuple[str, ...]:
    names = [
        match.group(1)
        for match in _PROJECT_MENTION_RE.finditer(query)
        if match.group(1).lower() not in _MENTION_SKIP
    ]
    return tuple(dict.fromkeys(names))


def mixing_strategy(secondary_intents: tuple[str, ...], confidence: float, token_count: int) -> MixingStrategy:
    multiple = len(secondary_intents) > 1
    if multiple and token_count > 10:
        return MixingStrategy.COMPREHENSIVE
    if confidence < 0.7 or multiple:
        return MixingStrategy.BALANCED
    return MixingStrategy.PRIORITIZED


class QueryClassifier:
    """Regex-driven intent classification."""

    def classify(self, query: str) -> QueryClassification:
        text = normalize(query)
        counts = {intent: sum(1 for p in patterns if p.search(text)) for intent, patterns, _ in _INTENT_GROUPS}
        secondary = tuple(label for intent, _, label in _INTENT_GROUPS if counts[intent])

        # ties resolve in group order: task, project, summary
        primary = Intent.GENERAL
        best = 0
        for intent, _, _ in _INTENT_GROUPS:
            if counts[intent] > best:
                primary, best = intent, counts[intent]

        if best:
            confidence = round(min(0.95, 0.4 + 0.15 * best), 4)
        else:
            primary, confidence = self._heuristic(text)

        priority = CONTENT_TYPE_PRIORITIES[primary]
        return QueryClassification(
            primary_intent=primary,
            secondary_intents=secondary,
            confidence=confidence,
            suggested_content_types=priority.suggested(),
            mixing_strategy=mixing_strategy(secondary, confidence, len(text.split())),
            project_mentions=project_mentions(text),
            is_project_query=is_project_query(text),
        )

    @staticmethod
    def _heuristic(text: str) -> tuple[Intent, float]:
        if not _LISTING_VERB_RE.search(text):
            return Intent.GENERAL, NO_MATCH_CONFIDENCE
        if _TASK_NOUN_RE.search(text):
            return Intent.TASK_PRIORITY, HEURISTIC_CONFIDENCE
        if _PROJECT_NOUN_RE.search(text):
            return Intent.PROJECT_FOCUS, HEURISTIC_CONFIDENCE
        return Intent.GENERAL, NO_MATCH_CONFIDENCE


def content_type_boosts(classification: QueryClassification) -> dict[str, float]:
    """Fusion boost map: primary 1.5, secondary 1.2, tertiary 1.0, anything else 0.8."""
    priority = CONTENT_TYPE_PRIORITIES[classification.primary_intent]
    boosts = {item.value: 0.8 for item in ContentType}
    for item in priority.tertiary:
        boosts[item.value] = 1.0
    for item in priority.secondary:
        boosts[item.value] = 1.2
    for item in priority.primary:
        boosts[item.value] = 1.5
    if classification.is_project_query:
        boosts.update(PROJECT_QUERY_BOOSTS)
    return boosts


_AI_CONTEXT = "You route search queries over a personal productivity knowledge base. Reply with JSON only."

_AI_PROMPT = """Pick the content types that best answer the user's query.

Available content types:
- task_aggregate: one document per task with total time, sessions and status
- task_sessions: individual work sessions on a task
- project_summary: overview of a project with its tasks and time spent
- daily_summary: what happened on a single day
- weekly_summary: patterns and totals for a week
- monthly_summary: trends and totals for a month

Query: "{query}"

Respond with a JSON object:
{{"primaryTypes": [...], "secondaryTypes": [...], "reasoning": "...", "confidence": 0.0}}
"""

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def parse_ai_reply(reply: str) -> dict[str, Any]:
    """Decode the model reply, tolerating a fenced ```json block."""
    match = _FENCE_RE.search(reply)
    body = match.group(1) if match else reply
    try:
        payload = orjson.loads(body.strip())
    except orjson.JSONDecodeError as exc:
        raise ClassificationParseError("Classifier reply is not valid JSON", cause=exc) from exc
    if not isinstance(payload, dict):
        raise ClassificationParseError("Classifier reply is not a JSON object")
    primary = _known_types(payload.get("primaryTypes"))
    if not primary:
        raise ClassificationParseError(
            "Classifier reply names no known primary content types",
            context={"primaryTypes": payload.get("primaryTypes")},
        )
    confidence = payload.get("confidence", 0.5)
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.5
    if confidence > 1:
        # some models answer in percent
        confidence = confidence / 100.0
    reasoning = payload.get("reasoning")
    return {
        "primary_types": primary,
        "secondary_types": tuple(t for t in _known_types(payload.get("secondaryTypes")) if t not in primary),
        "reasoning": str(reasoning) if reasoning else None,
        "confidence": max(0.0, min(1.0, float(confidence))),
    }


def _known_types(raw: Any) -> tuple[ContentType, ...]:
    if not isinstance(raw, list):
        return ()
    known = {item.value for item in ContentType} - {ContentType.OTHER.value}
    values = [str(item).strip().lower() for item in raw]
    return tuple(dict.fromkeys(ContentType(value) for value in values if value in known))


def _intent_for(content_type: ContentType) -> Intent:
    if content_type in (ContentType.TASK_AGGREGATE, ContentType.TASK_SESSIONS):
        return Intent.TASK_PRIORITY
    if content_type is ContentType.PROJECT_SUMMARY:
        return Intent.PROJECT_FOCUS
    if content_type in (ContentType.DAILY_SUMMARY, ContentType.WEEKLY_SUMMARY, ContentType.MONTHLY_SUMMARY):
        return Intent.SUMMARY_INSIGHTS
    return Intent.GENERAL


SOURCE_RULES_FALLBACK = "rules_fallback"


class AIQueryClassifier:
    """Asks a generation model for content types.

    Any failure returns the rule-based answer with ``source="rules_fallback"``
    so callers can report the degraded classification.
    """

    def __init__(self, generation_provider: GenerationProvider, fallback: QueryClassifier | None = None) -> None:
        self.generation_provider = generation_provider
        self.fallback = fallback or QueryClassifier()

    def classify(self, query: str) -> QueryClassification:
        baseline = self.fallback.classify(query)
        try:
            reply = self.generation_provider.complete(_AI_PROMPT.format(query=query), context=_AI_CONTEXT)
            parsed = parse_ai_reply(reply)
        except Exception as exc:
            logger.warning(
                "AI classification failed, using rule-based result: %s",
                exc,
                extra={"ctx_stage": "classify", "ctx_error": type(exc).__name__},
            )
            return replace(baseline, source=SOURCE_RULES_FALLBACK, reasoning=f"{type(exc).__name__}: {exc}")

        primary_types = parsed["primary_types"]
        secondary_types = parsed["secondary_types"]
        confidence = parsed["confidence"]
        intents = tuple(dict.fromkeys(_intent_for(item) for item in primary_types + secondary_types))
        labels = {
            Intent.TASK_PRIORITY: "task_management",
            Intent.PROJECT_FOCUS: "project_management",
            Intent.SUMMARY_INSIGHTS: "analytics",
        }
        secondary_intents = tuple(labels[item] for item in intents if item in labels)
        return QueryClassification(
            primary_intent=_intent_for(primary_types[0]),
            secondary_intents=secondary_intents,
            confidence=confidence,
            suggested_content_types=primary_types + secondary_types,
            mixing_strategy=mixing_strategy(secondary_intents, confidence, len(query.split())),
            project_mentions=baseline.project_mentions,
            is_project_query=baseline.is_project_query,
            source="ai",
            reasoning=parsed["reasoning"],
        )


__all__ = [
    "ContentTypePriority",
    "CONTENT_TYPE_PRIORITIES",
    "PROJECT_QUERY_BOOSTS",
    "QueryClassifier",
    "AIQueryClassifier",
    "SOURCE_RULES_FALLBACK",
    "content_type_boosts",
    "is_project_query",
    "project_mentions",
    "mixing_strategy",
    "parse_ai_reply",
]
