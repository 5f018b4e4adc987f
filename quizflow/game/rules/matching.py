from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime

import structlog

from quizflow.game.rules.types import ResponseRule, RuleCandidate, RuleMatch

logger = structlog.get_logger(__name__)

REGEX_CONFIDENCE = 0.9
KEYWORD_CONFIDENCE_CAP = 0.8
KEYWORD_LENGTH_WEIGHT = 2
OUTSIDE_WINDOW_FACTOR = 0.1
CONFLICT_PRIORITY_DISTANCE = 1
CONFLICT_CONFIDENCE_THRESHOLD = 0.7

_FLAG_MAP: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": re.UNICODE,
}


def compile_pattern(pattern: str, flags: str) -> re.Pattern[str] | None:
    resolved_flags = 0
    for flag in flags:
        resolved_flags |= _FLAG_MAP.get(flag, 0)
    try:
        return re.compile(pattern, resolved_flags)
    except re.error as exc:
        logger.warning("auto_reply_invalid_pattern", pattern=pattern, error=str(exc))
        return None


def _keyword_confidence(keyword: str, message: str) -> float:
    if not message:
        return 0.0
    return min(KEYWORD_CONFIDENCE_CAP, len(keyword) / len(message) * KEYWORD_LENGTH_WEIGHT)


def rule_confidence(rule: ResponseRule, message: str) -> tuple[float, str] | None:
    """Return the best confidence of `rule` for `message` and the pattern that produced it."""
    best: tuple[float, str] | None = None
    normalized_message = message.strip().casefold()
    for pattern in rule.trigger_patterns:
        if rule.uses_regex:
            if not pattern:
                continue
            compiled = compile_pattern(pattern, rule.pattern_flags)
            if compiled is None or compiled.search(message) is None:
                continue
            confidence = REGEX_CONFIDENCE
        else:
            keyword = pattern.strip().casefold()
            if not keyword or keyword not in normalized_message:
                continue
            confidence = _keyword_confidence(keyword, normalized_message)
        if best is None or confidence > best[0]:
            best = (confidence, pattern)
    return best


def _sort_key(candidate: RuleCandidate) -> tuple[int, float, str]:
    return (-candidate.rule.priority, -candidate.confidence, candidate.rule.id)


def _is_conflicting(winner: RuleCandidate, other: RuleCandidate) -> bool:
    priority_distance = abs(other.rule.priority - winner.rule.priority)
    if priority_distance > CONFLICT_PRIORITY_DISTANCE:
        return False
    return other.confidence > CONFLICT_CONFIDENCE_THRESHOLD or other.rule.priority == winner.rule.priority


def match_rule(
    message: str,
    rules: Sequence[ResponseRule],
    *,
    now_local: datetime | None = None,
) -> RuleMatch:
    """Select the reply rule for an inbound message.

    Ordering is priority desc, then confidence desc, then rule id, so the same
    message and rule set always yield the same selection.
    """
    text = message.strip()
    candidates: list[RuleCandidate] = []
    for rule in rules:
        if not rule.is_active:
            continue
        scored = rule_confidence(rule, text)
        if scored is None:
            continue
        confidence, pattern = scored
        if (
            now_local is not None
            and rule.active_time_window is not None
            and not rule.active_time_window.contains(now_local.time())
        ):
            confidence *= OUTSIDE_WINDOW_FACTOR
        candidates.append(RuleCandidate(rule=rule, confidence=confidence, matched_pattern=pattern))

    if not candidates:
        return RuleMatch(selected=None)

    candidates.sort(key=_sort_key)
    winner = candidates[0]
    conflicting = [candidate for candidate in candidates[1:] if _is_conflicting(winner, candidate)]
    if conflicting:
        logger.info(
            "auto_reply_rule_conflict",
            selected_rule_id=winner.rule.id,
            conflicting_rule_ids=[candidate.rule.id for candidate in conflicting],
        )
    return RuleMatch(selected=winner, conflicting=conflicting, candidates=candidates)
