from __future__ import annotations

from collections.abc import Sequence
from itertools import combinations

from quizflow.game.rules.matching import compile_pattern
from quizflow.game.rules.types import (
    ConflictSeverity,
    ConflictType,
    ResolutionSuggestion,
    ResponseRule,
    RuleConflict,
)

PROBE_MESSAGES: tuple[str, ...] = (
    "hello world",
    "help me please",
    "order status",
    "cancel subscription",
    "technical support",
)
HIGH_OVERLAP_THRESHOLD = 2
PRIORITY_TIE_SIMILARITY_THRESHOLD = 0.3


def _keyword_set(rule: ResponseRule) -> frozenset[str]:
    return frozenset(pattern.strip().casefold() for pattern in rule.trigger_patterns if pattern.strip())


def jaccard_similarity(left: frozenset[str], right: frozenset[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def _keyword_overlap(first: ResponseRule, second: ResponseRule) -> RuleConflict | None:
    if first.uses_regex or second.uses_regex:
        return None
    shared = _keyword_set(first) & _keyword_set(second)
    if not shared:
        return None
    severity = ConflictSeverity.HIGH if len(shared) > HIGH_OVERLAP_THRESHOLD else ConflictSeverity.MEDIUM
    return RuleConflict(
        rule_ids=(first.id, second.id),
        conflict_type=ConflictType.KEYWORD_OVERLAP,
        severity=severity,
        description=f"rules share {len(shared)} trigger keyword(s)",
        shared_patterns=tuple(sorted(shared)),
    )


def _priority_tie(first: ResponseRule, second: ResponseRule) -> RuleConflict | None:
    if first.priority != second.priority:
        return None
    similarity = jaccard_similarity(_keyword_set(first), _keyword_set(second))
    if similarity <= PRIORITY_TIE_SIMILARITY_THRESHOLD:
        return None
    return RuleConflict(
        rule_ids=(first.id, second.id),
        conflict_type=ConflictType.PRIORITY_TIE,
        severity=ConflictSeverity.MEDIUM,
        description=f"same priority {first.priority} with similar triggers ({similarity:.2f})",
    )


def _matches_probe(rule: ResponseRule, probe: str) -> bool:
    for pattern in rule.trigger_patterns:
        compiled = compile_pattern(pattern, rule.pattern_flags)
        if compiled is not None and compiled.search(probe) is not None:
            return True
    return False


def _regex_conflict(first: ResponseRule, second: ResponseRule) -> RuleConflict | None:
    if not (first.uses_regex and second.uses_regex):
        return None
    co_matched = tuple(
        probe for probe in PROBE_MESSAGES if _matches_probe(first, probe) and _matches_probe(second, probe)
    )
    if not co_matched:
        return None
    return RuleConflict(
        rule_ids=(first.id, second.id),
        conflict_type=ConflictType.REGEX_CONFLICT,
        severity=ConflictSeverity.HIGH,
        description=f"patterns both match {len(co_matched)} probe message(s)",
        shared_patterns=co_matched,
    )


def detect_conflicts(rules: Sequence[ResponseRule]) -> list[RuleConflict]:
    """Pairwise diagnostic over active rules; every finding for a pair is reported."""
    active = sorted((rule for rule in rules if rule.is_active), key=lambda rule: rule.id)
    conflicts: list[RuleConflict] = []
    for first, second in combinations(active, 2):
        for check in (_keyword_overlap, _priority_tie, _regex_conflict):
            conflict = check(first, second)
            if conflict is not None:
                conflicts.append(conflict)
    return conflicts


def suggest_resolutions(conflicts: Sequence[RuleConflict]) -> list[ResolutionSuggestion]:
    suggestions: list[ResolutionSuggestion] = []
    for conflict in conflicts:
        if conflict.conflict_type == ConflictType.KEYWORD_OVERLAP:
            action = "merge_or_split_keywords"
            description = (
                "Review the shared keywords "
                f"({', '.join(conflict.shared_patterns)}) and keep them on a single rule."
            )
        elif conflict.conflict_type == ConflictType.PRIORITY_TIE:
            action = "adjust_priority"
            description = "Give one of the rules a distinct priority so the selection is intentional."
        else:
            action = "narrow_patterns"
            description = "Make the regular expressions more specific so they stop matching the same messages."
        suggestions.append(
            ResolutionSuggestion(
                rule_ids=conflict.rule_ids,
                conflict_type=conflict.conflict_type,
                action=action,
                description=description,
            )
        )
    return suggestions
