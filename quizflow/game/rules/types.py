from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum


class ConflictType(str, Enum):
    KEYWORD_OVERLAP = "KEYWORD_OVERLAP"
    PRIORITY_TIE = "PRIORITY_TIE"
    REGEX_CONFLICT = "REGEX_CONFLICT"


class ConflictSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True, slots=True)
class ActiveTimeWindow:
    start: time
    end: time

    def contains(self, moment: time) -> bool:
        if self.start <= self.end:
            return self.start <= moment <= self.end
        return moment >= self.start or moment <= self.end


@dataclass(frozen=True, slots=True, kw_only=True)
class ResponseRule:
    id: str
    trigger_patterns: tuple[str, ...]
    response: str
    priority: int = 0
    uses_regex: bool = False
    pattern_flags: str = "i"
    is_active: bool = True
    active_time_window: ActiveTimeWindow | None = None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class RuleCandidate:
    rule: ResponseRule
    confidence: float
    matched_pattern: str


@dataclass(slots=True)
class RuleMatch:
    selected: RuleCandidate | None
    conflicting: list[RuleCandidate] = field(default_factory=list)
    candidates: list[RuleCandidate] = field(default_factory=list)

    @property
    def response(self) -> str | None:
        return self.selected.rule.response if self.selected is not None else None


@dataclass(frozen=True, slots=True)
class RuleConflict:
    rule_ids: tuple[str, str]
    conflict_type: ConflictType
    severity: ConflictSeverity
    description: str
    shared_patterns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ResolutionSuggestion:
    rule_ids: tuple[str, str]
    conflict_type: ConflictType
    action: str
    description: str
