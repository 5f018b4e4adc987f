from __future__ import annotations

from datetime import datetime, time

import pytest

from quizflow.game.rules.matching import match_rule, rule_confidence
from quizflow.game.rules.types import ActiveTimeWindow, ResponseRule

HELP = ResponseRule(id="R1", trigger_patterns=("help",), response="Comment puis-je aider ?", priority=5)
HELP_ME = ResponseRule(id="R2", trigger_patterns=("help me",), response="Je vous aide tout de suite.", priority=5)


def test_longer_keyword_wins_at_equal_priority_and_shorter_is_reported() -> None:
    match = match_rule("I need help me now", [HELP, HELP_ME])

    assert match.selected is not None
    assert match.selected.rule.id == "R2"
    assert match.selected.confidence == pytest.approx(7 / 18 * 2)
    assert [candidate.rule.id for candidate in match.conflicting] == ["R1"]
    assert match.conflicting[0].confidence == pytest.approx(4 / 18 * 2)
    assert match.response == "Je vous aide tout de suite."


def test_priority_dominates_confidence() -> None:
    urgent = ResponseRule(id="R9", trigger_patterns=("help",), response="Urgent", priority=9)

    match = match_rule("help me", [HELP_ME, urgent])

    assert match.selected.rule.id == "R9"
    assert match.conflicting == []


def test_keyword_confidence_is_capped() -> None:
    assert rule_confidence(HELP, "help") == (0.8, "help")
    assert rule_confidence(HELP, "HELP") == (0.8, "help")
    assert rule_confidence(HELP, "bonjour") is None


def test_regex_rule_uses_flags_and_fixed_confidence() -> None:
    order = ResponseRule(
        id="ORD",
        trigger_patterns=(r"order\s+#?\d+",),
        response="Je regarde votre commande.",
        uses_regex=True,
    )

    match = match_rule("Where is ORDER #1234 ?", [order])

    assert match.selected.rule.id == "ORD"
    assert match.selected.confidence == pytest.approx(0.9)


def test_invalid_regex_is_skipped() -> None:
    broken = ResponseRule(id="BAD", trigger_patterns=("(unclosed",), response="x", uses_regex=True, priority=10)

    match = match_rule("I need help", [broken, HELP])

    assert match.selected.rule.id == "R1"
    assert [candidate.rule.id for candidate in match.candidates] == ["R1"]


def test_outside_time_window_reduces_confidence() -> None:
    office = ResponseRule(
        id="OFFICE",
        trigger_patterns=("help",),
        response="Un conseiller arrive.",
        active_time_window=ActiveTimeWindow(start=time(9, 0), end=time(18, 0)),
    )

    inside = match_rule("help", [office], now_local=datetime(2026, 3, 2, 10, 0))
    outside = match_rule("help", [office], now_local=datetime(2026, 3, 2, 22, 0))

    assert inside.selected.confidence == pytest.approx(0.8)
    assert outside.selected.confidence == pytest.approx(0.08)


def test_overnight_window_wraps_midnight() -> None:
    window = ActiveTimeWindow(start=time(22, 0), end=time(6, 0))

    assert window.contains(time(23, 30))
    assert window.contains(time(5, 0))
    assert not window.contains(time(12, 0))


def test_inactive_rules_and_empty_rule_sets_select_nothing() -> None:
    disabled = ResponseRule(id="OFF", trigger_patterns=("help",), response="x", is_active=False)

    assert match_rule("help", [disabled]).selected is None
    assert match_rule("help", []).response is None


def test_selection_is_deterministic_regardless_of_rule_order() -> None:
    twin_a = ResponseRule(id="A", trigger_patterns=("help",), response="a", priority=3)
    twin_b = ResponseRule(id="B", trigger_patterns=("help",), response="b", priority=3)

    forward = match_rule("help please", [twin_a, twin_b])
    backward = match_rule("help please", [twin_b, twin_a])

    assert forward.selected.rule.id == backward.selected.rule.id == "A"
    assert [candidate.rule.id for candidate in forward.conflicting] == ["B"]


def test_keyword_padding_is_ignored_for_matching_and_weight() -> None:
    padded = ResponseRule(id="PAD", trigger_patterns=(" help ",), response="Aide", priority=5)

    assert rule_confidence(padded, "help") == (0.8, " help ")
    confidence, _ = rule_confidence(padded, "  I need help now  ")
    assert confidence == pytest.approx(4 / 15 * 2)
