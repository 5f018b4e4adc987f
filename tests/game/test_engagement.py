from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from quizflow.game.sessions.engagement import (
    ADJUSTMENT_DECREASE,
    ADJUSTMENT_INCREASE,
    record_answer_telemetry,
    score_engagement,
)
from quizflow.game.sessions.types import AnswerRecord, EngagementMetadata

UTC = timezone.utc
BASE = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _records(count: int, *, correct: int, graded: bool = False) -> list[AnswerRecord]:
    return [
        AnswerRecord(
            question_id=f"q{index}",
            raw_answer="x",
            value="x",
            is_correct=index < correct,
            points_awarded=0,
            time_spent_ms=0,
            answered_at=BASE + timedelta(minutes=index),
            graded=graded,
        )
        for index in range(count)
    ]


def test_zero_answers_scores_zero() -> None:
    assert score_engagement([], 0) == 0
    assert score_engagement([], 120_000) == 0


@pytest.mark.parametrize(
    ("average_ms", "expected"),
    [
        (10_000, 40 + 40 + 8),
        (60_000, 40 + 40 + 8),
        (9_999, 20 + 40 + 8),
        (60_001, 30 + 40 + 8),
    ],
)
def test_timing_bands(average_ms: int, expected: int) -> None:
    assert score_engagement(_records(4, correct=4), average_ms * 4) == expected


def test_completion_points_are_capped_and_total_is_bounded() -> None:
    score = score_engagement(_records(30, correct=30), 30 * 20_000)

    assert score == 100


def test_score_rounds_half_up() -> None:
    # 40 + (1/8 * 40 = 5) + 16 = 61 ; 40 + (3/16 * 40 = 7.5) + 20 = 67.5 -> 68
    assert score_engagement(_records(8, correct=1), 8 * 20_000) == 61
    assert score_engagement(_records(16, correct=3), 16 * 20_000) == 68


def test_score_is_monotonic_in_accuracy() -> None:
    scores = [score_engagement(_records(10, correct=correct), 10 * 15_000) for correct in range(11)]

    assert scores == sorted(scores)
    assert all(0 <= score <= 100 for score in scores)


def test_telemetry_replaces_timing_for_retried_question() -> None:
    records = {record.question_id: record for record in _records(1, correct=1)}
    engagement = record_answer_telemetry(
        EngagementMetadata(),
        answers=records,
        question_id="q0",
        time_spent_ms=20_000,
    )
    engagement = record_answer_telemetry(
        engagement,
        answers=records,
        question_id="q0",
        time_spent_ms=5_000,
    )

    assert engagement.time_spent_ms == 5_000
    assert engagement.question_times_ms == {"q0": 5_000}
    assert engagement.engagement_score == 20 + 40 + 2


def test_difficulty_adjustment_appended_only_on_change() -> None:
    strong = {record.question_id: record for record in _records(5, correct=5, graded=True)}
    engagement = record_answer_telemetry(
        EngagementMetadata(),
        answers=strong,
        question_id="q4",
        time_spent_ms=15_000,
    )
    engagement = record_answer_telemetry(
        engagement,
        answers=strong,
        question_id="q4",
        time_spent_ms=15_000,
    )
    assert engagement.difficulty_adjustments == [ADJUSTMENT_INCREASE]

    weak = {record.question_id: record for record in _records(5, correct=0, graded=True)}
    engagement = record_answer_telemetry(engagement, answers=weak, question_id="q4", time_spent_ms=15_000)
    assert engagement.difficulty_adjustments == [ADJUSTMENT_INCREASE, ADJUSTMENT_DECREASE]


def test_ungraded_answers_do_not_drive_difficulty() -> None:
    answers = {record.question_id: record for record in _records(6, correct=6, graded=False)}

    engagement = record_answer_telemetry(
        EngagementMetadata(),
        answers=answers,
        question_id="q5",
        time_spent_ms=15_000,
    )

    assert engagement.difficulty_adjustments == []
