from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import replace

from quizflow.game.sessions.types import AnswerRecord, EngagementMetadata

TIMING_SWEET_SPOT_MIN_MS = 10_000
TIMING_SWEET_SPOT_MAX_MS = 60_000
TIMING_SWEET_SPOT_POINTS = 40
TIMING_RUSHED_POINTS = 20
TIMING_SLOW_POINTS = 30
ACCURACY_WEIGHT = 40
COMPLETION_POINTS_PER_ANSWER = 2
COMPLETION_POINTS_CAP = 20

ROLLING_WINDOW_SIZE = 5
ROLLING_INCREASE_THRESHOLD = 0.8
ROLLING_DECREASE_THRESHOLD = 0.2
ADJUSTMENT_INCREASE = "increase"
ADJUSTMENT_DECREASE = "decrease"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _timing_points(average_ms: float) -> int:
    if average_ms < TIMING_SWEET_SPOT_MIN_MS:
        return TIMING_RUSHED_POINTS
    if average_ms > TIMING_SWEET_SPOT_MAX_MS:
        return TIMING_SLOW_POINTS
    return TIMING_SWEET_SPOT_POINTS


def score_engagement(answers: Iterable[AnswerRecord], total_time_spent_ms: int) -> int:
    records = list(answers)
    if not records:
        return 0

    answer_count = len(records)
    average_ms = max(0, total_time_spent_ms) / answer_count
    accuracy = sum(1 for record in records if record.is_correct) / answer_count

    raw_score = (
        _timing_points(average_ms)
        + accuracy * ACCURACY_WEIGHT
        + min(answer_count * COMPLETION_POINTS_PER_ANSWER, COMPLETION_POINTS_CAP)
    )
    return max(0, min(100, _round_half_up(raw_score)))


def rolling_graded_accuracy(answers: Iterable[AnswerRecord]) -> float | None:
    graded = sorted(
        (record for record in answers if record.graded),
        key=lambda record: record.answered_at,
    )
    window = graded[-ROLLING_WINDOW_SIZE:]
    if len(window) < ROLLING_WINDOW_SIZE:
        return None
    return sum(1 for record in window if record.is_correct) / len(window)


def _next_difficulty_adjustment(answers: Iterable[AnswerRecord]) -> str | None:
    accuracy = rolling_graded_accuracy(answers)
    if accuracy is None:
        return None
    if accuracy >= ROLLING_INCREASE_THRESHOLD:
        return ADJUSTMENT_INCREASE
    if accuracy <= ROLLING_DECREASE_THRESHOLD:
        return ADJUSTMENT_DECREASE
    return None


def record_answer_telemetry(
    engagement: EngagementMetadata,
    *,
    answers: dict[str, AnswerRecord],
    question_id: str,
    time_spent_ms: int,
) -> EngagementMetadata:
    """Return engagement metadata updated for one accepted answer.

    `answers` must already contain the record for `question_id`. A retried
    question replaces its previous timing instead of adding to it.
    """
    elapsed_ms = max(0, int(time_spent_ms))
    question_times = dict(engagement.question_times_ms)
    previous_ms = question_times.get(question_id, 0)
    question_times[question_id] = elapsed_ms
    total_ms = max(0, engagement.time_spent_ms - previous_ms + elapsed_ms)

    adjustments = list(engagement.difficulty_adjustments)
    adjustment = _next_difficulty_adjustment(answers.values())
    if adjustment is not None and (not adjustments or adjustments[-1] != adjustment):
        adjustments.append(adjustment)

    return replace(
        engagement,
        time_spent_ms=total_ms,
        question_times_ms=question_times,
        engagement_score=score_engagement(answers.values(), total_ms),
        difficulty_adjustments=adjustments,
    )


def record_skip(engagement: EngagementMetadata) -> EngagementMetadata:
    return replace(engagement, questions_skipped=engagement.questions_skipped + 1)
