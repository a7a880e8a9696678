"""Pure scoring for the standardized questionnaires.

No state and no I/O, so the client (optimistic feedback) and the reference
service (authoritative result) compute identical scores for identical input.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from .errors import InvalidAnswerSet
from .models import AnswerSet, AssessmentResult, AssessmentType
from .questionnaires import Questionnaire, get_questionnaire

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Score:
    """Total score and severity band for one answer set."""

    total_score: int
    severity_label: str


def validate_answers(answers: Sequence[int], assessment_type: AssessmentType) -> AnswerSet:
    """Check an answer sequence against its questionnaire and return it as a tuple.

    Raises:
        InvalidAnswerSet: wrong length, a non-integer item, or an item outside
            the questionnaire's item range.
    """
    try:
        questionnaire = get_questionnaire(assessment_type)
    except (KeyError, ValueError):
        raise InvalidAnswerSet(f"Unknown assessment type: {assessment_type!r}")

    if isinstance(answers, (str, bytes)) or not isinstance(answers, Sequence):
        raise InvalidAnswerSet(f"{questionnaire.name} answers must be a sequence")

    if len(answers) != questionnaire.item_count:
        raise InvalidAnswerSet(
            f"{questionnaire.name} expects {questionnaire.item_count} answers, "
            f"got {len(answers)}"
        )

    for position, answer in enumerate(answers, start=1):
        # bool is an int subclass; True/False are not answers
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise InvalidAnswerSet(
                f"{questionnaire.name} item {position} must be an integer, got {answer!r}"
            )
        if not questionnaire.item_min <= answer <= questionnaire.item_max:
            raise InvalidAnswerSet(
                f"{questionnaire.name} item {position} must be between "
                f"{questionnaire.item_min} and {questionnaire.item_max}, got {answer}"
            )

    return tuple(answers)


def severity_for(total_score: int, questionnaire: Questionnaire) -> str:
    for band in questionnaire.bands:
        if band.contains(total_score):
            return band.label
    raise InvalidAnswerSet(
        f"{questionnaire.name} total {total_score} is outside 0-{questionnaire.max_score}"
    )


def score(answers: Sequence[int], assessment_type: AssessmentType) -> Score:
    """Score an answer set.

    Example:
        >>> score([3] * 7, AssessmentType.ANXIETY)
        Score(total_score=21, severity_label='Severe')
    """
    validated = validate_answers(answers, assessment_type)
    questionnaire = get_questionnaire(assessment_type)
    total = sum(validated)
    return Score(total_score=total, severity_label=severity_for(total, questionnaire))


def build_result(
    result_id: str,
    assessment_type: AssessmentType,
    answers: Sequence[int],
    submitted_at: datetime,
) -> AssessmentResult:
    """Create an AssessmentResult whose score is computed from ``answers``."""
    scored = score(answers, assessment_type)
    return AssessmentResult(
        id=result_id,
        type=AssessmentType(assessment_type),
        total_score=scored.total_score,
        severity_label=scored.severity_label,
        answers=tuple(answers),
        submitted_at=submitted_at,
    )


def verify_result(result: AssessmentResult) -> AssessmentResult:
    """Recompute score and severity of an externally supplied result.

    The reported values are never trusted: severity drives risk messaging.
    Mismatches are logged and replaced with the recomputed values.
    """
    verified = build_result(result.id, result.type, result.answers, result.submitted_at)
    if (
        verified.total_score != result.total_score
        or verified.severity_label != result.severity_label
    ):
        logger.warning(
            f"[SCORING] Result {result.id} reported {result.total_score} "
            f"({result.severity_label}), recomputed {verified.total_score} "
            f"({verified.severity_label})"
        )
    return verified
