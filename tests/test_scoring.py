"""
Tests for questionnaire scoring.

These tests verify:
1. Severity bands of PHQ-9 and GAD-7 at their boundaries
2. Answer set validation (length, range, item type)
3. Verification of externally supplied results

Usage:
    pytest tests/test_scoring.py -v
"""

import pytest
from datetime import datetime, timezone

from assessment_engine.errors import InvalidAnswerSet, ValidationError
from assessment_engine.models import AssessmentResult, AssessmentType
from assessment_engine.questionnaires import (
    GAD7,
    PHQ9,
    get_questionnaire,
    mood_label,
    mood_status,
    questionnaire_for_slug,
)
from assessment_engine.scoring import build_result, score, validate_answers, verify_result

SUBMITTED = datetime(2024, 12, 8, 9, 0, tzinfo=timezone.utc)


def answers_totalling(total: int, length: int):
    """Build an answer list with the given total (items 0-3)."""
    answers = []
    for _ in range(length):
        item = min(3, total)
        answers.append(item)
        total -= item
    assert total == 0
    return answers


class TestPHQ9Severity:
    """PHQ-9 severity bands."""

    @pytest.mark.parametrize(
        "total,label",
        [
            (0, "Minimal"),
            (4, "Minimal"),
            (5, "Mild"),
            (9, "Mild"),
            (10, "Moderate"),
            (14, "Moderate"),
            (15, "Moderately Severe"),
            (19, "Moderately Severe"),
            (20, "Severe"),
            (27, "Severe"),
        ],
    )
    def test_band_boundaries(self, total, label):
        """Totals at each band edge get the right label."""
        result = score(answers_totalling(total, 9), AssessmentType.DEPRESSION)
        assert result.total_score == total
        assert result.severity_label == label

    def test_sample_answers(self):
        """A typical answer set sums its items."""
        result = score([1, 1, 2, 1, 0, 1, 1, 1, 0], AssessmentType.DEPRESSION)
        assert result.total_score == 8
        assert result.severity_label == "Mild"


class TestGAD7Severity:
    """GAD-7 severity bands."""

    @pytest.mark.parametrize(
        "total,label",
        [(0, "Minimal"), (4, "Minimal"), (5, "Mild"), (9, "Mild"),
         (10, "Moderate"), (14, "Moderate"), (15, "Severe"), (21, "Severe")],
    )
    def test_band_boundaries(self, total, label):
        """Totals at each band edge get the right label."""
        result = score(answers_totalling(total, 7), AssessmentType.ANXIETY)
        assert result.severity_label == label

    def test_all_threes_is_severe(self):
        """Maximum answers give the maximum score."""
        result = score([3] * 7, AssessmentType.ANXIETY)
        assert result.total_score == 21
        assert result.severity_label == "Severe"


class TestValidation:
    """Rejection of malformed answer sets."""

    def test_wrong_length(self):
        """PHQ-9 with 8 answers is rejected."""
        with pytest.raises(InvalidAnswerSet):
            score([0] * 8, AssessmentType.DEPRESSION)

    def test_answer_out_of_range(self):
        """An answer of 4 is rejected."""
        with pytest.raises(InvalidAnswerSet):
            score([0, 0, 0, 0, 0, 0, 4], AssessmentType.ANXIETY)

    def test_negative_answer(self):
        """An answer of -1 is rejected."""
        with pytest.raises(InvalidAnswerSet):
            score([-1] + [0] * 8, AssessmentType.DEPRESSION)

    def test_non_integer_items(self):
        """Floats, strings and booleans are not answers."""
        for bad in (1.0, "1", True):
            with pytest.raises(InvalidAnswerSet):
                validate_answers([bad] + [0] * 6, AssessmentType.ANXIETY)

    def test_string_is_not_a_sequence_of_answers(self):
        """A string of digits is rejected."""
        with pytest.raises(InvalidAnswerSet):
            validate_answers("0000000", AssessmentType.ANXIETY)

    def test_unknown_type(self):
        """An unknown questionnaire type is rejected."""
        with pytest.raises(InvalidAnswerSet):
            validate_answers([0] * 7, "insomnia")

    def test_invalid_answer_set_is_validation_error(self):
        """Callers can catch all input errors as ValidationError."""
        assert issubclass(InvalidAnswerSet, ValidationError)

    def test_returns_tuple(self):
        """Valid answers come back as an immutable tuple."""
        assert validate_answers([0, 1, 2, 3, 0, 1, 2], AssessmentType.ANXIETY) == (0, 1, 2, 3, 0, 1, 2)


class TestResults:
    """Building and verifying AssessmentResult values."""

    def test_build_result(self):
        """build_result stores the computed score with the answers."""
        result = build_result("a-1", AssessmentType.ANXIETY, [2] * 7, SUBMITTED)
        assert result.total_score == 14
        assert result.severity_label == "Moderate"
        assert result.answers == (2,) * 7
        assert result.submitted_at == SUBMITTED

    def test_verify_corrects_reported_score(self):
        """A result with a wrong reported score is recomputed."""
        reported = AssessmentResult(
            id="a-2",
            type=AssessmentType.DEPRESSION,
            total_score=3,
            severity_label="Minimal",
            answers=(3,) * 9,
            submitted_at=SUBMITTED,
        )
        verified = verify_result(reported)
        assert verified.total_score == 27
        assert verified.severity_label == "Severe"
        assert verified.id == "a-2"

    def test_verify_keeps_correct_result(self):
        """A correct result is returned unchanged."""
        result = build_result("a-3", AssessmentType.ANXIETY, [1] * 7, SUBMITTED)
        assert verify_result(result) == result

    def test_wire_aliases(self):
        """Results serialize with the camelCase wire names."""
        result = build_result("a-4", AssessmentType.ANXIETY, [0] * 7, SUBMITTED)
        data = result.model_dump(mode="json", by_alias=True)
        assert data["score"] == 0
        assert data["severity"] == "Minimal"
        assert data["type"] == "anxiety"
        assert "dateUTC" in data


class TestCatalog:
    """Questionnaire catalog and mood labels."""

    def test_catalog_shapes(self):
        """PHQ-9 has 9 items up to 27, GAD-7 has 7 items up to 21."""
        assert PHQ9.item_count == 9 and PHQ9.max_score == 27
        assert GAD7.item_count == 7 and GAD7.max_score == 21
        assert get_questionnaire(AssessmentType.ANXIETY) is GAD7

    def test_slug_lookup(self):
        """URL slugs map to questionnaires."""
        assert questionnaire_for_slug("phq") is PHQ9
        assert questionnaire_for_slug("gad") is GAD7
        with pytest.raises(KeyError):
            questionnaire_for_slug("psqi")

    def test_mood_labels(self):
        """Mood values have display labels and a status line."""
        assert mood_label(1) == "Very Low"
        assert mood_label(7) == "Amazing"
        assert mood_status(2) == "Taking it slow"
        assert mood_status(4) == "Getting by"
        assert mood_status(6) == "Feeling good"
