"""
Questionnaire catalog.

Defines the depression screen (PHQ-9) and the anxiety screen (GAD-7): item
prompts, answer options, item counts and the inclusive severity bands used by
the scoring engine. Also carries the labels for the 1-7 mood scale.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .models import AssessmentType


@dataclass(frozen=True)
class AnswerOption:
    """One selectable answer for a questionnaire item."""

    score: int
    label: str


@dataclass(frozen=True)
class SeverityBand:
    """Inclusive ``[low, high]`` range of total scores mapped to a label."""

    low: int
    high: int
    label: str

    def contains(self, total: int) -> bool:
        return self.low <= total <= self.high


@dataclass(frozen=True)
class Questionnaire:
    """Definition of a standardized screening questionnaire."""

    type: AssessmentType
    name: str
    slug: str  # path segment used by the remote API
    items: Tuple[str, ...]
    bands: Tuple[SeverityBand, ...]
    item_min: int = 0
    item_max: int = 3

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def max_score(self) -> int:
        return self.item_count * self.item_max


ANSWER_OPTIONS: Tuple[AnswerOption, ...] = (
    AnswerOption(0, "Not at all"),
    AnswerOption(1, "Several days"),
    AnswerOption(2, "More than half the days"),
    AnswerOption(3, "Nearly every day"),
)

PHQ9 = Questionnaire(
    type=AssessmentType.DEPRESSION,
    name="PHQ-9",
    slug="phq",
    items=(
        "Little interest or pleasure in doing things",
        "Feeling down, depressed, or hopeless",
        "Trouble falling or staying asleep, or sleeping too much",
        "Feeling tired or having little energy",
        "Poor appetite or overeating",
        "Feeling bad about yourself or that you are a failure or have let "
        "yourself or your family down",
        "Trouble concentrating on things, such as reading the newspaper or "
        "watching television",
        "Moving or speaking so slowly that other people could have noticed. "
        "Or the opposite - being so fidgety or restless that you have been "
        "moving around a lot more than usual",
        "Thoughts that you would be better off dead, or of hurting yourself",
    ),
    bands=(
        SeverityBand(0, 4, "Minimal"),
        SeverityBand(5, 9, "Mild"),
        SeverityBand(10, 14, "Moderate"),
        SeverityBand(15, 19, "Moderately Severe"),
        SeverityBand(20, 27, "Severe"),
    ),
)

GAD7 = Questionnaire(
    type=AssessmentType.ANXIETY,
    name="GAD-7",
    slug="gad",
    items=(
        "Feeling nervous, anxious, or on edge",
        "Not being able to stop or control worrying",
        "Worrying too much about different things",
        "Trouble relaxing",
        "Being so restless that it is hard to sit still",
        "Becoming easily annoyed or irritable",
        "Feeling afraid, as if something awful might happen",
    ),
    bands=(
        SeverityBand(0, 4, "Minimal"),
        SeverityBand(5, 9, "Mild"),
        SeverityBand(10, 14, "Moderate"),
        SeverityBand(15, 21, "Severe"),
    ),
)

QUESTIONNAIRES: Dict[AssessmentType, Questionnaire] = {
    PHQ9.type: PHQ9,
    GAD7.type: GAD7,
}


def get_questionnaire(assessment_type: AssessmentType) -> Questionnaire:
    return QUESTIONNAIRES[AssessmentType(assessment_type)]


def questionnaire_for_slug(slug: str) -> Questionnaire:
    """Look up a questionnaire by its API slug (``phq`` or ``gad``)."""
    for questionnaire in QUESTIONNAIRES.values():
        if questionnaire.slug == slug:
            return questionnaire
    raise KeyError(slug)


# Mood scale (1-7)
MOOD_LABELS: Dict[int, str] = {
    1: "Very Low",
    2: "Low",
    3: "Okay",
    4: "Fair",
    5: "Good",
    6: "Great",
    7: "Amazing",
}

# (upper bound inclusive, status)
_MOOD_STATUS: List[Tuple[int, str]] = [
    (2, "Taking it slow"),
    (4, "Getting by"),
    (7, "Feeling good"),
]


def mood_label(mood_value: int) -> str:
    return MOOD_LABELS[mood_value]


def mood_status(mood_value: int) -> str:
    """Coarse status line for a mood value."""
    for upper, status in _MOOD_STATUS:
        if mood_value <= upper:
            return status
    return _MOOD_STATUS[-1][1]
