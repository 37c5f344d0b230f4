from collections import defaultdict
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel

# label -> (name, lower bound in percent)
GRADE_LABELS = {
    "HD": ("High Distinction", 85),
    "D": ("Distinction", 75),
    "CR": ("Credit", 65),
    "P": ("Pass", 50),
    "F": ("Fail", 0),
}


class GradeStatistics(BaseModel):
    total_assessments: int
    overall_average: float
    highest_percentage: int | None
    lowest_percentage: int | None
    distribution: dict[str, int]


class CourseGradeSummary(BaseModel):
    course_id: int
    course_code: str
    course_title: str
    assessment_count: int
    # None when no grade in the course has a computable percentage
    course_average: Optional[float] = None
    course_grade_label: Optional[str] = None


def grade_label_from_percentage(percentage: float) -> str:
    for label, (_name, lower) in GRADE_LABELS.items():
        if percentage >= lower:
            return label
    return "F"


def grade_label_name(label: Optional[str]) -> Optional[str]:
    if label is None:
        return None
    return GRADE_LABELS[label][0] if label in GRADE_LABELS else label


def course_average(percentages: Sequence[float]) -> float:
    """Mean percentage to one decimal place; 0 when nothing is graded."""
    if not percentages:
        return 0.0
    return round(sum(percentages) / len(percentages), 1)


def grade_statistics(records: Iterable) -> GradeStatistics:
    percentages = [r.percentage for r in records if r.percentage is not None]

    distribution = {label: 0 for label in GRADE_LABELS}
    for pct in percentages:
        distribution[grade_label_from_percentage(pct)] += 1

    return GradeStatistics(
        total_assessments=len(percentages),
        overall_average=course_average(percentages),
        highest_percentage=max(percentages) if percentages else None,
        lowest_percentage=min(percentages) if percentages else None,
        distribution=distribution,
    )


def summarize_by_course(records: Iterable) -> list[CourseGradeSummary]:
    grouped = defaultdict(list)
    for record in records:
        grouped[record.course_id].append(record)

    summaries = []
    for course_id, course_records in grouped.items():
        first = course_records[0]
        percentages = [r.percentage for r in course_records if r.percentage is not None]
        average = course_average(percentages) if percentages else None
        summaries.append(
            CourseGradeSummary(
                course_id=course_id,
                course_code=first.course_code,
                course_title=first.course_title,
                assessment_count=len(course_records),
                course_average=average,
                course_grade_label=grade_label_from_percentage(average) if average is not None else None,
            )
        )
    return summaries
