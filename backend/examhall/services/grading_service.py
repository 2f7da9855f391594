from dataclasses import dataclass
from typing import Dict, Any, Tuple, List, Optional

from examhall.models.question_model import OBJECTIVE_TYPES, SUBJECTIVE_TYPES


@dataclass
class ScoreSummary:
    score_achieved: float
    is_graded: bool
    requires_manual_grading: bool


def is_objective(question) -> bool:
    return question.question_type in OBJECTIVE_TYPES


def is_subjective(question) -> bool:
    return question.question_type in SUBJECTIVE_TYPES


def grade_objective_answer(question, selected_option_key: Optional[str]) -> Tuple[bool, float]:
    """
    Grade one objective answer by exact comparison with the question's correct option key.

    Returns (is_correct, marks_awarded). Empty or non-matching selections score 0.
    """
    if selected_option_key and selected_option_key == question.correct_option_key:
        return True, float(question.marks or 0)
    return False, 0.0


def aggregate_score(questions: List[Any], answers: Dict[Any, Any]) -> ScoreSummary:
    """
    Sum the marks of an attempt over the evaluated question set.
    - questions: ORM questions (must have id, question_type)
    - answers: mapping question_id -> answer row (must have marks_awarded, graded_at)

    A missing answer counts as zero and leaves the attempt not fully graded.
    A subjective question without a graded answer also flags manual grading.
    """
    total = 0.0
    fully_graded = True
    requires_manual_grading = False

    for q in questions:
        ans = answers.get(q.id)
        if ans is not None and ans.marks_awarded is not None:
            total += float(ans.marks_awarded)

        pending = ans is None or ans.marks_awarded is None or (is_subjective(q) and ans.graded_at is None)
        if pending:
            fully_graded = False
            if is_subjective(q):
                requires_manual_grading = True

    return ScoreSummary(
        score_achieved=total,
        is_graded=fully_graded and not requires_manual_grading,
        requires_manual_grading=requires_manual_grading,
    )
