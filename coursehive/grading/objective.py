"""
Objective grading for single-answer multiple choice questions.

Grading is a pure function of the question list and the submitted answers:
nothing is read from the database and no clock is consulted.
"""
from typing import Any, Dict, List, Optional

from .base import AttemptGrade, GradingResult, GradingService


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ObjectiveGradingService(GradingService):
    """
    Marks per question:
    - correct selection earns the question's ``marks``
    - a wrong selection costs ``abs(negative_marks)`` when negative marking is set
    - a skipped question (no answer, or ``selected_index`` of ``None``) earns 0

    Selections that are not integers or fall outside the option list are wrong
    answers, never errors.
    """

    def get_service_name(self) -> str:
        return "objective"

    def grade_answer(self, question_index: int, question: dict, selected: Any) -> GradingResult:
        marks = question.get('marks')
        marks = 1 if marks is None else marks
        is_correct = (
            selected is not None
            and _is_index(selected)
            and selected == question.get('correct_index')
        )

        if is_correct:
            marks_obtained = marks
        elif selected is not None and question.get('negative_marks'):
            marks_obtained = -abs(question['negative_marks'])
        else:
            marks_obtained = 0

        return GradingResult(
            question_index=question_index,
            selected_index=selected,
            is_correct=is_correct,
            marks_obtained=marks_obtained,
            max_marks=marks,
        )

    def grade_attempt(self, questions: List[dict], answers: List[dict]) -> AttemptGrade:
        selections = self.collect_selections(answers, len(questions))
        return AttemptGrade(results=[
            self.grade_answer(index, question, selections.get(index))
            for index, question in enumerate(questions)
        ])

    @staticmethod
    def collect_selections(answers: Optional[List[Any]], question_count: int) -> Dict[int, Any]:
        """Map question index -> selection; the first answer for an index wins."""
        selections: Dict[int, Any] = {}
        for answer in answers or []:
            if not isinstance(answer, dict):
                continue
            index = answer.get('question_index')
            if not _is_index(index) or not 0 <= index < question_count:
                continue
            selections.setdefault(index, answer.get('selected_index'))
        return selections
