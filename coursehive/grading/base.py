from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class GradingResult:
    question_index: int
    selected_index: Optional[int]
    is_correct: bool
    marks_obtained: int
    max_marks: int

    def as_answer(self) -> dict:
        return {
            'question_index': self.question_index,
            'selected_index': self.selected_index,
            'is_correct': self.is_correct,
            'marks_obtained': self.marks_obtained,
        }


@dataclass
class AttemptGrade:
    results: List[GradingResult] = field(default_factory=list)

    @property
    def raw_score(self) -> int:
        return sum(r.marks_obtained for r in self.results)

    @property
    def score(self) -> int:
        # Individual penalties stay negative; only the total is floored.
        return max(0, self.raw_score)

    @property
    def max_score(self) -> int:
        return sum(r.max_marks for r in self.results)

    @property
    def answers(self) -> List[dict]:
        return [r.as_answer() for r in self.results]


class GradingService(ABC):
    @abstractmethod
    def grade_answer(self, question_index: int, question: dict, selected: Any) -> GradingResult:
        pass

    @abstractmethod
    def grade_attempt(self, questions: List[dict], answers: List[dict]) -> AttemptGrade:
        pass

    @abstractmethod
    def get_service_name(self) -> str:
        pass
