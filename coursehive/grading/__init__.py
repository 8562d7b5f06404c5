from .base import GradingService, GradingResult, AttemptGrade
from .objective import ObjectiveGradingService

__all__ = ['GradingService', 'GradingResult', 'AttemptGrade', 'ObjectiveGradingService']
