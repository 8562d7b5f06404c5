from . import catalog
from . import attempts
from .catalog import TestChanges
from .attempts import SubmissionOutcome
from .leaderboard import LeaderboardService

__all__ = [
    'catalog', 'attempts', 'TestChanges',
    'SubmissionOutcome', 'LeaderboardService'
]
