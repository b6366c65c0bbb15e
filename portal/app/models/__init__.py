from .applicant import Applicant
from .application import Application
from .job import Job
from .status_history import StatusHistoryEntry
from .training_program import TrainingProgram

__all__ = ["Applicant", "Application", "Job", "StatusHistoryEntry", "TrainingProgram"]
