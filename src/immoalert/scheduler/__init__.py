"""
Ejecución periódica y manual de los jobs de scraping, enriquecimiento y
matching.
"""

from immoalert.scheduler.tasks import BackgroundTasks
from immoalert.scheduler.jobs import JobRunner, JobStatus, TriggerResult, UnknownJobError
from immoalert.scheduler.scheduler import Scheduler

__all__ = [
    "BackgroundTasks",
    "JobRunner",
    "JobStatus",
    "TriggerResult",
    "UnknownJobError",
    "Scheduler",
]
