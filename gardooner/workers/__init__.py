"""
Background workers for the daily garden analysis.

This module contains:
- job_queue: the queue protocol and an in-process implementation
- daily_analysis: trigger -> garden -> zone job handlers
- scheduler: daily trigger thread
"""

__all__ = [
    "AnalysisJobs",
    "AnalysisScheduler",
    "InProcessJobQueue",
    "JobQueue",
    "register_jobs",
]

from gardooner.workers.daily_analysis import AnalysisJobs, register_jobs
from gardooner.workers.job_queue import InProcessJobQueue, JobQueue
from gardooner.workers.scheduler import AnalysisScheduler
