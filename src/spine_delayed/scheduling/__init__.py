"""Delayed schedule: job descriptors, the timestamp index, buckets, and the Scheduler.

Modules
-------
job         JobDescriptor and its canonical stored form
index       ScheduleIndex -- sorted set of timestamps holding jobs
bucket      TimestampBucket -- FIFO list of jobs due at one timestamp
scheduler   Scheduler -- enqueue / pop / remove / inspect
"""

from .bucket import TimestampBucket
from .index import ScheduleIndex
from .job import JobDescriptor, make_job
from .scheduler import Scheduler

__all__ = [
    "JobDescriptor",
    "ScheduleIndex",
    "Scheduler",
    "TimestampBucket",
    "make_job",
]
