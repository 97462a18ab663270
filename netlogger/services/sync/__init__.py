"""
Sync Service

Chunked drain of the local store to the remote sink, run by the job runner.
"""

from .jobs import JobRunner
from .network import is_network_available
from .remote import RemoteSink, SupabaseSink
from .worker import JobResult, SyncWorker

__all__ = [
    "JobRunner",
    "is_network_available",
    "RemoteSink",
    "SupabaseSink",
    "JobResult",
    "SyncWorker",
]
