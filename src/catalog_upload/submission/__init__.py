"""Submission of the finished product draft to the record store."""

from catalog_upload.submission.record_store import RecordStore, RecordStoreClient
from catalog_upload.submission.gate import GateState, SubmissionGate

__all__ = [
    "RecordStore",
    "RecordStoreClient",
    "GateState",
    "SubmissionGate",
]
