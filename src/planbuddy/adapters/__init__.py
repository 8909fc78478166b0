"""Adapters - I/O implementations of ports."""

from .gmail import GmailTicketSource
from .json_store import JsonFileRecordStore
from .memory_store import InMemoryRecordStore

__all__ = [
    "GmailTicketSource",
    "JsonFileRecordStore",
    "InMemoryRecordStore",
]
