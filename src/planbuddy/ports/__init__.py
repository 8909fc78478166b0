"""Ports - interfaces/protocols for external dependencies."""

from .record_store import RecordStore
from .ticket_source import TicketSource

__all__ = [
    "RecordStore",
    "TicketSource",
]
