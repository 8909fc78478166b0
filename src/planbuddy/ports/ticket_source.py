"""Ticket source interface."""

from datetime import datetime
from typing import Protocol

from planbuddy.core.tickets import TicketCandidate


class TicketSource(Protocol):
    """Interface for discovering ticket references from any external backend."""

    def discover_candidates(self, since: datetime) -> list[TicketCandidate]:
        """
        Ticket candidates seen after ``since``.

        Raises AuthError or TransportError on failure.
        """
        ...
