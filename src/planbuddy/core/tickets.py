"""Ticket discovery parsing - extract ticket ids from email messages.

Pure functions over Gmail API message payloads. No network access.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from .tasks import Quadrant, parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_TICKET_PATTERN = r"\b(?:BDC|BM)-\d+\b"

_SUBJECT_PREFIX = re.compile(r"^(?:(?:re|fwd?)\s*:|\[[^\]]*\])\s*", re.IGNORECASE)
_SENDER_ADDRESS = re.compile(r"<.*>")


@dataclass(frozen=True)
class TicketCandidate:
    """A ticket reference found by an external ticket source."""

    external_ticket_id: str
    subject_line: str
    sender_display: str
    origin_timestamp: datetime | None

    def to_dict(self) -> dict:
        return {
            "externalTicketId": self.external_ticket_id,
            "subjectLine": self.subject_line,
            "senderDisplay": self.sender_display,
            "originTimestamp": self.origin_timestamp.isoformat() if self.origin_timestamp else None,
        }


def compile_pattern(pattern: str | re.Pattern | None) -> re.Pattern:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern or DEFAULT_TICKET_PATTERN)


def extract_tickets(text: str, pattern: str | re.Pattern | None = None) -> list[str]:
    """Unique ticket ids in first-seen order."""
    regex = compile_pattern(pattern)
    seen: dict[str, None] = {}
    for match in regex.finditer(text or ""):
        seen.setdefault(match.group(0), None)
    return list(seen)


def clean_subject(subject: str) -> str:
    """Strip reply/forward markers and leading [tags]."""
    cleaned = (subject or "").strip()
    while True:
        stripped = _SUBJECT_PREFIX.sub("", cleaned, count=1)
        if stripped == cleaned:
            return cleaned
        cleaned = stripped.strip()


def clean_sender(sender: str) -> str:
    """Display name only: drop the <address> part."""
    display = _SENDER_ADDRESS.sub("", sender or "").strip().strip('"').strip()
    return display or (sender or "").strip()


def parse_email_date(value: str) -> datetime | None:
    """Parse an RFC 2822 Date header; None if missing or malformed."""
    if not value:
        return None
    try:
        return parse_timestamp(parsedate_to_datetime(value))
    except (TypeError, ValueError, IndexError):
        logger.warning(f"Unparseable email date: {value!r}")
        return None


def _decode_body(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def extract_body(payload: dict) -> str:
    """Concatenate decoded text of a payload and all of its parts."""
    body = payload.get("body") or {}
    if body.get("data"):
        return _decode_body(body["data"])
    parts = payload.get("parts") or []
    return " ".join(extract_body(part) for part in parts)


def _header(headers: list[dict], name: str) -> str:
    for header in headers:
        if header.get("name", "").lower() == name.lower():
            return header.get("value", "")
    return ""


def parse_message(message: dict, pattern: str | re.Pattern | None = None) -> list[TicketCandidate]:
    """One candidate per unique ticket id found in a Gmail message."""
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    subject = _header(headers, "Subject") or "No Subject"
    sender = _header(headers, "From") or "Unknown"
    sent_at = parse_email_date(_header(headers, "Date"))
    if sent_at is None and message.get("internalDate"):
        sent_at = datetime.fromtimestamp(int(message["internalDate"]) / 1000, tz=timezone.utc)

    text = f"{subject} {extract_body(payload)}"
    return [
        TicketCandidate(
            external_ticket_id=ticket,
            subject_line=subject,
            sender_display=clean_sender(sender),
            origin_timestamp=sent_at,
        )
        for ticket in extract_tickets(text, pattern)
    ]


def unique_candidates(candidates: list[TicketCandidate]) -> list[TicketCandidate]:
    """Keep the first candidate seen for each ticket id."""
    seen: set[str] = set()
    unique = []
    for candidate in candidates:
        if candidate.external_ticket_id in seen:
            continue
        seen.add(candidate.external_ticket_id)
        unique.append(candidate)
    return unique


def candidate_to_task_fields(candidate: TicketCandidate) -> dict:
    """Keyword arguments for creating an uncategorized task from a candidate."""
    title = clean_subject(candidate.subject_line) or candidate.external_ticket_id
    return {
        "title": title,
        "origin": "jira",
        "source": "jira",
        "external_ticket_id": candidate.external_ticket_id,
        "quadrant": Quadrant.UNCATEGORIZED,
        "sync_origin_timestamp": candidate.origin_timestamp,
    }
