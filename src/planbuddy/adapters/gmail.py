"""Gmail API adapter - discovers ticket references in recent email."""

import json
import logging
from datetime import datetime
from pathlib import Path

import requests

from planbuddy.core.errors import AuthError, TransportError
from planbuddy.core.tickets import DEFAULT_TICKET_PATTERN, TicketCandidate, compile_pattern, parse_message

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
REVOKE_URL = "https://oauth2.googleapis.com/revoke"


class GmailTicketSource:
    """
    Gmail API adapter.

    Implements TicketSource protocol. Handles OAuth credentials, token
    refresh, and message listing. Ticket parsing lives in core.tickets.
    """

    def __init__(
        self,
        token_file: Path | str,
        client_secret_file: str = "",
        ticket_pattern: str = DEFAULT_TICKET_PATTERN,
        max_results: int = 100,
        query: str = "",
    ):
        self._token_path = Path(token_file).expanduser()
        self.client_secret_file = client_secret_file
        self.pattern = compile_pattern(ticket_pattern)
        self.max_results = max_results
        self.query = query

    def _get_credentials(self):
        """Load credentials from the token file, refreshing if needed."""
        from google.auth.exceptions import GoogleAuthError, RefreshError
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        if not self._token_path.exists():
            raise AuthError("No Gmail token. Run 'planbuddy gmail-auth' first.")

        try:
            creds = Credentials.from_authorized_user_file(str(self._token_path), SCOPES)
        except (ValueError, OSError) as e:
            raise AuthError(f"Unreadable Gmail token {self._token_path}: {e}") from e

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except RefreshError as e:
                raise AuthError(f"Gmail token refresh rejected: {e}") from e
            except GoogleAuthError as e:
                raise TransportError(f"Gmail token refresh failed: {e}") from e
            self._save_credentials(creds)
        elif not creds.valid:
            raise AuthError("Gmail token is invalid. Run 'planbuddy gmail-auth' again.")

        return creds

    def _save_credentials(self, creds) -> None:
        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(creds.to_json())
        self._token_path.chmod(0o600)

    def _build_service(self):
        """Build a Gmail API service."""
        from googleapiclient.discovery import build

        creds = self._get_credentials()
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def authenticate(self) -> bool:
        """Run OAuth flow. Returns True on success."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        if not self.client_secret_file:
            logger.error("No client secret file configured")
            return False

        secret_path = Path(self.client_secret_file).expanduser()
        if not secret_path.exists():
            logger.error(f"Client secret file not found: {secret_path}")
            return False

        flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
        creds = flow.run_local_server(port=0)
        self._save_credentials(creds)
        return True

    def build_query(self, since: datetime) -> str:
        """Gmail search query for messages received after ``since``."""
        query = f"after:{int(since.timestamp())}"
        if self.query:
            query = f"{query} {self.query}"
        return query

    def _list_message_ids(self, service, query: str) -> list[str]:
        ids: list[str] = []
        page_token = None
        while len(ids) < self.max_results:
            result = (
                service.users()
                .messages()
                .list(
                    userId="me",
                    q=query,
                    maxResults=self.max_results - len(ids),
                    pageToken=page_token,
                )
                .execute()
            )
            ids.extend(m["id"] for m in result.get("messages", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break
        return ids[: self.max_results]

    def discover_candidates(self, since: datetime) -> list[TicketCandidate]:
        """Ticket candidates from messages received after ``since``."""
        import httplib2
        from google.auth.exceptions import GoogleAuthError, RefreshError
        from googleapiclient.errors import HttpError

        service = self._build_service()
        query = self.build_query(since)

        try:
            message_ids = self._list_message_ids(service, query)
            logger.info(f"Gmail query {query!r} matched {len(message_ids)} messages")

            candidates = []
            for message_id in message_ids:
                message = (
                    service.users().messages().get(userId="me", id=message_id, format="full").execute()
                )
                candidates.extend(parse_message(message, self.pattern))
        except HttpError as e:
            status = e.resp.status if e.resp is not None else None
            if status in (401, 403):
                raise AuthError(f"Gmail rejected credentials ({status})") from e
            raise TransportError(f"Gmail API error ({status}): {e}") from e
        except RefreshError as e:
            raise AuthError(f"Gmail token refresh rejected: {e}") from e
        except GoogleAuthError as e:
            raise TransportError(f"Gmail token refresh failed: {e}") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            raise TransportError(f"Gmail unreachable: {e}") from e

        return candidates

    def logout(self) -> bool:
        """
        Revoke the cached token with Google and delete it.

        The local token is removed even if revocation fails. Returns False
        when there was no token to remove.
        """
        if not self._token_path.exists():
            return False

        try:
            data = json.loads(self._token_path.read_text())
        except (ValueError, OSError) as e:
            logger.warning(f"Unreadable Gmail token {self._token_path}: {e}")
            data = {}
        if not isinstance(data, dict):
            data = {}

        token = data.get("refresh_token") or data.get("token")
        if token:
            try:
                resp = requests.post(REVOKE_URL, data={"token": token}, timeout=10)
                if resp.status_code != 200:
                    logger.warning(f"Gmail token revocation failed: {resp.text}")
            except requests.RequestException as e:
                logger.warning(f"Gmail token revocation failed: {e}")

        self._token_path.unlink(missing_ok=True)
        logger.info(f"Removed Gmail token {self._token_path}")
        return True
