"""Tests for the Gmail ticket source."""

import base64
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httplib2
import pytest
import requests
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from planbuddy.adapters.gmail import GmailTicketSource
from planbuddy.core.errors import AuthError, TransportError


def encode(text):
    return base64.urlsafe_b64encode(text.encode()).decode()


def message(message_id, subject, body=""):
    return {
        "id": message_id,
        "payload": {
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": "Jira <jira@example.com>"},
                {"name": "Date", "value": "Wed, 15 Jan 2025 10:00:00 +0000"},
            ],
            "body": {"data": encode(body)},
        },
    }


def http_error(status):
    return HttpError(MagicMock(status=status, reason="error"), b"{}")


@pytest.fixture
def since():
    return datetime(2025, 1, 8, 10, tzinfo=timezone.utc)


class TestGmailTicketSource:
    def test_token_path(self):
        source = GmailTicketSource(token_file="/tmp/planbuddy/.gmail_token.json")
        assert source._token_path.name == ".gmail_token.json"

    def test_build_query(self, since):
        source = GmailTicketSource(token_file="/tmp/t.json", query="from:jira")
        assert source.build_query(since) == f"after:{int(since.timestamp())} from:jira"

    def test_missing_token(self, tmp_path):
        source = GmailTicketSource(token_file=tmp_path / "missing.json")
        with pytest.raises(AuthError, match="gmail-auth"):
            source._get_credentials()

    def test_authenticate_without_secret(self, tmp_path):
        source = GmailTicketSource(token_file=tmp_path / "t.json")
        assert source.authenticate() is False

    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_discover_candidates(self, mock_build, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.return_value = {
            "messages": [{"id": "m1"}, {"id": "m2"}]
        }
        service.users().messages().get().execute.side_effect = [
            message("m1", "[JIRA] BDC-1 Login broken"),
            message("m2", "Standup notes", "Blocked on BM-22 and BDC-1"),
        ]

        source = GmailTicketSource(token_file="/tmp/t.json")
        candidates = source.discover_candidates(since)

        assert [c.external_ticket_id for c in candidates] == ["BDC-1", "BM-22", "BDC-1"]
        assert candidates[0].sender_display == "Jira"
        assert candidates[0].subject_line == "[JIRA] BDC-1 Login broken"

    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_paginates_up_to_max_results(self, mock_build, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.side_effect = [
            {"messages": [{"id": "m1"}, {"id": "m2"}], "nextPageToken": "p2"},
            {"messages": [{"id": "m3"}], "nextPageToken": "p3"},
        ]
        service.users().messages().get().execute.side_effect = [
            message("m1", "BDC-1"),
            message("m2", "BDC-2"),
            message("m3", "BDC-3"),
        ]

        source = GmailTicketSource(token_file="/tmp/t.json", max_results=3)
        candidates = source.discover_candidates(since)

        assert [c.external_ticket_id for c in candidates] == ["BDC-1", "BDC-2", "BDC-3"]

    @pytest.mark.parametrize("status", [401, 403])
    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_rejected_credentials(self, mock_build, status, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.side_effect = http_error(status)

        with pytest.raises(AuthError):
            GmailTicketSource(token_file="/tmp/t.json").discover_candidates(since)

    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_api_error(self, mock_build, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.side_effect = http_error(500)

        with pytest.raises(TransportError):
            GmailTicketSource(token_file="/tmp/t.json").discover_candidates(since)

    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_network_error(self, mock_build, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.side_effect = ConnectionResetError("reset")

        with pytest.raises(TransportError):
            GmailTicketSource(token_file="/tmp/t.json").discover_candidates(since)

    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_server_not_found(self, mock_build, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.side_effect = httplib2.ServerNotFoundError(
            "Unable to find the server"
        )

        with pytest.raises(TransportError, match="unreachable"):
            GmailTicketSource(token_file="/tmp/t.json").discover_candidates(since)

    @patch("planbuddy.adapters.gmail.GmailTicketSource._build_service")
    def test_refresh_rejected_during_request(self, mock_build, since):
        service = MagicMock()
        mock_build.return_value = service
        service.users().messages().list().execute.side_effect = RefreshError("invalid_grant")

        with pytest.raises(AuthError):
            GmailTicketSource(token_file="/tmp/t.json").discover_candidates(since)


class TestLogout:
    def test_no_token(self, tmp_path):
        source = GmailTicketSource(token_file=tmp_path / "t.json")
        assert source.logout() is False

    @patch("planbuddy.adapters.gmail.requests.post")
    def test_revokes_and_deletes_token(self, mock_post, tmp_path):
        token = tmp_path / "t.json"
        token.write_text(json.dumps({"token": "access", "refresh_token": "refresh"}))
        mock_post.return_value = MagicMock(status_code=200)

        assert GmailTicketSource(token_file=token).logout() is True

        assert not token.exists()
        mock_post.assert_called_once()
        assert mock_post.call_args.kwargs["data"] == {"token": "refresh"}

    @patch("planbuddy.adapters.gmail.requests.post")
    def test_deletes_token_when_revocation_fails(self, mock_post, tmp_path):
        token = tmp_path / "t.json"
        token.write_text(json.dumps({"token": "access"}))
        mock_post.side_effect = requests.ConnectionError("offline")

        assert GmailTicketSource(token_file=token).logout() is True
        assert not token.exists()
