"""
Security tests for session identifiers and log hygiene

Session keys are bearer tokens: they must be unpredictable, and they must
never show up in log output.
"""

import logging
import string
from unittest.mock import patch

import pytest

from websession.core.logging_config import StructuredFormatter, TokenMaskingFilter
from websession.sessions.store import SESSION_ID_BYTES, generate_session_id

URLSAFE_ALPHABET = set(string.ascii_letters + string.digits + "-_=")


class TestSessionIdentifiers:
    """Test identifier generation policy"""

    def test_identifier_shape(self):
        session_id = generate_session_id()

        assert len(session_id) == 44
        assert session_id.endswith("=")
        assert set(session_id) <= URLSAFE_ALPHABET

    def test_no_collisions_in_ten_thousand(self):
        """Test entropy: 10,000 identifiers, zero collisions, full alphabet in use"""
        identifiers = [generate_session_id() for _ in range(10_000)]

        assert len(set(identifiers)) == len(identifiers)

        observed = set("".join(identifiers))
        assert observed & set(string.ascii_uppercase)
        assert observed & set(string.ascii_lowercase)
        assert observed & set(string.digits)
        assert observed & set("-_")
        # 32 random bytes fill 43 base64 characters; over 10,000 samples
        # every one of the 64 symbols should appear
        assert len(observed - {"="}) == 64

    def test_no_shared_prefix(self):
        """Test that consecutive identifiers carry no sequential component"""
        first, second = generate_session_id(), generate_session_id()
        assert first[:8] != second[:8]

    def test_uses_secrets_module(self):
        """Test that bytes come from the cryptographic source"""
        with patch("websession.sessions.store.secrets.token_bytes", return_value=b"\x00" * 32) as token_bytes:
            session_id = generate_session_id()

        token_bytes.assert_called_once_with(SESSION_ID_BYTES)
        assert session_id == "A" * 43 + "="

    def test_store_generates_fresh_ids(self, store):
        ids = {store.create_session({}) for _ in range(50)}
        assert len(ids) == 50


class TestLogMasking:
    """Test that session keys never reach log output"""

    def _record(self, msg, *args):
        return logging.LogRecord("websession.test", logging.INFO, __file__, 1, msg, args, None)

    def test_session_key_in_args_is_masked(self):
        session_id = generate_session_id()
        record = self._record("Loaded session %s", session_id)

        TokenMaskingFilter().filter(record)

        assert session_id not in record.getMessage()
        assert "****" in record.getMessage()

    def test_key_assignment_is_masked(self):
        record = self._record("cookie token=abc123")
        TokenMaskingFilter().filter(record)
        assert record.getMessage() == "cookie token=****"

    def test_plain_messages_untouched(self):
        record = self._record("Created session table %s", "websession")
        TokenMaskingFilter().filter(record)
        assert record.getMessage() == "Created session table websession"

    @pytest.mark.parametrize("name", [
        "customer_portal_sessions",
        "customer_portal_sessions_modified_timestamp_update",
    ])
    def test_long_object_names_untouched(self, name):
        """Test that long table and trigger names stay readable"""
        record = self._record("Created session table %s", name)
        TokenMaskingFilter().filter(record)
        assert record.getMessage() == f"Created session table {name}"

    def test_key_next_to_object_name_is_masked(self):
        session_id = generate_session_id()
        record = self._record("Loaded %s from customer_portal_sessions", session_id)

        TokenMaskingFilter().filter(record)

        assert record.getMessage() == "Loaded **** from customer_portal_sessions"

    def test_structured_formatter_includes_event_context(self):
        import json

        record = self._record("Session created")
        record.event_type = "session_created"
        record.table = "websession"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "Session created"
        assert entry["event_type"] == "session_created"
        assert entry["table"] == "websession"
        assert entry["level"] == "INFO"


@pytest.mark.parametrize("structured", [True, False])
def test_logging_config_builds(structured, tmp_path):
    from websession.core.logging_config import build_logging_config

    config = build_logging_config(structured=structured, log_dir=str(tmp_path))

    assert set(config["handlers"]) == {"console", "file"}
    expected = "structured" if structured else "standard"
    assert config["handlers"]["console"]["formatter"] == expected
    assert config["handlers"]["file"]["filters"] == ["token_filter"]
