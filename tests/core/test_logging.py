"""Tests for log processors."""

from blogapi.core.context import RequestContext
from blogapi.core.logging import add_context_processor, filter_sensitive_data


class TestFilterSensitiveData:
    """Tests for filter_sensitive_data."""

    def test_masks_tokens(self) -> None:
        event = filter_sensitive_data(None, "info", {"access_token": "abcdefghij"})

        assert event["access_token"] == "ab******ij"

    def test_masks_short_values(self) -> None:
        event = filter_sensitive_data(None, "info", {"password": "abc"})

        assert event["password"] == "***"

    def test_masks_nested_values(self) -> None:
        event = filter_sensitive_data(
            None, "info", {"query": {"token": "abcdefgh", "page": "2"}}
        )

        assert event["query"] == {"token": "ab****gh", "page": "2"}

    def test_leaves_other_keys(self) -> None:
        event = filter_sensitive_data(None, "info", {"post_id": 3, "event": "x"})

        assert event == {"post_id": 3, "event": "x"}


class TestAddContextProcessor:
    """Tests for add_context_processor."""

    def test_adds_request_context(self) -> None:
        with RequestContext(request_id="req-1", user_id="user-1"):
            event = add_context_processor(None, "info", {"event": "x"})

        assert event["request_id"] == "req-1"
        assert event["user_id"] == "user-1"
