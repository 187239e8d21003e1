# src/leadforge/tests/test_errors.py
"""
Unit tests for LeadForge error handling.

Tests cover:
- Error categories and severities on the exception hierarchy
- HTTP status mapping and API error construction
- Categorizing arbitrary exceptions
- User-facing notices from handle_error
- retry_call backoff and retry predicates
- ErrorRecovery fallbacks
"""
import pytest
import requests

from leadforge.errors import (
    NETWORK_ERROR_MESSAGE,
    BackendAPIError,
    BuildCancelledError,
    ErrorCategory,
    ErrorRecovery,
    ErrorSeverity,
    InvalidTransitionError,
    LeadForgeError,
    StorageError,
    TemplateAssemblyError,
    categorize_error,
    category_for_status,
    create_api_error,
    get_error_message,
    handle_error,
    retry_call,
)


class TestExceptionHierarchy:
    """Tests for LeadForgeError and its subclasses."""

    @pytest.mark.unit
    def test_default_category_and_severity(self):
        """Test that a bare error is UNKNOWN with MEDIUM severity."""
        error = LeadForgeError("boom")
        assert error.category == ErrorCategory.UNKNOWN
        assert error.severity == ErrorSeverity.MEDIUM
        assert error.message == "boom"
        assert str(error) == "boom"

    @pytest.mark.unit
    def test_subclass_defaults(self):
        """Test the categories each subclass sets."""
        assert StorageError("x").category == ErrorCategory.CLIENT
        assert TemplateAssemblyError("x").severity == ErrorSeverity.CRITICAL
        assert InvalidTransitionError("x").category == ErrorCategory.VALIDATION
        assert BuildCancelledError().message == "Build cancelled"
        assert BuildCancelledError().severity == ErrorSeverity.LOW

    @pytest.mark.unit
    def test_to_dict(self):
        """Test that to_dict includes name, category and context."""
        error = BackendAPIError("nope", category=ErrorCategory.SERVER, status_code=503, context={"url": "/x"})
        data = error.to_dict()

        assert data["name"] == "BackendAPIError"
        assert data["category"] == "server"
        assert data["severity"] == "high"
        assert data["status_code"] == 503
        assert data["context"] == {"url": "/x"}
        assert "timestamp" in data


class TestStatusMapping:
    """Tests for HTTP status categorization."""

    @pytest.mark.unit
    @pytest.mark.parametrize("status,expected", [
        (400, ErrorCategory.VALIDATION),
        (401, ErrorCategory.AUTHENTICATION),
        (403, ErrorCategory.AUTHORIZATION),
        (429, ErrorCategory.RATE_LIMIT),
        (500, ErrorCategory.SERVER),
        (502, ErrorCategory.SERVER),
        (503, ErrorCategory.SERVER),
        (404, ErrorCategory.UNKNOWN),
    ])
    def test_category_for_status(self, status, expected):
        """Test the status code to category table."""
        assert category_for_status(status) == expected

    @pytest.mark.unit
    def test_create_api_error_uses_payload_message(self):
        """Test that the backend's message is preferred."""
        error = create_api_error(400, {"message": "Bad name"})
        assert error.message == "Bad name"
        assert error.category == ErrorCategory.VALIDATION
        assert error.status_code == 400

    @pytest.mark.unit
    def test_create_api_error_uses_detail(self):
        """Test that FastAPI-style detail strings are used."""
        assert create_api_error(404, {"detail": "Not found"}).message == "Not found"

    @pytest.mark.unit
    def test_create_api_error_generic_message(self):
        """Test the fallback message without a usable body."""
        error = create_api_error(502, None)
        assert error.message == "Request failed with status 502"


class TestCategorizeError:
    """Tests for categorize_error and get_error_message."""

    @pytest.mark.unit
    def test_leadforge_error_keeps_category(self):
        """Test that a LeadForgeError's own category wins."""
        error = LeadForgeError("network down", category=ErrorCategory.SERVER)
        assert categorize_error(error) == ErrorCategory.SERVER

    @pytest.mark.unit
    def test_requests_connection_error_is_network(self):
        """Test that transport failures are network errors."""
        assert categorize_error(requests.ConnectionError("refused")) == ErrorCategory.NETWORK
        assert categorize_error(requests.Timeout("slow")) == ErrorCategory.NETWORK

    @pytest.mark.unit
    @pytest.mark.parametrize("message,expected", [
        ("Failed to fetch", ErrorCategory.NETWORK),
        ("401 Unauthorized", ErrorCategory.AUTHENTICATION),
        ("Forbidden", ErrorCategory.AUTHORIZATION),
        ("rate limit exceeded", ErrorCategory.RATE_LIMIT),
        ("invalid input", ErrorCategory.VALIDATION),
        ("internal server error", ErrorCategory.SERVER),
        ("something odd", ErrorCategory.UNKNOWN),
    ])
    def test_message_matching(self, message, expected):
        """Test categorization of plain exceptions by message."""
        assert categorize_error(RuntimeError(message)) == expected

    @pytest.mark.unit
    def test_network_message_replaced(self):
        """Test that network errors get the friendly message."""
        assert get_error_message(requests.ConnectionError("refused")) == NETWORK_ERROR_MESSAGE


class TestHandleError:
    """Tests for handle_error notices."""

    @pytest.mark.unit
    def test_notice_for_network_error(self):
        """Test the icon and message of a network notice."""
        notice = handle_error(requests.ConnectionError("refused"), silent=True)
        assert notice.category == ErrorCategory.NETWORK
        assert notice.icon == "🌐"
        assert str(notice) == f"🌐 {NETWORK_ERROR_MESSAGE}"

    @pytest.mark.unit
    def test_message_override(self):
        """Test that a caller-supplied message replaces the default."""
        notice = handle_error(ValueError("x"), message="Could not save", silent=True)
        assert notice.message == "Could not save"

    @pytest.mark.unit
    def test_notice_keeps_error_severity(self):
        """Test that LeadForgeError severity is carried into the notice."""
        notice = handle_error(TemplateAssemblyError("render failed"), silent=True)
        assert notice.severity == ErrorSeverity.CRITICAL
        assert str(notice) == "render failed"

    @pytest.mark.unit
    def test_logs_unless_silent(self, caplog):
        """Test that the error is logged with its context."""
        with caplog.at_level("ERROR", logger="leadforge"):
            handle_error(LeadForgeError("logged"), context={"task_id": "1"})
        assert "logged" in caplog.text


class TestRetryCall:
    """Tests for retry_call."""

    @pytest.mark.unit
    def test_returns_first_success(self):
        """Test that a successful call is not retried."""
        calls = []
        result = retry_call(lambda: calls.append(1) or "ok", sleep=lambda s: None)
        assert result == "ok"
        assert len(calls) == 1

    @pytest.mark.unit
    def test_exponential_backoff(self):
        """Test delays double between network failures."""
        delays = []
        attempts = {"n": 0}

        def flaky():
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise requests.ConnectionError("refused")
            return "done"

        result = retry_call(flaky, max_attempts=3, delay=1.0, sleep=delays.append)
        assert result == "done"
        assert delays == [1.0, 2.0]

    @pytest.mark.unit
    def test_linear_backoff(self):
        """Test delays grow linearly with the linear strategy."""
        delays = []

        def always_fails():
            raise requests.ConnectionError("refused")

        with pytest.raises(requests.ConnectionError):
            retry_call(always_fails, max_attempts=3, delay=0.5, backoff="linear", sleep=delays.append)
        assert delays == [0.5, 1.0]

    @pytest.mark.unit
    def test_non_retryable_error_raised_immediately(self):
        """Test that the default predicate only retries network errors."""
        delays = []

        def bad_input():
            raise ValueError("invalid")

        with pytest.raises(ValueError):
            retry_call(bad_input, max_attempts=3, sleep=delays.append)
        assert delays == []

    @pytest.mark.unit
    def test_unknown_backoff_rejected(self):
        """Test that an unknown backoff strategy is an error."""
        with pytest.raises(ValueError):
            retry_call(lambda: None, backoff="fibonacci")


class TestErrorRecovery:
    """Tests for ErrorRecovery strategies."""

    @pytest.mark.unit
    def test_with_default(self):
        """Test that the default is returned when the call fails."""
        def fails():
            raise RuntimeError("down")

        assert ErrorRecovery.with_default(fails, []) == []
        assert ErrorRecovery.with_default(lambda: [1], []) == [1]

    @pytest.mark.unit
    def test_with_cache_serves_last_value(self):
        """Test that the remembered value is served after a failure."""
        cache = {}
        assert ErrorRecovery.with_cache(lambda: "fresh", "k", cache) == "fresh"

        def fails():
            raise RuntimeError("down")

        assert ErrorRecovery.with_cache(fails, "k", cache) == "fresh"

    @pytest.mark.unit
    def test_with_cache_raises_without_value(self):
        """Test that a failure with nothing cached propagates."""
        def fails():
            raise RuntimeError("down")

        with pytest.raises(RuntimeError):
            ErrorRecovery.with_cache(fails, "missing", {})
