"""
Tests for exception hierarchy and error classification.
"""

import pytest

from merge_streams.errors import (
    CodecError,
    ErrorCategory,
    FetchError,
    FormatError,
    MergeCancelledError,
    MergeError,
    SinkClosedError,
    ValidationError,
    classify_http_status,
)


class TestErrorCategory:
    """Test ErrorCategory enum."""

    def test_all_categories_exist(self):
        """All expected categories are defined."""
        assert ErrorCategory.TRANSIENT.value == "transient"
        assert ErrorCategory.AUTH.value == "auth"
        assert ErrorCategory.PERMANENT.value == "permanent"
        assert ErrorCategory.CANCELLED.value == "cancelled"
        assert ErrorCategory.UNKNOWN.value == "unknown"


class TestMergeError:
    """Test base MergeError class."""

    def test_basic_error(self):
        """Can create basic error with message."""
        err = MergeError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.cause is None
        assert err.context == {}
        assert err.category == ErrorCategory.UNKNOWN
        assert str(err) == "Something went wrong"

    def test_error_with_cause(self):
        """Can wrap another exception."""
        cause = ValueError("Invalid value")
        err = MergeError("Wrapper message", cause=cause)
        assert err.cause is cause
        assert str(err) == "Wrapper message | Caused by: Invalid value"

    def test_error_with_context(self):
        err = MergeError("Error", context={"url": "https://example.com/a"})
        assert err.context["url"] == "https://example.com/a"

    def test_unknown_is_retryable(self):
        assert MergeError("Error").is_retryable is True


class TestSubclassCategories:

    @pytest.mark.parametrize(
        "cls, category",
        [
            (ValidationError, ErrorCategory.PERMANENT),
            (FormatError, ErrorCategory.PERMANENT),
            (CodecError, ErrorCategory.PERMANENT),
            (SinkClosedError, ErrorCategory.PERMANENT),
            (MergeCancelledError, ErrorCategory.CANCELLED),
        ],
    )
    def test_fixed_categories(self, cls, category):
        err = cls("boom")
        assert isinstance(err, MergeError)
        assert err.category == category
        assert err.is_retryable is False


class TestFetchError:

    def test_transport_failure_is_transient(self):
        err = FetchError("[merge_streams_from_urls] Connection error")
        assert err.status_code is None
        assert err.category == ErrorCategory.TRANSIENT
        assert err.is_retryable

    @pytest.mark.parametrize(
        "status, category",
        [
            (401, ErrorCategory.AUTH),
            (403, ErrorCategory.AUTH),
            (404, ErrorCategory.PERMANENT),
            (429, ErrorCategory.TRANSIENT),
            (503, ErrorCategory.TRANSIENT),
        ],
    )
    def test_category_from_status(self, status, category):
        err = FetchError("failed", status_code=status)
        assert err.status_code == status
        assert err.category == category

    def test_explicit_category_wins(self):
        err = FetchError("failed", status_code=500, category=ErrorCategory.PERMANENT)
        assert err.category == ErrorCategory.PERMANENT


class TestClassifyHttpStatus:

    def test_success_is_not_an_error(self):
        assert classify_http_status(200) == ErrorCategory.UNKNOWN

    def test_client_errors_permanent(self):
        assert classify_http_status(400) == ErrorCategory.PERMANENT
        assert classify_http_status(410) == ErrorCategory.PERMANENT

    def test_server_errors_transient(self):
        assert classify_http_status(500) == ErrorCategory.TRANSIENT
        assert classify_http_status(504) == ErrorCategory.TRANSIENT

    def test_redirect_unknown(self):
        assert classify_http_status(302) == ErrorCategory.UNKNOWN
