"""
Tests for the osfetch exception hierarchy.
"""

import pytest

from osfetch.exceptions import (
    ApiError,
    ConfigurationError,
    DecompressionError,
    DeviceNotFoundError,
    DownloadError,
    FleetAccessError,
    NoVersionsFoundError,
    NotLoggedInError,
    OsfetchError,
    PromptCancelledError,
    StreamOpenError,
    TransferError,
)

pytestmark = pytest.mark.unit


class TestOsfetchError:
    """Test base OsfetchError exception."""

    def test_basic_message(self):
        error = OsfetchError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.details is None
        assert error.device_type is None

    def test_message_with_details(self):
        error = OsfetchError("Operation failed", details="Connection timeout")
        assert str(error) == "Operation failed - Connection timeout"

    def test_can_be_raised_and_caught(self):
        with pytest.raises(OsfetchError, match="boom"):
            raise OsfetchError("boom")


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_class",
        [
            ConfigurationError,
            PromptCancelledError,
            ApiError,
            NotLoggedInError,
            DeviceNotFoundError,
            FleetAccessError,
            DownloadError,
            StreamOpenError,
            TransferError,
            DecompressionError,
        ],
    )
    def test_all_errors_are_osfetch_errors(self, error_class):
        assert issubclass(error_class, OsfetchError)

    @pytest.mark.parametrize(
        "error_class", [StreamOpenError, TransferError, DecompressionError]
    )
    def test_stream_errors_are_download_errors(self, error_class):
        assert issubclass(error_class, DownloadError)

    @pytest.mark.parametrize(
        "error_class", [NotLoggedInError, DeviceNotFoundError, FleetAccessError]
    )
    def test_lookup_errors_are_api_errors(self, error_class):
        assert issubclass(error_class, ApiError)


class TestNoVersionsFoundError:
    def test_carries_device_type(self):
        error = NoVersionsFoundError(
            "No OS versions found for device type 'foo'", device_type="foo"
        )
        assert error.device_type == "foo"
        assert error.esr is False
        assert "foo" in str(error)

    def test_esr_flag(self):
        error = NoVersionsFoundError("none", device_type="foo", esr=True)
        assert error.esr is True


def test_prompt_cancelled_default_message():
    assert str(PromptCancelledError()) == "Selection cancelled by user"


def test_api_error_attributes():
    error = ApiError(
        "HTTP error", endpoint="/v6/device", status_code=500, details="oops"
    )
    assert error.endpoint == "/v6/device"
    assert error.status_code == 500
    assert str(error) == "HTTP error - oops"


class TestDownloadError:
    def test_defaults(self):
        error = DownloadError("failed")
        assert error.url is None
        assert error.is_retryable is False
        assert error.device_type is None

    def test_all_parameters(self):
        error = TransferError(
            "Connection reset",
            url="https://api.example.com/download",
            is_retryable=True,
            details="after 10 bytes",
        )
        assert error.url == "https://api.example.com/download"
        assert error.is_retryable is True
        assert str(error) == "Connection reset - after 10 bytes"

    def test_device_type_is_assignable(self):
        error = StreamOpenError("no match")
        error.device_type = "raspberrypi4-64"
        assert error.device_type == "raspberrypi4-64"
