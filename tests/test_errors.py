"""
Tests for Drawtask Error Classes
"""

import json

import pytest
from drawtask.errors import (
    DrawtaskError, ValidationError, NotFoundError, StorageError,
    ProviderError, UnsupportedProviderError,
    create_provider_error, extract_vendor_message
)


class TestDrawtaskError:
    """Test base error class"""

    def test_basic_error(self):
        err = DrawtaskError("Something went wrong")
        assert err.message == "Something went wrong"
        assert err.details == {}
        assert str(err) == "Something went wrong"

    def test_to_dict(self):
        err = DrawtaskError("Test error", {"foo": "bar"})
        d = err.to_dict()
        assert d["error"] == "DrawtaskError"
        assert d["message"] == "Test error"
        assert d["details"]["foo"] == "bar"


class TestValidationError:
    """Test validation errors with multiple issues"""

    def test_message_only(self):
        err = ValidationError("No API account configured")
        assert str(err) == "No API account configured"
        assert err.details == {}

    def test_multiple_errors(self):
        err = ValidationError("Missing required parameters", ["type is required", "prompt is required"])
        assert len(err.errors) == 2
        assert "prompt is required" in str(err)


class TestNotFoundError:

    def test_details(self):
        err = NotFoundError("Task not found", "task", "TASK-000001")
        assert err.details == {"resource": "task", "id": "TASK-000001"}
        assert str(err) == "Task not found"


class TestStorageError:

    def test_path_in_details(self):
        err = StorageError("Failed to write data file", path="/tmp/data.json")
        assert err.path == "/tmp/data.json"
        assert err.details["path"] == "/tmp/data.json"
        assert isinstance(err, DrawtaskError)


class TestProviderError:
    """Test provider error class"""

    def test_str_with_status(self):
        err = ProviderError(message="quota exceeded", provider="volcengine", status_code=429)
        assert str(err) == "[volcengine] HTTP 429: quota exceeded"

    def test_str_without_status(self):
        err = ProviderError(message="Connection refused", provider="jimeng")
        assert str(err) == "[jimeng] Connection refused"

    def test_is_drawtask_error(self):
        err = ProviderError(message="boom", provider="jimeng")
        assert isinstance(err, DrawtaskError)
        with pytest.raises(DrawtaskError):
            raise err

    def test_response_body_truncation(self):
        err = ProviderError(message="Error", provider="test", response_body="x" * 1000)
        assert len(err.response_body) < 600  # 500 + "..."

    def test_unsupported_provider(self):
        err = UnsupportedProviderError("midjourney")
        assert isinstance(err, ProviderError)
        assert err.provider == "midjourney"
        assert "midjourney" in str(err)


class TestCreateProviderError:
    """Test error factory function"""

    def test_prefers_vendor_message(self):
        body = json.dumps({"error": {"message": "invalid api key", "code": "Unauthorized"}})
        err = create_provider_error("volcengine", 401, body)
        assert err.message == "invalid api key"
        assert err.status_code == 401

    def test_top_level_message(self):
        body = json.dumps({"message": "prompt rejected"})
        assert create_provider_error("jimeng", 400, body).message == "prompt rejected"

    def test_falls_back_to_raw_body(self):
        err = create_provider_error("jimeng", 502, "Bad Gateway")
        assert err.message == "Bad Gateway"

    def test_empty_body(self):
        err = create_provider_error("jimeng", 500, "")
        assert err.message == "HTTP 500"


class TestExtractVendorMessage:

    @pytest.mark.parametrize("body", ["", "not json", "[1, 2]", json.dumps({"error": {}})])
    def test_nothing_usable(self, body):
        assert extract_vendor_message(body) is None

    def test_string_error(self):
        assert extract_vendor_message(json.dumps({"error": "rate limited"})) == "rate limited"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
