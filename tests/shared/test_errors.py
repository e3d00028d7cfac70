"""Tests for the error hierarchy and display messages."""

from pathlib import Path

import pytest

from vnbrowse.shared.errors import (
    AuthenticationFailure,
    DomainError,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    RejectedRequest,
    SecurityError,
    TransportFailure,
    create_authentication_required_error,
    create_config_error,
    create_permission_error,
    create_validation_error,
    describe_error,
)


class TestErrorContext:
    def test_additional_data_is_coerced(self):
        context = ErrorContext(
            additional_data={"path": Path("a/b"), "code": ErrorCode.CONFIG_ERROR},
        )
        assert context.additional_data == {"path": str(Path("a/b")), "code": "CONFIG_ERROR"}

    def test_rejects_non_primitives(self):
        with pytest.raises(TypeError):
            ErrorContext(additional_data={"items": [1, 2]})

    def test_safe_dict_masks_user_id(self):
        context = ErrorContext(operation="authinfo", user_id="u1")
        assert context.safe_dict() == {"operation": "authinfo", "additional_data": {}}


class TestHierarchy:
    """Transport taxonomy."""

    def test_taxonomy(self):
        assert issubclass(TransportFailure, InfrastructureError)
        assert issubclass(RejectedRequest, InfrastructureError)
        assert issubclass(AuthenticationFailure, SecurityError)

    def test_rejected_request_keeps_status_and_body(self):
        error = RejectedRequest("bad", status_code=422, body="{}")
        assert error.code == ErrorCode.API_REQUEST_REJECTED
        assert error.status_code == 422
        assert error.body == "{}"

    def test_str_and_to_dict(self):
        original = ValueError("root cause")
        error = DomainError(ErrorCode.VALIDATION_ERROR, "nope", original_error=original)
        assert str(error) == "VALIDATION_ERROR: nope"
        assert error.to_dict()["original_error"] == "root cause"


class TestFactories:
    def test_validation_error(self):
        error = create_validation_error("bad id", field="id", operation="lookup")
        assert error.context.additional_data == {"field": "id"}

    def test_config_error(self):
        assert create_config_error("x", config_key="api.token").code == ErrorCode.CONFIG_ERROR

    def test_permission_error(self):
        error = create_permission_error("listwrite", "add_to_list")
        assert error.code == ErrorCode.LIST_PERMISSION_MISSING
        assert "listwrite" in error.message

    def test_authentication_required(self):
        error = create_authentication_required_error("my-list")
        assert isinstance(error, AuthenticationFailure)
        assert error.code == ErrorCode.AUTHENTICATION_REQUIRED


class TestDescribeError:
    """User-facing messages."""

    def test_refused_token(self):
        message = describe_error(AuthenticationFailure("401"))
        assert message == "The API token was rejected. Please sign in again."

    def test_missing_session(self):
        error = create_authentication_required_error()
        assert describe_error(error) == error.message

    def test_rate_limit(self):
        error = TransportFailure(ErrorCode.API_RATE_LIMIT, "429", status_code=429)
        assert "throttling" in describe_error(error)

    def test_rejected(self):
        assert "(400)" in describe_error(RejectedRequest("bad filter", status_code=400))

    def test_other(self):
        assert describe_error(DomainError(ErrorCode.VALIDATION_ERROR, "plain")) == "plain"
