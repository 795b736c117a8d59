"""Tests for the error hierarchy and error context."""

from pathlib import Path

import pytest

from cjcatalog.shared.errors import (
    ApplicationError,
    AuthUnavailable,
    CacheError,
    CatalogError,
    ConfigurationError,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    MalformedResponse,
    OperationTimeout,
    RateLimited,
    SecurityError,
    UpstreamError,
    create_config_error,
    create_malformed_response_error,
    create_validation_error,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error_cls", "parents"),
        [
            (RateLimited, (UpstreamError, InfrastructureError)),
            (MalformedResponse, (UpstreamError, InfrastructureError)),
            (CacheError, (InfrastructureError,)),
            (ConfigurationError, (AuthUnavailable, SecurityError)),
            (OperationTimeout, (CatalogError,)),
        ],
    )
    def test_subclassing(self, error_cls, parents):
        for parent in parents:
            assert issubclass(error_cls, parent)
        assert issubclass(error_cls, CatalogError)

    def test_rate_limited_is_not_malformed(self):
        assert not issubclass(RateLimited, MalformedResponse)


class TestErrorContext:
    def test_coerces_primitives_and_drops_none(self):
        context = ErrorContext(additional_data={"path": Path("/tmp/x"), "code": ErrorCode.NETWORK_ERROR, "skip": None})

        assert context.additional_data == {"path": "/tmp/x", "code": "NETWORK_ERROR"}

    def test_rejects_non_primitive(self):
        with pytest.raises(TypeError):
            ErrorContext(additional_data={"obj": object()})

    def test_safe_dict_masks_secrets(self):
        context = ErrorContext(
            operation="refresh",
            endpoint="authentication/refreshAccessToken",
            additional_data={"access_token": "a", "refresh_token": "r", "api_key": "k", "attempt": 2},
        )

        assert context.safe_dict() == {
            "operation": "refresh",
            "endpoint": "authentication/refreshAccessToken",
            "additional_data": {"attempt": 2},
        }


class TestCatalogError:
    def test_str_and_to_dict(self):
        original = ValueError("bad")
        error = UpstreamError(
            ErrorCode.API_REQUEST_FAILED,
            "HTTP 404",
            ErrorContext(operation="get_product", additional_data={"api_key": "k"}),
            original,
            status_code=404,
        )

        assert str(error) == "API_REQUEST_FAILED: HTTP 404"
        assert error.status_code == 404
        assert error.to_dict() == {
            "code": "API_REQUEST_FAILED",
            "message": "HTTP 404",
            "context": {"operation": "get_product", "additional_data": {}},
            "original_error": "bad",
        }

    def test_default_context(self):
        error = CatalogError(ErrorCode.VALIDATION_ERROR, "nope")

        assert error.context.safe_dict() == {"additional_data": {}}
        assert error.to_dict()["original_error"] is None


class TestFactories:
    def test_config_error(self):
        error = create_config_error("no key", config_key="api.api_key", operation="authenticate")

        assert isinstance(error, ConfigurationError)
        assert error.code == ErrorCode.MISSING_CREDENTIALS
        assert error.context.additional_data == {"config_key": "api.api_key"}

    def test_validation_error(self):
        error = create_validation_error("bad page", field="page_num")

        assert isinstance(error, ApplicationError)
        assert error.code == ErrorCode.VALIDATION_ERROR

    def test_malformed_response_error(self):
        error = create_malformed_response_error("no data", endpoint="product/query", status_code=200)

        assert error.code == ErrorCode.API_INVALID_RESPONSE
        assert error.context.endpoint == "product/query"
        assert error.status_code == 200
