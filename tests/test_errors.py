"""Tests for the error taxonomy and helpers."""

import json

import pytest

from kilocheck.errors import (
    API_RETRY_CODES,
    ERROR_MESSAGES,
    AppError,
    ErrorCategory,
    ErrorCode,
    classify,
    create_error,
    format_error_for_logging,
    get_error_info,
    is_retryable,
    sanitize_error_message,
)


class TestClassify:
    @pytest.mark.parametrize(
        "code",
        [
            ErrorCode.INVALID_IMAGE_FORMAT,
            ErrorCode.IMAGE_TOO_LARGE,
            ErrorCode.NO_PRICE_DETECTED,
            ErrorCode.NO_WEIGHT_DETECTED,
            ErrorCode.NO_PRODUCT_DETECTED,
        ],
    )
    def test_user_errors(self, code):
        assert classify(code) is ErrorCategory.USER_ERROR

    def test_system_errors(self):
        assert classify(ErrorCode.API_RATE_LIMIT) is ErrorCategory.SYSTEM_ERROR
        assert classify(ErrorCode.NETWORK_ERROR) is ErrorCategory.SYSTEM_ERROR

    def test_api_error_is_critical(self):
        assert classify(ErrorCode.API_ERROR) is ErrorCategory.CRITICAL_ERROR

    def test_every_code_has_messages(self):
        for code in ErrorCode:
            info = ERROR_MESSAGES[code]
            assert info.title
            assert info.message
            assert info.suggestions


class TestCreateError:
    def test_defaults_from_table(self):
        error = create_error(ErrorCode.NO_PRICE_DETECTED)
        assert isinstance(error, AppError)
        assert isinstance(error, Exception)
        assert error.code is ErrorCode.NO_PRICE_DETECTED
        assert error.message == ERROR_MESSAGES[ErrorCode.NO_PRICE_DETECTED].message
        assert error.user_message.startswith("No pudimos encontrar el precio")
        assert len(error.suggestions) == 4
        assert error.recoverable is True

    def test_custom_message_keeps_user_message(self):
        error = create_error(ErrorCode.NETWORK_ERROR, "connection reset")
        assert error.message == "connection reset"
        assert str(error) == "connection reset"
        assert error.user_message == ERROR_MESSAGES[ErrorCode.NETWORK_ERROR].message

    def test_custom_suggestions(self):
        error = create_error(ErrorCode.NO_WEIGHT_DETECTED, suggestions=["Prueba otra vez"])
        assert error.suggestions == ["Prueba otra vez"]

    def test_empty_suggestions_use_defaults(self):
        error = create_error(ErrorCode.IMAGE_TOO_LARGE, suggestions=[])
        assert error.suggestions == list(
            ERROR_MESSAGES[ErrorCode.IMAGE_TOO_LARGE].suggestions
        )

    def test_api_error_not_recoverable(self):
        assert create_error(ErrorCode.API_ERROR).recoverable is False

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_recoverable_matches_category(self, code):
        error = create_error(code)
        assert error.recoverable == (error.category is not ErrorCategory.CRITICAL_ERROR)

    def test_to_dict(self):
        data = create_error(ErrorCode.API_RATE_LIMIT, "429").to_dict()
        assert data["code"] == "API_RATE_LIMIT"
        assert data["message"] == "429"
        assert data["recoverable"] is True
        assert isinstance(data["suggestions"], list)

    def test_can_be_raised(self):
        with pytest.raises(AppError) as exc_info:
            raise create_error(ErrorCode.INVALID_IMAGE_FORMAT)
        assert exc_info.value.code is ErrorCode.INVALID_IMAGE_FORMAT


class TestIsRetryable:
    def test_canonical_set(self):
        assert API_RETRY_CODES == {
            ErrorCode.NETWORK_ERROR,
            ErrorCode.API_RATE_LIMIT,
            ErrorCode.API_ERROR,
        }

    def test_retryable_codes(self):
        for code in API_RETRY_CODES:
            assert is_retryable(create_error(code))

    def test_user_errors_not_retryable(self):
        assert not is_retryable(create_error(ErrorCode.INVALID_IMAGE_FORMAT))
        assert not is_retryable(create_error(ErrorCode.NO_PRICE_DETECTED))

    def test_plain_exception_not_retryable(self):
        assert not is_retryable(RuntimeError("boom"))

    def test_custom_set(self):
        error = create_error(ErrorCode.API_ERROR)
        assert not is_retryable(error, {ErrorCode.NETWORK_ERROR})


class TestGetErrorInfo:
    def test_info(self):
        info = get_error_info(ErrorCode.NETWORK_ERROR)
        assert info["title"] == "Error de conexión"
        assert info["category"] is ErrorCategory.SYSTEM_ERROR
        assert "Verifica tu conexión a internet" in info["suggestions"]


class TestFormatErrorForLogging:
    def test_json_payload(self):
        error = create_error(ErrorCode.API_ERROR, "bad response")
        payload = json.loads(format_error_for_logging(error, {"request": "abc"}))
        assert payload["code"] == "API_ERROR"
        assert payload["category"] == "critical_error"
        assert payload["message"] == "bad response"
        assert payload["recoverable"] is False
        assert payload["context"] == {"request": "abc"}
        assert "timestamp" in payload

    def test_empty_context(self):
        error = create_error(ErrorCode.NETWORK_ERROR)
        assert json.loads(format_error_for_logging(error))["context"] == {}


class TestSanitizeErrorMessage:
    def test_redacts_key_like_tokens(self):
        text = sanitize_error_message("invalid key AIzaSyA1234567890abcdefghij used")
        assert "AIzaSy" not in text
        assert "[REDACTED]" in text

    def test_redacts_paths(self):
        text = sanitize_error_message("cannot open /home/user/labels/photo.jpg now")
        assert text == "cannot open [PATH_REDACTED] now"

    def test_keeps_short_words(self):
        assert sanitize_error_message("timeout after 30s") == "timeout after 30s"
