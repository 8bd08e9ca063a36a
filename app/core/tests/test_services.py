"""
Tests for ServiceResult and BaseService.

Verifies:
- success/failure construction and truthiness
- Error body rendering used by chat views
- from_exception keeps application error codes
- BaseService logger naming, required-field validation and exception handling
"""

import logging

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult


class ExampleService(BaseService):
    pass


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"chat_id": "abc"})

        assert result
        assert result.data == {"chat_id": "abc"}
        assert result.error is None

    def test_failure_is_falsy(self):
        result = ServiceResult.failure("Chat not found", error_code="CHAT_NOT_FOUND")

        assert not result
        assert result.data is None

    def test_failure_response_body(self):
        result = ServiceResult.failure(
            "Required fields missing",
            error_code="VALIDATION_ERROR",
            errors={"content": ["This field is required."]},
        )

        assert result.to_response() == {
            "error": "Required fields missing",
            "error_code": "VALIDATION_ERROR",
            "errors": {"content": ["This field is required."]},
        }

    def test_failure_without_code(self):
        assert ServiceResult.failure("boom").to_response() == {"error": "boom"}

    def test_from_application_error_keeps_code(self):
        result = ServiceResult.from_exception(
            NotFoundError("Message not found", error_code="MESSAGE_NOT_FOUND")
        )

        assert result.error == "Message not found"
        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_from_plain_exception_uses_class_name(self):
        result = ServiceResult.from_exception(KeyError("chat"))

        assert result.error_code == "KEYERROR"

    def test_map_transforms_success_only(self):
        assert ServiceResult.success(2).map(lambda n: n * 10).data == 20

        failed = ServiceResult.failure("nope")
        assert failed.map(lambda n: n * 10) is failed


class TestBaseService:
    def test_logger_name(self):
        assert ExampleService.get_logger().name == f"{__name__}.ExampleService"

    def test_validate_required(self):
        missing = ExampleService.validate_required(content="  ", chat="x", reply=None)

        assert missing.error_code == "VALIDATION_ERROR"
        assert set(missing.errors) == {"content", "reply"}

    def test_validate_required_passes(self):
        assert ExampleService.validate_required(content="hello") is None

    def test_handle_exception_logs(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = ExampleService.handle_exception(ValueError("bad"), context="Sending")

        assert not result
        assert result.error_code == "VALUEERROR"
        assert "Sending: bad" in caplog.text

    def test_atomic_rolls_back(self, db):
        from authentication.models import User
        from authentication.tests.factories import UserFactory

        try:
            with ExampleService.atomic():
                UserFactory(username="rollback")
                raise RuntimeError("abort")
        except RuntimeError:
            pass

        assert not User.objects.filter(username="rollback").exists()
