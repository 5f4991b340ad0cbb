import pytest

from app.core.exceptions import (
    APIException,
    AuthenticationException,
    ConflictError,
    ErrorCode,
    ForbiddenException,
    NotFoundException,
    format_error_response,
    from_backend_error,
    toast_on_error,
)
from app.db.backend_client import BackendError


class TestFromBackendError:
    """Backend failures map onto API errors and keep the backend's message."""

    @pytest.mark.parametrize(
        "status_code, code, expected_status",
        [
            (None, None, 503),
            (401, None, 401),
            (403, "42501", 403),
            (404, None, 404),
            (406, "PGRST116", 404),
            (409, "23505", 409),
            (400, "23505", 409),
            (429, None, 429),
            (400, None, 400),
            (422, "weak_password", 400),
            (500, None, 502),
        ],
    )
    def test_status_mapping(self, status_code, code, expected_status):
        error = BackendError("Something happened", status_code=status_code, code=code)
        exc = from_backend_error(error)
        assert exc.status_code == expected_status
        assert exc.message == "Something happened"

    def test_specific_exception_types(self):
        assert isinstance(from_backend_error(BackendError("x", 401)), AuthenticationException)
        assert isinstance(from_backend_error(BackendError("x", 403)), ForbiddenException)
        assert isinstance(from_backend_error(BackendError("x", 409)), ConflictError)

    def test_empty_message_falls_back(self):
        exc = from_backend_error(BackendError("", status_code=500))
        assert exc.message == "An error occurred"


class TestToastOnError:
    """Route decorator attaching toast titles to failures."""

    @pytest.mark.asyncio
    async def test_backend_error_is_translated(self):
        @toast_on_error("Error loading projects")
        async def handler():
            raise BackendError("permission denied for table projects", status_code=403)

        with pytest.raises(ForbiddenException) as exc_info:
            await handler()
        assert exc_info.value.toast_title == "Error loading projects"
        assert exc_info.value.message == "permission denied for table projects"

    @pytest.mark.asyncio
    async def test_existing_title_is_kept(self):
        @toast_on_error("Error loading organization")
        async def handler():
            raise APIException("Gone", status_code=404, toast_title="Organization not found")

        with pytest.raises(APIException) as exc_info:
            await handler()
        assert exc_info.value.toast_title == "Organization not found"

    @pytest.mark.asyncio
    async def test_title_added_to_api_exception(self):
        @toast_on_error("Error deleting ticket")
        async def handler():
            raise NotFoundException("Ticket", "42")

        with pytest.raises(NotFoundException) as exc_info:
            await handler()
        assert exc_info.value.toast_title == "Error deleting ticket"
        assert exc_info.value.message == "Ticket not found (ID: 42)"

    @pytest.mark.asyncio
    async def test_success_passes_through(self):
        @toast_on_error("Error")
        async def handler(value):
            return value * 2

        assert await handler(21) == 42
        assert handler.__name__ == "handler"


class TestErrorEnvelope:
    def test_destructive_toast(self):
        body = format_error_response(
            "Invalid login credentials",
            code=ErrorCode.BAD_REQUEST,
            status_code=400,
            toast_title="Sign in failed",
        )
        assert body["error"] is True
        assert body["code"] == "bad_request"
        assert body["toast"] == {
            "title": "Sign in failed",
            "description": "Invalid login credentials",
            "variant": "destructive",
        }

    def test_generic_fallbacks(self):
        body = format_error_response("")
        assert body["toast"]["title"] == "Error"
        assert body["toast"]["description"] == "An error occurred"
