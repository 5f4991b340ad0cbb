import json
import logging
from typing import Any, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from app.core.sanitizers import FormSanitizer, TextSanitizer

logger = logging.getLogger(__name__)

SANITIZED_METHODS = {"POST", "PUT", "PATCH"}
DEFAULT_SKIP_PATHS = ["/docs", "/redoc", "/openapi.json", "/v1/health"]


class SanitizationMiddleware(BaseHTTPMiddleware):
    """
    Cleans the JSON body of form submissions (names, titles, descriptions,
    e-mails, URLs) before FastAPI validates it.
    """

    def __init__(
        self,
        app: ASGIApp,
        enabled: bool = True,
        skip_paths: Optional[List[str]] = None,
        log_sanitization: bool = False,
    ):
        """
        :param app: ASGI application
        :param enabled: Turn sanitization off entirely
        :param skip_paths: Path prefixes left untouched
        :param log_sanitization: Log requests whose body was changed
        """
        super().__init__(app)
        self.enabled = enabled
        self.skip_paths = skip_paths or DEFAULT_SKIP_PATHS
        self.log_sanitization = log_sanitization

    def _should_sanitize(self, request: Request) -> bool:
        if not self.enabled or request.method not in SANITIZED_METHODS:
            return False
        if "application/json" not in request.headers.get("content-type", "").lower():
            return False
        return not any(request.url.path.startswith(path) for path in self.skip_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if self._should_sanitize(request):
            await self._sanitize_request(request)
        return await call_next(request)

    async def _sanitize_request(self, request: Request) -> None:
        """
        Replace the cached body of the request with its sanitized version.
        Bodies that are not valid JSON are left for request validation to reject.
        """
        body = await request.body()
        if not body:
            return

        try:
            data = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            if self.log_sanitization:
                logger.warning(f"Could not parse request body for sanitization: {e}")
            return

        sanitized = self._sanitize_data(data)
        request._body = json.dumps(sanitized).encode("utf-8")

        if self.log_sanitization and data != sanitized:
            logger.info(f"Sanitized form data for {request.method} {request.url.path}")

    def _sanitize_data(self, data: Any) -> Any:
        if isinstance(data, dict):
            return FormSanitizer.sanitize_form(data)
        if isinstance(data, list):
            return [self._sanitize_data(item) for item in data]
        if isinstance(data, str):
            return TextSanitizer.sanitize_basic_text(data)
        return data
