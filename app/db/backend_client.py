import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from app.core.config import settings
from app.db.backend_auth import AUTH_PATH, BackendAuth

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"

NO_ROWS_CODE = "PGRST116"  # Single object requested, zero or many rows matched
UNIQUE_VIOLATION_CODE = "23505"  # Postgres unique_violation

SINGLE_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"

Filters = Mapping[str, Any]
Row = Dict[str, Any]


class BackendError(Exception):
    """
    Raised when the backend rejects a request or cannot be reached.
    A missing status code means the request never got a response.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        super().__init__(f"[{status_code or 'no response'}] {message}")


def _format_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote_list_item(value: Any) -> str:
    text = _format_value(value)
    if any(ch in text for ch in ',()" '):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def build_filter_params(filters: Optional[Filters]) -> Dict[str, str]:
    """
    Convert a column -> value mapping into table API query parameters.
    Lists, tuples and sets become ``in`` filters, ``None`` becomes ``is.null``
    and everything else is an equality match.
    :param filters: Column filters.
    :return: Query parameters.
    """
    params: Dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = ",".join(_quote_list_item(v) for v in value)
            params[column] = f"in.({items})"
        else:
            params[column] = f"eq.{_format_value(value)}"
    return params


def _error_from_response(resp: httpx.Response) -> BackendError:
    try:
        body = resp.json()
    except ValueError:
        body = resp.text

    message = None
    code = None
    details = None
    if isinstance(body, dict):
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
        )
        code = body.get("code") or body.get("error_code")
        details = body.get("details") or body.get("hint")
    elif body:
        message = str(body)

    if code is not None:
        code = str(code)
    return BackendError(
        message=message or "An error occurred",
        status_code=resp.status_code,
        code=code,
        details=details,
    )


class BackendClient:
    """
    Async client for the hosted backend.

    Table access goes through the REST endpoints (one table per path, filters
    and ordering in the query string). Authentication lives on ``self.auth``.
    Every request sends the public API key and a bearer token: the user's
    access token when one is given, the API key otherwise.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = (base_url or settings.BACKEND_URL).rstrip("/")
        self._api_key = api_key or settings.BACKEND_ANON_KEY
        self._timeout = timeout or settings.BACKEND_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.auth = BackendAuth(self)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def connect(self) -> None:
        """
        Create the underlying HTTP connection pool.
        """
        _ = self.client
        logger.info(f"Backend client ready for {self._base_url}")

    async def disconnect(self) -> None:
        """
        Close the underlying HTTP connection pool.
        """
        if self._client is not None:
            try:
                await self._client.aclose()
                logger.info("Backend client closed")
            finally:
                self._client = None

    def _headers(
        self,
        access_token: Optional[str] = None,
        extra: Optional[Dict[str, str]] = None,
    ) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Send a request to the backend and raise on failure.
        :param method: HTTP method.
        :param path: Path relative to the backend base URL.
        :param access_token: User access token, anonymous when omitted.
        :param params: Query parameters.
        :param json: JSON body.
        :param headers: Extra headers.
        :return: The successful response.
        """
        try:
            resp = await self.client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(access_token, headers),
            )
        except httpx.HTTPError as e:
            logger.error(f"Backend request {method} {path} failed: {e}")
            raise BackendError("Unable to reach the backend service") from e

        if resp.status_code >= 400:
            error = _error_from_response(resp)
            logger.debug(f"Backend rejected {method} {path}: {error}")
            raise error
        return resp

    # Table API

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> List[Row]:
        """
        Read rows from a table.
        :param table: Table name.
        :param columns: Comma separated column list.
        :param filters: Column filters, see ``build_filter_params``.
        :param order: Ordering such as ``updated_at.desc``.
        :param access_token: User access token.
        :return: Matching rows.
        """
        params = {"select": columns, **build_filter_params(filters)}
        if order:
            params["order"] = order
        resp = await self.request(
            "GET", f"{REST_PATH}/{table}", access_token=access_token, params=params
        )
        return resp.json()

    async def select_one(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Optional[Filters] = None,
        access_token: Optional[str] = None,
    ) -> Optional[Row]:
        """
        Read a single row, or None when no row matches.
        """
        params = {"select": columns, **build_filter_params(filters)}
        try:
            resp = await self.request(
                "GET",
                f"{REST_PATH}/{table}",
                access_token=access_token,
                params=params,
                headers={"Accept": SINGLE_OBJECT_MEDIA_TYPE},
            )
        except BackendError as e:
            if e.code == NO_ROWS_CODE:
                return None
            raise
        return resp.json()

    async def count(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        access_token: Optional[str] = None,
    ) -> int:
        """
        Count matching rows without transferring them.
        """
        params = {"select": "*", **build_filter_params(filters)}
        resp = await self.request(
            "HEAD",
            f"{REST_PATH}/{table}",
            access_token=access_token,
            params=params,
            headers={"Prefer": "count=exact"},
        )
        content_range = resp.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise BackendError(
                "Backend did not report a row count", status_code=resp.status_code
            )
        return int(total)

    async def insert(
        self,
        table: str,
        values: Union[Row, List[Row]],
        *,
        access_token: Optional[str] = None,
    ) -> List[Row]:
        """
        Insert one or more rows and return them as stored.
        """
        resp = await self.request(
            "POST",
            f"{REST_PATH}/{table}",
            access_token=access_token,
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return resp.json()

    async def update(
        self,
        table: str,
        values: Row,
        *,
        filters: Filters,
        access_token: Optional[str] = None,
    ) -> List[Row]:
        """
        Update matching rows and return them as stored.
        """
        if not filters:
            raise ValueError("Refusing to update without filters")
        resp = await self.request(
            "PATCH",
            f"{REST_PATH}/{table}",
            access_token=access_token,
            params=build_filter_params(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return resp.json()

    async def delete(
        self,
        table: str,
        *,
        filters: Filters,
        access_token: Optional[str] = None,
    ) -> List[Row]:
        """
        Delete matching rows and return them.
        """
        if not filters:
            raise ValueError("Refusing to delete without filters")
        resp = await self.request(
            "DELETE",
            f"{REST_PATH}/{table}",
            access_token=access_token,
            params=build_filter_params(filters),
            headers={"Prefer": "return=representation"},
        )
        return resp.json()

    async def ping(self) -> bool:
        """
        Check that the backend answers at all.
        """
        try:
            await self.request("GET", f"{AUTH_PATH}/health")
            return True
        except BackendError as e:
            logger.warning(f"Backend health check failed: {e}")
            return False


backend_client = BackendClient()


async def get_backend() -> BackendClient:
    """
    Dependency returning the shared backend client.
    """
    return backend_client
