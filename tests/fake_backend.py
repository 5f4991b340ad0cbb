"""
In-memory stand-in for the hosted backend, served through httpx.MockTransport.

Implements the parts of the table API and the auth endpoints the application
uses: eq/in/is filters, ordering, single-object reads, exact counts,
returning writes, unique constraints and the cascades of the real schema.
"""

import json
import secrets
import uuid
from datetime import datetime, timedelta, UTC
from typing import Any, Dict, List, Optional, Tuple

import httpx
from jose import JWTError, jwt

JWT_SECRET = "test-backend-jwt-secret"
ANON_KEY = "test-anon-key"

UNIQUE_KEYS = {
    "organization_members": ("organization_id", "user_id"),
    "project_members": ("project_id", "user_id"),
    "profiles": ("email",),
}

# parent table -> (child table, foreign key)
CASCADES = {
    "organizations": [
        ("organization_members", "organization_id"),
        ("user_permissions", "organization_id"),
        ("projects", "organization_id"),
    ],
    "projects": [("project_members", "project_id"), ("tickets", "project_id")],
}


def _json(status_code: int, body: Any, headers: Optional[Dict[str, str]] = None):
    return httpx.Response(status_code, json=body, headers=headers)


def _parse_in_list(value: str) -> List[str]:
    items, current, quoted, escaped = [], "", False, False
    for ch in value:
        if escaped:
            current += ch
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            quoted = not quoted
        elif ch == "," and not quoted:
            items.append(current)
            current = ""
        else:
            current += ch
    items.append(current)
    return items


class FakeBackend:
    """Tables, accounts and sessions of a fake backend project."""

    def __init__(self, confirm_email: bool = False, expires_in: int = 3600):
        self.confirm_email = confirm_email
        self.expires_in = expires_in
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.passwords: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.requests: List[httpx.Request] = []
        self.available = True
        self._clock = datetime.now(UTC) - timedelta(days=1)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # Helpers for tests

    def now(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def add_row(self, table: str, **values) -> Dict[str, Any]:
        stamp = self.now()
        row = {"id": str(uuid.uuid4()), "created_at": stamp, "updated_at": stamp}
        row.update({k: str(v) if isinstance(v, uuid.UUID) else v for k, v in values.items()})
        self.rows(table).append(row)
        return row

    def create_user(self, email: str, password: str, name: Optional[str] = None) -> Dict[str, Any]:
        """Register an account directly, including its profile row."""
        stamp = self.now()
        user = {
            "id": str(uuid.uuid4()),
            "email": email,
            "created_at": stamp,
            "email_confirmed_at": None if self.confirm_email else stamp,
            "user_metadata": {"name": name} if name else {},
        }
        self.users[user["id"]] = user
        self.passwords[email] = password
        self.add_row("profiles", id=user["id"], email=email, name=name, avatar_url=None)
        return user

    def issue_session(self, user_id: str, expires_in: Optional[int] = None) -> Dict[str, Any]:
        expires_in = self.expires_in if expires_in is None else expires_in
        expires_at = int((datetime.now(UTC) + timedelta(seconds=expires_in)).timestamp())
        user = self.users[user_id]
        access_token = jwt.encode(
            {
                "sub": user_id,
                "email": user["email"],
                "role": "authenticated",
                "exp": expires_at,
                "jti": secrets.token_hex(8),
            },
            JWT_SECRET,
            algorithm="HS256",
        )
        refresh_token = secrets.token_urlsafe(16)
        self.refresh_tokens[refresh_token] = user_id
        return {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": expires_in,
            "expires_at": expires_at,
            "refresh_token": refresh_token,
            "user": user,
        }

    def _user_from_request(self, request: httpx.Request) -> Optional[Dict[str, Any]]:
        auth = request.headers.get("authorization", "")
        token = auth.removeprefix("Bearer ").strip()
        if not token or token == ANON_KEY:
            return None
        try:
            claims = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
        except JWTError:
            return None
        return self.users.get(claims["sub"])

    # Transport

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.available:
            raise httpx.ConnectError("Connection refused", request=request)
        if request.headers.get("apikey") != ANON_KEY:
            return _json(401, {"message": "Invalid API key"})

        path = request.url.path
        if path.startswith("/auth/v1/"):
            return self._handle_auth(request, path.removeprefix("/auth/v1/"))
        if path.startswith("/rest/v1/"):
            return self._handle_table(request, path.removeprefix("/rest/v1/"))
        return _json(404, {"message": "Not found"})

    # Auth endpoints

    def _handle_auth(self, request: httpx.Request, endpoint: str) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}

        if endpoint == "health":
            return _json(200, {"name": "fake-auth", "version": "test"})

        if endpoint == "signup":
            email = body["email"]
            if email in self.passwords:
                return _json(
                    422,
                    {"code": 422, "error_code": "user_already_exists", "msg": "User already registered"},
                )
            if len(body.get("password", "")) < 6:
                return _json(
                    422,
                    {"code": 422, "error_code": "weak_password", "msg": "Password should be at least 6 characters."},
                )
            user = self.create_user(email, body["password"], (body.get("data") or {}).get("name"))
            if self.confirm_email:
                return _json(200, user)
            return _json(200, self.issue_session(user["id"]))

        if endpoint == "token":
            grant_type = request.url.params.get("grant_type")
            if grant_type == "password":
                email = body.get("email")
                if self.passwords.get(email) != body.get("password"):
                    return _json(
                        400,
                        {"error": "invalid_grant", "error_description": "Invalid login credentials"},
                    )
                user = next(u for u in self.users.values() if u["email"] == email)
                if not user["email_confirmed_at"]:
                    return _json(
                        400,
                        {"error": "invalid_grant", "error_description": "Email not confirmed"},
                    )
                return _json(200, self.issue_session(user["id"]))
            if grant_type == "refresh_token":
                user_id = self.refresh_tokens.pop(body.get("refresh_token"), None)
                if user_id is None:
                    return _json(
                        400,
                        {"error": "invalid_grant", "error_description": "Invalid Refresh Token: Refresh Token Not Found"},
                    )
                return _json(200, self.issue_session(user_id))
            return _json(400, {"error": "unsupported_grant_type"})

        user = self._user_from_request(request)
        if user is None:
            return _json(401, {"code": 401, "msg": "Invalid JWT"})

        if endpoint == "logout":
            for token, owner in list(self.refresh_tokens.items()):
                if owner == user["id"]:
                    del self.refresh_tokens[token]
            return httpx.Response(204)

        if endpoint == "user" and request.method == "GET":
            return _json(200, user)

        if endpoint == "user" and request.method == "PUT":
            user["user_metadata"].update(body.get("data") or {})
            return _json(200, user)

        return _json(404, {"message": "Not found"})

    # Table API

    def _filters(self, request: httpx.Request) -> List[Tuple[str, str, Any]]:
        filters = []
        for column, value in request.url.params.multi_items():
            if column in ("select", "order"):
                continue
            operator, _, operand = value.partition(".")
            if operator == "in":
                filters.append((column, "in", _parse_in_list(operand[1:-1])))
            else:
                filters.append((column, operator, operand))
        return filters

    @staticmethod
    def _matches(row: Dict[str, Any], filters: List[Tuple[str, str, Any]]) -> bool:
        for column, operator, operand in filters:
            value = row.get(column)
            if operator == "eq" and (value is None or str(value) != operand):
                return False
            if operator == "in" and (value is None or str(value) not in operand):
                return False
            if operator == "is" and operand == "null" and value is not None:
                return False
        return True

    def _violates_unique(self, table: str, row: Dict[str, Any], ignore_id: Optional[str] = None) -> bool:
        columns = UNIQUE_KEYS.get(table)
        if not columns:
            return False
        key = tuple(row.get(c) for c in columns)
        return any(
            tuple(other.get(c) for c in columns) == key
            for other in self.rows(table)
            if other["id"] != ignore_id
        )

    def _cascade(self, table: str, deleted: List[Dict[str, Any]]) -> None:
        for child, column in CASCADES.get(table, []):
            ids = {row["id"] for row in deleted}
            removed = [row for row in self.rows(child) if row.get(column) in ids]
            self.tables[child] = [row for row in self.rows(child) if row.get(column) not in ids]
            self._cascade(child, removed)

    def _handle_table(self, request: httpx.Request, table: str) -> httpx.Response:
        if self._user_from_request(request) is None:
            return _json(401, {"code": "PGRST301", "message": "JWT expired"})

        filters = self._filters(request)
        matching = [row for row in self.rows(table) if self._matches(row, filters)]

        if request.method == "HEAD":
            total = len(matching)
            content_range = f"0-{total - 1}/{total}" if total else "*/0"
            return httpx.Response(200, headers={"content-range": content_range})

        if request.method == "GET":
            order = request.url.params.get("order")
            if order:
                column, _, direction = order.partition(".")
                matching.sort(key=lambda row: str(row.get(column) or ""), reverse=direction == "desc")
            if "vnd.pgrst.object" in request.headers.get("accept", ""):
                if len(matching) != 1:
                    return _json(
                        406,
                        {
                            "code": "PGRST116",
                            "message": "JSON object requested, multiple (or no) rows returned",
                            "details": f"The result contains {len(matching)} rows",
                        },
                    )
                return _json(200, matching[0])
            return _json(200, matching)

        if request.method == "POST":
            body = json.loads(request.content)
            created = []
            for values in body if isinstance(body, list) else [body]:
                stamp = self.now()
                row = {"id": str(uuid.uuid4()), "created_at": stamp, "updated_at": stamp}
                if table.endswith("_members"):
                    row["joined_at"] = stamp
                row.update(values)
                if self._violates_unique(table, row):
                    return _json(
                        409,
                        {
                            "code": "23505",
                            "message": f'duplicate key value violates unique constraint "{table}_key"',
                        },
                    )
                created.append(row)
            self.rows(table).extend(created)
            return _json(201, created)

        if request.method == "PATCH":
            changes = json.loads(request.content)
            for row in matching:
                candidate = {**row, **changes}
                if self._violates_unique(table, candidate, ignore_id=row["id"]):
                    return _json(409, {"code": "23505", "message": "duplicate key value"})
            for row in matching:
                row.update(changes)
                row["updated_at"] = self.now()
            return _json(200, matching)

        if request.method == "DELETE":
            ids = {row["id"] for row in matching}
            self.tables[table] = [row for row in self.rows(table) if row["id"] not in ids]
            self._cascade(table, matching)
            return _json(200, matching)

        return _json(405, {"message": "Method not allowed"})
