"""
REST transport for the Cloud Spanner database admin API (v1).
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import google.auth
import requests
from google.auth.transport.requests import AuthorizedSession

import transport as rpc
from errors import ErrorCode, ServiceError, code_from_status

logger = logging.getLogger(__name__)

API_BASE = "https://spanner.googleapis.com/v1"

_PATH_FIELD_RE = re.compile(r"\{([a-zA-Z_.]+)\}")


@dataclass(frozen=True)
class RestMethod:
    """HTTP binding of an admin RPC."""

    verb: str
    path: str  # template, e.g. "{parent}/backups"
    body: Optional[str] = None  # request key sent as JSON body, "*" for all non-path keys
    items_key: Optional[str] = None  # list field in paged responses
    idempotent: bool = True  # false when a resent request could start a second operation


REST_METHODS: Dict[str, RestMethod] = {
    rpc.CREATE_DATABASE: RestMethod(
        "POST", "{parent}/databases", body="*", idempotent=False
    ),
    rpc.GET_DATABASE: RestMethod("GET", "{name}"),
    rpc.LIST_DATABASES: RestMethod("GET", "{parent}/databases", items_key="databases"),
    rpc.DROP_DATABASE: RestMethod("DELETE", "{database}"),
    rpc.UPDATE_DATABASE_DDL: RestMethod("PATCH", "{database}/ddl", body="*"),
    rpc.GET_DATABASE_DDL: RestMethod("GET", "{database}/ddl"),
    rpc.RESTORE_DATABASE: RestMethod(
        "POST", "{parent}/databases:restore", body="*", idempotent=False
    ),
    rpc.CREATE_BACKUP: RestMethod(
        "POST", "{parent}/backups", body="backup", idempotent=False
    ),
    rpc.GET_BACKUP: RestMethod("GET", "{name}"),
    rpc.UPDATE_BACKUP: RestMethod("PATCH", "{backup.name}", body="backup"),
    rpc.DELETE_BACKUP: RestMethod("DELETE", "{name}"),
    rpc.LIST_BACKUPS: RestMethod("GET", "{parent}/backups", items_key="backups"),
    rpc.LIST_DATABASE_OPERATIONS: RestMethod(
        "GET", "{parent}/databaseOperations", items_key="operations"
    ),
    rpc.LIST_BACKUP_OPERATIONS: RestMethod(
        "GET", "{parent}/backupOperations", items_key="operations"
    ),
    rpc.GET_OPERATION: RestMethod("GET", "{name}"),
    rpc.CANCEL_OPERATION: RestMethod("POST", "{name}:cancel", body="*"),
}


def _lookup(request: Dict, dotted: str):
    value = request
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            raise ServiceError(
                f"request is missing path field {dotted!r}", ErrorCode.INVALID_ARGUMENT
            )
        value = value[part]
    return value


class SpannerAdminRestClient:
    """REST client implementing the admin transport contract."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
    # Statuses returned before the server acts on a request
    UNPROCESSED_STATUS_CODES = {429, 503}

    def __init__(
        self,
        endpoint: str = API_BASE,
        timeout_s: int = 60,
        max_retries: int = 5,
        base_delay: float = 1.0,
        credentials=None,
    ):
        """
        Initialize the Spanner admin REST client.

        Args:
            endpoint: API base URL
            timeout_s: Default request timeout in seconds
            max_retries: Maximum number of retries for transient errors
            base_delay: Base delay for exponential backoff
            credentials: Optional credentials; application default otherwise
        """
        self.endpoint = endpoint.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.base_delay = base_delay

        if credentials is None:
            credentials, _ = google.auth.default(
                scopes=["https://www.googleapis.com/auth/cloud-platform"]
            )
        self.session = AuthorizedSession(credentials)

    def _url(self, path: str) -> str:
        """Construct full API URL from path."""
        return f"{self.endpoint}/{path.lstrip('/')}"

    def _build(self, method: str, request: Dict) -> Tuple[RestMethod, str, Dict, Optional[Dict]]:
        """Resolve an RPC into (binding, url, query params, json body)."""
        try:
            binding = REST_METHODS[method]
        except KeyError:
            raise ValueError(f"Unsupported method: {method}") from None

        path_fields = _PATH_FIELD_RE.findall(binding.path)
        path = binding.path
        for dotted in path_fields:
            path = path.replace("{" + dotted + "}", str(_lookup(request, dotted)))

        consumed = {f.split(".")[0] for f in path_fields if "." not in f}
        rest = {k: v for k, v in request.items() if k not in consumed}

        body: Optional[Dict] = None
        params: Dict = {}
        if binding.body == "*":
            body = rest
        elif binding.body:
            body = rest.pop(binding.body, {})
            params = rest
        else:
            params = rest
        return binding, self._url(path), params, body

    def _request_with_retry(
        self, method: str, url: str, idempotent: bool = True, **kwargs
    ) -> dict:
        """
        Execute HTTP request with exponential backoff retry for transient errors.

        Requests that are not idempotent are only resent when the server
        cannot have acted on them: a 429/503 answer, or a connect timeout.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            url: Request URL
            idempotent: Whether resending the request is harmless
            **kwargs: Additional request parameters

        Returns:
            Dictionary with 'response' and 'status_code' keys

        Raises:
            ServiceError: UNAVAILABLE if max retries exceeded, UNKNOWN if a
                non-idempotent request failed after it may have been sent
        """
        last_error = None
        kwargs.setdefault("timeout", self.timeout_s)
        retry_statuses = (
            self.RETRYABLE_STATUS_CODES if idempotent else self.UNPROCESSED_STATUS_CODES
        )

        for attempt in range(self.max_retries + 1):
            try:
                resp = self.session.request(method.upper(), url, **kwargs)

                if resp.status_code in retry_statuses:
                    delay = self._calculate_delay(attempt, resp)
                    error_info = self._error_message(resp)
                    logger.warning(
                        f"Retryable error {resp.status_code} ({error_info}), attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                    )
                    last_error = f"HTTP {resp.status_code}: {error_info}"
                    if attempt < self.max_retries:
                        time.sleep(delay)
                    continue

                return {"response": resp, "status_code": resp.status_code}

            except requests.exceptions.RequestException as e:
                if not idempotent and not isinstance(
                    e, requests.exceptions.ConnectTimeout
                ):
                    logger.error(f"{method.upper()} {url} failed and was not resent: {e}")
                    raise ServiceError(
                        f"Request may have been processed, not retrying: {e}",
                        ErrorCode.UNKNOWN,
                    ) from e
                delay = self._calculate_delay(attempt)
                logger.warning(
                    f"Request error: {e}, attempt {attempt + 1}/{self.max_retries + 1}, waiting {delay:.1f}s..."
                )
                last_error = str(e)
                if attempt < self.max_retries:
                    time.sleep(delay)

        raise ServiceError(
            f"Max retries exceeded. Last error: {last_error}", ErrorCode.UNAVAILABLE
        )

    def _calculate_delay(self, attempt: int, resp=None) -> float:
        """
        Calculate delay with exponential backoff and jitter.

        Args:
            attempt: Current attempt number
            resp: Optional response object (to check Retry-After header)

        Returns:
            Delay in seconds
        """
        if resp is not None and "Retry-After" in resp.headers:
            try:
                return float(resp.headers["Retry-After"])
            except ValueError:
                pass

        delay = self.base_delay * (2**attempt)
        jitter = delay * 0.2 * (0.5 - time.time() % 1)
        return min(delay + jitter, 60.0)

    @staticmethod
    def _error_message(resp) -> str:
        try:
            return resp.json().get("error", {}).get("message", "") or resp.text[:200]
        except ValueError:
            return resp.text[:200]

    def _raise_for_error(self, method: str, resp) -> None:
        if 200 <= resp.status_code < 300:
            return
        status = None
        message = ""
        try:
            error = resp.json().get("error", {})
            status = error.get("status")
            message = error.get("message", "")
        except ValueError:
            message = resp.text[:200]
        code = code_from_status(status, resp.status_code)
        logger.debug(f"{method} failed ({resp.status_code} {code.value}): {message}")
        raise ServiceError(f"{method} failed: {message}", code)

    @staticmethod
    def _json(resp) -> Dict:
        if not resp.content:
            return {}
        return resp.json()

    def unary_call(
        self, method: str, request: Dict, timeout: Optional[float] = None
    ) -> Dict:
        """
        Send one admin RPC.

        Args:
            method: RPC name, see transport.py
            request: Request fields
            timeout: Per-call timeout; defaults to timeout_s

        Returns:
            Decoded JSON response

        Raises:
            ServiceError: If the call fails
        """
        binding, url, params, body = self._build(method, request)
        kwargs = {"params": params} if params else {}
        if body is not None:
            kwargs["json"] = body
        if timeout is not None:
            kwargs["timeout"] = timeout
        result = self._request_with_retry(
            binding.verb, url, idempotent=binding.idempotent, **kwargs
        )
        resp = result["response"]
        self._raise_for_error(method, resp)
        return self._json(resp)

    def paged_call(
        self, method: str, request: Dict, page_token: Optional[str] = None
    ) -> Tuple[List[Dict], Optional[str]]:
        """
        Fetch one page of a list RPC.

        Returns:
            Tuple of (items, next_page_token)
        """
        binding, url, params, _ = self._build(method, request)
        if page_token:
            params["pageToken"] = page_token
        result = self._request_with_retry(binding.verb, url, params=params)
        resp = result["response"]
        self._raise_for_error(method, resp)
        data = self._json(resp)
        return data.get(binding.items_key, []), data.get("nextPageToken") or None
