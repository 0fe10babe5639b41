"""
Meta Graph API client.
Thin async wrapper over httpx that normalizes Graph errors and backs off on throttling.
"""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from killscale.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Graph error codes Meta uses for application/user/account throttling
RATE_LIMIT_ERROR_CODES = {4, 17, 32, 613, 80004}

# "Object does not exist / unsupported operation": already deleted upstream
ALREADY_DELETED_CODE = 100
ALREADY_DELETED_SUBCODE = 33


class MetaGraphError(Exception):
    """Error returned by the Graph API (or a transport failure talking to it)."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        subcode: Optional[int] = None,
        user_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.user_message = user_message
        self.status_code = status_code

    @property
    def display_message(self) -> str:
        """The message shown to users: Meta's user-facing text when it sends one."""
        return self.user_message or self.message

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429 or self.code in RATE_LIMIT_ERROR_CODES

    @property
    def is_already_deleted(self) -> bool:
        return self.code == ALREADY_DELETED_CODE and self.subcode == ALREADY_DELETED_SUBCODE

    @classmethod
    def from_response(cls, response: httpx.Response) -> "MetaGraphError":
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            return cls(
                f"Meta API request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return cls(
            error.get("message") or f"Meta API request failed with status {response.status_code}",
            code=error.get("code"),
            subcode=error.get("error_subcode"),
            user_message=error.get("error_user_msg"),
            status_code=response.status_code,
        )


def _encode_form(data: Dict[str, Any]) -> Dict[str, str]:
    """Graph API form posts expect nested objects and arrays as JSON strings."""
    encoded = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            encoded[key] = json.dumps(value)
        elif isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded


class MetaGraphClient:
    """
    Async Graph API client bound to one user's access token.

    Use as an async context manager so a single connection pool serves a
    whole bulk operation:

        async with MetaGraphClient(token) as graph:
            await graph.post(campaign_id, {"status": "PAUSED"})
    """

    def __init__(
        self,
        access_token: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.access_token = access_token
        self.settings = settings or get_settings()
        self.base_url = self.settings.meta_graph_api_base
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "MetaGraphClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.settings.meta_request_timeout_seconds,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ==================== Request Methods ====================

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        # Structured params (filtering, targeting specs) travel as JSON strings
        query = {
            k: json.dumps(v) if isinstance(v, (dict, list)) else v
            for k, v in (params or {}).items()
            if v is not None
        }
        return await self._request("GET", path, params=query)

    async def post(self, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self._request("POST", path, data=_encode_form(data or {}))

    async def get_edge(
        self,
        path: str,
        fields: str,
        limit: int = 100,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Read a collection edge (e.g. '{campaign_id}/adsets'), following cursors.

        Args:
            path: Graph path of the edge
            fields: Comma separated field list
            limit: Page size
            extra_params: Additional query parameters (filtering, effective_status)

        Returns:
            All items across pages
        """
        params: Dict[str, Any] = {"fields": fields, "limit": limit, **(extra_params or {})}
        items: List[Dict[str, Any]] = []
        while True:
            payload = await self.get(path, params)
            items.extend(payload.get("data", []))
            after = (payload.get("paging") or {}).get("cursors", {}).get("after")
            if not after or not (payload.get("paging") or {}).get("next"):
                break
            params = {**params, "after": after}
        return items

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if self._client is None:
            raise RuntimeError("MetaGraphClient must be used inside 'async with'")

        url = "/" + path.lstrip("/")
        params = dict(kwargs.pop("params", None) or {})
        params["access_token"] = self.access_token

        max_retries = self.settings.meta_rate_limit_max_retries
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, url, params=params, **kwargs)
            except httpx.HTTPError as exc:
                logger.error(f"Meta API transport error on {method} {path}: {exc}")
                raise MetaGraphError(f"Network error contacting Meta: {exc}") from exc

            if response.is_success:
                try:
                    return response.json()
                except ValueError:
                    return {}

            error = MetaGraphError.from_response(response)
            if error.is_rate_limited and attempt < max_retries:
                delay = self.settings.meta_rate_limit_backoff_ms * (2 ** attempt) / 1000
                attempt += 1
                logger.warning(
                    f"Meta API throttled on {method} {path} (code={error.code}), "
                    f"retry {attempt}/{max_retries} in {delay:.2f}s"
                )
                await self._sleep(delay)
                continue

            logger.error(f"Meta API error on {method} {path}: {error.display_message} (code={error.code}, subcode={error.subcode})")
            raise error
