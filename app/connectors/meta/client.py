"""Tracionar — Meta API Client.

Handles authentication, error classification, and pagination. Requests are
never retried here: a failed call surfaces as ExternalAPIError (or
CredentialError for token problems) and retry policy belongs to the caller.
"""

from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.errors import CredentialError, ExternalAPIError
from app.core.logging import get_logger

logger = get_logger("meta.client")

# Graph API error codes that mean the token itself is unusable
TOKEN_ERROR_CODES = {102, 190, 463, 467}


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    """The Graph API `error` object, or {} when the body is not usable JSON."""
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


class MetaClient:
    """Async HTTP client for Meta Marketing API."""

    def __init__(
        self,
        access_token: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = settings.meta_graph_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=settings.meta_request_timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, Any] | None = None,
        authenticated: bool = True,
    ) -> Dict[str, Any]:
        """Make a single request and classify any failure.

        Query parameters already on ``url`` (a ``paging.next`` cursor) are
        kept; ``params`` and the token are merged on top of them.
        """
        merged: Dict[str, Any] = dict(httpx.URL(url).params)
        merged.update(params or {})
        if authenticated:
            if not self.access_token:
                raise CredentialError("No Meta access token available")
            merged["access_token"] = self.access_token

        client = await self._get_client()

        try:
            resp = await client.request(method, url.split("?", 1)[0], params=merged)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            error = _error_body(e.response)
            error_msg = error.get("message", str(e))
            error_code = error.get("code", 0)
            status_code = e.response.status_code

            if status_code == 401 or error_code in TOKEN_ERROR_CODES:
                raise CredentialError(
                    f"Meta rejected the access token: {error_msg}",
                    {"status_code": status_code, "error_code": error_code},
                ) from e
            if status_code == 429:
                logger.warning(
                    "Meta rate limit hit", extra={"status_code": status_code}
                )
            raise ExternalAPIError(error_msg, status_code, error_code) from e
        except httpx.RequestError as e:
            raise ExternalAPIError(f"Connection to Meta failed: {e}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise ExternalAPIError(
                f"Meta returned a non-JSON body ({resp.headers.get('content-type', 'unknown')})",
                resp.status_code,
            ) from e
        if not isinstance(body, dict):
            raise ExternalAPIError("Meta returned an unexpected JSON body", resp.status_code)
        return body

    # ── Pagination ──

    async def paginated_get(
        self,
        url: str,
        params: Dict[str, Any] | None = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a list endpoint, following ``paging.next``."""
        all_data: List[Dict[str, Any]] = []
        params = dict(params or {})
        params.setdefault("limit", settings.meta_page_size)
        current_url: Optional[str] = url
        page_params: Dict[str, Any] | None = params

        while current_url:
            result = await self._request("GET", current_url, page_params)
            all_data.extend(result.get("data") or [])
            # The next URL already carries the original query and cursor
            current_url = (result.get("paging") or {}).get("next")
            page_params = None

        logger.info(f"Fetched {len(all_data)} records from {url}")
        return all_data

    # ── OAuth ──

    def build_auth_url(self, state: str) -> str:
        """Login dialog URL the user visits to grant ads access."""
        query = httpx.QueryParams(
            {
                "client_id": settings.meta_app_id,
                "redirect_uri": settings.meta_redirect_uri,
                "scope": "ads_read,ads_management,business_management,read_insights",
                "response_type": "code",
                "state": state,
            }
        )
        return f"https://www.facebook.com/{settings.meta_api_version}/dialog/oauth?{query}"

    async def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        """Trade an OAuth code for an access token payload."""
        url = f"{self.base_url}/oauth/access_token"
        params = {
            "client_id": settings.meta_app_id,
            "client_secret": settings.meta_app_secret,
            "redirect_uri": settings.meta_redirect_uri,
            "code": code,
        }
        try:
            data = await self._request("GET", url, params, authenticated=False)
        except ExternalAPIError as e:
            raise CredentialError(f"OAuth code exchange failed: {e.message}") from e
        if not data.get("access_token"):
            raise CredentialError("OAuth exchange returned no access token")
        return data

    # ── Token Validation ──

    async def validate_token(self) -> Dict[str, Any]:
        """Token metadata from /debug_token; ``expires_at`` is 0 for non-expiring tokens."""
        url = f"{self.base_url}/debug_token"
        result = await self._request("GET", url, {"input_token": self.access_token})
        token_data = result.get("data") or {}
        return {
            "valid": bool(token_data.get("is_valid", False)),
            "expires_at": int(token_data.get("expires_at") or 0),
            "scopes": token_data.get("scopes") or [],
        }

    # ── Account Info ──

    async def get_ad_accounts(self) -> List[Dict[str, Any]]:
        """List the ad accounts the token can read."""
        url = f"{self.base_url}/me/adaccounts"
        params = {"fields": "id,account_id,name,account_status,currency,timezone_name"}
        return await self.paginated_get(url, params)
