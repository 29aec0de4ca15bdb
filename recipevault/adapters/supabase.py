"""
Supabase (PostgREST) recipe repository with error handling and row mapping.
Every call returns a Result; transport, HTTP and parsing failures are logged
and converted to error results instead of raising.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from recipevault.config import Settings
from recipevault.core.abstractions import AuthSession
from recipevault.core.errors import from_exception, from_response
from recipevault.core.results import (
    Err,
    ErrorCode,
    Ok,
    Result,
    err,
    not_authenticated,
)
from recipevault.models import (
    OrderUpdate,
    Recipe,
    RecipeCreate,
    RecipeFilters,
    RecipeUpdate,
)
from recipevault.services.metrics import record_repository_call, timed_repository_call

logger = logging.getLogger(__name__)

TABLE = "/recipes"
TAGS_RPC = "/rpc/get_user_tags"
RETURN_REPRESENTATION = "return=representation"
RETURN_MINIMAL = "return=minimal"


def create_http_client(settings: Settings, base_url: str) -> httpx.AsyncClient:
    """Async client whose transport retries failed connections, never HTTP errors."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=settings.request_timeout,
        transport=httpx.AsyncHTTPTransport(retries=settings.http_retries),
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _array_literal(values: List[str]) -> str:
    """PostgREST array literal, e.g. {"dinner","quick"}."""
    quoted = []
    for value in values:
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        quoted.append(f'"{escaped}"')
    return "{" + ",".join(quoted) + "}"


def _parse_recipes(rows: Any) -> Result[List[Recipe]]:
    if not isinstance(rows, list):
        return err(ErrorCode.UNKNOWN, "Unexpected response from server")
    try:
        return Ok([Recipe.model_validate(row) for row in rows])
    except ValidationError as e:
        logger.warning("Failed to parse recipe rows: %s", e)
        return err(ErrorCode.UNKNOWN, "Unexpected response from server")


def _single(result: Result[List[Recipe]]) -> Result[Recipe]:
    if not result.is_ok:
        return result
    if not result.value:
        return err(ErrorCode.NOT_FOUND, "Recipe not found")
    return Ok(result.value[0])


class SupabaseRecipeRepository:
    """RecipeRepository over the Supabase REST API for the signed-in user."""

    def __init__(
        self,
        settings: Settings,
        auth: AuthSession,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._auth = auth
        self._client = client if client is not None else create_http_client(
            settings, settings.rest_url
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        token = self._auth.access_token or self._settings.supabase_anon_key
        headers = {
            "apikey": self._settings.supabase_anon_key,
            "Authorization": f"Bearer {token}",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Result[Any]:
        with timed_repository_call(operation):
            try:
                response = await self._client.request(
                    method, path, params=params, json=json, headers=self._headers(prefer)
                )
            except httpx.TimeoutException as e:
                logger.warning("Supabase %s timed out: %s", operation, e)
                record_repository_call(operation, success=False)
                return from_exception(e)
            except httpx.TransportError as e:
                logger.warning("Supabase %s connection failed: %s", operation, e)
                record_repository_call(operation, success=False)
                return from_exception(e)
            except Exception as e:
                logger.warning("Supabase %s unexpected error: %s", operation, e)
                record_repository_call(operation, success=False)
                return from_exception(e)

        if response.is_error:
            logger.warning(
                "Supabase %s HTTP error %s: %s",
                operation,
                response.status_code,
                response.text[:200],
            )
            record_repository_call(operation, success=False)
            return from_response(response)

        record_repository_call(operation, success=True)
        if not response.content:
            return Ok(None)
        try:
            return Ok(response.json())
        except ValueError as e:
            logger.warning("Supabase %s returned invalid JSON: %s", operation, e)
            return err(ErrorCode.UNKNOWN, "Unexpected response from server")

    def _owner_filter(self, user_id: str, **extra: str) -> Dict[str, str]:
        return {"user_id": f"eq.{user_id}", **extra}

    async def fetch_all(self) -> Result[List[Recipe]]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        result = await self._request(
            "fetch_all",
            "GET",
            TABLE,
            params=self._owner_filter(user_id, select="*", order="order_index.asc"),
        )
        if not result.is_ok:
            return result
        return _parse_recipes(result.value or [])

    async def fetch_one(self, recipe_id: str) -> Result[Recipe]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        result = await self._request(
            "fetch_one",
            "GET",
            TABLE,
            params=self._owner_filter(user_id, id=f"eq.{recipe_id}", select="*"),
        )
        if not result.is_ok:
            return result
        return _single(_parse_recipes(result.value or []))

    async def _next_order_index(self, user_id: str) -> Result[int]:
        result = await self._request(
            "next_order_index",
            "GET",
            TABLE,
            params=self._owner_filter(
                user_id, select="order_index", order="order_index.desc", limit="1"
            ),
        )
        if not result.is_ok:
            return result
        rows = result.value or []
        if not rows:
            return Ok(0)
        return Ok((rows[0].get("order_index") or 0) + 1)

    async def create(self, data: RecipeCreate) -> Result[Recipe]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()

        order_index = data.order_index
        if order_index is None:
            next_index = await self._next_order_index(user_id)
            if not next_index.is_ok:
                return next_index
            order_index = next_index.value

        row = data.model_dump(mode="json", exclude={"order_index"})
        row.update(user_id=user_id, order_index=order_index)
        result = await self._request(
            "create", "POST", TABLE, json=row, prefer=RETURN_REPRESENTATION
        )
        if not result.is_ok:
            return result
        return _single(_parse_recipes(result.value or []))

    async def update(self, recipe_id: str, updates: RecipeUpdate) -> Result[Recipe]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        payload = updates.model_dump(mode="json", exclude_unset=True)
        payload["updated_at"] = _now_iso()
        return await self._patch("update", user_id, recipe_id, payload)

    async def set_favourite(self, recipe_id: str, is_favourite: bool) -> Result[Recipe]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        payload = {"is_favourite": is_favourite, "updated_at": _now_iso()}
        return await self._patch("set_favourite", user_id, recipe_id, payload)

    async def _patch(
        self, operation: str, user_id: str, recipe_id: str, payload: Dict[str, Any]
    ) -> Result[Recipe]:
        result = await self._request(
            operation,
            "PATCH",
            TABLE,
            params=self._owner_filter(user_id, id=f"eq.{recipe_id}"),
            json=payload,
            prefer=RETURN_REPRESENTATION,
        )
        if not result.is_ok:
            return result
        return _single(_parse_recipes(result.value or []))

    async def delete(self, recipe_id: str) -> Result[None]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        result = await self._request(
            "delete",
            "DELETE",
            TABLE,
            params=self._owner_filter(user_id, id=f"eq.{recipe_id}"),
            prefer=RETURN_MINIMAL,
        )
        if not result.is_ok:
            return result
        return Ok(None)

    async def bulk_create(self, items: List[RecipeCreate]) -> Result[List[Recipe]]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        if not items:
            return Ok([])

        rows = []
        for position, item in enumerate(items):
            row = item.model_dump(mode="json", exclude={"order_index"})
            row.update(
                user_id=user_id,
                order_index=item.order_index if item.order_index is not None else position,
            )
            rows.append(row)

        result = await self._request(
            "bulk_create", "POST", TABLE, json=rows, prefer=RETURN_REPRESENTATION
        )
        if not result.is_ok:
            return result
        return _parse_recipes(result.value or [])

    async def update_order(self, updates: List[OrderUpdate]) -> Result[None]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        if not updates:
            return Ok(None)

        stamp = _now_iso()
        results = await asyncio.gather(
            *(
                self._request(
                    "update_order",
                    "PATCH",
                    TABLE,
                    params=self._owner_filter(user_id, id=f"eq.{u.id}"),
                    json={"order_index": u.order_index, "updated_at": stamp},
                    prefer=RETURN_MINIMAL,
                )
                for u in updates
            )
        )
        failures = [r for r in results if not r.is_ok]
        if failures:
            logger.warning("%d of %d order updates failed", len(failures), len(updates))
            first: Err = failures[0]
            return err(first.error.code, "Failed to update recipe order")
        return Ok(None)

    async def list_tags(self) -> Result[List[str]]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        result = await self._request(
            "list_tags", "POST", TAGS_RPC, json={"user_id": user_id}
        )
        if not result.is_ok:
            return result
        tags = set()
        for item in result.value or []:
            tag = item.get("tag") if isinstance(item, dict) else item
            if isinstance(tag, str) and tag.strip():
                tags.add(tag.strip())
        return Ok(sorted(tags))

    async def search_recipes(self, filters: RecipeFilters) -> Result[List[Recipe]]:
        user_id = self._auth.current_user_id
        if not user_id:
            return not_authenticated()
        params = self._owner_filter(user_id, select="*", order="order_index.asc")
        if filters.show_favourites_only:
            params["is_favourite"] = "eq.true"
        if filters.selected_tags:
            params["tags"] = f"ov.{_array_literal(filters.selected_tags)}"
        result = await self._request("search", "GET", TABLE, params=params)
        if not result.is_ok:
            return result
        return _parse_recipes(result.value or [])
