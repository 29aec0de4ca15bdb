"""
Abstractions for remote data access, local persistence, and the auth session.
Enables component swapping and testability via dependency injection.
"""

from typing import Awaitable, Callable, List, Optional, Protocol

from recipevault.core.results import Result
from recipevault.models import (
    AuthUser,
    OrderUpdate,
    Recipe,
    RecipeCreate,
    RecipeFilters,
    RecipeUpdate,
)

# Auth session events
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

AuthListener = Callable[[str, Optional[AuthUser]], Awaitable[None]]


class RecipeRepository(Protocol):
    """Remote recipe store, scoped to the authenticated user's rows."""

    async def fetch_all(self) -> Result[List[Recipe]]:
        """Return all recipes ordered by order_index ascending."""
        ...

    async def fetch_one(self, recipe_id: str) -> Result[Recipe]:
        """Get a recipe by ID. Missing rows yield ErrorCode.NOT_FOUND."""
        ...

    async def create(self, data: RecipeCreate) -> Result[Recipe]:
        """Create a recipe, appending it after the current max order_index."""
        ...

    async def update(self, recipe_id: str, updates: RecipeUpdate) -> Result[Recipe]:
        """Apply a partial update. Always refreshes updated_at."""
        ...

    async def delete(self, recipe_id: str) -> Result[None]:
        """Delete a recipe."""
        ...

    async def bulk_create(self, items: List[RecipeCreate]) -> Result[List[Recipe]]:
        """Insert many recipes in one request. Returns the created rows."""
        ...

    async def set_favourite(self, recipe_id: str, is_favourite: bool) -> Result[Recipe]:
        """Update only the favourite flag."""
        ...

    async def update_order(self, updates: List[OrderUpdate]) -> Result[None]:
        """Write new order_index values, one request per row, concurrently."""
        ...

    async def list_tags(self) -> Result[List[str]]:
        """Distinct tags across the user's recipes."""
        ...

    async def search_recipes(self, filters: RecipeFilters) -> Result[List[Recipe]]:
        """Favourite/tag filtered superset. Text matching is left to the caller."""
        ...


class KeyValueStore(Protocol):
    """String-keyed persistent slots (legacy local storage)."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class AuthSession(Protocol):
    """Current-user identity plus change notifications."""

    @property
    def current_user(self) -> Optional[AuthUser]:
        ...

    @property
    def current_user_id(self) -> Optional[str]:
        ...

    @property
    def is_authenticated(self) -> bool:
        ...

    @property
    def access_token(self) -> Optional[str]:
        ...

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        ...
