"""
Session wiring and FastAPI dependency injection providers.
Use Depends(get_container) in route handlers.
"""

import logging
from typing import Any, Optional

from recipevault.adapters.auth import SupabaseAuthSession
from recipevault.adapters.supabase import SupabaseRecipeRepository
from recipevault.config import Settings, get_settings
from recipevault.core.abstractions import (
    SIGNED_IN,
    SIGNED_OUT,
    AuthSession,
    RecipeRepository,
)
from recipevault.models import AuthUser
from recipevault.services.migration import MigrationEngine
from recipevault.services.recipes import RecipeService
from recipevault.services.storage import LegacyRecipeStore, create_key_value_store

logger = logging.getLogger(__name__)


class AppContainer:
    """
    One user session: auth, the recipe service with its cache, and the
    migration engine. Signing in starts a fresh cache and runs the legacy
    migration; signing out drops the cache.
    """

    def __init__(
        self,
        auth: AuthSession,
        repository: RecipeRepository,
        legacy_store: LegacyRecipeStore,
        max_migration_attempts: int = 5,
    ) -> None:
        self.auth = auth
        self.repository = repository
        self.recipes = RecipeService(repository)
        self.migration = MigrationEngine(
            legacy_store, repository, auth, max_attempts=max_migration_attempts
        )
        self._unsubscribe = auth.subscribe(self.on_auth_change)

    async def on_auth_change(self, event: str, user: Optional[AuthUser]) -> None:
        if event == SIGNED_OUT:
            self.recipes.cache.clear()
            return
        if event != SIGNED_IN:
            return
        self.recipes.cache.clear()
        result = await self.migration.migrate_legacy_recipes()
        if not result.success:
            logger.warning("Legacy migration did not complete: %s", result.error)
        elif result.migrated_count:
            self.recipes.refresh()

    async def aclose(self) -> None:
        self._unsubscribe()
        for resource in (self.repository, self.auth):
            closer: Any = getattr(resource, "aclose", None)
            if closer is not None:
                await closer()


def build_container(settings: Settings) -> AppContainer:
    auth = SupabaseAuthSession(settings)
    repository = SupabaseRecipeRepository(settings, auth)
    store = create_key_value_store(settings.redis_url, settings.legacy_db_path)
    return AppContainer(
        auth,
        repository,
        LegacyRecipeStore(store),
        max_migration_attempts=settings.migration_max_attempts,
    )


# --- Singleton (lazy-initialized) ---

_container: Optional[AppContainer] = None


def get_container() -> AppContainer:
    """
    Provide the AppContainer. Override in tests with a container built from fakes.

    The container is process-wide: one auth session and one recipe cache
    serve every caller, so the service acts for a single signed-in user.
    """
    global _container
    if _container is None:
        _container = build_container(get_settings())
    return _container


def reset_container() -> None:
    global _container
    _container = None


async def close_container() -> None:
    """Release the container's HTTP clients and drop it."""
    global _container
    if _container is not None:
        await _container.aclose()
    _container = None
