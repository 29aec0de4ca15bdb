"""
One-time migration of legacy local recipes into the remote repository.

The completion flag lives in its own key next to the legacy data. Once it
reads "true" every call is a no-op, so repeated sign-ins never duplicate
rows. Failed attempts are counted; after `max_attempts` failures automatic
runs stop until a forced (user-initiated) retry.
"""

import logging
from typing import List

from recipevault.core.abstractions import AuthSession, RecipeRepository
from recipevault.models import (
    MAX_NAME_LENGTH,
    LegacyRecipe,
    MigrationInfo,
    MigrationResult,
    RecipeCreate,
)
from recipevault.services.metrics import record_migration
from recipevault.services.storage import LegacyRecipeStore
from recipevault.validation import summarize_errors, validate_legacy_records

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
UNTITLED_NAME = "Untitled Recipe"


def legacy_to_create(legacy: LegacyRecipe) -> RecipeCreate:
    name = legacy.name.strip()[:MAX_NAME_LENGTH] or UNTITLED_NAME
    return RecipeCreate(
        name=name,
        servings=legacy.servings,
        notes=legacy.notes,
        ingredients=legacy.ingredients,
        order_index=legacy.order,
    )


class MigrationEngine:
    def __init__(
        self,
        legacy_store: LegacyRecipeStore,
        repository: RecipeRepository,
        auth: AuthSession,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.legacy_store = legacy_store
        self.repository = repository
        self.auth = auth
        self.max_attempts = max_attempts

    def is_completed(self) -> bool:
        return self.legacy_store.is_migration_completed()

    def get_migration_info(self) -> MigrationInfo:
        count = len(self.legacy_store.load_raw())
        return MigrationInfo(
            is_completed=self.is_completed(),
            legacy_recipes_count=count,
            has_legacy_data=count > 0,
            failed_attempts=self.legacy_store.failed_attempts(),
        )

    def reset_migration_status(self) -> None:
        self.legacy_store.reset_migration()
        logger.info("Migration status reset")

    def clear_legacy_recipes(self) -> None:
        self.legacy_store.clear_recipes()
        logger.info("Legacy recipes cleared")

    def _fail(self, message: str) -> MigrationResult:
        attempts = self.legacy_store.record_failed_attempt()
        record_migration("failed")
        logger.warning(
            "Legacy migration failed (attempt %d/%d): %s",
            attempts,
            self.max_attempts,
            message,
        )
        return MigrationResult(success=False, migrated_count=0, error=message)

    async def migrate_legacy_recipes(self, force: bool = False) -> MigrationResult:
        """
        Copy legacy recipes to the remote store at most once.

        Never raises; failures come back as MigrationResult(success=False)
        and leave the flag pending for a later retry.
        """
        try:
            return await self._migrate(force)
        except Exception as e:
            logger.exception("Unexpected error during legacy migration")
            return MigrationResult(success=False, migrated_count=0, error=str(e) or "Unknown migration error")

    async def _migrate(self, force: bool) -> MigrationResult:
        if not self.auth.is_authenticated or not self.auth.current_user_id:
            return MigrationResult(
                success=False, migrated_count=0, error="User not authenticated"
            )

        if self.is_completed():
            record_migration("skipped")
            return MigrationResult(success=True, migrated_count=0)

        attempts = self.legacy_store.failed_attempts()
        if not force and attempts >= self.max_attempts:
            record_migration("capped")
            logger.info("Skipping legacy migration after %d failed attempts", attempts)
            return MigrationResult(
                success=False,
                migrated_count=0,
                error="Migration retry limit reached",
            )

        records = self.legacy_store.load_raw()
        if not records:
            self.legacy_store.mark_migration_completed()
            record_migration("empty")
            logger.info("No legacy recipes to migrate")
            return MigrationResult(success=True, migrated_count=0)

        valid, errors = validate_legacy_records(records)
        if errors:
            return self._fail(summarize_errors(errors))

        to_create: List[RecipeCreate] = [legacy_to_create(r) for r in valid]
        result = await self.repository.bulk_create(to_create)
        if not result.is_ok:
            return self._fail(result.error.message)

        self.legacy_store.mark_migration_completed()
        record_migration("migrated")
        migrated = len(result.value)
        logger.info("Migrated %d of %d legacy recipes", migrated, len(to_create))
        return MigrationResult(success=True, migrated_count=migrated)
