"""
Recipe service: cached reads and mutations against the remote repository.

Writes reach the cache only after the remote call resolves, except for
favourite toggles and reorders, which are applied optimistically and rolled
back on failure.
"""

import logging
from typing import List, Optional, Union

from recipevault.core.abstractions import RecipeRepository
from recipevault.core.results import ErrorCode, Ok, Result, err
from recipevault.models import (
    OrderUpdate,
    Recipe,
    RecipeCreate,
    RecipeDraft,
    RecipeFilters,
    RecipeUpdate,
    add_tag,
    is_unsaved_id,
    remove_tag,
)
from recipevault.services.cache import (
    LIST_KEY,
    RecipeCache,
    entity_key,
    favourite_key,
    optimistic_update,
)
from recipevault.services.filtering import filter_recipes

logger = logging.getLogger(__name__)

UNSAVED_MESSAGE = "Recipe has not been saved yet"
DUPLICATE_ORDER_MESSAGE = "Order positions must be unique"


def _unsaved_error():
    return err(ErrorCode.VALIDATION, UNSAVED_MESSAGE)


def _replace(recipes: List[Recipe], recipe: Recipe) -> List[Recipe]:
    return [recipe if r.id == recipe.id else r for r in recipes]


class RecipeService:
    """Session-scoped facade over the repository and the client cache."""

    def __init__(self, repository: RecipeRepository, cache: Optional[RecipeCache] = None) -> None:
        self.repository = repository
        self.cache = cache if cache is not None else RecipeCache()

    # --- reads ---

    async def list_recipes(self) -> Result[List[Recipe]]:
        cached = self.cache.get(LIST_KEY)
        if cached is not None:
            return Ok(list(cached))
        result = await self.repository.fetch_all()
        if result.is_ok:
            self.cache.set(LIST_KEY, list(result.value))
        return result

    async def get_recipe(self, recipe_id: str) -> Result[Recipe]:
        if is_unsaved_id(recipe_id):
            return _unsaved_error()
        cached = self.cache.get(entity_key(recipe_id))
        if cached is not None:
            return Ok(cached)
        listed = self._find_in_list(recipe_id, fresh_only=True)
        if listed is not None:
            return Ok(listed)
        result = await self.repository.fetch_one(recipe_id)
        if result.is_ok:
            self.cache.set(entity_key(recipe_id), result.value)
        return result

    async def visible_recipes(self, filters: RecipeFilters) -> Result[List[Recipe]]:
        """Cached list narrowed and sorted by the filter engine."""
        result = await self.list_recipes()
        if not result.is_ok:
            return result
        return Ok(filter_recipes(result.value, filters))

    async def search(self, filters: RecipeFilters) -> Result[List[Recipe]]:
        """Favourite/tag filtering on the server, text matching here."""
        result = await self.repository.search_recipes(filters)
        if not result.is_ok:
            return result
        return Ok(filter_recipes(result.value, filters))

    async def list_tags(self) -> Result[List[str]]:
        return await self.repository.list_tags()

    def favourite_state(self, recipe_id: str) -> Optional[bool]:
        """Favourite flag as the UI should show it, including in-flight toggles."""
        pending = self.cache.peek(favourite_key(recipe_id))
        if pending is not None:
            return pending
        recipe = self.cache.peek(entity_key(recipe_id)) or self._find_in_list(recipe_id)
        return None if recipe is None else recipe.is_favourite

    def refresh(self) -> None:
        self.cache.invalidate(LIST_KEY)

    # --- mutations ---

    async def create_recipe(self, data: RecipeCreate) -> Result[Recipe]:
        result = await self.repository.create(data)
        if not result.is_ok:
            return result
        recipe = result.value
        self.cache.update(LIST_KEY, lambda recipes: [*recipes, recipe])
        self.cache.invalidate(LIST_KEY)
        self.cache.set(entity_key(recipe.id), recipe)
        logger.info("Created recipe %s", recipe.id)
        return result

    async def update_recipe(self, recipe_id: str, updates: RecipeUpdate) -> Result[Recipe]:
        if is_unsaved_id(recipe_id):
            return _unsaved_error()
        result = await self.repository.update(recipe_id, updates)
        if result.is_ok:
            self._store(result.value)
        return result

    async def save(
        self, recipe: Union[RecipeDraft, Recipe]
    ) -> Result[Recipe]:
        """Create a draft, or write back the editable fields of a persisted recipe."""
        if isinstance(recipe, RecipeDraft):
            return await self.create_recipe(recipe)
        updates = RecipeUpdate(
            name=recipe.name,
            servings=recipe.servings,
            notes=recipe.notes,
            ingredients=recipe.ingredients,
            tags=recipe.tags,
        )
        return await self.update_recipe(recipe.id, updates)

    async def delete_recipe(self, recipe_id: str) -> Result[None]:
        if is_unsaved_id(recipe_id):
            return _unsaved_error()
        result = await self.repository.delete(recipe_id)
        if result.is_ok:
            self.cache.update(
                LIST_KEY, lambda recipes: [r for r in recipes if r.id != recipe_id]
            )
            self.cache.remove(entity_key(recipe_id))
            self.cache.remove(favourite_key(recipe_id))
            logger.info("Deleted recipe %s", recipe_id)
        return result

    async def toggle_favourite(self, recipe_id: str) -> Result[Recipe]:
        current = self.favourite_state(recipe_id)
        if current is None:
            loaded = await self.get_recipe(recipe_id)
            if not loaded.is_ok:
                return loaded
            current = loaded.value.is_favourite
        return await self.set_favourite(recipe_id, not current)

    async def set_favourite(self, recipe_id: str, is_favourite: bool) -> Result[Recipe]:
        if is_unsaved_id(recipe_id):
            return _unsaved_error()

        async def commit() -> Result[Recipe]:
            result = await self.repository.set_favourite(recipe_id, is_favourite)
            if result.is_ok:
                self._store(result.value)
            return result

        result = await optimistic_update(
            self.cache,
            favourite_key(recipe_id),
            apply=lambda _: is_favourite,
            commit=commit,
            operation="favourite",
        )
        if result.is_ok:
            # the cached recipe now carries the confirmed value
            self.cache.remove(favourite_key(recipe_id))
        return result

    async def reorder(self, updates: List[OrderUpdate]) -> Result[None]:
        """
        Apply new order_index values optimistically, then write each changed
        row. Any failure restores the previous list; the list is invalidated
        afterwards either way. A batch that would leave two recipes on the
        same order_index is rejected before anything is written.
        """
        if any(is_unsaved_id(u.id) for u in updates):
            return _unsaved_error()

        listed = await self.list_recipes()
        if not listed.is_ok:
            return listed
        known = {r.id: r.order_index for r in listed.value}
        if any(u.id not in known for u in updates):
            return err(ErrorCode.NOT_FOUND, "Recipe not found")

        positions = {u.id: u.order_index for u in updates}
        merged = {**known, **positions}
        if len(set(merged.values())) != len(merged):
            return err(ErrorCode.VALIDATION, DUPLICATE_ORDER_MESSAGE)

        updates = [u for u in updates if known[u.id] != u.order_index]
        if not updates:
            return Ok(None)

        def apply(recipes: Optional[List[Recipe]]) -> Optional[List[Recipe]]:
            if recipes is None:
                return None
            moved = [
                r.model_copy(update={"order_index": positions[r.id]})
                if r.id in positions
                else r
                for r in recipes
            ]
            return sorted(moved, key=lambda r: r.order_index)

        async def commit() -> Result[None]:
            return await self.repository.update_order(updates)

        return await optimistic_update(
            self.cache,
            LIST_KEY,
            apply=apply,
            commit=commit,
            operation="reorder",
            invalidate=LIST_KEY,
        )

    async def move_recipe(self, from_index: int, to_index: int) -> Result[None]:
        """Drag-and-drop move: renumber the list contiguously and reorder."""
        listed = await self.list_recipes()
        if not listed.is_ok:
            return listed
        recipes = list(listed.value)
        if not (0 <= from_index < len(recipes) and 0 <= to_index < len(recipes)):
            return err(ErrorCode.VALIDATION, "Position out of range")
        if from_index == to_index:
            return Ok(None)
        recipes.insert(to_index, recipes.pop(from_index))
        updates = [
            OrderUpdate(id=r.id, order_index=position)
            for position, r in enumerate(recipes)
        ]
        return await self.reorder(updates)

    async def add_tag(self, recipe_id: str, tag: str) -> Result[Recipe]:
        loaded = await self.get_recipe(recipe_id)
        if not loaded.is_ok:
            return loaded
        recipe = loaded.value
        tags = add_tag(recipe.tags, tag)
        if tags == recipe.tags:
            return Ok(recipe)
        return await self.update_recipe(recipe_id, RecipeUpdate(tags=tags))

    async def remove_tag(self, recipe_id: str, tag: str) -> Result[Recipe]:
        loaded = await self.get_recipe(recipe_id)
        if not loaded.is_ok:
            return loaded
        recipe = loaded.value
        tags = remove_tag(recipe.tags, tag)
        if tags == recipe.tags:
            return Ok(recipe)
        return await self.update_recipe(recipe_id, RecipeUpdate(tags=tags))

    # --- helpers ---

    def _store(self, recipe: Recipe) -> None:
        self.cache.set(entity_key(recipe.id), recipe)
        self.cache.update(LIST_KEY, lambda recipes: _replace(recipes, recipe))

    def _find_in_list(self, recipe_id: str, fresh_only: bool = False) -> Optional[Recipe]:
        if fresh_only and self.cache.is_stale(LIST_KEY):
            return None
        for recipe in self.cache.peek(LIST_KEY) or []:
            if recipe.id == recipe_id:
                return recipe
        return None
