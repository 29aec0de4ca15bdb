from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from recipevault.core.dependencies import AppContainer, get_container
from recipevault.core.results import ErrorCode, Result
from recipevault.models import (
    MAX_SCALE,
    MIN_SCALE,
    MigrationInfo,
    MigrationResult,
    OrderUpdate,
    Recipe,
    RecipeCreate,
    RecipeFilters,
    RecipeUpdate,
)

router = APIRouter(prefix="/api")

STATUS_BY_CODE = {
    ErrorCode.NOT_AUTHENTICATED: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION: 422,
    ErrorCode.CONNECTION: 503,
}


class TagRequest(BaseModel):
    tag: str


class MoveRequest(BaseModel):
    from_index: int
    to_index: int


def unwrap(result: Result) -> Any:
    """Return the result value or raise the matching HTTPException."""
    if result.is_ok:
        return result.value
    error = result.error
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 400),
        detail=error.to_dict(),
    )


def get_filters(
    search: str = "",
    tags: List[str] = Query(default=[]),
    favourites_only: bool = False,
    search_ingredients: bool = False,
) -> RecipeFilters:
    return RecipeFilters(
        search_term=search,
        selected_tags=tags,
        show_favourites_only=favourites_only,
        search_in_ingredients=search_ingredients,
    )


def _recipes_response(recipes: List[Recipe], filters: RecipeFilters) -> dict:
    return {
        "recipes": [r.model_dump(mode="json") for r in recipes],
        "has_active_filters": filters.has_active_filters,
    }


@router.get("/recipes")
async def list_recipes(
    filters: RecipeFilters = Depends(get_filters),
    container: AppContainer = Depends(get_container),
):
    """List the user's recipes, filtered and sorted on the client-side cache."""
    recipes = unwrap(await container.recipes.visible_recipes(filters))
    return _recipes_response(recipes, filters)


@router.get("/recipes/search")
async def search_recipes(
    filters: RecipeFilters = Depends(get_filters),
    container: AppContainer = Depends(get_container),
):
    """Search with favourite/tag filters pushed down to the database."""
    recipes = unwrap(await container.recipes.search(filters))
    return _recipes_response(recipes, filters)


@router.get("/tags")
async def list_tags(container: AppContainer = Depends(get_container)):
    return {"tags": unwrap(await container.recipes.list_tags())}


@router.post("/recipes")
async def create_recipe(
    recipe: RecipeCreate,
    container: AppContainer = Depends(get_container),
):
    """Create a new recipe"""
    return unwrap(await container.recipes.create_recipe(recipe))


@router.put("/recipes/order")
async def reorder_recipes(
    updates: List[OrderUpdate],
    container: AppContainer = Depends(get_container),
):
    """Write a batch of new order_index values."""
    unwrap(await container.recipes.reorder(updates))
    return {"message": "Recipe order updated", "status": "success"}


@router.post("/recipes/move")
async def move_recipe(
    move: MoveRequest,
    container: AppContainer = Depends(get_container),
):
    """Move the recipe at from_index to to_index in the current order."""
    unwrap(await container.recipes.move_recipe(move.from_index, move.to_index))
    return {"message": "Recipe order updated", "status": "success"}


@router.get("/recipes/{recipe_id}")
async def get_recipe(
    recipe_id: str,
    container: AppContainer = Depends(get_container),
):
    return unwrap(await container.recipes.get_recipe(recipe_id))


@router.get("/recipes/{recipe_id}/scaled")
async def get_scaled_recipe(
    recipe_id: str,
    factor: int = Query(1, ge=MIN_SCALE, le=MAX_SCALE),
    container: AppContainer = Depends(get_container),
):
    """Recipe with ingredient amounts and servings multiplied by `factor`."""
    recipe = unwrap(await container.recipes.get_recipe(recipe_id))
    return recipe.scaled(factor)


@router.patch("/recipes/{recipe_id}")
async def update_recipe(
    recipe_id: str,
    updates: RecipeUpdate,
    container: AppContainer = Depends(get_container),
):
    """Update an existing recipe"""
    return unwrap(await container.recipes.update_recipe(recipe_id, updates))


@router.delete("/recipes/{recipe_id}")
async def delete_recipe(
    recipe_id: str,
    container: AppContainer = Depends(get_container),
):
    """Delete a recipe"""
    unwrap(await container.recipes.delete_recipe(recipe_id))
    return {"message": "Recipe deleted successfully", "status": "success"}


@router.post("/recipes/{recipe_id}/favourite")
async def toggle_favourite(
    recipe_id: str,
    container: AppContainer = Depends(get_container),
):
    """Flip the favourite flag. The previous value is restored if the write fails."""
    recipe = unwrap(await container.recipes.toggle_favourite(recipe_id))
    return {"recipe": recipe.model_dump(mode="json"), "is_favourite": recipe.is_favourite}


@router.post("/recipes/{recipe_id}/tags")
async def add_tag(
    recipe_id: str,
    body: TagRequest,
    container: AppContainer = Depends(get_container),
):
    """Add a tag. Blank, duplicate or sixth tags leave the recipe unchanged."""
    return unwrap(await container.recipes.add_tag(recipe_id, body.tag))


@router.delete("/recipes/{recipe_id}/tags/{tag}")
async def remove_tag(
    recipe_id: str,
    tag: str,
    container: AppContainer = Depends(get_container),
):
    return unwrap(await container.recipes.remove_tag(recipe_id, tag))


@router.get("/migration", response_model=MigrationInfo)
def migration_info(container: AppContainer = Depends(get_container)):
    return container.migration.get_migration_info()


@router.post("/migration", response_model=MigrationResult)
async def run_migration(
    force: bool = False,
    container: AppContainer = Depends(get_container),
):
    """Migrate legacy local recipes. Failures are reported in the body, not as errors."""
    result = await container.migration.migrate_legacy_recipes(force=force)
    if result.success and result.migrated_count:
        container.recipes.refresh()
    return result
