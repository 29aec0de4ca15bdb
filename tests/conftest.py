"""
Test fixtures for RecipeVault tests.
Uses an in-memory repository and FastAPI dependency overrides for isolated components.
"""

import asyncio
import itertools
from datetime import datetime
from typing import Dict, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from recipevault.adapters.auth import StaticAuthSession
from recipevault.core.dependencies import AppContainer, get_container
from recipevault.core.results import Err, ErrorCode, Ok, RepoError, not_authenticated
from recipevault.main import app
from recipevault.models import (
    AuthUser,
    Ingredient,
    OrderUpdate,
    Recipe,
    RecipeCreate,
    RecipeFilters,
    RecipeUpdate,
)
from recipevault.services.cache import RecipeCache
from recipevault.services.migration import MigrationEngine
from recipevault.services.recipes import RecipeService
from recipevault.services.storage import InMemoryKeyValueStore, LegacyRecipeStore


USER_ID = "user-1"


class FakeRecipeRepository:
    """In-memory RecipeRepository with per-operation failure injection."""

    def __init__(self, auth: StaticAuthSession) -> None:
        self.auth = auth
        self.rows: Dict[str, Recipe] = {}
        self.calls: List[str] = []
        self.failures: Dict[str, RepoError] = {}
        self.failing_order_ids: Set[str] = set()
        self._ids = itertools.count(1)

    def add(self, name: str, **fields) -> Recipe:
        """Seed a persisted row directly."""
        order_index = fields.pop(
            "order_index", max((r.order_index for r in self.rows.values()), default=-1) + 1
        )
        recipe = Recipe(
            id=f"r{next(self._ids)}",
            user_id=self.auth.current_user_id,
            name=name,
            order_index=order_index,
            **fields,
        )
        self.rows[recipe.id] = recipe
        return recipe

    def fail(self, operation: str, code: ErrorCode = ErrorCode.CONNECTION, message: str = "boom") -> None:
        self.failures[operation] = RepoError(code, message)

    def _enter(self, operation: str) -> Optional[Err]:
        self.calls.append(operation)
        if not self.auth.is_authenticated:
            return not_authenticated()
        if operation in self.failures:
            return Err(self.failures[operation])
        return None

    def _sorted(self) -> List[Recipe]:
        return sorted(self.rows.values(), key=lambda r: r.order_index)

    async def fetch_all(self):
        return self._enter("fetch_all") or Ok(self._sorted())

    async def fetch_one(self, recipe_id):
        failure = self._enter("fetch_one")
        if failure:
            return failure
        if recipe_id not in self.rows:
            return Err(RepoError(ErrorCode.NOT_FOUND, "Recipe not found"))
        return Ok(self.rows[recipe_id])

    def _insert(self, data: RecipeCreate, order_index: int) -> Recipe:
        recipe = Recipe(
            id=f"r{next(self._ids)}",
            user_id=self.auth.current_user_id,
            order_index=order_index,
            **data.model_dump(exclude={"order_index"}),
        )
        self.rows[recipe.id] = recipe
        return recipe

    async def create(self, data):
        failure = self._enter("create")
        if failure:
            return failure
        order_index = data.order_index
        if order_index is None:
            order_index = max((r.order_index for r in self.rows.values()), default=-1) + 1
        return Ok(self._insert(data, order_index))

    async def update(self, recipe_id, updates: RecipeUpdate):
        failure = self._enter("update")
        if failure:
            return failure
        if recipe_id not in self.rows:
            return Err(RepoError(ErrorCode.NOT_FOUND, "Recipe not found"))
        changes = updates.model_dump(exclude_unset=True)
        if "ingredients" in changes:
            changes["ingredients"] = updates.ingredients
        changes["updated_at"] = datetime.now()
        self.rows[recipe_id] = self.rows[recipe_id].model_copy(update=changes)
        return Ok(self.rows[recipe_id])

    async def delete(self, recipe_id):
        failure = self._enter("delete")
        if failure:
            return failure
        self.rows.pop(recipe_id, None)
        return Ok(None)

    async def bulk_create(self, items: List[RecipeCreate]):
        failure = self._enter("bulk_create")
        if failure:
            return failure
        created = [
            self._insert(item, item.order_index if item.order_index is not None else i)
            for i, item in enumerate(items)
        ]
        return Ok(created)

    async def set_favourite(self, recipe_id, is_favourite):
        failure = self._enter("set_favourite")
        if failure:
            return failure
        if recipe_id not in self.rows:
            return Err(RepoError(ErrorCode.NOT_FOUND, "Recipe not found"))
        self.rows[recipe_id] = self.rows[recipe_id].model_copy(update={"is_favourite": is_favourite})
        return Ok(self.rows[recipe_id])

    async def update_order(self, updates: List[OrderUpdate]):
        failure = self._enter("update_order")
        if failure:
            return failure
        failed = False
        for u in updates:
            if u.id in self.failing_order_ids:
                failed = True
                continue
            self.rows[u.id] = self.rows[u.id].model_copy(update={"order_index": u.order_index})
        if failed:
            return Err(RepoError(ErrorCode.CONNECTION, "Failed to update recipe order"))
        return Ok(None)

    async def list_tags(self):
        failure = self._enter("list_tags")
        if failure:
            return failure
        return Ok(sorted({t for r in self.rows.values() for t in r.tags}))

    async def search_recipes(self, filters: RecipeFilters):
        failure = self._enter("search")
        if failure:
            return failure
        rows = self._sorted()
        if filters.show_favourites_only:
            rows = [r for r in rows if r.is_favourite]
        if filters.selected_tags:
            rows = [r for r in rows if set(r.tags) & set(filters.selected_tags)]
        return Ok(rows)


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture
def user():
    return AuthUser(id=USER_ID, email="cook@example.com")


@pytest.fixture
def auth(user):
    return StaticAuthSession(user)


@pytest.fixture
def repository(auth):
    return FakeRecipeRepository(auth)


@pytest.fixture
def cache():
    return RecipeCache()


@pytest.fixture
def service(repository, cache):
    return RecipeService(repository, cache)


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def legacy_store(kv_store):
    return LegacyRecipeStore(kv_store)


@pytest.fixture
def migration(legacy_store, repository, auth):
    return MigrationEngine(legacy_store, repository, auth, max_attempts=3)


@pytest.fixture
def container(auth, repository, legacy_store):
    return AppContainer(auth, repository, legacy_store, max_migration_attempts=3)


@pytest.fixture
def client(container):
    """Test client with the session container overridden."""
    app.dependency_overrides[get_container] = lambda: container
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sample_recipe_data():
    """Sample recipe for testing"""
    return {
        "name": "Test Recipe",
        "servings": 2,
        "notes": "A test recipe",
        "ingredients": [
            {"name": "flour", "amount": 200, "unit": "g"},
            {"name": "water", "amount": 120, "unit": "ml"},
        ],
        "tags": ["test"],
    }


@pytest.fixture
def legacy_records():
    """Legacy local-storage payload as the pre-account app wrote it"""
    return [
        {
            "id": "1700000000000",
            "name": "Pancakes",
            "servings": 4,
            "notes": "Rest the batter",
            "ingredients": [
                {"id": "i1", "name": "flour", "amount": 250, "unit": "g"},
                {"id": "i2", "name": "milk", "amount": 500, "unit": "ml"},
            ],
            "createdAt": 1700000000000,
            "order": 1,
        },
        {
            "id": "1700000000001",
            "name": "Omelette",
            "servings": 1,
            "notes": "",
            "ingredients": [{"id": "i3", "name": "eggs", "amount": 3, "unit": ""}],
            "createdAt": 1700000000001,
            "order": 0,
        },
    ]


def make_recipe(name: str, **fields) -> Recipe:
    """Standalone Recipe for pure-function tests."""
    fields.setdefault("id", name.lower().replace(" ", "-"))
    ingredients = fields.pop("ingredients", [])
    return Recipe(
        name=name,
        ingredients=[Ingredient(name=i) if isinstance(i, str) else i for i in ingredients],
        **fields,
    )
