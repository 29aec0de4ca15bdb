"""
Smoke and contract tests for the RecipeVault API.
Covers all endpoints, HTTP status codes (401, 404, 422, 503), and validation.
"""

import json

from recipevault.core import dependencies
from recipevault.core.results import ErrorCode
from recipevault.models import MAX_TAGS
from recipevault.services.storage import MIGRATION_KEY, RECIPES_KEY

from conftest import run


def test_health_check(client):
    """Smoke test: API is running and responding"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_metrics_endpoint(client):
    """Smoke test: Prometheus scrape endpoint is mounted"""
    client.get("/api/recipes")
    response = client.get("/metrics/")
    assert response.status_code == 200
    assert "recipevault_cache_misses_total" in response.text


# --- GET /api/recipes ---


def test_get_all_recipes(client, repository):
    """Contract test: GET /api/recipes returns recipes sorted by name"""
    repository.add("Waffles")
    repository.add("apple crumble")
    response = client.get("/api/recipes")
    assert response.status_code == 200
    data = response.json()
    assert [r["name"] for r in data["recipes"]] == ["apple crumble", "Waffles"]
    assert data["has_active_filters"] is False


def test_get_recipes_with_filters(client, repository):
    """Contract test: query params map onto the filter engine"""
    repository.add("Soup", tags=["quick"], is_favourite=True)
    repository.add("Stew", tags=["slow"], is_favourite=True)
    repository.add("Salad", tags=["quick"])
    response = client.get(
        "/api/recipes", params={"tags": ["quick"], "favourites_only": "true"}
    )
    assert response.status_code == 200
    data = response.json()
    assert [r["name"] for r in data["recipes"]] == ["Soup"]
    assert data["has_active_filters"] is True


def test_get_recipes_with_ingredient_search(client, repository):
    repository.add("Bread", ingredients=[{"name": "Flour", "amount": 500, "unit": "g"}])
    repository.add("Cake", ingredients=[{"name": "self-raising flour", "amount": 200, "unit": "g"}])
    response = client.get("/api/recipes", params={"search": "flour", "search_ingredients": "true"})
    assert [r["name"] for r in response.json()["recipes"]] == ["Bread"]


def test_search_endpoint(client, repository):
    repository.add("Quick Soup", tags=["quick"])
    repository.add("Quick Bread", tags=["baking"])
    response = client.get("/api/recipes/search", params={"search": "quick", "tags": ["quick"]})
    assert response.status_code == 200
    assert [r["name"] for r in response.json()["recipes"]] == ["Quick Soup"]


def test_list_503_when_offline(client, repository):
    """Contract test: connection failures surface as 503 with a code"""
    repository.fail("fetch_all", ErrorCode.CONNECTION, "Connection error")
    response = client.get("/api/recipes")
    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "connection"


def test_401_when_signed_out(client, auth):
    auth._user = None
    response = client.get("/api/recipes")
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "not_authenticated"


# --- POST /api/recipes ---


def test_create_and_get_recipe(client, sample_recipe_data):
    """Contract test: Create recipe and verify response structure"""
    create_response = client.post("/api/recipes", json=sample_recipe_data)
    assert create_response.status_code == 200

    recipe = create_response.json()
    assert "id" in recipe
    assert "created_at" in recipe
    assert recipe["name"] == sample_recipe_data["name"]
    assert [i["name"] for i in recipe["ingredients"]] == ["flour", "water"]

    get_response = client.get(f"/api/recipes/{recipe['id']}")
    assert get_response.status_code == 200
    assert get_response.json()["id"] == recipe["id"]


def test_created_recipe_shows_in_list(client, sample_recipe_data):
    client.get("/api/recipes")
    client.post("/api/recipes", json=sample_recipe_data)
    names = [r["name"] for r in client.get("/api/recipes").json()["recipes"]]
    assert names == ["Test Recipe"]


def test_create_recipe_422_empty_name(client, sample_recipe_data):
    """Contract test: POST /api/recipes returns 422 for empty name"""
    response = client.post("/api/recipes", json={**sample_recipe_data, "name": ""})
    assert response.status_code == 422
    assert "detail" in response.json()


def test_create_recipe_422_name_too_long(client, sample_recipe_data):
    response = client.post("/api/recipes", json={**sample_recipe_data, "name": "x" * 201})
    assert response.status_code == 422


def test_create_recipe_422_zero_servings(client, sample_recipe_data):
    response = client.post("/api/recipes", json={**sample_recipe_data, "servings": 0})
    assert response.status_code == 422


def test_create_recipe_caps_tags(client, sample_recipe_data):
    tags = [f"t{i}" for i in range(MAX_TAGS + 2)]
    response = client.post("/api/recipes", json={**sample_recipe_data, "tags": tags})
    assert response.status_code == 200
    assert len(response.json()["tags"]) == MAX_TAGS


# --- GET /api/recipes/{id} ---


def test_recipe_not_found(client):
    """Contract test: Non-existent recipe returns 404"""
    response = client.get("/api/recipes/non-existent-id")
    assert response.status_code == 404
    assert response.json()["detail"] == {"code": "not_found", "message": "Recipe not found"}


def test_unsaved_recipe_id_is_422(client):
    response = client.get("/api/recipes/new-1700000000000")
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "validation"


def test_scaled_recipe(client, repository):
    recipe = repository.add(
        "Pancakes", servings=2, ingredients=[{"name": "milk", "amount": 250, "unit": "ml"}]
    )
    response = client.get(f"/api/recipes/{recipe.id}/scaled", params={"factor": 3})
    assert response.status_code == 200
    data = response.json()
    assert data["servings"] == 6
    assert data["ingredients"][0]["amount"] == 750
    # stored recipe unchanged
    assert repository.rows[recipe.id].ingredients[0].amount == 250


def test_scaled_recipe_422_out_of_range(client, repository):
    recipe = repository.add("Pancakes")
    assert client.get(f"/api/recipes/{recipe.id}/scaled", params={"factor": 11}).status_code == 422
    assert client.get(f"/api/recipes/{recipe.id}/scaled", params={"factor": 0}).status_code == 422


# --- PATCH /api/recipes/{id} ---


def test_update_recipe_success(client, sample_recipe_data):
    """Contract test: PATCH /api/recipes/{id} updates recipe"""
    recipe_id = client.post("/api/recipes", json=sample_recipe_data).json()["id"]
    response = client.patch(f"/api/recipes/{recipe_id}", json={"name": "Updated Name"})
    assert response.status_code == 200
    assert response.json()["name"] == "Updated Name"
    assert response.json()["notes"] == sample_recipe_data["notes"]


def test_update_recipe_not_found(client):
    """Contract test: PATCH /api/recipes/{id} returns 404 for missing recipe"""
    response = client.patch("/api/recipes/non-existent-id", json={"name": "Updated"})
    assert response.status_code == 404
    assert "detail" in response.json()


# --- DELETE /api/recipes/{id} ---


def test_delete_recipe_success(client, sample_recipe_data):
    """Contract test: DELETE /api/recipes/{id} returns 200 and removes recipe"""
    recipe_id = client.post("/api/recipes", json=sample_recipe_data).json()["id"]
    response = client.delete(f"/api/recipes/{recipe_id}")
    assert response.status_code == 200
    data = response.json()
    assert data.get("message") == "Recipe deleted successfully"
    assert data.get("status") == "success"
    assert client.get(f"/api/recipes/{recipe_id}").status_code == 404


# --- favourites ---


def test_toggle_favourite(client, repository):
    recipe = repository.add("Soup")
    first = client.post(f"/api/recipes/{recipe.id}/favourite")
    assert first.status_code == 200
    assert first.json()["is_favourite"] is True
    second = client.post(f"/api/recipes/{recipe.id}/favourite")
    assert second.json()["is_favourite"] is False


def test_toggle_favourite_failure_keeps_state(client, repository):
    recipe = repository.add("Soup")
    client.get("/api/recipes")
    repository.fail("set_favourite")
    response = client.post(f"/api/recipes/{recipe.id}/favourite")
    assert response.status_code == 503
    listed = client.get("/api/recipes").json()["recipes"]
    assert listed[0]["is_favourite"] is False


# --- ordering ---


def test_reorder_recipes(client, repository):
    a = repository.add("A")
    b = repository.add("B")
    response = client.put(
        "/api/recipes/order",
        json=[{"id": a.id, "order_index": 1}, {"id": b.id, "order_index": 0}],
    )
    assert response.status_code == 200
    assert repository.rows[b.id].order_index == 0
    assert repository.rows[a.id].order_index == 1


def test_move_recipe(client, repository):
    a = repository.add("A")
    b = repository.add("B")
    c = repository.add("C")
    response = client.post("/api/recipes/move", json={"from_index": 0, "to_index": 2})
    assert response.status_code == 200
    assert [repository.rows[i].order_index for i in (b.id, c.id, a.id)] == [0, 1, 2]


def test_move_recipe_422_out_of_range(client, repository):
    repository.add("A")
    response = client.post("/api/recipes/move", json={"from_index": 0, "to_index": 5})
    assert response.status_code == 422


# --- tags ---


def test_add_and_remove_tag(client, repository):
    recipe = repository.add("Soup")
    added = client.post(f"/api/recipes/{recipe.id}/tags", json={"tag": "dinner"})
    assert added.status_code == 200
    assert added.json()["tags"] == ["dinner"]

    assert client.get("/api/tags").json() == {"tags": ["dinner"]}

    removed = client.delete(f"/api/recipes/{recipe.id}/tags/dinner")
    assert removed.json()["tags"] == []


# --- migration ---


def test_migration_info_and_run(client, kv_store, legacy_records, repository):
    kv_store.set(RECIPES_KEY, json.dumps(legacy_records))

    info = client.get("/api/migration").json()
    assert info == {
        "is_completed": False,
        "legacy_recipes_count": 2,
        "has_legacy_data": True,
        "failed_attempts": 0,
    }

    response = client.post("/api/migration")
    assert response.status_code == 200
    assert response.json() == {"success": True, "migrated_count": 2, "error": None}
    assert kv_store.get(MIGRATION_KEY) == "true"
    assert len(client.get("/api/recipes").json()["recipes"]) == 2


def test_migration_failure_is_reported_in_body(client, kv_store, legacy_records, repository):
    kv_store.set(RECIPES_KEY, json.dumps(legacy_records))
    repository.fail("bulk_create", ErrorCode.CONNECTION, "offline")
    response = client.post("/api/migration")
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert client.get("/api/migration").json()["failed_attempts"] == 1


# --- auth ---


def test_session(client):
    response = client.get("/api/auth/session")
    assert response.status_code == 200
    data = response.json()
    assert data["is_authenticated"] is True
    assert data["user"]["id"] == "user-1"


def test_sign_out(client, auth, repository):
    repository.add("Soup")
    client.get("/api/recipes")
    response = client.post("/api/auth/sign-out")
    assert response.status_code == 200
    assert client.get("/api/auth/session").json()["is_authenticated"] is False
    assert client.get("/api/recipes").status_code == 401


def test_reorder_422_duplicate_positions(client, repository):
    a = repository.add("A")
    repository.add("B")
    response = client.put("/api/recipes/order", json=[{"id": a.id, "order_index": 1}])
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "validation"
    assert repository.rows[a.id].order_index == 0


def test_close_container_releases_session(monkeypatch, container, auth, kv_store, legacy_records):
    kv_store.set(RECIPES_KEY, json.dumps(legacy_records))
    monkeypatch.setattr(dependencies, "_container", container)

    run(dependencies.close_container())

    assert dependencies._container is None
    # the closed container no longer reacts to sign-in
    run(auth.sign_in_as(auth.current_user))
    assert kv_store.get(MIGRATION_KEY) is None
