from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import List, Optional
import uuid

# Constants
MAX_TAGS = 5
MIN_SCALE = 1
MAX_SCALE = 10
MAX_NAME_LENGTH = 200

# Client-side ids for rows that were never persisted
UNSAVED_ID_PREFIX = "new-"


def normalize_tags(tags: List[str]) -> List[str]:
    """Trim, drop blanks and duplicates (first wins), cap at MAX_TAGS."""
    result: List[str] = []
    for tag in tags or []:
        cleaned = str(tag).strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
        if len(result) == MAX_TAGS:
            break
    return result


def add_tag(tags: List[str], tag: str) -> List[str]:
    """Return tags with `tag` appended. Blank, duplicate or over-cap adds are no-ops."""
    cleaned = tag.strip()
    if not cleaned or cleaned in tags or len(tags) >= MAX_TAGS:
        return list(tags)
    return [*tags, cleaned]


def remove_tag(tags: List[str], tag: str) -> List[str]:
    return [t for t in tags if t != tag]


def is_unsaved_id(recipe_id: str) -> bool:
    return recipe_id.startswith(UNSAVED_ID_PREFIX)


class Ingredient(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    amount: float = Field(default=0, ge=0)
    unit: str = ""


def scale_ingredients(ingredients: List[Ingredient], factor: int) -> List[Ingredient]:
    """
    Multiply every ingredient amount by `factor`.
    Order and ids are preserved; the input list is not modified.
    """
    if not MIN_SCALE <= factor <= MAX_SCALE:
        raise ValueError(f"Scale factor must be between {MIN_SCALE} and {MAX_SCALE}")
    return [
        ingredient.model_copy(update={"amount": ingredient.amount * factor})
        for ingredient in ingredients
    ]


class Recipe(BaseModel):
    id: str
    user_id: Optional[str] = None
    name: str
    servings: int = Field(default=1, ge=1)
    notes: str = ""
    ingredients: List[Ingredient] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    is_favourite: bool = False
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    order_index: int = 0

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value: Optional[List[str]]) -> List[str]:
        return normalize_tags(value or [])

    @field_validator("ingredients", mode="before")
    @classmethod
    def default_ingredients(cls, value):
        return value or []

    @field_validator("notes", mode="before")
    @classmethod
    def default_notes(cls, value):
        return value or ""

    def scaled(self, factor: int) -> "Recipe":
        """Copy of this recipe with ingredient amounts and servings multiplied."""
        return self.model_copy(
            update={
                "ingredients": scale_ingredients(self.ingredients, factor),
                "servings": self.servings * factor,
            }
        )


class RecipeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)
    servings: int = Field(default=1, ge=1)
    notes: str = ""
    ingredients: List[Ingredient] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    is_favourite: bool = False
    order_index: Optional[int] = None

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value: Optional[List[str]]) -> List[str]:
        return normalize_tags(value or [])


class RecipeDraft(RecipeCreate):
    """A recipe that exists only on the client. Saving it always creates a row."""


class RecipeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_NAME_LENGTH)
    servings: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None
    ingredients: Optional[List[Ingredient]] = None
    tags: Optional[List[str]] = None
    is_favourite: Optional[bool] = None
    order_index: Optional[int] = None

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return None if value is None else normalize_tags(value)


class OrderUpdate(BaseModel):
    id: str
    order_index: int


class RecipeFilters(BaseModel):
    search_term: str = ""
    selected_tags: List[str] = Field(default_factory=list)
    show_favourites_only: bool = False
    search_in_ingredients: bool = False

    @property
    def has_active_filters(self) -> bool:
        return (
            len(self.selected_tags) > 0
            or self.show_favourites_only
            or self.search_in_ingredients
        )


class LegacyRecipe(BaseModel):
    """Recipe shape written by the pre-account local storage mode."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    servings: int = Field(ge=1)
    notes: str = ""
    ingredients: List[Ingredient] = Field(default_factory=list)
    created_at: int = Field(default=0, alias="createdAt")
    order: int = 0


class MigrationResult(BaseModel):
    success: bool
    migrated_count: int = 0
    error: Optional[str] = None


class MigrationInfo(BaseModel):
    is_completed: bool
    legacy_recipes_count: int
    has_legacy_data: bool
    failed_attempts: int = 0


class AuthUser(BaseModel):
    id: str
    email: str = ""
    created_at: Optional[str] = None
