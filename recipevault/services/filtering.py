"""
Recipe filter/search engine.

filter_recipes() is pure: the same recipes and criteria always give the same
list, and the input sequence is never modified. Stages run in a fixed order,
each narrowing the previous stage's output:

1. text      - substring match on the name; when searching ingredients, an
               exact (case-insensitive) match on any ingredient name
2. favourite - only favourites when show_favourites_only is set
3. tags      - at least one tag in common with selected_tags (OR)
4. sort      - stable, case- and accent-insensitive, locale-aware by name
"""

import locale
import logging
import unicodedata
from typing import Iterable, List, Sequence, Tuple

from recipevault.models import Recipe, RecipeFilters

logger = logging.getLogger(__name__)


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _name_key(recipe: Recipe) -> Tuple[str, str]:
    """Accent-insensitive primary key, accented form as the tie-break."""
    folded = recipe.name.casefold()
    base = _strip_accents(folded)
    try:
        return locale.strxfrm(base), folded
    except (OSError, ValueError) as e:
        logger.debug("Locale collation unavailable, using casefold: %s", e)
        return base, folded


def matches_search_term(recipe: Recipe, term: str, search_in_ingredients: bool) -> bool:
    """`term` must already be trimmed and lowercased."""
    if term in recipe.name.lower():
        return True
    if search_in_ingredients:
        return any(
            ingredient.name.strip().lower() == term
            for ingredient in recipe.ingredients
        )
    return False


def apply_text_filter(recipes: Iterable[Recipe], filters: RecipeFilters) -> List[Recipe]:
    term = filters.search_term.strip().lower()
    if not term:
        return list(recipes)
    return [
        r
        for r in recipes
        if matches_search_term(r, term, filters.search_in_ingredients)
    ]


def apply_favourite_filter(recipes: Iterable[Recipe], filters: RecipeFilters) -> List[Recipe]:
    if not filters.show_favourites_only:
        return list(recipes)
    return [r for r in recipes if r.is_favourite]


def apply_tag_filter(recipes: Iterable[Recipe], filters: RecipeFilters) -> List[Recipe]:
    if not filters.selected_tags:
        return list(recipes)
    wanted = set(filters.selected_tags)
    return [r for r in recipes if wanted.intersection(r.tags)]


def sort_by_name(recipes: Iterable[Recipe]) -> List[Recipe]:
    return sorted(recipes, key=_name_key)


def filter_recipes(recipes: Sequence[Recipe], filters: RecipeFilters) -> List[Recipe]:
    """Compute the visible subset of `recipes` for the given criteria."""
    result = apply_text_filter(recipes, filters)
    result = apply_favourite_filter(result, filters)
    result = apply_tag_filter(result, filters)
    return sort_by_name(result)
