"""
Legacy recipe validation utilities.

Used by the migration engine and the validate_legacy CLI script.
"""

from pydantic import ValidationError

from recipevault.models import LegacyRecipe


def validate_legacy_record(record: object) -> tuple[LegacyRecipe | None, list[dict]]:
    """
    Validate a single legacy record.

    Returns:
        Tuple of (LegacyRecipe instance or None, list of error dicts).
    """
    if not isinstance(record, dict):
        return None, [
            {
                "loc": ("record",),
                "msg": f"Each item must be an object, got {type(record).__name__}",
                "type": "type_error",
            }
        ]

    try:
        return LegacyRecipe.model_validate(record), []
    except ValidationError as e:
        errors = []
        for err in e.errors():
            errors.append(
                {
                    "loc": ("record",) + tuple(err["loc"]),
                    "msg": err["msg"],
                    "type": err.get("type", "value_error"),
                }
            )
        return None, errors


def validate_legacy_records(
    records: list,
) -> tuple[list[LegacyRecipe], list[dict]]:
    """
    Validate all legacy records, collecting every error.

    Returns:
        Tuple of (valid_recipes, all_errors). Each error carries the record
        index, id and name for reporting.
    """
    valid: list[LegacyRecipe] = []
    all_errors: list[dict] = []

    for i, item in enumerate(records):
        recipe, errs = validate_legacy_record(item)
        if errs:
            for e in errs:
                err_copy = dict(e)
                err_copy["index"] = i
                err_copy["recipe_id"] = item.get("id", "?") if isinstance(item, dict) else "?"
                err_copy["recipe_name"] = item.get("name", "<no name>") if isinstance(item, dict) else "<no name>"
                all_errors.append(err_copy)
        elif recipe:
            valid.append(recipe)

    return valid, all_errors


def summarize_errors(errors: list[dict]) -> str:
    """One-line summary suitable for a MigrationResult error."""
    indexes = sorted({e.get("index") for e in errors if e.get("index") is not None})
    shown = ", ".join(str(i) for i in indexes[:5])
    more = "" if len(indexes) <= 5 else f" (+{len(indexes) - 5} more)"
    return f"Invalid legacy recipes at index {shown}{more}"
