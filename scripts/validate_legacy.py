#!/usr/bin/env python3
"""
Validation script for legacy (pre-account) recipe exports.

Checks a JSON array of locally stored recipes against the LegacyRecipe
schema before it is loaded into the legacy store for migration.

Usage:
    python scripts/validate_legacy.py flavourvault_recipes.json
    python scripts/validate_legacy.py path/to/export.json [more.json ...]

Exit codes:
    0 - All records pass validation
    1 - Validation failed (schema errors or invalid JSON)
"""

import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from recipevault.validation import validate_legacy_record


def validate_legacy_file(file_path: Path) -> tuple[list[dict], list[str]]:
    """
    Validate a JSON file against the LegacyRecipe schema.

    Returns:
        Tuple of (validation_errors, error_messages).
    """
    errors: list[dict] = []
    messages: list[str] = []

    if not file_path.exists():
        messages.append(f"Error: File not found: {file_path}")
        return [{"file": str(file_path), "error": "File not found"}], messages

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as e:
        messages.append(f"Error: Cannot read file: {e}")
        return [{"file": str(file_path), "error": str(e)}], messages

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        messages.append(f"Error: Invalid JSON at line {e.lineno}: {e.msg}")
        return [{"file": str(file_path), "error": f"Invalid JSON: {e.msg}"}], messages

    if not isinstance(data, list):
        messages.append("Error: Root must be a JSON array of recipes")
        return [{"file": str(file_path), "error": "Root must be an array"}], messages

    for i, item in enumerate(data):
        _, errs = validate_legacy_record(item)
        if errs:
            recipe_id = item.get("id", "?") if isinstance(item, dict) else "?"
            name = item.get("name", "<no name>") if isinstance(item, dict) else "<no name>"
            err_details = [f"  - {e.get('loc', '?')}: {e['msg']}" for e in errs]
            messages.append(
                f"Recipe at index {i} (id={recipe_id}, name={name!r}):\n"
                + "\n".join(err_details)
            )
            errors.append({"index": i, "id": recipe_id, "name": name, "errors": errs})

    return errors, messages


def main() -> int:
    if len(sys.argv) < 2:
        print(__doc__, file=sys.stderr)
        return 1

    all_errors: list[dict] = []
    for arg in sys.argv[1:]:
        path = Path(arg)
        if not path.is_absolute():
            path = Path.cwd() / path
        errs, msgs = validate_legacy_file(path)
        all_errors.extend(errs)
        for msg in msgs:
            print(msg)

    if all_errors:
        print("\nValidation failed.", file=sys.stderr)
        return 1

    print("All legacy recipes passed schema validation.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
