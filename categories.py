from typing import Optional

UNCATEGORIZED = "Uncategorized"


def normalize_category(name: Optional[str]) -> str:
    """Comparison key for category names.

    Every component that matches a transaction category against an allocation
    or groups by category goes through this function, so "Groceries",
    " groceries" and "GROCERIES " are the same category everywhere.
    """
    return (name or "").strip().lower()


def category_label(name: Optional[str]) -> str:
    label = (name or "").strip()
    return label or UNCATEGORIZED


def category_key(name: Optional[str]) -> str:
    # Blank names group under the same key as an explicit "Uncategorized".
    return normalize_category(category_label(name))
