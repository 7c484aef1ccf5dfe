"""
Setu - Category Matching
Donations and expenses point at events by name, not by foreign key.
This module is the only place that decides when two names are "the same".
"""

# SQL-side equivalent of category_key(); use as `WHERE {CATEGORY_MATCH_SQL}`
# with the column name substituted and the already-keyed value as parameter.
CATEGORY_MATCH_SQL = "lower(trim({column})) = ?"


def category_key(value) -> str:
    return str(value or "").strip().lower()


def match_clause(column: str = "category") -> str:
    return CATEGORY_MATCH_SQL.format(column=column)
