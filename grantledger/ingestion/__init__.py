"""Mini README: Spreadsheet ingestion for grants and budgets.

The ``spreadsheet`` module reads ``.xlsx`` and ``.csv`` files into
header-keyed rows; ``normalizer`` maps those rows onto budget categories
(flat import for one grant) or whole grants with their budgets
(structured import) before handing them to the ledger store.
"""

from .normalizer import (
    SEMANTIC_BUDGET_COLUMNS,
    TARGET_CATEGORIES,
    ColumnMapping,
    ImportResult,
    distinct_category_values,
    import_budget_file,
    import_grants_from_excel,
    normalize_category_rows,
    normalize_date,
    normalize_grant_row,
    parse_amount,
    preview_category_rows,
)
from .spreadsheet import available_columns, read_rows

__all__ = [
    "ColumnMapping",
    "ImportResult",
    "SEMANTIC_BUDGET_COLUMNS",
    "TARGET_CATEGORIES",
    "available_columns",
    "distinct_category_values",
    "import_budget_file",
    "import_grants_from_excel",
    "normalize_category_rows",
    "normalize_date",
    "normalize_grant_row",
    "parse_amount",
    "preview_category_rows",
    "read_rows",
]
