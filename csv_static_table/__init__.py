"""Load, prune and re-serialize CSV files as buffer-backed tables."""

from csv_static_table.errors import CsvTableError, OverwriteRefused, ShapeError, TableIOError
from csv_static_table.flags import LoadFlags
from csv_static_table.table import CSVStaticTable

__version__ = "0.1.0"

__all__ = [
    "CSVStaticTable",
    "CsvTableError",
    "LoadFlags",
    "OverwriteRefused",
    "ShapeError",
    "TableIOError",
    "__version__",
]
