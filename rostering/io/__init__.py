"""I/O utilities for CSV import/export."""

from .export_csv import export_roster_entries_csv, export_roster_grid_csv, roster_grid_frame
from .import_csv import (
    import_employees_csv,
    import_holidays_csv,
    import_leaves_csv,
    import_rules_csv,
    import_shift_catalog_csv,
)

__all__ = [
    "import_employees_csv",
    "import_shift_catalog_csv",
    "import_holidays_csv",
    "import_leaves_csv",
    "import_rules_csv",
    "export_roster_grid_csv",
    "export_roster_entries_csv",
    "roster_grid_frame",
]
