"""
Public ingestion interface – re-export helpers with *stable* names
so tests and main() can import from `crew_radar.ingestion`.
"""

from .data_loader import (
    load_csv_data,
    fetch_api_data,
    load_directory_records,
    standardize_columns,
    to_records,
)

__all__ = [
    "load_csv_data", "fetch_api_data", "load_directory_records",
    "standardize_columns", "to_records",
]
