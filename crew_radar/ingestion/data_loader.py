"""
Data ingestion module for the crew directory feed.
Provides functions to load directory snapshots from CSV files or the user
search service's HTTP API.
"""
import numpy as np
import pandas as pd
import logging
import requests
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

# feed column -> canonical column
COLUMN_ALIASES = {
    "userId": "id",
    "user_id": "id",
    "fullName": "full_name",
    "name": "full_name",
    "userType": "user_type",
    "shipName": "ship_name",
    "lat": "latitude",
    "lon": "longitude",
    "lng": "longitude",
    "deviceLatitude": "device_latitude",
    "deviceLongitude": "device_longitude",
    "locationUpdatedAt": "location_updated_at",
}

REQUIRED_COLUMNS = ["id", "latitude", "longitude"]


def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename known camelCase / short column names to the canonical ones."""
    renames = {src: dst for src, dst in COLUMN_ALIASES.items()
               if src in df.columns and dst not in df.columns}
    if renames:
        df = df.rename(columns=renames)
    return df


def _validate(df: pd.DataFrame, source: str) -> pd.DataFrame:
    missing_cols = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns in {source}: {missing_cols}")
    # ids like 007 must stay strings
    df["id"] = df["id"].map(lambda v: v if pd.isna(v) else str(v))

    # Coordinates are coerced, not rejected: bad rows are skipped later per user
    for col in ("latitude", "longitude", "device_latitude", "device_longitude"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    coords = df[["latitude", "longitude"]].to_numpy(dtype=float)
    unusable = int((~np.isfinite(coords).all(axis=1)).sum())
    if unusable:
        logger.warning(f"{unusable} rows in {source} have no usable canonical location")
    return df


def load_csv_data(csv_path: Union[str, Path]) -> pd.DataFrame:
    """
    Load a directory snapshot from a CSV file.

    The CSV is expected to have at least 'id', 'latitude' and 'longitude'
    columns; name, rank, ship, device fix etc. are optional.

    Raises:
        RuntimeError: If the file cannot be read
        ValueError: If required columns are missing
    """
    try:
        df = pd.read_csv(csv_path, dtype={"id": str, "userId": str, "user_id": str})
    except Exception as e:
        raise RuntimeError(f"Failed to read CSV file {csv_path}: {e}")
    df = _validate(standardize_columns(df), str(csv_path))
    logger.info(f"Loaded {len(df)} directory rows from {csv_path}")
    return df


def fetch_api_data(api_url: str, params: Optional[dict] = None, timeout: float = 10.0) -> pd.DataFrame:
    """
    Fetch a directory snapshot from the user search service.

    The endpoint returns a JSON list of user records (or an object with a
    'users' list).

    Raises:
        RuntimeError: If the request fails or the payload is not tabular
    """
    try:
        response = requests.get(api_url, params=params or {}, timeout=timeout)
        if response.status_code != 200:
            raise RuntimeError(f"API request failed with status {response.status_code}")
        data = response.json()
    except Exception as e:
        raise RuntimeError(f"Failed to fetch data from API {api_url}: {e}")

    if isinstance(data, dict):
        data = data.get("users", [])
    try:
        df = pd.DataFrame(data)
    except Exception as e:
        raise RuntimeError(f"API data could not be loaded into DataFrame: {e}")
    df = _validate(standardize_columns(df), api_url)
    logger.info(f"Fetched {len(df)} directory rows from {api_url}")
    return df


def to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame -> list of feed records with NaN cells dropped."""
    records = []
    for row in df.to_dict("records"):
        records.append({k: v for k, v in row.items() if not (isinstance(v, float) and pd.isna(v))})
    return records


def load_directory_records(source: str, is_api: bool = False) -> List[Dict[str, Any]]:
    """Unified loader: from CSV or API, returns plain feed records."""
    df = fetch_api_data(source) if is_api else load_csv_data(source)
    return to_records(df)
