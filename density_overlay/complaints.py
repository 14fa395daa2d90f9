# density_overlay/complaints.py
from __future__ import annotations
from typing import Dict, List, Optional
import logging
import os
import sqlite3

import pandas as pd

from .config import get_config
from .points import GeoPoint

log = logging.getLogger("ComplaintMap")

LAT_COLUMNS = ("latitude", "lat", "Lat")
LON_COLUMNS = ("longitude", "lng", "lon", "Lon")
CSV_EXTENSIONS = (".csv", ".txt")
SQLITE_EXTENSIONS = (".db", ".sqlite", ".sqlite3")


def _first_column(df: pd.DataFrame, names) -> Optional[str]:
    for c in names:
        if c in df.columns:
            return c
    return None


def urgency_weight(urgency, weights: Optional[Dict[str, float]] = None,
                   default: Optional[float] = None) -> float:
    """critical -> 1.0, high -> 0.7, anything else -> default (0.4)."""
    cfg = get_config()
    weights = cfg.urgency_weights if weights is None else weights
    default = cfg.default_weight if default is None else default
    key = str(urgency or "").strip().lower()
    return float(weights.get(key, default))


def points_from_complaints(df: pd.DataFrame,
                           weights: Optional[Dict[str, float]] = None,
                           default: Optional[float] = None) -> List[GeoPoint]:
    """Turn complaint rows into weighted points.

    Rows with a missing or zero latitude/longitude are treated as not located
    and skipped. Range checks are left to the PointStore.
    """
    if df is None or df.empty:
        return []
    lat_col = _first_column(df, LAT_COLUMNS)
    lon_col = _first_column(df, LON_COLUMNS)
    if lat_col is None or lon_col is None:
        log.warning("Complaint data has no latitude/longitude columns: %s", list(df.columns))
        return []

    out = pd.DataFrame({
        "lat": pd.to_numeric(df[lat_col], errors="coerce"),
        "lon": pd.to_numeric(df[lon_col], errors="coerce"),
    })
    if "urgency" in df.columns:
        out["w"] = df["urgency"].map(lambda u: urgency_weight(u, weights, default))
    else:
        out["w"] = urgency_weight(None, weights, default)

    out = out.dropna(subset=["lat", "lon"])
    out = out[(out["lat"] != 0) & (out["lon"] != 0)]
    return [GeoPoint(float(r.lat), float(r.lon), float(r.w)) for r in out.itertuples(index=False)]


def is_sqlite_path(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in SQLITE_EXTENSIONS


def _connect(path: str) -> sqlite3.Connection:
    # sqlite3.connect would create an empty database for a missing path
    if not os.path.isfile(path):
        raise FileNotFoundError(path)
    return sqlite3.connect(path)


def list_tables(path: str) -> List[str]:
    """User tables and views of a SQLite export, sorted by name."""
    conn = _connect(path)
    try:
        cur = conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [r[0] for r in cur.fetchall()]
    finally:
        conn.close()


def load_complaints(path: str, table: str = "complaints") -> pd.DataFrame:
    """Read an exported complaints file (.csv or SQLite) into a DataFrame.

    For SQLite the table must be listed in ``sqlite_master``, otherwise ValueError.
    """
    ext = os.path.splitext(path)[1].lower()
    if ext in CSV_EXTENSIONS:
        return pd.read_csv(path)
    if ext in SQLITE_EXTENSIONS:
        if table not in list_tables(path):
            raise ValueError(f"No table named {table!r} in {os.path.basename(path)}")
        quoted = '"' + table.replace('"', '""') + '"'
        conn = _connect(path)
        try:
            return pd.read_sql_query(f"SELECT * FROM {quoted}", conn)
        finally:
            conn.close()
    raise ValueError(f"Unsupported complaints file type: {ext or path}")
