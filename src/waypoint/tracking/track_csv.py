"""CSV input for recorded tracks (replayed through the monitor by the CLI)."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from waypoint.core.time import epoch_ms_from_iso
from waypoint.domain.models import PositionSample

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("lat", "lng")


@dataclass(frozen=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_row(row: dict[str, str], timezone: str) -> PositionSample:
    raw_ms = (row.get("captured_at_ms") or "").strip()
    if raw_ms:
        captured_at_ms = int(raw_ms)
    else:
        captured_at_ms = epoch_ms_from_iso(row["timestamp"], timezone)
    return PositionSample(
        lat=float(row["lat"].strip()),
        lng=float(row["lng"].strip()),
        accuracy_m=float((row.get("accuracy_m") or "0").strip() or "0"),
        captured_at_ms=captured_at_ms,
    )


def load_track_csv(csv_path: str | Path, *, timezone: str = "UTC") -> tuple[list[PositionSample], CsvSummary]:
    """Load position samples in file order.

    Columns: `lat`, `lng`, and either `captured_at_ms` (epoch ms) or `timestamp`
    (ISO-8601; naive values get `timezone`). `accuracy_m` is optional.
    Broken rows are skipped and counted.
    """
    p = Path(csv_path)
    rows_total = 0
    parsed: list[PositionSample] = []

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = tuple(reader.fieldnames or ())
        missing = [c for c in REQUIRED_COLUMNS if c not in fieldnames]
        if not ("captured_at_ms" in fieldnames or "timestamp" in fieldnames):
            missing.append("captured_at_ms|timestamp")
        if missing:
            raise ValueError(f"CSV is missing required columns {missing}; found {list(fieldnames)}")

        for row in reader:
            rows_total += 1
            try:
                parsed.append(_parse_row(row, timezone))
            except (AttributeError, KeyError, ValueError, TypeError, ValidationError):
                continue

    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("Skipped %s unparsable CSV rows in %s", summary.rows_skipped, p)
    return parsed, summary
