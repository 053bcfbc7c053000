from __future__ import annotations

import logging
import os
import zipfile
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import pandas as pd

from core.records import LineItem, parse_cost

logger = logging.getLogger(__name__)


DATA_DIR = Path(os.environ.get("CUR_DATA_DIR") or Path(__file__).resolve().parents[1])
FILE_GLOBS = ("*.csv", "*.csv.gz", "*.xlsx")
CUR_SHEET_NAME = 0


class CurReportError(Exception):
    """Raised when a record source cannot produce a CUR report."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class CurReport:
    line_items: Tuple[LineItem, ...] = ()
    aggregate: Dict[str, Any] = field(default_factory=dict)


class RecordSource(Protocol):
    def fetch_report(self) -> CurReport:
        ...


def get_source_files(data_dir: Optional[Path] = None, globs: Iterable[str] = FILE_GLOBS) -> List[Path]:
    base = Path(data_dir) if data_dir is not None else DATA_DIR
    found = set()
    for pattern in globs:
        found.update(base.glob(pattern))
    return sorted(found)


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((str(f), f.stat().st_mtime) for f in files)


def read_cur_file(path: Path) -> pd.DataFrame:
    """Read one CUR export, keeping every cell as text so costs stay as exported."""
    name = path.name.lower()
    if name.endswith(".xlsx"):
        return pd.read_excel(path, sheet_name=CUR_SHEET_NAME, dtype=str)
    return pd.read_csv(path, dtype=str, keep_default_na=True)


def frame_to_line_items(df: pd.DataFrame) -> List[LineItem]:
    if df.empty:
        return []
    df = df.loc[:, ~df.columns.duplicated()]
    df = df.astype(object).where(df.notna(), None)
    return [LineItem.from_mapping(row) for row in df.to_dict(orient="records")]


def summarize_line_items(items: Iterable[LineItem]) -> Dict[str, Any]:
    items = list(items)
    return {
        "line_item_count": len(items),
        "total_cost": round(sum(parse_cost(item.cost) for item in items), 2),
        "product_codes": sorted({str(item.product_code) for item in items if item.product_code is not None}),
    }


@lru_cache(maxsize=4)
def _load_cur_report_cached(files_sig: Tuple[Tuple[str, float], ...]) -> CurReport:
    items: List[LineItem] = []
    for name, _ in files_sig:
        df = read_cur_file(Path(name))
        logger.debug("Read %d rows from %s", len(df), name)
        items.extend(frame_to_line_items(df))
    aggregate = summarize_line_items(items)
    aggregate["files"] = [Path(name).name for name, _ in files_sig]
    return CurReport(line_items=tuple(items), aggregate=aggregate)


class FileRecordSource:
    """Reads CUR exports (CSV, gzipped CSV or XLSX) from a directory."""

    def __init__(self, data_dir: Optional[Path] = None, globs: Iterable[str] = FILE_GLOBS) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
        self.globs = tuple(globs)

    def fetch_report(self) -> CurReport:
        if not self.data_dir.is_dir():
            raise CurReportError(f"CUR data directory not found: {self.data_dir}")
        files = get_source_files(self.data_dir, self.globs)
        if not files:
            raise CurReportError(f"No CUR export files found in {self.data_dir}")
        try:
            return _load_cur_report_cached(file_signature(files))
        except (OSError, ValueError, zipfile.BadZipFile, pd.errors.ParserError) as exc:
            raise CurReportError(f"Failed to read CUR exports: {exc}") from exc


class StaticRecordSource:
    """Serves a fixed set of records; used for embedding and tests."""

    def __init__(self, records: Iterable[Mapping[str, Any] | LineItem], aggregate: Optional[Dict[str, Any]] = None) -> None:
        self.line_items = tuple(r if isinstance(r, LineItem) else LineItem.from_mapping(r) for r in records)
        self.aggregate = aggregate if aggregate is not None else summarize_line_items(self.line_items)

    def fetch_report(self) -> CurReport:
        return CurReport(line_items=self.line_items, aggregate=dict(self.aggregate))


def get_record_source() -> RecordSource:
    return FileRecordSource()
