"""Aggregate complaint reports rendered as JSON-ready dicts or CSV."""
from __future__ import annotations

import csv
import io
from datetime import date
from typing import Dict, Iterable, List, Optional

from utils.complaint_store import ComplaintStore

CSV_HEADER = "Entidad,Total Quejas,Fecha Reporte"
CSV_CONTENT_TYPE = "text/csv; charset=utf-8"


def entity_report(store: ComplaintStore) -> List[Dict]:
    return store.aggregate_by_entity()


def collect_statistics(store: ComplaintStore, months: int = 12) -> Dict:
    return {
        "general": store.general_stats(),
        "by_status": store.aggregate_by_status(),
        "by_entity": store.aggregate_by_entity(),
        "by_month": store.aggregate_by_month(months),
    }


def render_entity_csv(rows: Iterable[Dict], report_date: Optional[date] = None) -> str:
    """One line per entity as ``"name",count,"date"`` under a fixed header."""
    stamp = (report_date or date.today()).isoformat()
    buffer = io.StringIO()
    buffer.write(CSV_HEADER + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for row in rows:
        writer.writerow([str(row["entity_name"]), int(row["count"]), stamp])
    return buffer.getvalue()


def csv_filename(report_date: Optional[date] = None) -> str:
    return f"complaints-report-{(report_date or date.today()).isoformat()}.csv"
