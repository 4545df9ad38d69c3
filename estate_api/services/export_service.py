# estate_api/services/export_service.py
import csv
import io
import json
from typing import Iterable, List

import openpyxl

from estate_api.common.errors import APIError
from estate_api.models.plucking import DailyPlucking

HEADERS = ["Date", "Employee ID", "Worker", "Type", "Kg Plucked", "Rate", "Amount", "Notes"]

MIME = {
    "csv": "text/csv",
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def export_rows(records: Iterable[DailyPlucking]) -> List[dict]:
    """Flatten daily records; plucking-only cells stay blank on advances."""
    out = []
    for r in records:
        w = r.worker
        adv = bool(r.is_advance)
        out.append({
            "Date": r.date.isoformat() if r.date else "",
            "Employee ID": w.employee_id if w else "",
            "Worker": w.full_name if w else "",
            "Type": "Advance" if adv else "Plucking",
            "Kg Plucked": None if adv else round(float(r.kg_plucked or 0), 1),
            "Rate": None if adv else round(float(r.rate_per_kg or 0), 2),
            "Amount": round(float(r.wage_earned or 0), 2),
            "Notes": r.notes or "",
        })
    return out


def generate_file(rows: List[dict], output_format: str, file_name_base: str) -> tuple[bytes, str, str]:
    """
    Render rows to bytes.
    Returns (file_bytes, full_file_name, mime_type)
    """
    fmt = (output_format or "csv").lower()

    if fmt == "csv":
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=HEADERS, quoting=csv.QUOTE_ALL)
        writer.writeheader()
        writer.writerows({k: ("" if v is None else v) for k, v in row.items()} for row in rows)
        content = output.getvalue().encode("utf-8")

    elif fmt == "json":
        content = json.dumps(rows, indent=2).encode("utf-8")

    elif fmt == "xlsx":
        output = io.BytesIO()
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Daily records"
        ws.append(HEADERS)
        for row in rows:
            ws.append([row.get(h) for h in HEADERS])
        wb.save(output)
        content = output.getvalue()

    else:
        raise APIError("FORMAT_NOT_SUPPORTED", f"Format {output_format} not supported", 400)

    return content, f"{file_name_base}.{fmt}", MIME[fmt]
