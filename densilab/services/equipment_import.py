"""Bulk import of capsules and cylinders from equipment sheets (.xlsx / .csv)."""
from __future__ import annotations

import csv
import logging
import pathlib
from typing import Any

from openpyxl import load_workbook

from densilab import db
from densilab.services.equipment import Category
from densilab.services.validators import normalize_code, optional_number

LOGGER = logging.getLogger(__name__)


class EquipmentImportError(RuntimeError):
    """Raised when an equipment sheet cannot be imported."""


_COLUMN_MAP = {
    "code": "code",
    "codigo": "code",
    "código": "code",
    "category": "category",
    "categoria": "category",
    "equipamento": "category",
    "subtype": "subtype",
    "subtipo": "subtype",
    "tipo": "subtype",
    "material": "subtype",
    "tare weight": "tare_weight",
    "tare": "tare_weight",
    "weight": "weight",
    "peso": "weight",
    "volume": "volume",
    "height": "height",
    "altura": "height",
    "diameter": "diameter",
    "diametro": "diameter",
    "diâmetro": "diameter",
    "description": "description",
    "descricao": "description",
    "descrição": "description",
    "status": "status",
}


def import_equipment(file_path, *, category=None, sheet_name=None, db_path=None) -> dict[str, int]:
    """
    Upsert every usable row of an equipment sheet into the store.

    Rows without a category column take `category`, or are treated as
    cylinders when they carry a volume and as capsules otherwise.
    """
    path_obj = pathlib.Path(file_path)
    if not path_obj.exists():
        raise EquipmentImportError(f"Equipment file does not exist: {path_obj}")

    suffix = path_obj.suffix.lower()
    if suffix == ".csv":
        rows = _read_csv(path_obj)
    elif suffix in (".xlsx", ".xlsm"):
        rows = _read_xlsx(path_obj, sheet_name)
    else:
        raise EquipmentImportError(f"Unsupported equipment format: {path_obj.suffix}")

    default_category = Category.parse(category) if category else None
    counts = {"capsules": 0, "cylinders": 0, "skipped": 0}
    for line_no, row in rows:
        item = _map_row(row)
        if not normalize_code(item.get("code")):
            LOGGER.warning("%s:%d skipped: missing code", path_obj.name, line_no)
            counts["skipped"] += 1
            continue
        kind = _row_category(item, default_category)
        if kind is None:
            LOGGER.warning("%s:%d skipped: unknown category %r", path_obj.name, line_no, item.get("category"))
            counts["skipped"] += 1
            continue
        try:
            if kind == Category.CAPSULE:
                _store_capsule(item, db_path)
                counts["capsules"] += 1
            else:
                _store_cylinder(item, db_path)
                counts["cylinders"] += 1
        except db.StoreError as exc:
            LOGGER.warning("%s:%d skipped: %s", path_obj.name, line_no, exc)
            counts["skipped"] += 1

    LOGGER.info(
        "Imported %d capsules and %d cylinders from %s (%d rows skipped)",
        counts["capsules"],
        counts["cylinders"],
        path_obj.name,
        counts["skipped"],
    )
    return counts


def _store_capsule(item, db_path):
    # Capsule sheets usually carry the tare under a plain "peso"/"weight" column.
    tare = optional_number(item.get("tare_weight"))
    if tare is None:
        tare = optional_number(item.get("weight"))
    db.upsert_capsule(
        item["code"],
        tare,
        subtype=item.get("subtype") or "",
        description=item.get("description") or None,
        status=_status(item),
        db_path=db_path,
    )


def _store_cylinder(item, db_path):
    db.upsert_cylinder(
        item["code"],
        optional_number(item.get("weight")),
        optional_number(item.get("volume")),
        subtype=item.get("subtype") or "",
        description=item.get("description") or None,
        height=optional_number(item.get("height")),
        diameter=optional_number(item.get("diameter")),
        status=_status(item),
        db_path=db_path,
    )


def _status(item):
    return (item.get("status") or "ativo").strip().lower()


def _row_category(item, default_category):
    raw = (item.get("category") or "").strip()
    if not raw and (item.get("subtype") or "").strip().lower() in ("capsula", "cilindro"):
        # Legacy unified sheets use "tipo" for the category itself.
        raw = item.pop("subtype")
    if raw:
        try:
            return Category.parse(raw)
        except ValueError:
            return None
    if default_category is not None:
        return default_category
    return Category.CYLINDER if optional_number(item.get("volume")) else Category.CAPSULE


def _map_row(row: dict[str, Any]) -> dict[str, str]:
    out: dict[str, str] = {}
    for header, value in row.items():
        field = _COLUMN_MAP.get(_normalize_header(header))
        if field is None or field in out:
            continue
        if isinstance(value, float) and value.is_integer() and field == "code":
            value = int(value)
        out[field] = "" if value is None else str(value).strip()
    return out


def _normalize_header(value) -> str:
    return " ".join(str(value or "").strip().lower().replace("_", " ").split())


def _read_csv(path: pathlib.Path) -> list[tuple[int, dict[str, Any]]]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None:
            raise EquipmentImportError(f"Missing header row in {path}")
        return [(idx, row) for idx, row in enumerate(reader, start=2)]


def _read_xlsx(path: pathlib.Path, sheet_name: str | None) -> list[tuple[int, dict[str, Any]]]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet_name:
            if sheet_name not in wb.sheetnames:
                raise EquipmentImportError(f"Sheet '{sheet_name}' not found in {path}")
            ws = wb[sheet_name]
        else:
            ws = wb.worksheets[0]
        values = list(ws.iter_rows(values_only=True))
    finally:
        wb.close()

    if not values:
        return []
    headers = [str(h) if h is not None else "" for h in values[0]]
    rows = []
    for idx, raw in enumerate(values[1:], start=2):
        if raw is None or all(v is None or str(v).strip() == "" for v in raw):
            continue
        rows.append((idx, dict(zip(headers, raw))))
    return rows
