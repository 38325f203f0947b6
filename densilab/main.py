"""Command-line entry point for the density test engine."""
from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import Any

from densilab import db
from densilab.config import ConfigError, parse_setting, resolve_settings, settings_payload
from densilab.logging_setup import configure_logging
from densilab.services.equipment import Category, match_payload, resolve
from densilab.services.equipment_import import EquipmentImportError, import_equipment
from densilab.services.records import TEST_KINDS, autofill_record, build_save_payload, record_from_payload

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="densilab")
    parser.add_argument("--config", help="Path to TOML/JSON config.")
    parser.add_argument("--db", help="Path to the SQLite equipment store.")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs in JSON format.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("db-init", help="Initialize/upgrade the equipment store")

    equipment = subparsers.add_parser("equipment", help="Equipment catalog utilities")
    equipment_sub = equipment.add_subparsers(dest="equipment_command", required=True)
    eq_import = equipment_sub.add_parser("import", help="Import capsules/cylinders from .xlsx/.csv")
    eq_import.add_argument("--file", required=True, help="Path to the equipment sheet.")
    eq_import.add_argument("--sheet", help="Sheet name for .xlsx import (default: first sheet).")
    eq_import.add_argument(
        "--category",
        choices=[c.value for c in Category],
        help="Category for rows without a category column.",
    )
    eq_list = equipment_sub.add_parser("list", help="List equipment as JSON")
    eq_list.add_argument("--category", choices=[c.value for c in Category])
    eq_list.add_argument("--active-only", action="store_true")
    eq_resolve = equipment_sub.add_parser("resolve", help="Resolve a typed equipment code")
    eq_resolve.add_argument("code")
    eq_resolve.add_argument("--category", choices=[c.value for c in Category])
    eq_resolve.add_argument("--subtype")

    compute = subparsers.add_parser("compute", help="Recalculate a test from a JSON payload")
    compute.add_argument("kind", choices=TEST_KINDS)
    compute.add_argument("--input", required=True, help="JSON file with the test form data.")
    compute.add_argument("--output", help="Write the save payload here instead of stdout.")
    compute.add_argument("--no-autofill", action="store_true", help="Do not fill tares/molds from the store.")

    config = subparsers.add_parser("config", help="Engine settings")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Print effective settings")
    config_set = config_sub.add_parser("set", help="Persist a setting in the store")
    config_set.add_argument("key")
    config_set.add_argument("value")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=args.json_logs)

    db_path = args.db
    db.init_db(db_path)

    try:
        settings = resolve_settings(args.config, db.get_app_settings(db_path))
    except ConfigError as exc:
        parser.error(str(exc))

    if args.command == "db-init":
        LOGGER.info("Equipment store initialized at %s", db_path or db.DB_PATH)
        return 0

    if args.command == "equipment":
        return _equipment(parser, args, db_path)

    if args.command == "compute":
        payload = _read_json(parser, args.input)
        try:
            record = record_from_payload(args.kind, payload)
        except ValueError as exc:
            parser.error(str(exc))
        if not args.no_autofill:
            record = autofill_record(record, db.load_registry(db_path))
        out = build_save_payload(
            record,
            real_density_ref=settings.real_density_ref,
            grain_density=settings.grain_density,
        )
        LOGGER.info("%s recalculated: %s", args.kind, out["status"])
        _write_json(out, args.output)
        return 0

    if args.command == "config":
        if args.config_command == "set":
            try:
                value = parse_setting(args.key, args.value)
            except ConfigError as exc:
                parser.error(str(exc))
            db.set_app_setting(args.key, str(value), db_path=db_path)
            LOGGER.info("Setting %s stored", args.key)
            return 0
        _write_json(settings_payload(settings), None)
        return 0

    parser.error(f"Command not implemented: {args.command}")
    return 2


def _equipment(parser, args, db_path) -> int:
    if args.equipment_command == "import":
        try:
            counts = import_equipment(args.file, category=args.category, sheet_name=args.sheet, db_path=db_path)
        except EquipmentImportError as exc:
            parser.error(str(exc))
        _write_json(counts, None)
        return 0

    if args.equipment_command == "list":
        out: dict[str, Any] = {}
        if args.category in (None, Category.CAPSULE.value):
            out["capsules"] = db.list_capsules(active_only=args.active_only, db_path=db_path)
        if args.category in (None, Category.CYLINDER.value):
            out["cylinders"] = db.list_cylinders(active_only=args.active_only, db_path=db_path)
        _write_json(out, None)
        return 0

    registry = db.load_registry(db_path)
    match = resolve(registry, args.code, preferred_category=args.category, preferred_subtype=args.subtype)
    _write_json(match_payload(match), None)
    return 0 if match.found else 1


def _read_json(parser, path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        parser.error(f"Cannot read {path}: {exc}")
    if not isinstance(data, dict):
        parser.error(f"{path} must contain a JSON object")
    return data


def _write_json(obj: Any, path: str | None) -> None:
    if not path:
        json.dump(obj, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")
        return
    out = pathlib.Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


if __name__ == "__main__":
    raise SystemExit(main())
