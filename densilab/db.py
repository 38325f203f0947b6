import logging
import os
import sqlite3
import sys
from datetime import datetime
from pathlib import Path

from densilab.services.equipment import Category, EquipmentRegistry
from densilab.services.validators import normalize_code

LOGGER = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when the equipment store rejects a write."""


def _resolve_db_path():
    override = os.getenv("DENSILAB_DB")
    if override:
        return Path(override).expanduser()
    # In a frozen executable, keep DB in a persistent user location.
    if getattr(sys, "frozen", False):
        root = Path(os.getenv("LOCALAPPDATA", str(Path.home()))) / "DensiLab" / "data"
        return root / "densilab.db"
    return Path(__file__).resolve().parent.parent / "data" / "densilab.db"


DB_PATH = _resolve_db_path()


def get_connection(db_path=None):
    path = Path(db_path) if db_path else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db(db_path=None):
    conn = get_connection(db_path)
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS capsules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT NOT NULL,
            code_key TEXT NOT NULL,
            tare_weight REAL NOT NULL,
            subtype TEXT NOT NULL DEFAULT '',
            description TEXT,
            status TEXT NOT NULL DEFAULT 'ativo',
            updated_at TEXT NOT NULL,
            UNIQUE(code_key, subtype)
        );
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS cylinders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            code TEXT NOT NULL,
            code_key TEXT NOT NULL,
            weight REAL NOT NULL,
            volume REAL NOT NULL,
            subtype TEXT NOT NULL DEFAULT '',
            description TEXT,
            status TEXT NOT NULL DEFAULT 'ativo',
            updated_at TEXT NOT NULL,
            UNIQUE(code_key, subtype)
        );
        """
    )

    cur.execute("CREATE INDEX IF NOT EXISTS idx_capsules_code ON capsules(code_key);")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_cylinders_code ON cylinders(code_key);")

    _migrate_cylinders(cur)
    _migrate_settings(cur)

    conn.commit()
    conn.close()
    LOGGER.debug("Equipment store ready at %s", db_path or DB_PATH)


def now_iso():
    return datetime.now().isoformat(timespec="seconds")


def get_app_settings(db_path=None):
    conn = get_connection(db_path)
    rows = conn.execute("SELECT key, value FROM app_settings ORDER BY key").fetchall()
    conn.close()
    return {r["key"]: r["value"] for r in rows}


def set_app_setting(key, value, db_path=None):
    conn = get_connection(db_path)
    conn.execute(
        """
        INSERT INTO app_settings (key, value)
        VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )
    conn.commit()
    conn.close()


def upsert_capsule(code, tare_weight, subtype="", description=None, status="ativo", db_path=None):
    key = normalize_code(code)
    if not key:
        raise StoreError("Capsule code is required.")
    if tare_weight is None or tare_weight < 0:
        raise StoreError(f"Capsule {code}: tare weight must be >= 0.")
    subtype = (subtype or "").strip().lower()
    conn = get_connection(db_path)
    conn.execute(
        """
        INSERT INTO capsules (code, code_key, tare_weight, subtype, description, status, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(code_key, subtype) DO UPDATE SET
            code = excluded.code,
            tare_weight = excluded.tare_weight,
            description = excluded.description,
            status = excluded.status,
            updated_at = excluded.updated_at
        """,
        (str(code).strip(), key, float(tare_weight), subtype, description, status, now_iso()),
    )
    conn.commit()
    conn.close()


def upsert_cylinder(
    code,
    weight,
    volume,
    subtype="",
    description=None,
    height=None,
    diameter=None,
    status="ativo",
    db_path=None,
):
    key = normalize_code(code)
    if not key:
        raise StoreError("Cylinder code is required.")
    if weight is None or weight < 0:
        raise StoreError(f"Cylinder {code}: weight must be >= 0.")
    if volume is None or volume <= 0:
        raise StoreError(f"Cylinder {code}: volume must be > 0.")
    subtype = (subtype or "").strip().lower()
    conn = get_connection(db_path)
    conn.execute(
        """
        INSERT INTO cylinders (code, code_key, weight, volume, subtype, description, height, diameter, status, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(code_key, subtype) DO UPDATE SET
            code = excluded.code,
            weight = excluded.weight,
            volume = excluded.volume,
            description = excluded.description,
            height = excluded.height,
            diameter = excluded.diameter,
            status = excluded.status,
            updated_at = excluded.updated_at
        """,
        (
            str(code).strip(),
            key,
            float(weight),
            float(volume),
            subtype,
            description,
            height,
            diameter,
            status,
            now_iso(),
        ),
    )
    conn.commit()
    conn.close()


def set_equipment_status(category, code, status, subtype=None, db_path=None):
    table = _table(category)
    sql = f"UPDATE {table} SET status = ?, updated_at = ? WHERE code_key = ?"
    params = [status, now_iso(), normalize_code(code)]
    if subtype is not None:
        sql += " AND subtype = ?"
        params.append(subtype.strip().lower())
    conn = get_connection(db_path)
    changed = conn.execute(sql, params).rowcount
    conn.commit()
    conn.close()
    return changed


def list_capsules(active_only=False, db_path=None):
    return _list("capsules", active_only, db_path)


def list_cylinders(active_only=False, db_path=None):
    return _list("cylinders", active_only, db_path)


def load_registry(db_path=None):
    """Fresh snapshot of the active equipment; callers swap it in whole."""
    registry = EquipmentRegistry.from_snapshot(
        capsules=list_capsules(active_only=True, db_path=db_path),
        cylinders=list_cylinders(active_only=True, db_path=db_path),
    )
    LOGGER.info("Loaded equipment registry: %d active items", len(registry))
    return registry


def _list(table, active_only, db_path):
    sql = f"SELECT * FROM {table}"
    if active_only:
        sql += " WHERE status = 'ativo'"
    sql += " ORDER BY code_key, subtype"
    conn = get_connection(db_path)
    rows = [dict(r) for r in conn.execute(sql).fetchall()]
    conn.close()
    return rows


def _table(category):
    return "capsules" if Category.parse(category) == Category.CAPSULE else "cylinders"


def _migrate_cylinders(cur):
    cols = [r["name"] for r in cur.execute("PRAGMA table_info(cylinders)").fetchall()]
    if "height" not in cols:
        cur.execute("ALTER TABLE cylinders ADD COLUMN height REAL;")
    if "diameter" not in cols:
        cur.execute("ALTER TABLE cylinders ADD COLUMN diameter REAL;")


def _migrate_settings(cur):
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT
        );
        """
    )
