"""
Module: inventory_kernel.db.triggers
Responsibility: Installing and verifying database-level immutability
    triggers for the movement log.  Complements the ORM listeners in
    db/immutability.py, which raw SQL and bulk statements bypass.
Architecture position: Kernel > DB.  Imports nothing from models/,
    services/ or selectors/.

Trigger SQL lives in ``db/sql/<dialect>/``; files are applied in name order,
one ``execute`` per file.  SQLite files hold exactly one statement each.

Failure modes:
    - PostgreSQL RAISE EXCEPTION / SQLite RAISE(ABORT) on a blocked write,
      surfacing as IntegrityError or OperationalError from SQLAlchemy.
    - FileNotFoundError if the sql/ directory is missing from the install.
    - ValueError for a dialect with no trigger SQL.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

SQL_DIR = Path(__file__).parent / "sql"

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_inventory_movement_immutability_update",
    "trg_inventory_movement_immutability_delete",
]


def _dialect_dir(engine: Engine) -> Path:
    path = SQL_DIR / engine.dialect.name
    if not path.is_dir():
        raise ValueError(f"No trigger SQL for dialect '{engine.dialect.name}'")
    return path


def _trigger_files(engine: Engine) -> list[Path]:
    return sorted(
        p for p in _dialect_dir(engine).glob("*.sql") if p.name != DROP_FILE
    )


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the movement-log triggers (idempotent).

    Preconditions: tables exist.
    """
    files = _trigger_files(engine)
    with engine.connect() as conn:
        for path in files:
            conn.execute(text(path.read_text(encoding="utf-8")))
        conn.commit()
    logger.info(
        "immutability_triggers_installed",
        extra={"dialect": engine.dialect.name, "files": [p.name for p in files]},
    )


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the movement-log triggers.

    WARNING: only for migrations or tests that must rewrite history.
    """
    with engine.connect() as conn:
        if engine.dialect.name == "postgresql":
            drop_sql = (_dialect_dir(engine) / DROP_FILE).read_text(encoding="utf-8")
            conn.execute(text(drop_sql))
        else:
            for name in ALL_TRIGGER_NAMES:
                conn.execute(text(f"DROP TRIGGER IF EXISTS {name}"))
        conn.commit()
    logger.warning(
        "immutability_triggers_removed",
        extra={"dialect": engine.dialect.name},
    )


def get_installed_triggers(engine: Engine) -> list[str]:
    """Return the names of installed movement-log triggers."""
    if engine.dialect.name == "postgresql":
        query = text("SELECT tgname FROM pg_trigger ORDER BY tgname")
    else:
        query = text(
            "SELECT name FROM sqlite_master WHERE type = 'trigger' ORDER BY name"
        )
    with engine.connect() as conn:
        installed = [row[0] for row in conn.execute(query)]
    return [name for name in installed if name in ALL_TRIGGER_NAMES]


def triggers_installed(engine: Engine) -> bool:
    """True iff every trigger in ALL_TRIGGER_NAMES is present."""
    return set(get_installed_triggers(engine)) == set(ALL_TRIGGER_NAMES)
