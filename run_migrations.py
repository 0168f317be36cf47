"""
Run schema migrations before the app starts.
Deploy startCommand runs: python run_migrations.py && uvicorn app.main:app ...
So every deploy brings the schema to Alembic head with no manual step.

Migrations must be idempotent (safe to run multiple times).
"""
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

load_dotenv()

from app.core.config import get_settings  # noqa: E402


def run() -> bool:
    root = Path(__file__).resolve().parent
    settings = get_settings()
    alembic_cfg = Config(str(root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(root / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", settings.sqlalchemy_database_url)
    print("▶ Upgrading database to head...")
    try:
        command.upgrade(alembic_cfg, "head")
    except Exception as e:
        print(f"❌ Migration failed: {e}")
        return False
    print("✅ Migrations completed")
    return True


if __name__ == "__main__":
    success = run()
    sys.exit(0 if success else 1)
