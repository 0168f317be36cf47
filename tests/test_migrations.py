"""Tests for the Alembic migration chain."""

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def alembic_config(connection) -> Config:
    config = Config()
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.attributes["connection"] = connection
    return config


def test_upgrade_creates_schema(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'migrated.db'}")
    try:
        with engine.begin() as connection:
            command.upgrade(alembic_config(connection), "head")

        inspector = inspect(engine)
        assert {"users", "articles", "alembic_version"} <= set(inspector.get_table_names())
        user_columns = {c["name"] for c in inspector.get_columns("users")}
        assert {"email", "hashed_password", "plan_tier", "used_tokens"} <= user_columns
        assert "ix_articles_user_id" in {i["name"] for i in inspector.get_indexes("articles")}
    finally:
        engine.dispose()


def test_upgrade_is_safe_over_tables_created_at_startup(engine):
    # Startup runs create_all before migrating
    with engine.begin() as connection:
        command.upgrade(alembic_config(connection), "head")
    with engine.begin() as connection:
        command.upgrade(alembic_config(connection), "head")

    assert "alembic_version" in inspect(engine).get_table_names()
