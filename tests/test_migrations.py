from argparse import Namespace
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from studyhub.database import Base
import studyhub.models  # noqa: F401

ALEMBIC_DIR = Path(__file__).resolve().parents[1] / "alembic"


def _alembic_config(url: str) -> Config:
    config = Config(cmd_opts=Namespace(x=[f"url={url}"]))
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    return config


def test_upgrade_creates_the_model_schema(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    command.upgrade(_alembic_config(url), "head")

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert set(Base.metadata.tables) <= set(inspector.get_table_names())
        unique_names = {c["name"] for c in inspector.get_unique_constraints("users")}
        assert "users_email_key" in unique_names
    finally:
        engine.dispose()


def test_downgrade_removes_every_table(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = _alembic_config(url)
    command.upgrade(config, "head")
    command.downgrade(config, "base")

    engine = create_engine(url)
    try:
        assert set(inspect(engine).get_table_names()) <= {"alembic_version"}
    finally:
        engine.dispose()
