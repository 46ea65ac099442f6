from pathlib import Path

import pytest

from coin_wallet import main
from coin_wallet.db import _normalize_db_url


@pytest.mark.parametrize("raw, expected", [
    (None, "sqlite:///./app.db"),
    ("  ", "sqlite:///./app.db"),
    ("sqlite://", "sqlite://"),
    ("postgres://u:p@db.example.com/wallet",
     "postgresql+psycopg://u:p@db.example.com/wallet?sslmode=require"),
    ("postgresql://u:p@db.example.com/wallet?application_name=api",
     "postgresql+psycopg://u:p@db.example.com/wallet?application_name=api&sslmode=require"),
    ("postgresql://u:p@localhost:5432/wallet", "postgresql+psycopg://u:p@localhost:5432/wallet"),
    ("postgresql+psycopg2://u:p@db.example.com/w?sslmode=disable",
     "postgresql+psycopg2://u:p@db.example.com/w?sslmode=disable"),
])
def test_normalize_db_url(raw, expected):
    assert _normalize_db_url(raw) == expected


def test_env_file_is_found_beside_pyproject_regardless_of_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    root = Path(__file__).resolve().parent.parent
    assert main.ENV_FILE == root / ".env"
    assert (main.ENV_FILE.parent / "pyproject.toml").exists()
