import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "catalog_test.db"
    # Point the backend to this temp DB
    os.environ["CATALOG_DB_PATH"] = str(path)
    schema = Path(_PROJECT_ROOT / "schema.sql").read_text(encoding="utf-8")
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(schema)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture()
def client(tmp_db_path):
    # Ensure schemas required by logging/config exist before creating client
    from catalog_backend.logs import ensure_log_schema
    from catalog_backend.services.config_svc import ensure_default_config
    ensure_log_schema()
    ensure_default_config()
    # Import app after DB ready so startup hooks can use it
    from catalog_backend.api import app
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Clean tables before each test for isolation
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("CATALOG_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    tables = [
        "titles",
        "productions_genres",
        "productions",
        "genres",
        "demographics",
        "config",
        "operation_log",
    ]
    conn = sqlite3.connect(tmp_db_path)
    try:
        for t in tables:
            try:
                conn.execute(f"DELETE FROM {t}")
            except sqlite3.OperationalError:
                pass  # operation_log only exists once the log schema was ensured
        has_seq = conn.execute("SELECT 1 FROM sqlite_master WHERE name='sqlite_sequence'").fetchone()
        if has_seq:
            conn.execute("DELETE FROM sqlite_sequence")
        conn.commit()
    finally:
        conn.close()
    yield


@pytest.fixture()
def seeded(tmp_db_path):
    """Small fixed catalog: 3 demographics, 4 genres, 5 series (one hidden)."""
    conn = sqlite3.connect(tmp_db_path)
    try:
        conn.executemany(
            "INSERT INTO demographics(id, name, slug) VALUES(?,?,?)",
            [(1, "Shounen", "shounen"), (2, "Seinen", "seinen"), (3, "Josei", "josei")],
        )
        conn.executemany(
            "INSERT INTO genres(id, name, slug) VALUES(?,?,?)",
            [(1, "Action", "action"), (2, "Drama", "drama"), (3, "Mystery", "mystery"), (4, "Romance", "romance")],
        )
        conn.executemany(
            """INSERT INTO productions(id, name, chapter_numer, year, description, qualification, demography_id, visible, rank)
               VALUES(?,?,?,?,?,?,?,?,?)""",
            [
                (1, "Attack on Titan", 25, 2013, "Titans breach the walls", 9.1, 1, 1, 2),
                (2, "Death Note", 37, 2006, "A notebook that kills", 9.0, 1, 1, 3),
                (3, "Monster", 74, 2004, "A surgeon hunts a killer", 8.9, 2, 1, 4),
                (4, "Nana", 47, 2006, "Two women named Nana", 8.5, 3, 1, 5),
                (5, "Hidden Draft", 12, 2020, "Not public yet", 9.5, 1, 0, 1),
            ],
        )
        conn.executemany(
            "INSERT INTO productions_genres(production_id, genre_id) VALUES(?,?)",
            [(1, 1), (1, 2), (2, 3), (3, 2), (3, 3), (4, 2), (4, 4), (5, 1)],
        )
        conn.executemany(
            "INSERT INTO titles(production_id, name) VALUES(?,?)",
            [(1, "Shingeki no Kyojin"), (3, "Naoki Urasawa's Monster")],
        )
        conn.commit()
    finally:
        conn.close()
    return tmp_db_path
