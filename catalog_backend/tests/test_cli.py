from __future__ import annotations

import sqlite3

import pandas as pd
import pytest

import catalog


def test_query_prints_sql_and_params(tmp_db_path, capsys, monkeypatch):
    monkeypatch.setenv("CATALOG_DB_PATH", tmp_db_path)
    catalog.main(["--db", tmp_db_path, "query", "--filters", '{"id": [1, 2], "sortDirection": "DESC"}'])
    out = capsys.readouterr().out
    assert "id IN (?, ?)" in out
    assert "ORDER BY production_ranking_number DESC" in out
    assert "params: [1, 2, 10000]" in out


def test_query_rejects_invalid_filter(tmp_db_path, monkeypatch):
    monkeypatch.setenv("CATALOG_DB_PATH", tmp_db_path)
    with pytest.raises(SystemExit, match="sortDirection"):
        catalog.main(["--db", tmp_db_path, "query", "--filters", '{"sortDirection": "UP"}'])


def test_init_seeds_and_export(tmp_path, monkeypatch):
    db = tmp_path / "cli.db"
    # restore the session DB path after the CLI repoints it
    monkeypatch.setenv("CATALOG_DB_PATH", str(db))
    catalog.main(["--db", str(db), "init"])

    conn = sqlite3.connect(str(db))
    try:
        assert conn.execute("SELECT COUNT(1) FROM productions").fetchone()[0] == 8
        assert conn.execute("SELECT COUNT(1) FROM genres").fetchone()[0] == 12
        top = conn.execute("SELECT name FROM productions WHERE rank = 1").fetchone()[0]
        assert top == "Fullmetal Alchemist: Brotherhood"
    finally:
        conn.close()

    # seeding twice does not duplicate series
    catalog.main(["--db", str(db), "init"])

    out = tmp_path / "seinen.csv"
    catalog.main(["--db", str(db), "export", "--filters", '{"demographicName": "Seinen"}', "--out", str(out)])
    df = pd.read_csv(out, encoding="utf-8-sig")
    assert sorted(df["production_name"]) == ["Monster", "Steins;Gate"]
