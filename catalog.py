#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Series Catalog CLI (SQLite)

Commands:
  init                Create schema, seed demographics/genres/series and default config
  query               Compile a filter (JSON) into SQL and print it; --run executes it
  export              Run a filter and export the matching catalog rows to CSV

Notes:
- Filters use the same fields as POST /api/series, e.g.
  '{"year": [2005, 2015], "genreNames": ["Drama"], "sortDirection": "DESC"}'.
- The DB path comes from --db, then config.yaml db_path, then CATALOG_DB_PATH / catalog.db.
"""

import argparse
import csv
import datetime as dt
import json
import os
import sys

import pandas as pd
import yaml

from catalog_backend.db import ensure_schema, get_conn
from catalog_backend.domain.filter_query import FilterValidationError
from catalog_backend.logs import ensure_log_schema
from catalog_backend.repository import demographic_repo, genre_repo, series_repo, title_repo
from catalog_backend.services.config_svc import ensure_default_config
from catalog_backend.services.production_svc import build_productions_query

# ---------------- CFG helpers ----------------

def read_cfg(path: str = "config.yaml") -> dict:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def apply_db_path(args):
    path = args.db or read_cfg(args.config).get("db_path")
    if path:
        os.environ["CATALOG_DB_PATH"] = path


def parse_filters(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        filters = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"--filters is not valid JSON: {e}")
    if not isinstance(filters, dict):
        raise SystemExit("--filters must be a JSON object")
    return filters


# ---------------- Seed ----------------

def _read_csv(name: str) -> list[dict]:
    path = os.path.join(os.path.dirname(__file__), "seeds", name)
    with open(path, "r", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def _split_list(cell: str | None) -> list[str]:
    return [p.strip() for p in (cell or "").split(";") if p.strip()]


def seed_data(conn):
    for r in _read_csv("demographics.csv"):
        demographic_repo.upsert(conn, r["name"], r["slug"])
    for r in _read_csv("genres.csv"):
        genre_repo.upsert(conn, r["name"], r["slug"])

    demo_ids = {r["name"]: r["id"] for r in demographic_repo.list_all(conn)}
    genre_ids = {r["name"]: r["id"] for r in genre_repo.list_all(conn)}

    for r in _read_csv("productions.csv"):
        year = int(r["year"])
        if series_repo.find_by_name_and_year(conn, r["name"], year):
            continue
        demo_id = demo_ids.get(r["demographic"])
        if demo_id is None:
            print("[WARN] Demographic not found for series:", r["name"], file=sys.stderr)
            continue
        new_id = series_repo.insert(conn, {
            "name": r["name"],
            "chapter_number": int(r["chapter_number"]),
            "year": year,
            "description": r["description"],
            "description_en": r["description_en"],
            "qualification": float(r["qualification"]),
            "demography_id": demo_id,
            "visible": 1,
        })
        gids = [genre_ids[g] for g in _split_list(r["genres"]) if g in genre_ids]
        genre_repo.replace_for_series(conn, new_id, gids)
        title_repo.add_many(conn, new_id, _split_list(r["titles"]))

    series_repo.update_rank(conn)
    conn.commit()


# ---------------- Commands ----------------

def cmd_init(args):
    apply_db_path(args)
    ensure_schema()
    ensure_log_schema()
    ensure_default_config()
    with get_conn() as conn:
        seed_data(conn)
    print("DB initialized and seeded.")


def cmd_query(args):
    apply_db_path(args)
    try:
        built = build_productions_query(parse_filters(args.filters))
    except FilterValidationError as e:
        raise SystemExit(f"invalid filter: {e}")

    print(built.sql_text)
    print("params:", list(built.parameters))
    if args.run:
        with get_conn() as conn:
            df = pd.read_sql_query(built.sql_text, conn, params=built.parameters)
        pd.set_option("display.max_rows", 200)
        pd.set_option("display.width", 160)
        print()
        print(df if not df.empty else "(empty)")


def cmd_export(args):
    apply_db_path(args)
    try:
        built = build_productions_query(parse_filters(args.filters))
    except FilterValidationError as e:
        raise SystemExit(f"invalid filter: {e}")

    with get_conn() as conn:
        df = pd.read_sql_query(built.sql_text, conn, params=built.parameters)

    out = args.out
    if not out:
        out_dir = os.path.join(os.path.dirname(__file__), "exports")
        os.makedirs(out_dir, exist_ok=True)
        out = os.path.join(out_dir, f"series_{dt.datetime.now().strftime('%Y%m%d_%H%M%S')}.csv")
    df.to_csv(out, index=False, encoding="utf-8-sig")
    print(f"{len(df)} rows exported to {out}")


# ---------------- Entry ----------------

def main(argv=None):
    parser = argparse.ArgumentParser(description="Series catalog (SQLite)")
    parser.add_argument("--config", default="config.yaml")
    parser.add_argument("--db", default=None, help="SQLite file path (overrides config)")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="create schema and seed data")
    p_init.set_defaults(func=cmd_init)

    p_query = sub.add_parser("query", help="print the SQL for a filter")
    p_query.add_argument("--filters", required=False, help="filter JSON object")
    p_query.add_argument("--run", action="store_true", help="also execute and print rows")
    p_query.set_defaults(func=cmd_query)

    p_exp = sub.add_parser("export", help="export filtered catalog rows to CSV")
    p_exp.add_argument("--filters", required=False, help="filter JSON object")
    p_exp.add_argument("--out", required=False, help="output CSV path (default ./exports)")
    p_exp.set_defaults(func=cmd_export)

    args = parser.parse_args(argv)
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
