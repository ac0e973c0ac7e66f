"""
import_catalog.py
=================
Load a drug list (CSV, TSV or Excel) into the shared ``drugs`` catalog.

Usage
-----
    python import_catalog.py <file> [options]

Examples
--------
    # Detect columns automatically:
    python import_catalog.py formulary.xlsx

    # Rows without a form column fall back to a default form:
    python import_catalog.py formulary.csv --default-form tablet --dry-run

Expected columns
----------------
At least a medication name column.  Strength and unit come from
``strength``/``strength_unit`` columns, or are parsed from a ``dosage``
column ("500mg", "5 mg").  ``generic_name``, ``ndc`` and ``form`` are
optional.

Every row goes through the same find-or-create resolution as check-in, so
running the import twice does not duplicate drugs.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import sys
from pathlib import Path
from typing import Any

import polars as pl
from dotenv import load_dotenv

from rxstock.core.db import DATABASE_URL, create_engine, create_session_factory
from rxstock.models.search import DrugFields
from rxstock.services.catalog_store import SqlCatalogStore, StoreError
from rxstock.services.drug_resolver import DrugUpsertResolver
from rxstock.services.normalizer import DEFAULT_STRENGTH_UNIT, parse_dosage

load_dotenv()
logger = logging.getLogger(__name__)

# Header candidates, compared after _normalize_header
_COLUMN_CANDIDATES: dict[str, tuple[str, ...]] = {
    "medication_name": ("medication_name", "medication", "drug_name", "drug", "name"),
    "generic_name":    ("generic_name", "generic"),
    "strength":        ("strength",),
    "strength_unit":   ("strength_unit", "unit", "units"),
    "ndc_id":          ("ndc_id", "ndc", "ndc_code"),
    "form":            ("form", "dosage_form"),
    "dosage":          ("dosage", "dose"),
}


def _normalize_header(header: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", header.strip().lower()).strip("_")


def _detect_columns(columns: list[str]) -> dict[str, str]:
    """Map each known field to the first matching header of the file."""
    normalized = {_normalize_header(c): c for c in columns}
    detected: dict[str, str] = {}
    for field, candidates in _COLUMN_CANDIDATES.items():
        for candidate in candidates:
            if candidate in normalized:
                detected[field] = normalized[candidate]
                break
    return detected


def _read_dataframe(path: Path) -> pl.DataFrame:
    suffix = path.suffix.lower()
    if suffix in {".xlsx", ".xls"}:
        return pl.read_excel(path)
    if suffix in {".tsv", ".txt"}:
        return pl.read_csv(path, separator="\t", infer_schema_length=0)
    return pl.read_csv(path, infer_schema_length=0)


def _text(row: dict[str, Any], column: str | None) -> str:
    if column is None or row.get(column) is None:
        return ""
    return str(row[column]).strip()


def _parse_float(value: str) -> float | None:
    try:
        return float(value.replace(",", ""))
    except ValueError:
        return None


def load_catalog_rows(path: str, default_form: str | None = None) -> list[DrugFields]:
    """Read *path* and return one ``DrugFields`` per usable row."""
    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"File not found: {path}")

    df = _read_dataframe(path_obj)
    columns = _detect_columns(df.columns)
    if "medication_name" not in columns:
        raise ValueError(
            "No medication name column found.\n"
            f"Available columns: {df.columns}"
        )
    logger.info("Detected columns: %s", columns)

    records: list[DrugFields] = []
    skipped = 0
    for row in df.iter_rows(named=True):
        name = _text(row, columns.get("medication_name"))
        form = _text(row, columns.get("form")) or default_form
        if not name or not form:
            skipped += 1
            continue

        strength = _parse_float(_text(row, columns.get("strength")))
        unit = _text(row, columns.get("strength_unit"))
        if strength is None:
            strength, parsed_unit = parse_dosage(_text(row, columns.get("dosage")))
            unit = unit or parsed_unit

        records.append(
            DrugFields(
                medication_name=name,
                generic_name=_text(row, columns.get("generic_name")) or None,
                strength=strength,
                strength_unit=unit or DEFAULT_STRENGTH_UNIT,
                ndc_id=_text(row, columns.get("ndc_id")) or None,
                form=form,
            )
        )

    logger.info("File read: %d usable rows, %d rows skipped (no name or form).", len(records), skipped)
    return records


async def import_catalog(records: list[DrugFields], resolver: DrugUpsertResolver) -> dict[str, int]:
    """Resolve every record to a catalog id; a failed row is logged and counted."""
    drug_ids = set()
    failed = 0
    for fields in records:
        try:
            drug_ids.add(await resolver.get_or_create_drug(fields))
        except StoreError as exc:
            failed += 1
            logger.error("Could not import %s %s%s: %s", fields.medication_name, fields.strength,
                         fields.strength_unit, exc)
    return {"rows": len(records), "drugs": len(drug_ids), "failed": failed}


async def main_async(args: argparse.Namespace) -> None:
    records = load_catalog_rows(args.file, default_form=args.default_form)

    if not records:
        logger.warning("No valid rows found. Nothing to import.")
        return

    if args.dry_run:
        logger.info("--dry-run: showing the first 5 rows and exiting.")
        for fields in records[:5]:
            print(fields.model_dump())
        return

    # DB_URL may come from a .env file loaded after rxstock.core.db was imported
    engine = create_engine(args.database_url or os.getenv("DB_URL") or DATABASE_URL)
    try:
        resolver = DrugUpsertResolver(SqlCatalogStore(create_session_factory(engine)))
        summary = await import_catalog(records, resolver)
    finally:
        await engine.dispose()

    logger.info(
        "Import finished: %d rows, %d distinct drugs, %d failed.",
        summary["rows"], summary["drugs"], summary["failed"],
    )
    if summary["failed"]:
        sys.exit(1)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    parser = argparse.ArgumentParser(
        description="Load a drug list into the shared catalog.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("file", help="Path to the CSV/TSV/Excel drug list.")
    parser.add_argument(
        "--default-form",
        metavar="FORM",
        default=None,
        help="Form used for rows without one (rows are skipped otherwise).",
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="Async PostgreSQL URL. Defaults to DB_URL from the environment or .env.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read and parse the file without writing to the database.",
    )

    args = parser.parse_args()
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()
