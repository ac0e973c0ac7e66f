"""Printable label sheets for units checked in together.

When several units of the same drug go into one drawer on the same day each
gets its own composite code, suffixed with its 1-based sequence number
(``BL-020526-AMLO-05-01``, ``BL-020526-AMLO-05-02`` ...).  A single unit gets
the bare code.  The sheet is a Polars DataFrame so it can be exported to CSV
or Excel for the label printer.
"""
from __future__ import annotations

import io
from datetime import date

import polars as pl

from rxstock.services.lot_codes import generate_qr_code, get_lot_description, validate_lot_code

LABEL_COLUMNS = ("sequence", "qr_code", "lot_code", "location", "medication_name", "dosage")
# Sequence suffixes are two digits wide
MAX_LABEL_QUANTITY = 99


def build_label_sheet(
    lot_code: str,
    entry_date: date,
    medication_name: str,
    dosage: str,
    quantity: int,
    require_location: bool = False,
) -> pl.DataFrame:
    if not validate_lot_code(lot_code, require_location):
        raise ValueError(f"Invalid lot code: {lot_code!r}")
    if not 1 <= quantity <= MAX_LABEL_QUANTITY:
        raise ValueError(f"quantity must be between 1 and {MAX_LABEL_QUANTITY}")

    location = get_lot_description(lot_code)
    rows = []
    for sequence in range(1, quantity + 1):
        rows.append({
            "sequence":        sequence,
            "qr_code":         generate_qr_code(
                lot_code,
                entry_date,
                medication_name,
                dosage,
                sequence if quantity > 1 else None,
            ),
            "lot_code":        lot_code.upper(),
            "location":        location,
            "medication_name": medication_name,
            "dosage":          dosage,
        })

    return pl.DataFrame(rows).select(LABEL_COLUMNS)


def export_label_sheet(sheet: pl.DataFrame, fmt: str = "csv") -> bytes:
    """
    Serialize a label sheet.

    Parameters
    ----------
    sheet : DataFrame from ``build_label_sheet``.
    fmt   : "csv" (default) or "excel".
    """
    if fmt == "excel":
        buffer = io.BytesIO()
        sheet.write_excel(buffer)
        return buffer.getvalue()
    if fmt == "csv":
        return sheet.write_csv().encode("utf-8")
    raise ValueError(f"Unsupported format: {fmt!r}")
