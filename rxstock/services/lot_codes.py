"""Lot codes and the composite label code printed on every stocked unit.

A lot code names the drawer a unit is stored in: one letter A-Z, optionally
followed by L or R for the left/right half of the drawer ("B", "BL", "CR").

The composite code generated at check-in has the shape::

    {LotCode}-{MMDDYY}-{4-letter medication code}-{2-digit dose}[-{2-digit sequence}]

e.g. ``BL-020526-AMLO-05`` for Amlodipine 5mg stored in drawer B left on
2026-02-05. The encoding is one-way; doses of 100 or more are truncated to
their first two digits.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from rxstock.services.catalog_store import CatalogStore, StoreError

logger = logging.getLogger(__name__)

_DRAWER_RE = re.compile(r"[A-Z]")
_SIDES = {"L": "Left", "R": "Right"}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_NON_DOSE = re.compile(r"[^0-9.]")


def validate_lot_code(lot_code: Optional[str], require_location: bool = False) -> bool:
    if not lot_code or len(lot_code) > 2:
        return False

    if not _DRAWER_RE.fullmatch(lot_code[0].upper()):
        return False

    if require_location and len(lot_code) != 2:
        return False

    # A second character is only ever a drawer side
    if len(lot_code) == 2 and lot_code[1].upper() not in _SIDES:
        return False

    return True


def get_lot_description(lot_code: Optional[str]) -> str:
    """Human-readable location, e.g. "BL" -> "Drawer B Left"."""
    if not lot_code:
        return "Unknown Location"

    drawer = lot_code[:1].upper()
    side = lot_code[1:2].upper()

    description = f"Drawer {drawer}" if drawer else "Unknown Drawer"
    if side in _SIDES:
        description = f"{description} {_SIDES[side]}"
    return description


def _format_date(value: date) -> str:
    # Aware datetimes are shown in the server's local calendar
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%m%d%y")


def _medication_code(medication_name: str) -> str:
    return _NON_ALNUM.sub("", medication_name)[:4].upper().ljust(4, "X")


def _dose_code(dosage: str) -> str:
    integer_part = _NON_DOSE.sub("", dosage).split(".")[0]
    return integer_part.rjust(2, "0")[:2]


def generate_qr_code(
    lot_code: str,
    entry_date: date,
    medication_name: str,
    dosage: str,
    sequence: Optional[int] = None,
) -> str:
    """
    Build the composite label code for a unit.

    Parameters
    ----------
    lot_code        : drawer code, e.g. "BL".
    entry_date      : check-in date (``date`` or ``datetime``).
    medication_name : full medication name, e.g. "Amlodipine".
    dosage          : dosage text, e.g. "5mg".
    sequence        : optional 1-based unit number when several units share a lot.
    """
    code = "-".join(
        (
            lot_code.upper(),
            _format_date(entry_date),
            _medication_code(medication_name),
            _dose_code(dosage),
        )
    )
    if sequence is not None and sequence > 0:
        code = f"{code}-{sequence:02d}"
    return code


async def validate_clinic_lot_code(store: CatalogStore, clinic_id: UUID, lot_code: Optional[str]) -> bool:
    """Validate *lot_code* against the clinic's ``require_lot_location`` setting."""
    try:
        require_location = await store.requires_lot_location(clinic_id)
    except StoreError as exc:
        logger.warning(
            "Could not read require_lot_location for clinic %s, requiring drawer side: %s",
            clinic_id,
            exc,
        )
        require_location = True
    return validate_lot_code(lot_code, require_location)
