"""Normalization helpers for National Drug Codes and free-text dosages.

NDCs arrive in many shapes from barcode scanners and manual entry:
  - "12345-6789-01" vs "12345678901" vs "12345 6789 01"

Dosages are typed by pharmacy staff:
  - "5mg", "5 mg", "2.5mL", "500", "10mg/5ml"

Both functions are total: malformed input degrades to a safe default
("" for NDCs, ``Dosage(0.0, "unit")`` for dosages) and never raises.
"""
from __future__ import annotations

import re
from typing import NamedTuple, Optional

DEFAULT_STRENGTH_UNIT = "unit"

_NON_DIGIT = re.compile(r"[^0-9]")

# "<number>[whitespace]<unit letters or slash>" spanning the whole trimmed text
_DOSAGE_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)?)\s*([a-zA-Z/]+)?$")

# First "<number><letters>" pair anywhere in the text ("10mg/5ml" -> 10, "mg")
_DOSAGE_FALLBACK_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*([a-zA-Z]+)")


class Dosage(NamedTuple):
    strength: float
    strength_unit: str


def normalize_ndc(ndc: Optional[str]) -> str:
    """Strip every non-digit character from *ndc*."""
    if not ndc:
        return ""
    return _NON_DIGIT.sub("", ndc)


def parse_dosage(text: Optional[str]) -> Dosage:
    """
    Split a dosage string into numeric strength and unit.

    Compound dosages such as "10mg/5ml" only match the fallback pattern,
    which keeps the first number/unit pair and drops the denominator:
    ``parse_dosage("10mg/5ml") == Dosage(10.0, "mg")``.

    The fallback has no notion of a leading decimal point or thousands
    separators: ".5mg" parses as 5.0 mg and "1,000mg" as 0.0 mg.
    """
    if not text:
        return Dosage(0.0, DEFAULT_STRENGTH_UNIT)

    cleaned = text.strip()

    match = _DOSAGE_RE.match(cleaned)
    if match:
        return Dosage(float(match.group(1)), match.group(2) or DEFAULT_STRENGTH_UNIT)

    match = _DOSAGE_FALLBACK_RE.search(cleaned)
    if match:
        return Dosage(float(match.group(1)), match.group(2))

    return Dosage(0.0, DEFAULT_STRENGTH_UNIT)
