"""Per-row cleaning and derived fields for the GeoLite2 City CSVs.

Every transform takes the parsed CSV cells of one line and returns a record,
or ``None`` when the row must be dropped (empty or non-numeric key, malformed
network, unparseable numeric field). Transforms never raise for bad rows.
"""

from __future__ import annotations

import ipaddress
from decimal import Decimal, InvalidOperation

from geolite_import.common.models import BlockRecord, LocationRecord

LOCATION_COLUMNS = (
    "geoname_id",
    "locale_code",
    "continent_code",
    "continent_name",
    "country_iso_code",
    "country_name",
    "subdivision_1_iso_code",
    "subdivision_1_name",
    "subdivision_2_iso_code",
    "subdivision_2_name",
    "city_name",
    "metro_code",
    "time_zone",
)

BLOCK_COLUMNS = (
    "network",
    "geoname_id",
    "registered_country_geoname_id",
    "represented_country_geoname_id",
    "is_anonymous_proxy",
    "is_satellite_provider",
    "postal_code",
    "latitude",
    "longitude",
)

IPV4_BITS = 32


def clean_text(value: str | None) -> str:
    """Strip surrounding whitespace and stray enclosing quotes."""
    if value is None:
        return ""
    cleaned = value.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] == '"':
        cleaned = cleaned[1:-1].strip()
    return cleaned


def _pad(cells: list[str], width: int) -> list[str]:
    if len(cells) < width:
        return cells + [""] * (width - len(cells))
    return cells


def _to_int(value: str) -> int:
    cleaned = clean_text(value)
    if not cleaned:
        return 0
    return int(cleaned)


def _to_flag(value: str) -> int:
    return 1 if _to_int(value) else 0


def _to_decimal(value: str) -> Decimal:
    cleaned = clean_text(value)
    if not cleaned:
        return Decimal("0")
    parsed = Decimal(cleaned)
    if not parsed.is_finite():
        raise InvalidOperation(cleaned)
    return parsed.quantize(Decimal("0.0001"))


def is_numeric_key(value: str | None) -> bool:
    cleaned = clean_text(value)
    return bool(cleaned) and cleaned.isascii() and cleaned.isdigit()


def cidr_range(network: str) -> tuple[int, int]:
    """Return the inclusive numeric bounds of an IPv4 ``address/prefix`` block.

    ``range_start`` is the big-endian value of the address as written and
    ``range_end`` adds ``2 ** (32 - prefix) - 1``.
    """
    cleaned = clean_text(network)
    if cleaned.count("/") != 1:
        raise ValueError(f"Network must be address/prefix: {network!r}")
    address, prefix_text = cleaned.split("/")
    if not prefix_text.isascii() or not prefix_text.isdigit():
        raise ValueError(f"Invalid prefix length in {network!r}")
    prefix = int(prefix_text)
    if prefix > IPV4_BITS:
        raise ValueError(f"Prefix length out of range in {network!r}")
    range_start = int(ipaddress.IPv4Address(address))
    range_end = range_start + 2 ** (IPV4_BITS - prefix) - 1
    return range_start, range_end


def transform_location_row(cells: list[str]) -> LocationRecord | None:
    if not cells or not is_numeric_key(cells[0]):
        return None
    values = [clean_text(cell) for cell in _pad(list(cells), len(LOCATION_COLUMNS))]
    try:
        return LocationRecord(
            geoname_id=int(values[0]),
            locale_code=values[1],
            continent_code=values[2],
            continent_name=values[3],
            country_iso_code=values[4],
            country_name=values[5],
            subdivision_1_iso_code=values[6],
            subdivision_1_name=values[7],
            subdivision_2_iso_code=values[8],
            subdivision_2_name=values[9],
            city_name=values[10],
            metro_code=_to_int(values[11]),
            time_zone=values[12],
        )
    except ValueError:
        return None


def transform_block_row(cells: list[str]) -> BlockRecord | None:
    if not cells or not clean_text(cells[0]):
        return None
    values = [clean_text(cell) for cell in _pad(list(cells), len(BLOCK_COLUMNS))]
    try:
        range_start, range_end = cidr_range(values[0])
        return BlockRecord(
            network=values[0],
            range_start=range_start,
            range_end=range_end,
            geoname_id=_to_int(values[1]),
            registered_country_geoname_id=_to_int(values[2]),
            represented_country_geoname_id=_to_int(values[3]),
            is_anonymous_proxy=_to_flag(values[4]),
            is_satellite_provider=_to_flag(values[5]),
            postal_code=values[6],
            latitude=_to_decimal(values[7]),
            longitude=_to_decimal(values[8]),
        )
    except (ValueError, InvalidOperation):
        return None
