from __future__ import annotations

from .geo import Coord
from .route_errors import DecodeError

DEFAULT_PRECISION = 5
_CHAR_OFFSET = 63
_CHUNK_MASK = 0x1F
_CONTINUATION_BIT = 0x20


def _read_value(encoded: str, index: int) -> tuple[int, int]:
    """Read one zigzag-encoded signed value starting at `index`.

    Returns (value, next_index). The loop never reads past the end of the
    string: a continuation chunk without a terminator is a DecodeError.
    """
    result = 0
    shift = 0
    length = len(encoded)
    while True:
        if index >= length:
            raise DecodeError(
                f"truncated polyline: value starting before offset {index} has no terminating chunk",
                details={"offset": index, "length": length},
            )
        chunk = ord(encoded[index]) - _CHAR_OFFSET
        if chunk < 0 or chunk > 0x3F:
            raise DecodeError(
                f"invalid polyline character {encoded[index]!r} at offset {index}",
                details={"offset": index},
            )
        index += 1
        result |= (chunk & _CHUNK_MASK) << shift
        shift += 5
        if not chunk & _CONTINUATION_BIT:
            break

    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode_polyline(encoded: str, *, precision: int = DEFAULT_PRECISION) -> list[Coord]:
    """Decode an encoded polyline into (lat, lng) pairs.

    Deltas alternate latitude then longitude, accumulate onto a running
    position and are scaled by 10**precision (1e5 for the provider format).
    """
    if not isinstance(encoded, str):
        raise DecodeError(f"encoded polyline must be a string, got {type(encoded).__name__}")

    factor = float(10**precision)
    coords: list[Coord] = []
    index = 0
    lat = 0
    lng = 0
    while index < len(encoded):
        d_lat, index = _read_value(encoded, index)
        if index >= len(encoded):
            raise DecodeError(
                "truncated polyline: latitude delta without a longitude delta",
                details={"offset": index},
            )
        d_lng, index = _read_value(encoded, index)
        lat += d_lat
        lng += d_lng
        coords.append((lat / factor, lng / factor))
    return coords
