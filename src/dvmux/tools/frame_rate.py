"""Frame rate resolution for the remux tool."""

import re

from dvmux.models.errors import InvalidFrameRateError
from dvmux.models.frame_rate import CustomFrameRate, FrameRate, FrameRateId

STANDARD_FRACTIONS: dict[FrameRateId, str] = {
    FrameRateId.FILM_NTSC: "24000/1001",
    FrameRateId.FILM_PAL: "24",
    FrameRateId.TV_NTSC: "30000/1001",
    FrameRateId.TV_PAL: "25",
    FrameRateId.HFR: "60",
    FrameRateId.HFR_NTSC: "60000/1001",
}

_RATIONAL_RE = re.compile(r"^\s*(-?\d+)\s*(?:/\s*(-?\d+))?\s*$")


def resolve(rate: FrameRate) -> str:
    """Return the fraction string mp4muxer accepts for a frame rate."""
    if isinstance(rate, FrameRateId):
        return STANDARD_FRACTIONS[rate]
    if isinstance(rate, CustomFrameRate):
        if rate.numerator <= 0:
            raise InvalidFrameRateError(
                f"Frame rate numerator must be positive, got {rate.numerator}",
                details={"numerator": rate.numerator, "denominator": rate.denominator},
            )
        if rate.denominator <= 0:
            raise InvalidFrameRateError(
                f"Frame rate denominator must be positive, got {rate.denominator}",
                details={"numerator": rate.numerator, "denominator": rate.denominator},
            )
        if rate.denominator == 1:
            return str(rate.numerator)
        return f"{rate.numerator}/{rate.denominator}"
    raise InvalidFrameRateError(f"Unsupported frame rate: {rate!r}")


def parse_frame_rate(text: str) -> FrameRate:
    """Parse an identifier (``film-ntsc``), a rational (``24000/1001``) or an integer."""
    value = text.strip().lower()
    try:
        return FrameRateId(value)
    except ValueError:
        pass

    match = _RATIONAL_RE.match(value)
    if not match:
        raise InvalidFrameRateError(
            f"Unrecognised frame rate '{text}'",
            details={"accepted": [r.value for r in FrameRateId]},
        )
    numerator = int(match.group(1))
    denominator = int(match.group(2)) if match.group(2) is not None else 1
    rate = CustomFrameRate(numerator=numerator, denominator=denominator)
    resolve(rate)
    return rate


def describe(rate: FrameRate) -> str:
    """Human-readable label, e.g. ``23.976 (24000/1001)``."""
    fraction = resolve(rate)
    num, _, den = fraction.partition("/")
    fps = int(num) / int(den or 1)
    return f"{fps:.3f} ({fraction})"
