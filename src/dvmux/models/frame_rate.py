"""Frame rate identifiers."""

from enum import StrEnum

from pydantic import BaseModel


class FrameRateId(StrEnum):
    """The six standard frame rates offered to users."""

    FILM_NTSC = "film-ntsc"
    FILM_PAL = "film-pal"
    TV_NTSC = "tv-ntsc"
    TV_PAL = "tv-pal"
    HFR = "hfr"
    HFR_NTSC = "hfr-ntsc"


class CustomFrameRate(BaseModel):
    """An arbitrary rational frame rate.

    Bounds are checked by the resolver so that a bad rate surfaces as
    InvalidFrameRateError during pre-flight rather than at construction.
    """

    model_config = {"frozen": True}

    numerator: int
    denominator: int = 1


FrameRate = FrameRateId | CustomFrameRate
