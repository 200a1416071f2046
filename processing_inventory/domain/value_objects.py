"""Domain value objects for type-safe business concepts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date


_BATCH_CODE_PATTERN: re.Pattern[str] = re.compile(r"^[A-Z0-9]{1,12}-\d+-\d{8}(-\d{2,})?$")
_CROP_PREFIX_STRIP: re.Pattern[str] = re.compile(r"[^A-Z0-9]")


@dataclass(frozen=True)
class BatchCode:
    """
    Immutable value object for a processing batch code.

    Enforces the pattern CROP-LOT-YYYYMMDD[-NN] at construction time. The
    optional suffix disambiguates batches of the same crop, lot and day.
    """

    value: str

    def __post_init__(self) -> None:
        if not _BATCH_CODE_PATTERN.match(self.value):
            raise ValueError(
                f"Invalid batch code format: '{self.value}'. "
                "Expected format: CROP-LOT-YYYYMMDD[-NN]",
            )

    @classmethod
    def build(cls, crop: str, lot_no: int, day: date, sequence: int = 0) -> BatchCode:
        """Compose a code from its parts; sequence 0 means no suffix."""
        prefix = _CROP_PREFIX_STRIP.sub("", crop.upper())[:12] or "CROP"
        value = f"{prefix}-{lot_no}-{day:%Y%m%d}"
        if sequence:
            value = f"{value}-{sequence:02d}"
        return cls(value)

    def __str__(self) -> str:
        return self.value
