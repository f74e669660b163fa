# File: bandscore_app/modules/listening/logics/band_mapper.py
from ..config import ListeningDefaultConfig


def raw_to_band(raw: int, total: int) -> float:
    """
    Map a raw score to an IELTS band through the percentage table.

    Thresholds are inclusive lower bounds checked from the top; the
    comparison ``raw * 100 >= pct * total`` stays in integers so a boundary
    like 36/40 == 90% never lands on the wrong side of a float.
    """
    if total <= 0:
        raise ValueError(f"total must be positive, got {total}")
    if raw < 0 or raw > total:
        raise ValueError(f"raw score {raw} is outside 0..{total}")

    for min_pct, band in ListeningDefaultConfig.BAND_THRESHOLDS:
        if raw * 100 >= min_pct * total:
            return band
    return ListeningDefaultConfig.BAND_FLOOR
