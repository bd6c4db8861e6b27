from __future__ import annotations

BASIC_PKA_THRESHOLD = 5.0
ACIDIC_PKA_THRESHOLD = 9.0
# pKa giving the maximal Gupta BBB pKa sub-score, used for neutral molecules.
NEUTRAL_PKA = 8.81


def select_pka(acidic: float | None, basic: float | None) -> float:
    """Pick the pKa used for scoring.

    1. a basic pKa >= 5 wins;
    2. otherwise an acidic pKa <= 9, whether or not a basic pKa exists;
    3. otherwise 8.81.
    """
    if basic is not None and basic >= BASIC_PKA_THRESHOLD:
        return float(basic)
    if acidic is not None and acidic <= ACIDIC_PKA_THRESHOLD:
        return float(acidic)
    return NEUTRAL_PKA
