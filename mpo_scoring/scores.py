"""Composite desirability scores computed from precomputed descriptors.

Every aggregator returns ``None`` when a required descriptor is absent and
otherwise a score rounded half-up to 4 significant figures.
"""
from __future__ import annotations

import logging
import math

from mpo_scoring.pka import select_pka
from mpo_scoring.transforms import hump1, hump2, ramp, round_to_significant_figures

LOG = logging.getLogger(__name__)

SIGNIFICANT_FIGURES = 4

# Wager et al., ACS Chem. Neurosci. 2010, 1, 435-449
PFIZER_CNS_MPO_TRANSFORMS = {
    "logp": ramp(1.0, 0.0, 3.0, 5.0),
    "logd": ramp(1.0, 0.0, 2.0, 4.0),
    "mw": ramp(1.0, 0.0, 360.0, 500.0),
    "tpsa": hump1(0.0, 1.0, 0.0, 20.0, 40.0, 90.0, 120.0),
    "hbd": ramp(1.0, 0.0, 0.5, 3.5),
    "bpka": ramp(1.0, 0.0, 8.0, 10.0),
}

PFIZER_CNS_MPO_2010_TRANSFORMS = {
    "logp": ramp(1.0, 0.0, 3.0, 5.0),
    "logd": ramp(1.0, 0.0, 2.0, 4.0),
    "mw": ramp(1.0, 0.0, 360.0, 500.0),
    "tpsa": hump1(0.0, 1.0, 0.0, 20.0, 40.0, 90.0, 120.0),
    "hbd": ramp(1.0, 0.0, 0.5, 3.5),
    "bpka": ramp(1.0, 0.0, 8.0, 10.0),
}

KIDS_MPO_TRANSFORMS = {
    "tpsa": hump1(0.0, 1.0, 0.0, 64.63, 75.85, 92.40, 138.3),
    "rotb": hump1(0.2, 1.0, 0.0, 1.0, 2.0, 3.0, 5.0),
    "n_count": hump2(0.0, 1.0, 0.2, 0.0, 2.0, 4.0, 5.0, 6.0, 8.0, 9.0),
    "o_count": hump1(0.2, 1.0, 0.0, 0.0, 1.0, 1.0, 3.0),
    "hbd": hump2(0.0, 1.0, 0.2, 0.0, 0.0, 2.0, 3.0, 4.0, 6.0, 7.0),
    "aro": hump2(0.0, 1.0, 0.2, 0.0, 1.0, 3.0, 3.0, 4.0, 4.0, 5.0),
}

AROMATIC_RING_SCORES = {0: 0.336376, 1: 0.816016, 2: 1.0, 3: 0.691115, 4: 0.199399}


def _missing(inputs: dict[str, object], optional: tuple[str, ...] = ()) -> bool:
    if any(value is None for name, value in inputs.items() if name not in optional):
        LOG.info("Data missing. Inputs %s", " ".join(f"{name}={value}" for name, value in inputs.items()))
        return True
    return False


# Gupta et al., J. Med. Chem. 2019, 62, 9824-9836 (DOI: 10.1021/acs.jmedchem.9b01220)


def gupta_aro_score(aro: int) -> float:
    return AROMATIC_RING_SCORES.get(int(aro), 0.0)


def gupta_hac_score(hac: int) -> float:
    if 5 < hac <= 45:
        return ((0.0000443 * hac**3) - (0.004556 * hac**2) + (0.12775 * hac) - 0.463) / 0.624231
    return 0.0


def gupta_mwhbn(mw: float, hbd: int, hba: int) -> float:
    return (hbd + hba) / math.sqrt(mw)


def gupta_mwhbn_score(mwhbn: float) -> float:
    if 0.05 < mwhbn <= 0.45:
        return ((26.733 * mwhbn**3) - (31.495 * mwhbn**2) + (9.5202 * mwhbn) - 0.1358) / 0.72258
    return 0.0


def gupta_tpsa_score(tpsa: float) -> float:
    if 0.0 < tpsa <= 120.0:
        return ((-0.0067 * tpsa) + 0.9598) / 0.9598
    return 0.0


def gupta_pka_score(pka: float) -> float:
    if 3.0 < pka <= 11.0:
        return (
            (0.00045068 * pka**4)
            - (0.016331 * pka**3)
            + (0.18618 * pka**2)
            - (0.71043 * pka)
            + 0.8579
        ) / 0.597488
    return 0.0


def gupta_bbb(
    aro: int | None,
    hac: int | None,
    hba: int | None,
    hbd: int | None,
    mw: float | None,
    tpsa: float | None,
    rot: int | None,
    apka: float | None = None,
    bpka: float | None = None,
) -> float | None:
    inputs = {
        "apka": apka, "bpka": bpka, "mw": mw, "tpsa": tpsa, "aro": aro,
        "hac": hac, "hba": hba, "hbd": hbd, "rot": rot,
    }
    if _missing(inputs, optional=("apka", "bpka")):
        return None
    LOG.debug("Inputs are: %s", inputs)

    pka = round_to_significant_figures(select_pka(apka, bpka), SIGNIFICANT_FIGURES)
    mw = round_to_significant_figures(mw, SIGNIFICANT_FIGURES)
    tpsa = round_to_significant_figures(tpsa, SIGNIFICANT_FIGURES)

    score_aro = gupta_aro_score(aro)
    score_hac = gupta_hac_score(int(hac))
    score_mwhbn = gupta_mwhbn_score(gupta_mwhbn(mw, hbd, hba)) if mw > 0 else 0.0
    score_tpsa = gupta_tpsa_score(tpsa)
    score_pka = gupta_pka_score(pka)

    score = round_to_significant_figures(
        score_aro + score_hac + (1.5 * score_mwhbn) + (2.0 * score_tpsa) + (0.5 * score_pka),
        SIGNIFICANT_FIGURES,
    )
    LOG.debug(
        "Scores are: aro=%s, hac=%s, mwhbn=%s, tpsa=%s, pka=%s, bbb=%s",
        score_aro, score_hac, score_mwhbn, score_tpsa, score_pka, score,
    )
    return score


def _pfizer_sum(transforms: dict, logp: float, logd: float, mw: float, tpsa: float, hbd: int, bpka_score: float) -> float:
    return round_to_significant_figures(
        transforms["logp"](logp)
        + transforms["logd"](logd)
        + transforms["mw"](mw)
        + transforms["tpsa"](tpsa)
        + transforms["hbd"](float(hbd))
        + bpka_score,
        SIGNIFICANT_FIGURES,
    )


def pfizer_cns_mpo(
    logp: float | None,
    logd: float | None,
    mw: float | None,
    tpsa: float | None,
    hbd: int | None,
    bpka: float | None = None,
) -> float | None:
    """Pfizer CNS MPO. An absent basic pKa scores full credit (1.0) instead of voiding the score."""
    inputs = {"logp": logp, "logd": logd, "mw": mw, "tpsa": tpsa, "hbd": hbd, "bpka": bpka}
    LOG.debug("Inputs are: %s", inputs)
    if _missing(inputs, optional=("bpka",)):
        return None
    bpka_score = 1.0 if bpka is None else PFIZER_CNS_MPO_TRANSFORMS["bpka"](bpka)
    score = _pfizer_sum(PFIZER_CNS_MPO_TRANSFORMS, logp, logd, mw, tpsa, hbd, bpka_score)
    LOG.debug("Score is %s", score)
    return score


def pfizer_cns_mpo_2010(
    logp: float | None,
    logd: float | None,
    mw: float | None,
    tpsa: float | None,
    hbd: int | None,
    bpka: float | None,
) -> float | None:
    inputs = {"logp": logp, "logd": logd, "mw": mw, "tpsa": tpsa, "hbd": hbd, "bpka": bpka}
    LOG.debug("Inputs are: %s", inputs)
    if _missing(inputs):
        return None
    bpka_score = PFIZER_CNS_MPO_2010_TRANSFORMS["bpka"](bpka)
    score = _pfizer_sum(PFIZER_CNS_MPO_2010_TRANSFORMS, logp, logd, mw, tpsa, hbd, bpka_score)
    LOG.debug("Score is %s", score)
    return score


def abbvie_mps(aro: int | None, rot: int | None, logd: float | None) -> float | None:
    # abs(logD - 3) + num_aromatic_rings + num_rotatable_bonds
    if _missing({"aro": aro, "rot": rot, "logd": logd}):
        return None
    score = round_to_significant_figures(abs(logd - 3.0) + float(aro) + float(rot), SIGNIFICANT_FIGURES)
    LOG.debug("Score is %s", score)
    return score


def kids_mpo(
    tpsa: float | None,
    rotb: int | None,
    n_count: int | None,
    o_count: int | None,
    hbd: int | None,
    aro: int | None,
) -> float | None:
    inputs = {"tpsa": tpsa, "rotb": rotb, "n_count": n_count, "o_count": o_count, "hbd": hbd, "aro": aro}
    if _missing(inputs):
        return None
    total = sum(KIDS_MPO_TRANSFORMS[name](float(value)) for name, value in inputs.items())
    return round_to_significant_figures(total, SIGNIFICANT_FIGURES)


def balanced_property_index(hac: int | None, tpsa: float | None, logd: float | None) -> float | None:
    if _missing({"hac": hac, "tpsa": tpsa, "logd": logd}):
        return None
    denominator = tpsa * int(hac)
    if denominator == 0:
        LOG.info("BPI undefined for tpsa=%s hac=%s", tpsa, hac)
        return None
    score = round_to_significant_figures(1000.0 * logd / denominator, SIGNIFICANT_FIGURES)
    LOG.debug("Scores are: hac=%s, tpsa=%s, logd=%s, bpi=%s", hac, tpsa, logd, score)
    return score
