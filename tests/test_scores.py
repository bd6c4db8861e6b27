import logging
import random

import pytest

from mpo_scoring.formulas_registry import (
    FORMULAS_REGISTRY,
    compute_score,
    parse_calculator_list,
    resolve_formula,
    score_field,
)
from mpo_scoring.scores import (
    abbvie_mps,
    balanced_property_index,
    gupta_aro_score,
    gupta_bbb,
    kids_mpo,
    pfizer_cns_mpo,
    pfizer_cns_mpo_2010,
)

PFIZER_INPUTS = {"logp": 2.0, "logd": 1.5, "mw": 300.0, "tpsa": 60.0, "hbd": 1}


@pytest.mark.parametrize(
    "count, expected",
    [(0, 0.336376), (1, 0.816016), (2, 1.0), (3, 0.691115), (4, 0.199399), (5, 0.0)],
)
def test_gupta_aromatic_lookup(count, expected):
    assert gupta_aro_score(count) == expected


def test_gupta_bbb_reference_molecule(gupta_row):
    assert gupta_bbb(**gupta_row) == 4.503


def test_gupta_bbb_missing_descriptor_gives_no_score(gupta_row, caplog):
    gupta_row["tpsa"] = None
    with caplog.at_level(logging.INFO, logger="mpo_scoring.scores"):
        assert gupta_bbb(**gupta_row) is None
    assert "Data missing" in caplog.text


def test_gupta_bbb_pka_is_optional(gupta_row):
    neutral = gupta_bbb(**gupta_row)
    acid = gupta_bbb(**gupta_row, apka=3.5)
    assert neutral is not None and acid is not None
    assert acid < neutral


def test_abbvie_mps():
    assert abbvie_mps(aro=2, rot=3, logd=5.0) == 7.0
    assert abbvie_mps(aro=0, rot=0, logd=1.0) == 2.0
    assert abbvie_mps(aro=2, rot=None, logd=5.0) is None


def test_pfizer_missing_basic_pka_scores_full_credit():
    assert pfizer_cns_mpo(**PFIZER_INPUTS) == 5.833
    assert pfizer_cns_mpo(**PFIZER_INPUTS, bpka=9.0) == 5.333


def test_pfizer_missing_other_descriptor_gives_no_score():
    inputs = dict(PFIZER_INPUTS, logd=None)
    assert pfizer_cns_mpo(**inputs, bpka=9.0) is None


def test_pfizer_2010_requires_basic_pka():
    assert pfizer_cns_mpo_2010(**PFIZER_INPUTS, bpka=None) is None
    assert pfizer_cns_mpo_2010(**PFIZER_INPUTS, bpka=9.0) == 5.333


def test_kids_mpo():
    assert kids_mpo(tpsa=80.0, rotb=2, n_count=3, o_count=1, hbd=1, aro=2) == 4.5
    assert kids_mpo(tpsa=80.0, rotb=2, n_count=None, o_count=1, hbd=1, aro=2) is None


def test_balanced_property_index():
    assert balanced_property_index(hac=25, tpsa=80.0, logd=2.0) == 1.0
    assert balanced_property_index(hac=20, tpsa=30.0, logd=-1.5) == -2.5


def test_balanced_property_index_zero_denominator():
    assert balanced_property_index(hac=0, tpsa=80.0, logd=2.0) is None
    assert balanced_property_index(hac=10, tpsa=0.0, logd=2.0) is None


def test_compute_score_from_mapping(abbvie_row):
    values = {k: float(v) for k, v in abbvie_row.items()}
    assert compute_score("abbvie-mps", values) == 7.0
    assert compute_score("Abbvie_MPS", values) == 7.0


def test_compute_score_from_callable():
    values = {"hac": 25, "tpsa": 80.0, "logd": 2.0}
    assert compute_score("bpi", values.get) == 1.0


def test_compute_score_ignores_lookup_order(gupta_row):
    items = list(gupta_row.items())
    expected = compute_score("gupta-bbb", dict(items))
    rng = random.Random(7)
    for _ in range(5):
        rng.shuffle(items)
        assert compute_score("gupta-bbb", dict(items)) == expected


def test_unknown_formula():
    with pytest.raises(ValueError):
        compute_score("lipinski", {})


def test_score_fields_are_fixed():
    assert {m["score_field"] for m in FORMULAS_REGISTRY.values()} == {
        "Gupta_BBB",
        "Pfizer_CNS_MPO",
        "PFIZER_CNS_MPO_2010",
        "Abbvie_MPS",
        "KIDS_MPO",
        "BPI",
    }
    assert score_field("kids_mpo") == "KIDS_MPO"
    assert resolve_formula("PFIZER_CNS_MPO_2010") == "pfizer-cns-mpo-2010"


def test_descriptor_sets_are_immutable():
    with pytest.raises(TypeError):
        FORMULAS_REGISTRY["bpi"]["descriptors"] = ()


def test_parse_calculator_list():
    assert parse_calculator_list("molecular-weight, tpsa  gupta-bbb") == ["molecular-weight", "tpsa", "gupta-bbb"]
    with pytest.raises(ValueError, match="bogus"):
        parse_calculator_list("tpsa bogus")
    with pytest.raises(ValueError):
        parse_calculator_list("  ")


@pytest.mark.parametrize("aggregator", [pfizer_cns_mpo, pfizer_cns_mpo_2010])
def test_pfizer_logs_inputs_and_score_at_debug(aggregator, caplog):
    with caplog.at_level(logging.DEBUG, logger="mpo_scoring.scores"):
        score = aggregator(**PFIZER_INPUTS, bpka=9.0)
    assert "Inputs are: {'logp': 2.0, 'logd': 1.5, 'mw': 300.0, 'tpsa': 60.0, 'hbd': 1, 'bpka': 9.0}" in caplog.text
    assert f"Score is {score}" in caplog.text
