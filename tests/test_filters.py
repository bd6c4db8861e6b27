import logging
import math

import pandas as pd
import pytest

from mpo_scoring.filters import FilterMode, apply_filter, filter_frame, passes_filter
from mpo_scoring.molecules import MoleculeRecord


@pytest.mark.parametrize(
    "score, mode, expected",
    [
        (None, "pass", False),
        (None, "fail", True),
        (None, "none", True),
        (float("nan"), "pass", False),
        (2.0, "pass", True),
        (8.0, "pass", True),
        (1.99, "pass", False),
        (8.01, "pass", False),
        (5.0, "fail", False),
        (1.0, "fail", True),
        (9.0, "fail", True),
    ],
)
def test_passes_filter_with_bounds(score, mode, expected):
    assert passes_filter(score, mode, 2.0, 8.0) is expected


def test_open_bounds():
    assert passes_filter(100.0, FilterMode.PASS, min_value=2.0)
    assert not passes_filter(1.0, FilterMode.PASS, min_value=2.0)
    assert passes_filter(-100.0, FilterMode.PASS, max_value=8.0)
    assert passes_filter(5.0, FilterMode.PASS)
    assert not passes_filter(5.0, FilterMode.FAIL)


def _molecules(*scores):
    return [
        MoleculeRecord(f"m{i}", {} if s is None else {"KIDS_MPO": s})
        for i, s in enumerate(scores)
    ]


def test_apply_filter_is_lazy_and_ordered(caplog):
    mols = _molecules(1.0, None, 3.0, 5.0, 9.0)
    with caplog.at_level(logging.INFO, logger="mpo_scoring.filters"):
        kept = apply_filter(iter(mols), "pass", "KIDS_MPO", 2.0, 8.0)
    assert "Adding pass filters of 2.0 and 8.0" in caplog.text
    assert [m.identifier for m in kept] == ["m2", "m3"]

    kept = apply_filter(mols, "fail", "KIDS_MPO", 2.0, 8.0)
    assert [m.identifier for m in kept] == ["m0", "m1", "m4"]

    kept = apply_filter(mols, "none", "KIDS_MPO", 2.0, 8.0)
    assert [m.identifier for m in kept] == ["m0", "m1", "m2", "m3", "m4"]


def test_invalid_filter_setup_fails_immediately():
    with pytest.raises(ValueError):
        apply_filter([], "maybe", "BPI")
    with pytest.raises(ValueError):
        apply_filter([], "pass", "BPI", 8.0, 2.0)
    with pytest.raises(ValueError):
        apply_filter([], "pass", "BPI", "low")


def test_filter_frame_matches_stream_semantics():
    df = pd.DataFrame({"id": ["a", "b", "c", "d", "e"], "BPI": [1.0, math.nan, 3.0, 5.0, 9.0]})
    assert filter_frame(df, "pass", "BPI", 2.0, 8.0)["id"].tolist() == ["c", "d"]
    assert filter_frame(df, "fail", "BPI", 2.0, 8.0)["id"].tolist() == ["a", "b", "e"]
    assert len(filter_frame(df, "none", "BPI")) == 5


def test_filter_frame_missing_column():
    with pytest.raises(ValueError):
        filter_frame(pd.DataFrame({"x": [1]}), "pass", "BPI", 1.0)
