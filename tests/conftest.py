"""Shared fixtures: descriptor rows and small input files."""

from pathlib import Path

import pytest

from mpo_scoring.molecules import MoleculeRecord, parse_failure


@pytest.fixture
def abbvie_row() -> dict:
    """Descriptors giving an Abbvie MPS of exactly 7.0."""
    return {"aro": "2", "rot": "3", "logd": "5.0"}


@pytest.fixture
def gupta_row() -> dict:
    return {"aro": 1, "hac": 20, "hba": 4, "hbd": 2, "mw": 300.0, "tpsa": 60.0, "rot": 3}


@pytest.fixture
def molecule_stream():
    """Ten entries, two of them unreadable; valid ones score 3 + i with Abbvie MPS."""

    def _make():
        records = []
        for i in range(10):
            if i in (3, 7):
                records.append(parse_failure("invalid_json", source_row=i + 1))
                continue
            records.append(
                MoleculeRecord(
                    identifier=f"mol_{i}",
                    smiles="C" * (i + 1),
                    properties={"aro": 2, "rot": i, "logd": 4.0},
                )
            )
        return records

    return _make


@pytest.fixture
def abbvie_csv(tmp_path) -> Path:
    """Ten rows, two of them blank, with Abbvie descriptors."""
    lines = ["id,smiles,aro,rot,logd"]
    for i in range(10):
        if i in (2, 5):
            lines.append(",,,,")
        else:
            lines.append(f"mol_{i},{'C' * (i + 1)},1,{i},3.0")
    path = tmp_path / "library.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
