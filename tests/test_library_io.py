import json

import pytest

from mpo_scoring.library_io import (
    DelimitedSink,
    JsonLinesSink,
    SmilesSink,
    open_sink,
    read_molecules,
)
from mpo_scoring.molecules import MoleculeRecord


def test_read_csv_marks_blank_rows_as_failures(abbvie_csv):
    records = list(read_molecules(abbvie_csv, chunksize=3))
    assert len(records) == 10
    failures = [r for r in records if not r.valid]
    assert [r.source_row for r in failures] == [3, 6]
    assert all(r.reason == "empty_row" for r in failures)
    first = records[0]
    assert first.identifier == "mol_0"
    assert first.smiles == "C"
    assert first.properties == {"aro": "1", "rot": "0", "logd": "3.0"}


def test_read_tsv_with_upstream_status(tmp_path):
    path = tmp_path / "lib.tsv"
    path.write_text(
        "compound_id\tsmiles\ttpsa\tparse_status\tparse_error\n"
        "a\tCCO\t20.2\tok\t\n"
        "b\tC1CC\t\tfail\tunclosed_ring\n",
        encoding="utf-8",
    )
    a, b = read_molecules(path)
    assert a.valid and a.properties == {"tpsa": "20.2"}
    assert not b.valid and b.reason == "unclosed_ring"


def test_read_jsonl(tmp_path):
    path = tmp_path / "lib.jsonl"
    path.write_text(
        json.dumps({"id": "a", "smiles": "CCO", "properties": {"tpsa": 20.2}}) + "\n"
        "\n"
        "{not json\n"
        "[1, 2]\n"
        + json.dumps({"name": "b", "hac": 12}) + "\n",
        encoding="utf-8",
    )
    records = list(read_molecules(path))
    assert [r.valid for r in records] == [True, False, False, True]
    assert records[0].properties == {"tpsa": 20.2}
    assert records[1].reason.startswith("invalid_json")
    assert records[2].reason == "not_an_object"
    assert records[3].identifier == "b"


def test_reader_setup_errors(tmp_path):
    with pytest.raises(ValueError):
        read_molecules(tmp_path / "lib.sdf")
    with pytest.raises(FileNotFoundError):
        read_molecules(tmp_path / "missing.csv")


def _mol(identifier="m1", smiles="CCO", **props):
    return MoleculeRecord(identifier, props or {"TPSA": 20.23, "Gupta_BBB": 4.503}, smiles=smiles)


def test_csv_sink_with_and_without_header(tmp_path):
    with open_sink(tmp_path / "out.csv") as sink:
        sink.write(_mol())
        sink.write(_mol("m2", "CCN"))
    assert isinstance(sink, DelimitedSink)
    lines = (tmp_path / "out.csv").read_text(encoding="utf-8").splitlines()
    assert lines == ["id,smiles,TPSA,Gupta_BBB", "m1,CCO,20.23,4.503", "m2,CCN,20.23,4.503"]

    with open_sink(tmp_path / "out.tsv", header=False) as sink:
        sink.write(_mol())
    assert (tmp_path / "out.tsv").read_text(encoding="utf-8") == "m1\tCCO\t20.23\t4.503\n"


def test_smiles_sink_rejects_missing_smiles(tmp_path):
    with open_sink(tmp_path / "out.smi") as sink:
        assert isinstance(sink, SmilesSink)
        with pytest.raises(ValueError):
            sink.write(_mol(smiles=None))
        sink.write(_mol())
    assert (tmp_path / "out.smi").read_text(encoding="utf-8") == "smiles\tid\nCCO\tm1\n"
    assert sink.written == 1


def test_jsonl_sink(tmp_path):
    with open_sink(tmp_path / "out.jsonl") as sink:
        assert isinstance(sink, JsonLinesSink)
        sink.write(_mol())
    payload = json.loads((tmp_path / "out.jsonl").read_text(encoding="utf-8"))
    assert payload == {"id": "m1", "smiles": "CCO", "properties": {"TPSA": 20.23, "Gupta_BBB": 4.503}}


def test_unsupported_output_format(tmp_path):
    with pytest.raises(ValueError):
        open_sink(tmp_path / "out.sdf")


def test_csv_sink_keeps_declared_fields_missing_from_first_molecule(tmp_path):
    sink = DelimitedSink(tmp_path / "out.csv")
    sink.declare_fields(["TPSA", "Gupta_BBB"])
    with sink:
        sink.write(_mol(TPSA=20.23))
        sink.write(_mol("m2", "CCN"))
        with pytest.raises(ValueError):
            sink.declare_fields(["BPI"])
    lines = (tmp_path / "out.csv").read_text(encoding="utf-8").splitlines()
    assert lines == ["id,smiles,TPSA,Gupta_BBB", "m1,CCO,20.23,", "m2,CCN,20.23,4.503"]


def test_read_csv_row_with_extra_fields_becomes_failure(tmp_path):
    path = tmp_path / "lib.csv"
    path.write_text(
        "id,smiles,aro,rot,logd\n"
        "a,C,1,0,3.0\n"
        "b,CC,1,0,3.0,extra,more\n"
        "c,CCC,2,1,4.0\n",
        encoding="utf-8",
    )
    records = list(read_molecules(path))
    assert [r.valid for r in records] == [True, False, True]
    assert records[1].reason == "too_many_columns"
    assert records[1].source_row == 2
    assert records[2].identifier == "c"
    assert records[2].properties == {"aro": "2", "rot": "1", "logd": "4.0"}
