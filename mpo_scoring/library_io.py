from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Iterator, TextIO

import pandas as pd

from mpo_scoring.molecules import MoleculeRecord, parse_failure

SMILES_ALIASES = {"smiles", "canonical_smiles"}
ID_ALIASES = {"id", "compound_id", "name", "molecule_id"}
STATUS_COLUMNS = {"parse_status", "parse_error"}

INPUT_FORMATS = {".csv": "csv", ".tsv": "tsv", ".txt": "tsv", ".jsonl": "jsonl", ".ndjson": "jsonl"}
OUTPUT_FORMATS = {".csv": "csv", ".tsv": "tsv", ".smi": "smi", ".jsonl": "jsonl", ".ndjson": "jsonl"}
_SEPARATORS = {"csv": ",", "tsv": "\t"}
# Placeholder first field for rows with more fields than the header
_BAD_LINE = "\x00too_many_columns"


def _norm_col(c: str) -> str:
    return c.strip().lower()


def _resolve_format(path: Path, fmt: str | None, known: dict[str, str], kind: str) -> str:
    if fmt:
        fmt = fmt.lower().lstrip(".")
        if fmt in set(known.values()):
            return fmt
        raise ValueError(f"Unsupported {kind} format={fmt}")
    suffix = path.suffix.lower()
    if suffix not in known:
        raise ValueError(f"Unsupported {kind} format for {path} (known suffixes: {sorted(known)})")
    return known[suffix]


def detect_input_format(path: str | Path, fmt: str | None = None) -> str:
    return _resolve_format(Path(path), fmt, INPUT_FORMATS, "input")


def detect_output_format(path: str | Path, fmt: str | None = None) -> str:
    return _resolve_format(Path(path), fmt, OUTPUT_FORMATS, "output")


def _pick(columns: list[str], explicit: str | None, aliases: set[str]) -> str | None:
    nmap = {_norm_col(c): c for c in columns}
    if explicit:
        if explicit in columns:
            return explicit
        if _norm_col(explicit) in nmap:
            return nmap[_norm_col(explicit)]
        raise ValueError(f"Column '{explicit}' not found in input")
    for alias in sorted(aliases):
        if alias in nmap:
            return nmap[alias]
    return None


def _record_from_row(
    row: dict[str, Any], source_row: int, smiles_c: str | None, id_c: str | None
) -> MoleculeRecord:
    if str(row.get("parse_status", "ok")).strip().lower() == "fail":
        return parse_failure(str(row.get("parse_error") or "upstream_parse_failure"), source_row)
    props = {
        k: v
        for k, v in row.items()
        if k not in (smiles_c, id_c) and _norm_col(str(k)) not in STATUS_COLUMNS
    }
    smiles = str(row.get(smiles_c, "")).strip() if smiles_c else ""
    if not smiles and not any(str(v).strip() for v in props.values()):
        return parse_failure("empty_row", source_row)
    cid = str(row.get(id_c, "")).strip() if id_c else ""
    return MoleculeRecord(
        identifier=cid or f"row_{source_row}",
        properties=props,
        smiles=smiles or None,
        source_row=source_row,
    )


def _iter_delimited(
    path: Path, sep: str, smiles_col: str | None, id_col: str | None, chunksize: int
) -> Iterator[MoleculeRecord]:
    width = len(pd.read_csv(path, sep=sep, nrows=0, encoding="utf-8-sig").columns)

    def too_many_fields(fields: list[str]) -> list[str]:
        return [_BAD_LINE] + [""] * (width - 1)

    reader = pd.read_csv(
        path,
        sep=sep,
        dtype=str,
        keep_default_na=False,
        encoding="utf-8-sig",
        chunksize=chunksize,
        engine="python",
        on_bad_lines=too_many_fields,
    )
    smiles_c = id_c = None
    resolved = False
    source_row = 1
    with reader:
        for chunk in reader:
            if not resolved:
                columns = list(chunk.columns)
                smiles_c = _pick(columns, smiles_col, SMILES_ALIASES)
                id_c = _pick(columns, id_col, ID_ALIASES)
                resolved = True
            for row in chunk.to_dict(orient="records"):
                if row.get(columns[0]) == _BAD_LINE:
                    yield parse_failure("too_many_columns", source_row)
                else:
                    yield _record_from_row(row, source_row, smiles_c, id_c)
                source_row += 1


def _iter_jsonl(path: Path, smiles_col: str | None, id_col: str | None) -> Iterator[MoleculeRecord]:
    with path.open("r", encoding="utf-8-sig") as handle:
        for idx, raw in enumerate(handle, start=1):
            line = raw.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                yield parse_failure(f"invalid_json: {exc.msg}", idx, raw=line[:1000])
                continue
            if not isinstance(payload, dict):
                yield parse_failure("not_an_object", idx, raw=line[:1000])
                continue
            row = dict(payload)
            nested = row.pop("properties", None)
            if isinstance(nested, dict):
                row.update(nested)
            columns = list(row)
            yield _record_from_row(
                row, idx, _pick(columns, smiles_col, SMILES_ALIASES), _pick(columns, id_col, ID_ALIASES)
            )


def read_molecules(
    input_path: str | Path,
    input_format: str | None = None,
    smiles_col: str | None = None,
    id_col: str | None = None,
    chunksize: int = 1000,
) -> Iterator[MoleculeRecord]:
    """Open a lazy, single-pass molecule stream.

    Format and file existence are checked here, before the first molecule is read.
    Rows that cannot be read become parse-failure records.
    """
    path = Path(input_path)
    fmt = detect_input_format(path, input_format)
    if not path.is_file():
        raise FileNotFoundError(f"Input not found: {path}")
    if chunksize < 1:
        raise ValueError(f"chunksize must be positive, got {chunksize}")
    if fmt == "jsonl":
        return _iter_jsonl(path, smiles_col, id_col)
    return _iter_delimited(path, _SEPARATORS[fmt], smiles_col, id_col, chunksize)


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class _FileSink:
    def __init__(self, output_path: str | Path, header: bool = True) -> None:
        self.path = Path(output_path)
        self.header = header
        self.written = 0
        self._handle: TextIO | None = None

    def open(self) -> "_FileSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("w", encoding="utf-8", newline="")
        return self

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "_FileSink":
        return self.open()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def handle(self) -> TextIO:
        if self._handle is None:
            raise ValueError(f"Sink {self.path} is not open")
        return self._handle

    def write(self, molecule: MoleculeRecord) -> None:
        self._write(molecule)
        self.written += 1

    def _write(self, molecule: MoleculeRecord) -> None:
        raise NotImplementedError


class DelimitedSink(_FileSink):
    """CSV/TSV writer.

    Columns are fixed when the first molecule is written: ``id``, ``smiles``, that molecule's
    properties, then any declared fields it lacks. Properties outside the columns are dropped.
    """

    def __init__(self, output_path: str | Path, sep: str = ",", header: bool = True) -> None:
        super().__init__(output_path, header)
        self.sep = sep
        self.columns: list[str] | None = None
        self.declared: list[str] = []
        self._writer: Any = None

    def declare_fields(self, fields: list[str]) -> None:
        if self.columns is not None:
            raise ValueError(f"Sink {self.path} columns are already fixed")
        self.declared.extend(f for f in fields if f not in self.declared)

    def _write(self, molecule: MoleculeRecord) -> None:
        if self.columns is None:
            self.columns = ["id", "smiles"] + [k for k in molecule.properties if k not in ("id", "smiles")]
            self.columns += [f for f in self.declared if f not in self.columns]
            self._writer = csv.writer(self.handle, delimiter=self.sep, lineterminator="\n")
            if self.header:
                self._writer.writerow(self.columns)
        row = {**molecule.properties, "id": molecule.identifier, "smiles": molecule.smiles}
        self._writer.writerow([_format_value(row.get(c)) for c in self.columns])


class SmilesSink(_FileSink):
    def _write(self, molecule: MoleculeRecord) -> None:
        if not molecule.smiles:
            raise ValueError(f"Molecule {molecule.identifier} has no SMILES")
        if self.header and self.written == 0:
            self.handle.write("smiles\tid\n")
        self.handle.write(f"{molecule.smiles}\t{_format_value(molecule.identifier)}\n")


class JsonLinesSink(_FileSink):
    def _write(self, molecule: MoleculeRecord) -> None:
        record = {"id": molecule.identifier, "smiles": molecule.smiles, "properties": molecule.properties}
        self.handle.write(json.dumps(record, allow_nan=False) + "\n")


def open_sink(output_path: str | Path, output_format: str | None = None, header: bool = True) -> _FileSink:
    """Create (not yet opened) sink for ``output_path``; unsupported formats raise ValueError."""
    fmt = detect_output_format(output_path, output_format)
    if fmt == "smi":
        return SmilesSink(output_path, header=header)
    if fmt == "jsonl":
        return JsonLinesSink(output_path, header=header)
    return DelimitedSink(output_path, sep=_SEPARATORS[fmt], header=header)
