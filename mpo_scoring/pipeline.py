from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Protocol

import pandas as pd

from mpo_scoring.descriptors import (
    DEFAULT_LOGD_PH,
    DEFAULT_PKA_COUNT,
    PKA_DESCRIPTORS,
    ColumnEvaluator,
    DescriptorCalculator,
    EvaluatorFactory,
    create_calculators,
    pka_sites,
)
from mpo_scoring.evaluator_pool import MAX_POOL_SIZE
from mpo_scoring.filters import FilterMode, apply_filter, validate_bounds
from mpo_scoring.formulas_registry import (
    DESCRIPTOR_TOKENS,
    FORMULAS_REGISTRY,
    parse_calculator_list,
    resolve_formula,
)
from mpo_scoring.molecules import MoleculeRecord

LOG = logging.getLogger(__name__)


class MoleculeSink(Protocol):
    def write(self, molecule: MoleculeRecord) -> None: ...


@dataclass
class RunStatistics:
    """Counters for one run; created at start and read once at the end."""

    total: int = 0
    scored: int = 0
    errors: int = 0
    passed: int = 0
    write_errors: int = 0
    descriptor_counts: dict[str, int] = field(default_factory=dict)

    def increment(self, symbol: str) -> None:
        self.descriptor_counts[symbol] = self.descriptor_counts.get(symbol, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "scored": self.scored,
            "errors": self.errors,
            "passed": self.passed,
            "write_errors": self.write_errors,
            "descriptor_counts": dict(sorted(self.descriptor_counts.items())),
        }


def _descriptor_params(identifier: str, params: tuple[Any, ...], logd_ph: float | None) -> tuple[Any, ...]:
    if identifier == "LogD" and logd_ph is not None:
        return (logd_ph,)
    return params


def _sink_fields(sink: MoleculeSink | None, fields: list[str]) -> None:
    declare = getattr(sink, "declare_fields", None)
    if declare is not None:
        declare(fields)


class FormulaScorer:
    """Resolves a formula's descriptor set for a molecule and attaches its score field."""

    def __init__(
        self,
        formula: str,
        pool_size: int = MAX_POOL_SIZE,
        logd_ph: float | None = None,
        evaluator_factory: EvaluatorFactory = ColumnEvaluator,
    ) -> None:
        self.formula = resolve_formula(formula)
        meta = FORMULAS_REGISTRY[self.formula]
        self.score_field: str = meta["score_field"]
        self._aggregator = meta["aggregator"]
        entries = meta["descriptors"]
        calculators = create_calculators(
            [identifier for _, identifier, _ in entries],
            [_descriptor_params(identifier, params, logd_ph) for _, identifier, params in entries],
            pool_size,
            evaluator_factory,
        )
        self.calculators: list[tuple[str, DescriptorCalculator]] = [
            (arg, calc) for (arg, _, _), calc in zip(entries, calculators)
        ]

    @property
    def output_fields(self) -> list[str]:
        return [calc.property_name for _, calc in self.calculators] + [self.score_field]

    def score(self, molecule: MoleculeRecord, stats: RunStatistics | None = None) -> float | None:
        values = {arg: calc.process(molecule, stats) for arg, calc in self.calculators}
        score = self._aggregator(**values)
        if score is not None:
            molecule.set_property(self.score_field, score)
        return score


def score_stream(
    molecules: Iterable[MoleculeRecord],
    scorers: list[FormulaScorer],
    stats: RunStatistics,
    descriptors: list[DescriptorCalculator] | None = None,
) -> Iterator[MoleculeRecord]:
    """Visit every molecule once, counting it and scoring it unless it is a parse failure.

    Parse failures are counted as errors and not passed downstream.
    """
    for molecule in molecules:
        stats.total += 1
        if molecule is None or not molecule.valid:
            stats.errors += 1
            reason = molecule.reason if molecule is not None else None
            LOG.warning("Skipping unparsable entry %s: %s", stats.total, reason)
            continue
        for calc in descriptors or ():
            calc.process(molecule, stats)
        for scorer in scorers:
            scorer.score(molecule, stats)
        stats.scored += 1
        yield molecule


def _emit(stream: Iterable[MoleculeRecord], sink: MoleculeSink | None, stats: RunStatistics) -> None:
    for molecule in stream:
        stats.passed += 1
        if sink is None:
            continue
        try:
            sink.write(molecule)
        except (OSError, ValueError, TypeError) as exc:
            stats.write_errors += 1
            LOG.warning("Failed to write molecule %s: %s", molecule.identifier, exc)


def run_scoring(
    formula: str,
    molecules: Iterable[MoleculeRecord],
    mode: FilterMode | str = FilterMode.NONE,
    min_value: Any = None,
    max_value: Any = None,
    sink: MoleculeSink | None = None,
    pool_size: int = MAX_POOL_SIZE,
    logd_ph: float | None = None,
    evaluator_factory: EvaluatorFactory = ColumnEvaluator,
) -> RunStatistics:
    mode = FilterMode.parse(mode)
    low, high = validate_bounds(min_value, max_value)
    scorer = FormulaScorer(formula, pool_size=pool_size, logd_ph=logd_ph, evaluator_factory=evaluator_factory)
    stats = RunStatistics()
    _sink_fields(sink, scorer.output_fields)

    stream = score_stream(molecules, [scorer], stats)
    _emit(apply_filter(stream, mode, scorer.score_field, low, high), sink, stats)

    LOG.info("Processed %s molecules, %s passed filters", stats.total, stats.passed)
    if stats.errors:
        LOG.info("%s molecules could not be read", stats.errors)
    return stats


def run_multi(
    calculators: str | list[str],
    molecules: Iterable[MoleculeRecord],
    sink: MoleculeSink | None = None,
    pool_size: int = MAX_POOL_SIZE,
    logd_ph: float | None = None,
    pka_count: int = DEFAULT_PKA_COUNT,
    evaluator_factory: EvaluatorFactory = ColumnEvaluator,
) -> RunStatistics:
    """Apply several descriptor and formula calculators to every molecule without filtering.

    ``acidic-pka`` and ``basic-pka`` expand to one request per site, 1 to ``pka_count``.
    """
    if not isinstance(calculators, str):
        calculators = " ".join(calculators)
    tokens = parse_calculator_list(calculators)
    sites = pka_sites(pka_count)

    identifiers: list[str] = []
    params: list[tuple[Any, ...]] = []
    scorers: list[FormulaScorer] = []
    for token in tokens:
        if token not in DESCRIPTOR_TOKENS:
            scorers.append(FormulaScorer(token, pool_size=pool_size, logd_ph=logd_ph, evaluator_factory=evaluator_factory))
            continue
        identifier, default = DESCRIPTOR_TOKENS[token]
        expanded = sites if identifier in PKA_DESCRIPTORS else [_descriptor_params(identifier, default, logd_ph)]
        for p in expanded:
            identifiers.append(identifier)
            params.append(p)
    descriptors = create_calculators(identifiers, params, pool_size, evaluator_factory)
    LOG.info("Running calculators: %s", ", ".join(tokens))

    fields = [calc.property_name for calc in descriptors]
    for scorer in scorers:
        fields.extend(scorer.output_fields)
    _sink_fields(sink, fields)

    stats = RunStatistics()
    _emit(score_stream(molecules, scorers, stats, descriptors), sink, stats)
    LOG.info("Processed %s molecules, %s written", stats.total, stats.passed)
    return stats


def run_logd(
    molecules: Iterable[MoleculeRecord],
    ph: float = DEFAULT_LOGD_PH,
    min_value: Any = None,
    max_value: Any = None,
    sink: MoleculeSink | None = None,
    pool_size: int = MAX_POOL_SIZE,
    evaluator_factory: EvaluatorFactory = ColumnEvaluator,
) -> RunStatistics:
    """LogD at ``ph`` for every molecule, keeping those inside the optional bounds.

    With either bound set, molecules without a LogD value are dropped.
    """
    low, high = validate_bounds(min_value, max_value)
    [calc] = create_calculators(["LogD"], [(ph,)], pool_size, evaluator_factory)
    mode = FilterMode.NONE if low is None and high is None else FilterMode.PASS
    stats = RunStatistics()
    _sink_fields(sink, [calc.property_name])

    stream = score_stream(molecules, [], stats, [calc])
    _emit(apply_filter(stream, mode, calc.property_name, low, high), sink, stats)
    LOG.info("Processed %s molecules, %s passed filters", stats.total, stats.passed)
    return stats


def score_frame(df: pd.DataFrame, formula: str, logd_ph: float | None = None) -> pd.DataFrame:
    """Return a copy of ``df`` with the formula's score column added (NaN where no score)."""
    scorer = FormulaScorer(formula, pool_size=1, logd_ph=logd_ph)
    scores = []
    for idx, row in zip(df.index, df.to_dict(orient="records")):
        molecule = MoleculeRecord(identifier=str(idx), properties=dict(row))
        scores.append(scorer.score(molecule))
    out = df.copy()
    out[scorer.score_field] = pd.Series(scores, index=df.index, dtype="float64")
    return out
