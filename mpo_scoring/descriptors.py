from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from mpo_scoring.evaluator_pool import MAX_POOL_SIZE, EvaluatorPool
from mpo_scoring.molecules import MoleculeRecord

LOG = logging.getLogger(__name__)

ELEMENT_SYMBOLS = {1: "H", 5: "B", 6: "C", 7: "N", 8: "O", 9: "F", 15: "P", 16: "S", 17: "Cl", 35: "Br", 53: "I"}


class DescriptorEvaluationError(Exception):
    pass


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    kind: type
    default: Any
    minimum: float | None = None
    maximum: float | None = None

    def coerce(self, raw: Any) -> Any:
        try:
            value = self.kind(raw)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Parameter {self.name} must be {self.kind.__name__}, got {raw!r}") from exc
        if self.minimum is not None and value < self.minimum:
            raise ValueError(f"Parameter {self.name}={value} below minimum {self.minimum}")
        if self.maximum is not None and value > self.maximum:
            raise ValueError(f"Parameter {self.name}={value} above maximum {self.maximum}")
        return value


@dataclass(frozen=True)
class DescriptorDefinition:
    identifier: str
    symbol: str
    expression: str
    value_type: type = float
    params: tuple[ParameterSpec, ...] = ()
    property_template: str | None = None
    aliases: tuple[str, ...] = ()
    alias_templates: tuple[str, ...] = ()
    suffix_default_params: bool = True

    @property
    def default_params(self) -> tuple[Any, ...]:
        return tuple(p.default for p in self.params)


def _d(identifier: str, symbol: str, expression: str, value_type: type = float, **kwargs: Any) -> tuple[str, DescriptorDefinition]:
    return identifier, DescriptorDefinition(identifier, symbol, expression, value_type, **kwargs)


DEFAULT_PKA_COUNT = 3
MAX_PKA_SITES = 5
DEFAULT_LOGD_PH = 7.4
PKA_DESCRIPTORS = ("AcidicPKa", "BasicPKa")

_SITE = ParameterSpec("site", int, 1, minimum=1, maximum=MAX_PKA_SITES)

DESCRIPTORS_REGISTRY: Mapping[str, DescriptorDefinition] = MappingProxyType(
    dict(
        [
            _d("AtomCount", "CXN_atomCount", "atomCount()", int, aliases=("atom_count", "atoms")),
            _d("BondCount", "CXN_bondCount", "bondCount()", int, aliases=("bond_count", "bonds")),
            _d("LogP", "CXN_cLogP", "logP()", aliases=("logp", "clogp")),
            _d(
                "LogD",
                "CXN_logD",
                "logD('{0}')",
                params=(ParameterSpec("pH", float, DEFAULT_LOGD_PH, minimum=0.0, maximum=14.0),),
                property_template="CXN_logD_{0}",
                suffix_default_params=False,
                aliases=("logd", "clogd"),
                alias_templates=("logd{0}", "logd_{0}", "logd({0})"),
            ),
            _d("HBondDonorCount", "CXN_donorCount", "donorCount()", int, aliases=("hbd", "hbd_count", "donor_count")),
            _d("HBondAcceptorCount", "CXN_acceptorCount", "acceptorCount()", int, aliases=("hba", "hba_count", "acceptor_count")),
            _d("HBondDonorSites", "CXN_donorSiteCount", "donorSiteCount()", int, aliases=("hbd_sites", "donor_sites")),
            _d("HBondAcceptorSites", "CXN_acceptorSiteCount", "acceptorSiteCount()", int, aliases=("hba_sites", "acceptor_sites")),
            _d("MolecularWeight", "CXN_mass", "mass()", aliases=("mw", "molwt", "molecular_weight")),
            _d("MolecularFormula", "CXN_formula", "formula()", str, aliases=("formula", "molecular_formula")),
            _d("HeavyAtomCount", "CXN_heavyAtomCount", "heavyAtomCount()", int, aliases=("hac", "heavy_atoms", "heavy_atom_count")),
            _d("RingCount", "CXN_ringCount", "ringCount()", int, aliases=("rings", "ring_count")),
            _d("RingAtomCount", "CXN_ringAtomCount", "ringAtomCount()", int, aliases=("ring_atoms", "ring_atom_count")),
            _d(
                "AromaticRingCount",
                "CXN_aromaticRingCount",
                "aromaticRingCount()",
                int,
                aliases=("aro", "aromatic_rings", "aromatic_ring_count", "num_aromatic_rings"),
            ),
            _d("AromaticAtomCount", "CXN_aromaticAtomCount", "aromaticAtomCount()", int, aliases=("aromatic_atoms", "aromatic_atom_count")),
            _d(
                "RotatableBondCount",
                "CXN_rotatableBondCount",
                "rotatableBondCount()",
                int,
                aliases=("rotb", "rot", "rotatable_bonds", "rotatable_bond_count"),
            ),
            _d("TPSA", "CXN_TPSA", "topologicalPolarSurfaceArea()", aliases=("tpsa", "psa")),
            _d(
                "AcidicPKa",
                "CXN_APKA",
                "pKa('acidic', '{0}')",
                params=(_SITE,),
                property_template="CXN_APKA{0}",
                aliases=("apka", "acidic_pka"),
                alias_templates=("apka{0}", "acidic_pka{0}", "acidic_pka_{0}"),
            ),
            _d(
                "BasicPKa",
                "CXN_BPKA",
                "pKa('basic', '{0}')",
                params=(_SITE,),
                property_template="CXN_BPKA{0}",
                aliases=("bpka", "basic_pka"),
                alias_templates=("bpka{0}", "basic_pka{0}", "basic_pka_{0}"),
            ),
            _d(
                "ElementCount",
                "CXN_elemCount",
                "atomCount('{0}')",
                int,
                params=(ParameterSpec("atomic_number", int, 6, minimum=1, maximum=118),),
                property_template="CXN_elemCount_{0}",
                alias_templates=("elemcount_{0}", "element_count_{0}", "{element}_count", "num_{element}"),
            ),
            _d("ChiralCenterCount", "CXN_chiralCenterCount", "chiralCenterCount()", int, aliases=("chiral_centers", "chiral_center_count")),
            _d("FractionCSP3", "CXN_fsp3", "fsp3()", aliases=("fsp3", "fractioncsp3", "fraction_csp3")),
            _d("InChIKey", "CXN_inchiKey", "molString('inchikey')", str, aliases=("inchikey", "inchi_key")),
        ]
    )
)


@dataclass(frozen=True)
class DescriptorRequest:
    definition: DescriptorDefinition
    params: tuple[Any, ...] = ()

    @property
    def identifier(self) -> str:
        return self.definition.identifier

    @property
    def symbol(self) -> str:
        return self.definition.symbol

    @property
    def expression(self) -> str:
        return self.definition.expression.format(*self.params)

    @property
    def property_name(self) -> str:
        template = self.definition.property_template
        if template is None:
            return self.definition.symbol
        if not self.definition.suffix_default_params and self.params == self.definition.default_params:
            return self.definition.symbol
        return template.format(*self.params)

    def candidate_columns(self) -> tuple[str, ...]:
        element = ELEMENT_SYMBOLS.get(self.params[0], "") if self.params else ""
        names = [self.property_name]
        if self.params == self.definition.default_params:
            names.append(self.symbol)
            names.extend(self.definition.aliases)
        names.extend(t.format(*self.params, element=element) for t in self.definition.alias_templates)
        seen: dict[str, None] = {}
        for name in names:
            if name:
                seen.setdefault(_norm_col(name), None)
        return tuple(seen)


def _norm_col(c: str) -> str:
    return c.strip().lower()


def make_request(identifier: str, params: Sequence[Any] | None = None) -> DescriptorRequest:
    if identifier not in DESCRIPTORS_REGISTRY:
        raise ValueError(f"Unknown descriptor {identifier!r}. Known: {sorted(DESCRIPTORS_REGISTRY)}")
    definition = DESCRIPTORS_REGISTRY[identifier]
    params = list(params or [])
    if len(params) > len(definition.params):
        raise ValueError(f"Descriptor {identifier} takes {len(definition.params)} parameter(s), got {len(params)}")
    resolved = []
    for i, spec in enumerate(definition.params):
        raw = params[i] if i < len(params) and params[i] is not None else spec.default
        resolved.append(spec.coerce(raw))
    return DescriptorRequest(definition, tuple(resolved))


def _coerce_value(raw: Any, kind: type) -> Any:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    if kind is str:
        return str(raw)
    try:
        number = float(raw)
    except (TypeError, ValueError) as exc:
        raise DescriptorEvaluationError(f"Non-numeric value {raw!r}") from exc
    if not math.isfinite(number):
        return None
    if kind is int:
        if not number.is_integer():
            raise DescriptorEvaluationError(f"Expected an integer count, got {raw!r}")
        return int(number)
    return number


class ColumnEvaluator:
    """Evaluator handle resolving a descriptor from a molecule's precomputed properties."""

    def __init__(self, request: DescriptorRequest) -> None:
        self.request = request
        self.columns = request.candidate_columns()

    def evaluate(self, molecule: MoleculeRecord) -> Any:
        normalized = {_norm_col(str(k)): v for k, v in molecule.properties.items()}
        for column in self.columns:
            if column in normalized:
                value = _coerce_value(normalized[column], self.request.definition.value_type)
                if value is not None:
                    return value
        return None


EvaluatorFactory = Callable[[DescriptorRequest], Any]


class DescriptorCalculator:
    """Resolves one descriptor request per molecule through a pool of evaluator handles."""

    def __init__(
        self,
        request: DescriptorRequest,
        pool_size: int = MAX_POOL_SIZE,
        evaluator_factory: EvaluatorFactory = ColumnEvaluator,
    ) -> None:
        self.request = request
        self.pool: EvaluatorPool[Any] = EvaluatorPool(lambda: evaluator_factory(request), max_size=pool_size)

    @property
    def property_name(self) -> str:
        return self.request.property_name

    def process(self, molecule: MoleculeRecord | None, stats: Any = None) -> Any:
        if molecule is None or not molecule.valid:
            return None
        value = None
        with self.pool.lease() as evaluator:
            try:
                value = evaluator.evaluate(molecule)
            except DescriptorEvaluationError as exc:
                LOG.warning(
                    "Failed to evaluate %s for %s. Property will be missing: %s",
                    self.request.expression,
                    molecule.identifier,
                    exc,
                )
                value = None
        if value is not None:
            molecule.set_property(self.property_name, value)
            if stats is not None:
                stats.increment(self.request.symbol)
        return value


def create_calculators(
    identifiers: Sequence[str],
    params: Sequence[Sequence[Any] | None] | None = None,
    pool_size: int = MAX_POOL_SIZE,
    evaluator_factory: EvaluatorFactory = ColumnEvaluator,
) -> list[DescriptorCalculator]:
    calculators = []
    for i, identifier in enumerate(identifiers):
        p = params[i] if params is not None and i < len(params) else None
        calculators.append(DescriptorCalculator(make_request(identifier, p), pool_size, evaluator_factory))
    return calculators


def pka_sites(count: int = DEFAULT_PKA_COUNT) -> list[tuple[int]]:
    """Site parameters 1..count for the acidic and basic pKa descriptors."""
    if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= MAX_PKA_SITES:
        raise ValueError(
            f"Number of pKa values to calculate must be between 1 and {MAX_PKA_SITES} (inclusive), got {count!r}"
        )
    return [(site,) for site in range(1, count + 1)]
