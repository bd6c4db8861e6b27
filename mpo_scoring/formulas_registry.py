from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Callable, Mapping

from mpo_scoring.scores import (
    abbvie_mps,
    balanced_property_index,
    gupta_bbb,
    kids_mpo,
    pfizer_cns_mpo,
    pfizer_cns_mpo_2010,
)

DescriptorLookup = Mapping[str, Any] | Callable[[str], Any]

# Each descriptor entry is (argument name, descriptor identifier, parameters).
FORMULAS_REGISTRY: Mapping[str, Mapping[str, Any]] = MappingProxyType(
    {
        "gupta-bbb": MappingProxyType(
            {
                "name": "Gupta BBB MPS",
                "score_field": "Gupta_BBB",
                "reference": "Gupta et al., J. Med. Chem. 2019, 62, 9824-9836",
                "descriptors": (
                    ("aro", "AromaticRingCount", ()),
                    ("hac", "HeavyAtomCount", ()),
                    ("hba", "HBondAcceptorCount", ()),
                    ("hbd", "HBondDonorCount", ()),
                    ("mw", "MolecularWeight", ()),
                    ("tpsa", "TPSA", ()),
                    ("rot", "RotatableBondCount", ()),
                    ("apka", "AcidicPKa", (1,)),
                    ("bpka", "BasicPKa", (1,)),
                ),
                "aggregator": gupta_bbb,
            }
        ),
        "pfizer-cns-mpo": MappingProxyType(
            {
                "name": "Pfizer CNS MPO",
                "score_field": "Pfizer_CNS_MPO",
                "reference": "Wager et al., ACS Chem. Neurosci. 2010, 1, 435-449",
                "descriptors": (
                    ("logp", "LogP", ()),
                    ("logd", "LogD", (7.4,)),
                    ("mw", "MolecularWeight", ()),
                    ("tpsa", "TPSA", ()),
                    ("hbd", "HBondDonorCount", ()),
                    ("bpka", "BasicPKa", (1,)),
                ),
                "aggregator": pfizer_cns_mpo,
            }
        ),
        "pfizer-cns-mpo-2010": MappingProxyType(
            {
                "name": "Pfizer CNS MPO 2010",
                "score_field": "PFIZER_CNS_MPO_2010",
                "reference": "Wager et al., ACS Chem. Neurosci. 2010, 1, 435-449",
                "descriptors": (
                    ("logp", "LogP", ()),
                    ("logd", "LogD", (7.4,)),
                    ("mw", "MolecularWeight", ()),
                    ("tpsa", "TPSA", ()),
                    ("hbd", "HBondDonorCount", ()),
                    ("bpka", "BasicPKa", (1,)),
                ),
                "aggregator": pfizer_cns_mpo_2010,
            }
        ),
        "abbvie-mps": MappingProxyType(
            {
                "name": "Abbvie MPS",
                "score_field": "Abbvie_MPS",
                "reference": "DeGoey et al., J. Med. Chem. 2018, 61, 2636-2651",
                "descriptors": (
                    ("aro", "AromaticRingCount", ()),
                    ("rot", "RotatableBondCount", ()),
                    ("logd", "LogD", (7.4,)),
                ),
                "aggregator": abbvie_mps,
            }
        ),
        "kids-mpo": MappingProxyType(
            {
                "name": "KIDS MPO",
                "score_field": "KIDS_MPO",
                "reference": None,
                "descriptors": (
                    ("tpsa", "TPSA", ()),
                    ("rotb", "RotatableBondCount", ()),
                    ("n_count", "ElementCount", (7,)),
                    ("o_count", "ElementCount", (8,)),
                    ("hbd", "HBondDonorCount", ()),
                    ("aro", "AromaticRingCount", ()),
                ),
                "aggregator": kids_mpo,
            }
        ),
        "bpi": MappingProxyType(
            {
                "name": "Balanced Property Index",
                "score_field": "BPI",
                "reference": None,
                "descriptors": (
                    ("hac", "HeavyAtomCount", ()),
                    ("tpsa", "TPSA", ()),
                    ("logd", "LogD", (7.4,)),
                ),
                "aggregator": balanced_property_index,
            }
        ),
    }
)

DESCRIPTOR_TOKENS: Mapping[str, tuple[str, tuple[Any, ...]]] = MappingProxyType(
    {
        "molecular-weight": ("MolecularWeight", ()),
        "molecular-formula": ("MolecularFormula", ()),
        "atom-count": ("AtomCount", ()),
        "heavy-atom-count": ("HeavyAtomCount", ()),
        "bond-count": ("BondCount", ()),
        "logp": ("LogP", ()),
        "logd": ("LogD", ()),
        "hba-count": ("HBondAcceptorCount", ()),
        "hbd-count": ("HBondDonorCount", ()),
        "hba-sites": ("HBondAcceptorSites", ()),
        "hbd-sites": ("HBondDonorSites", ()),
        "ring-count": ("RingCount", ()),
        "ring-atom-count": ("RingAtomCount", ()),
        "aromatic-ring-count": ("AromaticRingCount", ()),
        "aromatic-atom-count": ("AromaticAtomCount", ()),
        "rotatable-bond-count": ("RotatableBondCount", ()),
        "tpsa": ("TPSA", ()),
        "acidic-pka": ("AcidicPKa", ()),
        "basic-pka": ("BasicPKa", ()),
        "chiral-center-count": ("ChiralCenterCount", ()),
        "fsp3": ("FractionCSP3", ()),
        "inchikey": ("InChIKey", ()),
    }
)


def _norm_token(token: str) -> str:
    return token.strip().lower().replace("_", "-")


def resolve_formula(name: str) -> str:
    """Map a formula token or score field name (any case) to its registry key."""
    token = _norm_token(name)
    if token in FORMULAS_REGISTRY:
        return token
    for key, meta in FORMULAS_REGISTRY.items():
        if _norm_token(meta["score_field"]) == token:
            return key
    raise ValueError(f"Unknown formula {name!r}. Known: {sorted(FORMULAS_REGISTRY)}")


def score_field(name: str) -> str:
    return FORMULAS_REGISTRY[resolve_formula(name)]["score_field"]


def compute_score(formula_name: str, lookup: DescriptorLookup) -> float | None:
    """Score one molecule from a mapping (or callable) of descriptor argument names to values."""
    meta = FORMULAS_REGISTRY[resolve_formula(formula_name)]
    getter = lookup if callable(lookup) and not isinstance(lookup, Mapping) else lookup.get
    kwargs = {arg: getter(arg) for arg, _, _ in meta["descriptors"]}
    return meta["aggregator"](**kwargs)


def parse_calculator_list(spec: str) -> list[str]:
    """Split a whitespace/comma separated calculator list and validate every token."""
    tokens = [_norm_token(t) for t in re.split(r"[\s,]+", spec or "") if t.strip()]
    if not tokens:
        raise ValueError("No calculators specified")
    resolved: list[str] = []
    bad: list[str] = []
    for token in tokens:
        if token in DESCRIPTOR_TOKENS:
            resolved.append(token)
            continue
        try:
            resolved.append(resolve_formula(token))
        except ValueError:
            bad.append(token)
    if bad:
        raise ValueError(
            f"Invalid calculator(s) specified: {bad}. "
            f"Known: {sorted(DESCRIPTOR_TOKENS) + sorted(FORMULAS_REGISTRY)}"
        )
    return resolved
