from __future__ import annotations

import copy
import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from mpo_scoring.descriptors import DEFAULT_LOGD_PH, DEFAULT_PKA_COUNT, MAX_PKA_SITES
from mpo_scoring.evaluator_pool import MAX_POOL_SIZE
from mpo_scoring.filters import FilterMode, validate_bounds
from mpo_scoring.formulas_registry import parse_calculator_list, resolve_formula
from mpo_scoring.library_io import detect_input_format, detect_output_format

REQUIRED_TOP_LEVEL = ["run", "paths"]
PATH_KEYS = ["input", "output", "outputs_root"]

DEFAULT_CONFIG: dict[str, Any] = {
    "run": {"formula": None, "calculators": None},
    "paths": {"input": None, "output": None, "outputs_root": "outputs"},
    "filter": {"mode": "none", "min_value": None, "max_value": None},
    "output": {"header": True},
    "descriptors": {"pool_size": MAX_POOL_SIZE, "logd_ph": DEFAULT_LOGD_PH, "pka_count": DEFAULT_PKA_COUNT},
}


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(loaded).__name__}")
    return loaded


def deep_update(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_update(result[key], value)
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"none", "null", ""}:
        return None
    for caster in (int, float):
        try:
            return caster(raw)
        except ValueError:
            continue
    if "," in raw:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def parse_overrides(override_items: list[str]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for item in override_items:
        if "=" not in item:
            raise ValueError(f"Override must be KEY=VALUE, got: {item}")
        dotted_key, value = item.split("=", 1)
        cursor = updates
        parts = dotted_key.strip().split(".")
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[parts[-1]] = _coerce_value(value.strip())
    return updates


def resolve_paths(config: dict[str, Any], base_dir: str | Path | None = None) -> dict[str, Any]:
    cfg = copy.deepcopy(config)
    parent = Path(base_dir) if base_dir is not None else Path.cwd()
    path_cfg = cfg.get("paths") or {}
    for key in PATH_KEYS:
        if path_cfg.get(key):
            val = Path(path_cfg[key])
            if not val.is_absolute():
                val = (parent / val).resolve()
            path_cfg[key] = str(val)
    cfg["paths"] = path_cfg
    return cfg


def _to_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y"}


def validate_minimum_schema(config: dict[str, Any], command: str = "score") -> list[str]:
    """Return every structural problem in ``config``; an empty list means it can run."""
    issues: list[str] = []
    for key in REQUIRED_TOP_LEVEL:
        if key not in config:
            issues.append(f"Missing top-level key: {key}")
    run_cfg = config.get("run") or {}
    paths = config.get("paths") or {}
    filter_cfg = config.get("filter") or {}
    desc_cfg = config.get("descriptors") or {}

    if command == "multi":
        calculators = run_cfg.get("calculators")
        if isinstance(calculators, list):
            calculators = " ".join(str(c) for c in calculators)
        if not calculators:
            issues.append("Missing run.calculators")
        else:
            try:
                parse_calculator_list(str(calculators))
            except ValueError as exc:
                issues.append(str(exc))
    elif command != "logd":
        if not run_cfg.get("formula"):
            issues.append("Missing run.formula")
        else:
            try:
                resolve_formula(str(run_cfg["formula"]))
            except ValueError as exc:
                issues.append(str(exc))

    if not paths.get("input"):
        issues.append("Missing paths.input")
    else:
        try:
            detect_input_format(paths["input"])
        except ValueError as exc:
            issues.append(str(exc))
    if paths.get("output"):
        try:
            detect_output_format(paths["output"])
        except ValueError as exc:
            issues.append(str(exc))

    try:
        FilterMode.parse(filter_cfg.get("mode"))
    except ValueError as exc:
        issues.append(str(exc))
    try:
        validate_bounds(filter_cfg.get("min_value"), filter_cfg.get("max_value"))
    except ValueError as exc:
        issues.append(f"filter: {exc}")

    pool_size = desc_cfg.get("pool_size", MAX_POOL_SIZE)
    if isinstance(pool_size, bool) or not isinstance(pool_size, int) or not 1 <= pool_size <= MAX_POOL_SIZE:
        issues.append(f"descriptors.pool_size must be an integer between 1 and {MAX_POOL_SIZE}, got {pool_size!r}")
    logd_ph = desc_cfg.get("logd_ph", DEFAULT_LOGD_PH)
    if isinstance(logd_ph, bool) or not isinstance(logd_ph, (int, float)) or not 0.0 <= logd_ph <= 14.0:
        issues.append(f"descriptors.logd_ph must be a number between 0 and 14, got {logd_ph!r}")
    pka_count = desc_cfg.get("pka_count", DEFAULT_PKA_COUNT)
    if isinstance(pka_count, bool) or not isinstance(pka_count, int) or not 1 <= pka_count <= MAX_PKA_SITES:
        issues.append(
            f"descriptors.pka_count must be an integer between 1 and {MAX_PKA_SITES}, got {pka_count!r}"
        )
    return issues


@dataclass(frozen=True)
class RunSettings:
    formula: str | None
    calculators: tuple[str, ...]
    input_path: Path
    output_path: Path | None
    outputs_root: Path
    filter_mode: FilterMode
    min_value: float | None
    max_value: float | None
    header: bool
    pool_size: int
    logd_ph: float
    pka_count: int = DEFAULT_PKA_COUNT


def build_run_settings(config: dict[str, Any], command: str = "score") -> RunSettings:
    issues = validate_minimum_schema(config, command)
    if issues:
        raise ValueError(issues[0])
    run_cfg = config.get("run") or {}
    paths = config["paths"]
    filter_cfg = config.get("filter") or {}
    desc_cfg = config.get("descriptors") or {}

    calculators: tuple[str, ...] = ()
    if command == "multi":
        raw = run_cfg["calculators"]
        if isinstance(raw, list):
            raw = " ".join(str(c) for c in raw)
        calculators = tuple(parse_calculator_list(str(raw)))
    formula = resolve_formula(str(run_cfg["formula"])) if command not in ("multi", "logd") else None
    low, high = validate_bounds(filter_cfg.get("min_value"), filter_cfg.get("max_value"))
    return RunSettings(
        formula=formula,
        calculators=calculators,
        input_path=Path(paths["input"]),
        output_path=Path(paths["output"]) if paths.get("output") else None,
        outputs_root=Path(paths.get("outputs_root") or "outputs"),
        filter_mode=FilterMode.parse(filter_cfg.get("mode")),
        min_value=low,
        max_value=high,
        header=_to_bool((config.get("output") or {}).get("header", True)),
        pool_size=int(desc_cfg.get("pool_size", MAX_POOL_SIZE)),
        logd_ph=float(desc_cfg.get("logd_ph", DEFAULT_LOGD_PH)),
        pka_count=int(desc_cfg.get("pka_count", DEFAULT_PKA_COUNT)),
    )


def config_sha256(config: dict[str, Any]) -> str:
    payload = yaml.safe_dump(config, sort_keys=True).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
