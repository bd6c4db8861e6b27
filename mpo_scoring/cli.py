from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from mpo_scoring.config import (
    DEFAULT_CONFIG,
    build_run_settings,
    deep_update,
    load_yaml_config,
    parse_overrides,
    resolve_paths,
    validate_minimum_schema,
)
from mpo_scoring.formulas_registry import DESCRIPTOR_TOKENS, FORMULAS_REGISTRY
from mpo_scoring.runner import create_scoring_run_dir, execute_run
from mpo_scoring.utils.logging import close_pipeline_logger, configure_pipeline_logger

# argparse destination -> dotted config key
FLAG_KEYS = {
    "formula": "run.formula",
    "calculators": "run.calculators",
    "input": "paths.input",
    "output": "paths.output",
    "outputs_root": "paths.outputs_root",
    "mode": "filter.mode",
    "min_value": "filter.min_value",
    "max_value": "filter.max_value",
    "header": "output.header",
    "pool_size": "descriptors.pool_size",
    "logd_ph": "descriptors.logd_ph",
    "pka_count": "descriptors.pka_count",
}


def _flag_updates(args: argparse.Namespace) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    for dest, dotted_key in FLAG_KEYS.items():
        value = getattr(args, dest, None)
        if value is None:
            continue
        cursor = updates
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[parts[-1]] = value
    return updates


def _load_resolved_config(args: argparse.Namespace) -> dict[str, Any]:
    cfg = DEFAULT_CONFIG
    if getattr(args, "config", None):
        cfg = deep_update(cfg, load_yaml_config(args.config))
    cfg = deep_update(cfg, _flag_updates(args))
    cfg = deep_update(cfg, parse_overrides(args.override))
    return resolve_paths(cfg)


def _bool_arg(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "y"}:
        return True
    if lowered in {"0", "false", "no", "n"}:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def run_checks(config: dict[str, Any], command: str) -> list[str]:
    issues = validate_minimum_schema(config, command)

    input_path = (config.get("paths") or {}).get("input")
    if input_path and not Path(input_path).is_file():
        issues.append(f"Input file does not exist: {input_path}")

    outputs_root = Path((config.get("paths") or {}).get("outputs_root") or "outputs")
    try:
        outputs_root.mkdir(parents=True, exist_ok=True)
        test_file = outputs_root / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink()
    except OSError as exc:
        issues.append(f"Outputs directory not writable: {exc}")
    return issues


def _add_run_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help="YAML run configuration")
    p.add_argument("--input", help="Input molecules (.csv, .tsv, .jsonl)")
    p.add_argument("--output", help="Output molecules (.csv, .tsv, .smi, .jsonl)")
    p.add_argument("--outputs-root", dest="outputs_root", help="Directory for run artifacts")
    p.add_argument("--header", type=_bool_arg, help="Write a header line to the output (default true)")
    p.add_argument("--pool-size", dest="pool_size", type=int, help="Evaluator handles per descriptor (1-25)")
    p.add_argument("--logd-ph", dest="logd_ph", type=float, help="pH for LogD (default 7.4)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mposcore", description="Multi-parameter optimization scoring of molecules")
    parser.add_argument("--override", action="append", default=[], help="Override config values with dotted KEY=VALUE")
    parser.add_argument("--verbose", action="store_true", help="Log sub-score detail")

    sub = parser.add_subparsers(dest="command", required=True)

    p_score = sub.add_parser("score", help="Score molecules with one formula, optionally filtering on the score")
    _add_run_arguments(p_score)
    p_score.add_argument("--formula", help="Formula token, e.g. gupta-bbb")
    p_score.add_argument("--mode", choices=["none", "pass", "fail"])
    p_score.add_argument("--min-value", dest="min_value", type=float)
    p_score.add_argument("--max-value", dest="max_value", type=float)

    p_multi = sub.add_parser("multi", help="Apply several descriptor and formula calculators")
    _add_run_arguments(p_multi)
    p_multi.add_argument("--calculators", help='Calculator list, e.g. "molecular-weight tpsa gupta-bbb"')
    p_multi.add_argument("--pka-count", dest="pka_count", type=int, help="pKa sites per acidic/basic pKa calculator (1-5, default 3)")

    p_logd = sub.add_parser("logd", help="Calculate LogD, optionally keeping molecules inside min/max bounds")
    _add_run_arguments(p_logd)
    p_logd.add_argument("--min-value", dest="min_value", type=float)
    p_logd.add_argument("--max-value", dest="max_value", type=float)

    p_check = sub.add_parser("check", help="Validate configuration without scoring")
    p_check.add_argument("--config", required=True)
    kind = p_check.add_mutually_exclusive_group()
    kind.add_argument("--multi", action="store_true", help="Validate as a multi-calculator run")
    kind.add_argument("--logd", action="store_true", help="Validate as a LogD run")

    sub.add_parser("formulas", help="List formulas, score fields and descriptor calculators")
    return parser


def _print_formulas() -> None:
    print("Formulas:")
    for token, meta in FORMULAS_REGISTRY.items():
        print(f"  {token:<22}{meta['score_field']:<22}{meta['name']}")
    print("Descriptor calculators:")
    for token, (identifier, _) in DESCRIPTOR_TOKENS.items():
        print(f"  {token:<22}{identifier}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "formulas":
        _print_formulas()
        return 0

    try:
        config = _load_resolved_config(args)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    if args.command == "check":
        issues = run_checks(config, "multi" if args.multi else "logd" if args.logd else "score")
        if issues:
            print("Validation report:")
            for issue in issues:
                print(f" - {issue}")
            return 1
        print("Validation passed.")
        return 0

    try:
        settings = build_run_settings(config, args.command)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    run_dir = create_scoring_run_dir(settings.outputs_root)
    logger = configure_pipeline_logger(run_dir / "run_log.txt", logging.DEBUG if args.verbose else logging.INFO)
    try:
        result = execute_run(
            config=config,
            settings=settings,
            run_dir=run_dir,
            logger=logger,
            command=args.command,
            argv=list(argv) if argv is not None else sys.argv[1:],
        )
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Run failed: %s", exc)
        return 1
    finally:
        close_pipeline_logger()

    stats = result.statistics
    print(f"Processed {stats.total} molecules: {stats.passed} passed, {stats.errors} errors")
    print(f"Scoring run artifacts: {result.run_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
