from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from mpo_scoring.config import RunSettings, config_sha256
from mpo_scoring.formulas_registry import FORMULAS_REGISTRY
from mpo_scoring.library_io import open_sink, read_molecules
from mpo_scoring.pipeline import RunStatistics, run_logd, run_multi, run_scoring
from mpo_scoring.utils.logging import dump_json
from mpo_scoring.utils.provenance import collect_provenance


@dataclass
class RunnerResult:
    run_dir: Path
    statistics: RunStatistics
    output_path: Path | None


def create_scoring_run_dir(outputs_root: str | Path) -> Path:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    run_dir = Path(outputs_root) / "scoring_runs" / ts
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def execute_run(
    *,
    config: dict[str, Any],
    settings: RunSettings,
    run_dir: Path,
    logger: Any,
    command: str = "score",
    argv: list[str] | None = None,
) -> RunnerResult:
    resolved_config_path = run_dir / "run_config_resolved.yaml"
    resolved_config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")

    molecules = read_molecules(settings.input_path)
    sink = open_sink(settings.output_path, header=settings.header) if settings.output_path else None

    if command == "multi":
        logger.info("Running calculators %s on %s", ", ".join(settings.calculators), settings.input_path)
    elif command == "logd":
        logger.info("Calculating LogD at pH %s for %s", settings.logd_ph, settings.input_path)
    else:
        logger.info("Scoring %s with %s", settings.input_path, settings.formula)

    if sink is not None:
        sink.open()
    try:
        if command == "multi":
            stats = run_multi(
                list(settings.calculators),
                molecules,
                sink=sink,
                pool_size=settings.pool_size,
                logd_ph=settings.logd_ph,
                pka_count=settings.pka_count,
            )
        elif command == "logd":
            stats = run_logd(
                molecules,
                ph=settings.logd_ph,
                min_value=settings.min_value,
                max_value=settings.max_value,
                sink=sink,
                pool_size=settings.pool_size,
            )
        else:
            stats = run_scoring(
                settings.formula,
                molecules,
                mode=settings.filter_mode,
                min_value=settings.min_value,
                max_value=settings.max_value,
                sink=sink,
                pool_size=settings.pool_size,
                logd_ph=settings.logd_ph,
            )
    finally:
        if sink is not None:
            sink.close()

    summary: dict[str, Any] = {
        "command": command,
        "run_id": run_dir.name,
        "input": str(settings.input_path),
        "output": str(settings.output_path) if settings.output_path else None,
    }
    if command == "multi":
        summary["calculators"] = list(settings.calculators)
        summary["pka_count"] = settings.pka_count
    elif command == "logd":
        summary["ph"] = settings.logd_ph
        summary["filter"] = {"min_value": settings.min_value, "max_value": settings.max_value}
    else:
        summary["formula"] = settings.formula
        summary["score_field"] = FORMULAS_REGISTRY[settings.formula]["score_field"]
        summary["filter"] = {
            "mode": settings.filter_mode.value,
            "min_value": settings.min_value,
            "max_value": settings.max_value,
        }
    summary.update(stats.to_dict())
    dump_json(run_dir / "run_statistics.json", summary)

    prov = collect_provenance(
        config_sha=config_sha256(config),
        input_path=settings.input_path,
        command=argv,
    )
    dump_json(run_dir / "provenance.json", prov)
    logger.info(
        "Total molecules: %s, passed: %s, errors: %s, write errors: %s",
        stats.total,
        stats.passed,
        stats.errors,
        stats.write_errors,
    )
    return RunnerResult(run_dir=run_dir, statistics=stats, output_path=settings.output_path)
