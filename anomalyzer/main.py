from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import typer
from pydantic import ValidationError

from .config import AnomalyzerConfig, ConfigError, EnvSettings, load_config
from .core.buffers import EmptyBufferError
from .core.detector import Anomalyzer
from .core.simulate import random_walk
from .utils.logging import setup_logging


app = typer.Typer(add_completion=False, help="Score how anomalous the tail of a series is.")


def read_series(path: Path) -> List[float]:
    """Read the first numeric column of a CSV or newline-separated file."""
    try:
        frame = pd.read_csv(path, header=None)
    except pd.errors.EmptyDataError:
        return []
    for column in frame.columns:
        values = pd.to_numeric(frame[column], errors="coerce").dropna()
        if len(values):
            return [float(v) for v in values]
    return []


def make_config(
    config_path: Optional[Path],
    active_size: Optional[int],
    seasons: Optional[int],
    methods: Optional[str],
    upper: Optional[float],
    lower: Optional[float],
) -> AnomalyzerConfig:
    overrides: Dict[str, Any] = {}
    if active_size is not None:
        overrides["active_size"] = active_size
    if seasons is not None:
        overrides["seasons"] = seasons
    if methods:
        overrides["methods"] = [m.strip() for m in methods.split(",") if m.strip()]
    if upper is not None:
        overrides["upper_bound"] = upper
    if lower is not None:
        overrides["lower_bound"] = lower

    has_file = config_path is not None or EnvSettings().CONFIG_PATH is not None
    if has_file or Path("anomalyzer.yaml").exists():
        fields = {**load_config(config_path).model_dump(exclude_unset=True), **overrides}
    else:
        fields = {"active_size": 1, **overrides}
    try:
        return AnomalyzerConfig(**fields)
    except ValidationError as ve:
        raise ConfigError(f"Invalid options: {ve}") from ve


def _build(
    path: Path,
    config_path: Optional[Path],
    active_size: Optional[int],
    seasons: Optional[int],
    methods: Optional[str],
    upper: Optional[float],
    lower: Optional[float],
    seed: Optional[int],
) -> tuple[Anomalyzer, List[float]]:
    try:
        cfg = make_config(config_path, active_size, seasons, methods, upper, lower)
        detector = Anomalyzer(cfg, rng=np.random.default_rng(seed))
    except ConfigError as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)
    values = read_series(path)
    if not values:
        typer.echo(f"No numeric observations in {path}", err=True)
        raise typer.Exit(code=2)
    return detector, values


@app.command()
def score(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Series file"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML config"),
    active_size: Optional[int] = typer.Option(None, help="Active window size"),
    seasons: Optional[int] = typer.Option(None, help="Reference window in active windows"),
    methods: Optional[str] = typer.Option(None, help="Comma separated test names"),
    upper: Optional[float] = typer.Option(None, help="Upper fence bound"),
    lower: Optional[float] = typer.Option(None, help="Lower fence bound"),
    seed: Optional[int] = typer.Option(None, help="Seed for the resampling tests"),
    by_test: bool = typer.Option(False, "--by-test", help="Print per-test scores and weights"),
    log_level: Optional[str] = typer.Option(None, help="Defaults to ANOMALYZER_LOG_LEVEL"),
) -> None:
    """Score the whole series once."""
    setup_logging(log_level or EnvSettings().LOG_LEVEL)
    detector, values = _build(path, config_path, active_size, seasons, methods, upper, lower, seed)
    detector.update(values)
    result = detector.evaluate()
    typer.echo(f"probability={result.probability:.6f}")
    if by_test:
        typer.echo(json.dumps({"scores": result.scores, "weights": result.weights}, sort_keys=True))


@app.command()
def stream(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Series file"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML config"),
    active_size: Optional[int] = typer.Option(None, help="Active window size"),
    seasons: Optional[int] = typer.Option(None, help="Reference window in active windows"),
    methods: Optional[str] = typer.Option(None, help="Comma separated test names"),
    upper: Optional[float] = typer.Option(None, help="Upper fence bound"),
    lower: Optional[float] = typer.Option(None, help="Lower fence bound"),
    seed: Optional[int] = typer.Option(None, help="Seed for the resampling tests"),
    warmup: int = typer.Option(0, help="Points loaded before streaming starts"),
    policy: str = typer.Option("push", help="push | fixed | capped"),
    log_level: Optional[str] = typer.Option(None, help="Defaults to ANOMALYZER_LOG_LEVEL"),
) -> None:
    """Replay the series one point at a time, printing the probability after each push."""
    setup_logging(log_level or EnvSettings().LOG_LEVEL)
    if policy not in {"push", "fixed", "capped"}:
        typer.echo(f"Unknown policy '{policy}'", err=True)
        raise typer.Exit(code=2)
    detector, values = _build(path, config_path, active_size, seasons, methods, upper, lower, seed)
    detector.update(values[:warmup])
    push = {
        "push": detector.push,
        "fixed": detector.push_fixed,
        "capped": detector.push_capped,
    }[policy]
    for i, x in enumerate(values[warmup:], start=warmup):
        try:
            prob = push(x)
        except EmptyBufferError as exc:
            typer.echo(f"{exc}; use --warmup with the fixed policy", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"{i}\t{x:g}\t{prob:.6f}")


@app.command()
def simulate(
    nsteps: int = typer.Option(20, help="Random walk length"),
    start: float = typer.Option(2.5),
    sd: float = typer.Option(0.1),
    outlier: float = typer.Option(8.0, help="Value pushed after the walk"),
    seed: Optional[int] = typer.Option(None),
) -> None:
    """Score an outlier appended to a random walk bounded in [0, 5]."""
    rng = np.random.default_rng(seed)
    walk = random_walk(nsteps, start, sd, rng=rng, lower=0.0, upper=5.0)
    detector = Anomalyzer(
        AnomalyzerConfig(
            active_size=1,
            upper_bound=5.0,
            lower_bound=0.0,
            methods=["cdf", "fence", "highrank", "lowrank", "magnitude"],
        ),
        data=walk,
        rng=rng,
    )
    baseline = detector.eval()
    prob = detector.push(outlier)
    typer.echo(f"baseline={baseline:.6f}")
    typer.echo(f"probability={prob:.6f}")


if __name__ == "__main__":
    app()
