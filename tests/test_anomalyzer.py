from __future__ import annotations

import logging

import numpy as np
import pytest

from anomalyzer import Anomalyzer, AnomalyzerConfig, ConfigError, EmptyBufferError
from anomalyzer.core.evaluator import weighted_mean


DATA = [0.1, 2.05, 1.5, 2.5, 2.6, 2.55]


def make_config(**overrides) -> AnomalyzerConfig:  # type: ignore[no-untyped-def]
    fields = dict(
        sensitivity=0.1,
        upper_bound=5,
        lower_bound=0,
        active_size=1,
        seasons=4,
        methods=["cdf", "fence", "highrank", "lowrank", "magnitude"],
    )
    fields.update(overrides)
    return AnomalyzerConfig(**fields)


def test_push_outlier() -> None:
    anomalyzer = Anomalyzer(make_config(), DATA, rng=np.random.default_rng(0))
    prob = anomalyzer.push(8.0)
    assert prob > 0.5
    assert len(anomalyzer) == 7


def test_push_outlier_upper_bound_only() -> None:
    cfg = make_config(lower_bound=None, methods=["diff", "fence", "highrank", "lowrank", "magnitude"])
    anomalyzer = Anomalyzer(cfg, DATA, rng=np.random.default_rng(0))
    assert anomalyzer.push(8.0) > 0.5


def test_push_fixed() -> None:
    anomalyzer = Anomalyzer(make_config(), DATA, rng=np.random.default_rng(0))
    for x in (8.0, 10.0, 8.0, 9.0):
        prob = anomalyzer.push_fixed(x)
        assert len(anomalyzer) == 6
    assert prob > 0.5
    assert list(anomalyzer.data) == [2.6, 2.55, 8.0, 10.0, 8.0, 9.0]


def test_push_fixed_empty() -> None:
    anomalyzer = Anomalyzer(make_config())
    with pytest.raises(EmptyBufferError):
        anomalyzer.push_fixed(1.0)
    assert len(anomalyzer) == 0


def test_push_capped() -> None:
    anomalyzer = Anomalyzer(make_config(capacity=5), DATA, rng=np.random.default_rng(0))
    for x in (8.0, 10.0, 8.0):
        anomalyzer.push_capped(x)
        assert len(anomalyzer) <= 5
    assert list(anomalyzer.data) == [2.6, 2.55, 8.0, 10.0, 8.0]


def test_push_capped_unbounded() -> None:
    anomalyzer = Anomalyzer(make_config(), DATA, rng=np.random.default_rng(0))
    anomalyzer.push_capped(8.0)
    assert len(anomalyzer) == 7


def test_update_and_eval() -> None:
    anomalyzer = Anomalyzer(make_config(), rng=np.random.default_rng(0))
    assert anomalyzer.eval() == 0.0
    anomalyzer.update(DATA)
    anomalyzer.update([8.0])
    assert len(anomalyzer) == 7
    assert anomalyzer.eval() > 0.5


def test_eval_by_test() -> None:
    anomalyzer = Anomalyzer(make_config(), DATA + [8.0], rng=np.random.default_rng(0))
    scores, weights = anomalyzer.eval_by_test()
    assert set(scores) == {"cdf", "fence", "rank", "magnitude"}
    assert set(weights) == set(scores)
    assert all(0.0 <= s <= 1.0 for s in scores.values())


def test_seeded_runs_repeat() -> None:
    cfg = make_config(methods=["highrank", "lowrank", "diff", "ks"], seasons=4)
    series = DATA + [3.0, 2.7, 9.5]
    a = Anomalyzer(cfg, series, rng=np.random.default_rng(5))
    b = Anomalyzer(cfg, series, rng=np.random.default_rng(5))
    assert a.eval_by_test() == b.eval_by_test()


def test_unsupported_method() -> None:
    with pytest.raises(ConfigError):
        Anomalyzer(make_config(methods=["zscore"]), DATA)
    with pytest.raises(ConfigError):
        Anomalyzer({"active_size": 1, "methods": ["zscore"]}, DATA)


def test_mapping_config() -> None:
    anomalyzer = Anomalyzer({"active_size": 1, "methods": ["magnitude"]}, [1.0, 1.0, 1.0, 1.0])
    assert anomalyzer.config.reference_size == 4
    assert anomalyzer.push(3.0) == 1.0


def test_config_is_not_mutated() -> None:
    cfg = make_config()
    Anomalyzer(cfg, DATA)
    assert cfg.reference_size is None
    assert cfg.perm_count is None


def test_rejects_non_finite() -> None:
    with pytest.raises(ValueError):
        Anomalyzer(make_config(), [1.0, float("nan")])
    anomalyzer = Anomalyzer(make_config(), DATA)
    with pytest.raises(ValueError):
        anomalyzer.push(float("inf"))
    assert len(anomalyzer) == 6


def test_short_buffer_never_fails() -> None:
    anomalyzer = Anomalyzer(
        make_config(methods=["magnitude", "diff", "highrank", "lowrank", "fence", "ks", "cdf"]),
        rng=np.random.default_rng(0),
    )
    for x in (1.0, 2.0, 3.0):
        prob = anomalyzer.push(x)
        assert 0.0 <= prob <= 1.0


def test_constant_series_scores_zero() -> None:
    anomalyzer = Anomalyzer(
        make_config(methods=["magnitude", "ks"]), [3.0] * 20, rng=np.random.default_rng(0)
    )
    scores, _ = anomalyzer.eval_by_test()
    assert scores == {"magnitude": 0.0, "ks": 0.0}
    assert anomalyzer.eval() == 0.0


def test_construction_logs(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="anomalyzer")
    Anomalyzer(make_config(), DATA)
    records = [r for r in caplog.records if r.getMessage() == "anomalyzer created"]
    assert records
    assert records[0].reference_size == 4  # type: ignore[attr-defined]


@pytest.mark.parametrize("seed", range(10))
def test_eval_by_test_matches_last_push(seed: int) -> None:
    cfg = make_config(methods=["highrank", "diff", "ks"], sensitivity=0.0)
    anomalyzer = Anomalyzer(cfg, DATA + [2.4, 2.7, 1.9], rng=np.random.default_rng(seed))
    prob = anomalyzer.push(2.05)
    scores, weights = anomalyzer.eval_by_test()
    names = list(scores)
    assert weighted_mean([scores[n] for n in names], [weights[n] for n in names]) == pytest.approx(prob)
    assert anomalyzer.eval_by_test() == (scores, weights)


def test_eval_by_test_after_update_rescores() -> None:
    cfg = make_config(methods=["magnitude"])
    anomalyzer = Anomalyzer(cfg, [1.0, 1.0, 1.0, 1.0], rng=np.random.default_rng(0))
    assert anomalyzer.push(1.0) == 0.0
    anomalyzer.update([5.0])
    scores, _ = anomalyzer.eval_by_test()
    assert scores == {"magnitude": 1.0}
