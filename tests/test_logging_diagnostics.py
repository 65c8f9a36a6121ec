import logging

import numpy as np
import pytest

from edgejoin import config as ej_config
from edgejoin import match
from edgejoin.algo import compact_segments, enumerate_matches, label_candidates
from edgejoin.core.backend import HOST_BACKEND
from edgejoin.core.rules import derive_rule_table
from edgejoin.diagnostics import OperationMetrics, log_operation

from tests.utils.graphs import full_bitmask, tagged_candidates, triangle_data, triangle_query


@pytest.fixture(autouse=True)
def _fresh_context(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("EDGEJOIN_ENABLE_DIAGNOSTICS", raising=False)
    ej_config.reset_runtime_context()
    yield
    ej_config.reset_runtime_context()


def _op_records(caplog: pytest.LogCaptureFixture, op: str):
    return [record for record in caplog.records if f"op={op}" in record.message]


def test_label_candidates_emits_resource_log(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="edgejoin.algo.labeling")

    label_candidates(triangle_query(), triangle_data(), full_bitmask(4, 3), backend=HOST_BACKEND)

    records = _op_records(caplog, "label_candidates")
    assert records, "expected label_candidates operation log"
    message = records[-1].message
    assert "wall_ms=" in message
    assert "cpu_user_ms=" in message
    assert "rss_delta=" in message
    assert "candidates=12" in message


def test_compaction_emits_resource_log(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="edgejoin.algo.compaction")

    compact_segments(
        tagged_candidates([[0], [], [1, 2]], 4),
        data_edge_count=4,
        query_edge_count=3,
        backend=HOST_BACKEND,
    )

    records = _op_records(caplog, "compact_segments")
    assert records, "expected compact_segments operation log"
    assert "nonempty=2" in records[-1].message


def test_enumerate_matches_emits_resource_log(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="edgejoin.algo.join")
    segments = compact_segments(
        tagged_candidates([[0, 1, 2, 3]] * 3, 4),
        data_edge_count=4,
        query_edge_count=3,
        backend=HOST_BACKEND,
    )

    enumerate_matches(
        segments,
        triangle_data(),
        derive_rule_table(triangle_query()),
        capacity=8,
        backend=HOST_BACKEND,
        num_workers=2,
    )

    records = _op_records(caplog, "enumerate_matches")
    assert records, "expected enumerate_matches operation log"
    message = records[-1].message
    assert "combinations=64" in message
    assert "matches=3" in message
    assert "workers=2" in message
    assert "wall_ms=" in message


def test_truncation_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="edgejoin.algo.join")
    segments = compact_segments(
        tagged_candidates([[0, 1, 2, 3]] * 3, 4),
        data_edge_count=4,
        query_edge_count=3,
        backend=HOST_BACKEND,
    )

    enumerate_matches(
        segments,
        triangle_data(),
        derive_rule_table(triangle_query()),
        capacity=1,
        backend=HOST_BACKEND,
        strict_capacity=False,
    )

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert any("result truncated" in r.message for r in warnings)


def test_match_logs_final_count(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="edgejoin")
    bitmask = np.array([0b001, 0b010, 0b100, 0b100], dtype=np.int64)

    match(triangle_query(), triangle_data(), bitmask, capacity=4, backend=HOST_BACKEND)

    assert any(r.message == "matches=1" for r in caplog.records)
    pipeline_records = _op_records(caplog, "match")
    assert pipeline_records
    assert "truncated=False" in pipeline_records[-1].message


def test_diagnostics_can_be_disabled(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("EDGEJOIN_ENABLE_DIAGNOSTICS", "0")
    ej_config.reset_runtime_context()
    caplog.set_level(logging.INFO, logger="edgejoin.algo.labeling")

    result = label_candidates(
        triangle_query(), triangle_data(), full_bitmask(4, 3), backend=HOST_BACKEND
    )

    assert not _op_records(caplog, "label_candidates")
    assert result.seconds >= 0.0


def test_log_operation_records_fields() -> None:
    logger = logging.getLogger("edgejoin.tests")

    with log_operation(logger, "probe", stage="a") as metrics:
        metrics.add(items=3)

    assert isinstance(metrics, OperationMetrics)
    assert metrics.wall_seconds >= 0.0
    formatted = metrics.format()
    assert formatted.startswith("op=probe ")
    assert formatted.endswith("stage=a items=3")
