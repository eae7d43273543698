"""Tests for the statistics engine."""

from datetime import datetime, timedelta, timezone

import pytest

from procmon.errors import EmptyInputError
from procmon.models import ProcessSnapshot, ProcessStatus
from procmon.stats import analyze

T0 = datetime(2026, 1, 5, 14, 0, 0, tzinfo=timezone.utc)


def snap(offset_s, pid, mem=0, cpu=0.0, name="app"):
    return ProcessSnapshot(
        timestamp=T0 + timedelta(seconds=offset_s),
        pid=pid,
        name=name,
        cpu_percent=cpu,
        memory_bytes=mem,
        thread_count=1,
        status=ProcessStatus.RUNNING,
    )


def test_empty_input_raises():
    with pytest.raises(EmptyInputError):
        analyze([])


def test_memory_min_mean_max():
    """Test memory values {1, 5, 3} yield min 1, mean 3.0, max 5."""
    result = analyze([snap(0, 1, mem=1), snap(1, 2, mem=5), snap(2, 3, mem=3)])

    assert result.memory_stats.min_bytes == 1
    assert result.memory_stats.avg_bytes == 3.0
    assert result.memory_stats.max_bytes == 5

    memory_peak = result.peak_details[0]
    assert memory_peak.metric == "Memory"
    assert memory_peak.value == result.memory_stats.max_bytes
    assert memory_peak.pid == 2


def test_cpu_stats_and_peak():
    result = analyze([snap(0, 1, cpu=10.0), snap(0, 2, cpu=150.0), snap(1, 1, cpu=20.0)])

    assert result.cpu_stats.min_percent == 10.0
    assert result.cpu_stats.avg_percent == pytest.approx(60.0)
    assert result.cpu_stats.max_percent == 150.0
    cpu_peak = result.peak_details[1]
    assert cpu_peak.metric == "CPU"
    assert cpu_peak.value == 150.0
    assert cpu_peak.timestamp == T0


def test_time_range_uses_first_and_last_records():
    result = analyze([snap(0, 1), snap(30, 1), snap(90, 1)])

    assert result.time_range.start == T0
    assert result.time_range.end == T0 + timedelta(seconds=90)
    assert result.total_records == 3


def test_process_count_per_timestamp():
    """Test distinct pids are counted per sampling tick."""
    records = [
        snap(0, 1),
        snap(0, 2),
        snap(0, 3),
        snap(10, 1),
        snap(20, 1),
        snap(20, 2),
        snap(20, 2),  # duplicate pid within one tick counts once
    ]

    result = analyze(records)

    assert result.process_count.min == 1
    assert result.process_count.max == 3
    assert result.process_count.avg == pytest.approx(2.0)


def test_records_are_not_deduplicated_by_pid():
    result = analyze([snap(0, 1, mem=10), snap(1, 1, mem=10), snap(2, 1, mem=40)])

    assert result.memory_stats.avg_bytes == 20.0
    assert result.total_records == 3


def test_peak_ties_keep_first_record():
    result = analyze([snap(0, 1, mem=9, cpu=5.0), snap(1, 2, mem=9, cpu=5.0)])

    assert [p.pid for p in result.peak_details] == [1, 1]


def test_to_dict_uses_iso_strings():
    data = analyze([snap(0, 7, mem=2048, cpu=1.5, name="nginx")]).to_dict()

    assert data["time_range"] == {"from": T0.isoformat(), "to": T0.isoformat()}
    assert data["memory_stats"] == {"min_bytes": 2048, "avg_bytes": 2048.0, "max_bytes": 2048}
    assert data["process_count"] == {"min": 1, "max": 1, "avg": 1.0}
    assert data["total_records"] == 1
    assert data["peak_details"][0] == {
        "metric": "Memory",
        "value": 2048,
        "timestamp": T0.isoformat(),
        "pid": 7,
        "process_name": "nginx",
    }
