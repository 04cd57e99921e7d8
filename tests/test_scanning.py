import base64
import json
import random
import zlib

import pytest

from diskscan.scanning import (
    Conclusion,
    IoResult,
    LatencyBucket,
    LatencyHistogram,
    ResultData,
    ResultError,
    ScanMode,
    calc_latency_stride,
    calc_scan_order,
    conclude,
    conclusion_to_str,
    median,
    parse_scan_mode,
)


@pytest.mark.parametrize(
    "text, mode",
    [
        ("seq", ScanMode.SEQ),
        ("SEQ", ScanMode.SEQ),
        ("Sequential", ScanMode.SEQ),
        ("random", ScanMode.RANDOM),
        ("RaNdOm", ScanMode.RANDOM),
    ],
)
def test_parse_scan_mode(text, mode):
    assert parse_scan_mode(text) is mode


def test_parse_scan_mode_unknown():
    with pytest.raises(ValueError):
        parse_scan_mode("backwards")


def test_conclusion_strings():
    assert conclusion_to_str(Conclusion.PASSED) == "passed"
    assert conclusion_to_str(Conclusion.ABORTED) == "scan_aborted"
    assert conclusion_to_str(Conclusion.SCAN_PROBLEM) == "scan_problem"
    assert conclusion_to_str(Conclusion.FAILED_IO_ERRORS) == "failed due to IO errors"
    assert (
        conclusion_to_str(Conclusion.FAILED_LATENCY_PERCENTILE)
        == "failed to to a high latency in the 99.99%'ile"
    )


@pytest.mark.parametrize("num_sectors, buckets", [(1000, 10), (1001, 10), (7, 100), (123456, 37)])
def test_latency_stride_covers_disk(num_sectors, buckets):
    stride = calc_latency_stride(num_sectors * 512, 512, buckets)
    assert stride * buckets >= num_sectors
    assert (stride - 1) * buckets <= num_sectors


def test_latency_stride_rejects_zero_buckets():
    with pytest.raises(ValueError):
        calc_latency_stride(512 * 10, 512, 0)


def test_seq_scan_order():
    order = calc_scan_order(ScanMode.SEQ, 100, 4096, 512, None)
    assert order[0] == 0
    assert all(b - a == 4096 for a, b in zip(order, order[1:]))
    assert len(order) == 100 // 8 + 1


def test_random_scan_order_is_permutation():
    seq = calc_scan_order(ScanMode.SEQ, 1000, 4096, 512, None)
    rnd = calc_scan_order(ScanMode.RANDOM, 1000, 4096, 512, random.Random(7))
    assert sorted(rnd) == seq


def test_random_scan_order_repeatable_with_seed():
    first = calc_scan_order(ScanMode.RANDOM, 500, 1024, 512, random.Random(3))
    second = calc_scan_order(ScanMode.RANDOM, 500, 1024, 512, random.Random(3))
    assert first == second


def test_scan_order_bad_inputs():
    with pytest.raises(ValueError):
        calc_scan_order("sideways", 100, 4096, 512, None)
    with pytest.raises(ValueError):
        calc_scan_order(ScanMode.SEQ, 100, 256, 512, None)


def test_median():
    assert median([3, 1, 2]) == 2
    assert median([]) == 0
    assert median([5]) == 5
    assert 2 <= median([1, 2, 3, 4]) <= 3


def test_histogram_max_and_percentiles():
    hist = LatencyHistogram()
    for value in range(1, 101):
        assert hist.record(value)
    assert len(hist) == 100
    assert hist.max() == 100
    assert hist.value_at_percentile(100) == 100
    assert hist.value_at_percentile(50) == 50
    assert hist.value_at_percentile(0) == 1


def test_empty_histogram():
    hist = LatencyHistogram()
    assert hist.max() == 0
    assert hist.value_at_percentile(99.99) == 0


def test_histogram_out_of_range():
    hist = LatencyHistogram(1, 1000, 3)
    assert hist.record(1001) is False
    assert hist.record(-1) is False
    assert len(hist) == 0


def test_histogram_invalid_range():
    with pytest.raises(ValueError):
        LatencyHistogram(0, 100, 3)


def test_histogram_encode_round_trip():
    hist = LatencyHistogram()
    for value in (10, 10, 20):
        hist.record(value)
    payload = json.loads(zlib.decompress(base64.b64decode(hist.encode())))
    assert payload["counts"] == [[10, 2], [20, 1]]
    assert payload["highest"] == 60 * 1000 * 1000


def test_conclude_io_errors():
    hist = LatencyHistogram()
    hist.record(10)
    assert conclude(1, hist) is Conclusion.FAILED_IO_ERRORS


def test_conclude_max_latency():
    hist = LatencyHistogram()
    hist.record(10_000_001)
    assert conclude(0, hist) is Conclusion.FAILED_MAX_LATENCY


def test_conclude_percentile():
    hist = LatencyHistogram()
    hist.record(9_000_000)
    assert conclude(0, hist) is Conclusion.FAILED_LATENCY_PERCENTILE


def test_conclude_passed():
    hist = LatencyHistogram()
    for _ in range(100):
        hist.record(1000)
    assert conclude(0, hist) is Conclusion.PASSED


def test_io_result_defaults():
    res = IoResult()
    assert res.data is ResultData.FULL
    assert res.error is ResultError.NONE
    assert res.sense == b""


def test_latency_bucket_defaults():
    bucket = LatencyBucket(start_sector=5)
    assert bucket.start_sector == 5
    assert bucket.latency_max_msec == 0
    assert bucket.latency_min_msec > bucket.latency_max_msec