import io
from lzsacompress.core import CompressionOutcome, StatusCode, TokenStats, UnknownStatus, status_from_code
from lzsacompress.options import RunOptions
from lzsacompress.report import (
    EXIT_FAILURE, EXIT_OK, PROGRESS_THRESHOLD, ProgressReporter, bytes_per_token,
    compression_percent, exit_code, report_result, stats_lines, status_message,
)


def _opts(**kw) -> RunOptions:
    kw.setdefault("input_path", "in.bin")
    kw.setdefault("output_path", "out.lzsa")
    return RunOptions(**kw)


def _ok(**kw) -> CompressionOutcome:
    kw.setdefault("original_size", 4096)
    kw.setdefault("compressed_size", 1024)
    kw.setdefault("command_count", 4)
    kw.setdefault("safe_distance", 255)
    return CompressionOutcome(StatusCode.OK, **kw)


def test_percent_and_bytes_per_token():
    o = _ok()
    assert compression_percent(o) == 25.0
    assert bytes_per_token(o) == 1024.0
    empty = CompressionOutcome(StatusCode.OK)
    assert compression_percent(empty) == 0.0
    assert bytes_per_token(empty) == 0.0


def test_verbose_summary():
    out, err = io.StringIO(), io.StringIO()
    rc = report_result(_ok(), _opts(verbose=True), elapsed_us=2_000_000, out=out, err=err)
    assert rc == EXIT_OK
    text = out.getvalue()
    assert "Compressed 'in.bin' in 2 seconds" in text
    assert "4 tokens (1024 bytes/token)" in text
    assert "4096 into 1024 bytes ==> 25 %" in text
    assert "Safe distance: 255 (0xFF)" in text
    assert err.getvalue() == ""


def test_quiet_success_prints_nothing():
    out, err = io.StringIO(), io.StringIO()
    assert report_result(_ok(), _opts(), out=out, err=err) == EXIT_OK
    assert out.getvalue() == "" and err.getvalue() == ""


def test_zero_elapsed_does_not_divide():
    out = io.StringIO()
    report_result(_ok(), _opts(verbose=True), elapsed_us=0, out=out, err=io.StringIO())
    assert "0 Mb/s" in out.getvalue()


def test_stats_none_when_divisor_zero():
    lines = stats_lines(TokenStats())
    assert lines == [
        "Literals: none",
        "Offsets: none",
        "Match lens: none",
        "RLE1 lens: none",
        "RLE2 lens: none",
    ]


def test_stats_values():
    s = TokenStats()
    for n in (1, 2, 4):
        s.add_literals(n)
    s.add_match(10, 3)
    s.add_match(10, 8, rep=True)
    s.add_rle2(5)
    lines = stats_lines(s)
    assert lines[0] == "Literals: min: 1 avg: 2 max: 4 count: 3"
    assert lines[1] == "Offsets: min: 10 avg: 10 max: 10 reps: 1 count: 2"
    assert lines[2] == "Match lens: min: 3 avg: 5 max: 8 count: 2"
    assert lines[3] == "RLE1 lens: none"
    assert lines[4] == "RLE2 lens: min: 5 avg: 5 max: 5 count: 1"


def test_zero_average_is_not_none():
    s = TokenStats()
    s.add_rle1(0)
    assert stats_lines(s)[3] == "RLE1 lens: min: 0 avg: 0 max: 0 count: 1"


def test_stats_printed_only_on_request():
    out = io.StringIO()
    report_result(_ok(), _opts(show_stats=True), out=out, err=io.StringIO())
    assert "Literals: none" in out.getvalue()
    assert "Compressed" not in out.getvalue()


def test_every_status_has_a_message():
    opts = _opts(dictionary_path="d.bin")
    assert status_message(StatusCode.OK, opts) is None
    for code in StatusCode:
        if code is StatusCode.OK:
            continue
        assert status_message(code, opts)
        assert exit_code(code) == EXIT_FAILURE
    assert status_message(StatusCode.SOURCE_READ_ERROR, opts) == "error reading 'in.bin'"
    assert status_message(StatusCode.DESTINATION_WRITE_ERROR, opts) == "error writing 'out.lzsa'"
    assert status_message(StatusCode.DICTIONARY_READ_ERROR, opts) == "error reading dictionary 'd.bin'"


def test_unknown_status():
    st = status_from_code(42)
    assert st == UnknownStatus(42)
    assert status_message(st, _opts()) == "unknown compression error 42"
    assert exit_code(st) == EXIT_FAILURE
    assert status_from_code(3) is StatusCode.DICTIONARY_READ_ERROR


def test_failure_goes_to_stderr_only():
    out, err = io.StringIO(), io.StringIO()
    bad = CompressionOutcome(StatusCode.OUT_OF_MEMORY)
    rc = report_result(bad, _opts(verbose=True, show_stats=True), 10, out=out, err=err)
    assert rc == 100
    assert err.getvalue() == "out of memory\n"
    assert out.getvalue() == ""


def test_progress_suppressed_below_threshold():
    out = io.StringIO()
    p = ProgressReporter(PROGRESS_THRESHOLD - 1, out)
    p(100, 50)
    p(PROGRESS_THRESHOLD - 1, 10)
    assert out.getvalue() == ""


def test_progress_shown_at_threshold():
    out = io.StringIO()
    p = ProgressReporter(PROGRESS_THRESHOLD, out)
    p(65536, 16384)
    assert out.getvalue().startswith("\r65536 => 16384 (25 %)")


def test_progress_unknown_total_uses_running_size():
    out = io.StringIO()
    p = ProgressReporter(None, out)
    p(1000, 10)
    assert out.getvalue() == ""
    p(PROGRESS_THRESHOLD, 10)
    assert "=>" in out.getvalue()


def test_progress_for_path(tmp_path):
    f = tmp_path / "big.bin"
    f.write_bytes(b"\0" * PROGRESS_THRESHOLD)
    assert ProgressReporter.for_path(str(f)).total_size == PROGRESS_THRESHOLD
    assert ProgressReporter.for_path(str(tmp_path / "missing")).total_size is None


def test_progress_ignores_broken_stream():
    class Broken(io.StringIO):
        def flush(self):
            raise OSError("gone")

    p = ProgressReporter(PROGRESS_THRESHOLD, Broken())
    p(PROGRESS_THRESHOLD, 1)
    closed = io.StringIO()
    closed.close()
    ProgressReporter(PROGRESS_THRESHOLD, closed)(PROGRESS_THRESHOLD, 1)
