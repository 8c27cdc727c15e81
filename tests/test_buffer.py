import pytest

from lazytf.buffer import OUTPUT_BUFFER_LIMIT, OutputBuffer


def test_default_limit_is_4000():
    assert OutputBuffer().limit == OUTPUT_BUFFER_LIMIT == 4000


def test_keeps_most_recent_lines_in_order():
    buffer = OutputBuffer()
    for i in range(4500):
        buffer.append(f"line {i}")

    assert len(buffer) == 4000
    assert buffer[0] == "line 500"
    assert buffer[-1] == "line 4499"
    assert list(buffer) == [f"line {i}" for i in range(500, 4500)]


def test_extend_respects_limit():
    buffer = OutputBuffer(limit=3, lines=["a"])
    buffer.extend(["b", "c", "d", "e"])
    assert list(buffer) == ["c", "d", "e"]


def test_tail_window():
    buffer = OutputBuffer(lines=[str(i) for i in range(10)])
    assert buffer.tail(3) == ["7", "8", "9"]
    assert buffer.tail(3, skip_from_bottom=2) == ["5", "6", "7"]
    assert buffer.tail(5, skip_from_bottom=8) == ["0", "1"]
    assert buffer.tail(0) == []


def test_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        OutputBuffer(limit=0)
