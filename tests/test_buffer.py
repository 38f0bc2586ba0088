import pytest

from evtcp.net.buffer import Buffer


def test_append_and_retrieve():
    buf = Buffer(initial_size=16)
    buf.append(b"hello ")
    buf.append(b"world")

    assert len(buf) == 11
    assert buf.peek(5) == b"hello"
    assert buf.retrieve(6) == b"hello "
    assert buf.data() == b"world"
    assert buf.retrieve_all() == b"world"
    assert buf.readable_bytes == 0


def test_unconsumed_bytes_are_kept():
    buf = Buffer(initial_size=8)
    buf.append(b"abc")
    assert buf.retrieve(1) == b"a"

    buf.append(b"def")

    assert bytes(buf) == b"bcdef"


def test_retrieve_more_than_available():
    buf = Buffer()
    buf.append(b"xy")
    assert buf.retrieve(100) == b"xy"
    assert buf.retrieve(1) == b""


def test_grows_beyond_initial_size():
    buf = Buffer(initial_size=4, max_size=1024)
    payload = bytes(range(100))

    buf.append(payload)

    assert buf.data() == payload
    assert buf.capacity >= 100
    assert buf.get_stats()['expansions'] == 1


def test_compacts_consumed_prefix():
    buf = Buffer(initial_size=8, max_size=64)
    buf.append(b"12345678")
    buf.retrieve(6)

    buf.append(b"abcd")

    assert buf.data() == b"78abcd"
    assert buf.capacity == 8
    assert buf.get_stats()['compactions'] == 1


def test_overflow_raises():
    buf = Buffer(initial_size=4, max_size=8)
    buf.append(b"1234")
    with pytest.raises(BufferError):
        buf.append(b"56789")
    assert buf.data() == b"1234"


def test_clear():
    buf = Buffer()
    buf.append(b"data")
    buf.clear()
    assert len(buf) == 0
    assert buf.data() == b""


@pytest.mark.parametrize("initial,maximum", [(0, 10), (16, 8)])
def test_invalid_sizes(initial, maximum):
    with pytest.raises(ValueError):
        Buffer(initial_size=initial, max_size=maximum)
