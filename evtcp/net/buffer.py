from typing import Union

from loguru import logger

DEFAULT_BUFFER_SIZE = 8192


class Buffer:
    """Receive buffer with separate read and write positions

    Incoming bytes are appended at the write position. Readers consume from
    the read position with ``retrieve``; anything left unconsumed stays in
    the buffer and is presented again together with the next arrival.
    """

    def __init__(self, initial_size: int = DEFAULT_BUFFER_SIZE, max_size: int = 16 * 1024 * 1024):
        """Initialize buffer

        Args:
            initial_size: Initial capacity in bytes
            max_size: Maximum number of readable bytes held at once (default 16 MB)
        """
        if initial_size <= 0 or max_size < initial_size:
            raise ValueError(
                f"Invalid buffer sizes: initial={initial_size}, max={max_size}")
        self._buffer = bytearray(initial_size)
        self._max_size = max_size
        self._read_pos = 0
        self._write_pos = 0
        self._stats = {
            'compactions': 0,
            'expansions': 0,
            'appends': 0,
            'retrieves': 0,
        }

    def __len__(self) -> int:
        return self._write_pos - self._read_pos

    def __bytes__(self) -> bytes:
        return self.data()

    @property
    def readable_bytes(self) -> int:
        """Number of bytes waiting to be consumed"""
        return self._write_pos - self._read_pos

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    def _get_available_space(self) -> int:
        """Get writable space after the write position"""
        return len(self._buffer) - self._write_pos

    def _make_space(self, needed: int) -> None:
        if self._get_available_space() >= needed:
            return

        used = self.readable_bytes
        # Compaction alone is enough when the consumed prefix frees the space
        if self._read_pos > 0 and len(self._buffer) - used >= needed:
            self._stats['compactions'] += 1
            self._buffer[0:used] = self._buffer[self._read_pos:self._write_pos]
            self._read_pos = 0
            self._write_pos = used
            return

        new_size = len(self._buffer)
        while new_size - used < needed:
            new_size *= 2
        self._stats['expansions'] += 1
        new_buffer = bytearray(new_size)
        new_buffer[0:used] = self._buffer[self._read_pos:self._write_pos]
        self._buffer = new_buffer
        self._read_pos = 0
        self._write_pos = used
        logger.debug(f"Buffer expanded to {new_size} bytes")

    def append(self, data: Union[bytes, bytearray, memoryview]) -> None:
        """Append data at the write position

        Args:
            data: Bytes to append

        Raises:
            BufferError: If the readable size would exceed max_size
        """
        data_len = len(data)
        if data_len == 0:
            return
        if self.readable_bytes + data_len > self._max_size:
            raise BufferError(
                f"Buffer overflow: needed {data_len}, available {self._max_size - self.readable_bytes}")

        self._stats['appends'] += 1
        self._make_space(data_len)
        self._buffer[self._write_pos:self._write_pos + data_len] = data
        self._write_pos += data_len

    def data(self) -> bytes:
        """Return all readable bytes without consuming them"""
        return bytes(self._buffer[self._read_pos:self._write_pos])

    def peek(self, size: int) -> bytes:
        """Return up to ``size`` readable bytes without consuming them"""
        size = min(max(size, 0), self.readable_bytes)
        return bytes(self._buffer[self._read_pos:self._read_pos + size])

    def retrieve(self, size: int) -> bytes:
        """Consume and return up to ``size`` bytes from the read position"""
        result = self.peek(size)
        self._stats['retrieves'] += 1
        self._read_pos += len(result)

        # Reset pointers if buffer is empty
        if self._read_pos == self._write_pos:
            self._read_pos = self._write_pos = 0

        return result

    def retrieve_all(self) -> bytes:
        return self.retrieve(self.readable_bytes)

    def clear(self) -> None:
        """Discard buffer contents"""
        self._read_pos = 0
        self._write_pos = 0

    def get_stats(self) -> dict:
        """Get buffer statistics"""
        return {
            **self._stats,
            'capacity': len(self._buffer),
            'readable_bytes': self.readable_bytes,
            'max_size': self._max_size,
            'read_pos': self._read_pos,
            'write_pos': self._write_pos,
        }
