# core/embedding_codec.py

"""
Binary serialization of an embedding index.

Version 1 files start with a magic tag and a format version, followed by
the record count and the records. Files written before the header existed
(a bare int32 record count) are still readable.

Record layout, little-endian:
    string   name            (7-bit length prefix + UTF-8 bytes)
    int32    vector_length
    float32  values[vector_length]
"""

import io
import logging
import os
import stat
import struct
import tempfile
from pathlib import Path
from typing import Union

import numpy as np

from core.embedding_index import MAX_NAME_BYTES, EmbeddingIndex
from core.exceptions import CorruptIndex, NotFound, PersistenceError

logger = logging.getLogger(__name__)

MAGIC = b"SLEI"
FORMAT_VERSION = 1
LEGACY_VERSION = 0

MAX_VECTOR_LENGTH = 65536

# empty name (1 byte prefix) + int32 vector length
_MIN_RECORD_SIZE = 5

_INT32 = struct.Struct('<i')
_UINT32 = struct.Struct('<I')


def _write_string(buffer: io.BytesIO, value: str):
    """Write a string with a 7-bit encoded byte-count prefix"""
    raw = value.encode('utf-8')
    length = len(raw)
    while length >= 0x80:
        buffer.write(bytes([(length & 0x7F) | 0x80]))
        length >>= 7
    buffer.write(bytes([length]))
    buffer.write(raw)


def encode(index: EmbeddingIndex) -> bytes:
    """Serialize an index to the versioned binary format"""
    buffer = io.BytesIO()
    buffer.write(MAGIC)
    buffer.write(_UINT32.pack(FORMAT_VERSION))
    buffer.write(_UINT32.pack(len(index)))

    for record in index.records:
        _write_string(buffer, record.name)
        buffer.write(_INT32.pack(record.vector.shape[0]))
        buffer.write(record.vector.astype('<f4', copy=False).tobytes())

    return buffer.getvalue()


class _Reader:
    """Bounds-checked cursor over the raw index bytes"""

    def __init__(self, data: bytes):
        self.data = memoryview(data)
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def _require(self, n: int, what: str):
        if n > self.remaining:
            raise CorruptIndex(
                f"Unexpected end of data reading {what} at offset {self.pos} "
                f"(need {n} bytes, {self.remaining} left)"
            )

    def read_int32(self, what: str) -> int:
        self._require(4, what)
        value = _INT32.unpack_from(self.data, self.pos)[0]
        self.pos += 4
        return value

    def read_uint32(self, what: str) -> int:
        self._require(4, what)
        value = _UINT32.unpack_from(self.data, self.pos)[0]
        self.pos += 4
        return value

    def read_string(self, max_bytes: int) -> str:
        start = self.pos
        length = 0
        shift = 0
        for _ in range(5):
            self._require(1, "name length")
            byte = self.data[self.pos]
            self.pos += 1
            length |= (byte & 0x7F) << shift
            if not byte & 0x80:
                break
            shift += 7
        else:
            raise CorruptIndex(f"Malformed name length prefix at offset {start}")

        if length > max_bytes:
            raise CorruptIndex(
                f"Name length {length} at offset {start} exceeds limit {max_bytes}"
            )

        self._require(length, "name")
        raw = bytes(self.data[self.pos:self.pos + length])
        self.pos += length
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CorruptIndex(f"Name at offset {start} is not valid UTF-8") from e

    def read_floats(self, count: int) -> np.ndarray:
        self._require(count * 4, "vector values")
        values = np.frombuffer(self.data, dtype='<f4', count=count, offset=self.pos)
        self.pos += count * 4
        return values.astype(np.float32)


def _read_header(reader: _Reader) -> int:
    """Read the header and return the record count"""
    if len(reader.data) < 4:
        raise CorruptIndex(f"Index data too short ({len(reader.data)} bytes)")

    if bytes(reader.data[:4]) == MAGIC:
        reader.pos = 4
        version = reader.read_uint32("format version")
        if version != FORMAT_VERSION:
            raise CorruptIndex(f"Unsupported index format version {version}")
        return reader.read_uint32("record count")

    count = reader.read_int32("record count")
    if count < 0:
        raise CorruptIndex(f"Negative record count {count}")
    logger.debug("Reading legacy index without header (%d records)", count)
    return count


def detect_version(data: bytes) -> int:
    """Return the format version of raw index bytes (0 for legacy files)"""
    if len(data) >= 8 and bytes(data[:4]) == MAGIC:
        return _UINT32.unpack_from(data, 4)[0]
    return LEGACY_VERSION


def decode(data: bytes,
           max_vector_length: int = MAX_VECTOR_LENGTH,
           max_name_bytes: int = MAX_NAME_BYTES) -> EmbeddingIndex:
    """
    Deserialize an index from bytes

    Args:
        data: Raw file contents, versioned or legacy layout
        max_vector_length: Largest vector length accepted before the
                           file is considered corrupt
        max_name_bytes: Largest encoded record name accepted, at most
                        MAX_NAME_BYTES

    Raises:
        CorruptIndex: On truncation, absurd lengths, mixed dimensions
                      or trailing bytes
    """
    max_name_bytes = min(max_name_bytes, MAX_NAME_BYTES)
    reader = _Reader(data)
    count = _read_header(reader)

    if count * _MIN_RECORD_SIZE > reader.remaining:
        raise CorruptIndex(
            f"Declared {count} records but only {reader.remaining} bytes remain"
        )

    index = EmbeddingIndex()
    dimension = None

    for i in range(count):
        name = reader.read_string(max_name_bytes)
        length = reader.read_int32("vector length")

        if length < 0 or length > max_vector_length:
            raise CorruptIndex(
                f"Record {i} ({name!r}) declares invalid vector length {length}"
            )
        if dimension is None:
            dimension = length
        elif length != dimension:
            raise CorruptIndex(
                f"Record {i} ({name!r}) has length {length}, "
                f"previous records have {dimension}"
            )

        index.add(name, reader.read_floats(length))

    if reader.remaining:
        raise CorruptIndex(
            f"{reader.remaining} trailing bytes after {count} records"
        )

    return index


def read_index_file(path: Union[str, Path], **limits) -> EmbeddingIndex:
    """Read and decode an index file"""
    path = Path(path)
    if not path.is_file():
        raise NotFound(f"Index file not found: {path}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise CorruptIndex(f"Cannot read index file {path}: {e}") from e

    return decode(data, **limits)


def _target_mode(path: Path) -> int:
    """Permission bits for the index file: keep an existing file's mode,
    otherwise what a plain open() would create under the current umask"""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_index_file(index: EmbeddingIndex, path: Union[str, Path]):
    """
    Write an index file atomically

    The data goes to a temporary file in the target directory which then
    replaces the target, so a failed write never leaves a partial index.
    """
    path = Path(path)
    data = encode(index)
    tmp_name = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates the file as 0600
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise PersistenceError(f"Failed to write index to {path}: {e}") from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.info("Saved %d embeddings to %s (%d bytes)", len(index), path, len(data))
