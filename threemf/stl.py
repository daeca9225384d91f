"""Reading meshes from binary and ASCII STL streams."""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, List, Optional, Tuple

from threemf.geometry import Point3D, VectorTree

CHECK_EVERY_FACES = 1000
HEADER_SIZE = 300

_BINARY_HEADER = struct.Struct("<80xI")
_BINARY_FACE = struct.Struct("<12x9f2x")

Cancel = Optional[Callable[[], bool]]


class DecodeCancelled(Exception):
    """Raised when decoding is stopped by the cancel callback."""


@dataclass
class Mesh:
    """A triangle mesh whose vertices are merged by position."""

    vertices: List[Point3D] = field(default_factory=list)
    triangles: List[Tuple[int, int, int]] = field(default_factory=list)
    _tree: VectorTree = field(default_factory=VectorTree, repr=False, compare=False)

    def add_vertex(self, point: Point3D) -> int:
        """Return the index of ``point``, adding it if no vertex sits there yet."""
        index = self._tree.find_vector(point)
        if index is None:
            index = len(self.vertices)
            self.vertices.append(Point3D(*point))
            self._tree.add_vector(point, index)
        return index


def _parse_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return 0.0


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_ascii(stream: BinaryIO, mesh: Mesh, cancel: Cancel = None) -> None:
    """Fill ``mesh`` from an ASCII STL byte stream."""
    step = CHECK_EVERY_FACES
    next_check = step
    nodes: List[int] = []
    for raw in stream:
        fields = raw.decode("utf-8", errors="replace").split()
        if len(fields) != 4 or fields[0] != "vertex":
            continue
        point = Point3D(*(_parse_float(f) for f in fields[1:]))
        nodes.append(mesh.add_vertex(point))
        if len(nodes) == 3:
            mesh.triangles.append((nodes[0], nodes[1], nodes[2]))
            nodes.clear()
            if len(mesh.triangles) > next_check:
                if cancel is not None and cancel():
                    raise DecodeCancelled("STL decoding cancelled")
                next_check += step


def decode_binary(stream: BinaryIO, mesh: Mesh, cancel: Cancel = None) -> None:
    """Fill ``mesh`` from a binary STL byte stream."""
    header = _read_exact(stream, _BINARY_HEADER.size)
    if len(header) < _BINARY_HEADER.size:
        raise EOFError("binary STL header is truncated")
    (face_count,) = _BINARY_HEADER.unpack(header)
    step = CHECK_EVERY_FACES
    next_check = step
    for _ in range(face_count):
        data = _read_exact(stream, _BINARY_FACE.size)
        if len(data) < _BINARY_FACE.size:
            raise EOFError("binary STL face is truncated")
        coords = _BINARY_FACE.unpack(data)
        v1, v2, v3 = (
            mesh.add_vertex(Point3D(*coords[i : i + 3])) for i in (0, 3, 6)
        )
        mesh.triangles.append((v1, v2, v3))
        if len(mesh.triangles) > next_check:
            if cancel is not None and cancel():
                raise DecodeCancelled("STL decoding cancelled")
            next_check += step


def is_ascii_header(header: bytes) -> bool:
    """Tell whether an STL header belongs to an ASCII file."""
    return header.lower().startswith(b"solid") and header.isascii()


class _ChainedReader(io.RawIOBase):
    """Reads from a bytes prefix, then from another stream."""

    def __init__(self, head: bytes, tail: BinaryIO) -> None:
        self._head = head
        self._tail = tail

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._head:
            n = min(len(buffer), len(self._head))
            buffer[:n] = self._head[:n]
            self._head = self._head[n:]
            return n
        data = self._tail.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        return n


class StlDecoder:
    """Decodes an STL stream, detecting whether it is binary or ASCII."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def decode(self, cancel: Cancel = None) -> Mesh:
        """Read the whole stream and return the mesh it describes."""
        header = _read_exact(self.stream, HEADER_SIZE)
        if len(header) < HEADER_SIZE:
            raise EOFError("STL stream is shorter than its header")
        reader = io.BufferedReader(_ChainedReader(header, self.stream))
        mesh = Mesh()
        if is_ascii_header(header):
            decode_ascii(reader, mesh, cancel)
        else:
            decode_binary(reader, mesh, cancel)
        return mesh