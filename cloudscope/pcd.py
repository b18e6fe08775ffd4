"""Reading and writing point clouds in the PCD file format."""

from __future__ import annotations

import struct
from pathlib import Path

import numpy as np

_DTYPES = {
    ("F", 4): "<f4",
    ("F", 8): "<f8",
    ("I", 1): "<i1",
    ("I", 2): "<i2",
    ("I", 4): "<i4",
    ("I", 8): "<i8",
    ("U", 1): "<u1",
    ("U", 2): "<u2",
    ("U", 4): "<u4",
    ("U", 8): "<u8",
}

_HEADER = """# .PCD v0.7 - Point Cloud Data file format
VERSION 0.7
FIELDS x y z intensity
SIZE 4 4 4 4
TYPE F F F F
COUNT 1 1 1 1
WIDTH {n}
HEIGHT 1
VIEWPOINT 0 0 0 1 0 0 0
POINTS {n}
DATA ascii
"""


class PcdError(ValueError):
    """A PCD file is malformed or lacks the x, y and z fields."""


def _lzf_decompress(data: bytes, out_len: int) -> bytes:
    out = bytearray()
    i = 0
    try:
        while i < len(data):
            ctrl = data[i]
            i += 1
            if ctrl < 32:
                n = ctrl + 1
                if i + n > len(data):
                    raise PcdError("truncated compressed data")
                out += data[i : i + n]
                i += n
                continue
            length = ctrl >> 5
            ref = len(out) - ((ctrl & 0x1F) << 8) - 1
            if length == 7:
                length += data[i]
                i += 1
            ref -= data[i]
            i += 1
            length += 2
            if ref < 0:
                raise PcdError("invalid back reference in compressed data")
            for _ in range(length):
                out.append(out[ref])
                ref += 1
    except IndexError as exc:
        raise PcdError("truncated compressed data") from exc
    if len(out) != out_len:
        raise PcdError("compressed data has the wrong size")
    return bytes(out)


def _parse_header(raw: bytes) -> tuple[dict, int]:
    header: dict[str, list[str]] = {}
    pos = 0
    while True:
        if pos >= len(raw):
            raise PcdError("missing DATA line")
        nl = raw.find(b"\n", pos)
        end = len(raw) if nl < 0 else nl
        line = raw[pos:end].decode("ascii", errors="replace").strip()
        pos = end + 1
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        header[parts[0].upper()] = parts[1:]
        if parts[0].upper() == "DATA":
            return header, pos


def _ints(values, what: str) -> list[int]:
    try:
        return [int(v) for v in values]
    except ValueError as exc:
        raise PcdError(f"bad {what} line") from exc


def read_pcd(path) -> np.ndarray:
    """Load a PCD file as an (N, 4) array of x, y, z, intensity.

    ``ascii``, ``binary`` and ``binary_compressed`` data are supported; a
    missing intensity field reads as zero.
    """
    raw = Path(path).read_bytes()
    header, pos = _parse_header(raw)

    fields = header.get("FIELDS")
    if not fields:
        raise PcdError("missing FIELDS line")
    nf = len(fields)
    sizes = _ints(header.get("SIZE", ["4"] * nf), "SIZE")
    types = [t.upper() for t in header.get("TYPE", ["F"] * nf)]
    counts = _ints(header.get("COUNT", ["1"] * nf), "COUNT")
    if not (len(sizes) == len(types) == len(counts) == nf):
        raise PcdError("FIELDS, SIZE, TYPE and COUNT disagree")
    try:
        codes = [_DTYPES[(t, s)] for t, s in zip(types, sizes)]
    except KeyError as exc:
        raise PcdError(f"unsupported field type {exc.args[0]}") from exc

    if "POINTS" in header:
        n = _ints(header["POINTS"][:1], "POINTS")[0]
    else:
        width = _ints(header.get("WIDTH", ["0"])[:1], "WIDTH")[0]
        height = _ints(header.get("HEIGHT", ["1"])[:1], "HEIGHT")[0]
        n = width * height
    if n < 0:
        raise PcdError("negative point count")
    mode = header["DATA"][0].lower() if header["DATA"] else ""

    columns: dict[str, np.ndarray] = {}
    if mode == "ascii":
        rows = [line.split() for line in raw[pos:].decode("ascii", errors="replace").splitlines() if line.strip()]
        if len(rows) < n:
            raise PcdError("fewer points than declared")
        total = sum(counts)
        try:
            table = np.array([[float(v) for v in row[:total]] for row in rows[:n]], dtype=float)
        except ValueError as exc:
            raise PcdError("bad value in ascii data") from exc
        if n and table.shape[1] != total:
            raise PcdError("ascii row has too few values")
        table = table.reshape(n, total)
        offset = 0
        for name, count in zip(fields, counts):
            columns.setdefault(name, table[:, offset])
            offset += count
    elif mode == "binary":
        dtype = np.dtype([(f"f{i}", code, (count,)) for i, (code, count) in enumerate(zip(codes, counts))])
        if len(raw) - pos < dtype.itemsize * n:
            raise PcdError("binary data is truncated")
        records = np.frombuffer(raw, dtype=dtype, count=n, offset=pos)
        for i, (name, count) in enumerate(zip(fields, counts)):
            columns.setdefault(name, records[f"f{i}"].reshape(n, count)[:, 0].astype(float))
    elif mode == "binary_compressed":
        if len(raw) - pos < 8:
            raise PcdError("binary_compressed data is truncated")
        compressed_size, uncompressed_size = struct.unpack_from("<II", raw, pos)
        payload = raw[pos + 8 : pos + 8 + compressed_size]
        if len(payload) != compressed_size:
            raise PcdError("binary_compressed data is truncated")
        data = _lzf_decompress(payload, uncompressed_size) if uncompressed_size else b""
        needed = sum(s * c * n for s, c in zip(sizes, counts))
        if len(data) < needed:
            raise PcdError("binary_compressed data is too short")
        offset = 0
        for name, code, size, count in zip(fields, codes, sizes, counts):
            block = np.frombuffer(data, dtype=code, count=count * n, offset=offset).reshape(n, count)
            columns.setdefault(name, block[:, 0].astype(float))
            offset += size * count * n
    else:
        raise PcdError(f"unsupported DATA type {mode!r}")

    missing = [axis for axis in ("x", "y", "z") if axis not in columns]
    if missing:
        raise PcdError(f"missing field(s): {', '.join(missing)}")
    intensity = columns.get("intensity", np.zeros(n))
    return np.column_stack([columns["x"], columns["y"], columns["z"], intensity]).reshape(n, 4)


def write_pcd(path, cloud) -> None:
    """Save an (N, 3) or (N, 4) cloud as an ascii PCD file of float32 fields."""
    pts = np.asarray(cloud, dtype=float)
    if pts.size == 0:
        pts = np.empty((0, 4), dtype=float)
    elif pts.ndim != 2 or pts.shape[1] < 3:
        raise ValueError("cloud must be an (N, 3) or wider array")
    elif pts.shape[1] == 3:
        pts = np.hstack([pts, np.zeros((len(pts), 1))])
    values = pts[:, :4].astype(np.float32)
    body = "".join(" ".join(f"{float(v):.9g}" for v in row) + "\n" for row in values)
    Path(path).write_text(_HEADER.format(n=len(values)) + body, encoding="ascii")