import struct

import numpy as np
import pytest

from cloudscope.pcd import PcdError, read_pcd, write_pcd


def _header(fields, sizes, types, n, data):
    counts = " ".join("1" for _ in fields)
    return (
        "VERSION 0.7\n"
        f"FIELDS {' '.join(fields)}\n"
        f"SIZE {' '.join(map(str, sizes))}\n"
        f"TYPE {' '.join(types)}\n"
        f"COUNT {counts}\n"
        f"WIDTH {n}\nHEIGHT 1\nVIEWPOINT 0 0 0 1 0 0 0\n"
        f"POINTS {n}\nDATA {data}\n"
    ).encode("ascii")


def _lzf_literal(data: bytes) -> bytes:
    out = bytearray()
    for start in range(0, len(data), 32):
        chunk = data[start : start + 32]
        out.append(len(chunk) - 1)
        out += chunk
    return bytes(out)


def test_ascii_round_trip(tmp_path):
    rng = np.random.default_rng(0)
    cloud = rng.normal(size=(50, 4)) * 10
    path = tmp_path / "c.pcd"
    write_pcd(path, cloud)
    back = read_pcd(path)
    assert back.shape == (50, 4)
    assert np.array_equal(back, cloud.astype(np.float32).astype(float))


def test_written_header_declares_fields(tmp_path):
    path = tmp_path / "c.pcd"
    write_pcd(path, np.zeros((2, 3)))
    lines = path.read_text().splitlines()
    assert lines[1] == "VERSION 0.7"
    assert "FIELDS x y z intensity" in lines
    assert "DATA ascii" in lines
    assert np.array_equal(read_pcd(path), np.zeros((2, 4)))


def test_empty_cloud_round_trip(tmp_path):
    path = tmp_path / "e.pcd"
    write_pcd(path, np.empty((0, 4)))
    assert read_pcd(path).shape == (0, 4)


def test_binary_without_intensity(tmp_path):
    pts = np.array([[1.0, 2.0, 3.0], [-4.5, 0.25, 8.0]], dtype="<f4")
    path = tmp_path / "b.pcd"
    path.write_bytes(_header(["x", "y", "z"], [4, 4, 4], ["F", "F", "F"], 2, "binary") + pts.tobytes())
    back = read_pcd(path)
    assert np.array_equal(back[:, :3], pts.astype(float))
    assert np.all(back[:, 3] == 0.0)


def test_binary_compressed_literal_runs(tmp_path):
    pts = np.array([[1.0, 2.0, 3.0, 4.0], [5.0, 6.0, 7.0, 8.0], [9.0, 10.0, 11.0, 12.0]], dtype="<f4")
    soa = pts.T.copy().tobytes()
    comp = _lzf_literal(soa)
    path = tmp_path / "bc.pcd"
    path.write_bytes(
        _header(["x", "y", "z", "intensity"], [4] * 4, ["F"] * 4, 3, "binary_compressed")
        + struct.pack("<II", len(comp), len(soa))
        + comp
    )
    assert np.array_equal(read_pcd(path), pts.astype(float))


def test_binary_compressed_back_reference(tmp_path):
    comp = b"\x00\x00" + b"\xe0\x02\x00"
    path = tmp_path / "bz.pcd"
    path.write_bytes(
        _header(["x", "y", "z"], [4] * 3, ["F"] * 3, 1, "binary_compressed")
        + struct.pack("<II", len(comp), 12)
        + comp
    )
    assert np.array_equal(read_pcd(path), np.zeros((1, 4)))


def test_missing_xyz_field(tmp_path):
    path = tmp_path / "m.pcd"
    path.write_bytes(_header(["x", "y"], [4, 4], ["F", "F"], 1, "ascii") + b"1 2\n")
    with pytest.raises(PcdError):
        read_pcd(path)


def test_unknown_data_mode(tmp_path):
    path = tmp_path / "u.pcd"
    path.write_bytes(_header(["x", "y", "z"], [4] * 3, ["F"] * 3, 1, "hex") + b"00\n")
    with pytest.raises(PcdError):
        read_pcd(path)


def test_truncated_binary(tmp_path):
    path = tmp_path / "t.pcd"
    path.write_bytes(_header(["x", "y", "z"], [4] * 3, ["F"] * 3, 2, "binary") + b"\x00" * 12)
    with pytest.raises(PcdError):
        read_pcd(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_pcd(tmp_path / "absent.pcd")


def test_write_rejects_bad_shape(tmp_path):
    with pytest.raises(ValueError):
        write_pcd(tmp_path / "x.pcd", np.zeros((3, 2)))