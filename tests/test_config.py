import logging

import pytest

from cloudscope.config import ConfigError, TruckParam, format_values, load_truck_params

GOOD = """
truck_params:
  truck_name: [truck_a, truck_b]
  truck_a:
    name: alpha
    ip: [192, 168, 1, 10]
    lf: [0, 1.5, 2, 0, 0, 3.14]
    lb: [-1, 0, 2, 0, 0, 0]
  truck_b:
    name: beta
    ip: [10, 0, 0, 7]
    lf: [1, 1, 1, 1, 1, 1]
    lb: [2, 2, 2, 2, 2, 2]
"""


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_loads_trucks_in_listed_order(tmp_path):
    trucks = load_truck_params(_write(tmp_path, GOOD))
    assert [t.name for t in trucks] == ["alpha", "beta"]
    assert trucks[0].ip == [192, 168, 1, 10]
    assert trucks[0].lf == [0.0, 1.5, 2.0, 0.0, 0.0, 3.14]


def test_texts_of_a_truck(tmp_path):
    truck = load_truck_params(_write(tmp_path, GOOD))[0]
    assert truck.ip_text() == "192.168.1.10"
    assert truck.front_lidar_text() == "0, 1.5, 2, 0, 0, 3.14"
    assert truck.back_lidar_text() == "-1, 0, 2, 0, 0, 0"


def test_format_values_round_trips_through_split():
    values = [0.25, 7.0, -3.5]
    text = format_values(values, ", ")
    assert [float(v) for v in text.split(", ")] == values


def test_format_values_rejects_empty():
    with pytest.raises(ValueError):
        format_values([], ".")


def test_truck_param_direct_ip_text():
    assert TruckParam("t", ip=[1, 2, 3, 4]).ip_text() == "1.2.3.4"


def test_incomplete_truck_is_skipped(tmp_path, caplog):
    text = """
truck_params:
  truck_name: [truck_a]
  truck_a:
    name: alpha
    ip: [1, 2, 3, 4]
"""
    with caplog.at_level(logging.WARNING, logger="cloudscope.config"):
        trucks = load_truck_params(_write(tmp_path, text))
    assert trucks == []
    assert "incomplete" in caplog.text


def test_wrong_ip_length_is_skipped(tmp_path, caplog):
    text = GOOD.replace("[192, 168, 1, 10]", "[192, 168, 1]")
    with caplog.at_level(logging.WARNING, logger="cloudscope.config"):
        trucks = load_truck_params(_write(tmp_path, text))
    assert [t.name for t in trucks] == ["beta"]
    assert "Wrong IP address" in caplog.text


def test_wrong_lidar_length_is_skipped(tmp_path):
    text = GOOD.replace("[1, 1, 1, 1, 1, 1]", "[1, 1]")
    trucks = load_truck_params(_write(tmp_path, text))
    assert [t.name for t in trucks] == ["alpha"]


def test_no_truck_names_gives_empty_list(tmp_path):
    assert load_truck_params(_write(tmp_path, "truck_params:\n  other: 1\n")) == []


def test_non_integer_ip_raises(tmp_path):
    text = GOOD.replace("[192, 168, 1, 10]", "[192, 168, x, 10]")
    with pytest.raises(ConfigError):
        load_truck_params(_write(tmp_path, text))


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_truck_params(tmp_path / "absent.yaml")