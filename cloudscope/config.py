"""Truck parameters read from the YAML configuration file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "../config/config.yaml"

_IP_PARTS = 4
_LIDAR_PARAMS = 6


class ConfigError(ValueError):
    """A configuration value has the wrong shape or type."""


@dataclass
class TruckParam:
    """Address and lidar mounting parameters of one truck."""

    name: str
    ip: list[int] = field(default_factory=list)
    lf: list[float] = field(default_factory=list)  # front lidar
    lb: list[float] = field(default_factory=list)  # back lidar

    def ip_text(self) -> str:
        """The IP address in dotted form."""
        return format_values(self.ip, ".")

    def front_lidar_text(self) -> str:
        """The front lidar parameters, comma separated."""
        return format_values(self.lf, ", ")

    def back_lidar_text(self) -> str:
        """The back lidar parameters, comma separated."""
        return format_values(self.lb, ", ")


def _format_number(value) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return f"{float(value):.6g}"


def format_values(values, sep: str) -> str:
    """Join numbers with ``sep``, floats written with six significant digits."""
    items = list(values)
    if not items:
        raise ValueError("no values to format")
    return sep.join(_format_number(v) for v in items)


def _sequence(value, what: str) -> list:
    if not isinstance(value, list):
        raise ConfigError(f"{what} must be a list")
    return value


def _int_list(value, what: str) -> list[int]:
    result = []
    for item in _sequence(value, what):
        if isinstance(item, (bool, dict, list)) or item is None:
            raise ConfigError(f"{what} holds a value that is not an integer")
        try:
            result.append(int(str(item).strip()))
        except ValueError as exc:
            raise ConfigError(f"{what} holds a value that is not an integer") from exc
    return result


def _float_list(value, what: str) -> list[float]:
    result = []
    for item in _sequence(value, what):
        if isinstance(item, (bool, dict, list)) or item is None:
            raise ConfigError(f"{what} holds a value that is not a number")
        try:
            result.append(float(item))
        except ValueError as exc:
            raise ConfigError(f"{what} holds a value that is not a number") from exc
    return result


def _scalar_text(value, what: str) -> str:
    if value is None or isinstance(value, (dict, list)):
        raise ConfigError(f"{what} must be a scalar")
    return str(value)


def load_truck_params(path=DEFAULT_CONFIG_PATH) -> list[TruckParam]:
    """Read the valid trucks listed under ``truck_params`` in a YAML file.

    Trucks with missing fields, an IP address that is not four numbers or
    lidar parameters that are not six numbers are skipped with a warning.
    """
    with Path(path).open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if not isinstance(data, dict):
        return []
    section = data.get("truck_params")
    if not isinstance(section, dict) or "truck_name" not in section:
        return []

    names = [_scalar_text(n, "truck_name") for n in _sequence(section["truck_name"], "truck_name")]
    trucks: list[TruckParam] = []
    for key in names:
        entry = section.get(key)
        if not isinstance(entry, dict) or not all(k in entry for k in ("ip", "name", "lf", "lb")):
            log.warning("truck parameters are incomplete")
            continue

        truck = TruckParam(
            name=_scalar_text(entry["name"], f"{key}.name"),
            ip=_int_list(entry["ip"], f"{key}.ip"),
            lf=_float_list(entry["lf"], f"{key}.lf"),
            lb=_float_list(entry["lb"], f"{key}.lb"),
        )
        if len(truck.ip) != _IP_PARTS:
            log.warning("%s: Wrong IP address", truck.name)
            continue
        if len(truck.lf) != _LIDAR_PARAMS:
            log.warning("%s: Param of front lidar is wrong", truck.name)
            continue
        if len(truck.lb) != _LIDAR_PARAMS:
            log.warning("%s: Param of back lidar is wrong", truck.name)
            continue
        trucks.append(truck)
    return trucks