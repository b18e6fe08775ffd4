"""Browsing and playing back a directory of point-cloud files."""

from __future__ import annotations

import argparse
import configparser
import logging
import math
import time
from datetime import datetime
from pathlib import Path

import numpy as np

from cloudscope.pcd import PcdError, read_pcd
from cloudscope.perception import create_pipeline
from cloudscope.scene import Scene

log = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = "./config/config.ini"
DEFAULT_INTERVAL = "0.5"
DEFAULT_VOXEL_SIZE = "10"
MAX_LOG_ENTRIES = 200
KEPT_LOG_ENTRIES = 100
ABOUT_TEXT = (
    "Tool to debug perception module. Code of perception module and data "
    "transmition is integrated, record remotely and parse locally included."
)

_INTERVAL_STEPS_MAX = 10
_INTERVAL_STEPS_MIN = 1


class OutputLog:
    """Numbered log lines; keeps the newest lines once it grows too long."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES, keep: int = KEPT_LOG_ENTRIES):
        self.max_entries = max_entries
        self.keep = keep
        self.entries: list[str] = []
        self._count = 0

    def append(self, message: str) -> str:
        """Add a message and return the numbered line written."""
        self._count += 1
        line = f"{self._count}: {message}"
        self.entries.append(line)
        if len(self.entries) > self.max_entries:
            del self.entries[: -self.keep]
        return line

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def read_settings(path=DEFAULT_SETTINGS_PATH) -> dict[str, str]:
    """Read an INI file into ``{"section/key": value}``; a missing file gives {}.

    Keys outside any section, or in ``[General]``, are stored without a prefix.
    """
    p = Path(path)
    if not p.is_file():
        return {}
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str
    parser.read_string("[General]\n" + p.read_text(encoding="utf-8"))
    settings: dict[str, str] = {}
    for section in parser.sections():
        for key, value in parser.items(section):
            name = key if section == "General" else f"{section}/{key}"
            settings[name] = _unquote(value)
    return settings


def _to_bool(value) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in ("", "0", "false")


def _to_float(text) -> float:
    try:
        value = float(str(text).strip())
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _to_int(text) -> int:
    try:
        return int(str(text).strip())
    except ValueError:
        return 0


def _round_half_away(x: float) -> int:
    magnitude = int(math.floor(abs(x) + 0.5))
    return magnitude if x >= 0 else -magnitude


def _format_datetime(moment: datetime) -> str:
    return moment.strftime("%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def format_cloud_size(count: int) -> str:
    """Point count as ``"<ten-thousands>,<remainder>"``."""
    return f"{count // 10000},{count % 10000}"


def format_timestamp(msecs: int) -> str:
    """Local time of a millisecond epoch stamp as ``MM-dd hh:mm:ss.zzz``."""
    msecs = int(msecs)
    seconds, millis = divmod(msecs, 1000)
    moment = datetime.fromtimestamp(seconds).replace(microsecond=millis * 1000)
    return _format_datetime(moment)


class Session:
    """The state of the cloud browser: file list, playback and display texts."""

    def __init__(self, settings=None):
        self.settings = dict(settings or {})
        self.log = OutputLog()

        algorithm = str(self.settings.get("perception/algorithm", ""))
        if algorithm == "patchwork":
            self.log.append("perception: patchwork")
        elif algorithm == "covariance":
            self.log.append("perception: Covariance")
        else:
            self.log.append(f"{algorithm} doesn't exist! Now perception: patch work")
        self.pipeline = create_pipeline(algorithm)
        self.perception_enabled = _to_bool(self.settings.get("perception/perception"))

        self.scene = Scene()
        self.frame = self.scene.render()
        self.paths: list[tuple[Path, str]] = []
        self.cur_index = 0
        self.playing = False
        self.interval_text = DEFAULT_INTERVAL
        self.voxel_size_text = DEFAULT_VOXEL_SIZE

        self.show_original = True
        self.show_object_cloud = False
        self.show_objects = False

        self.cloud_time_text = _format_datetime(datetime.now())
        self.cloud_size_text = format_cloud_size(self.scene.cloud_size())
        self._sum_files = " / 0"
        self.index_text = "0" + self._sum_files
        self.object_count_text = "0"

    @property
    def interval_ms(self) -> float:
        """Playback interval in milliseconds."""
        return _to_float(self.interval_text) * 1000

    def open_directory(self, path) -> bool:
        """List the ``.pcd`` files of a directory and show the first one."""
        self.paths = []
        self.cur_index = 0
        directory = Path(path)
        if not directory.is_dir():
            return False
        files = sorted(
            (
                p
                for p in directory.iterdir()
                if p.is_file() and not p.is_symlink() and p.name.endswith(".pcd")
            ),
            key=lambda p: p.name,
        )
        self.paths = [(p, p.name[:-4]) for p in files]
        if not self.paths:
            return False
        self._sum_files = f" / {len(self.paths)}"
        self._update_all()
        return True

    def select(self, index: int) -> None:
        """Show the cloud at ``index`` in the file list."""
        self._check_index(index)
        self.cur_index = index
        self._update_all()

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.paths):
            raise IndexError(f"no cloud file at index {index}")

    def _stop(self) -> None:
        self.playing = False

    def next_frame(self) -> bool:
        """Stop playback and move to the next cloud; False at the end."""
        self._stop()
        if self.cur_index < len(self.paths) - 1:
            self.cur_index += 1
            self._update_all()
            return True
        return False

    def last_frame(self) -> bool:
        """Stop playback and move to the previous cloud; False at the start."""
        self._stop()
        if self.cur_index > 0:
            self.cur_index -= 1
            self._update_all()
            return True
        return False

    def play_pause(self) -> bool:
        """Toggle playback and return whether it is now playing."""
        if self.playing:
            self._stop()
        elif self.cur_index < len(self.paths) - 1:
            self.playing = True
        return self.playing

    def tick(self) -> bool:
        """Advance one frame during playback; stops and returns False at the end."""
        if self.cur_index < len(self.paths) - 1:
            self.cur_index += 1
            self._update_all()
            return True
        self._stop()
        return False

    def add_interval(self) -> str:
        """Lengthen the playback interval by 0.1 s, up to 1 s."""
        steps = _round_half_away(_to_float(self.interval_text) * 10)
        if steps < _INTERVAL_STEPS_MAX:
            self.interval_text = f"{(steps + 1) / 10:.6g}"
        return self.interval_text

    def minus_interval(self) -> str:
        """Shorten the playback interval by 0.1 s, down to 0.1 s."""
        steps = _round_half_away(_to_float(self.interval_text) * 10)
        if steps > _INTERVAL_STEPS_MIN:
            self.interval_text = f"{(steps - 1) / 10:.6g}"
        return self.interval_text

    def merge(self, indices):
        """Show the clouds at ``indices`` as one cloud and return it."""
        indices = list(indices)
        if not indices:
            return None
        for index in indices:
            self._check_index(index)
        clouds = [self._load(self.paths[i][0]) for i in indices]
        merged = np.vstack(clouds)
        self._update_display(merged)
        self.cloud_size_text = format_cloud_size(self.scene.cloud_size())
        return merged

    def filter_cloud(self, leaf_size=None) -> int:
        """Voxel-filter the displayed cloud and return its new size."""
        size = _to_float(self.voxel_size_text) if leaf_size is None else float(leaf_size)
        self.scene.filter_cloud(size)
        self.frame = self.scene.render()
        count = self.scene.cloud_size()
        self.cloud_size_text = format_cloud_size(count)
        return count

    def _load(self, path: Path) -> np.ndarray:
        try:
            return read_pcd(path)
        except (OSError, PcdError) as exc:
            log.warning("cannot read %s: %s", path, exc)
            self.log.append("Cloud file doesn't exist")
            return np.empty((0, 4), dtype=float)

    def _update_all(self) -> None:
        path, stem = self.paths[self.cur_index]
        self._update_display(self._load(path))
        self.cloud_time_text = format_timestamp(_to_int(stem))
        self.index_text = f"{self.cur_index + 1}{self._sum_files}"
        self.cloud_size_text = format_cloud_size(self.scene.cloud_size())

    def _update_display(self, cloud) -> None:
        if self.perception_enabled:
            stem = self.paths[self.cur_index][1]
            self.pipeline.run(cloud, _to_float(stem) / 1000)
        p = self.pipeline
        self.scene.set_original_cloud(p.original_cloud if self.show_original else None)
        self.scene.set_object_cloud(p.object_cloud if self.show_object_cloud else None)
        self.scene.set_objects(p.objects if self.show_objects else None)
        self.object_count_text = str(len(p.objects))
        self.frame = self.scene.render()

    def _status(self) -> str:
        return (
            f"index: {self.index_text}  time: {self.cloud_time_text}  "
            f"size: {self.cloud_size_text}  object: {self.object_count_text}"
        )


def main(argv=None) -> int:
    """Open a directory of clouds, print the log and the state of each frame."""
    parser = argparse.ArgumentParser(prog="cloudscope", description=ABOUT_TEXT)
    parser.add_argument("directory", nargs="?", help="folder holding .pcd files")
    parser.add_argument("--config", default=DEFAULT_SETTINGS_PATH, help="INI settings file")
    parser.add_argument(
        "--play", action="store_true", help="play every cloud, waiting the play interval between frames"
    )
    args = parser.parse_args(argv)

    session = Session(read_settings(args.config))
    session.log.append("have created main window")
    session.log.append("have read configuration")

    status: list[str] = []
    code = 0
    if args.directory is not None:
        if session.open_directory(args.directory):
            status.append(session._status())
            if args.play and session.play_pause():
                while session.playing:
                    time.sleep(session.interval_ms / 1000)
                    if session.tick():
                        status.append(session._status())
        else:
            session.log.append(f"no cloud files in {args.directory}")
            code = 1

    for line in session.log:
        print(line)
    for line in status:
        print(line)
    return code