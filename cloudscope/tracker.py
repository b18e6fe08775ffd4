"""Frame-to-frame tracking of detected object boxes."""

from __future__ import annotations

import copy
from typing import Iterable

from cloudscope.boxes import ObjectBox, Velocity

_ID_MASK = 0xFFFF
_MAX_LOST = 2


class ObjectTracker:
    """Match boxes between frames and estimate their velocities."""

    SPEED_AVERAGE_FRAMES = 5

    def __init__(self, time_diff: float = 0.1):
        self.time_diff = time_diff
        self.pre_time = 0.0
        self.cur_time = 0.0
        self.results: list[ObjectBox] = []
        self._current: list[ObjectBox] = []
        self._previous: list[ObjectBox] = []

    def track(self, objects: Iterable[ObjectBox], time: float) -> list[ObjectBox]:
        """Feed the boxes of one frame and return the tracked boxes."""
        self.cur_time = float(time)
        self._current = copy.deepcopy(list(objects))

        if self.pre_time == 0 or not self.results:
            self._start_over()
            self._promote()
            return self.results

        self._predict()
        self._match()
        self._update_results()
        self._promote()
        return self.results

    def _start_over(self) -> None:
        self.results = self._current
        for obj in self.results:
            obj.vx = 0.0
            obj.vy = 0.0
            obj.age = 1
            obj.label = False
            obj.lost = 0

    def _predict(self) -> None:
        for obj in self._previous:
            obj.predict_x = obj.track_x + obj.vx * self.time_diff
            obj.predict_y = obj.track_y + obj.vy * self.time_diff

    @staticmethod
    def _intersects(pre: ObjectBox, cur: ObjectBox) -> bool:
        return (
            abs(pre.predict_x - cur.track_x) <= 0.5 * (pre.length + cur.length)
            and abs(pre.predict_y - cur.track_y) <= 0.5 * (pre.width + cur.width)
        )

    def _match(self) -> None:
        dt = self.time_diff
        n = self.SPEED_AVERAGE_FRAMES
        for pre in self._previous:
            for cur in self._current:
                if cur.label or not self._intersects(pre, cur):
                    continue

                cur.label = True
                cur.id = pre.id

                step = Velocity(
                    (cur.track_x - pre.track_x) / dt,
                    (cur.track_y - pre.track_y) / dt,
                )
                pre.vx, pre.vy = step.vx, step.vy
                pre.velocity_queue.append(step)
                while len(pre.velocity_queue) > n:
                    pre.velocity_queue.popleft()
                if pre.age >= n:
                    total = sum(list(pre.velocity_queue)[-n:], Velocity())
                    pre.vx = total.vx / n
                    pre.vy = total.vy / n

                pre.lost = 0
                pre.attribute = 0
                pre.age += 1
                pre.x, pre.y = cur.x, cur.y
                pre.track_x, pre.track_y = cur.track_x, cur.track_y
                break
            else:
                pre.lost += 1
                pre.age += 1
                pre.attribute = 1
                pre.x += pre.vx * dt
                pre.y += pre.vy * dt

    def _update_results(self) -> None:
        for cur in self._current:
            if cur.label:
                continue
            cur.id = (cur.id + len(self._previous)) & _ID_MASK
            self._previous.append(cur)
        self.results = [obj for obj in self._previous if obj.lost <= _MAX_LOST]

    def _promote(self) -> None:
        self._previous = copy.deepcopy(self.results)
        self.pre_time = self.cur_time