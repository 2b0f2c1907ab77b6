# slotbook/services/availability/windows.py
"""
Open-window arithmetic on a single local date.

Windows are half-open [start, end) in minutes since local midnight. Each
window carries the slot step of the rule that produced it.
"""
from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class OpenWindow:
    start: int
    end: int
    step: int

    def overlaps_or_touches(self, other: "OpenWindow") -> bool:
        return self.start <= other.end and other.start <= self.end


def union(windows: Iterable[OpenWindow]) -> List[OpenWindow]:
    """Merge overlapping or touching windows; merged windows keep the smallest step"""
    ordered = sorted((w for w in windows if w.start < w.end), key=lambda w: (w.start, w.end))
    merged: List[OpenWindow] = []

    for window in ordered:
        if merged and merged[-1].overlaps_or_touches(window):
            last = merged[-1]
            merged[-1] = OpenWindow(
                start=last.start,
                end=max(last.end, window.end),
                step=min(last.step, window.step),
            )
        else:
            merged.append(window)

    return merged


def subtract(windows: List[OpenWindow], start: int, end: int) -> List[OpenWindow]:
    """Remove [start, end) from every window, splitting where needed"""
    if start >= end:
        return list(windows)

    result: List[OpenWindow] = []
    for window in windows:
        if end <= window.start or start >= window.end:
            result.append(window)
            continue
        if window.start < start:
            result.append(OpenWindow(window.start, start, window.step))
        if end < window.end:
            result.append(OpenWindow(end, window.end, window.step))
    return result


def add(windows: List[OpenWindow], start: int, end: int, step: int) -> List[OpenWindow]:
    if start >= end:
        return list(windows)
    return union(list(windows) + [OpenWindow(start, end, step)])


def candidate_starts(windows: Iterable[OpenWindow], duration: int) -> List[int]:
    """Grid positions anchored at each window start where the duration still fits"""
    starts = set()
    for window in windows:
        position = window.start
        while position + duration <= window.end:
            starts.add(position)
            position += window.step
    return sorted(starts)
