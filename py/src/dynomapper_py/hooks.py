from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

type HookStep = Callable[[Any], Any]

HOOK_EVENTS: tuple[str, ...] = ("create", "update", "destroy")


class HookPipeline:
    def __init__(self, events: Sequence[str] = HOOK_EVENTS) -> None:
        self._steps: dict[str, list[HookStep]] = {event: [] for event in events}

    def add(self, event: str, step: HookStep) -> None:
        if event not in self._steps:
            raise ValueError(f"unknown hook event: {event}")
        if not callable(step):
            raise TypeError("hook step must be callable")
        self._steps[event].append(step)

    def steps(self, event: str) -> tuple[HookStep, ...]:
        return tuple(self._steps.get(event, ()))

    def run(self, event: str, payload: Any) -> Any:
        # A step returning None keeps the current payload.
        for step in self.steps(event):
            out = step(payload)
            if out is not None:
                payload = out
        return payload

    def emit(self, event: str, payload: Any) -> None:
        for step in self.steps(event):
            step(payload)
