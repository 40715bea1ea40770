from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Literal, Optional


Severity = Literal["error", "warning", "info"]


@dataclass(frozen=True)
class ScheduleError(Exception):
    """Base error envelope. Fatal subclasses are raised; diagnostics are collected."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None
    entities: tuple[str, ...] = ()

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<schedule>"
        return f"{loc}: {self.code}: {self.message}"

    def __reduce__(self):
        # BaseException rebuilds from self.args, which the dataclass __init__ leaves empty.
        return (self.__class__, tuple(getattr(self, f.name) for f in fields(self)))


class ScheduleLoadError(ScheduleError):
    pass


class ScheduleInputError(ScheduleError):
    pass


class ScheduleConfigError(ScheduleError):
    """Fatal to a scheduling run: cycles, unmapped work items, bad relationships."""


@dataclass(frozen=True)
class ScheduleDiagnostic(ScheduleError):
    severity: Severity = "warning"


def sort_errors(errors: list[ScheduleError]) -> list[ScheduleError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
