"""Telemetry layout registry — maps each 4-byte tag to its decoder."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tgs.models.telemetry import TelemetryRecord

LayoutFn = Callable[..., "TelemetryRecord | None"]


@dataclass(frozen=True)
class Layout:
    """A registered telemetry layout."""

    tag: str
    min_size: int
    decode: LayoutFn
    variable: bool = False


class TelemetryRegistry:
    """A simple tag → layout registry for telemetry decoders.

    Layouts register themselves with::

        @registry.layout("GYRO", "ACCL", size=16)
        def _vector(decoder, tag, data):
            ...

    And are retrieved later::

        layout = registry.get("GYRO")
    """

    def __init__(self) -> None:
        self._layouts: dict[str, Layout] = {}

    # ------------------------------------------------------------------ #
    #  Registration decorator                                              #
    # ------------------------------------------------------------------ #

    def layout(self, *tags: str, size: int, variable: bool = False) -> Any:
        def _decorator(fn: LayoutFn) -> LayoutFn:
            for tag in tags:
                if len(tag) != 4:
                    raise ValueError(f"Telemetry tags are 4 characters, got {tag!r}")
                self._layouts[tag] = Layout(tag=tag, min_size=size, decode=fn, variable=variable)
            return fn
        return _decorator

    # ------------------------------------------------------------------ #
    #  Lookup                                                              #
    # ------------------------------------------------------------------ #

    def get(self, tag: str) -> Layout:
        try:
            return self._layouts[tag]
        except KeyError:
            available = self.list_tags()
            raise KeyError(f"Unknown telemetry tag '{tag}'. Available: {available}") from None

    def __contains__(self, tag: object) -> bool:
        return tag in self._layouts

    # ------------------------------------------------------------------ #
    #  Introspection                                                       #
    # ------------------------------------------------------------------ #

    def list_tags(self) -> list[str]:
        return sorted(self._layouts)

    def all_layouts(self) -> list[Layout]:
        return [self._layouts[t] for t in self.list_tags()]


registry = TelemetryRegistry()
