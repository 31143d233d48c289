"""Radio link configuration as reported by, and sent to, the ground station."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

GET_RADIO_CONFIG = "get_radio_config"
BROADCAST_NODE = 255


class IsmBand(StrEnum):
    BAND_433 = "433"
    BAND_868 = "868"
    BAND_915 = "915"


# (min MHz, max MHz, display name)
ISM_BANDS: dict[IsmBand, tuple[float, float, str]] = {
    IsmBand.BAND_433: (433.05, 434.79, "433 MHz"),
    IsmBand.BAND_868: (863.0, 870.0, "868 MHz (EU)"),
    IsmBand.BAND_915: (902.0, 928.0, "915 MHz (US)"),
}

_LINK_RE = re.compile(r"(Uplink|Downlink): (\w+) @ ([\d.]+) MHz, (?:Channel|Node) (\d+)")


def band_for(frequency_mhz: float) -> IsmBand:
    if frequency_mhz < 450:
        return IsmBand.BAND_433
    if frequency_mhz < 880:
        return IsmBand.BAND_868
    return IsmBand.BAND_915


class RadioLink(BaseModel):
    """One direction of the link: radio type, carrier frequency and node address."""

    model_config = {"frozen": True}

    radio: str = Field(description="Radio module, e.g. 'rfm95' or 'rfm69'")
    frequency_mhz: float
    node: Annotated[int, Field(ge=0, le=255)] = BROADCAST_NODE

    @model_validator(mode="after")
    def _frequency_in_band(self) -> RadioLink:
        lo, hi, name = ISM_BANDS[self.band]
        if not lo <= self.frequency_mhz <= hi:
            raise ValueError(
                f"{self.frequency_mhz} MHz is outside the {name} band ({lo}-{hi} MHz)"
            )
        return self

    @property
    def band(self) -> IsmBand:
        return band_for(self.frequency_mhz)

    def to_command(self, direction: Literal["uplink", "downlink"]) -> str:
        """Build ``set_<direction>_radio <type> <freq> [node]``."""
        cmd = f"set_{direction}_radio {self.radio.lower()} {self.frequency_mhz:g}"
        if self.node != BROADCAST_NODE:
            cmd += f" {self.node}"
        return cmd


class RadioConfig(BaseModel):
    """Both link directions, as parsed from a ``RADIO_CONFIG:`` block."""

    model_config = {"frozen": True}

    uplink: RadioLink | None = None
    downlink: RadioLink | None = None

    @classmethod
    def from_lines(cls, lines: list[str]) -> RadioConfig:
        links: dict[str, RadioLink] = {}
        for line in lines:
            match = _LINK_RE.match(line)
            if match is None:
                continue
            direction, radio, freq, node = match.groups()
            links[direction.lower()] = RadioLink.model_construct(
                radio=radio.lower(), frequency_mhz=float(freq), node=int(node)
            )
        return cls(**links)
