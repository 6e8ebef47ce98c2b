"""
Slot to POSIX time conversion for validity ranges.

Each network's Shelley-and-later eras use fixed-length slots, so a slot maps
linearly onto POSIX milliseconds from the first Shelley slot. A slot further
than one stability window past the current tip cannot be converted: the era
history is not known that far ahead.
"""

from __future__ import annotations

from dataclasses import dataclass

from nawi.config.env import MAINNET, PREPROD, PREVIEW, Network


class TimeHorizonError(ValueError):
    """Slot cannot be converted to a POSIX time from the given tip."""


@dataclass(frozen=True)
class SlotConfig:
    zero_time_ms: int
    zero_slot: int
    slot_length_ms: int
    stability_window: int

    def slot_to_posix_ms(self, slot: int, tip: int | None = None) -> int:
        if slot < self.zero_slot:
            raise TimeHorizonError(f"slot {slot} is before the first Shelley slot {self.zero_slot}")
        if tip is not None and slot > tip + self.stability_window:
            raise TimeHorizonError(
                f"slot {slot} is past the time horizon of tip {tip} "
                f"(stability window {self.stability_window} slots)"
            )
        return self.zero_time_ms + (slot - self.zero_slot) * self.slot_length_ms


MAINNET_SLOTS = SlotConfig(
    zero_time_ms=1_596_059_091_000,
    zero_slot=4_492_800,
    slot_length_ms=1_000,
    stability_window=129_600,
)
PREPROD_SLOTS = SlotConfig(
    zero_time_ms=1_655_769_600_000,
    zero_slot=86_400,
    slot_length_ms=1_000,
    stability_window=129_600,
)
PREVIEW_SLOTS = SlotConfig(
    zero_time_ms=1_666_656_000_000,
    zero_slot=0,
    slot_length_ms=1_000,
    stability_window=25_920,
)


def slot_config_for(network: Network, system_start_ms: int | None = None) -> SlotConfig:
    """Slot configuration of a public network; custom testnets start at system_start_ms (default 0)."""
    known = {MAINNET: MAINNET_SLOTS, PREPROD: PREPROD_SLOTS, PREVIEW: PREVIEW_SLOTS}
    if network.name in known:
        return known[network.name]
    return SlotConfig(
        zero_time_ms=system_start_ms or 0,
        zero_slot=0,
        slot_length_ms=1_000,
        stability_window=129_600,
    )
