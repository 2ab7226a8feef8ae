from __future__ import annotations

ONOFF = "onoff"
MEASURE_POWER = "measure_power"
MEASURE_CURRENT = "measure_current"
WINDOWCOVERINGS_SET = "windowcoverings_set"
WINDOWCOVERINGS_STATE = "windowcoverings_state"

SWITCH_CAPABILITIES = (ONOFF, MEASURE_POWER, MEASURE_CURRENT)
COVER_CAPABILITIES = (
    WINDOWCOVERINGS_SET,
    WINDOWCOVERINGS_STATE,
    MEASURE_POWER,
    MEASURE_CURRENT,
)


def capabilities_for_profile(profile: str | None) -> list[str]:
    if profile == "cover":
        return list(COVER_CAPABILITIES)
    return list(SWITCH_CAPABILITIES)
