"""Constants for share accounting, fees and donation presets."""

# Basis points denominator (10_000 = 100%)
BPS_DENOMINATOR = 10_000

# Time constants
SECONDS_PER_HOUR = 3600
SECONDS_PER_YEAR = 365 * 24 * 3600

# Donation presets: fixed weight triples applied to three recipients in order.
DONATION_PRESETS = {
    "balanced": (40, 30, 30),
    "focused": (60, 20, 20),
    "equal": (1, 1, 1),
}
