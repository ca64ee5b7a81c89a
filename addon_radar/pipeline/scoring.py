"""Trending score formulas.

Pure functions only; the calculator feeds them aggregate snapshot stats.
Every function returns a neutral or zero value for degenerate input rather
than raising.
"""
import math

# Eligibility
HOT_MIN_DOWNLOADS = 500
RISING_MIN_DOWNLOADS = 50
RISING_MAX_DOWNLOADS = 10_000

# Decay
HOT_GRAVITY = 1.5
RISING_GRAVITY = 1.8
AGE_OFFSET_HOURS = 2.0

LEADERBOARD_SIZE = 20

# Velocity windows
WINDOW_24H_HOURS = 24.0
WINDOW_7D_HOURS = 168.0
MIN_SNAPSHOTS_24H = 5  # roughly hourly cadence over a few hours

# Signal blend (sum = 1.00)
W_DOWNLOAD_VELOCITY = 0.70
W_THUMBS_VELOCITY = 0.20
W_MAINTENANCE = 0.10

SIZE_MULTIPLIER_MIN = 0.1
SIZE_MULTIPLIER_MAX = 1.0

MAINTENANCE_WINDOW_DAYS = 90
MAINTENANCE_MULTIPLIER_MIN = 0.95
MAINTENANCE_MULTIPLIER_MAX = 1.15


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def _finite(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def calculate_size_multiplier(downloads: float, percentile95: float) -> float:
    """Log-scaled size of an addon relative to the 95th percentile, in [0.1, 1.0]."""
    if percentile95 <= 0:
        return 1.0
    if downloads <= 0:
        return SIZE_MULTIPLIER_MIN

    multiplier = math.log10(downloads + 1) / math.log10(percentile95 + 1)
    return clamp(multiplier, SIZE_MULTIPLIER_MIN, SIZE_MULTIPLIER_MAX)


def calculate_maintenance_multiplier(updates_in_90_days: int) -> float:
    """Reward addons that ship updates often; penalise abandoned ones."""
    if updates_in_90_days <= 0:
        return 0.95  # Stale/abandoned

    avg_days_between_updates = MAINTENANCE_WINDOW_DAYS / updates_in_90_days

    if avg_days_between_updates <= 14:
        return 1.15  # Very active
    if avg_days_between_updates <= 30:
        return 1.10  # Regular
    if avg_days_between_updates <= 60:
        return 1.05  # Occasional
    return 1.00


def maintenance_activity(maintenance_multiplier: float) -> float:
    """Map the maintenance multiplier onto [0, 1] for the signal blend."""
    span = MAINTENANCE_MULTIPLIER_MAX - MAINTENANCE_MULTIPLIER_MIN
    return clamp((maintenance_multiplier - MAINTENANCE_MULTIPLIER_MIN) / span, 0.0, 1.0)


def velocity(change: float, window_hours: float) -> float:
    """Rate of change per hour; zero for empty windows or negative corrections."""
    change = _finite(change)
    if window_hours <= 0 or change <= 0:
        return 0.0
    return change / window_hours


def select_velocity(change_24h: float, change_7d: float, snapshot_count_24h: int) -> float:
    """Per-hour velocity from the 24h window when it has enough data, else from 7d."""
    if snapshot_count_24h >= MIN_SNAPSHOTS_24H:
        return velocity(change_24h, WINDOW_24H_HOURS)
    return velocity(change_7d, WINDOW_7D_HOURS)


def growth_pct(change: float, base: float) -> float:
    if base <= 0:
        return 0.0
    return _finite(change) / base * 100


def normalize(value: float, maximum: float) -> float:
    if maximum <= 0:
        return 0.0
    return clamp(_finite(value) / maximum, 0.0, 1.0)


def calculate_blended_signal(download_norm: float, thumbs_norm: float, maintenance_norm: float) -> float:
    return (
        W_DOWNLOAD_VELOCITY * download_norm
        + W_THUMBS_VELOCITY * thumbs_norm
        + W_MAINTENANCE * maintenance_norm
    )


def calculate_decayed_score(
    signal: float,
    size_multiplier: float,
    maintenance_multiplier: float,
    age_hours: float,
    gravity: float,
) -> float:
    """Hacker-News style gravity decay: signal / (age + 2) ^ gravity."""
    signal = _finite(signal)
    if signal <= 0:
        return 0.0
    age_hours = max(_finite(age_hours), 0.0)
    score = signal * size_multiplier * maintenance_multiplier / math.pow(age_hours + AGE_OFFSET_HOURS, gravity)
    return max(_finite(score), 0.0)


def is_hot_eligible(downloads: float) -> bool:
    return downloads >= HOT_MIN_DOWNLOADS


def is_rising_eligible(downloads: float) -> bool:
    return RISING_MIN_DOWNLOADS <= downloads <= RISING_MAX_DOWNLOADS


def percentile(values: list[float], fraction: float) -> float:
    """Continuous percentile with linear interpolation between ranks."""
    if not values:
        return 0.0
    ordered = sorted(values)
    position = (len(ordered) - 1) * fraction
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return float(ordered[lower])
    return ordered[lower] + (ordered[upper] - ordered[lower]) * (position - lower)
