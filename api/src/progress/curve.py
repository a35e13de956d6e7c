"""Display progress curve for the lesson player.

The bar shown to the viewer moves fast at the start and slows down later,
so a few seconds of watching already look like real progress. The mapping
is display-only: completion, unlock and drip decisions always use the real
playback fraction.
"""

import math


# (real fraction, displayed fraction), strictly increasing in both columns
CURVE_BREAKPOINTS: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),
    (0.05, 0.40),
    (0.15, 0.70),
    (0.50, 0.93),
    (1.0, 1.0),
)


def clamp_fraction(value: float) -> float:
    """Clamp a fraction to [0, 1]; NaN becomes 0."""
    if math.isnan(value):
        return 0.0
    return min(1.0, max(0.0, value))


def display_progress(real: float) -> float:
    """Map the real playback fraction to the fraction shown on screen.

    Piecewise linear through ``CURVE_BREAKPOINTS``; monotonic, with
    ``display_progress(0) == 0`` and ``display_progress(1) == 1``.
    """
    real = clamp_fraction(real)

    for (x0, y0), (x1, y1) in zip(CURVE_BREAKPOINTS, CURVE_BREAKPOINTS[1:]):
        if real <= x1:
            return y0 + (real - x0) * (y1 - y0) / (x1 - x0)

    return 1.0


def playback_fraction(current_time: float, duration: float) -> float:
    """Real fraction watched; 0 when the duration is unknown or not positive."""
    if not math.isfinite(duration) or duration <= 0 or not math.isfinite(current_time):
        return 0.0
    return max(0.0, current_time) / duration
