"""Display helpers for durations and record deltas."""

from __future__ import annotations


def format_duration(seconds: float) -> str:
    """Format seconds as M:SS or H:MM:SS, "--:--" for unavailable (negative) values."""
    if seconds < 0:
        return "--:--"
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_delta_ms(delta_ms: int) -> str:
    """Signed record delta such as "-1m05s" (ahead) or "+12s" (behind)."""
    total = abs(int(delta_ms)) // 1000
    minutes, secs = divmod(total, 60)
    sign = "-" if delta_ms < 0 else "+"
    if minutes > 0:
        return f"{sign}{minutes}m{secs:02d}s"
    return f"{sign}{secs}s"
