"""Turn analyser data into bars and sparklines for the terminal UI."""

from typing import Optional

import numpy as np

from .analyser import LevelAnalyser

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def frequency_bars(analyser: Optional[LevelAnalyser], bar_count: int = 64) -> np.ndarray:
    """Sample the byte spectrum into ``bar_count`` bar heights in [0, 1]."""
    if analyser is None:
        return np.zeros(bar_count)
    data = analyser.byte_frequency_data()
    step = len(data) / bar_count
    indices = (np.arange(bar_count) * step).astype(int)
    return data[indices] / 255.0


def waveform_points(analyser: Optional[LevelAnalyser], width: int = 64) -> np.ndarray:
    """Downsample the time-domain window to ``width`` points in [-1, 1]."""
    if analyser is None:
        return np.zeros(width)
    data = analyser.byte_time_domain_data().astype(np.float64) / 128.0 - 1.0
    step = len(data) / width
    indices = (np.arange(width) * step).astype(int)
    return data[indices]


def sparkline(values: np.ndarray) -> str:
    """Render values in [0, 1] as a row of block characters."""
    levels = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
    top = len(SPARK_CHARS) - 1
    return "".join(SPARK_CHARS[int(round(v * top))] for v in levels)


def render_meter(analyser: Optional[LevelAnalyser], width: int = 64, paused: bool = False) -> str:
    """Frequency sparkline, or a flat centre line when idle or paused."""
    if analyser is None or paused:
        return "─" * width
    return sparkline(frequency_bars(analyser, width))
