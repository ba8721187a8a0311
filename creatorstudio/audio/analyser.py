"""Real-time level and spectrum analysis for metering."""

import logging

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


class LevelAnalyser:
    """FFT analysis node over the most recent ``fft_size`` samples.

    Mirrors the usual audio-analyser contract: a Blackman-windowed FFT whose
    magnitudes are smoothed over time, exposed as float decibels, bytes
    scaled between ``min_decibels`` and ``max_decibels``, or raw time-domain
    samples. It does not interpret the data.
    """

    FFT_SIZE = 2048
    SMOOTHING_TIME_CONSTANT = 0.8

    def __init__(self, fft_size: int = FFT_SIZE,
                 smoothing_time_constant: float = SMOOTHING_TIME_CONSTANT,
                 min_decibels: float = -100.0,
                 max_decibels: float = -30.0):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if not 0.0 <= smoothing_time_constant < 1.0:
            raise ValueError("smoothing_time_constant must be in [0, 1)")

        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels

        self._window = signal.get_window("blackman", fft_size)
        self._time_data = np.zeros(fft_size, dtype=np.float64)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def push_pcm(self, frames: bytes, channels: int = 1) -> None:
        """Feed 16-bit interleaved PCM; multi-channel input is downmixed."""
        if not frames:
            return
        samples = np.frombuffer(frames, dtype=np.int16).astype(np.float64) / 32768.0
        if channels > 1:
            samples = samples.reshape(-1, channels).mean(axis=1)
        self.push(samples)

    def push(self, samples: np.ndarray) -> None:
        """Feed mono float samples in [-1, 1]."""
        samples = np.asarray(samples, dtype=np.float64)
        if samples.size >= self.fft_size:
            self._time_data = samples[-self.fft_size:].copy()
        else:
            self._time_data = np.concatenate((self._time_data[samples.size:], samples))

    def float_time_domain_data(self) -> np.ndarray:
        return self._time_data.copy()

    def byte_time_domain_data(self) -> np.ndarray:
        scaled = 128.0 * (1.0 + self._time_data)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def float_frequency_data(self) -> np.ndarray:
        """Smoothed magnitude spectrum in decibels; every call advances the smoothing."""
        spectrum = np.fft.rfft(self._time_data * self._window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size
        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude
        with np.errstate(divide="ignore"):
            return 20.0 * np.log10(self._smoothed)

    def byte_frequency_data(self) -> np.ndarray:
        decibels = self.float_frequency_data()
        span = self.max_decibels - self.min_decibels
        scaled = 255.0 * (decibels - self.min_decibels) / span
        return np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def level(self) -> float:
        """RMS level of the current window, 0.0 to 1.0."""
        return float(min(1.0, np.sqrt(np.mean(self._time_data ** 2))))

    def reset(self) -> None:
        self._time_data[:] = 0.0
        self._smoothed[:] = 0.0
