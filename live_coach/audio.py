"""
Audio Analyzer
===============

Derives speech volume, clarity and pace from microphone frequency data.

Pipeline per tick:
  latest 2048 PCM samples ──► FrequencyAnalyser (windowed FFT → smoothed dB
  → 0-255 byte bins) ──► SpeechAnalyzer ──► SpeechMetrics

Pace is a heuristic proxy from spectral energy variation, not a word count;
expect trends, not accurate words-per-minute.

The microphone side (``MicrophoneStream``) uses sounddevice. When it cannot
start, the session keeps running with zeroed speech metrics.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import numpy as np

from .config import AudioConfig
from .errors import AcquisitionError
from .models import SpeechMetrics, clamp, round_half_up

try:
    import sounddevice as sd
except (ImportError, OSError):  # PortAudio missing raises OSError at import
    sd = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

BYTE_MAX = 255.0
PACE_VARIATION_SCALE = 50.0


class FrequencyAnalyser:
    """Byte-scaled magnitude spectrum with exponential time smoothing."""

    def __init__(
        self,
        fft_size: int = 2048,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ) -> None:
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._window = np.blackman(fft_size)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def byte_frequency_data(self, samples: np.ndarray) -> np.ndarray:
        block = np.asarray(samples, dtype=np.float64).ravel()[-self.fft_size:]
        if block.size < self.fft_size:
            block = np.concatenate([np.zeros(self.fft_size - block.size), block])

        spectrum = np.fft.rfft(block * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size
        k = self.smoothing_time_constant
        self._smoothed = k * self._smoothed + (1.0 - k) * magnitude

        decibels = 20.0 * np.log10(np.maximum(self._smoothed, 1e-12))
        scale = BYTE_MAX / (self.max_decibels - self.min_decibels)
        return np.clip((decibels - self.min_decibels) * scale, 0, BYTE_MAX).astype(np.uint8)

    def reset(self) -> None:
        self._smoothed[:] = 0.0


# ── Speech metrics from byte bins ────────────────────────────────

def calculate_volume(bins: np.ndarray) -> int:
    data = np.asarray(bins, dtype=np.float64)
    if data.size == 0:
        return 0
    return int(clamp(round_half_up(float(data.mean()) * 100.0 / BYTE_MAX)))


def calculate_speech_clarity(bins: np.ndarray, bin_range: tuple[int, int] = (10, 400)) -> int:
    """Signal-to-noise proxy over the speech band, capped at 100."""
    speech = np.asarray(bins, dtype=np.float64)[bin_range[0]:bin_range[1]]
    if speech.size == 0:
        return 0
    noise_floor = float(speech.min())
    snr = float(speech.mean()) / (noise_floor + 1.0)
    return int(clamp(round_half_up((snr / 10.0) * 100.0)))


def calculate_speaking_pace(
    bins: np.ndarray,
    base_wpm: float = 130.0,
    min_wpm: float = 60.0,
    max_wpm: float = 200.0,
) -> int:
    """Words-per-minute estimate; more spectral variation reads as faster speech."""
    data = np.asarray(bins, dtype=np.float64)
    if data.size < 2:
        return int(min_wpm)
    avg_variation = float(np.abs(np.diff(data)).mean())
    variation_factor = (avg_variation / 128.0) * PACE_VARIATION_SCALE
    return int(clamp(round_half_up(base_wpm + variation_factor), min_wpm, max_wpm))


def normalize_speech_pace(pace: float) -> int:
    """Map WPM onto 0-100 where the 100-160 band scores 100."""
    if pace <= 0:
        return 0
    if pace < 100:
        return round_half_up(pace)
    if pace > 160:
        return round_half_up(160.0 / pace * 100.0)
    return 100


class SpeechAnalyzer:
    """Turns raw samples or byte bins into SpeechMetrics. Stateless apart from smoothing."""

    def __init__(self, config: Optional[AudioConfig] = None) -> None:
        self.config = config or AudioConfig()
        self.analyser = FrequencyAnalyser(
            fft_size=self.config.fft_size,
            smoothing_time_constant=self.config.smoothing_time_constant,
            min_decibels=self.config.min_decibels,
            max_decibels=self.config.max_decibels,
        )

    def analyze(self, bins: np.ndarray) -> SpeechMetrics:
        cfg = self.config
        return SpeechMetrics(
            pace=calculate_speaking_pace(bins, cfg.base_wpm, cfg.min_wpm, cfg.max_wpm),
            volume=calculate_volume(bins),
            clarity=calculate_speech_clarity(bins, cfg.speech_bin_range),
        )

    def analyze_samples(self, samples: np.ndarray) -> SpeechMetrics:
        return self.analyze(self.analyser.byte_frequency_data(samples))

    def reset(self) -> None:
        """Drop spectral smoothing so a new speaker starts from silence."""
        self.analyser.reset()


# ── Microphone capture ───────────────────────────────────────────

class MicrophoneStream:
    """Exclusive owner of one sounddevice input stream.

    The PortAudio callback thread writes into a rolling buffer; readers take
    a copy of the latest ``buffer_size`` samples.
    """

    def __init__(self, sample_rate: int = 44100, buffer_size: int = 2048, device: Optional[int] = None) -> None:
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.device = device
        self._buffer = np.zeros(buffer_size, dtype=np.float32)
        self._lock = threading.Lock()
        self.stream = None

    def _callback(self, indata, frames, time_info, status) -> None:  # pragma: no cover - stream callback
        if status:
            logger.debug("Audio callback status: %s", status)
        chunk = np.asarray(indata, dtype=np.float32)[:, 0]
        with self._lock:
            if chunk.size >= self.buffer_size:
                self._buffer[:] = chunk[-self.buffer_size:]
            else:
                self._buffer = np.roll(self._buffer, -chunk.size)
                self._buffer[-chunk.size:] = chunk

    def start(self) -> None:
        if sd is None:
            raise AcquisitionError(
                "microphone",
                "Audio capture unavailable - install sounddevice and PortAudio",
            )
        try:
            self.stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=self._callback,
            )
            self.stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            self.stream = None
            raise AcquisitionError(
                "microphone", "Microphone access denied or no microphone found"
            ) from exc
        logger.info("Microphone started: %dHz mono", self.sample_rate)

    def latest_samples(self) -> np.ndarray:
        with self._lock:
            return self._buffer.copy()

    def stop(self) -> None:
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None
            logger.info("Microphone stopped")
