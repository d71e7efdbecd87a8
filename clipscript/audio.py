"""Audio helpers for synthesized speech: PCM decoding and WAV export."""
import base64
import io
import struct
import wave
from dataclasses import dataclass
from typing import Union

import numpy as np


TTS_SAMPLE_RATE = 24000  # Gemini TTS output rate
SAMPLE_WIDTH = 2  # 16-bit
WAV_HEADER_SIZE = 44


@dataclass
class WavInfo:
    """Format details read back from a WAV header."""
    channels: int
    sample_width: int
    sample_rate: int
    frames: int
    data_length: int

    @property
    def duration_seconds(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def pcm_to_wav(pcm: bytes, sample_rate: int = TTS_SAMPLE_RATE) -> bytes:
    """Wrap raw mono 16-bit PCM in a WAV container.

    The result is a 44-byte RIFF/WAVE header followed by the PCM bytes
    unchanged.
    """
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")

    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(SAMPLE_WIDTH)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(bytes(pcm))

    return wav_buffer.getvalue()


def read_wav_info(wav_bytes: bytes) -> WavInfo:
    """Read format and data length from a WAV file produced by pcm_to_wav."""
    if len(wav_bytes) < WAV_HEADER_SIZE or wav_bytes[:4] != b"RIFF" or wav_bytes[8:12] != b"WAVE":
        raise ValueError("Not a RIFF/WAVE file")
    if wav_bytes[36:40] != b"data":
        raise ValueError("Unexpected WAV layout: data chunk must follow the format chunk")

    (data_length,) = struct.unpack_from("<I", wav_bytes, 40)
    with wave.open(io.BytesIO(wav_bytes), "rb") as wav_file:
        return WavInfo(
            channels=wav_file.getnchannels(),
            sample_width=wav_file.getsampwidth(),
            sample_rate=wav_file.getframerate(),
            frames=wav_file.getnframes(),
            data_length=data_length,
        )


def decode_base64_audio(data: Union[str, bytes]) -> bytes:
    """Decode an inline base64 audio payload."""
    return base64.b64decode(data)


def pcm16_to_float32(pcm: bytes) -> np.ndarray:
    """Convert little-endian 16-bit PCM to float samples in [-1.0, 1.0)."""
    usable = len(pcm) - (len(pcm) % SAMPLE_WIDTH)
    samples = np.frombuffer(pcm[:usable], dtype="<i2")
    return samples.astype(np.float32) / 32768.0


def pcm_duration(pcm: bytes, sample_rate: int = TTS_SAMPLE_RATE) -> float:
    """Playback length of mono 16-bit PCM in seconds."""
    return len(pcm) / (SAMPLE_WIDTH * sample_rate)
