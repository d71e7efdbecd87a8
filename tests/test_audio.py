"""
Test PCM to WAV conversion and audio helpers
"""
import base64
import struct

import numpy as np
import pytest

from clipscript.audio import (
    WAV_HEADER_SIZE, decode_base64_audio, pcm16_to_float32, pcm_duration,
    pcm_to_wav, read_wav_info,
)


def test_header_layout_for_four_bytes_at_24khz():
    pcm = b"\x01\x02\x03\x04"
    wav = pcm_to_wav(pcm, 24000)

    expected_header = (
        b"RIFF" + struct.pack("<I", 40) + b"WAVE"
        + b"fmt " + struct.pack("<IHHIIHH", 16, 1, 1, 24000, 48000, 2, 16)
        + b"data" + struct.pack("<I", 4)
    )
    assert len(wav) == 48
    assert wav[:WAV_HEADER_SIZE] == expected_header
    assert wav[WAV_HEADER_SIZE:] == pcm


def test_header_reads_back():
    pcm = b"\x00\x01" * 2400
    info = read_wav_info(pcm_to_wav(pcm, 24000))

    assert info.channels == 1
    assert info.sample_width == 2
    assert info.sample_rate == 24000
    assert info.data_length == len(pcm)
    assert info.frames == 2400
    assert info.duration_seconds == pytest.approx(0.1)


def test_other_sample_rates():
    info = read_wav_info(pcm_to_wav(b"\x00\x00" * 10, 16000))
    assert info.sample_rate == 16000
    assert info.data_length == 20


def test_empty_pcm_is_a_bare_header():
    wav = pcm_to_wav(b"")
    assert len(wav) == WAV_HEADER_SIZE
    assert read_wav_info(wav).data_length == 0


def test_rejects_non_positive_sample_rate():
    with pytest.raises(ValueError):
        pcm_to_wav(b"\x00\x00", 0)


def test_read_wav_info_rejects_other_data():
    with pytest.raises(ValueError):
        read_wav_info(b"ID3" + b"\x00" * 60)


def test_pcm16_to_float32():
    pcm = struct.pack("<hhh", 0, 16384, -32768)
    samples = pcm16_to_float32(pcm)
    assert samples.dtype == np.float32
    assert samples.tolist() == [0.0, 0.5, -1.0]


def test_pcm16_to_float32_ignores_trailing_odd_byte():
    assert len(pcm16_to_float32(b"\x00\x00\x01")) == 1


def test_decode_base64_audio():
    pcm = b"\x10\x20\x30\x40"
    assert decode_base64_audio(base64.b64encode(pcm).decode("ascii")) == pcm


def test_pcm_duration():
    assert pcm_duration(b"\x00" * 48000, 24000) == pytest.approx(1.0)
