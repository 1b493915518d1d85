import struct
import sys
from pathlib import Path

import pytest

# Ensure `src` is on sys.path for tests when the package is not installed editable.
ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from guano_inspector.config import Settings  # noqa: E402

SAMPLE_GUANO = (
    "GUANO|Version: 1.0|Make: Wildlife Acoustics|Model: Song Meter Mini Bat|"
    "Serial: SMU12345|Firmware Version: 4.6|Timestamp: 2024-05-01T21:14:03-04:00|"
    "Length: 3.0|Samplerate: 256000|Loc Position: 42.36 -71.06|Temperature Int: 18.5|"
    'Original Filename: SMU12345_20240501_211403.wav|Audio settings: '
    '[{"rate":256000,"gain":12,"trig window":3,"trig max len":15,'
    '"trig min freq":16000,"trig max freq":128000,"trig min dur":1.5,"trig max dur":0}]'
)


def guano_chunk(text: str) -> bytes:
    """RIFF `guan` chunk: id, u32 LE size, body (padded to even length)."""
    body = text.encode("ascii")
    chunk = b"guan" + struct.pack("<I", len(body)) + body
    if len(body) % 2:
        chunk += b"\x00"
    return chunk


def wav_bytes(samples: bytes = b"", guano: str | None = None) -> bytes:
    """Minimal PCM WAV with an optional trailing GUANO chunk."""
    fmt = struct.pack("<HHIIHH", 1, 1, 256000, 512000, 2, 16)
    chunks = b"fmt " + struct.pack("<I", len(fmt)) + fmt
    chunks += b"data" + struct.pack("<I", len(samples)) + samples
    if len(samples) % 2:
        chunks += b"\x00"
    if guano is not None:
        chunks += guano_chunk(guano)
    return b"RIFF" + struct.pack("<I", 4 + len(chunks)) + b"WAVE" + chunks


@pytest.fixture
def make_wav():
    return wav_bytes


@pytest.fixture
def sample_guano() -> str:
    return SAMPLE_GUANO


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        LOCAL_STORAGE_ROOT=str(tmp_path),
        SIGNING_SECRET="test-secret",
    )


@pytest.fixture
def uploads(tmp_path, settings) -> Path:
    directory = tmp_path / settings.STORAGE_PREFIX
    directory.mkdir(parents=True, exist_ok=True)
    return directory
