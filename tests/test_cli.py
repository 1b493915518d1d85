from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from guano_inspector.__main__ import app
from guano_inspector.config import get_settings

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOCAL_STORAGE_ROOT", str(tmp_path))
    monkeypatch.setenv("SIGNING_SECRET", "cli-secret")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    yield uploads
    get_settings.cache_clear()


def _json(result):
    return json.loads(result.stdout)


def test_inspect_prints_payload(env, make_wav, sample_guano):
    (env / "rec.wav").write_bytes(make_wav(samples=b"\x00" * 256, guano=sample_guano))
    result = runner.invoke(app, ["inspect", "rec.wav"])
    assert result.exit_code == 0, result.output
    payload = _json(result)
    assert payload["metadataFound"] is True
    assert payload["rawMetadataText"] == sample_guano
    assert payload["extractedRecords"][0]["recorderDetails"]["make"] == "Wildlife Acoustics"


def test_inspect_without_extraction(env, make_wav):
    (env / "rec.wav").write_bytes(make_wav(guano="GUANO|Make: X"))
    result = runner.invoke(app, ["inspect", "rec.wav", "--no-extract"])
    assert result.exit_code == 0, result.output
    assert _json(result)["extractedRecords"] is None


def test_inspect_window_override_misses_early_block(env, make_wav):
    data = make_wav(guano="GUANO|Make: X") + b"\x00" * 2048
    (env / "rec.wav").write_bytes(data)
    result = runner.invoke(app, ["inspect", "rec.wav", "--window-bytes", "512"])
    assert result.exit_code == 0, result.output
    assert _json(result)["metadataFound"] is False


def test_inspect_missing_file_exits_nonzero(env):
    result = runner.invoke(app, ["inspect", "nope.wav"])
    assert result.exit_code == 1
    assert _json(result)["error"].startswith("Failed to read file nope.wav")


def test_inspect_invalid_name(env):
    result = runner.invoke(app, ["inspect", "../etc.wav"])
    assert result.exit_code == 1
    assert _json(result) == {"error": "Invalid filename."}


def test_list_and_delete(env):
    (env / "a.csv").write_text("x", encoding="utf-8")
    listed = runner.invoke(app, ["list"])
    assert listed.exit_code == 0, listed.output
    assert [f["name"] for f in _json(listed)] == ["a.csv"]
    assert _json(listed)[0]["key"] == "uploads/a.csv"

    deleted = runner.invoke(app, ["delete", "a.csv"])
    assert deleted.exit_code == 0
    assert _json(deleted) == {"success": True}
    assert not (env / "a.csv").exists()

    again = runner.invoke(app, ["delete", "a.csv"])
    assert again.exit_code == 1
    assert _json(again)["error"].startswith("Failed to delete file:")


def test_sign(env):
    result = runner.invoke(app, ["sign", "a.wav", "--mode", "write", "--ttl", "60"])
    assert result.exit_code == 0, result.output
    url = _json(result)["url"]
    assert url.startswith("file://")
    assert "mode=write" in url


def test_sign_rejects_unknown_mode(env):
    result = runner.invoke(app, ["sign", "a.wav", "--mode", "admin"])
    assert result.exit_code == 1
    assert "unsupported signed URL mode" in _json(result)["error"]
