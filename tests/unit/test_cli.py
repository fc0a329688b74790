"""Unit tests for the command-line entry point"""

import json

import numpy as np
import pytest
from scipy.io import wavfile

from egemaps_engine import ENGINE_VERSION, FEATURE_NAMES
from egemaps_engine.main import build_parser, load_audio, main


@pytest.fixture
def tone_wav(tmp_path, make_tone):
    path = tmp_path / "tone.wav"
    wavfile.write(str(path), 16000, make_tone(200.0, 1.5).astype(np.float32))
    return path


@pytest.fixture
def stereo_wav(tmp_path, make_tone):
    path = tmp_path / "stereo.wav"
    tone = make_tone(200.0, 1.5).astype(np.float32)
    wavfile.write(str(path), 22050, np.stack([tone, tone], axis=1))
    return path


def run_cli(capsys, argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code, capsys.readouterr().out


class TestLoadAudio:

    def test_mono(self, tone_wav):
        audio = load_audio(tone_wav)
        assert audio.channels == 1
        assert audio.sample_rate == 16000
        assert audio.samples.shape == (24000,)

    def test_stereo_is_frames_by_channels(self, stereo_wav):
        audio = load_audio(stereo_wav)
        assert audio.channels == 2
        assert audio.sample_rate == 22050
        assert audio.samples.shape == (24000, 2)


class TestMain:

    def test_parser_defaults(self):
        args = build_parser().parse_args(["in.wav"])
        assert not args.summary
        assert not args.time_series
        assert args.timeout is None
        assert args.f0_min is None
        assert args.baseline is None

    def test_features_as_json(self, capsys, tone_wav):
        status, out = run_cli(capsys, [str(tone_wav)])
        assert status == 0
        report = json.loads(out)
        assert report["version"] == ENGINE_VERSION
        assert list(report["features"]) == list(FEATURE_NAMES)
        assert "summary" not in report
        assert "lld_time_series" not in report

    def test_summary_and_time_series(self, capsys, tone_wav):
        status, out = run_cli(capsys, [str(tone_wav), "--summary", "--time-series"])
        assert status == 0
        report = json.loads(out)
        assert report["summary"]["pitch_hz"] == pytest.approx(200.0, rel=0.02)
        assert set(report["lld_time_series"]) >= {"timestamps", "F0Hz"}

    def test_baseline_comparison(self, capsys, tmp_path, tone_wav, make_tone):
        lower = tmp_path / "lower.wav"
        wavfile.write(str(lower), 16000, make_tone(150.0, 1.5).astype(np.float32))
        status, out = run_cli(capsys, [str(lower), "--baseline", str(tone_wav)])
        assert status == 0
        report = json.loads(out)
        assert report["summary"]["pitch_hz"] == pytest.approx(150.0, rel=0.02)
        comparison = report["comparison"]
        assert comparison["pitch_change_hz"] == pytest.approx(-50.0, abs=4.0)
        assert comparison["pitch_improved"]

    def test_missing_baseline(self, capsys, tmp_path, tone_wav):
        status, out = run_cli(capsys, [str(tone_wav), "--baseline", str(tmp_path / "absent.wav")])
        assert status == 1
        assert out == ""

    def test_missing_file(self, capsys, tmp_path):
        status, out = run_cli(capsys, [str(tmp_path / "absent.wav")])
        assert status == 1
        assert out == ""

    def test_too_short(self, capsys, tmp_path, make_tone):
        path = tmp_path / "short.wav"
        wavfile.write(str(path), 16000, make_tone(200.0, 0.2).astype(np.float32))
        status, out = run_cli(capsys, [str(path)])
        assert status == 1
        assert json.loads(out)["error"]["code"] == "InsufficientAudio"
