import subprocess
import pytest
from pathlib import Path
from unittest.mock import patch, MagicMock
from vcomp.domain.models import EncodeStatus
from vcomp.infrastructure.ffmpeg import FFmpegEncodingService, FFmpegEncodingHandle, PRESET_ARGS
from vcomp.pipeline.quality import QUALITY_TABLE


def make_process(lines, returncode=0):
    process = MagicMock()
    process.stdout = iter(lines)
    process.wait.return_value = returncode
    process.returncode = returncode
    process.poll.return_value = returncode
    return process


def test_every_quality_preset_is_known_to_ffmpeg():
    for preset in QUALITY_TABLE.values():
        assert preset.preset_token in PRESET_ARGS


def test_build_command_with_bitrate():
    service = FFmpegEncodingService()
    cmd = service._build_command(Path("input.mov"), "high-quality", 4_000_000, Path("out.mp4"))

    assert cmd[0] == "ffmpeg"
    assert "input.mov" in cmd
    assert cmd[-1] == "out.mp4"
    idx = cmd.index("-c:v")
    assert cmd[idx + 1] == "libx264"
    idx = cmd.index("-maxrate")
    assert cmd[idx + 1] == "4000000"
    idx = cmd.index("-bufsize")
    assert cmd[idx + 1] == "8000000"
    idx = cmd.index("-movflags")
    assert cmd[idx + 1] == "+faststart"
    idx = cmd.index("-f")
    assert cmd[idx + 1] == "mp4"


def test_build_command_without_bitrate():
    service = FFmpegEncodingService()
    cmd = service._build_command(
        Path("input.mov"), "high-quality, no re-encode preference", None, Path("out.mp4")
    )

    assert "-maxrate" not in cmd
    idx = cmd.index("-crf")
    assert cmd[idx + 1] == "18"


def test_build_command_low_quality_scales_down():
    service = FFmpegEncodingService()
    cmd = service._build_command(
        Path("input.mov"), "medium-quality, max compression", 1_000_000, Path("out.mp4")
    )

    assert "-vf" in cmd


def test_build_command_unknown_preset():
    with pytest.raises(ValueError):
        FFmpegEncodingService()._build_command(Path("in.mov"), "ultra", None, Path("out.mp4"))


def test_begin_launches_ffmpeg():
    with patch("subprocess.Popen") as mock_popen:
        mock_popen.return_value = make_process([])

        service = FFmpegEncodingService(binary="/usr/local/bin/ffmpeg")
        handle = service.begin(Path("input.mov"), "high-quality", 4_000_000, Path("out.mp4"))

        assert isinstance(handle, FFmpegEncodingHandle)
        assert mock_popen.call_args[0][0][0] == "/usr/local/bin/ffmpeg"
        assert handle.wait().status == EncodeStatus.COMPLETED


def test_handle_reports_progress_from_output():
    process = make_process([
        "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'input.mov':",
        "  Duration: 00:00:10.00, start: 0.000000, bitrate: 5000 kb/s",
        "frame=  100 fps= 50 q=28.0 size=  256kB time=00:00:05.00 bitrate= 400.0kbits/s speed=2.0x",
    ])
    handle = FFmpegEncodingHandle(process, Path("out.mp4"))
    handle._reader.join(timeout=5)

    assert handle.progress() == pytest.approx(0.5)


def test_handle_progress_without_duration_stays_zero():
    process = make_process(["frame= 1 time=00:00:05.00 bitrate=1kbits/s"])
    handle = FFmpegEncodingHandle(process, Path("out.mp4"))
    handle._reader.join(timeout=5)

    assert handle.progress() == 0.0


def test_handle_success():
    handle = FFmpegEncodingHandle(make_process(["  Duration: 00:00:10.00, start: 0.0"]), Path("out.mp4"))

    outcome = handle.wait()

    assert outcome.status == EncodeStatus.COMPLETED
    assert outcome.output_path == Path("out.mp4")
    assert handle.progress() == 1.0


def test_handle_failure_includes_last_line():
    process = make_process(["Error while opening encoder for output stream #0:0"], returncode=1)
    handle = FFmpegEncodingHandle(process, Path("out.mp4"))

    outcome = handle.wait()

    assert outcome.status == EncodeStatus.FAILED
    assert "ffmpeg exited with code 1" in outcome.reason
    assert "Error while opening encoder" in outcome.reason


def test_handle_cancel_terminates_process():
    process = make_process([], returncode=255)
    process.poll.return_value = None
    handle = FFmpegEncodingHandle(process, Path("out.mp4"))

    handle.cancel()

    process.terminate.assert_called_once()
    assert handle.wait().status == EncodeStatus.CANCELLED


def test_handle_cancel_kills_stuck_process():
    process = make_process([], returncode=-9)
    process.poll.return_value = None
    process.wait.side_effect = [subprocess.TimeoutExpired("ffmpeg", 5.0), -9]
    handle = FFmpegEncodingHandle(process, Path("out.mp4"))

    handle.cancel()

    process.kill.assert_called_once()


def test_handle_cancel_after_exit_is_harmless():
    process = make_process([], returncode=0)
    handle = FFmpegEncodingHandle(process, Path("out.mp4"))

    handle.cancel()

    process.terminate.assert_not_called()
