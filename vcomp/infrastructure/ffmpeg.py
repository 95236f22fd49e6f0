import subprocess
import re
import logging
import threading
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional
from vcomp.domain.models import EncodeOutcome, EncodeStatus

# Regex to parse 'time=00:00:00.00' progress lines and the input 'Duration: 00:00:00.00'
TIME_REGEX = re.compile(r"time=(\d+):(\d+):(\d+\.\d+)")
DURATION_REGEX = re.compile(r"Duration:\s*(\d+):(\d+):(\d+\.\d+)")

PRESET_ARGS: Dict[str, List[str]] = {
    "medium-quality, max compression": [
        "-preset", "veryfast",
        "-crf", "28",
        "-vf", "scale=-2:'min(720,ih)'",
    ],
    "high-quality": ["-preset", "medium", "-crf", "23"],
    "high-quality, minimal compression": ["-preset", "slow", "-crf", "20"],
    "high-quality, no re-encode preference": ["-preset", "slow", "-crf", "18"],
}

def _to_seconds(match: re.Match) -> float:
    h, m, s = match.groups()
    return int(h) * 3600 + int(m) * 60 + float(s)

class FFmpegEncodingHandle:
    """A running ffmpeg process, observed through its stderr output."""

    def __init__(self, process: subprocess.Popen, output_path: Path):
        self.output_path = output_path
        self.logger = logging.getLogger(__name__)
        self._process = process
        self._lock = threading.Lock()
        self._progress = 0.0
        self._duration: Optional[float] = None
        self._cancelled = threading.Event()
        self._tail = deque(maxlen=20)
        self._reader = threading.Thread(target=self._read_output, daemon=True)
        self._reader.start()

    def _read_output(self):
        for line in self._process.stdout:
            line = line.strip()
            if not line:
                continue
            self._tail.append(line)

            if self._duration is None:
                match = DURATION_REGEX.search(line)
                if match:
                    self._duration = _to_seconds(match)
                    continue

            match = TIME_REGEX.search(line)
            if match and self._duration:
                fraction = min(1.0, _to_seconds(match) / self._duration)
                with self._lock:
                    self._progress = max(self._progress, fraction)

    def progress(self) -> float:
        with self._lock:
            return self._progress

    def wait(self) -> EncodeOutcome:
        returncode = self._process.wait()
        self._reader.join(timeout=5.0)

        if self._cancelled.is_set():
            return EncodeOutcome(status=EncodeStatus.CANCELLED)

        if returncode == 0:
            with self._lock:
                self._progress = 1.0
            return EncodeOutcome(status=EncodeStatus.COMPLETED, output_path=self.output_path)

        reason = f"ffmpeg exited with code {returncode}"
        if self._tail:
            reason = f"{reason}: {self._tail[-1]}"
        return EncodeOutcome(status=EncodeStatus.FAILED, reason=reason)

    def cancel(self):
        self._cancelled.set()
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=5.0)
            except subprocess.TimeoutExpired:
                self.logger.warning(f"ffmpeg did not exit after terminate, killing: {self.output_path.name}")
                self._process.kill()

class FFmpegEncodingService:
    """Video encoding service backed by an ffmpeg subprocess (H.264/AAC in MP4)."""

    def __init__(self, binary: str = "ffmpeg", debug: bool = False):
        self.binary = binary
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def _build_command(
        self,
        source_path: Path,
        preset_token: str,
        bitrate: Optional[int],
        output_path: Path,
    ) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        if preset_token not in PRESET_ARGS:
            raise ValueError(f"Unknown preset: {preset_token}")

        cmd = [
            self.binary,
            "-hide_banner",
            "-nostdin",
            "-y",
            "-i", str(source_path),
            "-c:v", "libx264",
        ]
        cmd.extend(PRESET_ARGS[preset_token])

        if bitrate:
            cmd.extend([
                "-maxrate", str(bitrate),
                "-bufsize", str(bitrate * 2),
            ])

        cmd.extend([
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-b:a", "128k",
            "-movflags", "+faststart",
            "-f", "mp4",
            str(output_path),
        ])
        return cmd

    def begin(
        self,
        source_path: Path,
        preset_token: str,
        bitrate: Optional[int],
        output_path: Path,
    ) -> FFmpegEncodingHandle:
        cmd = self._build_command(source_path, preset_token, bitrate, output_path)
        if self.debug:
            self.logger.debug(f"FFMPEG_START: {' '.join(cmd)}")

        process = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
            bufsize=1
        )
        return FFmpegEncodingHandle(process, output_path)
