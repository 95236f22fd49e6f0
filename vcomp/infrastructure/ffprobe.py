import subprocess
import json
from pathlib import Path
from typing import Dict, Any, List, Optional

class FFprobeError(RuntimeError):
    pass

class FFprobeAdapter:
    """Wrapper around ffprobe to extract stream and container information."""

    def __init__(self, binary: str = "ffprobe"):
        self.binary = binary

    def probe(self, file_path: Path) -> Dict[str, Any]:
        """Executes ffprobe and returns the parsed JSON document."""
        cmd = [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]

        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise FFprobeError(f"{self.binary} not found: {e}") from e

        if result.returncode != 0:
            raise FFprobeError(f"ffprobe failed for {file_path}: {result.stderr.strip()}")

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise FFprobeError(f"Unparsable ffprobe output for {file_path}: {e}") from e

    @staticmethod
    def video_streams(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [s for s in data.get("streams", []) if s.get("codec_type") == "video"]

    @staticmethod
    def parse_display_matrix(text: str) -> Optional[List[List[int]]]:
        """Parses ffprobe's printed display matrix into three rows of integers.

        ffprobe prints the matrix as three lines such as
        ``00000000:            0       65536           0``; the leading
        column is a row offset and is dropped.
        """
        rows = []
        for line in text.strip().splitlines():
            if ":" in line:
                line = line.split(":", 1)[1]
            values = line.split()
            if len(values) != 3:
                continue
            try:
                rows.append([int(v) for v in values])
            except ValueError:
                return None
        return rows if len(rows) == 3 else None
