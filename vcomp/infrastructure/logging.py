import logging
from pathlib import Path
from rich.logging import RichHandler

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

def setup_logging(log_dir: Path, debug: bool = False) -> logging.Logger:
    """Logs everything to <log_dir>/compression.log and warnings to the console."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "compression.log"

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console_handler = RichHandler(show_path=False, rich_tracebacks=debug)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.addHandler(file_handler)
    root.addHandler(console_handler)

    return logging.getLogger("vcomp")
