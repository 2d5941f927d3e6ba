# src/utils/logger.py
import logging, os
from pathlib import Path

LOG_DIR = Path(os.environ.get("SCANWATCH_LOG_DIR", Path.cwd() / "logs"))
FORMAT = '%(asctime)s %(levelname)s: %(message)s'

def get_logger(name="scanwatch"):
    """Return a named logger; handlers live on the root 'scanwatch' logger."""
    return logging.getLogger(name)

def configure_logging(level="INFO", log_dir=None, filename="scanwatch.log", stream=True):
    logger = logging.getLogger("scanwatch")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    fmt = logging.Formatter(FORMAT)
    if log_dir is not False:
        path = Path(log_dir or LOG_DIR)
        path.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path / filename)
        fh.setFormatter(fmt)
        logger.addHandler(fh)
    if stream:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        logger.addHandler(sh)
    return logger
