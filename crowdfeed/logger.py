from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOG_DIR = Path("logs")


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Union[str, Path]] = LOG_DIR,
) -> None:
    handlers = [logging.StreamHandler()]
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "crowdfeed.log"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
    )
    # urllib3 logs every tile request at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.INFO)
