from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from .models import Checkpoint


def checkpoint_path(checkpoint_dir: str, resource: str) -> Path:
    return Path(checkpoint_dir) / f"{resource.lower()}.json"


def load_checkpoint(path: str | os.PathLike) -> Checkpoint:
    p = Path(path)
    if not p.exists():
        return Checkpoint()
    return Checkpoint.from_dict(json.loads(p.read_text(encoding="utf-8")))


def save_checkpoint(path: str | os.PathLike, cp: Checkpoint) -> None:
    """Write atomically so a crash never leaves a half-written cursor behind."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=p.parent, prefix=p.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(cp.to_dict(), f, ensure_ascii=False)
        os.replace(tmp, p)
    except BaseException:
        os.unlink(tmp)
        raise
