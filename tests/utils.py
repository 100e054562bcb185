from __future__ import annotations

import os
from pathlib import Path


def write_file(path: Path, content: str, executable: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.chmod(path, 0o755 if executable else 0o644)
    return path


def is_executable(path: Path) -> bool:
    return bool(path.stat().st_mode & 0o100)
