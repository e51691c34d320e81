import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

# Directories never worth handing to an analyzer
SKIP_DIRS = {".git", ".venv", "venv", "node_modules", "__pycache__", "__MACOSX", ".mypy_cache", ".ruff_cache"}


@dataclass
class CmdResult:
    exit_code: int
    stdout: str
    stderr: str


def run_cmd(cmd: Sequence[str], cwd: Path | None = None, timeout_sec: int = 60) -> CmdResult:
    p = subprocess.run(
        list(cmd),
        cwd=str(cwd) if cwd else None,
        capture_output=True,
        text=True,
        timeout=timeout_sec,
    )
    return CmdResult(p.returncode, p.stdout or "", p.stderr or "")


def collect_source_files(source: Path, extensions: Iterable[str]) -> list[Path]:
    """
    Files under ``source`` whose suffix is one of ``extensions``.

    A single file is returned as-is when its suffix matches; junk
    directories (VCS, virtualenvs, caches) are skipped.
    """
    exts = {e.lower() for e in extensions}
    if source.is_file():
        return [source] if source.suffix.lower() in exts else []
    if not source.is_dir():
        return []

    files: list[Path] = []
    for p in sorted(source.rglob("*")):
        if any(part in SKIP_DIRS for part in p.relative_to(source).parts):
            continue
        if p.is_file() and p.suffix.lower() in exts:
            files.append(p)
    return files


def to_relative_path(filename: str, root: Path | None) -> str:
    """
    Convert a tool-reported filename to a posix path relative to ``root``.

    Handles three cases:
    1. Absolute path inside root  → strip root prefix
    2. Relative path with ./      → strip leading ./
    3. Fallback                   → return cleaned posix path
    """
    if not filename:
        return ""
    s = filename.replace("\\", "/")
    if s.startswith("./"):
        s = s[2:]
    f = Path(s)
    if root is None:
        return f.as_posix()

    base = root if root.is_dir() else root.parent
    try:
        base = base.resolve()
        if f.is_absolute():
            return f.resolve().relative_to(base).as_posix()
        return f.as_posix()
    except (OSError, ValueError):
        # Outside the root: keep what the tool reported
        return f.as_posix()
