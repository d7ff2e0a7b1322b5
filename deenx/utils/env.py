"""Minimal `.env` loader used before settings are read."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the repository-level `.env` path."""
  return Path(__file__).resolve().parents[2] / ".env"


def load_env_file(path: Path, *, override: bool = False) -> None:
  """Load KEY=VALUE pairs from a dotenv file into the process environment."""
  if not path.is_file():
    return

  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    # Skip blanks, comments, and lines without an assignment.
    if not line or line.startswith("#") or "=" not in line:
      continue

    if line.startswith("export "):
      line = line[len("export ") :].strip()

    key, _, value = line.partition("=")
    key = key.strip()
    value = value.strip().strip('"').strip("'")
    if not key:
      continue

    if override or key not in os.environ:
      os.environ[key] = value
