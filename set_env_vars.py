"""Simple .env loader and settings for the problem coach server.

Usage:
  - Import and call `load()` from Python: `from set_env_vars import load; load()`
  - Read typed settings: `from set_env_vars import load_settings; settings = load_settings()`
  - Run a command with the .env loaded:
      python set_env_vars.py --exec python main.py
"""
from __future__ import annotations

import dataclasses
import json
import os
import pathlib
import subprocess
from typing import Dict, Optional


def _parse_dotenv(path: pathlib.Path) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            for raw in fh:
                line = raw.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip()
                if not key:
                    continue
                if len(val) >= 2 and ((val[0] == val[-1] == '"') or (val[0] == val[-1] == "'")):
                    val = val[1:-1]
                pairs[key] = val
    except FileNotFoundError:
        return {}
    return pairs


def _repo_root() -> pathlib.Path:
    return pathlib.Path(__file__).resolve().parent


def load(path: Optional[str] = None, override: bool = False) -> None:
    """Load key=value pairs into os.environ.

    Args:
        path: path to a .env file. Defaults to `.env` then `.env.local` in the repo root.
        override: if True, overwrite existing environment variables
    """
    if path:
        candidates = [pathlib.Path(path).expanduser()]
    else:
        candidates = [_repo_root() / ".env", _repo_root() / ".env.local"]
    for candidate in candidates:
        for k, v in _parse_dotenv(candidate).items():
            if override or k not in os.environ:
                os.environ[k] = v


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclasses.dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str]
    gemini_model: str
    gemini_base_url: str
    gemini_timeout_s: float
    port: int
    rate_limit_max: int
    rate_limit_window_s: int
    mongo_uri: Optional[str]
    mongo_db: Optional[str]
    suggestion_endpoint: str

    def status(self) -> Dict[str, bool]:
        return {
            "gemini_api_key_set": bool(self.gemini_api_key),
            "mongo_uri_set": bool(self.mongo_uri),
        }


def load_settings() -> Settings:
    # A missing key is reported when the model is first called, not here.
    return Settings(
        gemini_api_key=os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY") or None,
        gemini_model=os.environ.get("GEMINI_MODEL") or "gemini-pro",
        gemini_base_url=os.environ.get("GEMINI_BASE_URL") or "https://generativelanguage.googleapis.com/v1",
        gemini_timeout_s=_env_float("GEMINI_TIMEOUT_S", 15.0),
        port=_env_int("PORT", 3000),
        rate_limit_max=_env_int("RATE_LIMIT_MAX", 100),
        rate_limit_window_s=_env_int("RATE_LIMIT_WINDOW_S", 15 * 60),
        mongo_uri=os.environ.get("MONGO_URI") or None,
        mongo_db=os.environ.get("MONGO_DB") or None,
        suggestion_endpoint=os.environ.get("SUGGESTION_ENDPOINT") or "http://localhost:3000/api/next-problem",
    )


def run_command_with_env(cmd: list[str]) -> int:
    """Run a command (list form) with the current process environment and return exit code."""
    return subprocess.run(cmd, env=os.environ).returncode


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Load .env and optionally run a command with it.")
    parser.add_argument("--env-file", "-e", default=None, help="Path to .env file")
    parser.add_argument("--override", action="store_true", help="Override existing env vars")
    parser.add_argument("--exec", "-x", nargs=argparse.REMAINDER, help="Command to run with env loaded")
    args = parser.parse_args()

    load(args.env_file, override=args.override)

    if args.exec:
        cmd = args.exec
        if not cmd:
            parser.error("--exec requires a command to run")
        rc = run_command_with_env(cmd)
        raise SystemExit(rc)
    else:
        print(json.dumps(load_settings().status(), indent=2))
