"""Mentor avatar relay: HeyGen streaming server and WebRTC session client.

Importing the package loads the HeyGen credentials and relay knobs from
`server/.env` and `server/.env.local` before `avatar_relay.config` reads the
environment.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

from dotenv import load_dotenv

SERVER_DIR = Path(__file__).resolve().parent.parent


def load_env_files(directory: Union[str, Path] = SERVER_DIR) -> None:
    """Load shared defaults from `.env`, then per-machine HEYGEN_* keys from `.env.local`."""

    directory = Path(directory)
    load_dotenv(directory / ".env")
    # .env.local holds the real API key and wins over the committed defaults
    load_dotenv(directory / ".env.local", override=True)


load_env_files()
