"""Proof photo encoding and cleanup."""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _read_base64(path: str) -> str:
    try:
        data = Path(path).read_bytes()
    except (OSError, ValueError) as exc:
        logger.warning("Proof file %s unreadable: %s", path, exc)
        return ""
    return base64.b64encode(data).decode("ascii")


def _unlink(path: str) -> bool:
    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    except (OSError, ValueError) as exc:
        logger.warning("Could not delete proof file %s: %s", path, exc)
        return False
    return True


async def encode_proof(path: str | None) -> str:
    """Base64 of the file at ``path``; empty when absent or unreadable."""
    if path is None or not path.strip():
        return ""
    return await asyncio.to_thread(_read_base64, path)


async def delete_proof(path: str | None) -> bool:
    """Best-effort removal of a local proof file."""
    if path is None or not path.strip():
        return False
    return await asyncio.to_thread(_unlink, path)
