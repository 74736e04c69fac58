import asyncio
import json
from pathlib import Path


def run(coro):
    """Drive a coroutine to completion on a fresh event loop"""
    return asyncio.run(coro)


def read_data_file(path: Path) -> dict:
    return json.loads(Path(path).read_text(encoding="utf-8"))
