"""
JSON file store.

Each key is kept in its own JSON document inside a directory:
- File names are the URL-quoted key, so any key maps to a safe name
- Writes are atomic (temp file + rename)
- A missing file is an absent key
"""

import json
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiofiles
import aiofiles.os
import aiofiles.tempfile
from pydantic_core import to_jsonable_python

from ..exceptions import StoreError
from .base import RemoteStore


class FileStore(RemoteStore):
    """Store that keeps every key as a JSON file in ``root``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Return the file that holds ``key``."""
        return self.root / f"{quote(key, safe='')}.json"

    async def open(self) -> None:
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise StoreError("open", None, e) from e

    async def fetch(self, key: str) -> Any | None:
        path = self.path_for(key)
        try:
            if not await aiofiles.os.path.exists(path):
                return None
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            raise StoreError("fetch", key, e) from e

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            raise StoreError("fetch", key, e) from e
        return document.get("value")

    async def put(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps({"key": key, "value": to_jsonable_python(value)})
        except Exception as e:
            raise StoreError("put", key, e) from e

        await self.open()
        temp_path = None
        try:
            async with aiofiles.tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.root,
                prefix=".tmp_",
                suffix=".json",
                delete=False,
            ) as f:
                temp_path = f.name
                await f.write(payload)
                await f.flush()
            await aiofiles.os.replace(temp_path, self.path_for(key))
        except OSError as e:
            if temp_path is not None:
                try:
                    await aiofiles.os.remove(temp_path)
                except OSError:
                    pass
            raise StoreError("put", key, e) from e

    def __repr__(self) -> str:
        return f"FileStore({str(self.root)!r})"
