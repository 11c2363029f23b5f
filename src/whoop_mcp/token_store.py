"""Durable token storage keyed by account key, backed by a JSON file or DynamoDB."""

from __future__ import annotations

import asyncio
import errno
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Protocol

import boto3  # type: ignore[reportMissingTypeStubs]
from pydantic import TypeAdapter

from .config import WhoopAppConfig
from .models import TokenRecord

logger = logging.getLogger(__name__)

FALLBACK_DIR_NAME = "whoop-tokens"

_TOKEN_FILE_ADAPTER = TypeAdapter(dict[str, TokenRecord])
_FALLBACK_ERRNOS = {errno.ENOENT, errno.EROFS, errno.EACCES, errno.EPERM}


class TokenStore(Protocol):
    """Common interface for credential backends.

    Absence of a key is a normal result (``None``), never an error.
    """

    async def get(self, key: str) -> TokenRecord | None: ...

    async def set(self, key: str, record: TokenRecord) -> None: ...

    async def clear(self, key: str) -> None: ...


class FileTokenStore:
    """Store every account's token record in a single JSON document.

    Each write rewrites the whole document. Concurrent writers in the same
    process are not serialized; the last write wins.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser().resolve()
        self._fallback_applied = False

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> TokenRecord | None:
        contents = await asyncio.to_thread(self._read)
        return contents.get(key)

    async def set(self, key: str, record: TokenRecord) -> None:
        contents = await asyncio.to_thread(self._read)
        contents[key] = record
        await asyncio.to_thread(self._write, contents)

    async def clear(self, key: str) -> None:
        contents = await asyncio.to_thread(self._read)
        if contents.pop(key, None) is None:
            return
        await asyncio.to_thread(self._write, contents)

    # ------------------------------------------------------------------
    # File helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _read(self) -> dict[str, TokenRecord]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        return _TOKEN_FILE_ADAPTER.validate_python(json.loads(raw))

    def _write(self, contents: dict[str, TokenRecord]) -> None:
        self._ensure_dir()
        payload = {key: record.model_dump(by_alias=True) for key, record in contents.items()}
        try:
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            if not self._switch_to_fallback(exc):
                raise
            self._ensure_dir()
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _ensure_dir(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            if not self._switch_to_fallback(exc):
                raise
            self._path.parent.mkdir(parents=True, exist_ok=True)

    def _switch_to_fallback(self, exc: OSError) -> bool:
        """Relocate the store under the temp dir once, if the error allows it."""
        if self._fallback_applied or exc.errno not in _FALLBACK_ERRNOS:
            return False
        temp_root = Path(tempfile.gettempdir()).resolve()
        if self._path.is_relative_to(temp_root):
            return False

        fallback = temp_root / FALLBACK_DIR_NAME / self._path.name
        logger.warning(
            "Token store directory %s is not writable (%s); using %s instead",
            self._path.parent,
            exc.strerror,
            fallback,
        )
        self._path = fallback
        self._fallback_applied = True
        return True


class DynamoTokenStore:
    """DynamoDB-backed token store: one item per account key."""

    def __init__(
        self,
        table_name: str,
        *,
        key_prefix: str = "token:",
        region_name: str | None = None,
        boto3_resource: Any | None = None,
    ) -> None:
        self._table_name = table_name
        self._key_prefix = key_prefix
        resource = boto3_resource or boto3.resource("dynamodb", region_name=region_name)  # type: ignore[reportUnknownMemberType]
        self._table = resource.Table(table_name)  # type: ignore[reportAttributeAccessIssue]

    def _item_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def get(self, key: str) -> TokenRecord | None:
        response = await asyncio.to_thread(  # type: ignore[reportUnknownVariableType]
            self._table.get_item,  # type: ignore[reportUnknownMemberType,reportUnknownArgumentType]
            Key={"pk": self._item_key(key)},
        )
        item = response.get("Item")  # type: ignore[reportUnknownMemberType,reportUnknownVariableType]
        if item is None:
            return None
        return TokenRecord.model_validate(json.loads(item["data"]))  # type: ignore[reportUnknownArgumentType]

    async def set(self, key: str, record: TokenRecord) -> None:
        item = {
            "pk": self._item_key(key),
            "data": json.dumps(record.model_dump(by_alias=True)),
        }
        await asyncio.to_thread(self._table.put_item, Item=item)  # type: ignore[reportUnknownMemberType,reportUnknownArgumentType]

    async def clear(self, key: str) -> None:
        await asyncio.to_thread(  # type: ignore[reportUnknownArgumentType]
            self._table.delete_item,  # type: ignore[reportUnknownMemberType]
            Key={"pk": self._item_key(key)},
        )


def create_token_store_from_env(config: WhoopAppConfig) -> TokenStore:
    """Instantiate the token store backend selected by configuration."""
    if config.whoop_token_table:
        logger.info("Using DynamoDB token store (table %s)", config.whoop_token_table)
        return DynamoTokenStore(
            config.whoop_token_table,
            key_prefix=config.whoop_token_key_prefix,
            region_name=config.aws_region,
        )
    logger.info("Using file token store at %s", config.token_store_path)
    return FileTokenStore(config.token_store_path)
