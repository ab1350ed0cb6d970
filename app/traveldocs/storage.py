from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from sqlalchemy import event

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_PENDING_DELETES = "storage_pending_deletes"


class StorageError(OSError):
    """Raised for any backend failure; an OSError so callers handle it like file I/O."""


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError


def _normalize_key(key: str) -> str:
    safe_key = key.lstrip("/").replace("\\", "/")
    if any(part == ".." for part in safe_key.split("/")):
        raise StorageError(f"Invalid storage key: {key}")
    return safe_key


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _path(self, key: str) -> Path:
        return self.root / _normalize_key(key)

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        return self._path(key).open("rb")

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def delete(self, key: str) -> bool:
        p = self._path(key)
        if not p.exists():
            return False
        p.unlink()
        return True


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        extra: dict[str, object] = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self._client().put_object(Bucket=self.bucket, Key=_normalize_key(key), Body=data, **extra)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e

    def open(self, key: str) -> BinaryIO:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            obj = self._client().get_object(Bucket=self.bucket, Key=_normalize_key(key))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e
        return obj["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client().head_object(Bucket=self.bucket, Key=_normalize_key(key))
            return True
        except ClientError:
            return False

    def delete(self, key: str) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError

        if not self.exists(key):
            return False
        try:
            self._client().delete_object(Bucket=self.bucket, Key=_normalize_key(key))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e
        return True


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    # default local
    return LocalStorage(root=Path(config.get("STORAGE_ROOT") or "storage"))


def delete_after_commit(s: "Session", storage: Storage, key: str) -> None:
    """Queue `key` for removal once `s` commits; a rollback or close drops the queue.

    Rows that reference a stored object are only changed inside the transaction,
    so the object must outlive any commit that fails.
    """
    pending = s.info.get(_PENDING_DELETES)
    if pending is None:
        pending = s.info[_PENDING_DELETES] = []
        event.listen(s, "after_commit", _run_pending_deletes)
        event.listen(s, "after_transaction_end", _drop_pending_deletes)
    pending.append((storage, key))


def _run_pending_deletes(s: "Session") -> None:
    pending = s.info.get(_PENDING_DELETES) or []
    while pending:
        storage, key = pending.pop(0)
        try:
            storage.delete(key)
        except OSError as e:
            logger.warning("Could not remove stored object %s after commit: %s", key, e)


def _drop_pending_deletes(s: "Session", transaction) -> None:
    # Runs after after_commit, so anything still queued belongs to a transaction that did not commit.
    if transaction.parent is not None:
        return
    pending = s.info.get(_PENDING_DELETES)
    if pending:
        logger.info("Transaction ended without commit; keeping %d stored object(s)", len(pending))
        pending.clear()
