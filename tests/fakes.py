"""Storage em memória usado no lugar do bucket S3 nos testes."""
from __future__ import annotations

from typing import Optional

from app.infra.storage_s3 import StorageError


class FakeStorage:
    bucket = "product_images"

    def __init__(self, public_base_url: Optional[str] = None):
        self.public_base_url = public_base_url
        self.objects: dict[str, tuple[bytes, Optional[str]]] = {}
        self.deleted: list[str] = []
        # falha a partir do upload de número `fail_after` (0 = já no primeiro)
        self.fail_with: Optional[StorageError] = None
        self.fail_after = 0
        self.presign_error: Optional[Exception] = None
        self._uploads = 0

    def upload(self, key: str, data: bytes, content_type: Optional[str]) -> str:
        if self.fail_with is not None and self._uploads >= self.fail_after:
            raise self.fail_with
        self._uploads += 1
        self.objects[key] = (data, content_type)
        return key

    def delete_best_effort(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)

    def public_url(self, key: str) -> Optional[str]:
        if not key or not self.public_base_url:
            return None
        return f"{self.public_base_url}/{key}"

    def presign_get_url(self, key: str, expires_seconds: Optional[int] = None) -> str:
        if self.presign_error is not None:
            raise self.presign_error
        return f"https://signed.test/{key}?expires={expires_seconds or 3600}"

    def ping(self) -> None:
        return None
