# app/infra/storage_s3.py
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings

logger = logging.getLogger(__name__)

# falhas que não devem derrubar a requisição (bucket/políticas mal configurados)
_TOLERATED_STATUS = {403, 500}
_TOLERATED_MARKERS = ("row-level security", "policy", "Internal Server Error")


class StorageError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def tolerable(self) -> bool:
        if self.status_code in _TOLERATED_STATUS:
            return True
        return any(m in self.message for m in _TOLERATED_MARKERS)

    @property
    def forbidden(self) -> bool:
        return self.status_code == 403 or "row-level security" in self.message


def _client_error(e: ClientError, action: str) -> StorageError:
    err = e.response.get("Error", {}) if e.response else {}
    meta = e.response.get("ResponseMetadata", {}) if e.response else {}
    status = meta.get("HTTPStatusCode")
    msg = err.get("Message") or err.get("Code") or str(e)
    return StorageError(f"Erro {action} storage: {msg}", status_code=status)


def normalize_content_type(ct: Optional[str]) -> str:
    ct = (ct or "").lower().strip()
    if ct == "image/jpg":
        return "image/jpeg"
    return ct


class S3Storage:
    """Bucket S3-compatível do storage gerenciado (keys relativas ao bucket)."""

    def __init__(
        self,
        *,
        bucket: str,
        endpoint: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        region: str = "auto",
        public_base_url: Optional[str] = None,
        signed_url_expires: int = 3600,
    ):
        self.bucket = bucket
        self.endpoint = (endpoint or "").rstrip("/") or None
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.region = region
        self.public_base_url = (public_base_url or "").rstrip("/") or None
        self.signed_url_expires = signed_url_expires
        self._s3 = None

    def _client(self):
        if self._s3 is not None:
            return self._s3
        if not self.access_key_id or not self.secret_access_key:
            raise StorageError("Credenciais do storage não configuradas.")
        try:
            self._s3 = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name=self.region,
                config=Config(
                    signature_version="s3v4",
                    s3={"addressing_style": "path"},
                ),
            )
        except Exception as e:
            raise StorageError(f"Falha criando client S3: {e}") from e
        return self._s3

    def upload(self, key: str, data: bytes, content_type: Optional[str]) -> str:
        if not data:
            raise StorageError("Arquivo vazio.", status_code=400)
        key = key.lstrip("/")
        extra = {}
        ct = normalize_content_type(content_type)
        if ct:
            extra["ContentType"] = ct

        s3 = self._client()
        try:
            s3.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except ClientError as e:
            raise _client_error(e, "no upload para o") from e
        except BotoCoreError as e:
            raise StorageError(f"Erro no upload para o storage: {e}") from e
        return key

    def delete_best_effort(self, key: str) -> None:
        if not key:
            return
        key = key.lstrip("/")
        try:
            self._client().delete_object(Bucket=self.bucket, Key=key)
        except (StorageError, ClientError, BotoCoreError) as e:
            logger.warning("falha ao remover %s do storage: %s", key, e)

    def public_url(self, key: str) -> Optional[str]:
        if not key or not self.public_base_url:
            return None
        return f"{self.public_base_url}/{key.lstrip('/')}"

    def presign_get_url(self, key: str, expires_seconds: Optional[int] = None) -> str:
        if not key:
            raise StorageError("key vazia")
        key = key.lstrip("/")
        expires = int(expires_seconds or self.signed_url_expires)

        s3 = self._client()
        try:
            return s3.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires,
                HttpMethod="GET",
            )
        except ClientError as e:
            raise _client_error(e, "ao assinar URL no") from e
        except BotoCoreError as e:
            raise StorageError(f"Erro presign S3: {e}") from e

    def ping(self) -> None:
        self._client().head_bucket(Bucket=self.bucket)


@lru_cache
def get_storage() -> S3Storage:
    return S3Storage(
        bucket=settings.STORAGE_BUCKET,
        endpoint=settings.STORAGE_ENDPOINT,
        access_key_id=settings.STORAGE_ACCESS_KEY_ID,
        secret_access_key=settings.STORAGE_SECRET_ACCESS_KEY,
        region=settings.STORAGE_REGION,
        public_base_url=settings.STORAGE_PUBLIC_BASE_URL,
        signed_url_expires=settings.SIGNED_URL_EXPIRES_SECONDS,
    )
