"""
Almacenamiento de fotos de estudiantes en un bucket S3.

El cliente boto3 es bloqueante: cada llamada se ejecuta en un hilo con
asyncio.to_thread para no detener el bucle de eventos.
"""

import asyncio
import logging
from typing import Any, Optional

import boto3
from fastapi import Request

from app.config import Settings

logger = logging.getLogger(__name__)


class PhotoStorage:
    """Sube, borra y construye la URL pública de las fotos guardadas en S3."""

    def __init__(self, client: Any, bucket: str, public_base_url: str = "/fotos/"):
        self._client = client
        self.bucket = bucket
        self.public_base_url = public_base_url

    @classmethod
    def from_settings(cls, config: Settings) -> "PhotoStorage":
        client = boto3.client(
            "s3",
            aws_access_key_id=config.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=config.AWS_SECRET_ACCESS_KEY,
            region_name=config.AWS_REGION,
        )
        return cls(client, config.AWS_BUCKET_NAME, config.PHOTO_BASE_URL)

    async def upload(self, key: str, body: bytes, content_type: Optional[str] = None) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        await asyncio.to_thread(
            self._client.put_object, Bucket=self.bucket, Key=key, Body=body, **extra
        )
        logger.info("Foto %s subida al bucket %s (%d bytes)", key, self.bucket, len(body))

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        logger.info("Foto %s eliminada del bucket %s", key, self.bucket)

    def url_for(self, key: str) -> str:
        """URL con la que la vista de edición muestra la foto."""
        return f"{self.public_base_url.rstrip('/')}/{key}"

    def close(self) -> None:
        self._client.close()


def get_storage(request: Request) -> PhotoStorage:
    """Dependencia FastAPI — devuelve el cliente de fotos creado en el arranque."""
    return request.app.state.storage
