"""
FastAPI layer exposing white-background removal.

Endpoints:
 - GET /health
 - POST /remove-bg
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Union
from urllib.parse import urljoin

import boto3
from botocore.client import Config as BotoConfig
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from . import config
from .errors import DecodeError
from .pipeline import try_remove_background
from .pixel_buffer import load_image_bytes, to_data_url

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="White Background Removal Service", version="0.1.0")


class RemoveBgRequest(BaseModel):
    imageUrl: str  # http(s) URL or base64 data URL
    tolerance: Optional[Union[int, List[int]]] = None  # scalar or [r, g, b]
    featherStrength: Optional[float] = None  # 0-1
    fallbackToOriginal: bool = False


class RemoveBgResponse(BaseModel):
    outputUrl: str
    backgroundRemoved: bool
    width: Optional[int] = None  # null when the original is returned as a fallback
    height: Optional[int] = None


def _get_s3_client():
    if not config.r2_configured(settings):
        raise RuntimeError("R2 configuration is incomplete; check env vars.")
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        endpoint_url=settings.r2_endpoint,
        config=BotoConfig(signature_version="s3v4"),
    )


def _build_public_url(client, key: str) -> str:
    if settings.r2_public_base_url:
        return urljoin(settings.r2_public_base_url.rstrip("/") + "/", key)
    # Fallback: virtual-hosted-style may not be available; presigned URLs are safer
    return client.generate_presigned_url(
        "get_object",
        Params={"Bucket": settings.r2_bucket_name, "Key": key},
        ExpiresIn=3600,
    )


def _store_output(image_bytes: bytes, mime_type: str) -> str:
    """Upload to R2 when configured; otherwise hand the image back inline."""
    if not config.r2_configured(settings):
        return to_data_url(image_bytes, settings.output_format)

    extension = settings.output_format.lower()
    key = f"whitebg/{uuid.uuid4()}.{extension}"
    client = _get_s3_client()
    client.put_object(
        Bucket=settings.r2_bucket_name,
        Key=key,
        Body=image_bytes,
        ContentType=mime_type,
    )
    return _build_public_url(client, key)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/remove-bg", response_model=RemoveBgResponse)
def remove_bg(body: RemoveBgRequest):
    try:
        image_bytes = load_image_bytes(body.imageUrl, timeout_seconds=settings.request_timeout_seconds)
    except DecodeError as exc:
        if body.fallbackToOriginal:
            logger.warning("Failed to load image, returning original URL: %s", exc)
            return RemoveBgResponse(outputUrl=body.imageUrl, backgroundRemoved=False)
        logger.exception("Failed to load image: %s", exc)
        raise HTTPException(status_code=400, detail="Could not load image") from exc

    try:
        result = try_remove_background(
            image_bytes,
            body.tolerance,
            feather_strength=body.featherStrength,
            settings=settings,
        )
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve)) from ve

    if not result.ok:
        if body.fallbackToOriginal:
            logger.info("Background removal failed, returning original image: %s", result.error)
            return RemoveBgResponse(outputUrl=body.imageUrl, backgroundRemoved=False)
        if isinstance(result.error, DecodeError):
            raise HTTPException(status_code=400, detail=str(result.error)) from result.error
        logger.error("Background removal failed: %s", result.error)
        raise HTTPException(status_code=500, detail="Background removal failed") from result.error

    try:
        output_url = _store_output(result.image_bytes, result.mime_type)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Failed to upload cutout to R2: %s", exc)
        raise HTTPException(status_code=500, detail="Upload to storage failed") from exc

    return RemoveBgResponse(
        outputUrl=output_url,
        backgroundRemoved=True,
        width=result.width,
        height=result.height,
    )
