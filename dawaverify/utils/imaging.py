# =============================================
# File: dawaverify/utils/imaging.py
# Purpose: Turn an uploaded file into the image payload the analysis client sends
# =============================================
from __future__ import annotations

import base64
import io
import os
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from dawaverify.services.errors import CaptureError

_MIME_BY_FORMAT = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def _max_bytes() -> int:
    return int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))


@dataclass(frozen=True)
class CapturedImage:
    data: bytes
    mime_type: str
    width: int
    height: int

    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def decode_image(data: bytes | None) -> CapturedImage:
    """
    Validate raw upload bytes with Pillow and detect the MIME type from the
    actual format (the client-declared content type is not trusted).
    Formats the vision API does not accept are re-encoded as JPEG.
    """
    if not data:
        raise CaptureError("no image selected")
    if len(data) > _max_bytes():
        raise CaptureError(f"image larger than {_max_bytes()} bytes")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        with Image.open(io.BytesIO(data)) as img:
            fmt = (img.format or "").upper()
            width, height = img.size
            mime = _MIME_BY_FORMAT.get(fmt)
            if mime is None:
                buf = io.BytesIO()
                img.convert("RGB").save(buf, format="JPEG", quality=90)
                data, mime = buf.getvalue(), "image/jpeg"
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        raise CaptureError(f"upload is not a readable image: {e}") from e
    return CapturedImage(data=data, mime_type=mime, width=width, height=height)
