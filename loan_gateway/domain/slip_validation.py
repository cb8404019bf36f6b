"""Payment slip image validation before OCR extraction"""

import base64
import binascii
import io
import re
import warnings
from typing import Iterable
from PIL import Image, UnidentifiedImageError
from loan_gateway.domain.exceptions import SlipValidationError

DATA_URL_PREFIX = re.compile(r"^data:[^;]+;base64,")

# Pillow format name for each accepted mime type
PILLOW_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
}


def strip_data_url(image_b64: str) -> str:
    """Remove a 'data:<mime>;base64,' prefix if present"""
    return DATA_URL_PREFIX.sub("", image_b64.strip())


def validate_slip_image(
    image_b64: str,
    mime_type: str,
    accepted_mime_types: Iterable[str],
    min_bytes: int,
    max_bytes: int,
) -> bytes:
    """
    Check a base64 slip upload and return the decoded image bytes.

    Checks, in order:
    - mime type is an accepted image format
    - payload is valid base64
    - decoded size within [min_bytes, max_bytes]
    - bytes decode as an image whose format matches an accepted type

    Raises:
        SlipValidationError: with a reason suitable for the caller
    """
    mime_type = mime_type.lower().strip()
    if mime_type not in accepted_mime_types:
        raise SlipValidationError(f"Unsupported image type: {mime_type}")

    try:
        raw = base64.b64decode(strip_data_url(image_b64), validate=True)
    except (binascii.Error, ValueError) as e:
        raise SlipValidationError("Image payload is not valid base64") from e

    if len(raw) < min_bytes:
        raise SlipValidationError(f"Image too small ({len(raw)} bytes), probably corrupted")
    if len(raw) > max_bytes:
        raise SlipValidationError(f"Image too large. Maximum size is {max_bytes} bytes")

    try:
        with warnings.catch_warnings():
            # Headers claiming huge dimensions are rejected, not decoded
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(raw)) as img:
                image_format = img.format
                img.verify()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
        OSError,
        SyntaxError,
    ) as e:
        raise SlipValidationError("Payload is not a readable image") from e

    accepted_formats = {PILLOW_FORMATS.get(m) for m in accepted_mime_types}
    if image_format not in accepted_formats:
        raise SlipValidationError(f"Image content is {image_format}, not an accepted format")

    return raw
