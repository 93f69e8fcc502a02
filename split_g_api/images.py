import base64
import binascii
import re

import cv2
import numpy as np

from split_g_api.errors import InvalidImage

DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def strip_data_url(value):
    """Drop a leading ``data:image/...;base64,`` prefix, if any."""
    return DATA_URL_PREFIX.sub("", value.strip(), count=1)


def decode_image(base64_text):
    """Decode base64 image data and convert it to OpenCV format."""
    try:
        raw = base64.b64decode(strip_data_url(base64_text), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage(f"Image is not valid base64: {e}")

    if not raw:
        raise InvalidImage("Image is empty")

    image_array = np.frombuffer(raw, np.uint8)
    image = cv2.imdecode(image_array, cv2.IMREAD_COLOR)
    if image is None:
        raise InvalidImage("Failed to decode image")
    return image


def normalize_image(image, max_side):
    """Shrink so the longer side is at most ``max_side``. Never upscales."""
    height, width = image.shape[:2]
    longest = max(height, width)
    if longest <= max_side:
        return image

    scale = max_side / float(longest)
    size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
    return cv2.resize(image, size, interpolation=cv2.INTER_AREA)


def encode_jpeg(image, quality=90):
    ok, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        raise InvalidImage("Failed to encode image as JPEG")
    return base64.b64encode(buffer.tobytes()).decode("ascii")


def prepare_upload(value, max_side):
    """Validate a submitted image and return it as base64 JPEG text."""
    if not value:
        raise InvalidImage("No image provided")
    image = decode_image(value)
    return encode_jpeg(normalize_image(image, max_side))
