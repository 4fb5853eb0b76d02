"""
Base64 helpers for image payloads
"""
import base64
import binascii

IMAGE_DATA_PREFIX = "base64,"


def encode_image_data(image_bytes: bytes) -> str:
    """Encode raw image bytes as the ``base64,<data>`` string the server expects"""
    if not image_bytes:
        raise ValueError("Image bytes cannot be empty")
    return IMAGE_DATA_PREFIX + base64.b64encode(image_bytes).decode("ascii")


def strip_image_data_prefix(data: str) -> str:
    # Accepts "base64,<data>" and "data:image/png;base64,<data>"
    marker = data.find(IMAGE_DATA_PREFIX)
    if marker != -1 and "," not in data[:marker]:
        return data[marker + len(IMAGE_DATA_PREFIX):]
    return data


def decode_image_data(data: str) -> bytes:
    """
    Decode base64 image data returned by the server

    Raises:
        ValueError: data is empty, not valid base64, or truncated
    """
    if not isinstance(data, str):
        raise ValueError(f"Image data must be a string, got {type(data).__name__}")

    payload = "".join(strip_image_data_prefix(data.strip()).split())
    if not payload:
        raise ValueError("Image data is empty")

    try:
        decoded = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e

    if not decoded:
        raise ValueError("Image data is empty")
    return decoded
