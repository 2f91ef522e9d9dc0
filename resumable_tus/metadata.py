"""Encoding and decoding of the TUS ``Upload-Metadata`` header."""

import base64
import binascii
import re
from typing import Mapping, Optional, Union

_INVALID_KEY = re.compile(r"^$|[^\x21-\x7e]|,")


def encode_metadata(
    metadata: Optional[Mapping[str, Union[str, bytes]]], encoding: str = "utf-8"
) -> Optional[str]:
    """
    Encode metadata according to TUS protocol specification.

    Args:
        metadata: Dictionary of metadata key-value pairs
        encoding: Encoding used to turn string values into bytes

    Returns:
        Header value ("key base64,key base64"), or None for empty metadata
        so that no header is sent at all

    Raises:
        ValueError: If metadata keys contain invalid characters
    """
    if not metadata:
        return None

    encoded_list = []
    for key, value in metadata.items():
        key_str = str(key)

        # Keys are non-empty printable ASCII without spaces or commas
        if _INVALID_KEY.search(key_str):
            raise ValueError(
                f'Upload-metadata key "{key_str}" must be printable ASCII '
                "and cannot be empty nor contain spaces or commas."
            )

        value_bytes = value if isinstance(value, bytes) else str(value).encode(encoding)
        if not value_bytes:
            encoded_list.append(key_str)
            continue
        encoded_value = base64.b64encode(value_bytes).decode("ascii")
        encoded_list.append(f"{key_str} {encoded_value}")

    return ",".join(encoded_list)


def decode_metadata(header: Optional[str], encoding: Optional[str] = "utf-8") -> dict:
    """
    Decode an ``Upload-Metadata`` header value.

    Args:
        header: Raw header value
        encoding: Encoding of the values, or None to keep raw bytes

    Returns:
        Dictionary of decoded metadata

    Raises:
        ValueError: If a value is not valid base64 or cannot be decoded
    """
    metadata: dict = {}
    if not header:
        return metadata

    for pair in header.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, _, value = pair.partition(" ")
        try:
            raw = base64.b64decode(value.strip(), validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 value for metadata key {key!r}") from e
        if encoding is None:
            metadata[key] = raw
        else:
            try:
                metadata[key] = raw.decode(encoding)
            except UnicodeDecodeError as e:
                raise ValueError(f"Metadata value for {key!r} is not valid {encoding}") from e

    return metadata
