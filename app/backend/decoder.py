import gzip
import json
import zlib

from errors import DecodeError


GZIP_MAGIC = b"\x1f\x8b"


def is_gzip(payload):
    return len(payload) >= 2 and payload[:2] == GZIP_MAGIC


def decode_payload(payload):
    """Parse a store payload into JSON.

    Intermediaries may or may not apply transparent compression, so the
    same logical document can arrive gzipped or as plain UTF-8. The first
    two bytes decide which.
    """
    if payload is None:
        raise DecodeError("Empty payload.")
    raw = bytes(payload)
    if is_gzip(raw):
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError, zlib.error) as exc:
            raise DecodeError(f"Invalid gzip payload: {exc}") from exc
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Payload is not valid UTF-8: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"Payload is not valid JSON: {exc}") from exc
