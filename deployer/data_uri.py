import base64, binascii, re, uuid
from typing import Tuple

from .errors import DataUriError

DATA_URI_RE = re.compile(r"^data:([^;,]*)((?:;[^;,]+)*),(.*)$", re.IGNORECASE | re.DOTALL)

def decode_data_uri(uri: str) -> Tuple[str, bytes]:
    """Return (mime, payload) for a base64 data URL."""
    m = DATA_URI_RE.match(uri.strip())
    if not m:
        raise DataUriError("not a data: URL")
    mime, params, b64 = m.groups()
    if not params.lower().endswith(";base64"):
        raise DataUriError("only base64 data URLs supported")
    try:
        data = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DataUriError(f"invalid base64 payload: {e}") from e
    return mime or "text/plain", data

def stored_name(name: str) -> str:
    # random prefix so re-uploads of the same attachment never collide
    return f"{uuid.uuid4()}-{name}"
