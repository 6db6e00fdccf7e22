"""
Flight UID helpers.

Flight UIDs are UUID4 strings. Links use a compressed form: the 16 raw
bytes encoded as unpadded base64url (22 characters).
"""

import base64
import re
from typing import Optional

UUID4_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE,
)

COMPRESSED_LENGTH = 22


def validate_uid(uid: str) -> bool:
    return isinstance(uid, str) and UUID4_PATTERN.match(uid) is not None


def compress_uid(uid: str) -> str:
    """'6f1c...-...' -> 22-char base64url string."""
    raw = bytes.fromhex(uid.replace('-', ''))
    return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')


def standardize_uid(uid: Optional[str]) -> Optional[str]:
    """
    Accept a full or compressed UID and return the full lowercase form.

    Returns None if the input is not a valid UUID4 in either form.
    """
    if not isinstance(uid, str):
        return None

    if len(uid) == COMPRESSED_LENGTH:
        try:
            raw = base64.urlsafe_b64decode(uid + '==')
        except ValueError:
            return None
        hex_uid = raw.hex()
        uid = f'{hex_uid[:8]}-{hex_uid[8:12]}-{hex_uid[12:16]}-{hex_uid[16:20]}-{hex_uid[20:]}'

    if validate_uid(uid):
        return uid.lower()
    return None
