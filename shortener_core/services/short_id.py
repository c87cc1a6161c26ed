"""
Short identifier generation.

The id is a pure function of the URL: the first 8 hex characters of its MD5
digest. 8 hex characters carry about 32 bits, so two different URLs can map
to the same id. Nothing here detects that; storage reports it as a conflict.
"""

import hashlib


SHORT_ID_LENGTH = 8


def generate_short_id(url: str) -> str:
    """Return the deterministic short id for ``url``"""
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:SHORT_ID_LENGTH]

