import hashlib


def fingerprint(raw: bytes) -> str:
    """Return the SHA-256 hex digest of a document's raw bytes.

    Only used to tell whether a manuscript changed since its last import.
    """
    return hashlib.sha256(raw).hexdigest()
