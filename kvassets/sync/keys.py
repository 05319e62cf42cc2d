"""Content-addressed remote key derivation.

A remote key is the asset path followed by a dot and the first
``KEY_DIGEST_LENGTH`` hex characters of its SHA-256 digest::

    css/site.css  ->  css/site.css.3f0a9c...(32 hex chars)

The suffix has a fixed length, so distinct (path, digest) pairs never map
to the same key and the path can be recovered from the key. Changing this
scheme changes every key in the store.
"""

from ..exceptions import ScanError

KEY_DIGEST_LENGTH = 32

# Workers KV key size limit, in bytes
MAX_KEY_LENGTH = 512


def derive_remote_key(path: str, digest: str) -> str:
    """Combine an asset path and its digest into the remote key.

    Args:
        path: Normalized relative asset path
        digest: Hex digest of the asset contents

    Returns:
        Remote key

    Raises:
        ScanError: If the digest is too short or the key exceeds the
            store's key size limit

    Examples:
        >>> derive_remote_key("a.txt", "ab" * 32)
        'a.txt.abababababababababababababababab'
    """
    if len(digest) < KEY_DIGEST_LENGTH:
        raise ScanError(f"Digest for {path} is too short: {digest!r}", path)
    key = f"{path}.{digest[:KEY_DIGEST_LENGTH].lower()}"
    if len(key.encode("utf-8")) > MAX_KEY_LENGTH:
        raise ScanError(
            f"Remote key for {path} exceeds {MAX_KEY_LENGTH} bytes", path
        )
    return key
