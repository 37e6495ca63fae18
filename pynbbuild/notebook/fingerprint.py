import hashlib

# bump when the framing below changes so old cache entries are not reused
FINGERPRINT_VERSION = b"pynbbuild-fingerprint-v1\n"


def fingerprint(cells) -> str:
    """Return the cache key for an ordered sequence of cells.

    Every cell contributes its kind, the byte length of its content and the
    full content, so splitting, merging or reordering cells always changes
    the digest.  The result is 64 lowercase hex characters and can be used
    directly as a path segment.
    """
    digest = hashlib.sha256(FINGERPRINT_VERSION)
    for cell in cells:
        # lone surrogates survive JSON notebooks; hash them rather than fail
        data = cell.content.encode("utf-8", errors="surrogatepass")
        kind = getattr(cell.kind, "value", cell.kind)
        digest.update(f"{kind}:{len(data)}\n".encode("ascii"))
        digest.update(data)
    return digest.hexdigest()
