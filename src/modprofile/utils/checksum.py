import hashlib
from pathlib import Path

CHUNK_SIZE = 1024 * 64


def sha256_file(path: Path) -> str:
    """
    returns the lowercase hex sha256 digest of a file.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def checksums_match(expected: str, actual: str) -> bool:
    expected = expected.strip().lower()
    if expected.startswith("sha256:"):
        expected = expected[len("sha256:"):]
    return expected == actual.lower()
