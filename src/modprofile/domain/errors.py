from typing import List


class ModProfileError(Exception):
    """base class for exceptions in modprofile."""
    pass


class ValidationError(ModProfileError):
    """raised for empty/duplicate names and payloads that fail schema validation."""
    pass


class NotFoundError(ModProfileError):
    """raised when a profile or mod id does not exist."""
    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} '{identifier}' not found")


class NetworkError(ModProfileError):
    """raised when a catalog request or download fails."""
    pass


class ChecksumMismatchError(NetworkError):
    """raised when a downloaded artifact does not match the catalog checksum."""
    def __init__(self, mod_id: str, expected: str, actual: str):
        self.mod_id = mod_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Checksum mismatch for '{mod_id}': expected {expected}, got {actual}")


class CorruptMetadataError(ModProfileError):
    """raised by the metadata store when a document cannot be parsed."""
    def __init__(self, path: str, problems: List[str]):
        self.path = path
        self.problems = problems
        super().__init__(f"Corrupt metadata at {path}: {'; '.join(problems)}")
