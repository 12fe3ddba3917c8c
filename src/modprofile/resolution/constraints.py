"""
semver-style range constraints, evaluated with ``packaging`` specifiers.

supported syntax: comparators (``>=1.0.0 <2.0.0``), caret (``^1.2.3``),
tilde (``~1.2``), partial and wildcard versions (``1.x``, ``1.2.*``, ``1``),
hyphen ranges (``1.0.0 - 2.0.0``) and ``||`` alternatives.
"""
import re
from typing import List, Optional

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

WILDCARDS = {"", "*", "x", "X", "latest"}

_COMPARATOR = re.compile(r"^(>=|<=|==|>|<|=)?\s*v?(.+)$")
_HYPHEN = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")


class VersionConstraint:
    """a parsed range; satisfied when any ``||`` alternative matches."""

    def __init__(self, text: str, alternatives: List[SpecifierSet]):
        self.text = text
        self.alternatives = alternatives

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["VersionConstraint"]:
        """
        parse a constraint string.

        returns:
            None for wildcard constraints, which every version satisfies

        raises:
            ValueError: if the constraint cannot be parsed
        """
        text = (text or "").strip()
        if text in WILDCARDS:
            return None

        alternatives = []
        for part in text.split("||"):
            part = part.strip()
            if part in WILDCARDS:
                return None
            try:
                alternatives.append(SpecifierSet(",".join(_translate_range(part))))
            except InvalidSpecifier as e:
                raise ValueError(f"Invalid version constraint '{text}': {e}") from e
        return cls(text, alternatives)

    def satisfied_by(self, version: str) -> bool:
        """
        raises:
            ValueError: if ``version`` is not a valid version
        """
        try:
            parsed = Version(version.lstrip("v"))
        except InvalidVersion as e:
            raise ValueError(f"Invalid version '{version}'") from e
        return any(spec.contains(parsed) for spec in self.alternatives)

    def __repr__(self) -> str:
        return f"VersionConstraint({self.text!r})"


def _translate_range(part: str) -> List[str]:
    hyphen = _HYPHEN.match(part)
    if hyphen:
        low, high = hyphen.groups()
        upper = f"<{_pad(_bump(_numbers(high)))}" if _is_partial(high) else f"<={_pad(_numbers(high))}"
        return [f">={_pad(_numbers(low))}", upper]

    # join operators separated from their version by whitespace
    part = re.sub(r"(>=|<=|>|<|=)\s+", r"\1", part)
    specifiers = []
    for token in part.split():
        specifiers.extend(_translate_token(token))
    return specifiers


def _translate_token(token: str) -> List[str]:
    if token.startswith("^"):
        return _caret(_numbers(token[1:]))
    if token.startswith("~"):
        return _tilde(_numbers(token.lstrip("~>")))

    match = _COMPARATOR.match(token)
    if not match:
        raise ValueError(f"Invalid version constraint '{token}'")
    operator, version = match.groups()
    numbers = _numbers(version)

    if not operator or operator in ("=", "=="):
        if _is_partial(version):
            return _partial_range(numbers)
        return [f"=={version}"]

    if _is_partial(version):
        # a partial version names the whole range it covers: <=1.2 is <1.3.0, >1.2 is >=1.3.0
        if operator == "<=":
            return [f"<{_pad(_bump(numbers))}"]
        if operator == ">":
            return [f">={_pad(_bump(numbers))}"]
        version = _pad(numbers)
    return [f"{operator}{version}"]


def _numbers(version: str) -> List[int]:
    """leading numeric components, stopping at a wildcard or prerelease tag."""
    numbers = []
    for piece in version.lstrip("v").split("-")[0].split("."):
        if piece in ("x", "X", "*") or not piece.isdigit():
            break
        numbers.append(int(piece))
    if not numbers:
        raise ValueError(f"Invalid version '{version}'")
    return numbers


def _is_partial(version: str) -> bool:
    pieces = version.split("-")[0].split(".")
    return len(pieces) < 3 or any(piece in ("x", "X", "*") for piece in pieces)


def _pad(numbers: List[int]) -> str:
    return ".".join(str(n) for n in (numbers + [0, 0, 0])[:3])


def _bump(numbers: List[int]) -> List[int]:
    """next version past every release the given components cover."""
    return numbers[:-1] + [numbers[-1] + 1]


def _partial_range(numbers: List[int]) -> List[str]:
    if len(numbers) >= 3:
        return [f"=={_pad(numbers)}"]
    return [f">={_pad(numbers)}", f"<{_pad(_bump(numbers))}"]


def _caret(numbers: List[int]) -> List[str]:
    padded = (numbers + [0, 0, 0])[:3]
    # bump the left-most non-zero component that was given
    for index, value in enumerate(padded[: len(numbers)]):
        if value != 0 or index == len(numbers) - 1:
            upper = padded[:index] + [value + 1] + [0] * (2 - index)
            return [f">={_pad(padded)}", f"<{_pad(upper)}"]
    return [f">={_pad(padded)}"]


def _tilde(numbers: List[int]) -> List[str]:
    if len(numbers) == 1:
        return [f">={_pad(numbers)}", f"<{_pad([numbers[0] + 1])}"]
    return [f">={_pad(numbers)}", f"<{_pad([numbers[0], numbers[1] + 1])}"]
