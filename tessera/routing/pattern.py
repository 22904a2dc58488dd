"""
Path pattern compiler.

Grammar:
    /literal/{name}/{name:type}

Types:
    str    one segment (default)
    int    signed integer, converted to int
    float  decimal number, converted to float
    uuid   canonical UUID string
    path   the remainder of the path, slashes included (must be last)
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
import re


_PARAM_RE = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)(?::([A-Za-z_]+))?\}$")


@dataclass(frozen=True)
class ParamType:
    name: str
    regex: "re.Pattern[str]"
    converter: Callable[[str], Any]


PARAM_TYPES: Dict[str, ParamType] = {
    "str": ParamType("str", re.compile(r"[^/]+"), str),
    "int": ParamType("int", re.compile(r"-?\d+"), int),
    "float": ParamType("float", re.compile(r"-?\d+(?:\.\d+)?"), float),
    "uuid": ParamType(
        "uuid",
        re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"),
        str,
    ),
    "path": ParamType("path", re.compile(r".+"), str),
}


@dataclass(frozen=True)
class Segment:
    """One path segment: a literal or a named placeholder."""

    literal: Optional[str] = None
    param: Optional[str] = None
    param_type: Optional[ParamType] = None

    @property
    def is_param(self) -> bool:
        return self.param is not None

    @property
    def is_path(self) -> bool:
        return self.param_type is not None and self.param_type.name == "path"

    @property
    def shape(self) -> Tuple[str, str]:
        """Identity used to share trie nodes between routes."""
        if self.is_param:
            return ("param", f"{self.param}:{self.param_type.name}")
        return ("literal", self.literal)

    def convert(self, value: str) -> Tuple[bool, Any]:
        """Match and convert a raw segment value."""
        if not self.param_type.regex.fullmatch(value):
            return False, None
        try:
            return True, self.param_type.converter(value)
        except (TypeError, ValueError):
            return False, None

    def __str__(self) -> str:
        if self.is_param:
            if self.param_type.name == "str":
                return "{%s}" % self.param
            return "{%s:%s}" % (self.param, self.param_type.name)
        return self.literal


@dataclass(frozen=True)
class PathPattern:
    """A compiled path pattern."""

    raw: str
    segments: Tuple[Segment, ...]

    @property
    def is_static(self) -> bool:
        return not any(s.is_param for s in self.segments)

    @property
    def param_names(self) -> List[str]:
        return [s.param for s in self.segments if s.is_param]

    def build(self, params: Dict[str, Any]) -> str:
        """Substitute parameter values into the pattern."""
        parts = []
        for segment in self.segments:
            if segment.is_param:
                if segment.param not in params:
                    raise ValueError(f"Missing value for path parameter '{segment.param}' of {self.raw}")
                parts.append(str(params[segment.param]))
            else:
                parts.append(segment.literal)
        return "/" + "/".join(parts)


def normalize_path(path: str) -> str:
    """
    Normalize a path: single leading slash, no trailing slash, no empty
    segments. The root is "/".
    """
    parts = [p for p in path.split("/") if p]
    return "/" + "/".join(parts)


def join_paths(prefix: str, path: str) -> str:
    """Join a controller prefix and a route sub-path."""
    return normalize_path(f"{prefix}/{path}")


def split_path(path: str) -> List[str]:
    return [p for p in path.split("/") if p]


def compile_pattern(path: str) -> PathPattern:
    """
    Compile a path pattern.

    Raises:
        ValueError: Malformed placeholder, unknown type, duplicate
            parameter name, or a `path` placeholder that is not last
    """
    normalized = normalize_path(path)
    raw_segments = split_path(normalized)
    segments: List[Segment] = []
    seen: set[str] = set()

    for index, raw in enumerate(raw_segments):
        if "{" not in raw and "}" not in raw:
            segments.append(Segment(literal=raw))
            continue

        match = _PARAM_RE.match(raw)
        if match is None:
            raise ValueError(f"Malformed path segment '{raw}' in {path!r}")

        name, type_name = match.group(1), match.group(2) or "str"
        param_type = PARAM_TYPES.get(type_name)
        if param_type is None:
            raise ValueError(
                f"Unknown parameter type '{type_name}' in {path!r}; "
                f"expected one of {', '.join(PARAM_TYPES)}"
            )
        if name in seen:
            raise ValueError(f"Duplicate path parameter '{name}' in {path!r}")
        if type_name == "path" and index != len(raw_segments) - 1:
            raise ValueError(f"'path' parameter '{name}' must be the last segment of {path!r}")

        seen.add(name)
        segments.append(Segment(param=name, param_type=param_type))

    return PathPattern(raw=normalized, segments=tuple(segments))
