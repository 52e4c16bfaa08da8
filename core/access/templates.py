"""
RoleGate - Path Templates

A stored permission URL such as `/cid/districts/:id` is parsed once into an
ordered list of segment tokens and compiled into an anchored matcher.

- LiteralSegment   matches its text exactly
- PlaceholderSegment matches exactly one non-empty, slash-free segment; text
  after the name (`:name.pdf`) must close the segment literally
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

PARAM_SIGIL = ":"

_PLACEHOLDER = re.compile(r"(\w*)(.*)", re.DOTALL)


@dataclass(frozen=True)
class LiteralSegment:
    text: str


@dataclass(frozen=True)
class PlaceholderSegment:
    name: str
    suffix: str = ""


Segment = Union[LiteralSegment, PlaceholderSegment]


@dataclass(frozen=True)
class PathTemplate:
    raw: str
    segments: Tuple[Segment, ...]

    @classmethod
    def parse(cls, raw: str) -> "PathTemplate":
        segments = []
        for part in raw.split("/"):
            if part.startswith(PARAM_SIGIL):
                name, suffix = _PLACEHOLDER.match(part[1:]).groups()
                segments.append(PlaceholderSegment(name, suffix))
            else:
                segments.append(LiteralSegment(part))
        return cls(raw=raw, segments=tuple(segments))

    @property
    def is_dynamic(self) -> bool:
        return any(isinstance(s, PlaceholderSegment) for s in self.segments)

    @property
    def placeholders(self) -> Tuple[str, ...]:
        return tuple(
            s.name for s in self.segments
            if isinstance(s, PlaceholderSegment) and s.name
        )

    def compile(self) -> "CompiledTemplate":
        parts = []
        for index, segment in enumerate(self.segments):
            if isinstance(segment, PlaceholderSegment):
                # Group names must be unique; repeated placeholders keep
                # their position instead.
                parts.append(f"(?P<p{index}>[^/]+)" + re.escape(segment.suffix))
            else:
                parts.append(re.escape(segment.text))
        pattern = re.compile("^" + "/".join(parts) + "$")
        return CompiledTemplate(template=self, pattern=pattern)

    def overlaps(self, other: "PathTemplate") -> bool:
        """
        True when some concrete path could match both templates.
        """

        if len(self.segments) != len(other.segments):
            return False

        for mine, theirs in zip(self.segments, other.segments):
            if not _segments_overlap(mine, theirs):
                return False

        return True


def _segments_overlap(mine: Segment, theirs: Segment) -> bool:
    if isinstance(mine, LiteralSegment) and isinstance(theirs, LiteralSegment):
        return mine.text == theirs.text
    if isinstance(mine, LiteralSegment):
        mine, theirs = theirs, mine
    if isinstance(theirs, LiteralSegment):
        # the placeholder itself needs at least one character
        return len(theirs.text) > len(mine.suffix) and theirs.text.endswith(mine.suffix)
    return mine.suffix.endswith(theirs.suffix) or theirs.suffix.endswith(mine.suffix)


@dataclass(frozen=True)
class CompiledTemplate:
    template: PathTemplate
    pattern: "re.Pattern"

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """
        Return captured placeholder values, or None when the path does not
        match. A repeated placeholder name keeps its last value.
        """

        found = self.pattern.match(path)
        if not found:
            return None

        params = {}
        for index, segment in enumerate(self.template.segments):
            if isinstance(segment, PlaceholderSegment) and segment.name:
                params[segment.name] = found.group(f"p{index}")
        return params

    def matches(self, path: str) -> bool:
        return self.pattern.match(path) is not None
