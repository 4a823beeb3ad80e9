"""
Reference Pattern Table

Static catalogue of the phrasings that mark a cross-reference in running
text: section/chapter numbers, figures, tables, pages, academic citations and
vague spatial references ("see above", "this section").

Each pattern carries a priority. The matcher tries patterns from the highest
priority down and, when two matches overlap, keeps the higher-priority one, so
specific phrasings ("Section 3.2") always win over vague ones ("above").
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ReferenceType(Enum):
    SECTION = "section"
    FIGURE = "figure"
    TABLE = "table"
    PAGE = "page"
    CITATION = "citation"
    CROSS_REFERENCE = "cross_reference"


MAX_PRIORITY = 20


@dataclass(frozen=True)
class ReferencePattern:
    """One recognisable reference phrasing."""
    id: str
    name: str
    pattern: str
    type: ReferenceType
    priority: int
    description: str
    examples: Tuple[str, ...] = ()
    flags: int = 0

    @property
    def regex(self) -> re.Pattern:
        # re keeps its own cache of compiled patterns
        return re.compile(self.pattern, self.flags)

    def extract_target(self, match: "re.Match") -> str:
        """Named group ``target`` if present, else the first group, else the whole match."""
        groups = match.groupdict()
        if groups.get("target") is not None:
            return groups["target"].strip()
        if match.re.groups and match.group(1) is not None:
            return match.group(1).strip()
        return match.group(0).strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pattern": self.pattern,
            "type": self.type.value,
            "priority": self.priority,
            "description": self.description,
            "examples": list(self.examples),
        }


@dataclass
class DetectedReference:
    """A reference found in text, before it is linked to a target node."""
    text: str
    start: int
    end: int
    type: ReferenceType
    target: str
    pattern_id: str
    confidence: float
    context: Optional[str] = None

    def overlaps(self, other: "DetectedReference") -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "type": self.type.value,
            "target": self.target,
            "pattern_id": self.pattern_id,
            "confidence": self.confidence,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectedReference":
        return cls(
            text=data["text"],
            start=data["start"],
            end=data["end"],
            type=ReferenceType(data["type"]),
            target=data["target"],
            pattern_id=data.get("pattern_id", ""),
            confidence=data.get("confidence", 0.0),
            context=data.get("context"),
        )


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_NUMBER = r"(\d+(?:\.\d+)*)"
_PAGE_NUMBER = r"(\d+(?:\s*[-–]\s*\d+)?)"
_YEAR = r"(?:19|20)\d{2}[a-z]?"
_SPATIAL_NOUN = r"(?:section|chapter|figure|table|paragraph)"

REFERENCE_PATTERNS: Tuple[ReferencePattern, ...] = (
    # Sections / chapters
    ReferencePattern(
        id="section_capitalized",
        name="Capitalized Section Reference",
        pattern=r"\b(?:[Ss]ee\s+)?(?:Section|Chapter|Part)\s+" + _NUMBER,
        type=ReferenceType.SECTION,
        priority=10,
        description="Capitalized section, chapter or part references",
        examples=("See Section 3.2", "Chapter 5 discusses", "Part 2"),
    ),
    ReferencePattern(
        id="section_explicit",
        name="Explicit Section Reference",
        pattern=r"\b(?:see\s+)?(?:section|chapter|sect\.?|chap\.?)\s+" + _NUMBER,
        type=ReferenceType.SECTION,
        priority=9,
        description="Section or chapter references in any case, including abbreviations",
        examples=("see section 3.2", "sect. 1.4.2", "chap. 7"),
        flags=re.IGNORECASE,
    ),
    ReferencePattern(
        id="section_symbol",
        name="Section Symbol Reference",
        pattern=r"§\s*" + _NUMBER,
        type=ReferenceType.SECTION,
        priority=8,
        description="Section sign followed by a number",
        examples=("§ 4.1", "§12"),
    ),
    # Figures
    ReferencePattern(
        id="figure_capitalized",
        name="Capitalized Figure Reference",
        pattern=r"\b(?:[Ss]ee\s+)?(?:Figures?|Fig\.?|Diagram|Chart)\s+" + _NUMBER,
        type=ReferenceType.FIGURE,
        priority=8,
        description="Capitalized figure, diagram or chart references",
        examples=("See Figure 3.2", "Fig. 5", "Diagram 2"),
    ),
    ReferencePattern(
        id="figure_explicit",
        name="Explicit Figure Reference",
        pattern=r"\b(?:see\s+)?(?:figures?|fig\.?|diagram|chart)\s+" + _NUMBER,
        type=ReferenceType.FIGURE,
        priority=7,
        description="Figure references in any case",
        examples=("see figure 3.2", "fig. 4"),
        flags=re.IGNORECASE,
    ),
    # Tables
    ReferencePattern(
        id="table_capitalized",
        name="Capitalized Table Reference",
        pattern=r"\b(?:[Ss]ee\s+)?(?:Tables?|Tab\.)\s+" + _NUMBER,
        type=ReferenceType.TABLE,
        priority=7,
        description="Capitalized table references",
        examples=("See Table 3.2", "Table 5 lists", "Tab. 2"),
    ),
    ReferencePattern(
        id="table_explicit",
        name="Explicit Table Reference",
        pattern=r"\b(?:see\s+)?(?:tables?|tab\.)\s+" + _NUMBER,
        type=ReferenceType.TABLE,
        priority=6,
        description="Table references in any case",
        examples=("see table 3.2", "tab. 1.4"),
        flags=re.IGNORECASE,
    ),
    # Pages
    ReferencePattern(
        id="page_capitalized",
        name="Capitalized Page Reference",
        pattern=r"\b(?:[Ss]ee\s+)?(?:Pages?|Pp\.|P\.)\s*" + _PAGE_NUMBER,
        type=ReferenceType.PAGE,
        priority=5,
        description="Capitalized page references, single pages or ranges",
        examples=("See Page 15", "Pages 10-12", "P. 42"),
    ),
    ReferencePattern(
        id="page_explicit",
        name="Explicit Page Reference",
        pattern=r"\b(?:see\s+)?(?:pages?|pp\.|p\.)\s*" + _PAGE_NUMBER,
        type=ReferenceType.PAGE,
        priority=4,
        description="Page references in any case",
        examples=("see page 15", "p. 42", "pp. 10-15"),
        flags=re.IGNORECASE,
    ),
    # Citations
    ReferencePattern(
        id="citation_brackets",
        name="Bracket Citation",
        pattern=r"\[([^\[\]\n]{1,100})\]",
        type=ReferenceType.CITATION,
        priority=3,
        description="Numeric or author-year citations in square brackets",
        examples=("[1]", "[1, 2, 5]", "[Smith et al., 2023]"),
    ),
    ReferencePattern(
        id="citation_narrative",
        name="Narrative Citation",
        pattern=(
            r"\b(?P<target>[A-Z][A-Za-z\-]+(?:\s+et\s+al\.)?\s+\(" + _YEAR + r"\))"
        ),
        type=ReferenceType.CITATION,
        priority=2,
        description="Author name followed by a parenthesised year",
        examples=("Smith et al. (2023)", "Johnson (2021)"),
    ),
    ReferencePattern(
        id="citation_parentheses",
        name="Parentheses Citation",
        pattern=r"\((?P<target>[A-Z][A-Za-z\-]+[^()\n]*?,?\s*" + _YEAR + r")\)",
        type=ReferenceType.CITATION,
        priority=2,
        description="Author-year citations inside parentheses",
        examples=("(Smith et al. 2023)", "(Johnson, 2021)"),
    ),
    # Vague cross-references
    ReferencePattern(
        id="cross_this",
        name="This Reference",
        pattern=r"\b(?:see\s+)?(this\s+(?:section|chapter|figure|table))\b",
        type=ReferenceType.CROSS_REFERENCE,
        priority=1,
        description="References to the current section, chapter, figure or table",
        examples=("see this section", "this figure shows"),
        flags=re.IGNORECASE,
    ),
    ReferencePattern(
        id="cross_above",
        name="Above Reference",
        pattern=(
            r"\b(?:see\s+)?(previous\s+" + _SPATIAL_NOUN
            + r"|previously|previous|above|earlier)\b"
        ),
        type=ReferenceType.CROSS_REFERENCE,
        priority=0,
        description="References to content that came before",
        examples=("see above", "the previous section", "as mentioned earlier"),
        flags=re.IGNORECASE,
    ),
    ReferencePattern(
        id="cross_below",
        name="Below Reference",
        pattern=(
            r"\b(?:see\s+)?(below|following\s+" + _SPATIAL_NOUN
            + r"|next\s+" + _SPATIAL_NOUN + r"|later)\b"
        ),
        type=ReferenceType.CROSS_REFERENCE,
        priority=0,
        description="References to content that comes after",
        examples=("see below", "the following table", "discussed later"),
        flags=re.IGNORECASE,
    ),
)

# Highest priority first; ties keep table order.
SORTED_PATTERNS: Tuple[ReferencePattern, ...] = tuple(
    sorted(REFERENCE_PATTERNS, key=lambda p: -p.priority)
)

_PATTERNS_BY_ID: Dict[str, ReferencePattern] = {p.id: p for p in REFERENCE_PATTERNS}


def get_patterns_by_type(ref_type: ReferenceType) -> List[ReferencePattern]:
    """Patterns of one reference type, highest priority first."""
    if not isinstance(ref_type, ReferenceType):
        ref_type = ReferenceType(ref_type)
    return [p for p in SORTED_PATTERNS if p.type == ref_type]


def get_pattern_by_id(pattern_id: str) -> Optional[ReferencePattern]:
    return _PATTERNS_BY_ID.get(pattern_id)


def validate_pattern(pattern: ReferencePattern) -> bool:
    """
    Check that a pattern is usable by the matcher.

    A usable pattern compiles, has an integer priority within
    ``[0, MAX_PRIORITY]`` and a known reference type.
    """
    try:
        re.compile(pattern.pattern, pattern.flags)
    except re.error:
        return False
    if not isinstance(pattern.priority, int) or not 0 <= pattern.priority <= MAX_PRIORITY:
        return False
    return isinstance(pattern.type, ReferenceType)
