"""
Reference Matcher

Runs the reference pattern table over a text blob and returns one
confidence-scored reference per character span, plus a copy of the text with
the reference spans removed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .reference_patterns import (
    MAX_PRIORITY,
    SORTED_PATTERNS,
    DetectedReference,
    ReferencePattern,
    ReferenceType,
)

logger = logging.getLogger(__name__)

SUBSECTION_NUMBER = re.compile(r"\d+\.\d+")
SEE_KEYWORD = re.compile(r"\bsee\b", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")
SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,;:!?])")

LOW_CONFIDENCE = 0.3


@dataclass
class ReferenceMatchResult:
    references: List[DetectedReference]
    cleaned_text: str
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "references": [r.to_dict() for r in self.references],
            "cleaned_text": self.cleaned_text,
            "stats": dict(self.stats),
        }


def compute_confidence(pattern: ReferencePattern, matched_text: str, target: str) -> float:
    """
    Confidence of a single match.

    0.5 base, up to 0.3 from the pattern priority, 0.1 for sub-section
    numbering, 0.1 for an explicit "see", 0.05 for a capitalised phrase and
    0.2 for bracketed citations; capped at 1.0.
    """
    confidence = 0.5
    confidence += (pattern.priority / MAX_PRIORITY) * 0.3
    if SUBSECTION_NUMBER.search(target):
        confidence += 0.1
    if SEE_KEYWORD.search(matched_text):
        confidence += 0.1
    if matched_text[:1].isupper():
        confidence += 0.05
    if pattern.type == ReferenceType.CITATION and matched_text.startswith("["):
        confidence += 0.2
    return min(1.0, round(confidence, 4))


class ReferenceMatcher:
    """Pattern-driven reference detector."""

    def __init__(self, patterns: Optional[Sequence[ReferencePattern]] = None):
        # Keep priority order even for caller-supplied tables.
        self.patterns: Tuple[ReferencePattern, ...] = (
            tuple(sorted(patterns, key=lambda p: -p.priority))
            if patterns is not None
            else SORTED_PATTERNS
        )
        self._priority = {p.id: p.priority for p in self.patterns}

    def find_references(self, text: str, context_window: int = 50) -> ReferenceMatchResult:
        """
        Detect every reference in ``text``.

        Args:
            text: Text to scan
            context_window: Characters of context kept on each side of a match

        Returns:
            Non-overlapping references in text order, the cleaned text and
            matching statistics
        """
        candidates: List[DetectedReference] = []
        patterns_used: List[str] = []

        for pattern in self.patterns:
            matches = self._find_pattern_matches(text, pattern, context_window)
            if matches:
                candidates.extend(matches)
                patterns_used.append(pattern.id)
                logger.debug(
                    f"Found {len(matches)} matches for pattern {pattern.id}: "
                    f"{[m.text for m in matches[:3]]}"
                )

        references = self._remove_overlaps(candidates)

        matches_by_type = {t.value: 0 for t in ReferenceType}
        for ref in references:
            matches_by_type[ref.type.value] += 1

        return ReferenceMatchResult(
            references=references,
            cleaned_text=self.clean_text(text, references),
            stats={
                "total_matches": len(references),
                "candidate_matches": len(candidates),
                "matches_by_type": matches_by_type,
                "patterns_used": patterns_used,
            },
        )

    def find_references_by_type(
        self,
        text: str,
        ref_type: ReferenceType,
        context_window: int = 50,
    ) -> List[DetectedReference]:
        """Detect references of one type only."""
        if not isinstance(ref_type, ReferenceType):
            ref_type = ReferenceType(ref_type)
        candidates: List[DetectedReference] = []
        for pattern in self.patterns:
            if pattern.type == ref_type:
                candidates.extend(self._find_pattern_matches(text, pattern, context_window))
        return self._remove_overlaps(candidates)

    def _find_pattern_matches(
        self,
        text: str,
        pattern: ReferencePattern,
        context_window: int,
    ) -> List[DetectedReference]:
        references = []
        for match in pattern.regex.finditer(text):
            start, end = match.span()
            if end <= start:
                continue
            matched_text = match.group(0)
            target = pattern.extract_target(match)
            context_start = max(0, start - context_window)
            context_end = min(len(text), end + context_window)
            references.append(DetectedReference(
                text=matched_text,
                start=start,
                end=end,
                type=pattern.type,
                target=target,
                pattern_id=pattern.id,
                confidence=compute_confidence(pattern, matched_text, target),
                context=text[context_start:context_end],
            ))
        return references

    def _remove_overlaps(self, references: Iterable[DetectedReference]) -> List[DetectedReference]:
        """Greedy keep by (priority desc, start asc); result in text order."""
        ranked = sorted(
            references,
            key=lambda r: (-self._priority.get(r.pattern_id, 0), r.start),
        )
        kept: List[DetectedReference] = []
        for ref in ranked:
            if not any(ref.overlaps(existing) for existing in kept):
                kept.append(ref)
        kept.sort(key=lambda r: r.start)
        return kept

    @staticmethod
    def clean_text(text: str, references: Sequence[DetectedReference]) -> str:
        """
        Remove reference spans from ``text``.

        A capitalised reference followed by lowercase text sits mid-sentence
        and is replaced by a space; others are dropped outright.
        """
        cleaned = text
        for ref in sorted(references, key=lambda r: r.end, reverse=True):
            before = cleaned[:ref.start]
            after = cleaned[ref.end:]
            replacement = " " if ref.text[:1].isupper() and after[:1].islower() else ""
            cleaned = before + replacement + after

        cleaned = WHITESPACE.sub(" ", cleaned).strip()
        cleaned = SPACE_BEFORE_PUNCT.sub(r"\1", cleaned)
        if cleaned and cleaned[0].islower():
            cleaned = cleaned[0].upper() + cleaned[1:]
        return cleaned

    @staticmethod
    def validate_results(
        result: ReferenceMatchResult,
        max_references: int = 100,
    ) -> Dict[str, Any]:
        """Sanity-check a match result. Returns is_valid, issues and suggestions."""
        issues: List[str] = []
        suggestions: List[str] = []
        refs = result.references

        if len(refs) > max_references:
            issues.append(
                f"Too many references detected ({len(refs)}) - possible false positives"
            )

        for i, first in enumerate(refs):
            for second in refs[i + 1:]:
                if first.overlaps(second):
                    issues.append(
                        f"Overlapping references detected: {first.text} and {second.text}"
                    )

        low_confidence = [r for r in refs if r.confidence < LOW_CONFIDENCE]
        if refs and len(low_confidence) > len(refs) * 0.5:
            suggestions.append(
                "Many references have low confidence - consider reviewing patterns"
            )

        types_present = {r.type for r in refs}
        if len(types_present) == 1 and len(refs) > 5:
            suggestions.append(
                "All references are of the same type - verify pattern specificity"
            )

        return {
            "is_valid": not issues,
            "issues": issues,
            "suggestions": suggestions,
        }


_default_matcher = ReferenceMatcher()


def find_references(text: str, context_window: int = 50) -> ReferenceMatchResult:
    """Module-level shortcut using the built-in pattern table."""
    return _default_matcher.find_references(text, context_window)
