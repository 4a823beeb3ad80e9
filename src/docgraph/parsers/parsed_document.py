"""
Parsed-document input structures.

These mirror what an upstream PDF parser hands over: per-page raw text,
optional pre-segmented paragraphs, optional positioned text elements, and
document-level metadata. ``from_dict`` accepts both snake_case keys and the
camelCase keys emitted by JavaScript-based parsers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class TextElement:
    """A positioned run of text on a page."""
    text: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextElement":
        return cls(
            text=data.get("text", ""),
            x=float(data.get("x", 0.0) or 0.0),
            y=float(data.get("y", 0.0) or 0.0),
            width=float(data.get("width", 0.0) or 0.0),
            height=float(data.get("height", 0.0) or 0.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass
class ParsedParagraph:
    id: str
    page_number: int
    content: str
    start_position: int
    end_position: int
    line_count: int = 1
    confidence: float = 0.8

    @classmethod
    def from_dict(cls, data: Dict[str, Any], page_number: int = 1) -> "ParsedParagraph":
        content = data.get("content", "")
        start = int(_pick(data, "start_position", "startPosition", default=0))
        return cls(
            id=str(data.get("id", "")),
            page_number=int(_pick(data, "page_number", "pageNumber", default=page_number)),
            content=content,
            start_position=start,
            end_position=int(_pick(
                data, "end_position", "endPosition", default=start + len(content)
            )),
            line_count=int(_pick(data, "line_count", "lineCount", default=1)),
            confidence=float(data.get("confidence", 0.8)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "page_number": self.page_number,
            "content": self.content,
            "start_position": self.start_position,
            "end_position": self.end_position,
            "line_count": self.line_count,
            "confidence": self.confidence,
        }


@dataclass
class ParsedPage:
    page_number: int
    content: str = ""
    width: Optional[float] = None
    height: Optional[float] = None
    text_elements: List[TextElement] = field(default_factory=list)
    paragraphs: List[ParsedParagraph] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedPage":
        page_number = int(_pick(data, "page_number", "pageNumber", default=1))
        return cls(
            page_number=page_number,
            content=data.get("content", "") or "",
            width=data.get("width"),
            height=data.get("height"),
            text_elements=[
                TextElement.from_dict(e)
                for e in _pick(data, "text_elements", "textElements", default=[])
            ],
            paragraphs=[
                ParsedParagraph.from_dict(p, page_number)
                for p in data.get("paragraphs") or []
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "content": self.content,
            "width": self.width,
            "height": self.height,
            "text_elements": [e.to_dict() for e in self.text_elements],
            "paragraphs": [p.to_dict() for p in self.paragraphs],
        }


@dataclass
class DocumentMetadata:
    pages: int = 0
    title: Optional[str] = None
    author: Optional[str] = None
    subject: Optional[str] = None
    creator: Optional[str] = None
    producer: Optional[str] = None
    creation_date: Optional[str] = None
    modification_date: Optional[str] = None
    file_size: Optional[int] = None
    keywords: List[str] = field(default_factory=list)
    language: Optional[str] = None
    page_size: Optional[Dict[str, Any]] = None  # width / height / unit

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DocumentMetadata":
        data = data or {}
        keywords = data.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [k.strip() for k in keywords.split(",") if k.strip()]
        creation = _pick(data, "creation_date", "creationDate")
        modification = _pick(data, "modification_date", "modificationDate")
        return cls(
            pages=int(data.get("pages", 0) or 0),
            title=data.get("title"),
            author=data.get("author"),
            subject=data.get("subject"),
            creator=data.get("creator"),
            producer=data.get("producer"),
            creation_date=str(creation) if creation is not None else None,
            modification_date=str(modification) if modification is not None else None,
            file_size=_pick(data, "file_size", "fileSize"),
            keywords=list(keywords),
            language=data.get("language"),
            page_size=_pick(data, "page_size", "pageSize"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pages": self.pages,
            "title": self.title,
            "author": self.author,
            "subject": self.subject,
            "creator": self.creator,
            "producer": self.producer,
            "creation_date": self.creation_date,
            "modification_date": self.modification_date,
            "file_size": self.file_size,
            "keywords": list(self.keywords),
            "language": self.language,
            "page_size": self.page_size,
        }


@dataclass
class ParsedDocument:
    """Output of an upstream PDF parser; the Graph Builder's only input."""
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    pages: List[ParsedPage] = field(default_factory=list)
    full_text: str = ""

    @property
    def paragraph_count(self) -> int:
        return sum(len(p.paragraphs) for p in self.pages)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParsedDocument":
        pages = [ParsedPage.from_dict(p) for p in data.get("pages") or []]
        metadata = DocumentMetadata.from_dict(data.get("metadata"))
        if not metadata.pages:
            metadata.pages = len(pages)
        full_text = _pick(data, "full_text", "fullText")
        if full_text is None:
            full_text = "\n\n".join(p.content for p in pages)
        return cls(metadata=metadata, pages=pages, full_text=full_text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "pages": [p.to_dict() for p in self.pages],
            "full_text": self.full_text,
        }
