"""
Paper Models
============

큐 메시지와 벡터 저장소 사이를 오가는 논문 레코드 모델

- CandidateRecord: 큐에서 꺼낸 arXiv 항목 (생성 후 불변)
- StoredPoint: Qdrant에 upsert되는 (surrogate id, vector, payload)
- SearchResult: 검색 결과 (레코드 + 점수)
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .errors import MalformedBatchError


@dataclass(frozen=True)
class Author:
    """저자"""
    name: str = ""

    def to_dict(self) -> dict:
        return {'name': self.name}


@dataclass(frozen=True)
class Link:
    """외부 링크 (abs 페이지, pdf, doi 등)"""
    href: str = ""
    rel: str = ""
    type: str = ""

    def to_dict(self) -> dict:
        return {'href': self.href, 'rel': self.rel, 'type': self.type}


@dataclass(frozen=True)
class CandidateRecord:
    """
    수집된 논문 레코드

    id는 소스 내에서 유일하지만 재수집 시 같은 id가 다시 들어올 수 있음.
    """
    id: str
    updated: str = ""
    published: str = ""
    title: str = ""
    summary: str = ""
    authors: tuple[Author, ...] = ()
    comment: str = ""
    links: tuple[Link, ...] = ()
    primary_category: str = ""
    categories: tuple[str, ...] = ()
    doi: str = ""
    journal_ref: str = ""

    @property
    def has_abstract(self) -> bool:
        return bool(self.summary and self.summary.strip())

    @classmethod
    def from_dict(cls, data: dict) -> "CandidateRecord":
        """
        와이어 포맷(JSON 객체) → 레코드. 누락 필드는 빈 값

        Raises:
            MalformedBatchError: authors/links/categories가 배열이 아닌 경우
        """
        authors = tuple(
            Author(name=_as_str(a.get('name')))
            for a in _as_list(data, 'authors')
            if isinstance(a, dict)
        )
        links = tuple(
            Link(
                href=_as_str(l.get('href')),
                rel=_as_str(l.get('rel')),
                type=_as_str(l.get('type')),
            )
            for l in _as_list(data, 'links')
            if isinstance(l, dict)
        )
        categories = tuple(
            _as_str(c) for c in _as_list(data, 'categories') if c is not None
        )

        return cls(
            id=_as_str(data.get('id')),
            updated=_as_str(data.get('updated')),
            published=_as_str(data.get('published')),
            title=_as_str(data.get('title')),
            summary=_as_str(data.get('summary')),
            authors=authors,
            comment=_as_str(data.get('comment')),
            links=links,
            primary_category=_as_str(data.get('primaryCategory')),
            categories=categories,
            doi=_as_str(data.get('doi')),
            journal_ref=_as_str(data.get('journalRef')),
        )

    def to_dict(self) -> dict:
        """레코드 → 와이어 포맷 / Qdrant payload (필드명 동일)"""
        return {
            'id': self.id,
            'updated': self.updated,
            'published': self.published,
            'title': self.title,
            'summary': self.summary,
            'authors': [a.to_dict() for a in self.authors],
            'comment': self.comment,
            'links': [l.to_dict() for l in self.links],
            'primaryCategory': self.primary_category,
            'categories': list(self.categories),
            'doi': self.doi,
            'journalRef': self.journal_ref,
        }


@dataclass
class StoredPoint:
    """Qdrant에 저장되는 포인트"""
    id: str                      # surrogate id (uuid4), 레코드 id와 다름
    vector: list[float]
    payload: dict = field(default_factory=dict)


@dataclass
class SearchResult:
    """검색 결과 단건"""
    record: CandidateRecord
    score: float                 # cosine similarity (높을수록 유사)
    point_id: Optional[str] = None


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_list(data: dict, key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedBatchError(
            f"field '{key}' is {type(value).__name__}, expected array"
        )
    return value


def parse_batch(payload: Union[bytes, str]) -> list[CandidateRecord]:
    """
    큐 메시지 본문(JSON 배열)을 레코드 배치로 변환

    Raises:
        MalformedBatchError: JSON 파싱 실패 또는 배열/객체 구조가 아닌 경우
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise MalformedBatchError(f"invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedBatchError(f"expected JSON array, got {type(data).__name__}")

    records = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise MalformedBatchError(
                f"entry {index} is {type(item).__name__}, expected object"
            )
        records.append(CandidateRecord.from_dict(item))

    return records


def serialize_batch(records: list[CandidateRecord]) -> bytes:
    """레코드 배치 → 큐 메시지 본문(JSON 배열)"""
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False).encode('utf-8')
