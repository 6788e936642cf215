"""
Domain model dataclasses for the NFT indexer.

Read models provide:
- from_row(): classmethod to construct from a database row tuple
- to_dict(): returns the JSON-ready dict served by the API
"""

import json
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List


@dataclass(frozen=True)
class Attribute:
    """A single validated trait: both key and value are non-blank strings."""
    key: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {'key': self.key, 'value': self.value}


def attributes_to_json(attributes: List[Attribute]) -> str:
    return json.dumps([a.to_dict() for a in attributes], ensure_ascii=False)


def attributes_from_json(raw: Optional[str]) -> List[Attribute]:
    """Parses the stored JSON column, skipping entries that are not key/value strings."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(items, list):
        return []
    return [
        Attribute(key=item['key'], value=item['value'])
        for item in items
        if isinstance(item, dict)
        and isinstance(item.get('key'), str)
        and isinstance(item.get('value'), str)
    ]


@dataclass
class NftCreate:
    """Write-only model for INSERT operations (output of the normalizer)."""
    id: str
    name: str
    type: str
    image_url: str
    attributes: List[Attribute] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'image_url': self.image_url,
            'attributes': [a.to_dict() for a in self.attributes],
        }


@dataclass
class Nft:
    """Stored NFT row."""
    id: str
    name: str
    type: str
    rarity: Optional[int]
    image_url: str
    attributes: List[Attribute]
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_row(cls, row: tuple) -> "Nft":
        return cls(
            id=row[0],
            name=row[1],
            type=row[2],
            rarity=row[3],
            image_url=row[4],
            attributes=attributes_from_json(row[5]),
            created_at=row[6],
            updated_at=row[7],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'rarity': self.rarity,
            'image_url': self.image_url,
            'attributes': [a.to_dict() for a in self.attributes],
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


@dataclass
class CollectionCreate:
    """Write-only model for a finished collection."""
    type: str
    name: str
    description: str
    total_supply: int


@dataclass
class Collection:
    """Stored collection row."""
    type: str
    name: str
    description: str
    total_supply: int
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_row(cls, row: tuple) -> "Collection":
        return cls(
            type=row[0],
            name=row[1],
            description=row[2],
            total_supply=row[3],
            created_at=row[4],
            updated_at=row[5],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'name': self.name,
            'description': self.description,
            'total_supply': self.total_supply,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
