"""
Record normalizer: raw upstream object -> NftCreate.

Upstream objects come in several incompatible shapes depending on the
collection's Move package:

    {"address": "0x..",
     "asMoveObject": {"contents": {
         "display": {"output": {"name": .., "image_url": .., "description": ..}},
         "json": {"name": .., "image_url": .., "attributes": ..,
                  "collectible": {"name": .., "image_url": .., "attributes": ..}}}}}

Both the name/image lookup and the attribute lookup are expressed as ordered
lists of extraction strategies. Each strategy returns a result or None and
the first non-empty result wins.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from common.errors import ParseError
from common.logging.logger import get_logger
from common.models import Attribute, NftCreate

logger = get_logger("normalizer")


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _non_blank(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


# ---- projections ------------------------------------------------------

def _contents(raw: Dict[str, Any]) -> Dict[str, Any]:
    move_object = _as_dict(raw.get("asMoveObject")) or {}
    return _as_dict(move_object.get("contents")) or {}


def display_projection(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    display = _as_dict(_contents(raw).get("display")) or {}
    return _as_dict(display.get("output"))


def payload_projection(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _as_dict(_contents(raw).get("json"))


def collectible_projection(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    payload = payload_projection(raw) or {}
    return _as_dict(payload.get("collectible"))


# Priority order for collection-level and item-level display fields.
PROJECTIONS: Sequence[Tuple[str, Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]]] = (
    ("display", display_projection),
    ("collectible", collectible_projection),
    ("json", payload_projection),
)


def resolve_field(raw: Dict[str, Any], name: str) -> Optional[str]:
    """First non-blank string value of *name* across PROJECTIONS."""
    for _label, projection in PROJECTIONS:
        value = _non_blank((projection(raw) or {}).get(name))
        if value is not None:
            return value
    return None


def resolve_name_and_image(raw: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    """(name, image_url) from the first projection that has both."""
    for _label, projection in PROJECTIONS:
        fields = projection(raw)
        if not fields:
            continue
        name = _non_blank(fields.get("name"))
        image_url = _non_blank(fields.get("image_url"))
        if name and image_url:
            return name, image_url
    return None


# ---- attribute containers ---------------------------------------------

def _direct_list(source: Any) -> Optional[list]:
    return source if isinstance(source, list) else None


def _nested_list(*path: str) -> Callable[[Any], Optional[list]]:
    def strategy(source: Any) -> Optional[list]:
        node = source
        for key in path:
            node = _as_dict(node)
            if node is None:
                return None
            node = node.get(key)
        return node if isinstance(node, list) else None
    strategy.__name__ = "_".join(path) + "_list"
    return strategy


def _key_value_object(source: Any) -> Optional[list]:
    obj = _as_dict(source)
    if obj is None:
        return None
    data = _as_dict(obj.get("data"))
    if data is not None:
        obj = data
    return [{"key": key, "value": value} for key, value in obj.items()]


ATTRIBUTE_CONTAINERS: Sequence[Callable[[Any], Optional[list]]] = (
    _direct_list,
    _nested_list("contents"),
    _nested_list("fields"),
    _nested_list("map", "contents"),
    _key_value_object,
)


def attribute_source(raw: Dict[str, Any]) -> Any:
    """Raw attribute container: collectible attributes win over top-level ones."""
    collectible = collectible_projection(raw) or {}
    if collectible.get("attributes"):
        return collectible["attributes"]
    payload = payload_projection(raw) or {}
    return payload.get("attributes")


def extract_candidates(source: Any) -> list:
    """First non-empty list produced by ATTRIBUTE_CONTAINERS, else []."""
    if not source:
        return []
    for strategy in ATTRIBUTE_CONTAINERS:
        candidates = strategy(source)
        if candidates:
            return candidates
    return []


# ---- single attribute entries -----------------------------------------

def _entry_key_value(entry: Any) -> Optional[Tuple[Any, Any]]:
    obj = _as_dict(entry)
    if obj is not None and "key" in obj and "value" in obj:
        return obj["key"], obj["value"]
    return None


def _entry_fields(entry: Any) -> Optional[Tuple[Any, Any]]:
    obj = _as_dict(entry)
    if obj is None:
        return None
    return _entry_key_value(obj.get("fields"))


def _entry_pair(entry: Any) -> Optional[Tuple[Any, Any]]:
    if isinstance(entry, (list, tuple)) and len(entry) == 2:
        return entry[0], entry[1]
    return None


ATTRIBUTE_SHAPES: Sequence[Callable[[Any], Optional[Tuple[Any, Any]]]] = (
    _entry_key_value,
    _entry_fields,
    _entry_pair,
)


def parse_attribute(entry: Any) -> Attribute:
    """Normalizes one attribute entry. Raises ParseError if it has no valid shape."""
    for shape in ATTRIBUTE_SHAPES:
        pair = shape(entry)
        if pair is None:
            continue
        key, value = pair
        if _non_blank(key) is None or _non_blank(value) is None:
            raise ParseError(f"attribute key/value must be non-empty strings: {entry!r}")
        return Attribute(key=key, value=value)
    raise ParseError(f"unrecognized attribute structure: {entry!r}")


def extract_attributes(raw: Dict[str, Any], address: str = "?") -> List[Attribute]:
    attributes = []
    for entry in extract_candidates(attribute_source(raw)):
        try:
            attributes.append(parse_attribute(entry))
        except ParseError as e:
            logger.debug(f"[NFT PARSE] Dropping attribute for {address}: {e}")
    return attributes


# ---- record -----------------------------------------------------------

def normalize_nft(raw: Any, collection_type: str) -> Optional[NftCreate]:
    """
    Maps one raw upstream object to an NftCreate, or None if it is unusable.

    Never raises: malformed input is logged and rejected.
    """
    if not isinstance(raw, dict):
        logger.warning(f"[NFT PARSE] Skipping non-object node of type {type(raw).__name__}")
        return None

    address = _non_blank(raw.get("address"))
    if address is None:
        logger.warning("[NFT PARSE] Skipping node without address")
        return None

    if display_projection(raw) is None and payload_projection(raw) is None:
        logger.warning(f"[NFT PARSE] Missing json and display data for {address}")
        return None

    resolved = resolve_name_and_image(raw)
    if resolved is None:
        logger.warning(
            f"[NFT PARSE] Invalid NFT fields for {address}: "
            f"has_display={display_projection(raw) is not None}, "
            f"has_json={payload_projection(raw) is not None}"
        )
        return None

    name, image_url = resolved
    return NftCreate(
        id=address,
        name=name,
        type=collection_type,
        image_url=image_url,
        attributes=extract_attributes(raw, address),
    )
