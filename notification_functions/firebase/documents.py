"""
Decoding of Firestore document events delivered as JSON.

Eventarc delivers Firestore triggers with the document images encoded in the
Firestore REST representation, where every field is a typed value such as
``{"stringValue": "hi"}`` or ``{"mapValue": {"fields": {...}}}``.
"""
import base64
import logging
from typing import Any, Dict, List, Optional

from google.api_core.datetime_helpers import from_rfc3339
from pydantic import BaseModel, Field

from ..notifications.exceptions import InvalidEventError

logger = logging.getLogger(__name__)

DOCUMENTS_MARKER = "/documents/"


def decode_value(value: Dict[str, Any]) -> Any:
    """
    Convert a single Firestore typed value into a plain Python value.

    Args:
        value: Typed value mapping with exactly one ``*Value`` key

    Returns:
        The decoded Python value

    Raises:
        InvalidEventError: If the value type is not recognised
    """
    if not isinstance(value, dict) or len(value) != 1:
        raise InvalidEventError(f"Malformed Firestore value: {value!r}")

    kind, raw = next(iter(value.items()))

    if kind == "nullValue":
        return None
    if kind == "booleanValue":
        return bool(raw)
    if kind == "integerValue":
        # int64 values are sent as strings
        return int(raw)
    if kind == "doubleValue":
        return float(raw)
    if kind in ("stringValue", "referenceValue"):
        return raw
    if kind == "timestampValue":
        return from_rfc3339(raw)
    if kind == "bytesValue":
        return base64.b64decode(raw)
    if kind == "geoPointValue":
        return {
            "latitude": raw.get("latitude", 0.0),
            "longitude": raw.get("longitude", 0.0),
        }
    if kind == "arrayValue":
        return [decode_value(v) for v in raw.get("values", [])]
    if kind == "mapValue":
        return decode_fields(raw.get("fields", {}))

    raise InvalidEventError(f"Unsupported Firestore value type: {kind}")


def decode_fields(fields: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Decode a Firestore ``fields`` mapping into a plain dict"""
    return {name: decode_value(value) for name, value in (fields or {}).items()}


class FirestoreDocument(BaseModel):
    """One document image carried by a change event"""
    name: str
    fields: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    createTime: Optional[str] = None
    updateTime: Optional[str] = None

    @property
    def path(self) -> str:
        """Document path relative to the database root, e.g. ``chats/abc``"""
        index = self.name.find(DOCUMENTS_MARKER)
        if index == -1:
            return self.name.strip("/")
        return self.name[index + len(DOCUMENTS_MARKER):]

    @property
    def segments(self) -> List[str]:
        return self.path.split("/")

    @property
    def id(self) -> str:
        return self.segments[-1]

    @property
    def parent_id(self) -> Optional[str]:
        # collection/parent/subcollection/id
        segments = self.segments
        if len(segments) >= 4:
            return segments[-3]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return decode_fields(self.fields)


class UpdateMask(BaseModel):
    fieldPaths: List[str] = Field(default_factory=list)


class DocumentChange(BaseModel):
    """
    A Firestore change event: before image, after image, and changed fields.

    ``oldValue`` is absent for creations and ``value`` is absent for deletions.
    """
    value: Optional[FirestoreDocument] = None
    oldValue: Optional[FirestoreDocument] = None
    updateMask: Optional[UpdateMask] = None

    @property
    def document(self) -> FirestoreDocument:
        """The after image, which every create/update event carries"""
        if self.value is None:
            raise InvalidEventError("Change event carries no document after-image")
        return self.value

    @property
    def record_id(self) -> str:
        return self.document.id

    @property
    def parent_id(self) -> Optional[str]:
        return self.document.parent_id

    def before(self) -> Optional[Dict[str, Any]]:
        if self.oldValue is None:
            return None
        return self.oldValue.to_dict()

    def after(self) -> Dict[str, Any]:
        return self.document.to_dict()
