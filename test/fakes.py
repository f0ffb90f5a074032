"""In-memory stand-ins for the Firestore client and the push transport."""
import itertools
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition, NotFound

from notification_functions.notifications.exceptions import DispatchError
from notification_functions.notifications.schemas import PlatformHints

_ids = itertools.count(1)
# Monotonic stand-in for Firestore document update times
_clock = itertools.count(1)


def _resolve_sentinels(data: Dict[str, Any]) -> Dict[str, Any]:
    resolved = {}
    for key, value in data.items():
        if value is firestore.SERVER_TIMESTAMP:
            value = datetime.now(timezone.utc)
        resolved[key] = value
    return resolved


class FakeWriteOption:
    def __init__(self, last_update_time: Any):
        self.last_update_time = last_update_time


class FakeSnapshot:
    def __init__(self, reference: "FakeDocumentReference", data: Optional[Dict[str, Any]]):
        self.reference = reference
        self.id = reference.id
        self.update_time = reference.collection.update_times.get(reference.id)
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, collection: "FakeCollection", doc_id: str):
        self.collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> Dict[str, Dict[str, Any]]:
        return self.collection.docs

    def get(self) -> FakeSnapshot:
        self.collection.db.reads.append((self.collection.name, self.id))
        return FakeSnapshot(self, self._docs.get(self.id))

    def set(self, data: Dict[str, Any]) -> None:
        self._docs[self.id] = _resolve_sentinels(data)
        self.collection.touch(self.id)

    def update(self, data: Dict[str, Any], option: Optional[FakeWriteOption] = None) -> None:
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self.collection.name}/{self.id}")
        if option is not None and option.last_update_time != self.collection.update_times.get(self.id):
            raise FailedPrecondition(f"Document changed since it was read: {self.collection.name}/{self.id}")
        self.collection.db.updates.append((self.collection.name, self.id, dict(data)))
        document = self._docs[self.id]
        for key, value in _resolve_sentinels(data).items():
            if value is firestore.DELETE_FIELD:
                document.pop(key, None)
            else:
                document[key] = value
        self.collection.touch(self.id)

    def delete(self) -> None:
        self._docs.pop(self.id, None)
        self.collection.update_times.pop(self.id, None)


class FakeQuery:
    OPERATORS = {
        "==": lambda a, b: a == b,
        "<": lambda a, b: a < b,
    }

    def __init__(self, collection: "FakeCollection", field: str, op: str, value: Any):
        self.collection = collection
        self.field = field
        self.compare = self.OPERATORS[op]
        self.value = value

    def stream(self):
        for doc_id, data in list(self.collection.docs.items()):
            if self.field in data and data[self.field] is not None and self.compare(data[self.field], self.value):
                yield FakeSnapshot(self.collection.document(doc_id), data)


class FakeCollection:
    def __init__(self, db: "FakeFirestore", name: str):
        self.db = db
        self.name = name
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.update_times: Dict[str, int] = {}

    def touch(self, doc_id: str) -> None:
        self.update_times[doc_id] = next(_clock)

    def document(self, doc_id: str) -> FakeDocumentReference:
        return FakeDocumentReference(self, doc_id)

    def add(self, data: Dict[str, Any]):
        ref = self.document(f"auto-{next(_ids)}")
        ref.set(data)
        return datetime.now(timezone.utc), ref

    def where(self, field: str, op: str, value: Any) -> FakeQuery:
        return FakeQuery(self, field, op, value)

    def stream(self):
        for doc_id, data in list(self.docs.items()):
            yield FakeSnapshot(self.document(doc_id), data)


class FakeBatch:
    def __init__(self, db: "FakeFirestore"):
        self.db = db
        self.deletes: List[FakeDocumentReference] = []

    def delete(self, reference: FakeDocumentReference) -> None:
        self.deletes.append(reference)

    def commit(self) -> None:
        self.db.batch_sizes.append(len(self.deletes))
        for reference in self.deletes:
            reference.delete()


class FakeFirestore:
    def __init__(self):
        self.collections: Dict[str, FakeCollection] = {}
        self.reads: List[tuple] = []
        self.updates: List[tuple] = []
        self.batch_sizes: List[int] = []

    def collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    def batch(self) -> FakeBatch:
        return FakeBatch(self)

    def write_option(self, last_update_time: Any = None) -> FakeWriteOption:
        return FakeWriteOption(last_update_time)

    def seed(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.collection(collection).docs[doc_id] = dict(data)
        self.collection(collection).touch(doc_id)

    def data(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.collection(collection).docs.get(doc_id)


class FakeTransport:
    """Records sends; returns a fixed message id or raises a configured error"""

    def __init__(self,
                 message_id: str = "msg-123",
                 error: Optional[DispatchError] = None,
                 on_send: Optional[Callable[[], None]] = None):
        self.message_id = message_id
        self.error = error
        self.on_send = on_send
        self.calls: List[Dict[str, Any]] = []

    def send(self, token: str, title: str, body: str, data: Dict[str, str], hints: PlatformHints) -> str:
        self.calls.append({"token": token, "title": title, "body": body, "data": data, "hints": hints})
        if self.on_send is not None:
            self.on_send()
        if self.error is not None:
            raise self.error
        return self.message_id


class FakeEmailTransport:
    def __init__(self, error: Optional[DispatchError] = None):
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def send_message(self, sender, to, subject, html_body) -> None:
        self.calls.append({"sender": sender, "to": to, "subject": subject, "html_body": html_body})
        if self.error is not None:
            raise self.error


def firestore_document(path: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Encode plain data as an Eventarc Firestore document image"""
    return {
        "name": f"projects/test-project/databases/(default)/documents/{path}",
        "fields": {key: encode_value(value) for key, value in data.items()},
        "createTime": "2024-05-01T10:00:00.000000Z",
        "updateTime": "2024-05-01T10:00:00.000000Z",
    }


def encode_value(value: Any) -> Dict[str, Any]:
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, dict):
        return {"mapValue": {"fields": {k: encode_value(v) for k, v in value.items()}}}
    if isinstance(value, list):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    return {"stringValue": str(value)}
