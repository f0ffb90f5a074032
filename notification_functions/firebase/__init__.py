from .documents import DocumentChange, FirestoreDocument, decode_fields, decode_value
from .firebase import FirebaseServices

__all__ = [
    "DocumentChange",
    "FirebaseServices",
    "FirestoreDocument",
    "decode_fields",
    "decode_value",
]
