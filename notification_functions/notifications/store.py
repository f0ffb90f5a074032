import logging
from datetime import datetime

import google.cloud.firestore
from firebase_admin import firestore

from .schemas import DeliveryRequest, DeliveryStatus

logger = logging.getLogger(__name__)


class DeliveryRequestStore:
    """Access to the `notifications` collection of DeliveryRequest documents."""

    def __init__(self, firestore_db: google.cloud.firestore.Client, collection: str = "notifications"):
        self.firestore_db = firestore_db
        self.collection = collection

    def reference(self, record_id: str) -> google.cloud.firestore.DocumentReference:
        return self.firestore_db.collection(self.collection).document(record_id)

    def enqueue(self, request: DeliveryRequest) -> str:
        """
        Create a pending DeliveryRequest document.

        The creation trigger on the collection picks it up and dispatches it.

        Returns:
            The new document ID
        """
        document = request.to_firestore()
        document['status'] = DeliveryStatus.PENDING.value
        document.setdefault('timestamp', firestore.SERVER_TIMESTAMP)

        _, doc_ref = self.firestore_db.collection(self.collection).add(document)
        logger.info(f"Queued notification {doc_ref.id} for user {request.recipientId}")
        return doc_ref.id

    def delete_older_than(self, cutoff: datetime, batch_size: int = 500) -> int:
        """
        Delete every request whose `timestamp` is before cutoff.

        Args:
            cutoff: Oldest timestamp to keep
            batch_size: Maximum deletes per write batch

        Returns:
            Number of documents deleted
        """
        query = self.firestore_db.collection(self.collection).where('timestamp', '<', cutoff)

        deleted = 0
        batch = self.firestore_db.batch()
        pending = 0

        for doc in query.stream():
            batch.delete(doc.reference)
            pending += 1
            if pending == batch_size:
                batch.commit()
                deleted += pending
                batch = self.firestore_db.batch()
                pending = 0

        if pending:
            batch.commit()
            deleted += pending

        logger.info(f"Cleaned up {deleted} old notifications")
        return deleted
