import logging
from typing import List, Optional

import google.cloud.firestore
from firebase_admin import firestore
from google.api_core.exceptions import NotFound

from ..notifications.schemas import RecipientProfile

logger = logging.getLogger(__name__)

TOKEN_FIELD = "fcmToken"


class RecipientProfileStore:
    """Read access to user profiles plus push-token cleanup."""

    def __init__(self, firestore_db: google.cloud.firestore.Client, collection: str = "users"):
        self.firestore_db = firestore_db
        self.collection = collection

    def get(self, user_id: str) -> Optional[RecipientProfile]:
        """
        Get a user profile by ID.

        Returns:
            The profile, or None when the user document does not exist
        """
        if not user_id:
            return None

        user_doc = self.firestore_db.collection(self.collection).document(user_id).get()
        if not user_doc.exists:
            return None

        user_data = user_doc.to_dict() or {}
        return RecipientProfile(id=user_id, **{k: v for k, v in user_data.items() if k != "id"})

    def find_by_channel_token(self, token: str) -> List[str]:
        """Return the IDs of users whose stored push token matches"""
        query = self.firestore_db.collection(self.collection).where(TOKEN_FIELD, "==", token)
        return [doc.id for doc in query.stream()]

    def clear_channel_token(self, user_id: str) -> None:
        """
        Remove a user's push token. Clearing an absent token is a no-op.
        """
        user_ref = self.firestore_db.collection(self.collection).document(user_id)
        try:
            user_ref.update({TOKEN_FIELD: firestore.DELETE_FIELD})
            logger.info(f"Cleared invalid push token for user {user_id}")
        except NotFound:
            logger.info(f"User {user_id} not found, no push token to clear")
