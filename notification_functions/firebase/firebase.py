import json
import logging
from typing import Optional

import firebase_admin
import google.cloud.firestore
from firebase_admin import credentials, firestore

from ..config import Settings

logger = logging.getLogger(__name__)


class FirebaseServices:
    """
    Owns the Firebase app and Firestore client for one process.

    Constructed once by the hosting process at startup and handed to the
    components that need it; nothing reaches it through module globals.
    """

    def __init__(self, config: Settings, app_name: Optional[str] = None):
        self.config = config
        self.app_name = app_name or config.service_name
        self.app: Optional[firebase_admin.App] = None
        self.firestore_db: Optional[google.cloud.firestore.Client] = None
        self.connect()

    def get_firestore_db(self) -> google.cloud.firestore.Client:
        return self.firestore_db

    def connect(self) -> None:
        try:
            # Try to get an existing app with our name
            self.app = firebase_admin.get_app(self.app_name)
            logger.info(f"Retrieved existing Firebase app: {self.app_name}")
        except ValueError:
            self.app = firebase_admin.initialize_app(
                credential=self._load_credentials(),
                options=self._app_options(),
                name=self.app_name,
            )
            logger.info(f"Initialized Firebase app: {self.app.name}")

        self.firestore_db = firestore.client(self.app)

    def _load_credentials(self):
        cert_json = self.config.firebase_secret
        if not cert_json:
            # Fall back to GOOGLE_APPLICATION_CREDENTIALS / metadata server
            logger.info("FIREBASE_SECRET not set, using application default credentials")
            return credentials.ApplicationDefault()

        cert_dict = json.loads(cert_json)
        if isinstance(cert_dict, str):
            cert_dict = json.loads(cert_dict)
        return credentials.Certificate(cert_dict)

    def _app_options(self) -> dict:
        if self.config.firebase_project_id:
            return {"projectId": self.config.firebase_project_id}
        return {}
