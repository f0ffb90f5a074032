"""
One-off migration: give every chat an order transaction.

Chats created before transactions existed carry the order state themselves.
For each chat without an `activeOrderId`, create a `transactions` document
from the chat (and its bundle, when it can be read) and point the chat at it.

Run with:
    python -m notification_functions.migrations.chats_to_transactions
"""
import logging
import sys
from typing import Any, Dict, Optional

import google.cloud.firestore
from firebase_admin import firestore
from pydantic import BaseModel

from ..config import Settings, settings as default_settings
from ..firebase import FirebaseServices
from ..logging_config import setup_logging

logger = logging.getLogger(__name__)


class MigrationSummary(BaseModel):
    migrated: int = 0
    skipped: int = 0


def build_transaction(chat_id: str, chat_data: Dict[str, Any],
                      bundle_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build the transaction document for one chat"""
    transaction_data = {
        'userId': chat_data.get('buyerId'),
        'type': 'bundle_purchase',
        'amount': 0,
        'status': chat_data.get('status') or 'pending',
        'timestamp': chat_data.get('createdAt') or firestore.SERVER_TIMESTAMP,
        'updatedAt': chat_data.get('updatedAt') or firestore.SERVER_TIMESTAMP,
        'bundleId': chat_data.get('bundleId'),
        'recipientNumber': chat_data.get('recipientNumber'),
        'provider': 'unknown',
        'chatId': chat_id,
    }

    if bundle_data:
        transaction_data['bundleName'] = bundle_data.get('name')
        transaction_data['dataAmount'] = bundle_data.get('dataAmount')
        transaction_data['validity'] = bundle_data.get('validity')
        transaction_data['amount'] = bundle_data.get('price') or 0

    return transaction_data


def _load_bundle(firestore_db: google.cloud.firestore.Client,
                 config: Settings,
                 bundle_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not bundle_id:
        return None
    try:
        bundle_doc = firestore_db.collection(config.bundles_collection).document(bundle_id).get()
    except Exception as e:
        logger.warning(f"Could not fetch bundle data for {bundle_id}: {str(e)}")
        return None
    if not bundle_doc.exists:
        return None
    return bundle_doc.to_dict()


def migrate_chats_to_transactions(firestore_db: google.cloud.firestore.Client,
                                  config: Optional[Settings] = None) -> MigrationSummary:
    """
    Create a transaction for every chat that does not have one yet.

    Args:
        firestore_db: Firestore client
        config: Settings with collection names

    Returns:
        Counts of migrated and skipped chats
    """
    config = config or default_settings
    summary = MigrationSummary()

    logger.info("Starting migration...")
    chats = list(firestore_db.collection(config.chats_collection).stream())
    if not chats:
        logger.info("No chats found to migrate.")
        return summary

    logger.info(f"Found {len(chats)} chats to migrate.")

    for chat_doc in chats:
        chat_id = chat_doc.id
        chat_data = chat_doc.to_dict() or {}

        if chat_data.get('activeOrderId'):
            logger.info(f"Chat {chat_id} already has activeOrderId, skipping...")
            summary.skipped += 1
            continue

        bundle_data = _load_bundle(firestore_db, config, chat_data.get('bundleId'))
        transaction_data = build_transaction(chat_id, chat_data, bundle_data)

        _, transaction_ref = firestore_db.collection(config.transactions_collection).add(transaction_data)

        firestore_db.collection(config.chats_collection).document(chat_id).update({
            'activeOrderId': transaction_ref.id,
            'updatedAt': firestore.SERVER_TIMESTAMP,
        })

        logger.info(f"Migrated chat {chat_id} with transaction {transaction_ref.id}")
        summary.migrated += 1

    logger.info(f"Migration completed: {summary.migrated} migrated, {summary.skipped} skipped")
    return summary


def main() -> int:
    setup_logging()
    try:
        firebase = FirebaseServices(default_settings, app_name=f"{default_settings.service_name}-migration")
        migrate_chats_to_transactions(firebase.get_firestore_db())
    except Exception as e:
        logger.critical(f"Migration failed: {str(e)}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
