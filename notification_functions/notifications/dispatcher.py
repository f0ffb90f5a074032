"""
Delivery dispatcher.

Turns one Firestore change event into at most one push send and, for
DeliveryRequest documents, one status write-back:

    change event -> resolve_recipient -> build_payload -> dispatch -> write_back

DeliveryRequest status only moves pending -> sent or pending -> failed.
Events that find a request already in a terminal state do nothing, which
keeps redelivered events harmless.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import google.cloud.firestore
from firebase_admin import firestore
from google.api_core.exceptions import FailedPrecondition

from ..config import Settings, settings as default_settings
from ..users.profiles import RecipientProfileStore
from .exceptions import DispatchError, InvalidChannelTokenError
from .formatting import (
    DEFAULT_BUNDLE_NAME,
    DEFAULT_MESSAGE_BODY,
    DEFAULT_SENDER_NAME,
    DEFAULT_UPDATE_BODY,
    DEFAULT_VENDOR_NAME,
    ORDER_UPDATE_TITLE,
    coerce_data,
    detect_media_type,
    format_body,
    format_order_body,
)
from .schemas import (
    CHAT_HINTS,
    ORDER_HINTS,
    ChatMessageEvent,
    CreationEvent,
    DeliveryRequest,
    DeliveryStatus,
    DispatchOutcome,
    NotificationKind,
    PlatformHints,
    RecipientProfile,
    StatusTransitionEvent,
    TriggerEvent,
)
from .store import DeliveryRequestStore
from .transport import FCMTransport

logger = logging.getLogger(__name__)


def hints_for(kind: Optional[str]) -> PlatformHints:
    if kind == NotificationKind.ORDER_UPDATE.value:
        return ORDER_HINTS
    return CHAT_HINTS


class DeliveryDispatcher:
    """Dispatches push notifications for Firestore change events."""

    def __init__(self,
                 transport: FCMTransport,
                 profiles: RecipientProfileStore,
                 requests: DeliveryRequestStore,
                 firestore_db: google.cloud.firestore.Client,
                 config: Optional[Settings] = None):
        """
        Initialize the dispatcher.

        Args:
            transport: Push transport used for every send
            profiles: User profile store for token lookup and cleanup
            requests: Store for the `notifications` collection
            firestore_db: Firestore client for chat and listing lookups
            config: Settings; the module settings when None
        """
        self.transport = transport
        self.profiles = profiles
        self.requests = requests
        self.firestore_db = firestore_db
        self.config = config or default_settings

    def handle(self, event: TriggerEvent) -> DispatchOutcome:
        """Route a trigger event to its handler"""
        if isinstance(event, CreationEvent):
            return self.handle_creation(event)
        if isinstance(event, StatusTransitionEvent):
            return self.handle_status_transition(event)
        if isinstance(event, ChatMessageEvent):
            return self.handle_chat_message(event)
        raise TypeError(f"Unsupported trigger event: {type(event).__name__}")

    def handle_creation(self, event: CreationEvent) -> DispatchOutcome:
        """
        Dispatch a newly created DeliveryRequest and record the result on it.

        The status is read from the stored document, not the event image,
        so a redelivered event finds the terminal state of the first run.
        Failures are written back as `failed`; the returned outcome lets the
        caller re-signal them to the platform.
        """
        record_ref = self.requests.reference(event.recordId)
        snapshot = record_ref.get()
        if not snapshot.exists:
            logger.info(f"Notification {event.recordId} no longer exists, skipping")
            return self._skipped(event, "record deleted")

        record = DeliveryRequest(**(snapshot.to_dict() or {}))
        if not record.is_pending:
            logger.info(f"Notification {event.recordId} has status {record.status}, skipping")
            return self._skipped(event, f"status is {record.status}")
        event = CreationEvent(recordId=event.recordId, record=record)

        try:
            recipient = self.resolve_recipient(event)
            if recipient is None:
                return self._skipped(event, "no deliverable recipient")

            request = self.build_payload(event, recipient)
            outcome = self.dispatch(request, hints_for(request.type), stored_token=record.recipientToken)
        except Exception as e:
            logger.error(f"Error sending notification {event.recordId}: {str(e)}", exc_info=True)
            outcome = DispatchOutcome.for_failure(str(e))

        self.write_back(record_ref, outcome, last_update_time=snapshot.update_time)
        outcome.recordId = event.recordId
        return outcome

    def handle_status_transition(self, event: StatusTransitionEvent) -> DispatchOutcome:
        """
        Notify the buyer when a chat's order status changes.

        Nothing is written to the chat document; failures are only logged
        and returned for the caller to re-signal.
        """
        if not event.status_changed:
            return self._skipped(event, "status unchanged")

        recipient = self.resolve_recipient(event)
        if recipient is None:
            return self._skipped(event, "no deliverable recipient")

        request = self.build_payload(event, recipient)
        outcome = self.dispatch(request, ORDER_HINTS)

        if outcome.is_failed:
            logger.error(f"Error sending order notification for chat {event.recordId}: {outcome.error}")
        else:
            logger.info(f"Successfully sent order notification: {outcome.messageId}")

        outcome.recordId = event.recordId
        return outcome

    def handle_chat_message(self, event: ChatMessageEvent) -> DispatchOutcome:
        """Queue a DeliveryRequest for the other party of a chat message"""
        recipient = self.resolve_recipient(event)
        if recipient is None:
            return self._skipped(event, "no deliverable recipient")

        request = self.build_payload(event, recipient)
        record_id = self.requests.enqueue(request)
        return DispatchOutcome.for_queued(record_id)

    def resolve_recipient(self, event: TriggerEvent) -> Optional[RecipientProfile]:
        """
        Find who should receive the notification for an event.

        Returns:
            The recipient with a usable push token, or None to skip silently
            (system-authored event, unknown user, or no token on file)
        """
        if isinstance(event, CreationEvent):
            record = event.record
            if self._is_system_actor(record.senderId):
                return None
            recipient = RecipientProfile(id=record.recipientId or "", fcmToken=record.recipientToken)

        elif isinstance(event, ChatMessageEvent):
            sender_id = event.message.get('senderId')
            if self._is_system_actor(sender_id):
                logger.info(f"Message {event.recordId} sent by system actor, skipping")
                return None

            chat = self._get_document(self.config.chats_collection, event.parentId)
            recipient_id = self._other_party(chat, sender_id)
            if not recipient_id:
                logger.warning(f"Sender {sender_id} is not a party of chat {event.parentId}")
                return None
            recipient = self.profiles.get(recipient_id)

        elif isinstance(event, StatusTransitionEvent):
            buyer_id = event.after.get('buyerId')
            recipient = self.profiles.get(buyer_id) if buyer_id else None
            if recipient is None or not recipient.channel_token:
                logger.info(f"No FCM token found for buyer: {buyer_id}")
                return None

        else:
            raise TypeError(f"Unsupported trigger event: {type(event).__name__}")

        if recipient is None or not recipient.channel_token:
            return None
        return recipient

    def build_payload(self, event: TriggerEvent, recipient: RecipientProfile) -> DeliveryRequest:
        """Build the push content for an event and its resolved recipient"""
        max_length = self.config.max_notification_body_length

        if isinstance(event, CreationEvent):
            record = event.record
            data = coerce_data(record.data)
            data.setdefault('type', record.type or NotificationKind.CHAT.value)
            return DeliveryRequest(
                recipientToken=recipient.channel_token,
                title=record.title,
                body=format_body(record.body, detect_media_type(record.data),
                                 default=DEFAULT_MESSAGE_BODY, max_length=max_length),
                data=data,
                status=DeliveryStatus.PENDING.value,
                recipientId=record.recipientId,
                senderId=record.senderId,
                type=data['type'],
            )

        if isinstance(event, ChatMessageEvent):
            sender_id = event.message.get('senderId')
            sender = self.profiles.get(sender_id) if sender_id else None
            sender_name = sender.display_name(DEFAULT_SENDER_NAME) if sender else DEFAULT_SENDER_NAME

            return DeliveryRequest(
                recipientToken=recipient.channel_token,
                title=sender_name,
                body=format_body(event.message.get('text'), detect_media_type(event.message),
                                 default=DEFAULT_MESSAGE_BODY, max_length=max_length),
                data=coerce_data({
                    'type': NotificationKind.CHAT.value,
                    'chatId': event.parentId,
                    'messageId': event.recordId,
                    'senderId': sender_id,
                }),
                status=DeliveryStatus.PENDING.value,
                recipientId=recipient.id,
                senderId=sender_id,
                type=NotificationKind.CHAT.value,
            )

        if isinstance(event, StatusTransitionEvent):
            after = event.after
            status = after.get('status')
            bundle_id = after.get('bundleId')

            bundle = self._get_document(self.config.listings_collection, bundle_id)
            bundle_name = bundle.get('name') or DEFAULT_BUNDLE_NAME
            vendor = self.profiles.get(after.get('vendorId'))
            vendor_name = vendor.display_name(DEFAULT_VENDOR_NAME) if vendor else DEFAULT_VENDOR_NAME

            body_text = format_order_body(status, bundle_name, vendor_name) if status else ""
            return DeliveryRequest(
                recipientToken=recipient.channel_token,
                title=ORDER_UPDATE_TITLE,
                body=format_body(body_text, default=DEFAULT_UPDATE_BODY, max_length=max_length),
                data=coerce_data({
                    'type': NotificationKind.ORDER_UPDATE.value,
                    'orderStatus': status,
                    'chatId': event.recordId,
                    'bundleId': bundle_id,
                }),
                status=DeliveryStatus.PENDING.value,
                recipientId=recipient.id,
                type=NotificationKind.ORDER_UPDATE.value,
            )

        raise TypeError(f"Unsupported trigger event: {type(event).__name__}")

    def dispatch(self,
                 request: DeliveryRequest,
                 hints: PlatformHints = CHAT_HINTS,
                 stored_token: Optional[str] = None) -> DispatchOutcome:
        """
        Make exactly one transport call for a built request.

        An invalid token is cleared from the recipient's profile so later
        events skip them; the send is still reported as failed. No retry.

        Args:
            request: Built request; its token is already trimmed
            hints: Platform presentation settings
            stored_token: The token as stored, used to find profiles when
                the request has no recipientId
        """
        try:
            message_id = self.transport.send(
                request.recipientToken,
                request.title,
                request.body,
                coerce_data(request.data),
                hints,
            )
        except InvalidChannelTokenError as e:
            logger.warning(f"Push token rejected for user {request.recipientId or 'unknown'}: {e.detail}")
            self._clear_channel_token(request, stored_token)
            return DispatchOutcome.for_failure(e.detail, invalid_token=True)
        except DispatchError as e:
            logger.error(f"Error sending notification: {e.detail}")
            return DispatchOutcome.for_failure(e.detail)

        logger.info(f"Successfully sent notification: {message_id}")
        return DispatchOutcome.for_success(message_id)

    def write_back(self,
                   record_ref: google.cloud.firestore.DocumentReference,
                   outcome: DispatchOutcome,
                   last_update_time: Optional[datetime] = None) -> bool:
        """
        Record a terminal outcome on the originating DeliveryRequest.

        Args:
            record_ref: The DeliveryRequest document
            outcome: A sent or failed outcome
            last_update_time: Update time of the pending snapshot; when given,
                the write only lands if the document is unchanged since

        Returns:
            False if the document changed after it was read as pending
        """
        if outcome.is_sent:
            fields = {
                'status': DeliveryStatus.SENT.value,
                'sentAt': firestore.SERVER_TIMESTAMP,
                'messageId': outcome.messageId,
            }
        elif outcome.is_failed:
            fields = {
                'status': DeliveryStatus.FAILED.value,
                'error': outcome.error,
                'failedAt': firestore.SERVER_TIMESTAMP,
            }
        else:
            raise ValueError("Only sent or failed outcomes can be written back")

        option = None
        if last_update_time is not None:
            option = self.firestore_db.write_option(last_update_time=last_update_time)

        try:
            record_ref.update(fields, option=option)
        except FailedPrecondition:
            logger.warning(f"Notification {record_ref.id} changed during dispatch, keeping stored status")
            return False
        return True

    def _clear_channel_token(self, request: DeliveryRequest, stored_token: Optional[str] = None) -> None:
        try:
            if request.recipientId:
                user_ids = [request.recipientId]
            else:
                tokens = {request.recipientToken, stored_token or request.recipientToken}
                user_ids = []
                for token in tokens:
                    user_ids.extend(self.profiles.find_by_channel_token(token))

            for user_id in dict.fromkeys(user_ids):
                self.profiles.clear_channel_token(user_id)
        except Exception as e:
            logger.error(f"Error removing invalid token: {str(e)}")

    def _is_system_actor(self, actor_id: Optional[str]) -> bool:
        return bool(actor_id) and actor_id == self.config.system_actor_id

    @staticmethod
    def _other_party(chat: Dict[str, Any], sender_id: Optional[str]) -> Optional[str]:
        buyer_id = chat.get('buyerId')
        vendor_id = chat.get('vendorId')
        if sender_id and sender_id == buyer_id:
            return vendor_id
        if sender_id and sender_id == vendor_id:
            return buyer_id
        return None

    def _get_document(self, collection: str, doc_id: Optional[str]) -> Dict[str, Any]:
        if not doc_id:
            return {}
        doc = self.firestore_db.collection(collection).document(doc_id).get()
        if not doc.exists:
            return {}
        return doc.to_dict() or {}

    @staticmethod
    def _skipped(event: TriggerEvent, reason: str) -> DispatchOutcome:
        outcome = DispatchOutcome.for_skip(reason)
        outcome.recordId = event.recordId
        return outcome
