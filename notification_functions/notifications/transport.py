import logging
from typing import Dict, Optional

import firebase_admin
from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError, InvalidArgumentError

from .exceptions import InvalidChannelTokenError, TransportError
from .schemas import PlatformHints

logger = logging.getLogger(__name__)


class FCMTransport:
    """Sends single-device push notifications through Firebase Cloud Messaging."""

    # Errors meaning the token will never be deliverable again
    INVALID_TOKEN_ERRORS = (
        messaging.UnregisteredError,
        messaging.SenderIdMismatchError,
    )

    def __init__(self, app: Optional[firebase_admin.App] = None, dry_run: bool = False):
        """
        Initialize the transport.

        Args:
            app: Firebase app to send with (default app when None)
            dry_run: Validate messages with FCM without delivering them
        """
        self.app = app
        self.dry_run = dry_run

    def build_message(self,
                      token: str,
                      title: str,
                      body: str,
                      data: Dict[str, str],
                      hints: PlatformHints) -> messaging.Message:
        return messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            android=messaging.AndroidConfig(
                priority=hints.android_priority,
                notification=messaging.AndroidNotification(
                    channel_id=hints.android_channel_id,
                    priority=hints.android_notification_priority,
                    default_sound=True,
                    default_vibrate_timings=True,
                    icon=hints.android_icon,
                    color=hints.android_color,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        sound=hints.apns_sound,
                        badge=hints.apns_badge,
                        category=hints.apns_category,
                    ),
                ),
            ),
        )

    def send(self,
             token: str,
             title: str,
             body: str,
             data: Dict[str, str],
             hints: PlatformHints) -> str:
        """
        Send one push notification.

        Returns:
            The FCM message id

        Raises:
            InvalidChannelTokenError: The token is unregistered or malformed
            TransportError: Any other FCM failure
        """
        message = self.build_message(token, title, body, data, hints)

        try:
            message_id = messaging.send(message, dry_run=self.dry_run, app=self.app)
        except self.INVALID_TOKEN_ERRORS as e:
            raise InvalidChannelTokenError(token, str(e), cause=e) from e
        except InvalidArgumentError as e:
            # INVALID_ARGUMENT also covers payload problems; only a bad token invalidates it
            if "registration token" in str(e).lower():
                raise InvalidChannelTokenError(token, str(e), cause=e) from e
            raise TransportError(str(e), cause=e) from e
        except FirebaseError as e:
            logger.error(f"Firebase error sending notification: {str(e)}")
            raise TransportError(str(e), cause=e) from e
        except ValueError as e:
            # Raised by the SDK for messages it refuses to serialize
            raise TransportError(str(e), cause=e) from e

        logger.info(f"Sent FCM message {message_id}")
        return message_id
