from unittest.mock import patch

import pytest
from firebase_admin import exceptions, messaging

from notification_functions.notifications.exceptions import InvalidChannelTokenError, TransportError
from notification_functions.notifications.schemas import CHAT_HINTS, ORDER_HINTS
from notification_functions.notifications.transport import FCMTransport

SEND = "notification_functions.notifications.transport.messaging.send"


@pytest.fixture
def fcm():
    return FCMTransport()


def test_send_returns_message_id(fcm):
    with patch(SEND, return_value="projects/p/messages/123") as mock_send:
        message_id = fcm.send("tok-A", "Title", "Body", {"type": "chat"}, CHAT_HINTS)

    assert message_id == "projects/p/messages/123"
    mock_send.assert_called_once()
    message = mock_send.call_args.args[0]
    assert message.token == "tok-A"
    assert message.notification.title == "Title"
    assert message.notification.body == "Body"
    assert message.data == {"type": "chat"}


def test_message_carries_platform_hints(fcm):
    message = fcm.build_message("tok-A", "T", "B", {}, ORDER_HINTS)

    assert message.android.priority == "high"
    assert message.android.notification.priority == "high"
    assert message.android.notification.channel_id == "order_notifications"
    assert message.android.notification.color == "#2196F3"
    assert message.android.notification.icon == "@mipmap/ic_launcher"
    assert message.android.notification.default_sound is True
    assert message.apns.payload.aps.category == "order_update"
    assert message.apns.payload.aps.sound == "notification_sound.aiff"
    assert message.apns.payload.aps.badge == 1


def test_unregistered_token_is_classified(fcm):
    error = messaging.UnregisteredError("Requested entity was not found.")
    with patch(SEND, side_effect=error):
        with pytest.raises(InvalidChannelTokenError) as exc_info:
            fcm.send("tok-A", "T", "B", {}, CHAT_HINTS)

    assert exc_info.value.token == "tok-A"
    assert exc_info.value.cause is error


def test_sender_mismatch_is_classified(fcm):
    with patch(SEND, side_effect=messaging.SenderIdMismatchError("mismatch")):
        with pytest.raises(InvalidChannelTokenError):
            fcm.send("tok-A", "T", "B", {}, CHAT_HINTS)


def test_malformed_registration_token_is_classified(fcm):
    error = exceptions.InvalidArgumentError("The registration token is not a valid FCM registration token")
    with patch(SEND, side_effect=error):
        with pytest.raises(InvalidChannelTokenError):
            fcm.send("bad", "T", "B", {}, CHAT_HINTS)


def test_other_invalid_argument_is_a_transport_error(fcm):
    with patch(SEND, side_effect=exceptions.InvalidArgumentError("Message payload too big")):
        with pytest.raises(TransportError):
            fcm.send("tok-A", "T", "B", {}, CHAT_HINTS)


def test_unavailable_is_a_transport_error(fcm):
    with patch(SEND, side_effect=exceptions.UnavailableError("Service unavailable")):
        with pytest.raises(TransportError) as exc_info:
            fcm.send("tok-A", "T", "B", {}, CHAT_HINTS)

    assert exc_info.value.detail == "Service unavailable"
