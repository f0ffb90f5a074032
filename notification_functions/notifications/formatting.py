from typing import Any, Dict, Optional

ELLIPSIS = "..."
DEFAULT_BODY_LENGTH = 160

DEFAULT_MESSAGE_BODY = "New message"
DEFAULT_UPDATE_BODY = "New update"
DEFAULT_SENDER_NAME = "Someone"
DEFAULT_BUNDLE_NAME = "Data Bundle"
DEFAULT_VENDOR_NAME = "Vendor"
ORDER_UPDATE_TITLE = "Order Update"

MEDIA_PLACEHOLDERS = {
    "image": "Sent a photo",
    "video": "Sent a video",
    "audio": "Sent a voice message",
    "file": "Sent a file",
}

# Message fields that reference an attachment, keyed to their media type
MEDIA_URL_FIELDS = {
    "imageUrl": "image",
    "videoUrl": "video",
    "audioUrl": "audio",
    "fileUrl": "file",
}


def truncate_body(text: str, max_length: int = DEFAULT_BODY_LENGTH) -> str:
    """
    Cut text to max_length characters and mark the cut with an ellipsis.

    Text within the limit is returned unchanged.
    """
    if len(text) > max_length:
        return text[:max_length] + ELLIPSIS
    return text


def detect_media_type(content: Dict[str, Any]) -> Optional[str]:
    """Return the attachment type referenced by a message, if any"""
    media_type = content.get("mediaType") or content.get("type")
    if media_type in MEDIA_PLACEHOLDERS:
        return media_type

    for field, url_media_type in MEDIA_URL_FIELDS.items():
        if content.get(field):
            return url_media_type
    return None


def format_body(text: Optional[str],
                media_type: Optional[str] = None,
                default: str = DEFAULT_MESSAGE_BODY,
                max_length: int = DEFAULT_BODY_LENGTH) -> str:
    """
    Build a notification body from message text.

    Args:
        text: Message text, possibly empty
        media_type: Attachment type when the message carries one
        default: Body used when there is neither text nor attachment
        max_length: Hard limit before truncation

    Returns:
        Body text no longer than max_length plus the ellipsis marker
    """
    if text and text.strip():
        return truncate_body(text, max_length)
    if media_type:
        return MEDIA_PLACEHOLDERS.get(media_type, MEDIA_PLACEHOLDERS["file"])
    return default


def coerce_data(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """FCM data payloads only accept string values; drop empty keys"""
    coerced = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        coerced[str(key)] = str(value)
    return coerced


def format_order_body(status: str, bundle_name: str, vendor_name: str) -> str:
    if status == "processing":
        return f"Your {bundle_name} order is being processed by {vendor_name}"
    if status == "data_sent":
        return f"Your {bundle_name} has been sent successfully by {vendor_name}!"
    if status == "completed":
        return f"Your {bundle_name} order is completed"
    return f"Your order status has been updated to {status}"
