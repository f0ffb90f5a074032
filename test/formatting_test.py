import pytest

from notification_functions.notifications.formatting import (
    coerce_data,
    detect_media_type,
    format_body,
    format_order_body,
    truncate_body,
)


@pytest.mark.parametrize("length", [161, 200, 1000])
def test_long_text_is_cut_to_160_plus_ellipsis(length):
    text = "".join(chr(ord("a") + i % 26) for i in range(length))

    body = truncate_body(text)

    assert len(body) == 163
    assert body.endswith("...")
    assert text.startswith(body[:-3])


@pytest.mark.parametrize("text", ["hi", "x" * 159, "y" * 160])
def test_text_within_limit_is_unchanged(text):
    assert format_body(text) == text


def test_limit_is_configurable():
    assert format_body("abcdef", max_length=3) == "abc..."


@pytest.mark.parametrize("content,expected", [
    ({"imageUrl": "https://x/a.png"}, "Sent a photo"),
    ({"videoUrl": "https://x/a.mp4"}, "Sent a video"),
    ({"audioUrl": "https://x/a.m4a"}, "Sent a voice message"),
    ({"fileUrl": "https://x/a.pdf"}, "Sent a file"),
    ({"mediaType": "image"}, "Sent a photo"),
    ({"type": "video"}, "Sent a video"),
])
def test_empty_text_with_attachment_uses_placeholder(content, expected):
    assert format_body("", detect_media_type(content)) == expected


def test_whitespace_text_counts_as_empty():
    assert format_body("   ", "image") == "Sent a photo"


def test_text_wins_over_attachment():
    assert format_body("look at this", "image") == "look at this"


def test_no_text_and_no_attachment_uses_default():
    assert format_body(None) == "New message"
    assert format_body("", default="New update") == "New update"


def test_text_message_type_is_not_media():
    assert detect_media_type({"type": "text", "text": "hi"}) is None


def test_coerce_data_stringifies_and_drops_none():
    assert coerce_data({"a": 1, "b": None, "c": True, "d": "x", "e": 2.5}) == {
        "a": "1",
        "c": "true",
        "d": "x",
        "e": "2.5",
    }
    assert coerce_data(None) == {}


def test_unknown_order_status_is_reported_verbatim():
    assert format_order_body("refunded", "B", "V") == "Your order status has been updated to refunded"
