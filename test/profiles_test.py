def test_get_returns_profile_with_trimmed_token(profiles, db):
    db.seed("users", "u1", {"name": "Bob", "fcmToken": " tok-A "})

    profile = profiles.get("u1")

    assert profile.id == "u1"
    assert profile.channel_token == "tok-A"
    assert profile.display_name("Vendor") == "Bob"


def test_get_missing_user_returns_none(profiles):
    assert profiles.get("nobody") is None
    assert profiles.get("") is None


def test_business_name_is_preferred(profiles, db):
    db.seed("users", "v1", {"name": "Vic", "businessName": "Vic's Data"})

    assert profiles.get("v1").display_name("Vendor") == "Vic's Data"


def test_clear_channel_token_is_idempotent(profiles, db):
    db.seed("users", "u1", {"name": "Bob", "fcmToken": "tok-A"})

    profiles.clear_channel_token("u1")
    profiles.clear_channel_token("u1")

    assert db.data("users", "u1") == {"name": "Bob"}
    assert profiles.get("u1").channel_token is None


def test_find_by_channel_token(profiles, db):
    db.seed("users", "u1", {"fcmToken": "tok-A"})
    db.seed("users", "u2", {"fcmToken": "tok-B"})
    db.seed("users", "u3", {"fcmToken": "tok-A"})

    assert sorted(profiles.find_by_channel_token("tok-A")) == ["u1", "u3"]
