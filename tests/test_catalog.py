from datetime import datetime, timedelta, timezone

from catalog import (
    DEFAULT_CATEGORIES,
    STATUS_PROCESSING,
    Catalog,
    sanitize_handle,
    slugify,
)


def test_sanitize_handle():
    assert sanitize_handle("Khan Academy!") == "khan-academy"
    assert sanitize_handle("3Blue1Brown") == "3blue1brown"
    assert len(sanitize_handle("x" * 80)) == 50


def test_slugify():
    assert slugify("Computer Science") == "computer-science"


def test_default_categories_are_seeded():
    catalog = Catalog()
    assert [c.name for c in catalog.list_categories()] == DEFAULT_CATEGORIES
    assert catalog.find_category("computer-science").name == "Computer Science"


def test_add_category_is_idempotent_by_slug():
    catalog = Catalog(categories=[])
    first = catalog.add_category("Physics")
    assert catalog.add_category("physics") is first


def test_youtube_channel_created_with_unique_handles():
    catalog = Catalog()
    first = catalog.get_or_create_youtube_channel("Khan Academy", "https://img/a.jpg")
    again = catalog.get_or_create_youtube_channel("Khan Academy")
    other = catalog.get_or_create_youtube_channel("Khan Academy!")

    assert again is first
    assert first.handle == "@khan-academy"
    assert other.handle == "@khan-academy_1"
    assert first.avatar == "https://img/a.jpg"
    assert first.profile_id is None


def test_youtube_channel_avatar_backfilled_only_when_missing():
    catalog = Catalog()
    channel = catalog.get_or_create_youtube_channel("MIT OpenCourseWare")
    assert channel.avatar is None

    catalog.get_or_create_youtube_channel("MIT OpenCourseWare", "https://img/first.jpg")
    catalog.get_or_create_youtube_channel("MIT OpenCourseWare", "https://img/second.jpg")

    assert channel.avatar == "https://img/first.jpg"


def test_profile_usernames_are_unique():
    catalog = Catalog()
    alice = catalog.get_or_create_profile("user-1", "alice@example.com")
    other_alice = catalog.get_or_create_profile("user-2", "alice@another.org")
    anonymous = catalog.get_or_create_profile("abcdefghijkl")

    assert catalog.get_or_create_profile("user-1", "alice@example.com") is alice
    assert alice.username == "alice"
    assert other_alice.username == "alice_1"
    assert anonymous.username == "user_abcdefgh"


def test_default_channel_for_profile():
    catalog = Catalog()
    profile = catalog.get_or_create_profile("user-1", "alice@example.com")
    catalog.get_or_create_youtube_channel("alice")  # takes @alice

    channel = catalog.get_or_create_default_channel(profile)

    assert channel.name == "alice's Channel"
    assert channel.handle == "@alice_1"
    assert channel.profile_id == profile.id
    assert catalog.get_or_create_default_channel(profile) is channel


def test_list_videos_by_category_newest_first():
    catalog = Catalog()
    channel = catalog.get_or_create_youtube_channel("Prof")
    math = catalog.find_category("mathematics")
    now = datetime.now(timezone.utc)

    old = catalog.add_video("Old", channel, category_id=math.id, created_at=now - timedelta(days=2))
    new = catalog.add_video("New", channel, category_id=math.id, created_at=now)
    other = catalog.add_video("Other", channel, status=STATUS_PROCESSING, created_at=now + timedelta(minutes=1))

    assert catalog.list_videos("mathematics") == [new, old]
    assert catalog.list_videos("All") == [other, new, old]
    assert catalog.list_videos() == [other, new, old]
    assert catalog.list_videos("no-such-category") == []
    assert catalog.get_video(old.id) is old
    assert catalog.get_video("missing") is None
