# test_api_schemas.py
#
# Imports
from datetime import datetime, timezone
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from tavern_exporter.tavern_api.schemas import ChatMessage, ChatSummary, CharacterRef
from tavern_exporter.tavern_api.utils import normalize_url, parse_page, parse_timestamp, to_epoch_ms
from tavern_test_utils import api_chat, api_character, api_message
#
#######################################################################################################################
#
# Tests

def test_parse_timestamp_accepts_z_suffix_and_epoch_ms():
    parsed = parse_timestamp("2024-05-01T12:00:00.250Z")
    assert parsed == datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)
    assert to_epoch_ms(parse_timestamp(1714564800250)) == 1714564800250
    assert parse_timestamp("yesterday") is None
    assert to_epoch_ms(None) == 0


def test_normalize_url_drops_query_and_fragment():
    assert normalize_url("https://cdn.test/img/a.jpg?width=512#x") == "https://cdn.test/img/a.jpg"
    assert normalize_url("not a url?x=1") == "not a url"


@pytest.mark.parametrize("body", [None, "not json", "[]", '{"error": "bad"}', '{"chats": {}}'])
def test_parse_page_rejects_unusable_bodies(body):
    assert parse_page(body, "chats") is None


def test_parse_page_returns_records():
    assert parse_page('{"chats": [{"uuid": "a"}]}', "chats") == [{"uuid": "a"}]


def test_chat_summary_from_api():
    chat = ChatSummary.from_api(api_chat("c1", "Night walk", 0, [
        api_character("char-1", "Aria", photos=["https://cdn.test/p1.jpg"], backgrounds=["https://cdn.test/b1.jpg"]),
        api_character("char-2", "Bram"),
    ]))
    assert chat.uuid == "c1"
    assert chat.character_names == "Aria, Bram"
    assert chat.character_uuids == {"char-1", "char-2"}
    assert chat.image_count is None
    assert chat.characters[0].foreground_photo_urls == ["https://cdn.test/p1.jpg"]
    assert chat.characters[0].background_photo_urls == ["https://cdn.test/b1.jpg"]


def test_character_ref_defaults_to_placeholder_name():
    assert CharacterRef.from_api({"uuid": "x"}).name == "Character"


def test_chat_message_from_api_bot_with_variations():
    msg = ChatMessage.from_api(api_message(
        "m2", 5, source="bot", text="Hello!", nickname="Aria", character_uuid="char-1",
        variations=[{"uuid": "m1", "message": "Hi"}, {"uuid": "m2", "message": "Hello!"}],
    ))
    assert msg.is_bot
    assert msg.speaker_name == "Aria"
    assert [v.text for v in msg.variations] == ["Hi", "Hello!"]
    assert msg.active_variation_index == 1


def test_chat_message_speakers_and_missing_fields():
    user = ChatMessage.from_api(api_message("m1", 0, text="hi"))
    anonymous_bot = ChatMessage.from_api({"uuid": "m2", "message_source": "bot", "character": {}})
    assert user.speaker_name == "You"
    assert user.variations is None
    assert user.active_variation_index == 0
    assert anonymous_bot.speaker_name == "Character"
    assert anonymous_bot.text == ""
    assert anonymous_bot.timestamp_ms == 0


def test_non_string_fields_fall_back_instead_of_failing():
    msg = ChatMessage.from_api({
        "uuid": "m1", "message_source": "bot", "message": 42, "created_at": "2024-05-01T12:00:00Z",
        "character": {"nickname": 123, "uuid": 7},
    })
    assert msg.speaker_name == "Character"
    assert msg.text == ""
    assert msg.character_uuid is None

    chat = ChatSummary.from_api({"uuid": "c1", "name": 99, "characters": [{"uuid": 5, "name": ["Aria"]}]})
    assert chat.name is None
    assert chat.characters[0].uuid is None
    assert chat.characters[0].name == "Character"


def test_empty_text_to_image_is_treated_as_absent():
    msg = ChatMessage.from_api(api_message("m1", 0, source="bot", text_to_image={}))
    assert msg.text_to_image is None

#
# End of test_api_schemas.py
#######################################################################################################################
