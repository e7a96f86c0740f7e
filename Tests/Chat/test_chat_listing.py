# test_chat_listing.py
#
# Imports
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from tavern_exporter.Chat.Chat_Listing import (
    chats_in_order, chats_sharing_characters, count_generated_images, fill_missing_image_counts, search_chats,
    shape_chat_list, sort_chats,
)
from tavern_exporter.tavern_api.schemas import ChatMessage, ChatSummary
from tavern_test_utils import SleepRecorder, api_character, api_chat, api_message
#
#######################################################################################################################
#
# Fixtures

ARIA = api_character("char-aria", "Aria")
BRAM = api_character("char-bram", "Bram")
CELIA = api_character("char-celia", "celia")


@pytest.fixture
def chats():
    return [
        ChatSummary.from_api(api_chat("c1", "Tavern night", 100, [ARIA])),
        ChatSummary.from_api(api_chat("c2", "Forest", 300, [BRAM])),
        ChatSummary.from_api(api_chat("c3", "Group", 200, [CELIA, ARIA])),
    ]


def uuids(items):
    return [c.uuid for c in items]


# --- Search ---

def test_search_matches_chat_and_character_names_case_insensitively(chats):
    assert uuids(search_chats(chats, "ARIA")) == ["c1", "c3"]
    assert uuids(search_chats(chats, "forest")) == ["c2"]
    assert uuids(search_chats(chats, "  ")) == ["c1", "c2", "c3"]
    assert search_chats(chats, "nobody") == []


# --- Sorting ---

@pytest.mark.parametrize("mode,expected", [
    ("date_desc", ["c2", "c3", "c1"]),
    ("date_asc", ["c1", "c3", "c2"]),
    ("name_asc", ["c1", "c2", "c3"]),
    ("name_desc", ["c3", "c2", "c1"]),
    ("chars_asc", ["c1", "c2", "c3"]),
])
def test_sort_modes(chats, mode, expected):
    assert uuids(sort_chats(chats, mode)) == expected


def test_image_count_sort_treats_unknown_as_zero(chats):
    chats[0].image_count = 4
    chats[1].image_count = None
    chats[2].image_count = 1
    assert uuids(sort_chats(chats, "image_count_desc")) == ["c1", "c3", "c2"]
    assert uuids(sort_chats(chats, "image_count_asc")) == ["c2", "c3", "c1"]


def test_unknown_sort_mode_falls_back_to_newest_first(chats):
    assert uuids(sort_chats(chats, "bogus")) == ["c2", "c3", "c1"]


def test_sort_returns_a_copy(chats):
    original = list(chats)
    sort_chats(chats, "date_asc")
    assert chats == original


# --- Narrowing ---

def test_chats_sharing_characters(chats):
    assert uuids(chats_sharing_characters(chats, "c1")) == ["c1", "c3"]
    assert uuids(chats_sharing_characters(chats, "c2")) == ["c2"]


def test_sharing_filter_is_a_no_op_for_unknown_chat(chats):
    assert uuids(chats_sharing_characters(chats, "zzz")) == ["c1", "c2", "c3"]
    assert uuids(chats_sharing_characters(chats, None)) == ["c1", "c2", "c3"]


def test_chats_in_order_preserves_given_order(chats):
    assert uuids(chats_in_order(chats, ["c3", "missing", "c1"])) == ["c3", "c1"]


def test_shape_chat_list_prefers_recent_order_over_sort(chats):
    assert uuids(shape_chat_list(chats, search="aria", sort="date_asc")) == ["c1", "c3"]
    assert uuids(shape_chat_list(chats, recent_uuids=["c2", "c1"])) == ["c2", "c1"]


# --- Image counts ---

def test_count_generated_images_counts_messages_with_payload():
    msgs = [
        ChatMessage.from_api(api_message("m1", 0, text="/image you")),
        ChatMessage.from_api(api_message("m2", 1, source="bot", text_to_image={"output_image_url": "https://x/a.jpg"})),
        ChatMessage.from_api(api_message("m3", 2, source="bot", text_to_image={"prompt": "p"})),
    ]
    assert count_generated_images(msgs) == 2


@pytest.mark.asyncio
async def test_fill_missing_image_counts_in_groups():
    summaries = [ChatSummary.from_api(api_chat(f"c{i}", f"Chat {i}", i)) for i in range(12)]
    summaries[0].image_count = 9
    sleeps = SleepRecorder()
    requested = []
    progress = []

    async def count_for(uuid):
        requested.append(uuid)
        return None if uuid == "c5" else int(uuid[1:])

    filled = await fill_missing_image_counts(summaries, count_for, sleep=sleeps,
                                             progress=lambda done, total: progress.append((done, total)))

    assert "c0" not in requested
    assert len(requested) == 11
    assert filled == 10
    assert summaries[0].image_count == 9
    assert summaries[5].image_count is None
    assert summaries[7].image_count == 7
    assert sleeps.calls == [0.3, 0.3]
    assert progress == [(5, 11), (10, 11), (11, 11)]


@pytest.mark.asyncio
async def test_fill_missing_image_counts_noop_when_complete():
    summary = ChatSummary.from_api(api_chat("c1", "Chat", 0))
    summary.image_count = 0
    sleeps = SleepRecorder()

    async def count_for(uuid):
        raise AssertionError("should not be called")

    assert await fill_missing_image_counts([summary], count_for, sleep=sleeps) == 0
    assert sleeps.calls == []

#
# End of test_chat_listing.py
#######################################################################################################################
