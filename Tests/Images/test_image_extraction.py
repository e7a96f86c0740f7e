# test_image_extraction.py
#
# Imports
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from tavern_exporter.Images.Image_Extraction import (
    ImageFieldRule, PAYLOAD_RULES, dedupe_images, extract_chat_images, extract_message_images, filter_images,
    is_thumbnail, looks_like_image_url, selectable_images,
)
from tavern_exporter.tavern_api.schemas import CharacterRef, ChatMessage, ImageRecord
from tavern_test_utils import api_character, api_message, ms_at
#
#######################################################################################################################
#
# Helpers

def bot_image_message(uuid, at, payload, text="/image you"):
    return ChatMessage.from_api(api_message(uuid, at, source="bot", text=text, nickname="Aria", text_to_image=payload))


def record(url, caption="c", source="text_to_image.output_image_url"):
    return ImageRecord(url=url, message=caption, timestamp_ms=0, source=source, model="m")


# --- URL heuristics ---

@pytest.mark.parametrize("url", [
    "https://cdn.test/a-resized.jpg", "https://cdn.test/a.jpg?width=256", "https://cdn.test/a.jpg?width%3D512",
    "https://cdn.test/thumbnail/a.jpg", "https://cdn.test/a_small.png", "https://cdn.test/preview.webp",
])
def test_thumbnail_markers(url):
    assert is_thumbnail(url)


def test_full_size_url_is_not_a_thumbnail():
    assert not is_thumbnail("https://cdn.test/full/a.jpg?sig=1")


def test_looks_like_image_url():
    assert looks_like_image_url("https://cdn.test/a.JPG")
    assert looks_like_image_url("http://cdn.test/a.png?x=1")
    assert not looks_like_image_url("https://cdn.test/a.gif")
    assert not looks_like_image_url("ftp://cdn.test/a.jpg")
    assert not looks_like_image_url(42)


# --- Per-message extraction ---

def test_primary_image_record():
    msg = bot_image_message("m1", 10, {
        "output_image_url": "https://cdn.test/primary.jpg", "model_display_name": "Anime XL", "prompt": "a cat",
    }, text="x" * 150)
    (image,) = extract_message_images(msg)
    assert image.url == "https://cdn.test/primary.jpg"
    assert image.source == "text_to_image.output_image_url"
    assert image.model == "Anime XL"
    assert image.message == "x" * 100 + "..."
    assert image.timestamp_ms == ms_at(10)
    assert image.prompt == "a cat"


def test_caption_and_model_placeholders():
    msg = bot_image_message("m1", 0, {"output_image_url": "https://cdn.test/p.jpg"}, text="")
    (image,) = extract_message_images(msg)
    assert image.message == "Generated Image"
    assert image.model == "Unknown Model"


def test_model_falls_back_to_model_field():
    msg = bot_image_message("m1", 0, {"output_image_url": "https://cdn.test/p.jpg", "model": "sdxl"})
    assert extract_message_images(msg)[0].model == "sdxl"


def test_field_scan_finds_strings_arrays_and_nested_objects():
    msg = bot_image_message("m1", 0, {
        "output_image_url": "https://cdn.test/primary.jpg?sig=1",
        "alt_url": "https://cdn.test/alt.jpg",
        "extra": ["https://cdn.test/e0.png", "not a url"],
        "variants": [{"full": "https://cdn.test/v0.webp", "note": "hi"}],
        "echo": "https://cdn.test/primary.jpg?sig=2",
        "thumb_url": "https://cdn.test/a-resized.jpg",
    })
    sources = {image.source: image.url for image in extract_message_images(msg)}
    assert sources == {
        "text_to_image.output_image_url": "https://cdn.test/primary.jpg?sig=1",
        "text_to_image.alt_url": "https://cdn.test/alt.jpg",
        "text_to_image.extra[0]": "https://cdn.test/e0.png",
        "text_to_image.variants[0].full": "https://cdn.test/v0.webp",
    }


def test_known_arrays_accept_objects_and_extensionless_urls():
    msg = bot_image_message("m1", 0, {
        "output_images": [
            {"src": "https://cdn.test/img/12345"},
            "https://cdn.test/img/67890",
            {"thumbnail_url": "https://cdn.test/thumb/1.jpg"},
            {"caption": "no url"},
        ],
    })
    urls = [image.url for image in extract_message_images(msg) if image.source == "text_to_image.output_images"]
    assert urls == ["https://cdn.test/img/12345", "https://cdn.test/img/67890"]


def test_message_without_payload_has_no_images():
    msg = ChatMessage.from_api(api_message("m1", 0, text="hello"))
    assert extract_message_images(msg) == []


def test_custom_field_rules_can_be_supplied():
    def collect_signed(payload):
        if payload.get("signed"):
            yield payload["signed"], "text_to_image.signed"

    rules = (ImageFieldRule("signed", collect_signed),)
    msg = bot_image_message("m1", 0, {"signed": "https://cdn.test/s", "output_image_url": "https://cdn.test/p.jpg"})
    assert [i.url for i in extract_message_images(msg, rules)] == ["https://cdn.test/s"]


# --- Whole chat ---

def test_chat_images_put_character_photos_first_and_sort_messages():
    characters = [CharacterRef.from_api(api_character(
        "char-1", "Aria", photos=["https://cdn.test/fg1.jpg", "/relative.jpg"], backgrounds=["https://cdn.test/bg1.jpg"],
    ))]
    later = bot_image_message("m2", 20, {"output_image_url": "https://cdn.test/second.jpg"})
    earlier = bot_image_message("m1", 10, {"output_image_url": "https://cdn.test/first.jpg"})

    images = extract_chat_images([later, earlier], characters)

    assert [i.url for i in images] == [
        "https://cdn.test/fg1.jpg", "https://cdn.test/bg1.jpg",
        "https://cdn.test/first.jpg", "https://cdn.test/second.jpg",
    ]
    assert images[0].message == "Character Photo 1"
    assert images[0].model == "Character Photo"
    assert images[0].source == "character.photos.foreground"
    assert images[1].message == "Background Photo 1"
    assert images[0].timestamp_ms == ms_at(10)


def test_character_photos_of_empty_chat_use_now():
    characters = [CharacterRef.from_api(api_character("char-1", "Aria", photos=["https://cdn.test/fg.jpg"]))]
    (image,) = extract_chat_images([], characters, now_ms=123456)
    assert image.timestamp_ms == 123456


def test_images_differing_only_by_query_string_are_deduplicated():
    first = bot_image_message("m1", 0, {"output_image_url": "https://cdn.test/same.jpg?token=a"})
    second = bot_image_message("m2", 5, {"output_image_url": "https://cdn.test/same.jpg?token=b"})
    images = extract_chat_images([first, second])
    assert len(images) == 1
    assert images[0].url == "https://cdn.test/same.jpg?token=a"


def test_dedupe_keeps_first_occurrence():
    images = dedupe_images([record("https://a.test/x.jpg?1", "first"), record("https://a.test/x.jpg?2", "second"),
                            record("https://a.test/y.jpg", "third")])
    assert [i.message for i in images] == ["first", "third"]


def test_no_two_results_share_a_normalized_url():
    msg = bot_image_message("m1", 0, {
        "output_image_url": "https://cdn.test/a.jpg",
        "output_images": ["https://cdn.test/a.jpg?v=2", "https://cdn.test/b.jpg", {"url": "https://cdn.test/b.jpg"}],
        "images": ["https://cdn.test/b.jpg?x"],
    })
    images = extract_chat_images([msg])
    normalized = [i.normalized_url for i in images]
    assert len(normalized) == len(set(normalized)) == 2


# --- Filters ---

def test_filter_images_by_caption_substring():
    images = [record("https://a/1.jpg", "/image you please"), record("https://a/2.jpg", "Character Photo 1"),
              record("https://a/3.jpg", "/image face")]
    assert len(filter_images(images, "all")) == 3
    assert len(filter_images(images, None)) == 3
    assert [i.url for i in filter_images(images, "/image you")] == ["https://a/1.jpg"]
    assert [i.url for i in filter_images(images, "Character Photo")] == ["https://a/2.jpg"]


def test_selectable_images_exclude_character_photos():
    images = [record("https://a/1.jpg", source="character.photos.foreground"),
              record("https://a/2.jpg", source="character.photos.background"),
              record("https://a/3.jpg")]
    assert [i.url for i in selectable_images(images)] == ["https://a/3.jpg"]


def test_default_rule_order():
    assert [p.label for p in PAYLOAD_RULES] == ["primary", "field_scan", "known_arrays"]

#
# End of test_image_extraction.py
#######################################################################################################################
