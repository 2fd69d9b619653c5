from decimal import Decimal

from reminisce.schema import (
    Emotion,
    Identity,
    MemoryEntry,
    initial_history,
    merge_memory,
    merge_tags,
)


def test_emotion_parse_is_lenient():
    assert Emotion.parse("happy") is Emotion.HAPPY
    assert Emotion.parse(" Excited ") is Emotion.EXCITED
    assert Emotion.parse("melancholy") is Emotion.NEUTRAL
    assert Emotion.parse(None) is Emotion.NEUTRAL


def test_merge_tags_puts_new_first_and_caps():
    existing = ["garden", "tea", "church", "dog", "cat", "bingo", "bridge", "knitting"]
    merged = merge_tags(["Tea", "football"], existing, 8)
    assert merged == ["Tea", "football", "garden", "church", "dog", "cat", "bingo", "bridge"]


def test_merge_memory_appends_and_evicts_oldest():
    ada = Identity(name="Ada", history=initial_history("Granddaughter"))
    for i in range(4):
        ada = merge_memory(
            ada,
            MemoryEntry(summary=f"visit {i}", emotion=Emotion.HAPPY),
            max_history=3,
            max_tags=8,
        )
    assert [e.summary for e in ada.history] == ["visit 1", "visit 2", "visit 3"]
    assert ada.last_emotion is Emotion.HAPPY


def test_merge_memory_does_not_touch_the_original():
    ada = Identity(name="Ada", tags=["tea"])
    merged = merge_memory(ada, MemoryEntry(summary="hi"), ["cake"], max_history=0, max_tags=8)
    assert ada.history == [] and ada.tags == ["tea"]
    assert merged.tags == ["cake", "tea"]


def test_identity_item_uses_decimals_and_reads_back():
    ada = Identity(
        name="Ada",
        embedding=[0.25, -0.5],
        bio="Granddaughter",
        contact="555-0100",
        history=[MemoryEntry(summary="Talked about school", emotion=Emotion.EXCITED, transcript_excerpt="x" * 900)],
        tags=["school"],
    )
    item = ada.to_item()
    assert item["embedding"] == [Decimal("0.25"), Decimal("-0.5")]
    assert len(item["history"][0]["transcript"]) == 500
    restored = Identity.from_item(item)
    assert restored.embedding == [0.25, -0.5]
    assert restored.history[0].emotion is Emotion.EXCITED
    assert restored.contact == "555-0100"


def test_new_identity_has_neutral_last_emotion():
    assert Identity(name="Ben").last_emotion is Emotion.NEUTRAL
    assert initial_history("Neighbour")[0].summary == "Initial Bio: Neighbour"
