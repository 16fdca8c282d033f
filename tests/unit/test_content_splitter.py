"""Unit tests for splitting generated text into content items."""

import pytest

from kiddo.models.content import ContentType, Medium
from kiddo.parsers.content_splitter import build_items, split_content


class TestSplitContent:
    """Test split_content for each content type."""

    def test_words_one_item_per_line(self):
        assert split_content(ContentType.WORDS, "Dog\nBark\nTail\nPaw") == ["Dog", "Bark", "Tail", "Paw"]

    def test_words_strip_list_markers_and_blank_lines(self):
        raw = "1. Dog\n2) Bark\n\n- Tail\n* Paw\n• Fur\n   \n"
        assert split_content(ContentType.WORDS, raw) == ["Dog", "Bark", "Tail", "Paw", "Fur"]

    def test_sentences_keep_inner_numbers(self):
        raw = "1. The dog has 4 legs.\n2. It barks 2 times."
        assert split_content(ContentType.SENTENCES, raw) == [
            "The dog has 4 legs.",
            "It barks 2 times.",
        ]

    def test_passage_is_single_item(self):
        raw = "Dogs are friendly.\n\nThey love to play."
        assert split_content(ContentType.PASSAGE, raw) == [raw]

    def test_story_per_paragraph(self):
        raw = "Once upon a time.\n\n  \nThe dog ran home.\n\nThe end."
        assert split_content(ContentType.STORY, raw, narrate_paragraphs=True) == [
            "Once upon a time.",
            "The dog ran home.",
            "The end.",
        ]

    @pytest.mark.parametrize("content_type", list(ContentType))
    def test_empty_text_yields_no_items(self, content_type):
        assert split_content(content_type, "   \n\n ") == []

    def test_split_is_deterministic(self):
        raw = "1. Dog\n2. Bark\n3. Tail"
        assert split_content(ContentType.WORDS, raw) == split_content(ContentType.WORDS, raw)

    def test_split_is_idempotent_per_item(self):
        for text in split_content(ContentType.WORDS, "1. Dog\n- Bark"):
            assert split_content(ContentType.WORDS, text) == [text]


class TestBuildItems:
    """Test item construction from raw text."""

    def test_items_are_ordered_and_processing(self):
        items = build_items(ContentType.WORDS, "Dog\nBark\nTail\nPaw")

        assert [item.text for item in items] == ["Dog", "Bark", "Tail", "Paw"]
        assert [item.display_order for item in items] == [0, 1, 2, 3]
        for item in items:
            assert item.is_processing(Medium.IMAGE)
            assert item.is_processing(Medium.AUDIO)
            assert item.image_url is None and item.audio_url is None

    def test_item_ids_are_unique(self):
        items = build_items(ContentType.WORDS, "Dog\nDog\nDog")
        assert len({item.id for item in items}) == 3
