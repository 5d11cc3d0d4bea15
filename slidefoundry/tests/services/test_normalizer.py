"""
SlideFoundry - Slide Normalizer Tests
=====================================
"""

import pytest

from slidefoundry.services.generator.models import DEFAULT_AUTHOR, MAX_SLIDES, DeckSlide, SlideType
from slidefoundry.services.generator.normalizer import (
    normalize_slide_content,
    normalize_slide_type,
    normalize_slides,
    to_string_list,
    to_text_value,
)


class TestSlideType:
    """Free-form type names map onto the closed set."""

    @pytest.mark.parametrize("raw,expected", [
        ("title", SlideType.TITLE),
        ("Cover", SlideType.TITLE),
        ("card_grid", SlideType.CARD_GRID),
        ("Pros Cons", SlideType.COMPARISON),
        ("two_columns", SlideType.COMPARISON),
        ("ROADMAP", SlideType.TIMELINE),
        ("Big Quote", SlideType.QUOTE),
        ("matrix", SlideType.TABLE),
        ("foo", SlideType.CARD_GRID),
        (None, SlideType.CARD_GRID),
        (42, SlideType.CARD_GRID),
    ])
    def test_aliases(self, raw, expected):
        assert normalize_slide_type(raw) == expected


class TestValueCoercion:
    """Scalar and list coercion."""

    def test_to_text_value(self):
        assert to_text_value("  hello   world ") == "hello world"
        assert to_text_value(123, "fallback") == "fallback"
        assert to_text_value("   ", "fallback") == "fallback"
        assert to_text_value("x" * 200, max_length=10) == "xxxxxxx..."

    def test_to_string_list_accepts_objects(self):
        value = [
            "Plain",
            {"title": "Speed", "description": "Ships daily"},
            {"title": "Only title"},
            {"text": "From text"},
            {"unrelated": 1},
            7,
        ]
        assert to_string_list(value) == ["Plain", "Speed: Ships daily", "Only title", "From text"]

    def test_to_string_list_caps_items(self):
        assert to_string_list([f"item {i}" for i in range(10)], max_items=3) == ["item 0", "item 1", "item 2"]
        assert to_string_list("not a list") == []


class TestSlideContent:
    """Per-type canonical fields."""

    def test_unknown_type_with_no_content_gets_card_grid_defaults(self):
        """A slide typed "foo" with nothing else becomes a valid empty card grid."""
        slide_type = normalize_slide_type("foo")
        content = normalize_slide_content(slide_type, {}, 1, "Deck")

        assert content == {"title": "Key Points", "items": ["Summary of the key points."]}

    def test_title_defaults_depend_on_position(self):
        opening = normalize_slide_content(SlideType.TITLE, {}, 0, "Atlas")
        closing = normalize_slide_content(SlideType.TITLE, {}, 5, "Atlas")

        assert opening["title"] == "Atlas"
        assert opening["dayLabel"] == "GENERATED DECK"
        assert opening["author"] == DEFAULT_AUTHOR
        assert closing["title"] == "Key Takeaways"
        assert closing["dayLabel"] == "WRAP UP"

    def test_comparison_splits_merged_items(self):
        content = normalize_slide_content(SlideType.COMPARISON, {"items": ["a1", "a2", "b1"]}, 2, "Deck")

        assert content["leftItems"] == ["a1", "a2"]
        assert content["rightItems"] == ["b1"]
        assert content["leftTitle"] == "Option A"

    def test_comparison_never_has_empty_sides(self):
        content = normalize_slide_content(SlideType.COMPARISON, None, 2, "Deck")
        assert content["leftItems"] == ["Key point"]
        assert content["rightItems"] == ["Key point"]

    def test_timeline_from_strings_and_steps(self):
        from_items = normalize_slide_content(SlideType.TIMELINE, {"items": ["Plan", "Build"]}, 1, "Deck")
        from_steps = normalize_slide_content(SlideType.TIMELINE, {"steps": ["Plan"]}, 1, "Deck")

        assert from_items["items"] == [
            {"title": "Step 1", "description": "Plan"},
            {"title": "Step 2", "description": "Build"},
        ]
        assert from_steps["items"] == [{"title": "Step 1", "description": "Plan"}]

    def test_quote_falls_back_to_text_field(self):
        content = normalize_slide_content(SlideType.QUOTE, {"text": "Say less, mean more."}, 3, "Deck")
        assert content == {"quote": "Say less, mean more.", "author": DEFAULT_AUTHOR}

    def test_table_generates_headers(self):
        content = normalize_slide_content(SlideType.TABLE, {"rows": [["a", 1, None]]}, 3, "Deck")

        assert content["headers"] == ["Column 1", "Column 2", "Column 3"]
        assert content["rows"] == [["a", "1", ""]]

    def test_empty_table_gets_placeholder_row(self):
        content = normalize_slide_content(SlideType.TABLE, {}, 3, "Deck")

        assert content["headers"] == ["Item", "Details"]
        assert content["rows"] == [["Summary", "No tabular data found"]]

    def test_card_grid_merges_and_dedupes(self):
        content = normalize_slide_content(
            SlideType.CARD_GRID,
            {"items": ["Speed", "speed"], "bullets": ["Quality"]},
            1,
            "Deck",
        )
        assert content["items"] == ["Speed", "Quality"]


class TestNormalizeSlides:
    """Deck-level normalization."""

    def test_empty_input_yields_placeholder_deck(self):
        slides = normalize_slides([], "Atlas")

        assert [s.type for s in slides] == [SlideType.TITLE, SlideType.CARD_GRID]
        assert slides[0].content["title"] == "Atlas"

    def test_prepends_title(self):
        slides = normalize_slides([{"type": "quote", "content": {"quote": "Hello there"}}], "Atlas")

        assert slides[0].type == SlideType.TITLE
        assert slides[0].content["title"] == "Atlas"
        assert slides[1].type == SlideType.QUOTE

    def test_caps_deck_size(self):
        raw = [{"type": "card-grid", "content": {"items": [f"Point {i}"]}} for i in range(20)]
        slides = normalize_slides(raw, "Atlas")

        assert len(slides) == MAX_SLIDES
        assert slides[0].type == SlideType.TITLE

    def test_ignores_non_slide_items(self):
        slides = normalize_slides(["junk", 3, {"type": "title"}], "Atlas")
        assert len(slides) == 1

    def test_is_idempotent(self):
        raw = [
            DeckSlide(SlideType.CARD_GRID, {"items": ["  Speed  ", "Quality"]}),
            {"type": "timeline", "content": {"items": ["Plan", {"title": "Build", "description": "Make it"}]}},
            {"type": "table", "content": {"rows": [["a", "b"]]}},
        ]
        once = normalize_slides(raw, "Atlas")

        assert normalize_slides(once, "Atlas") == once
