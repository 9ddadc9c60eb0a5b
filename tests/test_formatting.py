"""Tests for Telegram entity to Markdown formatting."""

from types import SimpleNamespace

from telegram import MessageEntity

from memogram.formatting import (
    Annotation,
    EntityKind,
    annotations_from_entities,
    format_content,
)


def _utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


class TestFormatContent:
    """Tests for format_content()."""

    def test_no_annotations_returns_content(self):
        assert format_content("plain *text*", []) == "plain *text*"

    def test_mixed_kinds(self):
        content = "See example.com and bold text link"
        annotations = [
            Annotation(EntityKind.LINK, 4, 11),
            Annotation(EntityKind.BOLD, 20, 4),
            Annotation(EntityKind.ALIASED_LINK, 30, 4, url="https://example.com"),
        ]
        assert format_content(content, annotations) == (
            "See [example.com](example.com) and **bold** text [link](https://example.com)"
        )

    def test_out_of_order_annotations(self):
        annotations = [
            Annotation(EntityKind.BOLD, 11, 4),
            Annotation(EntityKind.ITALIC, 0, 6),
        ]
        assert format_content("Italic and bold", annotations) == "*Italic* and **bold**"

    def test_input_list_not_reordered(self):
        annotations = [
            Annotation(EntityKind.BOLD, 11, 4),
            Annotation(EntityKind.ITALIC, 0, 6),
        ]
        format_content("Italic and bold", annotations)
        assert annotations[0].kind is EntityKind.BOLD

    def test_overlapping_annotation_dropped(self):
        annotations = [
            Annotation(EntityKind.BOLD, 0, 7),
            Annotation(EntityKind.ITALIC, 5, 4),
        ]
        assert format_content("Overlap test", annotations) == "**Overlap** test"

    def test_same_start_shorter_wins(self):
        annotations = [
            Annotation(EntityKind.BOLD, 0, 9),
            Annotation(EntityKind.ITALIC, 0, 4),
        ]
        assert format_content("some text", annotations) == "*some* text"

    def test_unsupported_kind_ignored(self):
        annotations = [
            Annotation(None, 0, 4),
            Annotation(EntityKind.BOLD, 5, 4),
        ]
        assert format_content("code bold", annotations) == "code **bold**"

    def test_whitespace_kept_outside_markers(self):
        # covers " bold "
        annotations = [Annotation(EntityKind.BOLD, 2, 6)]
        assert format_content("a  bold  b", annotations) == "a  **bold**  b"

    def test_all_whitespace_segment_not_wrapped(self):
        annotations = [Annotation(EntityKind.ITALIC, 1, 3)]
        assert format_content("a   b", annotations) == "a   b"

    def test_length_clamped_to_content(self):
        annotations = [Annotation(EntityKind.BOLD, 4, 100)]
        assert format_content("the end", annotations) == "the **end**"

    def test_start_past_end_ignored(self):
        annotations = [Annotation(EntityKind.BOLD, 50, 3)]
        assert format_content("short", annotations) == "short"

    def test_offsets_in_utf16_units(self):
        # 😀 is two UTF-16 code units
        content = "😀 hi there"
        annotations = [Annotation(EntityKind.BOLD, 3, 2)]
        assert format_content(content, annotations) == "😀 **hi** there"

    def test_surrogate_pairs_inside_segment(self):
        content = "go 🚀🚀 now"
        annotations = [Annotation(EntityKind.ITALIC, 3, 4)]
        assert format_content(content, annotations) == "go *🚀🚀* now"

    def test_aliased_link_without_url(self):
        annotations = [Annotation(EntityKind.ALIASED_LINK, 0, 4)]
        assert format_content("link", annotations) == "[link]()"

    def test_uncovered_text_preserved(self):
        content = "Ünïcode 😀 text with bold and italic"
        start_bold = _utf16_len("Ünïcode 😀 text with ")
        start_italic = _utf16_len("Ünïcode 😀 text with bold and ")
        annotations = [
            Annotation(EntityKind.BOLD, start_bold, 4),
            Annotation(EntityKind.ITALIC, start_italic, 6),
        ]
        result = format_content(content, annotations)
        assert result == "Ünïcode 😀 text with **bold** and *italic*"
        assert result.replace("*", "") == content

    def test_never_raises_on_split_surrogate(self):
        # offset 1 lands between the two halves of 😀
        result = format_content("😀x", [Annotation(EntityKind.BOLD, 1, 2)])
        assert isinstance(result, str)


class TestAnnotationsFromEntities:
    """Tests for converting Telegram entities."""

    def test_supported_entities_converted(self):
        entities = [
            MessageEntity(MessageEntity.BOLD, 0, 4),
            MessageEntity(MessageEntity.TEXT_LINK, 5, 4, url="https://memos.example"),
            MessageEntity(MessageEntity.URL, 10, 8),
            MessageEntity(MessageEntity.ITALIC, 19, 2),
        ]
        annotations = annotations_from_entities(entities)
        assert [a.kind for a in annotations] == [
            EntityKind.BOLD,
            EntityKind.ALIASED_LINK,
            EntityKind.LINK,
            EntityKind.ITALIC,
        ]
        assert annotations[1].url == "https://memos.example"

    def test_unsupported_entities_dropped(self):
        entities = [
            MessageEntity(MessageEntity.CODE, 0, 4),
            MessageEntity(MessageEntity.MENTION, 5, 6),
            MessageEntity(MessageEntity.UNDERLINE, 12, 3),
        ]
        assert annotations_from_entities(entities) == []

    def test_plain_objects_accepted(self):
        entity = SimpleNamespace(type="bold", offset=1, length=2)
        assert annotations_from_entities([entity]) == [Annotation(EntityKind.BOLD, 1, 2)]

    def test_none_entities(self):
        assert annotations_from_entities(None) == []

    def test_end_to_end_with_telegram_entities(self):
        entities = [MessageEntity(MessageEntity.BOLD, 6, 5)]
        content = format_content("Hello world", annotations_from_entities(entities))
        assert content == "Hello **world**"
