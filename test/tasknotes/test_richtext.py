"""Tests for rich-text content helpers and timestamp formatting."""

from datetime import timezone, timedelta

from tasknotes.formatting import format_task_date, INVALID_DATE
from tasknotes.richtext import is_blank_html, plain_text, preview_text, sanitize_html


class TestSanitizeHtml:

    def test_keeps_editor_markup(self):
        html = "<h1>Plan</h1><p><strong>bold</strong> <em>it</em> <s>old</s></p><ol><li>one</li></ol>"
        assert sanitize_html(html) == html

    def test_keeps_task_list_attributes(self):
        html = (
            '<ul data-type="taskList"><li data-checked="true" data-type="taskItem">'
            '<label><input checked="checked" type="checkbox"/></label><div><p>done</p></div>'
            '</li></ul>'
        )
        cleaned = sanitize_html(html)
        assert 'data-type="taskList"' in cleaned
        assert 'data-checked="true"' in cleaned
        assert 'type="checkbox"' in cleaned

    def test_strips_scripts_and_handlers(self):
        cleaned = sanitize_html('<p onmouseover="x()" style="color:red">hi</p><script>bad()</script>')
        assert cleaned == "<p>hi</p>"

    def test_unwraps_unknown_tags(self):
        assert sanitize_html('<p><a href="javascript:x">link</a> text</p>') == "<p>link text</p>"

    def test_keeps_data_url_images(self):
        html = '<img alt="cat" src="data:image/png;base64,AAAA" width="120"/>'
        cleaned = sanitize_html(html)
        assert 'src="data:image/png;base64,AAAA"' in cleaned
        assert 'width="120"' in cleaned

    def test_drops_images_with_unsafe_source(self):
        assert sanitize_html('<p>x</p><img src="javascript:alert(1)"/>') == "<p>x</p>"

    def test_drops_non_numeric_dimensions(self):
        cleaned = sanitize_html('<img src="https://example.com/a.png" width="100%"/>')
        assert "width" not in cleaned

    def test_drops_non_checkbox_inputs(self):
        assert sanitize_html('<p>a</p><input type="text" value="x"/>') == "<p>a</p>"

    def test_empty_input(self):
        assert sanitize_html(None) == ""
        assert sanitize_html("") == ""


class TestPlainText:

    def test_blank_editor_output(self):
        assert is_blank_html("<p></p>")
        assert is_blank_html("<p>   </p><p><br/></p>")
        assert is_blank_html(None)

    def test_text_is_not_blank(self):
        assert not is_blank_html("<p>hello</p>")

    def test_image_only_is_not_blank(self):
        assert not is_blank_html('<p><img src="data:image/png;base64,AAAA"/></p>')

    def test_plain_text_collapses_whitespace(self):
        assert plain_text("<h1>Title</h1>\n<p>first   line</p><p>second</p>") == "Title first line second"

    def test_preview_truncates_on_word_boundary(self):
        html = "<p>" + "word " * 50 + "</p>"
        preview = preview_text(html, limit=22)
        assert preview == "word word word word…"

    def test_short_preview_untouched(self):
        assert preview_text("<p>short note</p>") == "short note"


class TestFormatTaskDate:

    def test_formats_in_given_timezone(self):
        assert format_task_date("2026-10-06T15:04:00+00:00", tz=timezone.utc) == "Oct 6, 2026, 03:04 PM"

    def test_converts_timezone(self):
        tz = timezone(timedelta(hours=2))
        assert format_task_date("2026-10-06T23:30:00+00:00", tz=tz) == "Oct 7, 2026, 01:30 AM"

    def test_accepts_trailing_z(self):
        assert format_task_date("2026-01-02T09:05:00Z", tz=timezone.utc) == "Jan 2, 2026, 09:05 AM"

    def test_empty_value(self):
        assert format_task_date(None) == ""
        assert format_task_date("") == ""

    def test_invalid_value(self, caplog):
        assert format_task_date("not a date") == INVALID_DATE
        assert "Error formatting date" in caplog.text
