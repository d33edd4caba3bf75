from bookmarks_worker.imaging.synthesis import (
    ELLIPSIS,
    placeholder_color,
    text_color_for,
    wrap_label,
)


class TestPlaceholderColor:
    def test_is_deterministic(self) -> None:
        assert placeholder_color("example.com") == placeholder_color("example.com")

    def test_ignores_case_and_surrounding_space(self) -> None:
        assert placeholder_color(" Example.COM ") == placeholder_color("example.com")

    def test_channels_are_bytes(self) -> None:
        assert all(0 <= channel <= 255 for channel in placeholder_color("python.org"))


class TestTextColor:
    def test_dark_text_on_light_background(self) -> None:
        assert text_color_for((250, 250, 250)) == (33, 37, 41)

    def test_light_text_on_dark_background(self) -> None:
        assert text_color_for((20, 20, 20)) == (255, 255, 255)


class TestWrapLabel:
    def test_short_domain_is_one_line(self) -> None:
        assert wrap_label("www.example.com", max_chars=16) == ["www.example.com"]

    def test_breaks_after_domain_separators(self) -> None:
        lines = wrap_label("docs.python-guide.example.org", max_chars=12)

        assert lines == ["docs.python-", "guide.", "example.org"]

    def test_hard_splits_overlong_segments(self) -> None:
        lines = wrap_label("abcdefghijklmnopqrst", max_chars=8)

        assert lines == ["abcdefgh", "ijklmnop", "qrst"]

    def test_overflow_ends_with_ellipsis(self) -> None:
        lines = wrap_label("one two three four five six", max_chars=9, max_lines=2)

        assert lines == ["one two", "three" + ELLIPSIS]

    def test_lines_never_exceed_max_chars(self) -> None:
        lines = wrap_label("x" * 200, max_chars=10, max_lines=4)

        assert len(lines) == 4
        assert all(len(line) <= 10 for line in lines)
        assert lines[-1].endswith(ELLIPSIS)
