from dococr.ocr.models import BoundingBox, Word
from dococr.ocr.structure import build_lines


def _word(text: str, x0: int, y0: int) -> Word:
    return Word(text=text, bbox=BoundingBox(x0, y0, x0 + 40, y0 + 20), confidence=90)


class TestBuildLines:
    def test_groups_words_into_lines(self) -> None:
        words = [
            _word("Hello", 10, 10),
            _word("World", 60, 10),
            _word("Second", 10, 50),
            _word("Line", 70, 50),
        ]

        lines = build_lines(words)

        assert [ln.text for ln in lines] == ["Hello World", "Second Line"]
        assert [ln.y for ln in lines] == [10, 50]

    def test_orders_lines_top_to_bottom_and_words_left_to_right(self) -> None:
        words = [
            _word("bottom", 10, 200),
            _word("right", 300, 12),
            _word("left", 10, 10),
        ]

        lines = build_lines(words)

        assert [ln.text for ln in lines] == ["left right", "bottom"]
        for line in lines:
            xs = [w.bbox.x0 for w in line.words]
            assert xs == sorted(xs)

    def test_every_word_in_exactly_one_line(self) -> None:
        words = [_word(f"w{i}", (i * 37) % 500, (i * 13) % 120) for i in range(40)]

        lines = build_lines(words)

        placed = [w for ln in lines for w in ln.words]
        assert len(placed) == len(words)
        assert sorted(w.text for w in placed) == sorted(w.text for w in words)

    def test_threshold_is_exclusive(self) -> None:
        lines = build_lines([_word("a", 0, 0), _word("b", 50, 10)], threshold=10)

        assert len(lines) == 2

    def test_no_words(self) -> None:
        assert build_lines([]) == []
