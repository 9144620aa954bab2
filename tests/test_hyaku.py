import csv

import pytest

from zbplugins.hyaku import Poem, image_urls, load_poems

HEADER = ["番号", "歌人", "上の句", "下の句", "上の句ひらがな", "下の句ひらがな"]


def _rows(count=100):
    return [[str(i), f"poet{i}", f"k{i}", f"s{i}", f"kk{i}", f"sk{i}"] for i in range(1, count + 1)]


def _write(path, rows):
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        writer.writerows(rows)
    return path


def test_load_poems(tmp_path):
    poems = load_poems(_write(tmp_path / "h.csv", _rows()))
    assert len(poems) == 100
    assert poems[0] == Poem("1", "poet1", "k1", "s1", "kk1", "sk1")
    assert [int(p.number) for p in poems] == list(range(1, 101))


def test_load_poems_wrong_count(tmp_path):
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", _rows(99)))


def test_load_poems_out_of_order(tmp_path):
    rows = _rows()
    rows[3][0], rows[4][0] = rows[4][0], rows[3][0]
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", rows))


def test_load_poems_short_row(tmp_path):
    rows = _rows()
    rows[10] = rows[10][:5]
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", rows))


def test_load_poems_bad_number(tmp_path):
    rows = _rows()
    rows[0][0] = "one"
    with pytest.raises(ValueError):
        load_poems(_write(tmp_path / "h.csv", rows))


def test_poem_str():
    poem = Poem("1", "a", "b", "c", "d", "e")
    lines = str(poem).splitlines()
    assert lines[0] == "●番号：1"
    assert lines[1] == "◉歌人：a"
    assert lines[2] == "○上の句：b"
    assert lines[5] == "◎下の句ひらがな：e"
    assert str(poem).endswith("\n")


def test_image_urls():
    jpg, png = image_urls(7)
    assert jpg.endswith("img/007.jpg")
    assert png.endswith("img/007.png")
    assert jpg[:-3] == png[:-3]


@pytest.mark.parametrize("number", [0, 101, -5])
def test_image_urls_out_of_range(number):
    with pytest.raises(ValueError):
        image_urls(number)