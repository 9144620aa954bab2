import io
import random
import subprocess
from unittest import mock

import mido
import pytest

from zbplugins.midi import (
    NOTE_VALUES,
    EarTraining,
    build_midi,
    check_timbre,
    midi_to_text,
    note_name,
    octave,
    parse_note,
    render_wav,
    write_midi,
)

WRONG = "C1"  # parses to a note far below the practice range


def _bytes(mid):
    buf = io.BytesIO()
    mid.save(file=buf)
    return buf.getvalue()


def _notes(mid):
    return [m.note for m in mid.tracks[0] if m.type == "note_on"]


@pytest.mark.parametrize("name,value", list(NOTE_VALUES.items()))
def test_note_name_matches_table(name, value):
    assert note_name(value) == name
    assert note_name(value + 12) == name


def test_octave_zero_returns_base():
    assert octave(7, 0) == 7


@pytest.mark.parametrize("base", range(12))
def test_octave_invariants(base):
    assert octave(base, 11) == octave(base, 10)
    for oct in range(1, 11):
        res = octave(base, oct)
        assert res <= 127
        assert res % 12 == base


def test_parse_note_default_octave():
    assert parse_note("C") == NOTE_VALUES["C"]
    assert parse_note("C 5") == parse_note("C5")


@pytest.mark.parametrize("n", range(55, 89))
def test_parse_note_round_trip(n):
    assert parse_note(note_name(n) + str(n // 12)) == n


def test_sharp_equals_next_flat():
    assert parse_note("C#6") == parse_note("Db6")


def test_build_midi_structure():
    mid = build_midi("CDEFGAB", 33)
    assert mid.ticks_per_beat == 960
    programs = [m.program for m in mid.tracks[0] if m.type == "program_change"]
    assert programs == [33]
    assert _notes(mid) == [parse_note(c) for c in "CDEFGAB"]


def test_build_midi_rejects_unknown_character():
    with pytest.raises(ValueError, match="无法解析"):
        build_midi("CX", 40)


@pytest.mark.parametrize("text", ["CDEFGAB", "C<1D<-1", "CRD", "C6D4", "CR<1D", "GGFFEEDR"])
def test_text_round_trip(text):
    data = _bytes(build_midi(text, 40))
    result = midi_to_text(data, 0)
    expected = text[:-1] if text.endswith("R") else text
    assert result == expected


def test_accidentals_survive_round_trip_as_notes():
    original = build_midi("C#A#5Eb", 40)
    again = build_midi(midi_to_text(_bytes(original), 0), 40)
    assert _notes(again) == _notes(original)


def test_midi_to_text_missing_track():
    assert midi_to_text(_bytes(build_midi("C", 40)), 3) == ""


def test_midi_to_text_invalid_data():
    with pytest.raises(ValueError):
        midi_to_text(b"not a midi file", 0)


def test_write_midi_keeps_existing(tmp_path):
    path = tmp_path / "song.mid"
    write_midi(path, "CDE", 40)
    first = path.read_bytes()
    write_midi(path, "GGG", 40)
    assert path.read_bytes() == first
    loaded = mido.MidiFile(str(path))
    assert [m.note for m in loaded.tracks[0] if m.type == "note_on"] == [parse_note(c) for c in "CDE"]


def test_render_wav_invokes_timidity():
    with mock.patch("zbplugins.midi.subprocess.run") as run:
        wav = render_wav("/tmp/x_midicreate.mid")
    assert wav == "/tmp/x_midicreate.wav"
    assert run.call_args.args[0] == ["timidity", "/tmp/x_midicreate.mid", "-Ow", "-o", wav]


def test_render_wav_failure():
    err = subprocess.CalledProcessError(1, "timidity")
    with mock.patch("zbplugins.midi.subprocess.run", side_effect=err):
        with pytest.raises(subprocess.CalledProcessError):
            render_wav("a.mid")


@pytest.mark.parametrize("bad", [-1, 128])
def test_check_timbre_rejects(bad):
    with pytest.raises(ValueError, match="0~127"):
        check_timbre(bad)


def test_check_timbre_accepts():
    assert check_timbre(40) == 40


def test_training_question_in_range():
    game = EarTraining(False, random.Random(1))
    assert 55 <= game.target < 89
    assert game.expected == note_name(game.target) + str(game.target // 12)
    assert parse_note(game.expected) == game.target


def test_training_correct_first_try():
    game = EarTraining(False, random.Random(2))
    verdict = game.answer(7, game.expected)
    assert verdict.correct and verdict.round_over
    assert game.score[7] == 1.0
    assert game.round == 2


def test_training_one_mistake_scores_half():
    game = EarTraining(False, random.Random(3))
    wrong = game.answer(7, WRONG)
    assert not wrong.correct and not wrong.round_over and wrong.errors == 1
    game.answer(7, game.expected)
    assert game.score[7] == 0.5


def test_training_three_mistakes_end_question_without_score():
    game = EarTraining(False, random.Random(4))
    asked = game.expected
    verdicts = [game.answer(7, WRONG) for _ in range(3)]
    assert [v.round_over for v in verdicts] == [False, False, True]
    assert verdicts[-1].expected == asked
    assert game.score.get(7, 0.0) == 0.0
    assert game.errors == 0


def test_team_allows_more_mistakes_and_finishes():
    game = EarTraining(True, random.Random(5))
    for _ in range(9):
        assert not game.answer(1, WRONG).round_over
    game.answer(2, game.expected)
    assert game.score[2] == 1.0
    last = None
    for _ in range(4):
        last = game.answer(3, game.expected)
    assert last.finished and game.finished
    assert sum(game.score.values()) == 5.0
    with pytest.raises(RuntimeError):
        game.answer(3, game.expected)