"""Simple note-string music: MIDI building, MIDI to text, WAV rendering and ear training."""

from __future__ import annotations

import io
import math
import random
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import mido

NOTE_VALUES = {
    "C": 60,
    "Db": 61,
    "D": 62,
    "Eb": 63,
    "E": 64,
    "F": 65,
    "Gb": 66,
    "G": 67,
    "Ab": 68,
    "A": 69,
    "Bb": 70,
    "B": 71,
}

TICKS_PER_QUARTER = 960
DEFAULT_TIMBRE = 40
TEMPO_BPM = 72
VELOCITY = 120
MAX_ROUND = 6

_LENGTH_RE = re.compile(r"-?[0-9]+")
_UINT32 = 0xFFFFFFFF


def octave(base: int, oct: int) -> int:
    """Place a pitch class in an octave (capped at 10), keeping the note at most 127."""
    base &= 0xFF
    oct &= 0xFF
    if oct > 10:
        oct = 10
    if oct == 0:
        return base
    res = (base + 12 * oct) & 0xFF
    if res > 127:
        res -= 12
    return res


def note_name(note: int) -> str:
    """Name of the pitch class of a MIDI note, flats preferred."""
    for name, value in NOTE_VALUES.items():
        if value % 12 == note % 12:
            return name
    return ""


def parse_note(note: str) -> int:
    """MIDI note of a written note such as C#6; the octave defaults to 5."""
    base = 0
    level = 0
    for ch in note.replace(" ", ""):
        if "A" <= ch <= "G":
            base = NOTE_VALUES[ch] % 12
        elif ch == "b":
            base = (base - 1) & 0xFF
        elif ch == "#":
            base = (base + 1) & 0xFF
        elif "0" <= ch <= "9":
            level = (level * 10 + int(ch)) & 0xFF
    if level == 0:
        level = 5
    return octave(base, level)


def _scaled_ticks(length: int) -> int:
    """Ticks of a quarter note times 2**length."""
    if length >= 0:
        factor = (1 << length) if length < 32 else 0
        return (TICKS_PER_QUARTER * factor) & _UINT32
    shift = -length
    if shift >= 32:
        raise ValueError(f"长度<{length}过短")
    return TICKS_PER_QUARTER // (1 << shift)


def build_midi(text: str, timbre: int = DEFAULT_TIMBRE) -> mido.MidiFile:
    """Build a single-track MIDI file from a note string like ``CCGGAAGR``.

    Raises ValueError naming the first character that cannot be parsed.
    """
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0))
    track.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(TEMPO_BPM), time=0))
    track.append(mido.MetaMessage("instrument_name", name="Violin", time=0))
    track.append(mido.Message("program_change", channel=0, program=int(timbre) & 0x7F, time=0))

    data = text.replace(" ", "").encode("utf-8")
    size = len(data)
    i = 0
    delay = 0
    while i < size:
        base = 0
        level = 0
        rest = False
        digits = bytearray()
        while True:
            c = data[i]
            if c == ord("R"):
                rest = True
                i += 1
            elif ord("A") <= c <= ord("G"):
                base = NOTE_VALUES[chr(c)] % 12
                i += 1
            elif c == ord("b"):
                base = (base - 1) & 0xFF
                i += 1
            elif c == ord("#"):
                base = (base + 1) & 0xFF
                i += 1
            elif ord("0") <= c <= ord("9"):
                level = (level * 10 + c - ord("0")) & 0xFF
                i += 1
            elif c == ord("<"):
                i += 1
                while i < size and (data[i] == ord("-") or ord("0") <= data[i] <= ord("9")):
                    digits.append(data[i])
                    i += 1
            else:
                raise ValueError(f"无法解析第{i}个位置的{chr(c)}字符")
            if i >= size or ord("A") <= data[i] <= ord("G") or data[i] == ord("R"):
                break
        raw = digits.decode("ascii")
        length = int(raw) if _LENGTH_RE.fullmatch(raw) else 0
        ticks = _scaled_ticks(length)
        if rest:
            delay = ticks
            continue
        if level == 0:
            level = 5
        key = octave(base, level) & 0x7F
        track.append(mido.Message("note_on", channel=0, note=key, velocity=VELOCITY, time=delay))
        track.append(mido.Message("note_off", channel=0, note=key, velocity=0, time=ticks))
        delay = 0
    track.append(mido.MetaMessage("end_of_track", time=0))

    mid = mido.MidiFile(type=0, ticks_per_beat=TICKS_PER_QUARTER)
    mid.tracks.append(track)
    return mid


def write_midi(path, text: str, timbre: int = DEFAULT_TIMBRE) -> Path:
    """Write the MIDI of text to path, leaving an existing file untouched."""
    target = Path(path)
    if target.exists():
        return target
    build_midi(text, timbre).save(str(target))
    return target


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _pow2(length: float) -> Optional[int]:
    if length <= 0:
        return None
    return _round_half_away(math.log2(length))


def midi_to_text(data: bytes, track: int) -> str:
    """Convert one track of MIDI data back to a note string."""
    try:
        mid = mido.MidiFile(file=io.BytesIO(data))
    except (OSError, EOFError, ValueError, KeyError, IndexError) as err:
        raise ValueError(f"invalid midi data: {err}") from err
    if track < 0 or track >= len(mid.tracks):
        return ""

    parts: list[str] = []
    start = 0.0
    end = 0.0
    start_note = 0
    abs_ticks = 0
    for msg in mid.tracks[track]:
        abs_ticks += msg.time
        if msg.is_meta:
            continue
        is_on = msg.type == "note_on" and msg.velocity > 0
        is_off = msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0)
        if is_on:
            start = float(abs_ticks)
            start_note = msg.note
        if is_off:
            end = float(abs_ticks)
            if start_note == msg.note:
                parts.append(note_name(msg.note))
                level = msg.note // 12
                if level != 5:
                    parts.append(str(level))
                power = _pow2((end - start) / TICKS_PER_QUARTER)
                if power is not None and power >= -4 and power != 0:
                    parts.append(f"<{power}")
                start_note = 0
        if is_on and start > end:
            power = _pow2((start - end) / TICKS_PER_QUARTER)
            if power == 0:
                parts.append("R")
            elif power is not None and power >= -4:
                parts.append(f"R<{power}")
    return "".join(parts)


def render_wav(midi_path) -> str:
    """Render a MIDI file to WAV with timidity and return the WAV path."""
    source = str(midi_path)
    wav = source.replace(".mid", ".wav")
    subprocess.run(
        ["timidity", source, "-Ow", "-o", wav],
        check=True,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
    return wav


def check_timbre(timbre: int) -> int:
    """Validate a General MIDI program number."""
    value = int(timbre)
    if value < 0 or value > 127:
        raise ValueError("音色应该在0~127之间")
    return value


@dataclass(frozen=True)
class Verdict:
    """The result of one answer in an ear-training session."""

    correct: bool
    expected: str
    errors: int
    round_over: bool
    finished: bool


class EarTraining:
    """Five questions of naming a played note, alone or as a team."""

    def __init__(self, team: bool = False, rng=None):
        self.team = team
        self._rng = rng if rng is not None else random.Random()
        self.max_errors = 10 if team else 3
        self.score: dict[int, float] = {}
        self.round = 1
        self.errors = 0
        self.finished = False
        self._new_question()

    def _new_question(self) -> None:
        self.target = 55 + self._rng.randrange(34)
        self.expected = note_name(self.target) + str(self.target // 12)

    def _award(self, user_id: int, points: float) -> None:
        self.score[user_id] = self.score.get(user_id, 0.0) + points

    def answer(self, user_id: int, note: str) -> Verdict:
        """Judge an answer, update the score and move on when the question ends."""
        if self.finished:
            raise RuntimeError("the practice is over")
        correct = parse_note(note) == self.target
        if not correct:
            self.errors += 1
        asked = self.expected
        errors = self.errors
        round_over = correct or self.errors == self.max_errors
        if round_over:
            if self.team:
                if self.errors != self.max_errors:
                    self._award(user_id, 1.0)
            else:
                bonus = {0: 1.0, 1: 0.5, 2: 0.2}.get(self.errors)
                if bonus is not None:
                    self._award(user_id, bonus)
            self.round += 1
            if self.round != MAX_ROUND:
                self.errors = 0
                self._new_question()
            else:
                self.finished = True
        return Verdict(correct, asked, errors, round_over, self.finished)