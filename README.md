# zbplugins

Building blocks for a group chat bot. Each module holds the logic of one
feature with no chat framework attached, so it can be driven from any front
end or used on its own.

## Modules

| Module | Purpose |
| --- | --- |
| `zbplugins.timerspec` | `Timer`, a reminder record whose month, day, weekday, hour and minute are packed into one integer (`-1` means "every"); `filled_timer` builds one from the groups of a Chinese date phrase, `filled_cron_timer` from a cron expression; `timer_info()` and `timer_id()` give its canonical text and 32-bit id; `chinese_num_to_int` and `chinese_char_to_int` read Chinese or Arabic numbers |
| `zbplugins.schedule` | `next_wake_time(timer, now)`, `should_fire(timer, now)` and `first_week(date, weekday)` for date-based reminders |
| `zbplugins.clock` | `Clock`, which keeps reminders in memory and in an SQLite table, runs each one on a background thread and calls a sender when it fires; `compose_message(timer)` builds the @all message it sends. Cron expressions (five fields, month and weekday names, `@daily`-style descriptors and `@every <duration>`) are understood |
| `zbplugins.manager` | `ManagerStore` (SQLite) for per-group welcome and farewell texts and members admitted through GitHub gists; `welcome_to_cq`, `ban_seconds`, `unescape_forward`, `gist_url`, `parse_join_answer`, `check_new_user`, `apply_verify_option`, `apply_gist_option`, `draw_member` |
| `zbplugins.midi` | Note strings such as `CCGGAAGR` to MIDI (`build_midi`, `write_midi`), MIDI back to text (`midi_to_text`), WAV rendering (`render_wav`), `parse_note`, `note_name`, `octave`, `check_timbre`, and the `EarTraining` game |
| `zbplugins.holiday` | `Holiday.describe(now)`, `parse_holiday(name, "days_year_month_day")`, `weekend_message`, `moyu_message` |
| `zbplugins.nsfw` | `Scores` and the wording of a verdict: `judge`, `auto_judge` |
| `zbplugins.hyaku` | The Ogura Hyakunin Isshu: `Poem`, `load_poems(path)` for the 100-row CSV table, `image_urls(number)` |
| `zbplugins.github` | Repository search through the GitHub API: `search_repo`, `format_repo`, `search_url`, `fetch`, `notnull` |
| `zbplugins.nbnhhsh` | Guessing what an abbreviation stands for: `guess`, `extract_guesses` |
| `zbplugins.jandan` | `PictureStore`, an SQLite store of picture URLs keyed by `picture_id` (CRC-64, ISO table); `add_page` stops at the first URL already known |
| `zbplugins.wife` | `WifeGallery`, a per-group picture folder named by `group_folder` (base 36), with a draw fixed per nickname and day (`pick_index`) and `clean_wife_name` |
| `zbplugins.localsetu` | `SetuIndex`, an SQLite index of local picture folders, one table per folder, each picture keyed by `difference_hash`; `is_image_name` |

## Examples

Reminders from a date phrase:

```python
from datetime import datetime

from zbplugins.timerspec import chinese_num_to_int, filled_timer
from zbplugins.schedule import next_wake_time

chinese_num_to_int("二十")   # 20

timer = filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False)
print(timer.timer_info(), timer.timer_id())
print(next_wake_time(timer, datetime.now()))
```

Keeping reminders across restarts. The sender is called with the bot id,
the group id and the message segments:

```python
from zbplugins.clock import Clock

with Clock("timers.db", sender=print) as clock:
    clock.register_timer(timer, True)
    print(clock.list_timers(0))
```

Filling in a welcome template:

```python
from zbplugins.manager import welcome_to_cq

welcome_to_cq("欢迎{at}加入{groupname}", 123, "nick", 456, "group")
# '欢迎[CQ:at,qq=123]加入group'
```

Writing a tune to a MIDI file:

```python
from zbplugins.midi import write_midi

write_midi("twinkle.mid", "CCGGAAGR FFEEDDCR", 40)
```

`render_wav` converts a MIDI file to WAV by running the `timidity`
program, which must be installed and on the `PATH`.

## What it does not do

- It does not connect to any chat service and has no command handlers or
  message routing; the caller matches commands and sends the results.
- It fetches nothing by itself except in `github.search_repo`,
  `github.fetch` and `nbnhhsh.guess`. Holiday records, the poem table,
  classifier scores, gist contents (through the `fetch` argument of
  `check_new_user`) and crawled picture links must be supplied by the caller.
- It has no command-line program.

## Requirements

Python 3.10 or newer, with `mido`, `requests` and `pillow`. The tests use
`pytest`, declared in the `test` extra.