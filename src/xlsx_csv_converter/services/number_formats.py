"""Excel number format display rules.

Renders a typed cell value the way a spreadsheet application shows it for
the number format applied to the cell. Supported format features:

- ``General`` and the text format ``@``, also inside a section with literals
  (``General" kg"``)
- fixed and optional decimals (``0.00``, ``#.##``), digit grouping
  (``#,##0``), thousands scaling (``0,``), percent and scientific notation
- literal prefixes and suffixes (quoted text, ``\\x`` escapes, ``_x``
  padding, ``[$€-407]`` currency tags); colour and locale tags are dropped
- fractions with a whole part (``# ?/?``, ``# ??/??``) or without one
  (``?/?``), and fixed denominators (``# ?/8``)
- up to four sections (positive;negative;zero;text)
- date and time tokens, including ``[h]`` elapsed hours and fractional
  seconds; month and weekday names come from the ``calendar`` module and so
  follow the process locale
"""

from __future__ import annotations

import calendar
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction
from typing import Any

from openpyxl.styles.numbers import is_date_format
from openpyxl.utils.datetime import from_excel, to_excel

GENERAL = "General"
TEXT_FORMAT = "@"

_EXCEL_ZERO_DAY = datetime(1899, 12, 30)
_SECONDS_PER_DAY = 86400
# 9999-12-31 is the last day a serial can represent
_MAX_DATE_SERIAL = 2958466

_FORMAT_TOKEN_RE = re.compile(
    r'"[^"]*"|\\.|_.|\*.|\[[^\]]*\]|am/pm|a/p|y+|m+|d+|h+|s+|\.0+|.',
    re.IGNORECASE,
)
_ELAPSED_RE = re.compile(r"^\[(h+|m+|s+)\]$", re.IGNORECASE)
_NON_DATE_LITERAL_RE = re.compile(
    r'"[^"]*"|\\.|_.|\*.|\[(?!h+\]|m+\]|s+\])[^\]]*\]', re.IGNORECASE
)
_FRACTION_RE = re.compile(
    r"(?:(?P<whole>[#0?,]+) +)?(?P<num>[#0?]+) */ *(?P<den>[#0?]+|[1-9][0-9]*)"
)


@dataclass(frozen=True)
class DisplayRules:
    """Locale-dependent marks used when rendering numbers."""

    decimal_separator: str = "."
    thousands_separator: str = ","


DEFAULT_RULES = DisplayRules()


def format_value(
    value: Any,
    number_format: str | None = GENERAL,
    rules: DisplayRules = DEFAULT_RULES,
) -> str:
    """Render ``value`` as displayed under ``number_format``.

    Args:
        value: Literal or evaluated cell value.
        number_format: Excel number format code; ``None`` means General.
        rules: Decimal and grouping marks.

    Returns:
        The display string. ``None`` renders as an empty string.
    """
    fmt = number_format or GENERAL
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (datetime, date, time, timedelta)):
        return format_temporal(value, fmt, rules)
    if isinstance(value, (int, float, Decimal)):
        return format_number(value, fmt, rules)
    if isinstance(value, str):
        return _format_text(value, fmt)
    return str(value)


def format_number(
    value: float | int | Decimal,
    number_format: str = GENERAL,
    rules: DisplayRules = DEFAULT_RULES,
) -> str:
    """Render a number according to an Excel number format."""
    number = float(value)
    if math.isnan(number) or math.isinf(number):
        return str(value)

    section, signed = _pick_section(_split_sections(number_format or GENERAL), number)
    if _is_general(section):
        text = _format_general(abs(number), rules)
        return f"-{text}" if signed and number < 0 else text
    if not section:
        return ""

    if _is_date_section(section):
        if not 0 <= number < _MAX_DATE_SERIAL:
            text = _format_general(abs(number), rules)
            return f"-{text}" if number < 0 else text
        return format_temporal(number, section, rules)

    fraction = _FRACTION_RE.search(section)
    if fraction and "/" in _NON_DATE_LITERAL_RE.sub("", section):
        return _render_fraction(section, fraction, number, signed, rules)

    prefix, core, suffix = _split_numeric_section(section)
    if not core:
        return prefix + suffix

    magnitude = abs(number) * 100 ** section.count("%")
    if core == GENERAL:
        text = _format_general(magnitude, rules)
    else:
        text = _render_core(core, magnitude, rules)
    nonzero = any(ch in "123456789" for ch in text)
    sign = "-" if signed and number < 0 and nonzero else ""
    return f"{sign}{prefix}{text}{suffix}"


def format_temporal(
    value: datetime | date | time | timedelta | float | int,
    number_format: str,
    rules: DisplayRules = DEFAULT_RULES,
) -> str:
    """Render a date, time, duration or date serial number."""
    section = _split_sections(number_format)[0]
    moment, serial = _to_moment(value)
    if not _is_date_section(section):
        return format_number(serial, number_format, rules)

    tokens = _FORMAT_TOKEN_RE.findall(section)
    twelve_hour = any(token.lower() in ("am/pm", "a/p") for token in tokens)
    has_fraction = any(token.startswith(".0") for token in tokens)
    if not has_fraction:
        moment = (moment + timedelta(microseconds=500_000)).replace(microsecond=0)
    total_seconds = round(serial * _SECONDS_PER_DAY, 6)
    if not has_fraction:
        total_seconds = math.floor(total_seconds + 0.5)

    minute_positions = _minute_token_positions(tokens)
    rendered: list[str] = []
    for position, token in enumerate(tokens):
        lower = token.lower()
        head = lower[0]
        if position in minute_positions:
            rendered.append(_pad(moment.minute, len(token)))
        elif head == "y":
            rendered.append(
                f"{moment.year % 100:02d}" if len(token) <= 2 else f"{moment.year:04d}"
            )
        elif head == "m":
            rendered.append(_render_month(moment, len(token)))
        elif head == "d":
            rendered.append(_render_day(moment, len(token)))
        elif head == "h":
            hour = moment.hour
            if twelve_hour:
                hour = hour % 12 or 12
            rendered.append(_pad(hour, len(token)))
        elif head == "s":
            rendered.append(_pad(moment.second, len(token)))
        elif lower in ("am/pm", "a/p"):
            marker = "AM" if moment.hour < 12 else "PM"
            if lower == "a/p":
                marker = marker[0]
            rendered.append(marker.lower() if token[0].islower() else marker)
        elif token.startswith(".0"):
            digits = len(token) - 1
            fraction = round(moment.microsecond / 1_000_000, digits)
            rendered.append(rules.decimal_separator + f"{fraction:.{digits}f}"[2:])
        elif _ELAPSED_RE.match(token):
            rendered.append(_render_elapsed(token, total_seconds))
        else:
            rendered.append(_render_literal(token))
    return "".join(rendered)


# --------------------------------------------------------------------------- #
# Sections and literals
# --------------------------------------------------------------------------- #


def _split_sections(fmt: str) -> list[str]:
    sections: list[str] = []
    current: list[str] = []
    in_quote = False
    escaped = False
    for ch in fmt:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\" and not in_quote:
            escaped = True
        elif ch == '"':
            in_quote = not in_quote
        elif ch == ";" and not in_quote:
            sections.append("".join(current))
            current = []
            continue
        current.append(ch)
    sections.append("".join(current))
    return sections


def _pick_section(sections: list[str], number: float) -> tuple[str, bool]:
    """Choose the section for ``number``; the flag tells whether to add a sign."""
    if number < 0 and len(sections) >= 2:
        return sections[1], False
    if number == 0 and len(sections) >= 3:
        return sections[2], False
    return sections[0], True


def _is_date_section(section: str) -> bool:
    return is_date_format(_NON_DATE_LITERAL_RE.sub("", section))


def _is_general(section: str) -> bool:
    stripped = section.strip()
    return stripped.lower() == GENERAL.lower() or stripped == TEXT_FORMAT


def _bracket_literal(content: str) -> str:
    # [$€-407] carries a currency symbol; colours, conditions and locales do not
    if content.startswith("$"):
        return content[1:].split("-", 1)[0]
    return ""


def _render_literal(token: str) -> str:
    if token.startswith('"'):
        return token[1:-1]
    if token.startswith("\\"):
        return token[1:]
    if token.startswith("_"):
        return " "
    if token.startswith("*"):
        return ""
    if token.startswith("["):
        return _bracket_literal(token[1:-1])
    return token


def _format_text(text: str, fmt: str) -> str:
    sections = _split_sections(fmt)
    if len(sections) < 4 or "@" not in sections[3]:
        return text
    return "".join(
        text if token == "@" else _render_literal(token)
        for token in _FORMAT_TOKEN_RE.findall(sections[3])
    )


def _split_numeric_section(section: str) -> tuple[str, str, str]:
    """Split a numeric section into literal prefix, digit pattern and suffix."""
    prefix: list[str] = []
    core: list[str] = []
    suffix: list[str] = []
    stage = 0  # 0 = prefix, 1 = digit pattern, 2 = suffix
    i = 0
    length = len(section)
    while i < length:
        ch = section[i]
        nxt = section[i + 1] if i + 1 < length else ""
        if stage == 0 and section[i : i + len(GENERAL)].lower() == GENERAL.lower():
            core.append(GENERAL)
            stage = 2
            i += len(GENERAL)
            continue
        if stage < 2 and (
            ch in "0#?" or (stage == 1 and ch in ".,") or (ch == "." and nxt in "0#?")
        ):
            stage = 1
            core.append(ch)
            i += 1
            continue
        if stage == 1 and ch in "Ee" and nxt in "+-":
            end = i + 2
            while end < length and section[end] in "0#":
                end += 1
            core.append(section[i:end])
            stage = 2
            i = end
            continue

        if ch == '"':
            end = section.find('"', i + 1)
            end = length if end == -1 else end
            literal = section[i + 1 : end]
            i = end + 1
        elif ch == "[":
            end = section.find("]", i)
            end = length if end == -1 else end
            literal = _bracket_literal(section[i + 1 : end])
            i = end + 1
        elif ch in "\\_*" and nxt:
            literal = _render_literal(section[i : i + 2])
            i += 2
        else:
            literal = ch
            i += 1

        if stage == 0:
            prefix.append(literal)
        else:
            stage = 2
            suffix.append(literal)
    return "".join(prefix), "".join(core), "".join(suffix)


# --------------------------------------------------------------------------- #
# Numbers
# --------------------------------------------------------------------------- #


def _format_general(value: float, rules: DisplayRules) -> str:
    if value == int(value) and value < 1e15:
        text = str(int(value))
    else:
        text = f"{value:.10g}"
        if "e" in text:
            mantissa, exponent = text.split("e")
            exp = int(exponent)
            text = f"{mantissa}E{'-' if exp < 0 else '+'}{abs(exp):02d}"
    return text.replace(".", rules.decimal_separator)


def _round_half_up(value: float, places: int) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def _group_digits(digits: str, mark: str) -> str:
    if not mark or len(digits) <= 3:
        return digits
    head = len(digits) % 3 or 3
    groups = [digits[:head]] + [digits[i : i + 3] for i in range(head, len(digits), 3)]
    return mark.join(groups)


def _render_core(core: str, value: float, rules: DisplayRules) -> str:
    mantissa, marker, exponent = core.upper().partition("E")
    if marker:
        return _render_scientific(mantissa, exponent, value, rules)

    pattern = mantissa.rstrip(",")
    value /= 1000 ** (len(mantissa) - len(pattern))
    int_pattern, has_point, frac_pattern = pattern.partition(".")
    frac_pattern = frac_pattern.replace(",", "")
    grouping = "," in int_pattern
    min_int = int_pattern.count("0")
    min_frac = frac_pattern.count("0")
    max_frac = len(frac_pattern)

    rounded = f"{_round_half_up(value, max_frac):f}"
    int_text, _, frac_text = rounded.partition(".")
    frac_text = frac_text.rstrip("0").ljust(min_frac, "0")
    if int_text == "0" and min_int == 0:
        int_text = ""
    int_text = int_text.zfill(min_int)
    if grouping:
        int_text = _group_digits(int_text, rules.thousands_separator)

    if has_point:
        return f"{int_text}{rules.decimal_separator}{frac_text}"
    return int_text


def _render_scientific(
    mantissa: str, exponent: str, value: float, rules: DisplayRules
) -> str:
    _, _, frac_pattern = mantissa.partition(".")
    decimals = len(frac_pattern)
    digits, _, power = f"{value:.{decimals}E}".partition("E")
    exp = int(power)
    exp_sign = "-" if exp < 0 else ("+" if exponent.startswith("+") else "")
    exp_digits = str(abs(exp)).zfill(max(exponent.count("0"), 1))
    return f"{digits.replace('.', rules.decimal_separator)}E{exp_sign}{exp_digits}"


def _render_literals(text: str) -> str:
    return "".join(_render_literal(token) for token in _FORMAT_TOKEN_RE.findall(text))


def _render_fraction(
    section: str,
    match: re.Match[str],
    number: float,
    signed: bool,
    rules: DisplayRules,
) -> str:
    """Render ``number`` as a whole part and a fraction.

    Placeholder denominators (``?/??``) take the closest fraction whose
    denominator has at most as many digits; a literal denominator (``?/8``)
    is kept and the numerator rounded to it. Without a whole-part pattern
    the fraction is improper (``3/2``).
    """
    whole_pattern = match.group("whole") or ""
    den_pattern = match.group("den")
    value = abs(number)
    if den_pattern.isdigit():
        denominator = int(den_pattern)
        numerator = int(_round_half_up(value * denominator, 0))
    else:
        closest = Fraction(value).limit_denominator(10 ** len(den_pattern) - 1)
        numerator, denominator = closest.numerator, closest.denominator

    whole = 0
    if whole_pattern:
        whole, numerator = divmod(numerator, denominator)
    whole_text = str(whole) if whole or "0" in whole_pattern else ""
    if "," in whole_pattern:
        whole_text = _group_digits(whole_text, rules.thousands_separator)

    if numerator == 0 and whole_pattern:
        text = whole_text or "0"
    elif whole_text:
        text = f"{whole_text} {numerator}/{denominator}"
    else:
        text = f"{numerator}/{denominator}"

    sign = "-" if signed and number < 0 and (whole or numerator) else ""
    prefix = _render_literals(section[: match.start()])
    suffix = _render_literals(section[match.end() :])
    return f"{sign}{prefix}{text}{suffix}"


# --------------------------------------------------------------------------- #
# Dates and times
# --------------------------------------------------------------------------- #


def _to_moment(
    value: datetime | date | time | timedelta | float | int,
) -> tuple[datetime, float]:
    """Return the wall-clock moment and the Excel serial for ``value``."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None), to_excel(value.replace(tzinfo=None))
    if isinstance(value, date):
        return datetime.combine(value, time()), to_excel(value)
    if isinstance(value, time):
        return datetime.combine(_EXCEL_ZERO_DAY.date(), value), to_excel(value)
    if isinstance(value, timedelta):
        return _EXCEL_ZERO_DAY + value, value.total_seconds() / _SECONDS_PER_DAY

    serial = float(value)
    converted = from_excel(serial)
    if isinstance(converted, time):
        converted = datetime.combine(_EXCEL_ZERO_DAY.date(), converted)
    return converted, serial


def _pad(number: int, width: int) -> str:
    return f"{number:0{min(width, 2)}d}"


def _minute_token_positions(tokens: list[str]) -> set[int]:
    """Find ``m``/``mm`` tokens that mean minutes rather than months.

    A short ``m`` token is a minute when the nearest date part before it is
    an hour or the nearest one after it is a second.
    """
    parts = [
        (position, token.lower().strip("[]")[0])
        for position, token in enumerate(tokens)
        if token.lower().strip("[]")[:1] in ("y", "m", "d", "h", "s")
        and not token.startswith(('"', "\\", "_", "*"))
    ]
    minutes: set[int] = set()
    for index, (position, head) in enumerate(parts):
        if head != "m" or len(tokens[position]) > 2 or tokens[position].startswith("["):
            continue
        before = parts[index - 1][1] if index > 0 else ""
        after = parts[index + 1][1] if index + 1 < len(parts) else ""
        if before == "h" or after == "s":
            minutes.add(position)
    return minutes


def _render_month(moment: datetime, width: int) -> str:
    if width == 1:
        return str(moment.month)
    if width == 2:
        return f"{moment.month:02d}"
    if width == 3:
        return calendar.month_abbr[moment.month]
    if width == 5:
        return calendar.month_name[moment.month][:1]
    return calendar.month_name[moment.month]


def _render_day(moment: datetime, width: int) -> str:
    if width == 1:
        return str(moment.day)
    if width == 2:
        return f"{moment.day:02d}"
    if width == 3:
        return calendar.day_abbr[moment.weekday()]
    return calendar.day_name[moment.weekday()]


def _render_elapsed(token: str, total_seconds: float) -> str:
    unit = token[1:-1].lower()
    seconds = int(total_seconds)
    if unit[0] == "h":
        amount = seconds // 3600
    elif unit[0] == "m":
        amount = seconds // 60
    else:
        amount = seconds
    return str(amount).zfill(len(unit))
