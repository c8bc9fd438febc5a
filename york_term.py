#!/usr/bin/env python3
"""
University of York term status line.

What it does
- Works out which term (Autumn, Spring, Summer) an instant falls in, using the
  published term dates:
    https://www.york.ac.uk/about/term-dates/
- Prints one short line for a shell prompt or status bar:
    Aut/3/Mon     in term: short name / week of term / day of week
    (Sum/1/Mon)   in the Monday-to-Monday week around a term, but not in term
    n/a           nowhere near a term

Notes / assumptions
- All dates are civil dates in Europe/London; a term starts at local midnight
  of its first day and ends at local midnight after its last day.
- Each term is also widened to whole weeks ("loose" range): back to the Monday
  on or before the first day, forward to the Monday on or after the end.
- When loose ranges overlap, the term that starts later wins.
- Week numbers are ISO week of `now` minus ISO week of the term start, plus
  one. This breaks across a new year, which no term currently spans.
- The built-in table can be replaced with a YAML file (--terms), e.g.:
    terms:
      - name: Autumn
        start: 2023-09-25
        end: 2023-12-01    # last day of term
"""

from __future__ import annotations

import argparse
import dataclasses
import enum
import logging
import sys
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import yaml
from dateutil import parser as dateparser
from dateutil import tz


LONDON = tz.gettz("Europe/London")

logger = logging.getLogger(__name__)


class TermTableError(RuntimeError):
    """The term table contradicts itself (overlapping or inverted terms)."""


class TermName(enum.Enum):
    AUTUMN = "Autumn"
    SPRING = "Spring"
    SUMMER = "Summer"

    @property
    def shortname(self) -> str:
        return self.value[:3]

    @property
    def longname(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "TermName":
        for member in cls:
            if member.value.lower() == text.strip().lower():
                return member
        raise ValueError(f"unknown term name {text!r} (expected Autumn, Spring or Summer)")


# <https://www.york.ac.uk/about/term-dates/>
# (name, first day, last day) -- the last day is usually a Friday.
TERM_DATES: List[Tuple[str, str, str]] = [
    # 2018-19
    ("Autumn", "2018-09-24", "2018-11-30"),
    ("Spring", "2019-01-07", "2019-03-15"),
    ("Summer", "2019-04-15", "2019-06-21"),
    # 2019-20
    ("Autumn", "2019-09-30", "2019-12-06"),
    ("Spring", "2020-01-06", "2020-03-13"),
    ("Summer", "2020-04-14", "2020-06-19"),
    # 2020-21
    ("Autumn", "2020-09-28", "2020-12-03"),
    ("Spring", "2021-01-11", "2021-03-19"),
    ("Summer", "2021-04-19", "2021-06-25"),
    # 2021-22
    ("Autumn", "2021-09-27", "2021-12-03"),
    ("Spring", "2022-01-10", "2022-03-18"),
    ("Summer", "2022-04-19", "2022-06-24"),
    # 2022-23
    ("Autumn", "2022-09-26", "2022-12-02"),
    ("Spring", "2023-01-09", "2023-03-17"),
    ("Summer", "2023-04-17", "2023-06-23"),
    # 2023-24
    ("Autumn", "2023-09-25", "2023-12-01"),
    ("Spring", "2024-01-08", "2024-03-15"),
    ("Summer", "2024-04-15", "2024-06-21"),
    # 2024-25
    ("Autumn", "2024-09-23", "2024-11-29"),
    ("Spring", "2025-01-06", "2025-03-14"),
    ("Summer", "2025-04-22", "2025-06-27"),
    # 2025-26
    ("Autumn", "2025-09-29", "2025-12-05"),
    ("Spring", "2026-01-12", "2026-03-20"),
    ("Summer", "2026-04-20", "2026-06-26"),
    # 2026-27
    ("Autumn", "2026-09-28", "2026-12-04"),
    ("Spring", "2027-01-11", "2027-03-19"),
    ("Summer", "2027-04-19", "2027-06-25"),
    # 2027-28
    ("Autumn", "2027-09-27", "2027-12-03"),
    ("Spring", "2028-01-10", "2028-03-17"),
    ("Summer", "2028-04-24", "2028-06-30"),
]


# -----------------------------
# Utilities: dates & instants
# -----------------------------

def local_midnight(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=LONDON)


def to_local(moment: datetime) -> datetime:
    """
    Naive datetimes are taken as London wall-clock time; aware ones are converted.
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=LONDON)
    return moment.astimezone(LONDON)


def monday_of_week(d: date) -> date:
    return d - timedelta(days=d.weekday())  # Monday=0


def monday_on_or_after(d: date) -> date:
    return d + timedelta(days=(7 - d.weekday()) % 7)


def coerce_date(value: Union[date, str]) -> date:
    """
    Accepts a date (YAML gives these for unquoted 2023-09-25) or anything
    dateutil can parse, e.g. "2023-09-25" or "25 September 2023".
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return dateparser.parse(str(value)).date()


# -----------------------------
# Terms
# -----------------------------

@dataclasses.dataclass(frozen=True)
class Term:
    name: TermName
    start: datetime  # first instant of the term
    end: datetime  # first instant after the term

    @property
    def last_day(self) -> date:
        return self.end.date() - timedelta(days=1)

    def loose_start(self) -> datetime:
        """Midnight on the Monday on or before `start`."""
        return local_midnight(monday_of_week(self.start.date()))

    def loose_end(self) -> datetime:
        """Midnight on the Monday on or after `end`."""
        return local_midnight(monday_on_or_after(self.end.date()))

    def contains(self, now: datetime) -> bool:
        return self.start <= now <= self.end

    def loosely_contains(self, now: datetime) -> bool:
        return self.loose_start() <= now <= self.loose_end()


def make_term(name: Union[TermName, str], first_day: Union[date, str], last_day: Union[date, str]) -> Term:
    if not isinstance(name, TermName):
        name = TermName.parse(name)
    first_day = coerce_date(first_day)
    last_day = coerce_date(last_day)
    if last_day < first_day:
        raise ValueError(f"{name.longname} term ends ({last_day}) before it starts ({first_day})")
    return Term(
        name=name,
        start=local_midnight(first_day),
        end=local_midnight(last_day + timedelta(days=1)),
    )


def build_terms(rows: Iterable[Tuple[Union[TermName, str], Union[date, str], Union[date, str]]]) -> Tuple[Term, ...]:
    """
    Builds the term table from (name, first day, last day) rows, sorted by start.
    """
    terms = [make_term(name, first_day, last_day) for name, first_day, last_day in rows]
    return tuple(sorted(terms, key=lambda term: term.start))


def load_terms(path: str) -> Tuple[Term, ...]:
    with open(path, "r", encoding="utf-8") as f:
        doc = yaml.safe_load(f)
    return parse_terms_document(doc)


def parse_terms_document(doc: object) -> Tuple[Term, ...]:
    if not isinstance(doc, dict) or not isinstance(doc.get("terms"), list):
        raise ValueError("term file must be a mapping with a 'terms' list")

    rows = []
    for i, entry in enumerate(doc["terms"]):
        if not isinstance(entry, dict):
            raise ValueError(f"terms[{i}]: expected a mapping with name, start and end")
        missing = [key for key in ("name", "start", "end") if key not in entry]
        if missing:
            raise ValueError(f"terms[{i}]: missing {', '.join(missing)}")
        try:
            rows.append(make_term(str(entry["name"]), entry["start"], entry["end"]))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"terms[{i}]: {e}") from e

    logger.debug("Loaded %d terms", len(rows))
    return tuple(sorted(rows, key=lambda term: term.start))


# -----------------------------
# Resolution
# -----------------------------

def find_term(terms: Sequence[Term], now: datetime) -> Optional[Term]:
    """
    The latest-starting term whose loose (whole-week) range contains `now`.
    """
    matches = [term for term in terms if term.loosely_contains(now)]
    return matches[-1] if matches else None


def find_strict_term(terms: Sequence[Term], now: datetime) -> Optional[Term]:
    matches = [term for term in terms if term.contains(now)]
    return matches[-1] if matches else None


def check_agreement(term: Optional[Term], strict_term: Optional[Term], now: datetime) -> None:
    if strict_term is not None and strict_term != term:
        raise TermTableError(
            f"At {now.isoformat()} the strict match {describe(strict_term)} "
            f"disagrees with the loose match {describe(term)}; check the term dates."
        )


def week_number(term: Term, now: datetime) -> int:
    # Only meaningful while `now` and the term start share an ISO year.
    return now.isocalendar()[1] - term.start.isocalendar()[1] + 1


# -----------------------------
# Presentation
# -----------------------------

def describe(term: Optional[Term]) -> str:
    if term is None:
        return "(none)"
    return f"{term.name.longname} {term.start.date()} .. {term.last_day}"


def status_line(terms: Sequence[Term], now: datetime) -> str:
    now = to_local(now)
    term = find_term(terms, now)
    strict_term = find_strict_term(terms, now)
    check_agreement(term, strict_term, now)

    if term is None:
        logger.debug("No term near %s", now.isoformat())
        return "n/a"

    label = f"{term.name.shortname}/{week_number(term, now)}/{now.strftime('%a')}"
    if strict_term is None:
        logger.debug("%s is in the week around %s", now.isoformat(), describe(term))
        return f"({label})"
    return label


# -----------------------------
# Main
# -----------------------------

def parse_when(text: str) -> datetime:
    try:
        return to_local(dateparser.parse(text))
    except (ValueError, OverflowError) as e:
        raise argparse.ArgumentTypeError(f"cannot parse date/time {text!r}: {e}") from e


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Print the current York term, week and day.")
    ap.add_argument("--terms", type=str, default=None, help="YAML file of term dates to use instead of the built-in table.")
    ap.add_argument("--at", type=parse_when, default=None, help="Resolve this date/time (Europe/London unless it has an offset) instead of now.")
    ap.add_argument("--list", action="store_true", help="Print the term table instead of the status line.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log debug information to stderr.")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.terms:
        try:
            terms = load_terms(args.terms)
        except (OSError, yaml.YAMLError, ValueError) as e:
            ap.error(f"cannot load {args.terms}: {e}")
    else:
        terms = build_terms(TERM_DATES)

    if args.list:
        for term in terms:
            print(describe(term))
        return 0

    now = args.at if args.at is not None else datetime.now(tz=LONDON)
    print(status_line(terms, now))
    return 0


if __name__ == "__main__":
    sys.exit(main())
