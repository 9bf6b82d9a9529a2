#!/usr/bin/env python3
"""
Git Log Parser

Rebuilds per-file change records from the text printed by
`git log --numstat --date=iso-strict`.

The log is read line by line. Commit, author and date headers update a small
carry-over state; every numstat line seen while that state is complete becomes
one ChangeRecord. Anything else (subjects, message bodies, blank lines) is
skipped.
"""

import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from functools import lru_cache, reduce
from typing import Any, Dict, List, Optional, Tuple

# Command whose output this parser understands
RECOMMENDED_LOG_COMMAND = ["git", "log", "--numstat", "--date=iso-strict"]

COMMIT_PATTERN = re.compile(r"^commit\s([a-f0-9]{40})$")
AUTHOR_PATTERN = re.compile(r"^Author:\s+(.*)\s<(.+)>$")
DATE_PATTERN = re.compile(r"^Date:\s+(.*)$")
NUMSTAT_PATTERN = re.compile(r"^(\d+|-)\s+(\d+|-)\s+(.+)$")
LINE_BREAK = re.compile(r"\r?\n")

# Formats tried after ISO-8601: --date=iso, git default, --date=rfc
FALLBACK_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%a %b %d %H:%M:%S %Y %z",
    "%a, %d %b %Y %H:%M:%S %z",
)

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


# ============================================================================
# DATE HANDLING
# ============================================================================


def parse_commit_date(date_text: str, utc: bool = False) -> Optional[datetime]:
    """
    Parse the text of a `Date:` header.

    Args:
        date_text: Date as printed by git (iso-strict preferred)
        utc: Convert to UTC; naive values are taken as UTC

    Returns:
        datetime, or None when no known format matches
    """
    text = date_text.strip()
    if not text:
        return None

    iso_text = text[:-1] + "+00:00" if text.endswith("Z") else text
    iso_text = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", iso_text)

    parsed = None
    try:
        parsed = datetime.fromisoformat(iso_text)
    except ValueError:
        for date_format in FALLBACK_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, date_format)
                break
            except ValueError:
                continue

    if parsed is None:
        return None

    if utc:
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        else:
            parsed = parsed.astimezone(timezone.utc)

    return parsed


class TemporalLabeler:
    """
    Derive the calendar fields used for grouping from a commit timestamp.

    Labels are strings without zero padding so that they can be used directly
    as chart labels. Weekday names are fixed English names, independent of the
    process locale.
    """

    @staticmethod
    @lru_cache(maxsize=10000)
    def get_temporal_labels(dt_string: str) -> Dict[str, str]:
        """
        Extract temporal labels from an ISO datetime string.
        Cached since every file of a commit shares the same timestamp.

        Args:
            dt_string: ISO format datetime string (e.g. '2024-03-05T10:00:00+01:00')

        Returns:
            Dict with date, weekday, day_of_month, month, year, hour
        """
        dt = datetime.fromisoformat(dt_string)

        return {
            "date": dt.date().isoformat(),
            "weekday": WEEKDAY_NAMES[dt.weekday()],
            "day_of_month": str(dt.day),
            "month": str(dt.month),
            "year": str(dt.year),
            "hour": str(dt.hour),
        }


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class ChangeRecord:
    """One file touched by one commit, with its line statistics."""

    commit_hash: str
    author_name: str
    author_email: str
    commit_date: datetime
    file_path: str
    insertions: int
    deletions: int
    date: str
    weekday: str
    day_of_month: str
    month: str
    year: str
    hour: str

    @property
    def timestamp(self) -> str:
        return self.commit_date.isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commit_hash": self.commit_hash,
            "author_name": self.author_name,
            "author_email": self.author_email,
            "timestamp": self.timestamp,
            "file_path": self.file_path,
            "insertions": self.insertions,
            "deletions": self.deletions,
            "date": self.date,
            "weekday": self.weekday,
            "day_of_month": self.day_of_month,
            "month": self.month,
            "year": self.year,
            "hour": self.hour,
        }


@dataclass(frozen=True)
class ParserState:
    """Header values carried from line to line until the next header replaces them."""

    commit: str = ""
    author_name: str = ""
    author_email: str = ""
    date: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return bool(
            self.commit and self.author_name and self.author_email and self.date
        )


RecordKey = Tuple[str, str]
FoldState = Tuple[ParserState, Dict[RecordKey, ChangeRecord]]


# ============================================================================
# PARSER
# ============================================================================


def split_log_lines(log_text: str) -> List[str]:
    """
    Split on LF or CRLF only. Author names and unquoted paths may contain
    characters such as U+2028 or form feeds that str.splitlines treats as
    line breaks.
    """
    lines = LINE_BREAK.split(log_text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class LogParser:
    """
    Line-oriented parser for `git log --numstat` output.

    The scan is a left fold over the lines. The accumulator is the current
    ParserState plus the records found so far, keyed by (commit hash, file
    path); a second numstat line for the same key replaces the first.

    Diagnostics of the last run are kept on the instance, so use one parser
    per thread (or call parse_git_log).
    """

    def __init__(self, utc: bool = False):
        self.utc = utc
        self.errors: List[str] = []
        self.lines_scanned = 0
        self.dropped_numstat = 0

    def parse(self, log_text: str) -> List[ChangeRecord]:
        """
        Parse raw log text into change records.

        Returns:
            Records in the order their keys were first seen. Empty when the
            text holds no usable numstat lines.
        """
        self.errors = []
        self.lines_scanned = 0
        self.dropped_numstat = 0

        if not log_text:
            return []

        _, records = reduce(self._step, split_log_lines(log_text), (ParserState(), {}))
        return list(records.values())

    def _step(self, acc: FoldState, line: str) -> FoldState:
        state, records = acc
        self.lines_scanned += 1

        match = COMMIT_PATTERN.match(line)
        if match:
            return replace(state, commit=match.group(1)), records

        match = AUTHOR_PATTERN.match(line)
        if match:
            return (
                replace(state, author_name=match.group(1), author_email=match.group(2)),
                records,
            )

        match = DATE_PATTERN.match(line)
        if match:
            commit_date = parse_commit_date(match.group(1), utc=self.utc)
            if commit_date is None:
                self.errors.append(
                    f"Unparseable date for commit {state.commit or '<unknown>'}: "
                    f"{match.group(1)!r}"
                )
            return replace(state, date=commit_date), records

        match = NUMSTAT_PATTERN.match(line)
        if match:
            if not state.is_complete:
                self.dropped_numstat += 1
                return state, records

            added, deleted, file_path = match.groups()
            record = self._build_record(state, added, deleted, file_path)
            records[(record.commit_hash, record.file_path)] = record

        return state, records

    @staticmethod
    def _build_record(
        state: ParserState, added: str, deleted: str, file_path: str
    ) -> ChangeRecord:
        # Binary files report "-" for both counts
        insertions = int(added) if added != "-" else 0
        deletions = int(deleted) if deleted != "-" else 0

        labels = TemporalLabeler.get_temporal_labels(state.date.isoformat())

        return ChangeRecord(
            commit_hash=state.commit,
            author_name=state.author_name,
            author_email=state.author_email,
            commit_date=state.date,
            file_path=file_path,
            insertions=insertions,
            deletions=deletions,
            **labels,
        )


def parse_git_log(log_text: str, utc: bool = False) -> List[ChangeRecord]:
    """Parse log text with a fresh parser. Safe to call from several threads."""
    return LogParser(utc=utc).parse(log_text)
