#!/usr/bin/env python3
"""
Chart Aggregator

Groups ChangeRecords by one dimension and reduces each group to the numbers a
bar chart needs: line insertions/deletions or distinct commit counts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from git_log_parser import ChangeRecord

INSERTIONS_COLOR = "rgba(75,192,192,0.4)"
DELETIONS_COLOR = "rgba(255,99,132,0.4)"
COMMITS_COLOR = "rgba(153,102,255,0.4)"


class Dimension(str, Enum):
    """Field that groups records together."""

    AUTHOR_NAME = "author_name"
    AUTHOR_EMAIL = "author_email"
    COMMIT = "commit"
    WEEKDAY = "weekday"
    DAY_OF_MONTH = "day_of_month"
    MONTH = "month"
    YEAR = "year"
    HOUR = "hour"
    DATE = "date"

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_DIMENSIONS

    def key_for(self, record: ChangeRecord) -> str:
        return DIMENSION_ACCESSORS[self](record)


class Metric(str, Enum):
    """Quantity reported per group."""

    CHANGES = "changes"
    COMMITS = "commits"


DIMENSION_ACCESSORS: Dict[Dimension, Callable[[ChangeRecord], str]] = {
    Dimension.AUTHOR_NAME: lambda record: record.author_name,
    Dimension.AUTHOR_EMAIL: lambda record: record.author_email,
    Dimension.COMMIT: lambda record: record.commit_hash,
    Dimension.WEEKDAY: lambda record: record.weekday,
    Dimension.DAY_OF_MONTH: lambda record: record.day_of_month,
    Dimension.MONTH: lambda record: record.month,
    Dimension.YEAR: lambda record: record.year,
    Dimension.HOUR: lambda record: record.hour,
    Dimension.DATE: lambda record: record.date,
}

NUMERIC_DIMENSIONS = frozenset(
    {Dimension.HOUR, Dimension.DAY_OF_MONTH, Dimension.MONTH, Dimension.YEAR}
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass
class GroupBucket:
    """Running totals for one group."""

    insertions: int = 0
    deletions: int = 0
    commits: Set[str] = field(default_factory=set)

    def add(self, record: ChangeRecord):
        self.insertions += record.insertions
        self.deletions += record.deletions
        self.commits.add(record.commit_hash)


@dataclass(frozen=True)
class Dataset:
    """One named numeric series, aligned with ChartSeries.labels."""

    label: str
    data: Tuple[int, ...]
    background_color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "data": list(self.data),
            "backgroundColor": self.background_color,
        }


@dataclass(frozen=True)
class ChartSeries:
    """Sorted labels plus one or two datasets, ready for a bar chart."""

    labels: Tuple[str, ...]
    datasets: Tuple[Dataset, ...]
    dimension: Dimension
    metric: Metric

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": list(self.labels),
            "datasets": [dataset.to_dict() for dataset in self.datasets],
        }


# ============================================================================
# AGGREGATION
# ============================================================================


def group_records(
    records: Iterable[ChangeRecord], dimension: Dimension
) -> Dict[str, GroupBucket]:
    groups: Dict[str, GroupBucket] = {}
    for record in records:
        key = dimension.key_for(record)
        if key not in groups:
            groups[key] = GroupBucket()
        groups[key].add(record)
    return groups


def sort_labels(keys: Iterable[str], dimension: Dimension) -> List[str]:
    """
    Order group keys for display.

    Hour, day of month, month and year are numeric strings and sort by value
    ("2" before "10"). Everything else sorts as text, which also orders ISO
    dates chronologically.
    """
    if dimension.is_numeric:
        return sorted(keys, key=int)
    return sorted(keys)


def aggregate(
    records: Iterable[ChangeRecord],
    dimension: Union[Dimension, str],
    metric: Union[Metric, str],
) -> ChartSeries:
    """
    Reduce records to chart series.

    Args:
        records: Parsed change records (any order)
        dimension: Dimension or its string value
        metric: Metric or its string value

    Returns:
        ChartSeries whose datasets are positionally aligned with its labels

    Raises:
        ValueError: Unknown dimension or metric
    """
    dimension = Dimension(dimension)
    metric = Metric(metric)

    groups = group_records(records, dimension)
    labels = sort_labels(groups.keys(), dimension)

    if metric is Metric.CHANGES:
        datasets = (
            Dataset(
                label="Insertions",
                data=tuple(groups[key].insertions for key in labels),
                background_color=INSERTIONS_COLOR,
            ),
            Dataset(
                label="Deletions",
                data=tuple(groups[key].deletions for key in labels),
                background_color=DELETIONS_COLOR,
            ),
        )
    else:
        datasets = (
            Dataset(
                label="Number of Commits",
                data=tuple(len(groups[key].commits) for key in labels),
                background_color=COMMITS_COLOR,
            ),
        )

    return ChartSeries(
        labels=tuple(labels), datasets=datasets, dimension=dimension, metric=metric
    )


def summarize(records: Iterable[ChangeRecord]) -> Dict[str, Any]:
    """Overall totals across all records, for reports."""
    records = list(records)
    dates: List[str] = sorted(record.date for record in records)
    first_date: Optional[str] = dates[0] if dates else None
    last_date: Optional[str] = dates[-1] if dates else None

    return {
        "records": len(records),
        "commits": len({record.commit_hash for record in records}),
        "authors": len({record.author_email for record in records}),
        "files": len({record.file_path for record in records}),
        "insertions": sum(record.insertions for record in records),
        "deletions": sum(record.deletions for record in records),
        "first_date": first_date,
        "last_date": last_date,
    }
