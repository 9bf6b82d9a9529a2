#!/usr/bin/env python3
"""
Git Commit Analyzer - command line front end

Reads the output of `git log --numstat --date=iso-strict` (from a file, stdin
or by running git in a repository), groups the per-file changes by a chosen
dimension and prints/exports chart-ready series:

- Insertions & deletions per group, or distinct commits per group
- Groups: author name/email, commit, weekday, day of month, month, year,
  hour, calendar date
- JSON export of one view, or of every view plus a manifest
- YAML/JSON configuration files and presets
"""

import hashlib
import json
import os
import subprocess
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import click
import yaml
from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

from chart_aggregator import ChartSeries, Dimension, Metric, aggregate, summarize
from git_log_parser import RECOMMENDED_LOG_COMMAND, ChangeRecord, LogParser

colorama_init(autoreset=True)

VERSION = "1.0.0"
SCHEMA_VERSION = "1.0.0"

DEFAULT_DIMENSION = Dimension.DATE.value
DEFAULT_METRIC = Metric.CHANGES.value

CONFIG_FILE_NAMES = [
    ".commit-analyzer.yaml",
    ".commit-analyzer.yml",
    ".commit-analyzer.json",
]

PRESETS = {
    "timeline": {"group_by": "date", "metric": "changes"},
    "authors": {"group_by": "author_name", "metric": "commits"},
    "rhythm": {"group_by": "hour", "metric": "commits"},
    "weekly": {"group_by": "weekday", "metric": "changes"},
    "yearly": {"group_by": "year", "metric": "changes"},
}


# ============================================================================
# PROGRESS REPORTING
# ============================================================================


class ProgressReporter:
    """
    Console output of the CLI.

    Status lines go to stdout and are silenced by quiet mode. Errors always go
    to stderr. Colors come from colorama and the export bar from tqdm.
    """

    RULE = "-" * 60

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors
        self.start_time = time.monotonic()
        self._stage_started: Dict[str, float] = {}

    def _colorize(self, text: str, color: str) -> str:
        if self.use_colors:
            return f"{color}{text}{Style.RESET_ALL}"
        return text

    def _emit(self, text: str, color: str = "", err: bool = False):
        if self.quiet and not err:
            return
        click.echo(self._colorize(text, color) if color else text, err=err)

    def _emit_stats(self, stats: Dict[str, Any]):
        for key, value in stats.items():
            self._emit(f"    {key}: {value}")

    def stage_start(self, stage_name: str, message: str = ""):
        self._stage_started[stage_name] = time.monotonic()
        line = f"==> {stage_name}: {message}" if message else f"==> {stage_name}"
        self._emit(line, Fore.BLUE + Style.BRIGHT)

    def stage_complete(self, stage_name: str, stats: Optional[Dict] = None):
        """Print the stage duration; stats only in verbose mode."""
        started = self._stage_started.pop(stage_name, time.monotonic())
        self._emit(f"    done in {time.monotonic() - started:.2f}s", Fore.GREEN)
        if stats and self.verbose:
            self._emit_stats(stats)

    def create_progress_bar(
        self, total: int, desc: str = "Processing", unit: str = " items"
    ) -> Optional[tqdm]:
        """tqdm bar, or None in quiet mode"""
        if self.quiet:
            return None
        return tqdm(
            total=total,
            desc=self._colorize(desc, Fore.CYAN),
            unit=unit,
            leave=False,
        )

    def info(self, message: str):
        self._emit(message)

    def warning(self, message: str):
        self._emit(f"warning: {message}", Fore.YELLOW)

    def error(self, message: str):
        self._emit(f"error: {message}", Fore.RED + Style.BRIGHT, err=True)

    def success(self, message: str):
        self._emit(message, Fore.GREEN)

    def summary(self, stats: Dict[str, Any]):
        self._emit("")
        self._emit("ANALYSIS SUMMARY", Fore.MAGENTA + Style.BRIGHT)
        self._emit(self.RULE, Fore.CYAN)
        self._emit_stats(stats)
        self._emit(f"    Elapsed: {time.monotonic() - self.start_time:.2f}s")


# ============================================================================
# CONFIGURATION
# ============================================================================


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.
    An empty file yields an empty dict.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif file_ext == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_ext}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration must be a mapping: {config_path}")
    bad_keys = [key for key in data if not isinstance(key, str)]
    if bad_keys:
        raise ValueError(
            f"Configuration keys must be strings, got {bad_keys!r}: {config_path}"
        )
    return data


def find_config_file(search_dir: str) -> Optional[str]:
    """
    Auto-discover a configuration file in the given directory, then in the
    current directory.
    """
    search_paths = [search_dir]
    if os.path.abspath(os.getcwd()) != os.path.abspath(search_dir):
        search_paths.append(os.getcwd())

    for directory in search_paths:
        for config_name in CONFIG_FILE_NAMES:
            config_path = os.path.join(directory, config_name)
            if os.path.exists(config_path):
                return config_path

    return None


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults
    """

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str],
        preset_name: Optional[str],
        search_dir: str,
    ):
        self.cli = {k: v for k, v in cli_args.items() if v is not None}
        self.config = {}
        self.preset = {}
        self.discovered_path = None
        self.load_warning = None

        if config_path:
            self.config = load_config_file(config_path)
        else:
            auto_path = find_config_file(search_dir)
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    self.discovered_path = auto_path
                except (ValueError, yaml.YAMLError) as e:
                    self.load_warning = (
                        f"Found config file {auto_path} but failed to load: {e}"
                    )

        # Normalize config keys (kebab-case to snake_case)
        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        final_preset_name = preset_name or self.config.get("preset")
        self.preset = self._get_preset(final_preset_name)

    @staticmethod
    def _get_preset(name: Optional[str]) -> Dict[str, Any]:
        if not name:
            return {}
        if name not in PRESETS:
            raise ValueError(
                f"Unknown preset '{name}' (choose from: {', '.join(sorted(PRESETS))})"
            )
        return PRESETS[name]

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve value based on precedence"""
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return default


# ============================================================================
# LOG ACQUISITION
# ============================================================================


def run_git_log(repo_path: str) -> str:
    """Run the recommended log command in a repository and return its output."""
    cmd = (
        ["git", "-C", repo_path]
        + RECOMMENDED_LOG_COMMAND[1:]
        + ["--no-color", "--no-decorate"]
    )
    result = subprocess.run(
        cmd,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    if result.returncode != 0:
        raise RuntimeError(f"Git command failed: {result.stderr.strip()}")
    return result.stdout


def read_log_file(log_file: str) -> str:
    """Read log text from a path, or from stdin when the path is '-'."""
    with click.open_file(log_file, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


# ============================================================================
# OUTPUT
# ============================================================================


def format_chart_table(series: ChartSeries) -> str:
    """Render a ChartSeries as a plain text table."""
    header = [series.dimension.value] + [d.label for d in series.datasets]
    rows = [
        [label] + [str(d.data[i]) for d in series.datasets]
        for i, label in enumerate(series.labels)
    ]

    widths = [len(col) for col in header]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def fmt(row: List[str]) -> str:
        cells = [row[0].ljust(widths[0])]
        cells += [cell.rjust(width) for cell, width in zip(row[1:], widths[1:])]
        return "  ".join(cells).rstrip()

    lines = [fmt(header), "  ".join("-" * w for w in widths)]
    lines.extend(fmt(row) for row in rows)
    return "\n".join(lines)


def export_chart_data(series: ChartSeries, output_path: str) -> Dict[str, Any]:
    """Write one view as a JSON document"""
    data = {
        "schema_version": SCHEMA_VERSION,
        "generator_version": VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "dimension": series.dimension.value,
        "metric": series.metric.value,
        "chart": series.to_dict(),
    }

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

    return data


def export_all_views(
    records: List[ChangeRecord], output_dir: str, reporter: ProgressReporter
) -> Dict[str, str]:
    """
    Export every dimension/metric combination to
    <output_dir>/<metric>/<dimension>.json.

    Returns:
        Mapping of view name to path relative to output_dir
    """
    datasets = {}
    views = [(metric, dimension) for metric in Metric for dimension in Dimension]

    progress_bar = reporter.create_progress_bar(
        total=len(views), desc="Exporting views", unit=" views"
    )

    for metric, dimension in views:
        relative_path = os.path.join(metric.value, f"{dimension.value}.json")
        series = aggregate(records, dimension, metric)
        export_chart_data(series, os.path.join(output_dir, relative_path))
        datasets[f"{metric.value}_by_{dimension.value}"] = relative_path
        if progress_bar:
            progress_bar.update(1)

    if progress_bar:
        progress_bar.close()

    return datasets


def generate_manifest(
    output_dir: str, datasets: Dict[str, str], stats: Dict[str, Any]
) -> Dict[str, Any]:
    """Generate manifest.json with dataset metadata"""
    manifest = {
        "generator_version": VERSION,
        "schema_version": SCHEMA_VERSION,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "statistics": stats,
        "datasets": {},
    }

    for dataset_name, file_path in datasets.items():
        full_path = os.path.join(output_dir, file_path)
        if os.path.exists(full_path):
            with open(full_path, "rb") as f:
                data = f.read()

            manifest["datasets"][dataset_name] = {
                "file": file_path,
                "file_size_bytes": len(data),
                "sha256": hashlib.sha256(data).hexdigest(),
            }

    manifest_path = os.path.join(output_dir, "manifest.json")
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, ensure_ascii=False)

    return manifest


# ============================================================================
# CLI INTERFACE
# ============================================================================


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "log_file",
    type=click.Path(exists=True, dir_okay=False, allow_dash=True),
    required=False,
)
@click.option(
    "--repo",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Run git log in this repository instead of reading LOG_FILE",
)
@click.option(
    "-g",
    "--group-by",
    type=click.Choice([d.value for d in Dimension]),
    help=f"Grouping dimension (default: {DEFAULT_DIMENSION})",
)
@click.option(
    "-m",
    "--metric",
    type=click.Choice([m.value for m in Metric]),
    help=f"Metric per group (default: {DEFAULT_METRIC})",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False),
    help="Write the chart data of the selected view to this JSON file",
)
@click.option(
    "--export-all",
    type=click.Path(file_okay=False),
    help="Write every view plus manifest.json to this directory",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (.yaml or .json)",
)
@click.option(
    "--preset",
    type=click.Choice(sorted(PRESETS)),
    help="Use a predefined view",
)
@click.option(
    "--utc",
    is_flag=True,
    default=None,
    help="Derive dates and hours in UTC instead of the committer's time zone",
)
@click.option(
    "-q", "--quiet", is_flag=True, default=None, help="Suppress progress output"
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=None,
    help="Show detailed progress information",
)
@click.option("--no-color", is_flag=True, default=None, help="Disable colored output")
@click.option(
    "--show-command",
    is_flag=True,
    help="Print the git command whose output this tool reads and exit",
)
@click.version_option(version=VERSION)
def main(log_file, repo, config, preset, show_command, **kwargs):
    """
    Git Commit Analyzer

    Aggregates `git log --numstat --date=iso-strict` output into chartable
    series. LOG_FILE may be '-' to read from stdin.
    """
    if show_command:
        click.echo(" ".join(RECOMMENDED_LOG_COMMAND) + " > gitlog.txt")
        return

    if not log_file and not repo:
        ctx = click.get_current_context()
        click.echo(ctx.get_help())
        ctx.exit(2)

    if log_file and repo:
        raise click.UsageError("Use either LOG_FILE or --repo, not both.")

    try:
        resolver = ConfigResolver(kwargs, config, preset, repo or os.getcwd())
    except (ValueError, OSError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    quiet = resolver.get("quiet", False)
    verbose = resolver.get("verbose", False)
    no_color = resolver.get("no_color", False)
    utc = resolver.get("utc", False)

    reporter = ProgressReporter(quiet=quiet, verbose=verbose, use_colors=not no_color)

    if resolver.discovered_path:
        reporter.info(f"Auto-discovered configuration: {resolver.discovered_path}")
    if resolver.load_warning:
        reporter.warning(resolver.load_warning)

    try:
        dimension = Dimension(resolver.get("group_by", DEFAULT_DIMENSION))
        metric = Metric(resolver.get("metric", DEFAULT_METRIC))
    except ValueError as e:
        reporter.error(str(e))
        sys.exit(1)

    output = resolver.get("output")
    export_all = resolver.get("export_all")

    try:
        reporter.stage_start("Reading Log", repo or log_file)
        if repo:
            log_text = run_git_log(repo)
        else:
            log_text = read_log_file(log_file)
        reporter.stage_complete(
            "Reading Log", {"Characters": f"{len(log_text):,}"}
        )

        if not log_text:
            reporter.error("No logs have been entered.")
            sys.exit(1)

        reporter.stage_start("Parsing", "Extracting per-file change records...")
        parser = LogParser(utc=utc)
        records = parser.parse(log_text)
        reporter.stage_complete(
            "Parsing",
            {
                "Lines scanned": f"{parser.lines_scanned:,}",
                "Records": f"{len(records):,}",
                "Numstat lines without header context": f"{parser.dropped_numstat:,}",
            },
        )

        if parser.errors:
            reporter.warning(f"{len(parser.errors)} date line(s) could not be parsed")
            if verbose:
                for message in parser.errors:
                    reporter.info(message)

        if not records:
            reporter.error("No valid logs have been entered.")
            sys.exit(1)

        series = aggregate(records, dimension, metric)
        click.echo(format_chart_table(series))

        if output:
            export_chart_data(series, output)
            reporter.success(f"Chart data written to {output}")

        if export_all:
            reporter.stage_start("Dataset Export", f"Writing all views to {export_all}")
            os.makedirs(export_all, exist_ok=True)
            datasets = export_all_views(records, export_all, reporter)
            generate_manifest(export_all, datasets, summarize(records))
            reporter.stage_complete("Dataset Export", {"Views": len(datasets)})

        stats = summarize(records)
        reporter.summary(
            {
                "View": f"{metric.value} by {dimension.value}",
                "Groups": len(series.labels),
                "Commits": f"{stats['commits']:,}",
                "Authors": f"{stats['authors']:,}",
                "Files": f"{stats['files']:,}",
                "Insertions": f"{stats['insertions']:,}",
                "Deletions": f"{stats['deletions']:,}",
                "Period": f"{stats['first_date']} .. {stats['last_date']}",
            }
        )

    except Exception as e:
        reporter.error(f"Analysis failed: {str(e)}")
        if verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
