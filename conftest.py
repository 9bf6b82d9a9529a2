import os
import subprocess

import pytest

from commit_analyzer import ProgressReporter
from git_log_parser import parse_git_log


def build_log(commits):
    """
    Build `git log --numstat --date=iso-strict` style text.

    commits: iterable of (hash, author, date, numstat_lines) tuples,
    numstat_lines being (added, deleted, path) triples.
    """
    blocks = []
    for commit_hash, author, date, numstat in commits:
        lines = [
            f"commit {commit_hash}",
            f"Author: {author}",
            f"Date:   {date}",
            "",
            "    commit subject",
            "",
        ]
        lines.extend(f"{added}\t{deleted}\t{path}" for added, deleted, path in numstat)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


@pytest.fixture
def make_log():
    return build_log


@pytest.fixture
def sample_log():
    """Three commits, two authors, spanning March and April 2024."""
    return build_log(
        [
            (
                "a" * 40,
                "Jane Doe <jane@example.com>",
                "2024-03-05T10:00:00+01:00",   # Tuesday
                [("10", "2", "file.txt"), ("5", "0", "src/app.py")],
            ),
            (
                "b" * 40,
                "John Roe <john@example.com>",
                "2024-03-09T22:30:00+01:00",   # Saturday
                [("-", "-", "logo.png"), ("3", "1", "file.txt")],
            ),
            (
                "c" * 40,
                "Jane Doe <jane@example.com>",
                "2024-04-10T09:15:00+02:00",   # Wednesday
                [("1", "1", "src/app.py")],
            ),
        ]
    )


@pytest.fixture
def sample_records(sample_log):
    return parse_git_log(sample_log)


@pytest.fixture
def log_file(tmp_path, sample_log):
    path = tmp_path / "gitlog.txt"
    path.write_text(sample_log, encoding="utf-8")
    return str(path)


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def git_repo(tmp_path):
    repo = tmp_path / "repo"
    repo.mkdir()

    env = dict(
        os.environ,
        GIT_AUTHOR_DATE="2024-03-05T10:00:00+01:00",
        GIT_COMMITTER_DATE="2024-03-05T10:00:00+01:00",
    )

    def run(*args):
        subprocess.run(["git", "-C", str(repo)] + list(args),
                       check=True, capture_output=True, env=env)

    run("init")
    run("config", "user.email", "tester@test.com")
    run("config", "user.name", "Tester")
    run("config", "commit.gpgsign", "false")

    # Commit 1 - add two files
    (repo / "app.py").write_text("print('hello')\n", encoding="utf-8")
    (repo / "lib.py").write_text("def helper(): pass\n", encoding="utf-8")
    run("add", ".")
    run("commit", "-m", "initial")

    # Commit 2 - append to app.py
    (repo / "app.py").write_text("print('hello')\nprint('world')\n", encoding="utf-8")
    run("add", ".")
    run("commit", "-m", "update app")

    # Commit 3 - add readme
    (repo / "readme.md").write_text("# App\n", encoding="utf-8")
    run("add", ".")
    run("commit", "-m", "add readme")

    return str(repo)
