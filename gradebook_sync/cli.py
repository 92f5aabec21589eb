"""Command-line interface for gradebook sync."""

from __future__ import annotations

from pathlib import Path

import click
from tqdm import tqdm

from gradebook_sync.configs import Config, load_config
from gradebook_sync.errors import SyncError
from gradebook_sync.logs import configure_logging
from gradebook_sync.workflow import pull_assignment_grades, pull_gradebook, pull_roster, push_grades

# Failures reported as a one-line message instead of a traceback
COMMAND_ERRORS = (SyncError, ValueError, FileNotFoundError, KeyError)


class ClickNotifier:
    """Notifier that talks to the terminal."""

    def __init__(self, assume_yes: bool = False) -> None:
        self.assume_yes = assume_yes

    def notify(self, message: str) -> None:
        click.echo(message)

    def confirm(self, prompt: str) -> bool:
        if self.assume_yes:
            return True
        return click.confirm(prompt, default=False)


class TqdmProgress:
    """Progress callback drawing a tqdm bar.

    The bar takes the total of each call; a None total leaves it open-ended.
    """

    def __init__(self, desc: str) -> None:
        self.bar = tqdm(desc=desc, unit="step", leave=False)

    def __call__(self, current: int, total: int | None, detail: str) -> None:
        if self.bar.total != total:
            self.bar.total = total
        self.bar.n = current
        self.bar.set_postfix_str(detail, refresh=False)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()


def _command_error(e: Exception) -> click.ClickException:
    # KeyError quotes its message in str()
    message = e.args[0] if isinstance(e, KeyError) and e.args else e
    return click.ClickException(str(message))


def _setup(ctx: click.Context) -> Config:
    config: Config = ctx.obj["config"]
    configure_logging(config.operational.log_path, ctx.obj["verbose"])
    return config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="gradebook_sync.yaml",
    show_default=True,
    help="Path to the YAML configuration file.",
)
@click.option("--verbose", is_flag=True, help="Log requests and every row to the console.")
@click.pass_context
def main(ctx: click.Context, config_path: Path, verbose: bool) -> None:
    """Synchronize a grade workbook with the LMS, matching students by SIS id."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config_path)
    ctx.obj["verbose"] = verbose


@main.command("pull-roster")
@click.pass_context
def pull_roster_command(ctx: click.Context) -> None:
    """Write the course roster (SIS id, name, email) to the sheet."""
    config = _setup(ctx)
    progress = TqdmProgress("Fetching roster")
    try:
        pull_roster(config, ClickNotifier(), on_progress=progress)
    except COMMAND_ERRORS as e:
        raise _command_error(e) from e
    finally:
        progress.close()


@main.command("pull-grades")
@click.option("--assignment", required=True, help="Assignment id or exact assignment name.")
@click.option("--column", required=True, help="Sheet column receiving the grades, e.g. D.")
@click.pass_context
def pull_grades_command(ctx: click.Context, assignment: str, column: str) -> None:
    """Write the grades of one assignment into one column."""
    config = _setup(ctx)
    progress = TqdmProgress("Fetching grades")
    try:
        pull_assignment_grades(config, assignment, column, ClickNotifier(), on_progress=progress)
    except COMMAND_ERRORS as e:
        raise _command_error(e) from e
    finally:
        progress.close()


@main.command("pull-gradebook")
@click.pass_context
def pull_gradebook_command(ctx: click.Context) -> None:
    """Write every assignment of the course into consecutive columns."""
    config = _setup(ctx)
    progress = TqdmProgress("Fetching gradebook")
    try:
        pull_gradebook(config, ClickNotifier(), on_progress=progress)
    except COMMAND_ERRORS as e:
        raise _command_error(e) from e
    finally:
        progress.close()


@main.command("push-grades")
@click.option("--assignment", required=True, help="Assignment id or exact assignment name.")
@click.option("--column", required=True, help="Sheet column holding the grades, e.g. D.")
@click.option("--yes", "assume_yes", is_flag=True, help="Post without asking for confirmation.")
@click.pass_context
def push_grades_command(ctx: click.Context, assignment: str, column: str, assume_yes: bool) -> None:
    """Post the grades of one column to one assignment."""
    config = _setup(ctx)
    progress = TqdmProgress("Posting grades")
    try:
        summary = push_grades(config, assignment, column, ClickNotifier(assume_yes), on_progress=progress)
    except COMMAND_ERRORS as e:
        raise _command_error(e) from e
    finally:
        progress.close()

    if summary is not None and (summary.failed or summary.invalid):
        click.echo(f"Full details in {config.operational.log_path}", err=True)
        ctx.exit(1)


if __name__ == "__main__":
    main()
