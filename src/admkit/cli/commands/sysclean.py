from collections import Counter
from pathlib import Path

import click

from admkit.cli.ensure import Ensure
from admkit.cli.output import user_output
from admkit.core.context import AdmContext
from admkit.core.sysclean import apply_report, parse_report


@click.group("sysclean")
def sysclean_group() -> None:
    """Act on sysclean reports."""


@sysclean_group.command("apply")
@click.argument("report", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def apply_cmd(ctx: AdmContext, report: Path) -> None:
    """Remove the files, users and groups listed in REPORT.

    Directories are only removed when empty; anything not listed is left alone.
    """
    Ensure.is_root(ctx)

    try:
        items = parse_report(report.read_text(encoding="utf-8").splitlines())
    except ValueError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    if not items:
        user_output(f"Nothing to clean in {report}")
        return

    try:
        outcomes = apply_report(ctx, items)
    except (RuntimeError, OSError) as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from None

    counts = Counter(outcome.action for outcome in outcomes)
    summary = ", ".join(f"{action}: {counts[action]}" for action in sorted(counts))
    user_output(f"Processed {len(outcomes)} item(s) ({summary})")
