from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import List, Optional

import typer

from if_changed.config import (
    check_defaults,
    merge_payload,
    normalize_pattern_list,
    optional_text,
)
from if_changed.exceptions import ConfigError, RepositoryError, RevisionError
from if_changed.oracle import ChangeOracle
from if_changed.runner import FileOutcome, iter_outcomes
from if_changed.schema import CheckReportDTO, FileReportDTO

app = typer.Typer(add_completion=False)

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_FATAL = 2


@dataclass(frozen=True)
class CheckOptions:
    from_ref: str | None
    to_ref: str | None
    patterns: list[str]
    exempt: list[str]


def resolve_check_options(
    *,
    root: Path,
    config_path: Path | None,
    from_ref: str | None,
    to_ref: str | None,
    patterns: list[str] | None,
) -> CheckOptions:
    try:
        defaults = check_defaults(root=root, config_path=config_path)
    except ConfigError as exc:
        typer.secho(f"Ignoring configuration: {exc}", err=True, fg=typer.colors.YELLOW)
        defaults = {}
    merged = merge_payload(
        {"from_ref": from_ref, "to_ref": to_ref, "patterns": patterns},
        defaults,
    )
    return CheckOptions(
        from_ref=optional_text(merged.get("from_ref")),
        to_ref=optional_text(merged.get("to_ref")),
        patterns=normalize_pattern_list(merged.get("patterns")),
        exempt=normalize_pattern_list(merged.get("exempt")),
    )


def _fatal_message(exc: RepositoryError) -> str:
    if isinstance(exc, RevisionError):
        return str(exc)
    return f"Could not open the repository: {exc}"


def _echo_progress(outcome: FileOutcome) -> None:
    if outcome.status == "checked":
        typer.echo(f"check {outcome.path}", err=True)
    else:
        typer.echo(f"skip {outcome.path} ({outcome.status})", err=True)


def run_check(
    options: CheckOptions,
    *,
    root: Path,
    json_output: bool = False,
    verbose: bool = False,
) -> int:
    files: list[FileReportDTO] = []
    violations: list[str] = []
    errors: list[str] = []
    try:
        oracle = ChangeOracle(
            root,
            options.from_ref,
            options.to_ref,
            exempt=options.exempt,
        )
        for outcome in iter_outcomes(oracle, options.patterns):
            if verbose:
                _echo_progress(outcome)
            files.append(
                FileReportDTO(
                    path=outcome.path,
                    status=outcome.status,
                    violations=list(outcome.violations),
                )
            )
            violations.extend(outcome.violations)
            if not json_output:
                for violation in outcome.violations:
                    typer.secho(violation, err=True, fg=typer.colors.RED)
    except RepositoryError as exc:
        errors.append(_fatal_message(exc))
        if not json_output:
            typer.secho(errors[-1], err=True, fg=typer.colors.RED)

    if errors:
        exit_code = EXIT_FATAL
    elif violations:
        exit_code = EXIT_VIOLATIONS
    else:
        exit_code = EXIT_OK
    if json_output:
        report = CheckReportDTO(
            from_ref=options.from_ref,
            to_ref=options.to_ref,
            files=files,
            violations=violations,
            errors=errors,
            exit_code=exit_code,
        )
        typer.echo(json.dumps(report.model_dump(), indent=2, sort_keys=True))
    return exit_code


@app.command()
def main(
    patterns: Optional[List[str]] = typer.Argument(
        None,
        help=(
            "Patterns selecting the changed files to check (default: every "
            "changed file). Patterns follow .gitignore rules, are matched "
            "against the repository root, and a leading '!' re-excludes."
        ),
    ),
    from_ref: Optional[str] = typer.Option(
        None,
        "--from-ref",
        envvar="PRE_COMMIT_FROM_REF",
        help="Revision to compare against (default: HEAD).",
    ),
    to_ref: Optional[str] = typer.Option(
        None,
        "--to-ref",
        envvar="PRE_COMMIT_TO_REF",
        help="Revision to compare with (default: the working copy).",
    ),
    root: Path = typer.Option(Path("."), "--root", help="Directory inside the repository."),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Configuration file (default: <root>/if-changed.toml).",
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit a machine-readable JSON report."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Report every checked or skipped file."),
) -> None:
    """Check that code coupled by if-changed/then-change blocks changes together."""
    options = resolve_check_options(
        root=root,
        config_path=config,
        from_ref=from_ref,
        to_ref=to_ref,
        patterns=list(patterns or []),
    )
    exit_code = run_check(options, root=root, json_output=json_output, verbose=verbose)
    raise typer.Exit(code=exit_code)
