"""
Command line interface for changescribe.

This module defines the ``main`` click group used as the entry point of
the ``changescribe`` command. Its subcommands orchestrate configuration
loading, change collection, prompt assembly, model calls, commit message
validation, pull request summarization, and the final commit, push or
PR creation.

Every fatal condition (missing credentials, provider errors, a commit
message that is still invalid after repair, failing git or gh commands,
a missing GitHub CLI when ``--create-pr`` is used) exits with status 1.
"""

from __future__ import annotations

import functools
import logging
import time
from pathlib import Path
from typing import List, Optional

import click

from changescribe import __version__
from changescribe.config.loader import ConfigError, Settings, load_settings
from changescribe.grammar.conventional_commit import format_violations
from changescribe.llm.commit_message_generator import (
    CommitGenerationError,
    CommitMessageGenerator,
    CommitValidationError,
)
from changescribe.llm.completion_client import CompletionClient, LLMError
from changescribe.llm.diagnostics import describe_completion, format_error
from changescribe.project.package_scripts import (
    ManifestError,
    ScriptError,
    has_script,
    run_init,
    run_npm_script,
)
from changescribe.summary.artifacts import extract_pr_title, write_summary_artifacts
from changescribe.summary.commit_model import MODE_FEATURE, MODE_RELEASE, MODES
from changescribe.summary.pipeline import PrSummaryPipeline
from changescribe.vcs.git_client import GitClient, GitError
from changescribe.vcs.hosting_client import GhClient, GhError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_FAILURE = 1


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback."""

    def __init__(self, message: str, show_spinner: bool = True):
        self.message = message
        self.show_spinner = show_spinner
        self.spinner_chars = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        if self.show_spinner:
            click.echo(f"{self.spinner_chars[0]} {self.message}...", nl=False)
        else:
            click.echo(f"→ {self.message}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        mark = "✗" if exc_type is not None else "✓"
        if self.show_spinner:
            click.echo(f"\r{mark} {self.message} (took {elapsed:.1f}s)")
        else:
            click.echo(f"  {mark} Done ({elapsed:.1f}s)")
        return False


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}")


def print_step(message: str, indent: int = 0):
    """Print a pipeline step."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('◆', fg='blue')} {message}")


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('✓', fg='green')} {message}")


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('⚠', fg='yellow')} {message}")


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}{click.style('✗', fg='red')} {message}", err=True)


def print_summary_box(title: str, items: List[str]):
    """Print a formatted summary box."""
    max_width = max(len(title), max(len(item) for item in items) if items else 0)
    box_width = min(max_width + 4, 60)

    click.echo(f"\n┌{'─' * box_width}┐")
    click.echo(f"│ {title.ljust(box_width - 2)}│")
    click.echo(f"├{'─' * box_width}┤")
    for item in items:
        click.echo(f"│ {item.ljust(box_width - 2)}│")
    click.echo(f"└{'─' * box_width}┘")


def print_banner(branch: str, base: str):
    line = click.style("═" * 36, fg="magenta")
    click.echo(line)
    click.echo(click.style("PR SYNTHESIZER", fg="magenta", bold=True))
    click.echo(f"{click.style('branch', fg='cyan')} {branch}  {click.style('base', fg='cyan')} {base}")
    click.echo(line)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def configure_logging(verbose: bool) -> None:
    # force=True so repeated invocations (tests) reconfigure handlers.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def fail(message: str, *hints: str) -> None:
    """Print ``message`` and remediation hints, then exit with status 1."""
    print_error(message)
    for hint in hints:
        print_info(hint, indent=1)
    raise click.exceptions.Exit(EXIT_FAILURE)


def load_settings_or_exit() -> Settings:
    try:
        return load_settings()
    except ConfigError as exc:
        fail(f"Configuration error: {exc}", "Set CEREBRAS_API_KEY or GROQ_API_KEY in .env.local")


def open_repository() -> GitClient:
    repo_root = GitClient.find_repo_root(Path.cwd())
    if repo_root is None:
        fail("No Git repository found in current directory or parent directories.")
    return GitClient(repo_root)


def report_transport_error(exc: LLMError) -> None:
    print_error("LLM API error while creating completion")
    click.echo(format_error(exc), err=True)
    raise click.exceptions.Exit(EXIT_FAILURE)


def guarded(func):
    """Turn unexpected exceptions into a logged error and exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.exceptions.Exit:
            raise
        except Exception as exc:
            logger.exception("Unhandled error: %s", exc)
            print_error(f"Unexpected error: {exc}")
            raise click.exceptions.Exit(EXIT_FAILURE)

    return wrapper


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="changescribe")
def main() -> None:
    """AI-written Conventional Commits and pull request summaries.

    \b
    Examples:
      changescribe commit --dry-run
      changescribe pr --base main --mode release
      changescribe feature:pr
      changescribe staging:pr
    """


@main.command()
@click.option("--dry-run", is_flag=True, help="Print the generated message without committing or pushing.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@guarded
def commit(dry_run: bool, verbose: bool) -> None:
    """Generate a commit message, then commit and push the changes."""
    configure_logging(verbose)
    settings = load_settings_or_exit()
    git = open_repository()

    try:
        with ProgressIndicator("Analyzing all code changes"):
            change_set = git.collect_change_set()
    except GitError as exc:
        fail(f"Failed to analyze changes: {exc}")

    if not change_set.has_changes:
        print_success("No changes to commit")
        return

    print_info(f"Generating commit message with AI ({settings.provider.name})...")
    generator = CommitMessageGenerator(CompletionClient.from_settings(settings, settings.commit_model))
    try:
        message = generator.generate(change_set)
    except LLMError as exc:
        report_transport_error(exc)
    except CommitGenerationError as exc:
        print_error("Failed to generate commit message. Raw completion payload:")
        click.echo(describe_completion(exc.completion), err=True)
        raise click.exceptions.Exit(EXIT_FAILURE)
    except CommitValidationError as exc:
        print_error("Commit message failed validation:")
        click.echo(format_violations(exc.violations), err=True)
        raise click.exceptions.Exit(EXIT_FAILURE)

    if generator.repaired:
        print_warning("Commit message was repaired after validation")
    print_success(f'Generated commit message: "{message.title}"')

    if dry_run:
        click.echo("\n--- Commit message preview (dry run) ---")
        click.echo(message.render())
        return

    try:
        git.commit_from_file(message.render())
    except GitError as exc:
        fail(f"Failed to commit changes: {exc}")
    print_success("Changes committed successfully")

    try:
        branch = git.get_current_branch()
        git.push(branch)
    except GitError as exc:
        fail(f"Failed to push changes: {exc}", "You may need to push manually with: git push")
    print_success(f"Changes pushed to origin/{branch}")


def run_pre_pr_checks(git: GitClient, skip_format: bool) -> None:
    """Run the format script when present, then test and build, then require a clean tree."""
    cwd = git.repo_root
    if skip_format:
        print_warning("Skipping format step (flagged)")
    elif not has_script("format", cwd):
        print_warning('Skipping format step (no npm script named "format")')
    else:
        print_step("Running npm run format before PR creation...")
        try:
            run_npm_script("format", cwd)
        except ScriptError as exc:
            fail(f"{exc}; fix formatting errors first.")

    for name in ("test", "build"):
        print_step(f"Running npm {name} before PR creation...")
        try:
            run_npm_script(name, cwd)
        except ScriptError as exc:
            fail(f"{exc}; fix {name} failures first.")

    if git.has_uncommitted_changes():
        fail(
            "You have uncommitted changes; please commit them first.",
            'Run: git add . && git commit -m "your message"',
        )


@main.command()
@click.option("--base", default=None, help="Base branch to compare against (default: PR_SUMMARY_BASE or main).")
@click.option("--out", default=None, help="Summary output path (default: PR_SUMMARY_OUT).")
@click.option("--limit", type=int, default=None, help="Maximum number of most recent commits to summarize.")
@click.option("--issue", default=None, help="Issue reference passed to the model as a hint.")
@click.option("--dry-run", is_flag=True, help="Show the plan without calling the model.")
@click.option("--create-pr", is_flag=True, help="Create or update the pull request with gh.")
@click.option("--draft", is_flag=True, help="Open a new pull request as a draft.")
@click.option("--skip-format", "--no-format", "skip_format", is_flag=True, help="Do not run the format script.")
@click.option("--mode", type=click.Choice(MODES), default=None, help="Summary layout (default: release for staging into main).")
@click.option("--include-diffs", is_flag=True, help="Give each commit's stat and truncated diff to the model.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@guarded
def pr(
    base: Optional[str],
    out: Optional[str],
    limit: Optional[int],
    issue: Optional[str],
    dry_run: bool,
    create_pr: bool,
    draft: bool,
    skip_format: bool,
    mode: Optional[str],
    include_diffs: bool,
    verbose: bool,
) -> None:
    """Summarize the branch's commits into a pull request description."""
    configure_logging(verbose)
    settings = load_settings_or_exit()
    git = open_repository()

    base = base or settings.pr_base
    out = out or settings.pr_out
    limit = settings.pr_limit if limit is None else limit
    issue = settings.pr_issue if issue is None else issue

    try:
        branch = git.get_current_branch()
    except GitError as exc:
        fail(f"Failed to determine current branch: {exc}")
    mode = mode or (MODE_RELEASE if branch == "staging" and base == "main" else MODE_FEATURE)

    print_banner(branch, base)

    if not git.fetch_base(base):
        print_warning(f"Could not fetch origin/{base}; using local refs")
    base_ref = git.resolve_base_ref(base)
    try:
        commits = git.collect_commits(base_ref, limit)
    except GitError as exc:
        fail(str(exc))
    if not commits:
        print_success(f"No commits found in range {base_ref}..HEAD")
        return

    if dry_run:
        print_warning("Dry run (no API calls)")
        print_summary_box(
            "PR summary plan",
            [
                f"Base: {base}",
                f"Branch: {branch}",
                f"Commits: {len(commits)}",
                f"Limit: {limit}",
                f"Output: {out}",
                f"Issue: {issue or '(not provided)'}",
                f"Create PR: {'yes' if create_pr else 'no'}",
                f"Mode: {mode}",
            ],
        )
        return

    gh = None
    if create_pr:
        gh = GhClient(git.repo_root)
        if not gh.is_available():
            fail(
                "GitHub CLI (gh) is required for --create-pr but not found",
                "Install it: https://cli.github.com/",
                "Then authenticate: gh auth login",
            )
        run_pre_pr_checks(git, skip_format)
        existing = gh.find_open_pr(base, branch)
        if existing:
            print_warning(f"Found existing PR #{existing['number']}: {existing.get('title', '')}")

    print_step(f"Collecting {len(commits)} commits from {base_ref}..HEAD")
    if include_diffs:
        try:
            git.enrich_commits(commits)
        except GitError as exc:
            fail(f"Failed to read commit diffs: {exc}")

    pipeline = PrSummaryPipeline(
        CompletionClient.from_settings(settings, settings.pr_model),
        on_progress=print_success,
    )
    try:
        result = pipeline.run(commits, branch, base_ref, mode, issue)
    except LLMError as exc:
        report_transport_error(exc)
    if result.retried:
        print_warning("Pass 3 summary returned Unknown; retried with fallback context")
    if result.missing_headings:
        print_warning(f"Summary is missing sections: {', '.join(result.missing_headings)}")

    artifacts = write_summary_artifacts(result, branch, base_ref, out, cwd=Path.cwd())
    print_success(f"PR summary written to {artifacts.full_path}")
    print_success(f"PR-ready (slim) summary written to {artifacts.final_path}")
    print_warning(f"Backup copy saved to {artifacts.backup_path}")

    if gh is None:
        return

    title = extract_pr_title(result.final_summary, mode) or branch
    try:
        existing = gh.find_open_pr(base, branch)
        if existing:
            print_step(f"Updating existing PR #{existing['number']}...")
            gh.edit_pr(existing["number"], title, result.final_summary)
            print_success(f"PR #{existing['number']} updated")
        else:
            print_step("Pushing branch to remote...")
            if git.push_branch(branch):
                print_success("Branch pushed to remote")
            else:
                print_warning("Branch already exists on remote, skipping push")
            print_step("Creating PR with GitHub CLI...")
            url = gh.create_pr(base, branch, title, result.final_summary, draft=draft)
            print_success(f"PR created: {url}")
    except (GhError, GitError) as exc:
        fail(f"Failed to create or update PR: {exc}", "You can create the PR manually using the generated summary file")


main.add_command(pr, name="pr:summary")


@main.command("feature:pr")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.pass_context
def feature_pr(ctx: click.Context, verbose: bool) -> None:
    """Alias for: pr --base staging --create-pr --mode feature"""
    ctx.invoke(pr, base="staging", create_pr=True, mode=MODE_FEATURE, verbose=verbose)


@main.command("staging:pr")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.pass_context
def staging_pr(ctx: click.Context, verbose: bool) -> None:
    """Alias for: pr --base main --create-pr --mode release"""
    ctx.invoke(pr, base="main", create_pr=True, mode=MODE_RELEASE, verbose=verbose)


@main.command()
def init() -> None:
    """Add changescribe scripts to ./package.json without overwriting."""
    try:
        added = run_init(Path.cwd())
    except ManifestError as exc:
        fail(str(exc))
    if not added:
        print_success("Scripts already present; no changes made.")
        return
    print_success(f"Added npm scripts: {', '.join(added)}")
