#!/usr/bin/env python3
"""
CLI for the curator pipeline jobs.
"""

import json

import click

from backend.src.curator.core.config import settings
from backend.src.curator.core.logging_config import setup_logging
from backend.src.curator.database.models.base import SessionLocal, create_tables
from backend.src.curator.ml.content_analysis.tag_generation import (
    TaxonomyTagger,
    summarize_assignments,
)
from backend.src.curator.services import jobs
from backend.src.curator.services.instructor_priority import InstructorPriorityService
from backend.src.curator.services.taxonomy_store import TaxonomyValidationError


def _echo_summary(summary):
    """Print a job summary as key: value lines."""
    for key, value in summary.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, default=str)
        click.echo(f"  {key}: {value}")


def _fail(message):
    click.echo(click.style(f"✗ Error: {message}", fg="red"), err=True)
    raise click.Abort()


@click.group()
@click.version_option(version=settings.app_version)
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
@click.pass_context
def cli(ctx, log_level):
    """Curator CLI - tag, analyze coverage, acquire videos and build profiles."""
    setup_logging(log_level)
    ctx.ensure_object(dict)
    # One taxonomy store (and cache) and one quota budget per process
    ctx.obj["store"] = jobs.create_taxonomy_store()
    ctx.obj["budget"] = jobs.create_quota_budget()


@cli.command("init-db")
def init_db():
    """Create database tables."""
    create_tables()
    click.echo(click.style("Database tables created", fg="green"))


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


@cli.group()
def taxonomy():
    """Manage the technique taxonomy."""
    pass


@taxonomy.command("load")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def taxonomy_load(ctx, path):
    """
    Bulk load taxonomy nodes from a JSON file.

    Example:
        curator taxonomy load taxonomy.json
    """
    store = ctx.obj["store"]
    db = SessionLocal()
    try:
        counts = store.load_file(db, path)
    except TaxonomyValidationError as e:
        _fail(f"Invalid taxonomy: {e}")
    finally:
        db.close()

    click.echo(
        f"Taxonomy loaded: {click.style(str(counts['created']), fg='green')} created, "
        f"{counts['updated']} updated"
    )


@taxonomy.command("invalidate")
@click.pass_context
def taxonomy_invalidate(ctx):
    """Drop the cached taxonomy tree."""
    ctx.obj["store"].invalidate()
    click.echo("Taxonomy cache invalidated")


# ---------------------------------------------------------------------------
# Tagging
# ---------------------------------------------------------------------------


@cli.group()
def tag():
    """Auto-tag videos against the taxonomy."""
    pass


@tag.command("backfill")
@click.option("--limit", "-l", type=int, default=None, help="Max videos to tag")
@click.pass_context
def tag_backfill(ctx, limit):
    """
    Tag every active video that has no tags yet.

    Example:
        curator tag backfill
        curator tag backfill --limit 500
    """
    try:
        summary = jobs.run_tagging_backfill(store=ctx.obj["store"], limit=limit)
    except jobs.JobAlreadyRunningError as e:
        _fail(str(e))

    click.echo(click.style("Tagging backfill complete", fg="green"))
    _echo_summary(summary)


@tag.command("preview")
@click.option("--title", "-t", required=True, help="Video title")
@click.option("--technique-name", "-n", default=None, help="Technique name")
@click.option("--technique-type", "-y", default=None, help="Technique type(s)")
@click.option("--position", "-p", default=None, help="Position category")
@click.pass_context
def tag_preview(ctx, title, technique_name, technique_type, position):
    """
    Show which nodes a video would be tagged with, without writing anything.

    Example:
        curator tag preview -t "Deep Half Guard Sweep Tutorial"
    """
    store = ctx.obj["store"]
    tagger = TaxonomyTagger(store)
    db = SessionLocal()
    try:
        snapshot = store.snapshot(db)
    finally:
        db.close()

    assignments = tagger.classify(
        snapshot,
        title=title,
        technique_name=technique_name,
        technique_type=technique_type,
        position_category=position,
    )
    if not assignments:
        click.echo(click.style("Taxonomy is empty", fg="yellow"))
        return

    for a in assignments:
        click.echo(
            f"  {click.style(a.slug, fg='cyan', bold=True)} "
            f"L{a.level} {a.relevance} ({a.describe()})"
        )
    for provenance, slugs in summarize_assignments(assignments).items():
        click.echo(f"  {provenance}: {', '.join(slugs)}")


# ---------------------------------------------------------------------------
# Coverage
# ---------------------------------------------------------------------------


@cli.group()
def coverage():
    """Coverage gap analysis."""
    pass


@coverage.command("report")
@click.option("--technique", "-t", multiple=True, help="Restrict to technique name(s)")
@click.option("--top", "top_n", type=int, default=None, help="Number of priorities")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def coverage_report(ctx, technique, top_n, as_json):
    """
    Rank under-covered techniques.

    Example:
        curator coverage report
        curator coverage report --technique "Half Guard" --technique "Mount"
    """
    try:
        summary = jobs.run_coverage_analysis(
            techniques=list(technique) or None,
            top_n=top_n,
            store=ctx.obj["store"],
        )
    except jobs.JobAlreadyRunningError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo(
        f"Library: {summary['library_total']}/{summary['library_target']} videos "
        f"({summary['library_remaining']} to go)"
    )
    click.echo(
        f"Techniques needing curation: {summary['techniques_needing_curation']}"
        f"/{summary['techniques_analyzed']}\n"
    )
    if not summary["priorities"]:
        click.echo(click.style("No coverage gaps", fg="green"))
        return

    for p in summary["priorities"]:
        click.echo(
            f"  {p['priority_score']:6.2f}  {click.style(p['technique_name'], bold=True)}"
            f"  {p['current_count']}/{p['target_count']}"
        )


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--technique", "-t", multiple=True, help="Target technique name(s)")
@click.option("--instructor", "-i", multiple=True, help="Target instructor name(s)")
@click.option("--category", "-c", default=None, help="Seed query category")
@click.pass_context
def acquire(ctx, technique, instructor, category):
    """
    Search the catalog and add new videos.

    Without targets, queries come from the current coverage gaps.

    Example:
        curator acquire
        curator acquire --technique "Knee Cut Pass"
        curator acquire --instructor "John Danaher"
        curator acquire --category escapes
    """
    try:
        summary = jobs.run_acquisition(
            techniques=list(technique),
            instructors=list(instructor),
            category=category,
            budget=ctx.obj["budget"],
            store=ctx.obj["store"],
        )
    except jobs.JobAlreadyRunningError as e:
        _fail(str(e))
    except ValueError as e:
        _fail(f"Cannot start acquisition: {e}")

    if summary["quota_exhausted"]:
        click.echo(click.style("Quota exhausted; run halted early", fg="yellow"))
    else:
        click.echo(click.style("Acquisition complete", fg="green"))
    _echo_summary(summary)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


@cli.group()
def profiles():
    """User preference profiles."""
    pass


@profiles.command("refresh")
@click.option("--user", "-u", multiple=True, help="User id(s); default all active")
def profiles_refresh(user):
    """
    Rebuild user profiles from feedback history.

    Example:
        curator profiles refresh
        curator profiles refresh --user 42
    """
    try:
        summary = jobs.run_profile_refresh(user_ids=list(user) or None)
    except jobs.JobAlreadyRunningError as e:
        _fail(str(e))

    click.echo(click.style("Profile refresh complete", fg="green"))
    _echo_summary(summary)


# ---------------------------------------------------------------------------
# Instructors
# ---------------------------------------------------------------------------


@cli.group()
def instructors():
    """Instructor credibility and priority."""
    pass


@instructors.command("recalculate")
def instructors_recalculate():
    """Refresh instructor video counts and priority scores."""
    try:
        summary = jobs.run_instructor_recalculation()
    except jobs.JobAlreadyRunningError as e:
        _fail(str(e))

    click.echo(click.style("Instructor recalculation complete", fg="green"))
    _echo_summary(summary)


@instructors.command("pin")
@click.argument("name")
@click.argument("priority", type=float, required=False)
def instructors_pin(name, priority):
    """
    Pin an instructor's priority; omit PRIORITY to unpin.

    Example:
        curator instructors pin "Gordon Ryan" 95
        curator instructors pin "Gordon Ryan"
    """
    db = SessionLocal()
    try:
        instructor = InstructorPriorityService().set_manual_priority(db, name, priority)
        click.echo(
            f"{click.style(instructor.name, bold=True)}: priority "
            f"{instructor.priority_score} "
            f"({'manual' if instructor.manual_override else 'automatic'})"
        )
    except LookupError as e:
        _fail(str(e))
    finally:
        db.close()


if __name__ == "__main__":
    cli()
