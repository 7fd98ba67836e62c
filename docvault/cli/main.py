# =============================================================================
# docvault/cli/main.py: Command-Line Interface
# =============================================================================
#
# One entry point, one subcommand per pipeline stage:
#
#   ingest   : Walk a folder / file / archive, register files, enqueue tasks
#   clean    : Process pending cleaning tasks (then index cleaned text)
#   index    : Re-index every completed text_cleanup output
#   search   : Similarity search over the vector store
#   tasks    : List cleaning tasks
#   jobs     : List ingestion jobs
#   stats    : Task, job and vector-store counters
#   insights : Content-quality report
#
# Command output goes to stdout; structured logs go to stderr.  Ctrl-C during
# ingest / clean / index sets the cancellation flag, so the current unit
# finishes and the job ends in its cancelled state instead of dying mid-write.
#
# Usage examples:
#   python -m docvault.cli ingest ~/Documents/notes
#   python -m docvault.cli clean --limit 50
#   python -m docvault.cli search "quarterly revenue" --limit 5 --threshold 0.3
# =============================================================================

"""docvault command-line interface."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence

from docvault.config.settings import Settings
from docvault.main import Application, build_application
from docvault.models.cleaning import TaskStatus
from docvault.models.progress import ProgressEvent
from docvault.pipeline.progress_tracker import ALL_CHANNELS
from docvault.utils.concurrency import CancellationToken
from docvault.utils.errors import DocVaultError
from docvault.utils.logging import configure_logging


def _install_cancel_handler(token: CancellationToken) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError):
        # Not supported on this platform / loop; Ctrl-C raises as usual.
        pass


def _print_progress(event: ProgressEvent) -> None:
    eta = f" eta {event.eta_seconds:.0f}s" if event.eta_seconds is not None else ""
    print(
        f"\r[{event.channel}] {event.progress_percent:5.1f}% "
        f"{event.processed + event.failed}/{event.total} ({event.failed} failed){eta}",
        end="\n" if event.type.value == "completed" else "",
        file=sys.stderr,
        flush=True,
    )


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, app: Application) -> int:
    token = CancellationToken()
    _install_cancel_handler(token)
    app.progress.register_listener(ALL_CHANNELS, _print_progress)

    job = await app.ingestion.ingest(args.path, job_type=args.job_type, cancel_token=token)
    stats = await app.task_queue.get_stats()
    print(f"Job {job.id}: {job.status.value}")
    print(f"  Files:      {job.total_files}")
    print(f"  Processed:  {job.processed_files}")
    print(f"  Errors:     {job.error_count}")
    print(f"  Pending tasks: {stats.pending_tasks}")
    return 0


async def _handle_clean(args: argparse.Namespace, app: Application) -> int:
    token = CancellationToken()
    _install_cancel_handler(token)
    app.progress.register_listener(ALL_CHANNELS, _print_progress)

    result = await app.processor.process_pending(limit=args.limit, cancel_token=token)
    indexed = await app.worker.drain()
    print(f"Cleaning {'cancelled' if result.cancelled else 'complete'}:")
    print(f"  Tasks:      {result.total}")
    print(f"  Completed:  {result.completed}")
    print(f"  Failed:     {result.failed}")
    print(f"  Indexed:    {len(indexed)} cleaned files, {sum(r.chunks_indexed for r in indexed)} chunks")
    return 0


async def _handle_index(args: argparse.Namespace, app: Application) -> int:  # noqa: ARG001
    token = CancellationToken()
    _install_cancel_handler(token)
    app.progress.register_listener(ALL_CHANNELS, _print_progress)

    result = await app.indexing.reindex_cleaned_outputs(cancel_token=token)
    print(f"Re-indexing {'cancelled' if result.cancelled else 'complete'}:")
    print(f"  Files:      {result.total}")
    print(f"  Indexed:    {result.completed}")
    print(f"  Failed:     {result.failed}")
    return 0


async def _handle_search(args: argparse.Namespace, app: Application) -> int:
    results = await app.search.search_text(args.query, limit=args.limit, threshold=args.threshold)
    if not results:
        print("No matches.")
        return 0
    for rank, hit in enumerate(results, start=1):
        preview = " ".join(hit.text.split())[:120]
        print(f"{rank:>3}. {hit.similarity_score:.4f}  {hit.content_type}:{hit.content_id}#{hit.chunk_index}")
        print(f"     {preview}")
    return 0


async def _handle_tasks(args: argparse.Namespace, app: Application) -> int:
    tasks = await app.task_queue.list_tasks(limit=args.limit, status=args.status)
    if not tasks:
        print("No cleaning tasks.")
        return 0
    print(f"{'ID':>6}  {'FILE':>6}  {'TYPE':<22} {'STATUS':<10} PRI  ERROR")
    for task in tasks:
        print(
            f"{task.id:>6}  {task.file_id:>6}  {task.task_type.value:<22} "
            f"{task.status.value:<10} {task.priority:>3}  {task.error_message or ''}"
        )
    return 0


async def _handle_jobs(args: argparse.Namespace, app: Application) -> int:
    jobs = await app.ingestion.list_jobs(limit=args.limit)
    if not jobs:
        print("No ingestion jobs.")
        return 0
    for job in jobs:
        print(
            f"{job.id:>6}  {job.status.value:<10} {job.progress:5.1f}%  "
            f"{job.processed_files}/{job.total_files} ({job.error_count} errors)  {job.source_path}"
        )
        if job.error_message:
            print(f"        {job.error_message}")
    return 0


async def _handle_stats(args: argparse.Namespace, app: Application) -> int:  # noqa: ARG001
    tasks = await app.task_queue.get_stats()
    jobs = await app.ingestion.get_job_stats()
    vectors = await app.vector_store.get_stats()

    print("Cleaning tasks")
    print("=" * 40)
    print(f"  Total:      {tasks.total_tasks}")
    print(f"  Pending:    {tasks.pending_tasks}")
    print(f"  Running:    {tasks.running_tasks}")
    print(f"  Completed:  {tasks.completed_tasks}")
    print(f"  Failed:     {tasks.failed_tasks}")
    if tasks.average_processing_seconds is not None:
        print(f"  Avg time:   {tasks.average_processing_seconds:.2f}s")

    print("\nIngestion jobs")
    print("=" * 40)
    print(f"  Total:      {jobs.total_jobs}")
    print(f"  Completed:  {jobs.completed_jobs}")
    print(f"  Failed:     {jobs.failed_jobs}")
    print(f"  Cancelled:  {jobs.cancelled_jobs}")
    print(f"  Files:      {jobs.total_files_processed} processed, {jobs.total_errors} errors")

    print("\nVector store")
    print("=" * 40)
    print(f"  Vectors:    {vectors.total_vectors}")
    print(f"  Models:     {', '.join(vectors.model_names) or '-'}")
    print(f"  Dimension:  {vectors.dimension or '-'}")
    return 0


async def _handle_insights(args: argparse.Namespace, app: Application) -> int:  # noqa: ARG001
    insights = await app.insights.content_quality_insights()
    if not insights:
        print("No insights yet.")
        return 0
    for insight in sorted(insights, key=lambda i: -i.priority):
        print(f"[{insight.insight_type}] {insight.title} (confidence {insight.confidence:.2f})")
        print(f"    {insight.description}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "clean": _handle_clean,
    "index": _handle_index,
    "search": _handle_search,
    "tasks": _handle_tasks,
    "jobs": _handle_jobs,
    "stats": _handle_stats,
    "insights": _handle_insights,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m docvault.cli",
        description="Ingest, clean, index and search a local document collection.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a folder, file or archive")
    ingest_parser.add_argument("path", help="Source path")
    ingest_parser.add_argument(
        "--job-type",
        dest="job_type",
        default="folder",
        choices=["folder", "file", "archive"],
        help="Job type label (default: folder)",
    )

    # -- clean --
    clean_parser = subparsers.add_parser("clean", help="Process pending cleaning tasks")
    clean_parser.add_argument("--limit", type=int, default=None, help="Maximum tasks to process")

    # -- index --
    subparsers.add_parser("index", help="Re-index all cleaned text")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Similarity search")
    search_parser.add_argument("query", help="Query text")
    search_parser.add_argument("--limit", type=int, default=None, help="Maximum results")
    search_parser.add_argument("--threshold", type=float, default=None, help="Minimum similarity")

    # -- tasks --
    tasks_parser = subparsers.add_parser("tasks", help="List cleaning tasks")
    tasks_parser.add_argument("--status", choices=[s.value for s in TaskStatus], default=None)
    tasks_parser.add_argument("--limit", type=int, default=50)

    # -- jobs --
    jobs_parser = subparsers.add_parser("jobs", help="List ingestion jobs")
    jobs_parser.add_argument("--limit", type=int, default=20)

    # -- stats / insights --
    subparsers.add_parser("stats", help="Show task, job and vector counters")
    subparsers.add_parser("insights", help="Show the content-quality report")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app: Application) -> int:
    async with app:
        return await _HANDLERS[args.command](args, app)


def main(argv: Sequence[str] | None = None, app: Application | None = None) -> int:
    """Parse *argv*, run the command and return the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    app_settings = app.settings if app is not None else Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    app = app or build_application(app_settings)

    try:
        return asyncio.run(_run(args, app))
    except DocVaultError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
