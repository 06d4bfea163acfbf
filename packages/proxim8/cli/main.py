"""Command-line interface for Proxim8 media generation."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import sys

from rich.console import Console
from rich.table import Table

from proxim8.core.errors import JobNotFound, Proxim8Error
from proxim8.core.jobs.models import Job, JobStatus
from proxim8.core.pipeline.configs import PipelineConfigRegistry
from proxim8.core.session import Proxim8Session
from proxim8.core.utils.logging import configure_logging

console = Console()
logger = logging.getLogger(__name__)

_STATUS_COLORS = {
    JobStatus.QUEUED: "yellow",
    JobStatus.PROCESSING: "cyan",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}


def print_job(job: Job) -> None:
    """Render one job as a two-column table."""
    color = _STATUS_COLORS[job.status]
    table = Table(title=f"Job {job.job_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_row("Status", f"[{color}]{job.status.value}[/{color}]")
    table.add_row("NFT", job.nft_id)
    table.add_row("Pipeline", job.pipeline_type)
    table.add_row("Prompt", job.prompt)
    if job.enhanced_prompt:
        table.add_row("Enhanced prompt", job.enhanced_prompt)
    if job.image_url:
        table.add_row("Image", job.image_url)
    if job.video_operation_name:
        table.add_row("Video operation", job.video_operation_name)
    if job.video_url:
        table.add_row("Video", job.video_url)
    if job.from_cache:
        table.add_row("From cache", "yes")
    if job.error:
        table.add_row("Error", f"[red]{job.error}[/red]")
    console.print(table)


async def generate_async(args: argparse.Namespace, session: Proxim8Session) -> int:
    options: dict[str, str] = {}
    if args.size:
        options["size"] = args.size
    if args.style:
        options["style"] = args.style

    service = session.generation_service
    try:
        job = await service.submit(args.pipeline, args.nft_id, args.prompt, args.wallet, options)
        console.print(f"[green]Submitted job[/green] {job.job_id}")
        with console.status("Running pipeline..."):
            job = await service.wait(job.job_id, include_video=args.wait)
    finally:
        # Pollers still running are left for `proxim8 resume`
        await session.aclose(detach_pollers=True)

    print_job(job)
    if job.status is JobStatus.PROCESSING and job.video_operation_name:
        console.print(
            f"Video still rendering; run `proxim8 resume {job.job_id}` to collect it",
            soft_wrap=True,
        )
    return 1 if job.status is JobStatus.FAILED else 0


async def resume_async(args: argparse.Namespace, session: Proxim8Session) -> int:
    service = session.generation_service
    try:
        await service.resume(args.job_id)
        with console.status("Waiting for video..."):
            job = await service.wait(args.job_id, include_video=True)
    finally:
        await session.aclose(detach_pollers=True)

    print_job(job)
    return 1 if job.status is JobStatus.FAILED else 0


async def status_async(args: argparse.Namespace, session: Proxim8Session) -> int:
    job = await session.job_store.get(args.job_id)
    if job is None:
        raise JobNotFound(args.job_id)
    print_job(await session.url_manager.refresh_url_if_needed(job))
    return 0


async def refresh_async(args: argparse.Namespace, session: Proxim8Session) -> int:
    job = await session.url_manager.force_refresh_urls(args.job_id)
    console.print("[green]URLs refreshed[/green]")
    print_job(job)
    return 0


async def list_async(args: argparse.Namespace, session: Proxim8Session) -> int:
    jobs = await session.job_store.list_by_owner(args.wallet)
    jobs = await session.url_manager.refresh_many(jobs)
    if not jobs:
        console.print(f"No jobs for wallet {args.wallet}")
        return 0

    table = Table(title=f"Jobs for {args.wallet}")
    table.add_column("Job")
    table.add_column("Status")
    table.add_column("NFT")
    table.add_column("Created")
    table.add_column("Prompt", overflow="ellipsis", max_width=40)
    for job in jobs:
        color = _STATUS_COLORS[job.status]
        table.add_row(
            job.job_id,
            f"[{color}]{job.status.value}[/{color}]",
            job.nft_id,
            job.created_at.strftime("%Y-%m-%d %H:%M"),
            job.prompt,
        )
    console.print(table)
    return 0


def list_configs() -> int:
    table = Table(title="Pipeline configurations")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Steps")
    table.add_column("Description", overflow="fold")
    for config in PipelineConfigRegistry().list():
        table.add_row(config.id, config.name, ", ".join(config.steps), config.description)
    console.print(table)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for CLI."""
    p = argparse.ArgumentParser(
        prog="proxim8",
        description="Proxim8 - NFT image and video generation pipeline",
    )
    p.add_argument(
        "--app-config",
        default="config.json",
        help="Path to app config JSON or YAML (default: config.json)",
    )
    p.add_argument("--log-level", default=None, help="Override the configured log level")
    sub = p.add_subparsers(dest="cmd", required=True)

    gen = sub.add_parser("generate", help="Generate an image and video for an NFT")
    gen.add_argument("--nft-id", required=True, help="NFT id, mint address or token id")
    gen.add_argument("--prompt", required=True, help="What the character should be doing")
    gen.add_argument("--wallet", required=True, help="Owner wallet address")
    gen.add_argument(
        "--pipeline",
        default="standard",
        help="Pipeline type or configuration id (default: standard)",
    )
    gen.add_argument("--size", help="Image size (e.g. 1792x1024)")
    gen.add_argument("--style", help="Image style (e.g. vivid)")
    gen.add_argument(
        "--wait", action="store_true", help="Wait for the video to finish rendering"
    )

    resume = sub.add_parser("resume", help="Wait for the video of a detached job")
    resume.add_argument("job_id")

    status = sub.add_parser("status", help="Show a job with fresh URLs")
    status.add_argument("job_id")

    refresh = sub.add_parser("refresh", help="Re-sign every media URL of a job")
    refresh.add_argument("job_id")

    lst = sub.add_parser("list", help="List a wallet's jobs")
    lst.add_argument("--wallet", required=True)

    sub.add_parser("configs", help="List pipeline configurations")

    return p


def main() -> None:
    """Main entry point for CLI."""
    p = build_arg_parser()
    args = p.parse_args()

    if args.cmd == "configs":
        sys.exit(list_configs())

    session = Proxim8Session(app_config=Path(args.app_config))
    log_cfg = session.app_config.logging
    configure_logging(
        level=args.log_level or log_cfg.level,
        format_string=log_cfg.format,
        filename=log_cfg.filename,
        structured=log_cfg.structured,
    )

    commands = {
        "generate": generate_async,
        "resume": resume_async,
        "status": status_async,
        "refresh": refresh_async,
        "list": list_async,
    }
    needs_saved_jobs = args.cmd != "generate" or not args.wait
    if needs_saved_jobs and session.app_config.jobs.backend == "memory":
        console.print(
            "[yellow]Job store is in-memory; configure jobs.backend='file' to read "
            "jobs across invocations[/yellow]"
        )

    try:
        exit_code = asyncio.run(commands[args.cmd](args, session))
    except (Proxim8Error, ValueError) as e:
        console.print(f"[red]ERROR: {e}[/red]")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
