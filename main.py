#!/usr/bin/env python3
"""NoteFlow - Turns recordings and documents into Notion pages."""

import argparse
import asyncio
import sys
from typing import Dict, List, Optional, Tuple

from extraction import ContentExtractor, FileFamily
from models import LLM, MeteredLLM, create_llm
from noteflow import NoteFlow, __version__
from noteflow.settings import Settings
from sinks import create_sinks
from storage import (
    LocalDriver,
    SourceDriver,
    StorageError,
    create_storage_or_unavailable,
    parse_storage_uri,
)
from workflows import (
    CallBudget,
    FilterPolicy,
    FolderMonitor,
    InsightGenerator,
    OutcomeLog,
    Pipeline,
    ProcessingGuard,
    SourceFolder,
    Trigger,
    ValidationConfig,
    ValidationGate,
)


def build_sources(settings: Settings) -> Tuple[List[SourceFolder], Dict[str, SourceDriver]]:
    """Create source drivers and the folders watched on each.

    Recordings folders accept speech files only, PDF folders documents only.
    """
    speech = FilterPolicy(frozenset({FileFamily.SPEECH}), settings.max_file_size_bytes)
    documents = FilterPolicy(frozenset({FileFamily.DOCUMENT}), settings.max_file_size_bytes)

    dropbox = create_storage_or_unavailable("dropbox", settings)
    gdrive = create_storage_or_unavailable("gdrive", settings)

    folders = [
        SourceFolder(dropbox, settings.dropbox_folder_path, speech),
        SourceFolder(dropbox, settings.dropbox_pdf_folder_path, documents),
    ]
    if settings.gdrive_folder_id:
        folders.append(SourceFolder(gdrive, settings.gdrive_folder_id, speech))
    if settings.gdrive_pdf_folder_id:
        folders.append(SourceFolder(gdrive, settings.gdrive_pdf_folder_id, documents))

    sources = {
        "dropbox": dropbox,
        "gdrive": gdrive,
        "local": LocalDriver("/"),
    }
    return folders, sources


def build_llm(settings: Settings, budget: CallBudget) -> Tuple[Optional[LLM], Optional[str]]:
    """Create the metered model client, or return the reason it can't be created."""
    try:
        llm = create_llm(settings.llm_provider, settings)
    except ValueError as e:
        return None, str(e)
    except Exception as e:
        return None, f"{settings.llm_provider} client could not be created: {e}"
    return MeteredLLM(llm, budget), None


def build_pipeline(settings: Settings, llm: Optional[LLM], budget: CallBudget) -> Pipeline:
    """Wire every component from settings."""
    folders, sources = build_sources(settings)

    return Pipeline(
        folders=folders,
        extractor=ContentExtractor.from_llm(
            llm,
            ocr_language=settings.ocr_language,
            max_chars=settings.max_document_text_length,
        ),
        insights=InsightGenerator(
            llm,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        ),
        sinks=create_sinks(settings),
        budget=budget,
        guard=ProcessingGuard(settings.dedup_window_seconds, settings.dedup_capacity),
        validator=ValidationGate(ValidationConfig.from_settings(settings)),
        outcome_log=OutcomeLog(),
        sources=sources,
        default_policy=FilterPolicy(max_size_bytes=settings.max_file_size_bytes),
        temp_dir=settings.temp_dir,
        max_concurrent=settings.max_concurrent_files,
    )


def print_status(settings: Settings, pipeline: Pipeline, llm_error: Optional[str]) -> None:
    """Print configuration and backend availability."""
    status = pipeline.status()

    print(f"NoteFlow v{__version__}")
    print(f"LLM provider: {settings.llm_provider}"
          + (f" (unavailable: {llm_error})" if llm_error else ""))
    print(f"Daily API budget: {status['budget_remaining']}/{status['budget_limit']} remaining")
    print(f"Max concurrent files: {settings.max_concurrent_files}")
    print(f"Dedup window: {settings.dedup_window_seconds:g}s, capacity {settings.dedup_capacity}")
    print()
    print("Sources:")
    for folder in pipeline.folders:
        state = "ok" if folder.source.is_available else folder.source.display_name
        print(f"  {folder.label}: {state}")
    print("Destinations:")
    for family, sink in pipeline.sinks.items():
        state = "ok" if sink.is_available else sink.display_name
        print(f"  {family.value}: {state}")


def configuration_problem(pipeline: Pipeline, llm_error: Optional[str]) -> Optional[str]:
    """Describe why nothing can be processed, or None if something can."""
    if llm_error:
        return f"No model provider: {llm_error}"
    if not any(folder.source.is_available for folder in pipeline.folders):
        return ("No source is available. Provide dropbox_token.json (or DROPBOX_TOKEN_JSON), "
                "or GDRIVE_FOLDER_ID with service_account_key.json")
    if not any(sink.is_available for sink in pipeline.sinks.values()):
        return "No destination is available. Set NOTION_API_KEY and NOTION_DATABASE_ID"
    return None


def print_summary(pipeline: Pipeline) -> None:
    counts = pipeline.outcome_log.counts()
    NoteFlow.print_right(
        f"\n[green]Done:[/green] {counts['processed']} processed, "
        f"{counts['skipped']} skipped, {counts['failed']} failed"
    )


def run_rescan(pipeline: Pipeline) -> None:
    asyncio.run(pipeline.run(Trigger.FORCE_RESCAN, force_update=NoteFlow.force_update))
    print_summary(pipeline)


def run_file(pipeline: Pipeline, uri: str) -> int:
    try:
        backend, path = parse_storage_uri(uri)
        outcome = asyncio.run(pipeline.process_path(backend, path, force_update=True))
    except (ValueError, StorageError) as e:
        print(f"Error: {e}")
        return 1

    if outcome is None:
        print(f"{uri} is already being processed or was processed moments ago")
        return 0
    print(f"{outcome.status}: {outcome.page_url or outcome.reason or ''}")
    return 1 if outcome.status == "failed" else 0


def run_watch(pipeline: Pipeline, interval: float, use_cli: bool) -> None:
    monitor = FolderMonitor(pipeline, interval)

    if use_cli:
        try:
            asyncio.run(monitor.run_forever())
        except KeyboardInterrupt:
            print("Stopped")
        return

    from textui import NoteFlowApp

    sources = ", ".join(folder.label for folder in pipeline.folders if folder.source.is_available)
    destinations = ", ".join(sink.display_name for sink in pipeline.sinks.values() if sink.is_available)

    app = NoteFlowApp(
        sources=sources,
        destinations=destinations,
        process_func=lambda: asyncio.run(monitor.run_forever()),
        stop_func=monitor.stop,
    )
    app.run()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Turn recordings and documents into Notion pages")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--watch", action="store_true",
                      help="Watch the configured folders (default)")
    mode.add_argument("--rescan", action="store_true",
                      help="Scan every folder once and exit")
    mode.add_argument("--file", type=str, metavar="URI",
                      help="Reprocess one file (dropbox:/path, gdrive:file_id or local:/path)")
    mode.add_argument("--status", action="store_true",
                      help="Print configuration and backend availability")
    parser.add_argument("--force-update", action="store_true",
                        help="Overwrite existing pages during --rescan")
    parser.add_argument("--interval", type=float,
                        help="Seconds between scans in watch mode (default: SCAN_INTERVAL_SECONDS)")
    parser.add_argument("--cli", action="store_true",
                        help="Use CLI output instead of TextUI (default is TextUI)")
    parser.add_argument("--verbose", action="store_true",
                        help="Show debug output")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Error: {e}")
        return 2
    NoteFlow.configure(args, settings)

    budget = CallBudget(settings.daily_api_limit)
    llm, llm_error = build_llm(settings, budget)
    pipeline = build_pipeline(settings, llm, budget)

    if args.status:
        print_status(settings, pipeline, llm_error)
        return 0

    problem = configuration_problem(pipeline, llm_error)
    if problem and not args.file:
        print(f"Error: {problem}")
        print("Run with --status to see what is configured")
        return 1
    if llm_error:
        print(f"Error: No model provider: {llm_error}")
        return 1

    if args.rescan:
        run_rescan(pipeline)
    elif args.file:
        return run_file(pipeline, args.file)
    else:
        run_watch(pipeline, args.interval or settings.scan_interval_seconds, args.cli)
    return 0


if __name__ == "__main__":
    sys.exit(main())
