"""
Command-line front-end.

Converts one or more Dolby Vision Profile 5 MKV files as a batch queue,
stopping at the first file that does not convert, and prints job events as
they arrive. Ctrl+C cancels the file in progress.
"""

import argparse
import logging
import sys
import threading
from pathlib import Path

from dvmux.config import get_settings
from dvmux.models.errors import DvmuxError
from dvmux.models.events import (
    BaseEvent,
    JobFinished,
    JobProgress,
    StageFinished,
    StageLogLine,
    StageStarted,
)
from dvmux.models.job import JobRequest, JobResult, JobState
from dvmux.pipeline.manager import JobManager
from dvmux.pipeline.orchestrator import Orchestrator
from dvmux.tools.frame_rate import parse_frame_rate

logger = logging.getLogger("dvmux")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dvmux",
        description="Convert Dolby Vision Profile 5 MKV files to dvh1 MP4.",
    )
    parser.add_argument("inputs", nargs="+", type=Path, help="Input MKV files.")
    parser.add_argument(
        "-o", "--output-dir", type=Path, required=True, help="Folder for converted files."
    )
    parser.add_argument(
        "--subtitles", action="store_true", help="Carry the first subtitle track into the MP4."
    )
    parser.add_argument(
        "--frame-rate",
        default="film-ntsc",
        help="film-ntsc, film-pal, tv-ntsc, tv-pal, hfr, hfr-ntsc, a fraction such as "
        "24000/1001, or 'auto' to let the muxer detect it.",
    )
    parser.add_argument(
        "--keep-temp", action="store_true", help="Keep intermediate files for debugging."
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set the logging level. DEBUG also prints tool output.",
    )
    return parser


def build_requests(args: argparse.Namespace) -> list[JobRequest]:
    frame_rate = None if args.frame_rate.lower() == "auto" else parse_frame_rate(args.frame_rate)
    return [
        JobRequest(
            input_path=path,
            output_dir=args.output_dir,
            include_subtitles=args.subtitles,
            frame_rate=frame_rate,
            keep_temp=args.keep_temp,
        )
        for path in args.inputs
    ]


def print_event(event: BaseEvent) -> None:
    if isinstance(event, StageStarted):
        logger.info("%s started", event.stage.value)
    elif isinstance(event, StageLogLine):
        logger.debug("[%s] %s", event.stage.value, event.text)
    elif isinstance(event, StageFinished):
        if event.error:
            logger.error("%s %s: %s", event.stage.value, event.outcome.value, event.error)
        else:
            logger.info("%s %s", event.stage.value, event.outcome.value)
    elif isinstance(event, JobProgress):
        logger.info("Progress %.0f%%", event.fraction * 100)
    elif isinstance(event, JobFinished):
        if event.final_state == JobState.SUCCEEDED:
            logger.info("Done: %s", event.final_output_path)
        elif event.final_state == JobState.FAILED:
            logger.error("Failed: %s", event.error)
            for line in event.diagnostics:
                logger.error("  %s", line)
        else:
            logger.warning("Cancelled")


def exit_code(results: list[JobResult], expected: int) -> int:
    if any(r.state == JobState.CANCELLED for r in results):
        return EXIT_CANCELLED
    if len(results) == expected and all(r.succeeded for r in results):
        return EXIT_OK
    return EXIT_FAILED


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(message)s",
    )

    try:
        requests = build_requests(args)
    except DvmuxError as e:
        logger.error(e.message)
        return EXIT_FAILED

    manager = JobManager(get_settings())
    current: list[Orchestrator] = []
    interrupted = threading.Event()
    results: list[JobResult] = []

    def on_job(index: int, orchestrator: Orchestrator) -> None:
        name = requests[index].input_path.name
        logger.info("Processing file %d/%d: %s", index + 1, len(requests), name)
        current[:] = [orchestrator]
        if interrupted.is_set():
            orchestrator.cancel()

    def work() -> None:
        results.extend(manager.run_batch(requests, on_event=print_event, on_job=on_job))

    worker = threading.Thread(target=work, name="dvmux-batch")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        logger.warning("Interrupted, cancelling current file...")
        interrupted.set()
        for orchestrator in current:
            orchestrator.cancel()
        worker.join()

    code = exit_code(results, len(requests))
    if code == EXIT_OK:
        logger.info("All %d files processed successfully", len(requests))
    return code


if __name__ == "__main__":
    sys.exit(main())
