"""
Command line entry point: sprint analysis and member task reports
"""
import argparse
import asyncio
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

from .analysis import WorkItemAnalyzer
from .auth import AzureDevOpsAuth
from .config import AzureDevOpsSettings, split_member_filters
from .errors import AzureDevOpsError, ConfigurationError
from .log_sanitizer import safe_log_error
from .models import SprintData
from .reporting import MarkdownReportBuilder, MemberTaskReportBuilder, ReportContext
from .service_manager import ServiceManager
from .validation import ValidationError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2
EXIT_INTERRUPTED = 130

_INVALID_FILE_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def configure_argument_parser() -> argparse.ArgumentParser:
    """Configure an ArgumentParser that manages command line options."""
    parser = argparse.ArgumentParser(
        prog="sprint-report",
        description="Generate Markdown sprint reports from Azure DevOps work items and capacity."
    )
    parser.add_argument(
        "sprints",
        metavar="SPRINT",
        nargs="*",
        help=(
            "Sprint name. The sprint report uses the first one; a member report is "
            "written for each. Defaults to AZURE_DEVOPS_SPRINT_NAME or the current sprint."
        ),
    )
    parser.add_argument(
        "-m",
        "--member-report",
        action="store_true",
        help="Write a member task report (tasks and bugs per assignee) instead",
    )
    parser.add_argument(
        "--members",
        metavar="NAME;NAME",
        help="Restrict the member report to these assignees (';' or ',' separated)",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        metavar="DIR",
        help="Write reports to this directory rather than REPORT_OUTPUT_DIR or the current one",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose (debug) output")
    return parser


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        format="[%(asctime)s %(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stderr,
    )
    # The SDK logs every request at INFO
    logging.getLogger("msrest").setLevel(logging.WARNING)
    logging.getLogger("azure").setLevel(logging.WARNING)


def file_date(moment: datetime) -> str:
    """Date part of report file names, e.g. Jan_5_2025."""
    return f"{moment:%b}_{moment.day}_{moment.year}"


def sanitize_file_name_segment(value: str) -> str:
    return _INVALID_FILE_NAME_CHARS.sub("_", value).replace(" ", "_")


def sprint_report_file_name(moment: datetime) -> str:
    return f"Sprint_Complete_Analysis_{file_date(moment)}.md"


def member_report_file_name(sprint_name: str, moment: datetime) -> str:
    return f"Member_Task_Report_{sanitize_file_name_segment(sprint_name)}_{file_date(moment)}.md"


def write_report(output_dir: str, file_name: str, content: str) -> Path:
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / file_name
    path.write_text(content, encoding="utf-8")
    return path


def build_context(
    settings: AzureDevOpsSettings,
    sprint_data: SprintData,
    generated_at: datetime,
    member_filters: Optional[List[str]] = None
) -> ReportContext:
    iteration = sprint_data.iteration
    return ReportContext(
        sprint_name=sprint_data.sprint_name,
        team_name=settings.team or "Team",
        start_date=iteration.start_date if iteration else None,
        end_date=iteration.finish_date if iteration else None,
        generated_at=generated_at,
        team_capacities=list(sprint_data.team_capacities),
        member_filters=list(member_filters or []),
        has_data=sprint_data.has_data,
    )


async def resolve_sprint_name(
    settings: AzureDevOpsSettings,
    argument: Optional[str],
    manager: ServiceManager
) -> Optional[str]:
    """Configured sprint name, then the command line argument, then the current sprint."""
    if settings.sprint_name:
        return settings.sprint_name
    if argument and argument.strip():
        return argument.strip()

    lookup = await manager.get_current_sprint_name()
    return lookup.value if lookup.found else None


async def generate_sprint_report(
    manager: ServiceManager,
    settings: AzureDevOpsSettings,
    sprint_name: str,
    output_dir: str
) -> Path:
    logger.info(f"Generating report for sprint: {sprint_name}")
    sprint_data = await manager.get_sprint_data(sprint_name)

    logger.info("Analyzing data...")
    iteration = sprint_data.iteration
    analysis = WorkItemAnalyzer().analyze(
        sprint_data.work_items,
        iteration.start_date if iteration else None,
        sprint_data.iteration_work_item_ids,
    )

    generated_at = datetime.now()
    report = MarkdownReportBuilder().build(
        analysis, build_context(settings, sprint_data, generated_at)
    )
    return write_report(output_dir, sprint_report_file_name(generated_at), report)


async def generate_member_reports(
    manager: ServiceManager,
    settings: AzureDevOpsSettings,
    sprint_names: List[str],
    member_filters: List[str],
    output_dir: str
) -> List[Path]:
    paths = []
    builder = MemberTaskReportBuilder()
    for sprint_name in sprint_names:
        logger.info(f"Generating member task report for sprint: {sprint_name}")
        sprint_data = await manager.get_sprint_data(sprint_name)

        generated_at = datetime.now()
        report = builder.build(
            sprint_data, build_context(settings, sprint_data, generated_at, member_filters)
        )
        paths.append(write_report(
            output_dir, member_report_file_name(sprint_name, generated_at), report
        ))
    return paths


async def run(args: argparse.Namespace, settings: AzureDevOpsSettings) -> int:
    auth = AzureDevOpsAuth.from_settings(settings)
    auth.initialize()
    manager = ServiceManager(auth, settings)
    try:
        output_dir = args.output_dir or settings.output_dir
        sprint_arguments = [unquote(name) for name in args.sprints if name.strip()]

        if args.member_report:
            if not sprint_arguments:
                fallback = await resolve_sprint_name(settings, None, manager)
                if not fallback:
                    print(
                        "Error: Could not determine sprint name for member report. Provide "
                        "sprint names after --member-report or configure defaults.",
                        file=sys.stderr
                    )
                    return EXIT_FAILURE
                sprint_arguments = [fallback]

            member_filters = split_member_filters(args.members) or settings.member_filters
            paths = await generate_member_reports(
                manager, settings, sprint_arguments, member_filters, output_dir
            )
            for path in paths:
                print(f"Report generated: {path}")
            return EXIT_OK

        sprint_name = await resolve_sprint_name(
            settings, sprint_arguments[0] if sprint_arguments else None, manager
        )
        if not sprint_name:
            print(
                "Error: Could not determine sprint name. Set AZURE_DEVOPS_SPRINT_NAME, provide "
                "it as an argument, or ensure the team has a current iteration.",
                file=sys.stderr
            )
            return EXIT_FAILURE

        path = await generate_sprint_report(manager, settings, sprint_name, output_dir)
        print(f"Report generated: {path}")
        return EXIT_OK
    finally:
        manager.close()
        auth.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = configure_argument_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = AzureDevOpsSettings.from_env().validate()
        return asyncio.run(run(args, settings))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except AzureDevOpsError as e:
        print(f"✗ {safe_log_error(e, 'Report generation failed')}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
