"""Command line front end for proctree."""

import logging
import sys

import click

from proctree.config import Settings
from proctree.dispatcher import SignalDispatcher
from proctree.models import DispatchReport, KillReport, QueryResult
from proctree.procfs import ProcFS
from proctree.tree import COUNT_UNAVAILABLE, TreeQuery

# (flag, parameter name, help) for every operation on the target process.
OPERATIONS = [
    ("-dc", "zombie_count", "Count defunct descendants"),
    ("-ds", "non_direct", "List non-direct descendants"),
    ("-id", "children", "List immediate descendants"),
    ("-lg", "siblings", "List sibling processes"),
    ("-lz", "zombie_siblings", "List defunct siblings"),
    ("-df", "zombie_descendants", "List defunct descendants"),
    ("-gc", "grandchildren", "List grandchildren"),
    ("-do", "defunct_status", "Report whether the process is defunct"),
    ("--pz", "kill_zombie_parents", "Kill the parents of defunct descendants"),
    ("-sk", "kill", "Kill all descendants"),
    ("-st", "stop", "Stop all descendants"),
    ("-dt", "resume", "Continue all stopped descendants"),
    ("-rp", "kill_root", "Kill the root process"),
]

LIST_QUERIES = {
    "non_direct": TreeQuery.non_direct_descendants,
    "children": TreeQuery.direct_children,
    "siblings": TreeQuery.siblings,
    "zombie_siblings": TreeQuery.zombie_siblings,
    "zombie_descendants": TreeQuery.zombie_descendants,
    "grandchildren": TreeQuery.grandchildren,
}

# Line printed for every process that accepted the signal.
SUCCESS_LINES = {
    "stop": "Stopped descendant {pid}",
    "resume": "Continued descendant {pid}",
    "kill": "Killed descendant {pid}",
}


def operation_options(func):
    for flag, name, help_text in reversed(OPERATIONS):
        func = click.option(flag, name, is_flag=True, help=help_text)(func)
    return func


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        force=True,
    )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("root", type=click.IntRange(min=1))
@click.argument("target", type=click.IntRange(min=1))
@operation_options
@click.option("--proc-root", default=None, help="Process information filesystem (default /proc)")
@click.option("--max-hops", type=click.IntRange(min=1), default=None, help="Ancestry walk limit")
@click.option("-v", "--verbose", is_flag=True, help="Log diagnostics to stderr")
def cli(root, target, proc_root, max_hops, verbose, **flags):
    """Inspect and control the process tree rooted at ROOT, around TARGET."""
    configure_logging(verbose)

    selected = [name for _, name, _ in OPERATIONS if flags[name]]
    if len(selected) > 1:
        raise click.UsageError("Only one operation may be given")
    operation = selected[0] if selected else None

    settings = Settings.from_env()
    if proc_root is not None:
        settings.proc_root = proc_root
    if max_hops is not None:
        settings.max_hops = max_hops

    query = TreeQuery(ProcFS(settings.proc_root), max_hops=settings.max_hops)
    dispatcher = SignalDispatcher(query, kill_capacity=settings.kill_capacity)

    if query.record(root) is None:
        click.echo(f"Error: Root process {root} does not exist or is inaccessible", err=True)
        sys.exit(1)

    if not query.is_member(root, target):
        if operation:
            click.echo(
                f"Notice: Process {target} does not belong to the tree rooted at {root}"
            )
        return

    if operation is None:
        record = query.record(target)
        if record is None:
            click.echo(f"Error: Cannot get information for process {target}", err=True)
            return
        click.echo(f"PID: {record.pid}, PPID: {record.ppid}")
        return

    if operation in LIST_QUERIES:
        print_pids(LIST_QUERIES[operation](query, target))
    elif operation == "zombie_count":
        count = query.zombie_descendant_count(target)
        if count == COUNT_UNAVAILABLE:
            return
        click.echo(f"Number of defunct descendants: {count}")
    elif operation == "defunct_status":
        defunct = query.is_defunct(target)
        if defunct is None:
            click.echo(f"Error: Cannot get status for process {target}", err=True)
            return
        click.echo(f"Process {target} is {'Defunct' if defunct else 'Not Defunct'}")
    elif operation == "kill_zombie_parents":
        print_zombie_parents(dispatcher.kill_zombie_parents(target))
    elif operation == "kill":
        print_kill(dispatcher.kill(target))
    elif operation == "stop":
        print_dispatch(dispatcher.stop(target), SUCCESS_LINES["stop"])
    elif operation == "resume":
        print_dispatch(dispatcher.resume(target), SUCCESS_LINES["resume"])
    elif operation == "kill_root":
        result = dispatcher.kill_root(root)
        if result.ok:
            click.echo(f"Root process {root} terminated successfully")


def print_pids(result: QueryResult) -> None:
    if not result.ok:
        return
    for pid in result:
        click.echo(str(pid))


def print_dispatch(report: DispatchReport, line: str) -> None:
    if report.error:
        return
    for pid in report.signalled:
        click.echo(line.format(pid=pid))


def print_kill(report: KillReport) -> None:
    print_dispatch(report, SUCCESS_LINES["kill"])
    for result in report.reconciled:
        if result.ok:
            click.echo(f"Killed missed descendant {result.pid}")


def print_zombie_parents(report: DispatchReport) -> None:
    if report.error:
        return
    for result in report.results:
        if result.ok:
            click.echo(f"Killed parent {result.pid} of zombie process {result.source_pid}")
    if not report.signalled:
        click.echo(f"No zombie processes found among descendants of {report.root}")


def main() -> None:
    """Entry point for the proctree command."""
    cli()


if __name__ == "__main__":
    main()
