"""Terminal rendering of scan reports and update results."""

from __future__ import annotations

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from rabbithole.models import (
    SEVERITY_ORDER,
    AuditFixResult,
    AuditResult,
    FixTarget,
    OutdatedResult,
    RegistryMetadata,
    ScanReport,
    UpdateResult,
    Vulnerability,
)

SEVERITY_STYLES = {
    "critical": "white on red bold",
    "high": "red bold",
    "moderate": "yellow",
    "low": "blue",
    "info": "dim",
}

SEVERITY_ICONS = {
    "critical": "!!!",
    "high": "!!",
    "moderate": "!",
    "low": "~",
    "info": "i",
}

RABBIT = """
    (\\(\\
    ( -.-)  [dim]follow the white rabbit...[/]
    o_(")(")"""

RABBIT_CLEAN = """[green]
    (\\(\\
    ( ^.^)  Welcome to Zion. All clear.
    o_(")(")[/]"""

RABBIT_ISSUES = """[red]
    (\\(\\
    ( o.o)[/]  [yellow]A glitch in the Matrix...[/]
[red]    o_(")(")[/]"""


def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    return singular if count == 1 else (plural_form or singular + "s")


def format_fix(vuln: Vulnerability) -> str:
    if isinstance(vuln.fix_available, FixTarget):
        return f"[green]{escape(str(vuln.fix_available))}[/]"
    return "[green]Yes[/]" if vuln.fix_available else "[red]No[/]"


def _table(*columns: str) -> Table:
    table = Table(box=box.ROUNDED, border_style="dim", header_style="dim")
    for column in columns:
        table.add_column(column)
    return table


def render_summary(console: Console, report: ScanReport) -> None:
    console.print()
    console.print("  [bold]Summary[/]")
    console.print()

    audit = report.audit
    if audit.total:
        parts = [
            f"[{SEVERITY_STYLES[level.value]}]{audit.summary[level.value]} {level.value}[/]"
            for level in SEVERITY_ORDER[:4]
            if audit.summary.get(level.value)
        ]
        breakdown = f" [dim]([/]{'[dim], [/]'.join(parts)}[dim])[/]" if parts else ""
        console.print(
            f"  [red]●[/] [bold]{audit.total}[/] "
            f"{plural(audit.total, 'vulnerability', 'vulnerabilities')}{breakdown}"
        )
    else:
        console.print("  [green]● No vulnerabilities[/]")

    outdated = report.outdated.total
    if outdated:
        console.print(f"  [yellow]●[/] [bold]{outdated}[/] outdated {plural(outdated, 'package')}")
    else:
        console.print("  [green]● All packages up to date[/]")

    deprecated = len(report.deprecated)
    if deprecated:
        console.print(
            f"  [red]●[/] [bold]{deprecated}[/] deprecated {plural(deprecated, 'package')}"
        )
    else:
        console.print("  [green]● No deprecated packages[/]")

    stale = len(report.stale)
    if stale:
        console.print(
            f"  [yellow]●[/] [bold]{stale}[/] stale {plural(stale, 'package')} "
            "[dim](no update in 2+ years)[/]"
        )
    console.print()


def render_vulnerabilities(console: Console, audit: AuditResult) -> None:
    if not audit.total:
        return
    table = _table("Severity", "Package", "Title", "Fix Available")
    for vuln in audit.vulnerabilities:
        style = SEVERITY_STYLES.get(vuln.severity, "")
        icon = SEVERITY_ICONS.get(vuln.severity, "?")
        label = escape(vuln.severity.upper())
        table.add_row(
            f"[{style}] {icon} {label} [/]" if style else label,
            escape(vuln.name),
            escape(vuln.title),
            format_fix(vuln),
        )
    console.print("  [bold red]Vulnerabilities[/]")
    console.print(table)
    console.print()


def render_outdated(console: Console, outdated: OutdatedResult) -> None:
    if not outdated.total:
        return
    table = _table("Package", "Current", "Latest", "Type")
    for pkg in outdated.packages:
        style = "red bold" if pkg.is_major else "green"
        latest = f"[{style}]{escape(pkg.latest)}[/]"
        kind = "[dim]dev[/]" if pkg.is_dev else "[cyan]prod[/]"
        table.add_row(escape(pkg.name), f"[yellow]{escape(pkg.current)}[/]", latest, kind)
    console.print("  [bold yellow]Outdated Packages[/]")
    console.print(table)
    console.print()


def render_deprecated(console: Console, deprecated: list[RegistryMetadata]) -> None:
    if not deprecated:
        return
    table = _table("Package", "Reason", "Last Update")
    for meta in deprecated:
        reason = meta.deprecated if isinstance(meta.deprecated, str) else "No reason given"
        table.add_row(
            escape(meta.name), f"[red]{escape(reason)}[/]", f"[dim]{meta.last_publish_age}[/]"
        )
    console.print("  [bold red]Deprecated Packages[/]")
    console.print(table)
    console.print()


def render_stale(console: Console, stale: list[RegistryMetadata]) -> None:
    if not stale:
        return
    table = _table("Package", "Last Update")
    for meta in stale:
        table.add_row(escape(meta.name), f"[yellow]{meta.last_publish_age}[/]")
    console.print("  [bold yellow]Stale Packages (no update in 2+ years)[/]")
    console.print(table)
    console.print()


def render_report(console: Console, report: ScanReport) -> None:
    """Full scan report."""
    console.print()
    console.print("  [bold]rabbithole[/] [dim]scan[/]")
    console.print(RABBIT)

    render_summary(console, report)
    render_vulnerabilities(console, report.audit)
    render_outdated(console, report.outdated)
    render_deprecated(console, report.deprecated)
    render_stale(console, report.stale)

    if report.has_issues:
        console.print(RABBIT_ISSUES)
        console.print(
            "[dim]  \"I can only show you the door. You're the one that has to walk through it.\"[/]"
        )
    else:
        console.print(RABBIT_CLEAN)
    console.print()


def render_update_results(console: Console, results: list[UpdateResult]) -> None:
    console.print()
    console.print("  [bold]Update Results[/]")
    table = _table("Package", "Previous", "New", "Status")
    for result in results:
        new_style = "green" if result.success else "red"
        table.add_row(
            escape(result.name),
            f"[yellow]{escape(result.previous_version)}[/]",
            f"[{new_style}]{escape(result.new_version)}[/]",
            "[green]OK[/]" if result.success else "[red]FAIL[/]",
        )
    console.print(table)

    succeeded = sum(1 for r in results if r.success)
    failed = [r for r in results if not r.success]
    if not failed:
        console.print(
            f"[green]  All {succeeded} {plural(succeeded, 'package')} updated successfully.[/]"
        )
    else:
        console.print(f"[yellow]  {succeeded} updated, [red]{len(failed)} failed[/].[/]")
        console.print()
        console.print("  [bold red]Errors[/]")
        for result in failed:
            console.print(
                f"  [red]●[/] [bold]{escape(result.name)}[/]: "
                f"[dim]{escape(result.error or 'Unknown error')}[/]"
            )
    console.print()


def render_audit_fix_result(console: Console, result: AuditFixResult) -> None:
    console.print()
    console.print("  [bold]Audit Fix Results[/]")
    console.print()

    if not result.success:
        console.print(f"  [red]● {escape(result.error or 'npm audit fix failed')}[/]")
        console.print()
        return

    fixed = result.fixed_vulnerabilities
    remaining = result.remaining_vulnerabilities
    if fixed:
        console.print(
            f"  [green]●[/] Fixed [bold]{fixed}[/] "
            f"{plural(fixed, 'vulnerability', 'vulnerabilities')}"
        )
    else:
        console.print("  [yellow]●[/] No vulnerabilities were auto-fixable")

    if remaining:
        console.print(
            f"  [yellow]●[/] [bold]{remaining}[/] "
            f"{plural(remaining, 'vulnerability', 'vulnerabilities')} remaining "
            "[dim](may require manual review)[/]"
        )
    elif fixed:
        console.print("  [green]● All vulnerabilities resolved![/]")

    parts = [
        f"{count} {label}"
        for count, label in (
            (result.added, "added"),
            (result.removed, "removed"),
            (result.changed, "changed"),
        )
        if count
    ]
    if parts:
        console.print(f"[dim]    {', '.join(parts)}[/]")
    console.print()


class ConsoleReporter:
    """Reports update-flow events on the terminal."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def up_to_date(self) -> None:
        self.console.print("\n  [green]All packages are up to date![/]\n")

    def found_outdated(self, total: int) -> None:
        self.console.print(f"\n  [dim]Found [bold]{total}[/] outdated {plural(total, 'package')}[/]\n")

    def no_selection(self) -> None:
        self.console.print("\n  [dim]No packages selected.[/]\n")

    def cancelled(self) -> None:
        self.console.print("\n  [dim]Update cancelled.[/]\n")

    def update_started(self, names: list[str], force: bool) -> None:
        suffix = " with --legacy-peer-deps" if force else ""
        self.console.print(
            f"  [dim]Updating {len(names)} {plural(len(names), 'package')}{suffix}...[/]"
        )

    def update_progress(self, result: UpdateResult, index: int, total: int) -> None:
        status = "[green]OK[/]" if result.success else "[red]FAIL[/]"
        self.console.print(f"  [{index + 1}/{total}] {escape(result.name)} {status}")

    def update_results(self, results: list[UpdateResult]) -> None:
        render_update_results(self.console, results)

    def checking_vulnerabilities(self) -> None:
        self.console.print("  [dim]Checking for vulnerabilities...[/]")

    def audit_fix_started(self, force: bool) -> None:
        command = "npm audit fix --force" if force else "npm audit fix"
        self.console.print(f"  [dim]Running {command}...[/]")

    def audit_fix_result(self, result: AuditFixResult) -> None:
        render_audit_fix_result(self.console, result)
