"""The update command's state machine.

    IDLE -> RESOLVING_TARGETS -> UPDATING -> RETRY_DECISION
         -> [RETRYING_FORCED] -> POST_UPDATE_AUDIT_CHECK -> FIX_DECISION
         -> [FIXING] -> [FIX_RETRY_DECISION -> FIX_RETRYING_FORCED] -> DONE

Explicit package names skip discovery. A fix-only invocation jumps straight
to FIXING. Every human decision goes through the prompter, and a cancelled
prompt counts as "no".

The prompter and reporter follow the Prompter and Reporter protocols below.
prompts.ConsolePrompter and display.ConsoleReporter are the terminal versions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol, runtime_checkable

from rich.markup import escape

from rabbithole.audit import run_audit, run_audit_fix
from rabbithole.manifest import ManifestStore
from rabbithole.models import AuditFixResult, OutdatedPackage, UpdateOptions, UpdateResult
from rabbithole.outdated import get_outdated
from rabbithole.prompts import Choice
from rabbithole.updater import PEER_CONFLICT_REASON, update_packages

logger = logging.getLogger(__name__)


@runtime_checkable
class Prompter(Protocol):
    """Asks the user. Returns None for a cancelled prompt."""

    def confirm(self, message: str, default: bool = True) -> bool | None: ...

    def select_many(self, message: str, choices: list[Choice]) -> list[str] | None: ...


@runtime_checkable
class Reporter(Protocol):
    """Receives progress and results as the flow runs."""

    def up_to_date(self) -> None: ...

    def found_outdated(self, total: int) -> None: ...

    def no_selection(self) -> None: ...

    def cancelled(self) -> None: ...

    def update_started(self, names: list[str], force: bool) -> None: ...

    def update_progress(self, result: UpdateResult, index: int, total: int) -> None: ...

    def update_results(self, results: list[UpdateResult]) -> None: ...

    def checking_vulnerabilities(self) -> None: ...

    def audit_fix_started(self, force: bool) -> None: ...

    def audit_fix_result(self, result: AuditFixResult) -> None: ...


class FlowState(str, Enum):
    """States of the update flow."""

    IDLE = "idle"
    RESOLVING_TARGETS = "resolving-targets"
    UPDATING = "updating"
    RETRY_DECISION = "retry-decision"
    RETRYING_FORCED = "retrying-forced"
    POST_UPDATE_AUDIT_CHECK = "post-update-audit-check"
    FIX_DECISION = "fix-decision"
    FIXING = "fixing"
    FIX_RETRY_DECISION = "fix-retry-decision"
    FIX_RETRYING_FORCED = "fix-retrying-forced"
    DONE = "done"


@dataclass
class UpdateFlowOutcome:
    """What happened during one run of the update flow."""

    states: list[FlowState] = field(default_factory=list)
    targets: list[str] = field(default_factory=list)
    update_results: list[UpdateResult] = field(default_factory=list)
    retry_results: list[UpdateResult] = field(default_factory=list)
    fix_result: AuditFixResult | None = None
    fix_retry_result: AuditFixResult | None = None
    cancelled: bool = False

    @property
    def final_update_results(self) -> list[UpdateResult]:
        """Update results with forced retries replacing the original failures."""
        retried = {r.name: r for r in self.retry_results}
        return [retried.get(r.name, r) for r in self.update_results]


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    word = singular if count == 1 else (plural or singular + "s")
    return f"{count} {word}"


def outdated_choice(pkg: OutdatedPackage) -> Choice:
    """Multi-select entry for an outdated package. Only non-major bumps start checked."""
    arrow_style = "red" if pkg.is_major else "green"
    dev = " [dim](dev)[/]" if pkg.is_dev else ""
    label = (
        f"{escape(pkg.name)}{dev} [yellow]{escape(pkg.current)}[/] "
        f"[{arrow_style}]->[/] [{arrow_style}]{escape(pkg.latest)}[/]"
    )
    return Choice(label=label, value=pkg.name, checked=not pkg.is_major)


class UpdateFlow:
    """Drives updates, forced retries and npm audit fix for one project."""

    def __init__(
        self,
        store: ManifestStore,
        prompter: Prompter,
        reporter: Reporter,
        npm: str = "npm",
        timeout: float | None = None,
    ):
        self.store = store
        self.prompter = prompter
        self.reporter = reporter
        self.npm = npm
        self.timeout = timeout
        self.outcome = UpdateFlowOutcome()

    def _enter(self, state: FlowState) -> None:
        logger.debug("update flow -> %s", state.value)
        self.outcome.states.append(state)

    def _confirm(self, message: str, default: bool) -> bool:
        answer = self.prompter.confirm(message, default=default)
        if answer is None:
            logger.debug("Prompt cancelled, treating as no: %s", message)
            return False
        return bool(answer)

    def run(self, packages: list[str], options: UpdateOptions) -> UpdateFlowOutcome:
        """Run the flow to completion and return what happened."""
        self.outcome = UpdateFlowOutcome()
        self._enter(FlowState.IDLE)

        if options.fix and not packages and not options.all:
            self._fix(options.force)
            self._enter(FlowState.DONE)
            return self.outcome

        targets = list(packages) if packages else self._resolve_targets(options)
        if targets is None:
            self._enter(FlowState.DONE)
            return self.outcome

        if targets:
            self._update(targets, options)

        self._post_update_audit_check(options)
        self._enter(FlowState.DONE)
        return self.outcome

    def _resolve_targets(self, options: UpdateOptions) -> list[str] | None:
        """Names to update. [] means nothing outdated, None means stop here."""
        self._enter(FlowState.RESOLVING_TARGETS)
        outdated = get_outdated(self.store, npm=self.npm, timeout=self.timeout)

        if outdated.total == 0:
            self.reporter.up_to_date()
            return []

        self.reporter.found_outdated(outdated.total)

        if options.all:
            return outdated.names

        selected = self.prompter.select_many(
            "Select packages to update:",
            [outdated_choice(pkg) for pkg in outdated.packages],
        )
        if selected is None:
            self.outcome.cancelled = True
            self.reporter.cancelled()
            return None
        if not selected:
            self.reporter.no_selection()
            return None
        return list(selected)

    def _run_updates(self, names: list[str], options: UpdateOptions) -> list[UpdateResult]:
        self.reporter.update_started(names, options.force)
        results = update_packages(
            names,
            options,
            self.store,
            on_progress=self.reporter.update_progress,
            npm=self.npm,
            timeout=self.timeout,
        )
        self.reporter.update_results(results)
        return results

    def _update(self, targets: list[str], options: UpdateOptions) -> None:
        self._enter(FlowState.UPDATING)
        self.outcome.targets = targets
        self.outcome.update_results = self._run_updates(targets, options)

        self._enter(FlowState.RETRY_DECISION)
        conflicts = [
            r.name
            for r in self.outcome.update_results
            if not r.success and r.error == PEER_CONFLICT_REASON
        ]
        if not conflicts or options.force:
            return

        retry = self._confirm(
            f"{_plural(len(conflicts), 'package')} failed due to peer dependency "
            "conflicts. Retry with --force (--legacy-peer-deps)?",
            default=True,
        )
        if retry:
            self._enter(FlowState.RETRYING_FORCED)
            self.outcome.retry_results = self._run_updates(conflicts, replace(options, force=True))

    def _post_update_audit_check(self, options: UpdateOptions) -> None:
        self._enter(FlowState.POST_UPDATE_AUDIT_CHECK)
        if options.fix:
            self._fix(options.force)
            return

        self.reporter.checking_vulnerabilities()
        audit = run_audit(cwd=self.store.project_dir, npm=self.npm, timeout=self.timeout)
        fixable = audit.fixable_count
        if audit.total == 0 or fixable == 0:
            return

        self._enter(FlowState.FIX_DECISION)
        should_fix = self._confirm(
            f"Found {_plural(audit.total, 'vulnerability', 'vulnerabilities')} "
            f"({fixable} auto-fixable). Run npm audit fix?",
            default=True,
        )
        if should_fix:
            self._fix(options.force)

    def _run_fix(self, force: bool) -> AuditFixResult:
        self.reporter.audit_fix_started(force)
        result = run_audit_fix(
            force=force, cwd=self.store.project_dir, npm=self.npm, timeout=self.timeout
        )
        self.reporter.audit_fix_result(result)
        return result

    def _fix(self, force: bool) -> None:
        self._enter(FlowState.FIXING)
        result = self._run_fix(force)
        self.outcome.fix_result = result

        if result.success or force or "--force" not in (result.error or ""):
            return

        self._enter(FlowState.FIX_RETRY_DECISION)
        retry = self._confirm(
            "Audit fix failed due to dependency conflicts. Retry with --force?",
            default=False,
        )
        if retry:
            self._enter(FlowState.FIX_RETRYING_FORCED)
            self.outcome.fix_retry_result = self._run_fix(True)
