"""
Result Logging
==============

Projects finished ExecutionResult and ChainResult values onto the logging
system. Control flow never logs progress itself; a result is logged once,
after it is complete:

- success: INFO
- precondition_failed / conflict: WARNING
- step_failed: ERROR, with the failing step and the completed count

Also provides format_chain_summary() for plain-text output.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stackforge.executor import ExecutionResult
    from stackforge.orchestrator import ChainResult

_logger = logging.getLogger(__name__)


def log_execution_result(result: "ExecutionResult", logger: logging.Logger | None = None) -> None:
    log = logger or _logger
    name = result.feature_name
    outcome = result.outcome.value

    if outcome == "success":
        log.info(
            "Installed '%s': %d/%d steps in %.0fms",
            name, len(result.completed_steps), result.total_steps, result.total_elapsed_ms,
        )
    elif outcome in ("precondition_failed", "conflict"):
        log.warning("Rejected '%s' (%s): %s", name, outcome, result.error.message if result.error else "")
    else:
        failed = result.failed_step
        log.error(
            "Feature '%s' failed at step %d/%d '%s' after %d completed step(s): %s",
            name,
            failed.step_index if failed else 0,
            result.total_steps,
            failed.step_name if failed else "?",
            len(result.completed_steps),
            failed.error if failed else "",
        )


def log_chain_result(result: "ChainResult", logger: logging.Logger | None = None) -> None:
    log = logger or _logger
    if result.status.value == "completed":
        log.info(
            "Chain completed: %s in %.0fms",
            ", ".join(result.ordered_features) or "(empty)",
            result.total_elapsed_ms,
        )
        return

    failed = result.failed_entry
    log.error(
        "Chain halted at '%s'; succeeded: %s; skipped: %s",
        failed.feature_name if failed else "?",
        ", ".join(result.succeeded) or "none",
        ", ".join(result.skipped) or "none",
    )


def format_chain_summary(result: "ChainResult") -> str:
    """One line per feature: `<status>  <name>  <detail>`."""
    lines = []
    for entry in result.per_feature:
        status = entry.status.value
        if status == "skipped":
            detail = entry.reason
        elif status == "failed":
            step = entry.failed_step
            detail = f"step {step.step_index}/{entry.total_steps} '{step.step_name}': {step.error}"
        elif status == "rejected":
            detail = entry.error.message if entry.error else ""
        else:
            detail = f"{len(entry.completed_steps)} steps"
        lines.append(f"{status:<10} {entry.feature_name:<18} {detail}".rstrip())
    lines.append(f"chain: {result.status.value}")
    return "\n".join(lines)
