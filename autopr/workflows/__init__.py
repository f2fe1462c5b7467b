"""Workflow modules for the autopr commands."""

from autopr.workflows.context import (
    WorkflowContext,
    WorkflowError,
    create_context,
    resolve_repo,
)
from autopr.workflows.hook import (
    HookResult,
    post_checkout_skip_reason,
    post_checkout_workflow,
)
from autopr.workflows.merge import (
    MergeResult,
    inspect_local_conflicts,
    merge_pr_workflow,
)
from autopr.workflows.new import (
    NewPRResult,
    create_pr_workflow,
    merge_labels,
    resolve_base_branch,
)
from autopr.workflows.report import (
    DailyReport,
    daily_report_workflow,
    parse_date,
    render_json,
    render_markdown,
)

__all__ = [
    # Context
    "WorkflowContext",
    "WorkflowError",
    "create_context",
    "resolve_repo",
    # PR creation workflow
    "create_pr_workflow",
    "merge_labels",
    "resolve_base_branch",
    "NewPRResult",
    # Post-checkout hook workflow
    "post_checkout_skip_reason",
    "post_checkout_workflow",
    "HookResult",
    # Merge workflow
    "merge_pr_workflow",
    "inspect_local_conflicts",
    "MergeResult",
    # Daily report workflow
    "daily_report_workflow",
    "parse_date",
    "render_json",
    "render_markdown",
    "DailyReport",
]
