"""YuniKorn task-group annotation patching.

The executor pod overrides of a SparkApplication template may carry a
``yunikorn.apache.org/task-groups`` annotation: a JSON list with one task
group whose ``minMember`` and ``minResource`` tell the scheduler how much to
reserve before admitting any executor. The values baked into a template are
placeholders; they are rewritten here for the executor count and memory
budget of the run being submitted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from sparkrunner._constants import TASK_GROUPS_ANNOTATION
from sparkrunner.config.loader import TemplateError

logger = logging.getLogger(__name__)


class TaskGroupError(TemplateError):
    """Raised when the task-groups annotation cannot be parsed."""

    pass


def _parse_task_group(value: Any) -> dict[str, Any]:
    """Parse the annotation value into its single task group."""
    if not isinstance(value, str):
        raise TaskGroupError(
            f"{TASK_GROUPS_ANNOTATION} must be a JSON string, got {type(value).__name__}"
        )

    try:
        groups = json.loads(value)
    except json.JSONDecodeError as e:
        raise TaskGroupError(f"{TASK_GROUPS_ANNOTATION} is not valid JSON: {e}") from e

    if not isinstance(groups, list) or len(groups) != 1 or not isinstance(groups[0], dict):
        raise TaskGroupError(
            f"{TASK_GROUPS_ANNOTATION} must be a list with exactly one task group"
        )

    group = groups[0]
    min_resource = group.get("minResource", {})
    if not isinstance(min_resource, dict):
        raise TaskGroupError(f"{TASK_GROUPS_ANNOTATION} minResource must be an object")
    return group


def patch_task_groups(
    annotations: Mapping[str, Any],
    min_member: int,
    memory_gib: int,
    cpu: str | None = None,
) -> dict[str, Any]:
    """Return annotations with the task group sized for this run.

    Args:
        annotations: Executor pod annotations from the template; not modified
        min_member: Executor count the group must admit together
        memory_gib: Per-executor memory budget in GiB
        cpu: Executor CPU floor; keeps the template's value when None

    Returns:
        New annotations dict. Unchanged copy if no task-groups annotation exists.

    Raises:
        TaskGroupError: If the annotation is present but malformed
    """
    patched = dict(annotations)
    if TASK_GROUPS_ANNOTATION not in patched:
        return patched

    group = _parse_task_group(patched[TASK_GROUPS_ANNOTATION])

    min_resource = dict(group.get("minResource", {}))
    if cpu is not None:
        min_resource["cpu"] = cpu
    min_resource["memory"] = f"{memory_gib}Gi"

    group = {**group, "minMember": min_member, "minResource": min_resource}
    patched[TASK_GROUPS_ANNOTATION] = json.dumps([group], separators=(",", ":"))

    logger.debug(
        "Task group %s: minMember=%d minResource=%s",
        group.get("name", "<unnamed>"),
        min_member,
        min_resource,
    )
    return patched
