"""Hook model.

A hook is a Job annotated with chart-driver/hook-type. Hooks are not applied
with the rest of a chart but created at their point in the lifecycle:

    pre-apply    before resources are applied
    post-apply   after resources are applied
    pre-delete   before resources are deleted
    post-delete  after resources are deleted

All annotations are validated when the hook is parsed, so a broken hook fails
the run before anything touches the cluster.
"""

from dataclasses import dataclass, field
from typing import Optional

from common import format_duration, parse_duration
from kube.objects import get_kind, get_name, get_namespace
from meta import (
    ANNOTATION_HOOK_ALLOW_FAILURE,
    ANNOTATION_HOOK_NO_WAIT,
    ANNOTATION_HOOK_TYPE,
    ANNOTATION_HOOK_WAIT_TIMEOUT,
    LABEL_HOOK_CHART_NAME,
    LABEL_HOOK_TYPE,
    get_annotations,
    has_annotation,
)

PRE_APPLY = 'pre-apply'
POST_APPLY = 'post-apply'
PRE_DELETE = 'pre-delete'
POST_DELETE = 'post-delete'

HOOK_TYPES = (PRE_APPLY, POST_APPLY, PRE_DELETE, POST_DELETE)

HOOK_KIND = 'Job'
RESTART_POLICY_NEVER = 'Never'

_TRUE = {'1', 't', 'T', 'true', 'TRUE', 'True'}


class HookError(Exception):
    """Invalid hook definition."""


class UnsupportedKindError(HookError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f'unsupported hook resource kind "{kind}", only "{HOOK_KIND}" is allowed')


class UnsupportedTypeError(HookError):
    def __init__(self, hook_type: str):
        self.hook_type = hook_type
        allowed = ', '.join(f'"{t}"' for t in HOOK_TYPES)
        super().__init__(f'unsupported hook type "{hook_type}", allowed values are {allowed}')


class UnsupportedRestartPolicyError(HookError):
    def __init__(self, policy: str):
        self.policy = policy
        super().__init__(
            f'unsupported restartPolicy "{policy}" in the pod template, '
            f'only "{RESTART_POLICY_NEVER}" is allowed'
        )


class IllegalAnnotationCombinationError(HookError):
    def __init__(self, *annotations: str):
        self.annotations = annotations
        super().__init__(f"annotations cannot be set at the same time: {', '.join(annotations)}")


class MalformedAnnotationError(HookError):
    def __init__(self, annotation: str, reason: str):
        self.annotation = annotation
        super().__init__(f'malformed annotation "{annotation}": {reason}')


def _parse_bool(value: Optional[str]) -> bool:
    # anything that is not a recognized true value counts as false
    return str(value) in _TRUE if value is not None else False


@dataclass(frozen=True)
class Hook:
    """A validated hook.

    Attributes:
        obj: The Job manifest
        type: One of HOOK_TYPES
        allow_failure: A failed run is logged instead of failing the operation
        no_wait: Completion is not awaited
        wait_timeout: Seconds to wait for completion, 0 = configured default
    """
    obj: dict = field(compare=False)
    type: str
    allow_failure: bool = False
    no_wait: bool = False
    wait_timeout: float = 0.0

    @property
    def name(self) -> str:
        return get_name(self.obj)

    @property
    def namespace(self) -> str:
        return get_namespace(self.obj)

    def print_context(self) -> list[str]:
        """Context shown next to the hook when it is triggered."""
        context = []
        if self.wait_timeout > 0:
            context.append(f"timeout {format_duration(self.wait_timeout)}")
        if self.no_wait:
            context.append('no-wait')
        if self.allow_failure:
            context.append('allow-failure')
        return context


def is_hook(obj: dict) -> bool:
    """Check whether obj is annotated as a hook."""
    return has_annotation(obj, ANNOTATION_HOOK_TYPE)


def parse_hook(obj: dict) -> Hook:
    """Parse and validate a hook manifest.

    Raises:
        HookError: If the kind, type, restart policy or annotations are invalid
    """
    kind = get_kind(obj)
    if kind != HOOK_KIND:
        raise UnsupportedKindError(kind)

    annotations = get_annotations(obj)

    hook_type = annotations.get(ANNOTATION_HOOK_TYPE, '')
    if hook_type not in HOOK_TYPES:
        raise UnsupportedTypeError(hook_type)

    pod_spec = (((obj.get('spec') or {}).get('template') or {}).get('spec') or {})
    restart_policy = pod_spec.get('restartPolicy', '')
    if restart_policy != RESTART_POLICY_NEVER:
        raise UnsupportedRestartPolicyError(restart_policy)

    allow_failure = _parse_bool(annotations.get(ANNOTATION_HOOK_ALLOW_FAILURE))
    no_wait = _parse_bool(annotations.get(ANNOTATION_HOOK_NO_WAIT))

    if no_wait and allow_failure:
        raise IllegalAnnotationCombinationError(ANNOTATION_HOOK_NO_WAIT, ANNOTATION_HOOK_ALLOW_FAILURE)

    wait_timeout = 0.0
    if ANNOTATION_HOOK_WAIT_TIMEOUT in annotations:
        try:
            wait_timeout = parse_duration(annotations[ANNOTATION_HOOK_WAIT_TIMEOUT])
        except ValueError as e:
            raise MalformedAnnotationError(ANNOTATION_HOOK_WAIT_TIMEOUT, str(e)) from e
        if wait_timeout < 0:
            raise MalformedAnnotationError(ANNOTATION_HOOK_WAIT_TIMEOUT, 'duration must not be negative')

    if no_wait and wait_timeout > 0:
        raise IllegalAnnotationCombinationError(ANNOTATION_HOOK_NO_WAIT, ANNOTATION_HOOK_WAIT_TIMEOUT)

    return Hook(
        obj=obj,
        type=hook_type,
        allow_failure=allow_failure,
        no_wait=no_wait,
        wait_timeout=wait_timeout,
    )


class HookMap(dict):
    """Hooks of one chart grouped by type, in declaration order."""

    def add(self, hook: Hook) -> None:
        self.setdefault(hook.type, []).append(hook)

    def of_type(self, hook_type: str) -> list[Hook]:
        return list(self.get(hook_type, []))

    def all(self) -> list[Hook]:
        return [hook for hook_type in HOOK_TYPES for hook in self.get(hook_type, [])]


def hook_label_selector(chart_name: str, hook_type: str) -> str:
    """Label selector matching deployed hooks of hook_type for a chart."""
    return f"{LABEL_HOOK_CHART_NAME}={chart_name},{LABEL_HOOK_TYPE}={hook_type}"
