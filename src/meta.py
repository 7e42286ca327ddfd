"""Annotation and label keys used to drive chart lifecycle behaviour."""

from enum import Enum
from typing import Optional

# Marks a Job as a hook of the given type. Hooks are not applied as regular
# resources but executed at their point in the lifecycle.
ANNOTATION_HOOK_TYPE = 'chart-driver/hook-type'

# If "true", a failed hook run is only logged. Other errors during hook
# execution (e.g. API server errors) still abort the run.
ANNOTATION_HOOK_ALLOW_FAILURE = 'chart-driver/hook-allow-failure'

# If "true", hook completion is not awaited. Cannot be combined with
# allow-failure or a wait timeout since neither has any effect then.
ANNOTATION_HOOK_NO_WAIT = 'chart-driver/hook-no-wait'

# Custom wait timeout for a hook (e.g. "5m"). Defaults to the configured
# hook wait timeout.
ANNOTATION_HOOK_WAIT_TIMEOUT = 'chart-driver/hook-wait-timeout'

# Non-default deletion behaviour. Only evaluated on StatefulSets.
ANNOTATION_DELETION_POLICY = 'chart-driver/deletion-policy'

# Set on every regular chart resource.
LABEL_CHART_NAME = 'chart-driver/chart-name'

# Set on hooks instead of LABEL_CHART_NAME since hooks have their own
# lifecycle. Together with LABEL_HOOK_TYPE this finds stale hook runs.
LABEL_HOOK_CHART_NAME = 'chart-driver/hook-chart-name'
LABEL_HOOK_TYPE = 'chart-driver/hook-type'

# Set on PersistentVolumeClaims created from a StatefulSet's volume claim
# templates so they can be found once the StatefulSet is gone.
LABEL_OWNED_BY_STATEFULSET = 'chart-driver/owned-by-statefulset'


class DeletionPolicy(str, Enum):
    """Values understood in the deletion-policy annotation."""
    DELETE_PVCS = 'delete-pvcs'

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional['DeletionPolicy']:
        """Return the policy for value, None for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return None


def get_annotations(obj: dict) -> dict:
    return (obj.get('metadata') or {}).get('annotations') or {}


def has_annotation(obj: dict, key: str, value: Optional[str] = None) -> bool:
    """Check whether obj carries annotation key, optionally with value."""
    annotations = get_annotations(obj)
    if key not in annotations:
        return False
    return value is None or annotations[key] == value


def add_label(obj: dict, key: str, value: str) -> None:
    """Set a label on obj, overwriting an existing value."""
    metadata = obj.setdefault('metadata', {})
    labels = metadata.get('labels')
    if labels is None:
        labels = metadata['labels'] = {}
    labels[key] = value
