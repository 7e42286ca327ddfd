"""Ordering of resources by kind for apply and delete operations.

Adapted from the kind ordering Helm uses when installing charts.
"""

from typing import Sequence, TypeVar, Union

from kube.objects import ResourceInfo, get_kind, get_name

APPLY_ORDER = [
    'Namespace',
    'ResourceQuota',
    'LimitRange',
    'PodSecurityPolicy',
    'PodDisruptionBudget',
    'Secret',
    'ConfigMap',
    'StorageClass',
    'PersistentVolume',
    'PersistentVolumeClaim',
    'ServiceAccount',
    'CustomResourceDefinition',
    'ClusterRole',
    'ClusterRoleBinding',
    'Role',
    'RoleBinding',
    'Service',
    'DaemonSet',
    'Pod',
    'ReplicationController',
    'ReplicaSet',
    'Deployment',
    'StatefulSet',
    'Job',
    'CronJob',
    'Ingress',
    'APIService',
]

DELETE_ORDER = list(reversed(APPLY_ORDER))

T = TypeVar('T', bound=Union[dict, ResourceInfo])


def _kind_and_name(item: Union[dict, ResourceInfo]) -> tuple[str, str]:
    if isinstance(item, ResourceInfo):
        return item.kind or '', item.name or ''
    return get_kind(item), get_name(item)


def sort_by_kind(objs: list[T], order: Sequence[str]) -> list[T]:
    """Sort objs in place by kind priority and return them.

    Kinds earlier in order come first, resources of the same kind are
    ordered by name. Kinds missing from order go after all known kinds,
    sorted by kind and then name.

    Sorting with DELETE_ORDER yields the mirror image of sorting known
    kinds with APPLY_ORDER, so resources of the same kind are deleted in
    reverse name order. Unknown kinds are deleted first and keep their
    ascending kind and name order.
    """
    for_deletion = list(order) == DELETE_ORDER
    effective = list(reversed(order)) if for_deletion else list(order)
    positions = {kind: i for i, kind in enumerate(effective)}

    known, unknown = [], []
    for item in objs:
        kind, name = _kind_and_name(item)
        if kind in positions:
            known.append(((positions[kind], name), item))
        else:
            unknown.append(((kind, name), item))

    known.sort(key=lambda entry: entry[0], reverse=for_deletion)
    unknown.sort(key=lambda entry: entry[0])

    if for_deletion:
        objs[:] = [item for _, item in unknown + known]
    else:
        objs[:] = [item for _, item in known + unknown]
    return objs
