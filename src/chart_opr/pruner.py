"""Removal of deployed chart resources that are no longer in the chart.

Every regular chart resource carries the chart-name label. After an apply,
objects with that label which the chart does not contain anymore are
deleted and printed as "pruned".
"""

import logging
from typing import Optional

from kubernetes.client.exceptions import ApiException

from chart import CLUSTER_SCOPED_KINDS, Chart
from deletions.deleter import Deleter
from kube.client import ClusterClient
from kube.errors import describe, is_forbidden, is_not_found
from kube.objects import GroupVersionResource, ResourceInfo, get_kind, get_name, get_namespace, split_api_version
from resources.sorter import DELETE_ORDER, sort_by_kind

logger = logging.getLogger(__name__)

# Kinds searched for leftovers even if the chart contains none of them
# anymore, e.g. a StatefulSet dropped from the chart.
DEFAULT_PRUNE_KINDS = [
    ('v1', 'ConfigMap'),
    ('v1', 'Secret'),
    ('v1', 'Service'),
    ('v1', 'PersistentVolumeClaim'),
    ('v1', 'Pod'),
    ('v1', 'ReplicationController'),
    ('apps/v1', 'DaemonSet'),
    ('apps/v1', 'Deployment'),
    ('apps/v1', 'ReplicaSet'),
    ('apps/v1', 'StatefulSet'),
    ('batch/v1', 'Job'),
    ('batch/v1', 'CronJob'),
    ('networking.k8s.io/v1', 'Ingress'),
]


class ResourcePruner:
    """Deletes chart-labelled objects that are missing from the chart.

    Args:
        client: Cluster client
        deleter: Deleter printing with operation "pruned"
    """

    def __init__(self, client: ClusterClient, deleter: Deleter):
        self.client = client
        self.deleter = deleter

    def prune(self, chart: Chart) -> list[ResourceInfo]:
        """Delete deployed resources of chart that chart no longer defines.

        Returns:
            The pruned resources, in delete order

        Raises:
            ApiException: On list or delete errors other than not found
            WaitError: If a pruned resource does not disappear in time
        """
        desired = {
            (split_api_version(obj.get('apiVersion') or '')[0], get_kind(obj), get_namespace(obj), get_name(obj))
            for obj in chart.resources
        }
        namespaces = sorted({chart.namespace} | {get_namespace(obj) for obj in chart.resources} - {''})

        leftovers: list[ResourceInfo] = []
        for api_version, kind in self._kinds(chart):
            try:
                gvr = self.client.resource_for(api_version, kind)
            except ApiException as e:
                if not is_not_found(e):
                    raise
                logger.debug(f"Not pruning {kind}: {describe(e)}")
                continue

            scopes = [None] if kind in CLUSTER_SCOPED_KINDS else namespaces
            for namespace in scopes:
                for obj in self._list(gvr, namespace, chart.label_selector()):
                    identity = (gvr.group, kind, get_namespace(obj), get_name(obj))
                    if identity in desired:
                        continue
                    obj.setdefault('kind', kind)
                    obj.setdefault('apiVersion', gvr.api_version)
                    leftovers.append(ResourceInfo.from_object(obj, gvr, namespace))

        if not leftovers:
            return []

        sort_by_kind(leftovers, DELETE_ORDER)
        logger.info(f"Pruning {len(leftovers)} resource(s) removed from chart {chart.name}")
        self.deleter.delete(leftovers)
        return leftovers

    def _kinds(self, chart: Chart) -> list[tuple[str, str]]:
        kinds: dict[tuple[str, str], tuple[str, str]] = {}
        for obj in chart.resources:
            api_version = obj.get('apiVersion') or ''
            kinds.setdefault((split_api_version(api_version)[0], get_kind(obj)), (api_version, get_kind(obj)))
        for api_version, kind in DEFAULT_PRUNE_KINDS:
            kinds.setdefault((split_api_version(api_version)[0], kind), (api_version, kind))
        return list(kinds.values())

    def _list(self, gvr: GroupVersionResource, namespace: Optional[str], label_selector: str) -> list[dict]:
        try:
            return self.client.list(gvr, namespace, label_selector=label_selector).items
        except ApiException as e:
            if not (is_not_found(e) or is_forbidden(e)):
                raise
            logger.info(f"Not pruning {gvr.resource}: {describe(e)}")
            return []
