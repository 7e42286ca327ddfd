"""StatefulSet storage handling.

StatefulSets leave their PersistentVolumeClaims behind when deleted. Charts
can opt into removing them with the annotation

    chart-driver/deletion-policy: delete-pvcs

For this to work, claims are labelled with the owning StatefulSet's name when
the chart is prepared (see add_owner_labels) and looked up by that label
after the StatefulSet is gone.
"""

import logging

from kubernetes.client.exceptions import ApiException

from deletions.deleter import Deleter
from kube.client import ClusterClient
from kube.errors import is_not_found
from kube.objects import PVC_GVR, ResourceInfo, get_group, get_kind, get_name, get_namespace
from meta import ANNOTATION_DELETION_POLICY, LABEL_OWNED_BY_STATEFULSET, DeletionPolicy, get_annotations

logger = logging.getLogger(__name__)

STATEFULSET_KIND = 'StatefulSet'
STATEFULSET_GROUP = 'apps'


def is_statefulset(obj: dict) -> bool:
    return get_kind(obj) == STATEFULSET_KIND and get_group(obj) == STATEFULSET_GROUP


def claim_selector(statefulset_name: str) -> str:
    """Label selector for the claims owned by a StatefulSet."""
    return f"{LABEL_OWNED_BY_STATEFULSET}={statefulset_name}"


def _set_label(container: dict, key: str, value: str) -> None:
    labels = container.get('labels')
    if labels is None:
        labels = container['labels'] = {}
    labels[key] = value


def add_owner_labels(obj: dict) -> None:
    """Label a StatefulSet's selector, pod template and claim templates.

    Claims created from the volume claim templates then carry the owner label.
    Objects other than StatefulSets are left untouched.
    """
    if not is_statefulset(obj):
        return

    name = get_name(obj)
    spec = obj.setdefault('spec', {})

    selector = spec.setdefault('selector', {})
    match_labels = selector.get('matchLabels')
    if match_labels is None:
        match_labels = selector['matchLabels'] = {}
    match_labels[LABEL_OWNED_BY_STATEFULSET] = name

    template = spec.setdefault('template', {})
    _set_label(template.setdefault('metadata', {}), LABEL_OWNED_BY_STATEFULSET, name)

    for claim_template in spec.get('volumeClaimTemplates') or []:
        _set_label(claim_template.setdefault('metadata', {}), LABEL_OWNED_BY_STATEFULSET, name)


class PersistentVolumeClaimPruner:
    """Deletes the claims of StatefulSets that ask for it."""

    def __init__(self, client: ClusterClient, deleter: Deleter):
        self.client = client
        self.deleter = deleter

    def prune_claims(self, objs: list[dict]) -> None:
        """Prune claims of all StatefulSets in objs with the delete-pvcs policy.

        Raises:
            ApiException: On list or delete errors other than not found
        """
        for obj in objs:
            if not is_statefulset(obj):
                continue

            policy = DeletionPolicy.parse(get_annotations(obj).get(ANNOTATION_DELETION_POLICY))
            if policy is not DeletionPolicy.DELETE_PVCS:
                continue

            self._prune(obj)

    def _prune(self, statefulset: dict) -> None:
        name = get_name(statefulset)
        namespace = get_namespace(statefulset)

        try:
            claims = self.client.list(PVC_GVR, namespace or None, label_selector=claim_selector(name))
        except ApiException as e:
            if not is_not_found(e):
                raise
            return

        infos = [ResourceInfo.from_object(claim, PVC_GVR, namespace) for claim in claims.items]
        if not infos:
            logger.debug(f"StatefulSet {name} has no claims to prune")
            return

        logger.info(f"Pruning {len(infos)} claim(s) of StatefulSet {name}")
        self.deleter.delete(infos)
