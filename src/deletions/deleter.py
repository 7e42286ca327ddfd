"""Resource deleter.

Deletes resources with background propagation, tolerating resources that
are already gone, and then waits until the cluster confirms every deletion.
"""

import logging
from typing import Optional

from kubernetes.client.exceptions import ApiException

from common import nested_get
from config import DEFAULT_WAIT_TIMEOUT
from kube.client import PROPAGATION_BACKGROUND, ClusterClient
from kube.errors import describe, is_not_found, is_wait_tolerable
from kube.objects import ResourceInfo, UIDMap, get_uid
from printers import ResourcePrinter
from wait.conditions import DeletionCondition
from wait.waiter import Options, Request, Waiter

logger = logging.getLogger(__name__)


def _response_uid(response: dict) -> str:
    # delete returns either the object (with finalizers pending) or a Status
    uid = get_uid(response) if isinstance(response, dict) else ''
    if not uid and isinstance(response, dict):
        uid = nested_get(response, 'details', 'uid', default='') or ''
    return uid


class Deleter:
    """Deletes resources and waits for the deletions to complete.

    Args:
        client: Cluster client
        waiter: Waiter used to confirm deletions (default: silent waiter)
        printer: Printer for deleted resources
        dry_run: Only print what would be deleted
        timeout: Seconds to wait for each deleted resource to disappear
        operation: Operation deleted resources are printed with
    """

    def __init__(self, client: ClusterClient, waiter: Optional[Waiter] = None,
                 printer: Optional[ResourcePrinter] = None, dry_run: bool = False,
                 timeout: float = DEFAULT_WAIT_TIMEOUT, operation: str = 'deleted'):
        self.client = client
        self.waiter = waiter if waiter is not None else Waiter()
        base = printer if printer is not None else ResourcePrinter(dry_run=dry_run)
        self.printer = base.with_operation(operation)
        self.dry_run = dry_run
        self.timeout = timeout

    def delete(self, infos: list[ResourceInfo]) -> None:
        """Delete infos in order.

        Raises:
            ApiException: On the first delete error other than not found, or
                if waiting fails for a reason other than missing permissions
            WaitError: If a deletion is not confirmed in time
        """
        deleted: list[ResourceInfo] = []
        uid_map: UIDMap = {}

        for info in infos:
            if self.dry_run:
                try:
                    self.client.get(info.gvr, info.namespace, info.name)
                except ApiException as e:
                    if not is_not_found(e):
                        raise
                    logger.debug(f"{info} not found, nothing to delete")
                    continue
                self.printer.print_obj(info.obj or _stub(info))
                continue

            try:
                response = self.client.delete(info.gvr, info.namespace, info.name,
                                              propagation_policy=PROPAGATION_BACKGROUND)
            except ApiException as e:
                if not is_not_found(e):
                    raise
                logger.info(f"{info} already deleted")
                continue

            self.printer.print_obj(info.obj or _stub(info))
            deleted.append(info)

            uid = _response_uid(response) or info.uid
            if not uid:
                logger.debug(f"No UID for deleted {info}, recreation will not be detected")
                continue
            uid_map[info.location] = uid

        if self.dry_run or not deleted:
            return

        try:
            self.waiter.wait(Request(
                condition=DeletionCondition(self.client, uid_map),
                infos=deleted,
                options=Options(timeout=self.timeout),
            ))
        except ApiException as e:
            if not is_wait_tolerable(e):
                raise
            logger.info(f"Not waiting for deletions: {describe(e)}")


def _stub(info: ResourceInfo) -> dict:
    """Minimal object body for printing a resource known only by identity."""
    return {
        'apiVersion': info.gvr.api_version,
        'kind': info.kind,
        'metadata': {'name': info.name, 'namespace': info.namespace},
    }
