"""Applies chart resources with server-side apply."""

import logging
from typing import Optional

from kubernetes.client.exceptions import ApiException

from config import DEFAULT_FIELD_MANAGER
from kube.client import ClusterClient
from kube.errors import is_not_found
from kube.objects import get_name, get_namespace
from printers import ResourcePrinter

logger = logging.getLogger(__name__)


class Applier:
    """Creates or updates resources in the given order.

    Each resource is reported as "created" or "configured" depending on
    whether it existed before.
    """

    def __init__(self, client: ClusterClient, printer: Optional[ResourcePrinter] = None,
                 dry_run: bool = False, field_manager: str = DEFAULT_FIELD_MANAGER):
        self.client = client
        self.printer = printer if printer is not None else ResourcePrinter(dry_run=dry_run)
        self.dry_run = dry_run
        self.field_manager = field_manager

    def apply(self, objs: list[dict]) -> list[dict]:
        """Apply objs in order and return the resulting objects.

        In dry-run mode nothing is changed and the input objects are returned.

        Raises:
            ApiException: On the first discovery, get or apply error
        """
        applied = []
        for obj in objs:
            gvr = self.client.resource_for(obj['apiVersion'], obj['kind'])
            namespace = get_namespace(obj) or None
            name = get_name(obj)

            try:
                self.client.get(gvr, namespace, name)
                operation = 'configured'
            except ApiException as e:
                if not is_not_found(e):
                    raise
                operation = 'created'

            if self.dry_run:
                self.printer.with_operation(operation).print_obj(obj)
                applied.append(obj)
                continue

            result = self.client.apply(gvr, namespace, obj, self.field_manager)
            logger.debug(f"Applied {gvr.resource}/{name} (resourceVersion "
                         f"{(result.get('metadata') or {}).get('resourceVersion', '?')})")
            self.printer.with_operation(operation).print_obj(obj)
            applied.append(result)

        return applied
