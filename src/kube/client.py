"""Narrow cluster client used by the lifecycle engine.

The engine only needs list/watch/get/create/delete (plus server-side apply
and discovery for the outer apply step). ClusterClient describes that
surface; DynamicClusterClient implements it on top of the dynamic client of
the official kubernetes library. Objects are passed around as plain dicts.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol, runtime_checkable

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from config import ConfigError, DriverConfig
from kube.errors import HTTP_NOT_FOUND, is_gone
from kube.objects import GroupVersionResource

logger = logging.getLogger(__name__)

EVENT_ADDED = 'ADDED'
EVENT_MODIFIED = 'MODIFIED'
EVENT_DELETED = 'DELETED'
EVENT_ERROR = 'ERROR'

PROPAGATION_BACKGROUND = 'Background'


@dataclass
class ObjectList:
    """Result of a list call: the items and the collection resourceVersion."""
    items: list[dict] = field(default_factory=list)
    resource_version: str = ''


@dataclass
class WatchEvent:
    type: str
    object: dict


@runtime_checkable
class ClusterClient(Protocol):
    """Operations the lifecycle engine performs against the cluster."""

    def resource_for(self, api_version: str, kind: str) -> GroupVersionResource:
        """Resolve the API resource serving kind in api_version."""

    def list(self, gvr: GroupVersionResource, namespace: Optional[str] = None,
             label_selector: Optional[str] = None,
             field_selector: Optional[str] = None) -> ObjectList:
        """List objects. namespace=None lists across all namespaces."""

    def watch(self, gvr: GroupVersionResource, namespace: Optional[str],
              field_selector: str, resource_version: str,
              timeout: float) -> Iterator[WatchEvent]:
        """Watch objects starting at resource_version.

        The stream ends on its own after at most timeout seconds (or earlier
        if the server closes it).
        """

    def get(self, gvr: GroupVersionResource, namespace: Optional[str], name: str) -> dict:
        """Get a single object."""

    def create(self, gvr: GroupVersionResource, namespace: Optional[str], body: dict) -> dict:
        """Create an object and return it as stored by the server."""

    def delete(self, gvr: GroupVersionResource, namespace: Optional[str], name: str,
               propagation_policy: str = PROPAGATION_BACKGROUND) -> dict:
        """Delete an object and return the server response."""

    def apply(self, gvr: GroupVersionResource, namespace: Optional[str], body: dict,
              field_manager: str) -> dict:
        """Server-side apply body and return the resulting object."""

    def server_version(self) -> str:
        """Return the API server's git version."""


class DynamicClusterClient:
    """ClusterClient backed by kubernetes.dynamic.DynamicClient."""

    def __init__(self, dynamic: DynamicClient):
        self._dynamic = dynamic

    def _api(self, gvr: GroupVersionResource):
        try:
            return self._dynamic.resources.get(api_version=gvr.api_version, name=gvr.resource)
        except ResourceNotFoundError as e:
            raise ApiException(status=HTTP_NOT_FOUND, reason=f"resource type not found: {e}") from e

    def resource_for(self, api_version: str, kind: str) -> GroupVersionResource:
        try:
            api = self._dynamic.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            raise ApiException(
                status=HTTP_NOT_FOUND,
                reason=f"no resource type for {kind} in {api_version}",
            ) from e
        return GroupVersionResource(api.group or '', api.api_version, api.name)

    def list(self, gvr, namespace=None, label_selector=None, field_selector=None) -> ObjectList:
        kwargs = {}
        if label_selector:
            kwargs['label_selector'] = label_selector
        if field_selector:
            kwargs['field_selector'] = field_selector

        result = self._api(gvr).get(namespace=namespace or None, **kwargs).to_dict()

        # list items come without type information
        list_kind = result.get('kind') or ''
        items = list(result.get('items') or [])
        for item in items:
            if list_kind.endswith('List'):
                item.setdefault('kind', list_kind[:-len('List')])
            if result.get('apiVersion'):
                item.setdefault('apiVersion', result['apiVersion'])

        return ObjectList(
            items=items,
            resource_version=(result.get('metadata') or {}).get('resourceVersion', ''),
        )

    def watch(self, gvr, namespace, field_selector, resource_version, timeout) -> Iterator[WatchEvent]:
        api = self._api(gvr)
        # timeoutSeconds is an integer and 0 would mean "server default"
        timeout_seconds = max(1, math.ceil(timeout))
        try:
            for event in self._dynamic.watch(
                    api,
                    namespace=namespace or None,
                    field_selector=field_selector,
                    resource_version=resource_version or None,
                    timeout=timeout_seconds):
                raw = event.get('raw_object')
                if raw is None:
                    raw = event['object'].to_dict()
                yield WatchEvent(type=event['type'], object=raw)
        except ApiException as e:
            if not is_gone(e):
                raise
            logger.debug(f"Watch on {gvr.resource} expired: {e.reason}")

    def get(self, gvr, namespace, name) -> dict:
        return self._api(gvr).get(name=name, namespace=namespace or None).to_dict()

    def create(self, gvr, namespace, body) -> dict:
        return self._api(gvr).create(body=body, namespace=namespace or None).to_dict()

    def delete(self, gvr, namespace, name, propagation_policy=PROPAGATION_BACKGROUND) -> dict:
        result = self._api(gvr).delete(
            name=name,
            namespace=namespace or None,
            body={'propagationPolicy': propagation_policy},
        )
        return result.to_dict() if result is not None else {}

    def apply(self, gvr, namespace, body, field_manager) -> dict:
        name = (body.get('metadata') or {}).get('name')
        result = self._dynamic.server_side_apply(
            self._api(gvr),
            body=body,
            name=name,
            namespace=namespace or None,
            field_manager=field_manager,
            force_conflicts=True,
        )
        return result.to_dict()

    def server_version(self) -> str:
        info = k8s_client.VersionApi(self._dynamic.client).get_code()
        return info.git_version


def create_cluster_client(config: DriverConfig) -> DynamicClusterClient:
    """Create a cluster client from driver configuration.

    An explicit kubeconfig or context selects kubeconfig loading. Otherwise
    in-cluster configuration is tried first, then the default kubeconfig.

    Raises:
        ConfigError: If no usable cluster configuration is found
    """
    try:
        if config.kubeconfig or config.context:
            api_client = k8s_config.new_client_from_config(
                config_file=config.kubeconfig or None,
                context=config.context or None,
            )
        else:
            try:
                k8s_config.load_incluster_config()
                api_client = k8s_client.ApiClient()
            except k8s_config.ConfigException:
                api_client = k8s_config.new_client_from_config()
    except k8s_config.ConfigException as e:
        raise ConfigError(f"Failed to load Kubernetes config: {e}") from e

    return DynamicClusterClient(DynamicClient(api_client))
