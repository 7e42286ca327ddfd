"""Pre-flight readiness checks for chart operations.

Validates cluster prerequisites before touching anything:
- API server reachability (and credentials)
- Availability of every resource type a chart uses
"""

import urllib3
from kubernetes.client.exceptions import ApiException

from kube.client import ClusterClient
from kube.errors import describe, is_forbidden, is_not_found


def validate_cluster_reachable(client: ClusterClient) -> tuple[bool, str]:
    """Check that the API server answers with the configured credentials.

    Args:
        client: Cluster client

    Returns:
        (success, message) tuple
    """
    try:
        version = client.server_version()
        return True, f"Cluster API accessible (version {version})"
    except ApiException as e:
        if e.status == 401:
            return False, "Cluster rejected the credentials. Check the kubeconfig user or token."
        return False, f"Unexpected API response: {describe(e)}"
    except urllib3.exceptions.HTTPError as e:
        return False, f"Cannot connect to cluster: {e}"


def validate_resource_available(client: ClusterClient, api_version: str, kind: str) -> tuple[bool, str]:
    """Check that the cluster serves kind in api_version.

    Args:
        client: Cluster client
        api_version: e.g. "apps/v1"
        kind: e.g. "StatefulSet"

    Returns:
        (success, message) tuple
    """
    try:
        gvr = client.resource_for(api_version, kind)
        return True, f"{kind} available as {gvr.resource} in {api_version}"
    except ApiException as e:
        if is_not_found(e):
            return False, f"Cluster does not serve {kind} in {api_version}. Is the CRD installed?"
        if is_forbidden(e):
            return False, f"Not allowed to discover {kind} in {api_version}: {describe(e)}"
        return False, f"Error discovering {kind} in {api_version}: {describe(e)}"
    except urllib3.exceptions.HTTPError as e:
        return False, f"Cannot connect to cluster: {e}"


def validate_chart(client: ClusterClient, objs: list[dict]) -> tuple[bool, str]:
    """Combined pre-flight for a chart.

    Args:
        client: Cluster client
        objs: Chart resources and hook objects

    Returns:
        (success, message) tuple with the first failure
    """
    success, message = validate_cluster_reachable(client)
    if not success:
        return False, message

    seen = set()
    for obj in objs:
        key = (obj.get('apiVersion') or '', obj.get('kind') or '')
        if key in seen:
            continue
        seen.add(key)

        success, resource_msg = validate_resource_available(client, *key)
        if not success:
            return False, resource_msg

    return True, f"{message}, {len(seen)} resource type(s) available"
