"""Resource identities and accessors for unstructured objects."""

from dataclasses import dataclass, field
from typing import Optional

from common import nested_get


@dataclass(frozen=True)
class GroupResource:
    group: str
    resource: str

    def __str__(self) -> str:
        if self.group:
            return f"{self.resource}.{self.group}"
        return self.resource


@dataclass(frozen=True)
class GroupVersionResource:
    """API location of a resource type (e.g. batch/v1 jobs)."""
    group: str
    version: str
    resource: str

    @property
    def group_resource(self) -> GroupResource:
        return GroupResource(self.group, self.resource)

    @property
    def api_version(self) -> str:
        if self.group:
            return f"{self.group}/{self.version}"
        return self.version


JOB_GVR = GroupVersionResource('batch', 'v1', 'jobs')
PVC_GVR = GroupVersionResource('', 'v1', 'persistentvolumeclaims')


@dataclass(frozen=True)
class ResourceLocation:
    """Where a resource lives, independent of its identity (UID)."""
    group_resource: GroupResource
    namespace: str
    name: str


# Location -> UID recorded at the time the resource was deleted.
UIDMap = dict[ResourceLocation, str]


def split_api_version(api_version: str) -> tuple[str, str]:
    """Split "apps/v1" into ("apps", "v1") and "v1" into ("", "v1")."""
    if '/' in api_version:
        group, version = api_version.split('/', 1)
        return group, version
    return '', api_version


def get_name(obj: dict) -> str:
    return nested_get(obj, 'metadata', 'name', default='') or ''


def get_namespace(obj: dict) -> str:
    return nested_get(obj, 'metadata', 'namespace', default='') or ''


def get_uid(obj: dict) -> str:
    return nested_get(obj, 'metadata', 'uid', default='') or ''


def get_kind(obj: dict) -> str:
    kind = obj.get('kind') if isinstance(obj, dict) else None
    return kind if isinstance(kind, str) else ''


def get_group(obj: dict) -> str:
    return split_api_version(obj.get('apiVersion') or '')[0]


def kind_string(kind: str, group: str) -> str:
    """Format kind and group the way kubectl prints them (job.batch, pod)."""
    if group:
        return f"{kind.lower()}.{group}"
    return kind.lower()


@dataclass
class ResourceInfo:
    """Identity of a resource plus its last known body.

    Attributes:
        gvr: API location of the resource type
        kind: Resource kind (e.g. Job)
        namespace: Namespace, empty for cluster-scoped resources
        name: Resource name
        obj: Last known body (from a manifest, list or create response)
    """
    gvr: GroupVersionResource
    kind: str
    namespace: str
    name: str
    obj: dict = field(default_factory=dict)

    @property
    def uid(self) -> str:
        return get_uid(self.obj)

    @property
    def kind_string(self) -> str:
        return kind_string(self.kind, self.gvr.group)

    @property
    def location(self) -> ResourceLocation:
        return ResourceLocation(self.gvr.group_resource, self.namespace, self.name)

    @classmethod
    def from_object(cls, obj: dict, gvr: GroupVersionResource,
                    namespace: Optional[str] = None) -> 'ResourceInfo':
        """Build a ResourceInfo for obj located at gvr."""
        return cls(
            gvr=gvr,
            kind=get_kind(obj),
            namespace=get_namespace(obj) or (namespace or ''),
            name=get_name(obj),
            obj=obj,
        )

    def __str__(self) -> str:
        return f"{self.kind_string}/{self.name}"
