"""Chart loading and preparation.

A chart is a named group of pre-rendered manifests that is applied and
deleted as a unit. Charts are read from a single YAML file or from a
directory of *.yaml / *.yml files (files starting with "_" are ignored,
subdirectories are not descended into). Each file may hold multiple
documents and List objects, which are flattened.

Preparation:
- resources without a namespace get the chart namespace (namespaced kinds only)
- Jobs annotated with chart-driver/hook-type become hooks and are validated
- resources are labelled with the chart name, hooks with chart name and type
- StatefulSets get owner labels so their claims can be pruned later
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from hooks.hook import Hook, HookError, HookMap, is_hook, parse_hook
from kube.objects import get_kind, get_name
from meta import LABEL_CHART_NAME, LABEL_HOOK_CHART_NAME, LABEL_HOOK_TYPE, add_label
from resources.sorter import APPLY_ORDER, sort_by_kind
from resources.statefulset import add_owner_labels

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = ('.yaml', '.yml')

# Kinds that never carry a namespace.
CLUSTER_SCOPED_KINDS = frozenset({
    'APIService',
    'CSIDriver',
    'CSINode',
    'ClusterRole',
    'ClusterRoleBinding',
    'CustomResourceDefinition',
    'IngressClass',
    'MutatingWebhookConfiguration',
    'Namespace',
    'Node',
    'PersistentVolume',
    'PodSecurityPolicy',
    'PriorityClass',
    'RuntimeClass',
    'StorageClass',
    'ValidatingWebhookConfiguration',
    'VolumeAttachment',
})


class ChartError(Exception):
    """Chart cannot be loaded."""


@dataclass
class Chart:
    """A loaded and prepared chart.

    Attributes:
        name: Chart name, used in labels to find deployed resources and hooks
        namespace: Default namespace for namespaced resources
        resources: Regular resources in apply order
        hooks: Hooks by type
        source: File or directory the chart was loaded from
    """
    name: str
    namespace: str
    resources: list[dict] = field(default_factory=list)
    hooks: HookMap = field(default_factory=HookMap)
    source: Optional[Path] = None

    def hook_count(self) -> int:
        return sum(len(hooks) for hooks in self.hooks.values())

    def label_selector(self) -> str:
        """Label selector matching deployed regular resources of this chart."""
        return f"{LABEL_CHART_NAME}={self.name}"


def _manifest_files(path: Path) -> list[Path]:
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise ChartError(f"Chart path {path} does not exist")
    return sorted(
        p for p in path.iterdir()
        if p.is_file() and p.suffix in MANIFEST_SUFFIXES and not p.name.startswith('_')
    )


def _flatten(doc: dict) -> list[dict]:
    if get_kind(doc) == 'List' or (get_kind(doc).endswith('List') and 'items' in doc):
        objs = []
        for item in doc.get('items') or []:
            objs.extend(_flatten(item))
        return objs
    return [doc]


def parse_manifests(text: str, source: str = '<string>') -> list[dict]:
    """Parse multi-document YAML into a flat list of objects.

    Raises:
        ChartError: If the YAML is invalid or a document is not an object
            with kind and metadata.name
    """
    try:
        docs = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise ChartError(f"Failed to parse {source}: {e}") from e

    objs = []
    for doc in docs:
        if doc is None:
            continue
        if not isinstance(doc, dict):
            raise ChartError(f"{source}: expected an object, got {type(doc).__name__}")
        objs.extend(_flatten(doc))

    for obj in objs:
        if not get_kind(obj) or not obj.get('apiVersion'):
            raise ChartError(f"{source}: object is missing apiVersion or kind")
        if not get_name(obj):
            raise ChartError(f"{source}: {get_kind(obj)} is missing metadata.name")

    return objs


def _set_default_namespace(obj: dict, namespace: str) -> None:
    if get_kind(obj) in CLUSTER_SCOPED_KINDS:
        return
    metadata = obj.setdefault('metadata', {})
    if not metadata.get('namespace'):
        metadata['namespace'] = namespace


def build_chart(name: str, namespace: str, objs: list[dict],
                source: Optional[Path] = None) -> Chart:
    """Prepare objs as chart name.

    Raises:
        ChartError: If a hook is invalid
    """
    chart = Chart(name=name, namespace=namespace, source=source)

    for obj in objs:
        _set_default_namespace(obj, namespace)

        if is_hook(obj):
            try:
                hook: Hook = parse_hook(obj)
            except HookError as e:
                raise ChartError(f"invalid hook {get_name(obj)!r}: {e}") from e
            add_label(obj, LABEL_HOOK_CHART_NAME, name)
            add_label(obj, LABEL_HOOK_TYPE, hook.type)
            chart.hooks.add(hook)
            continue

        add_label(obj, LABEL_CHART_NAME, name)
        add_owner_labels(obj)
        chart.resources.append(obj)

    sort_by_kind(chart.resources, APPLY_ORDER)

    logger.debug(f"Chart {name}: {len(chart.resources)} resource(s), {chart.hook_count()} hook(s)")
    return chart


def load_chart(path: str, name: Optional[str] = None, namespace: str = 'default') -> Chart:
    """Load a chart from a manifest file or directory.

    Args:
        path: YAML file or directory of YAML files
        name: Chart name (default: file stem or directory name)
        namespace: Default namespace for namespaced resources

    Raises:
        ChartError: If the chart cannot be read or contains invalid objects
    """
    chart_path = Path(path).expanduser()
    files = _manifest_files(chart_path)
    if not name:
        name = chart_path.stem if chart_path.is_file() else chart_path.resolve().name

    objs = []
    for file in files:
        try:
            text = file.read_text(encoding='utf-8')
        except OSError as e:
            raise ChartError(f"Failed to read {file}: {e}") from e
        objs.extend(parse_manifests(text, str(file)))

    return build_chart(name, namespace, objs, source=chart_path)
