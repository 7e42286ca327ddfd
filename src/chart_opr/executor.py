"""Chart executor: drives the apply and delete lifecycles of a chart.

apply:  pre-apply hooks -> resources in apply order -> resources removed from
        the chart -> post-apply hooks -> claims of pruned StatefulSets
delete: pre-delete hooks -> resources in delete order -> post-delete hooks
        -> claims of deleted StatefulSets that opted into pruning
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, TextIO

from kubernetes.client.exceptions import ApiException

from chart import Chart, ChartError
from chart_opr.applier import Applier
from chart_opr.pruner import ResourcePruner
from common import ActionResult
from config import DriverConfig
from deletions.deleter import Deleter
from hooks.executor import HookExecutor, NoopExecutor
from hooks.hook import POST_APPLY, POST_DELETE, PRE_APPLY, PRE_DELETE, HookError
from kube.client import ClusterClient
from kube.errors import describe, is_not_found
from kube.objects import ResourceInfo
from printers import OperationRecorder, ResourcePrinter
from resources.sorter import APPLY_ORDER, DELETE_ORDER, sort_by_kind
from resources.statefulset import PersistentVolumeClaimPruner
from wait.errors import WaitError

logger = logging.getLogger(__name__)

# Failures reported as a failed ActionResult instead of propagating.
OPERATION_ERRORS = (ApiException, WaitError, HookError, ChartError, ValueError)


@dataclass
class ChartExecutor:
    """Executes lifecycle operations for a chart.

    Attributes:
        client: Cluster client
        config: Driver configuration (timeouts, field manager)
        dry_run: If True, only print what would happen
        out: Stream for resource lines (default: stdout)
        no_hooks: If True, hooks of the chart are not executed
    """
    client: ClusterClient
    config: DriverConfig = field(default_factory=DriverConfig)
    dry_run: bool = False
    out: Optional[TextIO] = None
    no_hooks: bool = False
    recorder: OperationRecorder = field(default_factory=OperationRecorder, init=False, repr=False)

    def __post_init__(self) -> None:
        self.printer = ResourcePrinter(dry_run=self.dry_run, out=self.out, recorder=self.recorder)
        self.deleter = Deleter(
            self.client,
            printer=self.printer,
            dry_run=self.dry_run,
            timeout=self.config.deletion_wait_timeout,
        )
        if self.no_hooks:
            self.hooks = NoopExecutor()
        else:
            self.hooks = HookExecutor(
                self.client,
                self.deleter,
                printer=self.printer,
                dry_run=self.dry_run,
                default_timeout=self.config.hook_wait_timeout,
            )
        self.applier = Applier(
            self.client,
            printer=self.printer,
            dry_run=self.dry_run,
            field_manager=self.config.field_manager,
        )
        self.pruner = PersistentVolumeClaimPruner(self.client, self.deleter)
        self.resource_pruner = ResourcePruner(self.client, Deleter(
            self.client,
            printer=self.printer,
            dry_run=self.dry_run,
            timeout=self.config.deletion_wait_timeout,
            operation='pruned',
        ))

    def apply(self, chart: Chart) -> ActionResult:
        """Apply chart resources surrounded by pre-/post-apply hooks.

        Deployed resources that were removed from the chart are pruned
        after the apply, together with the claims of pruned StatefulSets
        with the delete-pvcs policy.
        """
        start = time.time()
        logger.info(f"Applying chart {chart.name} to namespace {chart.namespace}")

        try:
            self.hooks.exec_hooks(chart, PRE_APPLY)
            resources = sort_by_kind(list(chart.resources), APPLY_ORDER)
            applied = self.applier.apply(resources)
            pruned = self.resource_pruner.prune(chart)
            self.hooks.exec_hooks(chart, POST_APPLY)
            self.pruner.prune_claims(self.recorder.objects('pruned'))
        except OPERATION_ERRORS as e:
            return self._failed('apply', chart, e, start)

        message = f"Chart {chart.name} applied ({len(applied)} resource(s)"
        if pruned:
            message += f", {len(pruned)} pruned"
        return ActionResult(
            success=True,
            message=message + ')',
            duration=time.time() - start,
            details={'applied': len(applied), 'pruned': len(pruned)},
        )

    def delete(self, chart: Chart) -> ActionResult:
        """Delete chart resources surrounded by pre-/post-delete hooks.

        Claims of deleted StatefulSets with the delete-pvcs policy are
        pruned afterwards.
        """
        start = time.time()
        logger.info(f"Deleting chart {chart.name} from namespace {chart.namespace}")

        try:
            self.hooks.exec_hooks(chart, PRE_DELETE)
            infos = self._resource_infos(sort_by_kind(list(chart.resources), DELETE_ORDER))
            self.deleter.delete(infos)
            self.hooks.exec_hooks(chart, POST_DELETE)
            deleted = self.recorder.objects('deleted')
            self.pruner.prune_claims(deleted)
        except OPERATION_ERRORS as e:
            return self._failed('delete', chart, e, start)

        return ActionResult(
            success=True,
            message=f"Chart {chart.name} deleted ({len(infos)} resource(s))",
            duration=time.time() - start,
            details={'deleted': len(infos)},
        )

    def _resource_infos(self, objs: list[dict]) -> list[ResourceInfo]:
        infos = []
        for obj in objs:
            try:
                gvr = self.client.resource_for(obj['apiVersion'], obj['kind'])
            except ApiException as e:
                if not is_not_found(e):
                    raise
                # type is gone (e.g. CRD deleted), so are its objects
                logger.info(f"Skipping {obj['kind']}: {describe(e)}")
                continue
            infos.append(ResourceInfo.from_object(obj, gvr))
        return infos

    def _failed(self, operation: str, chart: Chart, err: Exception, start: float) -> ActionResult:
        message = describe(err)
        logger.error(f"Failed to {operation} chart {chart.name}: {message}")
        return ActionResult(
            success=False,
            message=message,
            duration=time.time() - start,
            details={'error': type(err).__name__},
        )
