"""Execution of chart lifecycle hooks."""

import logging
from typing import TYPE_CHECKING, Optional

from kubernetes.client.exceptions import ApiException

from config import DEFAULT_WAIT_TIMEOUT
from deletions.deleter import Deleter
from hooks.hook import hook_label_selector
from kube.client import ClusterClient
from kube.errors import describe, is_not_found, is_wait_tolerable
from kube.objects import JOB_GVR, ResourceInfo
from printers import ResourcePrinter
from wait.conditions import CompletionCondition
from wait.waiter import Options, Request, Waiter

if TYPE_CHECKING:
    from chart import Chart

logger = logging.getLogger(__name__)


class HookExecutor:
    """Executes the hooks of a chart.

    Stale hook Jobs from earlier runs are deleted first since Jobs cannot be
    updated in place. Hooks are then created in declaration order and awaited
    together according to their annotations.

    Args:
        client: Cluster client
        deleter: Deleter used for stale hooks
        waiter: Waiter for hook completion (default prints "completed")
        printer: Printer for triggered hooks
        dry_run: Only print what would be triggered
        default_timeout: Seconds to wait for hooks without a wait-timeout
    """

    def __init__(self, client: ClusterClient, deleter: Deleter,
                 waiter: Optional[Waiter] = None,
                 printer: Optional[ResourcePrinter] = None,
                 dry_run: bool = False,
                 default_timeout: float = DEFAULT_WAIT_TIMEOUT):
        self.client = client
        self.deleter = deleter
        self.printer = printer if printer is not None else ResourcePrinter(dry_run=dry_run)
        self.waiter = waiter if waiter is not None else Waiter(self.printer.with_operation('completed'))
        self.dry_run = dry_run
        self.default_timeout = default_timeout

    def exec_hooks(self, chart: 'Chart', hook_type: str) -> None:
        """Execute all hooks of hook_type defined in chart.

        Raises:
            ApiException: On cluster errors other than the tolerated ones
            WaitError: If a hook failed or timed out and failure is not allowed
        """
        hooks = chart.hooks.of_type(hook_type)
        if not hooks:
            return

        logger.debug(f"Executing {len(hooks)} {hook_type} hook(s) of chart {chart.name}")

        self._cleanup(chart, hook_type)

        infos: list[ResourceInfo] = []
        resource_options: dict[str, Options] = {}

        for hook in hooks:
            triggered = self.printer.with_prefix('hook').with_operation('triggered')
            triggered.with_context(*hook.print_context()).print_obj(hook.obj)

            if self.dry_run:
                continue

            created = self.client.create(JOB_GVR, hook.namespace, hook.obj)

            if hook.no_wait:
                continue

            info = ResourceInfo.from_object(created, JOB_GVR, hook.namespace)
            if not info.uid:
                logger.warning(f"Created hook {info} has no UID, not waiting for it")
                continue

            infos.append(info)
            resource_options[info.uid] = Options(
                timeout=hook.wait_timeout if hook.wait_timeout > 0 else self.default_timeout,
                allow_failure=hook.allow_failure,
            )

        self._wait_for_completion(infos, resource_options)

    def _cleanup(self, chart: 'Chart', hook_type: str) -> None:
        try:
            existing = self.client.list(JOB_GVR, None, label_selector=hook_label_selector(chart.name, hook_type))
        except ApiException as e:
            if not is_not_found(e):
                raise
            return

        infos = [ResourceInfo.from_object(obj, JOB_GVR) for obj in existing.items]
        if infos:
            logger.debug(f"Removing {len(infos)} stale {hook_type} hook(s) of chart {chart.name}")
            self.deleter.delete(infos)

    def _wait_for_completion(self, infos: list[ResourceInfo], resource_options: dict[str, Options]) -> None:
        if not infos:
            return

        try:
            self.waiter.wait(Request(
                condition=CompletionCondition(self.client),
                infos=infos,
                options=Options(timeout=self.default_timeout),
                resource_options=resource_options,
            ))
        except ApiException as e:
            if not is_wait_tolerable(e):
                raise
            logger.info(f"Not waiting for hooks: {describe(e)}")


class NoopExecutor:
    """Executor that does not execute any hooks."""

    def exec_hooks(self, chart: 'Chart', hook_type: str) -> None:
        return None
