"""Condition functions for the waiter.

Both conditions follow the same pattern: list the resource by name to learn
its current state and the collection resourceVersion, return early if the
condition already holds, and otherwise watch from that resourceVersion until
a definitive event arrives. A watch that closes without one (server-side
expiry) starts the cycle over until the deadline passes.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from kubernetes.client.exceptions import ApiException

from common import nested_get
from kube.client import EVENT_DELETED, EVENT_ERROR, ClusterClient, ObjectList, WatchEvent
from kube.errors import is_not_found
from kube.objects import (
    JOB_GVR,
    ResourceInfo,
    ResourceLocation,
    UIDMap,
    get_name,
    get_namespace,
    get_uid,
    kind_string,
)
from wait.errors import StatusFailedError, WaitSkippedError, WaitTimeoutError
from wait.waiter import Options

logger = logging.getLogger(__name__)


class ConditionFunc(ABC):
    """Blocks until a resource satisfies a condition.

    Implementations return (object, True) once the condition holds and raise
    a WaitError (or ApiException) otherwise.
    """

    @abstractmethod
    def __call__(self, info: ResourceInfo, options: Options) -> tuple[dict, bool]:
        ...


class ListWatchCondition(ConditionFunc):
    """Shared list-then-watch loop bounded by options.timeout."""

    def __init__(self, client: ClusterClient, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.clock = clock

    def __call__(self, info: ResourceInfo, options: Options) -> tuple[dict, bool]:
        self.check_applicable(info)

        if not info.name:
            raise ValueError('resource name must be provided')

        deadline = self.clock() + options.timeout
        name_selector = f"metadata.name={info.name}"
        obj = info.obj

        while True:
            result = self.list(info, name_selector)
            if result is None:
                return obj, True

            observed, done = self.check_list(info, result)
            if observed is not None:
                obj = observed
            if done:
                return obj, True

            remaining = deadline - self.clock()
            if remaining <= 0:
                raise WaitTimeoutError(str(info.gvr.group_resource), info.name)

            for event in self.client.watch(info.gvr, info.namespace, name_selector,
                                           result.resource_version, remaining):
                if self.check_event(info, event):
                    return event.object, True

            logger.debug(f"Watch on {info} closed, restarting")

    def list(self, info: ResourceInfo, name_selector: str) -> Optional[ObjectList]:
        """List info by name. Returning None means the condition holds."""
        return self.client.list(info.gvr, info.namespace, field_selector=name_selector)

    def check_applicable(self, info: ResourceInfo) -> None:
        """Raise WaitSkippedError if the condition does not apply to info."""

    @abstractmethod
    def check_list(self, info: ResourceInfo, result: ObjectList) -> tuple[Optional[dict], bool]:
        """Check the listed state. Returns (observed object, done)."""

    @abstractmethod
    def check_event(self, info: ResourceInfo, event: WatchEvent) -> bool:
        """Check a watch event. Returns True once the condition holds."""


def _condition_status(conditions: list, name: str) -> Optional[str]:
    for condition in conditions:
        if not isinstance(condition, dict):
            continue
        typ = condition.get('type')
        if not isinstance(typ, str) or typ.lower() != name:
            continue
        status = condition.get('status')
        if not isinstance(status, str):
            continue
        return status.lower()
    return None


def is_complete(obj: dict) -> bool:
    """Check whether a job is complete.

    Raises:
        StatusFailedError: If the job has a true Failed condition
    """
    conditions = nested_get(obj, 'status', 'conditions')
    if not isinstance(conditions, list):
        return False

    complete = _condition_status(conditions, 'complete')
    if complete is not None:
        return complete == 'true'

    if _condition_status(conditions, 'failed') == 'true':
        raise StatusFailedError(kind_string(obj.get('kind') or 'Job', 'batch'), get_name(obj))

    return False


class CompletionCondition(ListWatchCondition):
    """Waits for a job to complete. Fails fast once the job failed."""

    def check_applicable(self, info: ResourceInfo) -> None:
        if info.gvr != JOB_GVR:
            raise WaitSkippedError(info.kind_string, info.name)

    def check_list(self, info, result):
        if len(result.items) != 1:
            return None, False
        obj = result.items[0]
        return obj, is_complete(obj)

    def check_event(self, info, event):
        if event.type == EVENT_ERROR:
            # the server is expected to close the watch after an error event
            logger.error(f"An error occurred while waiting for {info} to complete: {_status_message(event.object)}")
            return False
        if event.type == EVENT_DELETED:
            # re-evaluated by the next list
            return False
        return is_complete(event.object)


class DeletionCondition(ListWatchCondition):
    """Waits for a resource to disappear.

    A resource that was replaced by a new object of the same name (different
    UID than recorded in uid_map at deletion time) counts as deleted.
    """

    def __init__(self, client: ClusterClient, uid_map: Optional[UIDMap] = None,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(client, clock)
        self.uid_map = dict(uid_map or {})

    def list(self, info, name_selector):
        try:
            return super().list(info, name_selector)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise

    def check_list(self, info, result):
        if len(result.items) != 1:
            return None, True

        obj = result.items[0]
        location = ResourceLocation(
            info.gvr.group_resource,
            get_namespace(obj) or info.namespace,
            get_name(obj) or info.name,
        )
        uid = self.uid_map.get(location)
        if uid and get_uid(obj) != uid:
            logger.debug(f"{info} was recreated with a different UID, treating as deleted")
            return obj, True

        return obj, False

    def check_event(self, info, event):
        if event.type == EVENT_DELETED:
            return True
        if event.type == EVENT_ERROR:
            logger.error(f"An error occurred while waiting for {info} to be deleted: {_status_message(event.object)}")
        return False


def _status_message(status: dict) -> str:
    message = status.get('message') if isinstance(status, dict) else None
    if message:
        code = status.get('code')
        return f"{message} ({code})" if code else str(message)
    return str(status)
