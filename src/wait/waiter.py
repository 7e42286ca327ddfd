"""Generic waiter that visits resources and applies a condition to each."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from config import DEFAULT_WAIT_TIMEOUT
from kube.objects import ResourceInfo
from printers import DiscardingPrinter, ResourcePrinter
from wait.errors import StatusFailedError, WaitError, WaitSkippedError

if TYPE_CHECKING:
    from wait.conditions import ConditionFunc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Options:
    """Wait options for a single resource.

    Attributes:
        timeout: Seconds after which waiting stops with WaitTimeoutError
        allow_failure: Whether a StatusFailedError is only logged
    """
    timeout: float = DEFAULT_WAIT_TIMEOUT
    allow_failure: bool = False


@dataclass
class Request:
    """A request to wait for multiple resources.

    Attributes:
        condition: Decides when waiting on a single resource stops
        infos: Resources to wait for, visited in order
        options: Default options
        resource_options: Per-resource options keyed by UID (optional)
    """
    condition: 'ConditionFunc'
    infos: list[ResourceInfo] = field(default_factory=list)
    options: Options = field(default_factory=Options)
    resource_options: dict[str, Options] = field(default_factory=dict)

    def options_for(self, info: ResourceInfo) -> Options:
        """Return the options override for info's UID, or the defaults."""
        uid = info.uid
        if uid and uid in self.resource_options:
            return self.resource_options[uid]
        return self.options


class Waiter:
    """Waits for resources one after another.

    Each satisfied resource is printed once through the printer.
    """

    def __init__(self, printer: Optional[ResourcePrinter] = None):
        self.printer = printer if printer is not None else DiscardingPrinter()

    def wait(self, request: Request) -> None:
        """Wait for all resources in request.

        Skipped resources, and failed ones whose options allow failure, are
        logged and do not stop the wait.

        Raises:
            WaitError: The first unsatisfied condition
            ApiException: Unclassified cluster API errors
        """
        for info in request.infos:
            options = request.options_for(info)

            try:
                obj, done = request.condition(info, options)
            except WaitSkippedError as e:
                logger.info(str(e))
                continue
            except StatusFailedError as e:
                if not options.allow_failure:
                    raise
                logger.warning(f"{e} (failure allowed)")
                continue

            if not done:
                raise WaitError(f"{info} unsatisfied for unknown reason")

            self.printer.print_obj(obj)
