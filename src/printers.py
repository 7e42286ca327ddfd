"""Human-readable resource output.

Every resource the engine acts on is reported with one line of the form

    [<prefix> ]<kind>[.<group>]/<name> <operation>[ (<context>)][ (dry run)]

e.g. "hook job.batch/migrate triggered (timeout 5m0s)". Printers optionally
record what they printed so later steps can act on it (e.g. prune the
claims of everything that was just deleted).
"""

import sys
import threading
from typing import Optional, TextIO

from kube.objects import get_group, get_kind, get_name, kind_string


class OperationRecorder:
    """Records objects per operation."""

    def __init__(self):
        self._lock = threading.Lock()
        self._operations: dict[str, list[dict]] = {}

    def record(self, operation: str, obj: dict) -> None:
        with self._lock:
            self._operations.setdefault(operation, []).append(obj)

    def objects(self, operation: str) -> list[dict]:
        """Return the objects recorded for operation, in print order."""
        with self._lock:
            return list(self._operations.get(operation, []))


class ResourcePrinter:
    """Prints one line per object for a given operation.

    Printers are immutable; with_operation(), with_context() and
    with_prefix() return new printers sharing output stream and recorder.
    """

    def __init__(self, operation: str = '', context: tuple[str, ...] = (),
                 dry_run: bool = False, out: Optional[TextIO] = None,
                 recorder: Optional[OperationRecorder] = None, prefix: str = ''):
        self.operation = operation
        self.context = tuple(context)
        self.dry_run = dry_run
        self.out = out
        self.recorder = recorder
        self.prefix = prefix

    def _copy(self, **changes) -> 'ResourcePrinter':
        fields = {
            'operation': self.operation,
            'context': self.context,
            'dry_run': self.dry_run,
            'out': self.out,
            'recorder': self.recorder,
            'prefix': self.prefix,
        }
        fields.update(changes)
        return ResourcePrinter(**fields)

    def with_operation(self, operation: str) -> 'ResourcePrinter':
        return self._copy(operation=operation)

    def with_context(self, *context: str) -> 'ResourcePrinter':
        return self._copy(context=context)

    def with_prefix(self, prefix: str) -> 'ResourcePrinter':
        """Printer whose lines start with prefix (e.g. "hook")."""
        return self._copy(prefix=prefix)

    def format(self, obj: dict) -> str:
        info = self.operation
        if self.context:
            info = f"{info} ({','.join(self.context)})"
        if self.dry_run:
            info = f"{info} (dry run)"

        name = f"{kind_string(get_kind(obj), get_group(obj))}/{get_name(obj)}"
        if self.prefix:
            name = f"{self.prefix} {name}"
        info = info.strip()
        return f"{name} {info}" if info else name

    def print_obj(self, obj: dict) -> None:
        out = self.out if self.out is not None else sys.stdout
        print(self.format(obj), file=out)
        if self.recorder is not None:
            self.recorder.record(self.operation, obj)


class DiscardingPrinter(ResourcePrinter):
    """Printer that drops everything."""

    def with_operation(self, operation: str) -> 'ResourcePrinter':
        return self

    def with_context(self, *context: str) -> 'ResourcePrinter':
        return self

    def with_prefix(self, prefix: str) -> 'ResourcePrinter':
        return self

    def print_obj(self, obj: dict) -> None:
        return None
