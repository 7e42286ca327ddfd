"""Errors raised while waiting on resource conditions."""


class WaitError(Exception):
    """Base class for wait failures."""


class WaitTimeoutError(WaitError):
    """The condition was not met before the deadline."""

    def __init__(self, resource: str, name: str):
        self.resource = resource
        self.name = name
        super().__init__(f"timed out waiting for the condition on {resource}/{name}")


class StatusFailedError(WaitError):
    """A job transitioned into status failed.

    Callers may tolerate this through Options.allow_failure.
    """

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f'{kind} "{name}" is in status failed')


class WaitSkippedError(WaitError):
    """The condition does not apply to the resource's kind."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f'skipped waiting for {kind} "{name}"')
