from __future__ import annotations


FAILED_CONTAINER_VALIDATION = 100
INVALID_CGROUP_CPUSHARES_VALUE = 101
INVALID_CGROUP_MEMORY_VALUE = 102


class DeployError(Exception):
    """Fatal deployment condition.

    The core never terminates the process; callers decide what to do with
    ``exit_code`` (the CLI turns it into the process status).
    """

    exit_code = 1


class ResourceConstraintInvalid(DeployError, ValueError):
    """A cgroup constraint is not an unsigned 64-bit integer."""

    constraint = ""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Invalid value for CGroup {self.constraint} constraint: {value!r}, "
            "value must be between 0 and 18446744073709551615"
        )


class InvalidMemoryConstraint(ResourceConstraintInvalid):
    constraint = "memory"
    exit_code = INVALID_CGROUP_MEMORY_VALUE


class InvalidCpuSharesConstraint(ResourceConstraintInvalid):
    constraint = "CPU"
    exit_code = INVALID_CGROUP_CPUSHARES_VALUE


class ContainerValidationFailed(DeployError):
    exit_code = FAILED_CONTAINER_VALIDATION

    def __init__(self, hostname: str, port: int):
        self.hostname = hostname
        self.port = port
        super().__init__(f"Failed to validate started container on {hostname}:{port}")
