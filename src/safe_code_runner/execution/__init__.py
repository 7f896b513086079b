from .classifier import classify
from .collector import OutputCollector
from .container_runner import ContainerRunner, DockerRuntimeProbe, docker_is_available
from .engine import RuntimeProbe
from .slots import ExecutionSlots
from .types import Phase, ProcessOutcome

__all__ = [
    "ContainerRunner",
    "DockerRuntimeProbe",
    "ExecutionSlots",
    "OutputCollector",
    "Phase",
    "ProcessOutcome",
    "RuntimeProbe",
    "classify",
    "docker_is_available",
]
