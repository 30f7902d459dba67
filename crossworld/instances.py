"""
Instances — runnable test instances and the world extension that builds them.

An instance pairs a simulate command with whether it is supported on the
chosen package universe and whether its outcome can be decided
automatically (it prints a sentinel).  Instances are grouped in a tree,
e.g. ``tests.panicking.unwind.with_alloc``.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, TextIO, Tuple

from crossworld.config import settings
from crossworld.core.tree import from_leaves, leaves
from crossworld.harness import automate
from crossworld.io.schema import AutomateResult, InstanceSpec
from crossworld.policy.support import RuntimeSupport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Instance:
    name: str
    simulate: Tuple[str, ...]
    is_supported: bool
    can_automate: bool = False
    automate_timeout: int = field(default_factory=lambda: settings.AUTOMATE_TIMEOUT)

    def automate(self, log_sink: Optional[TextIO] = None) -> AutomateResult:
        """Run the simulation under the harness.  Requires ``can_automate``."""
        if not self.can_automate:
            raise ValueError(f"Instance {self.name} cannot be automated")
        return automate(self.simulate, self.automate_timeout, log_sink)


def all_instances(instance_tree: Any) -> List[Instance]:
    return [instance for _, instance in leaves(instance_tree)]


def supported(instances: Iterable[Instance]) -> List[Instance]:
    return [i for i in instances if i.is_supported]


def instance_from_spec(spec: InstanceSpec, support: RuntimeSupport) -> Instance:
    timeout = spec.automate_timeout
    if timeout is None:
        timeout = settings.AUTOMATE_TIMEOUT
    return Instance(
        name=".".join(spec.path),
        simulate=tuple(spec.simulate),
        is_supported=support.satisfies(spec.requires),
        can_automate=spec.can_automate,
        automate_timeout=timeout,
    )


def instances_extension(
    specs: Sequence[InstanceSpec],
    target_path: str = "build",
) -> Callable[[Any], Any]:
    """World extension field: a tree of instances judged against one universe."""

    def instances(world: Any) -> Any:
        universe = world.package_universes[target_path]
        support = RuntimeSupport.for_universe(universe)
        logger.info(
            f"{len(specs)} instances against {target_path} "
            f"(arch={support.arch}, full_runtime={support.full_runtime}, "
            f"kernel_loader={support.kernel_loader})"
        )
        return from_leaves((tuple(spec.path), instance_from_spec(spec, support)) for spec in specs)

    return instances
