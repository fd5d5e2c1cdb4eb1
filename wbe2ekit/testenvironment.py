"""Test-environment settings read from environment variables."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, Sized
from dataclasses import dataclass

MAX_PODS_PER_NODE = 110

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _atoi(text: str, variable: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"{variable}: invalid integer {text!r}")
    return int(text)


def _truncating_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator < 0) == (denominator < 0) else -quotient


@dataclass(frozen=True)
class Configuration:
    """Cluster size and load parameters for a test run."""

    kubeconfig_path: str = "${HOME}/.kube/config"
    num_compute_nodes: int = 2
    fill_percent_capacity: int = 50
    number_of_iterations: int = 1

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Configuration":
        """Read the configuration, using defaults for unset variables."""
        env = os.environ if environ is None else environ
        return cls(
            kubeconfig_path=env.get("KUBECONFIG", "${HOME}/.kube/config"),
            num_compute_nodes=_atoi(
                env.get("NUMBER_OF_COMPUTE_NODES", "2"), "NUMBER_OF_COMPUTE_NODES"
            ),
            fill_percent_capacity=_atoi(
                env.get("FILL_PERCENT_CAPACITY", "50"), "FILL_PERCENT_CAPACITY"
            ),
            number_of_iterations=_atoi(
                env.get("NUMBER_OF_THRASH_ITER", "1"), "NUMBER_OF_THRASH_ITER"
            ),
        )

    def max_replicas(self, all_pods: Sized) -> int:
        """Return how many more pods fill the cluster to the configured share."""
        free = self.num_compute_nodes * MAX_PODS_PER_NODE - len(all_pods)
        return _truncating_div(free * self.fill_percent_capacity, 100)