"""
Dependency Validator for Job Scheduler.

Checks proposed dependency sets before they are committed:
- Every id is well formed
- Every id resolves to a job in the caller's organization
- The resulting graph (edge: job -> dependency) stays acyclic

The validator only reads the store. Rejection leaves the job's persisted
dependency set untouched because nothing has been written yet.
"""

import logging
from typing import Iterable, Optional

from .entities import is_valid_job_id
from .errors import (
    DependencyCycleError,
    MissingDependencyError,
    ValidationError,
)
from .persistence import PersistenceAdapter


logger = logging.getLogger(__name__)


class DependencyValidator:
    """Existence, org-scoping and cycle checks for job dependencies."""

    def __init__(self, persistence: PersistenceAdapter):
        self.persistence = persistence

    def validate(self, candidate_deps: Iterable[str], org_id: str) -> list[str]:
        """
        Validate a candidate dependency set.

        Args:
            candidate_deps: Proposed dependency job ids (may contain duplicates)
            org_id: Organization the dependent job belongs to

        Returns:
            Deduplicated dependency ids in first-seen order

        Raises:
            ValidationError: If any id is malformed
            MissingDependencyError: If any id is absent or in another organization
        """
        deps: list[str] = []
        seen: set[str] = set()

        for dep_id in candidate_deps:
            if not is_valid_job_id(dep_id):
                raise ValidationError(
                    f"Malformed dependency id: {dep_id!r}", field="depends_on"
                )
            if dep_id not in seen:
                seen.add(dep_id)
                deps.append(dep_id)

        missing = [
            dep_id for dep_id in deps
            if self.persistence.find_one(dep_id, org_id) is None
        ]
        if missing:
            raise MissingDependencyError(missing)

        return deps

    def detect_cycle(
        self,
        job_id: str,
        proposed_deps: Iterable[str],
        org_id: str,
    ) -> None:
        """
        Check that giving job_id the proposed edges keeps the graph acyclic.

        Depth-first from job_id. The root uses the proposed edges; every
        other node uses its persisted depends_on. A node found on the
        current path is a cycle. The path set is restored on backtrack, so
        sibling branches never see each other's nodes as "on path".

        Raises:
            DependencyCycleError: With the offending path, e.g. [A, B, A]
        """
        proposed = list(proposed_deps)
        edges_cache: dict[str, list[str]] = {job_id: proposed}
        path: list[str] = [job_id]
        on_path: set[str] = {job_id}
        # Nodes whose reachable subgraph was fully walked without hitting the path
        cleared: set[str] = set()

        def edges_of(node: str) -> list[str]:
            if node not in edges_cache:
                job = self.persistence.find_one(node, org_id)
                edges_cache[node] = list(job.depends_on) if job is not None else []
            return edges_cache[node]

        def visit(node: str) -> Optional[list[str]]:
            for dep in edges_of(node):
                if dep in on_path:
                    start = path.index(dep)
                    return path[start:] + [dep]
                if dep in cleared:
                    continue

                path.append(dep)
                on_path.add(dep)
                found = visit(dep)
                path.pop()
                on_path.discard(dep)

                if found is not None:
                    return found
                cleared.add(dep)
            return None

        cycle = visit(job_id)
        if cycle is not None:
            logger.info(f"Rejected dependencies for job {job_id}: cycle {' -> '.join(cycle)}")
            raise DependencyCycleError(cycle)

    def check(self, job_id: str, candidate_deps: Iterable[str], org_id: str) -> list[str]:
        """Validate and cycle-check in one call. Returns the cleaned dependency list."""
        deps = self.validate(candidate_deps, org_id)
        self.detect_cycle(job_id, deps, org_id)
        return deps
