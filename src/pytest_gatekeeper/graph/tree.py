# src/pytest_gatekeeper/graph/tree.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Set

from pytest_gatekeeper.schemas import GatekeeperResult

STATUS_ICONS = {
    "passed": "✓",
    "failed": "✗",
    "skipped": "⊘",
}


@dataclass(frozen=True)
class DependentTest:
    title: str
    outcome: str
    flaky: bool = False


def root_gatekeepers(
    results: Mapping[str, GatekeeperResult],
    dependencies: Mapping[str, Sequence[str]],
) -> List[str]:
    roots = [key for key in results if not dependencies.get(key)]
    # Keys nobody recorded but somebody depends on still anchor a subtree
    for deps in dependencies.values():
        for dep in deps:
            if dep not in roots and dep not in dependencies:
                roots.append(dep)
    return sorted(roots)


def render_dependency_tree(
    results: Mapping[str, GatekeeperResult],
    dependencies: Mapping[str, Sequence[str]],
    dependents: Mapping[str, Sequence[DependentTest]],
) -> List[str]:
    roots = root_gatekeepers(results, dependencies)
    if not roots and not dependents:
        return ["  No dependency relationships found."]

    lines: List[str] = []
    rendered_gatekeepers: Set[str] = set()
    rendered_tests: Set[str] = set()

    def children_of(key: str) -> List[str]:
        return sorted(
            child
            for child, deps in dependencies.items()
            if key in deps and child not in rendered_gatekeepers
        )

    def render(key: str, prefix: str, is_last: bool) -> None:
        rendered_gatekeepers.add(key)

        result = results.get(key)
        icon = "?" if result is None else ("✓" if result.passed else "✗")
        connector = "  " if prefix == "" else ("└── " if is_last else "├── ")
        lines.append(f"{prefix}{connector}{key} {icon}")

        child_prefix = "  " if prefix == "" else prefix + ("    " if is_last else "│   ")
        child_keys = children_of(key)
        tests = sorted(dependents.get(key) or [], key=lambda t: t.title)

        for i, child in enumerate(child_keys):
            # A sibling may have rendered this child through another path
            if child in rendered_gatekeepers:
                continue
            render(child, child_prefix, i == len(child_keys) - 1 and not tests)

        for i, test in enumerate(tests):
            repeat = " ⊕" if test.title in rendered_tests else ""
            rendered_tests.add(test.title)
            flaky = "↺" if test.flaky else ""
            connector = "└── " if i == len(tests) - 1 else "├── "
            lines.append(f"{child_prefix}{connector}{test.title} {STATUS_ICONS.get(test.outcome, '?')}{flaky}{repeat}")

    for root in roots:
        if root not in rendered_gatekeepers:
            render(root, "", True)

    # Dependent tests whose keys never showed up as gatekeepers
    orphans = sorted(k for k in dependents if k not in rendered_gatekeepers)
    for key in orphans:
        render(key, "", True)

    return lines


def group_dependents(entries: Sequence[tuple]) -> Dict[str, List[DependentTest]]:
    """Index (keys, DependentTest) pairs by each key the test depends on."""
    grouped: Dict[str, List[DependentTest]] = {}
    for keys, test in entries:
        for key in keys:
            grouped.setdefault(key, []).append(test)
    return grouped
