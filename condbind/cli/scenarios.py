"""
Demo Scenarios for condbind.

Each scenario exercises one call site of the evaluator with small,
deterministic sample data:

    compare-ages  — if-like: two optional people, compare their ages
    paged-read    — while-like: read pages until the stream runs dry
    safe-cast     — when-like: dispatch on whether two casts succeeded

Scenarios return a ScenarioResult. They never print; formatting is the
CLI's job.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from ..domain import BindingStep, EvaluationOutcome
from ..dispatch.branch import if_bound
from ..dispatch.loop import while_bound
from ..dispatch.match import Case, when_bound
from ..presence import Absent, Present, Presence, absent, present, safe_cast


# =============================================================================
# SCENARIO RESULT
# =============================================================================

@dataclass
class ScenarioResult:
    """Lines to show, plus every outcome the scenario produced."""
    name: str
    lines: list[str] = field(default_factory=list)
    outcomes: list[EvaluationOutcome] = field(default_factory=list)


# =============================================================================
# SAMPLE DATA
# =============================================================================

@dataclass(frozen=True)
class Person:
    name: str
    age: int


SAMPLE_AGES = (30, 25)

SAMPLE_PAGE_COUNT = 3

SAMPLE_CAST_VALUES = ("12", "30")


def person_at(people: Sequence[Person], index: int) -> Presence:
    """people.getOrNull(index), as a Presence."""
    if 0 <= index < len(people):
        return present(people[index])
    return absent(f"no person at index {index}")


class PagedSource:
    """
    A fake paged stream. read_page(n) returns Present for 1..page_count
    and Absent afterwards. Counts reads so callers can check side effects.
    """

    def __init__(self, page_count: int):
        self.page_count = page_count
        self.reads = 0

    def read_page(self, counter: int) -> Presence:
        self.reads += 1
        if 1 <= counter <= self.page_count:
            return Present(f"data-{counter}")
        return Absent(f"end of stream at page {counter}")


def parse_literal(text: str) -> Any:
    """Turn a CLI token into an int when it looks like one, else keep the str."""
    try:
        return int(text)
    except ValueError:
        return text


# =============================================================================
# SCENARIOS
# =============================================================================

COMPARE_FALLBACK = "need two people to compare ages"


def run_compare_ages(ages: Sequence[int] = SAMPLE_AGES) -> ScenarioResult:
    """
    If-like: bind p1 and p2, then test p1.age > p2.age.

    A missing person and a younger-or-equal p1 both take the else-body.
    """
    people = [Person(f"person{i + 1}", age) for i, age in enumerate(ages)]
    result = ScenarioResult("compare-ages")

    branch = if_bound(
        steps=[
            BindingStep("p1", lambda: person_at(people, 0)),
            BindingStep("p2", lambda: person_at(people, 1)),
        ],
        guard=lambda p1, p2: p1.age > p2.age,
        then=lambda p1: f"p1 is oldest ({p1.name}, {p1.age})",
        otherwise=lambda: COMPARE_FALLBACK,
    )
    result.outcomes.append(branch.outcome)
    result.lines.append(branch.value)

    return result


def run_paged_read(page_count: int = SAMPLE_PAGE_COUNT) -> ScenarioResult:
    """While-like: while (val page = readPage(counter++)) { ... }"""
    source = PagedSource(page_count)
    counter = itertools.count(1)
    result = ScenarioResult("paged-read")

    def make_steps() -> list[BindingStep]:
        return [BindingStep("page", lambda: source.read_page(next(counter)))]

    report = while_bound(
        make_steps,
        guard=lambda page: bool(page),
        body=lambda page: f"read {page}",
    )
    result.outcomes.extend(report.outcomes)
    result.lines.extend(report.body_results)
    result.lines.append(f"{report.iterations} pages read, {source.reads} reads issued")

    return result


def run_safe_cast(values: Sequence[Any] = SAMPLE_CAST_VALUES) -> ScenarioResult:
    """When-like: cast both values to int, dispatch on whether both succeeded."""
    if len(values) != 2:
        raise ValueError(f"safe-cast takes exactly two values, got {len(values)}")

    a, b = (parse_literal(v) if isinstance(v, str) else v for v in values)
    result = ScenarioResult("safe-cast")

    match = when_bound(
        steps=[
            BindingStep("x", lambda: safe_cast(a, int)),
            BindingStep("y", lambda: safe_cast(b, int)),
        ],
        subject=lambda x, y: x is not None and y is not None,
        cases=[Case(True, lambda x, y: f"both are int: {x} + {y} = {x + y}")],
        otherwise=lambda: "not both int",
    )
    result.outcomes.append(match.outcome)
    result.lines.append(match.value)

    return result


# =============================================================================
# REGISTRY
# =============================================================================

@dataclass(frozen=True)
class Scenario:
    name: str
    call_site: str
    description: str
    runner: Callable[..., ScenarioResult]


SCENARIOS: dict[str, Scenario] = {
    "compare-ages": Scenario(
        "compare-ages", "if", "compare two optional people by age", run_compare_ages,
    ),
    "paged-read": Scenario(
        "paged-read", "while", "read pages until the stream is exhausted", run_paged_read,
    ),
    "safe-cast": Scenario(
        "safe-cast", "when", "dispatch on two safe casts to int", run_safe_cast,
    ),
}
