"""Task registry — the fixed, ordered set of browsing tasks run per request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from rivalscan.agents import goals
from rivalscan.shared.urls import g2_search_url, same_url

UrlFn = Callable[[str], str]
"""Derives the task's start URL from the normalized base URL."""


@dataclass(frozen=True)
class TaskDescriptor:
    """One browsing task: display ``name``, result ``key``, start URL and goal."""

    name: str
    key: str
    url_fn: UrlFn
    goal: str

    def target_url(self, base_url: str) -> str:
        return self.url_fn(base_url)


def build_registry(descriptors: Sequence[TaskDescriptor]) -> tuple[TaskDescriptor, ...]:
    """Freeze a registry, rejecting duplicate names or keys."""
    names: set[str] = set()
    keys: set[str] = set()
    for d in descriptors:
        if d.name in names:
            raise ValueError(f"Duplicate task name: {d.name!r}")
        if d.key in keys:
            raise ValueError(f"Duplicate task key: {d.key!r}")
        names.add(d.name)
        keys.add(d.key)
    return tuple(descriptors)


DEFAULT_TASKS: tuple[TaskDescriptor, ...] = build_registry([
    TaskDescriptor("Company Profile", "profile", same_url, goals.PROFILE_GOAL),
    TaskDescriptor("Pricing Analysis", "pricing", same_url, goals.PRICING_GOAL),
    TaskDescriptor("Hiring Signals", "hiring", same_url, goals.HIRING_GOAL),
    TaskDescriptor("Content Strategy", "blog", same_url, goals.CONTENT_GOAL),
    TaskDescriptor("Customer Reviews", "reviews", g2_search_url, goals.REVIEWS_GOAL),
    TaskDescriptor("Tech Stack", "techStack", same_url, goals.TECH_STACK_GOAL),
])
