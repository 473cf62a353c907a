"""Tests for planning/scheduler.py module."""

import pytest

from imagechain.descriptors.image import BaseImage
from imagechain.planning.dependencies import CyclicDependencyError, ancestors_of
from imagechain.planning.scheduler import order, order_batch


def _assert_ancestors_first(batch, plan):
    positions = {key: i for i, key in enumerate(plan)}
    for key in plan:
        for ancestor in ancestors_of(batch, key):
            assert positions[ancestor] < positions[key], (ancestor, key)


class TestOrder:
    """Tests for order function."""

    def test_two_images(self):
        """Parent should come before child."""
        batch = {
            "example/image2": BaseImage("example/image1"),
            "example/image1": BaseImage("ubuntu:20.04"),
        }

        assert order(batch) == ["example/image1", "example/image2"]

    def test_canonical_tree(self):
        """External images first in discovery order, then internal ones."""
        batch = {
            "example/image4": BaseImage("example/image2"),
            "example/image2": BaseImage("example/image1"),
            "example/image1": BaseImage("ubuntu:20.04"),
            "example/image3": BaseImage("example/image2"),
            "example/image5": BaseImage("debian"),
        }

        assert order(batch) == [
            "example/image1",
            "example/image5",
            "example/image2",
            "example/image3",
            "example/image4",
        ]

    def test_long_chain_declared_backwards(self):
        """A chain listed child-first should still be built root-first."""
        batch = {
            "e": BaseImage("d"),
            "d": BaseImage("c"),
            "c": BaseImage("b:1"),
            "b": BaseImage("a"),
            "a": BaseImage("alpine:3"),
        }

        assert order(batch) == ["a", "b", "c", "d", "e"]

    def test_wide_tree_invariant(self):
        """Every ancestor must precede its descendants for all pairs."""
        batch = {
            "z/leaf1": BaseImage("m/mid1"),
            "m/mid2": BaseImage("r/root"),
            "z/leaf2": BaseImage("m/mid2"),
            "m/mid1": BaseImage("r/root"),
            "z/leaf3": BaseImage("m/mid1:2"),
            "r/root": BaseImage("debian:12"),
            "q/other": BaseImage("alpine"),
            "z/deep": BaseImage("z/leaf1"),
        }

        plan = order(batch)

        assert sorted(plan) == sorted(batch)
        _assert_ancestors_first(batch, plan)

    def test_ties_broken_by_key(self):
        """Independent internal images should be ordered by ascending key."""
        batch = {
            "c": BaseImage("base"),
            "a": BaseImage("base"),
            "b": BaseImage("base"),
            "base": BaseImage("scratch"),
        }

        assert order(batch) == ["base", "a", "b", "c"]

    def test_deterministic(self):
        """Same input should give the same plan."""
        batch = {
            "b": BaseImage("root"),
            "a": BaseImage("root"),
            "root": BaseImage("ubuntu"),
        }

        assert order(batch) == order(batch)

    def test_cycle_raises(self):
        """Internal images depending on each other cannot be ordered."""
        batch = {
            "a": BaseImage("b"),
            "b": BaseImage("a"),
            "c": BaseImage("ubuntu"),
        }

        with pytest.raises(CyclicDependencyError) as exc_info:
            order(batch)

        assert exc_info.value.cycle == ["a", "b"]

    def test_empty_batch(self):
        """Empty batch gives empty plan."""
        assert order({}) == []


class TestOrderBatch:
    """Tests for order_batch function."""

    def test_returns_descriptors_in_plan_order(self):
        """Mapping should be re-keyed in build order with the same objects."""
        child = BaseImage("example/base")
        base = BaseImage("ubuntu")
        batch = {"example/child": child, "example/base": base}

        ordered = order_batch(batch)

        assert list(ordered) == ["example/base", "example/child"]
        assert ordered["example/child"] is child
