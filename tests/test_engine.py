"""Tests for the sweep engine.

Covers category ordering, failure containment, discovery failures,
global-scope handling, cancellation and repeatability of runs.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import CountingBackend, FakeAdapter, StaticScopes
from sweeper.cleanup.engine import SweepEngine
from sweeper.models import (
    CANCELLED_MARKER,
    CATEGORY_ORDER,
    DRY_RUN_MARKER,
    WAIT_ERROR_MARKER,
    WAIT_TIMEOUT_MARKER,
    Category,
    OutcomeAction,
    ProtectionRule,
    RunMode,
    Scope,
    ScopeKind,
)

LIVE = RunMode(dry_run=False)
PREVIEW = RunMode(dry_run=True)


def make_engine(adapters, scopes=None, run_mode=LIVE, **kwargs) -> SweepEngine:
    return SweepEngine(adapters, scopes or StaticScopes(), run_mode=run_mode, **kwargs)


class TestCategoryOrdering:
    """Tests for the barrier between categories."""

    @pytest.mark.parametrize("max_workers", [1, 4])
    def test_every_category_finishes_before_the_next_starts(self, two_regions, max_workers):
        """Test no deletion of category N+1 happens before all of category N."""
        backend = CountingBackend()
        adapters = []
        for category in CATEGORY_ORDER:
            for suffix in ("a", "b"):
                adapters.append(
                    FakeAdapter(
                        kind=f"{category.value}_{suffix}",
                        category=category,
                        resources=[f"{category.value}-{suffix}-1", f"{category.value}-{suffix}-2"],
                        backend=backend,
                    )
                )

        summary = make_engine(adapters, two_regions, max_workers=max_workers).run()

        # 5 categories x 2 kinds x 2 regions x 2 resources
        assert summary.count(OutcomeAction.DELETED) == 40

        sequence_by_category = {category: [] for category in CATEGORY_ORDER}
        for seq, _, params in backend.calls:
            category_value = params["Name"].split("-")[0]
            sequence_by_category[Category(category_value)].append(seq)

        for earlier, later in zip(CATEGORY_ORDER, CATEGORY_ORDER[1:]):
            assert max(sequence_by_category[earlier]) < min(sequence_by_category[later])

    def test_categories_without_adapters_are_skipped(self):
        """Test a sweep with a single category runs only that category."""
        adapter = FakeAdapter("queue", Category.PLATFORM, resources=["q1"])

        summary = make_engine([adapter]).run()

        assert [o.descriptor.identity for o in summary.outcomes] == ["q1"]

    def test_outcomes_report_adapter_category(self):
        """Test outcomes carry the category of the adapter that produced them."""
        adapter = FakeAdapter("snap", Category.ORPHANS, resources=["s1"])

        summary = make_engine([adapter]).run()

        assert summary.outcomes[0].category is Category.ORPHANS


class TestAdapterValidation:
    """Tests for adapter set validation at construction."""

    def test_duplicate_kind_rejected(self):
        """Test two adapters with the same kind are rejected."""
        with pytest.raises(ValueError, match="Duplicate"):
            make_engine([FakeAdapter("x"), FakeAdapter("x")])

    def test_unknown_category_rejected(self):
        """Test an adapter outside the category order is rejected."""
        adapter = FakeAdapter("x")
        adapter.category = "not-a-category"

        with pytest.raises(ValueError, match="unknown category"):
            make_engine([adapter])

    def test_adapter_without_kind_rejected(self):
        """Test an adapter with an empty kind is rejected."""
        with pytest.raises(ValueError, match="no kind"):
            make_engine([FakeAdapter("")])

    def test_kinds_include_list(self):
        """Test only the requested kinds run; unknown kinds are ignored."""
        wanted = FakeAdapter("wanted", resources=["w"])
        other = FakeAdapter("other", resources=["o"])

        engine = make_engine([wanted, other], kinds=["wanted", "nonexistent"])
        summary = engine.run()

        assert [o.descriptor.kind for o in summary.outcomes] == ["wanted"]
        assert other.discover_calls == []

    def test_empty_kinds_means_all(self):
        """Test an empty include-list runs every adapter."""
        engine = make_engine([FakeAdapter("a"), FakeAdapter("b")], kinds=[])

        assert len(engine.adapters) == 2


class TestScopes:
    """Tests for scope handling."""

    def test_global_adapter_runs_once(self):
        """Test a global adapter is discovered once regardless of region count."""
        bucket_adapter = FakeAdapter(
            "bucket", Category.DATA, resources=["b1"], scope_kind=ScopeKind.GLOBAL
        )
        scopes = StaticScopes(["eu-west-1", "us-east-1", "us-west-2"])

        summary = make_engine([bucket_adapter], scopes).run()

        assert bucket_adapter.discover_calls == [Scope.GLOBAL]
        assert summary.count(OutcomeAction.DELETED) == 1

    def test_regional_adapter_runs_in_every_region(self, two_regions):
        """Test a regional adapter is discovered in each region and never globally."""
        adapter = FakeAdapter("fn", resources=["f"])

        make_engine([adapter], two_regions).run()

        assert sorted(s.region for s in adapter.discover_calls) == ["eu-west-1", "us-east-1"]

    def test_scopes_listed_once(self, two_regions):
        """Test the scope list is requested once per run."""
        make_engine([FakeAdapter("a"), FakeAdapter("b", Category.DATA)], two_regions).run()

        assert two_regions.calls == 1


class TestFailureContainment:
    """Tests for partial failure handling."""

    def test_one_rejected_deletion_does_not_stop_siblings(self):
        """Test a provider rejection yields FAILED for that resource only."""
        backend = CountingBackend(fail_for=["r2"])
        adapter = FakeAdapter("thing", resources=["r1", "r2", "r3"], backend=backend)
        later = FakeAdapter("later", Category.PLATFORM, resources=["p1"])

        summary = make_engine([adapter, later]).run()

        actions = {o.descriptor.identity: o.action for o in summary.outcomes}
        assert actions == {
            "r1": OutcomeAction.DELETED,
            "r2": OutcomeAction.FAILED,
            "r3": OutcomeAction.DELETED,
            "p1": OutcomeAction.DELETED,
        }
        failed = summary.failed[0]
        assert "deletion failed" in failed.detail
        assert "in use" in failed.detail

    def test_discovery_failure_is_reported_and_contained(self, two_regions):
        """Test a failed listing in one region is reported, other regions continue."""
        adapter = FakeAdapter("thing", resources=["r1"], discover_fails_in=["eu-west-1"])

        summary = make_engine([adapter], two_regions).run()

        assert len(summary.discovery_failures) == 1
        failure = summary.discovery_failures[0]
        assert failure.kind == "thing"
        assert failure.scope == Scope.regional("eu-west-1")
        assert "no access" in failure.error
        assert [o.descriptor.scope.region for o in summary.outcomes] == ["us-east-1"]

    def test_unexpected_discovery_exception_recorded(self):
        """Test an adapter bug during listing is reported and other work items still run."""

        class BrokenAdapter(FakeAdapter):
            def discover(self, scope):
                raise RuntimeError("bug")

        summary = make_engine([BrokenAdapter("broken"), FakeAdapter("ok", resources=["x"])]).run()

        assert [o.descriptor.kind for o in summary.outcomes] == ["ok"]
        assert len(summary.discovery_failures) == 1
        failure = summary.discovery_failures[0]
        assert failure.kind == "broken"
        assert "unexpected error: RuntimeError: bug" in failure.error

    def test_unexpected_resource_exception_does_not_drop_siblings(self):
        """Test a bug for one resource fails only that resource."""

        class FlakyTags(FakeAdapter):
            def lookup_tags(self, descriptor):
                if descriptor.identity == "r1":
                    raise KeyError("pipelineArn")
                return super().lookup_tags(descriptor)

        backend = CountingBackend()
        adapter = FlakyTags("pipeline", resources=["r1", "r2", "r3"], backend=backend)

        summary = make_engine([adapter], protection_rule=ProtectionRule("keep", "yes")).run()

        actions = {o.descriptor.identity: o.action for o in summary.outcomes}
        assert actions == {
            "r1": OutcomeAction.FAILED,
            "r2": OutcomeAction.DELETED,
            "r3": OutcomeAction.DELETED,
        }
        failed = summary.failed[0]
        assert "unexpected error: KeyError" in failed.detail
        assert sorted(params["Name"] for _, _, params in backend.calls) == ["r2", "r3"]


class TestWaits:
    """Tests for post-deletion waiting."""

    def test_wait_timeout_keeps_deleted_with_marker(self):
        """Test a wait timeout does not turn a deletion into a failure."""
        adapter = FakeAdapter("cluster", resources=["c1"], supports_wait=True, wait_result="timeout")

        summary = make_engine([adapter], wait_timeout_seconds=30).run()

        outcome = summary.outcomes[0]
        assert outcome.action is OutcomeAction.DELETED
        assert WAIT_TIMEOUT_MARKER in outcome.detail

    def test_wait_error_keeps_deleted_with_marker(self):
        """Test a polling failure is noted but the deletion stands."""
        adapter = FakeAdapter("cluster", resources=["c1"], supports_wait=True, wait_result="error")

        summary = make_engine([adapter]).run()

        assert summary.outcomes[0].action is OutcomeAction.DELETED
        assert WAIT_ERROR_MARKER in summary.outcomes[0].detail

    def test_no_wait_in_preview(self):
        """Test preview mode never waits."""
        adapter = FakeAdapter("cluster", resources=["c1"], supports_wait=True, wait_result="timeout")

        summary = make_engine([adapter], run_mode=PREVIEW).run()

        assert WAIT_TIMEOUT_MARKER not in summary.outcomes[0].detail
        assert DRY_RUN_MARKER in summary.outcomes[0].detail


class TestCancellation:
    """Tests for cancelling a run."""

    def test_cancel_stops_new_deletions(self):
        """Test resources after the cancel point are skipped, later categories never run."""

        class CancellingAdapter(FakeAdapter):
            engine = None

            def delete(self, descriptor, mode):
                super().delete(descriptor, mode)
                self.engine.cancel()

        backend = CountingBackend()
        adapter = CancellingAdapter("thing", resources=["r1", "r2", "r3"], backend=backend)
        later = FakeAdapter("later", Category.PLATFORM, resources=["p1"])
        engine = make_engine([adapter, later])
        adapter.engine = engine

        summary = engine.run()

        assert [c[2]["Name"] for c in backend.calls] == ["r1"]
        skipped = [o for o in summary.outcomes if o.action is OutcomeAction.SKIPPED]
        assert [o.descriptor.identity for o in skipped] == ["r2", "r3"]
        assert all(o.detail.startswith(CANCELLED_MARKER) for o in skipped)
        assert later.discover_calls == []
        assert summary.cancelled is True

    def test_cancel_before_run_deletes_nothing(self):
        """Test a run cancelled up front touches nothing."""
        adapter = FakeAdapter("thing", resources=["r1"])
        engine = make_engine([adapter])
        engine.cancel()

        summary = engine.run()

        assert summary.outcomes == []
        assert adapter.backend.calls == []


class TestRepeatability:
    """Tests for running the same sweep twice."""

    def test_preview_runs_are_identical(self, two_regions):
        """Test two preview runs over unchanged state produce the same outcomes."""
        adapters = [
            FakeAdapter("a", resources=["a1", "a2"], tags={"a1": {"keep": "yes"}}),
            FakeAdapter("b", Category.DATA, resources=["b1"], scope_kind=ScopeKind.GLOBAL),
        ]
        rule = ProtectionRule("keep", "yes")

        first = make_engine(adapters, two_regions, run_mode=PREVIEW, protection_rule=rule).run()
        second = make_engine(adapters, two_regions, run_mode=PREVIEW, protection_rule=rule).run()

        def key(summary):
            return sorted(
                (str(o.descriptor), o.action.value, o.detail) for o in summary.outcomes
            )

        assert key(first) == key(second)

    def test_rerun_after_deletion_finds_nothing(self):
        """Test a second live run over emptied state deletes nothing."""
        adapter = FakeAdapter("thing", resources=["r1", "r2"])

        first = make_engine([adapter]).run()
        adapter.resources = []
        second = make_engine([adapter]).run()

        assert first.count(OutcomeAction.DELETED) == 2
        assert second.outcomes == []


adapter_specs_strategy = st.lists(
    st.tuples(st.sampled_from(CATEGORY_ORDER), st.integers(min_value=0, max_value=3)),
    min_size=1,
    max_size=8,
)


@settings(max_examples=50, deadline=10000)
@given(specs=adapter_specs_strategy, max_workers=st.integers(min_value=1, max_value=4))
def test_deletion_order_follows_categories_for_any_registration_order(specs, max_workers):
    """
    For any set of adapters, registered in any order, every deletion of a
    category happens after every deletion of the categories before it.
    """
    backend = CountingBackend()
    adapters = [
        FakeAdapter(
            kind=f"kind{i}",
            category=category,
            resources=[f"{category.value}-{i}-{n}" for n in range(count)],
            backend=backend,
        )
        for i, (category, count) in enumerate(specs)
    ]

    summary = make_engine(adapters, StaticScopes(["us-east-1", "us-west-2"]), max_workers=max_workers).run()

    assert summary.count(OutcomeAction.DELETED) == 2 * sum(count for _, count in specs)
    ranks = [CATEGORY_ORDER.index(Category(params["Name"].split("-")[0])) for _, _, params in sorted(backend.calls)]
    assert ranks == sorted(ranks)
