"""Tests for the tag-based protection filter."""

from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import CountingBackend, FakeAdapter, StaticScopes
from sweeper.cleanup.engine import SweepEngine
from sweeper.filters.protection import ProtectionFilter, Verdict
from sweeper.models import (
    DEGRADED_MARKER,
    DRY_RUN_MARKER,
    PROTECTED_MARKER,
    Category,
    OutcomeAction,
    ProtectionRule,
    ResourceDescriptor,
    RunMode,
    Scope,
    ScopeKind,
)

tag_text = st.text(min_size=0, max_size=10)


def descriptor(identity: str = "r1") -> ResourceDescriptor:
    return ResourceDescriptor("thing", Scope.regional("us-east-1"), identity, identity)


class TestExactMatch:
    """Tests for exact key/value matching."""

    @settings(max_examples=200)
    @given(
        rule_key=st.text(min_size=1, max_size=10),
        rule_value=tag_text,
        tags=st.dictionaries(st.text(min_size=1, max_size=10), tag_text, max_size=5),
    )
    def test_skip_iff_exact_match(self, rule_key, rule_value, tags):
        """Test SKIP happens exactly when tags contain key with the same value."""
        adapter = FakeAdapter("thing", tags={"r1": tags})
        protection = ProtectionFilter(ProtectionRule(rule_key, rule_value))

        decision = protection.decide(adapter, descriptor())

        expected_skip = tags.get(rule_key) == rule_value and rule_key in tags
        assert (decision.verdict is Verdict.SKIP) == expected_skip
        assert not decision.degraded

    def test_value_match_is_case_sensitive(self):
        """Test values differing only in case do not protect."""
        adapter = FakeAdapter("thing", tags={"r1": {"env": "Prod"}})

        decision = ProtectionFilter(ProtectionRule("env", "prod")).decide(adapter, descriptor())

        assert decision.proceed

    def test_key_match_is_case_sensitive(self):
        """Test keys differing only in case do not protect."""
        adapter = FakeAdapter("thing", tags={"r1": {"Env": "prod"}})

        decision = ProtectionFilter(ProtectionRule("env", "prod")).decide(adapter, descriptor())

        assert decision.proceed

    def test_no_wildcards(self):
        """Test '*' in the rule is literal."""
        adapter = FakeAdapter("thing", tags={"r1": {"env": "prod"}}, tag_errors=["r1"])

        decision = ProtectionFilter(ProtectionRule("env", "*")).decide(adapter, descriptor())

        assert decision.proceed

    def test_protected_reason(self):
        """Test the skip reason names the matched rule."""
        adapter = FakeAdapter("thing", tags={"r1": {"env": "prod"}}, tag_errors=["r1"])

        decision = ProtectionFilter(ProtectionRule("env", "prod")).decide(adapter, descriptor())

        assert decision.verdict is Verdict.SKIP
        assert decision.reason == f"{PROTECTED_MARKER}: tagged env=prod"


class TestNoRule:
    """Tests for runs without a protection rule."""

    def test_tags_never_fetched(self):
        """Test no tag lookup happens when no rule is configured."""
        adapter = FakeAdapter("thing", tags={"r1": {"env": "prod"}}, tag_errors=["r1"])

        decision = ProtectionFilter(None).decide(adapter, descriptor())

        assert decision.proceed
        assert not decision.degraded
        assert decision.reason == ""
        assert adapter.tag_lookups == []


class TestDegradedChecks:
    """Tests for failed or unsupported tag lookups."""

    def test_lookup_failure_fails_open_by_default(self):
        """Test a failed tag lookup proceeds with a degraded note."""
        adapter = FakeAdapter("thing", tag_errors=["r1"])

        decision = ProtectionFilter(ProtectionRule("env", "prod")).decide(adapter, descriptor())

        assert decision.proceed
        assert decision.degraded
        assert decision.reason.startswith(DEGRADED_MARKER)
        assert "tags hidden" in decision.reason

    def test_lookup_failure_fails_closed_when_configured(self):
        """Test fail-closed mode skips a resource whose tags cannot be read."""
        adapter = FakeAdapter("thing", tag_errors=["r1"])

        decision = ProtectionFilter(ProtectionRule("env", "prod"), fail_closed=True).decide(
            adapter, descriptor()
        )

        assert decision.verdict is Verdict.SKIP
        assert decision.degraded
        assert "fail-closed" in decision.reason

    def test_unsupported_lookup_is_degraded(self):
        """Test a kind without tag lookup is treated as a degraded check."""
        adapter = FakeAdapter("thing", supports_tag_lookup=False, tags={"r1": {"env": "prod"}})

        decision = ProtectionFilter(ProtectionRule("env", "prod")).decide(adapter, descriptor())

        assert decision.proceed
        assert decision.degraded
        assert adapter.tag_lookups == []

    def test_degraded_note_reaches_outcome(self):
        """Test the degraded note is carried into the deleted Outcome."""
        adapter = FakeAdapter("thing", resources=["r1"], tag_errors=["r1"])

        summary = SweepEngine(
            [adapter],
            StaticScopes(),
            run_mode=RunMode(dry_run=False),
            protection_rule=ProtectionRule("env", "prod"),
        ).run()

        outcome = summary.outcomes[0]
        assert outcome.action is OutcomeAction.DELETED
        assert DEGRADED_MARKER in outcome.detail


class TestThreeBucketScenario:
    """One protected and two unprotected buckets, previewed then executed."""

    def make_adapter(self, backend):
        return FakeAdapter(
            "s3_bucket",
            Category.DATA,
            resources=["keep-me", "temp-1", "temp-2"],
            tags={"keep-me": {"env": "prod"}, "temp-1": {"env": "dev"}},
            scope_kind=ScopeKind.GLOBAL,
            backend=backend,
        )

    def run(self, backend, dry_run):
        return SweepEngine(
            [self.make_adapter(backend)],
            StaticScopes(["us-east-1", "us-west-2"]),
            run_mode=RunMode(dry_run=dry_run),
            protection_rule=ProtectionRule("env", "prod"),
        ).run()

    def test_preview(self):
        """Test preview skips the protected bucket and plans the other two."""
        backend = CountingBackend()

        summary = self.run(backend, dry_run=True)

        actions = {o.descriptor.identity: o for o in summary.outcomes}
        assert actions["keep-me"].action is OutcomeAction.SKIPPED
        assert actions["keep-me"].detail.startswith(PROTECTED_MARKER)
        for name in ("temp-1", "temp-2"):
            assert actions[name].action is OutcomeAction.DELETED
            assert actions[name].detail.startswith(DRY_RUN_MARKER)
            assert f"Name='{name}'" in actions[name].detail
        assert backend.calls == []

    def test_execute(self):
        """Test execute deletes exactly the two unprotected buckets."""
        backend = CountingBackend()

        summary = self.run(backend, dry_run=False)

        assert sorted(params["Name"] for _, _, params in backend.calls) == ["temp-1", "temp-2"]
        assert summary.count(OutcomeAction.DELETED) == 2
        assert summary.count(OutcomeAction.SKIPPED) == 1
