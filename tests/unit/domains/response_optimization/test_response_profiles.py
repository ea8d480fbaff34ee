"""Tests for ToolResponseProfile and the profile repository."""
import pytest

from supamcp.domains.response_optimization import (
    DEFAULT_PROFILES,
    FormatTier,
    InMemoryProfileRepository,
    ResponseFormat,
    ToolResponseProfile,
)


# ── Helpers ──────────────────────────────────────────────────────────


def _tier(name, tokens):
    return FormatTier(name, tokens, ResponseFormat.DETAILED)


# ── Invariants ───────────────────────────────────────────────────────


class TestProfileInvariants:
    __test__ = True

    def test_requires_a_tier(self):
        with pytest.raises(ValueError, match="at least one tier"):
            ToolResponseProfile("t", (), "x")

    def test_rejects_duplicate_names(self):
        with pytest.raises(ValueError, match="Duplicate"):
            ToolResponseProfile("t", (_tier("a", 1), _tier("a", 2)), "a")

    def test_rejects_decreasing_budgets(self):
        with pytest.raises(ValueError, match="non-decreasing"):
            ToolResponseProfile("t", (_tier("a", 10), _tier("b", 5)), "a")

    def test_rejects_unknown_default(self):
        with pytest.raises(ValueError, match="not offered"):
            ToolResponseProfile("t", (_tier("a", 10),), "b")

    def test_equal_budgets_allowed(self):
        profile = ToolResponseProfile("t", (_tier("a", 10), _tier("b", 10)), "b")
        assert profile.tier_names == ("a", "b")


class TestTierLookup:
    __test__ = True

    def test_default_tier(self):
        assert DEFAULT_PROFILES["list_tables"].tier().name == "summary"

    def test_case_insensitive(self):
        assert DEFAULT_PROFILES["get_logs"].tier(" Errors_Only ").name == "errors_only"

    def test_unknown_tier(self):
        with pytest.raises(ValueError, match="Valid: small, medium, large"):
            DEFAULT_PROFILES["execute_sql"].tier("huge")

    def test_budget_for(self):
        budget = DEFAULT_PROFILES["generate_typescript_types"].budget_for("large")
        assert budget.max_tokens == 18000


class TestDefaultProfiles:
    __test__ = True

    def test_every_tool_has_a_profile(self):
        assert set(DEFAULT_PROFILES) == {
            "list_tables",
            "list_extensions",
            "list_migrations",
            "execute_sql",
            "get_logs",
            "get_advisors",
            "generate_typescript_types",
            "generate_typescript_types_summary",
        }

    @pytest.mark.parametrize("tool_name", sorted(DEFAULT_PROFILES))
    def test_budgets_are_monotonic(self, tool_name):
        budgets = [tier.max_tokens for tier in DEFAULT_PROFILES[tool_name].tiers]
        assert budgets == sorted(budgets)

    def test_table_tiers(self):
        tiers = DEFAULT_PROFILES["list_tables"].tiers
        assert [(t.name, t.max_tokens, t.projection) for t in tiers] == [
            ("names_only", 3000, ResponseFormat.NAMES_ONLY),
            ("summary", 8000, ResponseFormat.SUMMARY),
            ("detailed", 12000, ResponseFormat.DETAILED),
        ]


class TestProfileRepository:
    __test__ = True

    def test_loads_defaults(self):
        repo = InMemoryProfileRepository()
        assert repo.get("get_advisors") is DEFAULT_PROFILES["get_advisors"]

    def test_require_unknown(self):
        with pytest.raises(KeyError):
            InMemoryProfileRepository().require("nope")

    def test_save_and_remove(self):
        repo = InMemoryProfileRepository(profiles=[])
        profile = ToolResponseProfile("custom", (_tier("only", 100),), "only")
        repo.save(profile)
        assert repo.require("custom") is profile
        repo.remove("custom")
        assert repo.get("custom") is None
