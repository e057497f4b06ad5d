"""Tests for ScopeFilter allow-lists and between-range rules."""

from logs_gateway.models.scoping import BetweenRule, ScopingConfig
from logs_gateway.scoping import BetweenRangeState, ScopeFilter


def _rule(action="include", start=(), end=(), exact=False, search_log=False):
    return BetweenRule(
        action=action,
        exact_match=exact,
        search_log=search_log,
        start_identities=list(start),
        end_identities=list(end),
    )


def _filter(**kwargs) -> ScopeFilter:
    return ScopeFilter(ScopingConfig(status="enabled", **kwargs))


class TestScopeFilterDisabled:
    """Scoping off or empty always includes."""

    def test_none_config_includes_everything(self):
        scope = ScopeFilter(None)
        assert scope.include("msg", "anything") is True

    def test_disabled_status_includes_everything(self):
        scope = ScopeFilter(
            ScopingConfig(status="disabled", filter_identities=["only-this"])
        )
        assert scope.include("msg", "other", app_name="app") is True

    def test_enabled_without_filters_includes_everything(self):
        scope = _filter()
        assert scope.include("msg", "x") is True
        assert scope.include("msg", None) is True


class TestAllowLists:
    """filter_identities / filtered_applications use OR logic."""

    def test_identity_in_allow_list_included(self):
        scope = _filter(filter_identities=["auth.login"])
        assert scope.include("hello", "auth.login") is True
        assert scope.include("hello", "billing.charge") is False

    def test_application_in_allow_list_included(self):
        scope = _filter(filtered_applications=["web"])
        assert scope.include("hello", "whatever", app_name="web") is True
        assert scope.include("hello", "whatever", app_name="worker") is False

    def test_camel_case_aliases_accepted(self):
        config = ScopingConfig.model_validate(
            {"status": "enabled", "filterIdentities": ["a"], "filteredApplications": ["b"]}
        )
        assert config.filter_identities == ["a"]
        assert config.filtered_applications == ["b"]


class TestBetweenRules:
    """Stateful ranges opened and closed by matching calls."""

    def test_empty_start_active_from_first_call(self):
        scope = _filter(between=[_rule(start=(), end=("stop",))])
        assert scope.include("m", "first") is True
        assert scope.include("m", "second") is True

    def test_empty_end_never_deactivates(self):
        scope = _filter(between=[_rule(start=("begin",), end=())])
        assert scope.include("m", "before") is False
        assert scope.include("m", "begin") is True
        for identity in ("a", "b", "stop", "end"):
            assert scope.include("m", identity) is True

    def test_range_opens_and_closes(self):
        scope = _filter(between=[_rule(start=("start",), end=("finish",))])
        assert scope.include("m", "idle") is False
        assert scope.include("m", "job.start") is True
        assert scope.include("m", "job.step") is True
        # The closing call itself deactivates before the decision.
        assert scope.include("m", "job.finish") is False
        assert scope.include("m", "job.step") is False

    def test_start_and_end_in_same_call_toggles(self):
        scope = _filter(between=[_rule(start=("ping",), end=("ping",))])
        assert scope.include("m", "ping") is True
        assert scope.include("m", "other") is True
        assert scope.include("m", "ping") is False

    def test_exact_match_is_case_sensitive_equality(self):
        scope = _filter(between=[_rule(start=("Auth",), end=(), exact=True)])
        assert scope.include("m", "auth") is False
        assert scope.include("m", "Auth.login") is False
        assert scope.include("m", "Auth") is True

    def test_default_match_is_case_insensitive_substring(self):
        scope = _filter(between=[_rule(start=("AUTH",), end=())])
        assert scope.include("m", "service.auth.login") is True

    def test_search_log_matches_message_and_metadata(self):
        scope = _filter(between=[_rule(start=("order-42",), end=(), search_log=True)])
        assert scope.include("processing", "svc", metadata={"order": "x"}) is False
        assert scope.include("processing", "svc", metadata={"order": "order-42"}) is True

    def test_search_log_matches_message_text(self):
        scope = _filter(between=[_rule(start=("Payment started",), end=(), search_log=True)])
        assert scope.include("payment STARTED now", "svc") is True

    def test_exclude_range_drops_allow_listed_identity(self):
        scope = _filter(
            filter_identities=["svc"],
            between=[_rule(action="exclude", start=("noisy",), end=("quiet",))],
        )
        assert scope.include("m", "svc") is True
        assert scope.include("m", "noisy") is False
        assert scope.include("m", "svc") is False
        assert scope.include("m", "quiet") is False
        assert scope.include("m", "svc") is True

    def test_include_takes_precedence_over_exclude(self):
        scope = _filter(
            between=[
                _rule(action="exclude", start=(), end=()),
                _rule(action="include", start=("vip",), end=()),
            ]
        )
        assert scope.include("m", "regular") is False
        assert scope.include("m", "vip") is True
        assert scope.include("m", "regular") is True

    def test_rules_tracked_independently(self):
        scope = _filter(
            between=[
                _rule(start=("a-start",), end=("a-end",)),
                _rule(start=("b-start",), end=("b-end",)),
            ]
        )
        scope.include("m", "a-start")
        scope.include("m", "b-start")
        scope.include("m", "a-end")
        assert scope.state.active_indices() == frozenset({1})

    def test_reset_clears_state(self):
        scope = _filter(between=[_rule(start=("go",), end=())])
        scope.include("m", "go")
        assert scope.include("m", "later") is True
        scope.reset()
        assert scope.include("m", "later") is False

    def test_separate_filters_do_not_share_state(self):
        config = ScopingConfig(status="enabled", between=[_rule(start=("go",), end=())])
        first, second = ScopeFilter(config), ScopeFilter(config)
        first.include("m", "go")
        assert second.include("m", "later") is False


class TestBetweenRangeState:
    def test_toggle_flips(self):
        state = BetweenRangeState()
        state.toggle(2)
        assert state.is_active(2)
        state.toggle(2)
        assert not state.is_active(2)

    def test_activate_deactivate_reset(self):
        state = BetweenRangeState()
        state.activate(0)
        state.activate(1)
        state.deactivate(0)
        assert state.active_indices() == frozenset({1})
        state.reset()
        assert state.active_indices() == frozenset()
