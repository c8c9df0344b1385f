"""Tests for the approval engine."""

import json
import os

import pytest

from gatekeeper.approvals import ApprovalEngine, CommandRule, ConfigStore, PathRule, RuleMatch, Scope
from gatekeeper.config import project_config_path

SESSION = "session-1"
DAY = 24 * 60 * 60


def cmd(pattern: str, mode: str = "exact") -> CommandRule:
    return CommandRule(pattern=pattern, mode=mode)


def path(pattern: str, mode: str = "prefix") -> PathRule:
    return PathRule(pattern=pattern, mode=mode)


@pytest.fixture
def no_project_engine(global_path, clock):
    store = ConfigStore([], global_path=global_path)
    engine = ApprovalEngine(store, clock=clock)
    yield engine
    engine.close()
    store.close()


class TestCommandApproval:
    """Tests for command rule lookups."""

    def test_nothing_approved_by_default(self, engine):
        """Test nothing approved by default."""
        assert not engine.is_command_approved(SESSION, "ls")
        assert engine.find_matching_command_rule(SESSION, "ls") is None

    def test_each_scope_grants(self, engine):
        """Test each scope grants."""
        engine.add_command_rule(SESSION, cmd("a"), Scope.SESSION)
        engine.add_command_rule(SESSION, cmd("b"), Scope.PROJECT)
        engine.add_command_rule(SESSION, cmd("c"), Scope.GLOBAL)

        assert engine.find_matching_command_rule(SESSION, "a").scope == Scope.SESSION
        assert engine.find_matching_command_rule(SESSION, "b").scope == Scope.PROJECT
        assert engine.find_matching_command_rule(SESSION, "c").scope == Scope.GLOBAL

    def test_session_scope_reported_first(self, engine):
        """Test session scope reported first."""
        engine.add_command_rule(SESSION, cmd("npm ", "prefix"), Scope.GLOBAL)
        engine.add_command_rule(SESSION, cmd("npm test"), Scope.SESSION)

        match = engine.find_matching_command_rule(SESSION, "npm test")
        assert match == RuleMatch(rule=cmd("npm test"), scope=Scope.SESSION)

    def test_project_before_global(self, engine):
        """Test project before global."""
        engine.add_command_rule(SESSION, cmd("make", "prefix"), Scope.GLOBAL)
        engine.add_command_rule(SESSION, cmd("^make", "regex"), Scope.PROJECT)

        assert engine.find_matching_command_rule(SESSION, "make all").scope == Scope.PROJECT

    def test_command_is_trimmed(self, engine):
        """Test command is trimmed."""
        engine.add_command_rule(SESSION, cmd("git status"), Scope.GLOBAL)
        assert engine.is_command_approved(SESSION, "  git status\n")

    def test_session_rules_are_per_session(self, engine):
        """Test session rules are per session."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        assert engine.is_command_approved(SESSION, "ls")
        assert not engine.is_command_approved("session-2", "ls")

    def test_add_is_idempotent(self, engine, global_path):
        """Test add is idempotent."""
        for _ in range(3):
            engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
            engine.add_command_rule(SESSION, cmd("ls"), Scope.GLOBAL)

        rules = engine.get_command_rules(SESSION)
        assert rules.session == [cmd("ls")]
        assert rules.global_ == [cmd("ls")]
        assert json.loads(global_path.read_text())["commandRules"] == [{"pattern": "ls", "mode": "exact"}]

    def test_same_pattern_different_mode_are_distinct(self, engine):
        """Test same pattern different mode are distinct."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.add_command_rule(SESSION, cmd("ls", "prefix"), Scope.SESSION)
        assert len(engine.get_command_rules(SESSION).session) == 2

    def test_remove_drops_every_rule_with_pattern(self, engine):
        """Test remove drops every rule with pattern."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.PROJECT)
        engine.add_command_rule(SESSION, cmd("ls", "prefix"), Scope.PROJECT)
        engine.add_command_rule(SESSION, cmd("pwd"), Scope.PROJECT)

        assert engine.remove_command_rule("ls", Scope.PROJECT)
        assert engine.get_command_rules(SESSION).project == [cmd("pwd")]

    def test_remove_from_unknown_session(self, engine):
        """Test remove from unknown session."""
        assert engine.remove_command_rule("ls", Scope.SESSION, "missing") is False

    def test_edit_replaces_first_match(self, engine):
        """Test edit replaces first match."""
        engine.add_command_rule(SESSION, cmd("npm test"), Scope.GLOBAL)
        engine.add_command_rule(SESSION, cmd("pwd"), Scope.GLOBAL)

        assert engine.edit_command_rule("npm test", cmd("npm ", "prefix"), Scope.GLOBAL)
        assert engine.get_command_rules(SESSION).global_ == [cmd("npm ", "prefix"), cmd("pwd")]

    def test_edit_session_rule(self, engine):
        """Test edit session rule."""
        engine.add_command_rule(SESSION, cmd("a"), Scope.SESSION)
        assert engine.edit_command_rule("a", cmd("b"), Scope.SESSION, SESSION)
        assert engine.get_command_rules(SESSION).session == [cmd("b")]

    def test_clear_session_command_rules(self, engine):
        """Test clear session command rules."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.add_path_rule(SESSION, path("/tmp/"), Scope.SESSION)

        engine.clear_session_command_rules(SESSION)

        assert engine.get_command_rules(SESSION).session == []
        assert engine.get_path_rules(SESSION).session == [path("/tmp/")]

    def test_listing_uses_global_key(self, engine):
        """Test listing uses global key."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.GLOBAL)
        dumped = engine.get_command_rules(SESSION).model_dump(mode="json", by_alias=True)
        assert dumped == {"session": [], "project": [], "global": [{"pattern": "ls", "mode": "exact"}]}

    def test_listing_is_a_copy(self, engine):
        """Test listing is a copy."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.get_command_rules(SESSION).session.clear()
        assert engine.is_command_approved(SESSION, "ls")


class TestPathTrust:
    """Tests for outside-project path trust."""

    def test_prefix_rule(self, engine):
        """Test prefix rule."""
        engine.add_path_rule(SESSION, path("/opt/data/"), Scope.GLOBAL)
        assert engine.is_path_trusted(SESSION, "/opt/data/x.csv")
        assert not engine.is_path_trusted(SESSION, "/opt/other/x.csv")

    def test_glob_rule_in_project(self, engine, project_root):
        """Test glob rule in project."""
        engine.add_path_rule(SESSION, path("/var/log/*.log", "glob"), Scope.PROJECT)
        assert engine.is_path_trusted(SESSION, "/var/log/nginx/access.log")
        data = json.loads(project_config_path(project_root).read_text())
        assert data["pathRules"] == [{"pattern": "/var/log/*.log", "mode": "glob"}]

    def test_remove_and_edit(self, engine):
        """Test remove and edit."""
        engine.add_path_rule(SESSION, path("/a/"), Scope.SESSION)
        assert engine.edit_path_rule("/a/", path("/b/"), Scope.SESSION, SESSION)
        assert engine.is_path_trusted(SESSION, "/b/file")
        assert engine.remove_path_rule("/b/", Scope.SESSION, SESSION)
        assert not engine.is_path_trusted(SESSION, "/b/file")


class TestWriteApproval:
    """Tests for blanket and file-level write approval."""

    def test_prompt_by_default(self, engine, project_root):
        """Test prompt by default."""
        assert engine.get_write_approval_state(SESSION) == "prompt"
        assert not engine.is_write_approved(SESSION)
        assert not engine.is_write_approved(SESSION, os.path.join(project_root, "a.py"))

    @pytest.mark.parametrize("scope", [Scope.SESSION, Scope.PROJECT, Scope.GLOBAL])
    def test_blanket_approval(self, engine, scope):
        """Test blanket approval."""
        assert engine.set_write_approval(SESSION, scope)
        assert engine.get_write_approval_state(SESSION) == scope.value
        assert engine.is_write_approved(SESSION)
        assert engine.is_write_approved(SESSION, "/anywhere/file.txt")

    def test_global_reported_before_session(self, engine):
        """Test global reported before session."""
        engine.set_write_approval(SESSION, Scope.SESSION)
        engine.set_write_approval(SESSION, Scope.GLOBAL)
        assert engine.get_write_approval_state(SESSION) == "global"

    def test_reset_clears_every_scope(self, engine):
        """Test reset clears every scope."""
        engine.set_write_approval(SESSION, Scope.SESSION)
        engine.set_write_approval("session-2", Scope.SESSION)
        engine.set_write_approval(SESSION, Scope.PROJECT)
        engine.set_write_approval(SESSION, Scope.GLOBAL)

        assert engine.reset_write_approval()

        assert engine.get_write_approval_state(SESSION) == "prompt"
        assert engine.get_write_approval_state("session-2") == "prompt"

    def test_exact_rule_on_relative_path(self, engine, project_root):
        """Test exact rule on relative path."""
        engine.add_write_rule(SESSION, path("src/main.py", "exact"), Scope.PROJECT)
        assert engine.is_write_approved(SESSION, os.path.join(project_root, "src", "main.py"))
        assert not engine.is_write_approved(SESSION, os.path.join(project_root, "src", "other.py"))

    def test_rule_on_absolute_path(self, engine):
        """Test rule on absolute path."""
        engine.add_write_rule(SESSION, path("/tmp/scratch/"), Scope.SESSION)
        assert engine.is_write_approved(SESSION, "/tmp/scratch/out.txt")

    def test_settings_glob_crosses_directories(self, store, clock, project_root):
        """Test settings glob crosses directories."""
        engine = ApprovalEngine(store, settings_source=lambda: ["*.md"], clock=clock)
        try:
            assert engine.is_write_approved(SESSION, os.path.join(project_root, "docs", "readme.md"))
            assert not engine.is_write_approved(SESSION, os.path.join(project_root, "docs", "readme.txt"))
            assert engine.get_write_rules(SESSION).settings == ["*.md"]
        finally:
            engine.close()

    def test_failing_settings_source_is_ignored(self, store, clock, project_root):
        """Test failing settings source is ignored."""
        def broken():
            raise RuntimeError("settings unavailable")

        engine = ApprovalEngine(store, settings_source=broken, clock=clock)
        try:
            assert not engine.is_write_approved(SESSION, os.path.join(project_root, "a.md"))
        finally:
            engine.close()

    def test_write_rule_management(self, engine):
        """Test write rule management."""
        engine.add_write_rule(SESSION, path("docs/", "prefix"), Scope.GLOBAL)
        assert engine.edit_write_rule("docs/", path("docs/**", "glob"), Scope.GLOBAL)
        assert engine.get_write_rules(SESSION).global_ == [path("docs/**", "glob")]
        assert engine.remove_write_rule("docs/**", Scope.GLOBAL)
        assert engine.get_write_rules(SESSION).global_ == []

    def test_relative_path(self, engine, project_root):
        """Test relative path."""
        assert engine.relative_path(os.path.join(project_root, "a", "b.py")) == os.path.join("a", "b.py")
        assert engine.relative_path("/elsewhere/b.py") == "/elsewhere/b.py"
        assert engine.relative_path(project_root + "-sibling/x") == project_root + "-sibling/x"


class TestNoProjectOpen:
    """Tests for behavior with zero open projects."""

    def test_lookups_still_work(self, no_project_engine):
        """Test lookups still work."""
        engine = no_project_engine
        engine.add_command_rule(SESSION, cmd("ls"), Scope.GLOBAL)
        assert engine.is_command_approved(SESSION, "ls")
        assert engine.get_write_approval_state(SESSION) == "prompt"
        assert engine.get_command_rules(SESSION).project == []

    def test_project_mutations_fail(self, no_project_engine):
        """Test project mutations fail."""
        engine = no_project_engine
        assert engine.add_command_rule(SESSION, cmd("ls"), Scope.PROJECT) is False
        assert engine.set_write_approval(SESSION, Scope.PROJECT) is False
        assert not engine.is_command_approved(SESSION, "ls")


class TestSessions:
    """Tests for session lifecycle."""

    def test_lookups_do_not_create_sessions(self, engine):
        """Test lookups do not create sessions."""
        engine.is_command_approved("ghost", "ls")
        engine.is_write_approved("ghost", "/x")
        assert engine.get_active_sessions() == []

    def test_prune_after_ttl(self, engine, clock):
        """Test prune after TTL."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)

        clock.advance(DAY - 60)
        assert engine.prune_expired_sessions() == 0
        assert engine.is_command_approved(SESSION, "ls")

        clock.advance(61)
        assert engine.prune_expired_sessions() == 1
        assert not engine.is_command_approved(SESSION, "ls")

    def test_activity_extends_lifetime(self, engine, clock):
        """Test activity extends lifetime."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        clock.advance(DAY / 2)
        engine.touch_session(SESSION)
        clock.advance(DAY / 2 + 1)
        assert engine.prune_expired_sessions() == 0

    def test_persisted_rules_survive_prune(self, engine, clock):
        """Test persisted rules survive prune."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.add_command_rule(SESSION, cmd("pwd"), Scope.GLOBAL)
        clock.advance(DAY + 1)
        engine.prune_expired_sessions()
        assert engine.is_command_approved(SESSION, "pwd")

    def test_clear_session(self, engine):
        """Test clear session."""
        engine.set_write_approval(SESSION, Scope.SESSION)
        engine.clear_session(SESSION)
        assert engine.get_write_approval_state(SESSION) == "prompt"

    def test_active_sessions_summary(self, engine, clock):
        """Test active sessions summary."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.add_write_rule(SESSION, path("a.py", "exact"), Scope.SESSION)

        [summary] = engine.get_active_sessions()
        assert summary.id == SESSION
        assert summary.command_rule_count == 1
        assert summary.write_rule_count == 1
        assert summary.path_rule_count == 0
        assert summary.last_activity == clock.now

    @pytest.mark.asyncio
    async def test_start_prunes_immediately(self, engine, clock):
        """Test start prunes immediately."""
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        clock.advance(DAY + 1)

        engine.start()

        assert engine.get_active_sessions() == []
        engine.close()

    @pytest.mark.asyncio
    async def test_close_discards_sessions(self, engine):
        """Test close discards sessions."""
        engine.start()
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.close()
        assert engine.get_active_sessions() == []


class TestChangeNotification:
    """Tests for change notifications."""

    def test_mutations_fire(self, engine):
        """Test mutations fire."""
        fired = []
        engine.on_did_change.subscribe(lambda: fired.append(True))

        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        engine.set_write_approval(SESSION, Scope.SESSION)
        engine.clear_session(SESSION)

        assert len(fired) == 3

    def test_store_changes_are_forwarded(self, engine, store):
        """Test store changes are forwarded."""
        fired = []
        engine.on_did_change.subscribe(lambda: fired.append(True))
        store.update_global_config(lambda c: setattr(c, "write_approved", True))
        assert fired == [True]

    def test_failing_listener_does_not_break_others(self, engine):
        """Test failing listener does not break others."""
        fired = []

        def broken():
            raise RuntimeError("listener failed")

        engine.on_did_change.subscribe(broken)
        engine.on_did_change.subscribe(lambda: fired.append(True))
        engine.add_command_rule(SESSION, cmd("ls"), Scope.SESSION)
        assert fired == [True]
