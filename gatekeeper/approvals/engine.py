"""Approval engine: authorization lookups, rule management and sessions."""

import asyncio
import logging
import os
import time
from typing import Callable

from ..constants import PRUNE_INTERVAL_SECONDS, SESSION_TTL_SECONDS
from ..events import ChangeNotifier
from .legacy import (
    LEGACY_COMMAND_RULES_KEY,
    LEGACY_KEYS,
    LEGACY_PATH_RULES_KEY,
    LEGACY_WRITE_APPROVED_KEY,
    LEGACY_WRITE_RULES_KEY,
    MIGRATED_KEY,
    LegacyStateStore,
)
from .models import (
    CommandRule,
    CommandRuleListing,
    ConfigDocument,
    PathMode,
    PathRule,
    PathRuleListing,
    RuleMatch,
    RuleT,
    Scope,
    SessionState,
    SessionSummary,
    WriteApprovalState,
    dedupe_rules,
)
from .patterns import matches_command_rule, matches_path_rule
from .store import ConfigStore, ConfigUpdater, sanitize_rules

logger = logging.getLogger(__name__)

SettingsSource = Callable[[], list[str]]

# Rule collections shared by session state and config documents
COMMAND_RULES = "command_rules"
PATH_RULES = "path_rules"
WRITE_RULES = "write_rules"


def _contains(rules: list[RuleT], rule: RuleT) -> bool:
    return any(r.pattern == rule.pattern and r.mode == rule.mode for r in rules)


def _no_settings() -> list[str]:
    return []


class ApprovalEngine:
    """
    Decides whether commands, path accesses and writes are pre-approved.

    Rules come from three scopes: the session (in memory only), the first open
    project and the global document. A match in any scope grants access; no
    match denies. Lookups never raise.

    The engine owns the session map. start() prunes once and begins the
    periodic prune; close() cancels it and discards every session.
    """

    def __init__(
        self,
        store: ConfigStore,
        settings_source: SettingsSource | None = None,
        legacy_state: LegacyStateStore | None = None,
        clock: Callable[[], float] = time.time,
        prune_interval: float = PRUNE_INTERVAL_SECONDS,
    ):
        """
        Initialize the approval engine.

        Args:
            store: Persistent global/project documents
            settings_source: Returns host-configured write globs
            legacy_state: Pre-config-file state, used by migrate_from_global_state
            clock: Time source in seconds
            prune_interval: Seconds between expired-session sweeps
        """
        self.store = store
        self.on_did_change = ChangeNotifier()
        self._settings_source = settings_source or _no_settings
        self._legacy_state = legacy_state
        self._clock = clock
        self._prune_interval = prune_interval
        # Session ID -> ephemeral approvals
        self._sessions: dict[str, SessionState] = {}
        self._prune_task: asyncio.Task[None] | None = None
        # Forward config file changes to our own listeners
        self._unsubscribe_store = store.on_did_change.subscribe(self.on_did_change.fire)

    # --- Lifecycle ---

    def start(self) -> None:
        """Prune once, then keep pruning every prune interval on the running loop."""
        self.prune_expired_sessions()
        if self._prune_task is None:
            self._prune_task = asyncio.get_running_loop().create_task(self._prune_periodically())

    def close(self) -> None:
        if self._prune_task is not None:
            self._prune_task.cancel()
            self._prune_task = None
        self._unsubscribe_store()
        self._sessions.clear()
        self.on_did_change.clear()

    async def _prune_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._prune_interval)
            self.prune_expired_sessions()

    # --- Migration from legacy state to config files ---

    def migrate_from_global_state(self) -> bool:
        """
        Move approvals from the legacy key-value store into the global document.

        Runs once: a persisted flag turns later calls into no-ops. If the global
        document cannot be written, nothing is cleared and the flag stays unset
        so the next start retries.

        Returns:
            True if migration is complete (now or earlier)
        """
        state = self._legacy_state
        if state is None or state.get(MIGRATED_KEY, False):
            return True

        old_commands = sanitize_rules(state.get(LEGACY_COMMAND_RULES_KEY, []), CommandRule)
        old_write_approved = state.get(LEGACY_WRITE_APPROVED_KEY, False) is True
        old_path_rules = sanitize_rules(state.get(LEGACY_PATH_RULES_KEY, []), PathRule)
        old_write_rules = sanitize_rules(state.get(LEGACY_WRITE_RULES_KEY, []), PathRule)

        has_data = bool(old_commands or old_write_approved or old_path_rules or old_write_rules)
        if has_data:

            def merge(config: ConfigDocument) -> None:
                config.write_approved = bool(config.write_approved) or old_write_approved
                config.command_rules = dedupe_rules([*(config.command_rules or []), *old_commands])
                config.path_rules = dedupe_rules([*(config.path_rules or []), *old_path_rules])
                config.write_rules = dedupe_rules([*(config.write_rules or []), *old_write_rules])

            if not self.store.update_global_config(merge):
                logger.warning("Migration of legacy approvals failed; will retry on next start")
                return False

        try:
            if has_data:
                for key in LEGACY_KEYS:
                    state.update(key, None)
            state.update(MIGRATED_KEY, True)
        except OSError as e:
            logger.warning("Could not record legacy migration: %s", e)
            return False

        logger.info(
            "Migrated legacy approvals: %d command, %d path, %d write rule(s)",
            len(old_commands),
            len(old_path_rules),
            len(old_write_rules),
        )
        return True

    # --- Session management ---

    def touch_session(self, session_id: str) -> None:
        session = self._session_for_update(session_id)
        session.last_activity = self._clock()

    def clear_session(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is not None:
            logger.info("Cleared approvals for session: %s", session_id)
            self.on_did_change.fire()

    def prune_expired_sessions(self) -> int:
        """
        Remove sessions idle for longer than the session TTL.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if now - s.last_activity > SESSION_TTL_SECONDS]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Pruned %d expired session(s)", len(expired))
        return len(expired)

    def clear_session_command_rules(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.command_rules = []
        self.on_did_change.fire()

    def get_active_sessions(self) -> list[SessionSummary]:
        return [
            SessionSummary(
                id=sid,
                write_approved=s.write_approved,
                command_rule_count=len(s.command_rules),
                path_rule_count=len(s.path_rules),
                write_rule_count=len(s.write_rules),
                last_activity=s.last_activity,
            )
            for sid, s in self._sessions.items()
        ]

    # --- Write approval ---

    def is_write_approved(self, session_id: str, file_path: str | None = None) -> bool:
        """
        Check whether writes are approved, blanket or for one file.

        Blanket flags are checked global, then project, then session. Only if
        none is set and file_path is given do per-file write rules apply.
        """
        if self.get_write_approval_state(session_id) != "prompt":
            return True
        if file_path:
            return self.is_file_write_approved(session_id, file_path)
        return False

    def get_write_approval_state(self, session_id: str) -> WriteApprovalState:
        """Which scope, if any, holds a blanket write approval."""
        if self.store.get_global_config().write_approved:
            return "global"
        project_config = self.store.get_project_config_for_first_root()
        if project_config is not None and project_config.write_approved:
            return "project"
        if self._session_view(session_id).write_approved:
            return "session"
        return "prompt"

    def set_write_approval(self, session_id: str, scope: Scope | str) -> bool:
        scope = Scope(scope)

        def approve(config: ConfigDocument) -> None:
            config.write_approved = True

        if scope == Scope.SESSION:
            session = self._session_for_update(session_id)
            session.write_approved = True
            session.last_activity = self._clock()
            ok = True
        else:
            ok = self._update_scope(scope, approve)
        if ok:
            logger.info("Blanket write approval set (%s scope, session %s)", scope.value, session_id)
        self.on_did_change.fire()
        return ok

    def reset_write_approval(self) -> bool:
        """
        Clear the blanket write flag in every scope: global, every open project and every session.

        Returns:
            True if every persisted document was written
        """

        def revoke(config: ConfigDocument) -> None:
            config.write_approved = False

        ok = self.store.update_global_config(revoke)
        for root in self.store.project_roots:
            if self.store.get_project_config(root).write_approved:
                ok = self.store.update_project_config(root, revoke) and ok
        for session in self._sessions.values():
            session.write_approved = False
        logger.info("Blanket write approvals reset")
        self.on_did_change.fire()
        return ok

    # --- File-level write approval ---

    def is_file_write_approved(self, session_id: str, file_path: str) -> bool:
        """
        Check file-level write rules against both the project-relative and absolute path.

        Order: host settings globs, session, project, then global write rules.
        """
        rel_path = self.relative_path(file_path)
        candidates = [rel_path, file_path] if rel_path != file_path else [file_path]

        for pattern in self._settings_patterns():
            rule = PathRule(pattern=pattern, mode=PathMode.GLOB)
            if any(matches_path_rule(c, rule) for c in candidates):
                return True

        for rules in self._rules_by_scope(session_id, WRITE_RULES).values():
            if any(matches_path_rule(c, r) for r in rules for c in candidates):
                return True
        return False

    def add_write_rule(self, session_id: str, rule: PathRule, scope: Scope | str) -> bool:
        return self._add_rule(WRITE_RULES, session_id, rule, scope)

    def remove_write_rule(self, pattern: str, scope: Scope | str, session_id: str | None = None) -> bool:
        return self._remove_rule(WRITE_RULES, pattern, scope, session_id)

    def edit_write_rule(
        self, old_pattern: str, new_rule: PathRule, scope: Scope | str, session_id: str | None = None
    ) -> bool:
        return self._edit_rule(WRITE_RULES, old_pattern, new_rule, scope, session_id)

    def get_write_rules(self, session_id: str) -> PathRuleListing:
        by_scope = self._rules_by_scope(session_id, WRITE_RULES)
        return PathRuleListing(
            session=list(by_scope[Scope.SESSION]),
            project=list(by_scope[Scope.PROJECT]),
            global_=list(by_scope[Scope.GLOBAL]),
            settings=self._settings_patterns(),
        )

    # --- Path trust (outside-project access) ---

    def is_path_trusted(self, session_id: str, file_path: str) -> bool:
        for rules in self._rules_by_scope(session_id, PATH_RULES).values():
            if any(matches_path_rule(file_path, r) for r in rules):
                return True
        return False

    def add_path_rule(self, session_id: str, rule: PathRule, scope: Scope | str) -> bool:
        return self._add_rule(PATH_RULES, session_id, rule, scope)

    def remove_path_rule(self, pattern: str, scope: Scope | str, session_id: str | None = None) -> bool:
        return self._remove_rule(PATH_RULES, pattern, scope, session_id)

    def edit_path_rule(
        self, old_pattern: str, new_rule: PathRule, scope: Scope | str, session_id: str | None = None
    ) -> bool:
        return self._edit_rule(PATH_RULES, old_pattern, new_rule, scope, session_id)

    def get_path_rules(self, session_id: str) -> PathRuleListing:
        by_scope = self._rules_by_scope(session_id, PATH_RULES)
        return PathRuleListing(
            session=list(by_scope[Scope.SESSION]),
            project=list(by_scope[Scope.PROJECT]),
            global_=list(by_scope[Scope.GLOBAL]),
        )

    # --- Command approval ---

    def is_command_approved(self, session_id: str, command: str) -> bool:
        return self.find_matching_command_rule(session_id, command) is not None

    def find_matching_command_rule(self, session_id: str, command: str) -> RuleMatch | None:
        """
        Find the first rule approving a command, checking session, project, then global.

        Args:
            session_id: The session ID
            command: Command text (surrounding whitespace is ignored)

        Returns:
            The matching rule and its scope, or None
        """
        trimmed = command.strip()
        for scope, rules in self._rules_by_scope(session_id, COMMAND_RULES).items():
            for rule in rules:
                if matches_command_rule(trimmed, rule):
                    return RuleMatch(rule=rule, scope=scope)
        return None

    def add_command_rule(self, session_id: str, rule: CommandRule, scope: Scope | str) -> bool:
        return self._add_rule(COMMAND_RULES, session_id, rule, scope)

    def remove_command_rule(self, pattern: str, scope: Scope | str, session_id: str | None = None) -> bool:
        return self._remove_rule(COMMAND_RULES, pattern, scope, session_id)

    def edit_command_rule(
        self, old_pattern: str, new_rule: CommandRule, scope: Scope | str, session_id: str | None = None
    ) -> bool:
        return self._edit_rule(COMMAND_RULES, old_pattern, new_rule, scope, session_id)

    def get_command_rules(self, session_id: str) -> CommandRuleListing:
        by_scope = self._rules_by_scope(session_id, COMMAND_RULES)
        return CommandRuleListing(
            session=list(by_scope[Scope.SESSION]),
            project=list(by_scope[Scope.PROJECT]),
            global_=list(by_scope[Scope.GLOBAL]),
        )

    # --- Paths ---

    def relative_path(self, file_path: str) -> str:
        """Path relative to the open project containing it, else unchanged."""
        for root in self.store.project_roots:
            if file_path == root or file_path.startswith(root.rstrip(os.sep) + os.sep):
                return os.path.relpath(file_path, root)
        return file_path

    # --- Internal ---

    def _session_view(self, session_id: str) -> SessionState:
        """Existing session, or an unstored empty one for lookups."""
        session = self._sessions.get(session_id)
        if session is None:
            return SessionState(last_activity=self._clock())
        return session

    def _session_for_update(self, session_id: str) -> SessionState:
        """Existing session, created and stored on first touch."""
        session = self._sessions.get(session_id)
        if session is None:
            session = SessionState(last_activity=self._clock())
            self._sessions[session_id] = session
        return session

    def _rules_by_scope(self, session_id: str, field: str) -> dict[Scope, list]:
        """Rules of one kind in lookup order: session, project, global."""
        project_config = self.store.get_project_config_for_first_root()
        return {
            Scope.SESSION: getattr(self._session_view(session_id), field),
            Scope.PROJECT: (getattr(project_config, field) or []) if project_config is not None else [],
            Scope.GLOBAL: getattr(self.store.get_global_config(), field) or [],
        }

    def _settings_patterns(self) -> list[str]:
        try:
            return [p for p in self._settings_source() if isinstance(p, str)]
        except Exception:
            logger.exception("Settings source failed; ignoring settings write rules")
            return []

    def _update_scope(self, scope: Scope, updater: ConfigUpdater) -> bool:
        if scope == Scope.GLOBAL:
            return self.store.update_global_config(updater)
        root = self.store.first_project_root()
        if root is None:
            logger.warning("No project open; project-scoped approvals are unavailable")
            return False
        return self.store.update_project_config(root, updater)

    def _add_rule(self, field: str, session_id: str, rule: RuleT, scope: Scope | str) -> bool:
        scope = Scope(scope)
        if scope == Scope.SESSION:
            session = self._session_for_update(session_id)
            rules = getattr(session, field)
            if not _contains(rules, rule):
                rules.append(rule)
            session.last_activity = self._clock()
            ok = True
        else:

            def add(config: ConfigDocument) -> None:
                rules = getattr(config, field) or []
                if not _contains(rules, rule):
                    rules.append(rule)
                setattr(config, field, rules)

            ok = self._update_scope(scope, add)
        if ok:
            logger.info("Added %s rule (%s scope): %s [%s]", field, scope.value, rule.pattern, rule.mode.value)
        self.on_did_change.fire()
        return ok

    def _remove_rule(self, field: str, pattern: str, scope: Scope | str, session_id: str | None) -> bool:
        scope = Scope(scope)
        if scope == Scope.SESSION:
            session = self._sessions.get(session_id) if session_id else None
            if session is not None:
                setattr(session, field, [r for r in getattr(session, field) if r.pattern != pattern])
                session.last_activity = self._clock()
            ok = session is not None
        else:

            def remove(config: ConfigDocument) -> None:
                setattr(config, field, [r for r in getattr(config, field) or [] if r.pattern != pattern])

            ok = self._update_scope(scope, remove)
        if ok:
            logger.info("Removed %s rule (%s scope): %s", field, scope.value, pattern)
        self.on_did_change.fire()
        return ok

    def _edit_rule(
        self, field: str, old_pattern: str, new_rule: RuleT, scope: Scope | str, session_id: str | None
    ) -> bool:
        scope = Scope(scope)

        def replace(rules: list[RuleT]) -> None:
            for i, rule in enumerate(rules):
                if rule.pattern == old_pattern:
                    rules[i] = new_rule
                    return

        if scope == Scope.SESSION:
            session = self._sessions.get(session_id) if session_id else None
            if session is not None:
                replace(getattr(session, field))
                setattr(session, field, dedupe_rules(getattr(session, field)))
                session.last_activity = self._clock()
            ok = session is not None
        else:

            def edit(config: ConfigDocument) -> None:
                rules = getattr(config, field) or []
                replace(rules)
                setattr(config, field, rules)

            ok = self._update_scope(scope, edit)
        if ok:
            logger.info("Edited %s rule (%s scope): %s -> %s", field, scope.value, old_pattern, new_rule.pattern)
        self.on_did_change.fire()
        return ok
