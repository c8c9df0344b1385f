"""Persistent storage for global and per-project approval documents."""

import asyncio
import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable

from pydantic import ValidationError
from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..config.paths import PROJECT_CONFIG_RELATIVE, global_config_path, project_config_path
from ..constants import CONFIG_VERSION, RELOAD_DEBOUNCE_SECONDS
from ..events import ChangeNotifier
from ..logging_config import log_timing
from .models import CommandRule, ConfigDocument, PathRule, RuleT, dedupe_rules
from .patterns import match_glob

logger = logging.getLogger(__name__)

ConfigUpdater = Callable[[ConfigDocument], None]
WarningHandler = Callable[[str, Path], None]

GLOBAL_SCOPE = "global"
PROJECT_SCOPE = "project"

_RELOAD_EVENT_TYPES = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}
_PROJECT_CONFIG_GLOB = f"**/{PROJECT_CONFIG_RELATIVE.as_posix()}"


def sanitize_rules(items: Any, model: type[RuleT]) -> list[RuleT]:
    """
    Keep only well-formed rule objects with a recognized mode.

    Args:
        items: Raw value read from disk (anything)
        model: CommandRule or PathRule

    Returns:
        Validated rules; malformed entries are dropped
    """
    if not isinstance(items, list):
        return []
    rules: list[RuleT] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            rules.append(model.model_validate(item))
        except ValidationError:
            continue
    return rules


def document_from_data(data: dict[str, Any]) -> ConfigDocument:
    """
    Build a ConfigDocument from parsed JSON, dropping anything malformed.

    Args:
        data: Parsed JSON object

    Returns:
        Sanitized document
    """
    version = data.get("version")
    document = ConfigDocument(
        version=version if isinstance(version, int) and not isinstance(version, bool) else CONFIG_VERSION
    )
    if isinstance(data.get("writeApproved"), bool):
        document.write_approved = data["writeApproved"]
    if isinstance(data.get("commandRules"), list):
        document.command_rules = sanitize_rules(data["commandRules"], CommandRule)
    if isinstance(data.get("pathRules"), list):
        document.path_rules = sanitize_rules(data["pathRules"], PathRule)
    if isinstance(data.get("writeRules"), list):
        document.write_rules = sanitize_rules(data["writeRules"], PathRule)
    return document


def _normalize(document: ConfigDocument) -> None:
    """Deduplicate every rule array in place."""
    if document.command_rules is not None:
        document.command_rules = dedupe_rules(document.command_rules)
    if document.path_rules is not None:
        document.path_rules = dedupe_rules(document.path_rules)
    if document.write_rules is not None:
        document.write_rules = dedupe_rules(document.write_rules)


class _ConfigFileHandler(FileSystemEventHandler):
    """Forwards relevant filesystem events for config files."""

    def __init__(self, matches: Callable[[str], bool], on_change: Callable[[], None]):
        super().__init__()
        self._matches = matches
        self._on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELOAD_EVENT_TYPES:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(path and self._matches(os.fsdecode(path)) for path in paths):
            self._on_change()


class ConfigStore:
    """
    Storage for the global approval document and one document per project root.

    Documents are replaced wholesale on every mutation: the current document is
    copied, the copy is mutated, written atomically (temp file + rename) and
    only then swapped in. External edits are picked up through filesystem
    watching with a debounced reload.
    """

    def __init__(
        self,
        project_roots: Iterable[str] = (),
        global_path: Path | None = None,
        warning_handler: WarningHandler | None = None,
    ):
        """
        Initialize the store and load all documents.

        Args:
            project_roots: Currently open project roots
            global_path: Location of the global document (defaults to ~/.gatekeeper/approvals.json)
            warning_handler: Non-blocking notification for malformed documents
        """
        self.global_path = Path(global_path) if global_path else global_config_path()
        self.on_did_change = ChangeNotifier()
        self._warning_handler = warning_handler
        self._project_roots: list[str] = [str(root) for root in project_roots]

        self._global_config = ConfigDocument()
        # Project root -> document
        self._project_configs: dict[str, ConfigDocument] = {}

        self._observer: Any = None
        self._project_watches: list[Any] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._reload_handle: asyncio.TimerHandle | None = None
        self._pending_scopes: set[str] = set()

        self.load_global_config()
        self.load_project_configs()

    # --- Public API ---

    @property
    def project_roots(self) -> list[str]:
        return list(self._project_roots)

    def first_project_root(self) -> str | None:
        """First open project root, or None when no project is open."""
        return self._project_roots[0] if self._project_roots else None

    def get_global_config(self) -> ConfigDocument:
        return self._global_config

    def get_project_config(self, root: str) -> ConfigDocument:
        config = self._project_configs.get(root)
        return config if config is not None else ConfigDocument()

    def get_project_config_for_first_root(self) -> ConfigDocument | None:
        """
        Get the document of the first project root.

        Returns:
            The document, or None if no project is open
        """
        root = self.first_project_root()
        if root is None:
            return None
        return self.get_project_config(root)

    def update_global_config(self, updater: ConfigUpdater) -> bool:
        """
        Copy the global document, apply updater to the copy and persist it.

        Args:
            updater: Mutates the copy in place

        Returns:
            True if the new document was written and is now current
        """
        config = self._global_config.model_copy(deep=True)
        updater(config)
        _normalize(config)
        if not self.write_config(self.global_path, config):
            return False
        self._global_config = config
        self.on_did_change.fire()
        return True

    def update_project_config(self, root: str, updater: ConfigUpdater) -> bool:
        """
        Copy a project document, apply updater to the copy and persist it.

        Args:
            root: Project root the document belongs to
            updater: Mutates the copy in place

        Returns:
            True if the new document was written and is now current
        """
        config = self.get_project_config(root).model_copy(deep=True)
        updater(config)
        _normalize(config)
        if not self.write_config(project_config_path(root), config):
            return False
        self._project_configs[root] = config
        self.on_did_change.fire()
        return True

    def set_project_roots(self, roots: Iterable[str]) -> None:
        """
        Resynchronize the tracked project roots (e.g. a folder was opened or closed).

        Args:
            roots: The complete new set of open project roots
        """
        self._project_roots = [str(root) for root in roots]
        self.load_project_configs()
        if self._observer is not None:
            self._watch_projects()
        logger.info("Tracking %d project root(s)", len(self._project_roots))
        self.on_did_change.fire()

    def close(self) -> None:
        """Stop watching, cancel any pending reload and drop listeners."""
        if self._reload_handle is not None:
            self._reload_handle.cancel()
            self._reload_handle = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=1)
            self._observer = None
        self._project_watches = []
        self.on_did_change.clear()

    # --- Read/Write ---

    def load_global_config(self) -> None:
        self._global_config = self.read_config(self.global_path)

    def load_project_configs(self) -> None:
        self._project_configs = {root: self.read_config(project_config_path(root)) for root in self._project_roots}

    def read_config(self, path: Path) -> ConfigDocument:
        """
        Read and validate a document. Never raises.

        Args:
            path: Document location

        Returns:
            The sanitized document, or an empty one if missing or unusable
        """
        if not path.exists():
            return ConfigDocument()
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("Could not read config %s: %s", path, e)
            return ConfigDocument()
        return self._parse_and_validate(raw, path)

    def write_config(self, path: Path, config: ConfigDocument) -> bool:
        """
        Atomically write a document (temp sibling file, then rename over target).

        Args:
            path: Document location
            config: Document to write

        Returns:
            True on success; on failure the target file is untouched
        """
        tmp_path = path.with_name(f"{path.name}.tmp.{os.getpid()}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(config.to_json(), encoding="utf-8")
            os.replace(tmp_path, path)
            return True
        except OSError as e:
            logger.warning("Could not write config %s: %s", path, e)
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            return False

    def _parse_and_validate(self, raw: str, path: Path) -> ConfigDocument:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            self._warn(f"Invalid JSON in {path}, treating as empty config", path)
            return ConfigDocument()

        if not isinstance(parsed, dict):
            self._warn(f"Config {path} is not an object, treating as empty config", path)
            return ConfigDocument()

        return document_from_data(parsed)

    def _warn(self, message: str, path: Path) -> None:
        logger.warning(message)
        if self._warning_handler is not None:
            try:
                self._warning_handler(message, path)
            except Exception:
                logger.exception("Warning handler failed for %s", path)

    # --- File Watching ---

    def start_watching(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """
        Watch the global directory and every project root for config changes.

        Must be called from the event loop that should run reloads. Directories
        that cannot be watched (e.g. not created yet) are skipped silently.

        Args:
            loop: Event loop for reloads (defaults to the running loop)
        """
        self._loop = loop or asyncio.get_running_loop()
        if self._observer is not None:
            return

        self._observer = Observer()
        global_dir = self.global_path.parent
        try:
            if global_dir.is_dir():
                handler = _ConfigFileHandler(
                    lambda path: os.path.basename(path) == self.global_path.name,
                    lambda: self._on_fs_event(GLOBAL_SCOPE),
                )
                self._observer.schedule(handler, str(global_dir), recursive=False)
        except OSError as e:
            logger.debug("Not watching %s: %s", global_dir, e)

        self._watch_projects()
        try:
            self._observer.start()
        except (OSError, RuntimeError) as e:
            logger.debug("File watching unavailable: %s", e)
            self._observer = None

    def _watch_projects(self) -> None:
        for watch in self._project_watches:
            with contextlib.suppress(KeyError, OSError):
                self._observer.unschedule(watch)
        self._project_watches = []

        handler = _ConfigFileHandler(
            lambda path: match_glob(_PROJECT_CONFIG_GLOB, Path(path).as_posix()),
            lambda: self._on_fs_event(PROJECT_SCOPE),
        )
        for root in self._project_roots:
            try:
                self._project_watches.append(self._observer.schedule(handler, root, recursive=True))
            except OSError as e:
                logger.debug("Not watching project %s: %s", root, e)

    def _on_fs_event(self, scope: str) -> None:
        # Runs on the watchdog thread; hop onto the event loop
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(self.schedule_reload, scope)

    def schedule_reload(self, scope: str) -> None:
        """
        Request a debounced reload of a scope ("global" or "project").

        Calls within RELOAD_DEBOUNCE_SECONDS of each other collapse into one
        reload and one change notification.
        """
        self._pending_scopes.add(scope)
        if self._reload_handle is not None:
            self._reload_handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._reload_handle = loop.call_later(RELOAD_DEBOUNCE_SECONDS, self._reload_pending)
        logger.debug("Scheduled %s config reload", scope)

    def _reload_pending(self) -> None:
        scopes = self._pending_scopes
        self._pending_scopes = set()
        self._reload_handle = None
        with log_timing(logger, f"Reload of {', '.join(sorted(scopes))} config"):
            if GLOBAL_SCOPE in scopes:
                self.load_global_config()
            if PROJECT_SCOPE in scopes:
                self.load_project_configs()
        self.on_did_change.fire()

