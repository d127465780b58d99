"""Configuration: the values the pipeline consumes and the YAML file they come from.

Skip rules are plain callables. In YAML they are written either as an import
reference or as a declarative mapping whose keys must all match::

    skip_threads:
      - subject_type: [CheckSuite, WorkflowRun]
      - title_contains: dependabot
      - "my_filters:skip_noisy_repos"

    skip_activities:
      - actor: "*[bot]"
      - event: reviewed
        state: commented
        repository: "my-org/*"
"""

from __future__ import annotations

import fnmatch
import importlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from ghping.core.models import ActivityPredicate, ActivityView, ThreadPredicate, ThreadView

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 60

CONFIG_ENV_VAR = "GHPING_CONFIG"
LOCAL_CONFIG_NAME = "ghping.yaml"


class ConfigNotFoundError(Exception):
    """No config file exists at any of the searched locations."""

    def __init__(self, searched_paths: List[str]):
        self.searched_paths = searched_paths
        listing = "\n".join(f"  - {p}" for p in searched_paths)
        super().__init__(f"No config file found. Searched:\n{listing}")


class ConfigValidationError(Exception):
    """The config file parsed but holds invalid values."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        listing = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Config validation failed:\n{listing}")


@dataclass
class PingConfig:
    """Resolved configuration with defaults applied."""

    skip_threads: List[ThreadPredicate] = field(default_factory=list)
    skip_activities: List[ActivityPredicate] = field(default_factory=list)
    mark_skipped_as_read: bool = False
    repo_aliases: Dict[str, str] = field(default_factory=dict)
    user_aliases: Dict[str, str] = field(default_factory=dict)
    sound: bool = True
    # Read by sinks that handle clicks; the built-in log and command sinks do not.
    mark_as_read_on_click: bool = True
    collapse_merged_pr_activities: bool = True
    default_poll_interval: int = DEFAULT_POLL_INTERVAL
    feed: Dict[str, Any] = field(default_factory=lambda: {"type": "gh-cli"})
    alerts: Dict[str, Any] = field(default_factory=lambda: {"type": "log"})
    state_path: Optional[str] = None


# ---------------------------------------------------------------------------
# Rule compilation
# ---------------------------------------------------------------------------

_THREAD_RULE_KEYS = {
    "subject_type",
    "reason",
    "repository",
    "title_contains",
    "title_matches",
    "private",
}
_ACTIVITY_RULE_KEYS = {"event", "actor", "state"}

_BOOL_FIELDS = (
    "mark_skipped_as_read",
    "sound",
    "mark_as_read_on_click",
    "collapse_merged_pr_activities",
)

_KNOWN_FIELDS = {
    "skip_threads",
    "skip_activities",
    "repo_aliases",
    "user_aliases",
    "default_poll_interval",
    "feed",
    "alerts",
    "state_path",
    *_BOOL_FIELDS,
}


def _as_set(value: Any) -> set[str]:
    if isinstance(value, (list, tuple, set)):
        return {str(v) for v in value}
    return {str(value)}


def _glob_any(value: str | None, patterns: set[str]) -> bool:
    if value is None:
        return False
    return any(fnmatch.fnmatchcase(value, pattern) for pattern in patterns)


def _thread_matcher(rule: dict[str, Any]) -> Callable[[ThreadView], bool]:
    checks: list[Callable[[ThreadView], bool]] = []
    if "subject_type" in rule:
        types = _as_set(rule["subject_type"])
        checks.append(lambda t: t.subject_type in types)
    if "reason" in rule:
        reasons = _as_set(rule["reason"])
        checks.append(lambda t: t.reason in reasons)
    if "repository" in rule:
        repos = _as_set(rule["repository"])
        checks.append(lambda t: _glob_any(t.repository, repos))
    if "title_contains" in rule:
        needles = _as_set(rule["title_contains"])
        checks.append(lambda t: any(n in t.title for n in needles))
    if "title_matches" in rule:
        pattern = re.compile(str(rule["title_matches"]))
        checks.append(lambda t: pattern.search(t.title) is not None)
    if "private" in rule:
        private = bool(rule["private"])
        checks.append(lambda t: t.private is private)
    return lambda thread: all(check(thread) for check in checks)


def _activity_matcher(rule: dict[str, Any]) -> Callable[[ActivityView], bool]:
    checks: list[Callable[[ActivityView], bool]] = []
    if "event" in rule:
        events = _as_set(rule["event"])
        checks.append(lambda a: a.event in events)
    if "actor" in rule:
        actors = _as_set(rule["actor"])
        checks.append(lambda a: _glob_any(a.actor, actors))
    if "state" in rule:
        states = _as_set(rule["state"])
        checks.append(lambda a: a.state in states)
    return lambda activity: all(check(activity) for check in checks)


def _describe(rule: dict[str, Any]) -> str:
    return "rule(" + ", ".join(f"{k}={v!r}" for k, v in sorted(rule.items())) + ")"


def thread_rule(rule: dict[str, Any]) -> ThreadPredicate:
    """Compile a declarative thread rule into a predicate."""
    matches_thread = _thread_matcher(rule)

    def predicate(thread: ThreadView) -> bool:
        return matches_thread(thread)

    predicate.__name__ = _describe(rule)
    return predicate


def activity_rule(rule: dict[str, Any]) -> ActivityPredicate:
    """Compile a declarative activity rule; thread keys apply to the parent thread."""
    matches_thread = _thread_matcher(rule)
    matches_activity = _activity_matcher(rule)

    def predicate(thread: ThreadView, activity: ActivityView) -> bool:
        return matches_thread(thread) and matches_activity(activity)

    predicate.__name__ = _describe(rule)
    return predicate


def import_callable(reference: str) -> Callable[..., Any]:
    """Resolve ``"package.module:attribute"`` to a callable."""
    module_name, sep, attr_path = reference.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"expected 'module:callable', got {reference!r}")
    target: Any = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        target = getattr(target, attr)
    if not callable(target):
        raise TypeError(f"{reference!r} is not callable")
    return target


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_rules(name: str, rules: Any, allowed: set[str], errors: List[str]) -> None:
    if rules is None:
        return
    if not isinstance(rules, list):
        errors.append(f"`{name}` must be a list")
        return
    for i, rule in enumerate(rules):
        if callable(rule):
            continue
        if isinstance(rule, str):
            if ":" not in rule:
                errors.append(f"{name}[{i}] must be a 'module:callable' reference")
            continue
        if not isinstance(rule, dict) or not rule:
            errors.append(f"{name}[{i}] must be a callable, a reference string or a mapping")
            continue
        unknown = set(rule) - allowed
        if unknown:
            errors.append(f"{name}[{i}] has unknown keys: {', '.join(sorted(unknown))}")
        if "title_matches" in rule:
            try:
                re.compile(str(rule["title_matches"]))
            except re.error as exc:
                errors.append(f"{name}[{i}].title_matches is not a valid regex: {exc}")


def validate_config(data: Any) -> List[str]:
    """Return a list of human-readable problems with a raw config mapping."""
    errors: List[str] = []
    if not isinstance(data, dict):
        return ["Config must be a mapping"]

    for key in sorted(str(k) for k in set(data) - _KNOWN_FIELDS):
        errors.append(f"Unknown config key `{key}`")

    _validate_rules("skip_threads", data.get("skip_threads"), _THREAD_RULE_KEYS, errors)
    _validate_rules(
        "skip_activities",
        data.get("skip_activities"),
        _THREAD_RULE_KEYS | _ACTIVITY_RULE_KEYS,
        errors,
    )

    for key in _BOOL_FIELDS:
        if key in data and not isinstance(data[key], bool):
            errors.append(f"`{key}` must be a boolean")

    for key in ("repo_aliases", "user_aliases"):
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in value.items()
        ):
            errors.append(f"`{key}` must map strings to strings")

    interval = data.get("default_poll_interval")
    if interval is not None and (
        isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0
    ):
        errors.append("`default_poll_interval` must be a positive integer")

    for key in ("feed", "alerts"):
        section = data.get(key)
        if section is None:
            continue
        if not isinstance(section, dict) or not isinstance(section.get("type"), str):
            errors.append(f"`{key}` must be a mapping with a string `type`")

    state_path = data.get("state_path")
    if state_path is not None and not isinstance(state_path, str):
        errors.append("`state_path` must be a string")

    return errors


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _compile_rules(
    name: str, rules: List[Any], compile_mapping: Callable[[dict[str, Any]], Any]
) -> List[Any]:
    compiled = []
    errors = []
    for i, rule in enumerate(rules or []):
        if callable(rule):
            compiled.append(rule)
        elif isinstance(rule, str):
            try:
                compiled.append(import_callable(rule))
            except (ImportError, AttributeError, TypeError, ValueError) as exc:
                errors.append(f"{name}[{i}] could not be imported: {exc}")
        else:
            compiled.append(compile_mapping(rule))
    if errors:
        raise ConfigValidationError(errors)
    return compiled


def config_from_dict(data: Dict[str, Any]) -> PingConfig:
    """Validate a raw mapping and build a :class:`PingConfig` with defaults."""
    errors = validate_config(data)
    if errors:
        raise ConfigValidationError(errors)

    defaults = PingConfig()
    return PingConfig(
        skip_threads=_compile_rules("skip_threads", data.get("skip_threads"), thread_rule),
        skip_activities=_compile_rules(
            "skip_activities", data.get("skip_activities"), activity_rule
        ),
        mark_skipped_as_read=data.get("mark_skipped_as_read", defaults.mark_skipped_as_read),
        repo_aliases=dict(data.get("repo_aliases") or {}),
        user_aliases=dict(data.get("user_aliases") or {}),
        sound=data.get("sound", defaults.sound),
        mark_as_read_on_click=data.get("mark_as_read_on_click", defaults.mark_as_read_on_click),
        collapse_merged_pr_activities=data.get(
            "collapse_merged_pr_activities", defaults.collapse_merged_pr_activities
        ),
        default_poll_interval=data.get("default_poll_interval", DEFAULT_POLL_INTERVAL),
        feed=dict(data.get("feed") or defaults.feed),
        alerts=dict(data.get("alerts") or defaults.alerts),
        state_path=data.get("state_path"),
    )


def global_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(Path.home(), ".config")
    return Path(base) / "ghping" / "config.yaml"


def config_search_paths() -> List[Path]:
    """Candidate config files, highest priority first."""
    paths = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        paths.append(Path(env_path).expanduser())
    paths.append(Path.cwd() / LOCAL_CONFIG_NAME)
    paths.append(global_config_path())
    return paths


def find_config_file() -> Optional[Path]:
    for path in config_search_paths():
        if path.is_file():
            return path
    return None


def load_config_from_path(path: str | Path) -> PingConfig:
    """Parse and validate a YAML config file."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigValidationError([f"{path}: invalid YAML: {exc}"]) from exc

    config = config_from_dict(data or {})
    logger.debug(
        "Loaded config from %s (%d thread rules, %d activity rules)",
        path,
        len(config.skip_threads),
        len(config.skip_activities),
    )
    return config


def load_config(path: str | Path | None = None) -> tuple[PingConfig, Path]:
    """Load the explicit *path*, or the first config found on the search path."""
    if path is not None:
        resolved = Path(path).expanduser()
        if not resolved.is_file():
            raise ConfigNotFoundError([str(resolved)])
        return load_config_from_path(resolved), resolved

    found = find_config_file()
    if found is None:
        raise ConfigNotFoundError([str(p) for p in config_search_paths()])
    return load_config_from_path(found), found


EXAMPLE_CONFIG = """\
# ghping configuration

# ─── Thread filtering ───
# Threads matching any rule are skipped (no timeline fetch, no alert).
skip_threads:
  # CI noise
  - subject_type: [CheckSuite, WorkflowRun]
  # Dependabot
  - title_contains: dependabot

# Mark skipped threads as read on GitHub?
mark_skipped_as_read: true

# ─── Activity filtering ───
# Activities matching any rule are dropped before alerts are built.
skip_activities:
  - actor: "*[bot]"

# ─── Display ───
repo_aliases:
  my-org/long-repository-name: repo-name
user_aliases:
  john-smith-long-username: john

# ─── Behavior ───
sound: true
# Mark the thread read when its alert is clicked. Only sinks that handle
# clicks use this; the built-in log and command sinks ignore it.
mark_as_read_on_click: true
# Fold activities before a merge into the merge alert
collapse_merged_pr_activities: true

feed:
  type: gh-cli
alerts:
  type: log
"""
