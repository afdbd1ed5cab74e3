"""Settings, identifiers and key bindings for blocks.

Defaults live in ``Settings``; ``load_settings`` overlays the optional
~/.blocks/config.yaml on top of them.
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from blocks_core.paths import config_file, configure_logger

_log = configure_logger("blocks.config")

# Window identifiers
WINDOW_FILE_LIST = "filelist"
WINDOW_COMMIT_LIST = "commitlist"
WINDOW_DIFF_VIEW = "diffview"
WINDOW_FILE_VIEW = "fileview"
WINDOW_HELP = "help"

MODAL_HELP = "help"

# Layout regions: side-by-side and stacked
REGION_LEFT_TOP = "left-top"
REGION_LEFT_BOTTOM = "left-bottom"
REGION_RIGHT = "right"
REGION_TOP = "top"
REGION_MIDDLE = "middle"
REGION_BOTTOM = "bottom"

# Modal geometry
MODAL_MAX_WIDTH = 50
MODAL_MAX_HEIGHT = 26
MODAL_PADDING = 4

TREE_INDENT_SIZE = 2

# Keep in sync with dispatcher._handle_global_key and windows.*.handle_key
DEFAULT_KEYS: dict[str, tuple[str, ...]] = {
    "quit": ("q",),
    "help": ("?",),
    "refresh": ("r",),
    "yank": ("y",),
    "open_editor": ("o",),
    "cycle_mode": ("m",),
    "mode_1": ("1",),
    "mode_2": ("2",),
    "mode_3": ("3",),
    "mode_4": ("4",),
    "focus_next": ("tab",),
    "focus_prev": ("shift+tab",),
    "escape": ("escape",),
    "up": ("k", "up"),
    "down": ("j", "down"),
    "fast_up": ("K",),
    "fast_down": ("J",),
    "left": ("h", "left"),
    "right": ("l", "right"),
    "half_page_up": ("ctrl+u",),
    "half_page_down": ("ctrl+d",),
    "top": ("g",),
    "bottom": ("G",),
    "enter": ("enter",),
}

# Help text shown next to each action in the help overlay
KEY_HELP: dict[str, str] = {
    "up": "navigate up",
    "down": "navigate down",
    "fast_up": "fast navigate up",
    "fast_down": "fast navigate down",
    "left": "collapse folder",
    "right": "expand folder",
    "half_page_up": "half page up",
    "half_page_down": "half page down",
    "top": "go to top",
    "bottom": "go to bottom",
    "enter": "select",
    "focus_next": "next window",
    "focus_prev": "previous window",
    "cycle_mode": "cycle mode",
    "mode_1": "changed:working",
    "mode_2": "changed:branch",
    "mode_3": "browse",
    "mode_4": "docs",
    "refresh": "refresh",
    "yank": "copy location",
    "open_editor": "open in editor",
    "help": "toggle help",
    "escape": "close / clear status",
    "quit": "quit",
}


class KeyMap:
    """Lookup from key codes to action names."""

    def __init__(self, bindings: dict[str, tuple[str, ...]] | None = None):
        self.bindings = dict(bindings or DEFAULT_KEYS)
        self._by_key: dict[str, str] = {}
        for action, keys in self.bindings.items():
            for k in keys:
                self._by_key.setdefault(k, action)

    def action_for(self, key: str) -> str | None:
        return self._by_key.get(key)

    def keys_for(self, action: str) -> tuple[str, ...]:
        return self.bindings.get(action, ())


@dataclass(frozen=True)
class Settings:
    """User-tunable settings. All durations are in seconds."""

    pr_poll_interval: float = 60.0
    watcher_debounce: float = 0.5
    watcher_poll_interval: float = 0.25
    layout_breakpoint: int = 80
    layout_left_ratio: int = 30
    watcher_exclude_dirs: tuple[str, ...] = ("node_modules", "vendor", "__pycache__", ".git")
    git_default_branches: tuple[str, ...] = ("main", "master")
    git_remote_branches: tuple[str, ...] = ("origin/main", "origin/master")
    git_recent_commits: int = 20
    doc_extensions: tuple[str, ...] = (".md", ".markdown", ".rst", ".txt", ".adoc")
    status_clear_delay: float = 2.0
    keys: dict[str, tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_KEYS))

    @property
    def keymap(self) -> KeyMap:
        return KeyMap(self.keys)


# Lower and upper bounds applied to loaded values; None means unbounded
_LIMITS: dict[str, tuple] = {
    "pr_poll_interval": (5.0, None),
    "watcher_debounce": (0.05, None),
    "watcher_poll_interval": (0.1, None),
    "status_clear_delay": (0.5, None),
    "layout_breakpoint": (0, None),
    "layout_left_ratio": (10, 90),
    "git_recent_commits": (1, None),
}


def _coerce(value, default):
    """Coerce a raw YAML value to the type of the matching default."""
    if isinstance(default, tuple):
        if isinstance(value, str):
            return (value,)
        return tuple(str(v) for v in value)
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def _clamp(name: str, value):
    low, high = _LIMITS.get(name, (None, None))
    clamped = value
    if low is not None and clamped < low:
        clamped = low
    if high is not None and clamped > high:
        clamped = high
    if clamped != value:
        _log.warning("config: %s=%r out of range, using %r", name, value, clamped)
    return clamped


def _key_codes(codes) -> tuple[str, ...] | None:
    # YAML reads bare digits as ints
    if isinstance(codes, (str, int)) and not isinstance(codes, bool):
        return (str(codes),)
    if isinstance(codes, list) and codes and all(
            isinstance(c, (str, int)) and not isinstance(c, bool) for c in codes):
        return tuple(str(c) for c in codes)
    return None


def _key_overrides(raw) -> dict[str, tuple[str, ...]]:
    keys = dict(DEFAULT_KEYS)
    if raw is None:
        return keys
    if not isinstance(raw, dict):
        _log.warning("config: keys must map actions to key codes, got %r", raw)
        return keys
    for action, codes in raw.items():
        if action not in DEFAULT_KEYS:
            _log.warning("config: ignoring unknown key action %r", action)
            continue
        parsed = _key_codes(codes)
        if parsed is None:
            _log.warning("config: invalid keys for %s: %r", action, codes)
            continue
        keys[action] = parsed
    return keys


def settings_from_dict(raw: dict) -> Settings:
    """Build Settings from a parsed config mapping, ignoring unknown keys."""
    defaults = Settings()
    known = {f.name for f in fields(Settings)}
    overrides: dict = {}
    for name, value in (raw or {}).items():
        if name not in known:
            _log.warning("config: ignoring unknown setting %r", name)
            continue
        if name == "keys":
            overrides["keys"] = _key_overrides(value)
            continue
        try:
            overrides[name] = _clamp(name, _coerce(value, getattr(defaults, name)))
        except (TypeError, ValueError):
            _log.warning("config: invalid value for %s: %r", name, value)
    return replace(defaults, **overrides)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    A missing file yields the defaults. A malformed file is logged and
    ignored.
    """
    path = path or config_file()
    if not path.exists():
        return Settings()
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        _log.warning("config: failed to read %s: %s", path, e)
        return Settings()
    if not isinstance(raw, dict):
        _log.warning("config: %s is not a mapping, using defaults", path)
        return Settings()
    _log.debug("config: loaded %s", path)
    return settings_from_dict(raw)
