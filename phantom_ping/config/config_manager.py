"""
Phantom Ping configuration.

Values come from three layers, highest first:
- PHANTOM_PING_* environment variables (``PHANTOM_PING_NETWORK_TIMEOUT=2.5``)
- an optional JSON file, deep-merged over the defaults
- built-in defaults

The merged document is validated with jsonschema (Draft 7).
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "phantom_ping.json"

_MISSING = object()


class ConfigSchema:
    """Draft 7 schema and defaults for the ping configuration"""

    SCHEMA = {
        "type": "object",
        "required": ["version", "general", "network", "ping"],
        "properties": {
            "version": {"type": "string", "pattern": r"^\d+\.\d+\.\d+$"},
            "general": {
                "type": "object",
                "required": ["log_level"],
                "properties": {
                    "log_level": {"enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
                    "color": {"enum": ["auto", "always", "never"]},
                },
            },
            "network": {
                "type": "object",
                "required": ["timeout", "family", "data_length"],
                "properties": {
                    "timeout": {"type": "number", "exclusiveMinimum": 0, "maximum": 300},
                    "family": {"enum": ["auto", "ipv4", "ipv6"]},
                    "data_length": {"type": "integer", "minimum": 8, "maximum": 65000},
                },
            },
            "ping": {
                "type": "object",
                "required": ["count", "interval", "identifier"],
                "properties": {
                    "count": {"type": "integer", "minimum": 1, "maximum": 100000},
                    "interval": {"type": "number", "minimum": 0, "maximum": 3600},
                    "identifier": {
                        "oneOf": [
                            {"const": "auto"},
                            {"type": "integer", "minimum": 0, "maximum": 65535},
                        ]
                    },
                },
            },
        },
    }

    DEFAULTS = {
        "version": "1.0.0",
        "general": {"log_level": "WARNING", "color": "auto"},
        "network": {"timeout": 10.0, "family": "auto", "data_length": 56},
        "ping": {"count": 3, "interval": 1.0, "identifier": "auto"},
    }

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        """Fresh copy of the default configuration"""
        return copy.deepcopy(cls.DEFAULTS)


def _deep_merge(base: Dict, override: Dict) -> None:
    for key, value in override.items():
        target = base.get(key)
        if isinstance(target, dict) and isinstance(value, dict):
            _deep_merge(target, value)
        else:
            base[key] = value


def _leaf_keys(node: Dict[str, Any], prefix: str = ""):
    """Dotted names of every non-object value, e.g. ``network.timeout``."""
    for name, value in node.items():
        if isinstance(value, dict):
            yield from _leaf_keys(value, f"{prefix}{name}.")
        else:
            yield f"{prefix}{name}"


class ConfigManager:
    """
    Layered configuration for the CLI.

    Usage:
        config = ConfigManager("phantom_ping.json")
        config.load()
        timeout = config.get("network.timeout")
        config.set("ping.count", 5)
        config.save()
    """

    ENV_PREFIX = "PHANTOM_PING_"

    def __init__(self, config_file: Optional[str] = None):
        """
        Args:
            config_file: JSON file used by load() and save()
        """
        self.config_file = config_file or DEFAULT_CONFIG_FILE
        self.config = ConfigSchema.get_defaults()
        self.validator = Draft7Validator(ConfigSchema.SCHEMA)
        self.modified = False
        self._reported_overrides = set()

    def load(self, config_file: Optional[str] = None) -> bool:
        """
        Merge the JSON file over the defaults.

        A missing, unreadable or invalid file leaves the defaults in place.

        Returns:
            True if the file was applied
        """
        self.config_file = config_file or self.config_file
        path = Path(self.config_file)
        if not path.is_file():
            logger.info("No config file at %s, using defaults", path)
            return False

        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cannot read config file %s: %s", path, e)
            return False
        if not isinstance(document, dict):
            logger.warning("Config file %s must hold a JSON object", path)
            return False

        candidate = ConfigSchema.get_defaults()
        _deep_merge(candidate, document)
        problems = self._problems(candidate)
        if problems:
            for problem in problems:
                logger.warning("Invalid config value %s", problem)
            logger.warning("Ignoring config file %s", path)
            return False

        self.config = candidate
        logger.debug("Loaded config file %s", path)
        return True

    def save(self, config_file: Optional[str] = None) -> None:
        """
        Write the current configuration as JSON.

        Raises:
            OSError: If the file cannot be written
        """
        self.config_file = config_file or self.config_file
        Path(self.config_file).write_text(json.dumps(self.config, indent=2), encoding="utf-8")
        logger.debug("Saved config file %s", self.config_file)
        self.modified = False

    def _problems(self, document: Dict[str, Any]) -> List[str]:
        found = []
        for error in sorted(self.validator.iter_errors(document), key=str):
            where = ".".join(str(part) for part in error.absolute_path) or "<root>"
            found.append(f"{where}: {error.message}")
        return found

    def _apply_overrides(self) -> Tuple[Dict[str, Any], List[str]]:
        """
        Copy of the configuration with environment overrides applied.

        Each override is validated on its own; one that breaks the schema
        is left out and reported as 'VARIABLE: message'.
        """
        merged = copy.deepcopy(self.config)
        rejected = []
        for key in _leaf_keys(self.config):
            name = self._env_name(key)
            raw = os.environ.get(name)
            if raw is None:
                continue
            candidate = copy.deepcopy(merged)
            parent, leaf = self._walk(key, root=candidate)
            parent[leaf] = self._parse_env_value(raw)
            problems = [p for p in self._problems(candidate)
                        if p.startswith(key + ":") or p.startswith(key + ".")]
            if problems:
                rejected.extend(f"{name}: {p.split(': ', 1)[1]}" for p in problems)
                continue
            merged = candidate
        return merged, rejected

    def effective(self) -> Dict[str, Any]:
        """
        The configuration as the CLI sees it: file and defaults with the
        valid PHANTOM_PING_* overrides applied. Invalid overrides are
        dropped with a warning.
        """
        merged, rejected = self._apply_overrides()
        for problem in rejected:
            if problem not in self._reported_overrides:
                self._reported_overrides.add(problem)
                logger.warning("Ignoring environment override %s", problem)
        return merged

    def errors(self) -> List[str]:
        """Schema violations of the configuration and of the environment overrides"""
        return self._problems(self.config) + self._apply_overrides()[1]

    def validate(self) -> bool:
        problems = self.errors()
        for problem in problems:
            logger.warning("Invalid config value %s", problem)
        return not problems

    def _env_name(self, key: str) -> str:
        return self.ENV_PREFIX + key.replace(".", "_").upper()

    @staticmethod
    def _parse_env_value(raw: str) -> Any:
        """JSON scalars (numbers, true/false) and yes/no; anything else stays a string"""
        lowered = raw.strip().lower()
        if lowered in ("yes", "on"):
            return True
        if lowered in ("no", "off"):
            return False
        try:
            return json.loads(lowered)
        except ValueError:
            return raw

    def _walk(self,
              key: str,
              create: bool = False,
              root: Optional[Dict[str, Any]] = None) -> Tuple[Optional[Dict], str]:
        """Return (parent dict, leaf name) for a dotted key."""
        *parents, leaf = key.split(".")
        node: Any = self.config if root is None else root
        for name in parents:
            if not isinstance(node, dict):
                return None, leaf
            if name not in node and create:
                node[name] = {}
            node = node.get(name)
        return (node if isinstance(node, dict) else None), leaf

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key such as ``network.timeout``.

        A valid matching environment variable wins over the file and defaults.
        """
        parent, leaf = self._walk(key, root=self.effective())
        if parent is None:
            return default
        return parent.get(leaf, default)

    def set(self, key: str, value: Any) -> None:
        """
        Assign a dotted key, keeping the configuration valid.

        Raises:
            ValidationError: If the value breaks the schema; the previous
                value is restored
        """
        parent, leaf = self._walk(key, create=True)
        if parent is None:
            raise KeyError(f"Cannot set {key}: parent is not an object")

        previous = parent.get(leaf, _MISSING)
        parent[leaf] = value
        try:
            self.validator.validate(self.config)
        except ValidationError:
            if previous is _MISSING:
                del parent[leaf]
            else:
                parent[leaf] = previous
            raise
        self.modified = True


def create_default_config(filename: str = DEFAULT_CONFIG_FILE) -> None:
    """Write the default configuration to ``filename``"""
    ConfigManager(filename).save()
