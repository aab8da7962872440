from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

DEFAULT_WEB_URL_BASE = 'https://localhost/issues/'
DEFAULT_ISSUE_URL_BASE = '/issues/'
DEFAULT_LABEL_URL_BASE = '/issues/label/'


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class PublishConfig:
    """Operator policy handed to every pipeline call.

    Immutable so one value can be shared by concurrent renders without
    coordination.
    """

    public_label: str
    allowed_labels: tuple[str, ...] = ()
    allowed_domains: tuple[str, ...] = ()
    unrestricted: bool = False
    web_url_base: str = DEFAULT_WEB_URL_BASE
    issue_url_base: str = DEFAULT_ISSUE_URL_BASE
    label_url_base: str = DEFAULT_LABEL_URL_BASE

    def is_allowed_label(self, label: str) -> bool:
        return label in self.allowed_labels

    def is_allowed_domain(self, hostname: str) -> bool:
        return hostname.lower() in {d.lower() for d in self.allowed_domains}


@dataclass
class ServiceConfig:
    publish: PublishConfig
    jira_url_base: str | None = None
    jira_url_path: str | None = None
    jira_username: str | None = None
    jira_password: str | None = field(default=None, repr=False)
    local_store: Path | None = None
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = 'INFO'


def _resolve_env_var(value: Any, environ: Mapping[str, str]) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return environ.get(value[1:], value)  # Fallback to original if not found
    return value


def _string_list(raw: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = raw.get(key)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f'config.{key} must be a list of strings')
    return tuple(cast(Iterable[str], value))


def _require_string(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigError(f'config.{key} must be a non-empty string')
    return value


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> ServiceConfig:
    env = os.environ if environ is None else environ
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration in {p} must be a mapping')
    raw = cast(dict[str, Any], loaded)
    jira = cast(dict[str, Any], raw.get('jira', {}) or {})
    url = cast(dict[str, Any], jira.get('url', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})

    unrestricted = bool(raw.get('unrestricted', False)) or env.get('UNRESTRICTED') == 'yes'
    publish = PublishConfig(
        public_label=_require_string(raw.get('label'), 'label'),
        allowed_labels=_string_list(raw, 'allowed_labels'),
        allowed_domains=_string_list(raw, 'allowed_domains'),
        unrestricted=unrestricted,
        web_url_base=raw.get('web_url_base', DEFAULT_WEB_URL_BASE),
        issue_url_base=raw.get('issue_url_base', DEFAULT_ISSUE_URL_BASE),
        label_url_base=raw.get('label_url_base', DEFAULT_LABEL_URL_BASE),
    )

    store_any = env.get('LOCAL_STORE') or raw.get('local_store')
    local_store = p.parent / store_any if store_any else None

    config = ServiceConfig(
        publish=publish,
        jira_url_base=url.get('base'),
        jira_url_path=url.get('path'),
        jira_username=_resolve_env_var(jira.get('username'), env),
        jira_password=_resolve_env_var(jira.get('password'), env),
        local_store=local_store,
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=env.get('LOG_LEVEL') or logging_config.get('level', 'INFO'),
    )
    # The tracker is only contacted when no local store stands in for it
    if local_store is None:
        _require_string(config.jira_url_base, 'jira.url.base')
        _require_string(config.jira_url_path, 'jira.url.path')
        _require_string(config.jira_username, 'jira.username')
        _require_string(config.jira_password, 'jira.password')
    return config


__all__ = ['ConfigError', 'PublishConfig', 'ServiceConfig', 'load_config']
