"""issuepress - republish public tracker issues as sanitized HTML/JSON.

High-level public API:

from issuepress import IssuePublisher, create_backend, load_config

cfg = load_config('issuepress.yaml')
backend = create_backend(cfg)
publisher = IssuePublisher(backend, cfg.publish)
issue = backend.fetch_issue('OS-1234')
if publisher.is_public(issue):
    fragment = publisher.render_html_sync(issue)

The building blocks (projector, visibility resolver, markup converter, link
renderer) are importable on their own; each takes the operator policy as an
explicit PublishConfig argument.
"""

from __future__ import annotations

from .backends import FilesBackend, JiraBackend, create_backend
from .config import ConfigError, PublishConfig, ServiceConfig, load_config
from .converters import default_converter, format_markup
from .markup import convert as convert_markup
from .models import SanitizedIssue, VisibilityDecision
from .projector import filter_remote_links, project, summarize
from .publisher import IssuePublisher
from .visibility import is_public, resolve_related, resolve_related_sync

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "FilesBackend",
    "IssuePublisher",
    "JiraBackend",
    "PublishConfig",
    "SanitizedIssue",
    "ServiceConfig",
    "VisibilityDecision",
    "convert_markup",
    "create_backend",
    "default_converter",
    "filter_remote_links",
    "format_markup",
    "is_public",
    "load_config",
    "project",
    "resolve_related",
    "resolve_related_sync",
    "summarize",
    "__version__",
]
