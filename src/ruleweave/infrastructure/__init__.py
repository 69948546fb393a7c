"""Infrastructure: file collection, configuration resolution, caching, exemptions."""

from ruleweave.infrastructure.cache import CacheEntry, TTLCache
from ruleweave.infrastructure.collector import (
    PathFilters,
    collect_repo_files,
    is_blacklisted,
    is_whitelisted,
    iter_repo_files,
)
from ruleweave.infrastructure.exemptions import (
    Exemption,
    MalformedDataError,
    is_exempt,
    load_local_exemptions,
    normalize_github_url,
)
from ruleweave.infrastructure.paths import PathTraversalError, ensure_within_root, is_path_inside
from ruleweave.infrastructure.repo_config import RepoConfig, load_repo_config
from ruleweave.infrastructure.resolver import (
    ArchetypeConfig,
    ConfigResolver,
    ResolutionError,
    is_valid_rule,
)
from ruleweave.infrastructure.webhook import handle_push_event, verify_signature

__all__ = [
    "ArchetypeConfig",
    "CacheEntry",
    "ConfigResolver",
    "Exemption",
    "MalformedDataError",
    "PathFilters",
    "PathTraversalError",
    "RepoConfig",
    "ResolutionError",
    "TTLCache",
    "collect_repo_files",
    "ensure_within_root",
    "handle_push_event",
    "is_blacklisted",
    "is_exempt",
    "is_path_inside",
    "is_valid_rule",
    "is_whitelisted",
    "iter_repo_files",
    "load_local_exemptions",
    "load_repo_config",
    "normalize_github_url",
    "verify_signature",
]
