"""Mod reconciliation: discovery, status classification and batch operations."""

from .batch import BatchExecutor, BatchObserver, failure_count
from .comparator import classify_status
from .engine import ReconciliationEngine, RepositoryCatalog
from .operations import (
    ModOperations,
    convertible_mods,
    find_mod,
    find_mods,
    installable_repositories,
    updatable_mods,
)
from .scanner import (
    BRANCH_ARCHIVE_SUFFIXES,
    CatalogMatcher,
    is_organization_remote,
    list_mod_folders,
)

__all__ = [
    "ReconciliationEngine",
    "RepositoryCatalog",
    "BatchExecutor",
    "BatchObserver",
    "failure_count",
    "classify_status",
    "ModOperations",
    "updatable_mods",
    "convertible_mods",
    "installable_repositories",
    "find_mod",
    "find_mods",
    "CatalogMatcher",
    "BRANCH_ARCHIVE_SUFFIXES",
    "is_organization_remote",
    "list_mod_folders",
]
