"""ModSync - keep organization game mods in sync with their git repositories."""

__version__ = "0.1.0"

from .api import CatalogClient  # noqa: E402
from .exceptions import (  # noqa: E402
    ModSyncAPIError,
    ModSyncAuthenticationError,
    ModSyncConfigError,
    ModSyncError,
    ModSyncGitNotFoundError,
    ModSyncInvalidResponseError,
    ModSyncNetworkError,
    ModSyncNotFoundError,
    ModSyncPermissionError,
    ModSyncRateLimitError,
)
from .git import GitClient, GitResult  # noqa: E402
from .models import (  # noqa: E402
    BatchResult,
    CommitInfo,
    InstalledMod,
    ModSource,
    ModStatus,
    RemoteRepository,
)
from .sync import BatchExecutor, ModOperations, ReconciliationEngine  # noqa: E402

__all__ = [
    "__version__",
    "CatalogClient",
    "GitClient",
    "GitResult",
    "ReconciliationEngine",
    "BatchExecutor",
    "ModOperations",
    "BatchResult",
    "CommitInfo",
    "InstalledMod",
    "ModSource",
    "ModStatus",
    "RemoteRepository",
    "ModSyncError",
    "ModSyncAPIError",
    "ModSyncAuthenticationError",
    "ModSyncConfigError",
    "ModSyncGitNotFoundError",
    "ModSyncInvalidResponseError",
    "ModSyncNetworkError",
    "ModSyncNotFoundError",
    "ModSyncPermissionError",
    "ModSyncRateLimitError",
]
