from api.src.services.github import (
    RepositoryError,
    verify_signature,
    parse_repo_info,
    clone_repository,
    cleanup_repo,
    read_file_at_commit,
)
from api.src.services.runs import (
    create_run,
    update_run,
    get_run,
    list_runs,
    execute_run,
)

__all__ = [
    "RepositoryError",
    "verify_signature",
    "parse_repo_info",
    "clone_repository",
    "cleanup_repo",
    "read_file_at_commit",
    "create_run",
    "update_run",
    "get_run",
    "list_runs",
    "execute_run",
]
