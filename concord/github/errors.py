"""GitHub Gateway errors."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, message: str | None = None) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        detail = f": {message}" if message else ""
        return cls(f"GitHub REST HTTP {status_code}{detail}", status_code=status_code)

    @classmethod
    def transport(cls, exc: BaseException) -> GitHubAPIError:
        """Return an error for connection, timeout and protocol failures."""
        return cls(f"GitHub REST transport error: {exc}")


class GitHubResponseShapeError(RuntimeError):
    """Raised when GitHub REST responses do not match the expected shape."""

    @classmethod
    def undecodable(cls, resource: str, detail: object) -> GitHubResponseShapeError:
        """Return an error for a response body that failed to decode."""
        return cls(f"GitHub REST response for {resource} is malformed: {detail}")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def missing_token(cls) -> GitHubConfigError:
        """Return an error when no GitHub token is configured."""
        return cls("CONCORD_GITHUB_TOKEN is required for GitHub API")

    @classmethod
    def empty_token(cls) -> GitHubConfigError:
        """Return an error when the provided token is empty."""
        return cls("GitHub token must be non-empty")
