"""GitHub repository transport over the Git Data REST API.

Every batch of changes is written as one commit: blobs are uploaded
first, then a single tree on top of the branch head, a commit pointing
at it, and finally a fast-forward of the branch ref.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from obsidian_syncer.config import GitSettings
from obsidian_syncer.errors import ConfigError, RepositoryError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
FILE_MODE = "100644"
RETRY_STATUSES = {429, 500, 502, 503, 504}

COMMIT_AUTHOR = {"name": "Obsidian Syncer", "email": "obsidian-syncer@users.noreply.github.com"}


class TransientResponseError(Exception):
    """A response worth retrying (rate limit or server error)."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


RETRY_STOP = stop_after_attempt(4)
RETRY_WAIT = wait_exponential(multiplier=0.5, max=8)
RETRY_IF = retry_if_exception_type((httpx.TransportError, TransientResponseError))


@dataclass
class TreeEntry:
    path: str
    sha: str
    type: str = "blob"


@dataclass
class RepositoryTree:
    """A recursive snapshot of the repository at one commit."""
    sha: str
    commit_sha: str
    entries: List[TreeEntry] = field(default_factory=list)

    def blobs(self) -> List[TreeEntry]:
        return [entry for entry in self.entries if entry.type == "blob"]


@dataclass
class FileChange:
    """A file to write in the next commit.

    Text files are uploaded as utf-8, binaries as base64.
    """
    path: str
    content: str
    encoding: str = "utf-8"


@dataclass
class RemoteFile:
    path: str
    sha: str
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class GitHubRepository:
    """Async client for one branch of one GitHub repository."""

    def __init__(
        self,
        repository: str,
        token: Optional[str] = None,
        branch: str = "main",
        api_url: str = DEFAULT_API_URL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize GitHubRepository.

        Args:
            repository: "owner/name"
            token: API token, requests are anonymous without one
            branch: Branch that is read and fast-forwarded
            api_url: Base URL of the REST API
            client: Preconfigured client, mostly for tests
        """
        if repository.count("/") != 1:
            raise ConfigError(f"Repository must look like 'owner/name', got {repository!r}")

        self.repository = repository
        self.branch = branch
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "obsidian-syncer",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

        self.base_url = f"{api_url.rstrip('/')}/repos/{repository}/"
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=30.0)

    @classmethod
    def from_settings(cls, settings: GitSettings, client: Optional[httpx.AsyncClient] = None) -> "GitHubRepository":
        if not settings.repository:
            raise ConfigError("git.repository is not set")
        return cls(
            settings.repository,
            token=settings.resolved_token(),
            branch=settings.branch,
            api_url=settings.api_url,
            client=client,
        )

    async def __aenter__(self) -> "GitHubRepository":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @retry(stop=RETRY_STOP, wait=RETRY_WAIT, retry=RETRY_IF, reraise=True)
    async def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        response = await self.client.request(
            method, self.base_url + endpoint, headers=self.headers, **kwargs
        )
        if response.status_code in RETRY_STATUSES:
            raise TransientResponseError(response)
        return response

    async def _request(
        self, method: str, endpoint: str, missing_ok: bool = False, **kwargs: Any
    ) -> Optional[Dict[str, Any]]:
        try:
            response = await self._send(method, endpoint, **kwargs)
        except TransientResponseError as e:
            response = e.response
        except httpx.HTTPError as e:
            raise RepositoryError(f"{method} {endpoint} failed: {e}") from e

        if missing_ok and response.status_code == 404:
            return None
        if response.is_error:
            raise RepositoryError(
                f"{method} {endpoint} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    async def get_head_sha(self) -> str:
        data = await self._request("GET", f"git/ref/heads/{self.branch}")
        return data["object"]["sha"]

    async def get_tree(self, ref: Optional[str] = None) -> RepositoryTree:
        """Fetch the full recursive tree of a commit.

        Args:
            ref: Commit sha, defaults to the head of the branch
        """
        commit_sha = ref or await self.get_head_sha()
        commit = await self._request("GET", f"git/commits/{commit_sha}")
        tree_sha = commit["tree"]["sha"]
        data = await self._request("GET", f"git/trees/{tree_sha}", params={"recursive": "1"})
        if data.get("truncated"):
            logger.warning("Tree of %s is truncated, some files will be missing", self.repository)
        entries = [
            TreeEntry(path=item["path"], sha=item["sha"], type=item["type"])
            for item in data.get("tree", [])
        ]
        return RepositoryTree(sha=tree_sha, commit_sha=commit_sha, entries=entries)

    async def get_file(self, path: str) -> Optional[RemoteFile]:
        """Fetch one file from the branch, or None if it does not exist."""
        data = await self._request(
            "GET", f"contents/{path.lstrip('/')}", missing_ok=True, params={"ref": self.branch}
        )
        if data is None or isinstance(data, list):
            return None
        content = base64.b64decode(data.get("content", "")) if data.get("content") else b""
        return RemoteFile(path=data.get("path", path), sha=data["sha"], content=content)

    async def get_text(self, path: str) -> Optional[str]:
        remote_file = await self.get_file(path)
        return remote_file.text if remote_file else None

    async def create_blob(self, change: FileChange) -> str:
        data = await self._request(
            "POST", "git/blobs", json={"content": change.content, "encoding": change.encoding}
        )
        return data["sha"]

    async def commit(
        self,
        message: str,
        changes: Optional[List[FileChange]] = None,
        deletions: Optional[List[str]] = None,
    ) -> Optional[str]:
        """Write changes and deletions as a single commit on the branch.

        Args:
            message: Commit message
            changes: Files to add or overwrite
            deletions: Repository paths to remove

        Returns:
            The new commit sha, or None if there was nothing to commit

        Raises:
            RepositoryError: If any request fails; the branch is then
                left where it was
        """
        changes = changes or []
        deletions = deletions or []
        if not changes and not deletions:
            return None

        head_sha = await self.get_head_sha()
        head = await self._request("GET", f"git/commits/{head_sha}")

        tree_items = []
        for change in changes:
            blob_sha = await self.create_blob(change)
            tree_items.append({"path": change.path, "mode": FILE_MODE, "type": "blob", "sha": blob_sha})
        for path in deletions:
            tree_items.append({"path": path, "mode": FILE_MODE, "type": "blob", "sha": None})

        tree = await self._request(
            "POST", "git/trees", json={"base_tree": head["tree"]["sha"], "tree": tree_items}
        )
        commit = await self._request(
            "POST",
            "git/commits",
            json={
                "message": message,
                "tree": tree["sha"],
                "parents": [head_sha],
                "author": COMMIT_AUTHOR,
            },
        )
        await self._request("PATCH", f"git/refs/heads/{self.branch}", json={"sha": commit["sha"]})

        logger.info(
            "Committed %d changes and %d deletions to %s@%s",
            len(changes), len(deletions), self.repository, self.branch,
        )
        return commit["sha"]
