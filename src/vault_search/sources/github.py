"""
Markdown notes fetched from a GitHub-hosted vault repository.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from ..errors import IngestionError
from ..models import Document


logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
PUBLIC_PREFIX = "Public/"
_EXCLUDED_PREFIXES: tuple[str, ...] = ("Templates/", "Archive/", ".obsidian/")
_EXCLUDED_FILES = frozenset({"CLAUDE.md"})
_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)


def parse_frontmatter(content: str) -> tuple[dict[str, str], str]:
    """Split ``key: value`` frontmatter from a markdown body."""
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    frontmatter: dict[str, str] = {}
    for line in match.group(1).split("\n"):
        key, sep, value = line.partition(":")
        if not sep:
            continue
        frontmatter[key.strip()] = value.strip().strip("\"'")
    return frontmatter, match.group(2)


def is_indexable_note(path: str, *, public_only: bool = False) -> bool:
    if not path.endswith(".md"):
        return False
    if public_only:
        return path.startswith(PUBLIC_PREFIX)
    if path.startswith(_EXCLUDED_PREFIXES) or "node_modules/" in path:
        return False
    return path not in _EXCLUDED_FILES


def note_title(path: str, frontmatter: dict[str, str]) -> str:
    title = frontmatter.get("title")
    if title:
        return title
    filename = path.rsplit("/", 1)[-1]
    return filename[: -len(".md")] if filename.endswith(".md") else filename


class GitHubVaultSource:
    """Fetch vault notes through the GitHub REST API."""

    def __init__(
        self,
        repo: str | None = None,
        token: str | None = None,
        *,
        branch: str = "main",
        public_only: bool = False,
        max_concurrency: int = 8,
        api_url: str = GITHUB_API_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        resolved_repo = repo or os.getenv("GITHUB_REPO")
        if not resolved_repo:
            raise ValueError(
                "GITHUB_REPO not found. Provide repo or set the environment variable."
            )
        self.repo = resolved_repo
        self.token = token or os.getenv("GITHUB_TOKEN")
        self.branch = branch
        self.public_only = public_only
        self.api_url = api_url.rstrip("/")
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._client = client

    async def fetch_documents(self) -> list[Document]:
        async with self._session() as client:
            paths = await self._fetch_tree(client)
            notes = await asyncio.gather(*(self._fetch_note(client, path) for path in paths))
        documents = [note for note in notes if note is not None]
        logger.info(
            "Fetched %d of %d note(s) from %s", len(documents), len(paths), self.repo
        )
        return documents

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=30.0) as client:
            yield client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "vault-search",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _fetch_tree(self, client: httpx.AsyncClient) -> list[str]:
        url = f"{self.api_url}/repos/{self.repo}/git/trees/{self.branch}"
        try:
            response = await client.get(
                url, params={"recursive": "1"}, headers=self._headers()
            )
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise IngestionError(f"GitHub tree fetch failed for {self.repo}: {exc}") from exc

        paths = [
            str(item["path"])
            for item in data.get("tree", [])
            if item.get("type") == "blob"
            and is_indexable_note(str(item.get("path", "")), public_only=self.public_only)
        ]
        paths.sort()
        return paths

    async def _fetch_note(self, client: httpx.AsyncClient, path: str) -> Document | None:
        url = f"{self.api_url}/repos/{self.repo}/contents/{path}"
        async with self._semaphore:
            try:
                response = await client.get(
                    url, params={"ref": self.branch}, headers=self._headers()
                )
            except httpx.HTTPError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                return None

        if response.status_code != 200:
            logger.warning("Skipping %s: HTTP %d", path, response.status_code)
            return None

        try:
            encoded = str(response.json()["content"]).replace("\n", "")
            content = base64.b64decode(encoded).decode("utf-8")
        except (ValueError, KeyError) as exc:
            logger.warning("Skipping %s: undecodable content (%s)", path, exc)
            return None

        frontmatter, body = parse_frontmatter(content)
        return Document(
            id=f"note:{path}",
            content_type="note",
            title=note_title(path, frontmatter),
            body=body,
        )
