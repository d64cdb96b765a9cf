import base64, logging, time
from typing import Any, Dict, List, Optional, Union

import requests

from .errors import HostingError, MissingFileError, VersionConflictError
from .models import RepoFile

log = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"

MIT_LICENSE = """MIT License

Copyright (c) %YEAR% %AUTHOR%

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

def render_license(owner: str, year: Optional[str] = None) -> str:
    return MIT_LICENSE.replace("%YEAR%", year or time.strftime("%Y")).replace("%AUTHOR%", owner)

def _b64(content: Union[str, bytes]) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return base64.b64encode(content).decode("ascii")

class GitHubClient:
    """
    Thin wrapper over the GitHub REST API covering what the deploy pipeline needs:
    repositories, contents (with sha-guarded updates), commits and Pages builds.
    """

    def __init__(
        self,
        username: str,
        token: str,
        committer_name: str = "",
        committer_email: str = "",
        api_base: str = "https://api.github.com",
        branch: str = "main",
        pages_path: str = "/",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.username = username
        self.committer = {"name": committer_name or username, "email": committer_email}
        self.api_base = api_base.rstrip("/")
        self.branch = branch
        self.pages_path = pages_path
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        })

    # ---------- urls ----------
    def repo_url(self, repo: str) -> str:
        return f"https://github.com/{self.username}/{repo}"

    def pages_url(self, repo: str) -> str:
        return f"https://{self.username}.github.io/{repo}/"

    def _repo_api(self, repo: str, suffix: str = "") -> str:
        return f"{self.api_base}/repos/{self.username}/{repo}{suffix}"

    # ---------- transport ----------
    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            r = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise HostingError(f"{method} {url} failed: {e}") from e
        if not 200 <= r.status_code < 300:
            raise HostingError(
                f"{method} {url}: non-2xx response {r.status_code} - {r.text[:500]}",
                status_code=r.status_code,
                body=r.text,
            )
        return r

    # ---------- repositories ----------
    def check_connectivity(self) -> None:
        self._request("GET", f"{self.api_base}/users/{self.username}")

    def list_repositories(self) -> List[Dict[str, Any]]:
        repos: List[Dict[str, Any]] = []
        page = 1
        while True:
            r = self._request(
                "GET",
                f"{self.api_base}/users/{self.username}/repos",
                params={"per_page": 100, "page": page},
            )
            batch = r.json()
            repos.extend(batch)
            if len(batch) < 100:
                return repos
            page += 1

    def create_repository(self, repo: str) -> None:
        log.info("creating repository %s/%s", self.username, repo)
        self._request("POST", f"{self.api_base}/user/repos", json={"name": repo, "private": False})

    def delete_repository(self, repo: str) -> None:
        log.info("deleting repository %s/%s", self.username, repo)
        self._request("DELETE", self._repo_api(repo))

    def enable_pages(self, repo: str) -> None:
        self._request(
            "POST",
            self._repo_api(repo, "/pages"),
            json={"source": {"branch": self.branch, "path": self.pages_path}},
        )

    def setup_repository(self, repo: str, license_owner: str) -> None:
        self.create_file(repo, "LICENSE", render_license(license_owner), "init: add license")
        self.enable_pages(repo)

    # ---------- contents ----------
    def create_file(self, repo: str, path: str, content: Union[str, bytes], message: str) -> None:
        self._request(
            "PUT",
            self._repo_api(repo, f"/contents/{path}"),
            json={"message": message, "committer": self.committer, "content": _b64(content)},
        )

    def get_file(self, repo: str, path: str) -> RepoFile:
        try:
            r = self._request("GET", self._repo_api(repo, f"/contents/{path}"))
        except HostingError as e:
            if e.status_code == 404:
                raise MissingFileError(f"{repo}/{path} not found", 404, e.body) from e
            raise
        data = r.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise HostingError(f"{repo}/{path} is not a file")
        if data.get("encoding") != "base64":
            raise HostingError(f"unexpected encoding: {data.get('encoding')}")
        content = base64.b64decode(data.get("content", "")).decode("utf-8")
        return RepoFile(filename=path, sha=data["sha"], content=content)

    def update_file(self, repo: str, path: str, content: str, message: str, sha: str) -> None:
        try:
            self._request(
                "PUT",
                self._repo_api(repo, f"/contents/{path}"),
                json={
                    "message": message,
                    "committer": self.committer,
                    "content": _b64(content),
                    "sha": sha,
                },
            )
        except HostingError as e:
            if e.status_code == 409 or (e.status_code == 422 and "does not match" in e.body):
                raise VersionConflictError(
                    f"{repo}/{path} changed since sha {sha[:7]} was read", e.status_code, e.body
                ) from e
            raise

    # ---------- commits / pages ----------
    def latest_commit_sha(self, repo: str) -> str:
        r = self._request("GET", self._repo_api(repo, "/commits"), params={"per_page": 1})
        commits = r.json()
        if not commits:
            raise HostingError(f"no commits found in {repo}")
        return commits[0]["sha"]

    def list_pages_builds(self, repo: str) -> List[Dict[str, Any]]:
        return self._request("GET", self._repo_api(repo, "/pages/builds")).json()
