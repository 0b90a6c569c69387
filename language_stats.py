"""
Repository languages for a GitHub user.

- Fetches every non-fork repository of a user via GraphQL (cursor pagination)
- Aggregates per-repository language byte sizes into overall percentages
- Collapses languages under 1% into a single "Other" entry
- Assembles the response shared by the SVG and JSON routes
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import requests

import config

logger = logging.getLogger(__name__)

OTHER_THRESHOLD = 1.0
OTHER_NAME = "Other"
OTHER_COLOR = "#cccccc"

OWNER_AFFILIATIONS = ["OWNER"]
ALL_AFFILIATIONS = ["OWNER", "COLLABORATOR", "ORGANIZATION_MEMBER"]

RATE_LIMIT_MESSAGE = "API rate limit exceeded"


# -----------------------------
# Errors
# -----------------------------
class GitHubAPIError(RuntimeError):
    pass


class UserNotFoundError(GitHubAPIError):
    pass


class RateLimitedError(GitHubAPIError):
    pass


class GraphQLError(GitHubAPIError):
    pass


class TransportError(GitHubAPIError):
    pass


# -----------------------------
# Models
# -----------------------------
@dataclass
class Language:
    name: str
    size: Optional[int] = None
    color: Optional[str] = None


@dataclass
class Repository:
    id: str
    name: str
    full_name: str
    url: str
    primary_language: Optional[Language] = None
    languages: List[Language] = field(default_factory=list)


@dataclass
class LanguageStat:
    name: str
    size: int
    percentage: float
    color: Optional[str]


@dataclass
class TransformedRepository:
    """Flat repository view: languages keyed by name."""
    id: str
    name: str
    full_name: str
    language: Optional[str]
    languages: Dict[str, int]


@dataclass
class UserReposResponse:
    title: str
    username: str
    repositories: List[TransformedRepository]
    language_stats: List[LanguageStat]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "username": self.username,
            "repositories": [asdict(r) for r in self.repositories],
            "languageStats": [asdict(s) for s in self.language_stats],
        }


# -----------------------------
# GraphQL
# -----------------------------
REPOS_QUERY = """
query($username:String!, $cursor:String, $affiliations:[RepositoryAffiliation]) {
  user(login:$username) {
    repositories(
      first:100,
      after:$cursor,
      ownerAffiliations:$affiliations,
      orderBy:{field:UPDATED_AT, direction:DESC},
      isFork:false
    ) {
      pageInfo { hasNextPage endCursor }
      nodes {
        id
        name
        url
        primaryLanguage { name color }
        languages(first:50, orderBy:{field:SIZE, direction:DESC}) {
          edges { size node { name color } }
        }
      }
    }
  }
}
"""


def _headers() -> Dict[str, str]:
    h = {
        "Content-Type": "application/json",
        "User-Agent": "github-language-stats",
    }
    if config.GITHUB_TOKEN:
        h["Authorization"] = f"Bearer {config.GITHUB_TOKEN}"
    return h


def _json_or_none(resp: requests.Response) -> Optional[Dict[str, Any]]:
    try:
        body = resp.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _raise_for_graphql_errors(errors: List[Any]) -> None:
    messages = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]
    message = "\n".join(messages)
    rate_limited = any(isinstance(e, dict) and e.get("type") == "RATE_LIMITED" for e in errors)
    if rate_limited or RATE_LIMIT_MESSAGE in message:
        if RATE_LIMIT_MESSAGE not in message:
            message = f"{RATE_LIMIT_MESSAGE}: {message}"
        raise RateLimitedError(message)
    raise GraphQLError(message)


def _graphql(variables: Dict[str, Any]) -> Dict[str, Any]:
    """
    POST one page query and return the whole response body.

    GraphQL-level errors win over the HTTP status: GitHub reports some errors
    with a 4xx status and a regular ``errors`` body.
    """
    payload = {"query": REPOS_QUERY, "variables": variables}
    try:
        resp = requests.post(
            config.GITHUB_GRAPHQL_URL,
            headers=_headers(),
            json=payload,
            timeout=config.GITHUB_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise TransportError(f"GitHub GraphQL request failed: {e}") from e

    text = resp.text or ""
    if resp.status_code in (403, 429) and "rate limit" in text.lower():
        raise RateLimitedError(f"{RATE_LIMIT_MESSAGE} (HTTP {resp.status_code}): {text[:600]}")

    body = _json_or_none(resp)
    if body is not None and body.get("errors"):
        _raise_for_graphql_errors(body["errors"])

    if resp.status_code >= 400:
        raise TransportError(f"GitHub GraphQL error {resp.status_code}: {text[:600]}")
    if body is None:
        raise TransportError(f"GitHub GraphQL returned a non-JSON body (HTTP {resp.status_code})")
    return body


def _to_repository(node: Dict[str, Any], username: str) -> Repository:
    # full_name is built from the requested login, not the repository owner
    primary = node.get("primaryLanguage")
    edges = (node.get("languages") or {}).get("edges") or []
    return Repository(
        id=node.get("id"),
        name=node.get("name"),
        full_name=f"{username}/{node.get('name')}",
        url=node.get("url"),
        primary_language=Language(name=primary.get("name"), color=primary.get("color")) if primary else None,
        languages=[
            Language(
                name=(edge.get("node") or {}).get("name"),
                size=edge.get("size"),
                color=(edge.get("node") or {}).get("color"),
            )
            for edge in edges
            if edge
        ],
    )


# -----------------------------
# Fetcher
# -----------------------------
def fetch_repositories(username: str, include_all_affiliations: bool = False) -> List[Repository]:
    """
    Walk the user's repository connection page by page until ``hasNextPage``
    is false. Any failure aborts the whole walk; nothing partial is returned.
    """
    affiliations = ALL_AFFILIATIONS if include_all_affiliations else OWNER_AFFILIATIONS
    repos: List[Repository] = []
    cursor: Optional[str] = None
    page = 0

    try:
        while True:
            page += 1
            logger.debug("Fetching repositories page %d for %s (cursor=%s)", page, username, cursor)
            body = _graphql({"username": username, "cursor": cursor, "affiliations": affiliations})

            user = (body.get("data") or {}).get("user")
            if not user:
                raise UserNotFoundError("User not found")

            conn = user.get("repositories") or {}
            repos.extend(_to_repository(node, username) for node in conn.get("nodes") or [] if node)

            page_info = conn.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")
    except GitHubAPIError as e:
        logger.error("Error fetching repositories for %s on page %d: %s", username, page, e)
        raise

    logger.info("Fetched %d repositories for %s in %d page(s)", len(repos), username, page)
    return repos


# -----------------------------
# Aggregator
# -----------------------------
def calculate_language_stats(repositories: List[Repository]) -> List[LanguageStat]:
    """
    Sum language bytes across repositories and turn them into percentages.

    Only each repository's ``languages`` list counts; ``primary_language`` does
    not. The first color seen for a language name is kept. Languages below
    ``OTHER_THRESHOLD`` percent are merged into a trailing "Other" entry.
    """
    language_map: Dict[str, Dict[str, Any]] = {}
    total_bytes = 0

    for repo in repositories:
        for lang in repo.languages:
            if lang.name not in language_map:
                language_map[lang.name] = {"bytes": 0, "color": lang.color or None}
            size = lang.size or 0
            language_map[lang.name]["bytes"] += size
            total_bytes += size

    stats = sorted(
        (
            LanguageStat(
                name=name,
                size=entry["bytes"],
                percentage=(entry["bytes"] / total_bytes) * 100 if total_bytes > 0 else 0.0,
                color=entry["color"],
            )
            for name, entry in language_map.items()
        ),
        key=lambda s: s.size,
        reverse=True,
    )

    main = [s for s in stats if s.percentage >= OTHER_THRESHOLD]
    tail = [s for s in stats if s.percentage < OTHER_THRESHOLD]

    if tail:
        main.append(
            LanguageStat(
                name=OTHER_NAME,
                size=sum(s.size for s in tail),
                percentage=sum(s.percentage for s in tail),
                color=OTHER_COLOR,
            )
        )
    return main


# -----------------------------
# Assembler
# -----------------------------
def _transform(repo: Repository) -> TransformedRepository:
    languages: Dict[str, int] = {}
    for lang in repo.languages:
        languages[lang.name] = lang.size or 0
    return TransformedRepository(
        id=repo.id,
        name=repo.name,
        full_name=repo.full_name,
        language=(repo.primary_language.name or None) if repo.primary_language else None,
        languages=languages,
    )


def get_user_repos_with_stats(username: str, include_all_affiliations: bool = False) -> UserReposResponse:
    repos = fetch_repositories(username, include_all_affiliations)
    return UserReposResponse(
        title=f"GitHub Repositories of {username}",
        username=username,
        repositories=[_transform(r) for r in repos],
        language_stats=calculate_language_stats(repos),
    )
