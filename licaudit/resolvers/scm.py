"""SCM resolver — normalize a manifest ``repository`` field.

The string path is an ordered table of :class:`ScmMatcher` entries. The
first matcher whose ``can_apply`` accepts the string *and* whose ``apply``
returns a result wins; a matcher that applies but cannot build a result
hands over to the next one.

Examples of accepted shorthands::

    github:user/repo              -> https://github.com/user/repo
    bitbucket:user/repo           -> https://bitbucket.org/user/repo/
    gist:11081aaa281              -> https://gist.github.com/11081aaa281
    git+ssh://git@github.com/a/b  -> https://github.com/a/b
    git@github.com:org/repo.git   -> https://github.com/org/repo.git
    chalk/supports-color          -> https://github.com/chalk/supports-color
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import urlsplit

from licaudit.resolvers.models import ScmInfo, ScmType

# "user@host:org/repo" (scp-like ssh notation)
SSH_SHORTHAND_PATTERN = re.compile(r"(.*?)@(.*?):(.*?)/(.*?)$")

# "scheme://user@host/...", captures the host
USER_IN_HOST_PATTERN = re.compile(r"://[^/@]+@([^/]+)/")

# "scheme://host:org/repo", an scp-style colon that is not a port
SCP_COLON_PATTERN = re.compile(r"^(https?://[^/:@]+):(?!\d+(?:/|$))")

# exactly one slash, e.g. "owner/repo"
OWNER_REPO_PATTERN = re.compile(r"^[^/]+/[^/]+$")

_HOSTNAME_PATTERN = re.compile(
    r"^[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?(\.[a-z0-9_]([a-z0-9_-]*[a-z0-9_])?)*\.?$",
    re.IGNORECASE,
)

# Providers known to serve https out of the box.
_HTTPS_HOSTS = ("github.com", "gitlab.com", "bitbucket.org", "bitbucket.com")


@dataclass(frozen=True)
class ScmMatcher:
    """One entry of the repository-string cascade."""

    name: str
    can_apply: Callable[[str], bool]
    apply: Callable[[str], ScmInfo | None]


def _git(url: str) -> ScmInfo:
    return ScmInfo(valid=True, type=ScmType.GIT, url=url)


def _strip_git_plus(url: str) -> str:
    if url.startswith("git+http"):
        return url[4:]
    return url


def _strip_user_in_host(url: str) -> str:
    m = USER_IN_HOST_PATTERN.search(url)
    if m is None or m.start() == 0:
        return url
    return f"{url[: m.start()]}://{m.group(1)}/{url[m.end():]}"


def _fix_scp_colon(url: str) -> str:
    return SCP_COLON_PATTERN.sub(r"\1/", url, count=1)


def _prefixed_path(prefix: str) -> Callable[[str], list[str] | None]:
    """Split ``prefix:user/repo[/...]`` into path segments (at least two)."""

    def split(value: str) -> list[str] | None:
        parts = value[len(prefix) :].split("/")
        return parts if len(parts) >= 2 else None

    return split


_github_parts = _prefixed_path("github:")
_bitbucket_parts = _prefixed_path("bitbucket:")
_gitlab_parts = _prefixed_path("gitlab:")


def _apply_github(value: str) -> ScmInfo | None:
    parts = _github_parts(value)
    if parts is None:
        return None
    return _git(f"https://github.com/{parts[0]}/{'/'.join(parts[1:])}")


def _apply_bitbucket(value: str) -> ScmInfo | None:
    parts = _bitbucket_parts(value)
    if parts is None:
        return None
    path = "/".join(parts[1:])
    if not path.endswith("/"):
        path += "/"
    return _git(f"https://bitbucket.org/{parts[0]}/{path}")


def _apply_gitlab(value: str) -> ScmInfo | None:
    parts = _gitlab_parts(value)
    if parts is None:
        return None
    return _git(f"https://gitlab.com/{parts[0]}/{'/'.join(parts[1:])}")


def _apply_gist(value: str) -> ScmInfo:
    return ScmInfo(valid=True, type=ScmType.GIST, url=f"https://gist.github.com/{value[5:]}")


def _apply_npm(value: str) -> ScmInfo:
    return ScmInfo(valid=True, type=ScmType.NPM, url=f"https://www.npmjs.com/package/{value[4:]}")


def _apply_git_scheme(value: str) -> ScmInfo:
    # keep the "://..." tail and swap the scheme in front of it
    rest = value[3:] if value.startswith("git://") else value[7:]
    scheme = "https" if "github.com" in value else "http"
    return _git(_fix_scp_colon(_strip_user_in_host(f"{scheme}{rest}")))


def _can_apply_http_git(value: str) -> bool:
    return value.startswith(("http://", "https://")) and (
        "github.com" in value or value.endswith(".git")
    )


def _apply_http_git(value: str) -> ScmInfo:
    return _git(_fix_scp_colon(_strip_user_in_host(value)))


def _apply_ssh_shorthand(value: str) -> ScmInfo | None:
    m = SSH_SHORTHAND_PATTERN.search(value)
    if m is None:
        return None
    _user, host, org, repo = m.groups()
    if "github.com" in host:
        return _git(f"https://github.com/{org}/{repo}")
    scheme = "https" if any(h in host for h in _HTTPS_HOSTS) else "http"
    return ScmInfo(valid=True, type=ScmType.OTHER, url=f"{scheme}://{host}/{org}/{repo}")


def _apply_owner_repo(value: str) -> ScmInfo:
    return _git(f"https://github.com/{value}")


def _parses_as_host_path(value: str) -> bool:
    """True if ``http://<value>`` would be a well-formed URL."""
    if not value or value.startswith("http") or "://" in value:
        return False
    if any(c.isspace() for c in value):
        return False
    try:
        parts = urlsplit(f"http://{value}")
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    host = parts.hostname or ""
    return bool(_HOSTNAME_PATTERN.match(host))


def _apply_bare_host(value: str) -> ScmInfo:
    scheme = "https" if any(h in value for h in _HTTPS_HOSTS) else "http"
    kind = ScmType.GIT if "git" in value.lower() else ScmType.OTHER
    return ScmInfo(valid=True, type=kind, url=f"{scheme}://{value}")


SCM_MATCHERS: tuple[ScmMatcher, ...] = (
    ScmMatcher("github", lambda s: s.lower().startswith("github:"), _apply_github),
    ScmMatcher("bitbucket", lambda s: s.lower().startswith("bitbucket:"), _apply_bitbucket),
    ScmMatcher("gitlab", lambda s: s.lower().startswith("gitlab:"), _apply_gitlab),
    ScmMatcher("gist", lambda s: s.lower().startswith("gist:"), _apply_gist),
    ScmMatcher("npm", lambda s: s.startswith("npm/"), _apply_npm),
    ScmMatcher(
        "git-scheme", lambda s: s.startswith(("git://", "git+ssh://")), _apply_git_scheme
    ),
    ScmMatcher("http-git", _can_apply_http_git, _apply_http_git),
    ScmMatcher(
        "ssh-shorthand", lambda s: SSH_SHORTHAND_PATTERN.search(s) is not None, _apply_ssh_shorthand
    ),
    ScmMatcher("owner-repo", lambda s: OWNER_REPO_PATTERN.match(s) is not None, _apply_owner_repo),
    ScmMatcher("bare-host", _parses_as_host_path, _apply_bare_host),
)


def _finalize(info: ScmInfo) -> ScmInfo:
    if not info.valid:
        return info
    return replace(info, type=ScmType.coerce(info.type), url=_strip_git_plus(info.url))


def _match_string(value: Any) -> ScmInfo:
    if not isinstance(value, str):
        return ScmInfo.invalid()
    candidate = _strip_git_plus(value.strip())
    if not candidate:
        return ScmInfo.invalid()

    for matcher in SCM_MATCHERS:
        if not matcher.can_apply(candidate):
            continue
        result = matcher.apply(candidate)
        if result is not None and result.valid:
            return result
    return ScmInfo.invalid()


def _match_mapping(repo: Mapping[str, Any]) -> ScmInfo:
    if "type" in repo and "url" in repo:
        directory = repo.get("directory")
        if not isinstance(directory, str):
            directory = ""
        parsed = _match_string(repo["url"])
        if parsed.valid:
            return replace(parsed, directory=directory or parsed.directory)
        # keep the declared values when the url is not a known notation
        url = repo["url"]
        if isinstance(url, str) and url.strip():
            return ScmInfo(
                valid=True,
                type=ScmType.coerce(repo["type"]),
                url=url.strip(),
                directory=directory,
            )
        return ScmInfo.invalid()

    if "url" in repo:
        return _match_string(repo["url"])

    return ScmInfo.invalid()


def resolve_scm_string(value: Any) -> ScmInfo:
    """Resolve a bare repository string (no object wrapper)."""
    return _finalize(_match_string(value))


def resolve_scm(repo_field: Any) -> ScmInfo:
    """Resolve a manifest ``repository`` value (string, mapping or None).

    Never raises; unknown input yields ``ScmInfo(valid=False)``.
    """
    if repo_field is None:
        return ScmInfo.invalid()
    if isinstance(repo_field, str):
        return _finalize(_match_string(repo_field))
    if isinstance(repo_field, Mapping):
        return _finalize(_match_mapping(repo_field))
    return ScmInfo.invalid()


def repo_base_url(scm: ScmInfo) -> str | None:
    """Browsable base URL of the repository, without ``.git`` or trailing slash."""
    if not scm.valid or not scm.url.startswith("http"):
        return None
    url = scm.url
    if url.endswith(".git"):
        url = url[:-4]
    elif url.endswith("/"):
        url = url[:-1]
    return url


def combine_subpath_with_repo(scm: ScmInfo, subpath: str | None) -> str | None:
    """Build a browsable URL to *subpath* inside the repository.

    The default branch is assumed to be ``master``. A monorepo ``directory``
    is prepended to *subpath*.
    """
    if not subpath:
        return None
    url = repo_base_url(scm)
    if url is None:
        return None

    subpath = subpath.lstrip("/")
    if scm.directory:
        subpath = f"{scm.directory.strip('/')}/{subpath}"

    if "github.com" in url:
        return f"{url}/blob/master/{subpath}"
    # e.g. https://bitbucket.org/multicoreware/x265_git/src/master/COPYING
    if "bitbucket.org" in url or "bitbucket.com" in url:
        return f"{url}/src/master/{subpath}"
    # e.g. https://gitlab.com/gitlab-org/gitlab/-/blob/master/.gitlab-ci.yml
    if "gitlab.com" in url:
        return f"{url}/-/blob/master/{subpath}"
    return f"{url}/{subpath}"
