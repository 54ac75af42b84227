"""Release check-in.

Asks a release endpoint for the latest published version and reports when the
installed scripts are out of date. The endpoint returns a JSON document in the
GitHub "latest release" shape ({"tag_name": "v1.2.3", "html_url": ...}).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .. import __version__

try:
    import certifi
    DEFAULT_CA_BUNDLE = certifi.where()
except Exception:  # pragma: no cover
    DEFAULT_CA_BUNDLE = True  # fallback to requests' default

USER_AGENT = f"exadmin/{__version__}"


@dataclass
class VersionCheckResult:
    current: str
    latest: Optional[str]
    update_available: bool
    url: Optional[str] = None


def parse_version(text: str) -> Tuple[int, ...]:
    """Dotted numeric version → tuple; a leading 'v' and suffixes are ignored.

    'v24.1.2' → (24, 1, 2); '1.0.0rc1' → (1, 0, 0)
    """
    cleaned = (text or "").strip().lstrip("vV")
    parts = []
    for piece in cleaned.split("."):
        m = re.match(r"\d+", piece)
        if not m:
            break
        parts.append(int(m.group(0)))
    return tuple(parts)


def is_newer(latest: str, current: str) -> bool:
    a, b = parse_version(latest), parse_version(current)
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)) > b + (0,) * (width - len(b))


def determine_verify(insecure: bool, ca_bundle: Optional[str]) -> Union[bool, str]:
    if insecure:
        return False
    if ca_bundle:
        return ca_bundle
    return DEFAULT_CA_BUNDLE


def _wrap_timeout(request_func, default_timeout: int):
    def wrapped(method, url, **kwargs):
        if "timeout" not in kwargs:
            kwargs["timeout"] = default_timeout
        return request_func(method, url, **kwargs)
    return wrapped


def _make_session(verify, timeout: int = 10) -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=3, connect=3, read=3,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD")
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    s.verify = verify
    s.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    s.request = _wrap_timeout(s.request, default_timeout=timeout)
    return s


def check_for_update(
    url: str,
    current: str = __version__,
    timeout: int = 10,
    verify: Union[bool, str] = True,
) -> VersionCheckResult:
    """Fetch the latest release and compare it with the running version.

    Raises:
        requests.RequestException: On network or HTTP errors.
        ValueError: If the response is not a release document.
    """
    session = _make_session(verify=verify, timeout=timeout)
    if verify is False:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    try:
        resp = session.get(url)
        resp.raise_for_status()
        data = resp.json()
    finally:
        session.close()

    if not isinstance(data, dict) or not data.get("tag_name"):
        raise ValueError("release document has no tag_name")

    latest = str(data["tag_name"])
    return VersionCheckResult(
        current=current,
        latest=latest,
        update_available=is_newer(latest, current),
        url=data.get("html_url"),
    )


def run_version_check(config, skip: bool = False) -> Optional[VersionCheckResult]:
    """Check for a newer release if enabled; failures are only reported."""
    vc = config.version_check
    if skip or not vc.enabled or not vc.url:
        return None

    try:
        result = check_for_update(
            vc.url,
            timeout=vc.timeout,
            verify=determine_verify(vc.insecure, vc.ca_bundle),
        )
    except (requests.RequestException, ValueError) as e:
        print(f"[version] Unable to check for updates: {e}")
        return None

    if result.update_available:
        where = f" at {result.url}" if result.url else ""
        print(f"[version] A newer version is available: {result.latest} (running {result.current}){where}")
    else:
        print(f"[version] Running the latest version ({result.current})")
    return result
