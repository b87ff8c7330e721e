# brewer/modules/issues.py
"""
Issue lookup against the bug tracker.

search(name) returns the URLs of existing reports that mention the formula.
Any network or decoding problem degrades to an empty list; the lookup must
never abort the failure report it decorates.
"""

from __future__ import annotations
from typing import List, Optional

import requests

from brewer.modules.config import Settings
from brewer.modules import logger as _logger

USER_AGENT = "brewer (+issue-lookup)"
MAX_RESULTS = 5


class IssueLookup:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None,
                 logger: Optional[_logger.Logger] = None):
        self.url = settings.issues_url
        self.repo = settings.issues_repo
        self.timeout = settings.issues_timeout
        self.session = session or requests.Session()
        self.log = logger or _logger.Logger("issues", settings)

    def _query(self, name: str) -> str:
        q = f"{name} in:title is:issue"
        if self.repo:
            q += f" repo:{self.repo}"
        return q

    def search(self, name: str) -> List[str]:
        try:
            resp = self.session.get(
                self.url,
                params={"q": self._query(name), "per_page": MAX_RESULTS},
                headers={"User-Agent": USER_AGENT, "Accept": "application/vnd.github+json"},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            items = resp.json().get("items") or []
        except (requests.RequestException, ValueError, AttributeError) as e:
            self.log.debug(f"Issue lookup for {name} failed: {e}")
            return []
        urls = []
        for item in items[:MAX_RESULTS]:
            url = item.get("html_url") if isinstance(item, dict) else None
            if url:
                urls.append(url)
        return urls
