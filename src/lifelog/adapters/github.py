"""GitHub activity adapter.

Input is one repository's activity for a day, as assembled by the collector::

    {"repository": "acme/api", "date": "2025-10-29T02:15:00Z",
     "project_type": "Work",
     "commits": [{"sha": "...", "message": "...", "additions": 10,
                  "deletions": 2, "files": ["a.py"]}],
     "pull_requests": [{"number": 42, "title": "Add retries"}]}

``date`` is the UTC timestamp of the first commit; the canonical date is its
local calendar day, so late-evening commits stay on the right day.  The
unique id combines the repository with that local day.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from src.lifelog.base import IngestAdapter

logger = logging.getLogger("lifelog.adapters.github")


class GitHubAdapter(IngestAdapter):
    """Per-repository daily activity → PR database records."""

    SOURCE_ID = "github"
    DISPLAY_NAME = "GitHub PRs"

    def unique_id(self, raw: dict, day: date) -> str | None:
        repo = raw.get("repository")
        if not repo:
            return None
        return f"{repo}-{day.isoformat()}"

    def raw_date(self, raw: dict) -> Any:
        return raw.get("date")

    def display_name(self, raw: dict, day: date) -> str:
        return f"{raw.get('repository', 'unknown')} {day.isoformat()}"

    def to_values(self, raw: dict, day: date) -> dict[str, Any]:
        commits = raw.get("commits") or []
        prs = raw.get("pull_requests") or []

        added = sum(self._safe_int(c.get("additions")) or 0 for c in commits)
        deleted = sum(self._safe_int(c.get("deletions")) or 0 for c in commits)
        files = sorted({f for c in commits for f in (c.get("files") or [])})

        values = self._mapped(raw)
        values.update({
            "unique_id": self.unique_id(raw, day),
            "date": day,
            "commits_count": len(commits),
            "commit_messages": "\n".join(
                (c.get("message") or "").splitlines()[0] for c in commits if c.get("message")
            ),
            "pr_titles": ", ".join(p["title"] for p in prs if p.get("title")),
            "pull_requests_count": len(prs),
            "files_changed": len(files),
            "files_changed_list": ", ".join(files),
            "total_lines_added": added,
            "total_lines_deleted": deleted,
            "total_changes": added + deleted,
            "calendar_created": False,
        })
        return values
