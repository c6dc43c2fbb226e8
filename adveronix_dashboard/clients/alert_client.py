from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence

import requests

from adveronix_dashboard.models import Finding


SEVERITY_COLORS = {
    "high": 15158332,
    "medium": 16776960,
    "low": 3066993,
    "info": 3066993,
}
MAX_EMBED_FIELDS = 25


class AlertClient:
    """Posts data quality findings to a Discord-compatible webhook."""

    def __init__(self, webhook_url: str = "", timeout_sec: int = 15, username: str = "Data Monitor") -> None:
        self.webhook_url = webhook_url.strip()
        self.timeout_sec = max(1, int(timeout_sec))
        self.username = username

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    @staticmethod
    def _color(findings: Sequence[Finding]) -> int:
        severities = {finding.severity for finding in findings}
        for level in ("high", "medium", "low"):
            if level in severities:
                return SEVERITY_COLORS[level]
        return SEVERITY_COLORS["info"]

    def build_payload(self, title: str, findings: Sequence[Finding]) -> dict[str, Any]:
        fields = [
            {
                "name": f"[{finding.severity.upper()}] {finding.title}"[:256],
                "value": f"{finding.details}\n{finding.recommendation}".strip()[:1024],
                "inline": False,
            }
            for finding in findings[:MAX_EMBED_FIELDS]
        ]
        return {
            "username": self.username,
            "embeds": [
                {
                    "title": title,
                    "description": f"{len(findings)} data quality finding(s).",
                    "color": self._color(findings),
                    "fields": fields,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "footer": {"text": self.username},
                }
            ],
        }

    def send(self, title: str, findings: Sequence[Finding]) -> bool:
        """Return False when nothing was sent (no webhook or no findings)."""
        if not self.configured or not findings:
            return False
        try:
            response = requests.post(
                self.webhook_url,
                json=self.build_payload(title, findings),
                timeout=self.timeout_sec,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise RuntimeError(f"Alert webhook failed: {exc}") from exc
        return True
