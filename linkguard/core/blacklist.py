import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class BlacklistProvider:
    def __init__(self, path: Optional[Union[str, Path]] = None, domains: Optional[Iterable[str]] = None):
        """
        Read-only lookup over known-bad domains and URL fragments.

        The list is loaded once here and never reloaded. A missing or corrupt
        file yields an empty blacklist rather than an error.

        Args:
            path: JSON file with a "bad_domains" list
            domains: Explicit entries, used instead of a file (tests, embedding)
        """
        self.path = Path(path) if path else None
        raw = list(domains) if domains is not None else self._load(self.path)
        self.entries = self._clean(raw)
        self._exact = frozenset(self.entries)

    def _load(self, path: Optional[Path]) -> List[str]:
        if path is None:
            return []
        if not path.exists():
            logger.warning(f"⚠️ No blacklist file found at {path}, using empty list")
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            domains = (data.get('bad_domains') or []) if isinstance(data, dict) else data
            logger.info(f"✓ Loaded {len(domains)} blacklist entries from: {path}")
            return domains
        except json.JSONDecodeError as e:
            logger.error(f"❌ JSON decode error in blacklist: {e}")
            return []
        except IOError as e:
            logger.error(f"❌ IO error loading blacklist: {e}")
            return []

    @staticmethod
    def _clean(raw: Iterable) -> List[str]:
        cleaned = []
        for entry in raw:
            if not isinstance(entry, str):
                continue
            entry = entry.strip().lower()
            if entry and not entry.startswith('#'):
                cleaned.append(entry)
        return cleaned

    def __len__(self) -> int:
        return len(self.entries)

    def contains(self, url: str, domain: Optional[str] = None) -> bool:
        """True when the domain is listed or the URL contains a listed fragment"""
        if domain and domain.lower() in self._exact:
            return True
        url_lower = (url or '').lower()
        return any(entry in url_lower for entry in self.entries)
