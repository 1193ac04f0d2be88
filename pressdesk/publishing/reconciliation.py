# pressdesk/publishing/reconciliation.py
"""
Published-post reconciliation.

Re-checks every locally published article against its WordPress post and
deletes the local article (with its publishing records) only when WordPress
positively says the post is gone. Each check lands in one of three buckets:

    PRESENT       the post answered with an id; nothing to do
    ABSENT        404/410, or a non-2xx rest_post_invalid_id error
    UNVERIFIABLE  everything else: network error, timeout, auth failure,
                  5xx/429, garbage body, 2xx without an id, other 4xx

Only ABSENT deletes anything, so a network blip or rotten credentials never
cost data. Site groups run concurrently; articles inside a group run one
after another.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pressdesk.core.safe_logger import log_summary
from pressdesk.integrations.wordpress import PostLookup, WordPressRemoteClient, WpCredentials

from .models import Article, ArticlePublishing, Site

logger = logging.getLogger(__name__)

__all__ = ['ReconciliationJob', 'ReconciliationReport', 'Verdict', 'classify_lookup']


class Verdict(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    UNVERIFIABLE = "unverifiable"


ABSENT_STATUSES = (404, 410)
ABSENT_CODES = ("rest_post_invalid_id",)


def classify_lookup(lookup: PostLookup) -> Verdict:
    if lookup.auth_failed:
        return Verdict.UNVERIFIABLE
    if not lookup.decodable:
        return Verdict.UNVERIFIABLE
    if lookup.status_code >= 500 or lookup.status_code == 429:
        return Verdict.UNVERIFIABLE
    if lookup.post is not None:
        return Verdict.PRESENT
    if lookup.status_code in ABSENT_STATUSES:
        return Verdict.ABSENT
    code = lookup.payload.get("code") if isinstance(lookup.payload, dict) else None
    if not 200 <= lookup.status_code < 300 and code in ABSENT_CODES:
        return Verdict.ABSENT
    # 2xx without an id, other 4xx: not a statement that the post is gone
    return Verdict.UNVERIFIABLE


@dataclass
class GroupResult:
    site_id: str
    checked: int = 0
    present: int = 0
    unverifiable: int = 0
    delete_failures: int = 0
    deleted_ids: List[str] = field(default_factory=list)


@dataclass
class ReconciliationReport:
    deleted_ids: List[str] = field(default_factory=list)
    checked: int = 0
    present: int = 0
    unverifiable: int = 0
    skipped_without_record: int = 0
    delete_failures: int = 0
    failed_sites: List[str] = field(default_factory=list)
    articles: List[Article] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deletedCount": self.deleted_count,
            "deletedIds": list(self.deleted_ids),
            "articles": [a.to_public_dict() for a in self.articles],
            "checked": self.checked,
            "present": self.present,
            "unverifiable": self.unverifiable,
            "skippedWithoutRecord": self.skipped_without_record,
            "deleteFailures": self.delete_failures,
            "failedSites": list(self.failed_sites),
        }


class ReconciliationJob:
    """On-demand sweep; safe to run repeatedly"""

    def __init__(self, storage, client: WordPressRemoteClient):
        self.storage = storage
        self.client = client

    async def run(self) -> ReconciliationReport:
        articles = await self.storage.list_published_articles()
        records = await self.storage.list_publishing_records()
        sites = {site.id: site for site in await self.storage.list_sites()}

        report = ReconciliationReport()

        latest: Dict[str, ArticlePublishing] = {}
        for record in records:
            current = latest.get(record.article_id)
            if current is None or _newer(record, current):
                latest[record.article_id] = record

        groups: Dict[str, List[Tuple[Article, ArticlePublishing]]] = {}
        for article in articles:
            record = latest.get(article.id)
            if record is None:
                report.skipped_without_record += 1
                continue
            groups.setdefault(record.site_id, []).append((article, record))

        site_ids = list(groups)
        results = await asyncio.gather(
            *(self._reconcile_group(sites.get(site_id), site_id, groups[site_id]) for site_id in site_ids),
            return_exceptions=True,
        )

        for site_id, result in zip(site_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"❌ Reconciliation of site {site_id} failed: {result!r}")
                report.failed_sites.append(site_id)
                continue
            report.checked += result.checked
            report.present += result.present
            report.unverifiable += result.unverifiable
            report.delete_failures += result.delete_failures
            report.deleted_ids.extend(result.deleted_ids)

        report.articles = await self.storage.list_articles()

        log_summary("Reconciliation finished", {
            "sites": len(site_ids),
            "checked": report.checked,
            "present": report.present,
            "unverifiable": report.unverifiable,
            "deleted": report.deleted_count,
            "delete_failures": report.delete_failures,
            "failed_sites": len(report.failed_sites),
        }, logger_name=__name__)
        return report

    async def _resolve_credentials(self, site: Site, owner_ids: Sequence[str]) -> Optional[WpCredentials]:
        """First credential of any article owner, else the site's admin login"""
        credentials = await self.storage.list_credentials_for_users(owner_ids, site.id)
        if credentials:
            return credentials[0].credentials()
        return site.admin_fallback_credentials()

    async def _reconcile_group(self, site: Optional[Site], site_id: str,
                               items: List[Tuple[Article, ArticlePublishing]]) -> GroupResult:
        result = GroupResult(site_id=site_id)

        if site is None:
            logger.warning(f"⚠️ Site {site_id} no longer exists; {len(items)} articles left untouched")
            result.unverifiable = len(items)
            return result

        owner_ids: List[str] = []
        for article, _ in items:
            if article.user_id not in owner_ids:
                owner_ids.append(article.user_id)

        credentials = await self._resolve_credentials(site, owner_ids)
        if credentials is None:
            logger.warning(f"⚠️ No credentials to check site {site_id}; {len(items)} articles left untouched")
            result.unverifiable = len(items)
            return result

        for article, record in items:
            result.checked += 1
            try:
                lookup = await self.client.fetch_post(site.api_url, credentials, record.wp_post_id)
            except Exception as e:
                logger.warning(f"⚠️ Post {record.wp_post_id} on site {site_id} unverifiable: {e}")
                result.unverifiable += 1
                continue

            verdict = classify_lookup(lookup)
            if verdict is Verdict.PRESENT:
                result.present += 1
            elif verdict is Verdict.UNVERIFIABLE:
                logger.warning(
                    f"⚠️ Post {record.wp_post_id} on site {site_id} unverifiable (HTTP {lookup.status_code})"
                )
                result.unverifiable += 1
            else:
                try:
                    await self.storage.delete_article_with_records(article.id)
                except Exception as e:
                    logger.error(
                        f"❌ Post {record.wp_post_id} gone from site {site_id} but removing "
                        f"article {article.id} failed: {e}"
                    )
                    result.delete_failures += 1
                    continue
                result.deleted_ids.append(article.id)
                logger.info(f"🗑️ Post {record.wp_post_id} gone from site {site_id}; removed article {article.id}")

        return result


def _newer(candidate: ArticlePublishing, current: ArticlePublishing) -> bool:
    if candidate.published_at is None:
        return False
    if current.published_at is None:
        return True
    return candidate.published_at > current.published_at
