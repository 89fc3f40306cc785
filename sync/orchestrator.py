"""Single-source and bulk sync entry points."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Optional, Tuple

from exceptions import StoreError, SyncError, SyncInProgressError
from feeds.parser import FeedParser
from feeds.platforms import PlatformAdapter, get_adapter
from feeds.retriever import FeedRetriever
from processor.models import (
    SYNC_STATUS_ERROR,
    SYNC_STATUS_SKIPPED,
    SYNC_STATUS_SUCCESS,
    ParsedFeed,
    RunSummary,
    SourceSyncResult,
    SourceTeam,
)
from storage.dynamodb_manager import utc_now
from storage.run_log import RunLogStore
from storage.source_registry import SourceRegistry
from storage.user_directory import UserDirectory
from sync.reconciler import ReconciliationEngine

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Runs the fetch -> parse -> reconcile chain for one source or all of them.

    Each source's feed is fetched and parsed once and then reconciled for
    every profile mapped to it. A failing profile or source is recorded and
    never stops its siblings.
    """

    def __init__(
        self,
        sources: SourceRegistry,
        engine: ReconciliationEngine,
        run_log: RunLogStore,
        retriever: Optional[FeedRetriever] = None,
        parser: Optional[FeedParser] = None,
        user_directory: Optional[UserDirectory] = None,
        max_workers: int = 4,
        lock_timeout_seconds: int = 900
    ):
        self.sources = sources
        self.engine = engine
        self.run_log = run_log
        self.retriever = retriever or FeedRetriever()
        self.parser = parser or FeedParser()
        self.user_directory = user_directory
        self.max_workers = max(1, max_workers)
        self.lock_timeout_seconds = lock_timeout_seconds

    def sync_source(
        self,
        source_id: str,
        feed_url: Optional[str] = None,
        profile_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Sync a single source.

        Without a profile id only the feed's team name is refreshed and the
        number of parsed events reported; no events are stored.

        Args:
            source_id: Source to sync
            feed_url: Feed URL overriding the registered one
            profile_id: Profile to store the events for

        Returns:
            {'success': True, 'eventCount': n, 'teamName': name} or
            {'success': False, 'error': message}
        """
        try:
            source = self.sources.get_source(source_id)
        except StoreError as e:
            return {'success': False, 'error': str(e)}

        if source is None:
            return {'success': False, 'error': f"Source {source_id} not found"}

        url = feed_url or source.feed_url
        if not url:
            return {'success': False, 'error': f"Source {source_id} has no feed URL"}

        adapter = get_adapter(source.platform)

        if profile_id is None:
            try:
                parsed = self._fetch_and_parse(url, adapter)
            except SyncError as e:
                logger.error(f"Failed to read feed for source {source_id}: {e}")
                return {'success': False, 'error': str(e)}

            self._update_team_name(source, parsed.calendar_name)
            return {
                'success': True,
                'eventCount': len(parsed.events),
                'teamName': parsed.calendar_name,
            }

        try:
            self.sources.acquire_sync(source_id, self.lock_timeout_seconds)
        except SyncError as e:
            logger.warning(f"Cannot sync source {source_id}: {e}")
            return {'success': False, 'error': str(e)}

        try:
            parsed = self._fetch_and_parse(url, adapter)
            result = self.engine.reconcile(source, profile_id, parsed, adapter)
        except Exception as e:
            logger.error(f"Sync failed for source {source_id}: {e}", exc_info=True)
            self._complete(source_id, SYNC_STATUS_ERROR, str(e))
            return {'success': False, 'error': str(e)}

        self._update_team_name(source, parsed.calendar_name)
        self._complete(source_id, SYNC_STATUS_SUCCESS)
        self._stamp_users([source.user_id])

        return {
            'success': True,
            'eventCount': result.event_count,
            'teamName': parsed.calendar_name,
        }

    def sync_all(self) -> Dict[str, Any]:
        """
        Sync every registered source.

        Returns:
            {'success': True, 'summary': {...}, 'results': [...], 'logId': id}

        Raises:
            Exception: Any failure outside a single source's sync, after the
                run log has been updated with the partial counts
        """
        started = time.time()
        log_id = self.run_log.create()
        summary = RunSummary()
        results: List[Dict[str, Any]] = []
        affected_users = set()

        try:
            sources = self.sources.list_sources()
            summary.total_teams = len(sources)
            logger.info(f"Starting bulk sync of {len(sources)} sources")

            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [executor.submit(self._sync_one_source, source) for source in sources]

                for future in as_completed(futures):
                    outcome, changed = future.result()
                    results.append(outcome.to_dict())

                    if outcome.status == SYNC_STATUS_SUCCESS:
                        summary.successful += 1
                    elif outcome.status == SYNC_STATUS_ERROR:
                        summary.errors += 1
                    else:
                        summary.skipped += 1
                    summary.total_events += outcome.event_count

                    if changed:
                        affected_users.add(outcome.user_id)

            self._stamp_users(affected_users)
            summary.total_users_affected = len(affected_users)
            summary.execution_duration_ms = int((time.time() - started) * 1000)
            self.run_log.complete(log_id, summary, results)

        except Exception as e:
            logger.error(f"Bulk sync failed: {e}", exc_info=True)
            summary.total_users_affected = len(affected_users)
            summary.execution_duration_ms = int((time.time() - started) * 1000)
            try:
                self.run_log.fail(log_id, summary, e, results)
            except StoreError as log_error:
                logger.error(f"Could not record failed run {log_id}: {log_error}")
            raise

        logger.info(
            f"Bulk sync complete: {summary.successful} successful, "
            f"{summary.errors} errors, {summary.skipped} skipped, "
            f"{summary.total_events} events, {summary.total_users_affected} users affected",
            extra={'log_id': log_id, 'duration_ms': summary.execution_duration_ms}
        )

        return {
            'success': True,
            'summary': summary.to_dict(),
            'results': results,
            'logId': log_id,
        }

    def _sync_one_source(self, source: SourceTeam) -> Tuple[SourceSyncResult, bool]:
        """
        Sync one source for all its profiles.

        Returns:
            Tuple of (SourceSyncResult, whether at least one profile synced)
        """
        outcome = SourceSyncResult(
            team_id=source.source_id,
            team_name=source.team_name,
            platform=source.platform,
            user_id=source.user_id,
            status=SYNC_STATUS_SKIPPED,
            profile_count=len(source.profile_ids)
        )

        if not source.profile_ids:
            outcome.message = 'No profiles mapped to this team'
            logger.info(f"Skipping source {source.source_id}: no mapped profiles")
            return outcome, False

        try:
            self.sources.acquire_sync(source.source_id, self.lock_timeout_seconds)
        except SyncInProgressError as e:
            outcome.message = str(e)
            logger.info(f"Skipping source {source.source_id}: {e}")
            return outcome, False
        except StoreError as e:
            outcome.status = SYNC_STATUS_ERROR
            outcome.message = str(e)
            logger.error(f"Could not lock source {source.source_id}: {e}")
            return outcome, False

        adapter = get_adapter(source.platform)

        try:
            if not source.feed_url:
                raise SyncError('No feed URL configured')
            parsed = self._fetch_and_parse(source.feed_url, adapter)
        except Exception as e:
            logger.error(f"Failed to read feed for source {source.source_id}: {e}")
            outcome.status = SYNC_STATUS_ERROR
            outcome.message = str(e)
            self._complete(source.source_id, SYNC_STATUS_ERROR, outcome.message)
            return outcome, False

        synced_profiles = 0
        dropped_events = 0
        failures = []
        for profile_id in source.profile_ids:
            try:
                result = self.engine.reconcile(source, profile_id, parsed, adapter)
            except Exception as e:
                logger.error(
                    f"Sync failed for source {source.source_id}, profile {profile_id}: {e}",
                    exc_info=True
                )
                failures.append(f"Profile {profile_id}: {e}")
                continue

            synced_profiles += 1
            outcome.event_count += result.event_count
            # Every profile reads the same feed, so drops repeat per profile
            dropped_events = max(dropped_events, len(result.errors))

        self._update_team_name(source, parsed.calendar_name)
        if parsed.calendar_name:
            outcome.team_name = parsed.calendar_name

        if failures:
            outcome.status = SYNC_STATUS_ERROR
            outcome.message = '; '.join(failures)
        else:
            outcome.status = SYNC_STATUS_SUCCESS
            outcome.message = (
                f"Synced {outcome.event_count} events to {synced_profiles} profile(s)"
            )
            if dropped_events:
                outcome.message += f" ({dropped_events} unusable events skipped)"

        self._complete(source.source_id, outcome.status, outcome.message)
        return outcome, synced_profiles > 0

    def _fetch_and_parse(self, url: str, adapter: PlatformAdapter) -> ParsedFeed:
        data = self.retriever.fetch(url)
        return self.parser.parse(data, feed_url=url, adapter=adapter)

    def _update_team_name(self, source: SourceTeam, team_name: Optional[str]) -> None:
        if not team_name or team_name == source.team_name:
            return
        try:
            self.sources.update_team_name(source.source_id, team_name)
        except StoreError as e:
            logger.warning(f"Could not update team name for {source.source_id}: {e}")

    def _complete(self, source_id: str, status: str, message: Optional[str] = None) -> None:
        try:
            self.sources.complete_sync(source_id, status, message)
        except StoreError as e:
            logger.error(f"Could not record sync status for {source_id}: {e}")

    def _stamp_users(self, user_ids: Iterable[str]) -> None:
        if self.user_directory is None:
            return

        refreshed_at = utc_now()
        for user_id in user_ids:
            try:
                self.user_directory.stamp_last_refresh(user_id, refreshed_at)
            except StoreError as e:
                logger.warning(f"Could not stamp refresh time for user {user_id}: {e}")
