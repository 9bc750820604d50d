"""
Main orchestration for the Marketplace Watcher system.

``CheckOrchestrator`` runs one check cycle: it groups active watches into
scrape groups, searches each group once, refines the results, applies every
owner's price ceiling and turns unseen listings and price drops into
notifications. ``ApplicationOrchestrator`` owns the long-lived resources
(database, browser session, Telegram dispatcher), schedules cycles and runs
retention maintenance.
"""

import asyncio
import signal
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .components.alert_formatter import AlertFormatter
from .components.browser_session import BrowserSession
from .components.message_dispatcher import TelegramDispatcher
from .components.notifier import LoggingOperatorAlerter, TelegramNotifier
from .components.relevance_refiner import create_refiner
from .interfaces import (
    IConfigurationManager,
    INotificationTransport,
    IOperatorAlerter,
    IRelevanceRefiner,
    ISeenStore,
    IWatchStore,
)
from .models.config import Configuration
from .models.filters import serialize_filters
from .models.listing import Listing
from .models.summary import CycleSummary, ScrapeGroup
from .models.watch import Watch
from .platforms.registry import PlatformRegistry, create_default_registry
from .services.config_manager import ConfigurationManager
from .services.database import Database
from .services.seen_store import SeenStore
from .services.watch_service import WatchService
from .services.watch_store import WatchStore
from .utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    RetryConfig,
    get_degradation_manager,
    get_error_tracker,
    with_error_handling,
)
from .utils.logging import LoggingManager, get_logger, get_logging_stats, setup_logging
from .utils.price import parse_price
from .utils.rate_limiter import ScrapeThrottle

MAINTENANCE_INTERVAL = timedelta(hours=24)


class CheckOrchestrator:
    """Runs check cycles over every active watch."""

    def __init__(
        self,
        watch_store: IWatchStore,
        seen_store: ISeenStore,
        registry: PlatformRegistry,
        refiner: IRelevanceRefiner,
        notifier: INotificationTransport,
        operator_alerter: IOperatorAlerter,
        throttle: Optional[ScrapeThrottle] = None,
        staleness_threshold: int = 5,
    ):
        """
        Initialize the check orchestrator.

        Args:
            watch_store: Source of active watches
            seen_store: Dedup / price-change ledger
            registry: Platform adapters by canonical id
            refiner: Relevance refiner applied once per scrape group
            notifier: Delivery of new-listing and price-drop alerts
            operator_alerter: Escalation channel for failures and staleness
            throttle: Politeness delay between scrape groups
            staleness_threshold: Consecutive all-empty cycles before alerting
        """
        self.watch_store = watch_store
        self.seen_store = seen_store
        self.registry = registry
        self.refiner = refiner
        self.notifier = notifier
        self.operator_alerter = operator_alerter
        self.throttle = throttle or ScrapeThrottle(0)
        self.staleness_threshold = staleness_threshold

        self.logger = get_logger("orchestrator.check")
        self.error_tracker = get_error_tracker()
        self.degradation_manager = get_degradation_manager()

        self.last_summary: Optional[CycleSummary] = None
        self.consecutive_empty_cycles = 0
        self._stop_requested = False
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def request_stop(self) -> None:
        """Make the running cycle, and any later one, skip remaining groups."""
        self._stop_requested = True

    async def wait_until_idle(self) -> None:
        """Return once no cycle is running."""
        async with self._lock:
            return

    async def run_check_cycle(self) -> CycleSummary:
        """Run one cycle; concurrent callers wait for the running one."""
        async with self._lock:
            summary = await self._run_cycle()

        self.last_summary = summary
        return summary

    @staticmethod
    def group_watches(watches: List[Watch]) -> List[ScrapeGroup]:
        """Partition watches by (platform, keyword, serialized filters)."""
        groups: Dict[tuple, ScrapeGroup] = {}
        for watch in watches:
            filters_key = serialize_filters(watch.filters)
            key = (watch.platform, watch.keyword, filters_key)
            group = groups.get(key)
            if group is None:
                group = ScrapeGroup(
                    platform=watch.platform,
                    keyword=watch.keyword,
                    filters_key=filters_key,
                    filters=watch.filters,
                )
                groups[key] = group
            group.watches.append(watch)
        return list(groups.values())

    async def _run_cycle(self) -> CycleSummary:
        summary = CycleSummary(started_at=datetime.now())

        watches = self.watch_store.list_active_watches()
        if not watches:
            self.logger.debug("No active watches, nothing to check")
            summary.finished_at = datetime.now()
            return summary

        groups = self.group_watches(watches)
        summary.groups_total = len(groups)
        self.logger.info(
            f"Checking {len(watches)} watch(es) in {len(groups)} scrape group(s)",
            extra={"watches": len(watches), "groups": len(groups)},
        )

        any_listings = False
        for group in groups:
            if self._stop_requested:
                self.logger.info(
                    "Stop requested, skipping remaining groups",
                    extra={"group": group.label},
                )
                break
            await self.throttle.acquire()
            try:
                found = await self._process_group(group, summary)
                summary.listings_found += found
                if found:
                    any_listings = True
            except Exception as e:
                await self._handle_group_failure(group, e, summary)
            finally:
                self.throttle.release()

        if not self._stop_requested:
            await self._update_staleness(any_listings)

        summary.finished_at = datetime.now()
        summary.validate()
        self.logger.info(
            f"Cycle finished: {summary.total_new} new, {summary.price_drops} "
            f"price drop(s), {summary.groups_failed}/{summary.groups_total} "
            "group(s) failed",
            extra={
                "total_new": summary.total_new,
                "by_platform": summary.by_platform,
                "price_drops": summary.price_drops,
                "failed_groups": summary.failed_groups,
                "duration_seconds": summary.duration_seconds,
            },
        )
        return summary

    async def _process_group(self, group: ScrapeGroup, summary: CycleSummary) -> int:
        """Search once for the group and fan results out to each owner."""
        adapter = self.registry.get(group.platform)
        listings = await adapter.search(group.keyword, group.filters)

        if not listings and adapter.last_failure is not None:
            await self._handle_group_failure(group, adapter.last_failure, summary)
            return 0

        if not listings:
            self.logger.debug("No listings", extra={"group": group.label})
            return 0

        relevant = await self._refine(listings, group.keyword)

        for watch in group.watches:
            try:
                for listing in self._apply_ceiling(relevant, watch.max_price):
                    await self._process_listing(listing, watch, summary)
            except SQLAlchemyError as e:
                self.error_tracker.record_error(
                    component="orchestrator",
                    category=ErrorCategory.STORAGE,
                    severity=ErrorSeverity.HIGH,
                    message=(
                        f"Store error on {group.label} for owner {watch.owner}: {e}"
                    ),
                    exception=e,
                    context={"group": group.label, "owner": watch.owner},
                )

        return len(listings)

    async def _refine(self, listings: List[Listing], keyword: str) -> List[Listing]:
        """Refine a batch; any failure keeps the batch unchanged."""
        try:
            refined = await self.refiner.refine(listings, keyword)
        except Exception as e:
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.RELEVANCE,
                severity=ErrorSeverity.LOW,
                message=f"Relevance refiner raised, keeping all listings: {e}",
                exception=e,
                context={"keyword": keyword},
            )
            self.degradation_manager.degrade_component(
                "relevance_refiner",
                reason=str(e),
                fallback_behavior="all listings pass unfiltered",
                severity=ErrorSeverity.LOW,
            )
            return listings

        if not isinstance(refined, list):
            self.logger.warning(
                f"Relevance refiner returned {type(refined).__name__}, keeping all listings",
                extra={"keyword": keyword},
            )
            return listings

        return refined

    @staticmethod
    def _apply_ceiling(
        listings: List[Listing], max_price: Optional[Decimal]
    ) -> List[Listing]:
        """Listings priced at or under ``max_price``; unparsable prices fail."""
        if max_price is None:
            return listings

        eligible = []
        for listing in listings:
            price = parse_price(listing.price)
            if price is not None and price <= max_price:
                eligible.append(listing)
        return eligible

    async def _process_listing(
        self, listing: Listing, watch: Watch, summary: CycleSummary
    ) -> None:
        record = self.seen_store.get_record(
            listing.id, watch.keyword, watch.owner, watch.platform
        )

        if record is None:
            if not self.seen_store.mark_seen(
                listing, watch.keyword, watch.owner, watch.platform
            ):
                return
            summary.record_new(watch.platform)
            await self._notify(
                self.notifier.notify_new(
                    listing, watch.keyword, watch.owner, watch.platform
                ),
                kind="new",
                watch=watch,
            )
            return

        old_price = parse_price(record.price)
        new_price = parse_price(listing.price)
        if old_price is None or new_price is None or new_price == old_price:
            return

        self.seen_store.update_price(
            listing.id, watch.keyword, watch.owner, watch.platform, listing.price
        )
        if new_price > old_price:
            self.logger.debug(
                "Price increased",
                extra={"listing_id": listing.id, "old": record.price, "new": listing.price},
            )
            return

        summary.price_drops += 1
        await self._notify(
            self.notifier.notify_price_drop(
                listing,
                watch.keyword,
                watch.owner,
                record.price,
                listing.price,
                watch.platform,
            ),
            kind="price_drop",
            watch=watch,
        )

    async def _notify(self, notification, kind: str, watch: Watch) -> None:
        try:
            await notification
        except Exception as e:
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.MESSAGE_DELIVERY,
                severity=ErrorSeverity.MEDIUM,
                message=f"Notification transport raised on {kind} alert: {e}",
                exception=e,
                context={"owner": watch.owner, "keyword": watch.keyword},
            )

    async def _handle_group_failure(
        self, group: ScrapeGroup, error: BaseException, summary: CycleSummary
    ) -> None:
        summary.record_failure(group.label)
        self.error_tracker.record_error(
            component="orchestrator",
            category=ErrorCategory.SCRAPING,
            severity=ErrorSeverity.HIGH,
            message=f"Scrape group {group.label} failed: {error}",
            exception=error,
            context={"group": group.label, "owners": len(group.watches)},
        )
        await self._alert_operator(f"Falha ao buscar {group.label}: {error}")

    async def _update_staleness(self, any_listings: bool) -> None:
        """Alert once when enough consecutive cycles found nothing at all."""
        if any_listings:
            if self.consecutive_empty_cycles:
                self.logger.info(
                    "Listings found again",
                    extra={"empty_cycles": self.consecutive_empty_cycles},
                )
            self.consecutive_empty_cycles = 0
            return

        self.consecutive_empty_cycles += 1
        if self.consecutive_empty_cycles == self.staleness_threshold:
            await self._alert_operator(
                f"Nenhum anuncio encontrado em {self.consecutive_empty_cycles} "
                "ciclos consecutivos. Os seletores podem estar desatualizados "
                "ou o acesso bloqueado."
            )

    async def _alert_operator(self, message: str) -> None:
        try:
            await self.operator_alerter.notify_operator(message)
        except Exception as e:
            self.logger.error(
                f"Operator alert failed: {e}", extra={"alert": message}, exc_info=True
            )


class ApplicationOrchestrator:
    """
    Main application orchestrator that coordinates all system components.

    This class manages the lifecycle of all components, schedules check
    cycles and handles graceful shutdown.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the application orchestrator.

        Args:
            config_path: Path to configuration file. If None, uses default paths.
        """
        self.logger = get_logger("orchestrator")

        self.config_path = config_path
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.error_tracker = get_error_tracker()
        self.degradation_manager = get_degradation_manager()

        self._config_manager: Optional[IConfigurationManager] = None
        self._config: Optional[Configuration] = None
        self._logging_manager: Optional[LoggingManager] = None
        self.database: Optional[Database] = None
        self.browser: Optional[BrowserSession] = None
        self.registry: Optional[PlatformRegistry] = None
        self.dispatcher: Optional[TelegramDispatcher] = None
        self.check_orchestrator: Optional[CheckOrchestrator] = None
        self.watch_service: Optional[WatchService] = None
        self.seen_store: Optional[SeenStore] = None

        self._startup_time: Optional[datetime] = None
        self._last_purge: Optional[datetime] = None
        self._component_health: Dict[str, bool] = {}

        self._setup_signal_handlers()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        signal.signal(signal.SIGINT, self._signal_handler)
        if sys.platform != "win32":
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum: int, frame) -> None:
        self.logger.info(
            "Received shutdown signal, initiating graceful shutdown",
            extra={"signal": signum},
        )
        asyncio.create_task(self.shutdown())

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def initialize(self) -> bool:
        """
        Load configuration and build every component.

        Returns:
            True if initialization successful, False otherwise.
        """
        self._config_manager = ConfigurationManager(self.config_path)
        self._config = self._config_manager.load_configuration()

        self._logging_manager = setup_logging(
            log_dir=self._config.logging.directory,
            log_level=self._config.logging.level,
        )
        self.logger.info("Initializing Marketplace Watcher...")

        self._initialize_components(self._config)
        self._validate_components()

        self._startup_time = datetime.now()
        self.logger.info("System initialization completed successfully")
        return True

    def _initialize_components(self, config: Configuration) -> None:
        """Build components in dependency order."""
        self.database = Database(config.storage.database_url)
        self.database.create_all()
        watch_store = WatchStore(self.database)
        self.seen_store = SeenStore(self.database)
        self._component_health["database"] = True

        scraping = config.scraping
        self.browser = BrowserSession(
            headless=scraping.headless,
            max_age_minutes=scraping.browser_max_age_minutes,
        )
        self.registry = create_default_registry(
            self.browser,
            RetryConfig(
                max_attempts=scraping.retry_attempts,
                base_delay=scraping.retry_base_delay,
            ),
            navigation_timeout=scraping.navigation_timeout_seconds,
        )
        self._component_health["browser"] = True

        refiner = create_refiner(config.relevance)
        self.logger.info(f"Relevance refiner: {refiner.name}")

        self.dispatcher = TelegramDispatcher(config.telegram.bot_token)
        notifier = TelegramNotifier(
            self.dispatcher,
            AlertFormatter(),
            platform_name=self.registry.platform_name,
            admin_chat_id=config.telegram.admin_chat_id,
        )
        operator_alerter: IOperatorAlerter = (
            notifier if config.telegram.admin_chat_id else LoggingOperatorAlerter()
        )

        self.check_orchestrator = CheckOrchestrator(
            watch_store=watch_store,
            seen_store=self.seen_store,
            registry=self.registry,
            refiner=refiner,
            notifier=notifier,
            operator_alerter=operator_alerter,
            throttle=ScrapeThrottle(scraping.scrape_delay_seconds),
            staleness_threshold=scraping.staleness_threshold,
        )
        self.watch_service = WatchService(
            watch_store, self.registry, config.limits.max_watches_per_owner
        )

    def _validate_components(self) -> None:
        """Check external connectivity; failures degrade, never abort."""
        healthy = self.dispatcher.test_connection()
        self._component_health["message_dispatcher"] = healthy
        if not healthy:
            self.degradation_manager.degrade_component(
                "message_dispatcher",
                reason="Telegram connection test failed",
                fallback_behavior="alerts are attempted and logged on failure",
            )

    async def start(self) -> None:
        """Run check cycles every ``check_interval_minutes`` until shutdown."""
        if self._running:
            self.logger.warning("System is already running")
            return

        self._running = True
        self.logger.info("Starting main application loop...")

        try:
            while self._running and not self._shutdown_event.is_set():
                await self._scheduled_check()
                self._run_maintenance()
                self._check_config_reload()

                interval = self._config.scraping.check_interval_minutes * 60
                try:
                    await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False

    async def _scheduled_check(self) -> Optional[CycleSummary]:
        if self.check_orchestrator.is_running:
            self.logger.info("Previous check still running, skipping this trigger")
            return None

        try:
            return await self.check_orchestrator.run_check_cycle()
        except Exception as e:
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.HIGH,
                message=f"Check cycle crashed: {e}",
                exception=e,
            )
            return None

    async def trigger_check(self) -> CycleSummary:
        """Manual "search now": runs after any cycle already in progress."""
        self.logger.info("Manual check requested")
        return await self.check_orchestrator.run_check_cycle()

    def _run_maintenance(self) -> Optional[int]:
        """Purge expired seen records at most once per 24 hours."""
        if self._config.storage.retention_days <= 0:
            return None
        now = datetime.now()
        if self._last_purge is not None and now - self._last_purge < MAINTENANCE_INTERVAL:
            return None

        self._last_purge = now
        self.error_tracker.clear_old_errors(older_than_days=7)
        try:
            return self.seen_store.purge_older_than(self._config.storage.retention_days)
        except Exception as e:
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.STORAGE,
                severity=ErrorSeverity.MEDIUM,
                message=f"Retention purge failed: {e}",
                exception=e,
            )
            return None

    def _check_config_reload(self) -> None:
        """Apply tunables from a changed configuration file."""
        if not self._config_manager.reload_if_changed():
            return

        new_config = self._config_manager.get_config()
        scraping = new_config.scraping
        self.check_orchestrator.throttle.min_interval = scraping.scrape_delay_seconds
        self.check_orchestrator.staleness_threshold = scraping.staleness_threshold
        self.watch_service.max_watches_per_owner = new_config.limits.max_watches_per_owner

        if (
            self._logging_manager is not None
            and new_config.logging.level != self._config.logging.level
        ):
            self._logging_manager.set_log_level(new_config.logging.level)
            self.logger.info(f"Log level set to {new_config.logging.level}")

        if new_config.relevance != self._config.relevance:
            try:
                self.check_orchestrator.refiner = create_refiner(new_config.relevance)
                self.logger.info("Relevance refiner updated")
            except (ValueError, KeyError) as e:
                self.logger.error(f"Failed to update relevance refiner: {e}")

        self._config = new_config
        self.logger.info("Configuration reloaded")

    async def shutdown(self) -> None:
        """Gracefully shutdown the system."""
        if self._shutdown_event.is_set():
            return

        self.logger.info("Initiating graceful shutdown...")
        self._running = False
        self._shutdown_event.set()

        if self.check_orchestrator is not None:
            self.check_orchestrator.request_stop()
            await self.check_orchestrator.wait_until_idle()

        if self.browser is not None:
            await self.browser.close()
            self.logger.info("Browser session closed")

        if self.database is not None:
            self.database.dispose()

        uptime = datetime.now() - self._startup_time if self._startup_time else None
        self.logger.info(f"System shutdown complete. Uptime: {uptime}")

    def get_system_status(self) -> Dict[str, Any]:
        """Get current system status information."""
        summary = self.check_orchestrator.last_summary if self.check_orchestrator else None
        return {
            "running": self._running,
            "startup_time": self._startup_time.isoformat() if self._startup_time else None,
            "uptime": str(datetime.now() - self._startup_time)
            if self._startup_time
            else None,
            "component_health": self._component_health.copy(),
            "degraded_components": self.degradation_manager.get_all_degraded(),
            "last_cycle": {
                "total_new": summary.total_new,
                "by_platform": summary.by_platform,
                "price_drops": summary.price_drops,
                "groups_failed": summary.groups_failed,
                "finished_at": summary.finished_at.isoformat()
                if summary.finished_at
                else None,
            }
            if summary
            else None,
            "error_stats": self.error_tracker.get_error_stats(),
            "logging": get_logging_stats(),
        }

    async def run(self) -> None:
        """Run the complete application lifecycle."""
        try:
            if not await self.initialize():
                self.logger.error("System initialization failed")
                return

            await self.start()

        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")
        finally:
            await self.shutdown()
