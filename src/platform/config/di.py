"""
https://python-dependency-injector.ets-labs.org/index.html
"""

from contextlib import AsyncExitStack
from typing import Optional

import anyio
from anyio.abc import TaskGroup
from dependency_injector import containers, providers
import uuid_utils

from src.platform.config.core_setting import Settings, settings
from src.platform.event.event_bus import InMemoryEventBus
from src.platform.event.in_memory_broadcaster import InMemoryBroadcasterImpl
from src.platform.event.polling_change_observer import PollingChangeObserver
from src.platform.event.redis_change_observer import RedisChangeObserver
from src.platform.logging.loguru_io import Logger
from src.platform.state.file_storage import FileStorageBackend
from src.platform.state.kvrocks_client import kvrocks_client
from src.platform.state.kvrocks_storage import KvrocksStorageBackend
from src.platform.state.memory_storage import InMemoryStorageBackend
from src.service.booking_widget.app.booking_widget import BookingWidget
from src.service.booking_widget.app.command.payment_result_use_case import PaymentResultUseCase
from src.service.booking_widget.app.command.submit_checkout_use_case import SubmitCheckoutUseCase
from src.service.booking_widget.app.query.compute_slots_use_case import ComputeSlotsUseCase
from src.service.booking_widget.app.query.get_booking_stats_use_case import GetBookingStatsUseCase
from src.service.booking_widget.app.query.load_activity_catalog_use_case import (
    LoadActivityCatalogUseCase,
)
from src.service.booking_widget.driven_adapter.live_session.in_memory_session_change_source import (
    InMemorySessionChangeSource,
)
from src.service.booking_widget.driven_adapter.live_session.live_session_feed import LiveSessionFeed
from src.service.booking_widget.driven_adapter.remote.remote_booking_api_client import (
    RemoteBookingApiClient,
)
from src.service.booking_widget.driven_adapter.repo.entity_store_impl import EntityStore
from src.service.booking_widget.driven_adapter.repo.storage_keys import default_legacy_sources
from src.service.booking_widget.driven_adapter.sync.storage_sync_bridge import StorageSyncBridge


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Identifies this process on the shared change channel
    origin_id = providers.Object(str(uuid_utils.uuid7()))

    # In-process pub/sub (one bus per composition root)
    event_bus = providers.Singleton(InMemoryEventBus)
    broadcaster = providers.Singleton(
        InMemoryBroadcasterImpl, max_buffer_size=settings.LIVE_FEED_BUFFER_SIZE
    )

    # Local persistence: memory | file | kvrocks
    storage_backend = providers.Selector(
        lambda: settings.STORAGE_BACKEND,
        memory=providers.Singleton(InMemoryStorageBackend),
        file=providers.Singleton(FileStorageBackend, directory=settings.LOCAL_STORE_DIR),
        kvrocks=providers.Singleton(
            KvrocksStorageBackend,
            client=providers.Factory(kvrocks_client.get_sync_client),
            channel=settings.SYNC_CHANNEL,
            origin_id=origin_id,
            key_prefix=settings.KVROCKS_KEY_PREFIX,
        ),
    )

    # Cross-process change observer (memory backend has no other writers)
    change_observer = providers.Selector(
        lambda: settings.STORAGE_BACKEND,
        memory=providers.Object(None),
        file=providers.Singleton(
            PollingChangeObserver, storage=storage_backend, interval=settings.SYNC_POLL_INTERVAL
        ),
        kvrocks=providers.Singleton(
            RedisChangeObserver,
            client=providers.Factory(kvrocks_client.get_client),
            channel=settings.SYNC_CHANNEL,
            origin_id=origin_id,
        ),
    )

    legacy_sources = providers.Singleton(
        default_legacy_sources, activity_prefixes=settings.LEGACY_ACTIVITY_PREFIXES
    )

    entity_store = providers.Singleton(
        EntityStore,
        storage=storage_backend,
        event_bus=event_bus,
        default_organization_id=settings.DEFAULT_ORGANIZATION_ID,
        legacy_sources=legacy_sources,
    )

    storage_sync_bridge = providers.Singleton(
        StorageSyncBridge, event_bus=event_bus, legacy_sources=legacy_sources
    )

    # Remote backend (one client implements every gateway)
    remote_api_client = providers.Singleton(RemoteBookingApiClient)
    session_change_source = providers.Singleton(
        InMemorySessionChangeSource, broadcaster=broadcaster
    )
    # One feed per (activity, date) a widget follows
    live_session_feed = providers.Factory(
        LiveSessionFeed, gateway=remote_api_client, change_source=session_change_source
    )

    # Use cases (stateless, can be Singleton)
    compute_slots_use_case = providers.Singleton(
        ComputeSlotsUseCase,
        entity_store=entity_store,
        session_gateway=remote_api_client,
        default_timezone=settings.DEFAULT_TIMEZONE,
    )
    load_activity_catalog_use_case = providers.Singleton(
        LoadActivityCatalogUseCase,
        entity_store=entity_store,
        catalog_gateway=remote_api_client,
    )
    get_booking_stats_use_case = providers.Singleton(
        GetBookingStatsUseCase, entity_store=entity_store
    )
    submit_checkout_use_case = providers.Singleton(
        SubmitCheckoutUseCase,
        entity_store=entity_store,
        discount_gateway=remote_api_client,
        reservation_gateway=remote_api_client,
        session_gateway=remote_api_client,
        fee_rate=settings.CHECKOUT_FEE_RATE,
        default_timezone=settings.DEFAULT_TIMEZONE,
        phone_country_code=settings.DEFAULT_PHONE_COUNTRY_CODE,
    )
    payment_result_use_case = providers.Singleton(
        PaymentResultUseCase, entity_store=entity_store
    )

    # One widget per embed (stateful, so Factory)
    booking_widget = providers.Factory(
        BookingWidget,
        entity_store=entity_store,
        event_bus=event_bus,
        compute_slots=compute_slots_use_case,
        submit_checkout=submit_checkout_use_case,
        payment_result=payment_result_use_case,
        discount_gateway=remote_api_client,
        fee_rate=settings.CHECKOUT_FEE_RATE,
        live_feed_factory=live_session_feed.provider,
    )


container = Container()

# Task group opened by setup() when the caller brings none
_background = AsyncExitStack()
_task_group: Optional[TaskGroup] = None


async def setup(*, task_group: Optional[TaskGroup] = None) -> TaskGroup:
    """
    Wire cross-process change propagation into the event bus and start the observer

    Args:
        task_group: run background tasks here (the caller cancels it); without
            one a task group is opened now and cancelled by cleanup()

    Returns:
        The task group widgets can pass to BookingWidget.attach for live updates
    """
    global _task_group
    container.config_service()
    if settings.STORAGE_BACKEND == 'kvrocks':
        await kvrocks_client.initialize()
        Logger.base.info('📡 [Booking Widget] Kvrocks initialized')

    if task_group is None:
        task_group = await _background.enter_async_context(anyio.create_task_group())
        _task_group = task_group

    observer = container.change_observer()
    if observer is not None:
        container.storage_sync_bridge().attach(observer)
        await observer.start(task_group=task_group)
    Logger.base.info('✅ [Booking Widget] Ready')
    return task_group


async def cleanup() -> None:
    global _task_group
    container.storage_sync_bridge().detach_all()
    if _task_group is not None:
        _task_group.cancel_scope.cancel()
        _task_group = None
    await _background.aclose()

    await container.remote_api_client().aclose()
    Logger.base.info('🌐 [Booking Widget] Remote API client closed')
    if settings.STORAGE_BACKEND == 'kvrocks':
        await kvrocks_client.disconnect()
        Logger.base.info('📡 [Booking Widget] Kvrocks disconnected')
    container.reset_singletons()
    Logger.base.info('👋 [Booking Widget] Shutdown complete')
