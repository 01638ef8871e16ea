"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import Client, create_client

from boothos.adapters.bgremover_client import HttpxBackgroundRemovalClient
from boothos.adapters.local_asset_store import LocalAssetStore
from boothos.adapters.openai_image_client import OpenAIImageClient
from boothos.adapters.smtp_mailer import SmtpMailer
from boothos.adapters.supabase_asset_store import SupabaseAssetStore
from boothos.adapters.supabase_background_repository import (
    SupabaseBackgroundRepository,
)
from boothos.adapters.supabase_event_repository import SupabaseEventRepository
from boothos.adapters.supabase_guest_repository import (
    SupabaseCheckinRepository,
    SupabaseNotificationRepository,
)
from boothos.adapters.supabase_photo_repository import SupabasePhotoRepository
from boothos.adapters.supabase_production_repository import (
    SupabaseProductionRepository,
)
from boothos.adapters.supabase_selection_repository import (
    SupabaseSelectionRepository,
)
from boothos.config import Settings
from boothos.services.assets import AssetStore
from boothos.services.backgrounds import BackgroundService
from boothos.services.delivery import DeliveryPipeline
from boothos.services.guests import GuestService
from boothos.services.selections import SelectionService
from boothos.services.staging import StagingArea
from boothos.services.usage import PlanPolicy, UsageGate


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    gate: UsageGate
    assets: AssetStore
    staging: StagingArea
    backgrounds: BackgroundService
    guests: GuestService
    pipeline: DeliveryPipeline
    selections: SelectionService
    close_resources: Callable[[], Awaitable[None]]


def build_asset_store(settings: Settings, client: Client) -> AssetStore:
    """Pick the asset backend named in settings."""
    if settings.storage_backend == "supabase":
        return SupabaseAssetStore(client, settings.supabase_storage_bucket)
    return LocalAssetStore(Path(settings.storage_root))


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    assets = build_asset_store(resolved_settings, supabase_client)
    staging = StagingArea(
        root=Path(resolved_settings.staging_dir),
        public_base_url=resolved_settings.public_base_url,
    )
    bg_client = HttpxBackgroundRemovalClient.create(
        api_base=resolved_settings.bgremover_api_base,
        service_token=resolved_settings.bgremover_service_token,
        staging_secret=resolved_settings.resolved_staging_secret(),
        staging=staging,
        timeout_seconds=resolved_settings.bgremover_timeout_seconds,
    )
    ai_client = (
        OpenAIImageClient.create(
            resolved_settings.openai_api_key, resolved_settings.openai_image_model
        )
        if resolved_settings.openai_api_key
        else None
    )
    mailer = SmtpMailer(
        outbox_dir=Path(resolved_settings.outbox_dir),
        sender=resolved_settings.email_from,
        host=resolved_settings.smtp_host,
        port=resolved_settings.smtp_port,
        username=resolved_settings.smtp_user,
        password=resolved_settings.smtp_password,
    )
    gate = UsageGate(
        events=SupabaseEventRepository(supabase_client),
        policy=PlanPolicy.from_overrides(resolved_settings.plan_overrides),
    )
    backgrounds = BackgroundService(
        repository=SupabaseBackgroundRepository(supabase_client),
        assets=assets,
        gate=gate,
        ai_client=ai_client,
    )
    guests = GuestService(
        checkins=SupabaseCheckinRepository(supabase_client),
        notifications=SupabaseNotificationRepository(supabase_client),
    )
    photo_repository = SupabasePhotoRepository(supabase_client)
    pipeline = DeliveryPipeline(
        gate=gate,
        photos=photo_repository,
        productions=SupabaseProductionRepository(supabase_client),
        assets=assets,
        bg_client=bg_client,
        backgrounds=backgrounds,
        guests=guests,
        mailer=mailer,
        public_base_url=resolved_settings.public_base_url,
        default_channel=resolved_settings.delivery_channel,
        ttl_hours={
            "attachments": resolved_settings.ttl_hours_for("attachments"),
            "link": resolved_settings.ttl_hours_for("link"),
        },
        canvas_size=(resolved_settings.canvas_width, resolved_settings.canvas_height),
    )
    selections = SelectionService(
        repository=SupabaseSelectionRepository(supabase_client),
        pipeline=pipeline,
        photos=photo_repository,
        backgrounds=backgrounds,
        public_base_url=resolved_settings.public_base_url,
        ttl_hours=resolved_settings.selection_ttl_hours,
    )

    async def close_resources() -> None:
        await bg_client.close()
        if ai_client is not None:
            await ai_client.close()

    return AppContainer(
        settings=resolved_settings,
        gate=gate,
        assets=assets,
        staging=staging,
        backgrounds=backgrounds,
        guests=guests,
        pipeline=pipeline,
        selections=selections,
        close_resources=close_resources,
    )
