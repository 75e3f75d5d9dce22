from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from retailpos.config import Settings, get_app_paths
from retailpos.repositories.contracts import PosRepository
from retailpos.repositories.http_repo import HttpRepository
from retailpos.repositories.sqlite_repo import SqliteRepository
from retailpos.services.caisse_service import CaisseService
from retailpos.services.catalog_service import CatalogService
from retailpos.services.checkout_service import CheckoutService
from retailpos.services.reporting_service import ReportingService
from retailpos.services.settings_service import SettingsService


@dataclass(frozen=True)
class AppContainer:
    repo: PosRepository
    catalog: CatalogService
    settings: SettingsService
    checkout: CheckoutService
    caisse: CaisseService
    reporting: ReportingService


def build_repository(settings: Settings) -> PosRepository:
    if settings.api_url:
        return HttpRepository(settings.api_url, token=settings.api_token, timeout=settings.api_timeout)
    db_path: Path = settings.db_path or get_app_paths().db_path
    repo = SqliteRepository(db_path)
    repo.init_db()
    return repo


def build_container(settings: Settings) -> AppContainer:
    repo = build_repository(settings)

    catalog = CatalogService(repo)
    tax_settings = SettingsService(repo)
    checkout = CheckoutService(repo, catalog, tax_settings, actor_user_id=settings.user_id)
    caisse = CaisseService(repo, user_id=settings.user_id)
    reporting = ReportingService(repo)

    return AppContainer(
        repo=repo,
        catalog=catalog,
        settings=tax_settings,
        checkout=checkout,
        caisse=caisse,
        reporting=reporting,
    )
