"""Reconciliation engine keeping the asset directory in step with the catalog.

For every catalog tag the engine probes the asset directory, consults the
validator cache, and decides whether to skip, seed a validator from the local
file, revalidate with a conditional request, or download unconditionally.
Tags are processed strictly one after another; a failing tag is logged and
the run moves on, so the caches and the inventory are always written once the
catalog query has succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, TypeVar

import requests

from tagsync.assets import (
    AssetScanner,
    ContentTypeResolver,
    HashComputer,
    LocalAsset,
    PathState,
    image_dimensions,
    path_state,
)
from tagsync.assets.discovery import canonical_filename
from tagsync.catalog import CatalogClient, Tag
from tagsync.config.models import TagsyncConfig
from tagsync.naming import normalize_name
from tagsync.state import CacheRepository, StateError, SyncState, ValidatorCache

from .decisions import decide_action
from .exporter import InventoryExporter, find_missing_external_ids, find_orphans
from .fetcher import AssetFetcher
from .models import InventoryEntry, SyncAction, SyncReport, TagOutcome, TagResult

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Tag], None]

_T = TypeVar("_T")


@dataclass
class _RunContext:
    """Mutable bookkeeping shared by every tag of one run."""

    validators: ValidatorCache
    alternates: set[str]
    previous_urls: dict[str, str]
    force: bool
    claimed_names: dict[str, str] = field(default_factory=dict)
    claimed_files: set[str] = field(default_factory=set)
    stale_urls: dict[str, str] = field(default_factory=dict)
    inventory: dict[str, InventoryEntry] = field(default_factory=dict)


def _tag_key(tag: Tag) -> str:
    return tag.id or tag.name


class SyncEngine:
    """Run one synchronization pass over the catalog."""

    def __init__(
        self,
        config: TagsyncConfig,
        *,
        catalog: CatalogClient,
        fetcher: AssetFetcher,
        repository: Optional[CacheRepository] = None,
        scanner: Optional[AssetScanner] = None,
        resolver: Optional[ContentTypeResolver] = None,
        hasher: Optional[HashComputer] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.config = config
        self.catalog = catalog
        self.fetcher = fetcher
        self.asset_dir = Path(config.storage.asset_dir).expanduser()
        self.repository = repository or CacheRepository(
            Path(config.storage.cache_dir).expanduser()
        )
        self.scanner = scanner or AssetScanner(self.asset_dir)
        self.resolver = resolver or ContentTypeResolver()
        self.hasher = hasher or HashComputer()
        self.progress = progress
        export_path = config.storage.export_path
        self.exporter = InventoryExporter(
            self.repository, Path(export_path).expanduser() if export_path else None
        )

    @classmethod
    def from_config(
        cls,
        config: TagsyncConfig,
        *,
        session: Optional[requests.Session] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> SyncEngine:
        """Build an engine whose catalog client and fetcher share one session."""
        catalog_settings = config.catalog
        catalog = CatalogClient(
            catalog_settings.endpoint,
            api_key=catalog_settings.api_key,
            timeout=catalog_settings.timeout_seconds,
            verify_tls=catalog_settings.verify_tls,
            session=session,
        )
        fetcher = AssetFetcher(
            api_key=catalog_settings.api_key,
            timeout=catalog_settings.timeout_seconds,
            verify_tls=catalog_settings.verify_tls,
            session=session,
        )
        return cls(config, catalog=catalog, fetcher=fetcher, progress=progress)

    def close(self) -> None:
        self.catalog.close()
        self.fetcher.close()

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def run(self) -> SyncReport:
        """Reconcile every catalog tag and persist the results.

        Returns:
            SyncReport: Per-tag outcomes, the inventory, and operator reports.

        Raises:
            CatalogError: If the catalog cannot be queried; nothing is written.
        """
        options = self.config.sync
        started_at = datetime.now(timezone.utc)
        report = SyncReport(started_at=started_at)

        validators = self._load_or_default(self.repository.load_validators, ValidatorCache)
        sync_state = self._load_or_default(self.repository.load_sync_state, SyncState)
        snapshot = self._load_or_default(self.repository.load_snapshot, list)
        force = options.force_refresh or options.full_scan

        tags = self.catalog.find_tags()
        if not force and sync_state.last_sync is not None:
            updated = self.catalog.find_tags(updated_since=sync_state.since)
            report.changed = sorted(tag.name for tag in updated)
            LOGGER.info(
                "Catalog lists %d tag(s); %d changed since %s",
                len(tags),
                len(report.changed),
                sync_state.since.isoformat(),
            )
        else:
            LOGGER.info("Catalog lists %d tag(s)", len(tags))

        previous_urls: dict[str, str] = {}
        for record in snapshot:
            key = str(record.get("id") or record.get("name") or "")
            url = record.get("image_path")
            if key and isinstance(url, str):
                previous_urls[key] = url

        accounted = self.scanner.scan_accounted()
        context = _RunContext(
            validators=validators,
            alternates=self.scanner.scan_alternates(),
            previous_urls=previous_urls,
            force=force,
        )

        total = len(tags)
        for index, tag in enumerate(tags, start=1):
            try:
                result = self._reconcile(tag, context)
            except Exception as exc:
                LOGGER.exception("Unexpected error while reconciling tag %r", tag.name)
                self._keep_stale_url(tag, context)
                result = TagResult(
                    name=tag.name,
                    outcome=TagOutcome.FAILED,
                    message=f"unexpected error: {exc}",
                )
            report.results.append(result)
            if self.progress is not None:
                self.progress(index, total, tag)

        report.inventory = context.inventory
        report.orphans = find_orphans(accounted, context.claimed_files)
        report.missing_external_ids = find_missing_external_ids(context.inventory)
        report.export_path = self.exporter.export(
            inventory=context.inventory,
            validators=validators,
            tags=[self._snapshot_record(tag, context) for tag in tags],
            synced_at=started_at,
        )
        report.finished_at = datetime.now(timezone.utc)

        if report.orphans:
            LOGGER.warning("Files not claimed by any tag: %s", ", ".join(report.orphans))
        if report.missing_external_ids:
            LOGGER.warning(
                "Tags without an external id: %s", ", ".join(report.missing_external_ids)
            )
        counts = report.counts()
        LOGGER.info(
            "Sync finished: processed=%d updated=%d unchanged=%d seeded=%d cache_hit=%d "
            "skipped_default=%d failed=%d collisions=%d",
            counts["processed"],
            counts[TagOutcome.UPDATED.value],
            counts[TagOutcome.UNCHANGED.value],
            counts[TagOutcome.SEEDED.value],
            counts[TagOutcome.CACHE_HIT.value],
            counts[TagOutcome.SKIPPED_DEFAULT.value],
            counts[TagOutcome.FAILED.value],
            counts[TagOutcome.COLLISION.value],
        )
        return report

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _reconcile(self, tag: Tag, context: _RunContext) -> TagResult:
        """Apply the per-tag decision flow and record the inventory entry."""
        options = self.config.sync
        url = tag.image_url
        if options.default_image_marker and options.default_image_marker in url:
            return TagResult(name=tag.name, outcome=TagOutcome.SKIPPED_DEFAULT)

        normalized = normalize_name(tag.name)
        ignore = tag.ignore_auto_tag or any(
            tag.name.startswith(prefix) for prefix in options.excluded_prefixes
        )
        entry = InventoryEntry(
            ignore=ignore,
            alt=normalized in context.alternates,
            aliases=list(tag.aliases),
            stash_id=tag.external_id,
        )
        context.inventory[tag.name] = entry

        owner = context.claimed_names.setdefault(normalized, tag.name)
        if owner != tag.name:
            message = f"normalized name {normalized!r} already claimed by tag {owner!r}"
            LOGGER.error("Skipping tag %r: %s", tag.name, message)
            return TagResult(
                name=tag.name,
                normalized=normalized,
                outcome=TagOutcome.COLLISION,
                message=message,
            )

        base = self.asset_dir / normalized
        if path_state(base) is PathState.FILE:
            LOGGER.info("Removing extensionless leftover %s", base)
            try:
                base.unlink()
            except OSError as exc:
                LOGGER.warning("Unable to remove %s: %s", base, exc)
            else:
                context.claimed_files.add(canonical_filename(base.name))

        probe = self.scanner.probe(normalized)
        for category, matches in (("image", probe.images), ("video", probe.videos)):
            if len(matches) > 1:
                LOGGER.error(
                    "Multiple %s files for tag %r: %s; using %s",
                    category,
                    tag.name,
                    ", ".join(match.path.name for match in matches),
                    matches[0].path.name,
                )
        context.claimed_files.update(canonical_filename(match.path.name) for match in probe.all())
        entry.image = probe.image.path if probe.image else None
        entry.video = probe.video.path if probe.video else None

        asset = probe.primary
        url_changed = self._url_changed(tag, context)
        if url_changed and asset is not None and options.delete_existing:
            LOGGER.info("Image URL of %r changed; removing %s", tag.name, asset.path)
            asset.path.unlink(missing_ok=True)
            self._clear(entry, asset)
            asset = None

        token = context.validators.get(url)
        action = decide_action(
            local_present=asset is not None,
            has_token=token is not None,
            recheck=options.recheck_validators,
            force=context.force or url_changed,
        )

        if action is SyncAction.SEED and asset is not None:
            result = self._seed(tag, url, asset, context)
        else:
            result = self._apply(tag, action, url, base, token, entry, context)
        if result.outcome is TagOutcome.FAILED:
            self._keep_stale_url(tag, context)
        if entry.image is not None:
            entry.dimensions = image_dimensions(entry.image)
        return result

    def _seed(self, tag: Tag, url: str, asset: LocalAsset, context: _RunContext) -> TagResult:
        """Store the md5 of the local file as the validator for ``url``."""
        result = TagResult(
            name=tag.name,
            normalized=asset.path.stem,
            action=SyncAction.SEED,
            outcome=TagOutcome.SEEDED,
        )
        try:
            digest = self.hasher.compute(asset.path)
        except OSError as exc:
            LOGGER.error("Unable to checksum %s: %s", asset.path, exc)
            return result.model_copy(
                update={"outcome": TagOutcome.FAILED, "message": f"checksum failed: {exc}"}
            )
        context.validators.set(url, f'"{digest}"')
        LOGGER.debug("Seeded validator for %r from %s", tag.name, asset.path.name)
        return result

    def _apply(
        self,
        tag: Tag,
        action: SyncAction,
        url: str,
        base: Path,
        token: Optional[str],
        entry: InventoryEntry,
        context: _RunContext,
    ) -> TagResult:
        normalized = base.name

        def _result(outcome: TagOutcome, message: Optional[str] = None) -> TagResult:
            return TagResult(
                name=tag.name,
                normalized=normalized,
                action=action,
                outcome=outcome,
                message=message,
            )

        if action is SyncAction.SKIP:
            return _result(TagOutcome.CACHE_HIT)

        conditional = token if action is SyncAction.REVALIDATE else None
        try:
            fetched = self.fetcher.fetch(url, base, token=conditional)
        except (requests.RequestException, OSError) as exc:
            LOGGER.error("Download failed for tag %r (%s): %s", tag.name, url, exc)
            return _result(TagOutcome.FAILED, f"download failed: {exc}")

        if fetched.etag:
            context.validators.set(url, fetched.etag)
        if not fetched.modified:
            return _result(TagOutcome.UNCHANGED)

        extension = self.resolver.resolve(base, fetched.content_type)
        if extension is None:
            LOGGER.error("File type not found for tag %r; leaving %s", tag.name, base)
            return _result(TagOutcome.FAILED, "unknown content type")

        try:
            final = self.resolver.finalize(base, extension)
        except OSError as exc:
            LOGGER.error("Unable to rename %s: %s", base, exc)
            return _result(TagOutcome.FAILED, f"rename failed: {exc}")

        downloaded = LocalAsset.from_path(final)
        if downloaded.category == "video":
            entry.video = final
        else:
            entry.image = final
        context.claimed_files.add(canonical_filename(final.name))
        LOGGER.info("Updated %r -> %s", tag.name, final.name)
        return _result(TagOutcome.UPDATED)

    def _url_changed(self, tag: Tag, context: _RunContext) -> bool:
        previous = context.previous_urls.get(_tag_key(tag))
        return previous is not None and previous != tag.image_url

    def _keep_stale_url(self, tag: Tag, context: _RunContext) -> None:
        if self._url_changed(tag, context):
            context.stale_urls[_tag_key(tag)] = context.previous_urls[_tag_key(tag)]

    @staticmethod
    def _snapshot_record(tag: Tag, context: _RunContext) -> Tag:
        # A failed download after a URL change must be detected again next run.
        previous = context.stale_urls.get(_tag_key(tag))
        if previous is None:
            return tag
        return tag.model_copy(update={"image_url": previous})

    @staticmethod
    def _clear(entry: InventoryEntry, asset: LocalAsset) -> None:
        if asset.category == "video":
            entry.video = None
        else:
            entry.image = None

    @staticmethod
    def _load_or_default(loader: Callable[[], _T], default: Callable[[], _T]) -> _T:
        try:
            return loader()
        except StateError as exc:
            LOGGER.warning("Ignoring unreadable cache: %s", exc)
            return default()


__all__ = ["ProgressCallback", "SyncEngine"]
