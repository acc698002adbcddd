from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import List, Optional

from structure_browser.config.model import BrowserConfig
from structure_browser.core import selection
from structure_browser.core.deep_link import DeepLink
from structure_browser.core.exceptions import StructureBrowserError
from structure_browser.core.facet_tree import FacetTree, FacetTreeLevelValue
from structure_browser.core.filter_state import TreeFilter
from structure_browser.core.models import (
    CDR3SearchOptions,
    CDR3SearchResult,
    Epitope,
    EpitopeViewOptions,
)
from structure_browser.core.reactive import EventChannel, ReplayChannel, ServiceEvent
from structure_browser.core.scheduler import LoopScheduler, Scheduler
from structure_browser.services.aggregator import aggregate_cdr3_result, aggregate_filter_result
from structure_browser.services.availability import AvailabilityIndex
from structure_browser.services.links import LinkResolver
from structure_browser.services.notifications import LoggingNotifier, Notifier
from structure_browser.services.responses import members_link
from structure_browser.services.transport import Transport
from structure_browser.validation.cdr3 import ValidationError, ensure_valid_cdr3_query

logger = logging.getLogger(__name__)

TITLE_STRUCTURES = "Structures"
TITLE_CDR3 = "Structures CDR3"
TITLE_EXPORT = "Structures export"


class SearchState(str, Enum):
    TREE = "tree"
    SEQUENCE = "sequence"


class StructureSearchSession:
    """
    Orchestrates one browsing session: metadata loading, facet selection,
    filter and CDR3 requests, and the notifications consumed by the UI.

    State is exposed through replaying channels (metadata, selected, epitopes,
    options, cdr3_result, loading) plus a discrete `events` channel.
    Tree-search and sequence-search results live side by side; switching
    state never clears either.

    Responses are applied in arrival order: a slow, older request can land
    after a newer one.
    """

    def __init__(
            self,
            transport: Transport,
            *,
            notifier: Optional[Notifier] = None,
            scheduler: Optional[Scheduler] = None,
            config: Optional[BrowserConfig] = None,
            availability: Optional[AvailabilityIndex] = None,
    ):
        self.config = config or BrowserConfig()
        self._transport = transport
        self._notifier = notifier or LoggingNotifier()
        self._scheduler = scheduler or LoopScheduler()
        self.availability = availability or AvailabilityIndex(transport, self.config.availability_endpoint)
        self.links = LinkResolver(self.availability, self.config.structure_files_root)

        self._state = SearchState.TREE
        self._tree: Optional[FacetTree] = None
        self._is_metadata_loaded = False
        self._is_metadata_loading = False
        self._load_task: Optional[asyncio.Future] = None

        self.metadata: ReplayChannel[FacetTree] = ReplayChannel("metadata")
        self.selected: ReplayChannel[List[FacetTreeLevelValue]] = ReplayChannel("selected")
        self.epitopes: ReplayChannel[List[Epitope]] = ReplayChannel("epitopes")
        self.options: ReplayChannel[EpitopeViewOptions] = ReplayChannel("options")
        self.cdr3_result: ReplayChannel[CDR3SearchResult] = ReplayChannel("cdr3_result")
        self.loading: ReplayChannel[bool] = ReplayChannel("loading")
        self.events = EventChannel()

    # ------------------------------------------------------------------
    # Search state
    # ------------------------------------------------------------------
    @property
    def state(self) -> SearchState:
        return self._state

    def set_state(self, state: SearchState) -> None:
        self._state = state

    @property
    def tree(self) -> Optional[FacetTree]:
        return self._tree

    @property
    def cdr3_options(self) -> CDR3SearchOptions:
        return self.cdr3_result.value.options

    def set_options(self, options: EpitopeViewOptions) -> None:
        self.options.publish(options)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    async def load(self) -> FacetTree:
        """
        Load the facet tree once per session.

        Concurrent callers share a single in-flight request and all observe
        the same tree. A failed load is not remembered, so calling again retries.
        """
        if self._is_metadata_loaded and self._tree is not None:
            return self._tree
        if not self._is_metadata_loading:
            self._is_metadata_loading = True
            self._load_task = asyncio.ensure_future(self._fetch_metadata())
        await self._load_task
        assert self._tree is not None
        return self._tree

    async def _fetch_metadata(self) -> None:
        try:
            payload = await self._transport.get_json(self.config.metadata_endpoint)
            tree = FacetTree.from_dict(payload)
        except Exception:
            self._load_task = None
            logger.exception("Failed to load structures metadata")
            raise
        finally:
            self._is_metadata_loading = False

        logger.info("Structures metadata loaded", extra={"n_top_level": len(tree.root.values)})
        self._tree = tree
        self.metadata.publish(tree)
        self.selected.publish([])
        self.epitopes.publish([])
        self.options.publish(EpitopeViewOptions())
        self.cdr3_result.publish(CDR3SearchResult.empty(self._default_cdr3_options()))
        self._is_metadata_loaded = True

    def _default_cdr3_options(self) -> CDR3SearchOptions:
        return CDR3SearchOptions(
            cdr3="",
            top=self.config.default_cdr3_top,
            gene=self.config.default_cdr3_gene,
            substring=False,
        )

    # ------------------------------------------------------------------
    # Selection snapshot
    # ------------------------------------------------------------------
    def update_selected(self) -> None:
        """
        Recompute the selected-leaves snapshot, emit UPDATE_SELECTED, then
        schedule UPDATE_SCROLL after `scroll_update_delay`, once dependent
        views have settled.
        """
        if self._tree is None:
            logger.debug("update_selected called before metadata load; ignoring")
            return
        self.selected.publish(selection.selected_leaves(self._tree.root))
        self.events.emit(ServiceEvent.UPDATE_SELECTED)
        self.schedule_scroll_update(self.config.scroll_update_delay)

    def update_epitopes(self) -> None:
        """
        Keep only the epitopes whose hash is among the currently selected leaves.
        Legacy epitopes have no leaf hash; they stay while some selected leaf
        still lies under the filter that produced them.
        """
        if self._tree is None or not (self.selected.has_value and self.epitopes.has_value):
            return
        selected_hashes = {leaf.hash for leaf in self.selected.value}
        selected_paths = [path for path, leaf in selection.leaf_paths(self._tree.root) if leaf.is_selected]

        def still_selected(epitope: Epitope) -> bool:
            if epitope.hash in selected_hashes:
                return True
            source = epitope.source_filter
            return source is not None and any(source.matches(path) for path in selected_paths)

        self.epitopes.publish([e for e in self.epitopes.value if still_selected(e)])

    def find_tree_level_value(self, hash_value: str) -> List[FacetTreeLevelValue]:
        if self._tree is None:
            return []
        return selection.find_leaves(self._tree.root, hash_value)

    def toggle(self, value: FacetTreeLevelValue, tree_filter: TreeFilter) -> Optional[asyncio.Future]:
        """
        Header click on a tree value. Toggling a leaf selects it (issuing the
        filter request, returned as a future) or discards it.
        """
        if value.next is not None:
            selection.toggle_header(value)
            return None
        if value.is_selected:
            selection.discard(value)
            self.discard(tree_filter)
            return None
        selection.select(value)
        return asyncio.ensure_future(self.select(tree_filter))

    # ------------------------------------------------------------------
    # Tree search
    # ------------------------------------------------------------------
    async def select(self, tree_filter: TreeFilter) -> List[Epitope]:
        """
        Refresh the selection snapshot and request epitopes for `tree_filter`.
        New epitopes are appended to the accumulated list.

        :return: the epitopes this request added (empty on failure).
        """
        try:
            await self.load()
        except StructureBrowserError:
            logger.exception("Structures filter not sent, metadata unavailable", extra={"filter": tree_filter.to_dict()})
            self._notifier.error(TITLE_STRUCTURES, "Unable to load results")
            return []
        self.update_selected()
        self.loading.publish(True)
        try:
            payload = await self._transport.post_json(self.config.filter_endpoint, tree_filter.to_dict())
            merged, added = aggregate_filter_result(self.epitopes.value, payload, tree_filter, self.links)
        except StructureBrowserError:
            self.loading.publish(False)
            logger.exception("Structures filter request failed", extra={"filter": tree_filter.to_dict()})
            self._notifier.error(TITLE_STRUCTURES, "Unable to load results")
            return []

        self.epitopes.publish(merged)
        self.loading.publish(False)
        logger.info("Structures filter applied", extra={"n_added": len(added), "n_total": len(merged)})
        self._notifier.info(TITLE_STRUCTURES, "Loaded successfully", self.config.success_notification_timeout)
        return added

    def discard(self, tree_filter: TreeFilter) -> None:
        """
        The tree flags were already cleared by the caller; recompute the
        snapshot, then prune epitopes on the next scheduler turn.
        """
        logger.debug("Discard", extra={"filter": tree_filter.to_dict()})
        self.update_selected()
        self._scheduler.call_later(0, self.update_epitopes)

    def discard_all(self) -> None:
        if not self.selected.has_value:
            return
        for value in self.selected.value:
            selection.discard(value)
        self.update_selected()
        self._scheduler.call_later(0, self.update_epitopes)

    def discard_epitope(self, epitope: Epitope) -> None:
        for value in self.find_tree_level_value(epitope.hash):
            selection.discard(value)
        self.update_selected()
        self._scheduler.call_later(0, self.update_epitopes)

    async def filter_by_url(self, link: DeepLink) -> List[Epitope]:
        """
        Deep-link entry: highlight the leaf named by `link` if the tree has
        that exact path, then request the equivalent filter either way.
        """
        tree = await self.load()
        self.set_state(SearchState.TREE)
        leaf = tree.find_path(link.tree_path())
        if leaf is not None and leaf.is_leaf:
            selection.select(leaf)
        else:
            logger.info("Deep link path not found in facet tree", extra={"path": link.tree_path()})
        return await self.select(link.to_filter())

    # ------------------------------------------------------------------
    # CDR3 search
    # ------------------------------------------------------------------
    async def search_cdr3(
            self,
            cdr3: Optional[str],
            substring: bool = False,
            gene: Optional[str] = None,
            top: Optional[int] = None,
    ) -> Optional[CDR3SearchResult]:
        """
        Search clusters by CDR3 sequence; the ranked result replaces the previous one.

        Invalid queries (empty, or too short for substring mode) produce a
        warning and send no request.
        """
        options = CDR3SearchOptions(
            cdr3=cdr3 or "",
            top=top if top is not None else self.config.default_cdr3_top,
            gene=gene or self.config.default_cdr3_gene,
            substring=substring,
        )
        try:
            ensure_valid_cdr3_query(options, self.config.min_substring_cdr3_length)
        except ValidationError as e:
            for issue in e.issues:
                self._notifier.warn(TITLE_CDR3, issue.message)
            return None

        self.loading.publish(True)
        try:
            payload = await self._transport.post_json(self.config.cdr3_endpoint, options.to_request())
            result = aggregate_cdr3_result(payload, options, self.links)
        except StructureBrowserError:
            self.loading.publish(False)
            logger.exception("CDR3 search failed", extra={"cdr3": options.cdr3})
            self._notifier.error(TITLE_CDR3, "Unable to load results")
            return None

        self.cdr3_result.publish(result)
        self.loading.publish(False)
        self._notifier.info(TITLE_CDR3, "Loaded successfully", self.config.success_notification_timeout)
        return result

    async def search_cdr3_by_url(self, query: str) -> Optional[CDR3SearchResult]:
        await self.load()
        self.set_state(SearchState.SEQUENCE)
        return await self.search_cdr3(query)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    async def members(self, cluster_id: str) -> Optional[str]:
        """
        Request a TSV export of a cluster's members and return its download link.
        """
        try:
            payload = await self._transport.post_json(
                self.config.members_endpoint, {"cid": cluster_id, "format": "tsv"}
            )
            link = members_link(payload)
        except StructureBrowserError:
            logger.exception("Members export failed", extra={"cluster_id": cluster_id})
            self._notifier.error(TITLE_STRUCTURES, "Unable to export results")
            return None
        self._notifier.info(TITLE_EXPORT, "Download will start automatically")
        return link

    # ------------------------------------------------------------------
    # UI events
    # ------------------------------------------------------------------
    def fire_scroll_update_event(self) -> None:
        self.events.emit(ServiceEvent.UPDATE_SCROLL)

    def fire_resize_update_event(self) -> None:
        self.events.emit(ServiceEvent.UPDATE_RESIZE)

    def fire_hide_event(self) -> None:
        self.events.emit(ServiceEvent.HIDE_CLUSTERS)

    def schedule_scroll_update(self, delay: Optional[float] = None) -> None:
        """Emit UPDATE_SCROLL after `delay` seconds (defaults to the hide/show debounce)."""
        if delay is None:
            delay = self.config.hide_scroll_delay
        self._scheduler.call_later(delay, self.fire_scroll_update_event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        """
        Discard the whole session: tree, results, load guards and the
        availability cache. The next `load()` starts from scratch.
        """
        self._tree = None
        self._is_metadata_loaded = False
        self._is_metadata_loading = False
        self._load_task = None
        self._state = SearchState.TREE
        for channel in (self.metadata, self.selected, self.epitopes, self.options, self.cdr3_result, self.loading):
            channel.clear()
        self.availability.reset()
        logger.info("Structure search session reset")
