"""
Indexing poll loop.

Each tick moves the checkpoint one step through a small state machine:

    RESUMING   active collection set  -> fetch one page, store it, advance cursor;
                                         on the last page rank + finalize + clear
    ADVANCING  nothing active, queue  -> pop the next collection
    IDLE       nothing active, empty  -> save and stop

The cursor is persisted *before* the page's records are written. Combined
with INSERT OR IGNORE storage this gives at-least-once page delivery with
idempotent application: a crash anywhere in a tick at worst replays a page.

Usage:
    python -m indexer.scheduler
    python -m indexer.scheduler --enqueue 0x..::nft::Nft
"""

import argparse
import sched
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from common.config import config
from common.errors import FetchError, PersistenceError
from common.logging.logger import get_logger, setup_logger
from common.repositories import CollectionRepository, NftRepository
from indexer.checkpoint import Checkpoint, CheckpointStore
from indexer.finalizer import CollectionFinalizer
from indexer.normalizer import normalize_nft
from indexer.rarity import RarityEngine
from indexer.source import GraphQLPageSource, Page, PageSource

logger = get_logger("scheduler")


class SchedulerState(Enum):
    IDLE = "idle"
    RESUMING = "resuming"
    ADVANCING = "advancing"


@dataclass
class TickResult:
    """Checkpoint after a tick and whether another tick should be scheduled."""
    checkpoint: Optional[Checkpoint]
    reschedule: bool


class Scheduler:
    """
    Runs single ticks of the indexing state machine.

    Args:
        store: Checkpoint persistence.
        source: Upstream page source.
        nft_repo: NFT storage (defaults to the singleton database).
        rarity: Rarity engine run when a collection completes.
        finalizer: Collection finalizer run after the rarity engine.
        page_size: Records per page (defaults to config "upstream.page_size").
    """

    def __init__(
        self,
        store: CheckpointStore,
        source: PageSource,
        nft_repo: Optional[NftRepository] = None,
        rarity: Optional[RarityEngine] = None,
        finalizer: Optional[CollectionFinalizer] = None,
        page_size: Optional[int] = None,
    ):
        self.store = store
        self.source = source
        self.nft_repo = nft_repo or NftRepository()
        self.rarity = rarity or RarityEngine(self.nft_repo)
        self.finalizer = finalizer or CollectionFinalizer(source)
        self.page_size = page_size or config.get("upstream.page_size")

        # Records stored for the active collection since this process picked it up
        self._run_collection: Optional[str] = None
        self.indexed_this_run = 0

    @staticmethod
    def state_of(checkpoint: Checkpoint) -> SchedulerState:
        if checkpoint.currently_indexing:
            return SchedulerState.RESUMING
        if checkpoint.to_index:
            return SchedulerState.ADVANCING
        return SchedulerState.IDLE

    def tick(self) -> TickResult:
        """Loads the checkpoint and runs one step on it."""
        try:
            checkpoint = self.store.load()
        except PersistenceError as e:
            logger.error(f"Could not load checkpoint, retrying next tick: {e}")
            return TickResult(checkpoint=None, reschedule=True)
        return self.step(checkpoint)

    def step(self, checkpoint: Checkpoint) -> TickResult:
        """Advances *checkpoint* by one tick and returns the new value."""
        if checkpoint.currently_indexing:
            self._track_run(checkpoint.currently_indexing)
            indexed = self._index_next_page(checkpoint)
            if indexed is None:
                # Cursor untouched: the same page is requested next tick
                return TickResult(checkpoint=checkpoint, reschedule=True)
            checkpoint = indexed
            if checkpoint.currently_indexing:
                return TickResult(checkpoint=checkpoint, reschedule=True)

        if checkpoint.to_index:
            logger.info("Picking next collection from the queue...")
            checkpoint = checkpoint.advanced()
            self._track_run(checkpoint.currently_indexing)
            logger.info(f"Now indexing: {checkpoint.currently_indexing}")
        else:
            logger.info("Poller is idle. No new collections in the queue.")

        self.store.save(checkpoint)
        return TickResult(
            checkpoint=checkpoint,
            reschedule=self.state_of(checkpoint) is not SchedulerState.IDLE,
        )

    def _track_run(self, collection_type: Optional[str]) -> None:
        if collection_type != self._run_collection:
            self._run_collection = collection_type
            self.indexed_this_run = 0

    def _fetch(self, checkpoint: Checkpoint) -> Optional[Page]:
        collection_type = checkpoint.currently_indexing
        try:
            page = self.source.fetch_page(
                collection_type, first=self.page_size, after=checkpoint.last_cursor
            )
        except FetchError as e:
            logger.error(f"Fetch failed for {collection_type}: {e}")
            return None

        if page is None:
            logger.error(f"No objects found for type {collection_type}")
            return None
        if page.has_next_page and not page.end_cursor:
            logger.error(f"Page for {collection_type} has more results but no end cursor")
            return None
        return page

    def _index_next_page(self, checkpoint: Checkpoint) -> Optional[Checkpoint]:
        """
        Fetches and stores one page. Returns the advanced checkpoint (cleared
        if the collection finished) or None if no page could be fetched.
        """
        collection_type = checkpoint.currently_indexing
        started = time.perf_counter()

        page = self._fetch(checkpoint)
        if page is None:
            return None

        checkpoint = checkpoint.with_cursor(page.end_cursor)
        self.store.save(checkpoint)

        nfts = [nft for nft in (normalize_nft(node, collection_type) for node in page.nodes) if nft]
        if nfts:
            try:
                self.nft_repo.insert_batch(nfts)
                self.indexed_this_run += len(nfts)
                logger.info(
                    f"Indexed {len(nfts)}/{len(page.nodes)} NFTs "
                    f"(Total this run: {self.indexed_this_run})"
                )
            except Exception as e:
                logger.error(f"Failed to store batch for {collection_type}: {e}")
        else:
            logger.warning(f"No valid NFTs found in this batch ({len(page.nodes)} nodes)")

        logger.info(f"Batch took {round((time.perf_counter() - started) * 1000)} ms")

        if page.has_next_page:
            return checkpoint
        return self._finish_collection(checkpoint)

    def _finish_collection(self, checkpoint: Checkpoint) -> Checkpoint:
        collection_type = checkpoint.currently_indexing
        logger.info(f"Collection finished: {collection_type}")

        try:
            self.rarity.update_collection(collection_type)
        except Exception as e:
            logger.error(f"Rarity calculation failed for {collection_type}: {e}")

        self.finalizer.finalize(collection_type, total_supply=self.indexed_this_run)
        self._track_run(None)
        return checkpoint.cleared()


class PollLoop:
    """
    Re-submits Scheduler.tick to a sched.scheduler queue until the scheduler
    goes idle.

    timefunc/delayfunc are handed to sched.scheduler, so tests can drive the
    loop with a fake clock instead of real sleeps.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        delay: Optional[float] = None,
        timefunc: Callable[[], float] = time.monotonic,
        delayfunc: Callable[[float], None] = time.sleep,
    ):
        self.scheduler = scheduler
        self.delay = delay if delay is not None else config.get("scheduler.tick_delay_seconds")
        self._queue = sched.scheduler(timefunc, delayfunc)
        self._max_ticks: Optional[int] = None
        self._stopped = False
        self.ticks = 0

    def _run_tick(self) -> None:
        self.ticks += 1
        try:
            result = self.scheduler.tick()
        except Exception as e:
            logger.exception(f"Unexpected error during tick {self.ticks}: {e}")
            result = TickResult(checkpoint=None, reschedule=True)

        if not result.reschedule:
            logger.info("All indexing tasks completed. Poller stopped.")
            return
        if self._stopped:
            logger.info("Poller stop requested.")
            return
        if self._max_ticks is not None and self.ticks >= self._max_ticks:
            logger.info(f"Reached tick limit ({self._max_ticks}), stopping.")
            return
        self._queue.enter(self.delay, 0, self._run_tick)

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Runs ticks until idle (or max_ticks). Returns the number of ticks run."""
        logger.info("Poller started. Checking for indexing tasks...")
        self._max_ticks = max_ticks
        self._stopped = False
        self._queue.enter(0, 0, self._run_tick)
        try:
            self._queue.run()
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down poller. Progress is checkpointed.")
        return self.ticks

    def stop(self) -> None:
        """Lets the in-flight tick finish, then stops rescheduling."""
        self._stopped = True


def build_scheduler(
    checkpoint_path: Optional[str] = None,
    endpoint: Optional[str] = None,
    page_size: Optional[int] = None,
) -> Scheduler:
    """Wires a Scheduler against the configured database, checkpoint file and endpoint."""
    collection_repo = CollectionRepository()
    nft_repo = NftRepository()
    source = GraphQLPageSource(endpoint=endpoint)
    store = CheckpointStore(checkpoint_path, indexed_types=collection_repo.get_types)
    return Scheduler(
        store=store,
        source=source,
        nft_repo=nft_repo,
        rarity=RarityEngine(nft_repo),
        finalizer=CollectionFinalizer(source, collection_repo),
        page_size=page_size,
    )


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="NFT indexer poll loop")
    parser.add_argument("--checkpoint", default=config.get("paths.checkpoint_path"),
                        help="Checkpoint JSON file")
    parser.add_argument("--endpoint", default=config.get("upstream.graphql_endpoint"),
                        help="GraphQL endpoint")
    parser.add_argument("--page-size", type=int, default=config.get("upstream.page_size"),
                        help="Records fetched per page")
    parser.add_argument("--tick-delay", type=float, default=config.get("scheduler.tick_delay_seconds"),
                        help="Seconds between ticks")
    parser.add_argument("--enqueue", nargs="*", default=[], metavar="TYPE",
                        help="Collection types to append to the queue before starting")
    parser.add_argument("--max-ticks", type=int, default=None,
                        help="Stop after this many ticks")
    args = parser.parse_args(argv)

    setup_logger("scheduler", console_output=True)
    config.validate()

    scheduler = build_scheduler(
        checkpoint_path=args.checkpoint,
        endpoint=args.endpoint,
        page_size=args.page_size,
    )
    if args.enqueue:
        scheduler.store.enqueue(args.enqueue)

    loop = PollLoop(scheduler, delay=args.tick_delay)
    loop.run(max_ticks=args.max_ticks)


if __name__ == "__main__":
    main()
