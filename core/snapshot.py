"""Snapshot acquisition: wallets and products (all pages) then balances."""

import logging
from typing import Callable, List, Optional

from core.exceptions import AssetDataError, SnapshotUnavailable, VenueCallError
from core.models import Snapshot
from core.venue import Page, VenueClient

logger = logging.getLogger(__name__)

# Guard against a venue that keeps returning has_next with the same cursor
MAX_PAGES = 1000


def _drain(source: str, fetch: Callable[[Optional[str]], Page]) -> List:
    items: List = []
    cursor: Optional[str] = None
    seen = set()
    for _ in range(MAX_PAGES):
        page = fetch(cursor)
        items.extend(page.items)
        if not page.has_next or not page.next_cursor:
            return items
        if page.next_cursor in seen:
            raise SnapshotUnavailable(f"{source}: repeated pagination cursor {page.next_cursor!r}")
        seen.add(page.next_cursor)
        cursor = page.next_cursor
    raise SnapshotUnavailable(f"{source}: more than {MAX_PAGES} pages")


def fetch_snapshot(venue: VenueClient, timeout: float) -> Snapshot:
    """
    Fetch a complete snapshot for one cycle.

    Raises:
        SnapshotUnavailable: If any list call fails; no partial snapshot is returned
    """
    try:
        wallets = _drain("wallets", lambda c: venue.list_trading_wallets(c, timeout=timeout))
        products = _drain("products", lambda c: venue.list_products(c, timeout=timeout))
        balances = venue.list_trading_balances(timeout=timeout)
    except VenueCallError as e:
        raise SnapshotUnavailable(e.operation, original=e)
    except AssetDataError as e:
        raise SnapshotUnavailable("snapshot payload", original=e)

    snapshot = Snapshot.build(wallets, products, balances)
    logger.debug(
        f"Snapshot: {len(snapshot.wallets)} wallets, {len(snapshot.products)} products, "
        f"{len(snapshot.balances)} balances"
    )
    return snapshot
