import logging
from typing import List, Optional

from chaindata.constants import BASE_CHAIN_ID
from chaindata.dune import get_activity
from chaindata.evm.typing import ActivityEvent_, ActivityPage_

logger = logging.getLogger(__name__)

MAX_ACTIVITY_PAGES = 50


async def get_activity_page(
    user_address: str,
    *,
    chain_ids: Optional[str] = str(BASE_CHAIN_ID),
    limit: Optional[int] = None,
    offset: Optional[str] = None,
) -> ActivityPage_:
    resp = await get_activity(
        user_address, chain_ids=chain_ids, limit=limit, offset=offset
    )
    if resp.get("activity") is None:
        raise ValueError(f"No activity data received for {user_address}")

    return ActivityPage_.model_validate(resp)


async def get_all_activity(
    user_address: str, *, chain_ids: Optional[str] = str(BASE_CHAIN_ID)
) -> List[ActivityEvent_]:
    """Follows `next_offset` until the indexer runs out of pages."""
    events = []
    offset = None
    for _ in range(MAX_ACTIVITY_PAGES):
        page = await get_activity_page(user_address, chain_ids=chain_ids, offset=offset)
        events.extend(page.activity)

        offset = page.next_offset
        if not offset:
            return events

    logger.warning(
        "Stopped reading activity for %s after %s pages", user_address, MAX_ACTIVITY_PAGES
    )
    return events
