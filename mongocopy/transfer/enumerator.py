"""
Collection Enumerator
Resolves which source collections a job will transfer
"""
import logging
from typing import Iterable, List

from pymongo.errors import PyMongoError

from ..core.database import StoreClient
from ..core.errors import EnumerationError

logger = logging.getLogger(__name__)

async def resolve_collection_plan(source: StoreClient, requested: Iterable[str]) -> List[str]:
    """
    Resolve the ordered list of collections to process

    An empty request means every collection, in the order the store returns
    them. Otherwise the requested order is kept and names the source does not
    have are dropped.
    """
    try:
        actual = await source.list_collection_names()
    except PyMongoError as e:
        raise EnumerationError(f"Failed to list source collections: {e}") from e

    requested = list(requested)
    if not requested:
        return list(actual)

    available = set(actual)
    plan: List[str] = []
    for name in requested:
        if name in available and name not in plan:
            plan.append(name)
    return plan

def missing_collections(requested: Iterable[str], plan: List[str]) -> List[str]:
    """Requested names that did not make it into the plan"""
    return [name for name in requested if name not in plan]
