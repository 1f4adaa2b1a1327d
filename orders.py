from __future__ import annotations
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase

from schemas import OrderDraft, OrderFilter

logger = logging.getLogger(__name__)

COLLECTION = "orders"
REQUIRED_FIELDS = ("shopName", "deliveryDate", "pickupDate", "category", "subcategory")
SUMMARY_FIELDS = ("shopName", "clientName", "clientNumber", "category", "subcategory", "createdAt")
DEFAULT_PAGE_SIZE = 10

_DATE_ONLY = re.compile(r"\d{4}-\d{2}-\d{2}")


class MissingFieldsError(ValueError):
    def __init__(self, fields: list[str]):
        super().__init__("Missing required fields")
        self.fields = fields


def utcnow() -> datetime:
    # Naive UTC, the way pymongo hands datetimes back by default
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """Parse a `YYYY-MM-DD` or full ISO timestamp into a naive UTC datetime.

    With `end_of_day`, a date-only value resolves to the last instant of that day
    so an inclusive upper bound covers the whole day. Unparseable input -> None.
    """
    if not value:
        return None
    candidate = str(value).strip()
    if not candidate:
        return None
    try:
        parsed = datetime.fromisoformat(candidate.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and _DATE_ONLY.fullmatch(candidate):
        return parsed + timedelta(days=1) - timedelta(milliseconds=1)
    return parsed


def _is_set(value: Optional[str]) -> bool:
    return bool(value) and value != "all"


def build_order_filter(filt: OrderFilter) -> dict[str, Any]:
    query: dict[str, Any] = {}

    if filt.shop:
        query["shopName"] = {"$regex": re.escape(filt.shop), "$options": "i"}

    if _is_set(filt.category):
        query["category"] = filt.category

    if _is_set(filt.subcategory):
        query["subcategory"] = filt.subcategory

    # Only a complete range is applied; a lone bound is ignored
    start = parse_iso_date(filt.start_date)
    end = parse_iso_date(filt.end_date, end_of_day=True)
    if start is not None and end is not None:
        query["createdAt"] = {"$gte": start, "$lte": end}

    return query


def to_client(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])
    return d


class OrderStore:
    def __init__(self, db: AsyncIOMotorDatabase, clock: Callable[[], datetime] = utcnow):
        self.collection = db[COLLECTION]
        self.clock = clock

    async def create(self, draft: OrderDraft) -> dict[str, Any]:
        doc = draft.model_dump(by_alias=True)
        missing = [f for f in REQUIRED_FIELDS if not doc.get(f)]
        if missing:
            raise MissingFieldsError(missing)

        now = self.clock()
        doc = {k: v for k, v in doc.items() if v is not None}
        doc.update(createdAt=now, updatedAt=now)
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Created order id=%s shop=%s category=%s", result.inserted_id, doc["shopName"], doc["category"])
        return to_client(doc)

    async def find_by_id(self, order_id: str) -> Optional[dict[str, Any]]:
        try:
            oid = ObjectId(order_id)
        except (InvalidId, TypeError):
            return None
        return to_client(await self.collection.find_one({"_id": oid}))

    async def find_page(
        self,
        filt: OrderFilter,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> tuple[list[dict[str, Any]], int]:
        query = build_order_filter(filt)
        skip = (max(page, 1) - 1) * page_size
        cursor = (
            self.collection.find(query, {f: 1 for f in SUMMARY_FIELDS})
            .sort([("createdAt", -1), ("_id", -1)])
            .skip(skip)
            .limit(page_size)
        )
        items = []
        async for d in cursor:
            items.append(to_client(d))
        total = await self.collection.count_documents(query)
        return items, total
