"""
Admin dashboard

Keeps the filter/pagination state of the admin orders view and re-queries the
API whenever it changes. Only the response to the most recently issued list
request is applied; slower, older responses are dropped.
"""

from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Optional, Union
import httpx

from schemas import Order, OrderSummary
from taxonomy import Category, Subcategory, Taxonomy

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
ALL = "all"


def format_date(value: Union[str, date, datetime, None]) -> str:
    """Render a date like `05 Mar 2025`; empty values read as N/A."""
    if not value:
        return "N/A"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value.strftime("%d %b %Y")


def measurement_rows(order: Order) -> list[tuple[str, str]]:
    rows = []
    for key, value in order.measurements.items():
        if value is None or value == "":
            continue
        rows.append((key.replace("_", " ").capitalize(), f"{value:g}"))
    return rows


class Dashboard:
    def __init__(self, taxonomy: Taxonomy, client: httpx.AsyncClient, token: Optional[str] = None):
        self.taxonomy = taxonomy
        self.client = client
        self.token = token
        self.needs_login = token is None

        self.shop = ""
        self.category = ALL
        self.subcategory = ALL
        self.start_date: Optional[date] = None
        self.end_date: Optional[date] = None
        self.page = 1

        self.orders: list[OrderSummary] = []
        self.total = 0
        self.total_pages = 1
        self.loading = False

        self.selected_order: Optional[Order] = None
        self.details_loading = False

        self._seq = 0

    # Session

    async def login(self, email: str, password: str) -> Optional[str]:
        """Returns an error message, or None once logged in."""
        resp = await self.client.post("/api/auth/login", json={"email": email, "password": password})
        if resp.status_code != 200:
            try:
                return resp.json().get("message") or "Invalid credentials"
            except ValueError:
                return "Invalid credentials"
        self.token = resp.json()["token"]
        self.needs_login = False
        await self.refresh()
        return None

    def logout(self) -> None:
        self.token = None
        self.needs_login = True
        self.orders = []
        self.selected_order = None

    # Filters

    @property
    def selected_category(self) -> Optional[Category]:
        return None if self.category == ALL else self.taxonomy.category(self.category)

    @property
    def subcategories(self) -> tuple[Subcategory, ...]:
        cat = self.selected_category
        return cat.subcategories if cat else ()

    @property
    def filters_active(self) -> bool:
        return bool(self.shop or self.category != ALL or self.start_date or self.end_date)

    async def set_shop(self, shop: str) -> None:
        self.shop = shop
        await self.refresh()

    async def set_category(self, category: str) -> None:
        if category != ALL and self.taxonomy.category(category) is None:
            raise ValueError(f"Unknown category {category!r}")
        self.category = category
        self.subcategory = ALL
        self.page = 1
        await self.refresh()

    async def set_subcategory(self, subcategory: str) -> None:
        cat = self.selected_category
        if cat is None:
            raise ValueError("Select a category first")
        if subcategory != ALL and cat.subcategory(subcategory) is None:
            raise ValueError(f"Unknown subcategory {subcategory!r} for category {cat.id!r}")
        self.subcategory = subcategory
        await self.refresh()

    async def set_start_date(self, day: Optional[date]) -> None:
        if day is not None and self.end_date is not None and day > self.end_date:
            raise ValueError("Start date cannot be after the end date")
        self.start_date = day
        await self.refresh()

    async def set_end_date(self, day: Optional[date]) -> None:
        if day is not None and self.start_date is not None and day < self.start_date:
            raise ValueError("End date cannot be before the start date")
        self.end_date = day
        await self.refresh()

    async def clear_filters(self) -> None:
        self.shop = ""
        self.category = ALL
        self.subcategory = ALL
        self.start_date = None
        self.end_date = None
        self.page = 1
        await self.refresh()

    # Pagination

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    async def next_page(self) -> None:
        if self.has_next:
            self.page += 1
            await self.refresh()

    async def previous_page(self) -> None:
        if self.has_previous:
            self.page -= 1
            await self.refresh()

    # Requests

    def _subcategory_param(self) -> str:
        # Orders store the subcategory display name, not its id
        cat = self.selected_category
        if self.subcategory == ALL or cat is None:
            return ""
        sub = cat.subcategory(self.subcategory)
        return sub.name if sub else self.subcategory

    def query_params(self) -> dict[str, Union[str, int]]:
        return {
            "page": self.page,
            "limit": PAGE_SIZE,
            "shop": self.shop,
            "category": "" if self.category == ALL else self.category,
            "subcategory": self._subcategory_param(),
            "startDate": self.start_date.isoformat() if self.start_date else "",
            "endDate": self.end_date.isoformat() if self.end_date else "",
        }

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        resp = await self.client.get(url, headers=headers, **kwargs)
        if resp.status_code == 401:
            self.token = None
            self.needs_login = True
        resp.raise_for_status()
        return resp

    async def refresh(self) -> bool:
        """Fetch the current page; False when the response failed or was superseded."""
        self._seq += 1
        seq = self._seq
        self.loading = True
        try:
            resp = await self._get("/api/order", params=self.query_params())
        except httpx.HTTPError as e:
            logger.error("Error fetching orders: %s", e)
            if seq == self._seq:
                self.loading = False
            return False

        if seq != self._seq:
            logger.debug("Dropping stale orders response seq=%s latest=%s", seq, self._seq)
            return False

        body = resp.json()
        self.orders = [OrderSummary.model_validate(o) for o in body.get("orders") or []]
        self.total = body.get("total", 0)
        self.total_pages = body.get("pages") or 1
        self.loading = False
        return True

    async def open_order(self, order_id: str) -> Optional[Order]:
        self.details_loading = True
        self.selected_order = None
        try:
            resp = await self._get(f"/api/order/{order_id}")
            self.selected_order = Order.model_validate(resp.json()["order"])
        except httpx.HTTPError as e:
            logger.error("Error fetching order %s: %s", order_id, e)
        finally:
            self.details_loading = False
        return self.selected_order
