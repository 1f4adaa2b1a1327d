import logging
import math
import os
from typing import Optional
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import AdminCredential, authenticate, issue_token, load_admin_credential, require_admin
from config import Settings, get_settings
from database import close_db, get_db
from orders import DEFAULT_PAGE_SIZE, MissingFieldsError, OrderStore
from schemas import AdminPrincipal, LoginRequest, OrderDraft, OrderFilter
from taxonomy import Taxonomy, load_taxonomy

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Deeja Tailoring API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def on_startup():
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    taxonomy = load_taxonomy()
    logger.info("Loaded taxonomy with %d categories", len(taxonomy.categories))

@app.on_event("shutdown")
async def on_shutdown():
    await close_db()

# Dependencies

async def get_store() -> OrderStore:
    return OrderStore(await get_db())

def get_taxonomy() -> Taxonomy:
    return load_taxonomy()

def get_admin_credential() -> AdminCredential:
    return load_admin_credential()

def server_error(message: str, exc: Exception, settings: Settings) -> JSONResponse:
    body = {"message": message}
    if settings.EXPOSE_ERRORS:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)

# Error rendering: every error body carries a `message`

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=getattr(exc, "headers", None))

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    # Rejected input (NaN, Infinity) is not echoed back; it cannot be rendered as JSON
    errors = [{k: v for k, v in e.items() if k not in ("input", "ctx")} for e in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request payload", "errors": jsonable_encoder(errors)},
    )

@app.get("/")
async def root():
    return {"message": "Deeja Tailoring Backend Running"}

@app.get("/test")
async def test():
    try:
        db = await get_db()
        colls = []
        try:
            colls = await db.list_collection_names()
        except Exception as e:
            logger.warning("Database not reachable: %s", e)
            return {
                "backend": "✅ Running",
                "database": "❌ Not Available",
                "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
                "error": str(e),
            }
        return {
            "backend": "✅ Running",
            "database": "✅ Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": db.name,
            "collections": colls,
        }
    except Exception as e:
        return {"backend": "Error", "error": str(e)}

@app.get("/api/taxonomy")
async def get_taxonomy_document(taxonomy: Taxonomy = Depends(get_taxonomy)):
    return taxonomy.model_dump()

# Auth

@app.post("/api/auth/login")
async def login(
    payload: LoginRequest,
    credential: AdminCredential = Depends(get_admin_credential),
    settings: Settings = Depends(get_settings),
):
    principal = authenticate(payload.email, payload.password, credential)
    if principal is None:
        logger.warning("Failed admin login for email=%s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {
        "message": "Logged in",
        "token": issue_token(principal, settings),
        "user": principal.model_dump(),
    }

# Orders

@app.post("/api/order", status_code=201)
async def create_order(
    draft: OrderDraft,
    store: OrderStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    try:
        order = await store.create(draft)
    except MissingFieldsError as e:
        logger.info("Rejected order, missing fields: %s", ",".join(e.fields))
        return JSONResponse(status_code=400, content={"message": "Missing required fields"})
    except Exception as e:
        logger.exception("Error saving order: %s", e)
        return server_error("Failed to submit order.", e, settings)
    return {"message": "Order submitted successfully!", "order": order}

@app.get("/api/order")
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    shop: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    subcategory: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    admin: AdminPrincipal = Depends(require_admin),
    store: OrderStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    filt = OrderFilter(shop=shop, category=category, subcategory=subcategory, start_date=startDate, end_date=endDate)
    try:
        orders, total = await store.find_page(filt, page, limit)
    except Exception as e:
        logger.exception("Error fetching orders: %s", e)
        return server_error("Failed to fetch orders.", e, settings)
    return {
        "message": "Orders fetched successfully!",
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit),
        "orders": orders,
    }

@app.get("/api/order/{order_id}")
async def get_order(
    order_id: str,
    admin: AdminPrincipal = Depends(require_admin),
    store: OrderStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    try:
        order = await store.find_by_id(order_id)
    except Exception as e:
        logger.exception("Error fetching order %s: %s", order_id, e)
        return server_error("Failed to fetch order", e, settings)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"message": "Order fetched successfully!", "order": order}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
