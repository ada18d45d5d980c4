import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.database import Database

import database
from database import RecordStore
from errors import StoreHubError
from schemas import Product, ProductPatch, Store, StorePatch, User, UserPatch
from services import ProductService, StoreService, UserService

logger = logging.getLogger(__name__)

_LOG_FMT = "%(asctime)s %(levelname)-8s %(name)s %(message)s"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
SERVER_ERROR = "A server error occurred. Please try again later."


def init_logging():
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format=_LOG_FMT, datefmt="%Y-%m-%d %H:%M:%S")


def attach_services(app: FastAPI, db: Database) -> None:
    """Build the services around one shared database handle."""
    records = RecordStore(db)
    app.state.records = records
    app.state.users = UserService(records)
    app.state.stores = StoreService(records)
    app.state.products = ProductService(records)


@asynccontextmanager
async def lifespan(app: FastAPI):
    connected = False
    if getattr(app.state, "records", None) is None:
        attach_services(app, database.get_database())
        connected = True
    yield
    if connected:
        database.close_database()


init_logging()

# App and CORS
app = FastAPI(title="Store Hub API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreHubError)
async def store_hub_error(request: Request, exc: StoreHubError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": SERVER_ERROR})


# Helpers

def user_service(request: Request) -> UserService:
    return request.app.state.users


def store_service(request: Request) -> StoreService:
    return request.app.state.stores


def product_service(request: Request) -> ProductService:
    return request.app.state.products


def check_id(id_str: str) -> str:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="ID isn't valid.")
    return id_str


def sanitize(doc: Dict) -> Dict:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def sanitize_user(doc: Dict) -> Dict:
    if not doc:
        return doc
    d = {**doc}
    d["username"] = d.pop("_id", None)
    d.pop("passwordHash", None)
    return d


# Request Models
class LoginRequest(BaseModel):
    username: str
    password: str


# Utility endpoints
@app.get("/")
def root():
    return {"message": "Store Hub API running"}


@app.get("/test")
def test_database(request: Request):
    records = getattr(request.app.state, "records", None)
    try:
        collections = records.db.list_collection_names() if records else []
        return {"backend": "ok", "database": "ok" if records else "missing", "collections": collections}
    except Exception:
        logger.exception("Database health check failed")
        return {"backend": "ok", "database": "error"}


# User Routes
@app.get("/api/users")
def list_users(users: UserService = Depends(user_service)) -> List[Dict[str, Any]]:
    return [sanitize_user(u) for u in users.list_users()]


@app.get("/api/users/{username}")
def get_user(username: str, users: UserService = Depends(user_service)):
    user = users.get_user(username)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User with username '{username}' is not found.")
    return sanitize_user(user)


@app.post("/api/auth/signup", status_code=201)
def signup(payload: User, users: UserService = Depends(user_service)):
    return sanitize_user(users.signup(payload))


@app.post("/api/auth/login")
def login(payload: LoginRequest, users: UserService = Depends(user_service)):
    return sanitize_user(users.login(payload.username, payload.password))


@app.patch("/api/users/{username}")
def update_user(username: str, payload: UserPatch, users: UserService = Depends(user_service)):
    return sanitize_user(users.update_user(username, payload))


@app.delete("/api/users/{username}")
def delete_user(username: str, users: UserService = Depends(user_service)):
    return users.delete_user(username).get("profile", {})


# Store Routes
@app.get("/api/stores")
def list_stores(stores: StoreService = Depends(store_service)) -> List[Dict[str, Any]]:
    return [sanitize(s) for s in stores.list_stores()]


@app.get("/api/stores/search")
def search_stores(name: str = "", stores: StoreService = Depends(store_service)):
    found = stores.search_stores(name)
    if not found:
        raise HTTPException(status_code=404, detail="No stores found with the specified name.")
    return [sanitize(s) for s in found]


@app.get("/api/stores/closest")
def closest_stores(
    latitude: float,
    longitude: float,
    top: int = Query(5, ge=0),
    stores: StoreService = Depends(store_service),
):
    return [sanitize(s) for s in stores.closest_stores(latitude, longitude, top)]


@app.get("/api/stores/city")
def city_stores(cityname: str, stores: StoreService = Depends(store_service)):
    found = stores.stores_by_city(cityname)
    if not found:
        return Response(status_code=204)
    return [sanitize(s) for s in found]


@app.get("/api/stores/recommended")
def recommended_stores(
    cityname: str,
    top: int = Query(5, ge=0),
    stores: StoreService = Depends(store_service),
):
    found = stores.recommended_stores(cityname, top)
    if not found:
        return Response(status_code=204)
    return [sanitize(s) for s in found]


@app.get("/api/stores/owner/{owner_name}")
def owner_stores(owner_name: str, stores: StoreService = Depends(store_service)):
    found = stores.stores_by_owner(owner_name)
    if not found:
        raise HTTPException(status_code=404, detail="No stores found for the given owner Name")
    return [sanitize(s) for s in found]


@app.get("/api/stores/{store_id}")
def get_store(store_id: str, stores: StoreService = Depends(store_service)):
    store = stores.get_store(check_id(store_id))
    if store is None:
        raise HTTPException(status_code=404, detail=f"Element with ID {store_id} not found")
    return sanitize(store)


@app.post("/api/stores", status_code=201)
def create_store(payload: Store, stores: StoreService = Depends(store_service)):
    return sanitize(stores.create_store(payload))


@app.patch("/api/stores/{store_id}")
def update_store(store_id: str, payload: StorePatch, stores: StoreService = Depends(store_service)):
    return sanitize(stores.update_store(check_id(store_id), payload))


@app.patch("/api/stores/{store_id}/rating")
def rate_store(store_id: str, rating: float, stores: StoreService = Depends(store_service)):
    return sanitize(stores.rate_store(check_id(store_id), rating))


@app.delete("/api/stores/{store_id}", status_code=204)
def delete_store(store_id: str, stores: StoreService = Depends(store_service)):
    stores.delete_store(check_id(store_id))
    return Response(status_code=204)


@app.get("/api/stores/{store_id}/products")
def store_products(store_id: str, products: ProductService = Depends(product_service)):
    return [sanitize(p) for p in products.store_products(store_id)]


# Product Routes
@app.get("/api/products")
def list_products(products: ProductService = Depends(product_service)) -> List[Dict[str, Any]]:
    return [sanitize(p) for p in products.list_products()]


@app.get("/api/products/search")
def search_products(
    store_id: str = Query("", alias="storeId"),
    product_name: Optional[str] = Query(None, alias="productName"),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    products: ProductService = Depends(product_service),
):
    found = products.search_products(store_id, product_name, min_price, max_price, sort_by)
    return [sanitize(p) for p in found]


@app.get("/api/products/{product_id}")
def get_product(product_id: str, products: ProductService = Depends(product_service)):
    product = products.get_product(check_id(product_id))
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product with ID {product_id} not found")
    return sanitize(product)


@app.post("/api/products", status_code=201)
def create_product(payload: Product, products: ProductService = Depends(product_service)):
    return sanitize(products.create_product(payload))


@app.patch("/api/products/{product_id}")
def update_product(product_id: str, payload: ProductPatch, products: ProductService = Depends(product_service)):
    return sanitize(products.update_product(check_id(product_id), payload))


@app.delete("/api/products/{product_id}", status_code=204)
def delete_product(product_id: str, products: ProductService = Depends(product_service)):
    products.delete_product(check_id(product_id))
    return Response(status_code=204)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
