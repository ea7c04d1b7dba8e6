import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, EmailStr

import settings
from auth import create_access_token, decode_access_token
from checkout import OrderService
from database import Store
from errors import AuthError, NotFoundError, ShopError
from repositories import Repositories
from schemas import Address, ProductFilters, User, UserPublic
from seed import seed_store

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/token")

# One store per process, seeded before the first request is served.
_store = Store()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.SEED_DATA:
        seed_store(_store)
    yield


app = FastAPI(title="ShopLab API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Store wiring
def get_store() -> Store:
    return _store


def get_repos(store: Store = Depends(get_store)) -> Repositories:
    return Repositories(store)


def get_order_service(repos: Repositories = Depends(get_repos)) -> OrderService:
    return OrderService(repos)


def ok(data, status_code: int = status.HTTP_200_OK):
    return JSONResponse(status_code=status_code, content={"success": True, "data": jsonable_encoder(data)})


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = exc.errors()[0]
    field = ".".join(str(part) for part in err["loc"] if part != "body")
    detail = f"{field}: {err['msg']}" if field else err["msg"]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": detail})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Request bodies
class SignupIn(BaseModel):
    email: EmailStr
    password: str
    first_name: str
    last_name: str


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class CartItemIn(BaseModel):
    product_id: str
    quantity: int = 1


class QuantityIn(BaseModel):
    quantity: int


class OrderIn(BaseModel):
    shipping_address: Address
    payment_method: Optional[str] = None


class StatusIn(BaseModel):
    status: str


def get_current_user(token: str = Depends(oauth2_scheme), repos: Repositories = Depends(get_repos)) -> User:
    payload = decode_access_token(token)
    try:
        return repos.users.get_by_id(payload["sub"])
    except NotFoundError:
        raise AuthError()


def public(user: User) -> UserPublic:
    return UserPublic.model_validate(user.model_dump())


# Routes
@app.get("/")
def root():
    return {"message": "ShopLab API is running"}


@app.get("/health")
def health(store: Store = Depends(get_store)):
    return ok({
        "backend": "running",
        "collections": {name: len(docs) for name, docs in store.collections.items()},
    })


# Auth endpoints
@app.post("/api/auth/signup")
def signup(payload: SignupIn, repos: Repositories = Depends(get_repos)):
    user = repos.users.create(payload.email, payload.password, payload.first_name, payload.last_name)
    token = create_access_token({"sub": user.id, "email": user.email})
    return ok({"user": public(user), "token": token}, status.HTTP_201_CREATED)


@app.post("/api/auth/login")
def login(payload: LoginIn, repos: Repositories = Depends(get_repos)):
    user = repos.users.authenticate(payload.email, payload.password)
    token = create_access_token({"sub": user.id, "email": user.email})
    return ok({"user": public(user), "token": token, "token_type": "bearer"})


@app.post("/api/auth/token")
def token(form_data: OAuth2PasswordRequestForm = Depends(), repos: Repositories = Depends(get_repos)):
    user = repos.users.authenticate(form_data.username, form_data.password)
    access_token = create_access_token({"sub": user.id, "email": user.email})
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/api/auth/profile")
def profile(user: User = Depends(get_current_user)):
    return ok(public(user))


# Product endpoints
@app.get("/api/products")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    featured: bool = False,
    repos: Repositories = Depends(get_repos),
):
    filters = ProductFilters(search=search, category=category, sort=sort, featured=featured)
    return ok(repos.products.list(filters, page, limit))


@app.get("/api/products/featured")
def featured_products(repos: Repositories = Depends(get_repos)):
    return ok(repos.products.get_featured())


@app.get("/api/products/categories")
def product_categories(repos: Repositories = Depends(get_repos)):
    return ok(repos.products.get_categories())


@app.get("/api/products/{product_id}")
def get_product(product_id: str, repos: Repositories = Depends(get_repos)):
    return ok(repos.products.get_by_id(product_id))


# Cart endpoints (per-user)
@app.get("/api/cart")
def get_cart(user: User = Depends(get_current_user), repos: Repositories = Depends(get_repos)):
    return ok(repos.carts.get_cart(user.id))


@app.post("/api/cart/items")
def add_to_cart(payload: CartItemIn, user: User = Depends(get_current_user), repos: Repositories = Depends(get_repos)):
    repos.carts.add_item(user.id, payload.product_id, payload.quantity)
    return ok(repos.carts.get_cart(user.id))


@app.put("/api/cart/items/{item_id}")
def update_cart_item(item_id: str, payload: QuantityIn, user: User = Depends(get_current_user), repos: Repositories = Depends(get_repos)):
    repos.carts.update_quantity(user.id, item_id, payload.quantity)
    return ok(repos.carts.get_cart(user.id))


@app.delete("/api/cart/items/{item_id}")
def remove_from_cart(item_id: str, user: User = Depends(get_current_user), repos: Repositories = Depends(get_repos)):
    repos.carts.remove_item(user.id, item_id)
    return ok(repos.carts.get_cart(user.id))


@app.delete("/api/cart")
def clear_cart(user: User = Depends(get_current_user), repos: Repositories = Depends(get_repos)):
    repos.carts.clear(user.id)
    return ok(repos.carts.get_cart(user.id))


# Orders
@app.get("/api/orders")
def list_orders(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    return ok(orders.list_orders(user.id, page, limit))


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, user: User = Depends(get_current_user), orders: OrderService = Depends(get_order_service)):
    return ok(orders.get_order(user.id, order_id))


@app.post("/api/orders")
def create_order(payload: OrderIn, user: User = Depends(get_current_user), orders: OrderService = Depends(get_order_service)):
    order = orders.create_from_cart(user.id, payload.shipping_address, payload.payment_method)
    return ok(order, status.HTTP_201_CREATED)


@app.put("/api/orders/{order_id}/cancel")
def cancel_order(order_id: str, user: User = Depends(get_current_user), orders: OrderService = Depends(get_order_service)):
    return ok(orders.cancel(user.id, order_id))


@app.put("/api/orders/{order_id}/status")
def update_order_status(order_id: str, payload: StatusIn, user: User = Depends(get_current_user), orders: OrderService = Depends(get_order_service)):
    orders.get_order(user.id, order_id)
    return ok(orders.update_status(order_id, payload.status))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
