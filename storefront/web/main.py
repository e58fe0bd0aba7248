from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, Form, Request
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.cart.storage import SqliteClientStorage
from storefront.cart.store import CartSessions, CartStore
from storefront.config import Settings, load_settings
from storefront.constants import CART_SESSION_COOKIE, CATEGORIES
from storefront.db.sqlite import get_order, init_db, list_orders
from storefront.exceptions import CheckoutError, MenuItemNotFound
from storefront.services import menu as menu_service
from storefront.services.checkout import CheckoutService
from storefront.services.receipt_pdf import generate_receipt_pdf
from storefront.services.webhook import PaymentWebhookReceiver
from storefront.utils.formatters import money

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _cart(request: Request) -> CartStore:
    return request.app.state.carts.get(request.state.cart_session)


def _cart_count(request: Request) -> int:
    if request.state.cart_session_fresh:
        return 0
    return request.app.state.carts.item_count(request.state.cart_session)


def _current_user(request: Request) -> Optional[str]:
    v = request.headers.get(_settings(request).auth_header, "").strip()
    return v or None


def _is_admin(request: Request) -> bool:
    user = _current_user(request)
    if not user:
        return False
    admins = _settings(request).admin_user_ids
    return not admins or user in admins


def _render(request: Request, name: str, ctx: dict[str, Any], status_code: int = 200) -> HTMLResponse:
    s = _settings(request)
    base = {
        "user_id": _current_user(request),
        "is_admin": _is_admin(request),
        "cart_count": _cart_count(request),
        "money": lambda v: money(v, s.currency, s.decimals),
    }
    base.update(ctx)
    return templates.TemplateResponse(request, name, base, status_code=status_code)


def _back(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    init_db(settings.db_path)

    app = FastAPI(title="Storefront")
    app.state.settings = settings
    app.state.carts = CartSessions(
        lambda sid: SqliteClientStorage(settings.db_path, sid),
        max_sessions=settings.cart_sessions_max,
    )
    app.state.checkout = CheckoutService(settings)
    app.state.webhook = PaymentWebhookReceiver(settings)

    @app.middleware("http")
    async def cart_session(request: Request, call_next):
        sid = request.cookies.get(CART_SESSION_COOKIE)
        fresh = not sid
        if fresh:
            sid = uuid.uuid4().hex
        request.state.cart_session = sid
        request.state.cart_session_fresh = fresh
        response = await call_next(request)
        if fresh:
            response.set_cookie(CART_SESSION_COOKIE, sid, httponly=True, samesite="lax", max_age=60 * 60 * 24 * 365)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if request.url.path.startswith("/api/"):
            return JSONResponse({"error": exc.detail}, status_code=exc.status_code)
        if exc.status_code == 404:
            return _render(request, "not_found.html", {}, status_code=404)
        return HTMLResponse(str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(MenuItemNotFound)
    async def menu_item_missing(request: Request, exc: MenuItemNotFound):
        if request.url.path.startswith("/api/"):
            return JSONResponse({"error": exc.message}, status_code=404)
        return _render(request, "not_found.html", {}, status_code=404)

    _register_pages(app)
    _register_cart(app)
    _register_admin(app)
    _register_api(app)
    return app


# ---------------- pages ----------------

def _register_pages(app: FastAPI) -> None:
    @app.get("/", response_class=HTMLResponse)
    def index(request: Request):
        items = menu_service.get_menu_items(_settings(request).db_path)
        return _render(request, "index.html", {"featured": items[:3]})

    @app.get("/menu", response_class=HTMLResponse)
    def menu(request: Request):
        items = menu_service.get_menu_items(_settings(request).db_path)
        return _render(request, "menu.html", {"items": items})

    @app.get("/success", response_class=HTMLResponse)
    def success(request: Request, session_id: str = ""):
        # cleared on the redirect alone, the webhook may still be in flight
        _cart(request).clear_cart()
        return _render(request, "success.html", {"session_id": session_id})

    @app.get("/orders", response_class=HTMLResponse)
    def orders(request: Request):
        user = _current_user(request)
        rows = list_orders(_settings(request).db_path, user) if user else []
        return _render(request, "orders.html", {"orders": rows})

    @app.get("/orders/{order_id}/receipt", response_class=FileResponse)
    def receipt(request: Request, order_id: int):
        user = _current_user(request)
        s = _settings(request)
        order = get_order(s.db_path, order_id)
        if not user or not order or order["user_id"] != user:
            raise StarletteHTTPException(status_code=404, detail="Order not found")
        path = generate_receipt_pdf(order, s.export_dir, s.currency)
        return FileResponse(path, media_type="application/pdf", filename=Path(path).name)


# ---------------- cart ----------------

def _register_cart(app: FastAPI) -> None:
    @app.get("/cart", response_class=HTMLResponse)
    def cart_page(request: Request, msg: str = ""):
        s = _settings(request)
        store = _cart(request)
        return _render(
            request,
            "cart.html",
            {
                "cart": store.cart,
                "totals": store.totals(s.tax_rate, s.decimals),
                "tax_percent": s.tax_rate * 100,
                "message": msg,
            },
        )

    @app.post("/cart/add")
    def cart_add(request: Request, item_id: str = Form(...), return_to: str = Form("/menu")):
        item = menu_service.require_menu_item(_settings(request).db_path, item_id)
        _cart(request).add_to_cart(menu_service.catalog_snapshot(item))
        safe = return_to.startswith("/") and not return_to.startswith("//")
        return _back(return_to if safe else "/menu")

    @app.post("/cart/remove")
    def cart_remove(request: Request, item_id: str = Form(...)):
        _cart(request).remove_from_cart(item_id)
        return _back("/cart")

    @app.post("/cart/increment")
    def cart_increment(request: Request, item_id: str = Form(...)):
        _cart(request).increment_quantity(item_id)
        return _back("/cart")

    @app.post("/cart/decrement")
    def cart_decrement(request: Request, item_id: str = Form(...)):
        _cart(request).decrement_quantity(item_id)
        return _back("/cart")

    @app.post("/cart/clear")
    def cart_clear(request: Request):
        _cart(request).clear_cart()
        return _back("/cart")

    @app.post("/cart/checkout")
    def cart_checkout(request: Request):
        checkout: CheckoutService = request.app.state.checkout
        try:
            url = checkout.create_session(_current_user(request), _cart(request).snapshot())
        except CheckoutError as e:
            return _back(f"/cart?msg={e.message}")
        return _back(url)


# ---------------- admin ----------------

def _register_admin(app: FastAPI) -> None:
    def _forbidden(request: Request) -> Optional[Response]:
        if _is_admin(request):
            return None
        return _render(request, "forbidden.html", {}, status_code=403)

    def _form_page(request: Request, item: Optional[dict], errors: dict, status_code: int = 200) -> HTMLResponse:
        return _render(
            request,
            "menu_form.html",
            {"item": item, "errors": errors, "categories": CATEGORIES},
            status_code=status_code,
        )

    @app.get("/admin/menu", response_class=HTMLResponse)
    def admin_menu(request: Request, msg: str = ""):
        denied = _forbidden(request)
        if denied:
            return denied
        items = menu_service.get_menu_items(_settings(request).db_path)
        return _render(request, "admin_menu.html", {"items": items, "message": msg})

    @app.get("/admin/menu/create", response_class=HTMLResponse)
    def admin_menu_form(request: Request, edit: str = ""):
        denied = _forbidden(request)
        if denied:
            return denied
        item = menu_service.require_menu_item(_settings(request).db_path, edit) if edit else None
        return _form_page(request, item, {})

    @app.post("/admin/menu/create")
    def admin_menu_create(
        request: Request,
        name: str = Form(""),
        description: str = Form(""),
        category: str = Form(""),
        price: str = Form(""),
        image: str = Form(""),
    ):
        denied = _forbidden(request)
        if denied:
            return denied
        raw = {"name": name, "description": description, "category": category, "price": price, "image": image}
        result = menu_service.create_menu_item(_settings(request).db_path, raw)
        if not result.success:
            return _form_page(request, raw, result.errors, status_code=400)
        return _back(f"/admin/menu?msg={result.message}")

    @app.post("/admin/menu/{item_id}/edit")
    def admin_menu_edit(
        request: Request,
        item_id: str,
        name: str = Form(""),
        description: str = Form(""),
        category: str = Form(""),
        price: str = Form(""),
        image: str = Form(""),
    ):
        denied = _forbidden(request)
        if denied:
            return denied
        raw = {"name": name, "description": description, "category": category, "price": price, "image": image}
        result = menu_service.update_menu_item(_settings(request).db_path, item_id, raw)
        if not result.success:
            return _form_page(request, dict(raw, id=item_id), result.errors, status_code=400)
        return _back(f"/admin/menu?msg={result.message}")

    @app.post("/admin/menu/{item_id}/delete")
    def admin_menu_delete(request: Request, item_id: str):
        denied = _forbidden(request)
        if denied:
            return denied
        result = menu_service.delete_menu_item(_settings(request).db_path, item_id)
        msg = result.message if result.success else result.errors["formError"][0]
        return _back(f"/admin/menu?msg={msg}")


# ---------------- json api ----------------

def _register_api(app: FastAPI) -> None:
    @app.get("/api/cart")
    def api_cart(request: Request):
        s = _settings(request)
        store = _cart(request)
        totals = store.totals(s.tax_rate, s.decimals)
        return {
            "cart": [it.to_dict() for it in store.cart],
            "subtotal": str(totals.subtotal),
            "tax": str(totals.tax),
            "total": str(totals.total),
        }

    @app.post("/api/checkout")
    async def api_checkout(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        cart_items = body.get("cartItems") if isinstance(body, dict) else None
        checkout: CheckoutService = request.app.state.checkout
        try:
            url = checkout.create_session(_current_user(request), cart_items)
        except CheckoutError as e:
            return JSONResponse({"error": e.message}, status_code=e.status_code)
        return {"url": url}

    @app.get("/api/menu-items")
    def api_menu_items(request: Request):
        return menu_service.get_menu_items(_settings(request).db_path)

    @app.delete("/api/menu-items")
    def api_menu_items_delete(request: Request, id: str = ""):
        if not _is_admin(request):
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        if not id:
            return JSONResponse({"error": "Menu item ID is required"}, status_code=400)
        result = menu_service.delete_menu_item(_settings(request).db_path, id)
        if not result.success:
            return JSONResponse({"error": "Failed to delete menu item"}, status_code=404)
        return {"message": result.message}

    @app.get("/api/webhook")
    def api_webhook_status(request: Request):
        receiver: PaymentWebhookReceiver = request.app.state.webhook
        return {"message": "Webhook endpoint is accessible", "environment": receiver.status()}

    @app.post("/api/webhook")
    async def api_webhook(request: Request):
        receiver: PaymentWebhookReceiver = request.app.state.webhook
        payload = await request.body()
        outcome = receiver.handle(payload, request.headers.get("stripe-signature"))
        return Response(outcome.message, status_code=outcome.status_code, media_type="text/plain")


def main() -> None:
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
