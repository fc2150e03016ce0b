"""HTTP client for the shop API.

Mirrors what the storefront does in the browser: it keeps the session and
the cart in local storage, talks to the API with both the session cookie
and a bearer header, and only sends the cart to the server at checkout.
"""
import json
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from .config import get_settings
from .logger import get_logger

logger = get_logger(__name__)

GENERIC_ERROR = "An error occurred. Please try again."
STATUS_MESSAGES = {
    401: "Please log in to continue.",
    403: "You don't have permission to perform this action.",
    504: "The server is taking too long to respond. Please try again.",
}

TOKEN_KEY = "token"
USER_KEY = "userData"
CART_KEY = "cart"


class ClientError(Exception):
    """Error returned by the shop API, with a user-presentable message"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)


class RetryableError(ClientError):
    """Gateway timeout or connection failure; worth one more try"""


class LocalStorage:
    """Small JSON-file key/value store standing in for browser local storage.

    With no path the data only lives in memory.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._data: Dict[str, Any] = {}
        if self.path and self.path.exists():
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Failed to load local storage", path=str(self.path), error=str(e))
                self._data = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)
        self._flush()

    def _flush(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # write-then-rename so a crash never leaves half a file
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(self._data, fh)
        os.replace(tmp, self.path)


class Session(NamedTuple):
    token: str
    user: Optional[Dict[str, Any]]
    # "cookie" when the server-issued cookie is present, "local" for the cached copy
    source: str

    @property
    def role(self) -> Optional[str]:
        return (self.user or {}).get("role")


class Cart:
    """Shopping cart kept entirely on the client."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def items(self) -> List[Dict[str, Any]]:
        return list(self.storage.get(CART_KEY, []))

    def _save(self, items: List[Dict[str, Any]]) -> None:
        self.storage.set(CART_KEY, items)

    def add(self, product_id: int, price, quantity: int = 1) -> None:
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        items = self.items()
        for item in items:
            if item["product_id"] == product_id:
                item["quantity"] += quantity
                break
        else:
            items.append({"product_id": product_id, "quantity": quantity, "price_snapshot": str(price)})
        self._save(items)

    def set_quantity(self, product_id: int, quantity: int) -> None:
        if quantity < 1:
            self.remove(product_id)
            return
        items = self.items()
        for item in items:
            if item["product_id"] == product_id:
                item["quantity"] = quantity
        self._save(items)

    def remove(self, product_id: int) -> None:
        self._save([item for item in self.items() if item["product_id"] != product_id])

    def clear(self) -> None:
        self.storage.remove(CART_KEY)

    def is_empty(self) -> bool:
        return not self.items()

    def subtotal(self) -> Decimal:
        return sum(
            (Decimal(item["price_snapshot"]) * item["quantity"] for item in self.items()),
            Decimal("0"),
        )


class ShopClient:
    """Client for the shop API.

    ``http`` may be any requests-compatible client (a ``requests.Session``
    by default; the FastAPI ``TestClient`` works too).
    """

    def __init__(
        self,
        base_url: str = "",
        storage: Optional[LocalStorage] = None,
        http=None,
        timeout: float = 10.0,
        retry_wait: float = 2.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.storage = storage or LocalStorage()
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.retry_wait = retry_wait
        self.cart = Cart(self.storage)

    # -------------------- transport --------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.storage.get(TOKEN_KEY)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None):
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.ConnectionError as e:
            logger.warning("Connection failed", method=method, path=path, error=str(e))
            raise RetryableError("Connection failed. Please check your internet connection and try again.")

        if response.status_code < 400:
            return response

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("detail") or body.get("message")
        if not isinstance(message, str) or not message:
            message = STATUS_MESSAGES.get(response.status_code, GENERIC_ERROR)

        if response.status_code == 401:
            self.clear_session()
        logger.info("Request failed", method=method, path=path, status=response.status_code)
        error_cls = RetryableError if response.status_code == 504 else ClientError
        raise error_cls(message, status_code=response.status_code, payload=body)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        for attempt in Retrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self.retry_wait),
            retry=retry_if_exception_type(RetryableError),
            reraise=True,
        ):
            with attempt:
                response = self._send(method, path, payload)
        try:
            return response.json()
        except ValueError:
            return None

    # -------------------- session --------------------

    def session(self) -> Optional[Session]:
        """Current session; the server cookie wins over the locally cached token."""
        user = self.storage.get(USER_KEY)
        cookie = self.http.cookies.get(get_settings().session_cookie)
        if cookie:
            return Session(token=cookie, user=user, source="cookie")
        token = self.storage.get(TOKEN_KEY)
        if token:
            return Session(token=token, user=user, source="local")
        return None

    def clear_session(self) -> None:
        self.storage.remove(TOKEN_KEY, USER_KEY)
        # a rejected cookie would otherwise keep winning in session()
        name = get_settings().session_cookie
        if self.http.cookies.get(name) is not None:
            del self.http.cookies[name]

    def is_admin(self) -> bool:
        """Role check for admin-only screens, always revalidated with the server."""
        if self.session() is None:
            return False
        try:
            user = self.who_am_i()
        except ClientError:
            return False
        return user.get("role") == "admin"

    # -------------------- account --------------------

    def signup(self, username: str, email: str, password: str, role: str = "user") -> Dict[str, Any]:
        return self._request("POST", "/signup", {"username": username, "email": email, "password": password, "role": role})

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/login", {"email": email, "password": password})
        self.storage.set(TOKEN_KEY, data["token"])
        self.storage.set(USER_KEY, data["user"])
        logger.info("Logged in", user_id=data["user"]["id"])
        return data

    def logout(self) -> None:
        try:
            self._request("POST", "/logout")
        finally:
            # local state goes even if the server call fails
            self.clear_session()
            self.http.cookies.clear()

    def who_am_i(self) -> Dict[str, Any]:
        user = self._request("GET", "/user")
        self.storage.set(USER_KEY, user)
        return user

    def update_profile(self, username: str, email: str, password: Optional[str] = None) -> Dict[str, Any]:
        payload = {"username": username, "email": email}
        if password:
            payload["password"] = password
        user = self._request("PUT", "/user/update", payload)
        self.storage.set(USER_KEY, user)
        return user

    # -------------------- catalog --------------------

    def list_products(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/products")

    def add_product(self, name: str, description: str, price, image: str) -> Dict[str, Any]:
        return self._request("POST", "/products", {"name": name, "description": description, "price": str(price), "image": image})

    def update_product(self, product_id: int, name: str, description: str, price, image: Optional[str] = None) -> Dict[str, Any]:
        payload = {"name": name, "description": description, "price": str(price)}
        if image:
            payload["image"] = image
        return self._request("PUT", f"/products/{product_id}", payload)

    def delete_product(self, product_id: int) -> None:
        self._request("DELETE", f"/products/{product_id}")

    # -------------------- orders --------------------

    def checkout(self, payment_method: str, payment_status: str = "pending") -> Dict[str, Any]:
        """Turn the local cart into an order; the cart is cleared only on success."""
        items = self.cart.items()
        if not items:
            raise ClientError("Your cart is empty.")
        payload = {
            "items": [{"product_id": item["product_id"], "quantity": item["quantity"]} for item in items],
            "total": str(self.cart.subtotal()),
            "payment_details": {"payment_method": payment_method, "payment_status": payment_status},
        }
        order = self._request("POST", "/orders", payload)
        self.cart.clear()
        logger.info("Checkout complete", order_id=order["id"])
        return order

    def list_orders(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/orders")

    def delete_order(self, order_id: int) -> None:
        self._request("DELETE", f"/orders/{order_id}")
