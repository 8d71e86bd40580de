# storefront/client/api.py
"""
Cliente asíncrono de la API REST remota (catálogo, auth, pedidos, códigos promo).

Todas las llamadas tienen un tiempo máximo (REQUEST_TIMEOUT, 15 s por defecto);
pasado ese tiempo fallan con RequestTimeout en vez de quedarse colgadas.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, Optional

import httpx

from storefront.config import API_BASE_URL, REQUEST_TIMEOUT

log = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Error base de las llamadas a la API remota."""


class ApiError(StorefrontError):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class NetworkError(StorefrontError):
    pass


class RequestTimeout(StorefrontError):
    pass


def _auth_headers(token: Optional[str]) -> dict:
    return {"Authorization": f"Bearer {token}"} if token else {}


def _order_total(items: list[dict]) -> float:
    return round(sum(float(it["qty"]) * float(it["unit_price"]) for it in items), 2)


class ApiClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        data: Optional[dict] = None,
        params: Optional[dict] = None,
        token: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        log.debug(f"{method} {url}")
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    method, url, json=json, data=data, params=params, headers=_auth_headers(token)
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as err:
            log.error(f"Timeout en {method} {url}")
            raise RequestTimeout("Request timeout: API server took too long to respond") from err
        except httpx.TransportError as err:
            log.error(f"Error de red en {method} {url}: {err}")
            raise NetworkError("Network error: Unable to connect to API server") from err

        if response.is_error:
            detail = response.text
            try:
                body = response.json()
                if isinstance(body, dict) and isinstance(body.get("detail"), str):
                    detail = body["detail"]
            except ValueError:
                pass
            log.error(f"API error {response.status_code} en {url}: {detail}")
            raise ApiError(response.status_code, detail or f"HTTP error {response.status_code}")

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- Productos ---
    async def get_products(self, skip: int = 0, limit: int = 10) -> list[dict]:
        return await self._request("GET", "/products/", params={"skip": skip, "limit": limit})

    async def get_product(self, product_id: str) -> dict:
        products = await self.get_products(0, 100)
        for product in products or []:
            if product.get("id") == product_id:
                return product
        raise ApiError(404, "Product not found")

    async def search_products(self, filters: Optional[dict] = None, skip: int = 0, limit: int = 10) -> list[dict]:
        params = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        params.update({"skip": skip, "limit": limit})
        return await self._request("GET", "/products/search", params=params)

    # --- Auth ---
    async def login(self, email: str, password: str) -> dict:
        return await self._request("POST", "/auth/token", data={"username": email, "password": password})

    async def get_profile(self, token: str) -> dict:
        return await self._request("GET", "/profile/me", token=token)

    # --- Pedidos ---
    async def create_order(
        self,
        items: list[dict],
        shipping: dict,
        promo_code: Optional[str] = None,
        token: Optional[str] = None,
    ) -> dict:
        payload = {"items": items, "shipping": shipping, "payment_method": "cod"}
        if promo_code:
            payload["promo_code"] = promo_code
        return await self._request("POST", "/orders/", json=payload, token=token)

    async def get_my_orders(self, token: str) -> list[dict]:
        return await self._request("GET", "/profile/orders", token=token)

    # --- Códigos promo ---
    async def apply_promo(self, code: str, items: list[dict], token: Optional[str] = None) -> dict:
        payload = {
            "code": code.strip().upper(),
            "order_total": _order_total(items),
            "product_ids": [it["product_id"] for it in items],
            "category_ids": [],
        }
        return await self._request("POST", "/promocodes/apply", json=payload, token=token)

    # --- Salud ---
    async def check_health(self) -> dict:
        return await self._request("GET", "/health")
