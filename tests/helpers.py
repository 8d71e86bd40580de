import asyncio

from storefront.client.api import ApiError


class FakeApi:
    """Doble de la API remota: respuestas programables y registro de llamadas."""

    def __init__(self):
        self.promo_responses = {}
        self.promo_calls = []
        self.gates = []
        self.orders = []
        self.order_error = None
        self.tokens = {}
        self.profiles = {}

    async def apply_promo(self, code, items, token=None):
        self.promo_calls.append({"code": code, "items": list(items), "token": token})
        if self.gates:
            gate = self.gates.pop(0)
            await gate.wait()
        response = self.promo_responses.get(code, {"valid": False, "reason": "invalid_code"})
        if callable(response):
            response = response(items, token)
        if isinstance(response, Exception):
            raise response
        return response

    async def create_order(self, items, shipping, promo_code=None, token=None):
        if self.order_error:
            raise self.order_error
        order = {
            "id": f"order-{len(self.orders) + 1}",
            "items": items,
            "shipping": shipping,
            "payment_method": "cod",
            "promo_code": promo_code,
            "total_amount": sum(it["qty"] * it["unit_price"] for it in items),
        }
        self.orders.append({"order": order, "token": token})
        return order

    async def login(self, email, password):
        token = self.tokens.get((email, password))
        if not token:
            raise ApiError(401, "Incorrect email or password")
        return {"access_token": token, "token_type": "bearer"}

    async def get_profile(self, token):
        if token not in self.profiles:
            raise ApiError(401, "Could not validate credentials")
        return self.profiles[token]

    async def check_health(self):
        return {"status": "online"}


def run(coro):
    return asyncio.run(coro)


def login_only(items, token):
    """Respuesta de /promocodes/apply para un código que exige sesión."""
    if token:
        return {"valid": True, "code": "VIP", "discount_value": 15}
    return {"valid": False, "code": "VIP", "reason": "login_required"}
