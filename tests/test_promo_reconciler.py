import asyncio

from helpers import login_only, run
from storefront.client.api import NetworkError, RequestTimeout
from storefront.core.promos.models import PromoApplication, PromoReason, PromoStatus
from storefront.core.promos.reconciler import RETRY_MESSAGE, PromoReconciler

PROMO_KEY = "savage_rise_promo_code"


def ten_percent(items, token):
    total = sum(it["qty"] * it["unit_price"] for it in items)
    return {"valid": True, "code": "TEN", "discount_value": round(total * 0.1, 2)}


def test_apply_valid_code_persists_normalized(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M", 2)
    api.promo_responses["SAVE10"] = {"valid": True, "code": "SAVE10", "discount_value": 20}

    result = run(promo.apply("  save10 "))

    assert result.valid
    assert promo.status == PromoStatus.APPLIED
    assert promo.discount == 20
    assert storage.get(PROMO_KEY) == "SAVE10"
    assert api.promo_calls[0]["code"] == "SAVE10"
    assert api.promo_calls[0]["items"] == [
        {"product_id": "p1", "color": "Noir", "size": "M", "qty": 2, "unit_price": 100.0}
    ]


def test_apply_empty_code_does_nothing(cart, promo, api, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    assert run(promo.apply("   ")) is None
    assert api.promo_calls == []
    assert promo.status == PromoStatus.IDLE


def test_apply_with_empty_cart_makes_no_call(promo, api):
    assert run(promo.apply("SAVE10")) is None
    assert api.promo_calls == []
    assert promo.status == PromoStatus.IDLE
    assert promo.code == "SAVE10"


def test_rejected_code_is_not_persisted(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["USED"] = {"valid": False, "code": "USED", "reason": "per_user_limit_reached"}

    result = run(promo.apply("used"))

    assert result.reason_kind == PromoReason.PER_USER_LIMIT_REACHED
    assert promo.status == PromoStatus.REJECTED
    assert promo.discount == 0
    assert promo.message == "Ya usaste este código."
    assert promo.login_prompt is False
    assert storage.get(PROMO_KEY) is None


def test_unknown_reason_is_generic_invalid(cart, promo, api, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["NOPE"] = {"valid": False, "reason": "expired"}

    result = run(promo.apply("NOPE"))

    assert result.reason == "expired"
    assert result.reason_kind == PromoReason.INVALID
    assert promo.message == "Código inválido."


def test_login_required_prompts_and_retries_after_login(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["VIP"] = login_only
    token = {"value": None}
    promo.token_provider = lambda: token["value"]

    run(promo.apply("VIP"))
    assert promo.status == PromoStatus.REJECTED
    assert promo.login_prompt is True
    assert storage.get(PROMO_KEY) is None

    token["value"] = "tok-123"
    result = run(promo.handle_auth_change(True))

    assert result.valid
    assert promo.status == PromoStatus.APPLIED
    assert promo.login_prompt is False
    assert api.promo_calls[-1]["token"] == "tok-123"
    assert storage.get(PROMO_KEY) == "VIP"


def test_logout_does_not_revalidate(cart, promo, api, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    run(promo.apply("SAVE10"))

    assert run(promo.handle_auth_change(False)) is None
    assert len(api.promo_calls) == 1


def test_revalidate_failure_clears_stored_code(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    run(promo.apply("SAVE10"))
    assert storage.get(PROMO_KEY) == "SAVE10"

    api.promo_responses["SAVE10"] = {"valid": False, "reason": "max_uses_reached"}
    run(promo.revalidate())

    assert promo.status == PromoStatus.REJECTED
    assert storage.get(PROMO_KEY) is None


def test_remove_clears_everything(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    run(promo.apply("SAVE10"))

    promo.remove()

    assert promo.status == PromoStatus.IDLE
    assert promo.code is None
    assert promo.discount == 0
    assert storage.get(PROMO_KEY) is None


def test_restore_revalidates_stored_code(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    storage.set(PROMO_KEY, "save10")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 5}

    result = run(promo.restore())

    assert result.valid
    assert promo.code == "SAVE10"


def test_transport_failure_is_retryable_state(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = RequestTimeout("timeout")

    assert run(promo.apply("SAVE10")) is None
    assert promo.status == PromoStatus.ERROR
    assert promo.error == RETRY_MESSAGE
    assert promo.discount == 0
    # El código se conserva para reintentar
    assert promo.code == "SAVE10"

    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    assert run(promo.revalidate()).valid


def test_emptying_cart_returns_to_idle_and_clears_storage(cart, promo, api, storage, hoodie, noir):
    cart.subscribe(promo.on_cart_changed)
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    run(promo.apply("SAVE10"))

    cart.remove_line("p1", "Noir", "M")

    assert promo.status == PromoStatus.IDLE
    assert promo.code is None
    assert storage.get(PROMO_KEY) is None


def test_unchanged_signature_makes_no_call(cart, promo, api, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    run(promo.apply("SAVE10"))

    run(promo.handle_cart_change(cart.state))

    assert len(api.promo_calls) == 1


def test_cart_change_triggers_revalidation(cart, promo, api, hoodie, noir):
    api.promo_responses["TEN"] = ten_percent

    async def scenario():
        cart.subscribe(promo.on_cart_changed)
        cart.add_line(hoodie, noir, "M")
        await promo.apply("TEN")
        cart.update_quantity("p1", "Noir", "M", 3)
        await promo.settle()

    run(scenario())

    assert len(api.promo_calls) == 2
    assert promo.discount == 30


def test_rejected_code_is_rechecked_on_cart_change(cart, promo, api, hoodie, noir):
    def min_two(items, token):
        if sum(it["qty"] for it in items) >= 2:
            return {"valid": True, "discount_value": 10}
        return {"valid": False, "reason": "min_items"}

    api.promo_responses["DUO"] = min_two

    async def scenario():
        cart.subscribe(promo.on_cart_changed)
        cart.add_line(hoodie, noir, "M")
        await promo.apply("DUO")
        assert promo.status == PromoStatus.REJECTED
        cart.add_line(hoodie, noir, "M")
        await promo.settle()

    run(scenario())

    assert promo.status == PromoStatus.APPLIED
    assert promo.discount == 10


def test_stale_response_is_discarded(cart, promo, api, hoodie, noir):
    api.promo_responses["TEN"] = ten_percent

    async def scenario():
        gate = asyncio.Event()
        api.gates.append(gate)
        cart.add_line(hoodie, noir, "M")
        pending = asyncio.create_task(promo.apply("TEN"))
        await asyncio.sleep(0)
        cart.update_quantity("p1", "Noir", "M", 2)
        gate.set()
        return await pending

    stale = run(scenario())

    assert isinstance(stale, PromoApplication)
    assert stale.stale is True
    assert promo.status == PromoStatus.IDLE
    assert promo.discount == 0
    # El código queda pendiente para el próximo cambio del carrito
    assert promo.code == "TEN"


def test_cart_returning_to_validated_signature_keeps_discount(cart, promo, api, hoodie, noir):
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}

    async def scenario():
        cart.subscribe(promo.on_cart_changed)
        cart.add_line(hoodie, noir, "M")
        await promo.apply("SAVE10")
        gate = asyncio.Event()
        api.gates.append(gate)
        cart.add_line(hoodie, noir, "L")
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        during = (promo.status, promo.discount)
        # Vuelve a la firma ya validada: no se programa otra llamada
        cart.remove_line("p1", "Noir", "L")
        gate.set()
        await promo.settle()
        return during

    during = run(scenario())

    assert during == (PromoStatus.VALIDATING, 20)
    assert len(api.promo_calls) == 2
    assert cart.signature == "p1-Noir-M-1"
    assert promo.status == PromoStatus.APPLIED
    assert promo.discount == 20
    assert promo.applied_code == "SAVE10"


def test_transport_failure_keeps_last_discount(cart, promo, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    run(promo.apply("SAVE10"))

    api.promo_responses["SAVE10"] = NetworkError("down")
    cart.update_quantity("p1", "Noir", "M", 2)
    run(promo.revalidate())

    assert promo.status == PromoStatus.ERROR
    assert promo.message == RETRY_MESSAGE
    assert promo.discount == 20
    assert promo.applied_code == "SAVE10"
    assert storage.get(PROMO_KEY) == "SAVE10"


def test_stale_response_for_new_code_leaves_it_pending(cart, promo, api, hoodie, noir):
    api.promo_responses["SAVE10"] = {"valid": True, "discount_value": 20}
    api.promo_responses["TEN"] = ten_percent

    async def scenario():
        cart.add_line(hoodie, noir, "M")
        await promo.apply("SAVE10")
        gate = asyncio.Event()
        api.gates.append(gate)
        pending = asyncio.create_task(promo.apply("TEN"))
        await asyncio.sleep(0)
        cart.update_quantity("p1", "Noir", "M", 2)
        gate.set()
        return await pending

    assert run(scenario()).stale is True
    assert promo.code == "TEN"
    assert promo.status == PromoStatus.IDLE
    assert promo.discount == 0
    assert promo.applied_code is None


def test_older_response_cannot_overwrite_newer_signature(cart, promo, api, hoodie, noir):
    api.promo_responses["TEN"] = ten_percent

    async def scenario():
        first_gate, second_gate = asyncio.Event(), asyncio.Event()
        api.gates.extend([first_gate, second_gate])
        cart.subscribe(promo.on_cart_changed)
        cart.add_line(hoodie, noir, "M")
        first = asyncio.create_task(promo.apply("TEN"))
        await asyncio.sleep(0)
        # S2: la suscripción programa una segunda validación
        cart.update_quantity("p1", "Noir", "M", 3)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        second_gate.set()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        first_gate.set()
        first_result = await first
        await promo.settle()
        return first_result

    first_result = run(scenario())

    assert first_result.stale is True
    assert promo.status == PromoStatus.APPLIED
    assert promo.result.signature == "p1-Noir-M-3"
    assert promo.discount == 30


def test_network_error_after_cart_change_is_ignored(cart, promo, api, hoodie, noir):
    api.promo_responses["SAVE10"] = NetworkError("down")

    async def scenario():
        gate = asyncio.Event()
        api.gates.append(gate)
        cart.add_line(hoodie, noir, "M")
        pending = asyncio.create_task(promo.apply("SAVE10"))
        await asyncio.sleep(0)
        cart.add_line(hoodie, noir, "L")
        gate.set()
        return await pending

    assert run(scenario()) is None
    assert promo.status != PromoStatus.ERROR


def test_on_cart_changed_without_loop_does_not_raise(cart, promo, api, hoodie, noir):
    promo.code = "SAVE10"
    cart.subscribe(promo.on_cart_changed)
    cart.add_line(hoodie, noir, "M")
    assert api.promo_calls == []


def test_token_is_forwarded(cart, api, storage, hoodie, noir):
    cart.add_line(hoodie, noir, "M")
    promo = PromoReconciler(cart, api, storage, token_provider=lambda: "tok-9")
    run(promo.apply("ANY"))
    assert api.promo_calls[0]["token"] == "tok-9"
