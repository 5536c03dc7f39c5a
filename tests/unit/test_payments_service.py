import pytest

from checkout.errors import AmountOutOfBoundsError, GatewayError, InputValidationError
from checkout.payments import service
from checkout.payments.schemas import Address, Customer
from checkout.pricing import DEFAULT_PRICING, installment_bounds, is_installment_eligible, pricing_from_dict

ONEY_CUSTOMER = {
    "email": "ana@example.com", "firstName": "Ana", "lastName": "Diaz", "phone": "0601020304",
    "address": {"line1": "12 rue des Lilas", "postalCode": "75011", "city": "Paris"},
}


def _request(amount=151000, payment_type="full", customer=None, **extra):
    body = {
        "amount": amount,
        "paymentType": payment_type,
        "customer": customer or {"email": "ana@example.com", "firstName": "Ana", "lastName": "Diaz", "phone": "0601020304"},
        "metadata": {
            "shippingMethod": "colissimo",
            "items": [{"id": "cart_i1", "type": "instrument", "sourceId": "inst-1", "nom": "Handpan D Kurd 9",
                       "unitPrice": 1400, "options": [{"id": "housse-1", "nom": "Housse Hardcase", "price": 60}]}],
        },
    }
    body.update(extra)
    return body


def test_is_valid_email():
    assert service.is_valid_email("ana@example.com")
    assert not service.is_valid_email("ana@example")
    assert not service.is_valid_email("ana example@x.fr")
    assert not service.is_valid_email("")

def test_validate_customer_requires_oney_address():
    customer = Customer(email="ana@example.com", first_name="Ana", last_name="Diaz", phone="0601020304")
    service.validate_customer(customer, "full")
    with pytest.raises(InputValidationError) as exc:
        service.validate_customer(customer, "installments")
    assert exc.value.field == "address"

    customer.address = Address(line1="12 rue des Lilas", postal_code="", city="Paris")
    with pytest.raises(InputValidationError) as exc:
        service.validate_customer(customer, "installments")
    assert exc.value.field == "postalCode"

def test_validate_customer_fields():
    with pytest.raises(InputValidationError) as exc:
        service.validate_customer(Customer(email="pas-un-email", first_name="Ana", last_name="Diaz"), "full")
    assert exc.value.field == "email"
    with pytest.raises(InputValidationError) as exc:
        service.validate_customer(Customer(email="ana@example.com", first_name="", last_name="Diaz"), "full")
    assert exc.value.field == "firstName"
    with pytest.raises(InputValidationError) as exc:
        service.validate_customer(Customer(email="ana@example.com", first_name="Ana", last_name="Diaz"), "installments")
    assert exc.value.field == "phone"

def test_create_payment_sends_expected_amount(gateway):
    result = service.create_payment(_request(150950), pricing=DEFAULT_PRICING)
    assert result["success"] is True
    assert result["amount"] == 151000
    assert result["paymentId"] == "pay_test_1"
    assert result["paymentUrl"] == "https://secure.payplug.com/pay/test_1"
    assert result["amountFormatted"] == "1\u202f510,00\u00a0€"
    assert result["integrated"] is False
    assert gateway.last["amount"] == 151000
    assert gateway.last["hosted_payment"]["return_url"].endswith(f"status=success&ref={result['reference']}")

def test_create_payment_keeps_client_reference(gateway):
    result = service.create_payment(_request(orderReference="MP2610-CLIENT"), pricing=DEFAULT_PRICING)
    assert result["reference"] == "MP2610-CLIENT"
    assert gateway.last["metadata"]["order_reference"] == "MP2610-CLIENT"

def test_create_payment_ignores_foreign_return_url(gateway):
    service.create_payment(_request(returnUrl="https://evil.example/ok"), pricing=DEFAULT_PRICING)
    assert gateway.last["hosted_payment"]["return_url"].startswith("http://localhost:8000/commander")

def test_create_payment_oney_bounds(gateway):
    with pytest.raises(InputValidationError) as exc:
        service.create_payment(_request(payment_type="installments", installments=5), pricing=DEFAULT_PRICING)
    assert exc.value.field == "installments"
    cheap = _request(3500, payment_type="installments", installments=3)
    cheap["metadata"]["items"] = [{"id": "cart_a1", "type": "accessoire", "sourceId": "support-1", "nom": "Support bois", "unitPrice": 35}]
    cheap["metadata"]["shippingMethod"] = "retrait"
    with pytest.raises(AmountOutOfBoundsError):
        service.create_payment(cheap, pricing=DEFAULT_PRICING)
    assert gateway.payloads == []

def test_create_payment_gateway_error_propagates(gateway):
    gateway.fail()
    with pytest.raises(GatewayError):
        service.create_payment(_request(), pricing=DEFAULT_PRICING)

def test_check_amount_bounds_rejects_tiny_amount():
    from checkout.payments.validator import ValidatedOrder
    order = ValidatedOrder(expected_amount=0)
    with pytest.raises(AmountOutOfBoundsError):
        service.check_amount_bounds(order, None)

def test_parse_request_rejects_non_dict():
    with pytest.raises(InputValidationError):
        service.parse_request(["pas", "un", "objet"])

def test_installment_bounds_follow_pricing_config(gateway):
    narrow = pricing_from_dict({"oneyMin": 200, "oneyMax": 1500})
    assert installment_bounds(narrow) == (200, 1500)
    assert is_installment_eligible(1510, narrow) is False
    with pytest.raises(AmountOutOfBoundsError) as exc:
        service.create_payment(_request(payment_type="installments", installments=3, customer=ONEY_CUSTOMER), pricing=narrow)
    assert "1\u202f500" in exc.value.message
    assert gateway.payloads == []

def test_installment_bounds_never_exceed_gateway_limits(gateway):
    wide = pricing_from_dict({"oneyMax": 5000})
    assert installment_bounds(wide) == (100, 3000)
    assert is_installment_eligible(4000, wide) is False
    result = service.create_payment(_request(payment_type="installments", installments=4, customer=ONEY_CUSTOMER), pricing=wide)
    assert result["amount"] == 151000
    assert gateway.last["payment_method"] == "oney_x4_with_fees"
