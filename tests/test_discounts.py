import pytest

from salon.domain.cart.discounts import DiscountError, calculate_discount
from salon.domain.cart.service import cart_totals
from salon.domain.orders.pricing import calculate_shipping, calculate_tax, generate_order_number, order_totals
from salon.shared.money import round_rupees


@pytest.mark.parametrize(
    "code, subtotal, expected",
    [
        ("WELCOME10", 1000, ("WELCOME10", 100)),
        (" welcome10 ", 250, ("WELCOME10", 25)),
        ("SAVE50", 500, ("SAVE50", 50)),
        ("FLAT20", 300, ("FLAT20", 60)),
        ("WELCOME10", 105, ("WELCOME10", 11)),
        ("FLAT20", 302.5, ("FLAT20", 61)),
    ],
)
def test_known_codes(code, subtotal, expected):
    assert calculate_discount(code, subtotal) == expected


def test_unknown_code():
    with pytest.raises(DiscountError, match="Invalid discount code"):
        calculate_discount("NOPE", 1000)


def test_shipping_only_code_is_not_a_cart_discount():
    with pytest.raises(DiscountError, match="Invalid discount code"):
        calculate_discount("FREESHIP", 1000)


def test_minimum_amount():
    with pytest.raises(DiscountError, match="Minimum order amount of 300 required"):
        calculate_discount("FLAT20", 299)


def test_cart_totals_never_negative():
    totals = cart_totals([{"price": 40.0, "quantity": 1}], discount=50)

    assert totals["discount"] == 40.0
    assert totals["final_amount"] == 0


def test_free_shipping_threshold():
    assert calculate_shipping(499) == 50
    assert calculate_shipping(500) == 0


def test_order_totals_after_discount():
    totals = order_totals(600, 100)

    assert totals["shipping_charges"] == 0
    assert totals["tax"] == 90
    assert totals["total_amount"] == 590


def test_order_totals_below_threshold():
    totals = order_totals(300, 0)

    assert totals["shipping_charges"] == 50
    assert totals["tax"] == 54
    assert totals["total_amount"] == 404


def test_order_number_format():
    number = generate_order_number()

    assert number.startswith("ORD")
    assert len(number) == 14
    assert number[3:].isdigit()


@pytest.mark.parametrize("amount, expected", [(10.5, 11), (4.5, 5), (2.5, 3), (10.49, 10), (0, 0)])
def test_rupee_rounding_sends_halves_up(amount, expected):
    assert round_rupees(amount) == expected


def test_tax_on_half_rupee_rounds_up():
    assert calculate_tax(25) == 5
    assert calculate_tax(75) == 14


def test_order_totals_round_half_rupee_tax_up():
    totals = order_totals(25, 0)

    assert totals["tax"] == 5
    assert totals["total_amount"] == 80
