import hashlib
import hmac

from salon.services.razorpay_service import RazorpayService, compute_signature, to_paise


def test_signature_is_hmac_sha256_of_order_and_payment():
    expected = hmac.new(b"secret", b"order_abc|pay_xyz", hashlib.sha256).hexdigest()

    assert compute_signature("secret", "order_abc", "pay_xyz") == expected


def test_verify_accepts_matching_signature():
    service = RazorpayService()
    signature = compute_signature(service.key_secret, "order_abc", "pay_xyz")

    assert service.verify_payment_signature("order_abc", "pay_xyz", signature)


def test_verify_rejects_tampered_payment_id():
    service = RazorpayService()
    signature = compute_signature(service.key_secret, "order_abc", "pay_xyz")

    assert not service.verify_payment_signature("order_abc", "pay_other", signature)


def test_verify_rejects_empty_signature():
    assert not RazorpayService().verify_payment_signature("order_abc", "pay_xyz", "")


def test_verify_without_secret_fails_closed():
    service = RazorpayService()
    service.key_secret = None

    assert not service.verify_payment_signature("order_abc", "pay_xyz", "anything")


def test_amounts_are_sent_in_paise():
    assert to_paise(590) == 59000
    assert to_paise(199.99) == 19999
