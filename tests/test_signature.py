import hashlib
import hmac

from utils.signature import sign_payload, verify_payment_signature

SECRET = "whsec_test"
BODY = b'{"payment_reference": "pay_123"}'


def test_sign_payload_is_hmac_sha256_hex():
    expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()

    assert sign_payload(BODY, SECRET) == expected


def test_valid_signature_is_accepted():
    header = f"signature={sign_payload(BODY, SECRET)};algorithm=HMAC-SHA256"

    assert verify_payment_signature(header, BODY, SECRET) is True


def test_algorithm_defaults_to_hmac_sha256():
    header = f"signature={sign_payload(BODY, SECRET)}"

    assert verify_payment_signature(header, BODY, SECRET) is True


def test_tampered_body_is_rejected():
    header = f"signature={sign_payload(BODY, SECRET)};algorithm=HMAC-SHA256"

    assert verify_payment_signature(header, BODY + b" ", SECRET) is False


def test_wrong_secret_is_rejected():
    header = f"signature={sign_payload(BODY, 'other')};algorithm=HMAC-SHA256"

    assert verify_payment_signature(header, BODY, SECRET) is False


def test_unsupported_algorithm_is_rejected():
    header = f"signature={sign_payload(BODY, SECRET)};algorithm=MD5"

    assert verify_payment_signature(header, BODY, SECRET) is False


def test_malformed_header_is_rejected():
    assert verify_payment_signature("garbage", BODY, SECRET) is False
    assert verify_payment_signature("algorithm=HMAC-SHA256", BODY, SECRET) is False
