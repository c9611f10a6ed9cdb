import hashlib
import hmac


def sign_payload(request_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), request_body, hashlib.sha256).hexdigest()


def verify_payment_signature(header_signature: str, request_body: bytes, secret: str) -> bool:
    """Verifies the signature header of a payment notification.

    Header format: ``signature=<hex>;algorithm=HMAC-SHA256``.
    """
    try:
        parts = {p.split('=')[0].strip(): p.split('=')[1].strip() for p in header_signature.split(';') if p}
    except IndexError:
        return False

    signature_from_header = parts.get('signature')
    if not signature_from_header:
        return False

    algorithm = parts.get('algorithm', 'HMAC-SHA256').upper()
    if algorithm not in ('HMAC-SHA256', 'SHA256', 'SHA-256'):
        return False

    expected_signature = sign_payload(request_body, secret)
    return hmac.compare_digest(expected_signature, signature_from_header)
