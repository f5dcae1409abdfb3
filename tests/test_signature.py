from src.security.signature import extract_signature, sign, verify


BODY = b'{"event":"order.created","store_id":"S1"}'
SECRET = "whsec"


def test_valid_signature_verifies():
    assert verify(BODY, sign(BODY, SECRET), SECRET) is True


def test_signature_is_case_insensitive_hex():
    assert verify(BODY, sign(BODY, SECRET).upper(), SECRET) is True


def test_prefixed_signature_verifies():
    assert verify(BODY, f"sha256={sign(BODY, SECRET)}", SECRET) is True
    assert verify(BODY, f"Bearer {sign(BODY, SECRET)}", SECRET) is True


def test_one_changed_byte_fails():
    tampered = BODY.replace(b"S1", b"S2")
    assert verify(tampered, sign(BODY, SECRET), SECRET) is False


def test_wrong_secret_fails():
    assert verify(BODY, sign(BODY, "other"), SECRET) is False


def test_missing_inputs_fail():
    signature = sign(BODY, SECRET)
    assert verify(b"", signature, SECRET) is False
    assert verify(BODY, "", SECRET) is False
    assert verify(BODY, None, SECRET) is False
    assert verify(BODY, signature, "") is False
    assert verify(BODY, signature, None) is False


def test_malformed_signatures_fail_without_raising():
    assert verify(BODY, "not-hex", SECRET) is False
    assert verify(BODY, "ab" * 16, SECRET) is False
    assert verify(BODY, "zz" * 32, SECRET) is False


def test_extract_prefers_signature_header():
    assert extract_signature("sha256=abc", f"Bearer {'a' * 64}") == "abc"


def test_extract_falls_back_to_authorization_digest():
    digest = sign(BODY, SECRET)
    assert extract_signature(None, f"Bearer {digest}") == digest
    assert extract_signature("   ", digest) == digest


def test_extract_ignores_non_digest_authorization():
    assert extract_signature(None, "Bearer eyJhbGciOiJIUzI1NiJ9.payload.sig") == ""
    assert extract_signature(None, None) == ""
