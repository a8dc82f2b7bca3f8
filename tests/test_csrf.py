from csrf import generate_csrf_token, validate_csrf_token


def test_token_is_bound_to_scope() -> None:
    token = generate_csrf_token("tx-editor")
    assert validate_csrf_token(token, "tx-editor")
    assert not validate_csrf_token(token, "manual-month")


def test_tampered_or_missing_tokens_fail() -> None:
    token = generate_csrf_token()
    assert not validate_csrf_token(token[:-2] + "xx")
    assert not validate_csrf_token("")
