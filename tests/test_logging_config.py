from core.logging_config import add_service_context, redact_secrets


def test_gateway_credentials_are_redacted():
    event = redact_secrets(None, "info", {"event": "gateway_call", "client_secret": "sec_1", "payment_id": 7})

    assert event["client_secret"] == "***"
    assert event["payment_id"] == 7


def test_service_context_is_stamped_without_overwriting():
    event = add_service_context(None, "info", {"event": "x", "env": "custom"})

    assert event["service"]
    assert event["env"] == "custom"
