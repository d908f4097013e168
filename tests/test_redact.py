from __future__ import annotations

from footprints._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "host": "broker.local",
        "username": "alice",
        "password": "pw",
        "nested": {"SSID": "HomeWifi", "bssid": "aa:bb"},
        "empty": {"password": None},
    }

    redacted = redact_for_log(payload)
    assert redacted["host"] == "broker.local"
    assert redacted["username"] == "<redacted>"
    assert redacted["password"] == "<redacted>"
    assert redacted["nested"]["SSID"] == "<redacted>"
    assert redacted["nested"]["bssid"] == "<redacted>"
    assert redacted["empty"]["password"] is None


def test_redact_for_log_coarsens_coordinates() -> None:
    redacted = redact_for_log([{"latitude": 52.370216, "lon": 4.895168, "accuracy": 12.345}])
    assert redacted == [{"latitude": 52.37, "lon": 4.895, "accuracy": 12.345}]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
