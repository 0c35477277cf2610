"""Tests for notification payload decoding."""

from __future__ import annotations

import json

import pytest

from confstore.configuration.decoder import NotificationRow, decode_notification
from confstore.configuration.errors import DECODE_ERROR, NotificationDecodeError
from confstore.configuration.types import ConfigurationItem


def test_mixed_case_fields() -> None:
    payload = json.dumps(
        {
            "data": {
                "Key": "k1",
                "Value": "v1",
                "Version": "1",
                "Metadata": {"m": "x"},
            }
        }
    )

    event = decode_notification(payload, "sub-1")

    assert event is not None
    assert event.id == "sub-1"
    assert event.items == {
        "k1": ConfigurationItem(value="v1", version="1", metadata={"m": "x"})
    }


def test_bytes_payload() -> None:
    payload = b'{"data": {"key": "k", "value": "v", "version": "7"}}'

    event = decode_notification(payload, "sub-1")

    assert event is not None
    assert event.items["k"].version == "7"
    assert event.items["k"].metadata == {}


def test_unknown_fields_are_ignored() -> None:
    payload = json.dumps(
        {"data": {"KEY": "k", "value": "v", "id": 12, "updated_at": "now"}}
    )

    event = decode_notification(payload, "sub-1")

    assert event is not None
    assert event.items["k"].value == "v"


def test_missing_fields_default_to_empty() -> None:
    event = decode_notification('{"data": {"value": "v"}}', "sub-1")

    assert event is not None
    assert event.items == {"": ConfigurationItem(value="v")}


def test_non_json_payload() -> None:
    with pytest.raises(NotificationDecodeError) as exc_info:
        decode_notification("not json", "sub-1")
    assert exc_info.value.code == DECODE_ERROR
    assert exc_info.value.context["subscription_id"] == "sub-1"


def test_top_level_must_be_object() -> None:
    with pytest.raises(NotificationDecodeError):
        decode_notification('["data"]', "sub-1")


@pytest.mark.parametrize(
    "payload",
    [
        "{}",
        '{"data": null}',
        '{"data": "k=v"}',
        '{"data": ["k", "v"]}',
        '{"row": {"key": "k"}}',
    ],
)
def test_data_that_is_not_a_mapping_is_dropped(payload: str) -> None:
    assert decode_notification(payload, "sub-1") is None


def test_non_string_metadata_value() -> None:
    payload = json.dumps({"data": {"key": "k", "metadata": {"retries": 3}}})

    with pytest.raises(NotificationDecodeError) as exc_info:
        decode_notification(payload, "sub-1")
    assert exc_info.value.context["errors"]


def test_metadata_must_be_a_mapping() -> None:
    payload = json.dumps({"data": {"key": "k", "metadata": "owner=x"}})

    with pytest.raises(NotificationDecodeError):
        decode_notification(payload, "sub-1")


def test_non_string_key() -> None:
    with pytest.raises(NotificationDecodeError):
        decode_notification('{"data": {"key": 1, "value": "v"}}', "sub-1")


def test_notification_row_normalizes_field_names() -> None:
    row = NotificationRow.model_validate({"vErSiOn": "3", "KEY": "k"})

    assert row.version == "3"
    assert row.key == "k"


def test_deeply_nested_payload() -> None:
    payload = '{"data":' + "[" * 5000 + "]" * 5000 + "}"

    with pytest.raises(NotificationDecodeError) as exc_info:
        decode_notification(payload, "sub-1")
    assert isinstance(exc_info.value.__cause__, RecursionError)
