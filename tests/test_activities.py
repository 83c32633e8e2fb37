from __future__ import annotations

import pytest

from bot_backend.activities import (
    InvalidActivityError,
    InvokeActivity,
    MessageActivity,
    UnsupportedActivity,
    parse_activity,
    strip_mentions,
    submitted_action,
)
from conftest import SERVICE_URL, TENANT_ID


def test_parses_message(inbound_body):
    act = parse_activity(inbound_body)

    assert isinstance(act, MessageActivity)
    assert act.text == "hi"
    assert act.conversation_id == "a:1Xyz/conv#1"
    assert act.service_url == SERVICE_URL
    assert act.channel_id == "msteams"
    assert act.tenant_id == TENANT_ID
    assert act.recipient_id == "28:bot-1"
    assert act.raw is inbound_body


def test_tenant_falls_back_to_conversation(inbound_body):
    del inbound_body["channelData"]
    assert parse_activity(inbound_body).tenant_id == TENANT_ID


def test_no_tenant_anywhere(inbound_body):
    del inbound_body["channelData"]
    del inbound_body["conversation"]["tenantId"]
    assert parse_activity(inbound_body).tenant_id is None


def test_parses_invoke(inbound_body):
    inbound_body.update(type="invoke", name="adaptiveCard/action", value={"action": {"type": "Action.Submit", "data": {"type": "start"}}})
    act = parse_activity(inbound_body)

    assert isinstance(act, InvokeActivity)
    assert act.name == "adaptiveCard/action"
    assert submitted_action(act) == {"type": "start"}


def test_other_types_are_unsupported(inbound_body):
    inbound_body["type"] = "conversationUpdate"
    assert isinstance(parse_activity(inbound_body), UnsupportedActivity)


@pytest.mark.parametrize("body", [None, [], "text", {}, {"text": "no type"}])
def test_rejects_invalid_bodies(body):
    with pytest.raises(InvalidActivityError):
        parse_activity(body)


def test_submitted_action_from_message_value(inbound_body):
    inbound_body["value"] = {"type": "answer", "questionId": 2, "value": "Mornings"}
    assert submitted_action(parse_activity(inbound_body)) == {"type": "answer", "questionId": 2, "value": "Mornings"}


def test_submitted_action_ignores_other_invokes(inbound_body):
    inbound_body.update(type="invoke", name="composeExtension/query", value={"action": {"type": "Action.Submit", "data": {}}})
    assert submitted_action(parse_activity(inbound_body)) is None


def test_plain_message_has_no_action(inbound_body):
    assert submitted_action(parse_activity(inbound_body)) is None


def test_strip_mentions():
    assert strip_mentions("<at>Hoogah</at> Restart ") == "Restart"
    assert strip_mentions("hello") == "hello"
    assert strip_mentions(None) == ""


def test_tenant_from_schema_cased_conversation_key(inbound_body):
    del inbound_body["channelData"]
    inbound_body["conversation"]["tenantID"] = inbound_body["conversation"].pop("tenantId")
    assert parse_activity(inbound_body).tenant_id == TENANT_ID
