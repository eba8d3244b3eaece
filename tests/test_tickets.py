"""Tests for ticket encoding and decoding."""

import time

import jwt
import pytest

from oauth.errors import InvalidGrant, MalformedTicket, TicketExpired
from oauth.tickets import (
    NAME_CLAIM,
    PURPOSE_ACCESS_TOKEN,
    PURPOSE_REFRESH_TOKEN,
    SCOPE_CLAIM,
    AuthenticationType,
    TicketCodec,
    create_ticket,
    get_or_create_secret,
)


def _bearer_ticket(**overrides):
    kwargs = dict(
        subject="alice",
        claims=[(NAME_CLAIM, "alice"), (SCOPE_CLAIM, "read"), (SCOPE_CLAIM, "write")],
        authentication_type=AuthenticationType.BEARER,
        lifetime=300,
        properties={"client_id": "c1"},
    )
    kwargs.update(overrides)
    return create_ticket(**kwargs)


def _flip_char(segment: str, index: int) -> str:
    replacement = "A" if segment[index] != "A" else "B"
    return segment[:index] + replacement + segment[index + 1:]


def test_decode_reproduces_ticket(codec):
    ticket = _bearer_ticket()

    decoded = codec.decode(codec.encode(ticket, PURPOSE_REFRESH_TOKEN), PURPOSE_REFRESH_TOKEN)

    assert decoded == ticket
    assert decoded.subject == "alice"
    assert decoded.scopes == frozenset({"read", "write"})
    assert decoded.scope == "read write"
    assert decoded.name == "alice"
    assert decoded.authentication_type == AuthenticationType.BEARER
    assert decoded.properties == {"client_id": "c1"}


def test_ticket_without_scopes_round_trips(codec):
    ticket = _bearer_ticket(claims=[(NAME_CLAIM, "bob")], subject="bob")

    decoded = codec.decode(codec.encode(ticket, PURPOSE_ACCESS_TOKEN), PURPOSE_ACCESS_TOKEN)

    assert decoded.scopes == frozenset()
    assert decoded.scope == ""


def test_encoded_ticket_is_signed_jwt(codec):
    token = codec.encode(_bearer_ticket(), PURPOSE_ACCESS_TOKEN)

    assert token.count(".") == 2
    assert jwt.get_unverified_header(token)["alg"] == "HS256"


def test_bit_flipped_payload_is_rejected(codec):
    header, payload, signature = codec.encode(_bearer_ticket(), PURPOSE_ACCESS_TOKEN).split(".")
    tampered = ".".join([header, _flip_char(payload, len(payload) // 2), signature])

    with pytest.raises(MalformedTicket):
        codec.decode(tampered, PURPOSE_ACCESS_TOKEN)


def test_truncated_token_is_rejected(codec):
    token = codec.encode(_bearer_ticket(), PURPOSE_ACCESS_TOKEN)

    with pytest.raises(MalformedTicket):
        codec.decode(token[: len(token) // 2], PURPOSE_ACCESS_TOKEN)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_garbage_is_rejected(codec, token):
    with pytest.raises(MalformedTicket):
        codec.decode(token, PURPOSE_ACCESS_TOKEN)


def test_expired_ticket_is_rejected(codec):
    ticket = _bearer_ticket(lifetime=10, now=time.time() - 100)

    with pytest.raises(TicketExpired):
        codec.decode(codec.encode(ticket, PURPOSE_REFRESH_TOKEN), PURPOSE_REFRESH_TOKEN)


def test_ticket_errors_are_invalid_grant():
    assert issubclass(MalformedTicket, InvalidGrant)
    assert issubclass(TicketExpired, InvalidGrant)


def test_purpose_is_bound(codec):
    access_token = codec.encode(_bearer_ticket(), PURPOSE_ACCESS_TOKEN)

    with pytest.raises(MalformedTicket):
        codec.decode(access_token, PURPOSE_REFRESH_TOKEN)


def test_other_secret_is_rejected(codec):
    other = TicketCodec("another-secret-key-also-long-enough-0123456789", issuer=codec.issuer)
    token = other.encode(_bearer_ticket(), PURPOSE_ACCESS_TOKEN)

    with pytest.raises(MalformedTicket):
        codec.decode(token, PURPOSE_ACCESS_TOKEN)


def test_other_issuer_is_rejected(codec):
    other = TicketCodec(codec._secret, issuer="https://elsewhere.example")
    token = other.encode(_bearer_ticket(), PURPOSE_ACCESS_TOKEN)

    with pytest.raises(MalformedTicket):
        codec.decode(token, PURPOSE_ACCESS_TOKEN)


def test_codec_requires_secret():
    with pytest.raises(ValueError):
        TicketCodec("")


def test_reissue_creates_new_ticket_with_fresh_expiry():
    original = _bearer_ticket(now=1_000_000, lifetime=60)

    renewed = original.reissue(lifetime=600, now=2_000_000)

    assert renewed is not original
    assert original.expires_at == 1_000_060
    assert renewed.issued_at == 2_000_000
    assert renewed.expires_at == 2_000_600
    assert renewed.claims == original.claims


def test_reissue_can_pin_expiry_and_replace_claims():
    original = _bearer_ticket(now=1_000_000, lifetime=60)

    renewed = original.reissue(
        lifetime=600,
        now=1_000_010,
        claims=[(SCOPE_CLAIM, "read")],
        expires_at=1_000_060,
    )

    assert renewed.expires_at == 1_000_060
    assert renewed.scopes == frozenset({"read"})
    assert original.scopes == frozenset({"read", "write"})


def test_is_expired():
    ticket = _bearer_ticket(now=1_000_000, lifetime=60)

    assert not ticket.is_expired(now=1_000_059)
    assert ticket.is_expired(now=1_000_060)


def test_ticket_is_hashable_and_properties_are_read_only():
    source = {"client_id": "c1"}
    ticket = _bearer_ticket(now=1_000_000, properties=source)
    source["client_id"] = "c2"

    assert ticket.properties == {"client_id": "c1"}
    assert ticket in {ticket, _bearer_ticket(now=1_000_000)}
    with pytest.raises(TypeError):
        ticket.properties["client_id"] = "c2"


def test_secret_is_generated_once(tmp_path):
    secret_file = tmp_path / "nested" / "ticket_secret"

    first = get_or_create_secret(secret_file)
    second = get_or_create_secret(secret_file)

    assert first == second
    assert len(first) >= 64
    assert secret_file.read_text() == first
