# Overview: PayNow (SGQR / EMV merchant-presented) QR payload encoder.

"""
Pure, deterministic formatter. Given a payee UEN and an amount it returns
the string that goes into the QR code. Nothing is stored.

Layout: TLV fields ``ID(2) LEN(2) VALUE`` in order, finished by field 63
holding a CRC16-CCITT (poly 0x1021, init 0xFFFF) over everything before
the CRC value, including the ``6304`` header itself.
"""

from __future__ import annotations

from flask import current_app

from ..errors import InvalidInputError
from . import settings_service

PROXY_TYPE_UEN = "2"
CURRENCY_SGD = "702"


def tlv(field_id: str, value: str) -> str:
    if len(value) > 99:
        raise InvalidInputError(f"QR field {field_id} is too long ({len(value)} > 99)")
    return f"{field_id}{len(value):02d}{value}"


def crc16_ccitt(data: str) -> str:
    crc = 0xFFFF
    for ch in data:
        crc ^= ord(ch) << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def format_amount(amount_cents: int) -> str:
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


def encode_payment_qr(
    payee_uen: str,
    amount_cents: int,
    reference: str | None = None,
    *,
    editable: bool = False,
    expiry: str | None = None,
    merchant_name: str = "MERCHANT",
    merchant_city: str = "Singapore",
) -> str:
    if not payee_uen:
        raise InvalidInputError("PayNow UEN is not configured")
    if amount_cents < 0:
        raise InvalidInputError("amount_cents must be >= 0")

    account_parts = [
        tlv("00", "SG.PAYNOW"),
        tlv("01", PROXY_TYPE_UEN),
        tlv("02", payee_uen),
        tlv("03", "1" if editable else "0"),
    ]
    if expiry:
        account_parts.append(tlv("04", expiry))

    payload = (
        tlv("00", "01")          # payload format indicator
        + tlv("01", "12")        # dynamic QR
        + tlv("26", "".join(account_parts))
        + tlv("52", "0000")      # merchant category code, unused
        + tlv("53", CURRENCY_SGD)
        + tlv("54", format_amount(amount_cents))
        + tlv("58", "SG")
        + tlv("59", (merchant_name or "MERCHANT")[:25])
        + tlv("60", (merchant_city or "Singapore")[:15])
    )
    if reference:
        payload += tlv("62", tlv("01", reference))

    payload += "6304"
    return payload + crc16_ccitt(payload)


def encode_for_venue(amount_cents: int, reference: str | None = None) -> str:
    """encode_payment_qr using the venue's configured UEN and merchant details."""
    config = current_app.config
    uen = settings_service.get_setting(settings_service.KEY_PAYNOW_UEN) or config.get("PAYNOW_UEN")
    return encode_payment_qr(
        uen,
        amount_cents,
        reference,
        merchant_name=config.get("PAYNOW_MERCHANT_NAME", "MERCHANT"),
        merchant_city=config.get("PAYNOW_MERCHANT_CITY", "Singapore"),
    )
