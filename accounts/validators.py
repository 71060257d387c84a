"""Phone number validation shared by invoice billing serializers."""

import re

import phonenumbers
from rest_framework import serializers


def normalize_phone(value):
    """Validate an international phone number and return it in E.164 form.

    Accepts ``+`` or ``00`` prefixes and ignores spaces/dashes. Empty input is
    returned unchanged.
    """
    phone_input = str(value or '').strip()
    if not phone_input:
        return ''

    # keep a single leading '+', drop every other non-digit
    clean = re.sub(r'(?<!^)\+|[^\d+]', '', phone_input)
    if clean.startswith('00'):
        clean = '+' + clean[2:]

    try:
        parsed = phonenumbers.parse(clean if clean.startswith('+') else '+' + clean, None)
        if not phonenumbers.is_valid_number(parsed):
            raise ValueError(clean)
    except (phonenumbers.NumberParseException, ValueError):
        raise serializers.ValidationError('Enter a valid international phone number (e.g. +971501234567).')

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
