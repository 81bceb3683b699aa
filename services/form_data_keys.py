"""
Reversible escaping of form-data keys.

Keys are escaped on write so stored slot data never carries a "." in a
key, which keeps it portable to stores and tooling that read dots as
paths: "~" becomes "~0" and "." becomes "~1". Decoding restores the
original key exactly.
"""
from typing import Any, Dict

ESCAPE = '~'
SEPARATOR = '.'


def encode_key(key: str) -> str:
    return str(key).replace(ESCAPE, '~0').replace(SEPARATOR, '~1')


def decode_key(key: str) -> str:
    # Every "~" in an encoded key starts an escape, so the replacements never overlap
    return key.replace('~1', SEPARATOR).replace('~0', ESCAPE)


def encode_form_data(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Escape every top-level key of form data before it is stored."""
    return {encode_key(key): value for key, value in (form_data or {}).items()}


def decode_form_data(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Restore the original keys of stored form data."""
    return {decode_key(key): value for key, value in (form_data or {}).items()}
