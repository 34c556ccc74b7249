"""
WeChat Pay v2 signing and XML helpers.

Signature: join the non-empty fields (except `sign`) as `k=v` sorted by key,
append `&key=<merchant key>`, then MD5 or HMAC-SHA256 (keyed with the merchant
key), hex upper-case.
"""
from __future__ import annotations

import hashlib
import hmac
import uuid
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Mapping

FIELD_SIGN = "sign"
FIELD_SIGN_TYPE = "sign_type"


class SignType(str, Enum):
    MD5 = "MD5"
    HMACSHA256 = "HMAC-SHA256"


def generate_nonce_str() -> str:
    return uuid.uuid4().hex


def _sign_payload(data: Mapping[str, object], key: str) -> str:
    parts = []
    for k in sorted(data):
        if k == FIELD_SIGN:
            continue
        value = data[k]
        if value is None:
            continue
        text = str(value).strip()
        if text:
            parts.append(f"{k}={text}")
    parts.append(f"key={key}")
    return "&".join(parts)


def generate_signature(data: Mapping[str, object], key: str, sign_type: SignType = SignType.MD5) -> str:
    payload = _sign_payload(data, key).encode("utf-8")
    if sign_type == SignType.HMACSHA256:
        digest = hmac.new(key.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    else:
        digest = hashlib.md5(payload).hexdigest()
    return digest.upper()


def is_signature_valid(data: Mapping[str, str], key: str, sign_type: SignType = SignType.MD5) -> bool:
    sign = data.get(FIELD_SIGN)
    if not sign:
        return False
    return hmac.compare_digest(generate_signature(data, key, sign_type), sign)


def dict_to_xml(data: Mapping[str, object]) -> str:
    root = ET.Element("xml")
    for k, v in data.items():
        if v is None:
            continue
        ET.SubElement(root, k).text = str(v)
    return ET.tostring(root, encoding="unicode")


def xml_to_dict(text: str) -> dict[str, str]:
    root = ET.fromstring(text)
    return {child.tag: (child.text or "").strip() for child in root}
