## Detached, unencoded-payload JSON Web Signatures.
##
## BSD 3-Clause License
## Copyright (c) 2017 Spec-Ops.
##
## Redistribution and use in source and binary forms, with or without
## modification, are permitted provided that the following conditions are met:
##
## Redistributions of source code must retain the above copyright notice,
## this list of conditions and the following disclaimer.
##
## Redistributions in binary form must reproduce the above copyright
## notice, this list of conditions and the following disclaimer in the
## documentation and/or other materials provided with the distribution.
##
## Neither the name of the Spec-Ops nor the names of its contributors
## may be used to endorse or promote products derived from this
## software without specific prior written permission.
##
## THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS
## IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED
## TO, THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A
## PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT
## HOLDER OR CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL,
## SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED
## TO, PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR
## PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
## LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING
## NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS
## SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

"""
Detached JSON Web Signatures with an unencoded payload (RFC 7797).

The payload is never carried in the serialization: a signature looks
like ``<base64url header>..<base64url signature>``, and the verifier
has to be handed the same payload bytes the signer saw.  The header
always declares ``"b64": false`` and lists ``b64`` as critical, so a
verifier that doesn't understand unencoded payloads refuses the
signature rather than checking it against the wrong bytes.
"""

import binascii
import json

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, padding
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature, encode_dss_signature)

from pyld_jws.errors import SignatureError, UnsupportedKeyError
from pyld_jws.keys import (
    Algorithm, b64u_decode, b64u_encode, load_private_key, load_public_key,
    select_algorithm)

logger = structlog.get_logger("pyld_jws.jws")

# Header members this implementation knows how to enforce when critical
UNDERSTOOD_CRITICAL = {"b64"}

_ECDSA_HASHES = {
    Algorithm.ES256K: hashes.SHA256,
    Algorithm.ES256: hashes.SHA256,
    Algorithm.ES384: hashes.SHA384}


def _pss():
    # JWA fixes the PS256 salt at the digest size
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA256()),
        salt_length=32)


def encode_header(algorithm):
    header = {"alg": algorithm.value, "b64": False, "crit": ["b64"]}
    return b64u_encode(
        json.dumps(header, separators=(",", ":")).encode("utf-8"))


def signing_input(encoded_header, payload):
    return encoded_header.encode("ascii") + b"." + payload


def _coordinate_size(key):
    return (key.curve.key_size + 7) // 8


def sign_detached(algorithm, private_key, payload):
    """
    Sign PAYLOAD (bytes) with the private JWK PRIVATE_KEY, returning the
    detached compact serialization.

    ALGORITHM must be the one the key's type maps to.
    """
    try:
        algorithm = Algorithm(algorithm)
    except ValueError:
        raise UnsupportedKeyError(
            "[jsig.sign] Unsupported alg %r" % (algorithm,))
    if algorithm is not select_algorithm(private_key):
        raise UnsupportedKeyError(
            "[jsig.sign] Key does not support alg %s" % algorithm.value)

    key = load_private_key(private_key)
    encoded_header = encode_header(algorithm)
    to_sign = signing_input(encoded_header, payload)

    if algorithm is Algorithm.EDDSA:
        raw = key.sign(to_sign)
    elif algorithm is Algorithm.PS256:
        raw = key.sign(to_sign, _pss(), hashes.SHA256())
    else:
        # JWS wants the fixed-width r || s, not DER
        r, s = decode_dss_signature(
            key.sign(to_sign, ec.ECDSA(_ECDSA_HASHES[algorithm]())))
        size = _coordinate_size(key)
        raw = r.to_bytes(size, "big") + s.to_bytes(size, "big")

    logger.debug("payload_signed", alg=algorithm.value,
                 payload_length=len(payload))
    return encoded_header + ".." + b64u_encode(raw)


def _reject(detail, **kw):
    logger.warning("jws_rejected", detail=detail, **kw)
    raise SignatureError("[jsig.verify] Invalid signature.")


def parse_header(encoded_header):
    """
    Decode a protected header and check it declares a detached,
    unencoded payload.  Returns the header dict.
    """
    try:
        header = json.loads(b64u_decode(encoded_header).decode("utf-8"))
    except (ValueError, binascii.Error, UnicodeDecodeError):
        _reject("header_not_json")
    if not isinstance(header, dict):
        _reject("header_not_object")

    crit = header.get("crit")
    if header.get("b64") is not False:
        _reject("payload_not_detached", b64=header.get("b64"))
    if not isinstance(crit, list) or "b64" not in crit:
        _reject("b64_not_critical", crit=crit)
    if not all(isinstance(c, str) for c in crit):
        _reject("crit_not_strings")
    unknown = [c for c in crit if c not in UNDERSTOOD_CRITICAL]
    if unknown:
        _reject("unknown_critical_header", crit=unknown)
    return header


def verify_detached(jws, public_key, payload):
    """
    Check the detached JWS against PAYLOAD (bytes) and the public JWK
    PUBLIC_KEY.

    Returns True; raises SignatureError however the check fails.
    UnsupportedKeyError is raised if PUBLIC_KEY itself can't be used.
    """
    algorithm = select_algorithm(public_key)
    key = load_public_key(public_key)

    if not isinstance(jws, str):
        _reject("not_a_string")
    parts = jws.split(".")
    if len(parts) != 3:
        _reject("wrong_segment_count", segments=len(parts))
    encoded_header, detached, encoded_sig = parts
    if detached:
        _reject("payload_segment_present")

    header = parse_header(encoded_header)
    if header.get("alg") != algorithm.value:
        _reject("alg_mismatch", alg=header.get("alg"),
                expected=algorithm.value)

    try:
        raw = b64u_decode(encoded_sig)
    except (ValueError, binascii.Error):
        _reject("signature_not_base64url")
    to_verify = signing_input(encoded_header, payload)

    try:
        if algorithm is Algorithm.EDDSA:
            key.verify(raw, to_verify)
        elif algorithm is Algorithm.PS256:
            key.verify(raw, to_verify, _pss(), hashes.SHA256())
        else:
            size = _coordinate_size(key)
            if len(raw) != 2 * size:
                _reject("signature_wrong_length", length=len(raw))
            der = encode_dss_signature(
                int.from_bytes(raw[:size], "big"),
                int.from_bytes(raw[size:], "big"))
            key.verify(der, to_verify, ec.ECDSA(_ECDSA_HASHES[algorithm]()))
    except InvalidSignature:
        _reject("signature_mismatch", alg=algorithm.value)

    return True
