## JWK handling and JWS algorithm selection.
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

import base64
import enum

from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives import serialization

from pyld_jws.errors import UnsupportedKeyError


class Algorithm(enum.Enum):
    EDDSA = "EdDSA"
    ES256K = "ES256K"
    ES256 = "ES256"
    ES384 = "ES384"
    PS256 = "PS256"
    UNSUPPORTED = None


# (kty, crv) -> algorithm.  A crv of None matches any curve.
ALGORITHMS = {
    ("OKP", "Ed25519"): Algorithm.EDDSA,
    ("EC", "secp256k1"): Algorithm.ES256K,
    ("EC", "P-256"): Algorithm.ES256,
    ("EC", "P-384"): Algorithm.ES384,
    ("RSA", None): Algorithm.PS256}

CURVES = {
    "secp256k1": ec.SECP256K1,
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1}
_CURVE_NAMES = {
    "secp256k1": "secp256k1",
    "secp256r1": "P-256",
    "secp384r1": "P-384"}


def b64u_encode(data):
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64u_decode(s):
    """
    Decode unpadded base64url, strictly: S must be exactly what
    b64u_encode would produce for the result, or ValueError is raised.
    """
    if not isinstance(s, str):
        raise ValueError("expected a base64url string, got %r" % (s,))
    data = base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))
    # urlsafe_b64decode skips characters outside the alphabet and
    # ignores leftover bits
    if b64u_encode(data) != s:
        raise ValueError("not canonical base64url: %r" % s)
    return data


def _b64u_member(s):
    try:
        return b64u_decode(s)
    except ValueError:
        raise UnsupportedKeyError("JWK member is not base64url: %r" % (s,))


def _b64u_int(s):
    return int.from_bytes(_b64u_member(s), "big")


def _int_b64u(i, length=None):
    length = length or max(1, (i.bit_length() + 7) // 8)
    return b64u_encode(i.to_bytes(length, "big"))


def as_jwk(key, private=False):
    """
    Return the JWK held by KEY.

    KEY is either a JWK itself or a verification method carrying one
    under privateKeyJwk / publicKeyJwk (as JsonWebKey2020 entries do).
    """
    if not isinstance(key, dict):
        raise UnsupportedKeyError(
            "Can't determine alg from %s" % type(key).__name__)
    if "kty" in key:
        return key
    for field in (("privateKeyJwk", "publicKeyJwk") if private
                  else ("publicKeyJwk", "privateKeyJwk")):
        if isinstance(key.get(field), dict):
            return key[field]
    return key


def infer_algorithm(key):
    """
    Look KEY's kty/crv up in ALGORITHMS.  Never raises; anything not in
    the table is Algorithm.UNSUPPORTED.
    """
    if not isinstance(key, dict):
        return Algorithm.UNSUPPORTED
    jwk = as_jwk(key)
    kty, crv = jwk.get("kty"), jwk.get("crv")
    if not isinstance(kty, str) or not isinstance(crv, (str, type(None))):
        return Algorithm.UNSUPPORTED
    if (kty, None) in ALGORITHMS:
        return ALGORITHMS[(kty, None)]
    return ALGORITHMS.get((kty, crv), Algorithm.UNSUPPORTED)


def select_algorithm(key):
    algorithm = infer_algorithm(key)
    if algorithm is Algorithm.UNSUPPORTED:
        jwk = as_jwk(key)
        raise UnsupportedKeyError(
            "Can't determine alg for kty %s and crv %s" % (
                jwk.get("kty"), jwk.get("crv")))
    return algorithm


def load_private_key(key):
    """
    Turn a private JWK into a cryptography private key object.
    """
    jwk = as_jwk(key, private=True)
    algorithm = select_algorithm(jwk)
    if "d" not in jwk:
        raise UnsupportedKeyError("JWK has no private key material (d)")

    try:
        if algorithm is Algorithm.EDDSA:
            return ed25519.Ed25519PrivateKey.from_private_bytes(
                _b64u_member(jwk["d"]))

        if algorithm is Algorithm.PS256:
            n, e, d = (_b64u_int(jwk[m]) for m in ("n", "e", "d"))
            if "p" in jwk and "q" in jwk:
                p, q = _b64u_int(jwk["p"]), _b64u_int(jwk["q"])
            else:
                p, q = rsa.rsa_recover_prime_factors(n, e, d)
            numbers = rsa.RSAPrivateNumbers(
                p, q, d,
                rsa.rsa_crt_dmp1(d, p), rsa.rsa_crt_dmq1(d, q),
                rsa.rsa_crt_iqmp(p, q),
                rsa.RSAPublicNumbers(e, n))
            return numbers.private_key()

        return ec.derive_private_key(
            _b64u_int(jwk["d"]), CURVES[jwk["crv"]]())
    except KeyError as err:
        raise UnsupportedKeyError("JWK is missing %s" % err)
    except ValueError as err:
        raise UnsupportedKeyError("JWK is not a valid private key: %s" % err)


def load_public_key(key):
    """
    Turn a JWK into a cryptography public key object.  A private JWK
    works too; only its public members are used.
    """
    jwk = as_jwk(key)
    algorithm = select_algorithm(jwk)
    try:
        if algorithm is Algorithm.EDDSA:
            return ed25519.Ed25519PublicKey.from_public_bytes(
                _b64u_member(jwk["x"]))
        if algorithm is Algorithm.PS256:
            return rsa.RSAPublicNumbers(
                _b64u_int(jwk["e"]), _b64u_int(jwk["n"])).public_key()
        return ec.EllipticCurvePublicNumbers(
            _b64u_int(jwk["x"]), _b64u_int(jwk["y"]),
            CURVES[jwk["crv"]]()).public_key()
    except KeyError as err:
        raise UnsupportedKeyError("JWK is missing %s" % err)
    except ValueError as err:
        raise UnsupportedKeyError("JWK is not a valid public key: %s" % err)


def jwk_from_key(key, private=False):
    """
    Export a cryptography key as a JWK dict.  With PRIVATE, the private
    members are included as well (KEY must then be a private key).
    """
    if hasattr(key, "public_key"):
        public = key.public_key()
    elif private:
        raise UnsupportedKeyError("Can't export private members of a "
                                  "public key")
    else:
        public = key

    if isinstance(public, ed25519.Ed25519PublicKey):
        jwk = {"kty": "OKP", "crv": "Ed25519",
               "x": b64u_encode(public.public_bytes(
                   serialization.Encoding.Raw,
                   serialization.PublicFormat.Raw))}
        if private:
            jwk["d"] = b64u_encode(key.private_bytes(
                serialization.Encoding.Raw,
                serialization.PrivateFormat.Raw,
                serialization.NoEncryption()))
    elif isinstance(public, ec.EllipticCurvePublicKey):
        if public.curve.name not in _CURVE_NAMES:
            raise UnsupportedKeyError(
                "Unsupported curve %s" % public.curve.name)
        size = (public.curve.key_size + 7) // 8
        nums = public.public_numbers()
        jwk = {"kty": "EC", "crv": _CURVE_NAMES[public.curve.name],
               "x": _int_b64u(nums.x, size),
               "y": _int_b64u(nums.y, size)}
        if private:
            jwk["d"] = _int_b64u(key.private_numbers().private_value, size)
    elif isinstance(public, rsa.RSAPublicKey):
        nums = public.public_numbers()
        jwk = {"kty": "RSA", "n": _int_b64u(nums.n), "e": _int_b64u(nums.e)}
        if private:
            priv = key.private_numbers()
            jwk.update({
                "d": _int_b64u(priv.d),
                "p": _int_b64u(priv.p),
                "q": _int_b64u(priv.q),
                "dp": _int_b64u(priv.dmp1),
                "dq": _int_b64u(priv.dmq1),
                "qi": _int_b64u(priv.iqmp)})
    else:
        raise UnsupportedKeyError(
            "Unsupported key type %s" % type(key).__name__)
    return jwk
