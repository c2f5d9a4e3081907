import pytest
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

import pyld_jws
from pyld_jws import keys
from pyld_jws.keys import Algorithm

from test_pyldjws import KEYPAIR_0


@pytest.mark.parametrize("kty,crv,alg", [
    ("OKP", "Ed25519", "EdDSA"),
    ("EC", "secp256k1", "ES256K"),
    ("EC", "P-256", "ES256"),
    ("EC", "P-384", "ES384"),
    ("RSA", None, "PS256"),
    ("RSA", "whatever", "PS256"),
])
def test_algorithm_table(kty, crv, alg):
    key = {"kty": kty}
    if crv is not None:
        key["crv"] = crv
    assert pyld_jws.select_algorithm(key) is Algorithm(alg)
    assert pyld_jws.infer_algorithm(key).value == alg


@pytest.mark.parametrize("key", [
    {},
    {"crv": "Ed25519"},
    {"kty": "OKP"},
    {"kty": "OKP", "crv": "X25519"},
    {"kty": "OKP", "crv": "P-256"},
    {"kty": "EC"},
    {"kty": "EC", "crv": "P-521"},
    {"kty": "EC", "crv": "Ed25519"},
    {"kty": "oct", "k": "c2VjcmV0"},
    {"kty": "rsa"},
    {"kty": ["OKP"], "crv": "Ed25519"},
    {"kty": "EC", "crv": {}},
    {"kty": "EC", "crv": ["P-256"]},
    {"kty": {"RSA": 1}},
])
def test_unsupported_keys(key):
    assert pyld_jws.infer_algorithm(key) is Algorithm.UNSUPPORTED
    with pytest.raises(pyld_jws.UnsupportedKeyError):
        pyld_jws.select_algorithm(key)


@pytest.mark.parametrize("encoded", [
    "AAAA=", "AA==", "A!AA", "AA AA", "AA+/", "AB", None, b"AAAA",
])
def test_b64u_decode_is_strict(encoded):
    with pytest.raises(ValueError):
        keys.b64u_decode(encoded)


def test_b64u_decode():
    assert keys.b64u_decode("") == b""
    assert keys.b64u_decode("AA") == b"\x00"
    assert keys.b64u_decode("-_8") == b"\xfb\xff"


@pytest.mark.parametrize("member", ["x", "d"])
def test_jwk_members_must_be_base64url(member):
    jwk = dict(KEYPAIR_0["privateKeyJwk"])
    jwk[member] = jwk[member][:5] + "!" + jwk[member][5:]
    with pytest.raises(pyld_jws.UnsupportedKeyError):
        if member == "d":
            pyld_jws.load_private_key(jwk)
        else:
            pyld_jws.load_public_key(jwk)


def test_non_mapping_key_is_unsupported():
    assert pyld_jws.infer_algorithm(b"\x00" * 32) is Algorithm.UNSUPPORTED
    with pytest.raises(pyld_jws.UnsupportedKeyError):
        pyld_jws.select_algorithm(b"\x00" * 32)


def test_verification_method_is_unwrapped():
    assert pyld_jws.as_jwk(KEYPAIR_0) == KEYPAIR_0["publicKeyJwk"]
    assert pyld_jws.as_jwk(KEYPAIR_0, private=True) == (
        KEYPAIR_0["privateKeyJwk"])
    assert pyld_jws.select_algorithm(KEYPAIR_0) is Algorithm.EDDSA


def test_load_known_ed25519_key():
    private_key = pyld_jws.load_private_key(KEYPAIR_0["privateKeyJwk"])
    assert pyld_jws.jwk_from_key(private_key) == KEYPAIR_0["publicKeyJwk"]
    assert pyld_jws.jwk_from_key(private_key, private=True) == (
        KEYPAIR_0["privateKeyJwk"])


@pytest.mark.parametrize("private_key", [
    ed25519.Ed25519PrivateKey.generate(),
    ec.generate_private_key(ec.SECP256K1()),
    ec.generate_private_key(ec.SECP256R1()),
    ec.generate_private_key(ec.SECP384R1()),
    rsa.generate_private_key(public_exponent=65537, key_size=2048),
])
def test_jwk_export_and_load(private_key):
    private_jwk = pyld_jws.jwk_from_key(private_key, private=True)
    public_jwk = pyld_jws.jwk_from_key(private_key)
    assert "d" not in public_jwk

    reloaded = pyld_jws.load_private_key(private_jwk)
    assert pyld_jws.jwk_from_key(reloaded, private=True) == private_jwk
    assert pyld_jws.jwk_from_key(pyld_jws.load_public_key(public_jwk)) == (
        public_jwk)
    # private JWKs carry their public half
    assert pyld_jws.jwk_from_key(pyld_jws.load_public_key(private_jwk)) == (
        public_jwk)


def test_rsa_private_key_without_primes():
    private_key = rsa.generate_private_key(public_exponent=65537,
                                           key_size=2048)
    private_jwk = pyld_jws.jwk_from_key(private_key, private=True)
    minimal = {m: private_jwk[m] for m in ("kty", "n", "e", "d")}
    reloaded = pyld_jws.load_private_key(minimal)
    assert reloaded.private_numbers().d == private_key.private_numbers().d
    assert reloaded.public_key().public_numbers() == (
        private_key.public_key().public_numbers())


def test_public_key_needs_coordinates():
    with pytest.raises(pyld_jws.UnsupportedKeyError):
        pyld_jws.load_public_key({"kty": "EC", "crv": "P-256", "x": "AAAA"})


def test_private_key_needs_d():
    with pytest.raises(pyld_jws.UnsupportedKeyError):
        pyld_jws.load_private_key(KEYPAIR_0["publicKeyJwk"])


def test_unsupported_curve_export():
    with pytest.raises(pyld_jws.UnsupportedKeyError):
        pyld_jws.jwk_from_key(ec.generate_private_key(ec.SECP521R1()))
