## JsonWebSignature2020 Linked Data Proofs for JSON-LD documents.
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

import copy
import enum
from collections import namedtuple
from datetime import datetime

import isodate
import pytz
import structlog
from pyld import jsonld
from cryptography.hazmat.primitives import hashes

from pyld_jws.contexts import (
    BUNDLED_CONTEXTS, CREDENTIALS_CONTEXT_URL, JWS_2020_CONTEXT_URL,
    PROOF_CONTEXT, bundled_document_loader, make_document_loader)
from pyld_jws.errors import (
    CanonicalizationError, LdsError, LdsTypeError, MissingProofError,
    SignatureError, UnsupportedKeyError)
from pyld_jws.jws import sign_detached, verify_detached
from pyld_jws.keys import (
    ALGORITHMS, Algorithm, as_jwk, infer_algorithm, jwk_from_key,
    load_private_key, load_public_key, select_algorithm)

__all__ = [
    # proofs
    "sign", "verify", "verify_proof", "create_verify_data",
    "Reason", "VerificationResult", "SUITE_NAME",
    "canonicalize", "digest",
    # contexts
    "BUNDLED_CONTEXTS", "CREDENTIALS_CONTEXT_URL", "JWS_2020_CONTEXT_URL",
    "PROOF_CONTEXT", "bundled_document_loader", "make_document_loader",
    # keys and signatures
    "ALGORITHMS", "Algorithm", "as_jwk", "infer_algorithm", "jwk_from_key",
    "load_private_key", "load_public_key", "select_algorithm",
    "sign_detached", "verify_detached",
    # errors
    "LdsError", "LdsTypeError", "CanonicalizationError",
    "UnsupportedKeyError", "SignatureError", "MissingProofError"]

logger = structlog.get_logger("pyld_jws")

SUITE_NAME = "JsonWebSignature2020"
PROOF_FIELD = "proof"
SIGNATURE_FIELD = "jws"


class Reason(enum.Enum):
    VALID = "valid"
    CANONICALIZATION_FAILED = "canonicalization-failed"
    KEY_UNSUPPORTED = "key-unsupported"
    SIGNATURE_INVALID = "signature-invalid"
    PROOF_MISSING = "proof-missing"


class VerificationResult(namedtuple("VerificationResult",
                                   ["verified", "reason"])):
    """
    Outcome of verify(): a boolean plus the Reason behind it.  Truthy
    exactly when the proof checked out.
    """
    __slots__ = ()

    def __bool__(self):
        return self.verified


def is_valid_uri(obj):
    """
    Check to see if OBJ is a valid URI

    (or at least do the best check we can: that it's a string, and that
    it contains the ':' character.)
    """
    return isinstance(obj, str) and ":" in obj


def _w3c_date(dt):
    if dt.tzinfo is None:
        raise LdsTypeError(
            "[jsig.sign] options.date must have an aware timezone.")
    # We may need to convert it to UTC
    if dt.tzinfo is not pytz.utc:
        dt = dt.astimezone(pytz.utc)

    return isodate.datetime_isoformat(dt)


def _without(mapping, field):
    return {key: value for key, value in mapping.items() if key != field}


def _loader(options):
    return (options or {}).get("documentLoader", bundled_document_loader)


def canonicalize(document, options=None):
    """
    Normalize a JSON-LD document with URDNA2015, returning the N-Quads
    as UTF-8 bytes.

     - document: the JSON-LD document (a dict, or a list of nodes).
     - options: [documentLoader] the loader contexts are resolved with
       (default: bundled contexts, unknown ones fetched remotely).

    Raises CanonicalizationError if pyld can't process the document or
    nothing in it maps to a statement.
    """
    if not isinstance(document, (dict, list)):
        raise CanonicalizationError(
            "[jsig.canonicalize] Expected a JSON-LD object, got %s" % (
                type(document).__name__))
    try:
        normalized = jsonld.normalize(
            copy.deepcopy(document),
            {"algorithm": "URDNA2015",
             "format": "application/n-quads",
             "documentLoader": _loader(options)})
    except jsonld.JsonLdError as err:
        raise CanonicalizationError(
            "[jsig.canonicalize] Could not normalize document: %s" % err
        ) from err

    if len(normalized) == 0:
        raise CanonicalizationError(
            '[jsig.canonicalize] '
            'The data to sign is empty. This error may be because a '
            '"@context" was not supplied in the input thereby causing '
            'any terms or prefixes to be undefined.')
    logger.debug("document_canonicalized",
                 statements=normalized.count("\n"))
    return normalized.encode("utf-8")


def digest(data):
    """SHA-256 of DATA (bytes, or str taken as UTF-8)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    h = hashes.Hash(hashes.SHA256())
    h.update(data)
    return h.finalize()


def create_verify_data(document, proof_options, options=None):
    """
    Compute the bytes a JsonWebSignature2020 proof signs.

     - document: the JSON-LD document; its proof, if any, is left out.
     - proof_options: the proof; its jws, if any, is left out.  It is
       canonicalized under PROOF_CONTEXT unless it has its own @context.

    Returns sha256(canonical proof) || sha256(canonical document).
    """
    credential = _without(document, PROOF_FIELD)
    proof = _without(proof_options, SIGNATURE_FIELD)
    if "@context" not in proof:
        proof = {"@context": list(PROOF_CONTEXT), **proof}

    # Proof first, then document.  Verifiers depend on this order.
    return (digest(canonicalize(proof, options)) +
            digest(canonicalize(credential, options)))


def _munge_proof_options(proof_options, options):
    proof = copy.deepcopy(_without(proof_options, SIGNATURE_FIELD))
    proof.setdefault("type", SUITE_NAME)
    proof.setdefault("proofPurpose", "assertionMethod")

    if "created" not in proof:
        proof["created"] = options.get("date") or datetime.now(pytz.utc)
    if isinstance(proof["created"], datetime):
        proof["created"] = _w3c_date(proof["created"])
    elif not isinstance(proof["created"], str):
        raise LdsTypeError(
            "[jsig.sign] proof.created must be a datetime or a string.")

    if not is_valid_uri(proof.get("verificationMethod")):
        raise LdsTypeError(
            "[jsig.sign] proof.verificationMethod must be a URL string.")

    for field in ("domain", "challenge", "nonce"):
        if field in proof and not isinstance(proof[field], str):
            raise LdsTypeError(
                "[jsig.sign] proof.%s must be a string." % field)

    return proof


def sign(document, proof_options, private_key, options=None):
    """
    Signs a JSON-LD document, attaching a JsonWebSignature2020 proof.

     - document: the JSON-LD document to be signed.  An existing proof
       is replaced.
     - proof_options: the proof to attach:
        [verificationMethod] the URL of the paired public key.
        [proofPurpose] (default: 'assertionMethod').
        [created] datetime or W3C date string (default: options.date,
          or now).
        [type] (default: 'JsonWebSignature2020').
        [domain], [challenge], [nonce] optional strings.
     - private_key: a private JWK, or a verification method carrying
       one under privateKeyJwk.
     - options: options to use:
        [date] an optional date to override the signature date with.
               If provided, must have an "aware" timezone
               (.tzinfo not None)
        [documentLoader] the JSON-LD document loader.

    Returns a new document; neither input is modified.
    """
    options = options or {}
    if not isinstance(document, dict):
        raise LdsTypeError("[jsig.sign] document must be a JSON object.")
    private_jwk = as_jwk(private_key, private=True)
    algorithm = select_algorithm(private_jwk)

    proof = _munge_proof_options(proof_options or {}, options)
    verify_data = create_verify_data(document, proof, options)
    proof[SIGNATURE_FIELD] = sign_detached(algorithm, private_jwk,
                                           verify_data)
    logger.info("proof_created", alg=algorithm.value,
                verification_method=proof["verificationMethod"])

    output = copy.deepcopy(_without(document, PROOF_FIELD))
    output[PROOF_FIELD] = proof
    return output


# Verification

def verify_proof(signed_document, public_key, options=None):
    """
    Verify the proof on a signed JSON-LD document, raising on failure.

     - signed_document: the JSON-LD document carrying a proof.
     - public_key: a public JWK, or a verification method carrying one
       under publicKeyJwk.
     - options: [documentLoader] the JSON-LD document loader.

    Returns True.  Raises MissingProofError (no proof, or no jws on it),
    UnsupportedKeyError, CanonicalizationError or SignatureError.
    """
    if (not isinstance(signed_document, dict)
            or PROOF_FIELD not in signed_document):
        raise MissingProofError("[jsig.verify] No proof found.")
    proof = signed_document[PROOF_FIELD]
    if not isinstance(proof, dict):
        raise MissingProofError(
            "[jsig.verify] Expected a single proof object.")
    jws = proof.get(SIGNATURE_FIELD)
    if not jws:
        raise MissingProofError("[jsig.verify] No jws found on proof.")

    public_jwk = as_jwk(public_key)
    select_algorithm(public_jwk)

    verify_data = create_verify_data(signed_document, proof, options)
    return verify_detached(jws, public_jwk, verify_data)


_REASONS = [
    (MissingProofError, Reason.PROOF_MISSING),
    (CanonicalizationError, Reason.CANONICALIZATION_FAILED),
    (UnsupportedKeyError, Reason.KEY_UNSUPPORTED),
    (SignatureError, Reason.SIGNATURE_INVALID)]


def verify(signed_document, public_key, options=None):
    """
    Verify the proof on a signed JSON-LD document.

    Same arguments as verify_proof(), but failures come back as a falsy
    VerificationResult with a Reason instead of an exception.
    """
    try:
        verify_proof(signed_document, public_key, options)
    except tuple(exc for exc, _ in _REASONS) as err:
        reason = next(r for exc, r in _REASONS if isinstance(err, exc))
        logger.info("proof_rejected", reason=reason.value)
        return VerificationResult(False, reason)

    return VerificationResult(True, Reason.VALID)
