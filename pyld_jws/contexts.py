## JSON-LD contexts bundled with pyld-jws, and the loader serving them.
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
import json

import structlog
from pyld import jsonld

logger = structlog.get_logger("pyld_jws.contexts")

CREDENTIALS_CONTEXT_URL = "https://www.w3.org/2018/credentials/v1"
CREDENTIALS_EXAMPLES_CONTEXT_URL = (
    "https://www.w3.org/2018/credentials/examples/v1")
JWS_2020_CONTEXT_URL = "https://w3id.org/security/suites/jws-2020/v1"
# Where the suite's context was published before it moved under w3id.org
LDS_JWS_2020_CONTEXT_URL = (
    "https://w3c-ccg.github.io/lds-jws2020/contexts/lds-jws2020-v1.json")

SEC = "https://w3id.org/security#"
XSD_DATETIME = "http://www.w3.org/2001/XMLSchema#dateTime"


def _purpose_term(iri):
    return {"@id": iri, "@type": "@id", "@container": "@set"}


def _legacy_suite_context(name):
    # Signature suites that credentials/v1 defines for itself
    return {
        "@id": SEC + name,
        "@context": {
            "@version": 1.1,
            "@protected": True,

            "id": "@id",
            "type": "@type",

            "sec": SEC,
            "xsd": "http://www.w3.org/2001/XMLSchema#",

            "challenge": "sec:challenge",
            "created": {"@id": "http://purl.org/dc/terms/created",
                        "@type": "xsd:dateTime"},
            "domain": "sec:domain",
            "expires": {"@id": "sec:expiration", "@type": "xsd:dateTime"},
            "jws": "sec:jws",
            "nonce": "sec:nonce",
            "proofPurpose": {
                "@id": "sec:proofPurpose",
                "@type": "@vocab",
                "@context": {
                    "@version": 1.1,
                    "@protected": True,

                    "id": "@id",
                    "type": "@type",

                    "sec": SEC,

                    "assertionMethod": _purpose_term("sec:assertionMethod"),
                    "authentication": _purpose_term(
                        "sec:authenticationMethod")}},
            "proofValue": "sec:proofValue",
            "verificationMethod": {"@id": "sec:verificationMethod",
                                   "@type": "@id"}}}


CREDENTIALS_CONTEXT = {
    "@context": {
        "@version": 1.1,
        "@protected": True,

        "id": "@id",
        "type": "@type",

        "VerifiableCredential": {
            "@id": "https://www.w3.org/2018/credentials#VerifiableCredential",
            "@context": {
                "@version": 1.1,
                "@protected": True,

                "id": "@id",
                "type": "@type",

                "cred": "https://www.w3.org/2018/credentials#",
                "sec": SEC,
                "xsd": "http://www.w3.org/2001/XMLSchema#",

                "credentialSchema": {
                    "@id": "cred:credentialSchema",
                    "@type": "@id",
                    "@context": {
                        "@version": 1.1,
                        "@protected": True,

                        "id": "@id",
                        "type": "@type",

                        "cred": "https://www.w3.org/2018/credentials#",

                        "JsonSchemaValidator2018":
                            "cred:JsonSchemaValidator2018"}},
                "credentialStatus": {"@id": "cred:credentialStatus",
                                     "@type": "@id"},
                "credentialSubject": {"@id": "cred:credentialSubject",
                                      "@type": "@id"},
                "evidence": {"@id": "cred:evidence", "@type": "@id"},
                "expirationDate": {"@id": "cred:expirationDate",
                                   "@type": "xsd:dateTime"},
                "holder": {"@id": "cred:holder", "@type": "@id"},
                "issued": {"@id": "cred:issued", "@type": "xsd:dateTime"},
                "issuer": {"@id": "cred:issuer", "@type": "@id"},
                "issuanceDate": {"@id": "cred:issuanceDate",
                                 "@type": "xsd:dateTime"},
                "proof": {"@id": "sec:proof", "@type": "@id",
                          "@container": "@graph"},
                "refreshService": {
                    "@id": "cred:refreshService",
                    "@type": "@id",
                    "@context": {
                        "@version": 1.1,
                        "@protected": True,

                        "id": "@id",
                        "type": "@type",

                        "cred": "https://www.w3.org/2018/credentials#",

                        "ManualRefreshService2018":
                            "cred:ManualRefreshService2018"}},
                "termsOfUse": {"@id": "cred:termsOfUse", "@type": "@id"},
                "validFrom": {"@id": "cred:validFrom",
                              "@type": "xsd:dateTime"},
                "validUntil": {"@id": "cred:validUntil",
                               "@type": "xsd:dateTime"}}},

        "VerifiablePresentation": {
            "@id": "https://www.w3.org/2018/credentials#VerifiablePresentation",
            "@context": {
                "@version": 1.1,
                "@protected": True,

                "id": "@id",
                "type": "@type",

                "cred": "https://www.w3.org/2018/credentials#",
                "sec": SEC,

                "holder": {"@id": "cred:holder", "@type": "@id"},
                "proof": {"@id": "sec:proof", "@type": "@id",
                          "@container": "@graph"},
                "verifiableCredential": {"@id": "cred:verifiableCredential",
                                         "@type": "@id",
                                         "@container": "@graph"}}},

        "EcdsaSecp256k1Signature2019": _legacy_suite_context(
            "EcdsaSecp256k1Signature2019"),
        "EcdsaSecp256r1Signature2019": _legacy_suite_context(
            "EcdsaSecp256r1Signature2019"),
        "Ed25519Signature2018": _legacy_suite_context("Ed25519Signature2018"),
        "RsaSignature2018": _legacy_suite_context("RsaSignature2018"),

        "proof": {"@id": SEC + "proof", "@type": "@id",
                  "@container": "@graph"}}}

# The published context also imports the ODRL vocabulary; its terms are
# not bundled.
CREDENTIALS_EXAMPLES_CONTEXT = {
    "@context": [
        {"@version": 1.1},
        {
            "ex": "https://example.org/examples#",
            "schema": "http://schema.org/",
            "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",

            "3rdPartyCorrelation": "ex:3rdPartyCorrelation",
            "AllVerifiers": "ex:AllVerifiers",
            "Archival": "ex:Archival",
            "BachelorDegree": "ex:BachelorDegree",
            "Child": "ex:Child",
            "CLCredentialDefinition2019": "ex:CLCredentialDefinition2019",
            "CLSignature2019": "ex:CLSignature2019",
            "IssuerPolicy": "ex:IssuerPolicy",
            "HolderPolicy": "ex:HolderPolicy",
            "Mother": "ex:Mother",
            "RelationshipCredential": "ex:RelationshipCredential",
            "UniversityDegreeCredential": "ex:UniversityDegreeCredential",
            "ZkpExampleSchema2018": "ex:ZkpExampleSchema2018",

            "issuerData": "ex:issuerData",
            "attributes": "ex:attributes",
            "signature": "ex:signature",
            "signatureCorrectnessProof": "ex:signatureCorrectnessProof",
            "primaryProof": "ex:primaryProof",
            "nonRevocationProof": "ex:nonRevocationProof",

            "alumniOf": {"@id": "schema:alumniOf", "@type": "rdf:HTML"},
            "child": {"@id": "ex:child", "@type": "@id"},
            "degree": "ex:degree",
            "degreeType": "ex:degreeType",
            "degreeSchool": "ex:degreeSchool",
            "college": "ex:college",
            "name": {"@id": "schema:name", "@type": "rdf:HTML"},
            "givenName": "schema:givenName",
            "familyName": "schema:familyName",
            "parent": {"@id": "ex:parent", "@type": "@id"},
            "referenceId": "ex:referenceId",
            "documentPresence": "ex:documentPresence",
            "evidenceDocument": "ex:evidenceDocument",
            "spouse": "schema:spouse",
            "subjectPresence": "ex:subjectPresence",
            "verifier": {"@id": "ex:verifier", "@type": "@id"}}]}

JWS_2020_CONTEXT = {
    "@context": {
        "privateKeyJwk": {"@id": SEC + "privateKeyJwk", "@type": "@json"},
        "JsonWebKey2020": {
            "@id": SEC + "JsonWebKey2020",
            "@context": {
                "@protected": True,
                "id": "@id",
                "type": "@type",
                "publicKeyJwk": {"@id": SEC + "publicKeyJwk",
                                 "@type": "@json"}}},
        "JsonWebSignature2020": {
            "@id": SEC + "JsonWebSignature2020",
            "@context": {
                "@protected": True,

                "id": "@id",
                "type": "@type",

                "challenge": SEC + "challenge",
                "created": {"@id": "http://purl.org/dc/terms/created",
                            "@type": XSD_DATETIME},
                "domain": SEC + "domain",
                "expires": {"@id": SEC + "expiration",
                            "@type": XSD_DATETIME},
                "jws": SEC + "jws",
                "nonce": SEC + "nonce",
                "proofPurpose": {
                    "@id": SEC + "proofPurpose",
                    "@type": "@vocab",
                    "@context": {
                        "@protected": True,

                        "id": "@id",
                        "type": "@type",

                        "assertionMethod": _purpose_term(
                            SEC + "assertionMethod"),
                        "authentication": _purpose_term(
                            SEC + "authenticationMethod"),
                        "capabilityInvocation": _purpose_term(
                            SEC + "capabilityInvocationMethod"),
                        "capabilityDelegation": _purpose_term(
                            SEC + "capabilityDelegationMethod"),
                        "keyAgreement": _purpose_term(
                            SEC + "keyAgreementMethod")}},
                "verificationMethod": {"@id": SEC + "verificationMethod",
                                       "@type": "@id"}}}}}

BUNDLED_CONTEXTS = {
    CREDENTIALS_CONTEXT_URL: CREDENTIALS_CONTEXT,
    CREDENTIALS_EXAMPLES_CONTEXT_URL: CREDENTIALS_EXAMPLES_CONTEXT,
    JWS_2020_CONTEXT_URL: JWS_2020_CONTEXT,
    LDS_JWS_2020_CONTEXT_URL: JWS_2020_CONTEXT}

# Context a proof is canonicalized under when it doesn't carry its own
PROOF_CONTEXT = [CREDENTIALS_CONTEXT_URL, JWS_2020_CONTEXT_URL]


def make_document_loader(url_map, load_unknown_urls=True,
                         cache_externally_loaded=True):
    """
    Build a pyld documentLoader serving the documents in URL_MAP.

    Unknown URLs are fetched with pyld's requests loader when
    LOAD_UNKNOWN_URLS is set, and remembered for the lifetime of the
    loader when CACHE_EXTERNALLY_LOADED is set.  Each loader keeps its
    own cache, and the cache is not locked: two threads asking for the
    same unknown URL may both fetch it, the later one winning.
    """
    def _make_context(url, doc):
        return {
            "contentType": "application/ld+json",
            "contextUrl": None,
            "documentUrl": url,
            "document": doc}

    # Wrap in the structure that's expected to come back from the
    # documentLoader
    _url_map = {
        url: _make_context(url, doc)
        for url, doc in url_map.items()}
    _remote = []

    def loader(url, options=None):
        if url in _url_map:
            # pyld may hold on to what we hand back, so hand out copies
            return copy.deepcopy(_url_map[url])
        elif load_unknown_urls:
            if not _remote:
                _remote.append(jsonld.requests_document_loader())
            logger.debug("fetching_remote_context", url=url)
            doc = _remote[0](url, options or {})
            if isinstance(doc["document"], str):
                doc["document"] = json.loads(doc["document"])
            if cache_externally_loaded:
                _url_map[url] = doc
            return copy.deepcopy(doc)
        else:
            raise jsonld.JsonLdError(
                "url not found and loader set to not load unknown URLs.",
                "jsonld.LoadDocumentError",
                {"url": url}, code="loading document failed")

    return loader


# Default loader for canonicalize() and friends.  It is shared by the whole
# process, so a context fetched through it stays cached until exit; pass a
# documentLoader built here with cache_externally_loaded=False (or
# load_unknown_urls=False) to keep calls isolated.
bundled_document_loader = make_document_loader(BUNDLED_CONTEXTS)
