# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""wot.id identity service - DID challenge-response authentication.

A client proves control of a Decentralized Identifier by signing a
single-use challenge with the key published in its DID document:

  initiate(email)
    → subject-mapping oracle resolves the email to a DID
    → challenge store issues a nonce bound to that DID
  verify(did, challenge, jws)
    → ledger resolver fetches the DID document
    → signature verifier checks the EdDSA JWS and its {iss, challenge} claims
    → challenge store consumes the nonce (single use)

HTTP entry point: ``wotid serve`` (see wotid.server.app).
"""

__version__ = "0.1.0"
