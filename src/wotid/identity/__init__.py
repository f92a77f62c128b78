# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""DID identity: parsing, documents, resolution and subject mapping."""

from .did import DID, DIDDocument, VerificationMethod, is_valid_did, parse_did
from .mapping import DirectorySubjectMapping, StaticSubjectMapping, SubjectMappingOracle, build_subject_mapping
from .resolver import KeyDIDResolver, LedgerResolver, MethodRouterResolver, Resolver, build_resolver
from .signing import KeyPair, create_challenge_jws, generate_keypair

__all__ = [
    "DID",
    "DIDDocument",
    "DirectorySubjectMapping",
    "KeyDIDResolver",
    "KeyPair",
    "LedgerResolver",
    "MethodRouterResolver",
    "Resolver",
    "StaticSubjectMapping",
    "SubjectMappingOracle",
    "VerificationMethod",
    "build_resolver",
    "build_subject_mapping",
    "create_challenge_jws",
    "generate_keypair",
    "is_valid_did",
    "parse_did",
]
