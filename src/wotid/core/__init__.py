# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""Core infrastructure: configuration, logging and the exception hierarchy."""

from .config import CoreSettings, clear_config_cache, get_config
from .exceptions import (
    ChallengeError,
    ChallengeExpired,
    ConfigException,
    DIDNotFound,
    KeyNotFound,
    MalformedIdentifier,
    MalformedSignature,
    NonceMismatch,
    NoSuchChallenge,
    ResolutionError,
    ResolutionProtocolError,
    ResolutionTransportError,
    SignatureError,
    SubjectMappingUnavailable,
    SubjectNotFound,
    UnsupportedAlgorithm,
    ValidationException,
    WotidException,
)

__all__ = [
    "ChallengeError",
    "ChallengeExpired",
    "ConfigException",
    "CoreSettings",
    "DIDNotFound",
    "KeyNotFound",
    "MalformedIdentifier",
    "MalformedSignature",
    "NonceMismatch",
    "NoSuchChallenge",
    "ResolutionError",
    "ResolutionProtocolError",
    "ResolutionTransportError",
    "SignatureError",
    "SubjectMappingUnavailable",
    "SubjectNotFound",
    "UnsupportedAlgorithm",
    "ValidationException",
    "WotidException",
    "clear_config_cache",
    "get_config",
]
