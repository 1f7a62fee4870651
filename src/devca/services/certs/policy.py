"""Decide whether a cached certificate can be reused or must be regenerated."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from devca.services.certs.record import CertificateRecord

_log = logging.getLogger("devca.ca")


class RenewalReason(str, enum.Enum):
    REUSE = "reuse"
    MISSING = "missing"
    FORCED = "forced"
    MISSING_KEY = "missing_key"
    ISSUER_MISMATCH = "issuer_mismatch"
    AUTHORITY_KEY_MISMATCH = "authority_key_mismatch"
    AUTHORITY_ROTATED = "authority_rotated"
    INSUFFICIENT_RUN_TIME = "insufficient_run_time"


@dataclass(frozen=True, slots=True)
class RenewalDecision:
    reason: RenewalReason
    detail: str = ""

    @property
    def reuse(self) -> bool:
        return self.reason is RenewalReason.REUSE

    def __bool__(self) -> bool:
        return self.reuse


def run_time_deadline(min_run_days: float, now: datetime) -> datetime:
    return now + timedelta(days=min_run_days)


def _reject(reason: RenewalReason, detail: str) -> RenewalDecision:
    _log.warning(detail)
    return RenewalDecision(reason, detail)


def check_run_time(
    existing: "CertificateRecord | None",
    min_run_days: float,
    now: datetime,
    *,
    force: bool = False,
    require_key: bool = False,
) -> RenewalDecision:
    """Presence, key and remaining-lifetime checks only; used for self-signed roots."""

    if force:
        return RenewalDecision(RenewalReason.FORCED, "regeneration forced")
    if existing is None:
        return RenewalDecision(RenewalReason.MISSING, "no existing certificate")
    if require_key and existing.key is None:
        return _reject(RenewalReason.MISSING_KEY, f"no private key stored for '{existing.name}'")
    deadline = run_time_deadline(min_run_days, now)
    if existing.not_after <= deadline:
        return _reject(
            RenewalReason.INSUFFICIENT_RUN_TIME,
            f"not enough run time left on '{existing.name}': {existing.not_after.isoformat()} <= {deadline.isoformat()}",
        )
    return RenewalDecision(RenewalReason.REUSE)


def should_reuse(
    existing: "CertificateRecord | None",
    authority: "CertificateRecord",
    min_run_days: float,
    now: datetime,
    *,
    force: bool = False,
    require_key: bool = False,
) -> RenewalDecision:
    """Short-circuit chain; the first failing check names the reason.

    A leaf issued before the authority's ``not_before`` was signed by an
    authority that has since been replaced, even if the leaf has not expired.
    With ``require_key`` a certificate whose private key is gone from the
    keyring cannot be reused.
    """

    if force:
        return RenewalDecision(RenewalReason.FORCED, "regeneration forced")
    if existing is None:
        return RenewalDecision(RenewalReason.MISSING, "no existing certificate")
    if require_key and existing.key is None:
        return _reject(RenewalReason.MISSING_KEY, f"no private key stored for '{existing.name}'")
    if existing.issuer != authority.subject:
        return _reject(
            RenewalReason.ISSUER_MISMATCH,
            f'invalid CA subject "{existing.issuer}" != "{authority.subject}"',
        )
    leaf_aki = existing.authority_key_id
    ca_ski = authority.subject_key_id
    if leaf_aki is not None and ca_ski is not None and leaf_aki != ca_ski:
        return _reject(
            RenewalReason.AUTHORITY_KEY_MISMATCH,
            f"'{existing.name}' was signed by a different key of \"{authority.subject}\"",
        )
    if existing.not_before < authority.not_before:
        return _reject(
            RenewalReason.AUTHORITY_ROTATED,
            f"CA no longer valid: {existing.not_before.isoformat()} < {authority.not_before.isoformat()}",
        )
    return check_run_time(existing, min_run_days, now)


__all__ = ["RenewalDecision", "RenewalReason", "check_run_time", "run_time_deadline", "should_reuse"]
