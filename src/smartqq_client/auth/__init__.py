"""Authentication module."""

from .sequencer import LoginSequencer, LoginAttempt, QRStatus, QRVerification, parse_qr_status

__all__ = ["LoginSequencer", "LoginAttempt", "QRStatus", "QRVerification", "parse_qr_status"]
