"""
SKA Workbench — Certificate Inspection

Extracts the report-relevant fields of a PEM X.509 certificate.
"""

from __future__ import annotations

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes

from skabench.primitives.common import SkaBaseModel

logger = structlog.get_logger("skabench.reporting.certificates")

_DATE_FORMAT = "%Y-%m-%d"

# RFC 5280 key usage bits, in bit order, paired with the attribute cryptography uses.
_KEY_USAGE_BITS: tuple[tuple[str, str], ...] = (
    ("digitalSignature", "digital_signature"),
    ("nonRepudiation", "content_commitment"),
    ("keyEncipherment", "key_encipherment"),
    ("dataEncipherment", "data_encipherment"),
    ("keyAgreement", "key_agreement"),
    ("keyCertSign", "key_cert_sign"),
    ("cRLSign", "crl_sign"),
    ("encipherOnly", "encipher_only"),
    ("decipherOnly", "decipher_only"),
)


class CertificateInfo(SkaBaseModel):
    subject: str
    issuer: str
    not_before: str        # YYYY-MM-DD, UTC
    not_after: str         # YYYY-MM-DD, UTC
    serial_number: str     # uppercase hex
    key_usage: str
    sha256_fingerprint: str  # colon-separated uppercase hex


def format_key_usage(usage: x509.KeyUsage | None) -> str:
    if usage is None:
        return "(not set)"
    names: list[str] = []
    for name, attribute in _KEY_USAGE_BITS:
        try:
            enabled = getattr(usage, attribute)
        except ValueError:
            # encipher_only / decipher_only are undefined without key_agreement
            enabled = False
        if enabled:
            names.append(name)
    return ", ".join(names) if names else "(none)"


def sha256_fingerprint(certificate: x509.Certificate) -> str:
    digest = certificate.fingerprint(hashes.SHA256())
    return ":".join(f"{b:02X}" for b in digest)


def inspect_certificate(pem: str) -> CertificateInfo | None:
    """
    Parse PEM text (markers optional) into CertificateInfo.

    Returns None for blank input or anything that does not parse.
    """
    if not pem or not pem.strip():
        return None

    text = pem.strip()
    if not text.startswith("-----BEGIN"):
        text = f"-----BEGIN CERTIFICATE-----\n{text}\n-----END CERTIFICATE-----"

    try:
        certificate = x509.load_pem_x509_certificate(text.encode("ascii"))
    except (ValueError, UnicodeEncodeError) as exc:
        logger.warning("certificate_parse_failed", error=str(exc))
        return None

    try:
        usage: x509.KeyUsage | None = certificate.extensions.get_extension_for_class(
            x509.KeyUsage
        ).value
    except x509.ExtensionNotFound:
        usage = None

    return CertificateInfo(
        subject=certificate.subject.rfc4514_string(),
        issuer=certificate.issuer.rfc4514_string(),
        not_before=certificate.not_valid_before_utc.strftime(_DATE_FORMAT),
        not_after=certificate.not_valid_after_utc.strftime(_DATE_FORMAT),
        serial_number=format(certificate.serial_number, "X"),
        key_usage=format_key_usage(usage),
        sha256_fingerprint=sha256_fingerprint(certificate),
    )
