"""
Shared fixtures: stub quote backends, stub collateral clients and
throwaway certificates for exercising dcap_pytools without the network.
"""

import asyncio
import hashlib
import logging
import time
from datetime import datetime, timedelta, timezone

import pytest
import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from requests.structures import CaseInsensitiveDict

from dcap_pytools.collateral import Collateral
from dcap_pytools.qvl import QuoteInfo

SAMPLE_QUOTE = bytes(range(256)) + b"\x00\x0a\xff" * 16
SAMPLE_FMSPC = "00906ed50000"
ROOT_CRL_URL = "https://certificates.example.com/TestSGXRootCA.der"

SAMPLE_REPORT = {
    "status": "UpToDate",
    "advisory_ids": [],
    "report": {"TD10": {"mr_td": "00" * 48}},
}


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; undo that after every test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class StubBackend:
    """Parser and verifier returning fixed, input-derived results."""

    def __init__(self, report=None, is_tdx=True):
        self.report = SAMPLE_REPORT if report is None else report
        self.is_tdx = is_tdx
        self.verify_calls = []

    def parse(self, quote):
        return {
            "length": len(quote),
            "sha256": hashlib.sha256(quote).hexdigest(),
            "is_tdx": self.is_tdx,
        }

    def describe(self, quote):
        return QuoteInfo(fmspc=SAMPLE_FMSPC, ca="processor", is_tdx=self.is_tdx)

    def verify(self, quote, collateral, now):
        self.verify_calls.append((quote, collateral, now))
        return self.report


class StubClient:
    """Collateral client that answers immediately and records its calls."""

    def __init__(self, collateral):
        self.collateral = collateral
        self.calls = []

    async def get_collateral(self, base_url, quote, timeout):
        self.calls.append((base_url, quote, timeout))
        return self.collateral


class SlowClient:
    """Collateral client that never answers in time."""

    def __init__(self):
        self.cancelled = False

    async def get_collateral(self, base_url, quote, timeout):
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class FailingClient:
    async def get_collateral(self, base_url, quote, timeout):
        raise requests.ConnectionError("Connection refused")


@pytest.fixture
def collateral():
    return Collateral(
        tcb_info_issuer_chain="-----BEGIN CERTIFICATE-----\nTCB\n-----END CERTIFICATE-----\n",
        tcb_info='{"id":"TDX","version":3,"fmspc":"00906ED50000"}',
        tcb_info_signature=bytes.fromhex("deadbeef" * 16),
        qe_identity_issuer_chain="-----BEGIN CERTIFICATE-----\nQE\n-----END CERTIFICATE-----\n",
        qe_identity='{"id":"TD_QE","version":2}',
        qe_identity_signature=bytes.fromhex("c0ffee00" * 16),
    )


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def stub_client(collateral):
    return StubClient(collateral)


@pytest.fixture
def quote_file(tmp_path):
    path = tmp_path / "quote.bin"
    path.write_bytes(SAMPLE_QUOTE)
    return path


@pytest.fixture
def hex_quote_file(tmp_path):
    path = tmp_path / "quote.hex"
    path.write_text("0x" + SAMPLE_QUOTE.hex() + "\n")
    return path


def make_root_ca(crl_url=ROOT_CRL_URL):
    """Create a self-signed CA certificate (PEM) and an empty CRL (DER)."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Test SGX Root CA")])
    now = datetime.now(timezone.utc)

    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
    )
    if crl_url:
        builder = builder.add_extension(
            x509.CRLDistributionPoints(
                [
                    x509.DistributionPoint(
                        full_name=[x509.UniformResourceIdentifier(crl_url)],
                        relative_name=None,
                        reasons=None,
                        crl_issuer=None,
                    )
                ]
            ),
            critical=False,
        )
    cert = builder.sign(key, hashes.SHA256())

    crl = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(name)
        .last_update(now)
        .next_update(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )

    pem = cert.public_bytes(serialization.Encoding.PEM).decode()
    return pem, crl.public_bytes(serialization.Encoding.DER)


def make_response(url, status_code=200, content=b"", headers=None):
    response = requests.Response()
    response.url = url
    response.status_code = status_code
    response._content = content
    response.encoding = "utf-8"
    response.headers = CaseInsensitiveDict(headers or {})
    return response


class FakeSession:
    """Stands in for requests.Session, serving canned responses by URL."""

    def __init__(self, responses):
        self.responses = responses
        self.requested = []

    def get(self, url, timeout=None):
        self.requested.append((url, timeout))
        if url not in self.responses:
            return make_response(url, status_code=404, content=b"not found")
        return self.responses[url]

    def close(self):
        pass


class SlowSession(FakeSession):
    """A FakeSession whose every request blocks for ``delay`` seconds."""

    def __init__(self, responses, delay):
        super().__init__(responses)
        self.delay = delay

    def get(self, url, timeout=None):
        time.sleep(self.delay)
        return super().get(url, timeout)
