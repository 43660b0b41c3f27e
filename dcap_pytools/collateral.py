# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Collateral retrieval - Fetch quote collateral from Intel PCS or a PCCS.

import asyncio
import binascii
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Protocol, Union
from urllib.parse import unquote

import requests
from cryptography import x509
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import dcap_logging
from .errors import CollateralError, RetrievalError
from .qvl import DcapQvlBackend, QuoteInfo, QuoteParser

# Get logger for this module
logger = dcap_logging.get_logger(__name__)

# Intel's public Provisioning Certification Service
PCS_URL = "https://api.trustedservices.intel.com"
CERTIFICATION_PATH = "certification/v4"
INTEL_ROOT_CA_CRL_URL = "https://certificates.trustedservices.intel.com/IntelSGXRootCA.der"

DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class DefaultSource:
    """Fetch collateral straight from Intel PCS."""

    url: ClassVar[str] = PCS_URL

    def status_line(self) -> str:
        return "Getting collateral from PCS..."


@dataclass(frozen=True)
class CustomSource:
    """Fetch collateral from a caller-operated caching service (PCCS)."""

    url: str

    def status_line(self) -> str:
        return f"Getting collateral from {self.url}"


CollateralSource = Union[DefaultSource, CustomSource]


def resolve_source(value: Optional[str]) -> CollateralSource:
    """
    Choose the collateral source from a configured PCCS URL.

    Args:
        value: Configured PCCS URL, possibly unset or empty

    Returns:
        CollateralSource: DefaultSource for no value, else CustomSource(value)
    """
    if not value:
        return DefaultSource()
    return CustomSource(value)


@dataclass(frozen=True)
class Collateral:
    """
    Collateral needed to verify one quote.

    Signatures and CRLs are raw bytes. They are only hex encoded when the
    collateral leaves the process (export file, verification library).
    """

    tcb_info_issuer_chain: str
    tcb_info: str
    tcb_info_signature: bytes
    qe_identity_issuer_chain: str
    qe_identity: str
    qe_identity_signature: bytes
    # Revocation data consumed by current verifier releases
    pck_crl_issuer_chain: Optional[str] = None
    root_ca_crl: Optional[bytes] = None
    pck_crl: Optional[bytes] = None

    def to_json_dict(self) -> Dict[str, Any]:
        """Return the collateral with byte fields hex encoded."""
        data = {
            "tcb_info_issuer_chain": self.tcb_info_issuer_chain,
            "tcb_info": self.tcb_info,
            "tcb_info_signature": self.tcb_info_signature.hex(),
            "qe_identity_issuer_chain": self.qe_identity_issuer_chain,
            "qe_identity": self.qe_identity,
            "qe_identity_signature": self.qe_identity_signature.hex(),
        }
        if self.pck_crl_issuer_chain is not None:
            data["pck_crl_issuer_chain"] = self.pck_crl_issuer_chain
        if self.root_ca_crl is not None:
            data["root_ca_crl"] = self.root_ca_crl.hex()
        if self.pck_crl is not None:
            data["pck_crl"] = self.pck_crl.hex()
        return data


class CollateralClient(Protocol):
    async def get_collateral(
        self, base_url: str, quote: bytes, timeout: float
    ) -> Collateral:
        """Fetch collateral for ``quote`` from the service at ``base_url``."""
        ...


async def retrieve(
    quote: bytes,
    source: CollateralSource,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[CollateralClient] = None,
) -> Collateral:
    """
    Fetch collateral for a quote from the chosen source.

    Exactly one request strategy runs, bounded by ``timeout``. There is no
    retry; a timeout is final.

    Args:
        quote: Raw quote bytes
        source: Where to fetch from
        timeout: Upper bound in seconds for the whole retrieval
        client: Collateral client (default: PcsCollateralClient)

    Returns:
        Collateral: The retrieved collateral

    Raises:
        RetrievalError: On network failure, timeout, or a malformed response
    """
    dcap_logging.log_status(source.status_line())

    try:
        if client is None:
            client = PcsCollateralClient()
        return await asyncio.wait_for(
            client.get_collateral(source.url, quote, timeout), timeout
        )
    except asyncio.TimeoutError as e:
        raise RetrievalError(
            f"Timed out after {timeout:g} seconds fetching collateral"
        ) from e
    except RetrievalError:
        raise
    except Exception as e:
        raise RetrievalError() from e


def validate_fmspc(fmspc: str) -> str:
    """
    Validate and normalize FMSPC format.

    FMSPC (Family-Model-Stepping-Platform-CustomSKU) is a 6-byte identifier
    used to identify platform configurations for TCB Info lookup.

    Args:
        fmspc: FMSPC value as hex string

    Returns:
        str: Normalized FMSPC value (uppercase, 12 characters)

    Raises:
        CollateralError: If FMSPC format is invalid
    """
    fmspc = fmspc.replace(" ", "").replace("-", "")

    try:
        int(fmspc, 16)
    except ValueError:
        raise CollateralError(f"Invalid FMSPC format: {fmspc}. Must be a hex string.")

    if len(fmspc) != 12:
        raise CollateralError(
            f"Invalid FMSPC length: {len(fmspc)}. Expected 12 characters (6 bytes)."
        )

    return fmspc.upper()


def certification_base(base_url: str) -> str:
    """
    Strip a service URL down to its host part.

    PCCS deployments are often configured with the full API prefix, so
    ``https://pccs:8081/sgx/certification/v4/`` and ``https://pccs:8081``
    are treated alike.
    """
    base = base_url.rstrip("/")
    for tee in ("sgx", "tdx"):
        suffix = f"/{tee}/{CERTIFICATION_PATH}"
        if base.endswith(suffix):
            return base[: -len(suffix)]
    return base


def create_session() -> requests.Session:
    """
    Create a requests session for talking to PCS or a PCCS.

    Retries are disabled: a failed request fails the whole retrieval.

    Returns:
        requests.Session: Configured session object
    """
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "User-Agent": "DCAP-PyTools/1.0",
            "Accept": "application/json, application/x-pem-file, application/pkix-crl",
        }
    )
    return session


def _get_header(response: requests.Response, *names: str) -> str:
    for name in names:
        value = response.headers.get(name)
        if value:
            return unquote(value)
    raise CollateralError(f"Missing response header {names[0]} from {response.url}")


def _load_chain(chain: str, name: str) -> str:
    try:
        certs = x509.load_pem_x509_certificates(chain.encode())
    except ValueError as e:
        raise CollateralError(f"Malformed {name}: {e}") from e
    logger.debug(f"{name}: {len(certs)} certificate(s)")
    return chain


def _load_crl(data: bytes, name: str) -> x509.CertificateRevocationList:
    try:
        return x509.load_der_x509_crl(data)
    except ValueError:
        pass
    try:
        return x509.load_pem_x509_crl(data)
    except ValueError as e:
        raise CollateralError(f"Failed to parse {name} as DER or PEM: {e}") from e


def _signed_body(response: requests.Response, key: str, name: str):
    """Split a signed PCS JSON body into (compact payload text, signature)."""
    try:
        data = response.json()
        payload = data[key]
        signature = binascii.unhexlify(data["signature"])
    except (ValueError, KeyError, TypeError, binascii.Error) as e:
        raise CollateralError(f"Malformed {name} response: {e}") from e
    # Compact and in the original key order; the signature covers these bytes
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return text, signature


def root_ca_crl_url(issuer_chain: str) -> str:
    """
    Find the CRL distribution point of the root CA in an issuer chain.

    Falls back to Intel's published root CA CRL when the root certificate
    carries no distribution point.
    """
    certs = x509.load_pem_x509_certificates(issuer_chain.encode())
    root_cert = certs[-1]
    try:
        cdp = root_cert.extensions.get_extension_for_oid(
            x509.oid.ExtensionOID.CRL_DISTRIBUTION_POINTS
        ).value
    except x509.ExtensionNotFound:
        return INTEL_ROOT_CA_CRL_URL

    for distribution_point in cdp:
        for general_name in distribution_point.full_name or []:
            if isinstance(general_name, x509.UniformResourceIdentifier):
                return general_name.value
    return INTEL_ROOT_CA_CRL_URL


class FetchBudget:
    """
    Deadline and stop flag shared by the requests of one retrieval.

    The worker thread checks it before every request, so nothing new is
    sent once the caller has timed out or given up.
    """

    def __init__(self, timeout: float):
        self.deadline = time.monotonic() + timeout
        self.stopped = threading.Event()

    def remaining(self, name: str) -> float:
        if self.stopped.is_set():
            raise CollateralError(f"Retrieval cancelled before fetching {name}")
        left = self.deadline - time.monotonic()
        if left <= 0:
            raise CollateralError(f"Deadline passed before fetching {name}")
        return left


class PcsCollateralClient:
    """
    Collateral client speaking the Intel PCS v4 API.

    A PCCS mirrors the same API, so one client serves both sources; only
    the base URL differs.
    """

    def __init__(
        self,
        parser: Optional[QuoteParser] = None,
        session: Optional[requests.Session] = None,
    ):
        self.parser = parser
        self.session = session

    async def get_collateral(
        self, base_url: str, quote: bytes, timeout: float
    ) -> Collateral:
        """
        Fetch collateral on a daemon worker thread.

        The thread is not part of the loop's executor, so a timed out
        retrieval does not hold up ``asyncio.run`` or process exit.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        budget = FetchBudget(timeout)
        future.add_done_callback(lambda _: budget.stopped.set())

        def settle(result, error):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def worker():
            result, error = None, None
            try:
                result = self._fetch(base_url, quote, budget)
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(settle, result, error)
            except RuntimeError:
                # Loop already closed after a timeout; the result has no reader
                logger.debug("Discarding collateral fetched after the caller gave up")

        threading.Thread(target=worker, name="dcap-collateral", daemon=True).start()
        return await future

    def _get(
        self, session: requests.Session, url: str, budget: FetchBudget, name: str
    ) -> requests.Response:
        timeout = budget.remaining(name)
        dcap_logging.log_network_request(url, "GET")
        response = session.get(url, timeout=timeout)
        dcap_logging.log_network_request(url, "GET", response.status_code)
        if response.status_code != 200:
            raise CollateralError(
                f"Unable to fetch {name}: {response.status_code} - {response.text}"
            )
        return response

    def fetch_collateral(self, base_url: str, quote: bytes, timeout: float) -> Collateral:
        """
        Fetch PCK CRL, TCB Info, QE Identity and root CA CRL for a quote.

        Args:
            base_url: PCS or PCCS URL
            quote: Raw quote bytes
            timeout: Time budget in seconds shared by all requests

        Returns:
            Collateral: Collateral for the quote's platform

        Raises:
            CollateralError: If a response is missing data or malformed, or
                the budget runs out
            requests.RequestException: On network failure
        """
        return self._fetch(base_url, quote, FetchBudget(timeout))

    def _fetch(self, base_url: str, quote: bytes, budget: FetchBudget) -> Collateral:
        if self.parser is None:
            self.parser = DcapQvlBackend()
        info: QuoteInfo = self.parser.describe(quote)
        fmspc = validate_fmspc(info.fmspc)
        tee = "tdx" if info.is_tdx else "sgx"

        base = certification_base(base_url)
        sgx_api = f"{base}/sgx/{CERTIFICATION_PATH}"
        tee_api = f"{base}/{tee}/{CERTIFICATION_PATH}"
        logger.debug(f"Quote platform: fmspc={fmspc} ca={info.ca} tee={tee}")

        session = self.session or create_session()
        try:
            response = self._get(
                session,
                f"{sgx_api}/pckcrl?ca={info.ca}&encoding=der",
                budget,
                "PCK CRL",
            )
            pck_crl_issuer_chain = _load_chain(
                _get_header(response, "SGX-PCK-CRL-Issuer-Chain"),
                "PCK CRL issuer chain",
            )
            pck_crl = response.content
            _load_crl(pck_crl, "PCK CRL")

            response = self._get(
                session, f"{tee_api}/tcb?fmspc={fmspc}", budget, "TCB Info"
            )
            tcb_info_issuer_chain = _load_chain(
                _get_header(
                    response, "SGX-TCB-Info-Issuer-Chain", "TCB-Info-Issuer-Chain"
                ),
                "TCB Info issuer chain",
            )
            tcb_info, tcb_info_signature = _signed_body(response, "tcbInfo", "TCB Info")

            response = self._get(
                session,
                f"{tee_api}/qe/identity?update=standard",
                budget,
                "QE Identity",
            )
            qe_identity_issuer_chain = _load_chain(
                _get_header(response, "SGX-Enclave-Identity-Issuer-Chain"),
                "QE Identity issuer chain",
            )
            qe_identity, qe_identity_signature = _signed_body(
                response, "enclaveIdentity", "QE Identity"
            )

            crl_url = root_ca_crl_url(pck_crl_issuer_chain)
            logger.debug(f"Root CA CRL distribution point: {crl_url}")
            response = self._get(session, crl_url, budget, "Root CA CRL")
            root_ca_crl = response.content
            _load_crl(root_ca_crl, "Root CA CRL")
        finally:
            if self.session is None:
                session.close()

        logger.info("Successfully fetched collateral")
        return Collateral(
            tcb_info_issuer_chain=tcb_info_issuer_chain,
            tcb_info=tcb_info,
            tcb_info_signature=tcb_info_signature,
            qe_identity_issuer_chain=qe_identity_issuer_chain,
            qe_identity=qe_identity,
            qe_identity_signature=qe_identity_signature,
            pck_crl_issuer_chain=pck_crl_issuer_chain,
            root_ca_crl=root_ca_crl,
            pck_crl=pck_crl,
        )
