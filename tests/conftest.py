import itertools
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio
from beanie import init_beanie
from mongomock_motor import AsyncMongoMockClient

from app.core.config import settings

settings.JWT_SECRET_KEY = "test-secret-key"
settings.ENABLE_SCHEDULER = False

from app.clients import Collaborators  # noqa: E402
from app.clients.encryption_client import EnvelopeEncryptionService  # noqa: E402
from app.clients.interfaces import (  # noqa: E402
    EmailSender,
    FileStorage,
    LedgerClient,
    MintResult,
    MintService,
    PaymentGateway,
    PaymentLink,
    PinResult,
    StorageService,
)
from app.core.errors import ExternalServiceError  # noqa: E402
from app.database.models import DOCUMENT_MODELS, RequestSignature, User  # noqa: E402
from app.schemas.notarization_schema import RequesterInfo, UploadedFile  # noqa: E402
from app.services import build_services  # noqa: E402


PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class FakeLedger(LedgerClient):
    def __init__(self):
        self.balances: Dict[str, int] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.assets: Dict[str, Dict[str, Any]] = {}

    async def get_balance(self, address):
        return self.balances.get(address, 0)

    async def submit_and_confirm(self, signed_transaction):
        signature = f"sig-{len(self.transactions) + 1}"
        self.transactions[signature] = {"slot": 1, "blockTime": 1700000000, "meta": {"err": None}}
        return signature

    async def get_transaction(self, signature):
        return self.transactions.get(signature)

    async def get_asset_metadata(self, mint_address):
        return self.assets.get(mint_address, {
            "mint": mint_address,
            "name": "doc.pdf",
            "symbol": "DOC",
            "uri": None,
            "update_authority": None,
            "owner": None,
        })


class FakeMint(MintService):
    def __init__(self):
        self.calls = []
        self.fail = False
        self._seq = itertools.count(1)

    async def create_nft(self, name, uri):
        if self.fail:
            raise ExternalServiceError("mint service unavailable")
        n = next(self._seq)
        self.calls.append((name, uri))
        return MintResult(mint_address=f"mint{n}", transaction_signature=f"tx{n}", metadata_address=f"meta{n}")


class FakeStorage(StorageService):
    def __init__(self):
        self.pinned: Dict[str, Any] = {}
        self._seq = itertools.count(1)

    def _result(self, payload):
        cid = f"cid{next(self._seq)}"
        self.pinned[cid] = payload
        return PinResult(cid=cid, uri=f"https://gateway.test/ipfs/{cid}")

    async def pin(self, data, name):
        return self._result(data)

    async def pin_json(self, payload, name):
        return self._result(payload)

    async def create_access_link(self, cid, expires_in_seconds=60):
        return f"https://gateway.test/private/{cid}?expires={expires_in_seconds}"


class FakeGateway(PaymentGateway):
    def __init__(self):
        self.statuses: Dict[int, str] = {}
        self.links = []
        self.fail_links = False
        self.status_calls = 0

    async def create_link(self, order_code, amount, description, return_url, cancel_url):
        if self.fail_links:
            raise ExternalServiceError("gateway unavailable")
        self.links.append({"order_code": order_code, "amount": amount, "description": description})
        self.statuses.setdefault(order_code, "PENDING")
        return PaymentLink(checkout_url=f"https://pay.test/{order_code}", payment_link_id=f"link-{order_code}")

    async def get_status(self, order_code):
        self.status_calls += 1
        return self.statuses.get(order_code, "PENDING")


class FakeEmail(EmailSender):
    def __init__(self):
        self.sent = []

    async def send(self, to, template, data):
        self.sent.append({"to": to, "template": template, "data": data})

    def templates(self):
        return [m["template"] for m in self.sent]


class FakeFiles(FileStorage):
    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    async def upload(self, data, path, content_type):
        self.objects[path] = data
        return path

    async def delete(self, path):
        self.objects.pop(path, None)

    async def signed_url(self, path, expires_in_seconds=3600):
        return f"https://files.test/{path}?token=signed"


@pytest_asyncio.fixture
async def db():
    client = AsyncMongoMockClient()
    await init_beanie(database=client["notarization_test"], document_models=DOCUMENT_MODELS)
    yield client


@pytest.fixture
def collaborators(db):
    ledger = FakeLedger()
    return Collaborators(
        ledger=ledger,
        mint=FakeMint(),
        storage=FakeStorage(),
        encryption=EnvelopeEncryptionService("test-master-secret", ledger),
        payments=FakeGateway(),
        email=FakeEmail(),
        files=FakeFiles(),
    )


@pytest.fixture
def services(collaborators):
    return build_services(collaborators, reconcile_delay=0)


@pytest.fixture
def make_user(db):
    async def _make(email: str, role: str = "user", full_name: Optional[str] = None) -> User:
        user = User(
            email=email,
            full_name=full_name or email.split("@")[0],
            hashed_password="not-a-real-hash",
            role=role,
        )
        await user.insert()
        return user
    return _make


def requester(email="alice@example.com"):
    return RequesterInfo(fullName="Alice Nguyen", citizenId="079123456789", phoneNumber="0901234567", email=email)


def pdf_upload(name="contract.pdf"):
    return UploadedFile(filename=name, content=PDF_BYTES, content_type="application/pdf")


def png_upload(name="signature.png"):
    return UploadedFile(filename=name, content=PNG_BYTES, content_type="image/png")


@pytest.fixture
def create_document(services):
    async def _create(user_id: str = "owner-1", amount: int = 2, price: Optional[int] = 50000, email: str = "alice@example.com"):
        service_info = {"name": "Contract certification"}
        if price is not None:
            service_info["price"] = price
        return await services.notarization.create_document(
            requester(email),
            [pdf_upload()],
            ["f-1"],
            ["Sales contract"],
            user_id,
            notarization_field={"name": "Civil contracts"},
            notarization_service=service_info,
            amount=amount,
        )
    return _create


@pytest.fixture
def advance(services):
    """Walk a document forward to the given status along the happy path."""
    async def _advance(document, until: str, owner_id: str = "owner-1"):
        notarization = services.notarization
        doc_id = str(document.id)
        steps = [
            ("processing", "secretary", "sec-1"),
            ("readyToSign", "notary", "notary-1"),
            ("pendingSignature", "user", owner_id),
            ("accepted", "notary", "notary-1"),
        ]
        for target, role, actor in steps:
            if target == "accepted":
                await notarization.approve_signature_by_user(doc_id, png_upload(), owner_id)
                await notarization.approve_signature_by_notary(doc_id, "notary-1")
            document = await notarization.forward_document_status(doc_id, "accept", role, actor)
            if target == until:
                return document
        return document
    return _advance


async def co_sign(services, document_id: str, owner_id: str = "owner-1"):
    await services.notarization.approve_signature_by_user(document_id, png_upload(), owner_id)
    await services.notarization.approve_signature_by_notary(document_id, "notary-1")
    return await RequestSignature.find_one(RequestSignature.document_id == document_id)
