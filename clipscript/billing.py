"""Billing - credit packages and purchase recording."""
import secrets
from typing import Optional

from pydantic import BaseModel, Field

from clipscript.db import ledger
from clipscript.db.models import PurchaseMetadata, User
from clipscript.db.store import Store
from clipscript.errors import PackageNotFound


class CreditPackage(BaseModel):
    """Available credit package."""
    id: str
    name: str
    credits: int
    price: float
    currency: str = "USD"
    badge: Optional[str] = None
    features: list[str] = Field(default_factory=list)


# Available credit packages
CREDIT_PACKAGES = [
    CreditPackage(
        id="pkg_lite", name="Lite Script", credits=100, price=9.99,
        features=["100 High-Speed Credits", "24/7 Support", "Standard Models", "WAV Exports"],
    ),
    CreditPackage(
        id="pkg_pro", name="Pro Script", credits=350, price=24.99, badge="Best Value",
        features=["350 Credits", "Priority Queue", "Advanced Reasoning Models", "Viral Metadata Tools", "Commercial Rights"],
    ),
    CreditPackage(
        id="pkg_studio", name="Studio Script", credits=1000, price=59.99,
        features=["1000 Credits", "Custom AI Fine-tuning", "Team Collaboration", "API Early Access", "Dedicated Account Manager"],
    ),
]


def get_package(package_id: str) -> CreditPackage:
    """Find a credit package by ID."""
    package = next((p for p in CREDIT_PACKAGES if p.id == package_id), None)
    if not package:
        raise PackageNotFound(package_id)
    return package


def new_payment_reference() -> str:
    """Reference for a completed (simulated) card charge."""
    return f"ch_{secrets.token_hex(8)}"


async def purchase(
    store: Store,
    user_id: str,
    package_id: str,
    payment_ref: Optional[str] = None,
) -> User:
    """Credit a paid package to the user and log the payment."""
    package = get_package(package_id)
    metadata = PurchaseMetadata(
        external_ref=payment_ref or new_payment_reference(),
        price=package.price,
        package_id=package.id,
        credits=package.credits,
    )
    return await ledger.add_credits(
        store, user_id, package.credits,
        details=f"Payment successful: {package.name}",
        metadata=metadata,
    )
