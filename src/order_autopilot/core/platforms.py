"""Per-platform lookup table.

Each supported platform is one `PlatformInfo` row: the packages it ships
under, the strings its accept and confirmation controls are known to use,
and the keywords that tell shared-package variants apart. Supporting a new
platform means adding a row here, not another branch in the pipeline.
"""

from dataclasses import dataclass, field
from typing import Optional

from order_autopilot.core.entities import PlatformId


DEFAULT_CONFIRMATION_TEXTS = ("Confirm", "Are you sure", "Proceed")
DEFAULT_CONFIRM_BUTTON_TEXTS = ("Confirm", "Yes", "Accept", "OK", "Okay")
DEFAULT_ACCEPT_DESCRIPTIONS = ("accept order", "accept delivery", "accept")


@dataclass(frozen=True)
class PlatformInfo:
    """Static knowledge about one delivery platform's UI."""

    platform_id: PlatformId
    display_name: str
    packages: tuple[str, ...]
    accept_texts: tuple[str, ...]
    accept_resource_ids: tuple[str, ...] = ("accept_button", "btnAccept", "acceptButton")
    accept_descriptions: tuple[str, ...] = DEFAULT_ACCEPT_DESCRIPTIONS
    confirmation_texts: tuple[str, ...] = DEFAULT_CONFIRMATION_TEXTS
    confirm_button_texts: tuple[str, ...] = DEFAULT_CONFIRM_BUTTON_TEXTS
    confirm_resource_ids: tuple[str, ...] = ("confirm_button", "btnConfirm", "button1")
    # Keywords that identify this platform when it shares a package with another
    variant_keywords: tuple[str, ...] = field(default_factory=tuple)


PLATFORMS: dict[PlatformId, PlatformInfo] = {
    info.platform_id: info
    for info in (
        PlatformInfo(
            platform_id=PlatformId.SWIGGY,
            display_name="Swiggy",
            packages=("in.swiggy.deliveryapp",),
            accept_texts=("Accept Order", "Accept", "Take Order"),
            accept_resource_ids=("accept_button", "btnAccept"),
        ),
        PlatformInfo(
            platform_id=PlatformId.INSTAMART,
            display_name="Instamart",
            packages=("in.swiggy.deliveryapp",),
            accept_texts=("Accept Order", "Accept", "Take Order"),
            accept_resource_ids=("accept_button", "btnAccept"),
            variant_keywords=(
                "instamart",
                "grocery",
                "groceries",
                "household",
                "essentials",
                "instant delivery",
                "minutes delivery",
            ),
        ),
        PlatformInfo(
            platform_id=PlatformId.ZOMATO,
            display_name="Zomato",
            packages=("com.zomato.delivery",),
            accept_texts=("Accept", "Accept Order", "Take"),
            accept_resource_ids=("accept_order_button", "btnAccept"),
        ),
        PlatformInfo(
            platform_id=PlatformId.ZEPTO,
            display_name="Zepto",
            packages=("com.zepto.rider",),
            accept_texts=("Accept", "Accept Order", "Take Order"),
        ),
        PlatformInfo(
            platform_id=PlatformId.BLINKIT,
            display_name="Blinkit",
            packages=("app.blinkit.onboarding",),
            accept_texts=("Accept", "Accept Order", "Take Order"),
        ),
        PlatformInfo(
            platform_id=PlatformId.UBER_EATS,
            display_name="Uber Eats",
            packages=("com.ubercab.driver",),
            accept_texts=("Accept Delivery", "Accept"),
            accept_resource_ids=("accept_button", "acceptButton", "pulse_accept"),
        ),
        PlatformInfo(
            platform_id=PlatformId.BIGBASKET,
            display_name="BigBasket",
            packages=("com.bigbasket.delivery",),
            accept_texts=("Accept Order", "Accept", "Take Order"),
        ),
    )
}

# Packages renamed by their vendors: legacy id -> current id
LEGACY_PACKAGES: dict[str, str] = {
    "com.ubercab.eats": "com.ubercab.driver",
}

# Packages of platforms that are no longer supported at all
DEPRECATED_PACKAGES: frozenset[str] = frozenset({"com.dunzo.delivery"})

# Platforms sharing a package: the primary platform and the variants to test
SHARED_PACKAGE_VARIANTS: dict[PlatformId, tuple[PlatformId, ...]] = {
    PlatformId.SWIGGY: (PlatformId.INSTAMART,),
}


def get_platform_info(platform_id: PlatformId) -> Optional[PlatformInfo]:
    return PLATFORMS.get(platform_id)


def primary_platform_for_package(package_id: str) -> Optional[PlatformId]:
    """Platform that owns a current package id; shared packages map to their primary."""
    for info in PLATFORMS.values():
        if package_id in info.packages and not info.variant_keywords:
            return info.platform_id
    return None


def refine_platform(platform_id: PlatformId, *texts: str) -> PlatformId:
    """Switch to a shared-package variant when its keywords appear in the text."""
    variants = SHARED_PACKAGE_VARIANTS.get(platform_id, ())
    if not variants:
        return platform_id

    haystack = " ".join(t for t in texts if t).lower()
    for variant in variants:
        keywords = PLATFORMS[variant].variant_keywords
        if any(keyword in haystack for keyword in keywords):
            return variant
    return platform_id
