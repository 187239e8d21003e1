"""Offline template assembler for websites, content kits and marketing kits."""

from .categories import (
    PALETTES,
    PROFILES,
    BrandPalette,
    BusinessCategory,
    CategoryProfile,
    classify_category,
    get_palette,
    get_profile,
)
from .content_kit import build_content_package, render_content_kit, render_content_sections
from .marketing_kit import build_marketing_package, render_marketing_dashboard, render_marketing_sections
from .websites import PAGE_BUILDERS, assemble

__all__ = [
    "PALETTES",
    "PROFILES",
    "PAGE_BUILDERS",
    "BrandPalette",
    "BusinessCategory",
    "CategoryProfile",
    "assemble",
    "build_content_package",
    "build_marketing_package",
    "classify_category",
    "get_palette",
    "get_profile",
    "render_content_kit",
    "render_content_sections",
    "render_marketing_dashboard",
    "render_marketing_sections",
]
