"""Marketing kit: campaign copy and channel strategy for a business."""

from typing import Any, Dict

from ..models import BusinessRecord
from .categories import get_palette
from .layout import display_location, esc

MARKETING_KIT_SECTIONS = (
    "email_campaigns",
    "social_media_strategy",
    "google_ads_content",
    "landing_page_copy",
    "brand_messaging",
)


def build_marketing_package(business: BusinessRecord) -> Dict[str, Any]:
    """Build the marketing kit for a business.

    Returns:
        Dict with email_campaigns, social_media_strategy, google_ads_content,
        landing_page_copy and brand_messaging.
    """
    name = business.name
    category = business.classification
    lower = category.lower()
    location = display_location(business)
    rated = f"{business.rating:.1f}★ Rated {category}" if business.rating else f"Trusted {category}"

    platforms = ["Facebook", "Instagram", "Google My Business"]
    if business.total_reviews < 50:
        platforms.append("Yelp")

    return {
        "email_campaigns": {
            "welcome": f"Welcome to {name}! We're excited to serve you.",
            "promotional": f"Special offer from {name} - limited time only!",
            "follow_up": f"Thank you for choosing {name}. How was your experience?",
        },
        "social_media_strategy": {
            "platforms": platforms,
            "content_types": ["Behind the scenes", "Customer testimonials", "Service highlights"],
            "posting_schedule": "3-4 times per week",
        },
        "google_ads_content": {
            "headlines": [
                f"Best {category} in {location}",
                f"{name} - Quality Service",
                rated,
            ],
            "descriptions": [
                f"Professional {lower} services you can trust.",
                f"Located in {location}. Call today for a consultation!",
            ],
        },
        "landing_page_copy": {
            "headline": f"Welcome to {name}",
            "subheadline": f"Your trusted {lower} partner in {location}",
            "cta": "Get Started Today",
        },
        "brand_messaging": {
            "tagline": f"{name} - Excellence in {category}",
            "mission": f"To provide outstanding {lower} services to the {location} community",
            "values": ["Quality", "Reliability", "Customer Satisfaction"],
        },
    }


def _panel(title: str, inner: str) -> str:
    return f"""
            <section class="bg-white rounded-xl shadow p-6">
                <h2 class="text-xl font-semibold mb-4 text-brand">{esc(title)}</h2>
                {inner}
            </section>"""


def _pairs(mapping: Dict[str, Any]) -> str:
    rows = []
    for key, value in mapping.items():
        label = esc(key.replace("_", " ").title())
        if isinstance(value, list):
            rendered = ", ".join(esc(v) for v in value)
        else:
            rendered = esc(value)
        rows.append(f'<div><dt class="text-sm text-gray-500">{label}</dt><dd class="text-gray-800">{rendered}</dd></div>')
    return f'<dl class="space-y-3">{"".join(rows)}</dl>'


def render_marketing_sections(package: Dict[str, Any]) -> str:
    """Render whichever marketing kit sections are present in ``package``."""
    out = []
    if package.get("email_campaigns"):
        out.append(_panel("Email Campaigns", _pairs(package["email_campaigns"])))
    if package.get("social_media_strategy"):
        out.append(_panel("Social Media Strategy", _pairs(package["social_media_strategy"])))
    if package.get("google_ads_content"):
        ads = package["google_ads_content"]
        headlines = "".join(f'<li class="font-medium text-blue-700">{esc(h)}</li>' for h in ads.get("headlines", []))
        descriptions = "".join(f'<li class="text-gray-700">{esc(d)}</li>' for d in ads.get("descriptions", []))
        out.append(_panel("Google Ads", f'<ul class="space-y-1 mb-3">{headlines}</ul><ul class="space-y-1">{descriptions}</ul>'))
    if package.get("landing_page_copy"):
        out.append(_panel("Landing Page Copy", _pairs(package["landing_page_copy"])))
    if package.get("brand_messaging"):
        out.append(_panel("Brand Messaging", _pairs(package["brand_messaging"])))
    return "".join(out)


def render_marketing_dashboard(business: BusinessRecord, package: Dict[str, Any]) -> str:
    """Render a marketing kit as a standalone HTML dashboard."""
    palette = get_palette(business.classification)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Marketing Campaign - {esc(business.name)}</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <style>
        .text-brand {{ color: {palette.primary}; }}
        .brand-gradient {{ background: linear-gradient(135deg, {palette.primary} 0%, {palette.secondary} 100%); }}
    </style>
</head>
<body class="bg-gray-100">
    <header class="brand-gradient text-white py-10">
        <div class="container mx-auto px-4">
            <h1 class="text-3xl font-bold">Marketing Campaign Dashboard</h1>
            <p class="opacity-90 mt-2">{esc(business.name)} &middot; {esc(display_location(business))}</p>
        </div>
    </header>
    <main class="container mx-auto px-4 py-8">
        <div class="grid md:grid-cols-2 gap-6">{render_marketing_sections(package)}
        </div>
    </main>
</body>
</html>"""
