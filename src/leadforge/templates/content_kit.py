"""Content kit: copy for a business's site, blog and social channels."""

from typing import Any, Dict, List

from ..models import BusinessRecord
from .categories import BusinessCategory, classify_category, get_profile
from .layout import DEFAULT_LOCATION, display_location, esc

CONTENT_KIT_SECTIONS = (
    "business_description",
    "about_text",
    "service_descriptions",
    "blog_topics",
    "social_media_posts",
    "faq_section",
)


def _category_label(business: BusinessRecord) -> str:
    return business.classification.lower()


def business_description(business: BusinessRecord) -> str:
    if business.description:
        return business.description
    profile = get_profile(business.classification)
    return profile.description.format(
        name=business.name,
        location=display_location(business),
        category=_category_label(business),
    )


def about_text(business: BusinessRecord) -> str:
    location = display_location(business)
    community = "the local community" if location == DEFAULT_LOCATION else f"the {location} community"
    parts = [
        f"{business.name} has been serving {community} with dedication and professionalism."
    ]
    if business.rating:
        parts.append(
            f"Our {business.rating:.1f}-star rating from {business.total_reviews} "
            "customers reflects our commitment to excellence."
        )
    if business.lacks_website:
        parts.append(
            "We focus on building lasting relationships with our clients to deliver "
            "the best possible experience."
        )
    else:
        parts.append(
            "We combine traditional values with modern innovation to deliver the best "
            "possible experience."
        )
    return " ".join(parts)


def service_descriptions(business: BusinessRecord) -> Dict[str, str]:
    category = _category_label(business)
    return {
        "primary": f"Our primary {category} services",
        "secondary": "Additional services we offer",
        "specialty": f"What makes us unique in {display_location(business)}",
    }


def blog_topics(business: BusinessRecord) -> List[str]:
    category = _category_label(business)
    topics = [
        f"Top 5 trends in {business.classification} this year",
        f"Why choose local {category} services",
        f"How to get the best results from {category}",
    ]
    if classify_category(business.classification) == BusinessCategory.GENERIC:
        return topics
    featured = get_profile(business.classification).services[0].title
    topics.append(f"Spotlight: {featured} at {business.name}")
    return topics


def social_media_posts(business: BusinessRecord) -> List[str]:
    posts = [
        f"🌟 Another satisfied customer at {business.name}! Thank you for choosing us.",
        f"📍 Located in {display_location(business)}, we're here to serve you!",
    ]
    if business.rating:
        posts.append(f"💯 {business.rating:.1f}-star service is our standard, not our exception.")
    else:
        posts.append("💯 Exceptional service is our standard, not our exception.")
    return posts


def faq_section(business: BusinessRecord) -> Dict[str, str]:
    """Question to answer mapping. The phone line is included only when known."""
    contact = f"Call us at {business.phone} or use our contact form." if business.phone else "Use our contact form."
    return {
        "What makes you different?": f"{business.name} combines quality service with personalized attention.",
        "Where are you located?": f"We're conveniently located in {display_location(business)}.",
        "How can I contact you?": contact,
    }


def build_content_package(business: BusinessRecord) -> Dict[str, Any]:
    """Build the full content kit for a business.

    Returns:
        Dict with business_description, about_text, service_descriptions,
        blog_topics, social_media_posts and faq_section.
    """
    return {
        "business_description": business_description(business),
        "about_text": about_text(business),
        "service_descriptions": service_descriptions(business),
        "blog_topics": blog_topics(business),
        "social_media_posts": social_media_posts(business),
        "faq_section": faq_section(business),
    }


def _card(title: str, inner: str) -> str:
    return f"""
        <section class="bg-white rounded-lg shadow-sm p-6 mb-6">
            <h2 class="text-xl font-semibold mb-3">{esc(title)}</h2>
            {inner}
        </section>"""


def render_content_sections(package: Dict[str, Any]) -> str:
    """Render whichever content kit sections are present in ``package``."""
    out = []
    if package.get("business_description"):
        out.append(_card("Business Description", f'<p class="text-gray-700">{esc(package["business_description"])}</p>'))
    if package.get("about_text"):
        out.append(_card("About Us", f'<p class="text-gray-700">{esc(package["about_text"])}</p>'))
    if package.get("service_descriptions"):
        rows = "".join(
            f'<li><span class="font-medium capitalize">{esc(k)}:</span> {esc(v)}</li>'
            for k, v in package["service_descriptions"].items()
        )
        out.append(_card("Service Descriptions", f'<ul class="space-y-2 text-gray-700">{rows}</ul>'))
    if package.get("blog_topics"):
        rows = "".join(f'<li class="text-gray-700">{esc(t)}</li>' for t in package["blog_topics"])
        out.append(_card("Blog Topic Ideas", f'<ul class="list-disc list-inside space-y-2">{rows}</ul>'))
    if package.get("social_media_posts"):
        rows = "".join(
            f'<div class="p-4 bg-blue-50 rounded-lg border border-blue-200"><p class="text-gray-700">{esc(p)}</p></div>'
            for p in package["social_media_posts"]
        )
        out.append(_card("Social Media Posts", f'<div class="space-y-3">{rows}</div>'))
    if package.get("faq_section"):
        rows = "".join(
            f'<div><h3 class="font-medium text-gray-900 mb-1">Q: {esc(q)}</h3>'
            f'<p class="text-gray-700 pl-4">A: {esc(a)}</p></div>'
            for q, a in package["faq_section"].items()
        )
        out.append(_card("FAQ Section", f'<div class="space-y-4">{rows}</div>'))
    return "".join(out)


def render_content_kit(business: BusinessRecord, package: Dict[str, Any]) -> str:
    """Render a content kit as a standalone HTML document."""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Content Package - {esc(business.name)}</title>
    <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="bg-gray-50">
    <div class="container mx-auto px-4 py-8 max-w-4xl">
        <header class="mb-8">
            <h1 class="text-3xl font-bold mb-2">Content Package</h1>
            <p class="text-gray-600">AI-Generated Content for {esc(business.name)}</p>
        </header>
        {render_content_sections(package)}
    </div>
</body>
</html>"""
