"""Shared HTML fragments for category templates.

All interpolated business values pass through ``esc``; fragments are plain
strings so builders can concatenate them.
"""

import html
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .categories import BrandPalette, ServiceItem

TAILWIND_CDN = "https://cdn.tailwindcss.com"
GOOGLE_FONTS_URL = "https://fonts.googleapis.com/css2?family={family}:wght@400;600;700&display=swap"
DEFAULT_LOCATION = "your area"


def esc(value: object) -> str:
    """HTML-escape any value, treating None as empty."""
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def document(
    title: str,
    body: str,
    palette: BrandPalette,
    font_family: str,
    description: str = "",
    extra_css: str = "",
) -> str:
    """Wrap body markup in a complete HTML5 document."""
    font_param = font_family.replace(" ", "+")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{esc(title)}</title>
    <meta name="description" content="{esc(description)}">
    <script src="{TAILWIND_CDN}"></script>
    <link rel="preconnect" href="https://fonts.googleapis.com">
    <link href="{GOOGLE_FONTS_URL.format(family=font_param)}" rel="stylesheet">
    <style>
        :root {{ --brand-primary: {palette.primary}; --brand-secondary: {palette.secondary}; }}
        body {{ font-family: '{esc(font_family)}', system-ui, sans-serif; }}
        .text-brand {{ color: var(--brand-primary); }}
        .bg-brand {{ background-color: var(--brand-primary); }}
        .border-brand {{ border-color: var(--brand-primary); }}
        .brand-gradient {{ background: linear-gradient(135deg, var(--brand-primary) 0%, var(--brand-secondary) 100%); }}
        {extra_css}
    </style>
</head>
<body class="bg-white text-gray-900">
{body}
</body>
</html>"""


def nav(name: str, links: Sequence[Tuple[str, str]], cta_label: str = "", cta_href: str = "#contact") -> str:
    """Fixed top navigation bar."""
    items = "".join(
        f'<a href="{esc(href)}" class="hover:text-brand transition">{esc(label)}</a>'
        for label, href in links
    )
    cta = ""
    if cta_label:
        cta = (
            f'<a href="{esc(cta_href)}" class="bg-brand text-white px-5 py-2 rounded-full '
            f'font-semibold hover:opacity-90 transition">{esc(cta_label)}</a>'
        )
    return f"""    <nav class="fixed w-full bg-white/95 backdrop-blur shadow-sm z-50">
        <div class="container mx-auto px-4 py-4 flex justify-between items-center">
            <h1 class="text-2xl font-bold text-brand">{esc(name)}</h1>
            <div class="hidden md:flex items-center gap-8">{items}{cta}</div>
        </div>
    </nav>"""


def rating_line(rating: float, reviews: int) -> str:
    """Star rating summary, empty when the business has no rating."""
    if not rating:
        return ""
    review_text = f" • {reviews} Reviews" if reviews else ""
    return f'<p class="text-yellow-300 mt-6">★ {rating:.1f} Stars{esc(review_text)}</p>'


def hero(
    heading: str,
    subheading: str,
    cta_label: str,
    cta_href: str = "#contact",
    image: str = "",
    extra: str = "",
) -> str:
    """Full-height hero with optional background image."""
    background = (
        f'style="background-image: linear-gradient(rgba(0,0,0,0.55), rgba(0,0,0,0.55)), '
        f"url('{esc(image)}'); background-size: cover; background-position: center;\""
        if image else ""
    )
    bg_class = "" if image else " brand-gradient"
    return f"""    <section id="home" class="min-h-screen flex items-center pt-20 text-white{bg_class}" {background}>
        <div class="container mx-auto px-4 text-center">
            <h1 class="text-5xl md:text-7xl font-bold mb-6">{esc(heading)}</h1>
            <p class="text-xl md:text-2xl mb-8 opacity-90">{esc(subheading)}</p>
            <a href="{esc(cta_href)}" class="inline-block bg-white text-gray-900 px-8 py-4 rounded-full font-semibold hover:shadow-xl transition">{esc(cta_label)}</a>
            {extra}
        </div>
    </section>"""


def _card(item: ServiceItem, show_link: bool) -> str:
    image = (
        f'<img src="{esc(item.image)}" alt="{esc(item.title)}" class="w-full h-48 object-cover rounded-t-xl">'
        if item.image else ""
    )
    description = f'<p class="text-gray-600 mb-4">{esc(item.description)}</p>' if item.description else ""
    price = f'<span class="text-2xl font-bold text-brand">{esc(item.price)}</span>' if item.price else ""
    link = '<a href="#contact" class="text-brand font-medium text-sm">Learn More →</a>' if show_link else ""
    return f"""
                <div class="bg-white rounded-xl shadow-lg hover:shadow-xl transition overflow-hidden">
                    {image}
                    <div class="p-6">
                        <h3 class="font-semibold text-xl mb-2">{esc(item.title)}</h3>
                        {description}
                        <div class="flex justify-between items-center">{price}{link}</div>
                    </div>
                </div>"""


def card_grid(
    section_id: str,
    title: str,
    subtitle: str,
    items: Iterable[ServiceItem],
    columns: int = 3,
    background: str = "bg-gray-50",
    show_link: bool = False,
) -> str:
    """Section with a heading and a responsive grid of cards."""
    cards = "".join(_card(item, show_link) for item in items)
    subtitle_html = f'<p class="text-center text-gray-600 mb-12">{esc(subtitle)}</p>' if subtitle else ""
    return f"""    <section id="{esc(section_id)}" class="py-20 {background}">
        <div class="container mx-auto px-4">
            <h2 class="text-4xl md:text-5xl font-bold text-center mb-4">{esc(title)}</h2>
            {subtitle_html}
            <div class="grid md:grid-cols-{columns} gap-8">{cards}
            </div>
        </div>
    </section>"""


def cta_band(title: str, text: str, label: str, href: str = "#contact") -> str:
    """Colored call-to-action band."""
    return f"""    <section class="py-20 brand-gradient text-white">
        <div class="container mx-auto px-4 text-center">
            <h2 class="text-4xl md:text-5xl font-bold mb-6">{esc(title)}</h2>
            <p class="text-xl mb-8 opacity-90">{esc(text)}</p>
            <a href="{esc(href)}" class="inline-block bg-white text-gray-900 px-8 py-4 rounded-full font-semibold">{esc(label)}</a>
        </div>
    </section>"""


def hours_list(hours: Dict[str, str]) -> str:
    """Definition-style opening hours list, empty when there are no hours."""
    if not hours:
        return ""
    rows = "".join(
        f'<li class="flex justify-between gap-6"><span>{esc(day)}</span><span>{esc(time)}</span></li>'
        for day, time in hours.items()
    )
    return f"""
                    <h4 class="text-2xl font-semibold mt-8 mb-4">Hours</h4>
                    <ul class="space-y-2">{rows}</ul>"""


def contact_section(
    title: str,
    phone: str = "",
    email: str = "",
    address: str = "",
    hours: Optional[Dict[str, str]] = None,
    form_title: str = "Send Us a Message",
    form_fields: Optional[List[Tuple[str, str]]] = None,
    submit_label: str = "Send Message",
) -> str:
    """Contact details plus a contact form.

    Each contact line is emitted only when its value is present.
    """
    lines = []
    if phone:
        lines.append(f'<p class="flex items-center gap-3"><span>📞</span><a href="tel:{esc(phone)}">{esc(phone)}</a></p>')
    if email:
        lines.append(f'<p class="flex items-center gap-3"><span>✉️</span><a href="mailto:{esc(email)}">{esc(email)}</a></p>')
    if address:
        lines.append(f'<p class="flex items-center gap-3"><span>📍</span>{esc(address)}</p>')
    if not lines:
        lines.append('<p>Reach out using the form and we will get back to you shortly.</p>')

    fields = form_fields or [("text", "Your Name"), ("email", "Email Address")]
    inputs = "".join(
        f'<input type="{esc(kind)}" placeholder="{esc(label)}" class="w-full px-4 py-3 bg-white/10 border border-white/20 rounded-lg text-white placeholder-white/60">'
        for kind, label in fields
    )
    return f"""    <section id="contact" class="py-20 bg-gray-900 text-white">
        <div class="container mx-auto px-4">
            <div class="grid md:grid-cols-2 gap-12">
                <div>
                    <h3 class="text-4xl font-bold mb-6">{esc(title)}</h3>
                    <div class="space-y-4">{"".join(lines)}</div>{hours_list(hours or {})}
                </div>
                <div>
                    <h3 class="text-4xl font-bold mb-6">{esc(form_title)}</h3>
                    <form class="space-y-4">
                        {inputs}
                        <textarea rows="4" placeholder="Message" class="w-full px-4 py-3 bg-white/10 border border-white/20 rounded-lg text-white placeholder-white/60"></textarea>
                        <button type="submit" class="w-full bg-brand text-white py-3 rounded-lg font-semibold hover:opacity-90 transition">{esc(submit_label)}</button>
                    </form>
                </div>
            </div>
        </div>
    </section>"""


def footer(name: str, tagline: str = "") -> str:
    tagline_html = f'<p class="text-gray-400 mt-2">{esc(tagline)}</p>' if tagline else ""
    return f"""    <footer class="bg-black text-white py-8">
        <div class="container mx-auto px-4 text-center">
            <p>&copy; {esc(name)}. All rights reserved.</p>
            {tagline_html}
        </div>
    </footer>"""


def display_location(business) -> str:
    """Human-readable location of a business, falling back to DEFAULT_LOCATION."""
    if business.location:
        return business.location
    city, state = business.city_state()
    if city:
        return f"{city}, {state}" if state else city
    return DEFAULT_LOCATION
