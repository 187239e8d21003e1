"""Category website templates.

``assemble`` is the offline fallback for website generation: it turns any
valid BusinessRecord into a complete single-file HTML document without a
network call.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from ..errors import TemplateAssemblyError
from ..logging_utils import get_logger
from ..models import BusinessRecord
from . import layout
from .categories import (
    PALETTES,
    PROFILES,
    BrandPalette,
    BusinessCategory,
    CategoryProfile,
    ServiceItem,
    classify_category,
)
from .layout import esc

logger = get_logger(__name__)


@dataclass
class PageContext:
    """Resolved values for one page, with every optional field defaulted."""

    business: BusinessRecord
    category: BusinessCategory
    profile: CategoryProfile
    palette: BrandPalette
    name: str
    location: str
    description: str
    services: List[ServiceItem]
    hours: Dict[str, str]

    def fill(self, text: str) -> str:
        return text.format(
            name=self.name,
            location=self.location,
            category=self.business.classification.lower(),
        )

    @property
    def title(self) -> str:
        return f"{self.name} - {self.fill(self.profile.title_suffix)}"


def build_context(business: BusinessRecord, category: BusinessCategory) -> PageContext:
    """Resolve a business against its category profile."""
    profile = PROFILES[category]
    location = layout.display_location(business)
    ctx = PageContext(
        business=business,
        category=category,
        profile=profile,
        palette=PALETTES[category],
        name=business.name,
        location=location,
        description="",
        services=list(profile.services),
        hours=dict(business.hours or profile.default_hours),
    )
    ctx.description = business.description or ctx.fill(profile.description)
    if business.services:
        ctx.services = [ServiceItem(title=s) for s in business.services]
    return ctx


def _page(ctx: PageContext, body: List[str], extra_css: str = "") -> str:
    return layout.document(
        title=ctx.title,
        body="\n".join(part for part in body if part),
        palette=ctx.palette,
        font_family=ctx.profile.font_family,
        description=ctx.description,
        extra_css=extra_css,
    )


def _about(ctx: PageContext, heading: str = "About Us") -> str:
    return f"""    <section id="about" class="py-20">
        <div class="container mx-auto px-4 max-w-3xl text-center">
            <h2 class="text-4xl font-bold mb-6 text-brand">{esc(heading)}</h2>
            <p class="text-lg text-gray-700 leading-relaxed">{esc(ctx.description)}</p>
        </div>
    </section>"""


def _contact(ctx: PageContext, title: str = "Get In Touch", **kwargs) -> str:
    b = ctx.business
    return layout.contact_section(
        title,
        phone=b.phone,
        email=b.email,
        address=b.address or b.location,
        hours=ctx.hours,
        **kwargs,
    )


def _default_nav(ctx: PageContext, section_label: str) -> str:
    return layout.nav(
        ctx.name,
        [("Home", "#home"), (section_label, "#services"), ("About", "#about"), ("Contact", "#contact")],
        cta_label=ctx.profile.cta_label,
    )


def _hero(ctx: PageContext, extra: str = "") -> str:
    b = ctx.business
    return layout.hero(
        ctx.fill(ctx.profile.hero_heading),
        ctx.fill(ctx.profile.hero_subheading),
        ctx.profile.cta_label,
        image=ctx.profile.hero_image,
        extra=extra + layout.rating_line(b.rating, b.total_reviews),
    )


def _services(ctx: PageContext, columns: int = 3, **kwargs) -> str:
    return layout.card_grid(
        "services",
        ctx.profile.section_title,
        ctx.profile.section_subtitle,
        ctx.services,
        columns=columns,
        **kwargs,
    )


def _gallery(ctx: PageContext) -> str:
    if not ctx.business.photos:
        return ""
    tiles = "".join(
        f'<figure class="rounded-xl overflow-hidden shadow"><img src="{esc(p.url)}" '
        f'alt="{esc(p.caption or ctx.name)}" class="w-full h-64 object-cover">'
        + (f'<figcaption class="p-3 text-sm text-gray-600">{esc(p.caption)}</figcaption>' if p.caption else "")
        + "</figure>"
        for p in ctx.business.photos
    )
    return f"""    <section id="gallery" class="py-20">
        <div class="container mx-auto px-4">
            <h2 class="text-4xl font-bold text-center mb-12">Gallery</h2>
            <div class="grid md:grid-cols-3 gap-6">{tiles}</div>
        </div>
    </section>"""


def _stats(items: List[tuple]) -> str:
    cells = "".join(
        f'<div><p class="text-4xl font-bold text-brand">{esc(value)}</p>'
        f'<p class="text-gray-600 mt-2">{esc(label)}</p></div>'
        for value, label in items
    )
    return f"""    <section class="py-16 bg-white">
        <div class="container mx-auto px-4 grid grid-cols-2 md:grid-cols-4 gap-8 text-center">{cells}</div>
    </section>"""


def _reviews_label(business: BusinessRecord) -> str:
    return f"{business.rating:.1f}★" if business.rating else "5★"


# ---------------------------------------------------------------------------
# Category builders
# ---------------------------------------------------------------------------


def hotel_page(ctx: PageContext) -> str:
    amenities = ctx.business.amenities or [item.title for item in ctx.profile.services]
    amenity_items = [ServiceItem(title=a) for a in amenities]
    booking = f"""    <section id="booking" class="py-12 bg-white shadow-lg -mt-16 relative z-10 container mx-auto rounded-xl px-6">
        <form class="grid md:grid-cols-4 gap-4">
            <input type="date" aria-label="Check-in" class="border rounded-lg px-4 py-3">
            <input type="date" aria-label="Check-out" class="border rounded-lg px-4 py-3">
            <select aria-label="Guests" class="border rounded-lg px-4 py-3"><option>1 Guest</option><option>2 Guests</option><option>3+ Guests</option></select>
            <button type="button" class="bg-brand text-white rounded-lg font-semibold">{esc(ctx.profile.cta_label)}</button>
        </form>
    </section>"""
    return _page(ctx, [
        layout.nav(ctx.name, [("Home", "#home"), ("Amenities", "#services"), ("About", "#about"), ("Contact", "#contact")],
                   cta_label=ctx.profile.cta_label, cta_href="#booking"),
        _hero(ctx),
        booking,
        _about(ctx, "Experience Luxury"),
        layout.card_grid("services", ctx.profile.section_title, ctx.profile.section_subtitle, amenity_items, columns=4),
        _gallery(ctx),
        _contact(ctx, "Contact & Location", form_title="Request a Reservation",
                 form_fields=[("text", "Full Name"), ("email", "Email Address"), ("date", "Arrival Date")],
                 submit_label="Check Availability"),
        layout.footer(ctx.name, "Your home away from home"),
    ])


def restaurant_page(ctx: PageContext) -> str:
    return _page(ctx, [
        layout.nav(ctx.name, [("Home", "#home"), ("Menu", "#services"), ("About", "#about"), ("Contact", "#contact")],
                   cta_label=ctx.profile.cta_label),
        _hero(ctx),
        _about(ctx, "Our Story"),
        _services(ctx, background="bg-amber-50"),
        _gallery(ctx),
        layout.cta_band("Join Us Tonight", f"Reserve your table at {ctx.name} today.", ctx.profile.cta_label),
        _contact(ctx, "Visit Us", form_title="Make a Reservation",
                 form_fields=[("text", "Your Name"), ("tel", "Phone Number"), ("date", "Date")],
                 submit_label="Reserve Now"),
        layout.footer(ctx.name, "Where every meal is a celebration"),
    ])


def healthcare_page(ctx: PageContext) -> str:
    return _page(ctx, [
        _default_nav(ctx, "Services"),
        _hero(ctx),
        _stats([("24/7", "Patient Support"), ("15+", "Years of Care"), (_reviews_label(ctx.business), "Patient Rating"), ("100%", "Commitment")]),
        _services(ctx),
        _about(ctx, "Patient-Centered Care"),
        _contact(ctx, "Contact Our Office", form_title="Request an Appointment",
                 form_fields=[("text", "Patient Name"), ("tel", "Phone Number"), ("date", "Preferred Date")],
                 submit_label="Request Appointment"),
        layout.footer(ctx.name, "Your health, our priority"),
    ])


def law_page(ctx: PageContext) -> str:
    return _page(ctx, [
        _default_nav(ctx, "Practice Areas"),
        _hero(ctx),
        _services(ctx, show_link=True),
        _about(ctx, "Why Choose Our Firm"),
        _stats([("500+", "Cases Handled"), ("98%", "Client Satisfaction"), ("20+", "Years Experience"), ("Free", "Initial Consultation")]),
        layout.cta_band("Need Legal Help?", "Schedule a confidential consultation today.", ctx.profile.cta_label),
        _contact(ctx, "Contact Our Attorneys", form_title="Request a Consultation",
                 submit_label="Request Consultation"),
        layout.footer(ctx.name, "Attorney advertising. Prior results do not guarantee a similar outcome."),
    ])


def beauty_page(ctx: PageContext) -> str:
    return _page(ctx, [
        _default_nav(ctx, "Services"),
        _hero(ctx),
        _services(ctx, background="bg-pink-50"),
        _gallery(ctx),
        _about(ctx, "Our Philosophy"),
        _contact(ctx, "Book Your Visit", form_title="Book an Appointment",
                 form_fields=[("text", "Your Name"), ("tel", "Phone Number"), ("date", "Preferred Date")],
                 submit_label="Book Now"),
        layout.footer(ctx.name, "Relax. Refresh. Renew."),
    ], extra_css="h1, h2, h3 { letter-spacing: 0.05em; }")


def fitness_page(ctx: PageContext) -> str:
    return _page(ctx, [
        _default_nav(ctx, "Programs"),
        _hero(ctx),
        _services(ctx, background="bg-gray-900 text-white"),
        _stats([("500+", "Active Members"), ("30+", "Weekly Classes"), ("15", "Expert Trainers"), (_reviews_label(ctx.business), "Member Rating")]),
        layout.cta_band("Your First Week Is On Us", "No commitment. Just results.", ctx.profile.cta_label),
        _about(ctx, "More Than a Gym"),
        _contact(ctx, "Visit the Gym", form_title="Claim Your Free Trial", submit_label="Start Free Trial"),
        layout.footer(ctx.name, "Train harder. Live stronger."),
    ], extra_css="h1, h2 { text-transform: uppercase; }")


def auto_page(ctx: PageContext) -> str:
    return _page(ctx, [
        _default_nav(ctx, "Services"),
        _hero(ctx),
        _services(ctx, columns=4),
        _about(ctx, "Certified Technicians You Can Trust"),
        layout.cta_band("Car Trouble?", f"Bring it to {ctx.name}. Same-day service available.", ctx.profile.cta_label),
        _contact(ctx, "Schedule Service", form_title="Book a Service Appointment",
                 form_fields=[("text", "Your Name"), ("tel", "Phone Number"), ("text", "Vehicle Make & Model")],
                 submit_label="Schedule Service"),
        layout.footer(ctx.name, "Honest repairs. Fair prices."),
    ])


def real_estate_page(ctx: PageContext) -> str:
    search = """    <section class="py-10 bg-white">
        <div class="container mx-auto px-4">
            <form class="grid md:grid-cols-4 gap-4 shadow-lg rounded-xl p-6">
                <input type="text" placeholder="City or ZIP" class="border rounded-lg px-4 py-3">
                <select aria-label="Property type" class="border rounded-lg px-4 py-3"><option>House</option><option>Condo</option><option>Townhome</option></select>
                <select aria-label="Price range" class="border rounded-lg px-4 py-3"><option>Any Price</option><option>Under $500k</option><option>$500k - $1M</option><option>$1M+</option></select>
                <button type="button" class="bg-brand text-white rounded-lg font-semibold">Search</button>
            </form>
        </div>
    </section>"""
    return _page(ctx, [
        _default_nav(ctx, "Listings"),
        _hero(ctx),
        search,
        _services(ctx, show_link=True),
        _about(ctx, "Local Expertise"),
        _contact(ctx, "Talk to an Agent", form_title="Get a Free Home Valuation",
                 form_fields=[("text", "Your Name"), ("email", "Email Address"), ("text", "Property Address")],
                 submit_label="Get My Valuation"),
        layout.footer(ctx.name, "Your dream home awaits"),
    ])


def tech_page(ctx: PageContext) -> str:
    return _page(ctx, [
        _default_nav(ctx, "Solutions"),
        _hero(ctx),
        _services(ctx, show_link=True),
        _stats([("99.9%", "Uptime"), ("24/7", "Support"), ("50+", "Integrations"), ("ISO", "Security Standards")]),
        _about(ctx, "Built for What's Next"),
        layout.cta_band("Ready to Modernize?", "Let's talk about your next project.", ctx.profile.cta_label),
        _contact(ctx, "Let's Build Together", form_title="Start a Project",
                 form_fields=[("text", "Your Name"), ("email", "Work Email"), ("text", "Company")],
                 submit_label="Get Started"),
        layout.footer(ctx.name, "Innovation delivered"),
    ])


def generic_page(ctx: PageContext) -> str:
    """Creative fallback for businesses outside the known families."""
    return _page(ctx, [
        _default_nav(ctx, "Services"),
        _hero(ctx),
        _about(ctx),
        _services(ctx),
        _gallery(ctx),
        layout.cta_band("Let's Work Together", f"Discover what {ctx.name} can do for you.", ctx.profile.cta_label),
        _contact(ctx),
        layout.footer(ctx.name),
    ])


PageBuilder = Callable[[PageContext], str]

PAGE_BUILDERS: Dict[BusinessCategory, PageBuilder] = {
    BusinessCategory.HOTEL: hotel_page,
    BusinessCategory.RESTAURANT: restaurant_page,
    BusinessCategory.HEALTHCARE: healthcare_page,
    BusinessCategory.LAW: law_page,
    BusinessCategory.BEAUTY: beauty_page,
    BusinessCategory.FITNESS: fitness_page,
    BusinessCategory.AUTO: auto_page,
    BusinessCategory.REAL_ESTATE: real_estate_page,
    BusinessCategory.TECH: tech_page,
    BusinessCategory.GENERIC: generic_page,
}


def assemble(
    business: BusinessRecord,
    category: Optional[Union[str, BusinessCategory]] = None,
) -> str:
    """Render a complete HTML website for a business.

    Args:
        business: The business to render.
        category: Override for the business's own classification.

    Returns:
        A full HTML5 document.

    Raises:
        TemplateAssemblyError: If a template fails to render.
    """
    family = classify_category(category if category is not None else business.classification)
    builder = PAGE_BUILDERS[family]
    try:
        page = builder(build_context(business, family))
    except (KeyError, ValueError, TypeError, AttributeError, IndexError) as e:
        raise TemplateAssemblyError(
            f"Failed to assemble {family.value} template for {business.name}: {e}",
            context={"business_id": business.id, "category": family.value},
        ) from e

    logger.debug(f"Assembled {family.value} template for {business.name} ({len(page)} chars)")
    return page
