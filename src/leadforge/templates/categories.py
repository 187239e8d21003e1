"""Business category classification and per-category presentation data.

Every BusinessCategory member has an entry in PALETTES and PROFILES; the
template dispatch relies on that to stay exhaustive.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class BusinessCategory(str, Enum):
    """Template families a business can be rendered with."""

    HOTEL = "hotel"
    RESTAURANT = "restaurant"
    HEALTHCARE = "healthcare"
    LAW = "law"
    BEAUTY = "beauty"
    FITNESS = "fitness"
    AUTO = "auto"
    REAL_ESTATE = "real estate"
    TECH = "tech"
    GENERIC = "generic"


# Normalized category strings recognized for each template family
CATEGORY_ALIASES: Dict[BusinessCategory, List[str]] = {
    BusinessCategory.HOTEL: ["hotel", "lodging", "accommodation"],
    BusinessCategory.RESTAURANT: ["restaurant", "food", "cafe", "bakery"],
    BusinessCategory.HEALTHCARE: ["healthcare", "medical", "dental", "clinic"],
    BusinessCategory.LAW: ["law", "legal", "attorney"],
    BusinessCategory.BEAUTY: ["beauty", "salon", "spa"],
    BusinessCategory.FITNESS: ["fitness", "gym", "yoga"],
    BusinessCategory.AUTO: ["auto", "automotive", "mechanic"],
    BusinessCategory.REAL_ESTATE: ["real estate", "realty", "property"],
    BusinessCategory.TECH: ["technology", "it", "software"],
    BusinessCategory.GENERIC: [],
}

_ALIAS_LOOKUP: Dict[str, BusinessCategory] = {
    **{category.value: category for category in BusinessCategory},
    **{
        alias: category
        for category, aliases in CATEGORY_ALIASES.items()
        for alias in aliases
    },
}

_WHITESPACE = re.compile(r"\s+")


def normalize_category(raw: Optional[str]) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", (raw or "").strip().lower())


def classify_category(raw: Union[str, BusinessCategory, None]) -> BusinessCategory:
    """Map a free-form category string to its template family.

    Unknown or empty values map to GENERIC.

    Example:
        >>> classify_category("  Real   Estate ")
        <BusinessCategory.REAL_ESTATE: 'real estate'>
    """
    if isinstance(raw, BusinessCategory):
        return raw
    return _ALIAS_LOOKUP.get(normalize_category(raw), BusinessCategory.GENERIC)


@dataclass(frozen=True)
class BrandPalette:
    """Two-color brand palette (hex)."""

    primary: str
    secondary: str


PALETTES: Dict[BusinessCategory, BrandPalette] = {
    BusinessCategory.HOTEL: BrandPalette("#667eea", "#764ba2"),
    BusinessCategory.RESTAURANT: BrandPalette("#dc2626", "#f59e0b"),
    BusinessCategory.HEALTHCARE: BrandPalette("#059669", "#06b6d4"),
    BusinessCategory.LAW: BrandPalette("#1d4ed8", "#374151"),
    BusinessCategory.BEAUTY: BrandPalette("#c026d3", "#ec4899"),
    BusinessCategory.FITNESS: BrandPalette("#16a34a", "#84cc16"),
    BusinessCategory.AUTO: BrandPalette("#ea580c", "#1f2937"),
    BusinessCategory.REAL_ESTATE: BrandPalette("#0891b2", "#10b981"),
    BusinessCategory.TECH: BrandPalette("#3b82f6", "#9333ea"),
    BusinessCategory.GENERIC: BrandPalette("#4f46e5", "#6366f1"),
}


@dataclass(frozen=True)
class ServiceItem:
    """A card on a category page (service, dish, program, listing)."""

    title: str
    description: str = ""
    price: str = ""
    image: str = ""


@dataclass(frozen=True)
class CategoryProfile:
    """Default copy and styling for one template family.

    Description strings may use {name}, {location} and {category}.
    """

    title_suffix: str
    hero_heading: str
    hero_subheading: str
    description: str
    section_title: str
    section_subtitle: str
    services: List[ServiceItem]
    cta_label: str
    font_family: str
    hero_image: str
    default_hours: Dict[str, str] = field(default_factory=dict)


_WEEKDAY_HOURS = {
    "Monday - Friday": "9:00 AM - 6:00 PM",
    "Saturday": "10:00 AM - 4:00 PM",
    "Sunday": "Closed",
}

PROFILES: Dict[BusinessCategory, CategoryProfile] = {
    BusinessCategory.HOTEL: CategoryProfile(
        title_suffix="Luxury Accommodation in {location}",
        hero_heading="Welcome to {name}",
        hero_subheading="Your home away from home in {location}",
        description="Experience luxury and comfort at its finest",
        section_title="Hotel Amenities",
        section_subtitle="Everything you need for a perfect stay",
        services=[
            ServiceItem(a) for a in [
                "Free WiFi", "Swimming Pool", "Fitness Center", "Restaurant",
                "Room Service", "Spa", "Business Center", "Parking",
            ]
        ],
        cta_label="Book Your Stay",
        font_family="Cormorant Garamond",
        hero_image="https://images.unsplash.com/photo-1566073771259-6a8506099945?w=1600",
        default_hours={day: "24 Hours" for day in [
            "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
        ]},
    ),
    BusinessCategory.RESTAURANT: CategoryProfile(
        title_suffix="Delicious Food & Memorable Experiences",
        hero_heading="{name}",
        hero_subheading="Where every meal is a celebration",
        description=(
            "Experience exceptional dining at {name}. We serve delicious, fresh meals "
            "in a welcoming atmosphere that brings the community together."
        ),
        section_title="Our Signature Dishes",
        section_subtitle="Crafted with passion, served with love",
        services=[
            ServiceItem(
                "Chef's Special",
                "Our award-winning signature dish that brings flavors from around the world",
                "$24",
                "https://images.unsplash.com/photo-1567620905732-2d1ec7ab7445?w=400",
            ),
            ServiceItem(
                "Gourmet Delight",
                "Fresh ingredients combined in perfect harmony for an unforgettable taste",
                "$28",
                "https://images.unsplash.com/photo-1565299624946-b28f40a0ae38?w=400",
            ),
            ServiceItem(
                "Sweet Finale",
                "Indulgent desserts to perfectly end your dining experience",
                "$12",
                "https://images.unsplash.com/photo-1565958011703-44f9829ba187?w=400",
            ),
        ],
        cta_label="Reserve a Table",
        font_family="Playfair Display",
        hero_image="https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?w=1600",
        default_hours={
            "Monday - Thursday": "11:00 AM - 10:00 PM",
            "Friday - Saturday": "11:00 AM - 11:00 PM",
            "Sunday": "12:00 PM - 9:00 PM",
        },
    ),
    BusinessCategory.HEALTHCARE: CategoryProfile(
        title_suffix="Your Health, Our Priority",
        hero_heading="Your Health, Our Priority",
        hero_subheading="Compassionate care for you and your family in {location}",
        description=(
            "{name} provides comprehensive healthcare services with a focus on "
            "patient-centered care and medical excellence."
        ),
        section_title="Our Medical Services",
        section_subtitle="Comprehensive care under one roof",
        services=[
            ServiceItem("Primary Care", "Comprehensive health assessments and preventive care"),
            ServiceItem("Specialized Treatment", "Expert care for specific health conditions"),
            ServiceItem("Diagnostics", "State-of-the-art testing and imaging services"),
        ],
        cta_label="Book Appointment",
        font_family="Inter",
        hero_image="https://images.unsplash.com/photo-1519494026892-80bbd2d6fd0d?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
    BusinessCategory.LAW: CategoryProfile(
        title_suffix="Legal Excellence & Trust",
        hero_heading="Legal Excellence & Trust",
        hero_subheading="Experienced counsel serving {location}",
        description=(
            "Trust {name} for professional legal services. Our experienced team is "
            "dedicated to protecting your rights and achieving the best outcomes."
        ),
        section_title="Practice Areas",
        section_subtitle="Focused expertise where it matters most",
        services=[
            ServiceItem("Personal Injury", "Maximum compensation for accident victims"),
            ServiceItem("Business Law", "Protecting your business interests"),
            ServiceItem("Family Law", "Compassionate family legal services"),
        ],
        cta_label="Free Consultation",
        font_family="Cormorant Garamond",
        hero_image="https://images.unsplash.com/photo-1589829545856-d10d557cf95f?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
    BusinessCategory.BEAUTY: CategoryProfile(
        title_suffix="Beauty & Wellness",
        hero_heading="Discover Your Beauty",
        hero_subheading="Relax, refresh and renew in {location}",
        description=(
            "Discover your best self at {name}. Our professional stylists and "
            "beauticians provide personalized services in a relaxing environment."
        ),
        section_title="Our Services",
        section_subtitle="Pamper yourself with our signature treatments",
        services=[
            ServiceItem("Hair Styling", "Cuts, color and styling by experienced stylists"),
            ServiceItem("Spa & Wellness", "Massages and facials to help you unwind"),
            ServiceItem("Makeup Artistry", "Flawless looks for every occasion"),
        ],
        cta_label="Book Now",
        font_family="Italiana",
        hero_image="https://images.unsplash.com/photo-1560066984-138dadb4c035?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
    BusinessCategory.FITNESS: CategoryProfile(
        title_suffix="Transform Your Life",
        hero_heading="Transform Your Life",
        hero_subheading="Train harder, live stronger in {location}",
        description=(
            "{name} helps members of every level reach their goals with expert "
            "coaching and a motivating community."
        ),
        section_title="Training Programs",
        section_subtitle="Find the program that fits your goals",
        services=[
            ServiceItem("Strength Training", "Build power with guided lifting programs"),
            ServiceItem("Cardio Blast", "High-energy classes that torch calories"),
            ServiceItem("Yoga & Wellness", "Improve flexibility and find your balance"),
        ],
        cta_label="Start Free Trial",
        font_family="Bebas Neue",
        hero_image="https://images.unsplash.com/photo-1534438327276-14e5300c3a48?w=1600",
        default_hours={
            "Monday - Friday": "5:00 AM - 11:00 PM",
            "Saturday - Sunday": "7:00 AM - 9:00 PM",
        },
    ),
    BusinessCategory.AUTO: CategoryProfile(
        title_suffix="Expert Auto Service",
        hero_heading="Expert Auto Service",
        hero_subheading="Honest repairs and fast turnaround in {location}",
        description=(
            "{name} offers reliable automotive services with skilled technicians and "
            "quality parts to keep you on the road."
        ),
        section_title="Our Services",
        section_subtitle="Everything your vehicle needs",
        services=[
            ServiceItem("Oil Change", "Quick & affordable"),
            ServiceItem("Brake Service", "Safety first"),
            ServiceItem("Engine Repair", "Expert diagnostics"),
            ServiceItem("Full Service", "Complete care"),
        ],
        cta_label="Schedule Service",
        font_family="Russo One",
        hero_image="https://images.unsplash.com/photo-1486006920555-c77dcf18193c?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
    BusinessCategory.REAL_ESTATE: CategoryProfile(
        title_suffix="Your Dream Home Awaits",
        hero_heading="Your Dream Home Awaits",
        hero_subheading="Local expertise for buyers and sellers in {location}",
        description=(
            "{name} guides buyers and sellers through every step with local market "
            "knowledge and personal service."
        ),
        section_title="Featured Properties",
        section_subtitle="Hand-picked homes in your area",
        services=[
            ServiceItem(
                "Modern Family Home", "4 bed • 3 bath • 2,500 sqft", "$650,000",
                "https://images.unsplash.com/photo-1600596542815-ffad4c1539a9?w=600",
            ),
            ServiceItem(
                "Luxury Estate", "5 bed • 4 bath • 3,200 sqft", "$1,200,000",
                "https://images.unsplash.com/photo-1600585154340-be6161a56a0c?w=600",
            ),
            ServiceItem(
                "Cozy Starter Home", "3 bed • 2 bath • 1,800 sqft", "$425,000",
                "https://images.unsplash.com/photo-1570129477492-45c003edd2be?w=600",
            ),
        ],
        cta_label="View Listings",
        font_family="Playfair Display",
        hero_image="https://images.unsplash.com/photo-1600607687939-ce8a6c25118c?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
    BusinessCategory.TECH: CategoryProfile(
        title_suffix="Innovation Delivered",
        hero_heading="Innovation Delivered",
        hero_subheading="Technology that moves your business forward",
        description=(
            "{name} builds secure, scalable technology solutions that help "
            "organizations work smarter."
        ),
        section_title="Our Solutions",
        section_subtitle="Modern technology, delivered with care",
        services=[
            ServiceItem("Enterprise Security", "Advanced protection for your digital assets"),
            ServiceItem("Cloud Solutions", "Scalable infrastructure for modern business"),
            ServiceItem("AI Integration", "Intelligent automation that drives results"),
        ],
        cta_label="Get Started",
        font_family="Inter",
        hero_image="https://images.unsplash.com/photo-1518770660439-4636190af475?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
    BusinessCategory.GENERIC: CategoryProfile(
        title_suffix="Excellence Redefined",
        hero_heading="Excellence Redefined",
        hero_subheading="Proudly serving {location}",
        description=(
            "{name} is your trusted partner for all your {category} needs. We're "
            "committed to providing exceptional service and exceeding your expectations."
        ),
        section_title="What We Do",
        section_subtitle="Quality you can count on",
        services=[
            ServiceItem("Excellence", "Uncompromising quality in everything we deliver"),
            ServiceItem("Innovation", "Fresh ideas that keep you ahead"),
            ServiceItem("Partnership", "We succeed when you succeed"),
        ],
        cta_label="Contact Us",
        font_family="Archivo",
        hero_image="https://images.unsplash.com/photo-1497366216548-37526070297c?w=1600",
        default_hours=_WEEKDAY_HOURS,
    ),
}


def get_palette(category: Union[str, BusinessCategory, None]) -> BrandPalette:
    """Brand palette for a category string or enum member."""
    return PALETTES[classify_category(category)]


def get_profile(category: Union[str, BusinessCategory, None]) -> CategoryProfile:
    """Presentation profile for a category string or enum member."""
    return PROFILES[classify_category(category)]
