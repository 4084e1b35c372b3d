"""
Heuristic tables for trigger detection, page probes, step classification,
progression, and categorization.

Everything here is data. Extend a list to teach the explorer a new widget
vendor; the evaluators in detectors / step_classifier / extractors do not
change.
"""

from __future__ import annotations

import re

# --- Trigger detection ---

BOOKING_KEYWORDS = (
    # Direct booking terms
    "book", "booking", "book now", "book online",
    "reserve", "reservation", "make a reservation",
    # Ticket/purchase terms
    "buy tickets", "buy now", "purchase", "get tickets",
    "tickets", "ticket", "purchase tickets", "purchase ticket",
    "check availability", "view availability",
    # Event terms
    "register", "sign up", "rsvp", "attend",
    "event tickets", "event registration", "more info & ticket",
    # Enquiry terms
    "enquire", "enquiry", "enquire now", "make an enquiry",
    "request", "request a quote", "get a quote",
    # Group/party terms
    "party booking", "book a party", "party packages",
    "group booking", "book for groups", "group enquiry",
    "function", "functions", "book a function",
    "corporate", "corporate booking", "corporate events",
    "private hire", "exclusive hire",
    # Action terms
    "schedule", "schedule now", "book appointment",
    "add to cart", "select", "choose",
)

DATA_ATTRIBUTE_PATTERNS = tuple(
    re.compile(p, re.I)
    for p in (r"book", r"reserv", r"checkout", r"cart", r"ticket", r"enquir", r"modal.*book", r"open.*book", r"toggle.*book")
)

TRIGGER_URL_PATTERNS = tuple(
    re.compile(p, re.I)
    for p in (
        r"/book", r"/booking", r"/reserv", r"/checkout", r"/tickets?", r"/enquir",
        r"/party", r"/groups?", r"/events?", r"/functions?", r"/package",
        r"/experiences?", r"/activities?", r"/schedule", r"/availability",
        r"/register", r"/rsvp",
        # Third-party ticketing
        r"eventbrite", r"ticketmaster", r"universe\.com", r"eventcreate", r"splash",
    )
)

TRIGGER_SELECTORS = (
    "a", "button", '[role="button"]',
    'input[type="submit"]', 'input[type="button"]',
    "[data-booking]", "[data-book]", "[data-reserve]",
    ".book-btn", ".booking-btn", ".reserve-btn",
    ".cta", ".call-to-action",
)

TRIGGER_WEIGHTS = {
    "exact_keyword": 0.4,
    "partial_keyword": 0.2,
    "data_attribute": 0.2,
    "url_pattern": 0.15,
    "suitable_tag": 0.05,
    "widget_container": 0.1,
    "prominent_placement": 0.05,
}
TRIGGER_CONFIDENCE_FLOOR = 0.3
MAX_TRIGGER_TEXT_LENGTH = 100
CLICKABLE_TAGS = ("a", "button", "input")
CLICKABLE_ROLES = ("button", "link")
WIDGET_CONTAINER_SELECTOR = (
    ".booking-widget, .reservation-widget, .booking-form, #booking-form, "
    "[data-booking-widget], [data-booking-form], form[action*='book'], form[action*='reserv']"
)
# Classes that describe state, not identity; left out of generated selectors.
STATE_CLASS_PATTERN = re.compile(r"^(active|selected|hover|focus|disabled)")

# --- Page probes ---

WIDGET_INDICATOR_SELECTORS = (
    # Calendar/date pickers
    ".calendar", "[data-calendar]", ".date-picker", ".datepicker",
    'input[type="date"]', '[role="calendar"]',
    # Time selection
    ".time-picker", ".timepicker", ".time-slots", ".time-slot",
    # Group size
    ".party-size", ".group-size", ".guest-count", ".people-selector",
    'input[name*="guest"]', 'input[name*="people"]', 'select[name*="size"]',
    # Booking forms
    'form[action*="book"]', 'form[action*="reserv"]',
    "#booking-form", ".booking-form", "[data-booking-form]",
    # Package/product selection
    '[class*="package"]', '[class*="Package"]', "[data-package]", "[data-product]",
    # Price displays
    '[class*="price"]', '[class*="Price"]',
    # Tab-based booking interfaces
    '[role="tablist"]', '[role="tab"]',
    # Common booking widget containers
    ".booking-widget", ".reservation-widget", '[class*="booking"]', '[class*="reservation"]',
)
BOOKING_PAGE_PHRASES = tuple(
    re.compile(p, re.I)
    for p in (
        r"select.*date", r"choose.*date", r"pick.*date", r"select.*time",
        r"choose.*package", r"book.*now", r"reservation", r"party.*package",
        r"event.*package", r"per\s*person", r"guests?.*included",
    )
)

# (pattern over visible body text, label)
LARGE_GROUP_TEXT_INDICATORS = (
    (re.compile(r"\b16\+"), "16+"),
    (re.compile(r"large group", re.I), "Large group"),
    (re.compile(r"corporate", re.I), "Corporate"),
    (re.compile(r"private hire", re.I), "Private hire"),
    (re.compile(r"exclusive", re.I), "Exclusive"),
    (re.compile(r"\bfunctions?\b", re.I), "Function"),
    (re.compile(r"20\+ (people|guests|players)", re.I), "20+"),
)
# (selector, text pattern, label)
LARGE_GROUP_ELEMENT_INDICATORS = (
    ("option", re.compile(r"16\+"), "16+ dropdown"),
    ("button", re.compile(r"16\+"), "16+ button"),
)

PAYMENT_SELECTORS = (
    'input[name*="card"]',
    'input[name*="credit"]',
    'input[autocomplete="cc-number"]',
    "[data-stripe]",
    "[data-braintree]",
    'iframe[src*="stripe"]',
    'iframe[src*="paypal"]',
    'iframe[src*="checkout"]',
)
PAYMENT_TEXT = re.compile(r"payment details|card number|pay now|complete payment|secure checkout", re.I)
PAYMENT_URL = re.compile(r"/(payment|checkout|pay|stripe|paypal)\b", re.I)

CONFIRMATION_TEXT = re.compile(
    r"thank you|booking confirmed|reservation confirmed|order confirmed|confirmation number|booking reference",
    re.I,
)
CONFIRMATION_URL = re.compile(r"/(confirm|confirmation|thanks|thank-you|success|complete)\b", re.I)

# --- Step classification ---

ENQUIRY_TEXT = re.compile(r"enquir|request.*quote|get in touch", re.I)
ENQUIRY_SELECTORS = ('form[action*="enquir"]', 'form[action*="inquir"]', ".enquiry-form", "[data-enquiry]")
CALENDAR_SELECTORS = (
    ".calendar", "[data-calendar]", ".datepicker", ".date-picker",
    'input[type="date"]', ".flatpickr", ".react-datepicker",
)
TIME_SLOT_SELECTORS = (".time-slot", ".time-picker", ".timepicker", "[data-time]", ".slot", 'select[name*="time"]')
GROUP_SIZE_SELECTORS = (
    ".party-size", ".group-size", ".guest-count", "[data-guests]", ".stepper",
    'input[name*="guest"]', 'input[name*="people"]', 'select[name*="guest"]', 'select[name*="people"]',
)
ADDON_SELECTORS = (".add-ons", ".addons", ".extras", ".upgrades", "[data-addon]", ".upsell")
DETAILS_FORM_SELECTORS = ('input[name*="name"]', 'input[name*="email"]', 'input[type="email"]', 'input[type="tel"]')
REVIEW_SELECTORS = (".summary", ".review", ".booking-summary", ".order-summary")
REVIEW_TEXT = re.compile(r"confirm.*booking|review (your )?(booking|order)|booking summary", re.I)
PRODUCT_SELECTORS = (".product", ".package", ".experience", ".activity", "[data-product]")

STEP_DESCRIPTIONS = {
    "group_size_selection": "Select party size / group size",
    "date_selection": "Select date",
    "time_selection": "Select time slot",
    "datetime_selection": "Select date and time",
    "product_selection": "Select product / package",
    "addon_selection": "Select extras / add-ons",
    "details_form": "Enter booking details",
    "enquiry_form": "Large group enquiry form",
    "review_summary": "Review booking summary",
    "payment": "Payment page",
    "confirmation": "Booking confirmation",
    "unknown": "Unknown step",
}
STEP_HEADING_SELECTORS = ("h1", "h2", ".page-title", ".step-title")

# --- Progression ---

DATE_CELL_SELECTORS = (
    ".calendar .available",
    ".calendar .selectable:not(.disabled)",
    ".datepicker td:not(.disabled):not(.old)",
    ".react-datepicker__day:not(.react-datepicker__day--disabled)",
    ".flatpickr-day:not(.flatpickr-disabled):not(.prevMonthDay)",
    "[data-date]:not([disabled])",
    ".date-slot:not(.unavailable)",
)
TIME_CELL_SELECTORS = (
    ".time-slot:not(.unavailable):not(.disabled)",
    ".slot:not(.booked):not(.unavailable)",
    "[data-time]:not([disabled])",
    ".time-option:not(.disabled)",
    ".available-time",
)
PRODUCT_BUTTON_SELECTORS = (
    ".product:not(.unavailable) button",
    ".package:not(.unavailable) button",
    ".experience .book-btn",
    "[data-product] button",
    ".product-card .cta",
)

# Next-button tiers, tried in order: (selectors, required text pattern or None)
NEXT_BUTTON_TIERS = (
    (("button", "a[role='button']", "[role='button']"), re.compile(r"^\s*(continue|next|proceed)\b", re.I)),
    (('button[type="submit"]', 'input[type="submit"]'), None),
    ((".next-btn", ".continue-btn", '[data-action="next"]', ".btn-primary", "button.primary", ".cta-button"), None),
    (("button",), re.compile(r"^\s*(book|select|choose|confirm)\b", re.I)),
)
# Never clicked: these submit a payment.
RISKY_PAYMENT_CTA = re.compile(
    r"\b(pay|pay now|place order|complete purchase|submit payment|confirm and pay|confirm & pay|purchase|"
    r"confirm booking|complete booking)\b",
    re.I,
)

GROUP_SIZE_SELECT_SELECTORS = (
    'select[name*="guest"]', 'select[name*="people"]', 'select[name*="party"]',
    'select[name*="size"]', 'select[name*="group"]', 'select[name*="player"]',
    ".guest-dropdown select", ".party-size select",
)
GROUP_SIZE_NUMBER_SELECTORS = (
    'input[type="number"][name*="guest"]',
    'input[type="number"][name*="people"]',
    'input[type="number"][name*="party"]',
    'input[type="number"][name*="player"]',
    'input[type="number"][name*="adult"]',
    'input[type="number"][name*="child"]',
    'input[type="number"][name*="group"]',
    'input[type="number"][name*="size"]',
)
STEPPER_SELECTORS = (
    ".stepper", ".counter", ".qty-selector", ".quantity-selector",
    "[data-stepper]", "[data-counter]", "[data-quantity]",
    ".guest-selector", ".people-selector", ".party-size-selector",
)
STEPPER_PLUS_SELECTORS = ('[data-action="increase"]', 'button[aria-label*="increase" i]', "button.plus", "button")
STEPPER_MINUS_SELECTORS = ('[data-action="decrease"]', 'button[aria-label*="decrease" i]', "button.minus", "button")
STEPPER_VALUE_SELECTORS = ("input", ".value", ".count")
STEPPER_MAX_CLICKS = 50
GROUP_SIZE_RADIO_SELECTORS = (
    'input[type="radio"][name*="size"]',
    'input[type="radio"][name*="guest"]',
    'input[type="radio"][name*="party"]',
    '.size-option input[type="radio"]',
    '.group-size-option input[type="radio"]',
)
GROUP_SIZE_OPTION_SELECTORS = ("button", '[role="option"]', "li", "label")

# --- Flow filtering and naming ---

SOCIAL_TEXT_PATTERNS = tuple(
    re.compile(p, re.I)
    for p in (
        r"^facebook", r"^twitter", r"^instagram", r"^linkedin", r"^youtube", r"^pinterest",
        r"^tiktok", r"^snapchat", r"^whatsapp", r"^telegram", r"^share", r"^follow",
        r"^like\s*us", r"social.*icon", r"^fa-", r"^icon-",
        r"^(log ?in|sign ?in|log ?out|my account)$",
    )
)
SOCIAL_SELECTOR_PATTERN = re.compile(r"social|facebook|twitter|instagram", re.I)
SOCIAL_DOMAINS = re.compile(
    r"(facebook|twitter|x|instagram|linkedin|youtube|pinterest|tiktok|snapchat|whatsapp|t)\.(com|me)$",
    re.I,
)

BOOKING_NAME_SELECTORS = ("h1", ".page-title", ".product-title", ".booking-title", ".experience-name", "[data-product-name]")
BOOKING_DESCRIPTION_SELECTORS = (".description", ".product-description", ".booking-description")

HIGH_REVENUE_TEXT = re.compile(r"corporate|private hire|exclusive hire|\bvip\b|premium|large group|\bfunctions?\b", re.I)

MODAL_SELECTORS = (".modal", '[role="dialog"]', ".popup")
MODAL_CLOSE_SELECTORS = (".modal .close", '[role="dialog"] button[aria-label*="close" i]', ".modal-close")

# --- Categorization (first match wins) ---

ADD_ON_CATEGORY_TABLE = (
    (r"food|meal|platter|pizza|snack|catering|lunch|dinner|breakfast|wing|nacho|cake", "food_drink"),
    (r"drink|beverage|beer|wine|prosecco|champagne|soft drink|juice|pitcher|soda", "food_drink"),
    (r"decoration|balloon|banner|party bag|party pack|theme", "decorations"),
    (r"extra time|additional.*hour|extend|extension|longer", "extra_time"),
    (r"upgrade|premium|vip|deluxe|enhanced", "upgrade"),
    (r"sock|shoe|equipment|gear|rental|hire", "equipment"),
    (r"host|instructor|coach|guide|photographer|photo|service", "service"),
)

INCLUSION_CATEGORY_TABLE = (
    (r"bowl|\bvr\b|arcade|game|axe|throw|lane|play", "activity"),
    (r"pizza|food|platter|meal|snack|wing|nacho", "food"),
    (r"drink|pitcher|soda|beer|beverage", "drink"),
    (r"shoe|sock|equipment|rental", "equipment"),
    (r"ticket|token|prize|credit", "tickets"),
    (r"hour|minute|time|duration", "time"),
    (r"host|coordinator|attendant|server|private", "service"),
)
