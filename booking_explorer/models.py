"""
Data model for crawl results, booking triggers, explored flows, and package discoveries.

Plain dataclasses; the explorer hands these to report writers as in-memory
values. `to_dict` gives a JSON-ready view.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Literal, Optional, Union

TriggerType = Literal["button", "link", "form", "widget", "unknown"]

StepType = Literal[
    "group_size_selection",
    "date_selection",
    "time_selection",
    "datetime_selection",
    "product_selection",
    "addon_selection",
    "details_form",
    "enquiry_form",
    "review_summary",
    "payment",
    "confirmation",
    "unknown",
]

FlowType = Literal["standard", "high_revenue", "enquiry", "unknown"]
GroupSizeMode = Literal["min", "max", "default"]

AddOnCategory = Literal[
    "food_drink", "decorations", "extra_time", "upgrade", "equipment", "service", "other"
]
InclusionCategory = Literal[
    "activity", "food", "drink", "equipment", "tickets", "time", "service", "other"
]
FormFieldType = Literal[
    "text",
    "email",
    "phone",
    "number",
    "textarea",
    "select",
    "checkbox",
    "radio",
    "date",
    "time",
    "hidden",
    "unknown",
]

# Group sizes are ints, or labels like "16+" / "Private hire".
GroupSizeValue = Union[int, str]


def to_dict(obj: Any) -> Any:
    """Recursively convert dataclasses (and lists of them) to plain dicts."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, list):
        return [to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {k: to_dict(v) for k, v in obj.items()}
    return obj


# --- Crawl ---


@dataclass
class CrawlQueueItem:
    """Pending page visit. Lower priority is visited sooner."""

    url: str
    depth: int
    source_url: Optional[str]
    priority: int


@dataclass
class BookingTrigger:
    """Clickable element suspected of starting a booking flow."""

    id: str
    text: str
    selector: str
    tag_name: str
    source_url: str
    href: Optional[str]
    confidence: float
    data_attributes: dict[str, str] = field(default_factory=dict)
    trigger_type: TriggerType = "unknown"


@dataclass(frozen=True)
class CrawlResult:
    """One visited URL. Never modified after the crawler produces it."""

    url: str
    title: str
    internal_links: tuple[str, ...]
    booking_triggers: tuple[BookingTrigger, ...]
    visited_at: str
    depth: int
    errors: tuple[str, ...] = ()


# --- Step extraction ---


@dataclass
class ProductOption:
    name: str
    description: Optional[str] = None
    price: Optional[str] = None
    selected: bool = False


@dataclass
class PricingInfo:
    base_price: Optional[str] = None
    price_per_person: Optional[str] = None
    total: Optional[str] = None
    currency: str = "£"


@dataclass
class StepOptions:
    dates: list[str] = field(default_factory=list)
    times: list[str] = field(default_factory=list)
    products: list[ProductOption] = field(default_factory=list)
    group_sizes: list[GroupSizeValue] = field(default_factory=list)
    pricing: Optional[PricingInfo] = None

    def is_empty(self) -> bool:
        return not (self.dates or self.times or self.products or self.group_sizes or self.pricing)


@dataclass
class AddOn:
    name: str
    description: Optional[str] = None
    price: Optional[str] = None
    optional: bool = True
    pre_selected: bool = False
    category: AddOnCategory = "other"
    selector: Optional[str] = None


@dataclass
class FormField:
    name: str
    type: FormFieldType = "text"
    required: bool = False
    placeholder: Optional[str] = None
    options: list[str] = field(default_factory=list)
    selector: str = ""


@dataclass
class GroupSizeCategory:
    """Per-category guest counts, e.g. "Adults" 1-10."""

    name: str
    min: Optional[int] = None
    max: Optional[GroupSizeValue] = None
    default: Optional[int] = None


@dataclass
class GroupSizeConfig:
    minimum: Optional[int] = None
    maximum: Optional[GroupSizeValue] = None
    has_separate_paths: bool = False
    # Group size at which the widget routes to a different path (e.g. 16).
    divergence_point: Optional[int] = None
    available_options: list[GroupSizeValue] = field(default_factory=list)
    categories: list[GroupSizeCategory] = field(default_factory=list)


# --- Flows ---


@dataclass
class FlowStep:
    step_order: int
    url: str
    description: str
    step_type: StepType
    available_options: Optional[StepOptions] = None
    add_ons: list[AddOn] = field(default_factory=list)
    form_fields: list[FormField] = field(default_factory=list)
    screenshot_path: Optional[str] = None
    errors: list[str] = field(default_factory=list)


@dataclass
class FlowVariation:
    """
    One traversal of a booking flow for one group-size choice.

    `steps` is append-only while the state machine runs; `completed` and
    `termination_reason` are set once, when it halts.
    """

    group_size_mode: GroupSizeMode
    group_size: Optional[GroupSizeValue] = None
    flow_type: FlowType = "unknown"
    steps: list[FlowStep] = field(default_factory=list)
    completed: bool = False
    termination_reason: Optional[str] = None
    exploration_time_ms: int = 0
    entry_url: Optional[str] = None
    errors: list[str] = field(default_factory=list)

    def add_step(self, step: FlowStep) -> FlowStep:
        expected = len(self.steps) + 1
        if step.step_order != expected:
            raise ValueError(f"step_order {step.step_order} out of sequence (expected {expected})")
        self.steps.append(step)
        return step

    def finish(self, *, completed: bool, reason: str) -> None:
        if self.termination_reason is not None:
            return
        self.completed = completed
        self.termination_reason = reason


@dataclass
class BookingEntryPoint:
    source_url: str
    trigger_text: str
    trigger_selector: str
    destination_url: Optional[str]


@dataclass
class LargeGroupIndicator:
    has_large_group_option: bool
    indicator: Optional[str] = None


@dataclass
class BookingFlow:
    """One distinct booking destination with every way in and every variation explored."""

    id: str
    name: str
    destination_key: str
    description: Optional[str] = None
    entry_points: list[BookingEntryPoint] = field(default_factory=list)
    flows: list[FlowVariation] = field(default_factory=list)
    group_size_config: Optional[GroupSizeConfig] = None
    large_group: Optional[LargeGroupIndicator] = None
    discovered_at: str = ""


# --- Package discovery ---


@dataclass
class PackageInclusion:
    item: str
    quantity: Optional[str] = None
    category: InclusionCategory = "other"
    details: Optional[str] = None


@dataclass
class DayPricing:
    days: str
    price: str


@dataclass
class PackagePricing:
    base_price: Optional[str] = None
    day_pricing: list[DayPricing] = field(default_factory=list)
    per_person_price: Optional[str] = None
    minimum_spend: Optional[str] = None
    deposit_required: Optional[str] = None
    # Price-bearing text that could not be classified, kept verbatim.
    notes: list[str] = field(default_factory=list)
    currency: str = "$"

    def has_prices(self) -> bool:
        return bool(
            self.base_price
            or self.day_pricing
            or self.per_person_price
            or self.minimum_spend
            or self.deposit_required
        )


@dataclass
class GuestCategory:
    name: str
    age_range: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None
    price: Optional[str] = None


@dataclass
class GuestConfiguration:
    included_guests: Optional[int] = None
    minimum_guests: Optional[int] = None
    maximum_guests: Optional[int] = None
    additional_guest_price: Optional[str] = None
    guest_categories: list[GuestCategory] = field(default_factory=list)

    def is_empty(self) -> bool:
        return (
            self.included_guests is None
            and self.minimum_guests is None
            and self.maximum_guests is None
            and self.additional_guest_price is None
            and not self.guest_categories
        )


@dataclass
class PackageAddOn:
    name: str
    description: Optional[str] = None
    price: Optional[str] = None
    per_person: bool = False
    category: AddOnCategory = "other"
    pre_selected: bool = False
    max_quantity: Optional[int] = None


@dataclass
class BookablePackage:
    id: str
    name: str
    category: str
    source_url: str
    description: Optional[str] = None
    tagline: Optional[str] = None
    inclusions: list[PackageInclusion] = field(default_factory=list)
    pricing: PackagePricing = field(default_factory=PackagePricing)
    guest_config: GuestConfiguration = field(default_factory=GuestConfiguration)
    duration: Optional[str] = None
    available_add_ons: list[PackageAddOn] = field(default_factory=list)
    restrictions: list[str] = field(default_factory=list)
    available_time_slots: list[str] = field(default_factory=list)
    # Dates on which a date-targeted re-scrape surfaced this package.
    available_on_dates: list[str] = field(default_factory=list)
    image_url: Optional[str] = None
    booking_url: Optional[str] = None
    screenshot_path: Optional[str] = None
    raw_content: Optional[str] = None


@dataclass
class VenueInfo:
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    hours: Optional[str] = None


@dataclass
class BookingSystemDiscovery:
    url: str
    venue_name: str
    platform: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    packages: list[BookablePackage] = field(default_factory=list)
    available_dates: list[str] = field(default_factory=list)
    venue_info: Optional[VenueInfo] = None
    main_screenshot_path: Optional[str] = None
    discovered_at: str = ""
    scrape_duration_ms: int = 0
    errors: list[str] = field(default_factory=list)


# --- Run summary ---


@dataclass
class CrawlStats:
    pages_visited: int = 0
    triggers_found: int = 0
    flows_explored: int = 0
    add_ons_found: int = 0
    packages_found: int = 0
    failed_pages: int = 0


@dataclass
class ExplorationReport:
    """Everything one run produced, for the report writer."""

    base_url: str
    started_at: str
    completed_at: Optional[str] = None
    duration_ms: int = 0
    config: dict[str, Any] = field(default_factory=dict)
    stats: CrawlStats = field(default_factory=CrawlStats)
    pages: list[CrawlResult] = field(default_factory=list)
    triggers: list[BookingTrigger] = field(default_factory=list)
    bookings: list[BookingFlow] = field(default_factory=list)
    discoveries: list[BookingSystemDiscovery] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
