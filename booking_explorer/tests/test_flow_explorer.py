"""
Tests for the flow explorer state machine over an in-memory site.

Covers: trigger filtering and destination dedupe, entry (including new tabs),
group-size divergence, halting at payment, loop and step limits, retries,
context isolation, and flow typing.
"""

from __future__ import annotations

import pytest

from booking_explorer.errors import BrowserUnavailableError
from booking_explorer.flow_explorer import (
    CONFIRMATION_REACHED,
    ENQUIRY_REACHED,
    LOOP_DETECTED,
    NO_PROGRESSION,
    PAYMENT_REACHED,
    STEP_LIMIT,
    FlowExplorer,
    VariationPlan,
    determine_flow_type,
    plan_variations,
)
from booking_explorer.models import BookingTrigger, FlowStep, GroupSizeConfig
from booking_explorer.tests.fakes import (
    FakeContext,
    FakeDocument,
    FakeElement,
    FakePage,
    FakeSession,
    FakeSite,
)
from shared.config import ExplorerConfig

HOME = "https://example.com/"
BOOK = "https://example.com/book"


def _config(**kwargs) -> ExplorerConfig:
    defaults = dict(
        base_url="https://example.com",
        action_delay_ms=0,
        take_screenshots=False,
        scrape_packages=False,
        retry_backoff_ms=0,
    )
    defaults.update(kwargs)
    return ExplorerConfig(**defaults)


def _trigger(text: str, selector: str, href, source: str = HOME, confidence: float = 0.8) -> BookingTrigger:
    return BookingTrigger(
        id=selector,
        text=text,
        selector=selector,
        tag_name="a",
        source_url=source,
        href=href,
        confidence=confidence,
    )


def home_with_link(href: str, target: str, selector_id: str = "book-now", text: str = "Book Now") -> FakeDocument:
    home = FakeDocument(title="Bowl-O-Rama")
    link = home.link(href, text, attrs={"id": selector_id}, navigates_to=target)
    home.add(link, f"#{selector_id}")
    return home


def step_page(body: str, marker: str, next_url=None, **button_kwargs) -> FakeDocument:
    document = FakeDocument(title="Book a lane", body=body)
    document.add(FakeElement("div"), marker)
    if next_url is not None or button_kwargs:
        document.button("Continue", navigates_to=next_url, **button_kwargs)
    return document


def payment_site() -> FakeSite:
    """date step -> extras step -> payment."""
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = step_page("Pick a date", ".calendar", "https://example.com/book/extras")
    site["https://example.com/book/extras"] = step_page(
        "Add some extras", ".extras", "https://example.com/book/payment"
    )
    site["https://example.com/book/payment"] = FakeDocument(body="Enter your card number")
    return site


# --- Trigger preprocessing ---


def test_filter_triggers_drops_social_login_and_legal():
    explorer = FlowExplorer(FakeSession(FakeSite()), _config())
    triggers = [
        _trigger("Book Now", "#book", "/book"),
        _trigger("Facebook", "#fb", "https://facebook.com/bowl"),
        _trigger("Book", "#fb-book", "https://www.facebook.com/bowl/book"),
        _trigger("Log in", "#login", "/account"),
        _trigger("Booking terms", "#terms", "/terms"),
        _trigger("Share", "a.social-share", None),
        _trigger("x", "#tiny", "/book"),
    ]
    assert [t.text for t in explorer.filter_triggers(triggers)] == ["Book Now"]


def test_deduplicate_by_destination_keeps_highest_confidence():
    """Same-site paths collapse; an external host with the same path stays distinct."""
    explorer = FlowExplorer(FakeSession(FakeSite()), _config())
    triggers = [
        _trigger("Parties", "#a", "/party", confidence=0.5),
        _trigger("Book a party", "#b", "https://example.com/party/", confidence=0.9),
        _trigger("Book online", "#c", "https://booking.vendor.com/party", confidence=0.6),
    ]
    unique = explorer.deduplicate_by_destination(triggers)
    assert [t.selector for t in unique] == ["#b", "#c"]


# --- Entry ---


@pytest.mark.asyncio
async def test_enter_follows_trigger_into_new_tab():
    site = FakeSite()
    home = FakeDocument()
    home.add(FakeElement("a", "Book Now", {"id": "book"}, opens_tab=BOOK), "#book")
    site[HOME] = home
    site[BOOK] = FakeDocument(title="Book")

    explorer = FlowExplorer(FakeSession(site), _config())
    context = FakeContext(site)
    page = await context.new_page()
    active, result = await explorer.enter(context, page, _trigger("Book Now", "#book", None))

    assert result.success is True
    assert active is not page
    assert active.url == BOOK


@pytest.mark.asyncio
async def test_enter_falls_back_to_exact_text_match():
    site = FakeSite()
    home = FakeDocument()
    home.add(FakeElement("button", "Book Now", navigates_to=BOOK), "button")
    site[HOME] = home
    site[BOOK] = FakeDocument()

    explorer = FlowExplorer(FakeSession(site), _config())
    context = FakeContext(site)
    active, result = await explorer.enter(context, await context.new_page(), _trigger("Book Now", "#gone", None))
    assert result.success
    assert active.url == BOOK


@pytest.mark.asyncio
async def test_entry_failure_is_recorded_without_flow():
    """A source page that cannot load gives an error, not a flow."""
    site = FakeSite()
    explorer = FlowExplorer(FakeSession(site), _config(retries=2))
    flows = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book", source="https://example.com/gone")])

    assert flows == []
    assert len(explorer.errors) == 1
    assert explorer.errors[0].startswith("entry_failed")
    assert "HTTP 404" in explorer.errors[0]


# --- Scenarios ---


@pytest.mark.asyncio
async def test_payment_page_halts_before_any_action():
    """Payment at step 3: two steps recorded, incomplete, payment_page_reached."""
    site = payment_site()
    session = FakeSession(site)
    explorer = FlowExplorer(session, _config())
    flows = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])

    assert len(flows) == 1
    flow = flows[0]
    assert flow.name == "Book a lane"
    assert flow.destination_key == "/book"
    assert len(flow.flows) == 1

    variation = flow.flows[0]
    assert variation.group_size_mode == "default"
    assert [s.step_order for s in variation.steps] == [1, 2]
    assert [s.step_type for s in variation.steps] == ["date_selection", "addon_selection"]
    assert variation.completed is False
    assert variation.termination_reason == PAYMENT_REACHED
    assert variation.flow_type == "standard"
    assert all("payment" not in s.url for s in variation.steps)


@pytest.mark.asyncio
async def test_group_size_divergence_explores_min_and_max_independently():
    """A '16+' option splits the flow: small groups book, large groups enquire."""
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)

    book = FakeDocument(title="Party booking", body="Choose your party size")
    select = FakeElement("select", attrs={"name": "guests"})
    for label in [str(n) for n in range(1, 16)] + ["16+"]:
        select.add(FakeElement("option", label, {"value": label}), "option")
    book.add(select, 'select[name*="guest"]')

    def route(button: FakeElement) -> None:
        large = select.value == "16+"
        button.navigates_to = "https://example.com/book/enquiry" if large else "https://example.com/book/time"

    book.button("Continue", on_click=route)
    site[BOOK] = book
    site["https://example.com/book/time"] = step_page(
        "Pick a time", ".time-slot", "https://example.com/book/payment"
    )
    site["https://example.com/book/payment"] = FakeDocument(body="Secure checkout")
    enquiry = FakeDocument(body="Make an enquiry for large groups")
    enquiry.add(FakeElement("input", attrs={"type": "email"}), 'input[type="email"]')
    site["https://example.com/book/enquiry"] = enquiry

    session = FakeSession(site)
    explorer = FlowExplorer(session, _config())
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])

    assert flow.group_size_config.divergence_point == 16
    small, large = flow.flows
    assert (small.group_size_mode, small.group_size) == ("min", 1)
    assert (large.group_size_mode, large.group_size) == ("max", 16)

    assert [s.step_type for s in small.steps] == ["group_size_selection", "time_selection"]
    assert small.termination_reason == PAYMENT_REACHED
    assert small.flow_type == "standard"

    assert [s.step_type for s in large.steps] == ["group_size_selection", "enquiry_form"]
    assert large.completed is True
    assert large.termination_reason == ENQUIRY_REACHED
    assert large.flow_type == "high_revenue"
    assert small.steps is not large.steps

    # One discovery context plus one per variation, all closed.
    assert len(session.contexts) == 3
    assert all(c.closed for c in session.contexts)


def enquiry_site(landing_body: str) -> FakeSite:
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = step_page(landing_body, ".intro", "https://example.com/book/enquiry")
    enquiry = FakeDocument(body="Send us an enquiry and we will get back to you")
    enquiry.add(FakeElement("input", attrs={"type": "email"}), 'input[type="email"]')
    site["https://example.com/book/enquiry"] = enquiry
    return site


@pytest.mark.asyncio
async def test_large_group_landing_page_makes_enquiry_high_revenue():
    """Corporate wording on the landing page marks its enquiry path as high revenue."""
    explorer = FlowExplorer(FakeSession(enquiry_site("Corporate events and private parties")), _config())
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])

    assert flow.large_group.has_large_group_option is True
    assert flow.large_group.indicator == "Corporate"
    variation = flow.flows[0]
    assert variation.termination_reason == ENQUIRY_REACHED
    assert variation.flow_type == "high_revenue"


@pytest.mark.asyncio
async def test_plain_landing_page_keeps_enquiry_type():
    explorer = FlowExplorer(FakeSession(enquiry_site("Bowling for everyone")), _config())
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])

    assert flow.large_group.has_large_group_option is False
    assert flow.flows[0].flow_type == "enquiry"


@pytest.mark.asyncio
async def test_confirmation_page_completes_flow():
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = step_page("Pick a date", ".calendar", "https://example.com/book/thanks")
    site["https://example.com/book/thanks"] = FakeDocument(body="Booking confirmed")

    [flow] = await FlowExplorer(FakeSession(site), _config()).explore_all([_trigger("Book Now", "#book-now", "/book")])
    variation = flow.flows[0]
    assert variation.completed is True
    assert variation.termination_reason == CONFIRMATION_REACHED
    assert len(variation.steps) == 1


def datetime_page(time_slot_to=None, date_cell_to=None) -> FakeDocument:
    """Calendar and slots on one page; the first pick of each may navigate."""
    document = FakeDocument(title="Book a lane", body="Pick a date and time")
    document.add(FakeElement("div"), ".calendar")
    document.add(FakeElement("div"), ".time-slot")
    document.add(FakeElement("td", "24", navigates_to=date_cell_to), ".calendar .available")
    if time_slot_to is not None:
        document.add(FakeElement("div", "19:00", navigates_to=time_slot_to), ".time-slot:not(.unavailable):not(.disabled)")
    return document


@pytest.mark.asyncio
async def test_time_slot_leading_to_payment_clicks_nothing_there():
    """Picking a slot that lands on payment halts the walk before any payment control is touched."""
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = datetime_page(time_slot_to="https://example.com/book/payment")
    payment = FakeDocument(body="Enter your card number")
    submit = payment.button("Submit", 'button[type="submit"]')
    site["https://example.com/book/payment"] = payment

    [flow] = await FlowExplorer(FakeSession(site), _config()).explore_all([_trigger("Book Now", "#book-now", "/book")])
    variation = flow.flows[0]
    assert [s.step_type for s in variation.steps] == ["datetime_selection"]
    assert variation.termination_reason == PAYMENT_REACHED
    assert submit.clicks == 0


@pytest.mark.asyncio
async def test_progress_never_clicks_on_a_payment_page():
    """A retry attempt that starts on a payment page reports progress without clicking."""
    payment = FakeDocument(body="Enter your card number")
    submit = payment.button("Submit", 'button[type="submit"]')
    page = FakePage(FakeSite({"https://example.com/book/payment": payment}), url="https://example.com/book/payment")
    explorer = FlowExplorer(FakeSession(FakeSite()), _config())

    assert await explorer.progress(page, "datetime_selection", "before") is True
    assert submit.clicks == 0


@pytest.mark.asyncio
async def test_auto_advancing_calendar_progresses_without_next_button():
    """A date pick that moves the page on counts as progress on a date-and-time step."""
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = datetime_page(date_cell_to="https://example.com/book/thanks")
    site["https://example.com/book/thanks"] = FakeDocument(body="Booking confirmed")

    [flow] = await FlowExplorer(FakeSession(site), _config()).explore_all([_trigger("Book Now", "#book-now", "/book")])
    variation = flow.flows[0]
    assert [s.step_type for s in variation.steps] == ["datetime_selection"]
    assert variation.termination_reason == CONFIRMATION_REACHED
    assert variation.completed is True


@pytest.mark.asyncio
async def test_step_without_progression_halts():
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = step_page("Pick a date", ".calendar")

    [flow] = await FlowExplorer(FakeSession(site), _config()).explore_all([_trigger("Book Now", "#book-now", "/book")])
    variation = flow.flows[0]
    assert len(variation.steps) == 1
    assert variation.completed is False
    assert variation.termination_reason == NO_PROGRESSION


@pytest.mark.asyncio
async def test_exhausted_retries_halt_with_last_error():
    site = FakeSite()
    site[HOME] = home_with_link("/book", BOOK)
    site[BOOK] = step_page("Pick a date", ".calendar", click_succeeds=False)

    explorer = FlowExplorer(FakeSession(site), _config(retries=2))
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])
    variation = flow.flows[0]
    assert variation.termination_reason == "action_retries_exhausted: progress from date_selection had no effect"
    assert variation.steps[0].errors == ["progress from date_selection had no effect"]


def loop_site() -> FakeSite:
    site = FakeSite()
    site[HOME] = home_with_link("/book/a", "https://example.com/book/a")
    site["https://example.com/book/a"] = step_page("Step A", ".calendar", "https://example.com/book/b")
    site["https://example.com/book/b"] = step_page("Step B", ".calendar", "https://example.com/book/a")
    return site


@pytest.mark.asyncio
async def test_revisited_page_state_is_a_loop():
    """a -> b -> a is allowed up to three steps; the next revisit halts."""
    explorer = FlowExplorer(FakeSession(loop_site()), _config())
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book/a")])
    variation = flow.flows[0]
    assert len(variation.steps) == 3
    assert variation.termination_reason == LOOP_DETECTED


@pytest.mark.asyncio
async def test_step_limit_bounds_the_walk():
    explorer = FlowExplorer(FakeSession(loop_site()), _config(max_steps_per_flow=2))
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book/a")])
    variation = flow.flows[0]
    assert len(variation.steps) == 2
    assert variation.termination_reason == STEP_LIMIT


@pytest.mark.asyncio
async def test_screenshots_are_named_per_flow_mode_and_step(tmp_path):
    site = payment_site()
    explorer = FlowExplorer(FakeSession(site), _config(take_screenshots=True, output_dir=str(tmp_path)))
    [flow] = await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])
    paths = [s.screenshot_path for s in flow.flows[0].steps]
    assert paths[0].endswith("-default-step1.png")
    assert paths[1].endswith("-default-step2.png")
    assert all(p.startswith(str(tmp_path.resolve())) for p in paths)


# --- Destinations ---


@pytest.mark.asyncio
async def test_external_and_same_site_destinations_stay_separate():
    site = FakeSite()
    home = home_with_link("/party", "https://example.com/party", selector_id="party")
    site[HOME] = home
    site["https://example.com/party"] = FakeDocument(title="Parties")
    site["https://booking.vendor.com/party"] = FakeDocument(title="Vendor parties")

    explorer = FlowExplorer(FakeSession(site), _config())
    flows = await explorer.explore_all(
        [
            _trigger("Parties", "#party", "/party"),
            _trigger("Book online", "#vendor", "https://booking.vendor.com/party"),
        ]
    )
    assert sorted(f.destination_key for f in flows) == ["/party", "booking.vendor.com/party"]
    assert {f.name for f in flows} == {"Parties", "Vendor parties"}


@pytest.mark.asyncio
async def test_second_trigger_to_same_destination_adds_entry_point():
    site = payment_site()
    site[HOME].add(FakeElement("button", "Reserve", {"id": "hero"}, navigates_to=BOOK), "#hero")

    explorer = FlowExplorer(FakeSession(site), _config())
    flows = await explorer.explore_all(
        [
            _trigger("Book Now", "#book-now", "/book"),
            _trigger("Reserve", "#hero", None),
        ]
    )
    assert len(flows) == 1
    assert [e.trigger_selector for e in flows[0].entry_points] == ["#book-now", "#hero"]
    assert flows[0].entry_points[1].destination_url == BOOK


@pytest.mark.asyncio
async def test_non_booking_destination_gives_no_flow():
    site = FakeSite()
    site[HOME] = home_with_link("/about", "https://example.com/about", text="Reserve")
    site["https://example.com/about"] = FakeDocument(body="Our story")

    explorer = FlowExplorer(FakeSession(site), _config())
    assert await explorer.explore_all([_trigger("Reserve", "#book-now", "/about")]) == []
    assert explorer.errors == []


@pytest.mark.asyncio
async def test_max_flows_caps_exploration():
    site = payment_site()
    explorer = FlowExplorer(FakeSession(site), _config(max_flows=1))
    await explorer.explore_all(
        [
            _trigger("Book Now", "#book-now", "/book"),
            _trigger("Book online", "#vendor", "https://booking.vendor.com/party"),
        ]
    )
    assert "https://booking.vendor.com/party" not in site.navigations
    assert len(explorer.flows) == 1


@pytest.mark.asyncio
async def test_max_flows_counts_flows_not_triggers():
    """A trigger that yields no flow does not use up the cap."""
    site = payment_site()
    site[HOME].add(
        FakeElement("a", "Reserve", {"id": "story", "href": "/our-story"}, navigates_to="https://example.com/our-story"),
        "#story",
    )
    site["https://example.com/our-story"] = FakeDocument(body="Our story began in 1985")

    explorer = FlowExplorer(FakeSession(site), _config(max_flows=1))
    flows = await explorer.explore_all(
        [
            _trigger("Reserve", "#story", "/our-story"),
            _trigger("Book Now", "#book-now", "/book"),
        ]
    )
    assert [f.destination_key for f in flows] == ["/book"]


@pytest.mark.asyncio
async def test_browser_unavailable_propagates():
    explorer = FlowExplorer(FakeSession(FakeSite(), unavailable=True), _config())
    with pytest.raises(BrowserUnavailableError):
        await explorer.explore_all([_trigger("Book Now", "#book-now", "/book")])


# --- Next button ---


@pytest.mark.asyncio
async def test_find_next_button_never_returns_payment_actions():
    document = FakeDocument()
    document.button("Pay now")
    document.button("Continue")
    page = FakePage(FakeSite({BOOK: document}), url=BOOK)
    explorer = FlowExplorer(FakeSession(FakeSite()), _config())

    button = await explorer.find_next_button(page)
    assert button is not None
    assert await button.text() == "Continue"

    risky = FakeDocument()
    risky.button("Confirm and pay", 'button[type="submit"]', ".btn-primary")
    risky.button("Complete booking", ".cta-button")
    page = FakePage(FakeSite({BOOK: risky}), url=BOOK)
    assert await explorer.find_next_button(page) is None


@pytest.mark.asyncio
async def test_find_next_button_skips_disabled_controls():
    document = FakeDocument()
    document.button("Next", enabled=False)
    document.button("Select this package")
    page = FakePage(FakeSite({BOOK: document}), url=BOOK)
    button = await FlowExplorer(FakeSession(FakeSite()), _config()).find_next_button(page)
    assert await button.text() == "Select this package"


# --- Group size ---


def _group_page(document: FakeDocument) -> FakePage:
    return FakePage(FakeSite({BOOK: document}), url=BOOK)


@pytest.mark.asyncio
async def test_set_group_size_with_stepper():
    document = FakeDocument()
    stepper = FakeElement("div")
    display = stepper.add(FakeElement("input", value="2"), "input")

    def bump(delta: int):
        def _click(_: FakeElement) -> None:
            display.value = str(int(display.value) + delta)

        return _click

    plus = stepper.add(FakeElement("button", "+", on_click=bump(1)), '[data-action="increase"]')
    stepper.add(FakeElement("button", "-", on_click=bump(-1)), '[data-action="decrease"]')
    document.add(stepper, ".stepper")

    explorer = FlowExplorer(FakeSession(FakeSite()), _config())
    assert await explorer.set_group_size(_group_page(document), 5) is True
    assert display.value == "5"
    assert plus.clicks == 3


@pytest.mark.asyncio
async def test_set_group_size_with_number_input():
    document = FakeDocument()
    field = document.add(FakeElement("input", attrs={"type": "number", "name": "guests"}), 'input[type="number"][name*="guest"]')
    explorer = FlowExplorer(FakeSession(FakeSite()), _config())
    assert await explorer.set_group_size(_group_page(document), 6) is True
    assert field.filled == ["6"]


@pytest.mark.asyncio
async def test_set_group_size_without_control():
    explorer = FlowExplorer(FakeSession(FakeSite()), _config())
    assert await explorer.set_group_size(_group_page(FakeDocument()), 4) is False


# --- Planning and typing ---


def test_plan_variations():
    assert plan_variations(None) == [VariationPlan("default")]
    diverging = GroupSizeConfig(minimum=1, maximum="16+", has_separate_paths=True, divergence_point=16)
    assert plan_variations(diverging) == [VariationPlan("min", 1), VariationPlan("max", 16)]
    assert plan_variations(GroupSizeConfig(minimum=2, maximum=10)) == [VariationPlan("min", 2), VariationPlan("max", 10)]
    assert plan_variations(GroupSizeConfig(minimum=4, maximum=4)) == [VariationPlan("min", 4)]
    assert plan_variations(GroupSizeConfig(maximum=8)) == [VariationPlan("default")]


def _step(step_type: str, description: str = "Select date") -> FlowStep:
    return FlowStep(step_order=1, url=BOOK, description=description, step_type=step_type)


def test_determine_flow_type():
    assert determine_flow_type([_step("date_selection")], PAYMENT_REACHED, False) == "standard"
    assert determine_flow_type([_step("enquiry_form")], ENQUIRY_REACHED, False) == "enquiry"
    assert determine_flow_type([_step("enquiry_form")], ENQUIRY_REACHED, True) == "high_revenue"
    assert determine_flow_type([_step("product_selection", "Select package: VIP Experience")], NO_PROGRESSION, False) == (
        "high_revenue"
    )
    assert determine_flow_type([_step("details_form")], "details_form_requires_input", False) == "unknown"
    assert determine_flow_type([], NO_PROGRESSION, False) == "unknown"
