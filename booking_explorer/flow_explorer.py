"""
Booking flow explorer.

For each booking trigger found by the crawler:
1. Filter social/login false positives and collapse triggers sharing a destination.
2. Enter the trigger in a discovery context: capture the destination, the
   booking name, the group-size configuration, and (optionally) the packages.
3. Walk the flow once per group-size variation, each in a fresh isolated
   context, classifying every step and progressing until a halt condition.

The walk never acts on a payment step: it halts as soon as one is detected.

Usage:
    explorer = FlowExplorer(session, config)
    flows = await explorer.explore_all(triggers)
"""

from __future__ import annotations

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Optional

from booking_explorer.capabilities import BrowserContextHandle, BrowserPage, BrowserSession, ElementHandle
from booking_explorer.constants import (
    BOOKING_DESCRIPTION_SELECTORS,
    BOOKING_NAME_SELECTORS,
    DATE_CELL_SELECTORS,
    GROUP_SIZE_NUMBER_SELECTORS,
    GROUP_SIZE_OPTION_SELECTORS,
    GROUP_SIZE_RADIO_SELECTORS,
    GROUP_SIZE_SELECT_SELECTORS,
    HIGH_REVENUE_TEXT,
    NEXT_BUTTON_TIERS,
    PRODUCT_BUTTON_SELECTORS,
    RISKY_PAYMENT_CTA,
    SOCIAL_DOMAINS,
    SOCIAL_SELECTOR_PATTERN,
    SOCIAL_TEXT_PATTERNS,
    STEPPER_MAX_CLICKS,
    STEPPER_MINUS_SELECTORS,
    STEPPER_PLUS_SELECTORS,
    STEPPER_SELECTORS,
    STEPPER_VALUE_SELECTORS,
    TIME_CELL_SELECTORS,
)
from booking_explorer.crawl.constants import POST_CLICK_IDLE_TIMEOUT, POST_CLICK_SETTLE_MS, STEPPER_CLICK_DELAY_MS
from booking_explorer.crawl.dom import element_text, find_by_text, first_text, first_visible, parse_int, visible_elements
from booking_explorer.crawl.retry import ActionResult, RetryPolicy, run_with_retry
from booking_explorer.crawl.text import build_screenshot_path, clean_text, generate_id, utc_timestamp
from booking_explorer.crawl.urls import PSEUDO_SCHEMES, destination_key, get_site_host, skip_reason, url_destination_key
from booking_explorer.detectors import (
    detect_large_group_indicators,
    is_booking_landing_page,
    is_confirmation_page,
    is_payment_page,
)
from booking_explorer.errors import BrowserUnavailableError
from booking_explorer.extractors import (
    extract_add_ons,
    extract_form_fields,
    extract_group_size_config,
    extract_step_options,
    parse_group_size_value,
)
from booking_explorer.models import (
    BookingEntryPoint,
    BookingFlow,
    BookingSystemDiscovery,
    BookingTrigger,
    FlowStep,
    FlowType,
    FlowVariation,
    GroupSizeConfig,
    GroupSizeMode,
    StepType,
)
from booking_explorer.package_scraper import PackageScraper
from booking_explorer.step_classifier import classify_step, describe_step
from shared.config import ExplorerConfig
from shared.logging import bind_run_context, clear_flow_context, get_logger

logger = get_logger(__name__)

# Loop detection only applies once this many steps are recorded.
LOOP_CHECK_AFTER_STEPS = 3
ENTRY_TEXT_SELECTORS = ("a", "button", '[role="button"]', 'input[type="submit"]', 'input[type="button"]')

PAYMENT_REACHED = "payment_page_reached"
CONFIRMATION_REACHED = "confirmation_reached"
ENQUIRY_REACHED = "enquiry_form_reached"
DETAILS_REQUIRE_INPUT = "details_form_requires_input"
NO_PROGRESSION = "no_progression_action"
RETRIES_EXHAUSTED = "action_retries_exhausted"
STEP_LIMIT = "step_limit_reached"
LOOP_DETECTED = "loop_detected"
TIMEOUT = "timeout"
ENTRY_FAILED = "entry_failed"


@dataclass(frozen=True)
class VariationPlan:
    mode: GroupSizeMode
    group_size: Optional[int] = None


def plan_variations(config: Optional[GroupSizeConfig]) -> list[VariationPlan]:
    """
    Variations to explore for one booking.

    The first run uses the minimum group size when one is known. A divergence
    point adds a run at that size; without one, a numeric maximum above the
    minimum adds a run at the maximum. No divergence is ever guessed.
    """
    if config is None:
        return [VariationPlan("default")]

    plans = [VariationPlan("min", config.minimum) if config.minimum is not None else VariationPlan("default")]
    if config.divergence_point is not None:
        plans.append(VariationPlan("max", config.divergence_point))
    elif isinstance(config.maximum, int) and config.minimum is not None and config.maximum > config.minimum:
        plans.append(VariationPlan("max", config.maximum))
    return plans


def is_social_trigger(trigger: BookingTrigger) -> bool:
    text = trigger.text.strip()
    if any(p.search(text) for p in SOCIAL_TEXT_PATTERNS):
        return True
    if SOCIAL_SELECTOR_PATTERN.search(trigger.selector):
        return True
    if trigger.href and SOCIAL_DOMAINS.search(get_site_host(trigger.href)):
        return True
    return False


def determine_flow_type(steps: list[FlowStep], termination_reason: Optional[str], is_large_group: bool) -> FlowType:
    """
    standard, high_revenue, enquiry, or unknown.

    An enquiry form reached on the large-group path is high revenue; on the
    normal path it is an enquiry. Premium wording in step descriptions or
    product names also marks a path high revenue.
    """
    if termination_reason == ENQUIRY_REACHED or any(s.step_type == "enquiry_form" for s in steps):
        return "high_revenue" if is_large_group else "enquiry"

    for step in steps:
        texts = [step.description]
        if step.available_options:
            texts.extend(p.name for p in step.available_options.products)
        if any(HIGH_REVENUE_TEXT.search(t) for t in texts if t):
            return "high_revenue"

    if termination_reason in (PAYMENT_REACHED, CONFIRMATION_REACHED):
        return "standard"
    if any(s.step_type not in ("unknown", "details_form") for s in steps):
        return "standard"
    return "unknown"


def is_large_group_path(flow: BookingFlow, plan: VariationPlan) -> bool:
    """The max run past a divergence point, or any run of a booking that advertises large groups."""
    if flow.large_group is not None and flow.large_group.has_large_group_option:
        return True
    return plan.mode == "max" and bool(flow.group_size_config and flow.group_size_config.has_separate_paths)


async def page_signature(page: BrowserPage) -> str:
    """URL plus a hash of the visible text; changes when a step changes."""
    body = await page.body_text()
    return f"{page.url}|{hashlib.sha1(body.encode('utf-8')).hexdigest()}"


class FlowExplorer:
    def __init__(self, session: BrowserSession, config: ExplorerConfig) -> None:
        self.session = session
        self.config = config
        self.policy = RetryPolicy(max_attempts=config.retries, backoff_ms=config.retry_backoff_ms)
        self.flows: list[BookingFlow] = []
        self.errors: list[str] = []
        self._flows_by_destination: dict[str, BookingFlow] = {}
        self._discoveries: dict[str, BookingSystemDiscovery] = {}

    # --- Trigger preprocessing ---

    def filter_triggers(self, triggers: list[BookingTrigger]) -> list[BookingTrigger]:
        """Drop social, share, and login triggers, and hrefs the crawler would skip."""
        kept: list[BookingTrigger] = []
        for trigger in triggers:
            if len(trigger.text.strip()) < 2 or is_social_trigger(trigger):
                logger.debug("flow.trigger_filtered", text=trigger.text, reason="social_or_nav")
                continue
            if trigger.href and not trigger.href.lower().startswith(PSEUDO_SCHEMES):
                reason = skip_reason(trigger.href)
                if reason in ("binary_asset", "static_asset", "share_feed", "legal", "editorial"):
                    logger.debug("flow.trigger_filtered", text=trigger.text, reason=reason)
                    continue
            kept.append(trigger)
        return kept

    def deduplicate_by_destination(self, triggers: list[BookingTrigger]) -> list[BookingTrigger]:
        """
        One trigger per destination, the most confident one.

        Same-site triggers collapse by path. An external destination keys on
        its host, so it never merges with a same-site one.
        """
        best: dict[str, BookingTrigger] = {}
        for trigger in triggers:
            key = destination_key(trigger.href, trigger.source_url, trigger.selector)
            current = best.get(key)
            if current is None or trigger.confidence > current.confidence:
                best[key] = trigger
        return list(best.values())

    # --- Exploration ---

    async def explore_all(self, triggers: list[BookingTrigger]) -> list[BookingFlow]:
        filtered = self.filter_triggers(triggers)
        unique = self.deduplicate_by_destination(filtered)

        logger.info(
            "flow.exploration_started",
            triggers=len(triggers),
            after_filter=len(filtered),
            to_explore=len(unique),
            max_flows=self.config.max_flows,
        )

        for trigger in unique:
            # The cap counts flows produced, not triggers tried.
            if 0 < self.config.max_flows <= len(self.flows):
                logger.info("flow.max_flows_reached", flows=len(self.flows))
                break
            bind_run_context(trigger_id=trigger.id)
            try:
                await self.explore_single_trigger(trigger)
            except BrowserUnavailableError:
                raise
            except Exception as e:
                self.errors.append(f"trigger {trigger.text!r} on {trigger.source_url}: {e}")
                logger.error(
                    "flow.trigger_failed",
                    trigger=trigger.text,
                    source_url=trigger.source_url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                clear_flow_context()

        logger.info("flow.exploration_completed", flows=len(self.flows), errors=len(self.errors))
        return list(self.flows)

    async def explore_single_trigger(self, trigger: BookingTrigger) -> Optional[BookingFlow]:
        """
        Discover one booking from a trigger and explore its variations.

        Returns None when the trigger leads to an already-explored destination
        (an entry point is added to that flow instead) or to no booking page.
        """
        logger.info("flow.trigger_started", trigger=trigger.text, source_url=trigger.source_url, href=trigger.href)

        context = await self.session.new_isolated_context()
        try:
            page = await context.new_page()
            page, entry = await self.enter(context, page, trigger)
            if not entry.success:
                self.errors.append(f"{ENTRY_FAILED}: {trigger.text!r}: {entry.error}")
                logger.warning("flow.entry_failed", trigger=trigger.text, error=entry.error)
                return None

            key = self._landed_destination_key(trigger, page.url)
            entry_point = BookingEntryPoint(
                source_url=trigger.source_url,
                trigger_text=trigger.text,
                trigger_selector=trigger.selector,
                destination_url=page.url,
            )
            existing = self._flows_by_destination.get(key)
            if existing is not None:
                existing.entry_points.append(entry_point)
                logger.info("flow.duplicate_destination", destination=key, flow_id=existing.id)
                return None

            if not await is_booking_landing_page(page):
                logger.info("flow.not_booking_page", url=page.url, trigger=trigger.text)
                return None

            flow = BookingFlow(
                id=generate_id(),
                name=await self.read_booking_name(page, trigger),
                destination_key=key,
                description=await self.read_booking_description(page),
                entry_points=[entry_point],
                group_size_config=await extract_group_size_config(page),
                large_group=await detect_large_group_indicators(page),
                discovered_at=utc_timestamp(),
            )
            if flow.large_group.has_large_group_option:
                logger.info("flow.large_group_indicator", flow_id=flow.id, indicator=flow.large_group.indicator)

            if self.config.scrape_packages:
                scraper = PackageScraper(page, self.config)
                self._discoveries[key] = await scraper.scrape_booking_system()
        finally:
            await self.session.close_context(context)

        self._flows_by_destination[key] = flow
        self.flows.append(flow)

        for plan in plan_variations(flow.group_size_config):
            variation = await self.explore_variation(trigger, flow, plan)
            flow.flows.append(variation)

        logger.info(
            "flow.trigger_completed",
            flow_id=flow.id,
            name=flow.name,
            variations=len(flow.flows),
            steps=[len(v.steps) for v in flow.flows],
        )
        return flow

    def _landed_destination_key(self, trigger: BookingTrigger, landed_url: str) -> str:
        # A trigger that opened a modal in place keeps its page-and-selector key.
        if url_destination_key(landed_url, trigger.source_url) == url_destination_key(
            trigger.source_url, trigger.source_url
        ):
            return destination_key(trigger.href, trigger.source_url, trigger.selector)
        return url_destination_key(landed_url, trigger.source_url)

    async def enter(
        self, context: BrowserContextHandle, page: BrowserPage, trigger: BookingTrigger
    ) -> tuple[BrowserPage, ActionResult]:
        """
        ENTRY: reach the booking destination from a trigger, with retry.

        External hrefs are opened directly. Otherwise the source page is
        loaded and the trigger clicked; a new tab opened by the click becomes
        the active page. Returns (active page, ActionResult).
        """
        active = {"page": page}

        async def _attempt() -> bool:
            if trigger.href and self._is_external(trigger):
                outcome = await page.navigate(trigger.href, timeout_ms=self.config.page_timeout_ms)
                if not outcome.ok:
                    raise RuntimeError(outcome.error or f"HTTP {outcome.status}")
                await page.wait_for_idle(self.config.network_idle_timeout_ms)
                return True

            outcome = await page.navigate(trigger.source_url, timeout_ms=self.config.page_timeout_ms)
            if not outcome.ok:
                raise RuntimeError(outcome.error or f"HTTP {outcome.status}")
            await page.wait_for_idle(self.config.network_idle_timeout_ms)

            element = await self.locate_trigger(page, trigger)
            if element is None:
                return False
            tabs_before = len(context.pages())
            if not await element.click(timeout_ms=self.config.action_timeout_ms):
                return False

            tabs = context.pages()
            if len(tabs) > tabs_before:
                active["page"] = tabs[-1]
                logger.info("flow.new_tab_opened", url=active["page"].url)
            await active["page"].wait_for_idle(POST_CLICK_IDLE_TIMEOUT)
            await active["page"].sleep(POST_CLICK_SETTLE_MS)
            return True

        result = await run_with_retry(_attempt, self.policy, page.sleep, description=f"enter {trigger.text!r}")
        return active["page"], result

    def _is_external(self, trigger: BookingTrigger) -> bool:
        href = trigger.href or ""
        if href.lower().startswith(PSEUDO_SCHEMES) or href.startswith("#"):
            return False
        if not re.match(r"^https?://", href, re.I):
            return False
        return get_site_host(href) != get_site_host(trigger.source_url)

    async def locate_trigger(self, page: BrowserPage, trigger: BookingTrigger) -> Optional[ElementHandle]:
        hits = await visible_elements(page, trigger.selector, limit=1)
        if hits:
            return hits[0]
        pattern = re.compile(rf"^\s*{re.escape(trigger.text)}\s*$", re.I)
        return await find_by_text(page, ENTRY_TEXT_SELECTORS, pattern)

    async def read_booking_name(self, page: BrowserPage, trigger: BookingTrigger) -> str:
        name = await first_text(page, BOOKING_NAME_SELECTORS, min_len=2, max_len=120)
        if name:
            return name
        title = clean_text(await page.title())
        if title:
            return clean_text(re.split(r"\s[|\-–]\s", title)[0])
        return trigger.text

    async def read_booking_description(self, page: BrowserPage) -> Optional[str]:
        description = await first_text(page, BOOKING_DESCRIPTION_SELECTORS, min_len=10, max_len=500)
        if description:
            return description
        for meta in await page.query_all('meta[name="description"]'):
            content = clean_text(await meta.get_attribute("content"))
            if content:
                return content
        return None

    # --- Variations ---

    async def explore_variation(self, trigger: BookingTrigger, flow: BookingFlow, plan: VariationPlan) -> FlowVariation:
        """
        One end-to-end walk in its own isolated context.

        The context is always closed afterwards, even on failure.
        """
        variation = FlowVariation(group_size_mode=plan.mode, group_size=plan.group_size)
        bind_run_context(trigger_id=trigger.id, variation=plan.mode)
        started = time.monotonic()
        logger.info("flow.variation_started", flow_id=flow.id, mode=plan.mode, group_size=plan.group_size)

        context = await self.session.new_isolated_context()
        try:
            page = await context.new_page()
            page, entry = await self.enter(context, page, trigger)
            if not entry.success:
                variation.errors.append(entry.error or "entry failed")
                variation.finish(completed=False, reason=f"{ENTRY_FAILED}: {entry.error}")
            else:
                variation.entry_url = page.url
                if plan.group_size is not None:
                    applied = await self.set_group_size(page, plan.group_size)
                    if not applied:
                        variation.errors.append(f"could not apply group size {plan.group_size}")
                await self.walk_steps(page, variation, flow.id, started)
        except BrowserUnavailableError:
            raise
        except Exception as e:
            variation.errors.append(f"exploration failed: {e}")
            variation.finish(completed=False, reason=f"error: {e}")
            logger.error(
                "flow.variation_failed",
                flow_id=flow.id,
                mode=plan.mode,
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            await self.session.close_context(context)

        variation.exploration_time_ms = int((time.monotonic() - started) * 1000)
        variation.flow_type = determine_flow_type(
            variation.steps, variation.termination_reason, is_large_group_path(flow, plan)
        )
        logger.info(
            "flow.variation_completed",
            flow_id=flow.id,
            mode=plan.mode,
            steps=len(variation.steps),
            completed=variation.completed,
            reason=variation.termination_reason,
            flow_type=variation.flow_type,
            duration_ms=variation.exploration_time_ms,
        )
        return variation

    async def walk_steps(self, page: BrowserPage, variation: FlowVariation, flow_id: str, started: float) -> None:
        """
        The step state machine: classify, capture, progress, until a halt.

        Payment is checked before anything is captured or clicked, so a
        payment page is never recorded as a step nor acted upon.
        """
        seen: set[str] = set()

        while True:
            if (time.monotonic() - started) * 1000 > self.config.variation_timeout_ms:
                variation.finish(completed=False, reason=TIMEOUT)
                return
            if len(variation.steps) >= self.config.max_steps_per_flow:
                variation.finish(completed=False, reason=STEP_LIMIT)
                return

            signature = await page_signature(page)
            if signature in seen and len(variation.steps) >= LOOP_CHECK_AFTER_STEPS:
                variation.finish(completed=False, reason=LOOP_DETECTED)
                return
            seen.add(signature)

            if await is_payment_page(page):
                logger.info("flow.payment_reached", url=page.url, steps=len(variation.steps))
                variation.finish(completed=False, reason=PAYMENT_REACHED)
                return
            if await is_confirmation_page(page):
                variation.finish(completed=True, reason=CONFIRMATION_REACHED)
                return

            step_type = await classify_step(page)
            step = await self.capture_step(page, step_type, len(variation.steps) + 1, flow_id, variation.group_size_mode)
            variation.add_step(step)
            logger.info("flow.step", step=step.step_order, step_type=step_type, url=step.url)

            if step_type == "enquiry_form":
                variation.finish(completed=True, reason=ENQUIRY_REACHED)
                return
            if step_type == "details_form":
                variation.finish(completed=False, reason=DETAILS_REQUIRE_INPUT)
                return

            if not await self.has_progression(page, step_type):
                variation.finish(completed=False, reason=NO_PROGRESSION)
                return

            result = await run_with_retry(
                lambda: self.progress(page, step_type, signature),
                self.policy,
                page.sleep,
                description=f"progress from {step_type}",
            )
            if not result.success:
                step.errors.append(result.error or "progression failed")
                variation.finish(completed=False, reason=f"{RETRIES_EXHAUSTED}: {result.error}")
                return

            await page.sleep(self.config.action_delay_ms)

    async def capture_step(
        self,
        page: BrowserPage,
        step_type: StepType,
        order: int,
        flow_id: str,
        mode: GroupSizeMode,
    ) -> FlowStep:
        step = FlowStep(
            step_order=order,
            url=page.url,
            description=await describe_step(page, step_type),
            step_type=step_type,
        )
        try:
            options = await extract_step_options(page)
            step.available_options = None if options.is_empty() else options
            if step_type in ("addon_selection", "review_summary"):
                step.add_ons = await extract_add_ons(page)
            if step_type in ("details_form", "enquiry_form"):
                step.form_fields = await extract_form_fields(page)
        except Exception as e:
            step.errors.append(f"extraction failed: {e}")
            logger.warning("flow.extract_failed", step=order, error=str(e), error_type=type(e).__name__)

        if self.config.take_screenshots:
            path = build_screenshot_path(self.config.screenshot_dir, flow_id, mode, f"step{order}")
            step.screenshot_path = await page.screenshot(path)
        return step

    # --- Progression ---

    async def has_progression(self, page: BrowserPage, step_type: StepType) -> bool:
        if await self.find_next_button(page) is not None:
            return True
        if step_type in ("date_selection", "datetime_selection") and await first_visible(page, DATE_CELL_SELECTORS):
            return True
        if step_type in ("time_selection", "datetime_selection") and await first_visible(page, TIME_CELL_SELECTORS):
            return True
        if step_type == "product_selection" and await first_visible(page, PRODUCT_BUTTON_SELECTORS):
            return True
        return False

    async def progress(self, page: BrowserPage, step_type: StepType, before: str) -> bool:
        """
        One progression attempt for the current step.

        Picks the first date/time/product the step offers, then falls back to
        the next button. Succeeds only if the page changed. Nothing is clicked
        once a payment page is showing; reaching one counts as progress so the
        walk halts on it.
        """
        if await is_payment_page(page):
            return True

        start_url = page.url
        picks: list[tuple[str, ...]] = []
        if step_type in ("date_selection", "datetime_selection"):
            picks.append(DATE_CELL_SELECTORS)
        if step_type in ("time_selection", "datetime_selection"):
            picks.append(TIME_CELL_SELECTORS)
        if step_type == "product_selection":
            picks.append(PRODUCT_BUTTON_SELECTORS)

        for index, selectors in enumerate(picks):
            if not await self._click_first(page, selectors):
                continue
            if await is_payment_page(page):
                return True
            # A date pick on a combined step only reveals its slots.
            revealing = step_type == "datetime_selection" and index < len(picks) - 1
            if not revealing and page.url != start_url:
                return True
        changed = await page_signature(page) != before
        if changed and step_type != "datetime_selection":
            return True

        button = await self.find_next_button(page)
        if button is None:
            return changed
        if not await button.click(timeout_ms=self.config.action_timeout_ms):
            return False
        await self._settle(page)
        return await page_signature(page) != before

    async def _click_first(self, page: BrowserPage, selectors: tuple[str, ...]) -> bool:
        element = await first_visible(page, selectors)
        if element is None or not await element.click(timeout_ms=self.config.action_timeout_ms):
            return False
        await self._settle(page)
        return True

    async def _settle(self, page: BrowserPage) -> None:
        await page.wait_for_idle(POST_CLICK_IDLE_TIMEOUT)
        await page.sleep(POST_CLICK_SETTLE_MS)

    async def find_next_button(self, page: BrowserPage) -> Optional[ElementHandle]:
        """
        Best "next" control by tier. Anything naming a payment action is never returned.
        """
        for selectors, pattern in NEXT_BUTTON_TIERS:
            for selector in selectors:
                for element in await visible_elements(page, selector):
                    label = await element_text(element) or clean_text(await element.get_attribute("value"))
                    if RISKY_PAYMENT_CTA.search(label):
                        continue
                    if pattern is not None and not pattern.search(label):
                        continue
                    if not await element.is_enabled():
                        continue
                    return element
        return None

    # --- Group size ---

    async def set_group_size(self, page: BrowserPage, target: int) -> bool:
        """Apply a group size through whichever control the page has, verified by re-reading it."""
        for method in (self._set_via_select, self._set_via_stepper, self._set_via_number, self._set_via_option):
            name = method.__name__.lstrip("_")
            try:
                applied = await method(page, target)
            except Exception as e:
                logger.warning("flow.group_size_method_failed", method=name, error=str(e), error_type=type(e).__name__)
                continue
            if applied:
                logger.info("flow.group_size_set", target=target, method=name)
                return True
        logger.info("flow.group_size_not_set", target=target)
        return False

    async def _set_via_select(self, page: BrowserPage, target: int) -> bool:
        select = await first_visible(page, GROUP_SIZE_SELECT_SELECTORS)
        if select is None:
            return False
        choice: Optional[str] = None
        for option in await select.query_all("option"):
            label = await element_text(option)
            value = await option.get_attribute("value") or label
            parsed = parse_group_size_value(label) or parse_group_size_value(value)
            if parsed == target or (isinstance(parsed, str) and parse_int(parsed) == target):
                choice = value
                break
        if choice is None or not await select.select_option(choice):
            return False
        await page.sleep(POST_CLICK_SETTLE_MS)
        return await select.input_value() == choice

    async def _set_via_stepper(self, page: BrowserPage, target: int) -> bool:
        stepper = await first_visible(page, STEPPER_SELECTORS)
        if stepper is None:
            return False
        display = await first_visible(stepper, STEPPER_VALUE_SELECTORS)
        if display is None:
            return False

        async def _current() -> Optional[int]:
            return parse_int(await display.input_value() or await element_text(display))

        current = await _current()
        if current is None:
            return False

        plus = await self._stepper_button(stepper, STEPPER_PLUS_SELECTORS, last=True)
        minus = await self._stepper_button(stepper, STEPPER_MINUS_SELECTORS, last=False)
        for _ in range(STEPPER_MAX_CLICKS):
            if current == target:
                break
            button = plus if current < target else minus
            if button is None or not await button.click(timeout_ms=self.config.action_timeout_ms):
                return False
            await page.sleep(STEPPER_CLICK_DELAY_MS)
            updated = await _current()
            if updated is None or updated == current:
                # Stuck at the widget's limit.
                break
            current = updated
        return current == target

    async def _stepper_button(self, stepper: ElementHandle, selectors: tuple[str, ...], *, last: bool) -> Optional[ElementHandle]:
        for selector in selectors:
            buttons = await visible_elements(stepper, selector)
            if selector == "button" and len(buttons) < 2:
                continue
            if buttons:
                return buttons[-1] if (last and selector == "button") else buttons[0]
        return None

    async def _set_via_number(self, page: BrowserPage, target: int) -> bool:
        field = await first_visible(page, GROUP_SIZE_NUMBER_SELECTORS)
        if field is None or not await field.fill(str(target)):
            return False
        return parse_int(await field.input_value()) == target

    async def _set_via_option(self, page: BrowserPage, target: int) -> bool:
        for radio in await visible_elements(page, ", ".join(GROUP_SIZE_RADIO_SELECTORS)):
            value = await radio.get_attribute("value") or ""
            if parse_int(value) == target:
                if await radio.click(timeout_ms=self.config.action_timeout_ms):
                    return await radio.is_checked()

        pattern = re.compile(rf"^\s*{target}\s*(\+|guests?|people|players?|persons?)?\s*$", re.I)
        option = await find_by_text(page, GROUP_SIZE_OPTION_SELECTORS, pattern)
        if option is None or not await option.click(timeout_ms=self.config.action_timeout_ms):
            return False
        await page.sleep(POST_CLICK_SETTLE_MS)
        return True

    # --- Results ---

    def get_booking_system_discoveries(self) -> dict[str, BookingSystemDiscovery]:
        """Package-scraper results keyed by destination."""
        return dict(self._discoveries)
