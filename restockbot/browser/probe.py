"""Product-page probe.

Inspects a loaded product page and, when it is purchasable, tries to put the
configured quantity in the cart.  Written against the selectors and wording
of Square Online storefronts; other shops will mostly classify as
``not_found``.

Steps performed by :func:`run_probe`:

1. **Wait** — storefronts render the buy box client-side, so poll until a
   cart button or a stock / 404 marker is present, up to a hard ceiling.
2. **Classify** — :func:`classify_page` maps page text plus cart-button state
   to a :class:`~restockbot.core.models.ProbeStatus`.
3. **Buy** (available only) — pick a variant, raise the quantity, click
   add-to-cart, and report a
   :class:`~restockbot.core.models.PurchaseOutcome`.

The pure helpers (:func:`classify_page`, :func:`is_page_ready`,
:func:`preferred_option_index`) hold the decision rules and are unit tested
without a browser.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator, Page

from restockbot.core.models import ProbeStatus, PurchaseOutcome

__all__ = [
    "CartButton",
    "classify_page",
    "is_page_ready",
    "preferred_option_index",
    "run_probe",
]

logger = logging.getLogger(__name__)

_CART_BUTTON_SELECTORS: Final[tuple[str, ...]] = (
    'button[data-action*="addToCart"]',
    'button[data-dd-action-name="add-to-cart"]',
    "button.btn-fill-primary-lg",
    "button.cart-button",
)
_CART_BUTTON_TEXT: Final[re.Pattern[str]] = re.compile(r"add to cart|out of stock", re.I)

_NOT_FOUND_MARKERS: Final[tuple[str, ...]] = ("404", "page not found")
_SOLD_OUT_MARKERS: Final[tuple[str, ...]] = ("out of stock", "sold out")

#: Variant labels preferred in this order; otherwise the last option wins.
_PREFERRED_OPTIONS: Final[tuple[str, ...]] = ("booster display", "24 packs")

_QUANTITY_STEP_TIMEOUT: Final[float] = 0.5
_QUANTITY_STEP_POLL: Final[float] = 0.05
_SETTLE_DELAY: Final[float] = 0.2
_CLICK_TIMEOUT_MS: Final[float] = 2_000

_BODY_TEXT_JS: Final[str] = "() => document.body ? document.body.innerText : ''"
_RADIO_LABEL_JS: Final[str] = """el => {
    const byFor = el.id ? document.querySelector(`label[for="${el.id}"]`) : null;
    const label = byFor || el.closest('label');
    return ((label && label.textContent) || el.value || '').trim();
}"""


@dataclass(frozen=True)
class CartButton:
    """What the probe saw of the add-to-cart button."""

    text: str
    disabled: bool


# ---------------------------------------------------------------------------
# Decision rules (pure)
# ---------------------------------------------------------------------------


def classify_page(body_text: str, button: CartButton | None) -> ProbeStatus:
    """Classify a product page.

    Rules, first match wins:

    * body mentions ``404`` or ``page not found`` → ``not_found``
    * cart button disabled or saying out of stock / sold out → ``out_of_stock``
    * any other cart button → ``available``
    * body mentions out of stock / sold out → ``out_of_stock``
    * otherwise → ``not_found``
    """
    text = body_text.lower()
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return ProbeStatus.NOT_FOUND

    if button is not None:
        label = button.text.lower()
        if button.disabled or any(marker in label for marker in _SOLD_OUT_MARKERS):
            return ProbeStatus.OUT_OF_STOCK
        return ProbeStatus.AVAILABLE

    if any(marker in text for marker in _SOLD_OUT_MARKERS):
        return ProbeStatus.OUT_OF_STOCK
    return ProbeStatus.NOT_FOUND


def is_page_ready(body_text: str, button: CartButton | None) -> bool:
    """``True`` once there is enough on the page to classify it."""
    if button is not None:
        return True
    text = body_text.lower()
    return any(marker in text for marker in (*_NOT_FOUND_MARKERS, *_SOLD_OUT_MARKERS))


def preferred_option_index(labels: Sequence[str]) -> int:
    """Pick the variant to buy from option *labels* (``-1`` when empty)."""
    lowered = [label.lower() for label in labels]
    for wanted in _PREFERRED_OPTIONS:
        for index, label in enumerate(lowered):
            if wanted in label:
                return index
    return len(labels) - 1


# ---------------------------------------------------------------------------
# Page access
# ---------------------------------------------------------------------------


async def _body_text(page: Page) -> str:
    return await page.evaluate(_BODY_TEXT_JS)


async def _find_cart_button(page: Page) -> Locator | None:
    for selector in _CART_BUTTON_SELECTORS:
        candidate = page.locator(selector).first
        if await candidate.count():
            return candidate
    candidate = page.locator("button", has_text=_CART_BUTTON_TEXT).first
    if await candidate.count():
        return candidate
    return None


async def _describe(button: Locator | None) -> CartButton | None:
    if button is None:
        return None
    text = (await button.text_content() or "").strip()
    disabled = await button.is_disabled() or await button.get_attribute("aria-disabled") == "true"
    return CartButton(text=text, disabled=disabled)


async def _inspect(page: Page) -> tuple[str, CartButton | None]:
    return await _body_text(page), await _describe(await _find_cart_button(page))


async def _wait_until_ready(page: Page, timeout: float, poll: float) -> tuple[str, CartButton | None]:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    body, button = await _inspect(page)
    while not is_page_ready(body, button) and loop.time() < deadline:
        await asyncio.sleep(poll)
        body, button = await _inspect(page)
    return body, button


# ---------------------------------------------------------------------------
# Purchase flow
# ---------------------------------------------------------------------------


async def _select_variant(page: Page) -> bool:
    """Choose a variant from the first dropdown, else the first radio group."""
    selects = page.locator("select")
    for index in range(await selects.count()):
        select = selects.nth(index)
        labels = await select.locator("option").all_text_contents()
        if len(labels) <= 1:
            continue
        await select.select_option(index=preferred_option_index(labels))
        return True

    groups: dict[str, list[Locator]] = {}
    for radio in await page.locator('input[type="radio"]').all():
        name = await radio.get_attribute("name") or "default"
        groups.setdefault(name, []).append(radio)

    for radios in groups.values():
        if len(radios) <= 1:
            continue
        labels = [await radio.evaluate(_RADIO_LABEL_JS) for radio in radios]
        await radios[preferred_option_index(labels)].click()
        return True
    return False


async def _current_quantity(page: Page) -> int:
    spinbutton = page.locator('[role="spinbutton"]').first
    if await spinbutton.count():
        raw = await spinbutton.get_attribute("aria-valuenow") or await spinbutton.text_content()
        return _to_quantity(raw)
    number_input = page.locator('input[type="number"]').first
    if await number_input.count():
        return _to_quantity(await number_input.input_value())
    return 1


def _to_quantity(raw: str | None) -> int:
    try:
        return int((raw or "").strip()) or 1
    except ValueError:
        return 1


async def _find_increment_button(page: Page) -> Locator | None:
    by_label = page.locator('button[aria-label*="ncrement" i]').first
    if await by_label.count():
        return by_label
    siblings = page.locator('[role="spinbutton"]').first.locator("xpath=..").locator("button")
    if await siblings.count() >= 2:
        return siblings.last
    return None


async def _set_quantity(page: Page, target: int) -> bool:
    """Click the increment control until the page shows *target* units."""
    if target <= 1:
        return True

    increment = await _find_increment_button(page)
    if increment is None:
        number_input = page.locator('input[type="number"]').first
        if not await number_input.count():
            return False
        await number_input.fill(str(target))
        return await _current_quantity(page) >= target

    current = await _current_quantity(page)
    attempts = 0
    loop = asyncio.get_running_loop()
    while current < target and attempts < target * 2:
        expected = current + 1
        await increment.click(timeout=_CLICK_TIMEOUT_MS)
        deadline = loop.time() + _QUANTITY_STEP_TIMEOUT
        current = await _current_quantity(page)
        while current < expected and loop.time() < deadline:
            await asyncio.sleep(_QUANTITY_STEP_POLL)
            current = await _current_quantity(page)
        attempts += 1
    return current >= target


async def _click_cart(page: Page) -> PurchaseOutcome:
    button = await _find_cart_button(page)
    if button is None:
        return PurchaseOutcome.NOT_ATTEMPTED
    described = await _describe(button)
    if described is not None and described.disabled:
        return PurchaseOutcome.ATTEMPTED_FAILED
    try:
        await button.click(timeout=_CLICK_TIMEOUT_MS)
    except PlaywrightError as exc:
        logger.warning("Add-to-cart click failed: %s", exc)
        return PurchaseOutcome.ATTEMPTED_FAILED
    return PurchaseOutcome.ATTEMPTED_SUCCEEDED


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def run_probe(
    page: Page,
    quantity: int,
    *,
    ready_timeout: float = 5.0,
    ready_poll: float = 0.5,
) -> tuple[ProbeStatus, PurchaseOutcome | None]:
    """Probe *page* and, if the product is available, try to add it to the cart.

    Args:
        page: Loaded product page.
        quantity: Units to put in the cart.
        ready_timeout: Ceiling on the wait for dynamic content.
        ready_poll: Step between readiness checks.

    Returns:
        ``(status, outcome)``; ``outcome`` is ``None`` unless the status is
        ``available``.

    Raises:
        playwright.async_api.Error: The page went away or a script failed.
    """
    body, button = await _wait_until_ready(page, ready_timeout, ready_poll)
    status = classify_page(body, button)
    logger.debug("Probe classified %s as %s", page.url, status)
    if status is not ProbeStatus.AVAILABLE:
        return status, None

    if await _select_variant(page):
        await asyncio.sleep(_SETTLE_DELAY)
    if quantity > 1:
        if not await _set_quantity(page, quantity):
            logger.warning("Could not raise quantity to %d; adding what the page shows", quantity)
        await asyncio.sleep(_SETTLE_DELAY)

    outcome = await _click_cart(page)
    logger.info("Add-to-cart on %s: %s", page.url, outcome)
    return status, outcome
