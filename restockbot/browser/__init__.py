"""Browser hosting: the host contract, the Playwright adapter, and the probe."""

from restockbot.browser.host import BrowserHost, HostListener
from restockbot.browser.playwright_host import PlaywrightHost
from restockbot.browser.probe import classify_page, preferred_option_index, run_probe

__all__ = [
    "BrowserHost",
    "HostListener",
    "PlaywrightHost",
    "classify_page",
    "preferred_option_index",
    "run_probe",
]
