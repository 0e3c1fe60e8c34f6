"""Browser fingerprint randomization for anti-bot evasion.

Builds a per-page evasion profile: a user agent from a fixed rotation list
plus navigator and screen overrides injected before any page script runs.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)


USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:123.0) Gecko/20100101 Firefox/123.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

LANGUAGES = ["en-US", "en-GB", "de-DE", "fr-FR", "es-ES"]


@dataclass
class EvasionProfile:
    """Fingerprint values fixed for one page's lifetime."""

    user_agent: str
    languages: List[str] = field(default_factory=list)
    screen_width: int = 1366
    screen_height: int = 768
    plugin_count: int = 3

    def to_init_script(self) -> str:
        """Render the navigator/screen override script."""
        return _INIT_SCRIPT_TEMPLATE % {
            "languages": json.dumps(self.languages),
            "plugin_count": self.plugin_count,
            "width": self.screen_width,
            "height": self.screen_height,
        }


_INIT_SCRIPT_TEMPLATE = """
(() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => false });

    const languages = %(languages)s;
    Object.defineProperty(navigator, 'languages', { get: () => languages });

    const plugins = new Array(%(plugin_count)d).fill(null).map(() => ({
        name: 'Chrome PDF Plugin',
        filename: 'internal-pdf-viewer',
        description: 'Portable Document Format',
    }));
    Object.defineProperty(navigator, 'plugins', { get: () => plugins });

    if (window.Notification) {
        Object.defineProperty(window.Notification, 'permission', { get: () => 'default' });
    }

    Object.defineProperty(window.screen, 'width', { get: () => %(width)d });
    Object.defineProperty(window.screen, 'height', { get: () => %(height)d });
    Object.defineProperty(window.screen, 'availWidth', { get: () => %(width)d });
    Object.defineProperty(window.screen, 'availHeight', { get: () => %(height)d });
})();
"""


class FingerprintRandomizer:
    """Generates randomized evasion profiles."""

    def __init__(self, user_agents: List[str] = None, languages: List[str] = None):
        self.user_agents = list(user_agents or USER_AGENTS)
        self.languages = list(languages or LANGUAGES)

    def get_random_profile(self) -> EvasionProfile:
        """
        Generate a random evasion profile.

        Returns:
            EvasionProfile with user agent, two languages and screen geometry
        """
        return EvasionProfile(
            user_agent=random.choice(self.user_agents),
            languages=random.sample(self.languages, 2),
            screen_width=1366 + random.randint(0, 499),
            screen_height=768 + random.randint(0, 299),
            plugin_count=3,
        )

    def get_context_options(self, profile: EvasionProfile) -> dict:
        """Playwright context options matching a profile."""
        return {
            "user_agent": profile.user_agent,
            "locale": profile.languages[0],
            "screen": {"width": profile.screen_width, "height": profile.screen_height},
            "ignore_https_errors": True,
        }


# Global fingerprint randomizer instance
fingerprint_randomizer = FingerprintRandomizer()
