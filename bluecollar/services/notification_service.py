"""Email copies of booking notifications, rendered from Jinja2 templates."""
import logging
from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplatesNotFound, select_autoescape

from bluecollar.metrics import EMAIL_FAILED, EMAIL_SENT
from bluecollar.services.notification_providers import LogProvider, NotificationProvider

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "notifications" / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


class NotificationService:
    def __init__(self, provider: Optional[NotificationProvider] = None):
        self.provider = provider or LogProvider()

    def render(self, template_name: str, locale: str = "en", context: Dict = None) -> str:
        # locale first, english as the fallback
        try:
            template = _env.select_template([f"{locale}/{template_name}", f"en/{template_name}"])
        except TemplatesNotFound:
            raise RuntimeError("Template not found: %s" % template_name)
        return template.render(**(context or {}))

    async def send_email(self, to: str, subject: str, template_name: str, context: Dict = None, locale: str = "en", meta: Dict = None):
        body = self.render(template_name, locale=locale, context=context)
        try:
            res = await self.provider.send_email(to=to, subject=subject, body=body, meta=meta)
        except Exception:
            EMAIL_FAILED.labels(provider=self.provider.name).inc()
            logger.exception("Email to %s failed (%s)", to, template_name)
            raise
        EMAIL_SENT.labels(provider=self.provider.name).inc()
        return res
