"""ReceiptScanAgent: reads a receipt image with a hosted vision model.

This module defines the ReceiptScanAgent class, which sends a receipt image and the list of known companies to a Groq-hosted vision model and returns the model's raw text answer. Parsing that answer is left to the extraction parser; this class only deals with the provider call and the shape of its response.
"""

import base64

from colorlog.escape_codes import escape_codes
from groq import GroqError

from app.agents.base import BaseScanAgent
from app.agents.prompts import SCAN_PROMPT_LOG_LABEL, SCAN_PROMPT_TEMPLATE
from app.agents.registry import AgentRegistry
from app.core.errors import ExtractionFailure
from app.core.settings import Settings
from app.core.utils import Related, get_logger

logger = get_logger("receipts-dashboard.agent")


def _get_color(color: str) -> str:
    return escape_codes.get(color, "")


@AgentRegistry.register("groq")
class ReceiptScanAgent(BaseScanAgent):
    """Agent that asks an LLM for the total amount and company of a receipt."""

    def __init__(self, llm_client: object, settings: Settings) -> None:
        """Initialize the ReceiptScanAgent with an LLM client and settings."""
        self.llm_client = llm_client
        self.settings = settings

    def scan(self, image: bytes, mime_type: str, company_names: list[str]) -> str | None:
        """Send the image to the model and return its free-text answer."""
        cyan = _get_color("cyan")
        green = _get_color("green")
        yellow = _get_color("yellow")
        reset = _get_color("reset")
        company_list = ", ".join(company_names) if company_names else "UNKNOWN"
        prompt = SCAN_PROMPT_TEMPLATE.format(company_list=company_list)
        encoded = base64.b64encode(image).decode("ascii")
        logger.info(f"{cyan}INPUT: {mime_type} image, {len(image)} bytes, {len(company_names)} companies{reset}")
        logger.info(f"{yellow}PROMPT: {SCAN_PROMPT_LOG_LABEL}{reset}")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                ],
            }
        ]
        try:
            logger.info(f"{yellow}AGENT: Calling vision model {self.settings.scan_model}...{reset}")
            completion = self.llm_client.chat.completions.create(
                model=self.settings.scan_model,
                messages=messages,
                temperature=self.settings.scan_temperature,
                max_completion_tokens=self.settings.scan_max_completion_tokens,
            )
        except GroqError as exc:
            msg = f"Groq API call failed: {exc}"
            logger.warning(msg)
            raise ExtractionFailure(msg) from exc
        answer = self._collect_answer(completion)
        logger.info(f"{green}OUTPUT: {answer}{reset}")
        return answer

    def _collect_answer(self, completion: object) -> str | None:
        """Pull the text out of the completion, whatever number of choices it carries."""
        choices = Related.of(getattr(completion, "choices", None))
        if choices.kind == "none":
            logger.warning("Model returned no choices")
            return None
        if choices.kind == "many":
            logger.info(f"Model returned {len(choices.items)} choices; using the first")
        message = getattr(choices.first, "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            logger.warning("Model answer is empty")
            return None
        return content.strip()
