"""Prompt templates for AI-assisted bill extraction.

Prompts are versioned so logged results can be traced to the wording used.
"""

from __future__ import annotations

from dataclasses import dataclass

# v1.0: Four bill fields, strict JSON, ISO due dates
PROMPT_VERSION = "v1.0"

BILL_FIELDS = ("amount", "serviceProvider", "paymentPortal", "dueDate")


@dataclass
class BillPrompt:
    """Prompt template for bill field extraction.

    Attributes:
        version: Prompt version for traceability.
        instructions: Text block sent after the attached PDF document.
    """

    version: str = PROMPT_VERSION

    instructions: str = """You are a bill parsing assistant. Extract the following information from this bill text and return ONLY valid JSON with no markdown, no code blocks, no explanations.

Extract these fields from the attached PDF document:
- amount: The total amount due (number, no dollar signs or commas)
- serviceProvider: The company/service provider name (string)
- paymentPortal: Any website URL for making payments (string, full URL with https://)
- dueDate: The payment due date (string, format YYYY-MM-DD)

Rules:
- If a field is not found, use null
- For amount, extract only the total due or amount due (not balance, not previous charges)
- For serviceProvider, extract the main company name at the top of the bill
- For paymentPortal, look for "pay online at", "visit", or any payment URLs
- For dueDate, look for "due date", "payment due", "please pay by"
- Always convert dueDate to ISO 8601 format YYYY-MM-DD, even if the bill uses MM/DD/YYYY or other formats.

Return JSON only:"""

    def build_content(self, pdf_base64: str) -> list[dict]:
        """Build the user message content blocks.

        Args:
            pdf_base64: Base64-encoded PDF document.

        Returns:
            Document block followed by the instruction text block.
        """
        return [
            {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": pdf_base64,
                },
            },
            {
                "type": "text",
                "text": self.instructions,
            },
        ]
