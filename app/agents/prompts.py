"""Prompts for the receipt scanning agent."""

SCAN_PROMPT_TEMPLATE = """
You are an expert data extractor. Look at this receipt.
1. Find the TOTAL amount (just the number, eg 1500.50).
2. Identify which of these companies it belongs to: {company_list}.

Return the result EXACTLY as this JSON object and nothing else, without markdown formatting:
{{"amount": 1500.50, "company": "Exact Company Name or UNKNOWN"}}
"""

SCAN_PROMPT_LOG_LABEL = "Extract receipt total and company (JSON: amount, company)"
