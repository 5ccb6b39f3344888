"""
advisor.py
AI business summary (OpenAI chat completion). Display-only: every failure
degrades to a fixed message and nothing else in the app depends on the result.
"""

from __future__ import annotations

import json
import logging

from openai import OpenAI

from config import Settings, get_settings
from reports import service_counts

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "AI analysis is unavailable right now. Check the OpenAI API key and try again."

SYSTEM_PROMPT = "You are a senior business consultant for a car wash. Be concise, practical and specific."

USER_PROMPT_TEMPLATE = """Here is the current data:
- Total customers: {total_customers}
- Total revenue (all time): {total_revenue:.2f} {currency}
- Most popular service: {top_service}
- Last {sample_size} transactions: {sample}

Write a short 3-point executive summary:
1. Revenue trend analysis.
2. A customer loyalty recommendation based on the data.
3. A marketing idea to lift sales of under-performing services.
"""

_SAMPLE_SIZE = 30


def build_prompt(transactions, customers, currency: str = "TRY") -> str:
    """Summarize the snapshot instead of sending raw records."""
    recent = transactions[-_SAMPLE_SIZE:]
    counts = service_counts(transactions)
    top_service = counts.most_common(1)[0][0] if counts else "n/a"
    sample = [
        {
            "date": t.timestamp,
            "amount": float(t.final_amount),
            "services": [i.name for i in t.items],
        }
        for t in recent
    ]
    return USER_PROMPT_TEMPLATE.format(
        total_customers=len(customers),
        total_revenue=float(sum(t.final_amount for t in transactions)),
        currency=currency,
        top_service=top_service,
        sample_size=len(recent),
        sample=json.dumps(sample, ensure_ascii=False),
    )


def _make_client(settings: Settings) -> OpenAI:
    kwargs = {"api_key": settings.openai_api_key}
    if settings.openai_base_url:
        kwargs["base_url"] = settings.openai_base_url
    return OpenAI(**kwargs)


def analyze_business(transactions, customers, settings: Settings | None = None) -> str:
    """Return the advisor's text, or a static fallback message on any failure."""
    settings = settings or get_settings()
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; skipping AI analysis")
        return UNAVAILABLE_MESSAGE

    prompt = build_prompt(transactions, customers, currency=settings.currency)
    try:
        client = _make_client(settings)
        completion = client.chat.completions.create(
            model=settings.ai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.4,
            max_tokens=500,
        )
        text = (completion.choices[0].message.content or "").strip()
    except Exception:
        logger.exception("AI analysis failed on model=%s", settings.ai_model)
        return UNAVAILABLE_MESSAGE

    return text or UNAVAILABLE_MESSAGE
