"""
CoinShop - AI Vision / Pricing Service

Sends item photos and a description to a hosted LLM and gets back a
structured identification, grade and valuation. The service is treated as
unreliable: any failure surfaces as ``UpstreamError`` with a generic
message, and the cause is logged.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from coinshop.core.config import settings
from coinshop.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Structured output from the analyzer."""

    identification: dict[str, Any]
    grade: dict[str, Any]
    valuation: dict[str, Any]
    market_trend: Optional[str] = None
    demand_level: Optional[str] = None
    avg_days_to_sell: Optional[int] = None
    pricing_strategy: Optional[str] = None
    key_factors: list[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def estimated_value(self) -> Optional[float]:
        return _as_float(self.valuation.get("mid"))

    @property
    def recommended_price(self) -> Optional[float]:
        return _as_float(self.valuation.get("recommended_price"))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class AIAnalyzer:
    """
    Coin identification and valuation via the OpenAI chat API.

    Usage:
        analyzer = AIAnalyzer()
        result = await analyzer.analyze(["https://.../obverse.jpg"], "1921 Morgan dollar")
    """

    SYSTEM_PROMPT = (
        "You are an expert numismatist and coin dealer. "
        "Return only valid JSON, no markdown formatting."
    )

    ANALYSIS_PROMPT = """Identify, grade and value the coin or collectible described below.

Return ONLY valid JSON with this shape:

{
  "identification": {"name": "...", "year": 1921, "mint": "P/D/S/O/CC or null", "denomination": "...", "category": "..."},
  "grade": {"estimate": "e.g. MS-63 or VF-30", "details": "notable wear, damage or cleaning"},
  "valuation": {"low": 0.0, "mid": 0.0, "high": 0.0, "recommended_price": 0.0},
  "market_trend": "rising/stable/declining",
  "demand_level": "high/medium/low",
  "avg_days_to_sell": 14,
  "pricing_strategy": "one sentence",
  "key_factors": ["..."],
  "confidence": 0.0-1.0
}

Item details:
"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.openai_model
        api_key = api_key or settings.openai_api_key
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(api_key=api_key, timeout=settings.openai_timeout_seconds)
        else:
            self.client = None
            logger.warning("AI analysis disabled - no OpenAI API key configured")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _build_messages(
        self,
        images: list[str],
        text: str,
        comparables: Optional[list[dict[str, Any]]] = None,
    ) -> list[dict[str, Any]]:
        prompt = f"{self.ANALYSIS_PROMPT}\n{text.strip() or 'No description provided.'}"
        if comparables:
            lines = "\n".join(
                f"- {c.get('title')}: ${c.get('price')}" for c in comparables[:10]
            )
            prompt += f"\n\nRecent comparable sales:\n{lines}"

        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        for url in images[:4]:
            content.append({"type": "image_url", "image_url": {"url": url}})

        return [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

    async def analyze(
        self,
        images: list[str],
        text: str,
        comparables: Optional[list[dict[str, Any]]] = None,
    ) -> AnalysisResult:
        """
        Analyze an item.

        Args:
            images: Image URLs (or data URLs)
            text: Free-text description (title, year, mint, grade...)
            comparables: Recent sold listings to ground the valuation

        Raises:
            UpstreamError: analyzer unavailable, errored or returned bad JSON
        """
        if not self.enabled:
            raise UpstreamError("Analysis failed", details={"reason": "not_configured"})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(images, text, comparables),
                temperature=0.2,
                max_tokens=800,
                response_format={"type": "json_object"},
            )
            data = json.loads(response.choices[0].message.content or "")
        except OpenAIError as e:
            logger.error(f"AI analysis request failed: {e}")
            raise UpstreamError("Analysis failed", cause=e)
        except (json.JSONDecodeError, IndexError, AttributeError) as e:
            logger.error(f"AI analysis returned unparseable output: {e}")
            raise UpstreamError("Analysis failed", cause=e)

        if not isinstance(data, dict) or not isinstance(data.get("valuation"), dict):
            logger.error("AI analysis response missing valuation")
            raise UpstreamError("Analysis failed")

        return AnalysisResult(
            identification=data.get("identification") or {},
            grade=data.get("grade") or {},
            valuation=data["valuation"],
            market_trend=data.get("market_trend"),
            demand_level=data.get("demand_level"),
            avg_days_to_sell=data.get("avg_days_to_sell"),
            pricing_strategy=data.get("pricing_strategy"),
            key_factors=list(data.get("key_factors") or []),
            confidence=_as_float(data.get("confidence")) or 0.0,
        )


def describe_item(
    title: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
    year: Optional[int] = None,
    mint: Optional[str] = None,
    grade: Optional[str] = None,
    certification: Optional[str] = None,
) -> str:
    """Flatten item fields into the text block sent to the analyzer."""
    parts = [
        ("Title", title),
        ("Description", description),
        ("Category", category),
        ("Year", year),
        ("Mint", mint),
        ("Grade", grade),
        ("Certification", certification),
    ]
    return "\n".join(f"{label}: {value}" for label, value in parts if value)
