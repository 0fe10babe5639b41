"""
AI creative insights: turns a portfolio summary into funnel-stage recommendations via Anthropic.
"""
import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

from killscale.config import Settings, get_settings
from killscale.schemas.insights import CreativeInsightsSummary
from killscale.utils import round_half_up

logger = logging.getLogger(__name__)

STAGES = ("hook", "hold", "click", "convert")

SYSTEM_PROMPT = """You are an expert Meta Ads creative strategist. You analyze creative performance data to provide actionable insights organized by funnel stage.

FUNNEL STAGES:
- Hook (video only): Captures initial attention. Measured by Thumbstop Rate (video views / impressions). Benchmark: 25%+ is good.
- Hold (video only): Keeps viewers watching. Measured by Hold Rate (ThruPlays / video views) and Completion Rate (P100 / impressions). Benchmarks: 30%+ hold, 15%+ completion.
- Click (all assets): Drives action. Measured by CTR and CPC. Benchmarks: 2%+ CTR, <$1 CPC.
- Convert (all assets): Generates revenue. Measured by ROAS. Benchmark: 2x+ ROAS.

SCORE INTERPRETATION (0-100):
- 75-100: Excellent (green)
- 50-74: Good (amber)
- 25-49: Below average (orange)
- 0-24: Poor (red)
- null: Insufficient data (<$50 spend)

SCORE DISTRIBUTIONS:
Each distribution is an array of 4 numbers representing counts of assets in score ranges: [0-24, 25-49, 50-74, 75-100]

RESPONSE FORMAT (JSON):
{
  "overall": "1-2 sentence account summary highlighting strongest and weakest funnel stages",
  "stages": {
    "hook": {
      "headline": "Brief status (e.g., 'Strong attention-grabbing')",
      "insight": "What the data shows about this stage performance",
      "winner": "Top performer callout with name and score",
      "opportunity": "Specific weakness or underperformer to address",
      "recommendation": "Concrete action to improve this stage"
    },
    "hold": { ... same structure ... },
    "click": { ... same structure ... },
    "convert": { ... same structure ... }
  },
  "biggestWin": {
    "summary": "What's working best across all stages",
    "impact": "Quantified benefit (e.g., '$X revenue' or 'X% above benchmark')"
  },
  "biggestOpportunity": {
    "summary": "Most impactful improvement area",
    "potential": "What could be gained (e.g., 'Could add $X/mo' or 'X% improvement potential')"
  }
}

RULES:
1. Be specific - reference actual asset names and scores from the data
2. Be actionable - every recommendation should be something the user can do today
3. For Hook/Hold, acknowledge when data is limited (video-only, requires $50+ spend)
4. If a funnel stage has no data, say "Insufficient data" and recommend getting more assets to this spend threshold
5. Keep insights concise - 1-2 sentences each
6. Focus on high-spend underperformers as the biggest opportunities
7. Never recommend pausing/killing individual ads - focus on creative testing recommendations"""

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class InsightsServiceError(RuntimeError):
    """The AI provider failed or returned nothing usable (HTTP 500)."""


def _number(value: float) -> str:
    """Thousands separators, up to three decimals, no trailing zeros."""
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return text or "0"


def _optional(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def build_context(summary: CreativeInsightsSummary) -> str:
    """Plain-text portfolio digest fed to the model."""
    lines = [
        "=== PORTFOLIO OVERVIEW ===",
        f"Total Assets: {summary.total_assets} ({summary.video_count} videos, {summary.image_count} images)",
        f"Total Spend: ${_number(summary.total_spend)}",
        f"Total Revenue: ${_number(summary.total_revenue)}",
        f"Overall ROAS: {f'{summary.total_revenue / summary.total_spend:.2f}' if summary.total_spend > 0 else 0}x",
        f"Active Ads: {summary.active_ads_count}",
        "",
        "=== AVERAGE SCORES ===",
        f"Hook (video only): {_optional(summary.avg_scores.hook)}",
        f"Hold (video only): {_optional(summary.avg_scores.hold)}",
        f"Click (all assets): {_optional(summary.avg_scores.click)}",
        f"Convert (all assets): {_optional(summary.avg_scores.convert)}",
        "",
        "=== SCORE DISTRIBUTIONS [0-24, 25-49, 50-74, 75-100] ===",
    ]
    for stage in STAGES:
        lines.append(f"{stage.capitalize()}: {json.dumps(getattr(summary.score_distributions, stage), separators=(',', ':'))}")
    lines.append("")

    for title, performers, empty in (
        ("=== TOP PERFORMERS (by score) ===", summary.top_performers, "No data"),
        ("=== BOTTOM PERFORMERS (high spend, low score - opportunities) ===", summary.bottom_performers, "No underperformers found"),
    ):
        lines.append(title)
        for stage in STAGES:
            entries = getattr(performers, stage)
            if entries:
                lines.append(f"{stage.capitalize()}:")
                for index, p in enumerate(entries, start=1):
                    lines.append(f'  {index}. "{p.name}" - Score: {p.score}, Spend: ${round_half_up(p.spend)}')
            else:
                lines.append(f"{stage.capitalize()}: {empty}")
        lines.append("")

    copy = summary.copy_insights
    lines.append("=== COPY PERFORMANCE ===")
    lines.append(f"Total Copy Variations: {copy.total_variations}")
    if copy.top_headline:
        lines.append(
            f'Best Headline: "{copy.top_headline.text}" - ROAS: {copy.top_headline.roas:.2f}x, '
            f"Spend: ${round_half_up(copy.top_headline.spend)}"
        )
    if copy.top_primary_text:
        text = copy.top_primary_text.text
        truncated = text[:100] + "..." if len(text) > 100 else text
        lines.append(
            f'Best Primary Text: "{truncated}" - ROAS: {copy.top_primary_text.roas:.2f}x, '
            f"Spend: ${round_half_up(copy.top_primary_text.spend)}"
        )
    lines.append("")

    fatigue = summary.fatigue_breakdown
    lines.extend([
        "=== FATIGUE STATUS ===",
        f"Healthy: {fatigue.healthy}",
        f"Warning: {fatigue.warning}",
        f"Fatiguing: {fatigue.fatiguing}",
        f"Fatigued: {fatigue.fatigued}",
    ])
    return "\n".join(lines)


def parse_insights(content: str) -> Optional[Dict[str, Any]]:
    """Pull the outermost JSON object out of the model's reply; None when there isn't one."""
    match = JSON_OBJECT_PATTERN.search(content or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError as exc:
        logger.error(f"Failed to parse AI response: {exc}")
        return None
    return parsed if isinstance(parsed, dict) else None


class CreativeInsightsService:
    """Calls the Anthropic Messages API for creative portfolio insights."""

    def __init__(self, settings: Optional[Settings] = None, client: Any = None):
        self.settings = settings or get_settings()
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.settings.anthropic_api_key:
                raise InsightsServiceError("AI service unavailable")
            from anthropic import Anthropic

            self._client = Anthropic(
                api_key=self.settings.anthropic_api_key,
                http_client=httpx.Client(timeout=60.0),
            )
        return self._client

    def generate(self, summary: CreativeInsightsSummary) -> Dict[str, Any]:
        """
        Ask the model for insights on a portfolio summary.

        Returns:
            {"insights": dict, "usage": dict} when the reply holds JSON,
            otherwise {"raw": str, "usage": dict}

        Raises:
            InsightsServiceError: provider failure or empty reply
        """
        context = build_context(summary)
        client = self._get_client()
        logger.info(f"Requesting creative insights from {self.settings.anthropic_model}, context length {len(context)}")

        try:
            response = client.messages.create(
                model=self.settings.anthropic_model,
                max_tokens=self.settings.insights_max_tokens,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": f"Analyze this creative portfolio and provide insights in JSON format:\n\n{context}",
                    }
                ],
            )
        except Exception as exc:
            logger.error(f"Anthropic API error: {type(exc).__name__}: {exc}")
            raise InsightsServiceError("AI service unavailable") from exc

        blocks = getattr(response, "content", None) or []
        if not blocks:
            raise InsightsServiceError("Empty response from AI")

        text = getattr(blocks[0], "text", "") or ""
        usage = _usage_dict(getattr(response, "usage", None))

        insights = parse_insights(text)
        if insights is not None:
            return {"insights": insights, "usage": usage}
        return {"raw": text, "usage": usage}


def _usage_dict(usage: Any) -> Optional[Dict[str, Any]]:
    if usage is None:
        return None
    if isinstance(usage, dict):
        return usage
    return {
        "input_tokens": getattr(usage, "input_tokens", None),
        "output_tokens": getattr(usage, "output_tokens", None),
    }
