"""
Creative score computation: funnel-stage composite scores, fatigue, score bands.

Scores are 0-100. Hook and hold only apply to video; click and convert apply to
every asset. Nothing is scored until an asset has spent MIN_SCORE_SPEND.
"""
from typing import NamedTuple, Optional

from killscale.utils import round_half_up

MIN_SCORE_SPEND = 50.0

FATIGUE_STATUSES = ("fresh", "healthy", "warning", "fatiguing", "fatigued")


class CompositeScores(NamedTuple):
    hook_score: Optional[int]
    hold_score: Optional[int]
    click_score: Optional[int]
    convert_score: Optional[int]


class FatigueResult(NamedTuple):
    score: float
    status: str


def score_band(score: Optional[float]) -> Optional[str]:
    """Color band for a score: excellent / good / average / weak."""
    if score is None:
        return None
    if score >= 75:
        return "excellent"
    if score >= 50:
        return "good"
    if score >= 25:
        return "average"
    return "weak"


def fatigue_status_for_score(score: float) -> str:
    if score <= 25:
        return "fresh"
    if score <= 50:
        return "healthy"
    if score <= 70:
        return "warning"
    if score <= 85:
        return "fatiguing"
    return "fatigued"


def _decline_pct(early: float, recent: float) -> float:
    if early <= 0:
        return 0.0
    return max(0.0, (early - recent) / early * 100)


def calculate_fatigue_score(
    early_roas: float,
    recent_roas: float,
    early_ctr: float,
    recent_ctr: float,
    early_cpm: float,
    recent_cpm: float,
    days_active: int,
) -> FatigueResult:
    """
    Fatigue from early-vs-recent performance decay plus an age penalty.

    Weights: ROAS decline 40%, CTR decline 25%, CPM increase 25%, age 10%
    (2 points per day active, capped at 100).
    """
    roas_decline = _decline_pct(early_roas, recent_roas)
    ctr_decline = _decline_pct(early_ctr, recent_ctr)
    cpm_increase = max(0.0, (recent_cpm - early_cpm) / early_cpm * 100) if early_cpm > 0 else 0.0
    age_penalty = min(100, days_active * 2)

    score = min(
        100.0,
        roas_decline * 0.4 + ctr_decline * 0.25 + cpm_increase * 0.25 + age_penalty * 0.1,
    )
    return FatigueResult(score=score, status=fatigue_status_for_score(score))


def classify_audience_fatigue(days_active: int, roas_decline: float, ctr_decline: float) -> str:
    """
    Fatigue of one ad set running an asset.

    Declines are fractions (0.2 == 20% drop) of the ad set's current ROAS/CTR
    versus the asset's early period.
    """
    decline_score = roas_decline * 0.6 + ctr_decline * 0.4
    if days_active < 3:
        return "fresh"
    if decline_score < 0.1 and days_active < 14:
        return "healthy"
    if decline_score < 0.2 or days_active < 21:
        return "warning"
    if decline_score < 0.35 or days_active < 30:
        return "fatiguing"
    return "fatigued"


# ==================== Stage Components ====================

def _hook_score(thumbstop_rate: float) -> int:
    # 30%+ excellent, 25-30% good, 15-25% average
    if thumbstop_rate >= 30:
        score = 75 + min(25, (thumbstop_rate - 30) / 20 * 25)
    elif thumbstop_rate >= 25:
        score = 50 + (thumbstop_rate - 25) / 5 * 25
    elif thumbstop_rate >= 15:
        score = 25 + (thumbstop_rate - 15) / 10 * 25
    else:
        score = max(0, thumbstop_rate / 15 * 25)
    return round_half_up(score)


def _hold_score(hold_rate: float, completion_rate: float) -> int:
    if hold_rate >= 40:
        hold_component = 75 + min(25, (hold_rate - 40) / 20 * 25)
    elif hold_rate >= 30:
        hold_component = 50 + (hold_rate - 30) / 10 * 25
    elif hold_rate >= 20:
        hold_component = 25 + (hold_rate - 20) / 10 * 25
    else:
        hold_component = hold_rate / 20 * 25

    if completion_rate >= 25:
        completion_component = 100
    elif completion_rate >= 5:
        completion_component = 50 + (completion_rate - 5) / 20 * 50
    else:
        completion_component = completion_rate / 5 * 50

    return round_half_up(hold_component * 0.75 + completion_component * 0.25)


def _click_score(ctr: float, cpc: float) -> int:
    if ctr >= 4:
        ctr_component = 100
    elif ctr >= 2.5:
        ctr_component = 75 + (ctr - 2.5) / 1.5 * 25
    elif ctr >= 1.5:
        ctr_component = 50 + (ctr - 1.5) / 1 * 25
    elif ctr >= 0.8:
        ctr_component = 25 + (ctr - 0.8) / 0.7 * 25
    else:
        ctr_component = ctr / 0.8 * 25

    if cpc <= 0.30:
        cpc_component = 100
    elif cpc <= 0.80:
        cpc_component = 75 + (0.80 - cpc) / 0.50 * 25
    elif cpc <= 1.50:
        cpc_component = 50 + (1.50 - cpc) / 0.70 * 25
    elif cpc <= 3.00:
        cpc_component = 25 + (3.00 - cpc) / 1.50 * 25
    else:
        cpc_component = max(0, 25 - (cpc - 3.00) / 3.00 * 25)

    return round_half_up(ctr_component * 0.6 + cpc_component * 0.4)


def _convert_score(roas: float) -> int:
    if roas >= 5:
        score = 100
    elif roas >= 3:
        score = 75 + (roas - 3) / 2 * 25
    elif roas >= 1.5:
        score = 50 + (roas - 1.5) / 1.5 * 25
    elif roas >= 1:
        score = 25 + (roas - 1) / 0.5 * 25
    else:
        score = max(0, roas * 25)
    return round_half_up(score)


def calculate_composite_scores(
    spend: float,
    roas: float,
    ctr: float,
    cpc: float,
    impressions: int,
    is_video: bool,
    thumbstop_rate: Optional[float],
    hold_rate: Optional[float],
    completion_rate: Optional[float],
) -> CompositeScores:
    """
    Hook/hold/click/convert scores for an asset.

    Args:
        spend: Aggregated spend in dollars
        roas: Revenue / spend
        ctr: Click-through rate, percent
        cpc: Cost per click, dollars
        impressions: Aggregated impressions
        is_video: Hook and hold are only scored for video
        thumbstop_rate: 3s views / impressions, percent
        hold_rate: ThruPlays / 3s views, percent
        completion_rate: P100 / impressions, percent

    Returns:
        CompositeScores, all None below the spend threshold
    """
    if spend < MIN_SCORE_SPEND:
        return CompositeScores(None, None, None, None)

    hook = _hook_score(thumbstop_rate) if is_video and thumbstop_rate is not None else None
    hold = (
        _hold_score(hold_rate, completion_rate)
        if is_video and hold_rate is not None and completion_rate is not None
        else None
    )
    click = _click_score(ctr, cpc) if impressions > 0 else None
    convert = _convert_score(roas)

    return CompositeScores(hook, hold, click, convert)
