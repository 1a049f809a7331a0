"""
Advisory traffic-light scoring run before a deal is created.

Five criteria are each classified pass / borderline / fail. Passes count toward
green, fails count as red flags; the verdict is decided in a fixed priority
order. Nothing is persisted; the caller stores the verdict on the deal it
creates, if any.
"""
from __future__ import annotations

from decimal import Decimal

from schemas.prequalification import PrequalificationInput, PrequalificationResult

FICO_PASS = 640
FICO_BORDERLINE = 600
YEARS_PASS = 2
YEARS_BORDERLINE = 1
REVENUE_PASS = Decimal("120000")
REVENUE_BORDERLINE = Decimal("100000")
DEAL_AMOUNT_PASS = Decimal("100000")
DEAL_AMOUNT_BORDERLINE = Decimal("150000")

GREEN = "green"
YELLOW = "yellow"
RED = "red"

_VERDICT_TEXT = {
    GREEN: (
        "Pre-Approved!",
        "This deal meets all prequalification criteria and is highly likely to be approved.",
    ),
    RED: (
        "Manual Review Required",
        "This deal falls outside standard parameters but can still be submitted for manual underwriting review.",
    ),
    YELLOW: (
        "Conditional Approval Possible",
        "This deal is close to meeting criteria. Additional documentation or conditions may be required.",
    ),
}


def score_prequalification(data: PrequalificationInput) -> PrequalificationResult:
    factors: list[str] = []
    green_criteria = 0
    red_flags = 0

    if data.fico_score >= FICO_PASS:
        green_criteria += 1
        factors.append("✓ FICO score meets requirements (640+)")
    elif data.fico_score >= FICO_BORDERLINE:
        factors.append("⚠ FICO score is close to requirements (640+)")
    else:
        red_flags += 1
        factors.append("✗ FICO score below requirements (640+)")

    if data.years_in_business >= YEARS_PASS:
        green_criteria += 1
        factors.append("✓ Business established 2+ years")
    elif data.years_in_business >= YEARS_BORDERLINE:
        factors.append("⚠ Business close to 2 year requirement")
    else:
        red_flags += 1
        factors.append("✗ Business needs 2+ years of operation")

    if not data.has_public_records:
        green_criteria += 1
        factors.append("✓ No public records found")
    else:
        red_flags += 1
        factors.append("✗ Public records present")

    if data.annual_revenue >= REVENUE_PASS:
        green_criteria += 1
        factors.append("✓ Annual revenue meets requirements ($120K+)")
    elif data.annual_revenue >= REVENUE_BORDERLINE:
        factors.append("⚠ Annual revenue close to requirements ($120K+)")
    else:
        red_flags += 1
        factors.append("✗ Annual revenue below requirements ($120K+)")

    if data.deal_amount <= DEAL_AMOUNT_PASS:
        green_criteria += 1
        factors.append("✓ Deal amount within limits (≤$100K)")
    elif data.deal_amount <= DEAL_AMOUNT_BORDERLINE:
        factors.append("⚠ Deal amount slightly above preferred limit ($100K)")
    else:
        red_flags += 1
        factors.append("✗ Deal amount significantly above limit ($100K)")

    if green_criteria == 5:
        verdict = GREEN
    elif red_flags >= 2 or data.fico_score < FICO_BORDERLINE or data.deal_amount > DEAL_AMOUNT_BORDERLINE:
        verdict = RED
    else:
        verdict = YELLOW

    title, message = _VERDICT_TEXT[verdict]
    # Every verdict is advisory; red still lets the vendor apply.
    return PrequalificationResult(
        verdict=verdict,
        title=title,
        message=message,
        factors=factors,
        can_proceed=True,
        customer_name=data.customer_name,
        equipment_type=data.equipment_type,
        deal_amount=data.deal_amount,
    )
