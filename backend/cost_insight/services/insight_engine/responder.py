"""
Query Responder
===============
Rule-based replies that work without an external LLM. Intents are tried in
order; the first pattern that matches the query wins and its template reads
only from the AggregatedInsight. Unmatched queries get a fallback summary.

`build_context_prompt` renders the same insight as a system prompt for the
external LLM collaborator.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from cost_insight.models.insight import AggregatedInsight, BudgetStatus


def format_currency(amount: float, currency: str = "USD") -> str:
    if currency == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency}"


def format_change(percent: float) -> str:
    return f"{'+' if percent >= 0 else ''}{percent:.1f}%"


@dataclass(frozen=True)
class Intent:
    name: str
    pattern: re.Pattern[str]
    handler: Callable[[AggregatedInsight, str], str]


def _fmt(d: AggregatedInsight) -> Callable[[float], str]:
    return lambda amount: format_currency(amount, d.currency)


def _total_spend(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    return (
        f"**Total Spend (MTD):** {fmt(d.total_spend_mtd)}\n\n"
        f"**Forecasted Monthly:** {fmt(d.forecasted_spend)}\n\n"
        f"**Previous Month:** {fmt(d.previous_period_total)} "
        f"({format_change(d.change_percent)} MTD vs last month)"
    )


def _top_services(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    top5 = d.line_items[:5]
    if not top5:
        return "**Top Services:** no service cost data is available yet."
    lines = "\n".join(
        f"{n}. **{s.name}** ({s.provider_tag}): {fmt(s.cost)} {format_change(s.change_percent)} MoM"
        for n, s in enumerate(top5, start=1)
    )
    reply = (
        f"**Top {len(top5)} Services by Cost (MTD):**\n\n{lines}\n\n"
        f"**Key Insight:** {top5[0].name} is your highest cost service at {fmt(top5[0].cost)}."
    )
    growing = next((s for s in top5 if s.change_percent > 10), None)
    if growing:
        reply += f" Watch **{growing.name}**, it changed {format_change(growing.change_percent)} this month."
    return reply


def _provider(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    services = "\n".join(
        f"- {s.name}: {fmt(s.cost)} ({format_change(s.change_percent)})" for s in d.line_items
    ) or "- none"
    b = d.budget
    return (
        f"**AWS Spend Overview:**\n\n"
        f"**Total:** {fmt(d.total_spend_mtd)} ({format_change(d.change_percent)} MoM)\n\n"
        f"**Top AWS Services:**\n{services}\n\n"
        f"**Budget:** {fmt(b.spent)} / {fmt(b.limit)} ({b.percent_used:.0f}% used)\n\n"
        f"AWS anomalies: {len(d.open_anomalies)} open"
    )


def _savings(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    if not d.savings:
        return "**Optimization Recommendations:** no savings opportunities were identified for the current period."
    total = d.total_monthly_savings
    lines = "\n".join(
        f"- **{o.category}:** {o.count} items, {fmt(o.estimated_monthly_savings)}/mo" for o in d.savings
    )
    top = d.savings[0]
    return (
        f"**Optimization Recommendations:**\n\n"
        f"**Total Potential Savings:** {fmt(total)}/month ({fmt(total * 12)}/year)\n\n{lines}\n\n"
        f"**Top Action:** Focus on **{top.category}** first. It offers the highest savings at "
        f"{fmt(top.estimated_monthly_savings)}/month across {top.count} resources."
    )


def _anomalies(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    open_ = d.open_anomalies
    if not open_:
        return "**Active Anomalies:** 0\n\nNo service grew more than 20% month over month."
    impact = sum(a.impact for a in open_)
    lines = "\n\n".join(
        f"- **{a.title}**\n   Provider: {a.provider_tag} | Service: {a.service} | Impact: {fmt(a.impact)}"
        for a in open_
    )
    worst = max(open_, key=lambda a: a.impact)
    return (
        f"**Active Anomalies:** {len(open_)}\n**Total Impact:** {fmt(impact)}\n\n{lines}\n\n"
        f"**Action Required:** Investigate **{worst.service}** first ({fmt(worst.impact)} impact)."
    )


_STATUS_BADGE = {
    BudgetStatus.CRITICAL: "OVER",
    BudgetStatus.WARNING: "WARNING",
    BudgetStatus.NORMAL: "OK",
    BudgetStatus.ON_TRACK: "OK",
}


def _budget(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    budgets = (d.budget,) + d.service_budgets
    lines = "\n".join(
        f"[{_STATUS_BADGE[b.status]}] **{b.label}:** {fmt(b.spent)} / {fmt(b.limit)} ({b.percent_used:.0f}%)"
        for b in budgets
    )
    over = [b for b in budgets if b.status == BudgetStatus.CRITICAL]
    headed = [b for b in budgets if b.will_exceed]
    reply = f"**Budget Status:**\n\n{lines}\n\n"
    if over:
        reply += f"**{len(over)} budget(s) exceeded:** {', '.join(b.label for b in over)} need immediate attention."
    else:
        reply += "No budgets exceeded yet."
    if headed:
        reply += f"\n**{len(headed)} budget(s) projected** to exceed their limit this month."
    return reply


def _forecast(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    total = d.total_monthly_savings
    count = sum(o.count for o in d.savings)
    share = total / d.forecasted_spend * 100 if d.forecasted_spend > 0 else 0.0
    return (
        f"**Forecast:**\n\n"
        f"- **Current MTD:** {fmt(d.total_spend_mtd)}\n"
        f"- **Forecasted Monthly Total:** {fmt(d.forecasted_spend)}\n"
        f"- **Forecast Risk:** {d.forecast_risk.label} ({d.forecast_risk.forecast_ratio:.0f}% of budget)\n"
        f"- **If optimizations applied:** {fmt(d.forecasted_spend - total)}/month\n\n"
        f"**Potential Annual Savings:** {fmt(total * 12)}\n\n"
        f"By implementing all {count} recommendations, you could reduce forecasted spend by {share:.0f}%."
    )


def _summary(d: AggregatedInsight, query: str) -> str:
    fmt = _fmt(d)
    open_ = d.open_anomalies
    top = d.line_items[0].name if d.line_items else "n/a"
    return (
        f"**Cloud FinOps Status Summary:**\n\n"
        f"**Spend MTD:** {fmt(d.total_spend_mtd)} | Forecast: {fmt(d.forecasted_spend)}\n"
        f"**Top Service:** {top}\n"
        f"**Anomalies:** {len(open_)} open ({fmt(sum(a.impact for a in open_))} impact)\n"
        f"**Budget:** {d.budget.percent_used:.0f}% used ({d.budget.status.value})\n"
        f"**Savings Available:** {fmt(d.total_monthly_savings)}/month\n"
        f"**FinOps Maturity:** {d.maturity.tier.value} ({d.maturity.total_score}/{d.maturity.max_score})"
    )


def _greeting(d: AggregatedInsight, query: str) -> str:
    return (
        "I'm your Cloud FinOps assistant. I can help you with:\n\n"
        '- **"What\'s our total spend?"**: current MTD and forecast\n'
        '- **"Top spending services"**: highest cost services\n'
        '- **"AWS spend"**: account breakdown\n'
        '- **"Show anomalies"**: services with unusual growth\n'
        '- **"Budget status"**: implied budget tracking\n'
        '- **"Savings opportunities"**: where to cut spend\n'
        '- **"Give me a summary"**: full status report\n\n'
        "Ask me anything about your cloud costs!"
    )


INTENTS: tuple[Intent, ...] = (
    Intent("total_spend", re.compile(r"total.*spend|how much.*spent|overall.*cost|total.*cost|mtd", re.I), _total_spend),
    Intent("top_services", re.compile(r"top.*service|highest.*service|most.*expensive|top.*spend", re.I), _top_services),
    Intent("provider", re.compile(r"aws|amazon", re.I), _provider),
    Intent("savings", re.compile(r"saving|optimiz|recommend|reduce|cut.*cost", re.I), _savings),
    Intent("anomalies", re.compile(r"anomal|spike|unusual|alert|incident", re.I), _anomalies),
    Intent("budget", re.compile(r"budget|over.*budget|under.*budget|limit", re.I), _budget),
    Intent("forecast", re.compile(r"forecast|predict|next month|project", re.I), _forecast),
    Intent("summary", re.compile(r"summary|overview|status|report|brief", re.I), _summary),
    Intent("greeting", re.compile(r"hello|hi|hey|help|what can you", re.I), _greeting),
)


def match_intent(query: str) -> Optional[Intent]:
    for intent in INTENTS:
        if intent.pattern.search(query):
            return intent
    return None


def fallback(query: str, d: AggregatedInsight) -> str:
    fmt = _fmt(d)
    top = f"{d.line_items[0].name} at {fmt(d.line_items[0].cost)}" if d.line_items else "n/a"
    return (
        f'I understand you\'re asking about: "{query}"\n\n'
        f"Here's a quick summary of your cloud costs:\n\n"
        f"- **Total Spend MTD:** {fmt(d.total_spend_mtd)}\n"
        f"- **Top Service:** {top}\n"
        f"- **Active Anomalies:** {len(d.open_anomalies)}\n"
        f"- **Savings Available:** {fmt(d.total_monthly_savings)}/month\n\n"
        "Try asking about spend, budgets, anomalies, forecasts or recommendations for more detail."
    )


def respond(query: str, insight: AggregatedInsight) -> str:
    intent = match_intent(query)
    if intent is None:
        return fallback(query, insight)
    return intent.handler(insight, query)


def build_context_prompt(d: AggregatedInsight) -> str:
    """Plain-text system prompt describing the current cost picture."""
    fmt = _fmt(d)
    services = "\n".join(
        f"- {s.name} ({s.provider_tag}): {fmt(s.cost)} ({format_change(s.change_percent)} MoM)"
        for s in d.line_items
    ) or "- none"
    budgets = "\n".join(
        f"- {b.label}: {fmt(b.spent)} / {fmt(b.limit)} ({b.percent_used:.1f}%, {b.status.value})"
        for b in (d.budget,) + d.service_budgets
    )
    savings = "\n".join(
        f"- {o.category}: {o.count} items, {fmt(o.estimated_monthly_savings)}/mo potential savings"
        for o in d.savings
    ) or "- none"
    anomalies = "\n".join(
        f"- {a.title} ({a.provider_tag}/{a.service}): {fmt(a.impact)} impact" for a in d.open_anomalies
    ) or "- none"

    return f"""You are a Cloud FinOps assistant. You help teams understand their cloud spending, identify optimization opportunities, and answer billing questions.

CURRENT COST DATA (Month-to-Date):
- Account: {d.account_id}
- Total Spend MTD: {fmt(d.total_spend_mtd)}
- Previous Month Total: {fmt(d.previous_period_total)}
- Forecasted Monthly Spend: {fmt(d.forecasted_spend)} ({d.forecast_risk.label})
- Identified Savings: {fmt(d.total_monthly_savings)}/month
- FinOps Maturity: {d.maturity.tier.value} ({d.maturity.total_score}/{d.maturity.max_score})

TOP SERVICES BY COST:
{services}

BUDGET STATUS:
{budgets}

OPTIMIZATION RECOMMENDATIONS:
{savings}

ACTIVE ANOMALIES:
{anomalies}

INSTRUCTIONS:
- Answer concisely and precisely using the data above
- Use {d.currency} for all currency values
- Highlight risks, savings opportunities, and actionable insights
- If asked about something not in the data, say so clearly
- Keep responses brief and actionable"""
