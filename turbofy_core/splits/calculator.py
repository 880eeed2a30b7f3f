from turbofy_core.models.charge import floor_percentage
from turbofy_core.models.commission import CommissionRule, CommissionType, SplitLine


def calculate_commission_split(amount_cents: int, rules: list[CommissionRule]) -> list[SplitLine]:
    """Compute one split line per active commission rule.

    Rules are evaluated by priority, highest first; equal priorities keep
    their original order. Percentages are floored, never rounded, so the
    outgoing splits can only under-allocate. Lines of zero or less are
    dropped. Checking the aggregate against the charge amount is the
    caller's job.
    """
    if not rules or amount_cents <= 0:
        return []

    ordered = sorted((r for r in rules if r.active), key=lambda r: r.priority, reverse=True)

    lines = []
    for rule in ordered:
        if rule.type is CommissionType.PERCENTAGE:
            value = floor_percentage(amount_cents, rule.value)
            percentage = rule.value
        elif rule.type is CommissionType.FIXED:
            value = int(rule.value)
            percentage = None
        else:
            continue

        if rule.max_amount_cents is not None and value > rule.max_amount_cents:
            value = rule.max_amount_cents

        if value > 0:
            lines.append(SplitLine(
                rule_id=rule.id,
                recipient_merchant_id=rule.recipient_merchant_id,
                amount_cents=value,
                percentage=percentage,
            ))
    return lines
