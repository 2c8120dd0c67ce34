"""Money formatting for customer-facing messages"""


def format_gbp(amount_minor: int) -> str:
    """Format pence as pounds, e.g. 100000 -> £1,000.00"""
    sign = "-" if amount_minor < 0 else ""
    pounds, pence = divmod(abs(amount_minor), 100)
    return f"{sign}£{pounds:,}.{pence:02d}"
