# app/services/category_mapping.py
#
# Category / Account Mapping
# Static lookup tables that turn vendor strings (Personal Capital, MoneyHub)
# into the app's canonical category and account names, plus the amount- and
# keyword-dependent overrides applied on top of the tables.

from decimal import Decimal
from types import MappingProxyType

# 5-year average USD -> GBP rate, used for every USD conversion
USD_TO_GBP_RATE = Decimal("0.79")

UNKNOWN_CATEGORY = "Other / Unknown"

CSV_TYPE_PERSONAL_CAPITAL = "personal-capital"  # Format A (USD)
CSV_TYPE_MONEYHUB = "moneyhub"                  # Format B (GBP)
CSV_TYPES = (CSV_TYPE_PERSONAL_CAPITAL, CSV_TYPE_MONEYHUB)

# Categories the management screens must never rename or delete
PROTECTED_CATEGORIES = frozenset({"Income", "Investment", "Family Transfer"})

# Only these accounts may hold Investment-category rows from Personal Capital
INVESTMENT_ACCOUNTS = frozenset({"Vanguard", "Fidelity", "Wealthfront", "Dodl (LISA)"})

# Amount thresholds for the "travel" split (Extras vs Commute)
TRAVEL_THRESHOLD_GBP = Decimal("100")
TRAVEL_THRESHOLD_USD = TRAVEL_THRESHOLD_GBP / USD_TO_GBP_RATE

# MoneyHub descriptions that are always bills, whatever the vendor category says
BILL_DESCRIPTION_KEYWORDS = ("rent", "splitwise")


# ---- Category tables ----

PERSONAL_CAPITAL_CATEGORY_MAP = MappingProxyType({
    "restaurants": "Dining",
    "food & dining": "Dining",
    "groceries": "Groceries",
    "general merchandise": "Extras",
    "clothing/shoes": "Extras",
    "entertainment": "Extras",
    "shopping": "Extras",
    "home improvement": UNKNOWN_CATEGORY,
    "other expenses": UNKNOWN_CATEGORY,
    "online services": "Service Charges/Fees",
    "fees & charges": "Service Charges/Fees",
    "transportation": "Commute",
    "transport": "Commute",
    "commute": "Commute",
    "auto & transport": "Commute",
    "income": "Income",
    "paychecks/salary": "Income",
    "cash & cash equivalents": "Income",
    "securities transfers": "Investment",
    "transfers": "Investment",
    "bills & utilities": "Bills",
    "utilities": "Bills",
    "personal care": "Personal Care",
    "health & fitness": "Personal Care",
})

MONEYHUB_CATEGORY_MAP = MappingProxyType({
    "eating out": "Dining",
    "transport": "Commute",
    "entertainment": "Extras",
    "shopping": "Extras",
    "income": "Income",
    "salary": "Income",
    "cash & cash equivalents": "Income",
    "transfers": "Transfers",
    "securities transfers": "Investment",
    "groceries": "Groceries",
    "bills": "Bills",
    "rent": "Bills",
    "personal care": "Personal Care",
    "health": "Personal Care",
    "subscriptions": "Service Charges/Fees",
    "fees": "Service Charges/Fees",
    "other": UNKNOWN_CATEGORY,
})


# ---- Account tables (iteration order matters for substring matching) ----

PERSONAL_CAPITAL_ACCOUNT_MAP = MappingProxyType({
    "capital one": "Capital One",
    "citi aadvantage": "Citi AAdvantage",
    "citi advantage": "Citi AAdvantage",
    "vanguard": "Vanguard",
    "wealthfront": "Wealthfront",
    "fidelity": "Fidelity",
    "amex": "Amex Gold",
    "american express": "Amex Gold",
    "bank of america": "BofA Checkings",
    "bofa": "BofA Checkings",
    "travel rewards": "Travel Rewards",
    "chase": "Cash Rewards",
    "discover": "Cash Rewards",
})

MONEYHUB_ACCOUNT_MAP = MappingProxyType({
    "hsbc checking": "HSBC Checkings",
    "hsbc checkings": "HSBC Checkings",
    "hsbc current": "HSBC Checkings",
    "amex uk": "Amex UK",
    "amex": "Amex UK",
    "american express": "Amex UK",
    "global money": "Global Money",
    "dodl": "Dodl (LISA)",
    "lisa": "Dodl (LISA)",
})

DEFAULT_ACCOUNT_PERSONAL_CAPITAL = "BofA Checkings"
DEFAULT_ACCOUNT_MONEYHUB = "HSBC Checkings"


# ---- Seed data (created on first import if missing) ----

DEFAULT_CATEGORIES = (
    ("Bills", "expense"),
    ("Extras", "expense"),
    ("Personal Care", "expense"),
    ("Groceries", "expense"),
    ("Dining", "expense"),
    ("Commute", "expense"),
    ("Service Charges/Fees", "expense"),
    (UNKNOWN_CATEGORY, "expense"),
    ("Transfers", "expense"),
    ("Family Transfer", "expense"),
    ("Income", "income"),
    ("Investment", "expense"),
)

# (name, account_type, currency)
DEFAULT_ACCOUNTS = (
    ("HSBC Checkings", "checking", "GBP"),
    ("Amex UK", "credit", "GBP"),
    ("Capital One", "credit", "USD"),
    ("Cash Rewards", "credit", "USD"),
    ("Travel Rewards", "credit", "USD"),
    ("BofA Checkings", "checking", "USD"),
    ("Citi AAdvantage", "credit", "USD"),
    ("Wealthfront", "investment", "USD"),
    ("Global Money", "checking", "GBP"),
    ("Fidelity", "investment", "USD"),
    ("Vanguard", "investment", "USD"),
    ("Dodl (LISA)", "investment", "GBP"),
    ("Amex Gold", "credit", "USD"),
)

INVESTMENT_TYPES = (
    "Domestic Equity (US)",
    "International Markets",
    "Emerging Markets",
    "Real Estate Equity",
    "Treasuries (Bonds / Tips)",
    "High-Yield Savings",
    "Dividends Growth Equity",
    "Cash",
    "Commodities / Precious Metals",
    "Cryptocurrency",
)

# Cash-like holdings are left out of the asset allocation breakdown
EXCLUDED_FROM_PORTFOLIO_BREAKDOWN = frozenset({"High-Yield Savings", "Cash"})

INVESTMENT_TYPE_COLORS = MappingProxyType({
    "Domestic Equity (US)": "hsl(220, 85%, 65%)",
    "International Markets": "hsl(15, 80%, 65%)",
    "Emerging Markets": "hsl(200, 75%, 65%)",
    "Real Estate Equity": "hsl(25, 75%, 65%)",
    "Treasuries (Bonds / Tips)": "hsl(190, 70%, 55%)",
    "High-Yield Savings": "hsl(10, 70%, 60%)",
    "Dividends Growth Equity": "hsl(35, 80%, 60%)",
    "Cash": "hsl(160, 60%, 55%)",
    "Commodities / Precious Metals": "hsl(280, 60%, 65%)",
    "Cryptocurrency": "hsl(45, 85%, 60%)",
})


# ---- Mapping functions ----

def map_category(
    vendor_category: str | None,
    is_format_a: bool,
    amount=Decimal("0"),
    description: str | None = "",
) -> str:
    """
    Map a vendor category string to a canonical category name.

    Case-insensitive; anything not in the vendor's table maps to
    "Other / Unknown". Never raises.
    """
    key = (vendor_category or "").strip().lower()
    abs_amount = abs(Decimal(str(amount or 0)))

    if is_format_a:
        if key == "travel":
            return "Extras" if abs_amount >= TRAVEL_THRESHOLD_USD else "Commute"
        return PERSONAL_CAPITAL_CATEGORY_MAP.get(key, UNKNOWN_CATEGORY)

    desc = (description or "").lower()
    if any(word in desc for word in BILL_DESCRIPTION_KEYWORDS):
        return "Bills"

    if key == "travel":
        return "Extras" if abs_amount >= TRAVEL_THRESHOLD_GBP else "Commute"

    if key == "securities":
        return "Investment" if Decimal(str(amount or 0)) > 0 else "Transfers"

    return MONEYHUB_CATEGORY_MAP.get(key, UNKNOWN_CATEGORY)


def map_account(vendor_account: str | None, is_format_a: bool) -> str:
    """
    Map a vendor account name to a canonical account name.

    Exact (case-insensitive) match first, then the first table key that
    contains the name or is contained in it. Falls back to the vendor's
    default account.
    """
    table = PERSONAL_CAPITAL_ACCOUNT_MAP if is_format_a else MONEYHUB_ACCOUNT_MAP
    default = DEFAULT_ACCOUNT_PERSONAL_CAPITAL if is_format_a else DEFAULT_ACCOUNT_MONEYHUB

    clean = (vendor_account or "").strip().lower()
    if not clean:
        return default

    if clean in table:
        return table[clean]

    for key, value in table.items():
        if key in clean or clean in key:
            return value

    return default


def apply_investment_override(category: str, account: str) -> str:
    # Personal Capital tags plain transfers as investments; only real
    # brokerage accounts keep the Investment category.
    if category == "Investment" and account not in INVESTMENT_ACCOUNTS:
        return "Transfers"
    return category


def is_protected_category(name: str | None) -> bool:
    return (name or "").strip() in PROTECTED_CATEGORIES
