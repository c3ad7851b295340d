# Purpose: Merchant category code (tag 52) catalogue and per-category rules for merchant QR codes.

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from qr_errors import InvalidValue, MissingRequiredField
from qr_models import P2P_MERCHANT_CATEGORY_CODES, Classification, InitiationMethod, classify


class CategoryType(Enum):
    RETAIL = "Retail"
    RESTAURANT = "Restaurant"
    AUTOMOTIVE = "Automotive"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    HEALTHCARE = "Healthcare"
    GOVERNMENT = "Government"
    SERVICES = "Services"
    FINANCIAL = "Financial"
    OTHER = "Other"


# --- CATALOGUE ---
# MCC -> (description, category)
MERCHANT_CATEGORIES = {
    # Retail
    "5311": ("Department Stores", CategoryType.RETAIL),
    "5411": ("Grocery Stores, Supermarkets", CategoryType.RETAIL),
    "5422": ("Freezer and Locker Meat Provisioners", CategoryType.RETAIL),
    "5441": ("Candy, Nut, and Confectionery Stores", CategoryType.RETAIL),
    "5451": ("Dairy Products Stores", CategoryType.RETAIL),
    "5462": ("Bakeries", CategoryType.RETAIL),
    "5499": ("Miscellaneous Food Stores", CategoryType.RETAIL),
    "5611": ("Men's and Boys' Clothing", CategoryType.RETAIL),
    "5621": ("Women's Ready-to-Wear Stores", CategoryType.RETAIL),
    "5631": ("Women's Accessory Stores", CategoryType.RETAIL),
    "5641": ("Children's and Infants' Wear Stores", CategoryType.RETAIL),
    "5651": ("Family Clothing Stores", CategoryType.RETAIL),
    "5661": ("Shoe Stores", CategoryType.RETAIL),
    "5691": ("Men's and Women's Clothing Stores", CategoryType.RETAIL),
    "5712": ("Furniture, Home Furnishings", CategoryType.RETAIL),
    "5722": ("Household Appliance Stores", CategoryType.RETAIL),
    "5732": ("Electronics Stores", CategoryType.RETAIL),
    "5733": ("Music Stores", CategoryType.RETAIL),
    "5734": ("Computer Software Stores", CategoryType.RETAIL),
    "5735": ("Record Shops", CategoryType.RETAIL),
    "5921": ("Package Stores-Beer, Wine, Liquor", CategoryType.RETAIL),
    "5931": ("Used Merchandise and Secondhand Stores", CategoryType.RETAIL),
    "5932": ("Antique Shops", CategoryType.RETAIL),
    "5933": ("Pawn Shops", CategoryType.RETAIL),
    "5940": ("Bicycle Shops", CategoryType.RETAIL),
    "5941": ("Sporting Goods Stores", CategoryType.RETAIL),
    "5942": ("Book Stores", CategoryType.RETAIL),
    "5943": ("Stationery, Office, School Supply Stores", CategoryType.RETAIL),
    "5944": ("Jewelry Stores, Watches, Clocks", CategoryType.RETAIL),
    "5945": ("Hobby, Toy, and Game Shops", CategoryType.RETAIL),
    "5946": ("Camera and Photographic Supply Stores", CategoryType.RETAIL),
    "5947": ("Gift, Card, Novelty, Souvenir Shops", CategoryType.RETAIL),
    "5948": ("Luggage and Leather Goods Stores", CategoryType.RETAIL),
    "5949": ("Sewing, Needlework, Fabric", CategoryType.RETAIL),
    "5950": ("Glassware, Crystal Stores", CategoryType.RETAIL),
    "5999": ("Miscellaneous Retail", CategoryType.RETAIL),
    # Automotive
    "5511": ("Car and Truck Dealers", CategoryType.AUTOMOTIVE),
    "5541": ("Service Stations", CategoryType.AUTOMOTIVE),
    "5542": ("Automated Fuel Dispensers", CategoryType.AUTOMOTIVE),
    # Restaurants
    "5811": ("Caterers", CategoryType.RESTAURANT),
    "5812": ("Eating Places, Restaurants", CategoryType.RESTAURANT),
    "5813": ("Drinking Places", CategoryType.RESTAURANT),
    "5814": ("Fast Food Restaurants", CategoryType.RESTAURANT),
    # Transportation
    "4011": ("Railroads", CategoryType.TRANSPORTATION),
    "4111": ("Local/Suburban Commuter Passenger Transportation", CategoryType.TRANSPORTATION),
    "4112": ("Passenger Railways", CategoryType.TRANSPORTATION),
    "4121": ("Taxicabs/Limousines", CategoryType.TRANSPORTATION),
    "4131": ("Bus Lines", CategoryType.TRANSPORTATION),
    "4214": ("Motor Freight Carriers", CategoryType.TRANSPORTATION),
    "4215": ("Courier Services", CategoryType.TRANSPORTATION),
    "4411": ("Cruise Lines", CategoryType.TRANSPORTATION),
    "4511": ("Airlines, Air Carriers", CategoryType.TRANSPORTATION),
    # Utilities
    "4812": ("Telecommunication Equipment", CategoryType.UTILITIES),
    "4814": ("Telecommunication Services", CategoryType.UTILITIES),
    "4816": ("Computer Network Services", CategoryType.UTILITIES),
    "4821": ("Telegraph Services", CategoryType.UTILITIES),
    "4829": ("Wires, Money Orders", CategoryType.UTILITIES),
    "4899": ("Cable, Satellite, Other Pay TV", CategoryType.UTILITIES),
    "4900": ("Utilities", CategoryType.UTILITIES),
    # Healthcare
    "5912": ("Drug Stores and Pharmacies", CategoryType.HEALTHCARE),
    "8011": ("Doctors", CategoryType.HEALTHCARE),
    "8021": ("Dentists and Orthodontists", CategoryType.HEALTHCARE),
    "8031": ("Osteopaths", CategoryType.HEALTHCARE),
    "8041": ("Chiropractors", CategoryType.HEALTHCARE),
    "8042": ("Optometrists, Ophthalmologist", CategoryType.HEALTHCARE),
    "8043": ("Opticians, Eyeglasses", CategoryType.HEALTHCARE),
    "8049": ("Podiatrists, Chiropodists", CategoryType.HEALTHCARE),
    "8050": ("Nursing/Personal Care", CategoryType.HEALTHCARE),
    "8062": ("Hospitals", CategoryType.HEALTHCARE),
    "8071": ("Medical and Dental Labs", CategoryType.HEALTHCARE),
    "8099": ("Medical Services", CategoryType.HEALTHCARE),
    # Government
    "9211": ("Court Costs", CategoryType.GOVERNMENT),
    "9222": ("Fines - Government Administrative", CategoryType.GOVERNMENT),
    "9311": ("Tax Payments - Government Administrative", CategoryType.GOVERNMENT),
    "9399": ("Government Services", CategoryType.GOVERNMENT),
    # Services
    "7999": ("Miscellaneous Services", CategoryType.SERVICES),
}

FINANCIAL_SERVICES = "Financial Services"

# Largest amount a merchant QR may request, in the payload currency. None = no limit.
DEFAULT_AMOUNT_LIMIT = Decimal("500000")
AMOUNT_LIMITS = {
    CategoryType.TRANSPORTATION: Decimal("50000"),
    CategoryType.UTILITIES: Decimal("100000"),
    CategoryType.GOVERNMENT: None,
}
# Categories whose QR codes must carry a per-transaction amount
DYNAMIC_ONLY_CATEGORIES = frozenset({CategoryType.TRANSPORTATION})

MCC_PATTERN = re.compile(r"^\d{4}$")


@dataclass(frozen=True)
class MerchantValidationRules:
    requires_amount: bool
    requires_city: bool
    requires_merchant_name: bool
    allows_static_qr: bool
    max_amount: Optional[Decimal] = None


def is_valid_mcc(mcc):
    return bool(mcc) and MCC_PATTERN.match(mcc) is not None


def category_for(mcc):
    """(description, CategoryType) for a catalogued MCC, else None."""
    return MERCHANT_CATEGORIES.get(mcc)


def category_type(mcc):
    if classify(mcc) is Classification.P2P:
        return CategoryType.FINANCIAL
    entry = category_for(mcc)
    return entry[1] if entry else CategoryType.OTHER


def display_name(mcc):
    if classify(mcc) is Classification.P2P:
        return FINANCIAL_SERVICES
    entry = category_for(mcc)
    return entry[0] if entry else f"Unknown Merchant ({mcc})"


def suggest_mccs(business_type):
    """MCCs whose description mentions business_type, case-insensitively."""
    term = business_type.lower()
    return sorted(mcc for mcc, (description, _) in MERCHANT_CATEGORIES.items() if term in description.lower())


def mccs_for(kind):
    if kind is CategoryType.FINANCIAL:
        return sorted(P2P_MERCHANT_CATEGORY_CODES)
    return sorted(mcc for mcc, (_, category) in MERCHANT_CATEGORIES.items() if category is kind)


def validation_rules(mcc):
    entry = category_for(mcc)
    kind = entry[1] if entry else None
    return MerchantValidationRules(
        requires_amount=classify(mcc) is Classification.P2M,
        requires_city=True,
        requires_merchant_name=True,
        allows_static_qr=kind not in DYNAMIC_ONLY_CATEGORIES,
        max_amount=AMOUNT_LIMITS.get(kind, DEFAULT_AMOUNT_LIMIT),
    )


def check_merchant_payload(result):
    """
    Applies the merchant-category rules to a decoded payload.

    Raises InvalidValue for a person-to-person code, an amount over the category
    limit or a static QR where the category needs a dynamic one, and
    MissingRequiredField when the merchant name or city is absent.
    """
    mcc = result.merchant_category_code
    if not is_valid_mcc(mcc):
        raise InvalidValue("52", f"merchant category code {mcc!r} is not four digits")
    if classify(mcc) is Classification.P2P:
        raise InvalidValue("52", f"{mcc} is a person-to-person code, not a merchant category")

    rules = validation_rules(mcc)
    if rules.requires_merchant_name and not result.recipient_name:
        raise MissingRequiredField("59", "merchant QR needs a merchant name")
    if rules.requires_city and not result.recipient_identifier:
        raise MissingRequiredField("60", "merchant QR needs a merchant city")
    if result.amount is not None and rules.max_amount is not None and result.amount > rules.max_amount:
        raise InvalidValue(
            "54",
            f"amount {result.amount} exceeds the {rules.max_amount} limit for MCC {mcc}",
            details={"limit": str(rules.max_amount), "amount": str(result.amount)},
        )
    if result.initiation_method is InitiationMethod.STATIC and not rules.allows_static_qr:
        raise InvalidValue("01", f"static QR codes are not allowed for MCC {mcc} ({display_name(mcc)})")
    return rules
