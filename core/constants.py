"""Project-wide constants and seed data."""
from decimal import Decimal
from typing import List

# Non-admin users may edit or void a sale for this long after posting.
MUTABLE_WINDOW_MS: int = 12 * 60 * 1000

LOW_STOCK_THRESHOLD_DEFAULT: int = 5

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLES: List[str] = [ROLE_ADMIN, ROLE_MANAGER]

ITEM_PRODUCT = "product"
ITEM_SERVICE = "service"

CASH_FLOW_EXPENSE = "expense"
CASH_FLOW_WITHDRAWAL = "withdrawal"
CASH_FLOW_TYPES: List[str] = [CASH_FLOW_EXPENSE, CASH_FLOW_WITHDRAWAL]

SALARY_CATEGORY = "Salary"
# Daily wage = salary_per_month / DAYS_PER_MONTH
DAYS_PER_MONTH: int = 30

SERVICE_CATEGORIES: List[str] = [
    "General Services",
    "Repair Services",
    "Tyre & Wheel Services",
    "Electrical & Electronic Services",
    "Cleaning & Detailing Services",
    "Custom & Modification Services",
    "Safety & Comfort Services",
    "Diagnostic & Performance Services",
]

EXPENSE_CATEGORIES: List[str] = [
    "Rent",
    "Utilities (Electric/Water)",
    "Salaries & Wages",
    "Spare Parts Purchase",
    "Tools & Equipment",
    "Marketing & Ads",
    "Tea & Refreshments",
    "Transportation",
    "Miscellaneous",
]

DASHBOARD_PERIODS = {
    "day": "Today",
    "week": "This Week",
    "month": "This Month",
    "year": "This Year",
    "all": "All Time",
}
REPORT_PERIODS: List[str] = ["today", "week", "month", "custom"]

INITIAL_PRODUCTS: List[dict] = [
    {
        "id": "p1",
        "name": "Synthetic Motor Oil 5W-30",
        "sku": "OIL-SYN-530",
        "category": "Fluids",
        "buying_price": Decimal("15.00"),
        "selling_price": Decimal("35.00"),
        "stock": 42,
    },
    {
        "id": "p2",
        "name": "Ceramic Brake Pads (Front)",
        "sku": "BRK-PAD-F-01",
        "category": "Brakes",
        "buying_price": Decimal("25.00"),
        "selling_price": Decimal("65.00"),
        "stock": 12,
    },
    {
        "id": "p3",
        "name": "Oil Filter Premium",
        "sku": "FLT-OIL-PREM",
        "category": "Filters",
        "buying_price": Decimal("4.50"),
        "selling_price": Decimal("12.00"),
        "stock": 8,
    },
    {
        "id": "p4",
        "name": "All-Season Tire 205/55R16",
        "sku": "TIRE-AS-16",
        "category": "Tires",
        "buying_price": Decimal("60.00"),
        "selling_price": Decimal("110.00"),
        "stock": 20,
    },
]

_SEED_SERVICES = {
    "General Services": [
        "Full Bike Servicing",
        "Basic Servicing",
        "Periodic Maintenance",
        "Engine Oil Change",
        "Oil Filter Change",
        "Air Filter Cleaning / Replacement",
        "Chain Adjustment & Lubrication",
        "Brake Check & Adjustment",
        "Clutch Adjustment",
        "Coolant Check / Replacement",
        "Battery Check & Charging",
        "Spark Plug Cleaning / Replacement",
        "Carburetor Cleaning",
        "Fuel Injection (FI) System Check",
        "Throttle Body Cleaning",
    ],
    "Repair Services": [
        "Engine Repair",
        "Gearbox Repair",
        "Clutch Plate Replacement",
        "Piston Ring Replacement",
        "Valve Setting",
        "Overhauling Engine",
        "Brake Pad / Shoe Replacement",
        "Disc Brake Repair",
        "Suspension Repair",
        "Shock Absorber Repair / Replacement",
        "Electrical Wiring Repair",
        "Starter Motor Repair",
        "Self-Start System Repair",
        "Fuel Pump Repair",
        "Radiator Repair",
    ],
    "Tyre & Wheel Services": [
        "Tyre Replacement",
        "Tube Replacement",
        "Wheel Alignment",
        "Wheel Balancing",
        "Rim Repair",
        "Puncture Repair (Tubeless & Tube)",
    ],
    "Electrical & Electronic Services": [
        "Battery Replacement",
        "Indicator / Headlight / Tail Light Replacement",
        "Horn Repair / Replacement",
        "Switch Repair",
        "ECU (Engine Control Unit) Diagnostic",
        "Digital Meter Repair",
        "Wiring Harness Replacement",
    ],
    "Cleaning & Detailing Services": [
        "Full Bike Wash",
        "Engine Cleaning",
        "Foam Wash",
        "Polish & Wax",
        "Chain Cleaning & Lube",
        "Rust Removal",
        "Underbody Wash",
        "Ceramic Coating (Optional)",
        "Teflon Coating",
    ],
    "Custom & Modification Services": [
        "LED Light Installation",
        "Custom Paint Job",
        "Exhaust Modification",
        "Seat Modification",
        "Handlebar Adjustment / Replacement",
        "Footrest Modification",
        "Custom Horn Installation",
    ],
    "Safety & Comfort Services": [
        "Brake Fluid Change",
        "Handle Grip Replacement",
        "Tyre Pressure Check",
        "Suspension Tuning",
        "Mirror Replacement",
    ],
    "Diagnostic & Performance Services": [
        "Full Bike Health Check",
        "Computerized Diagnostic for FI Bikes",
        "Compression Test",
        "Engine Performance Tuning",
        "Mileage Check & Calibration",
    ],
}


def service_seed_id(name: str) -> str:
    """Stable id for a seeded service: ``s_`` + lower snake-cased name."""
    return "s_" + "_".join(name.split()).lower()


INITIAL_SERVICES: List[dict] = [
    {"id": service_seed_id(name), "name": name, "category": category}
    for category, names in _SEED_SERVICES.items()
    for name in names
]

# Seeded logins for a fresh database (passwords are hashed on insert).
INITIAL_USERS: List[dict] = [
    {
        "id": "u1",
        "name": "Alice Admin",
        "username": "admin@autotrack.com",
        "role": ROLE_ADMIN,
        "password": "1234",
    },
    {
        "id": "u2",
        "name": "Bob Manager",
        "username": "manager@autotrack.com",
        "role": ROLE_MANAGER,
        "password": "1234",
    },
]

# Sidebar menu labels (keep in sync across app and sidebar)
MENU_DASHBOARD = "\U0001F4CA Dashboard"
MENU_POS = "\U0001F6D2 Point of Sale"
MENU_TRANSACTIONS = "\U0001F9FE Transactions"
MENU_INVENTORY = "\U0001F5C2\ufe0f Inventory"
MENU_EXPENSES = "\U0001F4B8 Expenses"
MENU_EMPLOYEES = "\U0001F477 Employees"
MENU_USER_MANAGEMENT = "\U0001F9D1\u200D\U0001F4BB User Management"
