"""
Permission codes and default role mappings.

Roles are company-scoped rows; what each role may do is defined here so every
company gets the same baseline. Admin has every permission.
"""

# =============================================================================
# PERMISSION CATEGORIES
# =============================================================================

class PermissionCategory:
    """Permission categories for organization."""
    INVOICES = "INVOICES"
    PAYMENTS = "PAYMENTS"
    CASH_DRAWER = "CASH_DRAWER"


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    (
        "VIEW_INVOICES",
        "View Invoices",
        "List and view invoices and their line items",
        PermissionCategory.INVOICES
    ),
    (
        "MANAGE_INVOICES",
        "Manage Invoices",
        "Create, edit and delete invoices and line items",
        PermissionCategory.INVOICES
    ),
    (
        "TAKE_PAYMENT",
        "Take Payment",
        "Capture cash or card payments and mark invoices as paid",
        PermissionCategory.PAYMENTS
    ),
    (
        "REFUND_PAYMENT",
        "Refund Payment",
        "Refund paid invoices",
        PermissionCategory.PAYMENTS
    ),
    (
        "VIEW_CASH_DRAWER",
        "View Cash Drawer",
        "View current and past cash drawer sessions",
        PermissionCategory.CASH_DRAWER
    ),
    (
        "MANAGE_CASH_DRAWER",
        "Manage Cash Drawer",
        "Open and close cash drawer sessions",
        PermissionCategory.CASH_DRAWER
    ),
]


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [code for code, _name, _desc, _cat in PERMISSION_DEFINITIONS],
    "manager": [
        "VIEW_INVOICES",
        "MANAGE_INVOICES",
        "TAKE_PAYMENT",
        "REFUND_PAYMENT",
        "VIEW_CASH_DRAWER",
        "MANAGE_CASH_DRAWER",
    ],
    "frontdesk": [
        "VIEW_INVOICES",
        "MANAGE_INVOICES",
        "TAKE_PAYMENT",
        "VIEW_CASH_DRAWER",
        "MANAGE_CASH_DRAWER",
    ],
    "technician": [
        "VIEW_INVOICES",
    ],
}

ROLE_DESCRIPTIONS = {
    "admin": "Full access",
    "manager": "Shop manager: invoicing, payments, refunds, cash drawer",
    "frontdesk": "Counter staff: invoicing, payments, cash drawer",
    "technician": "Bench technician: read-only invoices",
}
