# Overview: Default admin panel windows (menu entries) and their access codes.
# Each window is defined as: (access, name, url, icon, parent_access, order)
# Group windows have no url and carry isParent=True.

# -- ACCESS CODES --

SETUP_GROUP = "SETUP"
WINDOWS = "WINDOWS"
ROLES = "ROLES"
USERS = "USERS"
ORGANIZATIONS = "ORGANIZATIONS"
DEPARTMENTS = "DEPARTMENTS"
RAW_MATERIALS = "RAW_MATERIALS"
PRODUCTS = "PRODUCTS"
NOTIFICATIONS = "NOTIFICATIONS"

TRANSACTIONS_GROUP = "TRANSACTIONS"
ORDERS = "ORDERS"
WORK_ORDERS = "WORK_ORDERS"
FINISHED_GOODS = "FINISHED_GOODS"
DELIVERY_ORDERS = "DELIVERY_ORDERS"


DEFAULT_WINDOWS = [
    (SETUP_GROUP, "General Setup", "", "settings", None, 1),
    (WINDOWS, "Windows", "/general/setup/windows", "layout", SETUP_GROUP, 1),
    (ROLES, "Roles", "/general/setup/roles", "shield", SETUP_GROUP, 2),
    (USERS, "Users", "/general/setup/users", "users", SETUP_GROUP, 3),
    (ORGANIZATIONS, "Organizations", "/general/setup/organizations", "building", SETUP_GROUP, 4),
    (DEPARTMENTS, "Departments", "/general/setup/departments", "network", SETUP_GROUP, 5),
    (RAW_MATERIALS, "Raw Materials", "/general/setup/raw-materials", "package", SETUP_GROUP, 6),
    (PRODUCTS, "Products", "/general/setup/products", "box", SETUP_GROUP, 7),
    (NOTIFICATIONS, "Notifications", "/general/setup/notifications", "bell", SETUP_GROUP, 8),

    (TRANSACTIONS_GROUP, "Transactions", "", "clipboard", None, 2),
    (ORDERS, "Orders", "/transactions/orders", "shopping-cart", TRANSACTIONS_GROUP, 1),
    (WORK_ORDERS, "Work Orders", "/transactions/work-orders", "wrench", TRANSACTIONS_GROUP, 2),
    (FINISHED_GOODS, "Finished Goods", "/transactions/finished-goods", "check-square", TRANSACTIONS_GROUP, 3),
    (DELIVERY_ORDERS, "Delivery Orders", "/transactions/delivery-orders", "truck", TRANSACTIONS_GROUP, 4),
]

GROUP_ACCESS_CODES = {SETUP_GROUP, TRANSACTIONS_GROUP}
