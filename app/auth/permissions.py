"""
Central registry of allowed actions per role.
"""
ROLE_SCOPES = {
    "consumer": {"manage_cart", "view_quote", "place_order"},
    "admin":    {"*"},
}

def role_has_scope(role: str, action: str) -> bool:
    scopes = ROLE_SCOPES.get(role, set())
    return "*" in scopes or action in scopes
