"""
Central registry of allowed actions per role.
"""
ROLE_SCOPES = {
    "customer": {"place_order", "write_review", "vote_review", "manage_wishlist"},
    "admin":    {"*"},
}

def role_has_scope(role: str, action: str) -> bool:
    scopes = ROLE_SCOPES.get(role, set())
    return "*" in scopes or action in scopes
