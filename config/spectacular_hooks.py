TAG_PREFIXES = (
    ("/api/v1/auth/", "Authentication"),
    ("/api/v1/users/", "Users"),
    ("/api/v1/professionals/", "Professionals"),
    ("/api/v1/services/", "Service Requests"),
    ("/api/v1/quotes/", "Quotes"),
    ("/api/v1/payments/", "Payments"),
    ("/api/v1/reviews/", "Reviews"),
    ("/api/v1/chat/", "Chat"),
    ("/api/v1/notifications/", "Notifications"),
    ("/api/v1/admin/", "Admin"),
    ("/api/v1/audit/", "Admin"),
    ("/api/v1/schema/", "Meta"),
)


def group_tags(result, generator, request, public):
    """Give every operation one tag derived from its path prefix."""
    for path, operations in result.get("paths", {}).items():
        tag = next(
            (name for prefix, name in TAG_PREFIXES if path.startswith(prefix)),
            None,
        )
        if tag is None:
            continue
        for op in operations.values():
            op["tags"] = [tag]
    return result
