"""
Audit Portal
Blueprint registry.

    health_bp  — /api/v1/health   (no auth)
    review_bp  — /api/v1/review   (JWT + role gate)
"""
