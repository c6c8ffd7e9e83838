from .ab_testing import ABTestingFramework, hash_user_id

__all__ = ["ABTestingFramework", "hash_user_id"]
