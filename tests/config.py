"""Test-specific configuration for exam portal tests"""

import os

# Test configuration dictionary
test_config = {
    "admin_api_key": "test-admin-key",
    # Minimum bcrypt cost keeps hashing fast in tests
    "bcrypt_rounds": 4,
    "postgres_image": os.getenv("TEST_POSTGRES_IMAGE", "postgres:16"),
    "redis_image": os.getenv("TEST_REDIS_IMAGE", "redis:7"),
}
