"""Root conftest — shared test configuration."""

import os

# Tests must never talk to a real image host
os.environ.setdefault("IMAGEKIT_PUBLIC_KEY", "public_test_key")
os.environ.setdefault("IMAGEKIT_PRIVATE_KEY", "private_test_key")
os.environ.setdefault("IMAGEKIT_URL_ENDPOINT", "https://ik.example.test/demo")
os.environ.setdefault("API_BASE_URL", "http://relay.test")
