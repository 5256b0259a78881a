"""Test environment: cheap bcrypt, no Redis, no startup bootstrap."""
import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("OUTBOX_ENQUEUE_ENABLED", "false")
os.environ.setdefault("ADMIN_BOOTSTRAP_ON_STARTUP", "false")
os.environ.setdefault("APP_ENV", "test")
