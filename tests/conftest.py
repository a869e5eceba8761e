import os

os.environ.setdefault("NOPIFIN_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("NOPIFIN_TIMEZONE", "UTC")
