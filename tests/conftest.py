# NOTE: We set required env vars here before any gateway module is imported, so
# that Settings() can be instantiated at collection time without a real .env.

import os

os.environ.setdefault("FTP_HOST", "ftp.test")
os.environ.setdefault("FTP_USER", "acme")
os.environ.setdefault("FTP_PASSWORD", "test-ftp-password")
os.environ.setdefault("FTP_PATH_URL", "https://cdn.test")
os.environ.setdefault("WEBHOOK_URL", "http://webhook.test/hook")
os.environ.setdefault("TRANSPORT_FACTORY", "")
