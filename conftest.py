import os
import tempfile

# settings is read at import time, configure it before any test module loads
_test_dir = tempfile.mkdtemp(prefix="congress-test-")
os.environ["ENVIRONTMENT"] = "os"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_test_dir, 'test.db')}"
os.environ["TICKET_SECRET"] = "test-ticket-secret-0123456789-abcdefghijklmnop"
os.environ["MAIL_ENABLED"] = "False"
os.environ.setdefault("LOG_LEVEL", "WARNING")
