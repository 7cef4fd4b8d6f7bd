import os
import tempfile

# Must run before edurenfort is imported: the engine and upload dir are read at import time.
_tmp = tempfile.mkdtemp(prefix="edurenfort-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_tmp, "test.db")
os.environ["UPLOAD_DIR"] = os.path.join(_tmp, "uploads")
os.environ["ENVIRONMENT"] = "test"
os.environ["MAIL_USERNAME"] = ""
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)
