import os
import tempfile

os.environ.setdefault("TENULIVRE_DATA_DIR", tempfile.mkdtemp(prefix="tenulivre-"))
os.environ.setdefault("TENULIVRE_DATABASE_URL", "sqlite:///:memory:")
