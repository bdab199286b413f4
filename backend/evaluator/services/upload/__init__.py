from .service import UploadService, build_storage_key, safe_filename
from .validation import IncomingFile, validate_file, validate_submission
